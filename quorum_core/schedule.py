"""
Scheduled transaction entries for Quorum.

A schedule holds a transaction payload until enough members of its KeySet
have signed it.  It then executes exactly once, or expires at
``expiration_time``, or is deleted by its admin authority.

State machine::

    PENDING --threshold met, now < expiration_time--> EXECUTED
    PENDING --now >= expiration_time--------------> EXPIRED
    PENDING --admin authority deletes-------------> DELETED

EXECUTED, EXPIRED and DELETED are terminal.  The single exception is a
failed execute call, which hands an EXECUTED entry back to PENDING so the
execution can be retried.

Mirrors the ledger's ScheduleCreate / ScheduleSign / ScheduleDelete.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from quorum_core.key_set import KeySet
from quorum_core.signatures import SignatureCollector

if TYPE_CHECKING:
    from quorum_core.gateway import ExecutionReceipt

SIGNING_PREFIX = b"schedule-sign:"


class ScheduleState(str, Enum):
    PENDING = "pending"
    EXECUTED = "executed"
    EXPIRED = "expired"
    DELETED = "deleted"

    @property
    def terminal(self) -> bool:
        return self is not ScheduleState.PENDING


def signing_message(schedule_id: str) -> bytes:
    """Bytes a key holder signs to approve *schedule_id*."""
    return SIGNING_PREFIX + schedule_id.encode("utf-8")


@dataclass
class ScheduleEntry:
    """A single pending (or resolved) scheduled transaction."""
    schedule_id: str
    payload: Any
    key_set: KeySet
    creator: str
    payer: str
    admin_authority: str        # empty = no one may delete
    memo: str
    expiration_time: float
    create_time: float = field(default_factory=time.time)
    state: ScheduleState = ScheduleState.PENDING
    executed_at: float | None = None
    deleted_at: float | None = None
    receipt: ExecutionReceipt | None = None
    collector: SignatureCollector = field(init=False, repr=False)
    lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False,
    )

    def __post_init__(self) -> None:
        self.collector = SignatureCollector(self.key_set)

    # ── queries ──────────────────────────────────────────────────

    def is_expired(self, now: float) -> bool:
        return now >= self.expiration_time

    def signing_message(self) -> bytes:
        return signing_message(self.schedule_id)

    def closed_at(self) -> float | None:
        """Time the entry became terminal, or None while PENDING."""
        if self.state is ScheduleState.EXECUTED:
            return self.executed_at
        if self.state is ScheduleState.DELETED:
            return self.deleted_at
        if self.state is ScheduleState.EXPIRED:
            return self.expiration_time
        return None

    def can_delete(self, requester: str) -> tuple[bool, str]:
        """Check whether *requester* may delete this schedule."""
        if self.state is not ScheduleState.PENDING:
            return False, f"Schedule is {self.state.value}"
        if not self.admin_authority:
            return False, "Schedule has no admin authority"
        if requester != self.admin_authority:
            return False, "Only the admin authority can delete"
        return True, "OK"

    # ── transitions (caller holds self.lock) ─────────────────────

    def expire(self) -> None:
        self.state = ScheduleState.EXPIRED

    def begin_execution(self, now: float) -> None:
        self.state = ScheduleState.EXECUTED
        self.executed_at = now

    def complete_execution(self, receipt: ExecutionReceipt) -> None:
        self.receipt = receipt

    def rollback_execution(self) -> None:
        self.state = ScheduleState.PENDING
        self.executed_at = None
        self.receipt = None

    def mark_deleted(self, now: float) -> None:
        self.state = ScheduleState.DELETED
        self.deleted_at = now

    def rollback_deletion(self) -> None:
        self.state = ScheduleState.PENDING
        self.deleted_at = None

    def snapshot(self) -> ScheduleSnapshot:
        return ScheduleSnapshot(
            schedule_id=self.schedule_id,
            payload=self.payload,
            creator=self.creator,
            payer=self.payer,
            admin_authority=self.admin_authority,
            memo=self.memo,
            expiration_time=self.expiration_time,
            create_time=self.create_time,
            state=self.state,
            executed_at=self.executed_at,
            deleted_at=self.deleted_at,
            members=self.key_set.members,
            threshold=self.key_set.threshold,
            signed=self.collector.signed,
            receipt=self.receipt,
        )


@dataclass(frozen=True)
class ScheduleSnapshot:
    """Read-only copy of a ScheduleEntry at one point in time."""
    schedule_id: str
    payload: Any
    creator: str
    payer: str
    admin_authority: str
    memo: str
    expiration_time: float
    create_time: float
    state: ScheduleState
    executed_at: float | None
    deleted_at: float | None
    members: tuple[str, ...]
    threshold: int
    signed: frozenset[str]
    receipt: ExecutionReceipt | None = None

    @property
    def signature_count(self) -> int:
        return len(self.signed)

    @property
    def satisfied(self) -> bool:
        return len(self.signed) >= self.threshold

    @property
    def executed(self) -> bool:
        return self.state is ScheduleState.EXECUTED

    def to_dict(self) -> dict:
        payload = self.payload
        if hasattr(payload, "to_dict"):
            payload = payload.to_dict()
        return {
            "schedule_id": self.schedule_id,
            "payload": payload,
            "creator": self.creator,
            "payer": self.payer,
            "admin_authority": self.admin_authority,
            "memo": self.memo,
            "expiration_time": self.expiration_time,
            "create_time": self.create_time,
            "state": self.state.value,
            "executed_at": self.executed_at,
            "deleted_at": self.deleted_at,
            "members": list(self.members),
            "threshold": self.threshold,
            "signed": sorted(self.signed),
            "signature_count": self.signature_count,
            "receipt": self.receipt.to_dict() if self.receipt else None,
        }


@dataclass(frozen=True)
class SignResult:
    """Outcome of one signature submission."""
    schedule_id: str
    signature_count: int
    threshold: int
    satisfied: bool
    state: ScheduleState
    executed: bool = False          # True only for the call that executed
    receipt: ExecutionReceipt | None = None

    def to_dict(self) -> dict:
        return {
            "schedule_id": self.schedule_id,
            "signature_count": self.signature_count,
            "threshold": self.threshold,
            "satisfied": self.satisfied,
            "state": self.state.value,
            "executed": self.executed,
            "receipt": self.receipt.to_dict() if self.receipt else None,
        }
