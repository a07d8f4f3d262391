"""
Ledger gateway for Quorum.

The gateway is the only component that talks to the ledger: it persists
schedule records, applies a schedule's payload once the registry decides
the schedule has enough signatures, and answers state and balance
queries.  ``LedgerGateway`` is the narrow interface the registry consumes;
``InMemoryLedgerGateway`` is a thread-safe single-process ledger used by
the demo runner, the HTTP service and the tests.

Connection and operator settings are passed in explicitly through a
``NetworkConfig``; there is no module-level client.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from quorum_core.config import NetworkConfig
from quorum_core.errors import LedgerError, OperatorNotConfigured
from quorum_core.key_set import KeySet
from quorum_core.keys import KeyPair
from quorum_core.transfer import TransferPayload

logger = logging.getLogger("quorum_gateway")


@dataclass(frozen=True)
class ExecutionReceipt:
    """Ledger acknowledgement that a schedule's payload was applied."""
    schedule_id: str
    status: str             # "SUCCESS"
    consensus_time: float
    transaction_id: str = ""

    def to_dict(self) -> dict:
        return {
            "schedule_id": self.schedule_id,
            "status": self.status,
            "consensus_time": self.consensus_time,
            "transaction_id": self.transaction_id,
        }


@dataclass(frozen=True)
class ScheduleInfo:
    """The ledger's view of a schedule record."""
    schedule_id: str
    memo: str
    creator: str
    payer: str
    admin_authority: str
    expiration_time: float
    executed_at: float | None = None
    deleted_at: float | None = None

    @property
    def executed(self) -> bool:
        return self.executed_at is not None

    @property
    def deleted(self) -> bool:
        return self.deleted_at is not None

    def to_dict(self) -> dict:
        return {
            "schedule_id": self.schedule_id,
            "memo": self.memo,
            "creator": self.creator,
            "payer": self.payer,
            "admin_authority": self.admin_authority,
            "expiration_time": self.expiration_time,
            "executed_at": self.executed_at,
            "deleted_at": self.deleted_at,
        }


class LedgerGateway(ABC):
    """Operations the schedule registry needs from the ledger."""

    @abstractmethod
    def submit_schedule(
        self,
        payload: Any,
        creator: str,
        payer: str,
        admin_authority: str,
        memo: str,
        expiration_time: float,
    ) -> str:
        """Persist a new schedule record and return its id."""

    @abstractmethod
    def execute_payload(self, schedule_id: str) -> ExecutionReceipt:
        """Apply the scheduled payload."""

    @abstractmethod
    def delete_schedule(self, schedule_id: str) -> None:
        """Mark the ledger record of *schedule_id* deleted."""

    @abstractmethod
    def query_remote_state(self, schedule_id: str) -> ScheduleInfo:
        """Fetch the ledger's record for *schedule_id*."""

    @abstractmethod
    def get_balance(self, account_id: str) -> int:
        """Balance of *account_id* in base units."""


# ═══════════════════════════════════════════════════════════════════
#  In-memory ledger
# ═══════════════════════════════════════════════════════════════════

@dataclass
class _Account:
    account_id: str
    key_set: KeySet | None
    balance: int = 0


@dataclass
class _ScheduleRecord:
    schedule_id: str
    payload: Any
    creator: str
    payer: str
    admin_authority: str
    memo: str
    expiration_time: float
    executed_at: float | None = None
    deleted_at: float | None = None
    create_time: float = field(default_factory=time.time)

    def info(self) -> ScheduleInfo:
        return ScheduleInfo(
            schedule_id=self.schedule_id,
            memo=self.memo,
            creator=self.creator,
            payer=self.payer,
            admin_authority=self.admin_authority,
            expiration_time=self.expiration_time,
            executed_at=self.executed_at,
            deleted_at=self.deleted_at,
        )


class InMemoryLedgerGateway(LedgerGateway):
    """A process-local ledger holding accounts and schedule records."""

    FIRST_ENTITY_NUM = 1001

    def __init__(self, network: NetworkConfig, clock=time.time):
        if not network.operator_id or not network.operator_key:
            raise OperatorNotConfigured(
                "network.operator_id and network.operator_key must be configured"
            )
        self.network = network
        self.operator = KeyPair.from_hex(network.operator_key)
        self.operator_id = network.operator_id
        self._clock = clock
        self._lock = threading.Lock()
        self._next_num = self.FIRST_ENTITY_NUM
        self._accounts: dict[str, _Account] = {
            self.operator_id: _Account(
                self.operator_id,
                KeySet([self.operator.public_key], 1),
                network.operator_balance,
            ),
        }
        self._schedules: dict[str, _ScheduleRecord] = {}
        logger.info(
            f"In-memory ledger '{network.name}' ready, operator {self.operator_id}"
        )

    def _new_entity_id(self) -> str:
        # caller holds self._lock
        num = self._next_num
        self._next_num += 1
        return f"{self.network.shard}.{self.network.realm}.{num}"

    # ── accounts ─────────────────────────────────────────────────

    def create_account(self, key_set: KeySet | None, initial_balance: int) -> str:
        """Create an account funded by the operator. Returns its id."""
        if initial_balance < 0:
            raise ValueError("initial_balance must be non-negative")
        with self._lock:
            operator = self._accounts[self.operator_id]
            if operator.balance < initial_balance:
                raise LedgerError(
                    f"Operator balance {operator.balance} below {initial_balance}"
                )
            account_id = self._new_entity_id()
            operator.balance -= initial_balance
            self._accounts[account_id] = _Account(account_id, key_set, initial_balance)
        logger.info(f"Account {account_id} created with {initial_balance} units")
        return account_id

    def get_balance(self, account_id: str) -> int:
        with self._lock:
            acct = self._accounts.get(account_id)
            if acct is None:
                raise LedgerError(f"Account {account_id} not found")
            return acct.balance

    def get_key_set(self, account_id: str) -> KeySet | None:
        with self._lock:
            acct = self._accounts.get(account_id)
            if acct is None:
                raise LedgerError(f"Account {account_id} not found")
            return acct.key_set

    # ── schedules ────────────────────────────────────────────────

    def submit_schedule(
        self,
        payload: Any,
        creator: str,
        payer: str,
        admin_authority: str,
        memo: str,
        expiration_time: float,
    ) -> str:
        with self._lock:
            if payer not in self._accounts:
                raise LedgerError(f"Payer account {payer} not found")
            schedule_id = self._new_entity_id()
            self._schedules[schedule_id] = _ScheduleRecord(
                schedule_id=schedule_id,
                payload=payload,
                creator=creator,
                payer=payer,
                admin_authority=admin_authority,
                memo=memo,
                expiration_time=expiration_time,
                create_time=self._clock(),
            )
        logger.debug(f"Schedule {schedule_id} recorded on ledger")
        return schedule_id

    def execute_payload(self, schedule_id: str) -> ExecutionReceipt:
        with self._lock:
            record = self._schedules.get(schedule_id)
            if record is None:
                raise LedgerError(f"Schedule {schedule_id} not found")
            if record.executed_at is not None:
                raise LedgerError(f"Schedule {schedule_id} already executed")
            if record.deleted_at is not None:
                raise LedgerError(f"Schedule {schedule_id} was deleted")
            now = self._clock()
            if isinstance(record.payload, TransferPayload):
                self._apply_transfer(record.payload)
            record.executed_at = now
        logger.info(f"Schedule {schedule_id} executed on ledger")
        return ExecutionReceipt(
            schedule_id=schedule_id,
            status="SUCCESS",
            consensus_time=now,
            transaction_id=f"{self.operator_id}@{now:.9f}",
        )

    def _apply_transfer(self, transfer: TransferPayload) -> None:
        # caller holds self._lock; validate every leg before moving funds
        for acct_id, _amount in transfer.legs:
            if acct_id not in self._accounts:
                raise LedgerError(f"Account {acct_id} not found")
        for acct_id, debit in transfer.debits().items():
            have = self._accounts[acct_id].balance
            if have < debit:
                raise LedgerError(
                    f"Insufficient balance: {acct_id} has {have}, needs {debit}"
                )
        for acct_id, amount in transfer.legs:
            self._accounts[acct_id].balance += amount

    def delete_schedule(self, schedule_id: str) -> None:
        with self._lock:
            record = self._schedules.get(schedule_id)
            if record is None:
                raise LedgerError(f"Schedule {schedule_id} not found")
            if record.executed_at is not None:
                raise LedgerError(f"Schedule {schedule_id} already executed")
            if record.deleted_at is None:
                record.deleted_at = self._clock()

    def query_remote_state(self, schedule_id: str) -> ScheduleInfo:
        with self._lock:
            record = self._schedules.get(schedule_id)
            if record is None:
                raise LedgerError(f"Schedule {schedule_id} not found")
            return record.info()
