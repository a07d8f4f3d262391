"""
Schedule registry for Quorum.

Owns every ScheduleEntry and drives the schedule state machine:

  - create:           persist a payload on the ledger and register it PENDING
  - sign:             record a member signature; execute once the threshold
                      is met
  - delete:           admin authority cancels a PENDING schedule
  - sweep_expired:    expire PENDING schedules past their expiration time
  - reconcile:        adopt the ledger's verdict for a schedule
  - purge:            drop old terminal schedules

Locking
-------
Each entry carries its own lock; the registry lock only guards the
id -> entry mapping, so signers on different schedules never wait on each
other.  The "threshold met -> execute" decision flips the entry to
EXECUTED while its lock is held, which makes exactly one caller the
executor and keeps the sweeper away from it.  The ledger call itself runs
with no lock held.  If it fails the entry goes back to PENDING with its
signatures intact.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

from quorum_core.config import ScheduleConfig
from quorum_core.errors import (
    ExecutionFailed,
    MemoTooLong,
    NotFound,
    PersistenceFailed,
    ScheduleClosed,
    Unauthorized,
)
from quorum_core.gateway import ExecutionReceipt, LedgerGateway
from quorum_core.key_set import KeySet
from quorum_core.schedule import (
    ScheduleEntry,
    ScheduleSnapshot,
    ScheduleState,
    SignResult,
)

logger = logging.getLogger("quorum_registry")


class ScheduleRegistry:
    """Registry of scheduled transactions backed by a LedgerGateway."""

    def __init__(
        self,
        gateway: LedgerGateway,
        config: ScheduleConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.gateway = gateway
        self.config = config or ScheduleConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self.entries: dict[str, ScheduleEntry] = {}

    def _now(self, now: float | None) -> float:
        return self._clock() if now is None else now

    def _get(self, schedule_id: str) -> ScheduleEntry:
        with self._lock:
            entry = self.entries.get(schedule_id)
        if entry is None:
            raise NotFound(f"Schedule {schedule_id} not found")
        return entry

    # ── create ───────────────────────────────────────────────────

    def create(
        self,
        payload: Any,
        key_set: KeySet,
        creator: str,
        payer: str | None = None,
        admin_authority: str = "",
        memo: str = "",
        ttl: float | None = None,
        now: float | None = None,
    ) -> str:
        """Persist *payload* as a new PENDING schedule. Returns its id."""
        if len(memo.encode("utf-8")) > self.config.max_memo_bytes:
            raise MemoTooLong(
                f"Memo exceeds {self.config.max_memo_bytes} bytes"
            )
        if ttl is None:
            ttl = self.config.default_ttl_seconds
        if ttl < 0:
            raise ValueError("ttl must be non-negative")
        now = self._now(now)
        payer = payer or creator
        expiration_time = now + ttl

        try:
            schedule_id = self.gateway.submit_schedule(
                payload, creator, payer, admin_authority, memo, expiration_time,
            )
        except Exception as exc:
            logger.warning(f"Ledger rejected schedule from {creator}: {exc}")
            raise PersistenceFailed(f"Ledger rejected schedule: {exc}") from exc

        entry = ScheduleEntry(
            schedule_id=schedule_id,
            payload=payload,
            key_set=key_set,
            creator=creator,
            payer=payer,
            admin_authority=admin_authority,
            memo=memo,
            expiration_time=expiration_time,
            create_time=now,
        )
        with self._lock:
            if schedule_id in self.entries:
                raise PersistenceFailed(
                    f"Ledger returned duplicate schedule id {schedule_id}"
                )
            self.entries[schedule_id] = entry
        logger.info(
            f"Schedule {schedule_id} created by {creator} "
            f"({key_set.threshold}-of-{len(key_set)}, expires {expiration_time:.0f})",
            extra={"schedule_id": schedule_id},
        )
        return schedule_id

    # ── sign / execute ───────────────────────────────────────────

    def sign(
        self, schedule_id: str, member_id: str, now: float | None = None,
    ) -> SignResult:
        """Record *member_id*'s signature; execute if the threshold is met."""
        return self._sign(schedule_id, member_id, None, now)

    def sign_with_signature(
        self,
        schedule_id: str,
        member_id: str,
        signature: bytes,
        now: float | None = None,
    ) -> SignResult:
        """Like ``sign`` but verifies *signature* over the schedule first."""
        return self._sign(schedule_id, member_id, signature, now)

    def retry_execution(
        self, schedule_id: str, now: float | None = None,
    ) -> SignResult:
        """Re-trigger execution of a PENDING schedule that already has
        enough signatures (after an ExecutionFailed)."""
        entry = self._get(schedule_id)
        now = self._now(now)
        with entry.lock:
            self._ensure_open(entry, now)
            if not entry.collector.satisfied():
                return self._result(entry)
            entry.begin_execution(now)
        return self._execute(entry)

    def _sign(
        self,
        schedule_id: str,
        member_id: str,
        signature: bytes | None,
        now: float | None,
    ) -> SignResult:
        entry = self._get(schedule_id)
        now = self._now(now)
        with entry.lock:
            self._ensure_open(entry, now)
            if signature is None:
                count, satisfied = entry.collector.submit(member_id)
            else:
                count, satisfied = entry.collector.submit_signed(
                    member_id, entry.signing_message(), signature,
                )
            logger.info(
                f"Schedule {schedule_id}: signature {count}/"
                f"{entry.key_set.threshold} from {member_id[:16]}",
                extra={"schedule_id": schedule_id, "member": member_id},
            )
            if not satisfied:
                return self._result(entry)
            # Claim execution while holding the lock
            entry.begin_execution(now)
        return self._execute(entry)

    def _ensure_open(self, entry: ScheduleEntry, now: float) -> None:
        # caller holds entry.lock
        if entry.state is not ScheduleState.PENDING:
            raise ScheduleClosed(
                f"Schedule {entry.schedule_id} is {entry.state.value}"
            )
        if entry.is_expired(now):
            entry.expire()
            logger.info(f"Schedule {entry.schedule_id} expired",
                        extra={"schedule_id": entry.schedule_id})
            raise ScheduleClosed(f"Schedule {entry.schedule_id} has expired")

    def _execute(self, entry: ScheduleEntry) -> SignResult:
        """Run the ledger execute call for an entry this caller claimed."""
        try:
            receipt: ExecutionReceipt = self.gateway.execute_payload(entry.schedule_id)
        except Exception as exc:
            with entry.lock:
                entry.rollback_execution()
            logger.error(
                f"Schedule {entry.schedule_id}: execution failed, "
                f"back to pending: {exc}",
                extra={"schedule_id": entry.schedule_id},
            )
            raise ExecutionFailed(
                f"Execution of schedule {entry.schedule_id} failed: {exc}"
            ) from exc
        with entry.lock:
            entry.complete_execution(receipt)
            result = self._result(entry, executed=True)
        logger.info(f"Schedule {entry.schedule_id} executed",
                    extra={"schedule_id": entry.schedule_id})
        return result

    @staticmethod
    def _result(entry: ScheduleEntry, executed: bool = False) -> SignResult:
        # caller holds entry.lock
        return SignResult(
            schedule_id=entry.schedule_id,
            signature_count=entry.collector.count,
            threshold=entry.key_set.threshold,
            satisfied=entry.collector.satisfied(),
            state=entry.state,
            executed=executed,
            receipt=entry.receipt,
        )

    # ── delete ───────────────────────────────────────────────────

    def delete(
        self, schedule_id: str, requester: str, now: float | None = None,
    ) -> ScheduleSnapshot:
        """Delete a PENDING schedule on behalf of its admin authority.

        Raises ``Unauthorized`` when the schedule is no longer PENDING or
        *requester* is not its admin authority.  A PENDING schedule past its
        deadline is expired instead and its snapshot returned.
        """
        entry = self._get(schedule_id)
        now = self._now(now)
        with entry.lock:
            if entry.state is ScheduleState.PENDING and entry.is_expired(now):
                entry.expire()
                logger.info(f"Schedule {schedule_id} expired before delete",
                            extra={"schedule_id": schedule_id})
                return entry.snapshot()
            ok, reason = entry.can_delete(requester)
            if not ok:
                raise Unauthorized(reason)
            # claimed here; the ledger call runs unlocked
            entry.mark_deleted(now)

        try:
            self.gateway.delete_schedule(schedule_id)
        except Exception as exc:
            with entry.lock:
                entry.rollback_deletion()
            logger.warning(f"Ledger rejected delete of schedule {schedule_id}: {exc}",
                           extra={"schedule_id": schedule_id})
            raise PersistenceFailed(
                f"Ledger rejected delete of schedule {schedule_id}: {exc}"
            ) from exc

        with entry.lock:
            snap = entry.snapshot()
        logger.info(f"Schedule {schedule_id} deleted by admin",
                    extra={"schedule_id": schedule_id})
        return snap

    # ── queries ──────────────────────────────────────────────────

    def query(self, schedule_id: str) -> ScheduleSnapshot:
        entry = self._get(schedule_id)
        with entry.lock:
            return entry.snapshot()

    def list_schedules(
        self, state: ScheduleState | None = None,
    ) -> list[ScheduleSnapshot]:
        with self._lock:
            entries = list(self.entries.values())
        out = []
        for entry in entries:
            with entry.lock:
                if state is None or entry.state is state:
                    out.append(entry.snapshot())
        return out

    def pending_count(self) -> int:
        return len(self.list_schedules(ScheduleState.PENDING))

    def __len__(self) -> int:
        with self._lock:
            return len(self.entries)

    def __contains__(self, schedule_id: object) -> bool:
        with self._lock:
            return schedule_id in self.entries

    # ── maintenance ──────────────────────────────────────────────

    def sweep_expired(self, now: float | None = None) -> list[str]:
        """Expire every PENDING schedule whose expiration time has passed."""
        now = self._now(now)
        with self._lock:
            entries = list(self.entries.values())
        expired: list[str] = []
        for entry in entries:
            with entry.lock:
                if entry.state is ScheduleState.PENDING and entry.is_expired(now):
                    entry.expire()
                    expired.append(entry.schedule_id)
        if expired:
            logger.info(f"Expired {len(expired)} schedule(s): {', '.join(expired)}")
        return expired

    def reconcile(self, schedule_id: str) -> ScheduleSnapshot:
        """Bring a PENDING entry in line with the ledger's record."""
        entry = self._get(schedule_id)
        info = self.gateway.query_remote_state(schedule_id)
        with entry.lock:
            if entry.state is ScheduleState.PENDING:
                if info.executed_at is not None:
                    entry.begin_execution(info.executed_at)
                    entry.complete_execution(ExecutionReceipt(
                        schedule_id=schedule_id,
                        status="SUCCESS",
                        consensus_time=info.executed_at,
                    ))
                    logger.info(f"Schedule {schedule_id} executed remotely",
                                extra={"schedule_id": schedule_id})
                elif info.deleted_at is not None:
                    entry.mark_deleted(info.deleted_at)
                    logger.info(f"Schedule {schedule_id} deleted remotely",
                                extra={"schedule_id": schedule_id})
            return entry.snapshot()

    def purge(self, before: float) -> int:
        """Forget terminal schedules closed before *before*. Returns count."""
        removed = 0
        with self._lock:
            for schedule_id, entry in list(self.entries.items()):
                with entry.lock:
                    closed = entry.closed_at()
                    # in-flight executions have no receipt yet
                    in_flight = (entry.state is ScheduleState.EXECUTED
                                 and entry.receipt is None)
                    if closed is not None and closed < before and not in_flight:
                        del self.entries[schedule_id]
                        removed += 1
        if removed:
            logger.info(f"Purged {removed} closed schedule(s)")
        return removed
