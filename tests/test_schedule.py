"""
Test suite for quorum_core.schedule: schedule entries and snapshots.

Covers:
  - Defaults and the signing message
  - can_delete rules (state, missing admin, wrong requester)
  - Transition helpers and closed_at
  - Snapshot isolation and serialization
"""

import unittest

from quorum_core.gateway import ExecutionReceipt
from quorum_core.key_set import KeySet
from quorum_core.schedule import (
    ScheduleEntry,
    ScheduleState,
    SignResult,
    signing_message,
)
from quorum_core.transfer import TransferPayload


class TestScheduleEntry(unittest.TestCase):

    def _make_entry(self, **kwargs):
        defaults = dict(
            schedule_id="0.0.1005",
            payload=TransferPayload.between("0.0.1001", "0.0.1002", 10),
            key_set=KeySet(["A", "B", "C"], 2),
            creator="0.0.2", payer="0.0.2", admin_authority="admin",
            memo="memo", expiration_time=2_000.0, create_time=1_000.0,
        )
        defaults.update(kwargs)
        return ScheduleEntry(**defaults)

    def test_defaults(self):
        e = self._make_entry()
        self.assertIs(e.state, ScheduleState.PENDING)
        self.assertIsNone(e.executed_at)
        self.assertIsNone(e.receipt)
        self.assertEqual(e.collector.count, 0)

    def test_signing_message(self):
        e = self._make_entry()
        self.assertEqual(e.signing_message(), b"schedule-sign:0.0.1005")
        self.assertEqual(signing_message("0.0.1005"), e.signing_message())

    def test_is_expired_boundary(self):
        e = self._make_entry()
        self.assertFalse(e.is_expired(1_999.9))
        self.assertTrue(e.is_expired(2_000.0))

    # ── can_delete ───────────────────────────────────────────────

    def test_admin_can_delete(self):
        ok, _ = self._make_entry().can_delete("admin")
        self.assertTrue(ok)

    def test_non_admin_cannot_delete(self):
        ok, msg = self._make_entry().can_delete("mallory")
        self.assertFalse(ok)
        self.assertIn("admin authority", msg)

    def test_no_admin_authority(self):
        ok, msg = self._make_entry(admin_authority="").can_delete("")
        self.assertFalse(ok)
        self.assertIn("no admin authority", msg)

    def test_cannot_delete_terminal(self):
        e = self._make_entry()
        e.expire()
        ok, msg = e.can_delete("admin")
        self.assertFalse(ok)
        self.assertIn("expired", msg)

    # ── transitions ──────────────────────────────────────────────

    def test_execution_and_rollback(self):
        e = self._make_entry()
        e.begin_execution(1_500.0)
        self.assertIs(e.state, ScheduleState.EXECUTED)
        self.assertEqual(e.closed_at(), 1_500.0)
        e.rollback_execution()
        self.assertIs(e.state, ScheduleState.PENDING)
        self.assertIsNone(e.executed_at)
        self.assertIsNone(e.closed_at())

    def test_closed_at_for_expired_and_deleted(self):
        e = self._make_entry()
        e.expire()
        self.assertEqual(e.closed_at(), 2_000.0)
        d = self._make_entry()
        d.mark_deleted(1_200.0)
        self.assertEqual(d.closed_at(), 1_200.0)

    def test_terminal_flag(self):
        self.assertFalse(ScheduleState.PENDING.terminal)
        for state in (ScheduleState.EXECUTED, ScheduleState.EXPIRED, ScheduleState.DELETED):
            self.assertTrue(state.terminal)

    # ── snapshots ────────────────────────────────────────────────

    def test_snapshot_is_isolated(self):
        e = self._make_entry()
        e.collector.submit("A")
        snap = e.snapshot()
        e.collector.submit("B")
        e.begin_execution(1_500.0)
        self.assertEqual(snap.signed, frozenset({"A"}))
        self.assertIs(snap.state, ScheduleState.PENDING)
        self.assertEqual(snap.signature_count, 1)
        self.assertFalse(snap.satisfied)

    def test_snapshot_to_dict(self):
        e = self._make_entry()
        e.collector.submit("B")
        e.begin_execution(1_500.0)
        e.complete_execution(ExecutionReceipt("0.0.1005", "SUCCESS", 1_500.0))
        d = e.snapshot().to_dict()
        self.assertEqual(d["state"], "executed")
        self.assertEqual(d["executed_at"], 1_500.0)
        self.assertEqual(d["signed"], ["B"])
        self.assertEqual(d["payload"]["type"], "transfer")
        self.assertEqual(d["receipt"]["status"], "SUCCESS")

    def test_sign_result_to_dict(self):
        r = SignResult("0.0.1005", 1, 2, False, ScheduleState.PENDING)
        d = r.to_dict()
        self.assertEqual(d["state"], "pending")
        self.assertFalse(d["executed"])
        self.assertIsNone(d["receipt"])


if __name__ == "__main__":
    unittest.main()
