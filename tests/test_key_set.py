"""
Test suite for quorum_core.key_set: K-of-N key lists.

Covers:
  - Construction and member ordering
  - Threshold bounds (0, N, N+1, negative, empty member list)
  - Duplicate member rejection
  - Immutability and dict round-trip
"""

import dataclasses
import unittest

from quorum_core.errors import DuplicateMember, InvalidThreshold, ScheduleError
from quorum_core.key_set import KeySet


class TestKeySet(unittest.TestCase):

    def test_basic(self):
        ks = KeySet(["A", "B", "C"], 2)
        self.assertEqual(ks.members, ("A", "B", "C"))
        self.assertEqual(ks.threshold, 2)
        self.assertEqual(len(ks), 3)

    def test_members_keep_order(self):
        ks = KeySet(["C", "A", "B"], 1)
        self.assertEqual(list(ks), ["C", "A", "B"])

    def test_membership(self):
        ks = KeySet(["A", "B"], 1)
        self.assertIn("A", ks)
        self.assertTrue(ks.contains("B"))
        self.assertNotIn("D", ks)

    def test_threshold_equal_to_n(self):
        ks = KeySet(["A", "B", "C"], 3)
        self.assertEqual(ks.threshold, 3)

    # ── threshold bounds ─────────────────────────────────────────

    def test_threshold_zero(self):
        with self.assertRaises(InvalidThreshold):
            KeySet(["A", "B"], 0)

    def test_threshold_negative(self):
        with self.assertRaises(InvalidThreshold):
            KeySet(["A"], -1)

    def test_threshold_above_n(self):
        with self.assertRaises(InvalidThreshold):
            KeySet(["A", "B"], 3)

    def test_empty_members(self):
        with self.assertRaises(InvalidThreshold):
            KeySet([], 1)

    def test_invalid_threshold_is_value_error(self):
        with self.assertRaises(ValueError):
            KeySet(["A"], 2)

    # ── duplicates ───────────────────────────────────────────────

    def test_duplicate_members(self):
        with self.assertRaises(DuplicateMember):
            KeySet(["A", "B", "A"], 2)

    def test_duplicate_member_is_schedule_error(self):
        with self.assertRaises(ScheduleError):
            KeySet(["A", "A"], 1)

    # ── immutability / serialization ─────────────────────────────

    def test_frozen(self):
        ks = KeySet(["A", "B"], 1)
        with self.assertRaises(dataclasses.FrozenInstanceError):
            ks.threshold = 2

    def test_equality_and_hash(self):
        self.assertEqual(KeySet(["A", "B"], 1), KeySet(("A", "B"), 1))
        self.assertEqual(hash(KeySet(["A", "B"], 1)), hash(KeySet(("A", "B"), 1)))

    def test_to_dict(self):
        d = KeySet(["A", "B"], 2).to_dict()
        self.assertEqual(d, {"threshold": 2, "members": ["A", "B"]})

    def test_from_dict(self):
        ks = KeySet.from_dict({"threshold": 1, "members": ["X", "Y"]})
        self.assertEqual(ks, KeySet(["X", "Y"], 1))

    def test_from_dict_validates(self):
        with self.assertRaises(InvalidThreshold):
            KeySet.from_dict({"threshold": 5, "members": ["X"]})


if __name__ == "__main__":
    unittest.main()
