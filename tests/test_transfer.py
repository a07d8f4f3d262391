"""
Tests for quorum_core.transfer: balanced transfer payloads and unit helpers.
"""

import unittest
from decimal import Decimal

from quorum_core.transfer import (
    UNITS_PER_COIN,
    TransferPayload,
    coins_to_units,
    units_to_coins,
)


class TestUnits(unittest.TestCase):

    def test_whole_coins(self):
        self.assertEqual(coins_to_units("10"), 10 * UNITS_PER_COIN)

    def test_fractional_coins(self):
        self.assertEqual(coins_to_units("0.5"), UNITS_PER_COIN // 2)

    def test_too_precise(self):
        with self.assertRaises(ValueError):
            coins_to_units("0.000000001")

    def test_not_a_number(self):
        with self.assertRaises(ValueError):
            coins_to_units("ten")

    def test_units_to_coins(self):
        self.assertEqual(units_to_coins(250_000_000), Decimal("2.5"))


class TestTransferPayload(unittest.TestCase):

    def test_between(self):
        t = TransferPayload.between("0.0.1001", "0.0.1002", 500)
        self.assertEqual(t.legs, (("0.0.1001", -500), ("0.0.1002", 500)))
        self.assertEqual(t.debits(), {"0.0.1001": 500})

    def test_unbalanced(self):
        with self.assertRaises(ValueError):
            TransferPayload((("a", -5), ("b", 4)))

    def test_empty(self):
        with self.assertRaises(ValueError):
            TransferPayload(())

    def test_non_positive_amount(self):
        with self.assertRaises(ValueError):
            TransferPayload.between("a", "b", 0)

    def test_self_transfer(self):
        with self.assertRaises(ValueError):
            TransferPayload.between("a", "a", 10)

    def test_multi_leg_debits(self):
        t = TransferPayload((("a", -5), ("a", -5), ("b", 7), ("c", 3)))
        self.assertEqual(t.debits(), {"a": 10})

    def test_dict_round_trip(self):
        t = TransferPayload.between("a", "b", 42)
        d = t.to_dict()
        self.assertEqual(d["type"], "transfer")
        self.assertEqual(TransferPayload.from_dict(d), t)


if __name__ == "__main__":
    unittest.main()
