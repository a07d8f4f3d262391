"""
Transfer payloads for scheduled transactions.

A transfer is a list of (account, amount) legs in integer base units that
must net to zero: negative legs debit, positive legs credit.  Amounts are
whole units to keep balance arithmetic exact; one coin is
``UNITS_PER_COIN`` units.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

UNITS_PER_COIN = 100_000_000


def coins_to_units(coins: str | int | Decimal) -> int:
    """Convert a coin amount such as ``"10"`` or ``"0.5"`` to base units."""
    try:
        value = Decimal(str(coins)) * UNITS_PER_COIN
    except InvalidOperation as exc:
        raise ValueError(f"Invalid coin amount: {coins!r}") from exc
    if value != value.to_integral_value():
        raise ValueError(f"Coin amount {coins!r} has more precision than one unit")
    return int(value)


def units_to_coins(units: int) -> Decimal:
    return Decimal(units) / UNITS_PER_COIN


@dataclass(frozen=True)
class TransferPayload:
    """A balanced multi-leg transfer."""
    legs: tuple[tuple[str, int], ...]

    def __post_init__(self) -> None:
        legs = tuple((str(acct), int(amt)) for acct, amt in self.legs)
        if not legs:
            raise ValueError("Transfer needs at least one leg")
        if sum(amt for _, amt in legs) != 0:
            raise ValueError("Transfer legs must net to zero")
        object.__setattr__(self, "legs", legs)

    @classmethod
    def between(cls, sender: str, receiver: str, amount: int) -> TransferPayload:
        """Single sender -> receiver transfer of *amount* units."""
        if amount <= 0:
            raise ValueError("Transfer amount must be positive")
        if sender == receiver:
            raise ValueError("Sender and receiver must differ")
        return cls(((sender, -amount), (receiver, amount)))

    def debits(self) -> dict[str, int]:
        out: dict[str, int] = {}
        for acct, amt in self.legs:
            if amt < 0:
                out[acct] = out.get(acct, 0) - amt
        return out

    def to_dict(self) -> dict:
        return {
            "type": "transfer",
            "legs": [{"account": acct, "amount": amt} for acct, amt in self.legs],
        }

    @classmethod
    def from_dict(cls, data: dict) -> TransferPayload:
        return cls(tuple((leg["account"], leg["amount"]) for leg in data["legs"]))
