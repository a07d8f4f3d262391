"""
Signature collection for a single schedule.

The collector records which members of a KeySet have signed.  Repeat
submissions from the same member are accepted but counted once, so a
signature replayed after a network retry can never push a schedule over
its threshold.

The collector is not thread-safe on its own; the owning ScheduleEntry
serialises access to it.
"""

from __future__ import annotations

from quorum_core.errors import InvalidSignature, UnknownSigner
from quorum_core.key_set import KeySet
from quorum_core.keys import verify_signature


class SignatureCollector:
    """Accumulates distinct member signatures against a KeySet."""

    def __init__(self, key_set: KeySet):
        self.key_set = key_set
        self._signed: set[str] = set()

    @property
    def signed(self) -> frozenset[str]:
        return frozenset(self._signed)

    @property
    def count(self) -> int:
        return len(self._signed)

    def satisfied(self) -> bool:
        return len(self._signed) >= self.key_set.threshold

    def submit(self, member_id: str) -> tuple[int, bool]:
        """
        Record a signature from *member_id*.
        Returns (signature_count, satisfied).
        """
        if member_id not in self.key_set:
            raise UnknownSigner(f"{member_id} is not in the key set")
        self._signed.add(member_id)
        return len(self._signed), self.satisfied()

    def submit_signed(
        self, member_id: str, message: bytes, signature: bytes,
    ) -> tuple[int, bool]:
        """Verify *signature* over *message*, then record it."""
        if member_id not in self.key_set:
            raise UnknownSigner(f"{member_id} is not in the key set")
        if not verify_signature(member_id, message, signature):
            raise InvalidSignature(f"Signature from {member_id} does not verify")
        return self.submit(member_id)

    def has_signed(self, member_id: str) -> bool:
        return member_id in self._signed

    def to_dict(self) -> dict:
        return {
            "threshold": self.key_set.threshold,
            "signature_count": self.count,
            "signed": sorted(self._signed),
            "satisfied": self.satisfied(),
        }
