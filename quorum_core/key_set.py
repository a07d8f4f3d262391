"""
Threshold key lists for Quorum.

A KeySet names the N public keys allowed to authorise a scheduled
transaction and the number K of them that must sign before it executes.

Mirrors the ledger's KeyList(keys, threshold) account key.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from quorum_core.errors import DuplicateMember, InvalidThreshold


@dataclass(frozen=True)
class KeySet:
    """An immutable K-of-N key list."""
    members: tuple[str, ...]    # public-key ids, in the order given
    threshold: int              # signatures required

    def __post_init__(self) -> None:
        members = tuple(self.members)
        threshold = self.threshold
        if threshold < 1 or threshold > len(members):
            raise InvalidThreshold(
                f"Threshold {threshold} must be between 1 and {len(members)}"
            )
        if len(members) != len(set(members)):
            raise DuplicateMember("Duplicate key set members")
        object.__setattr__(self, "members", members)

    def contains(self, member: str) -> bool:
        return member in self.members

    def __contains__(self, member: object) -> bool:
        return member in self.members

    def __len__(self) -> int:
        return len(self.members)

    def __iter__(self) -> Iterator[str]:
        return iter(self.members)

    def to_dict(self) -> dict:
        return {"threshold": self.threshold, "members": list(self.members)}

    @classmethod
    def from_dict(cls, data: dict) -> KeySet:
        """Build from a {"threshold": int, "members": [str, ...]} dict."""
        return cls(data["members"], data["threshold"])
