"""
Error taxonomy for Quorum schedules.

Every failure raised by the key set, signature collector and schedule
registry derives from ``ScheduleError`` so callers can catch the whole
family at once.  Validation errors additionally subclass ``ValueError``
and lookup failures subclass ``KeyError``, matching how the rest of the
code base signals those conditions.
"""

from __future__ import annotations


class ScheduleError(Exception):
    """Base class for schedule workflow errors."""


class InvalidThreshold(ScheduleError, ValueError):
    """Threshold outside ``1 <= K <= N``."""


class DuplicateMember(ScheduleError, ValueError):
    """The same public key appears twice in a key set."""


class MemoTooLong(ScheduleError, ValueError):
    """Schedule memo exceeds the configured byte limit."""


class UnknownSigner(ScheduleError):
    """Signer is not a member of the schedule's key set."""


class InvalidSignature(ScheduleError):
    """Signature does not verify against the member's public key."""


class ScheduleClosed(ScheduleError):
    """The schedule is no longer PENDING."""


class NotFound(ScheduleError, KeyError):
    """No schedule with the given id is registered."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message
        return str(self.args[0]) if self.args else ""


class Unauthorized(ScheduleError):
    """Requester is not the schedule's admin authority."""


class PersistenceFailed(ScheduleError):
    """The ledger rejected the schedule on creation."""


class ExecutionFailed(ScheduleError):
    """The ledger failed to execute a schedule whose threshold was met."""


class LedgerError(Exception):
    """Raised by a ledger gateway when the remote operation fails."""


class OperatorNotConfigured(LedgerError):
    """The gateway was built without an operator account and key."""
