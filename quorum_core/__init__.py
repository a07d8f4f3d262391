"""
Quorum - threshold-signature scheduled transactions.

A transaction is proposed against an account controlled by a K-of-N key
list, held as a pending schedule, and executed once K members have
signed it, or expired once its deadline passes.

Key features:
- Immutable K-of-N key sets with duplicate and threshold checks
- Idempotent signature collection with ECDSA verification
- Per-schedule locking with at-most-once execution
- Periodic expiry sweep and admin deletion
- In-memory ledger gateway and aiohttp REST API
"""

__version__ = "0.3.0"
__all__ = [
    "errors",
    "keys",
    "key_set",
    "signatures",
    "schedule",
    "transfer",
    "gateway",
    "registry",
    "sweeper",
    "config",
    "api",
]
