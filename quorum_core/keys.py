"""
Key pairs and signature primitives for Quorum.

Keys are secp256k1 ECDSA pairs.  A key holder is identified everywhere by
the hex encoding of its compressed public key, which is what a KeySet
stores as a member id.

Signatures are deterministic (RFC 6979) over SHA-256 and DER encoded.
"""

from __future__ import annotations

import hashlib
import logging

from ecdsa import (
    BadSignatureError,
    MalformedPointError,
    SECP256k1,
    SigningKey,
    UnexpectedDER,
    VerifyingKey,
)
from ecdsa.util import sigdecode_der, sigencode_der

logger = logging.getLogger("quorum_keys")


class KeyPair:
    """An ECDSA signing key together with its public identity."""

    def __init__(self, signing_key: SigningKey):
        self._sk = signing_key
        self._vk: VerifyingKey = signing_key.get_verifying_key()

    @classmethod
    def generate(cls) -> KeyPair:
        return cls(SigningKey.generate(curve=SECP256k1))

    @classmethod
    def from_hex(cls, private_hex: str) -> KeyPair:
        """Load a key pair from a 32-byte hex private key."""
        try:
            raw = bytes.fromhex(private_hex.strip())
        except ValueError as exc:
            raise ValueError("private key must be hex encoded") from exc
        if len(raw) != 32:
            raise ValueError("private key must be 32 bytes")
        return cls(SigningKey.from_string(raw, curve=SECP256k1))

    @property
    def public_key(self) -> str:
        """Compressed public key, hex encoded (the member id)."""
        return self._vk.to_string("compressed").hex()

    @property
    def private_hex(self) -> str:
        return self._sk.to_string().hex()

    def sign(self, message: bytes) -> bytes:
        return self._sk.sign_deterministic(
            message, hashfunc=hashlib.sha256, sigencode=sigencode_der,
        )

    def __repr__(self) -> str:
        return f"KeyPair({self.public_key[:16]}...)"


def verify_signature(public_key: str, message: bytes, signature: bytes) -> bool:
    """Return True if *signature* over *message* was made by *public_key*."""
    try:
        vk = VerifyingKey.from_string(bytes.fromhex(public_key), curve=SECP256k1)
    except (ValueError, MalformedPointError):
        logger.debug(f"Rejecting malformed public key {public_key[:16]}...")
        return False
    try:
        return vk.verify(
            signature, message, hashfunc=hashlib.sha256, sigdecode=sigdecode_der,
        )
    except (BadSignatureError, UnexpectedDER):
        return False


def generate_keys(count: int) -> list[KeyPair]:
    """Generate *count* fresh key pairs."""
    if count < 1:
        raise ValueError("count must be positive")
    return [KeyPair.generate() for _ in range(count)]
