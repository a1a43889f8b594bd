"""Hashing and signing helpers.

Base64url text is handled by ``fido2.utils.websafe_encode`` and
``websafe_decode`` throughout the package.
"""

from __future__ import annotations

import hashlib
import hmac


def hash_national_id(id_number: str) -> str:
    """Return the SHA-256 hex digest stored in place of a national ID number."""

    return hashlib.sha256(str(id_number).encode("utf-8")).hexdigest()


def hmac_sha256(secret: bytes, message: bytes) -> bytes:
    return hmac.new(secret, message, hashlib.sha256).digest()


def constant_time_equals(left: bytes, right: bytes) -> bool:
    return hmac.compare_digest(left, right)


__all__ = [
    "constant_time_equals",
    "hash_national_id",
    "hmac_sha256",
]
