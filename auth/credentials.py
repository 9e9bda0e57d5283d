"""
auth/credentials.py -- Password hashing and verification.

bcrypt is used directly rather than through passlib: passlib's wrap-bug
detection hashes a password longer than 72 bytes, which bcrypt 4.x rejects
with an explicit error.

bcrypt only accepts 72 bytes of input (bcrypt 5 raises ValueError beyond
that). Every password is first reduced to the base64 of its SHA-256 digest,
a fixed 44 ASCII bytes, so a password of any length or script hashes and
verifies the same way. The letter+digit rule is enforced at the API layer,
not here.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import base64
import hashlib

import bcrypt

from core.config import get_settings

_settings = get_settings()


def _prehash(plain: str) -> bytes:
    return base64.b64encode(hashlib.sha256(plain.encode("utf-8")).digest())


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password."""
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    return bcrypt.hashpw(_prehash(plain), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed stored hash counts as a mismatch; this never raises.
    """
    try:
        return bcrypt.checkpw(_prehash(plain), hashed.encode("utf-8"))
    except ValueError:
        return False


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones. Login verifies against it when the email is
# unknown, so response time does not reveal which emails are registered.
DUMMY_HASH: str = hash_password("warden_timing_dummy")
