"""Password hashing boundary.

Plaintext goes in, only a bcrypt hash comes out. Nothing else in the
application handles the plaintext credential.
"""

import logging
from functools import lru_cache

import bcrypt

from school_admin.core import config

logger = logging.getLogger(__name__)

# bcrypt ignores everything past the first 72 bytes
BCRYPT_MAX_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str, rounds: int | None = None) -> str:
    salt = bcrypt.gensalt(rounds=rounds or config.BCRYPT_ROUNDS)
    return bcrypt.hashpw(_encode(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    """Constant-time comparison of ``password`` against a stored hash."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


@lru_cache(maxsize=4)
def dummy_hash(rounds: int) -> str:
    """A throwaway hash used to spend the same time when a user does not exist."""
    return hash_password("not-a-real-password", rounds=rounds)
