from datetime import datetime, timedelta, timezone

import jwt

from school_admin.core import config


def create_access_token(subject: str, expires_minutes: int | None = None) -> str:
    expire_minutes = expires_minutes or config.JWT_EXPIRES_MINUTES
    now = datetime.now(timezone.utc)
    payload = {"sub": subject, "exp": now + timedelta(minutes=expire_minutes), "iat": now}
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and expiry.

    Raises ``jwt.ExpiredSignatureError`` for an expired token and
    ``jwt.InvalidTokenError`` for anything else wrong with it.
    """
    return jwt.decode(
        token,
        config.JWT_SECRET_KEY,
        algorithms=[config.JWT_ALGORITHM],
        options={"require": ["sub", "exp"]},
    )


def expires_in_seconds() -> int:
    return config.JWT_EXPIRES_MINUTES * 60
