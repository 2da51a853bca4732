"""Bearer tokens for API callers.

Tokens are HS256 JWTs carrying ``sub`` (the user id), ``iss`` and ``iat`` plus
whatever claims the caller adds. A token from another issuer is rejected.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from ledger_integrity.config import settings
from ledger_integrity.logger import get_logger

logger = get_logger(__name__)


def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    issued_at = datetime.now(UTC)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    claims = {**data, "iss": settings.jwt_issuer, "iat": issued_at, "exp": issued_at + lifetime}
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Return the verified claims, or None for an expired, forged or foreign token."""
    try:
        return jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError:
        logger.debug("JWT token expired")
    except jwt.PyJWTError as exc:
        logger.warning("JWT rejected", error=str(exc), error_type=type(exc).__name__)
    return None
