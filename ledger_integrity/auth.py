"""Resolve the calling user from a bearer token."""

from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_integrity.database import get_db
from ledger_integrity.models import User
from ledger_integrity.security import decode_access_token

# Tokens are issued outside this service; tokenUrl only feeds the OpenAPI docs.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


class _Unauthorized(HTTPException):
    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


def _subject_id(claims: dict) -> UUID:
    subject = claims.get("sub")
    if not subject:
        raise _Unauthorized("Token missing subject")
    try:
        return UUID(subject)
    except ValueError:
        raise _Unauthorized("Invalid user ID format in token") from None


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    claims = decode_access_token(token)
    if not claims:
        raise _Unauthorized("Could not validate credentials")

    user = await db.get(User, _subject_id(claims))
    # Deactivated users look the same as unknown ones
    if user is None or not user.is_active:
        raise _Unauthorized("User not found")
    return user


def actor_name(user: User) -> str:
    """Name written to approval trails and audit rows."""
    return user.name or user.email
