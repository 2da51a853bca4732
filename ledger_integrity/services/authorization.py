"""Permission flags and authorization checks."""

import enum
from collections.abc import Iterable

from ledger_integrity.logger import get_logger
from ledger_integrity.services.errors import AuthorizationError

logger = get_logger(__name__)


class PermissionFlag(enum.IntFlag):
    """Permission bits stored on User.permissions."""

    NONE = 0
    MANAGE_ACCOUNTING = 1 << 14
    VIEW_ACCOUNTING = 1 << 15
    APPROVE_TRANSACTIONS = 1 << 16
    RECONCILE_ACCOUNTS = 1 << 17
    ADMIN = MANAGE_ACCOUNTING | VIEW_ACCOUNTING | APPROVE_TRANSACTIONS | RECONCILE_ACCOUNTS


def has_permission(flags: int, required: PermissionFlag) -> bool:
    return (int(flags) & required) == required


def require_permission(
    flags: int,
    required: PermissionFlag,
    user_id: str,
    operation: str,
) -> None:
    """Raise AuthorizationError unless flags include every bit of required."""
    if has_permission(flags, required):
        return
    logger.warning(
        "Permission denied",
        user_id=user_id,
        operation=operation,
        required_permission=required.name,
    )
    raise AuthorizationError(
        f"You do not have permission to {operation}",
        required_permission=required.name,
        user_id=user_id,
        operation=operation,
    )


def require_any_permission(
    flags: int,
    required: Iterable[PermissionFlag],
    user_id: str,
    operation: str,
) -> None:
    """Raise AuthorizationError unless flags include at least one of required."""
    required = list(required)
    if any(has_permission(flags, flag) for flag in required):
        return
    names = " or ".join(flag.name or str(int(flag)) for flag in required)
    logger.warning(
        "Permission denied",
        user_id=user_id,
        operation=operation,
        required_permission=names,
    )
    raise AuthorizationError(
        f"You do not have permission to {operation}",
        required_permission=names,
        user_id=user_id,
        operation=operation,
    )


def prevent_self_approval(submitter_id: str | None, approver_id: str, operation: str) -> None:
    """Refuse an approval performed by the user who submitted the document."""
    if submitter_id and submitter_id == approver_id:
        logger.warning("Self-approval blocked", user_id=approver_id, operation=operation)
        raise AuthorizationError(
            "You cannot approve a transaction you submitted",
            user_id=approver_id,
            operation=operation,
        )
