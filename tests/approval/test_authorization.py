"""Tests for permission flag checks."""

import pytest

from ledger_integrity.services.authorization import (
    PermissionFlag,
    has_permission,
    prevent_self_approval,
    require_any_permission,
    require_permission,
)
from ledger_integrity.services.errors import AuthorizationError


def test_admin_holds_every_permission():
    for flag in (
        PermissionFlag.MANAGE_ACCOUNTING,
        PermissionFlag.VIEW_ACCOUNTING,
        PermissionFlag.APPROVE_TRANSACTIONS,
        PermissionFlag.RECONCILE_ACCOUNTS,
    ):
        assert has_permission(int(PermissionFlag.ADMIN), flag)


def test_missing_bit_is_denied():
    flags = int(PermissionFlag.VIEW_ACCOUNTING)

    assert not has_permission(flags, PermissionFlag.MANAGE_ACCOUNTING)
    assert not has_permission(flags, PermissionFlag.ADMIN)


def test_require_permission_raises_with_context():
    with pytest.raises(AuthorizationError) as exc_info:
        require_permission(0, PermissionFlag.APPROVE_TRANSACTIONS, "user-1", "approve invoices")

    error = exc_info.value
    assert str(error) == "You do not have permission to approve invoices"
    assert error.required_permission == "APPROVE_TRANSACTIONS"
    assert error.user_id == "user-1"
    assert error.operation == "approve invoices"


def test_require_permission_passes():
    require_permission(
        int(PermissionFlag.MANAGE_ACCOUNTING),
        PermissionFlag.MANAGE_ACCOUNTING,
        "user-1",
        "create transactions",
    )


def test_require_any_permission():
    flags = int(PermissionFlag.RECONCILE_ACCOUNTS)
    require_any_permission(
        flags,
        [PermissionFlag.MANAGE_ACCOUNTING, PermissionFlag.RECONCILE_ACCOUNTS],
        "user-1",
        "review matches",
    )

    with pytest.raises(AuthorizationError) as exc_info:
        require_any_permission(
            flags,
            [PermissionFlag.MANAGE_ACCOUNTING, PermissionFlag.APPROVE_TRANSACTIONS],
            "user-1",
            "post transactions",
        )
    assert exc_info.value.required_permission == "MANAGE_ACCOUNTING or APPROVE_TRANSACTIONS"


def test_self_approval_is_blocked():
    with pytest.raises(AuthorizationError, match="cannot approve a transaction you submitted"):
        prevent_self_approval("user-1", "user-1", "approve invoice")


@pytest.mark.parametrize("submitter", [None, "", "user-2"])
def test_other_approver_is_allowed(submitter):
    prevent_self_approval(submitter, "user-1", "approve invoice")
