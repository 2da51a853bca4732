"""API tests for the year-end closing router."""

from decimal import Decimal

import pytest

from ledger_integrity.models import AccountType, PeriodStatus
from ledger_integrity.security import create_access_token
from ledger_integrity.services.authorization import PermissionFlag
from tests.factories import AccountFactory, FiscalYearFactory, UserFactory

UNKNOWN_ID = "00000000-0000-0000-0000-000000000000"


async def _locked_books(db):
    fiscal_year, _ = await FiscalYearFactory.create_with_periods_async(
        db, period_status=PeriodStatus.LOCKED
    )
    await AccountFactory.create_async(
        db, code="3100", name="Retained Earnings", account_type=AccountType.EQUITY
    )
    sales = await AccountFactory.create_async(
        db,
        code="4000",
        name="Sales",
        account_type=AccountType.INCOME,
        current_balance=Decimal("5000.00"),
    )
    await AccountFactory.create_async(
        db,
        code="5000",
        name="Rent",
        account_type=AccountType.EXPENSE,
        current_balance=Decimal("3000.00"),
    )
    await db.commit()
    return fiscal_year, sales


@pytest.mark.asyncio
async def test_readiness_and_preview(client, db):
    fiscal_year, _ = await _locked_books(db)

    readiness = await client.get(f"/year-end/{fiscal_year.id}/readiness")
    assert readiness.status_code == 200
    assert readiness.json()["is_ready"] is True
    assert readiness.json()["retained_earnings_account"]["code"] == "3100"

    preview = await client.get(f"/year-end/{fiscal_year.id}/preview")
    assert preview.status_code == 200
    body = preview.json()
    assert body["is_balanced"] is True
    assert body["balances"]["net_income"] == "2000.00"
    assert [e["account_code"] for e in body["closing_entries"]] == ["4000", "5000", "3100"]


@pytest.mark.asyncio
async def test_readiness_of_unknown_year(client):
    response = await client.get(f"/year-end/{UNKNOWN_ID}/readiness")

    assert response.status_code == 200
    assert response.json()["errors"] == ["Fiscal year not found"]


@pytest.mark.asyncio
async def test_execute_then_reverse(client, db):
    fiscal_year, sales = await _locked_books(db)

    executed = await client.post(
        f"/year-end/{fiscal_year.id}/execute", json={"closing_date": "2024-12-31"}
    )
    assert executed.status_code == 200
    result = executed.json()
    assert result["journal_entry_number"] == "JE-2024-0001"
    assert result["net_income"] == "2000.00"

    await db.refresh(sales)
    assert sales.current_balance == Decimal("0.00")

    history = await client.get("/year-end/history", params={"fiscal_year_id": str(fiscal_year.id)})
    assert [entry["id"] for entry in history.json()] == [result["closing_entry_id"]]

    blank = await client.post(
        f"/year-end/closings/{result['closing_entry_id']}/reverse", json={"reason": " "}
    )
    assert blank.status_code == 400
    assert blank.json()["detail"] == "Reversal reason is required"

    reversed_ = await client.post(
        f"/year-end/closings/{result['closing_entry_id']}/reverse",
        json={"reason": "Late adjusting entry"},
    )
    assert reversed_.status_code == 200
    assert reversed_.json()["closing_entry_id"] == result["closing_entry_id"]

    await db.refresh(sales)
    assert sales.current_balance == Decimal("5000.00")

    twice = await client.post(
        f"/year-end/closings/{result['closing_entry_id']}/reverse",
        json={"reason": "Again"},
    )
    assert twice.status_code == 400
    assert twice.json()["detail"]["error_code"] == "ALREADY_REVERSED"


@pytest.mark.asyncio
async def test_execute_when_not_ready(client, db):
    fiscal_year, _ = await FiscalYearFactory.create_with_periods_async(db)
    await db.commit()

    response = await client.post(f"/year-end/{fiscal_year.id}/execute", json={})

    assert response.status_code == 400
    assert response.json()["detail"]["error_code"] == "NOT_READY"


@pytest.mark.asyncio
async def test_unknown_year_and_closing_are_404(client):
    execute = await client.post(f"/year-end/{UNKNOWN_ID}/execute", json={})
    assert execute.status_code == 404
    assert execute.json()["detail"]["error_code"] == "FISCAL_YEAR_NOT_FOUND"

    reverse = await client.post(
        f"/year-end/closings/{UNKNOWN_ID}/reverse", json={"reason": "Mistake"}
    )
    assert reverse.status_code == 404
    assert reverse.json()["detail"]["error_code"] == "CLOSING_ENTRY_NOT_FOUND"


@pytest.mark.asyncio
async def test_execute_requires_admin(client, db):
    fiscal_year, _ = await _locked_books(db)
    user = await UserFactory.create_async(
        db, permissions=int(PermissionFlag.MANAGE_ACCOUNTING | PermissionFlag.VIEW_ACCOUNTING)
    )
    await db.commit()
    token = create_access_token(data={"sub": str(user.id)})

    response = await client.post(
        f"/year-end/{fiscal_year.id}/execute",
        json={},
        headers={"Authorization": f"Bearer {token}"},
    )

    assert response.status_code == 403
    assert response.json()["detail"] == "You do not have permission to execute year-end closing"
