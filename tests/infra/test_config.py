"""Tests for configuration helpers."""

import pytest
from pydantic import ValidationError

from ledger_integrity.config import Settings, parse_comma_list


def test_parse_comma_list_defaults() -> None:
    assert parse_comma_list(None, ["a"]) == ["a"]


def test_parse_comma_list_accepts_list() -> None:
    assert parse_comma_list(["x", "y"], ["a"]) == ["x", "y"]


def test_parse_comma_list_splits_string() -> None:
    assert parse_comma_list("x, y, ,z", ["a"]) == ["x", "y", "z"]


def test_cors_origins_from_env(monkeypatch) -> None:
    monkeypatch.setenv("CORS_ORIGINS", "https://books.example.com, https://admin.example.com")
    settings = Settings(_env_file=None)
    assert settings.cors_origins == ["https://books.example.com", "https://admin.example.com"]


def test_environment_alias_reads_env(monkeypatch) -> None:
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    monkeypatch.setenv("ENV", "staging")
    settings = Settings(_env_file=None)
    assert settings.environment == "staging"


def test_ledger_policy_defaults(monkeypatch) -> None:
    monkeypatch.delenv("ALLOW_WRITES_WHEN_PERIOD_UNRESOLVED", raising=False)
    settings = Settings(_env_file=None)
    assert settings.allow_writes_when_period_unresolved is False
    assert settings.retained_earnings_code == "3100"
    assert settings.accounts_receivable_code == "1200"
    assert settings.accounts_payable_code == "2100"


def test_period_fallback_flag_from_env(monkeypatch) -> None:
    monkeypatch.setenv("ALLOW_WRITES_WHEN_PERIOD_UNRESOLVED", "true")
    settings = Settings(_env_file=None)
    assert settings.allow_writes_when_period_unresolved is True


def test_jwt_issuer_from_env(monkeypatch) -> None:
    monkeypatch.setenv("JWT_ISSUER", "books-staging")
    settings = Settings(_env_file=None)
    assert settings.jwt_issuer == "books-staging"


def test_blank_control_account_is_rejected(monkeypatch) -> None:
    monkeypatch.setenv("RETAINED_EARNINGS_CODE", "  ")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_account_codes_and_currency_are_normalised(monkeypatch) -> None:
    monkeypatch.setenv("ACCOUNTS_RECEIVABLE_CODE", " 1210 ")
    monkeypatch.setenv("BASE_CURRENCY", "usd")
    settings = Settings(_env_file=None)
    assert settings.accounts_receivable_code == "1210"
    assert settings.base_currency == "USD"
