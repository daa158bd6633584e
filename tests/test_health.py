from __future__ import annotations

import importlib
import json
from datetime import datetime, timezone

import pytest

from core import settings as settings_module


class _Admin:
    def __init__(self, error: Exception | None = None) -> None:
        self._error = error

    async def command(self, name: str):
        if self._error is not None:
            raise self._error
        return {"ok": 1}


class _MongoClient:
    def __init__(self, error: Exception | None = None) -> None:
        self.admin = _Admin(error)


@pytest.fixture
def main_module(monkeypatch: pytest.MonkeyPatch):
    values = {
        "MONGO_URL": "mongodb://localhost:27017",
        "DB_NAME": "crosspay_gateway",
        "CROSSPAY_ACCOUNT_ID": "acct-42",
        "CROSSPAY_API_KEY": "api-key",
        "CROSSPAY_BASE_URL": "https://pay.example.com/invoice",
        "CROSSPAY_SIGNING_SECRET": "signing-secret",
        "CROSSPAY_RETURN_URL": "https://merchant.example.com/v1/payments/callback",
    }
    for key, value in values.items():
        monkeypatch.setenv(key, value)
    settings_module.get_settings.cache_clear()
    yield importlib.import_module("main")
    settings_module.get_settings.cache_clear()


@pytest.mark.asyncio
async def test_health_check_reports_timezone_aware_timestamp(main_module, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(main_module, "mongo_client", _MongoClient())

    response = await main_module.health_check()

    payload = json.loads(response.body)
    assert payload["data"]["status"] == "healthy"
    timestamp = datetime.fromisoformat(payload["data"]["timestamp"])
    assert timestamp.tzinfo is not None
    assert timestamp.utcoffset() == timezone.utc.utcoffset(None)


@pytest.mark.asyncio
async def test_health_check_degrades_when_mongo_ping_fails(main_module, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(main_module, "mongo_client", _MongoClient(RuntimeError("no primary")))

    response = await main_module.health_check()

    payload = json.loads(response.body)
    assert payload["data"]["status"] == "degraded"
    assert payload["data"]["services"]["mongo"]["message"] == "no primary"
