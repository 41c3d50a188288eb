from __future__ import annotations

import pytest
from pydantic import ValidationError

from sso_bridge.config import BrokerSettings, ServerSettings


def test_server_defaults() -> None:
    settings = ServerSettings()
    assert settings.bridge_ttl_seconds == 10 * 3600
    assert settings.response_format == "plain"
    assert settings.fail_exception is False
    assert settings.attach_requires_authentication is True
    assert settings.session_cookie_name == "sso_server_session"
    assert settings.storage == "redis"
    assert settings.timezone == "UTC"


def test_server_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("SSO_SERVER_BRIDGE_TTL_SECONDS", "60")
    monkeypatch.setenv("SSO_SERVER_RESPONSE_FORMAT", "envelope")
    monkeypatch.setenv("SSO_SERVER_FAIL_EXCEPTION", "true")
    settings = ServerSettings.from_env()
    assert settings.bridge_ttl_seconds == 60
    assert settings.response_format == "envelope"
    assert settings.fail_exception is True


def test_server_rejects_bad_values() -> None:
    with pytest.raises(ValidationError):
        ServerSettings(bridge_ttl_seconds=0)
    with pytest.raises(ValidationError):
        ServerSettings(response_format="v3")
    with pytest.raises(ValidationError):
        ServerSettings(storage="sqlite")
    with pytest.raises(ValidationError):
        ServerSettings(timezone="Mars/Olympus_Mons")


def test_broker_requires_identity() -> None:
    with pytest.raises(ValidationError):
        BrokerSettings(server_url="https://sso.test", broker_id="shop1", secret="  ")
    with pytest.raises(ValidationError):
        BrokerSettings(server_url="", broker_id="shop1", secret="s3cr3t")
    settings = BrokerSettings(server_url="https://sso.test", broker_id=" shop1 ", secret="s3cr3t")
    assert settings.broker_id == "shop1"
    assert settings.secret.get_secret_value() == "s3cr3t"
    assert settings.token_ttl_seconds == 7200
    assert "s3cr3t" not in repr(settings)
