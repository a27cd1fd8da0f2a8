from pathlib import Path

import pytest
from pydantic import ValidationError

from src.utils.config_loader import DEFAULT_CONFIG_PATH, load_gateway_config


def test_bundled_config_loads_with_env_secrets(monkeypatch):
    monkeypatch.setenv("DQR_SALT_KEY", "from-env")
    monkeypatch.setenv("DQR_SALT_INDEX", "4")
    monkeypatch.setenv("GATEWAY_BASE_URL", "https://override.test/")

    config = load_gateway_config(DEFAULT_CONFIG_PATH)

    assert config.base_url == "https://override.test"
    assert set(config.instruments) == {"dqr", "static_qr", "edc", "payment_link", "collect"}
    dqr = config.instrument("dqr")
    assert dqr.salt_key == "from-env"
    assert dqr.salt_index == "4"
    assert "from-env" not in repr(dqr)
    assert dqr.path_for("status", merchant_id="M1", transaction_id="TX1") == "/v3/transaction/M1/TX1/status"
    assert config.transport.max_attempts == 3
    assert config.transport.initial_backoff == 1.0


def test_config_path_from_environment(monkeypatch, tmp_path):
    path = tmp_path / "gateway.yml"
    path.write_text(
        "gateway:\n  base_url: https://gw.test\ninstruments:\n  dqr:\n    paths:\n      init: /init\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("GATEWAY_CONFIG_PATH", str(path))
    monkeypatch.delenv("GATEWAY_BASE_URL", raising=False)

    config = load_gateway_config()
    assert config.base_url == "https://gw.test"
    assert config.transaction_id.length == 14


def test_missing_file_raises():
    with pytest.raises(FileNotFoundError):
        load_gateway_config(Path("/nonexistent/gateway.yml"))


def test_invalid_transport_settings_rejected(tmp_path, monkeypatch):
    monkeypatch.delenv("GATEWAY_BASE_URL", raising=False)
    path = tmp_path / "bad.yml"
    path.write_text(
        "gateway:\n  base_url: https://gw.test\ntransport:\n  max_attempts: 0\ninstruments: {}\n",
        encoding="utf-8",
    )
    with pytest.raises(ValidationError):
        load_gateway_config(path)


def test_unknown_instrument_lookup_fails():
    config = load_gateway_config(DEFAULT_CONFIG_PATH)
    with pytest.raises(ValueError):
        config.instrument("cash")
