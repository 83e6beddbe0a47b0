from __future__ import annotations

from pycapmetro._redact import redact_for_log, redact_url
from pycapmetro.config import CapMetroConfig


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "routes": ["803"],
        "password": "pw",
        "nested": {"token": "abc", "max_retries": 3},
    }

    redacted = redact_for_log(payload)
    assert redacted["password"] == "<redacted>"
    assert redacted["nested"]["token"] == "<redacted>"
    assert redacted["nested"]["max_retries"] == 3
    assert redacted["routes"] == ["803"]


def test_redact_url_masks_credentials_and_keys() -> None:
    assert redact_url("postgresql://cm:s3cret@db:5432/capmetro") == "postgresql://cm:<redacted>@db:5432/capmetro"
    assert redact_url("https://feed.example/v?route=803&api_key=XYZ") == "https://feed.example/v?route=803&api_key=<redacted>"
    assert redact_url("sqlite:///capmetro.db") == "sqlite:///capmetro.db"


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]


def test_redact_for_log_expands_config() -> None:
    config = CapMetroConfig(
        store_url="postgresql://cm:s3cret@db/capmetro",
        feed_url="https://feed.example/{route}?token=abc",
        routes=("803",),
    )

    redacted = redact_for_log(config)

    assert redacted["store_url"] == "postgresql://cm:<redacted>@db/capmetro"
    assert redacted["feed_url"] == "https://feed.example/{route}?token=<redacted>"
    assert redacted["routes"] == ["803"]
    assert redacted["max_retries"] == 3
