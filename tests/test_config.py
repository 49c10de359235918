from __future__ import annotations

from datetime import time
from pathlib import Path

import pytest
import yaml

from chirp.lib.config import AppConfig, DigestConfig, EmailConfig, app_config


def _config_dict(**email_overrides) -> dict:
    email = {
        "provider": "resend",
        "api_key": "re_test",
        "daily_from": "ChirpChirp Daily <daily@example.org>",
    }
    email.update(email_overrides)
    return {
        "chirp": {
            "database": {"type": "sqlite", "name": "chirp.db", "path": "./data"},
            "digest": {
                "timezone": "America/Los_Angeles",
                "max_workers": 4,
                "dispatch_timeout": 30,
                "schedule": "07:30",
            },
            "email": email,
        }
    }


def test_app_config_from_dict():
    config = AppConfig.from_dict(_config_dict())
    chirp = config.chirp
    assert chirp.database.name == "chirp.db"
    assert chirp.database.path == Path("./data")
    assert chirp.digest.max_workers == 4
    assert chirp.digest.dispatch_timeout == 30.0
    assert chirp.digest.schedule == time(7, 30)
    assert chirp.digest.tzinfo() is not None
    assert chirp.email.daily_from == "ChirpChirp Daily <daily@example.org>"
    assert chirp.email.alerts_from == "ChirpChirp <noreply@localhost>"


def test_digest_defaults():
    digest = DigestConfig.from_dict(None)
    assert digest.timezone is None
    assert digest.tzinfo() is None
    assert digest.time_format == "%H:%M"
    assert digest.max_workers == 8
    assert digest.dispatch_timeout is None
    assert digest.schedule is None


@pytest.mark.parametrize(
    "overrides",
    [
        {"timezone": "Mars/Olympus_Mons"},
        {"max_workers": 0},
        {"dispatch_timeout": -1},
        {"schedule": "seven"},
    ],
)
def test_invalid_digest_settings_raise(overrides):
    with pytest.raises(ValueError):
        DigestConfig.from_dict(overrides)


def test_resend_api_key_falls_back_to_environment(monkeypatch):
    monkeypatch.setenv("RESEND_API_KEY", "re_env")
    email = EmailConfig.from_dict({"provider": "resend"})
    assert email.api_key == "re_env"


def test_resend_without_api_key_is_rejected(monkeypatch):
    monkeypatch.delenv("RESEND_API_KEY", raising=False)
    with pytest.raises(ValueError):
        EmailConfig.from_dict({"provider": "resend"})


def test_smtp_provider_requires_smtp_section():
    with pytest.raises(ValueError):
        EmailConfig.from_dict({"provider": "smtp"})
    email = EmailConfig.from_dict({"provider": "smtp", "smtp": {"host": "mail.example.org", "port": 2525}})
    assert email.smtp is not None and email.smtp.port == 2525


def test_unknown_provider_is_rejected():
    with pytest.raises(ValueError):
        EmailConfig.from_dict({"provider": "pigeon"})


def test_missing_chirp_section_is_rejected():
    with pytest.raises(ValueError):
        AppConfig.from_dict({"birdsong": {}})


def test_app_config_reads_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(_config_dict()), encoding="utf-8")
    assert app_config(path).chirp.email.api_key == "re_test"
