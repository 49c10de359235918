from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import time, tzinfo
from pathlib import Path
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from chirp.lib.utils.retry import RetryPolicy


def _parse_schedule(value: Any) -> Optional[time]:
    if value in (None, "", "null"):
        return None
    try:
        hour, minute = map(int, str(value).split(":", 1))
        return time(hour=hour, minute=minute)
    except (ValueError, TypeError) as exc:
        raise ValueError(f"Invalid digest.schedule value: {value!r} (expected HH:MM)") from exc


@dataclass
class DatabaseConfig:
    engine: str
    name: str
    path: Path

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DatabaseConfig":
        return cls(
            engine=data.get("type", "sqlite"),
            name=data["name"],
            path=Path(data.get("path", ".")),
        )


@dataclass
class DigestConfig:
    timezone: Optional[str] = None
    time_format: str = "%H:%M"
    max_workers: int = 8
    dispatch_timeout: Optional[float] = None
    schedule: Optional[time] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "DigestConfig":
        data = data or {}
        timezone_name = data.get("timezone") or None
        if timezone_name:
            try:
                ZoneInfo(str(timezone_name))
            except (ZoneInfoNotFoundError, ValueError) as exc:
                raise ValueError(f"Unknown digest.timezone '{timezone_name}'") from exc

        max_workers = int(data.get("max_workers", 8))
        if max_workers < 1:
            raise ValueError("digest.max_workers must be at least 1")

        timeout_raw = data.get("dispatch_timeout")
        dispatch_timeout = float(timeout_raw) if timeout_raw not in (None, "", "null") else None
        if dispatch_timeout is not None and dispatch_timeout <= 0:
            raise ValueError("digest.dispatch_timeout must be positive")

        return cls(
            timezone=str(timezone_name) if timezone_name else None,
            time_format=str(data.get("time_format", "%H:%M")),
            max_workers=max_workers,
            dispatch_timeout=dispatch_timeout,
            schedule=_parse_schedule(data.get("schedule")),
        )

    def tzinfo(self) -> Optional[tzinfo]:
        return ZoneInfo(self.timezone) if self.timezone else None


@dataclass
class SmtpConfig:
    host: str
    port: int = 587
    username: str = ""
    password: str = ""
    use_tls: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SmtpConfig":
        if not data.get("host"):
            raise ValueError("email.smtp missing required 'host'")
        return cls(
            host=str(data["host"]),
            port=int(data.get("port", 587)),
            username=str(data.get("username", "")),
            password=str(data.get("password", "")),
            use_tls=bool(data.get("use_tls", True)),
        )


@dataclass
class EmailConfig:
    provider: str
    daily_from: str
    alerts_from: str
    welcome_from: str
    api_key: Optional[str] = None
    smtp: Optional[SmtpConfig] = None
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmailConfig":
        provider = str(data.get("provider", "resend")).strip().lower()
        if provider not in {"resend", "smtp"}:
            raise ValueError(f"Unsupported email.provider '{provider}'")

        api_key = data.get("api_key") or os.getenv("RESEND_API_KEY")
        if provider == "resend" and not api_key:
            raise ValueError("email.api_key (or RESEND_API_KEY) is required for the resend provider")

        smtp_raw = data.get("smtp")
        smtp = SmtpConfig.from_dict(smtp_raw) if isinstance(smtp_raw, dict) else None
        if provider == "smtp" and smtp is None:
            raise ValueError("email.smtp section is required for the smtp provider")

        default_from = data.get("from_address") or "ChirpChirp <noreply@localhost>"
        return cls(
            provider=provider,
            daily_from=str(data.get("daily_from") or default_from),
            alerts_from=str(data.get("alerts_from") or default_from),
            welcome_from=str(data.get("welcome_from") or default_from),
            api_key=str(api_key) if api_key else None,
            smtp=smtp,
            retry=RetryPolicy.from_dict(data.get("retry")),
        )


@dataclass
class ChirpConfig:
    database: DatabaseConfig
    email: EmailConfig
    digest: DigestConfig = field(default_factory=DigestConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Dict]) -> "ChirpConfig":
        return cls(
            database=DatabaseConfig.from_dict(data["database"]),
            email=EmailConfig.from_dict(data.get("email") or {}),
            digest=DigestConfig.from_dict(data.get("digest")),
        )


@dataclass
class AppConfig:
    chirp: ChirpConfig

    @classmethod
    def from_dict(cls, data: Dict[str, Dict]) -> "AppConfig":
        if not isinstance(data, dict) or "chirp" not in data:
            raise ValueError("Configuration missing top-level 'chirp' section")
        return cls(chirp=ChirpConfig.from_dict(data["chirp"]))


def app_config(file_path: str | Path) -> AppConfig:
    with open(file_path, "r", encoding="utf-8") as file:
        config_dict = yaml.safe_load(file)
    return AppConfig.from_dict(config_dict)
