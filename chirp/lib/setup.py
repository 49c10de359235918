from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

from chirp.lib.config import AppConfig, DatabaseConfig, EmailConfig
from chirp.lib.data.db import Database
from chirp.lib.digest import ClockFormatter, DigestEngine
from chirp.lib.notifications import BatchDispatcher, NotificationService, NotificationSink, Senders
from chirp.lib.notifications.channels.resend import ResendSink
from chirp.lib.notifications.channels.smtp import SmtpSink
from chirp.lib.notifications.scheduler import SummaryScheduler
from chirp.lib.store import SqlRecordStore, SubscriptionRepository


@dataclass
class Environment:
    config: AppConfig
    database: Database
    service: NotificationService

    def build_scheduler(self) -> Optional[SummaryScheduler]:
        digest = self.config.chirp.digest
        if digest.schedule is None:
            return None
        return SummaryScheduler(self.service, digest.schedule, tz=digest.tzinfo())

    def close(self) -> None:
        self.service.close()
        self.database.dispose()


def _resolve_database_config(config: DatabaseConfig, base_dir: Path) -> DatabaseConfig:
    if config.path.is_absolute():
        return config
    return replace(config, path=(base_dir / config.path).resolve())


def build_sink(email: EmailConfig) -> NotificationSink:
    if email.provider == "smtp":
        smtp = email.smtp
        if smtp is None:
            raise ValueError("email.smtp section is required for the smtp provider")
        return SmtpSink(
            host=smtp.host,
            port=smtp.port,
            username=smtp.username,
            password=smtp.password,
            use_tls=smtp.use_tls,
        )
    if not email.api_key:
        raise ValueError("email.api_key is required for the resend provider")
    return ResendSink(email.api_key, retry=email.retry)


def initialize_environment(
    config_data: Dict[str, Any],
    *,
    base_dir: Path,
    sink: Optional[NotificationSink] = None,
) -> Environment:
    """Parse configuration and construct every collaborator the service needs."""
    app_config = AppConfig.from_dict(config_data)
    chirp = app_config.chirp

    database = Database(_resolve_database_config(chirp.database, base_dir)).initialize()
    tz = chirp.digest.tzinfo()
    engine = DigestEngine(
        SqlRecordStore(database),
        tz=tz,
        formatter=ClockFormatter(tz, chirp.digest.time_format),
    )
    service = NotificationService(
        engine=engine,
        subscribers=SubscriptionRepository(database),
        sink=sink or build_sink(chirp.email),
        dispatcher=BatchDispatcher(chirp.digest.max_workers, timeout=chirp.digest.dispatch_timeout),
        senders=Senders(
            daily=chirp.email.daily_from,
            alerts=chirp.email.alerts_from,
            welcome=chirp.email.welcome_from,
        ),
    )
    return Environment(config=app_config, database=database, service=service)
