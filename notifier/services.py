"""Wiring: build the store, completion service, digest engine and jobs from an AppConfig."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from notifier.config import AppConfig
from notifier.digest.engine import DigestEngine
from notifier.llm.completion import CompletionService, TextCompletion
from notifier.mail.delivery import DigestDelivery
from notifier.mail.templates import TemplateRenderer
from notifier.mail.transport import EmailTransport, build_transport
from notifier.scheduler.dispatch import TriggerDispatcher
from notifier.scheduler.jobs import Scheduler
from notifier.storage.db import DatabaseManager

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Services:
    """Everything a request handler or job needs, built once per process.

    Usage:
        services = Services.from_config(load_config("config.yaml"))
        await services.start()
        ...
        await services.stop()
    """

    config: AppConfig
    db: DatabaseManager
    completion: TextCompletion
    engine: DigestEngine
    clock: Callable[[], datetime] = field(default=utc_now)

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        db_path: Optional[str] = None,
        completion: Optional[TextCompletion] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> Services:
        db = DatabaseManager(db_path or config.database.path, config.database.cache_size_mb)
        completion = completion or CompletionService(config.llm)
        engine = DigestEngine(db, completion, config.digest, clock=clock)
        return cls(config=config, db=db, completion=completion, engine=engine, clock=clock or utc_now)

    async def start(self) -> None:
        await self.db.initialize()

    async def stop(self) -> None:
        await self.db.close()

    def build_delivery(self, transport: Optional[EmailTransport] = None) -> DigestDelivery:
        email = self.config.email
        return DigestDelivery(
            renderer=TemplateRenderer(self.config.digest.template_dir),
            transport=transport or build_transport(email),
            from_address=email.from_address,
            to_address=email.to_address,
            locale=self.config.digest.locale,
            tz=self.config.digest.tzinfo,
        )

    def build_scheduler(self, delivery: Optional[DigestDelivery] = None) -> Scheduler:
        return Scheduler(
            self.engine,
            delivery or self.build_delivery(),
            self.config.scheduler.mark_urgent_as_read,
        )

    def build_dispatcher(self, scheduler: Optional[Scheduler] = None) -> TriggerDispatcher:
        return TriggerDispatcher(scheduler or self.build_scheduler(), self.config.scheduler.triggers)
