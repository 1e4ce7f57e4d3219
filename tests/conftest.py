"""Shared fixtures: temporary databases, a fixed clock and notification factories."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional
from unittest.mock import AsyncMock

import pytest
from dateutil import tz

from notifier.config import DigestConfig
from notifier.llm.completion import Completion
from notifier.storage.db import DatabaseManager
from notifier.storage.models import Notification

SAO_PAULO = tz.gettz("America/Sao_Paulo")
# Saturday afternoon in Sao Paulo
FIXED_NOW = datetime(2026, 10, 17, 15, 0, tzinfo=SAO_PAULO)


def make_notification(
    name: str = "Ana Souza",
    email: str = "ana@example.com",
    subject: str = "Weekly report",
    body: str = "Please find the report attached.",
    phone: Optional[str] = "+55 11 99999-0000",
    sent_at: Optional[datetime] = None,
    read_at: Optional[datetime] = None,
    id: Optional[int] = None,
) -> Notification:
    """Create an unsaved test Notification (sent one hour before FIXED_NOW by default)."""
    return Notification(
        id=id,
        name=name,
        email=email,
        phone=phone,
        body=body,
        subject=subject,
        sent_at=sent_at or FIXED_NOW - timedelta(hours=1),
        read_at=read_at,
    )


@pytest.fixture
def tmp_db(tmp_path):
    """Return a path to a temporary database file."""
    return str(tmp_path / "test.db")


@pytest.fixture
async def db(tmp_db):
    """Return an initialized DatabaseManager."""
    manager = DatabaseManager(tmp_db)
    await manager.initialize()
    yield manager
    await manager.close()


@pytest.fixture
def digest_config():
    return DigestConfig(timezone="America/Sao_Paulo", locale="en")


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def completion():
    """Completion service fake returning a fixed digest text."""
    fake = AsyncMock()
    fake.complete.return_value = Completion(
        text="Digest: one urgent item needs attention.",
        usage={"prompt_tokens": 120, "completion_tokens": 20, "total_tokens": 140},
    )
    return fake
