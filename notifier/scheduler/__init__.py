"""Digest jobs and the cron trigger dispatcher."""

from notifier.scheduler.dispatch import TriggerDispatcher
from notifier.scheduler.jobs import Scheduler

__all__ = ["Scheduler", "TriggerDispatcher"]
