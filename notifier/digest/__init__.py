"""Digest generation: period windows, insights, prompts and the digest engine."""

from notifier.digest.engine import DigestEngine, DigestOutcome, DigestResult
from notifier.digest.insights import Insights

__all__ = ["DigestEngine", "DigestOutcome", "DigestResult", "Insights"]
