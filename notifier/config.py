"""Application configuration: YAML file resolved once at startup into dataclasses.

``${ENV_VAR}`` placeholders in string values are substituted from the
environment while loading, so the rest of the code only ever sees the
resolved :class:`AppConfig`.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import tzinfo
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml
from dateutil import tz

from notifier.errors import ValidationError
from notifier.periods import DEFAULT_PERIOD_SETTINGS, DigestPeriod, PeriodSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"
DEFAULT_DB_PATH = "data/notifier.db"

_ENV_PATTERN = re.compile(r"\$\{(\w+)\}")

DEFAULT_MODELS: List[Dict[str, str]] = [
    {
        "id": "@cf/meta/llama-3.1-8b-instruct",
        "name": "Llama 3.1 8B Instruct",
        "description": "General conversational model",
        "type": "chat",
    },
    {
        "id": "@cf/microsoft/phi-2",
        "name": "Phi-2",
        "description": "Compact and efficient model",
        "type": "chat",
    },
    {
        "id": "@cf/mistral/mistral-7b-instruct-v0.1",
        "name": "Mistral 7B Instruct",
        "description": "Multilingual model",
        "type": "chat",
    },
]

DEFAULT_URGENT_KEYWORDS: Tuple[str, ...] = (
    "urgente", "importante", "emergência", "crítico", "prioridade",
    "urgent", "important", "emergency", "critical", "priority",
)

DEFAULT_TRIGGERS: Dict[str, str] = {
    "0 3 * * *": "daily",
    "0 3 * * 1": "weekly",
    "0 3 1 * *": "monthly",
}


@dataclass(frozen=True)
class DatabaseConfig:
    path: str = DEFAULT_DB_PATH
    cache_size_mb: int = 16


@dataclass(frozen=True)
class LLMConfig:
    """Text-completion backend selection.

    ``provider`` is one of ``mock``, ``openai``, ``anthropic``, ``local``
    (OpenAI-compatible server such as Ollama) or ``cloudflare`` (Workers AI).
    """

    provider: str = "mock"
    model: str = "@cf/meta/llama-3.1-8b-instruct"
    max_tokens: int = 1000
    temperature: float = 0.7
    api_key: Optional[str] = None
    base_url: str = "http://localhost:11434/v1"
    account_id: Optional[str] = None
    gateway: Optional[str] = None
    timeout_seconds: int = 60
    models: Tuple[Dict[str, str], ...] = tuple(DEFAULT_MODELS)


@dataclass(frozen=True)
class EmailConfig:
    provider: str = "log"
    api_key: Optional[str] = None
    from_address: str = "digest@localhost"
    to_address: str = "admin@localhost"
    timeout_seconds: int = 30


@dataclass(frozen=True)
class DigestConfig:
    timezone: str = "America/Sao_Paulo"
    locale: str = "pt-BR"
    temperature: float = 0.6
    urgent_keywords: Tuple[str, ...] = DEFAULT_URGENT_KEYWORDS
    periods: Dict[DigestPeriod, PeriodSettings] = field(
        default_factory=lambda: dict(DEFAULT_PERIOD_SETTINGS)
    )
    template_dir: Optional[str] = None

    @property
    def tzinfo(self) -> tzinfo:
        zone = tz.gettz(self.timezone)
        if zone is None:
            raise ValidationError(f"Unknown timezone: {self.timezone}")
        return zone

    def settings_for(self, period: DigestPeriod) -> PeriodSettings:
        return self.periods[period]


@dataclass(frozen=True)
class SchedulerConfig:
    triggers: Dict[str, DigestPeriod] = field(
        default_factory=lambda: {k: DigestPeriod(v) for k, v in DEFAULT_TRIGGERS.items()}
    )
    mark_urgent_as_read: Dict[DigestPeriod, bool] = field(
        default_factory=lambda: {
            DigestPeriod.DAILY: False,
            DigestPeriod.WEEKLY: True,
            DigestPeriod.MONTHLY: True,
        }
    )


@dataclass(frozen=True)
class ApiConfig:
    host: str = "0.0.0.0"
    port: int = 8787
    environment: str = "production"
    allowed_origins: str = "*"
    cors_methods: str = "GET,POST,PUT,DELETE,OPTIONS"
    cors_headers: str = "Content-Type,Authorization,X-Requested-With,X-API-Key"
    cors_max_age: int = 86400
    auth_user: Optional[str] = None
    auth_password: Optional[str] = None
    rate_limit_per_minute: int = 100
    ai_rate_limit_per_minute: int = 20

    @property
    def auth_enabled(self) -> bool:
        return bool(self.auth_user and self.auth_password)


@dataclass(frozen=True)
class AppConfig:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    email: EmailConfig = field(default_factory=EmailConfig)
    digest: DigestConfig = field(default_factory=DigestConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    api: ApiConfig = field(default_factory=ApiConfig)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> AppConfig:
        return cls(
            database=DatabaseConfig(**_known(DatabaseConfig, raw.get("database"))),
            llm=_llm_config(raw.get("llm") or {}),
            email=EmailConfig(**_known(EmailConfig, raw.get("email"))),
            digest=_digest_config(raw.get("digest") or {}),
            scheduler=_scheduler_config(raw.get("scheduler") or {}),
            api=ApiConfig(**_known(ApiConfig, raw.get("api"))),
        )


def load_config(
    path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> AppConfig:
    """Load YAML config, substitute ``${VAR}`` placeholders and build :class:`AppConfig`.

    A missing file yields the defaults.
    """
    config_path = Path(path or DEFAULT_CONFIG_PATH)
    env = os.environ if environ is None else environ

    if not config_path.exists():
        logger.info("Config file %s not found, using defaults", config_path)
        return AppConfig()

    with open(config_path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValidationError(f"Config file {config_path} must contain a mapping")

    config = AppConfig.from_dict(resolve_env(raw, env))
    logger.info(
        "Loaded config from %s (llm=%s, email=%s)",
        config_path, config.llm.provider, config.email.provider,
    )
    return config


def resolve_env(value: Any, environ: Mapping[str, str]) -> Any:
    """Recursively replace ``${VAR}`` in strings. Unset variables become empty."""
    if isinstance(value, str):
        return _ENV_PATTERN.sub(lambda m: environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: resolve_env(v, environ) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_env(v, environ) for v in value]
    return value


# --- Helpers ---

def _known(cls: type, section: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Keep only keys that are fields of ``cls``; blank strings count as unset."""
    if not section:
        return {}
    names = set(cls.__dataclass_fields__)
    out = {}
    for key, val in section.items():
        if key not in names:
            logger.warning("Ignoring unknown config key %s.%s", cls.__name__, key)
            continue
        if val == "":
            continue
        out[key] = val
    return out


def _llm_config(section: Mapping[str, Any]) -> LLMConfig:
    values = _known(LLMConfig, section)
    if "models" in values:
        values["models"] = tuple(dict(m) for m in values["models"])
    return LLMConfig(**values)


def _digest_config(section: Mapping[str, Any]) -> DigestConfig:
    values = _known(DigestConfig, section)
    if "urgent_keywords" in values:
        values["urgent_keywords"] = tuple(str(k).lower() for k in values["urgent_keywords"])
    periods = dict(DEFAULT_PERIOD_SETTINGS)
    for name, overrides in (values.pop("periods", None) or {}).items():
        period = DigestPeriod.parse(name)
        periods[period] = periods[period].merged(overrides or {})
    return DigestConfig(periods=periods, **values)


def _scheduler_config(section: Mapping[str, Any]) -> SchedulerConfig:
    defaults = SchedulerConfig()
    triggers = defaults.triggers
    if section.get("triggers"):
        triggers = {str(cron): DigestPeriod.parse(p) for cron, p in section["triggers"].items()}
    marks = dict(defaults.mark_urgent_as_read)
    for name, flag in (section.get("mark_urgent_as_read") or {}).items():
        marks[DigestPeriod.parse(name)] = bool(flag)
    return SchedulerConfig(triggers=triggers, mark_urgent_as_read=marks)
