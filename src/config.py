"""
Runtime configuration read from environment variables, in one place.

Thresholds that shape the heuristics live in the component config
dataclasses (PlaceResolverConfig, AreaDetectorConfig, DraftConfig,
RouterConfig); only the knobs operators actually turn are exposed here.

Environment variables (all optional):
    ANTHROPIC_API_KEY         - enables the Claude semantic services
    CLAUDE_MODEL              - default claude-haiku-4-5-20251001
    SEMANTIC_TIMEOUT_SECONDS  - per-call bound for semantic calls (default: 8)
    CATALOG_PATH              - place catalog JSON (default: data/places.json)
    ZONES_PATH                - override for the ambiguous-zone table
    DEPARTMENTS_PATH          - override for the department lexicon
    ACCESS_PATH               - access allow-list JSON; unset admits everyone
    DB_PATH                   - SQLite database path (default: data/triage.db)
    NOTIFY_CHANNEL            - "console" or "recording" (default: console)
    DRAFT_TTL_SECONDS         - draft inactivity window (default: 900)
    DEDUPE_TTL_SECONDS        - in-memory redelivery window (default: 120)
    LOG_LEVEL                 - default INFO
"""

import os
from dataclasses import dataclass

from src.adapters.claude_semantic import DEFAULT_MODEL


class ConfigError(Exception):
    """A configuration value is missing or malformed (fatal at startup)."""


def _float_env(env, name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass
class Settings:
    anthropic_api_key: str | None = None
    claude_model: str = DEFAULT_MODEL
    semantic_timeout: float = 8.0
    catalog_path: str = "data/places.json"
    zones_path: str | None = None
    departments_path: str | None = None
    access_path: str | None = None
    db_path: str = "data/triage.db"
    notify_channel: str = "console"
    draft_ttl_seconds: float = 900.0
    dedupe_ttl_seconds: float = 120.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env=None) -> "Settings":
        env = os.environ if env is None else env
        channel = env.get("NOTIFY_CHANNEL", "console").lower()
        if channel not in ("console", "recording"):
            raise ConfigError(f"Unknown NOTIFY_CHANNEL: {channel!r}. Expected 'console' or 'recording'.")
        return cls(
            anthropic_api_key=env.get("ANTHROPIC_API_KEY") or None,
            claude_model=env.get("CLAUDE_MODEL", DEFAULT_MODEL),
            semantic_timeout=_float_env(env, "SEMANTIC_TIMEOUT_SECONDS", 8.0),
            catalog_path=env.get("CATALOG_PATH", "data/places.json"),
            zones_path=env.get("ZONES_PATH") or None,
            departments_path=env.get("DEPARTMENTS_PATH") or None,
            access_path=env.get("ACCESS_PATH") or None,
            db_path=env.get("DB_PATH", "data/triage.db"),
            notify_channel=channel,
            draft_ttl_seconds=_float_env(env, "DRAFT_TTL_SECONDS", 900.0),
            dedupe_ttl_seconds=_float_env(env, "DEDUPE_TTL_SECONDS", 120.0),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )
