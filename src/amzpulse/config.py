"""Configuration loader with ENV:VAR_NAME resolution."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration is missing or invalid."""


def _resolve(value: Any) -> Any:
    """Recursively resolve ENV:VAR_NAME references."""
    if isinstance(value, str) and value.startswith("ENV:"):
        var = value[4:]
        resolved = os.environ.get(var)
        if resolved is None:
            logger.debug("Environment variable %s not set (value stays None)", var)
        return resolved
    if isinstance(value, dict):
        return {k: _resolve(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve(v) for v in value]
    return value


def _env_gemini_key() -> str | None:
    return os.environ.get("GEMINI_API_KEY") or os.environ.get("API_KEY")


@dataclass
class BackendConfig:
    base_url: str = field(default_factory=lambda: os.environ.get("AMZPULSE_API_BASE", "http://localhost:3001"))
    timeout: float = 30.0


@dataclass
class GeminiConfig:
    api_key: str | None = field(default_factory=_env_gemini_key)
    model: str = "gemini-2.5-flash"
    timeout: float = 30.0

    def is_ready(self) -> bool:
        return bool(self.api_key)


@dataclass
class StorageConfig:
    state_dir: str = "~/.amzpulse"


@dataclass
class RuntimeConfig:
    timezone: str = "America/Los_Angeles"
    log_level: str = "INFO"


@dataclass
class AppConfig:
    backend: BackendConfig = field(default_factory=BackendConfig)
    gemini: GeminiConfig = field(default_factory=GeminiConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)


def _positive(raw: Any, default: float, name: str) -> float:
    try:
        value = float(raw) if raw is not None else default
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


def load_config(path: str | Path | None = None) -> AppConfig:
    """
    Load config.yaml.  With no path, returns defaults (environment-backed
    backend URL and Gemini key).
    """
    if path is None:
        return AppConfig()

    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file must contain a mapping: {path}")

    raw = _resolve(raw)
    cfg = AppConfig()

    be = raw.get("backend") or {}
    cfg.backend = BackendConfig(
        base_url=be.get("base_url") or cfg.backend.base_url,
        timeout=_positive(be.get("timeout"), 30.0, "backend.timeout"),
    )

    gm = raw.get("gemini") or {}
    cfg.gemini = GeminiConfig(
        api_key=gm.get("api_key") or cfg.gemini.api_key,
        model=gm.get("model", "gemini-2.5-flash"),
        timeout=_positive(gm.get("timeout"), 30.0, "gemini.timeout"),
    )

    sto = raw.get("storage") or {}
    cfg.storage = StorageConfig(state_dir=sto.get("state_dir", "~/.amzpulse"))

    rt = raw.get("runtime") or {}
    cfg.runtime = RuntimeConfig(
        timezone=rt.get("timezone", "America/Los_Angeles"),
        log_level=rt.get("log_level", "INFO"),
    )

    logging.basicConfig(level=getattr(logging, cfg.runtime.log_level.upper(), logging.INFO))
    return cfg
