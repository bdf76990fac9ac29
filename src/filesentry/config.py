"""Configuration loading and validation."""

from __future__ import annotations

import os
import re
from enum import Enum
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigError


class Channel(str, Enum):
    STDOUT = "stdout"
    DESKTOP = "desktop"
    WEBHOOK = "webhook"


class WatchConfig(BaseModel):
    root: str = "."
    ignore: list[str] = Field(
        default_factory=lambda: [".git", "node_modules", "__pycache__", ".venv"]
    )
    read_content: bool = True
    max_content_bytes: int = 1_000_000  # Larger files are delivered without content


class QueueConfig(BaseModel):
    tick_ms: int = 100
    rate_limit_ms: int = 1000  # One dispatch per window, globally
    max_retries: int = 3  # Webhook retries after the first attempt
    max_size: int = 0  # 0 = unbounded; otherwise oldest entries are dropped


class NotificationsConfig(BaseModel):
    default_channels: list[Channel] = Field(
        default_factory=lambda: [Channel.STDOUT, Channel.DESKTOP]
    )
    desktop_enabled: bool = True
    webhook_url: str = ""  # Setting this adds "webhook" to rule-match notifications
    webhook_timeout_seconds: float = 15.0


class TranslatorConfig(BaseModel):
    provider: str = "ollama"  # "ollama" | "openai-compatible"
    base_url: str = "http://localhost:11434"
    model: str = "llama3"
    api_key: str = ""
    timeout_seconds: float = 30.0


class FileSentryConfig(BaseModel):
    watch: WatchConfig = Field(default_factory=WatchConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    translator: TranslatorConfig = Field(default_factory=TranslatorConfig)
    rules_file: str = "~/.filesentry/rules.yaml"
    data_dir: str = "~/.filesentry"


_DEFAULT_PATH = "~/.filesentry/config.yaml"


def _interpolate_env_vars(text: str) -> str:
    """Replace ${VAR_NAME} with environment variable values."""

    def replacer(match: re.Match) -> str:
        var_name = match.group(1)
        return os.environ.get(var_name, "")

    return re.sub(r"\$\{(\w+)\}", replacer, text)


def _env_present() -> bool:
    return any(k.startswith("FILESENTRY_") for k in os.environ) or bool(
        os.environ.get("WEBHOOK_URL")
    )


def _config_from_env() -> FileSentryConfig:
    """Build config from environment variables, defaults for the rest."""
    env = os.environ
    return FileSentryConfig(
        watch=WatchConfig(root=env.get("FILESENTRY_ROOT", ".")),
        queue=QueueConfig(
            tick_ms=int(env.get("FILESENTRY_TICK_MS", "100")),
            rate_limit_ms=int(env.get("FILESENTRY_RATE_LIMIT_MS", "1000")),
        ),
        notifications=NotificationsConfig(
            webhook_url=env.get("FILESENTRY_WEBHOOK_URL", env.get("WEBHOOK_URL", "")),
            desktop_enabled=env.get("FILESENTRY_DESKTOP", "1") not in ("0", "false"),
        ),
        translator=TranslatorConfig(
            provider=env.get("FILESENTRY_LLM_PROVIDER", "ollama"),
            base_url=env.get("FILESENTRY_LLM_BASE_URL", "http://localhost:11434"),
            model=env.get("FILESENTRY_LLM_MODEL", "llama3"),
            api_key=env.get("FILESENTRY_LLM_API_KEY", ""),
        ),
        rules_file=env.get("FILESENTRY_RULES_FILE", "~/.filesentry/rules.yaml"),
        data_dir=env.get("FILESENTRY_DATA_DIR", "~/.filesentry"),
    )


def validate_config(config: FileSentryConfig) -> FileSentryConfig:
    """Reject settings the queue and channels cannot run with.

    Raises ConfigError. Only called at startup.
    """
    q = config.queue
    if q.tick_ms <= 0:
        raise ConfigError(f"queue.tick_ms must be positive, got {q.tick_ms}")
    if q.rate_limit_ms < 0:
        raise ConfigError(f"queue.rate_limit_ms must be >= 0, got {q.rate_limit_ms}")
    if q.max_retries < 0:
        raise ConfigError(f"queue.max_retries must be >= 0, got {q.max_retries}")
    if q.max_size < 0:
        raise ConfigError(f"queue.max_size must be >= 0, got {q.max_size}")

    n = config.notifications
    if not n.default_channels:
        raise ConfigError("notifications.default_channels must not be empty")
    if Channel.WEBHOOK in n.default_channels and not n.webhook_url:
        raise ConfigError("webhook channel requested but notifications.webhook_url is empty")
    if n.webhook_url and not n.webhook_url.startswith(("http://", "https://")):
        raise ConfigError(f"notifications.webhook_url must be http(s): {n.webhook_url}")

    if config.translator.provider not in ("ollama", "openai-compatible"):
        raise ConfigError(f"Unknown translator provider: {config.translator.provider}")
    return config


def load_config(path: str | Path | None = None) -> FileSentryConfig:
    """Load config from YAML file, env vars, or defaults.

    Priority: config.yaml (with ${ENV} interpolation) > env vars > defaults.
    Raises ConfigError for unreadable or invalid configuration.
    """
    path = Path(path or _DEFAULT_PATH).expanduser()

    try:
        if not path.exists():
            config = _config_from_env() if _env_present() else FileSentryConfig()
        else:
            data = yaml.safe_load(_interpolate_env_vars(path.read_text()))
            config = FileSentryConfig(**(data or {}))
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
    except (yaml.YAMLError, ValueError, TypeError) as e:
        raise ConfigError(f"Could not load configuration from {path}: {e}") from e

    return validate_config(config)


def save_config(config: FileSentryConfig, path: str | Path | None = None) -> Path:
    """Save config to YAML file."""
    path = Path(path or _DEFAULT_PATH).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="json")
    path.write_text(yaml.dump(data, default_flow_style=False, sort_keys=False))
    return path
