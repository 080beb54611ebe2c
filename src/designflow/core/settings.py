"""Environment-driven settings for designflow.

All fields can be set via ``DESIGNFLOW_*`` environment variables (e.g.
``DESIGNFLOW_MAX_CONCURRENCY=8``) or a ``.env`` file in the working
directory.  Explicit arguments (CLI options, plan files) take precedence over
these values; settings only provide defaults.

Examples:
    >>> from designflow.core.settings import get_settings
    >>> settings = get_settings()
    >>> settings.max_concurrency
    4
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DesignflowSettings(BaseSettings):
    """designflow configuration.

    Fields
    ──────
    max_concurrency      : Default number of tasks in flight at once
    task_timeout_seconds : Default per-task timeout (None = no timeout)
    max_retries          : Retries for retryable executor failures
    retry_base_delay     : First backoff delay in seconds
    log_level            : Structlog log level
    log_format           : ``json``, ``console`` or ``auto`` (JSON unless a TTY)
    simulated_min_delay  : Lower bound of the simulated executor latency
    simulated_max_delay  : Upper bound of the simulated executor latency
    """

    model_config = SettingsConfigDict(
        env_prefix="DESIGNFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Scheduling ───────────────────────────────────────────────
    max_concurrency: int = Field(default=4, ge=1)
    task_timeout_seconds: float | None = Field(default=None, gt=0)
    max_retries: int = Field(default=0, ge=0)
    retry_base_delay: float = Field(default=1.0, ge=0)

    # ── Observability ────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "console", "auto"] = Field(default="auto")

    # ── Simulated executor ───────────────────────────────────────
    simulated_min_delay: float = Field(default=1.0, ge=0)
    simulated_max_delay: float = Field(default=4.0, ge=0)

    @model_validator(mode="after")
    def _check_delay_bounds(self) -> DesignflowSettings:
        if self.simulated_min_delay > self.simulated_max_delay:
            raise ValueError(
                "simulated_min_delay must not exceed simulated_max_delay "
                f"({self.simulated_min_delay} > {self.simulated_max_delay})"
            )
        return self

    @property
    def json_logs(self) -> bool | None:
        """Value for ``configure_logging(json_format=...)``."""
        if self.log_format == "auto":
            return None
        return self.log_format == "json"


_settings_cache: dict[str, DesignflowSettings] = {}


def get_settings(*, _force_reload: bool = False) -> DesignflowSettings:
    """Load, validate, and cache a :class:`DesignflowSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]

    settings = DesignflowSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Drop the cached settings (tests, reconfiguration)."""
    _settings_cache.clear()


__all__ = ["DesignflowSettings", "get_settings", "clear_settings_cache"]
