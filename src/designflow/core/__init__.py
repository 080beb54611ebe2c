"""designflow core -- errors, structured logging, settings.

Architecture::

    errors.py      Typed error hierarchy (DesignflowError, TaskExecutionError)
    logging.py     structlog configuration + LogContext
    settings.py    DESIGNFLOW_* environment settings (pydantic-settings)
"""

from designflow.core.errors import (
    ConfigError,
    DesignflowError,
    ErrorCategory,
    ErrorContext,
    OrchestrationError,
    TaskExecutionError,
    TaskTimeoutError,
)
from designflow.core.logging import LogContext, configure_logging, get_logger
from designflow.core.settings import DesignflowSettings, get_settings

__all__ = [
    "ConfigError",
    "DesignflowError",
    "ErrorCategory",
    "ErrorContext",
    "OrchestrationError",
    "TaskExecutionError",
    "TaskTimeoutError",
    "LogContext",
    "configure_logging",
    "get_logger",
    "DesignflowSettings",
    "get_settings",
]
