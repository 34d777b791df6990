"""Observability infrastructure for structured logging."""

from playmirror.infrastructure.observability.log_messages import LogMessages, LogTemplate
from playmirror.infrastructure.observability.logger_template import log_operation
from playmirror.infrastructure.observability.logging import (
    configure_logging,
    get_correlation_id,
    set_correlation_id,
)

__all__ = [
    "LogMessages",
    "LogTemplate",
    "configure_logging",
    "get_correlation_id",
    "log_operation",
    "set_correlation_id",
]
