"""Structured logging for the dispatch service."""

from .context import ContextFilter, LogContext, log_context, log_delivery_context
from .filters import DefaultCorrelationFilter, PIIFilter
from .formatters import DevFormatter, JSONFormatter
from .setup import setup_logging

__all__ = [
    "ContextFilter",
    "DefaultCorrelationFilter",
    "DevFormatter",
    "JSONFormatter",
    "LogContext",
    "PIIFilter",
    "log_context",
    "log_delivery_context",
    "setup_logging",
]
