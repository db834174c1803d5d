"""Logging setup, connection retry and clock helpers."""

from .clock import utcnow
from .logging import setup_logging
from .retry import retry_with_backoff

__all__ = ["retry_with_backoff", "setup_logging", "utcnow"]
