"""
murmur common package.

Logging setup and log value formatters shared by the wire and client packages.
"""

from murmur.common.format import Bytes, Milliseconds, Pretty, Samples, Seconds, Unit
from murmur.common.logs import get_logger, setup_logging, setup_logging_from_env

__all__ = [
  "get_logger",
  "setup_logging",
  "setup_logging_from_env",
  "Bytes",
  "Milliseconds",
  "Pretty",
  "Samples",
  "Seconds",
  "Unit",
]
