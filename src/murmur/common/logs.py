"""Centralized structlog configuration for murmur."""

import logging
import os
import time
from typing import Any

import structlog
from structlog.dev import BRIGHT, DIM, RESET_ALL, Column, ConsoleRenderer, KeyValueColumnFormatter
from structlog.typing import EventDict, Processor

from murmur.common.proc import FloatPrecisionProcessor

# Relative timestamps are measured from import time
_PROGRAM_START_TIME = time.time()

_RESET = "\x1b[0m"
_GRAY = "\x1b[2m"


def hex_to_ansi_fg(hex_color: int) -> str:
  """Convert a hex color (e.g. 0x9ccfd8) to an ANSI 24-bit foreground escape code."""
  r = (hex_color >> 16) & 0xFF
  g = (hex_color >> 8) & 0xFF
  b = hex_color & 0xFF
  return f"\x1b[38;2;{r};{g};{b}m"


_LEVEL_STYLES: dict[str, tuple[str, str]] = {
  "debug": ("dbug", hex_to_ansi_fg(0x908CAA)),
  "info": ("info", hex_to_ansi_fg(0x9CCFD8)),
  "warning": ("warn", hex_to_ansi_fg(0xF6C177)),
  "error": ("eror", hex_to_ansi_fg(0xEB6F92)),
  "exception": ("exc!", hex_to_ansi_fg(0xEB6F92)),
  "critical": ("crit", hex_to_ansi_fg(0xEB6F92)),
}


def _relative_time_processor(
  _logger: structlog.stdlib.BoundLogger, _method_name: str, event_dict: EventDict
) -> EventDict:
  """Stamp the event with the time elapsed since program start, as [h:][m:]ss.mmm."""
  elapsed = time.time() - _PROGRAM_START_TIME
  hours = int(elapsed // 3600)
  minutes = int((elapsed % 3600) // 60)
  seconds = elapsed % 60

  parts = []
  if hours:
    parts.append(f"{hours:02d}")
  if hours or minutes:
    parts.append(f"{minutes:02d}")
  parts.append(f"{seconds:06.3f}")

  event_dict["timestamp"] = f"{_GRAY}+{':'.join(parts)}{_RESET}"
  return event_dict


def _compact_level_processor(
  _logger: structlog.stdlib.BoundLogger, _method_name: str, event_dict: EventDict
) -> EventDict:
  """Render the level as a bracketed 4-character colored tag."""
  level = event_dict.get("level")
  if level in _LEVEL_STYLES:
    tag, color = _LEVEL_STYLES[level]
    event_dict["level"] = f"{color}[{tag}]{_RESET}"
  return event_dict


def _console_renderer() -> ConsoleRenderer:
  def plain(style: str, width: int = 0, prefix: str = "", postfix: str = ""):
    return KeyValueColumnFormatter(
      key_style=None,
      value_style=style,
      reset_style=RESET_ALL,
      value_repr=str,
      width=width,
      prefix=prefix,
      postfix=postfix,
    )

  logger_name_formatter = plain(hex_to_ansi_fg(0x7D6B95), prefix="[", postfix="]")

  return ConsoleRenderer(
    colors=True,
    columns=[
      Column(
        "",
        KeyValueColumnFormatter(
          key_style=hex_to_ansi_fg(0x6E6A86),
          value_style=hex_to_ansi_fg(0xF6C177),
          reset_style=RESET_ALL,
          value_repr=str,
        ),
      ),
      Column("timestamp", plain(DIM)),
      Column("level", plain("")),
      Column("logger_name", logger_name_formatter),
      Column("logger", logger_name_formatter),
      Column("event", plain(BRIGHT, width=30)),
    ],
  )


def setup_logging(
  level: str = "INFO", json_output: bool = False, correlation_id: str | None = None
) -> None:
  """Configure structured logging for the application."""

  shared_processors: list[Processor] = [
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.stdlib.ExtraAdder(),
    FloatPrecisionProcessor(digits=3),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
  ]

  if correlation_id:
    shared_processors.insert(0, structlog.contextvars.merge_contextvars)
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

  if json_output:
    log_renderer: Processor = structlog.processors.JSONRenderer()
  else:
    # Decorations only make sense for a terminal
    shared_processors[3:3] = [_compact_level_processor, _relative_time_processor]
    log_renderer = _console_renderer()

  structlog.configure(
    processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
  )

  formatter = structlog.stdlib.ProcessorFormatter(
    foreign_pre_chain=shared_processors,
    processors=[
      structlog.stdlib.ProcessorFormatter.remove_processors_meta,
      log_renderer,
    ],
  )

  handler = logging.StreamHandler()
  handler.setFormatter(formatter)
  root_logger = logging.getLogger()
  root_logger.handlers.clear()
  root_logger.addHandler(handler)
  root_logger.setLevel(level)

  # websockets is chatty at DEBUG (every frame is logged)
  websockets_logger = logging.getLogger("websockets")
  websockets_logger.handlers.clear()
  websockets_logger.setLevel(logging.WARNING)
  websockets_logger.propagate = True


def get_logger(
  name: str | None = None, *args: Any, **initial_values: Any
) -> structlog.stdlib.BoundLogger:
  """Get a structured logger instance."""
  return structlog.get_logger(*([name] + list(args)), **initial_values)


def setup_logging_from_env() -> None:
  """Setup logging using the LOG_LEVEL, JSON_LOGS and CORRELATION_ID environment variables."""
  log_level = os.getenv("LOG_LEVEL", "INFO").upper()
  json_output = os.getenv("JSON_LOGS", "false").lower() in ("true", "1", "yes", "on")
  correlation_id = os.getenv("CORRELATION_ID")

  setup_logging(level=log_level, json_output=json_output, correlation_id=correlation_id)
