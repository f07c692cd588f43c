"""Centralized logging configuration for the relay using structlog."""

import logging
import time
from typing import Any

import structlog
from structlog.dev import BRIGHT, DIM, RESET_ALL, Column, ConsoleRenderer, KeyValueColumnFormatter
from structlog.typing import EventDict, Processor, WrappedLogger

_PROGRAM_START_TIME = time.time()

# level -> (label, text color, bracket color)
_LEVEL_STYLES: dict[str, tuple[str, int, int]] = {
  "debug": ("dbug", 0x908CAA, 0x827E99),
  "info": ("info", 0x9CCFD8, 0x8CBAC2),
  "warning": ("warn", 0xF6C177, 0xDDAE6B),
  "error": ("eror", 0xEB6F92, 0xD46483),
  "exception": ("exc!", 0xEB6F92, 0xD46483),
  "critical": ("crit", 0xEB6F92, 0xD46483),
}

SESSION_KEYS = ("session_id", "session")


def hex_to_ansi_fg(hex_color: int) -> str:
  """Convert hex color (e.g., 0xad8a89) to ANSI 24-bit foreground escape code."""
  r = (hex_color >> 16) & 0xFF
  g = (hex_color >> 8) & 0xFF
  b = hex_color & 0xFF
  return f"\x1b[38;2;{r};{g};{b}m"


def _relative_time_processor(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
  """Add a timestamp relative to program start, formatted as +[hh:][mm:]ss.mmm."""
  elapsed = time.time() - _PROGRAM_START_TIME
  hours = int(elapsed // 3600)
  minutes = int((elapsed % 3600) // 60)
  seconds = elapsed % 60

  prefix = ""
  if hours:
    prefix = f"{hours:02d}:{minutes:02d}:"
  elif minutes:
    prefix = f"{minutes:02d}:"

  event_dict["timestamp"] = f"+{prefix}{seconds:06.3f}"
  return event_dict


def _compact_level_processor(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
  """Convert log levels to a compact 4-character label with 24-bit colors."""
  level = event_dict.get("level")
  if level in _LEVEL_STYLES:
    label, text_color, bracket_color = _LEVEL_STYLES[level]
    bracket = hex_to_ansi_fg(bracket_color)
    text = hex_to_ansi_fg(text_color)
    event_dict["level"] = f"{bracket}[{RESET_ALL}{text}{label}{bracket}]{RESET_ALL}"
  return event_dict


def _short_session_processor(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
  """Shorten long session ids so console lines stay readable."""
  for key in SESSION_KEYS:
    value = event_dict.get(key)
    if isinstance(value, str) and len(value) > 12:
      event_dict[key] = f"{value[:8]}…"
  return event_dict


def _console_renderer() -> ConsoleRenderer:
  plain = KeyValueColumnFormatter(
    key_style=None, value_style="", reset_style=RESET_ALL, value_repr=str
  )
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
      Column(
        "timestamp",
        KeyValueColumnFormatter(
          key_style=None, value_style=DIM, reset_style=RESET_ALL, value_repr=str
        ),
      ),
      Column("level", plain),
      Column(
        "logger",
        KeyValueColumnFormatter(
          key_style=None,
          value_style=hex_to_ansi_fg(0x7D6B95),
          reset_style=RESET_ALL,
          value_repr=str,
          prefix="[",
          postfix="]",
        ),
      ),
      Column(
        "event",
        KeyValueColumnFormatter(
          key_style=None, value_style=BRIGHT, reset_style=RESET_ALL, value_repr=str, width=30
        ),
      ),
    ],
  )


def setup_logging(
  level: str = "INFO", json_output: bool = False, correlation_id: str | None = None
) -> None:
  """Configure structured logging for the application."""

  shared_processors: list[Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.stdlib.ExtraAdder(),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
  ]

  if correlation_id:
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

  if json_output:
    shared_processors.append(structlog.processors.TimeStamper(fmt="iso", utc=True))
    log_renderer: Processor = structlog.processors.JSONRenderer()
  else:
    shared_processors += [
      _compact_level_processor,
      _short_session_processor,
      _relative_time_processor,
    ]
    log_renderer = _console_renderer()

  structlog.configure(
    processors=[structlog.stdlib.filter_by_level]
    + shared_processors
    + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
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

  # Library chatter only above warning
  for name in ("websockets", "aiohttp"):
    liblog = logging.getLogger(name)
    liblog.handlers.clear()
    liblog.setLevel(logging.WARNING)
    liblog.propagate = True


def get_logger(name: str | None = None, **initial_values: Any) -> structlog.stdlib.BoundLogger:
  """Get a structured logger instance."""
  return structlog.get_logger(name, **initial_values)

