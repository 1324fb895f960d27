# log.py
'''
Structured diagnostics via `structlog`.

The watcher gates its own messages on its verbosity level; this module decides
where they go. Until configure_logging() is called, only warnings and errors
are printed, on stderr.
'''

from __future__ import annotations

import logging
import sys

import structlog
from structlog.typing import FilteringBoundLogger, Processor


# verbosity 0 still lets warnings/errors through
_LEVELS = {0: logging.WARNING, 1: logging.INFO, 2: logging.INFO, 3: logging.DEBUG}


def configure_logging(verbosity: int = 0) -> None:
  '''
  Configure structlog once at program start.

  Output goes to stderr so that stdout stays free for build output.
  '''
  level = _LEVELS.get(verbosity, logging.DEBUG)
  processors: list[Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.processors.add_log_level,
    structlog.processors.StackInfoRenderer(),
    structlog.dev.set_exc_info,
    structlog.processors.TimeStamper(fmt='%H:%M:%S'),
    structlog.dev.ConsoleRenderer(
      colors=sys.stderr.isatty(),
      exception_formatter=structlog.dev.plain_traceback,
    ),
  ]
  structlog.configure(
    processors=processors,
    wrapper_class=structlog.make_filtering_bound_logger(level),
    context_class=dict,
    # looked up per logger so a redirected sys.stderr is honoured
    logger_factory=lambda *args: structlog.PrintLogger(sys.stderr),
    cache_logger_on_first_use=False,
  )
  logging.getLogger('watchdog').setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> FilteringBoundLogger:
  return structlog.get_logger(name)


class LoggerMixin:
  '''Adds a ``self.log`` bound to the class name.'''

  @property
  def log(self) -> FilteringBoundLogger:
    if not hasattr(self, '_logger'):
      self._logger = get_logger(self.__class__.__name__)
    return self._logger


# library use without configure_logging(): warnings only, and never on stdout
if not structlog.is_configured():
  configure_logging(0)
