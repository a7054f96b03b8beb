"""Logging setup for mercado-qa.

Step outcomes and HTTP exchanges are emitted as structlog events on top of
stdlib logging. Console output stays on stderr so stdout carries only the
report (or the JSON summary with ``--json``).
"""

import logging
import sys
from pathlib import Path

import structlog

# Third-party loggers that are chatty at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "faker")


def _handler(log_file: str | Path | None) -> logging.Handler:
    if log_file:
        return logging.FileHandler(str(log_file), encoding="utf-8")
    return logging.StreamHandler(sys.stderr)


def _renderer(json_output: bool) -> structlog.types.Processor:
    if json_output:
        return structlog.processors.JSONRenderer(ensure_ascii=False)
    return structlog.dev.ConsoleRenderer(colors=False)


def configure_logging(
    level: str = "warning",
    log_file: str | Path | None = None,
    json_output: bool = False,
) -> None:
    """Route structlog events through one stdlib handler.

    Args:
        level: Log level name (debug, info, warning, error)
        log_file: Write to this file instead of stderr
        json_output: One JSON object per line instead of console text
    """
    log_level = getattr(logging, level.upper(), logging.WARNING)

    handler = _handler(log_file)
    handler.setLevel(log_level)
    logging.basicConfig(level=log_level, handlers=[handler], format="%(message)s", force=True)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            _renderer(json_output),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger bound to ``name``."""
    return structlog.get_logger(name)
