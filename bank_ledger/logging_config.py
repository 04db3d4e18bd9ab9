"""
structlog configuration for the ledger service.

Two output modes:
- Human (default): colored console output to stderr
- JSON (LOG_JSON=true): structured JSON lines to stderr

Services log key/value events through structlog.get_logger(__name__);
stdlib loggers (uvicorn, sqlalchemy) are routed through the same
formatter so every line has the same shape.
"""

import logging
import sys

import structlog


def configure_logging(*, level: str = "INFO", log_json: bool = False) -> None:
    """Configure structlog processors and output routing.

    Args:
        level: Level name for the bank_ledger loggers (DEBUG, INFO, ...).
        log_json: Use the JSON renderer instead of the console renderer.
    """
    ledger_level = logging.getLevelName(level.upper())
    if not isinstance(ledger_level, int):
        raise ValueError(f"Unknown log level: {level!r}")

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderers: list[structlog.types.Processor]
    if log_json:
        renderers = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderers = [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *renderers,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.WARNING)

    logging.getLogger("bank_ledger").setLevel(ledger_level)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
