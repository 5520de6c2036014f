import structlog
import logging
import sys

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def setup_logging(level="INFO", json_output=None):
    """
    Configure structured logging for the story pipeline.

    DEBUG renders human-readable console lines, every other level renders
    JSON unless json_output says otherwise.
    """
    level = (level or "INFO").upper()
    if level not in LEVELS:
        raise ValueError(f"unknown log level {level!r}, expected one of {LEVELS}")

    numeric_level = getattr(logging, level)
    if json_output is None:
        json_output = level != "DEBUG"

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )

    return structlog.get_logger("story_pipeline")
