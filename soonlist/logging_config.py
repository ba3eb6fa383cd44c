"""Logging setup shared by the entry points."""

import logging

import structlog

NOISY_LOGGERS = ("openai", "httpx", "httpcore", "aiohttp", "asyncpg", "langfuse")


def configure_logging(level: str = "INFO") -> None:
    """Configure stdlib logging and structlog at ``level``."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )

    # Reduce verbosity for third-party libraries to avoid request body logging
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
    )
