#!/usr/bin/env python
"""Entry point for running the HTTP server."""

import os
import sys

import structlog
from dotenv import load_dotenv

from soonlist.__main__ import serve
from soonlist.logging_config import configure_logging
from soonlist.models.config import SoonlistConfig

# Load environment variables
load_dotenv()

logger = structlog.get_logger(__name__)


def main():
    """Run the HTTP server."""
    config = SoonlistConfig()
    configure_logging(config.log_level)

    if not config.openrouter_api_key:
        logger.error("OPENROUTER_API_KEY environment variable is required")
        sys.exit(1)

    serve(config, reload=os.getenv("DEBUG", "false").lower() == "true")


if __name__ == "__main__":
    main()
