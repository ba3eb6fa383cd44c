"""Command line entry point: ``python -m soonlist {serve,init-db}``."""

import argparse
import asyncio
import sys
from typing import List, Optional

import structlog
import uvicorn
from dotenv import load_dotenv

from soonlist.database import DatabaseManager, apply_schema
from soonlist.logging_config import configure_logging
from soonlist.models.config import SoonlistConfig

logger = structlog.get_logger(__name__)


async def init_db(config: SoonlistConfig) -> None:
    db_manager = DatabaseManager(config)
    await db_manager.initialize()
    try:
        await apply_schema(db_manager)
    finally:
        await db_manager.cleanup()


def serve(config: SoonlistConfig, reload: bool = False) -> None:
    logger.info("Starting HTTP server", host=config.http_host, port=config.http_port)
    uvicorn.run(
        "soonlist.http_server:app",
        host=config.http_host,
        port=config.http_port,
        reload=reload,
        log_level=config.log_level.lower(),
    )


def main(args: Optional[List[str]] = None) -> int:
    """Parse arguments and run the selected command."""
    load_dotenv()
    config = SoonlistConfig()
    configure_logging(config.log_level)

    parser = argparse.ArgumentParser(prog="soonlist", description="Soonlist event capture service")
    subparsers = parser.add_subparsers(dest="command")
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    subparsers.add_parser("init-db", help="Create missing database tables")

    parsed = parser.parse_args(args)

    if parsed.command == "init-db":
        asyncio.run(init_db(config))
        return 0
    if parsed.command in (None, "serve"):
        serve(config, reload=getattr(parsed, "reload", False))
        return 0

    logger.error("Unknown command", command=parsed.command)
    return 2


if __name__ == "__main__":
    sys.exit(main())
