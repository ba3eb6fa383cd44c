"""Database connection management for the Soonlist service."""

import json
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import asyncpg
import structlog

from soonlist.models.config import SoonlistConfig


logger = structlog.get_logger(__name__)


async def _init_connection(conn: asyncpg.Connection) -> None:
    """Decode json/jsonb columns to Python objects on every pooled connection."""
    for type_name in ("json", "jsonb"):
        await conn.set_type_codec(
            type_name,
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog",
        )


class DatabaseManager:
    """Manages the PostgreSQL connection pool."""

    def __init__(self, config: SoonlistConfig):
        """
        Initialize database manager with configuration.

        Args:
            config: Application configuration containing database settings
        """
        self.config = config
        self.logger = logger.bind(component="database_manager")

        self._postgres_pool: Optional[asyncpg.Pool] = None

        self._postgres_pool_config = {
            "min_size": max(1, config.db_pool_size // 2),
            "max_size": config.db_pool_size,
            "max_inactive_connection_lifetime": 300,
            "timeout": config.db_pool_timeout,
            "command_timeout": 60,
            "init": _init_connection,
            "server_settings": {
                "application_name": "soonlist_capture",
                "timezone": "UTC"
            }
        }

    async def initialize(self) -> None:
        """Create the pool and verify it can serve queries."""
        try:
            self.logger.info(
                "Creating PostgreSQL connection pool",
                database_url=self._mask_password(self.config.database_url),
            )
            self._postgres_pool = await asyncpg.create_pool(
                self.config.database_url,
                **self._postgres_pool_config
            )

            async with self._postgres_pool.acquire() as conn:
                version = await conn.fetchval("SELECT version()")
            self.logger.info(
                "PostgreSQL connection verified",
                version=version[:50],
                pool_size=self._postgres_pool.get_size(),
            )

        except Exception as e:
            self.logger.error("Failed to initialize database connections", error=str(e))
            await self.cleanup()
            raise

    async def cleanup(self) -> None:
        """Close the connection pool."""
        if self._postgres_pool:
            try:
                await self._postgres_pool.close()
                self.logger.info("PostgreSQL pool closed")
            except Exception as e:
                self.logger.error("Error closing PostgreSQL pool", error=str(e))
            finally:
                self._postgres_pool = None

    @asynccontextmanager
    async def get_postgres_connection(self):
        """
        Get a PostgreSQL connection from the pool.

        Yields:
            asyncpg.Connection: Database connection
        """
        if not self._postgres_pool:
            raise RuntimeError("PostgreSQL pool not initialized")

        async with self._postgres_pool.acquire() as connection:
            try:
                yield connection
            except Exception as e:
                self.logger.error("Database operation error", error=str(e))
                raise

    @asynccontextmanager
    async def get_postgres_transaction(self):
        """
        Get a PostgreSQL transaction from the pool.

        Yields:
            asyncpg.Connection: Database connection with active transaction
        """
        async with self.get_postgres_connection() as conn:
            async with conn.transaction():
                yield conn

    async def get_postgres_pool_stats(self) -> Dict[str, Any]:
        """Get PostgreSQL pool statistics."""
        if not self._postgres_pool:
            return {"status": "not_initialized"}

        return {
            "status": "initialized",
            "size": self._postgres_pool.get_size(),
            "min_size": self._postgres_pool.get_min_size(),
            "max_size": self._postgres_pool.get_max_size(),
            "idle_size": self._postgres_pool.get_idle_size()
        }

    async def health_check(self) -> Dict[str, Any]:
        """Check that the pool can serve a trivial query."""
        health = {"postgres": {"status": "unknown"}, "overall": "unknown"}

        try:
            if self._postgres_pool:
                async with self.get_postgres_connection() as conn:
                    await conn.fetchval("SELECT 1")
                health["postgres"] = {"status": "healthy", **await self.get_postgres_pool_stats()}
            else:
                health["postgres"] = {"status": "not_initialized"}
        except Exception as e:
            health["postgres"] = {"status": "unhealthy", "error": str(e)}

        health["overall"] = "healthy" if health["postgres"]["status"] == "healthy" else "unhealthy"
        return health

    def _mask_password(self, database_url: str) -> str:
        """Mask password in database URL for logging."""
        if "://" in database_url and "@" in database_url:
            scheme, rest = database_url.split("://", 1)
            auth, host_part = rest.rsplit("@", 1)
            if ":" in auth:
                user, _ = auth.split(":", 1)
                return f"{scheme}://{user}:***@{host_part}"
        return database_url
