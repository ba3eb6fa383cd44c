"""Base repository class for common database operations."""

from abc import ABC, abstractmethod
from typing import Any, Generic, List, Optional, TypeVar

import asyncpg
import structlog

from soonlist.database.connections import DatabaseManager


logger = structlog.get_logger(__name__)

T = TypeVar('T')


class BaseRepository(ABC, Generic[T]):
    """Base repository class providing common database operations."""

    def __init__(self, db_manager: DatabaseManager, table_name: str):
        """
        Initialize base repository.

        Args:
            db_manager: Database manager instance
            table_name: Name of the database table
        """
        self.db_manager = db_manager
        self.table_name = table_name
        self.logger = logger.bind(component=f"{table_name}_repository")

    @abstractmethod
    def _row_to_model(self, row: asyncpg.Record) -> T:
        """Convert database row to model instance."""
        pass

    async def find_by_id(self, id_value: str) -> Optional[T]:
        """
        Find a record by its ID.

        Args:
            id_value: The ID to search for

        Returns:
            Model instance if found, None otherwise
        """
        try:
            async with self.db_manager.get_postgres_connection() as conn:
                query = f"SELECT * FROM {self.table_name} WHERE id = $1"
                row = await conn.fetchrow(query, id_value)

                if row:
                    return self._row_to_model(row)
                return None

        except Exception as e:
            self.logger.error("Error finding record by ID",
                            table=self.table_name, id=id_value, error=str(e))
            raise

    async def count(self, where_clause: str = "", params: Optional[List[Any]] = None) -> int:
        """
        Count records in the table.

        Args:
            where_clause: Optional WHERE clause (without WHERE keyword)
            params: Parameters for the WHERE clause

        Returns:
            Number of records
        """
        try:
            params = params or []

            if where_clause:
                query = f"SELECT COUNT(*) FROM {self.table_name} WHERE {where_clause}"
            else:
                query = f"SELECT COUNT(*) FROM {self.table_name}"

            async with self.db_manager.get_postgres_connection() as conn:
                return await conn.fetchval(query, *params)

        except Exception as e:
            self.logger.error("Error counting records",
                            table=self.table_name, error=str(e))
            raise
