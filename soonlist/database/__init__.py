"""Database package for the Soonlist capture service."""

from .connections import DatabaseManager
from .repositories import EventRepository
from .schema import apply_schema

__all__ = [
    "DatabaseManager",
    "EventRepository",
    "apply_schema",
]
