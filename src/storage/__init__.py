"""Storage layer for PostgreSQL access."""

from src.storage.database import Database

__all__ = ["Database"]
