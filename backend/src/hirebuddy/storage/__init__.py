"""Database storage layer."""

from hirebuddy.storage.db import Base, Database, db

__all__ = ["Base", "Database", "db"]
