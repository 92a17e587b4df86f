"""Database connection and session management."""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from hirebuddy.logging_config import get_logger
from hirebuddy.settings import settings

logger = get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class Database:
    """Database connection manager."""

    def __init__(self, database_url: str | None = None):
        """Initialize database connection.

        Args:
            database_url: Database URL (defaults to settings)
        """
        self.database_url = database_url or settings.database_url

        connect_args = {}
        if self.database_url.startswith("sqlite"):
            # Request handlers run in a threadpool
            connect_args["check_same_thread"] = False

        self.engine = create_engine(
            self.database_url,
            echo=False,
            pool_pre_ping=True,
            connect_args=connect_args,
        )
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine,
        )
        logger.info("database_initialized", url=self.engine.url.render_as_string(hide_password=True))

    def create_tables(self) -> None:
        """Create all tables in the database."""
        # Register every mapped model before create_all
        import hirebuddy.auth.models  # noqa: F401
        import hirebuddy.referral.models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        logger.info("tables_created")

    def drop_tables(self) -> None:
        """Drop all tables from the database."""
        Base.metadata.drop_all(bind=self.engine)
        logger.warning("tables_dropped")

    def check_tables(self, table_names: list[str]) -> dict[str, str | None]:
        """Probe each table with a trivial query.

        Returns:
            Mapping of table name to error message (None when healthy)
        """
        existing = set(inspect(self.engine).get_table_names())
        results: dict[str, str | None] = {}
        for name in table_names:
            if name not in existing:
                results[name] = "table does not exist"
                continue
            try:
                with self.engine.connect() as conn:
                    conn.execute(text(f"SELECT 1 FROM {name} LIMIT 1"))
                results[name] = None
            except SQLAlchemyError as e:
                logger.error("table_check_failed", table=name, error=str(e))
                results[name] = "query failed"
        return results

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Provide a transactional scope for database operations.

        Yields:
            Database session
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


# Global database instance
db = Database()
