from contextlib import contextmanager
from typing import Iterator, Optional
import logging
import os

from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from showshelf.errors import PersistenceError


logger = logging.getLogger(__name__)


DEFAULT_DATABASE_URL = "sqlite:///showshelf.db"
DEFAULT_BUSY_TIMEOUT_MS = 5000


# ZENTRALE Base Definition
Base = declarative_base()


def database_url_from_env() -> str:
    return os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL


def _is_memory_url(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


def _configure_sqlite(engine):
    """WAL + explicit BEGIN handling for pysqlite.

    The driver's own implicit transactions are switched off so that every
    session transaction starts with a real BEGIN and readers keep a stable
    snapshot. Write transactions ask for BEGIN IMMEDIATE to take the write
    lock up front.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute(f"PRAGMA busy_timeout={int(DEFAULT_BUSY_TIMEOUT_MS)}")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA temp_store=MEMORY")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        if conn.get_execution_options().get("immediate"):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


class Database:
    """Engine + session factory handle, passed explicitly to every component."""

    def __init__(self, url: Optional[str] = None, echo: bool = False):
        self.url = url or database_url_from_env()

        if self.url.startswith("sqlite"):
            if _is_memory_url(self.url):
                # In-Memory SQLite für Tests
                self.engine = create_engine(
                    self.url,
                    echo=echo,
                    connect_args={"check_same_thread": False},
                    poolclass=StaticPool,
                )
            else:
                self.engine = create_engine(
                    self.url,
                    echo=echo,
                    connect_args={"check_same_thread": False, "timeout": DEFAULT_BUSY_TIMEOUT_MS / 1000},
                )
            _configure_sqlite(self.engine)
        else:
            self.engine = create_engine(self.url, echo=echo, pool_pre_ping=True, pool_recycle=3600)

        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)

    def init_db(self):
        """Erstellt alle Tabellen"""
        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            logger.error(f"✗ Database initialization failed: {e}")
            raise PersistenceError(f"Database initialization failed: {e}") from e
        logger.info("✓ All database tables initialized")

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Read-only session; sees one committed snapshot and is rolled back on exit."""
        db = self.SessionLocal()
        try:
            yield db
        except SQLAlchemyError as e:
            raise PersistenceError(str(e)) from e
        finally:
            db.close()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Write transaction: commits on success, rolls back everything on any error."""
        db = self.SessionLocal()
        try:
            db.connection(execution_options={"immediate": True})
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"✗ Transaction rolled back: {e}")
            raise PersistenceError(str(e)) from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def dispose(self):
        self.engine.dispose()


# Import ALL Models - WICHTIG für create_all()
from showshelf.models.config import Config  # noqa: E402,F401
from showshelf.models.show import Show  # noqa: E402,F401
from showshelf.models.episode import Episode  # noqa: E402,F401
from showshelf.models.progress import Progress  # noqa: E402,F401
