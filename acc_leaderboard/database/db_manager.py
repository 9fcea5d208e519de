"""
Database Manager for ACC Result Storage

Handles:
- Database connection management (SQLite by default, any SQLAlchemy URL)
- Schema creation
- Transaction management (one unit of work per ingested file)
- Connection pooling

Writes happen from a single ingestion thread; leaderboard reads may run
from other threads and only see committed transactions.
"""

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, scoped_session, Session
from sqlalchemy.pool import QueuePool

from .models import (
    Base,
    SessionModel,
    CarModel,
    DriverModel,
    LapModel,
    SplitModel,
    KnownFileModel,
    SCHEMA_VERSION
)

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = 'sqlite:///acc_results.db'


class DatabaseManager:
    """
    Database manager

    Usage:
        db = DatabaseManager()
        db.initialize('sqlite:///acc_results.db')

        with db.get_session() as session:
            session.add(session_model)
    """

    def __init__(self):
        self.engine = None
        self.session_factory = None
        self.Session = None
        self._database_url = None
        self._initialized = False
        self._lock = threading.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self, database_url: Optional[str] = None, echo: bool = False):
        """
        Initialize database connection and create schema

        Args:
            database_url: SQLAlchemy URL (default: sqlite file in the working directory)
            echo: If True, log all SQL statements (useful for debugging)
        """
        if self._initialized:
            logger.debug("[Database] Already initialized")
            return

        with self._lock:
            url = make_url(database_url or DEFAULT_DATABASE_URL)
            if url.get_backend_name() == 'sqlite':
                self._initialize_sqlite(url, echo)
            else:
                self._initialize_server(url, echo)

            self._create_schema()

            self._initialized = True
            logger.info("[Database] Initialized successfully: %s", self._database_url)
            logger.info("[Database] Schema version: %s", SCHEMA_VERSION)

    def _initialize_sqlite(self, url, echo: bool):
        """Initialize SQLite database"""
        if url.database and url.database != ':memory:':
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

        self._database_url = url.render_as_string(hide_password=True)

        self.engine = create_engine(
            url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,
            connect_args={
                'check_same_thread': False,  # reads come from other threads
                'timeout': 30
            }
        )

        @event.listens_for(self.engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA journal_mode=WAL")  # readers never block the writer
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()

        self._create_session_factory()

    def _initialize_server(self, url, echo: bool):
        """Initialize a client/server database (PostgreSQL, MySQL)"""
        self._database_url = url.render_as_string(hide_password=True)

        self.engine = create_engine(
            url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=10,
            max_overflow=20,
            pool_pre_ping=True,
            pool_recycle=3600
        )

        self._create_session_factory()

    def _create_session_factory(self):
        """Create thread-safe session factory"""
        self.session_factory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False
        )
        self.Session = scoped_session(self.session_factory)

    def _create_schema(self):
        """Create all database tables"""
        Base.metadata.create_all(self.engine)
        logger.debug("[Database] Created %d tables", len(Base.metadata.tables))

    @contextmanager
    def get_session(self) -> Session:
        """
        Get a database session (context manager)

        Usage:
            with db.get_session() as session:
                session.add(model)

        Automatically handles:
        - Commit when the block finishes
        - Rollback on error (the error is re-raised)
        - Session cleanup
        """
        if not self._initialized:
            raise RuntimeError("DatabaseManager not initialized. Call initialize() first.")

        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.debug("[Database] Rolled back: %s", e)
            raise
        finally:
            session.close()

    def get_statistics(self) -> dict:
        """
        Get database statistics

        Returns:
            dict with counts for each table
        """
        if not self._initialized:
            return {}

        stats = {}
        with self.get_session() as session:
            stats['sessions'] = session.query(SessionModel).count()
            stats['cars'] = session.query(CarModel).count()
            stats['drivers'] = session.query(DriverModel).count()
            stats['laps'] = session.query(LapModel).count()
            stats['splits'] = session.query(SplitModel).count()
            stats['known_files'] = session.query(KnownFileModel).count()

        return stats

    def close(self):
        """Close database connection"""
        if self.Session:
            self.Session.remove()
        if self.engine:
            self.engine.dispose()
        self._initialized = False
        logger.debug("[Database] Closed connection")

    def __repr__(self):
        status = "initialized" if self._initialized else "not initialized"
        return f"<DatabaseManager({status}, url='{self._database_url}')>"


# === Global Instance ===
db_manager = DatabaseManager()


# === Convenience Functions ===

def initialize_database(database_url: Optional[str] = None, echo: bool = False):
    """Initialize the global database manager"""
    db_manager.initialize(database_url, echo)


def get_db_session():
    """Session of the global database manager (context manager)"""
    return db_manager.get_session()
