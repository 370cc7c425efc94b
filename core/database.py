"""
Database setup and connection management.

This module handles:
- SQLAlchemy engine creation
- Session management
- Connection pooling configuration
- Table creation
"""

from typing import Generator

from loguru import logger
from sqlalchemy import create_engine, inspect, pool, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from core.config import settings

Base = declarative_base()


class DatabaseConfig:
    """Configuration for database connections"""

    def __init__(self, connection_string: str = None):
        self.connection_string = connection_string or settings.database_url

        # Connection pooling
        self.pool_size = settings.db_pool_size
        self.max_overflow = settings.db_max_overflow
        self.pool_recycle = settings.db_pool_recycle

        # Echo SQL for debugging (set False in production)
        self.echo = settings.db_echo

        logger.info(f"Database config: pool_size={self.pool_size}, max_overflow={self.max_overflow}")

    @property
    def is_sqlite(self) -> bool:
        return self.connection_string.startswith("sqlite")


class DatabaseManager:
    """
    Manages database connections and session lifecycle.

    Usage:
        DatabaseManager.initialize()

        @router.get("/things")
        def list_things(db: Session = Depends(DatabaseManager.get_session)):
            ...
    """

    _engine = None
    _SessionLocal = None

    @classmethod
    def initialize(cls, config: DatabaseConfig = None, engine=None):
        """
        Initialize database engine and session factory, then create tables.

        An already-built engine can be passed in (tests use an in-memory
        SQLite engine with a static pool).
        """
        if cls._engine is not None and engine is None:
            logger.warning("DatabaseManager already initialized")
            return

        if engine is None:
            if config is None:
                config = DatabaseConfig()
            engine = cls._create_engine(config)

        cls._engine = engine
        cls._SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=cls._engine,
            expire_on_commit=False
        )

        cls.create_tables()
        logger.info(f"✓ Database initialized ({cls._engine.dialect.name})")

    @classmethod
    def _create_engine(cls, config: DatabaseConfig):
        """Create SQLAlchemy engine with pooling"""
        if config.is_sqlite:
            return create_engine(
                config.connection_string,
                echo=config.echo,
                connect_args={"check_same_thread": False}
            )

        return create_engine(
            config.connection_string,
            poolclass=pool.QueuePool,
            pool_size=config.pool_size,
            max_overflow=config.max_overflow,
            pool_recycle=config.pool_recycle,
            pool_pre_ping=True,
            echo=config.echo,
            pool_timeout=30
        )

    @classmethod
    def create_tables(cls):
        """Create all tables if they don't exist (idempotent)."""
        if cls._engine is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")

        try:
            existing_tables = set(inspect(cls._engine).get_table_names())
            Base.metadata.create_all(bind=cls._engine, checkfirst=True)

            created = [name for name in Base.metadata.tables if name not in existing_tables]
            if created:
                logger.info(f"✓ Created tables: {', '.join(sorted(created))}")
            else:
                logger.info("✓ All tables already exist")
        except SQLAlchemyError as e:
            logger.error(f"❌ Error creating tables: {e}")
            raise

    @classmethod
    def drop_tables(cls):
        """
        Drop all tables. USE WITH CAUTION (for testing only).
        """
        if cls._engine is None:
            raise RuntimeError("Database not initialized")

        logger.warning("DROPPING ALL TABLES - THIS IS DESTRUCTIVE")
        Base.metadata.drop_all(bind=cls._engine)

    @classmethod
    def get_session(cls) -> Generator[Session, None, None]:
        """
        FastAPI dependency for getting a database session.

        Commits when the request handler finishes without error and rolls
        back otherwise.

        Yields:
            SQLAlchemy Session
        """
        if cls._SessionLocal is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")

        session = cls._SessionLocal()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Session error: {type(e).__name__}: {e}")
            raise
        finally:
            session.close()

    @classmethod
    def session_factory(cls) -> sessionmaker:
        if cls._SessionLocal is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return cls._SessionLocal

    @classmethod
    def health_check(cls) -> bool:
        """Check if database is healthy"""
        if cls._SessionLocal is None:
            return False

        session = cls._SessionLocal()
        try:
            session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"❌ Database health check failed: {e}")
            return False
        finally:
            session.close()

    @classmethod
    def get_engine(cls):
        """Get the SQLAlchemy engine (for migrations, admin tasks)"""
        if cls._engine is None:
            raise RuntimeError("Database not initialized")
        return cls._engine

    @classmethod
    def reset(cls):
        """Forget the current engine (tests re-initialize per test)."""
        if cls._engine is not None:
            cls._engine.dispose()
        cls._engine = None
        cls._SessionLocal = None
