"""
SQLAlchemy ORM database configuration.
PostgreSQL (psycopg) in deployments, SQLite for local runs and tests.
"""

from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool


# Logger
from kitchen_oms.logging.utils import get_app_logger
logger = get_app_logger("kitchen_oms.database")

# Settings
from kitchen_oms.config.settings import OMSConfigs
configs = OMSConfigs()


def normalize_database_url(url: str) -> str:
    """Convert postgresql:// to postgresql+psycopg:// for the psycopg3 driver"""
    if url and url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def build_engine(url: str):
    if url.startswith("sqlite"):
        # one shared connection so in-memory databases survive across sessions
        return create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=False,
        )
    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=configs.DB_POOL_SIZE,
        max_overflow=configs.DB_MAX_OVERFLOW,
        pool_pre_ping=True,     # Validate connections before use
        pool_recycle=3600,      # Recycle connections after 1 hour
        echo=False,
        connect_args={
            "keepalives_idle": 600,
            "keepalives_interval": 30,
            "keepalives_count": 3
        }
    )


DATABASE_URL = normalize_database_url(configs.DATABASE_URL)
DATABASE_READ_URL = normalize_database_url(configs.DATABASE_READ_URL)

# Base class for ORM models
Base = declarative_base()

engine = build_engine(DATABASE_URL)

# Read engine (separate for read replicas, same as write if no replica)
read_engine = build_engine(DATABASE_READ_URL) if DATABASE_READ_URL != DATABASE_URL else engine

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
ReadSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=read_engine)

logger.info(f"database_engines_initialized | dialect={engine.dialect.name}")


@contextmanager
def get_db_session(read_only: bool = False):
    """
    Database session with transaction management.
    Commits on clean exit, rolls back on any exception.

    Args:
        read_only: Whether to use the read replica session
    """
    session_class = ReadSessionLocal if read_only else SessionLocal
    db = session_class()
    try:
        yield db
        if not read_only:
            db.commit()
    except Exception:
        if not read_only:
            db.rollback()
        raise
    finally:
        db.close()


def close_db_pool():
    engine.dispose()
    read_engine.dispose()
