"""
Database connection and session management
"""
from sqlalchemy import create_engine, pool
from sqlalchemy.orm import declarative_base, sessionmaker
from dispatchdesk.config import settings


def _engine_kwargs() -> dict:
    if settings.is_sqlite:
        kwargs = {"connect_args": {"check_same_thread": False}}
        # In-memory SQLite must share one connection or every session sees an empty DB
        if settings.database_connection_string in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = pool.StaticPool
        return kwargs
    return {
        "poolclass": pool.QueuePool,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_pre_ping": True,  # Verify connections before using
        "pool_recycle": 3600,  # Recycle connections after 1 hour
        "connect_args": {"connect_timeout": 10},
    }


engine = create_engine(
    settings.database_connection_string,
    echo=settings.DEBUG,
    **_engine_kwargs(),
)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


def get_db():
    """
    Dependency for FastAPI to get database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
