from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from accountability.db.base import Base


def create_db_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        # In-memory SQLite must share one connection across threads
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(database_url, connect_args={"check_same_thread": False})

    return create_engine(
        database_url,
        pool_size=10,
        max_overflow=20,
        pool_recycle=300,      # Recycle connections every 5 minutes
        pool_pre_ping=True,    # Validate connections before use
        pool_timeout=30,
        echo=False,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create all tables known to the declarative base."""
    # Import models so their tables are registered on Base.metadata
    from accountability.models import goal, user  # noqa: F401
    from accountability.notifications import store  # noqa: F401
    from accountability.reminders import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
