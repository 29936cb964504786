"""
Database connection and session management
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from scavenger_hunt.config import settings


def _engine_kwargs(url: str) -> dict:
    if url in ("sqlite://", "sqlite:///:memory:"):
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}


engine = create_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db() -> None:
    """Create all tables"""
    from scavenger_hunt.db import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
