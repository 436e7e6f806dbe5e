"""Database engine, session factory and the per-request session dependency."""

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from app.core.config import settings


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # Sync routes run in a threadpool
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_engine(
    settings.database_url, echo=False, **_engine_options(settings.database_url)
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def get_db():
    """Yield one session per request; services commit their own units of work."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
