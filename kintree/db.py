"""SQLAlchemy engine and session setup for the person store."""
import os
import logging
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from .models import Base

logger = logging.getLogger(__name__)

DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///./kintree.db")
_engine = None
_SessionLocal = None


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


def get_engine():
    global _engine, _SessionLocal
    if _engine is None:
        _engine = create_engine(DATABASE_URL, connect_args=_connect_args(DATABASE_URL))
        init_schema(_engine)
        _SessionLocal = sessionmaker(bind=_engine, autoflush=False, expire_on_commit=False)
        logger.info("Person store connected (%s)", _engine.url.render_as_string(hide_password=True))
    return _engine


def init_schema(engine):
    """Create the store tables if they don't exist yet. Safe to call repeatedly."""
    Base.metadata.create_all(bind=engine)


def get_db():
    get_engine()
    db: Session = _SessionLocal()
    try:
        yield db
    finally:
        db.close()
