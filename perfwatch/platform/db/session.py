from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker

from perfwatch.platform.config import settings


def _build_engine(database_url: str):
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        return create_engine(
            database_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
        )
    return create_engine(
        database_url,
        echo=False,
        future=True,
        pool_pre_ping=True,
        pool_recycle=1800,
        pool_size=20,
        max_overflow=30,
        pool_timeout=30,
    )


engine = _build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, expire_on_commit=False, autoflush=False, autocommit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create tables for every registered model."""
    from perfwatch.features.scan.models import Scan  # noqa: F401
    from perfwatch.platform.db.base import Base

    Base.metadata.create_all(bind=engine)
