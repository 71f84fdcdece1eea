from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from src.api.config import Settings


# PUBLIC_INTERFACE
def build_engine(settings: Settings) -> Engine:
    """
    Create the SQLAlchemy engine for settings.database_url.

    db_timeout_seconds bounds how long a request waits for the store: the
    SQLite busy timeout, or the pool checkout timeout for server databases.
    """
    if settings.database_url.startswith("sqlite"):
        # SQLite needs check_same_thread=False for multithreading in FastAPI
        return create_engine(
            settings.database_url,
            connect_args={"check_same_thread": False, "timeout": settings.db_timeout_seconds},
            future=True,
        )
    return create_engine(
        settings.database_url,
        pool_timeout=settings.db_timeout_seconds,
        pool_pre_ping=True,
        future=True,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db(request: Request) -> Iterator[Session]:
    """
    Dependency that provides a database session and ensures proper cleanup.
    """
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
