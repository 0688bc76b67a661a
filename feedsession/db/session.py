from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool


def get_connect_args(database_url: str) -> Dict[str, Any]:
    """Get database-specific connection arguments"""
    if database_url.startswith("sqlite"):
        # Focus handlers and background tasks may touch storage from other threads
        return {"check_same_thread": False}
    return {}


def create_storage_engine(database_url: str) -> Engine:
    """Create the engine for durable client storage, creating the sqlite directory if needed"""
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, otherwise every session sees an empty database
        return create_engine(database_url, connect_args=get_connect_args(database_url), poolclass=StaticPool)

    if database_url.startswith("sqlite:///"):
        Path(database_url[len("sqlite:///"):]).expanduser().parent.mkdir(parents=True, exist_ok=True)

    return create_engine(database_url, connect_args=get_connect_args(database_url))


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """Get a synchronous DB session with proper resource management"""
    db = factory()
    try:
        yield db
    finally:
        db.close()
