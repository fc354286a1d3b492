"""Database engine and session factory for safety reference data."""

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import get_settings

Base = declarative_base()

IN_MEMORY_SQLITE_URLS = ("sqlite://", "sqlite:///:memory:")


def create_db_engine(database_url: str, *, echo: bool = False) -> Engine:
    """Create an engine whose connections may be used from lookup worker threads."""

    engine_args = {}
    if database_url.startswith("sqlite"):
        engine_args["connect_args"] = {"check_same_thread": False}
        if database_url in IN_MEMORY_SQLITE_URLS:
            engine_args["poolclass"] = StaticPool
    return create_engine(database_url, echo=echo, future=True, **engine_args)


def create_session_factory(bind: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=bind, autoflush=False, autocommit=False, expire_on_commit=False)


settings = get_settings()
engine = create_db_engine(settings.database_url, echo=settings.sql_echo)
SessionLocal = create_session_factory(engine)


def init_db(bind: Engine | None = None) -> None:
    """Create service-owned tables."""

    from . import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
