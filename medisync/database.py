# medisync/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# Base class for models
Base = declarative_base()


def build_engine(database_url: str = "sqlite://"):
    """Create an engine for a memory-resident SQLite database.

    A single shared connection (StaticPool) keeps every session on the same
    in-memory database; the store's own lock serialises access to it.
    """
    return create_engine(
        database_url,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )


def build_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def create_tables(engine):
    """Create all tables - models must be imported first."""
    from . import models  # noqa: F401 registers the tables on Base.metadata

    Base.metadata.create_all(bind=engine)
