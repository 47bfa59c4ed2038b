"""
Engine and session factory.

SQLite (development, tests) and PostgreSQL (production) share one engine and
one session factory for both auth and lead data.
"""
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from esahayak.core.config import settings


def make_engine(url: str, echo: bool = False):
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}, "echo": echo}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, **kwargs)

        # SQLite leaves foreign keys (and ON DELETE CASCADE) off by default
        @event.listens_for(engine, "connect")
        def _enable_fk(dbapi_conn, _record):
            cur = dbapi_conn.cursor()
            cur.execute("PRAGMA foreign_keys=ON")
            cur.close()

        return engine

    return create_engine(url, pool_pre_ping=True, echo=echo)


engine = make_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind=None) -> None:
    """Create all tables (development helper; production uses Alembic)."""
    from esahayak.db.model_registry import metadata

    metadata.create_all(bind=bind or engine)
