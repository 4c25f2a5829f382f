# app/database.py
from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import get_settings

# Load .env file (DATABASE_URL lives there)
load_dotenv()

Base = declarative_base()

_engine: Engine | None = None
_session_factory: sessionmaker | None = None


def build_engine(url: str) -> Engine:
    """
    Create an engine for the given URL.

    In-memory SQLite gets a single shared connection so every session
    sees the same database (tests, `REPORT_STORE=sql` without Postgres).
    """
    if not url.startswith("sqlite"):
        return create_engine(url, future=True, echo=False, pool_pre_ping=True)

    if ":memory:" in url:
        engine = create_engine(
            url,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(url, future=True, connect_args={"check_same_thread": False})

    # pysqlite's own transaction handling breaks SAVEPOINT; let SQLAlchemy emit BEGIN itself
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = build_engine(get_settings().DATABASE_URL)
    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=get_engine(),
            future=True,
        )
    return _session_factory


def init_db(engine: Engine | None = None) -> None:
    """
    Import models and create tables if they don't exist.
    Alembic is the real migration tool, but this keeps local dev sane.
    """
    from app import models  # noqa: F401

    Base.metadata.create_all(bind=engine or get_engine())


