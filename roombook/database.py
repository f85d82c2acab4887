import json
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import DATABASE_URL


def json_serializer(value) -> str:
    # JSON columns are matched as text, so keep non-ASCII characters literal
    return json.dumps(value, ensure_ascii=False)


def escape_like(term: str) -> str:
    """Escape LIKE wildcards in user input; pair with ``escape="\\\\"``."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def contains_pattern(term: str) -> str:
    return f"%{escape_like(term)}%"


def install_sqlite_locking(engine):
    """
    Make every SQLite transaction start with ``BEGIN IMMEDIATE``.

    pysqlite defers ``BEGIN`` until the first write, so two requests could
    both read "no conflict" before either writes. Taking the write lock at
    the start of the transaction serializes conflict check + insert.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


if DATABASE_URL.startswith("sqlite"):
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        json_serializer=json_serializer,
    )
    install_sqlite_locking(engine)
else:
    engine = create_engine(DATABASE_URL, pool_pre_ping=True, json_serializer=json_serializer)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


@contextmanager
def atomic(db):
    """Commit the session's work on success, roll all of it back on any error."""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
