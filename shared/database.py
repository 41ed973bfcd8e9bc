import logging
import os
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker, Session

logger = logging.getLogger(__name__)

SQLALCHEMY_DATABASE_URL = os.getenv("SQLALCHEMY_DATABASE_URL", "sqlite:///./teams.db")
DB_LOCK_TIMEOUT = float(os.getenv("DB_LOCK_TIMEOUT", "15"))

# Execution option marking a connection whose transaction must hold the
# SQLite write lock from its first statement.
WRITE_LOCK_OPTION = "sqlite_write_lock"

Base = declarative_base()


def _configure_sqlite(engine):
    """
    Reads begin a deferred transaction and never take the write lock.
    Transactions opened by :func:`transaction` begin IMMEDIATE, so a guarded
    read-then-write cannot interleave with another writer.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # pysqlite's own implicit BEGIN is replaced by the "begin" hook below
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        if conn.get_execution_options().get(WRITE_LOCK_OPTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def create_db_engine(url: str = SQLALCHEMY_DATABASE_URL, lock_timeout: float = DB_LOCK_TIMEOUT):
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": lock_timeout},
        )
        _configure_sqlite(engine)
    else:
        engine = create_engine(url, pool_pre_ping=True)

    return engine


engine = create_db_engine()


def make_session_factory(bind):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


SessionLocal = make_session_factory(engine)


@contextmanager
def transaction(db: Session):
    """
    Runs the enclosed block as one unit of work on ``db``.

    A read-only transaction left open by earlier lookups on ``db`` is ended
    first, then a new one is started holding the write lock on SQLite.
    Commits on success. Any exception, cancellation included, rolls the whole
    block back and is re-raised unchanged.
    """
    if db.in_transaction():
        db.commit()

    db.connection(execution_options={WRITE_LOCK_OPTION: True})
    try:
        yield db
        db.commit()
    except BaseException:
        db.rollback()
        raise
