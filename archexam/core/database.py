from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from archexam.core.config import settings

def sqlite_immediate_transactions(engine: Engine) -> Engine:
    """Take the SQLite write lock when a transaction begins, not on its first write.

    Without this two deferred transactions that both upsert can deadlock on the
    lock upgrade and one fails with "database is locked" instead of waiting.
    """
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine

def make_engine(url: str, **kwargs) -> Engine:
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        return sqlite_immediate_transactions(create_engine(url, future=True, connect_args=connect_args, **kwargs))
    return create_engine(url, future=True, pool_pre_ping=True, **kwargs)

engine = make_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db(bind=None):
    """Create tables if they don't exist. Production deployments run migrations instead."""
    from archexam.models.orm import Base
    Base.metadata.create_all(bind=bind or engine)
