from contextlib import contextmanager
from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from dotenv import load_dotenv
import ipaddress
import logging
import os

load_dotenv()

logger = logging.getLogger(__name__)

Base = declarative_base()

DEFAULT_DATABASE_URL = "sqlite+pysqlite:///transactions.db"

_engine = None
_SessionLocal = None
_database_url = None


def is_ipv6(address):
    try:
        ipaddress.IPv6Address(address)
        return True
    except (ValueError, AttributeError):
        return False


def get_database_url():
    if _database_url:
        return _database_url
    DATABASE_URL = os.getenv("DATABASE_URL")
    if DATABASE_URL:
        return DATABASE_URL
    USER = os.getenv("user")
    PASSWORD = os.getenv("password")
    HOST = os.getenv("host")
    PORT = os.getenv("port")
    DBNAME = os.getenv("dbname")
    if all([USER, PASSWORD, HOST, PORT, DBNAME]):
        if is_ipv6(HOST):
            HOST = f'[{HOST}]'
        return f"postgresql+psycopg://{USER}:{PASSWORD}@{HOST}:{PORT}/{DBNAME}?sslmode=require"
    return DEFAULT_DATABASE_URL


def _unicode_lower(value):
    if value is None:
        return None
    return str(value).lower()


def _register_sqlite_functions(dbapi_connection, connection_record):
    # SQLite's built-in lower() only folds ASCII
    dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)


def _build_engine(url):
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://"):
            # a single shared connection keeps the in-memory database alive
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, **kwargs)
        event.listen(engine, "connect", _register_sqlite_functions)
        return engine

    return create_engine(
        url,
        pool_pre_ping=True,
        pool_recycle=300,
        pool_size=5,
        max_overflow=10,
    )


def get_engine():
    global _engine
    if _engine is None:
        _engine = _build_engine(get_database_url())
    return _engine


def configure(url):
    """Rebind the module to another database URL, disposing the old engine."""
    global _engine, _SessionLocal, _database_url
    if _engine is not None:
        _engine.dispose()
    _database_url = url
    _engine = None
    _SessionLocal = None
    return get_engine()


def _get_session_factory():
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=get_engine())
    return _SessionLocal


class _SessionLocalProxy:
    def __call__(self):
        return _get_session_factory()()


SessionLocal = _SessionLocalProxy()


@contextmanager
def session_scope():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables():
    # model module registers the table on Base.metadata
    from . import sqlalchemy_models  # noqa: F401

    Base.metadata.create_all(bind=get_engine())


def drop_tables():
    from . import sqlalchemy_models  # noqa: F401

    Base.metadata.drop_all(bind=get_engine())


def check_connection():
    try:
        with get_engine().connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.exception("Database connection check failed")
        return False
