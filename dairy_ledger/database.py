# dairy_ledger/database.py
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.event import listen
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings

Base = declarative_base()


def _fk_pragma_on_connect(dbapi_con, con_record):
    """Ensures that the foreign key pragma is enabled for SQLite connections."""
    dbapi_con.execute('PRAGMA foreign_keys=ON')


def build_engine(database_url: str) -> Engine:
    """
    Creates an engine for the given URL.

    SQLite needs 'check_same_thread' off because FastAPI serves requests
    from a thread pool, and the foreign key pragma on every connection.
    """
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)

    if database_url.startswith("sqlite"):
        new_engine = create_engine(database_url, connect_args={"check_same_thread": False})
        listen(new_engine, 'connect', _fk_pragma_on_connect)
        return new_engine
    return create_engine(database_url, pool_pre_ping=True)


# The engine is the main entry point to the database.
engine = build_engine(settings.get_database_url())

# Create a SessionLocal class for database sessions
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
