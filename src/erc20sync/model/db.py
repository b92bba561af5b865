from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from .. import config
from .orm import Base


def create_db_engine(db_url: str = None, echo: bool = None):
    """Create the engine and the tables.

    An in-memory sqlite database only lives as long as its connection, so it
    gets a single shared connection usable from the worker threads.
    """
    db_url = db_url or config.DB_URL
    echo = config.DB_ECHO if echo is None else echo
    if db_url in ('sqlite://', 'sqlite:///:memory:'):
        engine = create_engine(db_url, echo=echo, poolclass=StaticPool,
                               connect_args={"check_same_thread": False})
    elif db_url.startswith('sqlite'):
        engine = create_engine(db_url, echo=echo, connect_args={"check_same_thread": False})
    else:
        engine = create_engine(db_url, echo=echo)
    Base.metadata.create_all(engine)
    return engine
