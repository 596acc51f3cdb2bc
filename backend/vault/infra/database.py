# vault/infra/database.py

import logging
import os
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker

from vault.models.base import Base

logger = logging.getLogger(__name__)

# =========================
# ENGINE CONFIGURATION
# =========================

def build_engine(database_url: str) -> Engine:
    """
    Create an engine for the backing store.

    SQLite files are opened with check_same_thread=False because FastAPI
    runs sync routes in a thread pool. Server databases keep a small pre-pinged pool.
    """
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            echo=False,
        )

    return create_engine(
        url,
        pool_pre_ping=True,  # Check connections before using them
        pool_size=5,
        max_overflow=10,
        pool_recycle=3600,
        echo=False,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


# =========================
# DATABASE FUNCTIONS
# =========================

@contextmanager
def db_session(session_factory: sessionmaker):
    """
    Context manager for a unit of work.
    Usage:
        with db_session(factory) as db:
            db.add(row)
    Commits on success, rolls back and re-raises on any error.
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Engine) -> None:
    """
    Create all tables that do not exist yet.
    SQLite files get their parent directory created here, on first run.
    Models must be imported so they register with Base.
    """
    import vault.models.message  # noqa: F401
    import vault.models.user  # noqa: F401

    url = engine.url
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        os.makedirs(os.path.dirname(os.path.abspath(url.database)), exist_ok=True)

    Base.metadata.create_all(bind=engine)


def drop_db(engine: Engine) -> None:
    import vault.models.message  # noqa: F401
    import vault.models.user  # noqa: F401

    Base.metadata.drop_all(bind=engine)


def check_connection(engine: Engine) -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("Database connection successful")
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
