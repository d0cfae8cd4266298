from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from task_api.logger import logger

Base = declarative_base()


def make_engine(database_url: str) -> Engine:
    """Create the engine for the configured database URL.

    SQLite connections are shared across the threadpool that runs request
    handlers; an in-memory database additionally needs a single static
    connection or every new connection would see an empty database.
    """
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return create_engine(url, pool_pre_ping=True)

    kwargs = {"connect_args": {"check_same_thread": False}}
    if url.database in (None, "", ":memory:"):
        kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


def init_db(engine: Engine) -> None:
    """Create the tasks table if absent, then apply additive migrations"""
    # models must be imported so the table is registered on Base.metadata
    from task_api import models  # noqa: F401

    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        logger.error(f"Error creating database tables: {str(e)}")
        raise

    ensure_updated_at_column(engine)


def ensure_updated_at_column(engine: Engine) -> bool:
    """Add tasks.updated_at to tables created before the column existed.

    Existing rows are backfilled from created_at. Failures are logged and
    never propagate. Returns True when the column was added.
    """
    try:
        columns = {c["name"] for c in inspect(engine).get_columns("tasks")}
    except SQLAlchemyError as e:
        logger.error(f"Schema check failed: {str(e)}")
        return False

    if "updated_at" in columns:
        return False

    try:
        with engine.begin() as conn:
            conn.execute(text("ALTER TABLE tasks ADD COLUMN updated_at TIMESTAMP"))
            conn.execute(text("UPDATE tasks SET updated_at = created_at"))
    except SQLAlchemyError as e:
        logger.error(f"Adding tasks.updated_at failed: {str(e)}")
        return False

    logger.info("Migrated: added tasks.updated_at")
    return True
