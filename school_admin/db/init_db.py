"""Database initialization utilities."""
from typing import Optional

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from school_admin.core.logging import get_logger
from school_admin.db.base import Base, import_models

logger = get_logger(__name__)


def _engine(bind: Optional[Engine]) -> Engine:
    if bind is not None:
        return bind
    from school_admin.db.session import engine
    return engine


def init_db(bind: Optional[Engine] = None) -> None:
    """
    Create any missing tables.

    Note: This is suitable for development/testing only.
    Production schema changes are applied with migrations.
    """
    target = _engine(bind)
    import_models()

    existing_tables = set(inspect(target).get_table_names())
    Base.metadata.create_all(bind=target)

    missing = set(Base.metadata.tables) - existing_tables
    if missing:
        logger.info(f"Created {len(missing)} database tables", extra={"tables": sorted(missing)})
    else:
        logger.info(f"Database already initialized with {len(existing_tables)} tables")
