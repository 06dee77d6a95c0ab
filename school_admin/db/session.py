"""Database session management."""
from typing import Any, Dict, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from school_admin.config.settings import settings


def engine_options(database_url: str) -> Dict[str, Any]:
    """Keyword arguments for create_engine suited to the backend"""
    options: Dict[str, Any] = {
        "pool_pre_ping": True,
        "echo": settings.DB_ECHO,
    }
    if database_url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    else:
        options["pool_size"] = settings.DB_POOL_SIZE
        options["max_overflow"] = settings.DB_POOL_OVERFLOW
    return options


def configure_sqlite(engine: Engine) -> None:
    """
    Make pysqlite honour BEGIN/SAVEPOINT and foreign keys.

    Per-student savepoints during fee generation rely on this.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(database_url: str) -> Engine:
    built = create_engine(database_url, **engine_options(database_url))
    if database_url.startswith("sqlite"):
        configure_sqlite(built)
    return built


engine = build_engine(settings.get_database_url())

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency function that yields a database session.

    Usage in FastAPI endpoints:
        @router.get("/students")
        def list_students(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
