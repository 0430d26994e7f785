"""Connection lifecycle helpers for the configured database."""

from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from crudkit.extensions import db
from crudkit.utils.logging_utils import get_logger


def check_connection() -> bool:
    """Run ``SELECT 1`` against the engine; failures are logged, not raised."""

    logger = get_logger("database")
    try:
        with db.engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Database health check failed url=%s", db.engine.url.render_as_string(hide_password=True))
        return False
    logger.info("Database health check passed dialect=%s", db.engine.dialect.name)
    return True


def create_tables() -> None:
    import crudkit.models  # noqa: F401  register mappers before create_all

    db.create_all()
    get_logger("database").info("Created tables: %s", sorted(db.metadata.tables))


def drop_tables() -> None:
    db.session.remove()
    db.drop_all()
    get_logger("database").warning("Dropped tables: %s", sorted(db.metadata.tables))


def shutdown() -> None:
    db.session.remove()
    db.engine.dispose()
    get_logger("database").info("Disposed connection pool")
