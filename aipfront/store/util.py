"""Helpers and Flask application integration."""

from typing import Any, Callable, Generator, Optional, Tuple
from datetime import datetime
from contextlib import contextmanager
from functools import wraps
import logging
import sqlite3

from pytz import UTC
from retry.api import retry_call
from flask import Flask, current_app, has_app_context
from sqlalchemy import event, text
from sqlalchemy.exc import IntegrityError, OperationalError, DBAPIError
from sqlalchemy.orm.session import Session

from .models import db
from .exceptions import StorageUnavailable, ConstraintViolation

logger = logging.getLogger(__name__)

DISCORD_CDN = 'https://cdn.discordapp.com'


def now() -> datetime:
    """Get the current time, in UTC."""
    return datetime.now(tz=UTC)


def from_epoch(t: int) -> datetime:
    """Get a :class:`datetime` from an UNIX timestamp."""
    return datetime.fromtimestamp(t, tz=UTC)


def to_db_time(t: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are stored as naive UTC."""
    if t is None:
        return None
    if t.tzinfo is None:
        return t
    return t.astimezone(UTC).replace(tzinfo=None)


def discord_avatar_url(discord_id: str, avatar_hash: str) -> str:
    """Build the CDN URL for a Discord avatar."""
    return f'{DISCORD_CDN}/avatars/{discord_id}/{avatar_hash}.png'


@contextmanager
def transaction() -> Generator[Session, None, None]:
    """
    Context manager for database transaction.

    Everything done with the yielded session is committed together when the
    block exits, or rolled back if anything goes wrong.

    Raises
    ------
    :class:`.StorageUnavailable`
        The database could not be reached, or the operation timed out.
    :class:`.ConstraintViolation`
        A write was rejected by a uniqueness or foreign key constraint.

    """
    session = db.session
    try:
        yield session
        session.commit()
    except IntegrityError as e:
        logger.warning('Integrity error, rolling back: %s', e.orig)
        session.rollback()
        raise ConstraintViolation(str(e.orig)) from e
    except OperationalError as e:
        logger.error('Database unavailable, rolling back: %s', e.orig)
        _rollback_quietly(session)
        raise StorageUnavailable(str(e.orig)) from e
    except DBAPIError as e:
        _rollback_quietly(session)
        if e.connection_invalidated:
            logger.error('Lost database connection: %s', e.orig)
            raise StorageUnavailable(str(e.orig)) from e
        raise
    except Exception as e:
        logger.error('Commit failed, rolling back: %s', str(e))
        session.rollback()
        raise


def _rollback_quietly(session: Session) -> None:
    # The connection may already be gone.
    try:
        session.rollback()
    except DBAPIError as e:
        logger.debug('Rollback failed: %s', e)


def _retry_policy() -> Tuple[int, float]:
    if has_app_context():
        config = current_app.config
        return (int(config.get('STORE_RETRY_TRIES', 3)),
                float(config.get('STORE_RETRY_DELAY', 0.1)))
    return 3, 0.1


def retrying(func: Callable) -> Callable:
    """Retry ``func`` with backoff while the store is unavailable."""
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        tries, delay = _retry_policy()
        return retry_call(func, fargs=args, fkwargs=kwargs,
                          exceptions=StorageUnavailable, tries=tries,
                          delay=delay, backoff=2, logger=logger)
    return wrapper


def _set_sqlite_pragma(dbapi_connection: Any, busy_timeout: int) -> None:
    if not isinstance(dbapi_connection, sqlite3.Connection):
        return
    cursor = dbapi_connection.cursor()
    # Cascading deletes depend on this.
    cursor.execute('PRAGMA foreign_keys=ON;')
    # Readers are not blocked by writers (e.g. the reaper) in WAL mode.
    cursor.execute('PRAGMA journal_mode=WAL;')
    cursor.execute(f'PRAGMA busy_timeout={int(busy_timeout)};')
    cursor.close()


def init_app(app: Flask) -> None:
    """Set configuration defaults and attach session to the application."""
    app.config.setdefault('SQLALCHEMY_TRACK_MODIFICATIONS', False)
    app.config.setdefault('SQLITE_BUSY_TIMEOUT', 30000)
    db.init_app(app)
    busy_timeout = app.config['SQLITE_BUSY_TIMEOUT']

    with app.app_context():
        @event.listens_for(db.engine, 'connect')
        def set_sqlite_pragma(dbapi_connection: Any,
                              connection_record: Any) -> None:
            _set_sqlite_pragma(dbapi_connection, busy_timeout)


def current_session() -> Session:
    """Get/create database session for this context."""
    return db.session


def create_all() -> None:
    """Create all tables in the database."""
    db.create_all()


def drop_all() -> None:
    """Drop all tables in the database."""
    db.drop_all()


def is_available(**kwargs: Any) -> bool:
    """Check our connection to the database."""
    try:
        db.session.execute(text('SELECT 1')).all()
    except Exception as e:
        logger.error('Encountered an error talking to database: %s', e)
        return False
    return True
