"""Testing helpers."""

from contextlib import contextmanager
from typing import Generator
import os
import tempfile

from flask import Flask
from sqlalchemy.orm.session import Session

from .. import util


def make_app(database_url: str = 'sqlite:///:memory:') -> Flask:
    """Create a bare app bound to ``database_url``."""
    app = Flask('foo')
    app.config['SQLALCHEMY_DATABASE_URI'] = database_url
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['STORE_RETRY_DELAY'] = 0.01
    util.init_app(app)
    return app


@contextmanager
def temporary_db(database_url: str = 'sqlite:///:memory:',
                 create: bool = True, drop: bool = True) \
        -> Generator[Session, None, None]:
    """Provide an in-memory sqlite database for testing purposes."""
    app = make_app(database_url)
    with app.app_context():
        if create:
            util.create_all()
        try:
            yield util.current_session()
        finally:
            util.current_session().remove()
            if drop:
                util.drop_all()


@contextmanager
def temporary_file_db() -> Generator[Flask, None, None]:
    """
    Provide an app bound to a sqlite database in a temporary file.

    Unlike the in-memory database, every thread gets its own connection to a
    file database. Threads must push their own app context.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        app = make_app(f"sqlite:///{os.path.join(tmpdir, 'test.db')}")
        with app.app_context():
            util.create_all()
        try:
            yield app
        finally:
            with app.app_context():
                util.drop_all()
                util.current_session().remove()
                # Release pooled connections so the file can be removed.
                util.db.engine.dispose()
