"""Flask configuration."""
import os

#################### General config for app ####################
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
LOG_JSON = bool(int(os.environ.get('LOG_JSON', '1')))
"""Emit log records as JSON lines. Set to 0 for plain text when developing."""


#################### Database ####################
SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL',
                                         'sqlite:///aipfront.db')
"""Durable store for accounts and tokens."""

SQLALCHEMY_TRACK_MODIFICATIONS = False

SQLITE_BUSY_TIMEOUT = int(os.environ.get('SQLITE_BUSY_TIMEOUT', '30000'))
"""Milliseconds a SQLite connection waits on a locked database."""

STORE_RETRY_TRIES = int(os.environ.get('STORE_RETRY_TRIES', '3'))
"""Attempts made when the store is unavailable before giving up."""

STORE_RETRY_DELAY = float(os.environ.get('STORE_RETRY_DELAY', '0.1'))
"""Initial delay in seconds between attempts. Doubles on each retry."""


#################### Tokens ####################
AUTH_TOKEN_HEADER = os.environ.get('AUTH_TOKEN_HEADER', 'X-Auth-Token')
"""Request header carrying a user token.

``Authorization: Bearer <token>`` is accepted as well.
"""

TOKEN_PURGE_INTERVAL = int(os.environ.get('TOKEN_PURGE_INTERVAL', '3600'))
"""Seconds between runs of the expired token reaper."""
