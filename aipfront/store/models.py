"""SQLAlchemy models for accounts and user tokens."""

from typing import Optional
from datetime import datetime

from pytz import UTC
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, \
    String, Text, func
from sqlalchemy.orm import relationship, backref

from .. import domain

db: SQLAlchemy = SQLAlchemy()


class DBUser(db.Model):  # type: ignore
    """
    Accounts, one per Discord identity.

    +------------+-----------+------+-----+-------------------+----------------+
    | Field      | Type      | Null | Key | Default           | Extra          |
    +------------+-----------+------+-----+-------------------+----------------+
    | id         | integer   | NO   | PRI | NULL              | auto_increment |
    | discord_id | text      | NO   | UNI | NULL              |                |
    | username   | text      | NO   |     | NULL              |                |
    | avatar_url | text      | NO   |     | NULL              |                |
    | created_at | timestamp | NO   |     | CURRENT_TIMESTAMP |                |
    +------------+-----------+------+-----+-------------------+----------------+
    """

    __tablename__ = 'users'
    # Ids are never reused, even after the newest account is deleted.
    __table_args__ = {'sqlite_autoincrement': True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    discord_id = Column(Text().with_variant(String(64), 'mysql'),
                        nullable=False, unique=True)
    username = Column(Text, nullable=False)
    avatar_url = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False,
                        server_default=func.current_timestamp())

    tokens = relationship(
        'DBUserToken',
        backref=backref('user', lazy='joined'),
        cascade='all, delete-orphan',
        passive_deletes=True,
        lazy='select'
    )

    def to_domain(self) -> domain.User:
        """Generate a :class:`.domain.User` from this row."""
        return domain.User(
            user_id=self.id,
            discord_id=self.discord_id,
            username=self.username,
            avatar_url=self.avatar_url,
            created_at=_as_utc(self.created_at)
        )


class DBUserToken(db.Model):  # type: ignore
    """
    Named API tokens belonging to a :class:`.DBUser`.

    +------------+--------------+------+-----+-------------------+----------------+
    | Field      | Type         | Null | Key | Default           | Extra          |
    +------------+--------------+------+-----+-------------------+----------------+
    | id         | integer      | NO   | PRI | NULL              | auto_increment |
    | user_id    | integer      | NO   | MUL | NULL              | FK, cascade    |
    | token      | varchar(255) | NO   | UNI | NULL              |                |
    | name       | varchar(255) | NO   |     | NULL              |                |
    | created_at | timestamp    | YES  |     | CURRENT_TIMESTAMP |                |
    | expires_at | timestamp    | YES  | MUL | NULL              |                |
    +------------+--------------+------+-----+-------------------+----------------+

    Tokens are looked up by value alone, so ``token`` carries its own unique
    index alongside the composite ``(user_id, token)`` index.
    """

    __tablename__ = 'user_tokens'
    __table_args__ = (
        Index('idx_user_token', 'user_id', 'token', unique=True),
        Index('idx_user_token_value', 'token', unique=True),
        Index('idx_user_token_expires_at', 'expires_at'),
        {'sqlite_autoincrement': True}
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(ForeignKey('users.id', ondelete='CASCADE'),
                     nullable=False)
    token = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, server_default=func.current_timestamp())
    expires_at = Column(DateTime, nullable=True)

    def to_domain(self) -> domain.UserToken:
        """Generate a :class:`.domain.UserToken`, without the secret value."""
        return domain.UserToken(
            token_id=self.id,
            user_id=self.user_id,
            name=self.name,
            created_at=_as_utc(self.created_at),
            expires_at=_as_utc(self.expires_at)
        )


def _as_utc(t: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are stored as naive UTC."""
    if t is None or t.tzinfo is not None:
        return t
    return UTC.localize(t)
