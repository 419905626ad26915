"""Provide methods for working with user accounts."""

from typing import Any, Dict, List
import logging

from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm.session import Session

from .. import domain
from . import util
from .models import DBUser
from .exceptions import NoSuchUser

logger = logging.getLogger(__name__)


@util.retrying
def upsert(discord_id: str, username: str, avatar_url: str) -> domain.User:
    """
    Get or create the account for a Discord identity.

    The first sign-in of an identity creates its account. Every later sign-in
    refreshes the display name and avatar of the same account.

    Parameters
    ----------
    discord_id : str
        Verified Discord user id, from the sign-in provider.
    username : str
        Current Discord display name.
    avatar_url : str
        Current avatar reference.

    Returns
    -------
    :class:`.domain.User`

    """
    if not discord_id:
        raise ValueError('discord_id is required')
    values = dict(discord_id=discord_id, username=username,
                  avatar_url=avatar_url,
                  created_at=util.to_db_time(util.now()))
    with util.transaction() as session:
        _upsert(session, values)
        db_user = session.query(DBUser) \
            .filter(DBUser.discord_id == discord_id) \
            .populate_existing() \
            .one()
        user = db_user.to_domain()
    logger.debug('upserted user %s for discord id %s', user.user_id,
                 discord_id)
    return user


def _upsert(session: Session, values: Dict[str, Any]) -> None:
    """
    Insert-or-update on the ``discord_id`` unique index in one statement.

    Concurrent first sign-ins of the same identity serialize on the index,
    so there is no window between checking for the row and creating it.
    """
    refresh = ('username', 'avatar_url')
    dialect = session.get_bind(mapper=DBUser).dialect.name
    if dialect in ('sqlite', 'postgresql'):
        insert = sqlite_insert if dialect == 'sqlite' else postgresql_insert
        stmt = insert(DBUser).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[DBUser.discord_id],
            set_={field: stmt.excluded[field] for field in refresh}
        )
        session.execute(stmt)
    elif dialect in ('mysql', 'mariadb'):
        stmt = mysql_insert(DBUser).values(**values)
        stmt = stmt.on_duplicate_key_update(
            **{field: stmt.inserted[field] for field in refresh}
        )
        session.execute(stmt)
    else:
        raise NotImplementedError(f'No atomic upsert for dialect {dialect!r}')


@util.retrying
def get_user_by_id(user_id: int) -> domain.User:
    """Load user data from the database."""
    with util.transaction() as session:
        db_user = session.get(DBUser, user_id)
        user = db_user.to_domain() if db_user is not None else None
    if user is None:
        raise NoSuchUser('User does not exist')
    return user


@util.retrying
def get_user_by_discord_id(discord_id: str) -> domain.User:
    """Load the account bound to a Discord identity."""
    with util.transaction() as session:
        db_user = session.query(DBUser) \
            .filter(DBUser.discord_id == discord_id) \
            .first()
        user = db_user.to_domain() if db_user is not None else None
    if user is None:
        raise NoSuchUser('User does not exist')
    return user


@util.retrying
def get_all() -> List[domain.User]:
    """Load every account, oldest first."""
    with util.transaction() as session:
        return [db_user.to_domain() for db_user
                in session.query(DBUser).order_by(DBUser.id)]


@util.retrying
def delete(user_id: int) -> None:
    """
    Delete an account, and every token that it owns.

    Raises
    ------
    :class:`.NoSuchUser`

    """
    with util.transaction() as session:
        deleted = session.query(DBUser) \
            .filter(DBUser.id == user_id) \
            .delete(synchronize_session=False)
    if not deleted:
        raise NoSuchUser('User does not exist')
    logger.info('deleted user %s', user_id)
