"""
Issue, list, revoke and expire user API tokens.

Tokens are opaque bearer credentials. The secret value is generated here from
a cryptographically secure source, and is returned to the caller only once,
when the token is issued. Everything else in this module works with token
metadata.

Expired tokens are never accepted by :func:`.authenticate.validate`, and are
hidden from :func:`list_tokens`. They stay in the database until
:func:`purge_expired` (run periodically, see :mod:`aipfront.cli`) removes them.
"""

from typing import List, Optional
from datetime import datetime, timedelta
import logging
import secrets

from .. import domain
from . import util
from .models import DBUser, DBUserToken
from .exceptions import NoSuchToken, UnknownOwner, ConstraintViolation, \
    TokenGenerationFailed

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32
"""Entropy of a generated token value, in bytes."""

MAX_ISSUE_ATTEMPTS = 5
"""Token values regenerated on collision before giving up."""

MAX_NAME_LENGTH = 255

MAX_TOKEN_LENGTH = 255
"""Width of the token column. Longer values cannot be valid."""


def generate_token() -> str:
    """Generate a secure random token string."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def issue(user_id: int, name: str, ttl: Optional[timedelta] = None,
          expires_at: Optional[datetime] = None) -> domain.UserToken:
    """
    Issue a new token for a user.

    Parameters
    ----------
    user_id : int
        The owner of the new token.
    name : str
        A label for the token, chosen by the user.
    ttl : :class:`timedelta`
        If provided, the token expires this long after it is issued.
    expires_at : :class:`datetime`
        Alternatively, an absolute expiry time. If neither ``ttl`` nor
        ``expires_at`` is provided, the token never expires.

    Returns
    -------
    :class:`.domain.UserToken`
        Including the secret value. This is the only time it is exposed.

    Raises
    ------
    :class:`.UnknownOwner`
        There is no user with ``user_id``.
    :class:`.TokenGenerationFailed`
        Could not come up with an unused token value.

    """
    name = _check_name(name)
    if ttl is not None and expires_at is not None:
        raise ValueError('Provide either ttl or expires_at, not both')
    if ttl is not None and ttl <= timedelta(0):
        raise ValueError('ttl must be positive')

    created_at = util.now()
    if ttl is not None:
        try:
            expires_at = created_at + ttl
        except OverflowError as e:
            raise ValueError('ttl is too large') from e
    elif expires_at is not None:
        try:
            db_expires_at = util.to_db_time(expires_at)
        except OverflowError as e:
            raise ValueError('expires_at is out of range') from e
        if db_expires_at <= util.to_db_time(created_at):
            raise ValueError('expires_at must be in the future')

    for attempt in range(1, MAX_ISSUE_ATTEMPTS + 1):
        value = generate_token()
        try:
            user_token = _insert(user_id, name, value, created_at, expires_at)
        except ConstraintViolation as e:
            # Either the value collided with an existing token, or the owner
            # was deleted out from under us.
            if not _user_exists(user_id):
                raise UnknownOwner(f'No such user: {user_id}') from e
            logger.warning('Token value collision for user %s (attempt %i)',
                           user_id, attempt)
            continue
        logger.info('issued token %s for user %s', user_token.token_id,
                    user_id)
        return user_token
    raise TokenGenerationFailed(
        f'No unique token value after {MAX_ISSUE_ATTEMPTS} attempts'
    )


@util.retrying
def _insert(user_id: int, name: str, value: str, created_at: datetime,
            expires_at: Optional[datetime]) -> domain.UserToken:
    with util.transaction() as session:
        if session.get(DBUser, user_id) is None:
            owner_missing = True
        else:
            owner_missing = False
            db_token = DBUserToken(
                user_id=user_id,
                token=value,
                name=name,
                created_at=util.to_db_time(created_at),
                expires_at=util.to_db_time(expires_at)
            )
            session.add(db_token)
            session.flush()
            user_token = db_token.to_domain()._replace(token=value)
    if owner_missing:
        raise UnknownOwner(f'No such user: {user_id}')
    return user_token


@util.retrying
def _user_exists(user_id: int) -> bool:
    with util.transaction() as session:
        return session.query(DBUser.id) \
            .filter(DBUser.id == user_id) \
            .first() is not None


@util.retrying
def revoke(user_id: int, token_id: int) -> None:
    """
    Delete one of a user's tokens.

    Raises
    ------
    :class:`.NoSuchToken`
        The token does not exist, or belongs to someone else. The two cases
        are not distinguished.

    """
    with util.transaction() as session:
        deleted = session.query(DBUserToken) \
            .filter(DBUserToken.id == token_id) \
            .filter(DBUserToken.user_id == user_id) \
            .delete(synchronize_session=False)
    if not deleted:
        raise NoSuchToken('No such token')
    logger.info('revoked token %s for user %s', token_id, user_id)


@util.retrying
def list_tokens(user_id: int) -> List[domain.UserToken]:
    """
    Get the unexpired tokens of a user, oldest first.

    Secret values are not included.
    """
    as_of = util.to_db_time(util.now())
    with util.transaction() as session:
        db_tokens = session.query(DBUserToken) \
            .filter(DBUserToken.user_id == user_id) \
            .filter((DBUserToken.expires_at.is_(None))
                    | (DBUserToken.expires_at > as_of)) \
            .order_by(DBUserToken.created_at, DBUserToken.id) \
            .all()
        return [db_token.to_domain() for db_token in db_tokens]


@util.retrying
def purge_expired(as_of: Optional[datetime] = None) -> int:
    """
    Delete every token that expired at or before ``as_of`` (default: now).

    Returns
    -------
    int
        The number of tokens deleted.

    """
    if as_of is None:
        as_of = util.now()
    with util.transaction() as session:
        count: int = session.query(DBUserToken) \
            .filter(DBUserToken.expires_at.isnot(None)) \
            .filter(DBUserToken.expires_at <= util.to_db_time(as_of)) \
            .delete(synchronize_session=False)
    logger.info('purged %i expired tokens', count)
    return count


def _check_name(name: str) -> str:
    name = (name or '').strip()
    if not name:
        raise ValueError('Token name is required')
    if len(name) > MAX_NAME_LENGTH:
        raise ValueError(f'Token name exceeds {MAX_NAME_LENGTH} characters')
    return name
