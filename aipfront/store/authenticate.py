"""
Resolve a presented user token to the account that owns it.

This runs once for every token-authenticated request. The token is found by
an equality match on the unique index on ``user_tokens.token``; the presented
value alone is enough to identify its owner, so callers do not need to send
a user id alongside it.
"""

from typing import Optional, Tuple
import hmac
import logging

from .. import domain
from . import util
from .models import DBUser, DBUserToken
from .tokens import MAX_TOKEN_LENGTH

logger = logging.getLogger(__name__)

TokenData = Tuple[DBUserToken, DBUser]


@util.retrying
def validate(token: Optional[str]) -> Optional[domain.User]:
    """
    Get the user that owns ``token``, if the token is currently valid.

    A token is rejected if it is unknown, if it has expired, or if its owner
    no longer exists. The reason is deliberately not exposed to the caller.

    Parameters
    ----------
    token : str
        The token value presented with a request.

    Returns
    -------
    :class:`.domain.User` or None
        ``None`` means the token is not valid.

    Raises
    ------
    :class:`.StorageUnavailable`
        The database could not be consulted. This is not the same as an
        invalid token, and should not be treated as one.

    """
    if not token or len(token) > MAX_TOKEN_LENGTH or not token.isascii():
        logger.debug('Rejected token: malformed')
        return None

    as_of = util.now()
    with util.transaction() as session:
        data: Optional[TokenData] = (
            session.query(DBUserToken, DBUser)
            .outerjoin(DBUser, DBUser.id == DBUserToken.user_id)
            .filter(DBUserToken.token == token)
            .first()
        )
        if data is None:
            logger.debug('Rejected token: unknown')
            return None

        db_token, db_user = data
        if not hmac.compare_digest(db_token.token.encode('utf-8'),
                                   token.encode('utf-8')):
            logger.debug('Rejected token: mismatch')
            return None

        user_token = db_token.to_domain()
        if user_token.is_expired(as_of):
            logger.debug('Rejected token %s: expired at %s', db_token.id,
                         user_token.expires_at)
            return None

        if db_user is None:
            logger.warning('Rejected token %s: owner %s does not exist',
                           db_token.id, db_token.user_id)
            return None

        return db_user.to_domain()
