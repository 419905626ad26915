"""Defines account and token concepts for the aip-front services."""

from typing import Any, Optional, NamedTuple
from datetime import datetime

from pytz import UTC


class User(NamedTuple):
    """An account, bound to exactly one Discord identity."""

    user_id: int
    """Surrogate identifier assigned by the store."""

    discord_id: str
    """The Discord user id. Immutable and unique across accounts."""

    username: str
    """Display name, refreshed on every sign-in."""

    avatar_url: str
    """Reference to the avatar asset, refreshed on every sign-in."""

    created_at: Optional[datetime] = None
    """When the account was first seen."""


class UserToken(NamedTuple):
    """A named API token belonging to a :class:`.User`."""

    token_id: int
    user_id: int
    name: str
    created_at: datetime

    expires_at: Optional[datetime] = None
    """If ``None``, the token never expires."""

    token: Optional[str] = None
    """
    The secret bearer value.

    This is only populated on the instance returned when the token is issued;
    tokens loaded later carry metadata only.
    """

    def is_expired(self, at: Optional[datetime] = None) -> bool:
        """Determine whether the token has expired as of ``at`` (or now)."""
        if self.expires_at is None:
            return False
        if at is None:
            at = datetime.now(tz=UTC)
        return self.expires_at <= at


def to_dict(obj: Any) -> Any:
    """Generate a JSON-friendly dict representation of a domain object."""
    if isinstance(obj, tuple) and hasattr(obj, '_asdict'):
        return {k: to_dict(v) for k, v in obj._asdict().items()}
    if isinstance(obj, list):
        return [to_dict(o) for o in obj]
    if isinstance(obj, datetime):
        return obj.isoformat()
    return obj
