"""JSON routes for managing the user tokens of the authenticated user."""

from typing import Any, Optional, Tuple
from datetime import datetime, timedelta
from http import HTTPStatus
import logging

import dateutil.parser
from pytz import UTC
from flask import Blueprint, Response, jsonify, request
from werkzeug.exceptions import BadRequest, NotFound, ServiceUnavailable

from . import domain
from .auth.decorators import authenticated
from .store import exceptions, tokens, util

logger = logging.getLogger(__name__)

blueprint = Blueprint('api', __name__, url_prefix='/api')

ResponseData = Tuple[Response, int]


@blueprint.route('/healthz', methods=['GET'])
def health_check() -> ResponseData:
    """Report whether the database is reachable."""
    if not util.is_available():
        raise ServiceUnavailable('Database is unavailable')
    return jsonify({'status': 'OK'}), HTTPStatus.OK


@blueprint.route('/whoami', methods=['GET'])
@authenticated()
def whoami() -> ResponseData:
    """Get the user that owns the presented token."""
    return jsonify(domain.to_dict(request.auth)), HTTPStatus.OK


@blueprint.route('/user_tokens', methods=['GET'])
@authenticated()
def list_user_tokens() -> ResponseData:
    """Get the unexpired tokens of the authenticated user."""
    user_tokens = tokens.list_tokens(request.auth.user_id)
    return jsonify({'tokens': domain.to_dict(user_tokens)}), HTTPStatus.OK


@blueprint.route('/user_token', methods=['POST'])
@authenticated()
def create_user_token() -> ResponseData:
    """
    Issue a new token for the authenticated user.

    The request body is a JSON object with a ``name``, and optionally either
    ``expires_at`` (UNIX time, or an ISO-8601 string) or ``ttl`` (seconds).
    The response is the only place where the token value is ever returned.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest('Expected a JSON object')
    name = data.get('name')
    if not isinstance(name, str):
        raise BadRequest('Token name is required')
    try:
        user_token = tokens.issue(
            request.auth.user_id,
            name,
            ttl=_parse_ttl(data.get('ttl')),
            expires_at=_parse_expires_at(data.get('expires_at'))
        )
    except ValueError as e:
        raise BadRequest(str(e)) from e
    return jsonify(domain.to_dict(user_token)), HTTPStatus.CREATED


@blueprint.route('/user_token/<int:token_id>', methods=['DELETE'])
@authenticated()
def delete_user_token(token_id: int) -> ResponseData:
    """Revoke one of the authenticated user's tokens."""
    try:
        tokens.revoke(request.auth.user_id, token_id)
    except exceptions.NoSuchToken as e:
        raise NotFound('Token not found') from e
    return jsonify({}), HTTPStatus.OK


def _parse_ttl(value: Any) -> Optional[timedelta]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError('ttl must be a number of seconds')
    try:
        return timedelta(seconds=value)
    except OverflowError as e:
        raise ValueError('ttl is too large') from e


def _parse_expires_at(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError('Invalid timestamp for expires_at')
    if isinstance(value, (int, float)):
        try:
            return util.from_epoch(int(value))
        except (OverflowError, OSError) as e:
            raise ValueError('Invalid timestamp for expires_at') from e
    if isinstance(value, str):
        try:
            parsed: datetime = dateutil.parser.isoparse(value)
        except ValueError as e:
            raise ValueError('Invalid timestamp for expires_at') from e
        if parsed.tzinfo is None:
            return UTC.localize(parsed)
        return parsed
    raise ValueError('Invalid timestamp for expires_at')
