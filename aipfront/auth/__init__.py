"""
Attach the account behind a presented user token to each request.

Intended for use in a Flask application factory, for example:

.. code-block:: python

   from flask import Flask
   from aipfront import auth, store


   def create_web_app() -> Flask:
       app = Flask('someapp')
       store.init_app(app)
       auth.Auth(app)    # <- Install the Auth extension.
       return app

Routes can then read the authenticated :class:`.domain.User` (or ``None``)
from ``flask.request.auth``, or require one with
:func:`.decorators.authenticated`.
"""

from typing import Optional
import logging

from flask import Flask, request

from . import decorators
from .. import domain, store

logger = logging.getLogger(__name__)


class Auth(object):
    """Resolves the user token presented with a request, if any."""

    def __init__(self, app: Optional[Flask] = None) -> None:
        """
        Initialize ``app`` with the token loader.

        Parameters
        ----------
        app : :class:`Flask`

        """
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """
        Attach :meth:`.load_user` to the Flask app.

        Parameters
        ----------
        app : :class:`Flask`

        """
        self.app = app
        self.app.config.setdefault('AUTH_TOKEN_HEADER', 'X-Auth-Token')
        self.app.before_request(self.load_user)

        @self.app.teardown_request
        def teardown_request(exception: Optional[BaseException]) -> None:
            session = store.current_session()
            if exception:
                session.rollback()
            session.remove()

    def get_token(self) -> Optional[str]:
        """
        Get the token value presented with the current request.

        The configured header (``X-Auth-Token`` by default) takes precedence
        over an ``Authorization: Bearer`` header.
        """
        header = self.app.config['AUTH_TOKEN_HEADER']
        token: Optional[str] = request.headers.get(header)
        if token:
            return token.strip()
        authorization = request.headers.get('Authorization')
        if not authorization:
            return None
        scheme, _, value = authorization.partition(' ')
        if scheme.lower() != 'bearer' or not value:
            return None
        return value.strip()

    def load_user(self) -> None:
        """
        Validate the presented token and attach its user to the request.

        ``request.auth`` is ``None`` if no token was presented or the token is
        not valid. If the database is unavailable, :class:`.StorageUnavailable`
        propagates so that the request fails instead of proceeding as
        anonymous.
        """
        user: Optional[domain.User] = None
        token = self.get_token()
        if token:
            user = store.validate(token)
            if user is None:
                logger.debug('Presented token is not valid')
        request.auth = user
