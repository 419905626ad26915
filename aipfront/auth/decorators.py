"""
Token-based authorization of user requests.

This module provides :func:`authenticated`, a decorator factory used to
protect Flask routes that act on behalf of a user. It relies on
:class:`aipfront.auth.Auth` having attached the user to the request.

.. code-block:: python

   from aipfront.auth.decorators import authenticated


   def is_owner(user: domain.User, user_id: int, **kwargs) -> bool:
       '''Check whether the authenticated user matches the requested user.'''
       return user.user_id == user_id


   @blueprint.route('/<int:user_id>/tokens', methods=['GET'])
   @authenticated(authorizer=is_owner)
   def get_tokens(user_id: int):
       ...

"""

from typing import Optional, Callable, Any
from functools import wraps
import logging

from flask import request
from werkzeug.exceptions import Unauthorized, Forbidden

logger = logging.getLogger(__name__)


def authenticated(authorizer: Optional[Callable] = None) -> Callable:
    """
    Generate a decorator that requires a valid user token.

    Parameters
    ----------
    authorizer : function
        Optional additional check, with the signature
        ``(user: domain.User, *args, **kwargs) -> bool``. ``*args`` and
        ``**kwargs`` are the parameters passed to the decorated function. If
        the authorizer returns ``False``, :class:`Forbidden` is raised.

    Returns
    -------
    function

    """
    def protector(func: Callable) -> Callable:
        """Decorator that requires an authenticated user."""
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            """
            Check for an authenticated user before executing the method.

            Raises
            ------
            :class:`.Unauthorized`
                No valid token was presented with the request.
            :class:`.Forbidden`
                The provided authorizer returned ``False``.

            """
            user = getattr(request, 'auth', None)
            if user is None:
                logger.debug('No valid token; aborting')
                raise Unauthorized('Missing or invalid token')

            if authorizer and not authorizer(user, *args, **kwargs):
                logger.debug('Authorizer returned negative result')
                raise Forbidden('Access denied')

            logger.debug('Request is authorized, proceeding')
            return func(*args, **kwargs)
        return wrapper
    return protector
