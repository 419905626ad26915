"""
Durable storage for accounts and their API tokens.

:mod:`.accounts` maps Discord identities to local accounts, :mod:`.tokens`
issues and manages the named tokens owned by an account, and
:mod:`.authenticate` resolves a presented token back to its account on each
request.
"""

from . import exceptions, models, util, accounts, tokens, authenticate
from .util import create_all, init_app, current_session, drop_all, \
    is_available, transaction
from .authenticate import validate
