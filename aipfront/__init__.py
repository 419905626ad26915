"""
Accounts and user API tokens for the aip-front web front-end.

Users sign in with Discord. The sign-in flow itself lives elsewhere; once it
has verified an identity, it hands the Discord id, name and avatar to
:func:`aipfront.store.accounts.upsert`, which creates the account on the first
sign-in and refreshes it on later ones.

Signed-in users may then issue named API tokens
(:func:`aipfront.store.tokens.issue`), each optionally expiring, and present
them with later requests. :func:`aipfront.store.validate` resolves a
presented token to its account.

Quick start
-----------

.. code-block:: python

   from flask import Flask
   from aipfront import auth, store


   def create_web_app() -> Flask:
       app = Flask('foo')
       app.config['SQLALCHEMY_DATABASE_URI'] = 'sqlite:///aipfront.db'
       store.init_app(app)
       auth.Auth(app)    # <- Resolves X-Auth-Token into request.auth
       return app

See :mod:`aipfront.factory` for a complete application with token management
routes, and :mod:`aipfront.cli` for administrative commands.
"""

from .domain import User, UserToken
