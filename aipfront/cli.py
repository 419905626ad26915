"""
Administrative commands for the account and token store.

.. code-block:: bash

   $ DATABASE_URL=sqlite:///aipfront.db aipfront create-db
   $ aipfront add-user 80351110224678912 alice --avatar 8342729096ea3675
   $ aipfront issue-token 80351110224678912 ci-token --ttl 3600
   Cz2jv0b7bQ9...
   $ aipfront purge-expired --forever

Run ``purge-expired --forever`` as a long-lived process (or ``purge-expired``
from cron) to keep expired tokens from piling up in the database. Expired
tokens are rejected on validation whether or not they have been purged yet.
"""

from datetime import timedelta
import logging
import time

import click
from flask import Flask

from .factory import create_web_app
from .store import accounts, exceptions, tokens, util

logger = logging.getLogger(__name__)


@click.group()
@click.pass_context
def main(ctx: click.Context) -> None:
    """Manage aip-front accounts and user tokens."""
    if ctx.obj is None:
        ctx.obj = create_web_app()


@main.command('create-db')
@click.pass_obj
def create_db(app: Flask) -> None:
    """Create the users and user_tokens tables."""
    with app.app_context():
        util.create_all()
    click.echo('Created tables')


@main.command('purge-expired')
@click.option('--interval', type=click.IntRange(min=1), default=None,
              help='Keep running, purging every INTERVAL seconds.')
@click.option('--forever', is_flag=True,
              help='Keep running, purging every TOKEN_PURGE_INTERVAL '
                   'seconds.')
@click.pass_obj
def purge_expired(app: Flask, interval: int, forever: bool) -> None:
    """Delete tokens that have expired."""
    if forever and interval is None:
        interval = app.config['TOKEN_PURGE_INTERVAL']
    while True:
        try:
            with app.app_context():
                count = tokens.purge_expired()
        except exceptions.StorageUnavailable as e:
            if interval is None:
                raise click.ClickException(f'Storage unavailable: {e}')
            logger.error('Purge failed, will try again: %s', e)
        else:
            click.echo(f'Purged {count} expired tokens')
        if interval is None:
            return
        time.sleep(interval)


@main.command('add-user')
@click.argument('discord_id')
@click.argument('username')
@click.option('--avatar', 'avatar_hash', default=None,
              help='Discord avatar hash of the user.')
@click.pass_obj
def add_user(app: Flask, discord_id: str, username: str,
             avatar_hash: str) -> None:
    """Create or refresh the account of DISCORD_ID, as on sign-in."""
    avatar_url = util.discord_avatar_url(discord_id, avatar_hash) \
        if avatar_hash else ''
    with app.app_context():
        try:
            user = accounts.upsert(discord_id, username, avatar_url)
        except ValueError as e:
            raise click.ClickException(str(e)) from e
    click.echo(f'User {user.user_id}: {user.username}')


@main.command('issue-token')
@click.argument('discord_id')
@click.argument('name')
@click.option('--ttl', type=click.IntRange(min=1), default=None,
              help='Seconds until the token expires. Default: never.')
@click.pass_obj
def issue_token(app: Flask, discord_id: str, name: str, ttl: int) -> None:
    """Issue a token for the account of DISCORD_ID, and print it."""
    with app.app_context():
        try:
            user = accounts.get_user_by_discord_id(discord_id)
        except exceptions.NoSuchUser as e:
            raise click.ClickException(f'No account for {discord_id}') from e
        try:
            user_token = tokens.issue(
                user.user_id, name,
                ttl=timedelta(seconds=ttl) if ttl is not None else None
            )
        except ValueError as e:
            raise click.ClickException(str(e)) from e
    click.echo(user_token.token)


@main.command('delete-user')
@click.argument('discord_id')
@click.confirmation_option(prompt='This also deletes all of their tokens. '
                                  'Continue?')
@click.pass_obj
def delete_user(app: Flask, discord_id: str) -> None:
    """Delete the account of DISCORD_ID, and all of its tokens."""
    with app.app_context():
        try:
            user = accounts.get_user_by_discord_id(discord_id)
            accounts.delete(user.user_id)
        except exceptions.NoSuchUser as e:
            raise click.ClickException(f'No account for {discord_id}') from e
    click.echo(f'Deleted user {user.user_id}')
