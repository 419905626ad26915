"""Tests for :mod:`aipfront.store.tokens`."""

from unittest import TestCase, mock
from datetime import datetime, timedelta

from pytz import FixedOffset

from hypothesis import given, settings
from hypothesis import strategies as st

from .. import accounts, exceptions, models, tokens, util
from .util import temporary_db


class TestGenerateToken(TestCase):
    """Tests for :func:`.tokens.generate_token`."""

    def test_generate_token(self):
        """Generated values are URL-safe, and fit in the token column."""
        value = tokens.generate_token()
        self.assertGreaterEqual(len(value), 43, '256 bits of entropy')
        self.assertLessEqual(len(value), tokens.MAX_TOKEN_LENGTH)
        self.assertRegex(value, r'^[A-Za-z0-9_-]+$')

    def test_generated_tokens_differ(self):
        """Two generated values are not the same."""
        self.assertNotEqual(tokens.generate_token(), tokens.generate_token())


class TestIssue(TestCase):
    """Tests for :func:`.tokens.issue`."""

    def test_issue(self):
        """A token is issued with its secret value."""
        with temporary_db() as db_session:
            user = accounts.upsert('disc-123', 'alice', 'https://a/1.png')
            user_token = tokens.issue(user.user_id, 'ci-token')

            self.assertEqual(user_token.user_id, user.user_id)
            self.assertEqual(user_token.name, 'ci-token')
            self.assertIsNotNone(user_token.token_id)
            self.assertIsNotNone(user_token.token)
            self.assertIsNone(user_token.expires_at, 'Never expires')
            self.assertIsNotNone(user_token.created_at)

            db_token = db_session.get(models.DBUserToken, user_token.token_id)
            self.assertEqual(db_token.token, user_token.token)

    def test_issue_with_ttl(self):
        """The expiry is relative to the time of issue."""
        with temporary_db():
            user = accounts.upsert('disc-123', 'alice', 'https://a/1.png')
            user_token = tokens.issue(user.user_id, 'ci-token',
                                      ttl=timedelta(hours=1))
            self.assertEqual(user_token.expires_at - user_token.created_at,
                             timedelta(hours=1))

    def test_issue_with_expires_at(self):
        """An absolute expiry time is stored as given."""
        with temporary_db():
            user = accounts.upsert('disc-123', 'alice', 'https://a/1.png')
            expires_at = util.from_epoch(int(util.now().timestamp()) + 3600)
            user_token = tokens.issue(user.user_id, 'ci-token',
                                      expires_at=expires_at)
            self.assertEqual(user_token.expires_at, expires_at)
            listed, = tokens.list_tokens(user.user_id)
            self.assertEqual(listed.expires_at, expires_at)

    def test_many_tokens_per_user(self):
        """A user may hold any number of tokens, even with the same name."""
        with temporary_db():
            user = accounts.upsert('disc-123', 'alice', 'https://a/1.png')
            first = tokens.issue(user.user_id, 'ci-token')
            second = tokens.issue(user.user_id, 'ci-token')
            self.assertNotEqual(first.token_id, second.token_id)
            self.assertNotEqual(first.token, second.token)
            self.assertEqual(len(tokens.list_tokens(user.user_id)), 2)

    def test_unknown_owner(self):
        """Tokens cannot be issued for a user who does not exist."""
        with temporary_db() as db_session:
            with self.assertRaises(exceptions.UnknownOwner):
                tokens.issue(42, 'ci-token')
            self.assertEqual(db_session.query(models.DBUserToken).count(), 0)

    def test_name_is_required(self):
        """The token must have a name."""
        with temporary_db():
            user = accounts.upsert('disc-123', 'alice', 'https://a/1.png')
            for name in ('', '   ', None):
                with self.assertRaises(ValueError):
                    tokens.issue(user.user_id, name)

    def test_name_is_stripped(self):
        """Surrounding whitespace is removed from the name."""
        with temporary_db():
            user = accounts.upsert('disc-123', 'alice', 'https://a/1.png')
            user_token = tokens.issue(user.user_id, '  ci-token ')
            self.assertEqual(user_token.name, 'ci-token')

    def test_name_too_long(self):
        """Names that do not fit in the name column are rejected."""
        with temporary_db():
            user = accounts.upsert('disc-123', 'alice', 'https://a/1.png')
            with self.assertRaises(ValueError):
                tokens.issue(user.user_id, 'x' * (tokens.MAX_NAME_LENGTH + 1))

    def test_bad_expiry(self):
        """Expiry must be in the future, and given only one way."""
        with temporary_db():
            user = accounts.upsert('disc-123', 'alice', 'https://a/1.png')
            with self.assertRaises(ValueError):
                tokens.issue(user.user_id, 'ci-token', ttl=timedelta(0))
            with self.assertRaises(ValueError):
                tokens.issue(user.user_id, 'ci-token',
                             ttl=timedelta(seconds=-1))
            with self.assertRaises(ValueError):
                tokens.issue(user.user_id, 'ci-token',
                             expires_at=util.now() - timedelta(seconds=1))
            with self.assertRaises(ValueError):
                tokens.issue(user.user_id, 'ci-token',
                             ttl=timedelta(hours=1),
                             expires_at=util.now() + timedelta(hours=1))
            with self.assertRaises(ValueError):
                tokens.issue(user.user_id, 'ci-token',
                             ttl=timedelta.max)
            with self.assertRaises(ValueError):
                tokens.issue(user.user_id, 'ci-token',
                             expires_at=datetime(9999, 12, 31, 23,
                                                 tzinfo=FixedOffset(-300)))
            self.assertEqual(tokens.list_tokens(user.user_id), [])

    @mock.patch(f'{tokens.__name__}.generate_token')
    def test_collision(self, mock_generate_token):
        """A value that collides with an existing token is regenerated."""
        mock_generate_token.side_effect = ['a' * 43, 'a' * 43, 'b' * 43]
        with temporary_db():
            user = accounts.upsert('disc-123', 'alice', 'https://a/1.png')
            first = tokens.issue(user.user_id, 'one')
            second = tokens.issue(user.user_id, 'two')
            self.assertEqual(first.token, 'a' * 43)
            self.assertEqual(second.token, 'b' * 43)
            self.assertEqual(mock_generate_token.call_count, 3)

    @mock.patch(f'{tokens.__name__}.generate_token')
    def test_collision_across_users(self, mock_generate_token):
        """Token values are unique across all users, not just per user."""
        mock_generate_token.side_effect = ['a' * 43, 'a' * 43, 'b' * 43]
        with temporary_db():
            alice = accounts.upsert('disc-123', 'alice', 'https://a/1.png')
            bob = accounts.upsert('disc-456', 'bob', 'https://b/1.png')
            tokens.issue(alice.user_id, 'one')
            bobs = tokens.issue(bob.user_id, 'two')
            self.assertEqual(bobs.token, 'b' * 43)

    @mock.patch(f'{tokens.__name__}.generate_token')
    def test_generation_failed(self, mock_generate_token):
        """Issuing gives up if no unused value can be found."""
        mock_generate_token.return_value = 'a' * 43
        with temporary_db():
            user = accounts.upsert('disc-123', 'alice', 'https://a/1.png')
            tokens.issue(user.user_id, 'one')
            with self.assertRaises(exceptions.TokenGenerationFailed):
                tokens.issue(user.user_id, 'two')
            self.assertEqual(mock_generate_token.call_count,
                             1 + tokens.MAX_ISSUE_ATTEMPTS)
            self.assertEqual(len(tokens.list_tokens(user.user_id)), 1)

    def test_generation_failed_is_unavailable(self):
        """Callers that handle an unavailable store also handle this."""
        self.assertTrue(issubclass(exceptions.TokenGenerationFailed,
                                   exceptions.StorageUnavailable))


class TestRevoke(TestCase):
    """Tests for :func:`.tokens.revoke`."""

    def test_revoke(self):
        """A revoked token is gone."""
        with temporary_db():
            user = accounts.upsert('disc-123', 'alice', 'https://a/1.png')
            keep = tokens.issue(user.user_id, 'keep')
            drop = tokens.issue(user.user_id, 'drop')
            tokens.revoke(user.user_id, drop.token_id)
            self.assertEqual(
                [t.token_id for t in tokens.list_tokens(user.user_id)],
                [keep.token_id]
            )

    def test_revoke_twice(self):
        """Revoking a token that is already gone raises NoSuchToken."""
        with temporary_db():
            user = accounts.upsert('disc-123', 'alice', 'https://a/1.png')
            user_token = tokens.issue(user.user_id, 'ci-token')
            tokens.revoke(user.user_id, user_token.token_id)
            with self.assertRaises(exceptions.NoSuchToken):
                tokens.revoke(user.user_id, user_token.token_id)

    def test_revoke_someone_elses_token(self):
        """A user cannot revoke a token they do not own."""
        with temporary_db():
            alice = accounts.upsert('disc-123', 'alice', 'https://a/1.png')
            bob = accounts.upsert('disc-456', 'bob', 'https://b/1.png')
            bobs = tokens.issue(bob.user_id, 'ci-token')
            with self.assertRaises(exceptions.NoSuchToken):
                tokens.revoke(alice.user_id, bobs.token_id)
            self.assertEqual(len(tokens.list_tokens(bob.user_id)), 1)


class TestListTokens(TestCase):
    """Tests for :func:`.tokens.list_tokens`."""

    def test_list_tokens(self):
        """Tokens are listed oldest first, without their secret values."""
        with temporary_db():
            user = accounts.upsert('disc-123', 'alice', 'https://a/1.png')
            issued = [tokens.issue(user.user_id, name)
                      for name in ('one', 'two', 'three')]
            listed = tokens.list_tokens(user.user_id)
            self.assertEqual([t.token_id for t in listed],
                             [t.token_id for t in issued])
            self.assertEqual([t.name for t in listed],
                             ['one', 'two', 'three'])
            for user_token in listed:
                self.assertIsNone(user_token.token, 'Secret is not exposed')

    def test_list_only_own_tokens(self):
        """Other users' tokens are not listed."""
        with temporary_db():
            alice = accounts.upsert('disc-123', 'alice', 'https://a/1.png')
            bob = accounts.upsert('disc-456', 'bob', 'https://b/1.png')
            tokens.issue(bob.user_id, 'ci-token')
            self.assertEqual(tokens.list_tokens(alice.user_id), [])

    def test_expired_tokens_are_hidden(self):
        """Tokens past their expiry are not listed, purged or not."""
        with temporary_db():
            user = accounts.upsert('disc-123', 'alice', 'https://a/1.png')
            forever = tokens.issue(user.user_id, 'forever')
            tokens.issue(user.user_id, 'short', ttl=timedelta(minutes=1))
            later = util.now() + timedelta(hours=1)
            with mock.patch(f'{util.__name__}.now', return_value=later):
                listed = tokens.list_tokens(user.user_id)
            self.assertEqual([t.token_id for t in listed], [forever.token_id])


class TestPurgeExpired(TestCase):
    """Tests for :func:`.tokens.purge_expired`."""

    def test_purge_expired(self):
        """Only tokens that have expired are deleted."""
        with temporary_db() as db_session:
            user = accounts.upsert('disc-123', 'alice', 'https://a/1.png')
            forever = tokens.issue(user.user_id, 'forever')
            short = tokens.issue(user.user_id, 'short',
                                 ttl=timedelta(minutes=1))
            long = tokens.issue(user.user_id, 'long', ttl=timedelta(days=1))

            self.assertEqual(tokens.purge_expired(), 0, 'Nothing expired yet')
            count = tokens.purge_expired(short.expires_at)
            self.assertEqual(count, 1, 'Expiry is inclusive')
            remaining = sorted(t.id for t in
                               db_session.query(models.DBUserToken))
            self.assertEqual(remaining,
                             sorted([forever.token_id, long.token_id]))

    def test_purge_is_idempotent(self):
        """Purging again deletes nothing more."""
        with temporary_db():
            user = accounts.upsert('disc-123', 'alice', 'https://a/1.png')
            tokens.issue(user.user_id, 'short', ttl=timedelta(minutes=1))
            later = util.now() + timedelta(hours=1)
            self.assertEqual(tokens.purge_expired(later), 1)
            self.assertEqual(tokens.purge_expired(later), 0)

    def test_purge_empty(self):
        """Purging an empty store is fine."""
        with temporary_db():
            self.assertEqual(tokens.purge_expired(), 0)


class TestIssueNames(TestCase):
    """Property tests for token names."""

    @given(st.text(min_size=1, max_size=tokens.MAX_NAME_LENGTH))
    @settings(max_examples=50, deadline=None)
    def test_any_name(self, name):
        """Any name that is not blank is stored as given, less whitespace."""
        with temporary_db():
            user = accounts.upsert('disc-123', 'alice', 'https://a/1.png')
            if not name.strip():
                with self.assertRaises(ValueError):
                    tokens.issue(user.user_id, name)
                return
            user_token = tokens.issue(user.user_id, name)
            listed, = tokens.list_tokens(user.user_id)
            self.assertEqual(listed.name, name.strip())
            self.assertEqual(user_token.name, name.strip())
