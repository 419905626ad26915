"""Exceptions."""


class NotFound(RuntimeError):
    """A requested record does not exist, or is not visible to the caller."""


class NoSuchUser(NotFound):
    """User does not exist."""


class NoSuchToken(NotFound):
    """Token does not exist, or does not belong to the requesting user."""


class UnknownOwner(RuntimeError):
    """Attempted to issue a token for a user that does not exist."""


class StorageUnavailable(RuntimeError):
    """The database could not be reached, or timed out. Safe to retry."""


class TokenGenerationFailed(StorageUnavailable):
    """Could not generate a unique token value in a bounded number of tries."""


class ConstraintViolation(RuntimeError):
    """The database rejected a write on an integrity constraint."""
