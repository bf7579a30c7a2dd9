"""Email normalization and hashing for Gravatar lookups."""

import hashlib


class EmptyStringError(ValueError):
    """Raised when a required string parameter is empty or whitespace."""

    def __init__(self, message: str = "String parameter is empty"):
        super().__init__(message)


def assert_non_empty(value: str) -> None:
    """Raise EmptyStringError if value is empty or only whitespace."""
    if not value or not str(value).strip():
        raise EmptyStringError()


def normalize(email: str) -> str:
    """Normalize an email address (trimmed and lowercased)."""
    assert_non_empty(email)
    return str(email).strip().lower()


def generate_identifier(email: str) -> str:
    """
    Compute the Gravatar identifier for an email address.

    The identifier is the SHA-256 hex digest of the normalized email and is
    used as the profile, avatar and interests lookup key.
    """
    return hashlib.sha256(normalize(email).encode('utf-8')).hexdigest()
