"""Error taxonomy shared by the engine and the storage adapters.

Every error carries a ``kind`` so presentation code can pick a
human-readable message without inspecting the exception type.
"""

from __future__ import annotations

from typing import Optional


class FinTrackError(Exception):
    """Base class for all FinTrack failures."""

    kind = 'error'


class ValidationError(FinTrackError, ValueError):
    """A required field is missing or invalid; raised before any write."""

    kind = 'validation'

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(ValidationError):
    """The referenced record does not exist for this user."""

    kind = 'not_found'


class AuthError(FinTrackError):
    """A user-scoped operation was attempted without a signed-in user."""

    kind = 'auth'

    def __init__(self, message: str = 'User not authenticated'):
        super().__init__(message)


class StorageError(FinTrackError):
    """The storage adapter call itself failed."""

    kind = 'storage'
