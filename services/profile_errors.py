"""Errors raised while updating a profile image."""

from __future__ import annotations


class UpdateError(Exception):
    """Base class for profile image update failures."""


class Unauthenticated(UpdateError):
    """No actor could be resolved for the request."""

    def __init__(self, message: str = "User not authenticated") -> None:
        super().__init__(message)


class AuthoritativeWriteFailed(UpdateError):
    """The profile record write did not land; nothing downstream ran."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"Failed to update profile record: {cause}")
        self.cause = cause


class CacheRefreshFailed(UpdateError):
    """The cache could not be refreshed after a successful write. Never surfaced to callers."""

    def __init__(self, reference: str, cause: BaseException) -> None:
        super().__init__(f"Failed to cache image {reference!r}: {cause}")
        self.reference = reference
        self.cause = cause
