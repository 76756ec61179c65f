"""
Error taxonomy for social-context clustering.

Every error carries a ``context`` dict (user id, canopy id, ...) identifying
what was in progress when it was raised. Components add their own keys and
re-raise; nothing in the clustering core swallows an error to keep going.
"""

from typing import Any, Dict, Optional


class SocialContextError(Exception):
    """Base class for all clustering, ranking and storage errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = dict(context or {})

    def add_context(self, **kwargs: Any) -> "SocialContextError":
        """Attach identifying context without overwriting keys already set."""
        for key, value in kwargs.items():
            self.context.setdefault(key, value)
        return self

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v}" for k, v in sorted(self.context.items()))
        return f"{self.message} ({details})"


class ConfigurationError(SocialContextError):
    """Invalid thresholds or settings. Raised before any clustering work."""

    pass


class MalformedProfile(SocialContextError):
    """A profile lacks the features needed to compute a distance."""

    pass


class NotFound(SocialContextError):
    """A profile or user is absent from storage."""

    pass


class StorageFailure(SocialContextError):
    """Any I/O failure reported by a storage collaborator."""

    pass
