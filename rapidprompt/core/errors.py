# rapidprompt/core/errors.py


class RapidPromptError(Exception):
    """Base class for errors that carry a user-displayable message."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationIncomplete(RapidPromptError):
    """Required extraction fields are missing. Raised before any external call."""


class SourceUnavailable(RapidPromptError):
    """A scan, read or fetch failed (missing path, unreadable file, HTTP error)."""


class ValidationFailed(RapidPromptError):
    """A session file or a collaborator response has the wrong shape."""


class UserCancelled(RapidPromptError):
    """A dialog was dismissed. Callers treat this as a no-op."""


class IoDenied(RapidPromptError):
    """A write or export failed."""
