"""Exception hierarchy shared by the service, API and CLI layers."""

from typing import Optional


class DorsuConnectError(Exception):
    """Base class for all application errors."""


class ConfigurationError(DorsuConnectError):
    """A required setting is missing or invalid."""


class DataFileError(DorsuConnectError):
    """The knowledge dataset could not be read or parsed."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class EmbeddingError(DorsuConnectError):
    """The embedding model failed to load or encode."""


class StoreError(DorsuConnectError):
    """The knowledge store rejected a read or write."""


class AuthenticationError(DorsuConnectError):
    """
    Login or token verification failed.

    ``message`` is safe to show to the client as-is.
    """

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)
        self.message = message


class RegistrationError(DorsuConnectError):
    """An account could not be created or updated (duplicate email, bad input)."""
