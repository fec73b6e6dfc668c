"""Exception taxonomy shared by every twdl component.

Fatal errors (config, auth, API failures outside a per-clip download) end the
invocation. Derivation and storage errors are captured per clip and only show
up in the batch summary.
"""

from typing import Optional


class TwdlError(Exception):
    """Base class for all errors raised by twdl."""


class ConfigError(TwdlError):
    """Invalid flags, credentials file, time range or chunk size."""


class AuthError(TwdlError):
    """The client-credentials exchange was rejected or unreadable."""


class ApiError(TwdlError):
    """Non-2xx response or transport failure talking to Twitch."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(ApiError):
    """The API answered successfully but returned no matching record."""


class ParseError(TwdlError):
    """The API returned a body that is not the expected JSON shape."""


class DerivationError(TwdlError):
    """A thumbnail URL does not have the shape a media URL can be derived from."""


class StorageError(TwdlError):
    """Writing a clip artifact to disk failed."""
