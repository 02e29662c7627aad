"""Exceptions raised by booxsync."""

from typing import Optional


class BooxSyncError(Exception):
    """Base class for all booxsync errors."""


class ConfigError(BooxSyncError):
    """Configuration is missing, malformed or invalid."""


class TransportError(BooxSyncError):
    """The library host could not be reached or did not answer in time."""


class HostUnreachableError(TransportError):
    """The library host is unreachable (device asleep or off the network)."""


class ListingError(BooxSyncError):
    """A library listing request failed or returned garbage."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class UploadError(BooxSyncError):
    """The library rejected an upload."""

    def __init__(self, path: str, status: int, reason: str, body: str):
        self.path = path
        self.status = status
        self.reason = reason
        self.body = body
        super().__init__(
            f"upload of {path} failed with {status} {reason}, body: {body}"
        )


class CreateFolderError(BooxSyncError):
    """The library refused to create a folder."""

    def __init__(self, path: str, status: Optional[int], reason: str, body: str):
        self.path = path
        self.status = status
        self.reason = reason
        self.body = body
        super().__init__(
            f"creating folder {path} failed with {status} {reason}, body: {body}"
        )
