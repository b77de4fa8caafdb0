"""Exception types shared by the API and the playback core."""
from __future__ import annotations


class ReelboxError(Exception):
    """Base class for every error Reelbox raises on purpose."""


class ProxyValidationError(ReelboxError):
    """A /proxy-video request that must be rejected with a 400."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UpstreamError(ReelboxError):
    """The proxied host could not be reached."""

    status_code = 502


class StorageError(ReelboxError):
    """The object storage service returned an error."""


class TMDBError(ReelboxError):
    """The metadata service failed or is not configured."""
