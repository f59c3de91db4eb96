"""Custom exception classes for the reference server."""


class ServerError(Exception):
    """
    Base exception class for all server-side errors.
    """
    pass


class UploadNotFoundError(ServerError):
    """
    Raised when an upload id does not name a pending session.
    """
    pass


class UploadSealedError(ServerError):
    """
    Raised when a call targets a session that has already been completed.
    """
    pass


class InvalidChunkIndexError(ServerError):
    """
    Raised when a chunk index falls outside the declared 1..N range.
    """
    pass


class ChecksumMismatchError(ServerError):
    """
    Raised when received bytes do not match their declared digest.
    """
    pass


class IncompleteUploadError(ServerError):
    """
    Raised when complete is requested before every chunk has arrived.
    """
    pass


class AssetNotFoundError(ServerError):
    """
    Raised when a requested asset has not been published.
    """
    pass


class MediaProcessingError(ServerError):
    """
    Raised when an uploaded source file cannot be segmented.
    """
    pass
