"""Exception taxonomy shared by the publisher, playback and server packages."""

from enum import Enum
from typing import Optional


class StreamingError(Exception):
    """
    Base exception class for all streaming-related errors.

    Every error carries a human-readable reason suitable for display.
    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class SegmentationFailed(StreamingError):
    """
    Raised when segmentation yields zero chunks or the segmenter cannot run.
    """
    pass


class InitRejected(StreamingError):
    """
    Raised when the server refuses to open an upload session.
    """

    def __init__(self, reason: str, status_code: Optional[int] = None):
        super().__init__(reason)
        self.status_code = status_code


class ChunkTransferFailed(StreamingError):
    """
    Raised when a chunk transfer is not acknowledged by the server.
    """

    def __init__(self, index: int, reason: str = "", status_code: Optional[int] = None):
        super().__init__(reason or f"Chunk {index} was not acknowledged")
        self.index = index
        self.status_code = status_code


class CompleteFailed(StreamingError):
    """
    Raised when all chunks were accepted but the server refused to publish the asset.
    """

    def __init__(self, reason: str, status_code: Optional[int] = None):
        super().__init__(reason)
        self.status_code = status_code


class ManifestErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    UNREACHABLE = "unreachable"


class ManifestUnavailable(StreamingError):
    """
    Raised when a manifest cannot be resolved.

    `kind` distinguishes a missing asset from a server that could not be reached.
    """

    def __init__(self, kind: ManifestErrorKind, reason: str = ""):
        if not reason:
            reason = "Asset not found" if kind == ManifestErrorKind.NOT_FOUND else "Server unreachable, try again"
        super().__init__(reason)
        self.kind = kind


class WireContractError(StreamingError):
    """
    Raised when a response does not match the published wire contract.
    """
    pass


class ChecksumMismatchError(StreamingError):
    """
    Raised when retrieved bytes do not match their published digest.
    """

    def __init__(self, reason: str, index: Optional[int] = None):
        super().__init__(reason)
        self.index = index


class FaultKind(str, Enum):
    TRANSPORT = "transport"
    DECODE = "decode"
    OTHER = "other"


class PlaybackUnsupported(StreamingError):
    """
    Raised when no playback technology is available for the media sink.
    """
    pass


class PlaybackFault(StreamingError):
    """Base class for faults raised by the media pipeline during playback."""

    kind: FaultKind = FaultKind.OTHER


class PlaybackTransportFault(PlaybackFault):
    """
    Recoverable fault: data could not be fetched. Loading resumes in place.
    """

    kind = FaultKind.TRANSPORT


class PlaybackDecodeFault(PlaybackFault):
    """
    Recoverable fault: the decoder rejected data. Only the decoder is reset.
    """

    kind = FaultKind.DECODE


class PlaybackFatalFault(PlaybackFault):
    """
    Unrecoverable fault: playback stops and no further recovery is attempted.
    """

    kind = FaultKind.OTHER
