"""Media sinks: destinations that decode (or store) verified chunk payloads."""

from pathlib import Path
from typing import Optional, Protocol

from common.constants import CHUNK_MIME_TYPE
from common.exceptions import PlaybackDecodeFault, PlaybackFatalFault
from common.logging_config import get_logger

logger = get_logger(__name__)

CONTAINER_BOX_TYPES = (b'ftyp', b'styp', b'moov', b'moof', b'sidx')


def looks_like_fragmented_mp4(payload: bytes) -> bool:
    """Check that a payload starts with an ISO-BMFF box a decoder can begin on."""
    return len(payload) >= 8 and payload[4:8] in CONTAINER_BOX_TYPES


class MediaSink(Protocol):
    """Decode pipeline the playback session feeds with chunk payloads."""

    def supports(self, mime_type: str) -> bool: ...

    def append(self, index: int, payload: bytes) -> None: ...

    def reset_decoder(self) -> None: ...

    def close(self) -> None: ...

    def attach_url(self, url: str) -> None:
        """Hand a playlist URL to a sink that fetches the media itself."""
        raise NotImplementedError(f"{type(self).__name__} cannot play a playlist URL")


class MemorySink:
    """
    Keeps appended segments in memory, in index order.

    Args:
        strict_container: Reject payloads that are not ISO-BMFF fragments
        mime_types: Media types this sink can decode
    """

    def __init__(self, strict_container: bool = False, mime_types: tuple[str, ...] = (CHUNK_MIME_TYPE,)):
        self.strict_container = strict_container
        self.mime_types = mime_types
        self.segments: dict[int, bytes] = {}
        self.attached_url: Optional[str] = None
        self.decoder_resets = 0
        self.closed = False

    def supports(self, mime_type: str) -> bool:
        return mime_type in self.mime_types

    def attach_url(self, url: str) -> None:
        self.attached_url = url

    def append(self, index: int, payload: bytes) -> None:
        if self.strict_container and not looks_like_fragmented_mp4(payload):
            raise PlaybackDecodeFault(f"Segment {index} is not a fragmented MP4")
        self.segments[index] = payload

    def reset_decoder(self) -> None:
        self.decoder_resets += 1

    def close(self) -> None:
        self.closed = True

    @property
    def data(self) -> bytes:
        return b''.join(self.segments[i] for i in sorted(self.segments))


class FileSink:
    """Writes decoded segments to a local file in playback order."""

    def __init__(self, path: Path, strict_container: bool = False):
        self.path = Path(path)
        self.strict_container = strict_container
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, 'wb')
        self._next_index = 1
        self.decoder_resets = 0

    def supports(self, mime_type: str) -> bool:
        return mime_type == CHUNK_MIME_TYPE

    def append(self, index: int, payload: bytes) -> None:
        if index != self._next_index:
            raise PlaybackDecodeFault(f"Segment {index} arrived out of order, expected {self._next_index}")
        if self.strict_container and not looks_like_fragmented_mp4(payload):
            raise PlaybackDecodeFault(f"Segment {index} is not a fragmented MP4")
        try:
            self._file.write(payload)
            self._file.flush()
        except (OSError, ValueError) as e:
            raise PlaybackFatalFault(f"Cannot write segment {index} to {self.path}: {e}") from e
        self._next_index += 1

    def reset_decoder(self) -> None:
        self.decoder_resets += 1
        logger.debug(f"Decoder reset for {self.path} at segment {self._next_index}")

    def close(self) -> None:
        if self._file and not self._file.closed:
            self._file.close()

    @property
    def bytes_written(self) -> Optional[int]:
        return self.path.stat().st_size if self.path.exists() else None
