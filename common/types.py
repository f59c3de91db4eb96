"""Shared data type definitions (SourceAsset, Chunk, UploadSession, Manifest, etc.)."""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional

from common.checksum import compute_digest, digest_file
from common.constants import READ_BLOCK_SIZE


@dataclass(frozen=True)
class SourceAsset:
    """
    The original media file handed to the publishing pipeline.
    """
    path: Path
    display_name: str
    size: int
    description: Optional[str] = None

    @classmethod
    def from_path(cls, path, description: Optional[str] = None) -> 'SourceAsset':
        """
        Build a SourceAsset from a local file.

        Args:
            path: Path to the media file
            description: Optional free-text description sent as fileContent

        Returns:
            SourceAsset instance

        Raises:
            ValueError: If the path is missing, not a file, or empty
        """
        path = Path(path)
        if not path.exists():
            raise ValueError(f"File not found: {path}")
        if not path.is_file():
            raise ValueError(f"Not a file: {path}")
        size = path.stat().st_size
        if size == 0:
            raise ValueError(f"File is empty: {path}")
        return cls(path=path, display_name=path.name, size=size, description=description)


class Chunk:
    """
    A contiguous, 1-based indexed segment of a SourceAsset.

    The payload lives either in a working file on disk (as produced by the
    segmenter) or in memory. The digest is computed on first access and cached.
    """

    def __init__(self, index: int, path: Optional[Path] = None, data: Optional[bytes] = None):
        if index < 1:
            raise ValueError(f"Chunk index must be >= 1, got {index}")
        if (path is None) == (data is None):
            raise ValueError("Chunk requires exactly one of path or data")
        self.index = index
        self.path = Path(path) if path is not None else None
        self._data = data
        self._digest: Optional[str] = None
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    @property
    def size(self) -> int:
        self._ensure_available()
        if self._data is not None:
            return len(self._data)
        return self.path.stat().st_size

    @property
    def digest(self) -> str:
        if self._digest is None:
            self._ensure_available()
            if self._data is not None:
                self._digest = compute_digest(self._data)
            else:
                self._digest = digest_file(self.path)
        return self._digest

    def read(self) -> bytes:
        """Return the full chunk payload."""
        self._ensure_available()
        if self._data is not None:
            return self._data
        return self.path.read_bytes()

    def iter_bytes(self, block_size: int = READ_BLOCK_SIZE) -> Iterator[bytes]:
        """Yield the payload in blocks without holding it all in memory."""
        self._ensure_available()
        if self._data is not None:
            for offset in range(0, len(self._data), block_size):
                yield self._data[offset:offset + block_size]
            return
        with open(self.path, 'rb') as f:
            while True:
                block = f.read(block_size)
                if not block:
                    break
                yield block

    def release(self) -> None:
        """Free the working buffer. The cached digest survives release."""
        if self._released:
            return
        self._data = None
        if self.path is not None:
            try:
                os.remove(self.path)
            except FileNotFoundError:
                pass
        self._released = True

    def _ensure_available(self) -> None:
        if self._released:
            raise ValueError(f"Chunk {self.index} has already been released")

    def __repr__(self) -> str:
        source = str(self.path) if self.path is not None else "memory"
        return f"Chunk(index={self.index}, source={source}, released={self._released})"


@dataclass
class UploadSession:
    """
    Server-assigned correlation context for one upload attempt.
    """
    upload_id: str
    expected_chunks: int
    file_hash: str
    acknowledged: set[int] = field(default_factory=set)
    sealed: bool = False

    def acknowledge(self, index: int) -> None:
        """
        Mark a chunk index as durably received by the server.

        Raises:
            ValueError: If the session is sealed or the index is out of range
        """
        if self.sealed:
            raise ValueError(f"Session {self.upload_id} is sealed")
        if not 1 <= index <= self.expected_chunks:
            raise ValueError(
                f"Chunk index {index} outside 1..{self.expected_chunks} for session {self.upload_id}"
            )
        self.acknowledged.add(index)

    def seal(self) -> None:
        if not self.is_complete:
            missing = sorted(set(range(1, self.expected_chunks + 1)) - self.acknowledged)
            raise ValueError(f"Cannot seal session {self.upload_id}: missing chunks {missing}")
        self.sealed = True

    @property
    def is_complete(self) -> bool:
        return len(self.acknowledged) == self.expected_chunks

    @property
    def progress(self) -> float:
        if self.expected_chunks == 0:
            return 0.0
        return len(self.acknowledged) / self.expected_chunks


class OutcomeStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class UploadOutcome:
    """
    Terminal state of a single upload attempt.
    """
    status: OutcomeStatus
    reason: str
    upload_id: Optional[str] = None
    failed_chunk_index: Optional[int] = None
    error: Optional[Exception] = field(default=None, compare=False)

    @classmethod
    def completed(cls, upload_id: str) -> 'UploadOutcome':
        return cls(status=OutcomeStatus.COMPLETED, reason="Upload complete", upload_id=upload_id)

    @classmethod
    def failed(
        cls,
        reason: str,
        upload_id: Optional[str] = None,
        failed_chunk_index: Optional[int] = None,
        error: Optional[Exception] = None
    ) -> 'UploadOutcome':
        return cls(
            status=OutcomeStatus.FAILED,
            reason=reason,
            upload_id=upload_id,
            failed_chunk_index=failed_chunk_index,
            error=error,
        )

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.COMPLETED


@dataclass(frozen=True)
class ManifestChunk:
    """
    Metadata for a single published chunk.
    """
    index: int
    digest: str


@dataclass(frozen=True)
class Manifest:
    """
    Server-published description of an asset's chunk layout and digests.
    """
    asset_id: str
    file_name: str
    file_size: int
    file_hash: str
    chunks: tuple[ManifestChunk, ...]

    @property
    def chunk_count(self) -> int:
        return len(self.chunks)

    def chunk(self, index: int) -> ManifestChunk:
        """
        Look up a chunk by its 1-based index.

        Raises:
            KeyError: If the manifest has no such chunk
        """
        if not 1 <= index <= len(self.chunks):
            raise KeyError(f"Manifest {self.asset_id} has no chunk {index}")
        return self.chunks[index - 1]


@dataclass(frozen=True)
class PlaybackState:
    """
    User-visible playback state. Owned by the playback engine.
    """
    position: float = 0.0
    buffered_until: float = 0.0
    volume: float = 1.0
    muted: bool = False
    fullscreen: bool = False
    playing: bool = False

    @property
    def buffered_ahead(self) -> float:
        return max(0.0, self.buffered_until - self.position)
