"""In-memory bookkeeping for pending uploads and published assets."""

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from common.checksum import IncrementalDigest, compute_digest, digest_file
from common.exceptions import SegmentationFailed
from common.logging_config import get_logger
from common.types import Manifest, ManifestChunk, SourceAsset
from publisher.segmenter import Segmenter
from server.exceptions import (
    AssetNotFoundError,
    ChecksumMismatchError,
    IncompleteUploadError,
    InvalidChunkIndexError,
    MediaProcessingError,
    UploadNotFoundError,
    UploadSealedError,
)

logger = get_logger(__name__)


@dataclass
class PendingUpload:
    """Server-side state of an upload session that has not been completed."""
    upload_id: str
    filename: str
    file_size: int
    file_hash: str
    total_chunks: int
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    chunks: dict[int, bytes] = field(default_factory=dict)

    @property
    def missing(self) -> list[int]:
        return [i for i in range(1, self.total_chunks + 1) if i not in self.chunks]


@dataclass(frozen=True)
class PublishedAsset:
    """An asset whose chunks passed verification and can be read back."""
    asset_id: str
    file_name: str
    file_size: int
    file_hash: str
    chunks: tuple[bytes, ...]
    digests: tuple[str, ...]
    description: Optional[str]
    thumbnail: Optional[str]
    published_at: datetime

    def to_manifest(self) -> Manifest:
        return Manifest(
            asset_id=self.asset_id,
            file_name=self.file_name,
            file_size=self.file_size,
            file_hash=self.file_hash,
            chunks=tuple(ManifestChunk(index=i, digest=d) for i, d in enumerate(self.digests, start=1)),
        )

    def chunk(self, index: int) -> bytes:
        if not 1 <= index <= len(self.chunks):
            raise InvalidChunkIndexError(f"Asset {self.asset_id} has no chunk {index}")
        return self.chunks[index - 1]

    def iter_bytes(self) -> Iterator[bytes]:
        yield from self.chunks


class AssetStore:
    """Published assets, searchable by name and description."""

    def __init__(self):
        self._assets: dict[str, PublishedAsset] = {}
        self._lock = threading.Lock()

    def publish(self, asset: PublishedAsset) -> None:
        with self._lock:
            self._assets[asset.asset_id] = asset
        logger.info(f"Published asset {asset.asset_id} ({asset.file_name}, {len(asset.chunks)} chunk(s))")

    def get(self, asset_id: str) -> PublishedAsset:
        """
        Look up a published asset.

        Raises:
            AssetNotFoundError: If no asset has this id
        """
        with self._lock:
            asset = self._assets.get(asset_id)
        if asset is None:
            raise AssetNotFoundError(f"Asset {asset_id} not found")
        return asset

    def search(self, query: str, page: int, size: int) -> tuple[list[PublishedAsset], int]:
        """
        Case-insensitive substring search over names and descriptions.

        Args:
            query: Search text; empty matches everything
            page: Zero-based page number
            size: Page size

        Returns:
            Tuple of (assets on the requested page, total matches)
        """
        needle = query.strip().lower()
        with self._lock:
            assets = list(self._assets.values())
        matches = [
            asset for asset in assets
            if needle in asset.file_name.lower() or needle in (asset.description or "").lower()
        ]
        matches.sort(key=lambda a: a.published_at, reverse=True)
        start = page * size
        return matches[start:start + size], len(matches)

    def latest(self, limit: int) -> list[PublishedAsset]:
        with self._lock:
            assets = sorted(self._assets.values(), key=lambda a: a.published_at, reverse=True)
        return assets[:limit]

    def count(self) -> int:
        with self._lock:
            return len(self._assets)


class UploadRegistry:
    """
    Tracks pending upload sessions and verifies them on completion.

    Completed session ids are remembered so late calls are rejected as
    sealed rather than unknown.
    """

    def __init__(self, assets: AssetStore):
        self.assets = assets
        self._pending: dict[str, PendingUpload] = {}
        self._sealed: set[str] = set()
        self._lock = threading.Lock()

    def open(
        self,
        filename: str,
        file_size: int,
        file_hash: str,
        total_chunks: int,
        description: Optional[str] = None,
        thumbnail: Optional[str] = None
    ) -> PendingUpload:
        upload = PendingUpload(
            upload_id=str(uuid.uuid4()),
            filename=filename,
            file_size=file_size,
            file_hash=file_hash.lower(),
            total_chunks=total_chunks,
            description=description,
            thumbnail=thumbnail,
        )
        with self._lock:
            self._pending[upload.upload_id] = upload
        logger.info(
            f"Opened upload {upload.upload_id}: {filename} size={file_size} chunks={total_chunks}"
        )
        return upload

    def _get_pending(self, upload_id: str) -> PendingUpload:
        if upload_id in self._sealed:
            raise UploadSealedError(f"Upload {upload_id} has already been completed")
        upload = self._pending.get(upload_id)
        if upload is None:
            raise UploadNotFoundError(f"Upload {upload_id} not found")
        return upload

    def store_chunk(self, upload_id: str, index: int, data: bytes, chunk_hash: str) -> None:
        """
        Verify and store one chunk. Re-sending an index replaces the earlier copy.

        Raises:
            UploadNotFoundError: Unknown session
            UploadSealedError: Session already completed
            InvalidChunkIndexError: Index outside 1..N
            ChecksumMismatchError: Bytes do not match chunk_hash
        """
        with self._lock:
            upload = self._get_pending(upload_id)
            if not 1 <= index <= upload.total_chunks:
                raise InvalidChunkIndexError(
                    f"Chunk index {index} outside 1..{upload.total_chunks}"
                )
            actual = compute_digest(data)
            if actual != chunk_hash.lower():
                raise ChecksumMismatchError(
                    f"Chunk {index} digest mismatch: expected {chunk_hash}, got {actual}"
                )
            upload.chunks[index] = data
        logger.debug(f"Stored chunk {index}/{upload.total_chunks} ({len(data)} bytes) [upload_id={upload_id}]")

    def complete(self, upload_id: str) -> PublishedAsset:
        """
        Seal a session and publish its asset.

        Raises:
            UploadNotFoundError: Unknown session
            UploadSealedError: Session already completed
            IncompleteUploadError: Some index in 1..N never arrived
            ChecksumMismatchError: Concatenated bytes do not match the declared file hash
        """
        with self._lock:
            upload = self._get_pending(upload_id)
            missing = upload.missing
            if missing:
                raise IncompleteUploadError(f"Upload {upload_id} is missing chunks {missing}")

            ordered = tuple(upload.chunks[i] for i in range(1, upload.total_chunks + 1))
            whole = IncrementalDigest()
            for data in ordered:
                whole.update(data)
            digest = whole.finalize()
            if digest != upload.file_hash:
                raise ChecksumMismatchError(
                    f"File digest mismatch for {upload_id}: expected {upload.file_hash}, got {digest}"
                )

            del self._pending[upload_id]
            self._sealed.add(upload_id)

        return self._publish(upload, ordered, digest)

    def publish_source(self, upload_id: str, source: Path, segmenter: Segmenter) -> PublishedAsset:
        """
        Verify a whole source file against the init digest, segment it here and publish it.

        The declared chunk count is ignored: the server decides the layout.
        The published file hash covers the concatenated chunks, as for
        client-segmented uploads.

        Raises:
            UploadNotFoundError: Unknown session
            UploadSealedError: Session already completed
            ChecksumMismatchError: Source bytes do not match the declared file hash
            MediaProcessingError: The source could not be segmented
        """
        with self._lock:
            upload = self._get_pending(upload_id)

        actual = digest_file(source)
        if actual != upload.file_hash:
            raise ChecksumMismatchError(
                f"Source digest mismatch for {upload_id}: expected {upload.file_hash}, got {actual}"
            )

        asset = SourceAsset(
            path=source,
            display_name=upload.filename,
            size=source.stat().st_size,
            description=upload.description,
        )
        try:
            chunks = segmenter.segment(asset)
            ordered = tuple(chunk.read() for chunk in chunks)
        except SegmentationFailed as e:
            raise MediaProcessingError(e.reason) from e
        finally:
            segmenter.cleanup()

        with self._lock:
            self._get_pending(upload_id)
            del self._pending[upload_id]
            self._sealed.add(upload_id)

        logger.info(f"Segmented source for {upload_id} on the server: {len(ordered)} chunk(s)")
        return self._publish(upload, ordered, compute_digest(b''.join(ordered)))

    def _publish(self, upload: PendingUpload, ordered: tuple[bytes, ...], file_hash: str) -> PublishedAsset:
        asset = PublishedAsset(
            asset_id=upload.upload_id,
            file_name=upload.filename,
            file_size=sum(len(data) for data in ordered),
            file_hash=file_hash,
            chunks=ordered,
            digests=tuple(compute_digest(data) for data in ordered),
            description=upload.description,
            thumbnail=upload.thumbnail,
            published_at=datetime.now(timezone.utc),
        )
        self.assets.publish(asset)
        return asset

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)


_asset_store = AssetStore()
_upload_registry = UploadRegistry(_asset_store)


def get_asset_store() -> AssetStore:
    return _asset_store


def get_upload_registry() -> UploadRegistry:
    return _upload_registry


def reset_state() -> None:
    """Drop every pending upload and published asset."""
    global _asset_store, _upload_registry
    _asset_store = AssetStore()
    _upload_registry = UploadRegistry(_asset_store)
