"""Upload Coordinator: drives init -> chunk x N -> complete for one upload attempt."""

import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Sequence

from common.checksum import digest_chunks, digest_file
from common.exceptions import (
    ChunkTransferFailed,
    CompleteFailed,
    InitRejected,
    SegmentationFailed,
)
from common.logging_config import get_logger, set_correlation_id
from common.types import Chunk, SourceAsset, UploadOutcome, UploadSession
from publisher.segmenter import Segmenter
from publisher.upload_client import UploadClient

logger = get_logger(__name__)


class UploadState(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    UPLOADING = "uploading"
    COMPLETING = "completing"
    COMPLETED = "completed"
    FAILED = "failed"


ALLOWED_TRANSITIONS = {
    UploadState.IDLE: {UploadState.INITIALIZING, UploadState.FAILED},
    UploadState.INITIALIZING: {UploadState.UPLOADING, UploadState.FAILED},
    UploadState.UPLOADING: {UploadState.COMPLETING, UploadState.FAILED},
    UploadState.COMPLETING: {UploadState.COMPLETED, UploadState.FAILED},
    UploadState.COMPLETED: set(),
    UploadState.FAILED: set(),
}


@dataclass(frozen=True)
class UploadProgress:
    """Progress snapshot reported to the caller."""
    acknowledged: int
    total: int
    state: UploadState

    @property
    def fraction(self) -> float:
        if self.total == 0:
            return 0.0
        return self.acknowledged / self.total


ProgressCallback = Callable[[UploadProgress], None]


class UploadCoordinator:
    """
    Sequential upload state machine for a single attempt.

    At most one request is in flight. A chunk failure aborts the remaining
    sequence without retry, and the outcome names the failing index.
    Progress reaches 1.0 only after the server acknowledges completion.
    """

    def __init__(self, client: UploadClient, progress_callback: Optional[ProgressCallback] = None):
        self.client = client
        self.progress_callback = progress_callback
        self.state = UploadState.IDLE
        self.session: Optional[UploadSession] = None
        self.outcome: Optional[UploadOutcome] = None
        self._cancelled = threading.Event()
        self._last_fraction = 0.0

    def cancel(self) -> None:
        """Abandon the attempt before the next request is sent."""
        self._cancelled.set()

    def _transition(self, new_state: UploadState) -> None:
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal upload transition {self.state.value} -> {new_state.value}")
        logger.debug(f"Upload state {self.state.value} -> {new_state.value}")
        self.state = new_state

    def _report(self, acknowledged: int, total: int) -> None:
        progress = UploadProgress(acknowledged=acknowledged, total=total, state=self.state)
        if progress.fraction < self._last_fraction:
            return
        self._last_fraction = progress.fraction
        if self.progress_callback:
            self.progress_callback(progress)

    def _fail(
        self,
        reason: str,
        chunks: Sequence[Chunk],
        failed_chunk_index: Optional[int] = None,
        error: Optional[Exception] = None
    ) -> UploadOutcome:
        self._transition(UploadState.FAILED)
        for chunk in chunks:
            chunk.release()
        upload_id = self.session.upload_id if self.session else None
        logger.error(
            f"Upload failed: {reason}"
            + (f" [chunk={failed_chunk_index}]" if failed_chunk_index is not None else "")
        )
        self.outcome = UploadOutcome.failed(
            reason=reason,
            upload_id=upload_id,
            failed_chunk_index=failed_chunk_index,
            error=error,
        )
        return self.outcome

    def upload(
        self,
        asset: SourceAsset,
        chunks: Sequence[Chunk],
        thumbnail: Optional[bytes] = None
    ) -> UploadOutcome:
        """
        Publish the chunks of an asset.

        Args:
            asset: Source the chunks were derived from (filename and description)
            chunks: Chunks in index order, 1..N
            thumbnail: Optional thumbnail bytes sent with init

        Returns:
            Exactly one UploadOutcome for this attempt
        """
        if self.state != UploadState.IDLE:
            raise RuntimeError("UploadCoordinator instances are single-use")

        chunks = list(chunks)
        if not chunks:
            return self._fail("No chunks to upload", chunks, error=SegmentationFailed("zero chunks"))

        try:
            file_hash = digest_chunks(chunks)
        except ValueError as e:
            return self._fail(f"Invalid chunk sequence: {e}", chunks, error=e)

        for chunk in chunks:
            logger.debug(f"Chunk {chunk.index}: {chunk.size} bytes digest={chunk.digest}")
        total_size = sum(chunk.size for chunk in chunks)
        total = len(chunks)

        self._transition(UploadState.INITIALIZING)
        if self._cancelled.is_set():
            return self._fail("cancelled", chunks)
        try:
            self.session = self.client.init(
                file_size=total_size,
                filename=asset.display_name,
                file_hash=file_hash,
                total_chunks=total,
                description=asset.description,
                thumbnail=thumbnail,
            )
        except InitRejected as e:
            return self._fail(f"InitRejected: {e.reason}", chunks, error=e)

        set_correlation_id(logger, self.session.upload_id)
        try:
            return self._upload_chunks(chunks, total)
        finally:
            set_correlation_id(logger, None)

    def _upload_chunks(self, chunks: list[Chunk], total: int) -> UploadOutcome:
        self._transition(UploadState.UPLOADING)
        self._report(0, total)

        for position, chunk in enumerate(chunks):
            if self._cancelled.is_set():
                return self._fail("cancelled", chunks[position:], failed_chunk_index=chunk.index)
            try:
                self.client.send_chunk(self.session, chunk)
            except ChunkTransferFailed as e:
                return self._fail(
                    f"ChunkTransferFailed({e.index}): {e.reason}",
                    chunks[position:],
                    failed_chunk_index=e.index,
                    error=e,
                )
            self.session.acknowledge(chunk.index)
            chunk.release()
            if chunk.index < total:
                self._report(chunk.index, total)

        self._transition(UploadState.COMPLETING)
        if self._cancelled.is_set():
            return self._fail("cancelled", [])
        try:
            self.client.complete(self.session)
        except CompleteFailed as e:
            return self._fail(f"CompleteFailed: {e.reason}", [], error=e)

        self.session.seal()
        self._transition(UploadState.COMPLETED)
        self._report(total, total)
        self.outcome = UploadOutcome.completed(self.session.upload_id)
        return self.outcome


def publish_file(
    path,
    client: UploadClient,
    segmenter: Optional[Segmenter] = None,
    description: Optional[str] = None,
    thumbnail: Optional[bytes] = None,
    progress_callback: Optional[ProgressCallback] = None
) -> UploadOutcome:
    """
    Run the whole publishing pipeline: segment, hash, upload.

    Args:
        path: Local media file
        client: Upload client bound to the server
        segmenter: Segmenter to use (default policy if None)
        description: Optional free-text description
        thumbnail: Optional thumbnail bytes
        progress_callback: Receives UploadProgress snapshots

    Returns:
        UploadOutcome; segmentation failures are reported as Failed outcomes
    """
    segmenter = segmenter or Segmenter()
    try:
        asset = SourceAsset.from_path(Path(path), description=description)
    except ValueError as e:
        return UploadOutcome.failed(reason=str(e), error=e)

    try:
        chunks = segmenter.segment(asset)
    except SegmentationFailed as e:
        return UploadOutcome.failed(reason=f"SegmentationFailed: {e.reason}", error=e)

    try:
        coordinator = UploadCoordinator(client, progress_callback=progress_callback)
        return coordinator.upload(asset, chunks, thumbnail=thumbnail)
    finally:
        segmenter.cleanup()


def publish_source_file(
    path,
    client: UploadClient,
    description: Optional[str] = None,
    thumbnail: Optional[bytes] = None
) -> UploadOutcome:
    """
    Publish a media file in a single request and let the server segment it.

    The init digest covers the raw source bytes. The declared chunk count is
    a placeholder because the server decides the layout.

    Returns:
        UploadOutcome; there is no failed chunk index in this mode
    """
    try:
        asset = SourceAsset.from_path(Path(path), description=description)
    except ValueError as e:
        return UploadOutcome.failed(reason=str(e), error=e)

    try:
        session = client.init(
            file_size=asset.size,
            filename=asset.display_name,
            file_hash=digest_file(asset.path),
            total_chunks=1,
            description=asset.description,
            thumbnail=thumbnail,
        )
    except InitRejected as e:
        return UploadOutcome.failed(reason=f"InitRejected: {e.reason}", error=e)

    try:
        client.upload_source(session, asset)
    except CompleteFailed as e:
        logger.error(f"Server-side segmentation upload failed: {e.reason} [upload_id={session.upload_id}]")
        return UploadOutcome.failed(reason=f"CompleteFailed: {e.reason}", upload_id=session.upload_id, error=e)

    return UploadOutcome.completed(session.upload_id)
