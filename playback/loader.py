"""Throttled, manifest-driven chunk read-ahead for the playback session."""

import asyncio
from typing import Callable, Optional

import httpx

from common.checksum import verify_digest
from common.constants import (
    CHUNK_PATH,
    MAX_BUFFER_LENGTH_SECONDS,
    MAX_MAX_BUFFER_LENGTH_SECONDS,
    SEGMENT_TIME_SECONDS,
)
from common.exceptions import FaultKind, PlaybackFatalFault, PlaybackFault, PlaybackTransportFault
from common.logging_config import get_logger
from common.types import Manifest
from playback.engine import BufferAdvanced, Event, PlaybackFaulted
from playback.sinks import MediaSink

logger = get_logger(__name__)


class ChunkLoader:
    """
    Pulls verified chunks into a media sink, staying at most
    `max_buffer_length` seconds ahead of the playback position.

    The loader starts idle. Faults are reported as events and stop the
    loop; the engine decides whether to call start_load or recover_media.
    Buffered segments are never discarded by either recovery path.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        manifest: Manifest,
        sink: MediaSink,
        emit: Callable[[Event], None],
        segment_time: float = SEGMENT_TIME_SECONDS,
        max_buffer_length: float = MAX_BUFFER_LENGTH_SECONDS,
        max_max_buffer_length: float = MAX_MAX_BUFFER_LENGTH_SECONDS
    ):
        self.client = client
        self.manifest = manifest
        self.sink = sink
        self.emit = emit
        self.segment_time = segment_time
        self.max_buffer_length = min(max_buffer_length, max_max_buffer_length)
        self.next_index = 1
        self.position = 0.0
        self.fetch_count = 0
        self._pending: Optional[tuple[int, bytes]] = None
        self._task: Optional[asyncio.Task] = None
        self._position_changed = asyncio.Event()
        self._destroyed = False

    @property
    def duration(self) -> float:
        return self.manifest.chunk_count * self.segment_time

    @property
    def buffered_until(self) -> float:
        return min((self.next_index - 1) * self.segment_time, self.duration)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def finished(self) -> bool:
        return self.next_index > self.manifest.chunk_count

    def start_load(self, from_position: float) -> None:
        """Begin (or resume in place) pulling chunks from the given position."""
        if self._destroyed:
            return
        self.update_position(from_position)
        if self.running:
            return
        logger.debug(
            f"Loading {self.manifest.asset_id} from chunk {self.next_index} (position={from_position:.1f}s)"
        )
        self._task = asyncio.create_task(self._run())

    def stop_load(self) -> None:
        if self.running:
            self._task.cancel()

    def update_position(self, position: float) -> None:
        self.position = position
        self._position_changed.set()

    def recover_media(self) -> None:
        """Reset only the decoder, then replay the segment it rejected."""
        if self._destroyed:
            return
        self.sink.reset_decoder()
        if not self.running:
            self._task = asyncio.create_task(self._run())

    async def destroy(self) -> None:
        self._destroyed = True
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._pending = None
        self.sink.close()

    async def _run(self) -> None:
        while True:
            if self._pending is not None:
                index, payload = self._pending
                if not self._append(index, payload):
                    return
                continue

            if self.finished:
                logger.info(f"All {self.manifest.chunk_count} chunk(s) of {self.manifest.asset_id} buffered")
                return

            if self.buffered_until - self.position >= self.max_buffer_length:
                self._position_changed.clear()
                await self._position_changed.wait()
                continue

            payload = await self._fetch(self.next_index)
            if payload is None:
                return
            self._pending = (self.next_index, payload)

    async def _fetch(self, index: int) -> Optional[bytes]:
        try:
            return await self._download(index)
        except PlaybackFault as e:
            logger.warning(f"Chunk {index} not loaded: {e.reason}")
            self.emit(PlaybackFaulted(e.kind, e.reason))
            return None

    async def _download(self, index: int) -> bytes:
        url = CHUNK_PATH.format(asset_id=self.manifest.asset_id, index=index)
        self.fetch_count += 1
        try:
            response = await self.client.get(url)
        except httpx.TransportError as e:
            raise PlaybackTransportFault(f"chunk {index}: {type(e).__name__}") from e

        if response.status_code == 404:
            raise PlaybackFatalFault(f"chunk {index} missing from published asset")
        if not 200 <= response.status_code < 300:
            raise PlaybackTransportFault(f"chunk {index}: HTTP {response.status_code}")

        payload = response.content
        if not verify_digest(payload, self.manifest.chunk(index).digest):
            raise PlaybackTransportFault(f"chunk {index} failed digest verification")
        return payload

    def _append(self, index: int, payload: bytes) -> bool:
        try:
            self.sink.append(index, payload)
        except PlaybackFault as e:
            logger.warning(f"Sink rejected chunk {index}: {e.reason}")
            self.emit(PlaybackFaulted(e.kind, e.reason))
            return False
        except OSError as e:
            self.emit(PlaybackFaulted(FaultKind.OTHER, f"sink failure on chunk {index}: {e}"))
            return False

        self._pending = None
        self.next_index = index + 1
        self.emit(BufferAdvanced(self.buffered_until))
        return True
