"""Playback session: owns the engine state, its event queue, and every resource it opens."""

import asyncio
from typing import Callable, Optional

import httpx

from common.config import Config
from common.constants import CHUNK_MIME_TYPE, PLAYLIST_MIME_TYPE, PLAYLIST_PATH
from common.exceptions import (
    FaultKind,
    ManifestErrorKind,
    ManifestUnavailable,
    PlaybackUnsupported,
    WireContractError,
)
from common.http_client import build_async_client
from common.logging_config import get_logger
from common.types import Manifest
from playback.engine import (
    EngineSettings,
    EngineState,
    Event,
    FullscreenToggled,
    LoadRequested,
    ManifestFailed,
    ManifestLoaded,
    MediaEnded,
    MuteToggled,
    PauseRequested,
    Phase,
    PlaybackFaulted,
    PlayRequested,
    RecoverDecoder,
    ResolveManifest,
    SourceUnsupported,
    StartLoad,
    StopLoad,
    SurfaceError,
    Teardown,
    TeardownRequested,
    TimeAdvanced,
    VolumeChanged,
    transition,
)
from playback.loader import ChunkLoader
from playback.manifest_resolver import AsyncManifestResolver
from playback.sinks import MediaSink

logger = get_logger(__name__)

CHUNKED = "chunked"
NATIVE_HLS = "native-hls"


def select_technology(sink: MediaSink) -> str:
    """
    Pick how the sink will consume the asset.

    Raises:
        PlaybackUnsupported: If the sink decodes neither fragmented MP4 nor HLS
    """
    if sink.supports(CHUNK_MIME_TYPE):
        return CHUNKED
    if sink.supports(PLAYLIST_MIME_TYPE):
        return NATIVE_HLS
    raise PlaybackUnsupported("No supported playback technology for this media sink")


class PlaybackSession:
    """
    Event-driven playback of one asset.

    Events from the media pipeline and user actions are queued with
    dispatch() and applied one at a time by run(). Effects returned by the
    engine are executed here; none of them block the caller.
    """

    def __init__(
        self,
        asset_id: str,
        config: Config,
        sink: MediaSink,
        client: Optional[httpx.AsyncClient] = None,
        on_error: Optional[Callable[[str], None]] = None
    ):
        self.asset_id = asset_id
        self.config = config
        self.sink = sink
        self.on_error = on_error
        self.playback_config = config.get_playback_config()
        self._owns_client = client is None
        self.client = client or build_async_client(config)
        self.resolver = AsyncManifestResolver(config, client=self.client)
        self.state = EngineState(settings=EngineSettings(
            resume_margin=self.playback_config['resume_margin'],
            max_recoveries=self.playback_config['max_recoveries'],
        ))
        self.manifest: Optional[Manifest] = None
        self.loader: Optional[ChunkLoader] = None
        self.technology: Optional[str] = None
        self.errors: list[str] = []
        self._queue: asyncio.Queue = asyncio.Queue()
        self._changed = asyncio.Condition()
        self._tasks: set[asyncio.Task] = set()
        self._runner: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def phase(self) -> Phase:
        return self.state.phase

    @property
    def playlist_url(self) -> str:
        return f"{self.config.get_base_url()}{PLAYLIST_PATH.format(asset_id=self.asset_id)}"

    def dispatch(self, event: Event) -> None:
        """Queue an event. Never blocks."""
        if not self._closed:
            self._queue.put_nowait(event)

    def start(self) -> None:
        """Start consuming events in the background and request the manifest."""
        if self._runner is None:
            self._runner = asyncio.create_task(self.run())
        try:
            self.technology = select_technology(self.sink)
        except PlaybackUnsupported as e:
            self.dispatch(SourceUnsupported(e.reason))
            return
        self.dispatch(LoadRequested(self.asset_id))

    def play(self) -> None:
        self.dispatch(PlayRequested())

    def pause(self) -> None:
        self.dispatch(PauseRequested())

    def set_volume(self, volume: float) -> None:
        self.dispatch(VolumeChanged(volume))

    def toggle_mute(self) -> None:
        self.dispatch(MuteToggled())

    def toggle_fullscreen(self) -> None:
        self.dispatch(FullscreenToggled())

    def report_fault(self, kind: FaultKind, details: str) -> None:
        self.dispatch(PlaybackFaulted(kind, details))

    async def run(self) -> None:
        """Apply queued events until the session is closed."""
        while True:
            event = await self._queue.get()
            if event is None:
                break
            await self._apply(event)

    async def _apply(self, event: Event) -> None:
        previous = self.state
        self.state, effects = transition(self.state, event)
        if previous.phase != self.state.phase:
            logger.info(f"Playback {self.asset_id}: {previous.phase.value} -> {self.state.phase.value}")

        if isinstance(event, TimeAdvanced) and self.loader is not None:
            self.loader.update_position(self.state.playback.position)

        for effect in effects:
            await self._execute(effect)

        async with self._changed:
            self._changed.notify_all()

    async def _execute(self, effect) -> None:
        if isinstance(effect, ResolveManifest):
            self._spawn(self._resolve_manifest(effect.asset_id))
        elif isinstance(effect, StartLoad):
            if self.loader is not None:
                self.loader.start_load(effect.from_position)
            else:
                logger.debug("StartLoad ignored: no loader for this playback technology")
        elif isinstance(effect, StopLoad):
            if self.loader is not None:
                self.loader.stop_load()
        elif isinstance(effect, RecoverDecoder):
            if self.loader is not None:
                self.loader.recover_media()
            else:
                self.sink.reset_decoder()
        elif isinstance(effect, Teardown):
            await self._teardown_media()
        elif isinstance(effect, SurfaceError):
            logger.error(f"Playback {self.asset_id} stopped: {effect.message}")
            self.errors.append(effect.message)
            if self.on_error:
                self.on_error(effect.message)

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _resolve_manifest(self, asset_id: str) -> None:
        try:
            manifest = await self.resolver.resolve(asset_id)
        except ManifestUnavailable as e:
            hint = "asset missing" if e.kind == ManifestErrorKind.NOT_FOUND else "try again"
            self.dispatch(ManifestFailed(f"{e.reason} ({hint})"))
            return
        except WireContractError as e:
            self.dispatch(ManifestFailed(e.reason))
            return

        self.manifest = manifest
        segment_time = self.playback_config['segment_time']
        if self.technology == CHUNKED:
            self.loader = ChunkLoader(
                client=self.client,
                manifest=manifest,
                sink=self.sink,
                emit=self.dispatch,
                segment_time=segment_time,
                max_buffer_length=self.playback_config['max_buffer_length'],
                max_max_buffer_length=self.playback_config['max_max_buffer_length'],
            )
        else:
            self.sink.attach_url(self.playlist_url)
        self.dispatch(ManifestLoaded(manifest, duration=manifest.chunk_count * segment_time))

    async def _teardown_media(self) -> None:
        if self.loader is not None:
            await self.loader.destroy()
        else:
            self.sink.close()

    async def wait_until(self, predicate: Callable[[EngineState], bool], timeout: float = 10.0) -> EngineState:
        """
        Wait until the engine state satisfies a predicate.

        Raises:
            asyncio.TimeoutError: If the state does not match in time
        """
        async def _wait():
            async with self._changed:
                await self._changed.wait_for(lambda: predicate(self.state))
            return self.state

        return await asyncio.wait_for(_wait(), timeout)

    async def run_clock(self, tick: float = 0.25) -> None:
        """
        Advance the playback position while playing, as a media element would.

        Position advances at `playback_rate` and never past the read-ahead
        watermark. Returns when the media ends or playback errors.
        """
        rate = self.playback_config['playback_rate']
        while not self._closed:
            await asyncio.sleep(tick)
            state = self.state
            if state.phase == Phase.ERRORED:
                return
            if state.phase != Phase.PLAYING:
                continue
            playback = state.playback
            position = min(playback.position + tick * rate, playback.buffered_until)
            if state.duration and position >= state.duration:
                self.dispatch(TimeAdvanced(state.duration))
                self.dispatch(MediaEnded())
                return
            self.dispatch(TimeAdvanced(position))

    async def close(self) -> None:
        """Tear down the session: stop loading, cancel tasks, release clients."""
        if self._closed:
            return
        await self._apply(TeardownRequested())
        self._closed = True
        self._queue.put_nowait(None)
        if self._runner is not None:
            try:
                await asyncio.wait_for(self._runner, timeout=5)
            except asyncio.TimeoutError:
                self._runner.cancel()
        for task in list(self._tasks):
            task.cancel()
        if self._owns_client:
            await self.resolver.close()
        logger.debug(f"Playback session for {self.asset_id} closed")


async def play_headless(
    asset_id: str,
    config: Config,
    sink: MediaSink,
    client: Optional[httpx.AsyncClient] = None,
    tick: float = 0.25,
    load_timeout: float = 30.0
) -> PlaybackSession:
    """
    Play an asset from start to finish without a display.

    The session is always torn down before returning. Inspect the returned
    session's state and errors for the result.

    Args:
        asset_id: Published asset identifier
        config: Client configuration (playback_rate sets the clock speed)
        sink: Media sink receiving the verified segments
        client: Optional async HTTP client bound to the server
        tick: Clock granularity in seconds
        load_timeout: Seconds to wait for the manifest

    Returns:
        The closed PlaybackSession
    """
    session = PlaybackSession(asset_id, config, sink, client=client)
    session.start()
    try:
        state = await session.wait_until(
            lambda s: s.phase in (Phase.READY, Phase.ERRORED), timeout=load_timeout
        )
        if state.phase == Phase.READY:
            session.play()
            await session.run_clock(tick)
            await session.wait_until(
                lambda s: s.phase in (Phase.PAUSED, Phase.ERRORED), timeout=load_timeout
            )
    finally:
        await session.close()
    return session
