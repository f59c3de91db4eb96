"""
Playback engine state machine.

`transition(state, event)` is a pure function returning the next state and
the effects the owning session must perform. Recovery effects read the
current position but never rewrite position or volume.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Union

from common.constants import MAX_CONSECUTIVE_RECOVERIES, RESUME_MARGIN_SECONDS
from common.exceptions import FaultKind
from common.types import Manifest, PlaybackState


class Phase(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"
    BUFFERING = "buffering"
    ERRORED = "errored"


@dataclass(frozen=True)
class EngineSettings:
    resume_margin: float = RESUME_MARGIN_SECONDS
    max_recoveries: int = MAX_CONSECUTIVE_RECOVERIES


@dataclass(frozen=True)
class EngineState:
    phase: Phase = Phase.IDLE
    playback: PlaybackState = field(default_factory=PlaybackState)
    settings: EngineSettings = field(default_factory=EngineSettings)
    asset_id: Optional[str] = None
    manifest: Optional[Manifest] = None
    duration: float = 0.0
    loading: bool = False
    consecutive_recoveries: int = 0
    error: Optional[str] = None


# Events

@dataclass(frozen=True)
class LoadRequested:
    asset_id: str


@dataclass(frozen=True)
class ManifestLoaded:
    manifest: Manifest
    duration: float


@dataclass(frozen=True)
class ManifestFailed:
    reason: str


@dataclass(frozen=True)
class SourceUnsupported:
    reason: str


@dataclass(frozen=True)
class PlayRequested:
    pass


@dataclass(frozen=True)
class PauseRequested:
    pass


@dataclass(frozen=True)
class TimeAdvanced:
    position: float


@dataclass(frozen=True)
class BufferAdvanced:
    buffered_until: float


@dataclass(frozen=True)
class MediaEnded:
    pass


@dataclass(frozen=True)
class VolumeChanged:
    volume: float


@dataclass(frozen=True)
class MuteToggled:
    pass


@dataclass(frozen=True)
class FullscreenToggled:
    pass


@dataclass(frozen=True)
class PlaybackFaulted:
    kind: FaultKind
    details: str


@dataclass(frozen=True)
class TeardownRequested:
    pass


Event = Union[
    LoadRequested, ManifestLoaded, ManifestFailed, SourceUnsupported,
    PlayRequested, PauseRequested, TimeAdvanced, BufferAdvanced, MediaEnded,
    VolumeChanged, MuteToggled, FullscreenToggled, PlaybackFaulted, TeardownRequested,
]


# Effects

@dataclass(frozen=True)
class ResolveManifest:
    asset_id: str


@dataclass(frozen=True)
class StartLoad:
    from_position: float


@dataclass(frozen=True)
class StopLoad:
    pass


@dataclass(frozen=True)
class RecoverDecoder:
    pass


@dataclass(frozen=True)
class Teardown:
    pass


@dataclass(frozen=True)
class SurfaceError:
    message: str


Effect = Union[ResolveManifest, StartLoad, StopLoad, RecoverDecoder, Teardown, SurfaceError]

ACTIVE_PHASES = {Phase.READY, Phase.PLAYING, Phase.PAUSED, Phase.BUFFERING}


def _has_lead(state: EngineState, playback: PlaybackState) -> bool:
    if state.duration and playback.buffered_until >= state.duration:
        return True
    return playback.buffered_ahead >= state.settings.resume_margin


def _starved(state: EngineState, playback: PlaybackState) -> bool:
    if state.duration and playback.buffered_until >= state.duration:
        return False
    return playback.buffered_until <= playback.position


def _fatal(state: EngineState, message: str) -> tuple[EngineState, list[Effect]]:
    playback = replace(state.playback, playing=False)
    new_state = replace(state, phase=Phase.ERRORED, playback=playback, loading=False, error=message)
    return new_state, [Teardown(), SurfaceError(message)]


def _on_fault(state: EngineState, event: PlaybackFaulted) -> tuple[EngineState, list[Effect]]:
    message = f"Playback Error: {event.details}"
    if event.kind == FaultKind.OTHER:
        return _fatal(state, message)

    if state.consecutive_recoveries >= state.settings.max_recoveries:
        return _fatal(
            state,
            f"{message} (gave up after {state.consecutive_recoveries} recovery attempts)"
        )

    recovered = replace(state, consecutive_recoveries=state.consecutive_recoveries + 1, error=message)
    if event.kind == FaultKind.TRANSPORT:
        # Nothing to resume until a Play has started the load.
        if state.phase not in ACTIVE_PHASES or not state.loading:
            return recovered, []
        return recovered, [StartLoad(from_position=state.playback.position)]
    return recovered, [RecoverDecoder()]


def transition(state: EngineState, event: Event) -> tuple[EngineState, list[Effect]]:
    """
    Compute the next engine state for an event.

    Args:
        state: Current engine state
        event: Media pipeline event or user action

    Returns:
        Tuple of (next state, effects to perform in order). Events that do
        not apply to the current phase leave the state unchanged.
    """
    phase = state.phase
    playback = state.playback

    if isinstance(event, TeardownRequested):
        if phase == Phase.ERRORED:
            return state, []
        return replace(state, phase=Phase.IDLE, loading=False,
                       playback=replace(playback, playing=False)), [StopLoad(), Teardown()]

    if phase == Phase.ERRORED:
        return state, []

    if isinstance(event, VolumeChanged):
        volume = min(1.0, max(0.0, event.volume))
        return replace(state, playback=replace(playback, volume=volume)), []

    if isinstance(event, MuteToggled):
        return replace(state, playback=replace(playback, muted=not playback.muted)), []

    if isinstance(event, FullscreenToggled):
        return replace(state, playback=replace(playback, fullscreen=not playback.fullscreen)), []

    if isinstance(event, PlaybackFaulted):
        if phase == Phase.IDLE:
            return state, []
        return _on_fault(state, event)

    if isinstance(event, SourceUnsupported):
        return _fatal(state, event.reason)

    if phase == Phase.IDLE:
        if isinstance(event, LoadRequested):
            return replace(state, phase=Phase.LOADING, asset_id=event.asset_id, error=None), \
                [ResolveManifest(asset_id=event.asset_id)]
        return state, []

    if phase == Phase.LOADING:
        if isinstance(event, ManifestLoaded):
            return replace(state, phase=Phase.READY, manifest=event.manifest, duration=event.duration), []
        if isinstance(event, ManifestFailed):
            return _fatal(state, event.reason)
        return state, []

    if isinstance(event, PlayRequested):
        if phase not in (Phase.READY, Phase.PAUSED):
            return state, []
        playback = replace(playback, playing=True)
        effects: list[Effect] = []
        loading = state.loading
        if not loading:
            effects.append(StartLoad(from_position=playback.position))
            loading = True
        next_phase = Phase.PLAYING if _has_lead(state, playback) else Phase.BUFFERING
        return replace(state, phase=next_phase, playback=playback, loading=loading), effects

    if isinstance(event, PauseRequested):
        if phase not in (Phase.PLAYING, Phase.BUFFERING):
            return state, []
        return replace(state, phase=Phase.PAUSED, playback=replace(playback, playing=False)), []

    if isinstance(event, TimeAdvanced):
        position = max(0.0, event.position)
        if state.duration:
            position = min(position, state.duration)
        playback = replace(playback, position=position)
        next_phase = phase
        if phase == Phase.PLAYING and _starved(state, playback):
            next_phase = Phase.BUFFERING
        elif phase == Phase.BUFFERING and _has_lead(state, playback):
            next_phase = Phase.PLAYING
        return replace(state, phase=next_phase, playback=playback), []

    if isinstance(event, BufferAdvanced):
        watermark = max(playback.buffered_until, event.buffered_until)
        advanced = watermark > playback.buffered_until
        playback = replace(playback, buffered_until=watermark)
        next_phase = phase
        if phase == Phase.BUFFERING and _has_lead(state, playback):
            next_phase = Phase.PLAYING
        recoveries = 0 if advanced else state.consecutive_recoveries
        error = None if advanced else state.error
        return replace(state, phase=next_phase, playback=playback,
                       consecutive_recoveries=recoveries, error=error), []

    if isinstance(event, MediaEnded):
        playback = replace(playback, playing=False, position=state.duration or playback.position)
        return replace(state, phase=Phase.PAUSED, playback=playback, loading=False), [StopLoad()]

    return state, []
