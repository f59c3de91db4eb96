"""Tests for the playback engine transition function."""

from dataclasses import replace

import pytest

from common.exceptions import FaultKind
from common.types import Manifest, ManifestChunk, PlaybackState
from playback.engine import (
    BufferAdvanced,
    EngineSettings,
    EngineState,
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

MANIFEST = Manifest(
    asset_id='asset-1',
    file_name='talk.mp4',
    file_size=4,
    file_hash='0' * 64,
    chunks=tuple(ManifestChunk(i, '0' * 64) for i in range(1, 5)),
)


def run(state, *events):
    """Apply events in order, returning the final state and all effects."""
    effects = []
    for event in events:
        state, produced = transition(state, event)
        effects.extend(produced)
    return state, effects


@pytest.fixture
def ready():
    state, _ = run(EngineState(), LoadRequested('asset-1'), ManifestLoaded(MANIFEST, duration=240.0))
    return state


@pytest.fixture
def playing(ready):
    """Playing at 37.5s with 40s buffered, volume 0.4."""
    state, _ = run(
        ready,
        VolumeChanged(0.4),
        BufferAdvanced(40.0),
        PlayRequested(),
        TimeAdvanced(37.5),
    )
    assert state.phase == Phase.PLAYING
    return state


def test_load_requests_manifest():
    state, effects = transition(EngineState(), LoadRequested('asset-1'))

    assert state.phase == Phase.LOADING
    assert state.asset_id == 'asset-1'
    assert effects == [ResolveManifest('asset-1')]


def test_manifest_loaded_is_ready_without_loading(ready):
    assert ready.phase == Phase.READY
    assert ready.manifest == MANIFEST
    assert ready.duration == 240.0
    assert not ready.loading


def test_manifest_failure_is_fatal():
    state, effects = run(EngineState(), LoadRequested('missing'), ManifestFailed('Asset missing not found'))

    assert state.phase == Phase.ERRORED
    assert state.error == 'Asset missing not found'
    assert effects[-2:] == [Teardown(), SurfaceError('Asset missing not found')]


def test_source_unsupported_is_fatal():
    state, effects = transition(EngineState(), SourceUnsupported('No supported playback technology'))

    assert state.phase == Phase.ERRORED
    assert SurfaceError('No supported playback technology') in effects


def test_first_play_starts_loading_from_position(ready):
    state, effects = transition(ready, PlayRequested())

    assert effects == [StartLoad(from_position=0.0)]
    assert state.loading
    assert state.playback.playing
    assert state.phase == Phase.BUFFERING


def test_play_with_lead_goes_straight_to_playing(ready):
    state, _ = run(ready, BufferAdvanced(8.0), PlayRequested())
    assert state.phase == Phase.PLAYING


def test_second_play_does_not_restart_loading(playing):
    state, _ = transition(playing, PauseRequested())
    assert state.phase == Phase.PAUSED
    assert not state.playback.playing

    state, effects = transition(state, PlayRequested())
    assert effects == []
    assert state.phase == Phase.PLAYING


def test_buffering_when_position_reaches_watermark(playing):
    state, _ = transition(playing, TimeAdvanced(40.0))
    assert state.phase == Phase.BUFFERING

    state, _ = transition(state, BufferAdvanced(41.0))
    assert state.phase == Phase.BUFFERING

    state, _ = transition(state, BufferAdvanced(44.0))
    assert state.phase == Phase.PLAYING


def test_fully_buffered_tail_never_buffers(ready):
    state, _ = run(ready, BufferAdvanced(240.0), PlayRequested(), TimeAdvanced(239.5))
    assert state.phase == Phase.PLAYING


def test_buffer_watermark_is_monotonic(playing):
    state, _ = transition(playing, BufferAdvanced(10.0))
    assert state.playback.buffered_until == 40.0


def test_transport_fault_restarts_loading_in_place(playing):
    """A network fault keeps position and volume and resumes loading from the current position."""
    state, effects = transition(playing, PlaybackFaulted(FaultKind.TRANSPORT, 'fragLoadError'))

    assert effects == [StartLoad(from_position=37.5)]
    assert state.playback.position == 37.5
    assert state.playback.volume == 0.4
    assert state.phase == Phase.PLAYING
    assert state.consecutive_recoveries == 1


def test_transport_fault_while_loading_manifest_defers_to_play():
    state, effects = run(
        EngineState(),
        LoadRequested('asset-1'),
        PlaybackFaulted(FaultKind.TRANSPORT, 'networkError'),
        ManifestLoaded(MANIFEST, duration=60.0),
    )
    assert effects == [ResolveManifest('asset-1')]
    assert state.phase == Phase.READY
    assert not state.loading
    assert state.consecutive_recoveries == 1

    state, effects = transition(state, PlayRequested())

    assert effects == [StartLoad(from_position=0.0)]
    assert state.loading
    assert state.phase == Phase.BUFFERING


def test_transport_fault_when_ready_does_not_start_loading(ready):
    state, effects = transition(ready, PlaybackFaulted(FaultKind.TRANSPORT, 'networkError'))

    assert effects == []
    assert not state.loading
    assert state.phase == Phase.READY


def test_decode_fault_only_resets_decoder(playing):
    state, effects = transition(playing, PlaybackFaulted(FaultKind.DECODE, 'bufferAppendError'))

    assert effects == [RecoverDecoder()]
    assert state.playback == playing.playback
    assert state.phase == Phase.PLAYING


def test_other_fault_is_terminal(playing):
    state, effects = run(
        playing,
        PlaybackFaulted(FaultKind.DECODE, 'bufferAppendError'),
        PlaybackFaulted(FaultKind.OTHER, 'internalException'),
    )

    assert state.phase == Phase.ERRORED
    assert effects == [
        RecoverDecoder(),
        Teardown(),
        SurfaceError('Playback Error: internalException'),
    ]
    assert not state.playback.playing


@pytest.mark.parametrize("event", [
    PlayRequested(),
    TimeAdvanced(50.0),
    BufferAdvanced(80.0),
    PlaybackFaulted(FaultKind.TRANSPORT, 'again'),
    PlaybackFaulted(FaultKind.OTHER, 'again'),
    VolumeChanged(1.0),
    TeardownRequested(),
])
def test_errored_ignores_further_events(playing, event):
    errored, _ = transition(playing, PlaybackFaulted(FaultKind.OTHER, 'internalException'))

    state, effects = transition(errored, event)

    assert state == errored
    assert effects == []


def test_recovery_cap_escalates_to_fatal(playing):
    capped = replace(playing, settings=EngineSettings(resume_margin=2.0, max_recoveries=2))
    fault = PlaybackFaulted(FaultKind.TRANSPORT, 'fragLoadError')

    state, effects = run(capped, fault, fault, fault)

    assert state.phase == Phase.ERRORED
    assert effects[:2] == [StartLoad(37.5), StartLoad(37.5)]
    assert isinstance(effects[-1], SurfaceError)
    assert 'gave up after 2 recovery attempts' in effects[-1].message


def test_buffer_progress_resets_recovery_count(playing):
    fault = PlaybackFaulted(FaultKind.TRANSPORT, 'fragLoadError')
    state, _ = run(playing, fault, fault)
    assert state.consecutive_recoveries == 2

    state, _ = transition(state, BufferAdvanced(44.0))
    assert state.consecutive_recoveries == 0
    assert state.error is None


def test_fault_before_load_is_ignored():
    state, effects = transition(EngineState(), PlaybackFaulted(FaultKind.OTHER, 'x'))
    assert state.phase == Phase.IDLE
    assert effects == []


@pytest.mark.parametrize("requested,expected", [(1.5, 1.0), (-0.2, 0.0), (0.3, 0.3)])
def test_volume_is_clamped(ready, requested, expected):
    state, _ = transition(ready, VolumeChanged(requested))
    assert state.playback.volume == expected


def test_mute_and_fullscreen_toggle(ready):
    state, _ = run(ready, MuteToggled(), FullscreenToggled())
    assert state.playback.muted and state.playback.fullscreen

    state, _ = run(state, MuteToggled(), FullscreenToggled())
    assert not state.playback.muted and not state.playback.fullscreen


def test_media_ended_pauses_at_duration(playing):
    state, effects = transition(playing, MediaEnded())

    assert state.phase == Phase.PAUSED
    assert state.playback.position == 240.0
    assert effects == [StopLoad()]


def test_time_is_clamped_to_duration(playing):
    state, _ = transition(playing, TimeAdvanced(500.0))
    assert state.playback.position == 240.0


def test_teardown_returns_to_idle(playing):
    state, effects = transition(playing, TeardownRequested())

    assert state.phase == Phase.IDLE
    assert effects == [StopLoad(), Teardown()]


def test_transition_does_not_mutate_input(playing):
    before = playing
    transition(playing, PlaybackFaulted(FaultKind.TRANSPORT, 'x'))
    assert playing == before
    assert playing.playback == PlaybackState(
        position=37.5, buffered_until=40.0, volume=0.4, playing=True
    )
