"""Tests for the upload state machine."""

from unittest.mock import Mock

import pytest

from common.checksum import compute_digest
from common.exceptions import ChunkTransferFailed, CompleteFailed, InitRejected
from common.types import Chunk, SourceAsset, UploadSession
from publisher.coordinator import UploadCoordinator, UploadState, publish_file, publish_source_file
from publisher.segmenter import Segmenter
from publisher.upload_client import UploadClient


@pytest.fixture
def asset(sample_media):
    return SourceAsset.from_path(sample_media, description='Keynote')


@pytest.fixture
def mock_client():
    """Upload client whose every call succeeds."""
    client = Mock(spec=UploadClient)
    client.init.side_effect = lambda **kwargs: UploadSession(
        upload_id='up-1',
        expected_chunks=kwargs['total_chunks'],
        file_hash=kwargs['file_hash'],
    )
    return client


def sent_indices(client) -> list[int]:
    return [c.args[1].index for c in client.send_chunk.call_args_list]


def test_successful_upload(mock_client, asset, memory_chunks, chunk_payloads):
    coordinator = UploadCoordinator(mock_client)
    outcome = coordinator.upload(asset, memory_chunks)

    assert outcome.succeeded
    assert outcome.upload_id == 'up-1'
    assert coordinator.state == UploadState.COMPLETED
    assert coordinator.session.sealed

    init_kwargs = mock_client.init.call_args.kwargs
    assert init_kwargs['filename'] == 'talk.mp4'
    assert init_kwargs['description'] == 'Keynote'
    assert init_kwargs['total_chunks'] == 4
    assert init_kwargs['file_size'] == sum(len(p) for p in chunk_payloads)
    assert init_kwargs['file_hash'] == compute_digest(b''.join(chunk_payloads))

    assert sent_indices(mock_client) == [1, 2, 3, 4]
    mock_client.complete.assert_called_once()


def test_chunk_failure_stops_sequence(mock_client, asset, memory_chunks):
    """Chunk 2 fails: chunks 3 and 4 are never sent and complete is never called."""
    def send_chunk(session, chunk):
        if chunk.index == 2:
            raise ChunkTransferFailed(2, "Chunk 2 rejected: Server error (HTTP 500)", 500)

    mock_client.send_chunk.side_effect = send_chunk
    coordinator = UploadCoordinator(mock_client)

    outcome = coordinator.upload(asset, memory_chunks)

    assert not outcome.succeeded
    assert outcome.failed_chunk_index == 2
    assert outcome.upload_id == 'up-1'
    assert 'ChunkTransferFailed(2)' in outcome.reason
    assert isinstance(outcome.error, ChunkTransferFailed)
    assert sent_indices(mock_client) == [1, 2]
    mock_client.complete.assert_not_called()
    assert coordinator.state == UploadState.FAILED
    assert coordinator.session.acknowledged == {1}
    assert all(chunk.released for chunk in memory_chunks)


def test_progress_reaches_one_only_after_complete(mock_client, asset, memory_chunks):
    reports = []
    completed_before_full = []

    def on_progress(progress):
        reports.append(progress.fraction)
        if progress.fraction == 1.0:
            completed_before_full.append(mock_client.complete.called)

    coordinator = UploadCoordinator(mock_client, progress_callback=on_progress)
    coordinator.upload(asset, memory_chunks)

    assert reports == [0.0, 0.25, 0.5, 0.75, 1.0]
    assert completed_before_full == [True]


def test_progress_never_full_when_complete_fails(mock_client, asset, memory_chunks):
    reports = []
    mock_client.complete.side_effect = CompleteFailed("Chunks were transferred but the asset was not published", 409)

    coordinator = UploadCoordinator(mock_client, progress_callback=lambda p: reports.append(p.fraction))
    outcome = coordinator.upload(asset, memory_chunks)

    assert not outcome.succeeded
    assert outcome.failed_chunk_index is None
    assert outcome.reason.startswith('CompleteFailed')
    assert reports == [0.0, 0.25, 0.5, 0.75]
    assert sent_indices(mock_client) == [1, 2, 3, 4]


def test_init_rejected(mock_client, asset, memory_chunks):
    mock_client.init.side_effect = InitRejected("Server refused upload: Bad request (HTTP 400)", 400)

    coordinator = UploadCoordinator(mock_client)
    outcome = coordinator.upload(asset, memory_chunks)

    assert not outcome.succeeded
    assert outcome.upload_id is None
    assert outcome.reason.startswith('InitRejected')
    mock_client.send_chunk.assert_not_called()
    mock_client.complete.assert_not_called()


def test_no_chunks_fails_without_contacting_server(mock_client, asset):
    outcome = UploadCoordinator(mock_client).upload(asset, [])

    assert not outcome.succeeded
    mock_client.init.assert_not_called()


def test_gap_in_chunk_indices_is_rejected(mock_client, asset):
    chunks = [Chunk(index=1, data=b'a'), Chunk(index=3, data=b'c')]

    outcome = UploadCoordinator(mock_client).upload(asset, chunks)

    assert not outcome.succeeded
    assert 'Invalid chunk sequence' in outcome.reason
    mock_client.init.assert_not_called()


def test_cancel_before_next_chunk(mock_client, asset, memory_chunks):
    coordinator = UploadCoordinator(mock_client)

    def send_chunk(session, chunk):
        if chunk.index == 2:
            coordinator.cancel()

    mock_client.send_chunk.side_effect = send_chunk
    outcome = coordinator.upload(asset, memory_chunks)

    assert not outcome.succeeded
    assert outcome.reason == 'cancelled'
    assert outcome.failed_chunk_index == 3
    assert sent_indices(mock_client) == [1, 2]
    mock_client.complete.assert_not_called()


def test_cancel_before_init_reports_no_chunk(mock_client, asset, memory_chunks):
    coordinator = UploadCoordinator(mock_client)
    coordinator.cancel()

    outcome = coordinator.upload(asset, memory_chunks)

    assert outcome.reason == 'cancelled'
    assert outcome.failed_chunk_index is None
    mock_client.init.assert_not_called()
    mock_client.send_chunk.assert_not_called()
    assert all(chunk.released for chunk in memory_chunks)


def test_coordinator_is_single_use(mock_client, asset, memory_chunks):
    coordinator = UploadCoordinator(mock_client)
    coordinator.upload(asset, memory_chunks)

    with pytest.raises(RuntimeError):
        coordinator.upload(asset, memory_chunks)


def test_publish_file_segments_and_uploads(mock_client, sample_media, fake_ffmpeg, tmp_path):
    segmenter = Segmenter(segment_time=60, runner=fake_ffmpeg, work_dir=tmp_path)

    outcome = publish_file(sample_media, mock_client, segmenter=segmenter, description='Keynote')

    assert outcome.succeeded
    assert mock_client.init.call_args.kwargs['total_chunks'] == 4
    assert sent_indices(mock_client) == [1, 2, 3, 4]
    assert segmenter.output_dir is None


def test_publish_file_reports_segmentation_failure(mock_client, sample_media, make_fake_ffmpeg, tmp_path):
    segmenter = Segmenter(segment_time=60, runner=make_fake_ffmpeg(returncode=1), work_dir=tmp_path)

    outcome = publish_file(sample_media, mock_client, segmenter=segmenter)

    assert not outcome.succeeded
    assert outcome.reason.startswith('SegmentationFailed')
    mock_client.init.assert_not_called()


def test_publish_file_missing_source(mock_client, tmp_path):
    outcome = publish_file(tmp_path / 'missing.mp4', mock_client)

    assert not outcome.succeeded
    assert 'File not found' in outcome.reason


def test_publish_source_file_declares_raw_digest(mock_client, sample_media):
    outcome = publish_source_file(sample_media, mock_client, description='Keynote')

    assert outcome.succeeded
    assert outcome.upload_id == 'up-1'
    init_kwargs = mock_client.init.call_args.kwargs
    assert init_kwargs['file_hash'] == compute_digest(sample_media.read_bytes())
    assert init_kwargs['file_size'] == sample_media.stat().st_size
    assert init_kwargs['description'] == 'Keynote'
    session, asset = mock_client.upload_source.call_args.args
    assert session.upload_id == 'up-1'
    assert asset.path == sample_media
    mock_client.send_chunk.assert_not_called()


def test_publish_source_file_server_refusal(mock_client, sample_media):
    mock_client.upload_source.side_effect = CompleteFailed("Source was not published: bad media", 422)

    outcome = publish_source_file(sample_media, mock_client)

    assert not outcome.succeeded
    assert outcome.upload_id == 'up-1'
    assert outcome.failed_chunk_index is None
    assert outcome.reason == 'CompleteFailed: Source was not published: bad media'


def test_publish_source_file_missing_file(mock_client, tmp_path):
    outcome = publish_source_file(tmp_path / 'absent.mp4', mock_client)

    assert not outcome.succeeded
    assert 'File not found' in outcome.reason
    mock_client.init.assert_not_called()
