"""Shared pytest fixtures for all tests."""

import math
import re
import subprocess
from pathlib import Path

import pytest

from common.checksum import compute_digest
from common.config import Config
from common.types import Chunk


def fmp4_payload(index: int, size: int = 256) -> bytes:
    """Build bytes that start with an ISO-BMFF 'styp' box, unique per index."""
    header = (24).to_bytes(4, 'big') + b'styp' + b'msdh' + b'\x00' * 12
    body = bytes((index * 31 + i) % 256 for i in range(size))
    return header + body


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary .reelstream directory
    """
    config_dir = tmp_path / '.reelstream'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Create temporary config instance.

    Args:
        temp_config_dir: Temporary config directory fixture

    Returns:
        Config instance with temp config file
    """
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def fast_config(temp_config):
    """
    Config whose playback clock runs fast enough for tests.

    Segments are 4s long, the read-ahead allows one segment, and no retries
    or backoff delays are used.
    """
    temp_config.data.update({
        'segment_time': 4,
        'max_buffer_length': 4.0,
        'max_max_buffer_length': 8.0,
        'resume_margin': 1.0,
        'playback_rate': 80.0,
        'max_retries': 0,
        'retry_backoff_multiplier': 0,
    })
    return temp_config


@pytest.fixture
def chunk_payloads():
    """Four distinct fragmented-MP4-looking chunk payloads."""
    return [fmp4_payload(i) for i in range(1, 5)]


@pytest.fixture
def memory_chunks(chunk_payloads):
    """In-memory chunks 1..4 built from chunk_payloads."""
    return [Chunk(index=i, data=data) for i, data in enumerate(chunk_payloads, start=1)]


@pytest.fixture
def sample_media(tmp_path):
    """
    Create a small stand-in media file.

    Returns:
        Path to the file
    """
    path = tmp_path / 'talk.mp4'
    path.write_bytes(b'\x00\x00\x00\x18ftypisom' + b'\x01' * 512)
    return path


class FakeFfmpeg:
    """
    Stands in for subprocess.run when segmenting.

    ffprobe calls report `duration`; ffmpeg calls write ceil(duration /
    segment_time) chunk files into the directory named by the output
    pattern, or fail with `returncode`.
    """

    def __init__(self, duration: float = 185.0, returncode: int = 0, produce: int | None = None):
        self.duration = duration
        self.returncode = returncode
        self.produce = produce
        self.calls: list[list[str]] = []

    def __call__(self, cmd, capture_output=True, text=True):
        self.calls.append(list(cmd))
        if 'ffprobe' in Path(cmd[0]).name:
            return subprocess.CompletedProcess(cmd, 0, stdout=f"{self.duration}\n", stderr="")

        if self.returncode != 0:
            return subprocess.CompletedProcess(cmd, self.returncode, stdout="", stderr="Invalid data found when processing input")

        segment_time = float(cmd[cmd.index('-segment_time') + 1])
        count = self.produce if self.produce is not None else math.ceil(self.duration / segment_time)
        pattern = cmd[-1]
        for i in range(count):
            path = Path(re.sub(r'%03d', f"{i:03d}", pattern))
            path.write_bytes(fmp4_payload(i + 1))
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")


@pytest.fixture
def fake_ffmpeg():
    """FakeFfmpeg runner for a 185s source."""
    return FakeFfmpeg()


@pytest.fixture
def server_app():
    """
    Reference server app with empty in-memory state.

    Returns:
        FastAPI application
    """
    from server import store
    from server.main import app

    store.reset_state()
    yield app
    store.reset_state()


@pytest.fixture
def api(server_app):
    """Create FastAPI test client rooted at the API prefix."""
    from fastapi.testclient import TestClient

    return TestClient(server_app, base_url="http://testserver/api/v1")


@pytest.fixture
def published_asset(server_app, chunk_payloads):
    """
    Publish chunk_payloads directly through the server registry.

    Returns:
        PublishedAsset
    """
    from server.store import get_upload_registry

    registry = get_upload_registry()
    whole = compute_digest(b''.join(chunk_payloads))
    upload = registry.open(
        filename='talk.mp4',
        file_size=sum(len(p) for p in chunk_payloads),
        file_hash=whole,
        total_chunks=len(chunk_payloads),
        description='Conference keynote',
    )
    for index, payload in enumerate(chunk_payloads, start=1):
        registry.store_chunk(upload.upload_id, index, payload, compute_digest(payload))
    return registry.complete(upload.upload_id)


@pytest.fixture
def make_fake_ffmpeg():
    """Factory for FakeFfmpeg runners with custom behavior."""
    return FakeFfmpeg


@pytest.fixture
def server_segmenter(server_app, tmp_path):
    """
    Point the server's full-upload segmenter at a FakeFfmpeg runner.

    Returns:
        Function taking a FakeFfmpeg and installing it; the override is
        removed after the test
    """
    from publisher.segmenter import Segmenter
    from server.routes.upload_routes import get_segmenter

    def install(runner: FakeFfmpeg) -> FakeFfmpeg:
        server_app.dependency_overrides[get_segmenter] = lambda: Segmenter(
            segment_time=4, runner=runner, work_dir=tmp_path
        )
        return runner

    yield install
    server_app.dependency_overrides.pop(get_segmenter, None)
