"""Tests for digest calculation and verification."""

import hashlib

import pytest

from common.checksum import (
    IncrementalDigest,
    compute_digest,
    digest_chunks,
    digest_file,
    verify_digest,
)
from common.types import Chunk


def test_compute_digest_matches_sha256():
    """Digest is lowercase hex SHA-256."""
    data = b'reelstream'
    assert compute_digest(data) == hashlib.sha256(data).hexdigest()
    assert len(compute_digest(data)) == 64


def test_verify_digest_accepts_any_case():
    data = b'payload'
    assert verify_digest(data, compute_digest(data).upper())


def test_verify_digest_detects_single_byte_change():
    data = b'payload'
    digest = compute_digest(data)
    assert not verify_digest(b'paylaod', digest)


def test_distinct_payloads_have_distinct_digests(chunk_payloads):
    """No collisions across a corpus of near-identical and structured payloads."""
    corpus = list(chunk_payloads)
    corpus += [b'', b'\x00', b'\x00\x00', b'\x01']
    corpus += [bytes([i]) * 1024 for i in range(256)]
    base = chunk_payloads[0]
    corpus += [base[:i] + bytes([base[i] ^ 0x01]) + base[i + 1:] for i in range(len(base))]
    corpus += [base[:n] for n in range(8, len(base))]

    assert len(set(corpus)) == len(corpus)
    digests = {compute_digest(payload) for payload in corpus}
    assert len(digests) == len(corpus)


def test_verify_digest_rejects_empty_expected():
    assert not verify_digest(b'payload', '')


def test_digest_file_streams(tmp_path):
    """File digest equals the digest of its full contents."""
    path = tmp_path / 'blob.bin'
    data = bytes(range(256)) * 100
    path.write_bytes(data)

    assert digest_file(path, block_size=1000) == compute_digest(data)


def test_digest_chunks_covers_concatenation(memory_chunks, chunk_payloads):
    """Whole-file digest is over the chunks concatenated in index order."""
    assert digest_chunks(memory_chunks) == compute_digest(b''.join(chunk_payloads))


def test_digest_chunks_rejects_gap(chunk_payloads):
    chunks = [Chunk(index=1, data=chunk_payloads[0]), Chunk(index=3, data=chunk_payloads[2])]
    with pytest.raises(ValueError, match="expected index 2"):
        digest_chunks(chunks)


def test_digest_chunks_rejects_out_of_order(chunk_payloads):
    chunks = [Chunk(index=2, data=chunk_payloads[1]), Chunk(index=1, data=chunk_payloads[0])]
    with pytest.raises(ValueError):
        digest_chunks(chunks)


class TestIncrementalDigest:
    """Tests for streaming digest calculation."""

    def test_matches_one_shot(self):
        calculator = IncrementalDigest()
        calculator.update(b'abc')
        calculator.update(b'def')
        assert calculator.finalize() == compute_digest(b'abcdef')

    def test_update_after_finalize_fails(self):
        calculator = IncrementalDigest()
        calculator.finalize()
        with pytest.raises(ValueError):
            calculator.update(b'late')

    def test_reset(self):
        calculator = IncrementalDigest()
        calculator.update(b'discard')
        calculator.finalize()
        calculator.reset()
        calculator.update(b'keep')
        assert calculator.finalize() == compute_digest(b'keep')
