"""Provides SHA-256 digest calculation and verification helpers."""

import hashlib
from pathlib import Path
from typing import Iterable, Protocol

from common.constants import READ_BLOCK_SIZE


class _IndexedPayload(Protocol):
    index: int

    def iter_bytes(self, block_size: int = READ_BLOCK_SIZE) -> Iterable[bytes]: ...


def compute_digest(data: bytes) -> str:
    """
    Compute SHA-256 digest for given data.

    Args:
        data: Bytes to compute digest for

    Returns:
        Hexadecimal string representation of SHA-256 hash
    """
    return hashlib.sha256(data).hexdigest()


def verify_digest(data: bytes, expected: str) -> bool:
    """
    Verify that data matches expected digest.

    Args:
        data: Bytes to verify
        expected: Expected SHA-256 digest (hex string, any case)

    Returns:
        True if digest matches, False otherwise
    """
    if not expected:
        return False
    return compute_digest(data) == expected.lower()


def digest_file(path: Path, block_size: int = READ_BLOCK_SIZE) -> str:
    """
    Compute SHA-256 digest of a file without loading it into memory.

    Args:
        path: File to hash
        block_size: Read size in bytes

    Returns:
        Hexadecimal digest
    """
    calculator = IncrementalDigest()
    with open(path, 'rb') as f:
        while True:
            block = f.read(block_size)
            if not block:
                break
            calculator.update(block)
    return calculator.finalize()


def digest_chunks(chunks: Iterable[_IndexedPayload], block_size: int = READ_BLOCK_SIZE) -> str:
    """
    Compute the whole-file digest over the concatenation of chunk payloads.

    The digest covers exactly what is transmitted, in index order, so chunks
    must be supplied as 1..N with no gaps.

    Args:
        chunks: Chunks in index order
        block_size: Read size in bytes

    Returns:
        Hexadecimal digest

    Raises:
        ValueError: If chunk indices are not contiguous starting at 1
    """
    calculator = IncrementalDigest()
    expected_index = 1
    for chunk in chunks:
        if chunk.index != expected_index:
            raise ValueError(
                f"Chunks must be contiguous from 1: expected index {expected_index}, got {chunk.index}"
            )
        for block in chunk.iter_bytes(block_size):
            calculator.update(block)
        expected_index += 1
    return calculator.finalize()


class IncrementalDigest:
    """
    Calculate SHA-256 digest incrementally for streaming data.

    Usage:
        calculator = IncrementalDigest()
        calculator.update(chunk1)
        calculator.update(chunk2)
        final_digest = calculator.finalize()
    """

    def __init__(self):
        self._hasher = hashlib.sha256()
        self._finalized = False

    def update(self, data: bytes) -> None:
        """
        Update digest with new data.

        Args:
            data: Bytes to add to digest calculation
        """
        if self._finalized:
            raise ValueError("Cannot update after finalization")
        self._hasher.update(data)

    def finalize(self) -> str:
        """
        Finalize digest calculation and return result.

        Returns:
            Hexadecimal string representation of SHA-256 hash
        """
        self._finalized = True
        return self._hasher.hexdigest()

    def reset(self) -> None:
        """Reset calculator to initial state."""
        self._hasher = hashlib.sha256()
        self._finalized = False
