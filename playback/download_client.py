"""Manifest-driven retrieval and bulk export of published assets."""

import re
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import unquote

import httpx

from common.checksum import IncrementalDigest, verify_digest
from common.constants import CHUNK_PATH, EXPORT_PATH, PLAYLIST_PATH, READ_BLOCK_SIZE
from common.exceptions import ChecksumMismatchError, ManifestErrorKind, ManifestUnavailable, StreamingError
from common.http_client import format_error, is_success
from common.logging_config import get_logger
from common.types import Manifest
from playback.manifest_resolver import ManifestResolver

logger = get_logger(__name__)

EXTENDED_FILENAME_PATTERN = re.compile(r"filename\*=(?:[\w-]+'[^']*')?([^;]+)", re.IGNORECASE)
FILENAME_PATTERN = re.compile(r'filename="?([^";]+)"?', re.IGNORECASE)


def filename_from_disposition(header: Optional[str]) -> Optional[str]:
    """
    Extract the filename hint from a Content-Disposition header.

    The percent-encoded `filename*` form wins over plain `filename`.
    Directory components are stripped so the hint can never escape the
    destination directory.
    """
    if not header:
        return None
    match = EXTENDED_FILENAME_PATTERN.search(header)
    if match:
        raw = unquote(match.group(1).strip().strip('"'))
    else:
        match = FILENAME_PATTERN.search(header)
        if not match:
            return None
        raw = match.group(1).strip()
    name = Path(raw).name
    return name or None


class DownloadClient(ManifestResolver):
    """Client for reading published assets back from the server."""

    def playlist_url(self, asset_id: str) -> str:
        return f"{self.config.get_base_url()}{PLAYLIST_PATH.format(asset_id=asset_id)}"

    def fetch_chunk(self, manifest: Manifest, index: int) -> bytes:
        """
        Download one chunk and verify it against the manifest digest.

        Raises:
            ManifestUnavailable: If the server cannot be reached
            StreamingError: If the server refuses the chunk
            ChecksumMismatchError: If the bytes do not match the published digest
        """
        expected = manifest.chunk(index).digest
        try:
            response = self._request_with_retry('GET', CHUNK_PATH.format(asset_id=manifest.asset_id, index=index))
        except ConnectionError as e:
            raise ManifestUnavailable(ManifestErrorKind.UNREACHABLE, str(e)) from e

        if not is_success(response):
            raise StreamingError(f"Chunk {index} unavailable: {format_error(response)}")

        payload = response.content
        if not verify_digest(payload, expected):
            raise ChecksumMismatchError(f"Chunk {index} of {manifest.asset_id} failed digest verification", index)
        return payload

    def fetch(
        self,
        asset_id: str,
        dest: Path,
        progress_callback: Optional[Callable[[int, int], None]] = None
    ) -> Path:
        """
        Reassemble an asset from its chunks, verifying each one and the whole file.

        Args:
            asset_id: Published asset identifier
            dest: Output file path, or an existing directory to place the file in
            progress_callback: Called with (chunks written, total chunks)

        Returns:
            Path of the written file

        Raises:
            ChecksumMismatchError: If a chunk or the reassembled file fails verification
        """
        manifest = self.resolve(asset_id)
        dest = Path(dest)
        if dest.is_dir():
            dest = dest / Path(manifest.file_name).name
        dest.parent.mkdir(parents=True, exist_ok=True)

        whole = IncrementalDigest()
        total = manifest.chunk_count
        try:
            with open(dest, 'wb') as f:
                for entry in manifest.chunks:
                    payload = self.fetch_chunk(manifest, entry.index)
                    f.write(payload)
                    whole.update(payload)
                    logger.debug(f"Chunk {entry.index}/{total} of {asset_id} verified ({len(payload)} bytes)")
                    if progress_callback:
                        progress_callback(entry.index, total)

            if whole.finalize() != manifest.file_hash.lower():
                raise ChecksumMismatchError(f"Reassembled file for {asset_id} does not match its published digest")
        except Exception:
            dest.unlink(missing_ok=True)
            raise

        logger.info(f"Fetched {asset_id} to {dest} ({total} chunk(s))")
        return dest

    def export(self, asset_id: str, dest: Path) -> Path:
        """
        Download the whole asset in one streamed response.

        Args:
            asset_id: Published asset identifier
            dest: Output file path, or a directory where the server's
                filename hint is used

        Returns:
            Path of the written file

        Raises:
            ManifestUnavailable: NOT_FOUND for unknown ids, UNREACHABLE on transport failure
            StreamingError: For other server refusals
        """
        dest = Path(dest)
        self._prepare({})
        logger.info(f"Exporting asset {asset_id} [request_id={self.request_id}]")
        try:
            with self.session.stream(
                'GET', EXPORT_PATH.format(asset_id=asset_id), headers={'X-Request-ID': self.request_id}
            ) as response:
                if response.status_code == 404:
                    raise ManifestUnavailable(ManifestErrorKind.NOT_FOUND, f"Asset {asset_id} not found")
                if not is_success(response):
                    response.read()
                    raise StreamingError(f"Export failed: {format_error(response)}")

                if dest.is_dir():
                    name = filename_from_disposition(response.headers.get('content-disposition')) or asset_id
                    dest = dest / name
                dest.parent.mkdir(parents=True, exist_ok=True)
                try:
                    with open(dest, 'wb') as f:
                        for block in response.iter_bytes(READ_BLOCK_SIZE):
                            f.write(block)
                except Exception:
                    dest.unlink(missing_ok=True)
                    raise
        except httpx.TransportError as e:
            raise ManifestUnavailable(
                ManifestErrorKind.UNREACHABLE, f"Transport failure: {type(e).__name__}"
            ) from e

        logger.info(f"Exported {asset_id} to {dest}")
        return dest
