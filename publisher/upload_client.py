"""HTTP client for the init -> chunk -> complete upload protocol."""

import base64
from typing import Optional

import httpx

from common.constants import (
    CHUNK_MIME_TYPE,
    UPLOAD_CHUNK_PATH,
    UPLOAD_COMPLETE_PATH,
    UPLOAD_FULL_PATH,
    UPLOAD_INIT_PATH,
)
from common.exceptions import (
    ChunkTransferFailed,
    CompleteFailed,
    InitRejected,
    WireContractError,
)
from common.http_client import ApiClient, format_error, is_success
from common.logging_config import get_logger
from common.protocol import CompleteRequest, FullResponse, InitRequest, InitResponse, parse_model
from common.types import Chunk, SourceAsset, UploadSession

logger = get_logger(__name__)


def calculate_upload_timeout(size: int) -> float:
    """
    Calculate timeout for a transfer based on payload size.

    Args:
        size: Payload size in bytes

    Returns:
        Timeout in seconds (30s base + 0.1s per MB)
    """
    base_timeout = 30.0
    size_mb = size / (1024 * 1024)
    return base_timeout + size_mb * 0.1


class UploadClient(ApiClient):
    """
    Wire calls for publishing a segmented file.

    Every call is a single attempt: failures are reported, never retried.
    """

    def init(
        self,
        file_size: int,
        filename: str,
        file_hash: str,
        total_chunks: int,
        description: Optional[str] = None,
        thumbnail: Optional[bytes] = None
    ) -> UploadSession:
        """
        Open an upload session.

        Args:
            file_size: Total bytes that will be transmitted
            filename: Declared filename
            file_hash: Whole-file digest over the concatenated chunks
            total_chunks: Declared chunk count
            description: Optional free-text description (fileContent)
            thumbnail: Optional thumbnail image bytes

        Returns:
            UploadSession for the new server-side session

        Raises:
            InitRejected: On any non-2xx, transport failure, or malformed response
        """
        try:
            request = InitRequest(
                file_size=file_size,
                filename=filename,
                file_content=description,
                file_hash=file_hash,
                total_chunks=total_chunks,
                thumbnail=base64.b64encode(thumbnail).decode('ascii') if thumbnail else None,
            )
        except ValueError as e:
            raise InitRejected(f"Invalid init request: {e}") from e

        logger.info(f"Initializing upload: {filename} size={file_size} chunks={total_chunks}")
        try:
            response = self._request('POST', UPLOAD_INIT_PATH, json=request.to_wire())
        except httpx.TransportError as e:
            raise InitRejected(f"Could not reach server: {type(e).__name__}") from e

        if not is_success(response):
            logger.warning(f"Init rejected for {filename}: status={response.status_code}")
            raise InitRejected(f"Server refused upload: {format_error(response)}", response.status_code)

        try:
            body = parse_model(InitResponse, response.json())
        except (ValueError, WireContractError) as e:
            raise InitRejected(f"Malformed init response: {e}", response.status_code) from e

        logger.info(f"Upload session opened [upload_id={body.upload_id}]")
        return UploadSession(upload_id=body.upload_id, expected_chunks=total_chunks, file_hash=file_hash)

    def send_chunk(self, session: UploadSession, chunk: Chunk) -> None:
        """
        Transfer one chunk with its digest.

        Args:
            session: Open upload session
            chunk: Chunk to send; its index is the server-side position

        Raises:
            ChunkTransferFailed: On non-2xx or transport failure
        """
        payload = chunk.read()
        data = {
            'uploadId': session.upload_id,
            'index': str(chunk.index),
            'chunkHash': chunk.digest,
        }
        files = {'file': (f"chunk{chunk.index:03d}.mp4", payload, CHUNK_MIME_TYPE)}

        try:
            response = self._request(
                'POST',
                UPLOAD_CHUNK_PATH,
                data=data,
                files=files,
                timeout=calculate_upload_timeout(len(payload)),
            )
        except httpx.TransportError as e:
            raise ChunkTransferFailed(
                chunk.index, f"Chunk {chunk.index} transfer failed: {type(e).__name__}"
            ) from e

        if not is_success(response):
            raise ChunkTransferFailed(
                chunk.index,
                f"Chunk {chunk.index} rejected: {format_error(response)}",
                response.status_code,
            )
        logger.debug(f"Chunk {chunk.index} acknowledged [upload_id={session.upload_id}]")

    def complete(self, session: UploadSession) -> None:
        """
        Ask the server to seal the session and publish the asset.

        Raises:
            CompleteFailed: On non-2xx or transport failure
        """
        request = CompleteRequest(upload_id=session.upload_id)
        try:
            response = self._request('POST', UPLOAD_COMPLETE_PATH, json=request.to_wire())
        except httpx.TransportError as e:
            raise CompleteFailed(f"Could not reach server to complete upload: {type(e).__name__}") from e

        if not is_success(response):
            raise CompleteFailed(
                f"Chunks were transferred but the asset was not published: {format_error(response)}",
                response.status_code,
            )
        logger.info(f"Upload completed [upload_id={session.upload_id}]")

    def upload_source(self, session: UploadSession, asset: SourceAsset) -> FullResponse:
        """
        Send the whole source file and let the server segment and publish it.

        The session must have been opened with the digest of the raw source.

        Returns:
            FullResponse with the chunk layout the server produced

        Raises:
            CompleteFailed: On non-2xx, transport failure, or malformed response
        """
        logger.info(f"Uploading {asset.display_name} for server-side segmentation [upload_id={session.upload_id}]")
        try:
            with open(asset.path, 'rb') as f:
                response = self._request(
                    'POST',
                    UPLOAD_FULL_PATH,
                    data={'uploadId': session.upload_id},
                    files={'file': (asset.display_name, f, CHUNK_MIME_TYPE)},
                    timeout=calculate_upload_timeout(asset.size),
                )
        except httpx.TransportError as e:
            raise CompleteFailed(f"Could not reach server to upload source: {type(e).__name__}") from e

        if not is_success(response):
            raise CompleteFailed(f"Source was not published: {format_error(response)}", response.status_code)

        try:
            body = parse_model(FullResponse, response.json())
        except (ValueError, WireContractError) as e:
            raise CompleteFailed(f"Malformed full upload response: {e}", response.status_code) from e

        logger.info(f"Server published {body.total_chunks} chunk(s) [upload_id={session.upload_id}]")
        return body
