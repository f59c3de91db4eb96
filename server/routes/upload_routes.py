"""Upload protocol API routes: init, chunk, complete, and single-request full upload."""

import shutil
import tempfile
from pathlib import Path

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from common.protocol import (
    ChunkIndexEntry,
    ChunkResponse,
    CompleteRequest,
    CompleteResponse,
    FullResponse,
    InitRequest,
    InitResponse,
)
from publisher.segmenter import Segmenter
from server.config import SEGMENT_TIME, SERVER_API_PREFIX
from server.store import UploadRegistry, get_upload_registry

router = APIRouter(prefix=f"{SERVER_API_PREFIX}/upload", tags=["Upload"])


@router.post("/init", response_model=InitResponse, status_code=status.HTTP_201_CREATED)
async def init_upload(
    request: InitRequest,
    registry: UploadRegistry = Depends(get_upload_registry)
):
    """
    Open an upload session.

    Parameters:
        - fileSize: Total bytes that will be transmitted
        - filename: Declared filename
        - fileContent: Optional description
        - fileHash: SHA-256 over the concatenated chunks
        - totalChunks: Declared chunk count
        - thumbnail: Optional base64 image

    Returns:
        - uploadId: Session token for the chunk and complete calls

    Raises:
        - 422: Request does not match the wire contract
    """
    upload = registry.open(
        filename=request.filename,
        file_size=request.file_size,
        file_hash=request.file_hash,
        total_chunks=request.total_chunks,
        description=request.file_content,
        thumbnail=request.thumbnail,
    )
    return InitResponse(upload_id=upload.upload_id)


@router.post("/chunk", response_model=ChunkResponse)
async def upload_chunk(
    file: UploadFile = File(...),
    upload_id: str = Form(..., alias="uploadId"),
    index: int = Form(...),
    chunk_hash: str = Form(..., alias="chunkHash"),
    registry: UploadRegistry = Depends(get_upload_registry)
):
    """
    Store one chunk of an open session (multipart/form-data).

    Raises:
        - 400: Index outside 1..N
        - 404: Unknown upload id
        - 409: Session already completed
        - 422: Chunk bytes do not match chunkHash
    """
    data = await file.read()
    registry.store_chunk(upload_id, index, data, chunk_hash)
    return ChunkResponse(upload_id=upload_id, index=index)


@router.post("/complete", response_model=CompleteResponse)
async def complete_upload(
    request: CompleteRequest,
    registry: UploadRegistry = Depends(get_upload_registry)
):
    """
    Seal a session and publish the asset.

    Raises:
        - 404: Unknown upload id
        - 409: Missing chunks, or session already completed
        - 422: Whole-file digest mismatch
    """
    asset = registry.complete(request.upload_id)
    return CompleteResponse(file_id=asset.asset_id, total_chunks=len(asset.chunks))


def get_segmenter() -> Segmenter:
    return Segmenter(segment_time=SEGMENT_TIME)


@router.post("/full", response_model=FullResponse)
def full_upload(
    file: UploadFile = File(...),
    upload_id: str = Form(..., alias="uploadId"),
    registry: UploadRegistry = Depends(get_upload_registry),
    segmenter: Segmenter = Depends(get_segmenter)
):
    """
    Publish a whole source file in one request; the server segments it.

    The init fileHash must be the digest of the raw source bytes.

    Returns:
        - fileId, totalChunks and the index and digest of every chunk

    Raises:
        - 404: Unknown upload id
        - 409: Session already completed
        - 422: Source digest mismatch, or the source cannot be segmented
    """
    suffix = Path(file.filename or "").suffix
    with tempfile.TemporaryDirectory(prefix="reelstream_full_") as tmp:
        source = Path(tmp) / f"source{suffix}"
        with open(source, 'wb') as f:
            shutil.copyfileobj(file.file, f)
        asset = registry.publish_source(upload_id, source, segmenter)

    return FullResponse(
        file_id=asset.asset_id,
        total_chunks=len(asset.chunks),
        chunks=[ChunkIndexEntry(index=i, hash=d) for i, d in enumerate(asset.digests, start=1)],
    )
