"""Read-back API routes: manifest, chunks, playlist and export."""

from urllib.parse import quote

from fastapi import APIRouter, Depends
from fastapi.responses import Response, StreamingResponse

from common.constants import CHUNK_MIME_TYPE, PLAYLIST_MIME_TYPE
from common.protocol import ManifestResponse
from server.config import SEGMENT_TIME, SERVER_API_PREFIX
from server.playlist import build_playlist
from server.store import AssetStore, get_asset_store

router = APIRouter(prefix=f"{SERVER_API_PREFIX}/download", tags=["Download"])


def content_disposition(filename: str) -> str:
    """Attachment header with an ASCII fallback name and the RFC 5987 UTF-8 name."""
    fallback = ''.join(c if 32 <= ord(c) < 127 and c not in '"\\' else '_' for c in filename)
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


@router.get("/{asset_id}", response_model=ManifestResponse)
async def get_manifest(asset_id: str, store: AssetStore = Depends(get_asset_store)):
    """
    Return the chunk layout and digests of a published asset.

    Raises:
        - 404: Asset not found
    """
    asset = store.get(asset_id)
    return ManifestResponse.from_manifest(asset.to_manifest())


@router.get("/{asset_id}/chunk/{index}")
async def get_chunk(asset_id: str, index: int, store: AssetStore = Depends(get_asset_store)):
    """
    Return the bytes of one chunk.

    Raises:
        - 400: Index outside 1..N
        - 404: Asset not found
    """
    asset = store.get(asset_id)
    return Response(content=asset.chunk(index), media_type=CHUNK_MIME_TYPE)


@router.get("/{asset_id}/playlist.m3u8")
async def get_playlist(asset_id: str, store: AssetStore = Depends(get_asset_store)):
    """
    Return an HLS playlist over the asset's chunks.

    Raises:
        - 404: Asset not found
    """
    asset = store.get(asset_id)
    return Response(content=build_playlist(asset, SEGMENT_TIME), media_type=PLAYLIST_MIME_TYPE)


@router.get("/{asset_id}/export")
async def export_asset(asset_id: str, store: AssetStore = Depends(get_asset_store)):
    """
    Stream the whole asset as one download.

    Returns:
        - StreamingResponse with a Content-Disposition filename hint

    Raises:
        - 404: Asset not found
    """
    asset = store.get(asset_id)
    return StreamingResponse(
        asset.iter_bytes(),
        media_type=CHUNK_MIME_TYPE,
        headers={
            "Content-Disposition": content_disposition(asset.file_name),
            "Content-Length": str(asset.file_size),
        }
    )
