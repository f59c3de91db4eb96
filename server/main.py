"""Entry point for the Reelstream reference server."""

import time
import uuid

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from common.logging_config import get_logger, setup_logging
from server.config import SERVER_HOST, SERVER_PORT
from server.exceptions import (
    AssetNotFoundError,
    ChecksumMismatchError,
    IncompleteUploadError,
    InvalidChunkIndexError,
    MediaProcessingError,
    ServerError,
    UploadNotFoundError,
    UploadSealedError,
)
from server.routes import catalog_router, download_router, upload_router
from server.store import get_asset_store, get_upload_registry

setup_logging('server')
logger = get_logger('server')

app = FastAPI(
    title="Reelstream Server",
    description="Reference server for chunked, digest-verified media upload and playback",
    version="1.0.0"
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.info(f"Request started: {request.method} {request.url.path} [request_id={request_id}]")

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


def _error_response(request: Request, exc: Exception, status_code: int, code: str) -> JSONResponse:
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"{type(exc).__name__}: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return JSONResponse(status_code=status_code, content={"detail": str(exc), "code": code})


@app.exception_handler(UploadNotFoundError)
async def upload_not_found_handler(request: Request, exc: UploadNotFoundError):
    return _error_response(request, exc, status.HTTP_404_NOT_FOUND, "UPLOAD_NOT_FOUND")


@app.exception_handler(UploadSealedError)
async def upload_sealed_handler(request: Request, exc: UploadSealedError):
    return _error_response(request, exc, status.HTTP_409_CONFLICT, "UPLOAD_SEALED")


@app.exception_handler(InvalidChunkIndexError)
async def invalid_chunk_index_handler(request: Request, exc: InvalidChunkIndexError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "INVALID_CHUNK_INDEX")


@app.exception_handler(ChecksumMismatchError)
async def checksum_mismatch_handler(request: Request, exc: ChecksumMismatchError):
    return _error_response(request, exc, 422, "CHECKSUM_MISMATCH")


@app.exception_handler(IncompleteUploadError)
async def incomplete_upload_handler(request: Request, exc: IncompleteUploadError):
    return _error_response(request, exc, status.HTTP_409_CONFLICT, "INCOMPLETE_UPLOAD")


@app.exception_handler(MediaProcessingError)
async def media_processing_handler(request: Request, exc: MediaProcessingError):
    return _error_response(request, exc, 422, "SEGMENTATION_FAILED")


@app.exception_handler(AssetNotFoundError)
async def asset_not_found_handler(request: Request, exc: AssetNotFoundError):
    return _error_response(request, exc, status.HTTP_404_NOT_FOUND, "ASSET_NOT_FOUND")


@app.exception_handler(ServerError)
async def server_exception_handler(request: Request, exc: ServerError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Server exception: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc), "code": "INTERNAL_ERROR"}
    )


app.include_router(upload_router)
app.include_router(download_router)
app.include_router(catalog_router)


@app.get("/")
async def root():
    """
    Root endpoint for health check.
    """
    return {"message": "Reelstream Server API", "status": "running"}


@app.get("/health")
async def health_check():
    """
    Health check endpoint.
    Returns 200 if service is alive, with pending and published counts.
    """
    return {
        "status": "healthy",
        "service": "server",
        "pending_uploads": get_upload_registry().pending_count(),
        "assets": get_asset_store().count(),
    }


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "server.main:app",
        host=SERVER_HOST,
        port=SERVER_PORT,
    )


if __name__ == "__main__":
    main()
