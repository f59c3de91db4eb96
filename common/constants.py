"""Project-wide constants (segment policy, endpoint paths, buffer defaults)."""

SEGMENT_TIME_SECONDS: int = 60
FRAGMENT_MOVFLAGS: str = "+frag_keyframe+empty_moov+default_base_moof"
CHUNK_FILE_PREFIX: str = "chunk"
CHUNK_FILE_SUFFIX: str = ".mp4"
CHUNK_MIME_TYPE: str = "video/mp4"
PLAYLIST_MIME_TYPE: str = "application/vnd.apple.mpegurl"

READ_BLOCK_SIZE: int = 8192

DEFAULT_SERVER_HOST: str = "localhost"
DEFAULT_SERVER_PORT: int = 8080
API_PREFIX: str = "/api/v1"

UPLOAD_INIT_PATH: str = "/upload/init"
UPLOAD_CHUNK_PATH: str = "/upload/chunk"
UPLOAD_COMPLETE_PATH: str = "/upload/complete"
UPLOAD_FULL_PATH: str = "/upload/full"
MANIFEST_PATH: str = "/download/{asset_id}"
CHUNK_PATH: str = "/download/{asset_id}/chunk/{index}"
PLAYLIST_PATH: str = "/download/{asset_id}/playlist.m3u8"
EXPORT_PATH: str = "/download/{asset_id}/export"
CATALOG_SEARCH_PATH: str = "/catalog/search"
CATALOG_LATEST_PATH: str = "/catalog/latest"

MAX_BUFFER_LENGTH_SECONDS: float = 15.0
MAX_MAX_BUFFER_LENGTH_SECONDS: float = 20.0
RESUME_MARGIN_SECONDS: float = 2.0
MAX_CONSECUTIVE_RECOVERIES: int = 3
