"""Configuration settings for the reference server."""

import os

from common.constants import API_PREFIX, DEFAULT_SERVER_PORT, SEGMENT_TIME_SECONDS


SERVER_HOST = os.environ.get("REELSTREAM_SERVER_HOST", "0.0.0.0")

SERVER_PORT = int(os.environ.get("REELSTREAM_SERVER_PORT", str(DEFAULT_SERVER_PORT)))

SERVER_API_PREFIX = os.environ.get("REELSTREAM_API_PREFIX", API_PREFIX)

SEGMENT_TIME = int(os.environ.get("REELSTREAM_SEGMENT_TIME", str(SEGMENT_TIME_SECONDS)))

LATEST_LIMIT = 10
