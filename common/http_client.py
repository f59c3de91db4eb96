"""Shared HTTP plumbing for the Reelstream API clients."""

import time
import uuid
from typing import Optional

import httpx

from common.config import Config
from common.logging_config import get_logger

logger = get_logger(__name__)

ERROR_MESSAGES = {
    'UPLOAD_NOT_FOUND': 'Upload session not found on server.',
    'UPLOAD_SEALED': 'Upload session has already been completed.',
    'INVALID_CHUNK_INDEX': 'Chunk index is outside the declared range.',
    'CHECKSUM_MISMATCH': 'Integrity check failed: digest does not match content.',
    'INCOMPLETE_UPLOAD': 'Server has not received every chunk of this upload.',
    'SEGMENTATION_FAILED': 'Server could not segment the uploaded media.',
    'ASSET_NOT_FOUND': 'Asset not found on server.',
}

STATUS_MESSAGES = {
    400: 'Bad request',
    404: 'Not found',
    409: 'Conflict',
    413: 'File too large',
    422: 'Request rejected by server validation',
    500: 'Server error',
    503: 'Service unavailable',
    507: 'Insufficient storage',
}


def is_success(response: httpx.Response) -> bool:
    return 200 <= response.status_code < 300


def format_error(response: httpx.Response) -> str:
    """
    Map HTTP errors to user-friendly messages.

    Args:
        response: HTTP response object

    Returns:
        User-friendly error message
    """
    try:
        error_data = response.json()
        detail = error_data.get('detail', 'Unknown error')
        code = error_data.get('code', 'UNKNOWN')
    except (ValueError, AttributeError):
        detail = response.text if response.text else 'Unknown error'
        code = 'UNKNOWN'

    if code in ERROR_MESSAGES:
        return ERROR_MESSAGES[code]

    message = STATUS_MESSAGES.get(response.status_code, str(detail))
    return f"{message} (Code: {code})" if code != 'UNKNOWN' else f"{message} (HTTP {response.status_code})"


def build_async_client(config: Config) -> httpx.AsyncClient:
    """Create a non-blocking client bound to the configured server."""
    return httpx.AsyncClient(base_url=config.get_base_url(), timeout=config.get_timeout())


class ApiClient:
    """HTTP client base with single-shot requests and retry for idempotent reads."""

    def __init__(self, config: Config):
        """
        Initialize API client.

        Args:
            config: Configuration instance
        """
        self.config = config
        self.session = httpx.Client(
            base_url=config.get_base_url(),
            timeout=config.get_timeout()
        )
        self.request_id: Optional[str] = None
        logger.debug(f"Initialized {type(self).__name__} [base_url={config.get_base_url()}]")

    def _prepare(self, kwargs: dict) -> None:
        self.request_id = str(uuid.uuid4())
        kwargs.setdefault('headers', {})
        kwargs['headers']['X-Request-ID'] = self.request_id

    def _request(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        """
        Make exactly one HTTP request. Transport errors propagate to the caller.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            **kwargs: Additional arguments to pass to httpx request

        Returns:
            HTTP response object
        """
        self._prepare(kwargs)
        logger.debug(f"Making request: {method} {endpoint} [request_id={self.request_id}]")
        response = self.session.request(method, endpoint, **kwargs)
        logger.debug(
            f"Response received: {method} {endpoint} status={response.status_code} [request_id={self.request_id}]"
        )
        return response

    def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        max_retries: Optional[int] = None,
        **kwargs
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic on 5xx errors and network failures.

        Only used for idempotent reads; upload calls go through _request.

        Args:
            method: HTTP method (GET)
            endpoint: API endpoint path
            max_retries: Max retry attempts (uses config default if None)
            **kwargs: Additional arguments to pass to httpx request

        Returns:
            HTTP response object

        Raises:
            ConnectionError: If max retries exceeded on network failures
        """
        retry_config = self.config.get_retry_config()
        max_retries = max_retries if max_retries is not None else retry_config['max_retries']
        backoff = retry_config['retry_backoff_multiplier']

        last_exception = None
        self._prepare(kwargs)

        for attempt in range(max_retries + 1):
            try:
                response = self.session.request(method, endpoint, **kwargs)
                logger.debug(
                    f"Response received: {method} {endpoint} status={response.status_code} [request_id={self.request_id}]"
                )

                if response.status_code >= 500 and attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Server error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} status={response.status_code}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                    continue

                return response

            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_exception = e
                if attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} error={type(e).__name__}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                    continue
                logger.error(
                    f"Network error (max retries exceeded): {method} {endpoint} error={e} [request_id={self.request_id}]"
                )

        if isinstance(last_exception, httpx.TimeoutException):
            raise ConnectionError("Request timed out. Server may be overloaded.") from last_exception
        raise ConnectionError("Cannot connect to server. Is it running?") from last_exception

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
