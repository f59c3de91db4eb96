"""Catalog queries: search published assets and list the latest uploads."""

from common.constants import CATALOG_LATEST_PATH, CATALOG_SEARCH_PATH
from common.exceptions import StreamingError, WireContractError
from common.http_client import ApiClient, format_error, is_success
from common.logging_config import get_logger
from common.protocol import CatalogPage, parse_model

logger = get_logger(__name__)


class CatalogClient(ApiClient):
    """Read-only access to the asset catalog."""

    def search(self, query: str, page: int = 0, size: int = 10) -> CatalogPage:
        """
        Search published assets by name.

        Args:
            query: Free-text query
            page: Zero-based page number
            size: Page size

        Returns:
            One page of results

        Raises:
            StreamingError: If the server rejects the query
            WireContractError: If the response deviates from the contract
            ConnectionError: If the server cannot be reached
        """
        logger.info(f"Searching catalog: query='{query}' page={page} size={size}")
        response = self._request_with_retry(
            'GET', CATALOG_SEARCH_PATH, params={'q': query, 'page': page, 'size': size}
        )
        return self._parse_page(response)

    def latest(self) -> CatalogPage:
        """
        List the most recently published assets.

        Raises:
            StreamingError: If the server refuses the request
            WireContractError: If the response deviates from the contract
            ConnectionError: If the server cannot be reached
        """
        response = self._request_with_retry('GET', CATALOG_LATEST_PATH)
        return self._parse_page(response)

    def _parse_page(self, response) -> CatalogPage:
        if not is_success(response):
            raise StreamingError(format_error(response))
        try:
            payload = response.json()
        except ValueError as e:
            raise WireContractError("Catalog response is not valid JSON") from e
        page = parse_model(CatalogPage, payload)
        logger.debug(f"Catalog returned {len(page.items)} of {page.total} item(s)")
        return page
