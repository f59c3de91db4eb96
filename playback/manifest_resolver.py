"""Resolves an asset identifier to its published manifest."""

import httpx

from common.config import Config
from common.constants import MANIFEST_PATH
from common.exceptions import ManifestErrorKind, ManifestUnavailable, WireContractError
from common.http_client import ApiClient, build_async_client, format_error
from common.logging_config import get_logger
from common.protocol import ManifestResponse, parse_model
from common.types import Manifest

logger = get_logger(__name__)


def _manifest_from_response(asset_id: str, response: httpx.Response) -> Manifest:
    if response.status_code == 404:
        raise ManifestUnavailable(ManifestErrorKind.NOT_FOUND, f"Asset {asset_id} not found")
    if response.status_code >= 500:
        raise ManifestUnavailable(
            ManifestErrorKind.UNREACHABLE,
            f"Server could not serve manifest for {asset_id}: {format_error(response)}"
        )
    if response.status_code != 200:
        raise WireContractError(
            f"Unexpected status {response.status_code} for manifest {asset_id}: {format_error(response)}"
        )
    try:
        payload = response.json()
    except ValueError as e:
        raise WireContractError(f"Manifest for {asset_id} is not valid JSON") from e

    manifest = parse_model(ManifestResponse, payload).to_manifest()
    if manifest.asset_id != asset_id:
        raise WireContractError(f"Manifest id {manifest.asset_id} does not match requested {asset_id}")
    return manifest


class ManifestResolver(ApiClient):
    """Fetches manifests; NotFound and Unreachable are reported distinctly."""

    def resolve(self, asset_id: str) -> Manifest:
        """
        Fetch the manifest for an asset.

        Args:
            asset_id: Published asset identifier

        Returns:
            Manifest, treated as immutable for the rest of the playback session

        Raises:
            ManifestUnavailable: NOT_FOUND for unknown ids, UNREACHABLE on transport failure
            WireContractError: If the body deviates from the wire contract
        """
        logger.info(f"Resolving manifest for asset {asset_id}")
        try:
            response = self._request_with_retry('GET', MANIFEST_PATH.format(asset_id=asset_id))
        except ConnectionError as e:
            raise ManifestUnavailable(ManifestErrorKind.UNREACHABLE, str(e)) from e
        except httpx.TransportError as e:
            raise ManifestUnavailable(
                ManifestErrorKind.UNREACHABLE, f"Transport failure: {type(e).__name__}"
            ) from e

        manifest = _manifest_from_response(asset_id, response)
        logger.info(f"Resolved manifest for {asset_id}: {manifest.chunk_count} chunk(s)")
        return manifest


class AsyncManifestResolver:
    """Non-blocking manifest resolution for the playback session."""

    def __init__(self, config: Config, client: httpx.AsyncClient = None):
        self.config = config
        self.client = client or build_async_client(config)

    async def resolve(self, asset_id: str) -> Manifest:
        """
        Fetch the manifest for an asset without blocking the event loop.

        Raises:
            ManifestUnavailable: NOT_FOUND for unknown ids, UNREACHABLE on transport failure
            WireContractError: If the body deviates from the wire contract
        """
        try:
            response = await self.client.get(MANIFEST_PATH.format(asset_id=asset_id))
        except httpx.TransportError as e:
            raise ManifestUnavailable(
                ManifestErrorKind.UNREACHABLE, f"Transport failure: {type(e).__name__}"
            ) from e
        return _manifest_from_response(asset_id, response)

    async def close(self) -> None:
        await self.client.aclose()
