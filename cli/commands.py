"""Command handler functions for CLI operations."""

import asyncio
from pathlib import Path
from typing import Optional

import httpx

from cli.catalog_client import CatalogClient
from cli.models import (
    ExportCommand,
    FetchCommand,
    LatestCommand,
    ManifestCommand,
    PlayCommand,
    PublishCommand,
    SearchCommand,
)
from cli.utils import ProgressPrinter, format_file_size, resolve_output_path, short_id
from common.config import Config
from common.exceptions import StreamingError
from common.logging_config import get_logger
from common.protocol import CatalogPage
from playback.download_client import DownloadClient
from playback.engine import Phase
from playback.session import play_headless
from playback.sinks import FileSink
from publisher.coordinator import publish_file, publish_source_file
from publisher.segmenter import Segmenter
from publisher.upload_client import UploadClient

logger = get_logger(__name__)


_config: Optional[Config] = None
_upload_client: Optional[UploadClient] = None
_download_client: Optional[DownloadClient] = None
_catalog_client: Optional[CatalogClient] = None


def get_config() -> Config:
    """
    Get or create the global Config instance.

    Returns:
        Config instance
    """
    global _config
    if _config is None:
        _config = Config()
    return _config


def get_upload_client() -> UploadClient:
    global _upload_client
    if _upload_client is None:
        logger.debug("Creating new UploadClient instance")
        _upload_client = UploadClient(get_config())
    return _upload_client


def get_download_client() -> DownloadClient:
    global _download_client
    if _download_client is None:
        logger.debug("Creating new DownloadClient instance")
        _download_client = DownloadClient(get_config())
    return _download_client


def get_catalog_client() -> CatalogClient:
    global _catalog_client
    if _catalog_client is None:
        logger.debug("Creating new CatalogClient instance")
        _catalog_client = CatalogClient(get_config())
    return _catalog_client


def handle_publish(
    cmd: PublishCommand,
    client: Optional[UploadClient] = None,
    segmenter: Optional[Segmenter] = None
) -> str:
    """
    Handle 'publish' command.

    Args:
        cmd: PublishCommand with file path and optional description
        client: Optional UploadClient for dependency injection (testing)
        segmenter: Optional Segmenter for dependency injection (testing)

    Returns:
        Success or error message
    """
    logger.info(f"Executing publish command: file={cmd.file_path} server_split={cmd.server_split}")
    if client is None:
        client = get_upload_client()
    if cmd.server_split:
        outcome = publish_source_file(cmd.file_path, client, description=cmd.description)
        if outcome.succeeded:
            return f"Published: {Path(cmd.file_path).name} (Asset ID: {outcome.upload_id}, segmented by server)"
        return f"Error: {outcome.reason}"
    if segmenter is None:
        segmenter = Segmenter(segment_time=get_config().get_segment_time())

    printer = ProgressPrinter(Path(cmd.file_path).name)
    try:
        outcome = publish_file(
            cmd.file_path,
            client,
            segmenter=segmenter,
            description=cmd.description,
            progress_callback=printer,
        )
    finally:
        printer.finish()

    if outcome.succeeded:
        return f"Published: {Path(cmd.file_path).name} (Asset ID: {outcome.upload_id})"
    if outcome.failed_chunk_index is not None:
        return f"Error: Upload failed at chunk {outcome.failed_chunk_index}: {outcome.reason}"
    return f"Error: {outcome.reason}"


def handle_manifest(cmd: ManifestCommand, client: Optional[DownloadClient] = None) -> str:
    """
    Handle 'manifest' command.

    Args:
        cmd: ManifestCommand with asset id
        client: Optional DownloadClient for dependency injection (testing)

    Returns:
        Formatted manifest or error message
    """
    if client is None:
        client = get_download_client()
    try:
        manifest = client.resolve(cmd.asset_id)
    except StreamingError as e:
        return f"Error: {e.reason}"

    output = [
        f"{manifest.file_name} (ID: {manifest.asset_id})",
        f"  Size: {format_file_size(manifest.file_size)}",
        f"  SHA-256: {manifest.file_hash}",
        f"  Chunks: {manifest.chunk_count}",
    ]
    for entry in manifest.chunks:
        output.append(f"    {entry.index:>4}  {entry.digest}")
    return '\n'.join(output)


def handle_fetch(cmd: FetchCommand, client: Optional[DownloadClient] = None) -> str:
    """
    Handle 'fetch' command.

    Args:
        cmd: FetchCommand with asset id and optional output path
        client: Optional DownloadClient for dependency injection (testing)

    Returns:
        Success or error message
    """
    logger.info(f"Executing fetch command: asset_id={cmd.asset_id} output_path={cmd.output_path}")
    if client is None:
        client = get_download_client()
    try:
        path = client.fetch(cmd.asset_id, resolve_output_path(cmd.output_path))
    except StreamingError as e:
        return f"Error: {e.reason}"
    except OSError as e:
        return f"Error: Cannot write output: {e}"
    return f"Fetched: {path} ({format_file_size(path.stat().st_size)}, all digests verified)"


def handle_export(cmd: ExportCommand, client: Optional[DownloadClient] = None) -> str:
    """
    Handle 'export' command.

    Args:
        cmd: ExportCommand with asset id and optional output path
        client: Optional DownloadClient for dependency injection (testing)

    Returns:
        Success or error message
    """
    logger.info(f"Executing export command: asset_id={cmd.asset_id} output_path={cmd.output_path}")
    if client is None:
        client = get_download_client()
    try:
        path = client.export(cmd.asset_id, resolve_output_path(cmd.output_path))
    except StreamingError as e:
        return f"Error: {e.reason}"
    except OSError as e:
        return f"Error: Cannot write output: {e}"
    return f"Exported: {path} ({format_file_size(path.stat().st_size)})"


def handle_play(
    cmd: PlayCommand,
    config: Optional[Config] = None,
    client: Optional[httpx.AsyncClient] = None
) -> str:
    """
    Handle 'play' command.

    Args:
        cmd: PlayCommand with asset id and optional output path
        config: Optional Config for dependency injection (testing)
        client: Optional async HTTP client for dependency injection (testing)

    Returns:
        Playback summary or error message
    """
    logger.info(f"Executing play command: asset_id={cmd.asset_id}")
    config = config or get_config()
    output = resolve_output_path(cmd.output_path)
    if output.is_dir():
        output = output / f"{cmd.asset_id}.mp4"

    sink = FileSink(output)
    try:
        session = asyncio.run(play_headless(cmd.asset_id, config, sink, client=client))
    except asyncio.TimeoutError:
        return f"Error: Playback of {short_id(cmd.asset_id)} timed out"
    finally:
        sink.close()

    state = session.state
    if state.phase == Phase.ERRORED:
        return f"Error: {state.error}"
    if session.errors:
        return f"Error: {session.errors[-1]}"
    return (
        f"Played {short_id(cmd.asset_id)} to {output} "
        f"({state.playback.position:.1f}s, {format_file_size(sink.bytes_written or 0)})"
    )


def _format_page(page: CatalogPage, empty_message: str) -> str:
    if not page.items:
        return empty_message
    output = [f"Found {page.total} asset(s), showing {len(page.items)} (page {page.page}):\n"]
    for entry in page.items:
        line = f"  - {entry.name} (ID: {entry.id})"
        if entry.content:
            line += f"\n    {entry.content}"
        output.append(line)
    return '\n'.join(output)


def handle_search(cmd: SearchCommand, client: Optional[CatalogClient] = None) -> str:
    """
    Handle 'search' command.

    Args:
        cmd: SearchCommand with query and paging
        client: Optional CatalogClient for dependency injection (testing)

    Returns:
        Formatted results or error message
    """
    logger.info(f"Executing search command: query='{cmd.query}'")
    if client is None:
        client = get_catalog_client()
    try:
        page = client.search(cmd.query, cmd.page, cmd.size)
    except StreamingError as e:
        return f"Error: {e.reason}"
    except ConnectionError as e:
        return f"Error: {e}"
    return _format_page(page, f"No assets found matching query: {cmd.query}")


def handle_latest(cmd: LatestCommand, client: Optional[CatalogClient] = None) -> str:
    """
    Handle 'latest' command.

    Args:
        cmd: LatestCommand
        client: Optional CatalogClient for dependency injection (testing)

    Returns:
        Formatted results or error message
    """
    if client is None:
        client = get_catalog_client()
    try:
        page = client.latest()
    except StreamingError as e:
        return f"Error: {e.reason}"
    except ConnectionError as e:
        return f"Error: {e}"
    return _format_page(page, "No assets published yet.")
