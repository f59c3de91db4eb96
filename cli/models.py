"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class PublishCommand:
    """Segment and upload a media file."""

    file_path: str
    description: str | None = None
    server_split: bool = False
    command: Literal["publish"] = "publish"


@dataclass(frozen=True)
class ManifestCommand:
    """Show the manifest of a published asset."""

    asset_id: str
    command: Literal["manifest"] = "manifest"


@dataclass(frozen=True)
class FetchCommand:
    """Download an asset chunk by chunk."""

    asset_id: str
    output_path: str | None = None
    command: Literal["fetch"] = "fetch"


@dataclass(frozen=True)
class ExportCommand:
    """Download an asset as a single file."""

    asset_id: str
    output_path: str | None = None
    command: Literal["export"] = "export"


@dataclass(frozen=True)
class PlayCommand:
    """Play an asset headlessly into a file."""

    asset_id: str
    output_path: str | None = None
    command: Literal["play"] = "play"


@dataclass(frozen=True)
class SearchCommand:
    """Search the catalog."""

    query: str
    page: int = 0
    size: int = 10
    command: Literal["search"] = "search"


@dataclass(frozen=True)
class LatestCommand:
    """List the latest published assets."""

    command: Literal["latest"] = "latest"


CommandRequest = (
    PublishCommand
    | ManifestCommand
    | FetchCommand
    | ExportCommand
    | PlayCommand
    | SearchCommand
    | LatestCommand
)
