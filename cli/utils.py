"""Utility functions for CLI operations."""

import sys
from pathlib import Path
from typing import Optional, TextIO

from cli.constants import DOWNLOADS_DIR, GREEN, RESET
from publisher.coordinator import UploadProgress


class ProgressPrinter:
    """Renders upload progress snapshots on a single terminal line."""

    def __init__(self, filename: str, stream: Optional[TextIO] = None):
        """
        Initialize the progress printer.

        Args:
            filename: Display name for the upload
            stream: Output stream (defaults to stdout)
        """
        self.filename = filename
        self.stream = stream or sys.stdout
        self.reports: list[float] = []

    def __call__(self, progress: UploadProgress) -> None:
        self.reports.append(progress.fraction)
        self.stream.write(
            f"\rUploading {self.filename}: chunk {progress.acknowledged}/{progress.total} "
            f"({GREEN}{progress.fraction * 100:.1f}%{RESET})"
        )
        self.stream.flush()

    def finish(self) -> None:
        """Terminate the progress line."""
        if self.reports:
            self.stream.write('\n')
            self.stream.flush()


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.

    Uses binary units (1024-based) and automatically selects the most
    appropriate unit (B, KiB, MiB, GiB, TiB).

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0

    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0

    return f"{size:.2f} PiB"


def resolve_output_path(output_path: Optional[str]) -> Path:
    """
    Resolve where a download should be written.

    No path means the downloads/ directory; an existing directory is kept
    as a directory so the server's filename can be used.
    """
    if not output_path:
        path = Path.cwd() / DOWNLOADS_DIR
        path.mkdir(parents=True, exist_ok=True)
        return path
    return Path(output_path).expanduser()


def short_id(asset_id: str) -> str:
    return f"{asset_id[:8]}..." if len(asset_id) > 8 else asset_id
