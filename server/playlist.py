"""HLS media playlist generation for published assets."""

import math

from server.store import PublishedAsset


def build_playlist(asset: PublishedAsset, segment_time: int) -> str:
    """
    Render a VOD media playlist whose segments are the asset's chunks.

    Every chunk is a self-initializing fragmented MP4, so each segment
    carries its own EXT-X-MAP. Segment URIs are relative to the playlist.

    Args:
        asset: Published asset
        segment_time: Nominal segment duration in seconds

    Returns:
        Playlist text
    """
    lines = [
        "#EXTM3U",
        "#EXT-X-VERSION:7",
        f"#EXT-X-TARGETDURATION:{math.ceil(segment_time)}",
        "#EXT-X-MEDIA-SEQUENCE:0",
        "#EXT-X-PLAYLIST-TYPE:VOD",
        "#EXT-X-INDEPENDENT-SEGMENTS",
    ]
    for index in range(1, len(asset.chunks) + 1):
        uri = f"chunk/{index}"
        lines.append(f'#EXT-X-MAP:URI="{uri}"')
        lines.append(f"#EXTINF:{segment_time:.3f},")
        lines.append(uri)
    lines.append("#EXT-X-ENDLIST")
    return "\n".join(lines) + "\n"
