"""Command parser for CLI input."""

import shlex

from cli.models import (
    CommandRequest,
    ExportCommand,
    FetchCommand,
    LatestCommand,
    ManifestCommand,
    PlayCommand,
    PublishCommand,
    SearchCommand,
)


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL

    Returns:
        CommandRequest object (one of Publish/Manifest/Fetch/Export/Play/Search/Latest)

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0]
    args = tokens[1:]

    if command_name == "publish":
        return _parse_publish(args)
    elif command_name == "manifest":
        return ManifestCommand(asset_id=_single_asset_id("manifest", args))
    elif command_name == "fetch":
        asset_id, output_path = _parse_asset_and_output("fetch", args)
        return FetchCommand(asset_id=asset_id, output_path=output_path)
    elif command_name == "export":
        asset_id, output_path = _parse_asset_and_output("export", args)
        return ExportCommand(asset_id=asset_id, output_path=output_path)
    elif command_name == "play":
        asset_id, output_path = _parse_asset_and_output("play", args)
        return PlayCommand(asset_id=asset_id, output_path=output_path)
    elif command_name == "search":
        return _parse_search(args)
    elif command_name == "latest":
        if args:
            raise ParseError("latest takes no arguments")
        return LatestCommand()
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _parse_publish(args: list[str]) -> PublishCommand:
    """Parse 'publish [--server-split] <file> [description...]' command."""
    server_split = bool(args) and args[0] == "--server-split"
    if server_split:
        args = args[1:]
    if not args:
        raise ParseError("publish requires a file: publish [--server-split] <file> [description...]")

    description = " ".join(args[1:]) or None
    return PublishCommand(file_path=args[0], description=description, server_split=server_split)


def _single_asset_id(command_name: str, args: list[str]) -> str:
    if len(args) != 1:
        raise ParseError(f"{command_name} requires exactly 1 argument: <asset_id>")
    return args[0]


def _parse_asset_and_output(command_name: str, args: list[str]) -> tuple[str, str | None]:
    """Parse '<asset_id> [output_path]' arguments."""
    if not 1 <= len(args) <= 2:
        raise ParseError(f"{command_name} requires 1 or 2 arguments: <asset_id> [output_path]")

    output_path = args[1] if len(args) > 1 else None
    return args[0], output_path


def _parse_search(args: list[str]) -> SearchCommand:
    """Parse 'search <query> [page] [size]' command."""
    if not args:
        raise ParseError("search requires a query: search <query> [page] [size]")
    if len(args) > 3:
        raise ParseError("search takes at most 3 arguments; quote multi-word queries")

    try:
        page = int(args[1]) if len(args) > 1 else 0
        size = int(args[2]) if len(args) > 2 else 10
    except ValueError:
        raise ParseError("search page and size must be integers")

    if page < 0:
        raise ParseError("search page must be >= 0")
    if size < 1:
        raise ParseError("search size must be >= 1")

    return SearchCommand(query=args[0], page=page, size=size)
