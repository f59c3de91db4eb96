"""REPL with prompt_toolkit for user interaction."""

import os
import sys
from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory

from cli.commands import (
    handle_export,
    handle_fetch,
    handle_latest,
    handle_manifest,
    handle_play,
    handle_publish,
    handle_search,
)
from cli.completer import ReelstreamCompleter
from cli.constants import (
    HELP_TEXT,
    LOGO,
    PROMPT_TEXT,
    STYLE,
    WELCOME_HELP,
    WELCOME_TITLE,
)
from cli.models import (
    ExportCommand,
    FetchCommand,
    LatestCommand,
    ManifestCommand,
    PlayCommand,
    PublishCommand,
    SearchCommand,
)
from cli.parser import ParseError, parse_command


def clear_screen() -> None:
    """Clear the terminal screen (cross-platform)."""
    if sys.platform == "win32":
        os.system("cls")
    else:
        os.system("clear")


def show_logo() -> None:
    """Display Reelstream logo with ANSI colors."""
    print(LOGO)


def dispatch_command(cmd_obj) -> str:
    """Dispatch parsed command to appropriate handler."""
    if isinstance(cmd_obj, PublishCommand):
        return handle_publish(cmd_obj)
    elif isinstance(cmd_obj, ManifestCommand):
        return handle_manifest(cmd_obj)
    elif isinstance(cmd_obj, FetchCommand):
        return handle_fetch(cmd_obj)
    elif isinstance(cmd_obj, ExportCommand):
        return handle_export(cmd_obj)
    elif isinstance(cmd_obj, PlayCommand):
        return handle_play(cmd_obj)
    elif isinstance(cmd_obj, SearchCommand):
        return handle_search(cmd_obj)
    elif isinstance(cmd_obj, LatestCommand):
        return handle_latest(cmd_obj)
    else:
        return f"Unknown command type: {type(cmd_obj)}"


def repl_loop() -> None:
    """Start interactive REPL with prompt_toolkit."""
    history = InMemoryHistory()
    session: PromptSession = PromptSession(
        completer=ReelstreamCompleter(), history=history, style=STYLE
    )

    clear_screen()
    show_logo()
    print(WELCOME_TITLE)
    print(WELCOME_HELP)

    while True:
        try:
            user_input = session.prompt([("class:prompt", PROMPT_TEXT)])

            if not user_input.strip():
                continue

            if user_input.strip() == "exit":
                print("Goodbye!")
                break

            if user_input.strip() == "help":
                print(HELP_TEXT)
                continue

            if user_input.strip() == "clear":
                clear_screen()
                show_logo()
                print(WELCOME_TITLE)
                print(WELCOME_HELP)
                continue

            cmd_obj = parse_command(user_input)
            result = dispatch_command(cmd_obj)
            print(result)

        except ParseError as e:
            print(f"Error: {e}")
        except KeyboardInterrupt:
            continue
        except EOFError:
            print("\nGoodbye!")
            break
