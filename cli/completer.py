"""Custom completer for Reelstream CLI with media file autocompletion."""

from pathlib import Path
from typing import Iterable

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from cli.constants import COMMANDS, SUPPORTED_MEDIA_EXTENSIONS


class ReelstreamCompleter(Completer):
    """
    Custom completer that provides:
    - Command name completion for the first token
    - Media file path completion for the 'publish' command
    """

    def get_completions(
        self, document: Document, complete_event
    ) -> Iterable[Completion]:
        """
        Generate completions based on cursor position and context.

        For the first token, completes command names.
        For the first 'publish' argument, completes media files relative to the
        current directory.
        """
        text = document.text_before_cursor
        tokens = text.split()

        is_typing_new_token = text.endswith(" ") or not tokens

        if not tokens or (len(tokens) == 1 and not is_typing_new_token):
            yield from self._complete_commands(tokens[0] if tokens else "")
            return

        command = tokens[0].lower()
        if command != "publish":
            return

        arg_position = len(tokens) if is_typing_new_token else len(tokens) - 1
        if arg_position != 1:
            return

        current_word = "" if is_typing_new_token else tokens[-1]
        yield from self._complete_media_files(current_word)

    def _complete_commands(self, partial: str) -> Iterable[Completion]:
        """Complete command names matching the partial input."""
        partial_lower = partial.lower()
        for cmd in COMMANDS:
            if cmd.startswith(partial_lower):
                yield Completion(cmd, start_position=-len(partial))

    def _complete_media_files(self, partial: str) -> Iterable[Completion]:
        """
        Complete media file paths under the directory being typed.

        Directories are offered with a trailing slash so completion can descend.
        Shows a message if no media files are available.
        """
        typed_dir, _, name_prefix = partial.rpartition("/")
        base = Path.cwd() / typed_dir if typed_dir else Path.cwd()
        prefix = f"{typed_dir}/" if typed_dir else ""

        if not base.is_dir():
            return

        candidates = []
        for item in base.iterdir():
            if item.name.startswith("."):
                continue
            if item.is_dir():
                candidates.append(f"{prefix}{item.name}/")
            elif item.is_file() and item.name.lower().endswith(SUPPORTED_MEDIA_EXTENSIONS):
                candidates.append(f"{prefix}{item.name}")

        matches = [c for c in sorted(candidates) if c.lower().startswith(partial.lower())]
        if not matches:
            if not name_prefix:
                yield Completion(
                    "",
                    start_position=0,
                    display="(no media files found)",
                )
            return

        for path in matches:
            yield Completion(path, start_position=-len(partial))
