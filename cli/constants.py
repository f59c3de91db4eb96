"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = ["publish", "manifest", "fetch", "export", "play", "search", "latest", "clear", "exit", "help"]

STYLE = Style.from_dict(
    {
        "prompt": "#F45935 bold",
        "command": "#0088ff bold",
    }
)

RED_ORANGE = "\033[38;2;244;89;53m"
GREEN = "\033[32m"
RESET = "\033[0m"

LOGO = rf"""{RED_ORANGE}
  ___         _     _
 | _ \___ ___| |___| |_ _ _ ___ __ _ _ __
 |   / -_) -_) (_-<  _| '_/ -_) _` | '  \
 |_|_\___\___|_/__/\__|_| \___\__,_|_|_|_|
{RESET}"""

WELCOME_TITLE = "Reelstream CLI - Chunked Media Publishing and Playback"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "reelstream> "

DOWNLOADS_DIR = "downloads"

HELP_TEXT = """Available commands:
  publish <file> [description...]     Segment, hash and upload a media file
  publish --server-split <file> ...   Upload the whole file and let the server segment it
  manifest <asset_id>                 Show the chunk layout of a published asset
  fetch <asset_id> [output_path]      Download chunk by chunk, verifying every digest
  export <asset_id> [output_path]     Download the whole asset in one request
  play <asset_id> [output_path]       Play an asset headlessly into a local file
  search <query> [page] [size]        Search the catalog
  latest                              List the most recently published assets
  clear                               Clear screen and redisplay welcome message
  help                                Show this help
  exit                                Exit REPL

Output paths default to the downloads/ directory.
Examples:
  publish videos/talk.mp4 Conference keynote
  publish --server-split videos/talk.mp4
  manifest 3f2c9a1e-...
  fetch 3f2c9a1e-... downloads/talk.mp4
  play 3f2c9a1e-...
  search keynote 0 5"""

SUPPORTED_MEDIA_EXTENSIONS = (".mp4", ".m4v", ".mov", ".mkv", ".webm", ".avi", ".ts")
