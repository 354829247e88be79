"""Global functions and variables, used across various modules."""

import getpass
import logging
import os
from datetime import datetime
from logging.handlers import RotatingFileHandler

import keyring
from keyring import get_password
from keyring.backends import null
from platformdirs import user_data_dir
from prompt_toolkit import prompt
from prompt_toolkit.completion import (
    WordCompleter,
)
from prompt_toolkit.document import Document
from prompt_toolkit.formatted_text import HTML, StyleAndTextTuples
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.lexers import Lexer
from prompt_toolkit.styles import Style
from rich.console import Console
from rich.spinner import Spinner

logger = logging.getLogger("heychat")

# Default directories and system details
APP_DIR = user_data_dir("HeyChat")
CONFIG_DIR = os.path.join(APP_DIR, "config")
CONVERSATIONS_DIR = os.path.join(APP_DIR, "conversations")
LOG_DIR = os.path.join(APP_DIR, "logs")
CONFIG_FILE = os.path.join(CONFIG_DIR, "settings.json")
USER_NAME = getpass.getuser()
KEYRING_SERVICE = "HeyChatAPI"

os.makedirs(CONVERSATIONS_DIR, exist_ok=True)
os.makedirs(CONFIG_DIR, exist_ok=True)
os.makedirs(LOG_DIR, exist_ok=True)

# Terminal integration
CONSOLE = Console()

# Main prompt prefix
PROMPT_PREFIX = HTML("<ansimagenta>&gt; </ansimagenta>")

# Dark style for all prompt_toolkit completers, plus input highlighting
COMPLETER_STYLER = Style.from_dict(
    {
        # Completions
        "completion-menu.completion": "bg:#202020 #ffffff",
        "completion-menu.completion.current": "bg:#024a1a #000000",  # 2E8B57
        # Tooltips
        "completion-menu.meta.completion": "bg:#202020 #aaaaaa",
        "completion-menu.meta.completion.current": "bg:#024a1a #000000",
        # Root prompt input
        "message": "ansigreen",
        "command": "ansicyan",
        "invalid-command": "ansiyellow",
        "argument": "ansiblue",
        "invalid-argument": "bg:ansired",
    }
)

# Command name -> accepted spellings (without the slash)
COMMAND_ALIASES: dict[str, tuple[str, ...]] = {
    "exit": ("exit", "quit", "q", "x"),
    "clear": ("clear", "c"),
    "reset": ("reset", "r"),
    "model": ("model", "m"),
    "theme": ("theme", "t"),
    "save": ("save", "s"),
    "load": ("load", "l"),
    "history": ("history",),
    "help": ("help", "h"),
    "key": ("key",),
    "config": ("config",),
}

# Main prompt command completer
COMMAND_COMPLETER = WordCompleter(
    sorted(f"/{alias}" for aliases in COMMAND_ALIASES.values() for alias in aliases),
    match_middle=True,
    WORD=True,
)

# In-memory history for the root prompt, must mutate
main_history = InMemoryHistory()


def parse_command(user_input: str) -> tuple[str, str] | None:
    """
    Splits slash input into (command, argument).\n
    Returns None for a plain message, ("invalid", ...) for an unknown command.
    A bare slash asks for help.
    """
    text = user_input.strip()
    if not text.startswith("/"):
        return None
    parts = text[1:].split(maxsplit=1)
    if not parts:
        return "help", ""
    word = parts[0].lower()
    argument = parts[1].strip() if len(parts) > 1 else ""
    for name, aliases in COMMAND_ALIASES.items():
        if word in aliases:
            return name, argument
    return "invalid", argument


def lex_input(line: str) -> StyleAndTextTuples:
    """Styles the root prompt input: messages green, commands cyan (valid) or yellow."""
    stripped = line.lstrip()
    if not stripped.startswith("/"):
        return [("class:message", line)] if line else []

    indent = line[: len(line) - len(stripped)]
    head, _, rest = stripped[1:].partition(" ")
    valid = parse_command(stripped)[0] != "invalid"
    fragments: StyleAndTextTuples = []
    if indent:
        fragments.append(("", indent))
    fragments.append(("", "/"))
    fragments.append(("class:command" if valid else "class:invalid-command", head))
    if rest or stripped[1:].endswith(" "):
        fragments.append(("", " "))
    if rest:
        fragments.append(("class:argument" if valid else "class:invalid-argument", rest))
    return fragments


class InputLexer(Lexer):
    """prompt_toolkit lexer that colours the root prompt as the user types."""

    def lex_document(self, document: Document):
        lines = document.lines

        def get_line(lineno: int) -> StyleAndTextTuples:
            try:
                line = lines[lineno]
            except IndexError:
                return []
            if lineno == 0:
                return lex_input(line)
            return [("class:message", line)]

        return get_line


def init_logger():
    """Routes every heychat logger to a dated, size-capped file in LOG_DIR."""
    # e.g. hey_20251109.log, rolled over at 1MB with 3 old copies kept
    log_path = os.path.join(LOG_DIR, f"hey_{datetime.now():%Y%m%d}.log")
    handler = RotatingFileHandler(
        log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8"
    )
    level_name = os.getenv("HEY_LOG_LEVEL", "ERROR").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.ERROR),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[handler],
    )


def log_exception(e: BaseException, context: str = ""):
    """Logs e with its full traceback, prefixed by where it was caught."""
    logger.error(context or type(e).__name__, exc_info=(type(e), e, e.__traceback__))


def setup_keyring_backend():
    """Falls back to the null keyring when no OS backend can be loaded."""
    try:
        keyring.get_keyring()
    except Exception as e:
        keyring.set_keyring(null.Keyring())
        logger.error("No usable keyring backend, keys won't persist: %s", e)


def retrieve_key() -> str:
    """
    Finds an API key.\n
    Order: OPENAI_API_KEY -> OS keyring (HeyChatAPI) -> placeholder key
    """
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        try:
            api_key = get_password(KEYRING_SERVICE, USER_NAME)
        except Exception as e:
            logger.error("Keyring lookup failed: %s", e)
    return api_key or "dummy-key"


def spinner_constructor(content: str) -> Spinner:
    return Spinner(
        "moon",
        text=f"[bold medium_orchid]{content}[/bold medium_orchid]",
    )


def root_prompt() -> str:
    return prompt(
        PROMPT_PREFIX,
        completer=COMMAND_COMPLETER,
        style=COMPLETER_STYLER,
        lexer=InputLexer(),
        complete_while_typing=False,
        history=main_history,
    )
