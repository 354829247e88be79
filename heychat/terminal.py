"""
Escape-aware terminal text helpers: grapheme iteration, line wrapping and snail-print.

Text handed to these helpers may carry ANSI escape sequences. Escapes take
up no columns, are never split, and are never paced.
"""

import sys
import time
from typing import Callable, Iterator, TextIO

import regex
from rich.cells import cell_len
from rich.color import ColorSystem
from rich.style import Style

from heychat.errors import WriteError
from heychat.globals import CONSOLE

# Default column limit when no explicit width applies
DEFAULT_WRAP_WIDTH = 100
# Tab stops, every 8 columns as in most terminals
TAB_SIZE = 8

# CSI (colors, cursor), OSC (titles, links) and two-byte escapes
ESCAPE_PATTERN = regex.compile(
    r"\x1b\[[0-?]*[ -/]*[@-~]"
    r"|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"
    r"|\x1b[@-Z\\-_]"
)
GRAPHEME_PATTERN = regex.compile(r"\X")
# Whitespace runs (newlines excluded) and words
WORD_PATTERN = regex.compile(r"[^\S\n]+|\S+")

Sleeper = Callable[[float], None]


def split_escapes(text: str) -> Iterator[tuple[bool, str]]:
    """Yields (is_escape, part) pairs covering the whole text in order."""
    position = 0
    for match in ESCAPE_PATTERN.finditer(text):
        if match.start() > position:
            yield False, text[position : match.start()]
        yield True, match.group()
        position = match.end()
    if position < len(text):
        yield False, text[position:]


def graphemes(text: str) -> list[str]:
    return GRAPHEME_PATTERN.findall(text)


def strip_escapes(text: str) -> str:
    return ESCAPE_PATTERN.sub("", text)


def visible_width(text: str) -> int:
    """Terminal columns taken by text, escapes excluded, tabs at their expanded width."""
    return cell_len(strip_escapes(text).expandtabs(TAB_SIZE))


def expand_tabs(line: str, tab_size: int = TAB_SIZE) -> str:
    """Replaces tabs with spaces up to the next tab stop. Escapes take no columns."""
    if "\t" not in line:
        return line
    parts = []
    column = 0
    for is_escape, part in split_escapes(line):
        if is_escape:
            parts.append(part)
            continue
        for segment in regex.split(r"(\t|\n)", part):
            if segment == "\t":
                pad = tab_size - column % tab_size
                parts.append(" " * pad)
                column += pad
            elif segment == "\n":
                parts.append(segment)
                column = 0
            else:
                parts.append(segment)
                column += cell_len(segment)
    return "".join(parts)


def terminal_width() -> int | None:
    """Current terminal width, None when output is not a terminal."""
    if not CONSOLE.is_terminal:
        return None
    try:
        return CONSOLE.size.width
    except (OSError, ValueError):
        return None


def resolve_wrap_width(wrap_width: int | None, columns: int | None) -> int:
    """
    Picks the effective wrap width.\n
    0 disables wrapping. Without a terminal the configured width (or 100) applies.
    """
    if wrap_width is not None and wrap_width <= 0:
        return 0
    limit = wrap_width or DEFAULT_WRAP_WIDTH
    if columns is None or columns <= 0:
        return limit
    return min(columns, limit)


def _units(line: str) -> list[list]:
    """
    Splits a physical line into [kind, text, width] units, kind is "word" or "space".\n
    Escapes ride along with the unit they sit in, so a styled word is still one word.
    """
    units: list[list] = []
    for is_escape, part in split_escapes(line):
        if is_escape:
            if units:
                units[-1][1] += part
            else:
                units.append(["word", part, 0])
            continue
        for piece in WORD_PATTERN.findall(part):
            kind = "space" if piece.isspace() else "word"
            if units and units[-1][0] == kind:
                units[-1][1] += piece
                units[-1][2] += cell_len(piece)
            else:
                units.append([kind, piece, cell_len(piece)])
    return units


def _escapes_only(text: str) -> str:
    return "".join(ESCAPE_PATTERN.findall(text))


def _wrap_physical_line(line: str, width: int) -> list[str]:
    if visible_width(line) <= width:
        return [line]

    rows: list[str] = []
    current = ""
    current_width = 0
    space, space_width = "", 0  # whitespace waiting for the next word
    for kind, text, w in _units(line):
        if kind == "space":
            space, space_width = text, w
            continue
        if current_width and current_width + space_width + w > width:
            # Break before the word. The whitespace goes, its escapes stay
            rows.append(current + _escapes_only(space))
            current, current_width = text, w
        else:
            if not current_width and space_width + w > width:
                # Indentation shrinks until the first word fits
                keep = max(width - w, 0)
                space, space_width = " " * keep + _escapes_only(space), keep
            current += space + text
            current_width += space_width + w
        space, space_width = "", 0
    if space:
        fits = current_width + space_width <= width
        current += space if fits else _escapes_only(space)
    rows.append(current)
    return rows


def wrap_line(line: str, width: int | None) -> str:
    """
    Word-wraps an escape-coded line to width columns, inserting line breaks.\n
    width of 0 or None returns the line unchanged. Otherwise tabs are expanded
    to spaces first, and leading indentation is shortened when the first word
    would not fit after it. A single word wider than width is never cut and
    occupies a row of its own.
    """
    if not width or width <= 0 or not line:
        return line
    return "\n".join(
        "\n".join(_wrap_physical_line(physical, width))
        for physical in expand_tabs(line).split("\n")
    )


class PacedWriter:
    """
    Snail-print. Writes one grapheme at a time with a fixed delay in between,
    flushing after every unit so the output appears as it is written.
    """

    def __init__(
        self,
        stream: TextIO | None = None,
        delay: float = 0.005,
        sleep: Sleeper = time.sleep,
    ):
        self.stream = stream
        self.delay = delay
        self.sleep = sleep

    @property
    def device(self) -> TextIO:
        # Resolved late so that redirected stdout is honoured
        return self.stream if self.stream is not None else sys.stdout

    def _put(self, unit: str):
        try:
            self.device.write(unit)
            self.device.flush()
        except OSError as e:
            raise WriteError(f"Could not write to the terminal: {e}") from e

    def emit(self, text: str, delay: float | None = None):
        """Writes text. Escape sequences go out whole and undelayed."""
        delay = self.delay if delay is None else delay
        for is_escape, part in split_escapes(text):
            if is_escape:
                self._put(part)
                continue
            for grapheme in graphemes(part):
                if delay > 0:
                    self.sleep(delay)
                self._put(grapheme)


def snailprint(text: str, delay_us: int = 5000, stream: TextIO | None = None):
    """Paced output for one-off messages, delay given in microseconds."""
    PacedWriter(stream, delay_us / 1_000_000).emit(text)


def paint(text: str, style: str) -> str:
    """Wraps text in the escapes for a rich style string, e.g. paint("Error:", "bold red")."""
    return Style.parse(style).render(text, color_system=ColorSystem.STANDARD)
