"""Color themes for the response highlighter. ANSI (indexed) and true-color themes live here."""

from types import MappingProxyType
from typing import Mapping, NamedTuple

from pygments.style import StyleMeta
from pygments.styles import get_all_styles, get_style_by_name
from pygments.token import (
    Comment,
    Generic,
    Keyword,
    Name,
    Number,
    Operator,
    Punctuation,
    String,
    Text,
)
from pygments.util import ClassNotFound
from rich.color import Color
from rich.style import Style

# Every semantic class the highlighter can emit
SEMANTIC_CLASSES = (
    "plain",
    "heading",
    "subheading",
    "strong",
    "emphasis",
    "strike",
    "code",
    "fence",
    "link",
    "url",
    "list_marker",
    "quote",
    "keyword",
    "string",
    "literal",
    "comment",
    "name",
    "function",
    "operator",
    "punctuation",
)

# Base palette for indexed themes. Index 0 is the terminal's own foreground.
ANSI_PALETTE: dict[int, str | None] = {
    0: None,
    1: "red",
    2: "green",
    3: "yellow",
    4: "blue",
    5: "magenta",
    6: "white",
    7: "black",
}

# Semantic class -> palette index, per indexed theme.
# Classes missing from a table render with index 0.
ANSI_THEME_TABLES: dict[str, dict[str, int]] = {
    "ansi": {
        "heading": 4,
        "subheading": 4,
        "code": 2,
        "fence": 2,
        "link": 4,
        "url": 5,
        "list_marker": 3,
        "quote": 2,
        "keyword": 5,
        "string": 2,
        "literal": 3,
        "function": 4,
        "operator": 5,
    },
    "base16": {
        "heading": 1,
        "subheading": 1,
        "code": 2,
        "fence": 3,
        "link": 4,
        "url": 6,
        "list_marker": 1,
        "quote": 5,
        "keyword": 5,
        "string": 2,
        "literal": 3,
        "function": 4,
        "operator": 6,
        "punctuation": 6,
    },
    "base16-256": {
        "heading": 4,
        "subheading": 1,
        "code": 2,
        "fence": 3,
        "link": 4,
        "url": 6,
        "list_marker": 3,
        "quote": 5,
        "keyword": 5,
        "string": 2,
        "literal": 3,
        "function": 4,
        "operator": 6,
        "punctuation": 6,
    },
}

# Text attributes shared by every indexed theme
ANSI_ATTRIBUTES: dict[str, dict[str, bool]] = {
    "heading": {"bold": True},
    "subheading": {"bold": True},
    "strong": {"bold": True},
    "emphasis": {"italic": True},
    "quote": {"italic": True},
    "strike": {"strike": True},
    "link": {"underline": True},
    "comment": {"dim": True, "italic": True},
}

# The pygments token a semantic class borrows its style from in true-color themes
CLASS_TOKENS = {
    "plain": Text,
    "heading": Generic.Heading,
    "subheading": Generic.Subheading,
    "strong": Generic.Strong,
    "emphasis": Generic.Emph,
    "strike": Generic.Deleted,
    "code": String.Backtick,
    "fence": String.Backtick,
    "link": Name.Tag,
    "url": Name.Attribute,
    "list_marker": Keyword,
    "quote": Generic.Emph,
    "keyword": Keyword,
    "string": String,
    "literal": Number,
    "comment": Comment,
    "name": Name,
    "function": Name.Function,
    "operator": Operator,
    "punctuation": Punctuation,
}


class UnknownThemeError(KeyError):
    """Raised when a theme name matches neither an indexed theme nor a pygments style."""


class Theme(NamedTuple):
    """Immutable mapping of semantic class -> rich Style."""

    name: str
    family: str  # "ansi" or "truecolor"
    styles: Mapping[str, Style]

    @property
    def truecolor(self) -> bool:
        return self.family == "truecolor"

    def style_for(self, style_class: str) -> Style:
        """Resolves a semantic class, unknown classes render as plain."""
        return self.styles.get(style_class) or self.styles.get("plain") or Style()


def ansi_style(index: int, **attributes: bool) -> Style:
    """Palette index to a rich Style. Unrecognized indices fall back to the primary color."""
    return Style(color=ANSI_PALETTE.get(index), **attributes)


def build_ansi_theme(name: str, table: Mapping[str, int]) -> Theme:
    styles = {
        cls: ansi_style(table.get(cls, 0), **ANSI_ATTRIBUTES.get(cls, {}))
        for cls in SEMANTIC_CLASSES
    }
    return Theme(name, "ansi", MappingProxyType(styles))


def build_truecolor_theme(name: str, pygments_style: StyleMeta) -> Theme:
    styles = {}
    for cls in SEMANTIC_CLASSES:
        token_style = pygments_style.style_for_token(CLASS_TOKENS[cls])
        color = token_style.get("color")
        styles[cls] = Style(
            color=Color.parse(f"#{color}") if color else None,
            bold=token_style.get("bold") or None,
            italic=token_style.get("italic") or None,
            underline=token_style.get("underline") or None,
        )
    return Theme(name, "truecolor", MappingProxyType(styles))


class ThemeStore:
    """Loads, caches, and lists themes. Themes are shared by reference once loaded."""

    def __init__(self, ansi_tables: Mapping[str, Mapping[str, int]] | None = None):
        self.ansi_tables = dict(ANSI_THEME_TABLES if ansi_tables is None else ansi_tables)
        self._cache: dict[str, Theme] = {}

    def names(self) -> list[str]:
        """Indexed themes first, then every installed pygments style."""
        ansi = list(self.ansi_tables)
        return ansi + sorted(s for s in get_all_styles() if s not in self.ansi_tables)

    def get(self, name: str) -> Theme:
        key = name.strip().lower()
        if key in self._cache:
            return self._cache[key]
        if key in self.ansi_tables:
            theme = build_ansi_theme(key, self.ansi_tables[key])
        else:
            try:
                theme = build_truecolor_theme(key, get_style_by_name(key))
            except ClassNotFound:
                raise UnknownThemeError(name) from None
        self._cache[key] = theme
        return theme

    def __contains__(self, name: str) -> bool:
        try:
            self.get(name)
        except UnknownThemeError:
            return False
        return True


DEFAULT_THEME = "ansi"

# Shared store, used by the application and the highlighter by default
THEME_STORE = ThemeStore()
