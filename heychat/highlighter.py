"""
Line-at-a-time Markdown highlighter for streamed responses.

Lines arrive one by one, so the highlighter keeps its own grammar state:
outside of a fenced code block lines go through the pygments Markdown lexer,
inside of one they go through the lexer for the fence's language tag.
"""

import logging
import re
from typing import NamedTuple

from pygments.lexer import Lexer
from pygments.lexers import get_lexer_by_name
from pygments.lexers.markup import MarkdownLexer
from pygments.lexers.special import TextLexer
from pygments.token import (
    Comment,
    Generic,
    Keyword,
    Literal,
    Name,
    Number,
    Operator,
    Punctuation,
    String,
    _TokenType,
)
from pygments.util import ClassNotFound
from rich.color import ColorSystem

from heychat.themes import THEME_STORE, Theme, ThemeStore

logger = logging.getLogger(__name__)

# Opening fence: ``` or ~~~ (3 or more), optional language tag
FENCE_PATTERN = re.compile(r"^\s*(?P<fence>`{3,}|~{3,})\s*(?P<lang>[\w+#.-]*)")

# Lines of a single code block kept as lexer context
MAX_CODE_CONTEXT = 200


def opening_fence(text: str) -> re.Match | None:
    """
    Matches a line that opens a fenced code block.\n
    A backtick fence whose remainder holds another backtick is an inline code
    span (```echo hi```), not a fence.
    """
    match = FENCE_PATTERN.match(text)
    if match and match.group("fence")[0] == "`" and "`" in text[match.end("fence") :]:
        return None
    return match


class StyledSpan(NamedTuple):
    style_class: str
    text: str


def markdown_class(ttype: _TokenType) -> str:
    """Maps a MarkdownLexer token to a semantic class."""
    if ttype in Generic.Heading:
        return "heading"
    if ttype in Generic.Subheading:
        return "subheading"
    if ttype in Generic.Strong:
        return "strong"
    if ttype in Generic.Emph:
        return "emphasis"
    if ttype in Generic.Deleted:
        return "strike"
    if ttype in String.Backtick:
        return "code"
    if ttype in Name.Tag or ttype in Name.Entity:
        return "link"
    if ttype in Name.Attribute or ttype in Name.Label:
        return "url"
    if ttype in Keyword:
        return "list_marker"
    return "plain"


def code_class(ttype: _TokenType) -> str:
    """Maps a programming-language token to a semantic class."""
    if ttype in Comment:
        return "comment"
    # String is a subtype of Literal, so it goes first
    if ttype in String:
        return "string"
    if ttype in Number or ttype in Literal:
        return "literal"
    if ttype in Keyword or ttype in Operator.Word:
        return "keyword"
    if (
        ttype in Name.Function
        or ttype in Name.Class
        or ttype in Name.Decorator
        or ttype in Name.Builtin
    ):
        return "function"
    if ttype in Name:
        return "name"
    if ttype in Operator:
        return "operator"
    if ttype in Punctuation:
        return "punctuation"
    if ttype in Generic.Heading or ttype in Generic.Subheading:
        return "heading"
    if ttype in Generic.Inserted:
        return "string"
    if ttype in Generic.Deleted:
        return "strike"
    return "plain"


def merge_spans(spans: list[StyledSpan]) -> list[StyledSpan]:
    """Joins neighbouring spans that share a class, drops empty ones."""
    merged: list[StyledSpan] = []
    for span in spans:
        if not span.text:
            continue
        if merged and merged[-1].style_class == span.style_class:
            merged[-1] = StyledSpan(span.style_class, merged[-1].text + span.text)
        else:
            merged.append(span)
    return merged


def strip_newline(spans: list[StyledSpan]) -> list[StyledSpan]:
    """Removes the line terminator that was added for the lexer's sake."""
    while spans and spans[-1].text.endswith("\n"):
        last = spans.pop()
        text = last.text[:-1]
        if text:
            spans.append(StyledSpan(last.style_class, text))
            break
    return spans


class SyntaxHighlighter:
    """Stateful highlighter. Feed every line of a response in order, exactly once."""

    def __init__(self, theme: Theme):
        self.theme = theme
        self.markdown = MarkdownLexer()
        self.reset()

    @classmethod
    def from_name(cls, theme_name: str, store: ThemeStore = THEME_STORE):
        return cls(store.get(theme_name))

    def reset(self):
        """Back to plain Markdown, outside of any code block."""
        self.fence: str | None = None
        self.code_lexer: Lexer | None = None
        self.code_lines: list[str] = []

    @property
    def in_code_block(self) -> bool:
        return self.fence is not None

    @property
    def color_system(self) -> ColorSystem:
        return ColorSystem.TRUECOLOR if self.theme.truecolor else ColorSystem.STANDARD

    # <~~HIGHLIGHTING~~>
    def highlight_line(self, line: str) -> list[StyledSpan]:
        """Highlights one line (terminator stripped) and advances the grammar state."""
        text = line.rstrip("\r\n")
        try:
            spans = self._advance(text)
        except Exception as e:
            # A broken lexer state never takes the stream down with it
            logger.warning("Highlighting failed, line left unstyled: %r", e)
            return [StyledSpan("plain", text)]
        return spans or [StyledSpan("plain", text)]

    def _advance(self, text: str) -> list[StyledSpan]:
        if not self.in_code_block:
            match = opening_fence(text)
            if match:
                self._open_fence(match.group("fence"), match.group("lang"))
                return [StyledSpan("fence", text)]
            return self._markdown_spans(text)
        if self._closes_fence(text):
            self.reset()
            return [StyledSpan("fence", text)]
        return self._code_spans(text)

    def _open_fence(self, fence: str, lang: str):
        self.fence = fence
        self.code_lines = []
        try:
            self.code_lexer = get_lexer_by_name(lang) if lang else TextLexer()
        except ClassNotFound:
            self.code_lexer = TextLexer()

    def _closes_fence(self, text: str) -> bool:
        stripped = text.strip()
        return (
            bool(stripped)
            and self.fence is not None
            and set(stripped) == {self.fence[0]}
            and len(stripped) >= len(self.fence)
        )

    def _markdown_spans(self, text: str) -> list[StyledSpan]:
        # The Markdown grammar anchors headings and lists on the line terminator
        tokens = self.markdown.get_tokens_unprocessed(text + "\n")
        is_quote = text.lstrip().startswith(">")
        spans = []
        for _, ttype, value in tokens:
            style_class = markdown_class(ttype)
            if is_quote and style_class in ("list_marker", "emphasis"):
                style_class = "quote"
            spans.append(StyledSpan(style_class, value))
        return merge_spans(strip_newline(spans))

    def _code_spans(self, text: str) -> list[StyledSpan]:
        # Re-lex the block so far, multi-line strings and comments keep their state
        if len(self.code_lines) >= MAX_CODE_CONTEXT:
            del self.code_lines[0]
        start = sum(len(line) for line in self.code_lines)
        self.code_lines.append(text + "\n")
        source = "".join(self.code_lines)

        assert self.code_lexer is not None
        spans = []
        position = 0
        for _, ttype, value in self.code_lexer.get_tokens_unprocessed(source):
            token_start = position
            position += len(value)
            if position <= start:
                continue
            if token_start < start:
                value = value[start - token_start :]
            spans.append(StyledSpan(code_class(ttype), value))
        return merge_spans(strip_newline(spans))

    # <~~RENDERING~~>
    def render(self, spans: list[StyledSpan]) -> str:
        """Turns spans into escape-coded text for the terminal."""
        color_system = self.color_system
        return "".join(
            self.theme.style_for(span.style_class).render(
                span.text, color_system=color_system
            )
            for span in spans
        )

    def highlight(self, line: str) -> str:
        return self.render(self.highlight_line(line))
