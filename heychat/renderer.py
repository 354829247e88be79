"""
Incremental renderer for streamed model replies.

Chunks arrive at arbitrary boundaries. They are buffered into complete lines,
and each complete line is highlighted, wrapped and snail-printed before the
next chunk is pulled. Whatever is left when the stream ends is flushed once.
"""

import logging
import time
from enum import Enum
from typing import AsyncIterable, Iterable, Iterator, TextIO

from openai import Stream
from openai.types.chat.chat_completion_chunk import ChatCompletionChunk

from heychat.errors import RenderError, StreamError, WriteError
from heychat.highlighter import SyntaxHighlighter
from heychat.terminal import (
    PacedWriter,
    Sleeper,
    resolve_wrap_width,
    terminal_width,
    wrap_line,
)
from heychat.themes import DEFAULT_THEME, THEME_STORE, ThemeStore, UnknownThemeError

__all__ = [
    "LineBuffer",
    "RenderError",
    "RenderState",
    "StreamError",
    "StreamRenderer",
    "WriteError",
    "arender_stream",
    "iter_content",
    "render_stream",
    "render_text",
]

logger = logging.getLogger(__name__)


class LineBuffer:
    """Collects fragments and hands back complete lines, keeping the unterminated tail."""

    def __init__(self):
        self._tail: str = ""

    def append(self, fragment: str):
        self._tail += fragment

    def pop_line(self) -> str | None:
        """Returns the first complete line, terminator included, or None."""
        end = self._tail.find("\n")
        if end == -1:
            return None
        line, self._tail = self._tail[: end + 1], self._tail[end + 1 :]
        return line

    def take_remainder(self) -> str | None:
        """Returns and clears the unterminated tail, None when there is none."""
        if not self._tail:
            return None
        remainder, self._tail = self._tail, ""
        return remainder

    @property
    def pending(self) -> str:
        return self._tail

    def __len__(self) -> int:
        return len(self._tail)


class RenderState(Enum):
    STREAMING = "streaming"
    DRAINING = "draining"
    DONE = "done"


class StreamRenderer:
    """
    Renders a single response. Owns its buffer, highlighter and writer for the
    length of one stream, then returns the full raw text.

    States: STREAMING -> DRAINING -> DONE.
    """

    def __init__(
        self,
        highlighter: SyntaxHighlighter | None,
        writer: PacedWriter,
        width: int = 0,
    ):
        self.highlighter = highlighter
        self.writer = writer
        self.width = width
        self.buffer = LineBuffer()
        self.state = RenderState.STREAMING
        self.lines_rendered: int = 0
        self._response: list[str] = []

    @property
    def full_response(self) -> str:
        return "".join(self._response)

    def render_line(self, line: str):
        """Highlight -> wrap -> snail-print, line terminator reattached afterwards."""
        terminated = line.endswith("\n")
        if self.highlighter:
            styled = self.highlighter.highlight(line)
        else:
            styled = line.rstrip("\r\n")
        self.writer.emit(wrap_line(styled, self.width) + ("\n" if terminated else ""))
        self.lines_rendered += 1

    def feed(self, chunk: str | None):
        """Buffers one chunk and renders every line it completes."""
        if self.state is not RenderState.STREAMING:
            raise RenderError(f"Cannot feed a renderer in state {self.state.value}")
        if not chunk:
            return
        self._response.append(chunk)
        self.buffer.append(chunk)
        while True:
            line = self.buffer.pop_line()
            if line is None:
                break
            self.render_line(line)

    def finish(self) -> str:
        """Flushes the unterminated tail and returns the full response."""
        if self.state is RenderState.DONE:
            return self.full_response
        self.state = RenderState.DRAINING
        remainder = self.buffer.take_remainder()
        if remainder:
            self.render_line(remainder)
        self.state = RenderState.DONE
        return self.full_response

    def render(self, chunks: Iterable[str | None]) -> str:
        """Pulls chunks one at a time; the next is requested once output has caught up."""
        iterator = iter(chunks)
        while True:
            try:
                chunk = next(iterator)
            except StopIteration:
                break
            except Exception as e:
                raise StreamError(str(e) or type(e).__name__) from e
            self.feed(chunk)
        return self.finish()

    async def arender(self, chunks: AsyncIterable[str | None]) -> str:
        """Async twin of render(). Rendering itself stays synchronous."""
        iterator = chunks.__aiter__()
        while True:
            try:
                chunk = await iterator.__anext__()
            except StopAsyncIteration:
                break
            except Exception as e:
                raise StreamError(str(e) or type(e).__name__) from e
            self.feed(chunk)
        return self.finish()


def iter_content(completion: Stream[ChatCompletionChunk]) -> Iterator[str]:
    """Yields the text deltas of a streaming chat completion."""
    for chunk in completion:
        if not chunk.choices:
            continue
        content = getattr(chunk.choices[0].delta, "content", None)
        if content:
            yield content


def build_renderer(
    settings,
    stream: TextIO | None = None,
    sleep: Sleeper = time.sleep,
    store: ThemeStore = THEME_STORE,
    paced: bool = True,
) -> StreamRenderer:
    """
    Builds a renderer from the session settings.\n
    settings needs: theme, syntax_highlighting, wrap_width, char_delay.
    """
    highlighter = None
    if settings.syntax_highlighting:
        try:
            highlighter = SyntaxHighlighter.from_name(settings.theme, store)
        except UnknownThemeError:
            logger.warning("Unknown theme %r, using %r", settings.theme, DEFAULT_THEME)
            highlighter = SyntaxHighlighter.from_name(DEFAULT_THEME, store)
    writer = PacedWriter(stream, settings.char_delay if paced else 0.0, sleep)
    width = resolve_wrap_width(settings.wrap_width, terminal_width())
    logger.debug(
        "Rendering with theme=%s width=%d",
        settings.theme if highlighter else None,
        width,
    )
    return StreamRenderer(highlighter, writer, width)


def render_stream(
    chunks: Iterable[str | None],
    settings,
    stream: TextIO | None = None,
    sleep: Sleeper = time.sleep,
) -> str:
    """Renders a whole response stream and returns its raw text."""
    return build_renderer(settings, stream, sleep).render(chunks)


async def arender_stream(
    chunks: AsyncIterable[str | None],
    settings,
    stream: TextIO | None = None,
    sleep: Sleeper = time.sleep,
) -> str:
    return await build_renderer(settings, stream, sleep).arender(chunks)


def render_text(text: str, settings, stream: TextIO | None = None):
    """Highlights and wraps a finished text in one go, no pacing. Used for history replay."""
    build_renderer(settings, stream, paced=False).render([text])
