"""Shared fixtures. Nothing here touches the network, the OS keychain or the real config file."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest


@pytest.fixture
def fake_tiktoken():
    """tiktoken downloads its encodings on first use, so the encoder is faked (1 token per word)."""
    encoder = MagicMock()
    encoder.encode.side_effect = lambda text: text.split()
    with patch("heychat.session_manager.tiktoken") as mock_tiktoken:
        mock_tiktoken.get_encoding.return_value = encoder
        yield mock_tiktoken


@pytest.fixture
def render_settings():
    """Bare renderer settings: no highlighting, no wrapping, no pacing."""
    return SimpleNamespace(
        theme="ansi", syntax_highlighting=False, wrap_width=0, char_delay=0.0
    )


@pytest.fixture
def make_chunk():
    """Factory for objects shaped like an openai ChatCompletionChunk carrying a text delta."""

    def _make(content):
        return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])

    return _make
