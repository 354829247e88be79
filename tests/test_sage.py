"""
A 'mock and drive' test for sage.py.

- Imitates the API, the keychain and user input
- Streams replies through Chat
- Starts the application and exits
"""

import json
from unittest.mock import MagicMock, patch

import pytest
from openai import OpenAIError

from heychat import sage
from heychat.config import Config
from heychat.session_manager import SessionManager


@pytest.fixture
def quiet_config():
    """Real Config with animations off, so replies render instantly and unwrapped."""
    cfg = Config()
    cfg.animations = False
    cfg.syntax_highlighting = False
    cfg.wrap_width = 0
    return cfg


@pytest.fixture
def chat(quiet_config, fake_tiktoken):
    with patch("heychat.sage.OpenAI"), patch("heychat.sage.retrieve_key", return_value="fake-api-key"):
        session = SessionManager(quiet_config)
        yield sage.Chat(quiet_config, session, MagicMock())


# 1. Title generation


def test_generate_title():
    client = MagicMock()
    client.chat.completions.create.return_value.choices[0].message.content = ' "Python Tips" '
    assert sage.generate_title(client, "User: hi\n") == "Python Tips"
    assert client.chat.completions.create.call_args.kwargs["max_tokens"] == 10


def test_generate_title_falls_back():
    client = MagicMock()
    client.chat.completions.create.side_effect = OpenAIError("no network")
    assert sage.generate_title(client, "User: hi\n") == sage.DEFAULT_TITLE


# 2. Streaming through Chat


def test_chat_initialization(chat):
    assert chat.client is not None
    assert chat.session.is_empty()


def test_stream_reply_is_rendered_and_recorded(chat, make_chunk, capsys):
    chat.client.chat.completions.create.return_value = [
        make_chunk("Hi "),
        make_chunk("there\nsecond"),
        make_chunk(" line"),
    ]
    assert chat.send("hello") is True

    assert "Hi there\nsecond line" in capsys.readouterr().out
    assert chat.session.history[-1] == {
        "role": "assistant",
        "content": "Hi there\nsecond line",
    }
    chat.panel.spawn_status_panel.assert_called_once()


def test_request_failure_drops_the_turn(chat, capsys):
    chat.client.chat.completions.create.side_effect = OpenAIError("server down")
    assert chat.send("hello") is False
    assert "Error: server down" in capsys.readouterr().out
    assert chat.session.is_empty()


def test_mid_stream_failure_drops_the_turn(chat, make_chunk, capsys):
    def broken_stream():
        yield make_chunk("half a line\n")
        raise ConnectionError("reset by peer")

    chat.client.chat.completions.create.return_value = broken_stream()
    assert chat.send("hello") is False
    out = capsys.readouterr().out
    assert "half a line" in out
    assert "Error: reset by peer" in out
    assert chat.session.is_empty()


def test_render_history(chat, capsys):
    chat.session.append_message("user", "question")
    chat.session.append_message("assistant", "answer")
    chat.render_history()
    out = capsys.readouterr().out
    assert "> question" in out
    assert "answer" in out


# 3. Main Application Loop (The "End-to-End" Test)


@pytest.fixture
def app_env(tmp_path, fake_tiktoken):
    """Config file in a temp dir with animations off, no logger setup, no keychain."""
    config_file = tmp_path / "settings.json"
    config_file.write_text(
        json.dumps({"animations": False, "wrap_width": 0, "syntax_highlighting": False}),
        encoding="utf-8",
    )
    with (
        patch("heychat.config.CONFIG_FILE", str(config_file)),
        patch("heychat.sage.init_logger"),
        patch("heychat.sage.setup_keyring_backend"),
        patch("heychat.sage.retrieve_key", return_value="fake-api-key"),
    ):
        yield config_file


@patch("heychat.sage.root_prompt")  # Mock the user input
@patch("heychat.sage.OpenAI")  # Mock the API
def test_application_startup_and_quit(mock_openai, mock_prompt, app_env, capsys):
    """
    1. Starts the app.
    2. Mocks the user typing '/q' immediately.
    3. Verifies the app shuts down cleanly without errors.
    """
    mock_prompt.return_value = "/q"

    with pytest.raises(SystemExit) as excinfo:
        sage.main([])

    assert excinfo.value.code == 0
    mock_prompt.assert_called()
    out = capsys.readouterr().out
    assert "Hey!" in out
    assert "Bye!" in out


@patch("heychat.sage.root_prompt")
@patch("heychat.sage.OpenAI")
def test_one_shot_message(mock_openai, mock_prompt, app_env, make_chunk, capsys):
    mock_openai.return_value.chat.completions.create.return_value = [
        make_chunk("Paris."),
    ]

    sage.main(["capital", "of", "France?"])

    mock_prompt.assert_not_called()
    kwargs = mock_openai.return_value.chat.completions.create.call_args.kwargs
    assert kwargs["messages"][-1] == {"role": "user", "content": "capital of France?"}
    assert kwargs["stream"] is True
    assert "Paris." in capsys.readouterr().out


@patch("heychat.sage.root_prompt")
@patch("heychat.sage.OpenAI")
def test_prompt_path_overrides_system_prompt(mock_openai, mock_prompt, app_env, make_chunk, tmp_path):
    prompt_file = tmp_path / "pirate.txt"
    prompt_file.write_text("Talk like a pirate.\n", encoding="utf-8")
    mock_openai.return_value.chat.completions.create.return_value = [make_chunk("Arr.")]

    sage.main(["--prompt-path", str(prompt_file), "hello"])

    kwargs = mock_openai.return_value.chat.completions.create.call_args.kwargs
    assert kwargs["messages"][0] == {"role": "system", "content": "Talk like a pirate."}
    # The override is never written back to the config file
    assert "pirate" not in app_env.read_text(encoding="utf-8")


@patch("heychat.sage.root_prompt")
@patch("heychat.sage.OpenAI")
def test_failed_one_shot_exits_nonzero(mock_openai, mock_prompt, app_env):
    mock_openai.return_value.chat.completions.create.side_effect = OpenAIError("bad key")
    with pytest.raises(SystemExit) as excinfo:
        sage.main(["hello"])
    assert excinfo.value.code == 1


@patch("heychat.sage.root_prompt")
@patch("heychat.sage.OpenAI")
def test_ctrl_c_at_the_prompt_says_farewell(mock_openai, mock_prompt, app_env, capsys):
    mock_prompt.side_effect = KeyboardInterrupt
    sage.main([])
    assert "Farewell" in capsys.readouterr().out
