"""Command parsing and the command handlers, driven with mocked prompts."""

import json
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from heychat.cli_controller import CLIController
from heychat.globals import lex_input, parse_command
from heychat.session_manager import SessionManager


@pytest.fixture
def config(tmp_path):
    return SimpleNamespace(
        model="gpt-4o",
        models=["gpt-4o", "gpt-4o-mini"],
        theme="ansi",
        system_prompt="You are a helpful assistant.",
        conversations_path=str(tmp_path),
        greetings=True,
        char_delay=0.0,
        save=MagicMock(),
    )


@pytest.fixture
def controller(config, fake_tiktoken):
    session = SessionManager(config)
    controller = CLIController(config, session, MagicMock(), MagicMock())
    controller.set_interface(MagicMock())
    return controller


# 1. Parsing


@pytest.mark.parametrize(
    "user_input, expected",
    [
        ("hello there", None),
        ("/q", ("exit", "")),
        ("/QUIT", ("exit", "")),
        ("/x", ("exit", "")),
        ("/", ("help", "")),
        ("/theme monokai", ("theme", "monokai")),
        ("  /m   gpt-4.1 ", ("model", "gpt-4.1")),
        ("/nope whatever", ("invalid", "whatever")),
    ],
)
def test_parse_command(user_input, expected):
    assert parse_command(user_input) == expected


def test_input_lexer_styles():
    assert lex_input("hello") == [("class:message", "hello")]
    assert lex_input("/theme monokai") == [
        ("", "/"),
        ("class:command", "theme"),
        ("", " "),
        ("class:argument", "monokai"),
    ]
    assert lex_input("/bogus") == [("", "/"), ("class:invalid-command", "bogus")]


# 2. Dispatch


def test_messages_are_not_commands(controller):
    assert controller.handle_input("just a question") is False


def test_invalid_command(controller, capsys):
    assert controller.handle_input("/frobnicate") is True
    assert "Invalid command. Type /help for a list of commands." in capsys.readouterr().out


def test_aliases_reach_the_same_handler(config, fake_tiktoken):
    with patch.object(CLIController, "spawn_help_chart") as mock_help:
        controller = CLIController(config, SessionManager(config), MagicMock(), MagicMock())
        controller.handle_input("/h")
        controller.handle_input("/")
        controller.handle_input("/HELP")
    assert mock_help.call_count == 3
    mock_help.assert_called_with("")


# 3. Settings


def test_select_model_adds_unlisted_models(controller, config):
    controller.handle_input("/model gpt-4.1")
    assert config.model == "gpt-4.1"
    assert "gpt-4.1" in config.models
    config.save.assert_called_once()


@patch("heychat.cli_controller.render_text")
def test_select_theme(mock_render, controller, config):
    controller.handle_input("/theme Monokai")
    assert config.theme == "monokai"
    config.save.assert_called_once()
    mock_render.assert_called_once()


def test_select_unknown_theme(controller, config, capsys):
    controller.handle_input("/theme not-a-theme")
    assert config.theme == "ansi"
    config.save.assert_not_called()
    assert "Unknown theme" in capsys.readouterr().out


@patch("heychat.cli_controller.set_password")
def test_set_api_key(mock_set_password, controller):
    controller.handle_input("/key sk-test")
    mock_set_password.assert_called_once()
    controller.interface.rebuild_client.assert_called_once_with("sk-test")


# 4. Conversations


def test_save_refuses_empty_conversation(controller, tmp_path, capsys):
    controller.handle_input("/save")
    assert "Info: No conversation history to save." in capsys.readouterr().out
    assert list(tmp_path.iterdir()) == []


def test_save_with_name(controller, tmp_path):
    controller.session.append_message("user", "hi")
    controller.handle_input("/save mychat")
    saved = json.loads((tmp_path / "mychat.json").read_text(encoding="utf-8"))
    assert saved[-1] == {"role": "user", "content": "hi"}


@patch("heychat.cli_controller.prompt")
def test_save_offers_generated_title(mock_prompt, controller, tmp_path):
    controller.session.append_message("user", "hi")
    controller.interface.generate_title.return_value = "Python Tips"
    mock_prompt.return_value = "python_tips.json"

    controller.save_session()

    assert mock_prompt.call_args.kwargs["default"] == "python_tips.json"
    assert (tmp_path / "python_tips.json").exists()
    assert controller.session.active_session == str(tmp_path / "python_tips.json")


def test_load_replays_history(controller, tmp_path):
    history = [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "q"},
        {"role": "assistant", "content": "a"},
    ]
    (tmp_path / "old.json").write_text(json.dumps(history), encoding="utf-8")

    controller.handle_input("/load old")

    assert controller.session.history == history
    controller.interface.render_history.assert_called_once()
    controller.panel.spawn_status_panel.assert_called_once()


def test_load_corrupted_file(controller, tmp_path, capsys):
    (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
    controller.handle_input("/load broken")
    assert "Corrupted conversation file" in capsys.readouterr().out
    assert controller.session.is_empty()


@patch("heychat.cli_controller.prompt")
def test_missing_folder_can_be_declined(mock_prompt, controller, config, tmp_path):
    config.conversations_path = str(tmp_path / "gone")
    controller.session.append_message("user", "hi")
    mock_prompt.return_value = "n"
    controller.handle_input("/save named")
    assert not (tmp_path / "gone").exists()


def test_reset(controller):
    controller.session.append_message("user", "hi")
    controller.handle_input("/reset")
    assert controller.session.is_empty()


# 5. Exit


def test_exit_with_empty_conversation(controller, capsys):
    with pytest.raises(SystemExit) as excinfo:
        controller.handle_input("/q")
    assert excinfo.value.code == 0
    assert "Bye!" in capsys.readouterr().out


@patch("heychat.cli_controller.prompt")
def test_exit_asks_to_save(mock_prompt, controller, tmp_path):
    controller.session.append_message("user", "hi")
    mock_prompt.return_value = "n"
    with pytest.raises(SystemExit):
        controller.handle_input("/exit")
    mock_prompt.assert_called_once()
    assert list(tmp_path.iterdir()) == []
