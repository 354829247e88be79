"""Config defaults and persistence. The config file is always redirected to a temp dir."""

from unittest.mock import patch

from heychat.config import Config


def test_config_defaults(tmp_path):
    with patch("heychat.config.CONFIG_FILE", str(tmp_path / "settings.json")):
        cfg = Config()

        assert cfg.model == "gpt-4o"
        assert cfg.max_tokens == 2048
        assert cfg.system_prompt == "You are a helpful assistant."
        assert cfg.theme == "ansi"
        assert cfg.wrap_width == 100
        assert cfg.syntax_highlighting is True
        assert cfg.enter_repl is False


def test_config_save_load(tmp_path):
    fake_config_file = tmp_path / "settings.json"

    with patch("heychat.config.CONFIG_FILE", str(fake_config_file)):
        cfg = Config()
        cfg.theme = "monokai"
        cfg.wrap_width = 0
        cfg.save()

        cfg_loaded = Config()
        cfg_loaded.load()

        assert cfg_loaded.theme == "monokai"
        assert cfg_loaded.wrap_width == 0


def test_missing_config_file_is_created(tmp_path):
    fake_config_file = tmp_path / "settings.json"
    with patch("heychat.config.CONFIG_FILE", str(fake_config_file)):
        Config().load()
    assert fake_config_file.exists()


def test_char_delay():
    cfg = Config()
    assert cfg.char_delay == 0.005
    cfg.char_delay_us = 250
    assert cfg.char_delay == 0.00025
    cfg.animations = False
    assert cfg.char_delay == 0.0


def test_conversations_path_is_expanded(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    cfg = Config()
    cfg.conversations_folder = "~/chats"
    assert cfg.conversations_path == str(tmp_path / "chats")
