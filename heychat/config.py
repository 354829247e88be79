"""Handles all user-facing configuration actions."""

import json
import os

from heychat.globals import CONFIG_FILE, CONVERSATIONS_DIR


class Config:
    """User-facing configuration variables"""

    def __init__(self):
        # API, None means the official OpenAI endpoint
        self.endpoint: str | None = None
        self.model: str = "gpt-4o"
        self.models: list[str] = [
            "gpt-4o",
            "gpt-4o-mini",
            "gpt-4.1",
            "gpt-4.1-mini",
            "o3-mini",
        ]
        self.title_model: str = "gpt-4o-mini"
        self.max_tokens: int = 2048
        self.system_prompt: str = "You are a helpful assistant."
        # Response rendering
        self.theme: str = "ansi"
        self.syntax_highlighting: bool = True
        self.wrap_width: int = 100
        self.animations: bool = True
        self.char_delay_us: int = 5000
        # Behaviour
        self.greetings: bool = True
        self.enter_repl: bool = False
        self.conversations_folder: str = CONVERSATIONS_DIR

    def save(self):
        """Saves any config changes to the config file."""
        with open(CONFIG_FILE, "w", encoding="utf-8") as f:
            json.dump(self.__dict__, f, indent=2)

    def load(self):
        """Loads the config file."""
        if not os.path.exists(CONFIG_FILE):
            self.save()
        with open(CONFIG_FILE, "r", encoding="utf-8") as f:
            data = json.load(f)
        for key, val in data.items():
            setattr(self, key, val)

    @property
    def char_delay(self) -> float:
        """Snail-print delay in seconds, 0 when animations are off"""
        if not self.animations:
            return 0.0
        return max(self.char_delay_us, 0) / 1_000_000

    @property
    def conversations_path(self) -> str:
        """Conversations folder with ~ and env variables expanded"""
        expanded = os.path.expandvars(os.path.expanduser(self.conversations_folder.strip()))
        return os.path.abspath(expanded)
