"""Conversation I/O and history management."""

import json
import os
import re

import tiktoken
from openai.types.chat import ChatCompletionMessageParam

VALID_ROLES = ("system", "user", "assistant")


class SessionManager:
    """Handles conversation-related I/O"""

    def __init__(self, config, system_prompt: str | None = None):
        self.config = config
        # Overrides config.system_prompt for this session only, never persisted
        self.system_prompt: str = system_prompt or config.system_prompt
        self.history: list[ChatCompletionMessageParam] = [
            {"role": "system", "content": self.system_prompt}
        ]
        self.active_session: str = ""
        self.encoder = tiktoken.get_encoding("o200k_base")

    def json_path(self, file_name: str, folder: str | None = None) -> str:
        """JSON extension helper, joins the name with the conversations folder"""
        if not file_name.endswith(".json"):
            file_name += ".json"
        return os.path.join(folder or self.config.conversations_path, file_name)

    def save_to_disk(self, filepath: str):
        """Save the current conversation to disk"""
        os.makedirs(os.path.dirname(filepath) or ".", exist_ok=True)
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(self.history, f, indent=2, ensure_ascii=False)
        self.active_session = filepath

    def load_from_disk(self, filepath: str):
        """Load a conversation file from disk, replacing the current history"""
        with open(filepath, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list) or not all(
            isinstance(m, dict)
            and m.get("role") in VALID_ROLES
            and isinstance(m.get("content"), str)
            for m in data
        ):
            raise ValueError(f"Not a conversation file: {os.path.basename(filepath)}")
        self.history = data
        self.active_session = filepath

    def append_message(self, role: str, content: str):
        """Append content to the conversation history"""
        self.history.append({"role": role, "content": content})  # pyright: ignore

    def correct_history(self):
        """Corrects history if the API connection was interrupted"""
        if self.history and self.history[-1]["role"] == "user":
            _ = self.history.pop()

    def reset(self):
        """Reset the conversation to the system prompt alone"""
        self.history = [{"role": "system", "content": self.system_prompt}]
        self.active_session = ""

    def is_empty(self) -> bool:
        return not any(m["role"] != "system" for m in self.history)

    def find_sessions(self, folder: str | None = None) -> list[str]:
        """Lists all conversation files within the conversations folder"""
        folder = folder or self.config.conversations_path
        if not os.path.isdir(folder):
            return []
        return sorted(f for f in os.listdir(folder) if f.endswith(".json"))

    def transcript(self) -> str:
        """Plain-text transcript of everything but system messages"""
        lines = []
        for msg in self.history:
            if msg["role"] == "user":
                lines.append(f"User: {msg['content']}\n")
            elif msg["role"] == "assistant":
                lines.append(f"Assistant: {msg['content']}\n")
        return "".join(lines)

    def count_turns(self) -> int:
        """Calculates and returns the turn number"""
        return sum(1 for m in self.history if m["role"] == "user")

    def count_tokens(self) -> int:
        """Counts tokens across the whole history"""
        return sum(self.encode(str(m.get("content") or "")) for m in self.history)

    def encode(self, text: str) -> int:
        """Converts a string to a token count"""
        try:
            count = len(self.encoder.encode(text))
        except Exception:
            count = 0
        return count

    @staticmethod
    def filename_from_title(title: str) -> str:
        """'My Chat: Title!' -> 'my_chat_title.json'"""
        cleaned = re.sub(r"[^\w\s-]", "", title).strip().lower()
        cleaned = re.sub(r"[\s-]+", "_", cleaned)
        return f"{cleaned or 'conversation'}.json"
