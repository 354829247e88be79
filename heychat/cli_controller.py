"""Command interactivity logic lives here."""

import json
import os
import sys
import textwrap
import time

from keyring import set_password
from keyring.errors import KeyringError
from prompt_toolkit import prompt
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.formatted_text import HTML

from heychat.globals import (
    COMPLETER_STYLER,
    CONSOLE,
    KEYRING_SERVICE,
    USER_NAME,
    log_exception,
    parse_command,
)
from heychat.renderer import render_text
from heychat.terminal import paint, snailprint
from heychat.themes import THEME_STORE, UnknownThemeError

# Printed after a theme switch so the user can judge the colors
SAMPLE_TEXT = textwrap.dedent("""\
    # Heading
    Some **bold** text, some *italic* text and a `code span`.
    > A quoted line
    - A [link](https://example.com)
    ```python
    def greet(name: str) -> str:
        # Say hello
        return f"Hello, {name}!"  # 42
    ```
    """)


class CLIController:
    """Handles and supports all command input"""

    def __init__(self, config, session, panel, ui):
        self.config = config
        self.ui = ui
        self.session = session
        self.panel = panel
        self.interface = None

        # Command dict, keyed by canonical name. Aliases resolve in parse_command().
        self.commands = {
            "exit": self.exit_app,
            "clear": self.clear_console,
            "reset": self.reset_session,
            "model": self.select_model,
            "theme": self.select_theme,
            "save": self.save_session,
            "load": self.load_session,
            "history": self.show_history,
            "help": self.spawn_help_chart,
            "key": self.set_api_key,
            "config": self.spawn_settings_chart,
        }

        self.file_prompt = HTML("Enter a file name<seagreen>:</seagreen> ")

    # <~~HELPERS~~>
    def _prompt_wrapper(
        self, prefix, cancel_msg="Canceled.", allow_empty=False, **kwargs
    ) -> str | None:
        """Prompt_toolkit wrapper for validating input."""
        try:
            # **kwargs passes completers, styles, defaults, etc automatically
            user_input = prompt(prefix, **kwargs)
            stripped = user_input.strip()
            if not stripped and not allow_empty:
                CONSOLE.print("[dim]No input detected.[/dim]\n")
                return None
            return stripped
        except (KeyboardInterrupt, EOFError):
            CONSOLE.print(f"[dim]{cancel_msg}[/dim]\n")
            return None

    def _say(self, text: str, style: str | None = None):
        """Snail-prints a short status line."""
        snailprint(
            (paint(text, style) if style else text) + "\n",
            int(self.config.char_delay * 1_000_000),
        )

    def _conversations_folder(self) -> str | None:
        """Returns the conversations folder, offering the working directory when it's missing."""
        folder = self.config.conversations_path
        if os.path.isdir(folder):
            return folder
        CONSOLE.print(f"[yellow]Conversations folder not found:[/yellow] {folder}")
        choice = self._prompt_wrapper(
            HTML(
                "Use the current directory instead? (<seagreen>y</seagreen>/<ansired>N</ansired>): "
            ),
            allow_empty=True,
        )
        if choice and choice.lower() in ("y", "yes"):
            return os.getcwd()
        return None

    def handle_input(self, user_input: str) -> bool:
        """Parse user input for a command & handle it. False means it's a message."""
        parsed = parse_command(user_input)
        if parsed is None:
            return False
        name, argument = parsed
        if name == "invalid":
            self._say("Invalid command. Type /help for a list of commands.", "yellow")
            return True
        self.commands[name](argument)
        return True

    def set_interface(self, chat_interface):
        """Setter to inject the Chat instance."""
        self.interface = chat_interface

    # <~~APP~~>
    def exit_app(self, argument: str = ""):
        """Offers to save a non-empty conversation, then exits."""
        if not self.session.is_empty():
            choice = self._prompt_wrapper(
                HTML("Save first? (<seagreen>y</seagreen>/<ansired>N</ansired>): "),
                allow_empty=True,
            )
            if choice is None:
                return
            if choice.lower() in ("y", "yes"):
                self.save_session()
        if self.config.greetings:
            self._say("Bye!", "magenta")
        else:
            CONSOLE.print("[yellow]✨ Farewell![/yellow]\n")
        sys.exit(0)

    def clear_console(self, argument: str = ""):
        self._say("Clearing...", "dim")
        time.sleep(0.25)
        CONSOLE.clear()

    # <~~CHARTS~~>
    def spawn_help_chart(self, argument: str = ""):
        """Markdown usage chart."""
        CONSOLE.print(self.ui.help_chart_constructor())
        CONSOLE.print()

    def spawn_settings_chart(self, argument: str = ""):
        """Markdown settings chart."""
        CONSOLE.print(self.ui.settings_chart_constructor())
        CONSOLE.print()

    # <~~MAIN CONFIG~~>
    def select_model(self, argument: str = ""):
        """Selects the reply model. Unlisted names are added to the model list."""
        model = argument or self._prompt_wrapper(
            HTML(f"Select a model <ansigray>({self.config.model})</ansigray><seagreen>:</seagreen> "),
            completer=WordCompleter(self.config.models, WORD=True),
            style=COMPLETER_STYLER,
        )
        if not model:
            return
        if model not in self.config.models:
            self.config.models.append(model)
        self.config.model = model
        self.config.save()
        CONSOLE.print(f"[green]Model set to:[/green] {model}\n")

    def select_theme(self, argument: str = ""):
        """Selects the highlighting theme and prints a sample with it."""
        theme = argument or self._prompt_wrapper(
            HTML(f"Select a theme <ansigray>({self.config.theme})</ansigray><seagreen>:</seagreen> "),
            completer=WordCompleter(THEME_STORE.names(), WORD=True),
            style=COMPLETER_STYLER,
        )
        if not theme:
            return
        try:
            theme = THEME_STORE.get(theme).name
        except UnknownThemeError:
            CONSOLE.print(f"[red]Unknown theme:[/red] {theme}\n")
            return

        self.config.theme = theme
        self.config.save()
        CONSOLE.print(f"[green]Your theme has been set to: [/green]{theme}\n")
        render_text(SAMPLE_TEXT, self.config)
        CONSOLE.print()

    def set_api_key(self, argument: str = ""):
        """Allows the user to set an API key. SAFELY stores the user's API key with keyring"""
        new_key = argument or self._prompt_wrapper(
            HTML("Enter an API key<seagreen>:</seagreen> "), is_password=True
        )
        if not new_key:
            return
        try:
            # Try to store securely w/ keyring
            set_password(KEYRING_SERVICE, USER_NAME, new_key)
            CONSOLE.print("[green]API key updated.[/green]\n")
        except (KeyringError, ValueError, RuntimeError, OSError) as e:
            self.panel.spawn_error_panel(
                "KEYRING ERROR",
                f"Could not save to your OS keychain: {e}\nUsing key for this session only.",
            )
        if self.interface:
            self.interface.rebuild_client(new_key)

    # <~~CONVERSATION MANAGEMENT~~>
    def save_session(self, argument: str = ""):
        """Saves the conversation to a .json file, titled by the model when new."""
        if self.session.is_empty():
            self._say("Info: No conversation history to save.", "cyan")
            return

        if argument:
            folder = self._conversations_folder()
            if not folder:
                return
            file_path = self.session.json_path(argument, folder)
        elif self.session.active_session:
            file_path = self.session.active_session
        else:
            folder = self._conversations_folder()
            if not folder:
                return
            title = "Untitled Conversation"
            if self.interface:
                with CONSOLE.status(
                    "[bold medium_orchid]Generating a title...[/bold medium_orchid]",
                    spinner="moon",
                ):
                    title = self.interface.generate_title()
            file_name = self._prompt_wrapper(
                self.file_prompt, default=self.session.filename_from_title(title)
            )
            if not file_name:
                return
            file_path = self.session.json_path(file_name, folder)

        try:
            self.session.save_to_disk(file_path)
            CONSOLE.print(f"[green]Conversation saved in:[/green] {file_path}\n")
        except Exception as e:
            log_exception(
                e, f"Error in save_session() - file: {os.path.basename(file_path)}"
            )
            self.panel.spawn_error_panel("ERROR SAVING", f"{e}")

    def load_session(self, argument: str = ""):
        """Loads a conversation from a .json file and replays it"""
        folder = self._conversations_folder()
        if not folder:
            return
        if not argument and not self.list_sessions(folder):
            return
        file_name = argument or self._prompt_wrapper(
            self.file_prompt,
            completer=WordCompleter(self.session.find_sessions(folder), WORD=True),
            style=COMPLETER_STYLER,
        )
        if not file_name:
            return

        file_path = self.session.json_path(file_name, folder)
        try:
            self.session.load_from_disk(file_path)
        except FileNotFoundError:
            CONSOLE.print(f"[red]No conversation file found:[/red] {file_path}\n")
            return
        except (json.JSONDecodeError, ValueError):
            CONSOLE.print(f"[red]Corrupted conversation file:[/red] {file_path}\n")
            return
        except Exception as e:
            log_exception(
                e, f"Error in load_session() - file: {os.path.basename(file_path)}"
            )
            self.panel.spawn_error_panel("ERROR LOADING", f"{e}")
            return

        CONSOLE.print(f"[green]Conversation loaded from:[/green] {file_path}\n")
        if self.interface:
            self.interface.render_history()
        self.panel.spawn_status_panel()

    def list_sessions(self, folder: str | None = None) -> bool:
        """Fetches the conversation list and displays it."""
        sessions = self.session.find_sessions(folder)

        if not sessions:
            CONSOLE.print("[dim]No saved conversations found.[/dim]\n")
            return False

        CONSOLE.print("[cyan]Available conversations:[/cyan]")
        for s in sessions:
            CONSOLE.print(f"• {s}", highlight=False)
        CONSOLE.print()
        return True

    def show_history(self, argument: str = ""):
        if self.session.is_empty():
            self._say("Info: No conversation history to show.", "cyan")
            return
        if self.interface:
            self.interface.render_history()

    def reset_session(self, argument: str = ""):
        """Simple conversation resetter."""
        self._say("Resetting conversation...", "dim")
        self.session.reset()
        self.panel.spawn_status_panel()
