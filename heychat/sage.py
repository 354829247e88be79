#!/usr/bin/env python3

# <~~~~~~~~~~>
#     HEY
# <~~~~~~~~~~>

import argparse
import os
import sys

from openai import OpenAI, OpenAIError
from rich.live import Live
from rich.text import Text

from heychat import __version__
from heychat.cli_controller import CLIController
from heychat.config import Config
from heychat.errors import StreamError, WriteError
from heychat.globals import (
    CONSOLE,
    init_logger,
    log_exception,
    retrieve_key,
    root_prompt,
    setup_keyring_backend,
    spinner_constructor,
)
from heychat.renderer import iter_content, render_stream, render_text
from heychat.session_manager import SessionManager
from heychat.terminal import paint, snailprint
from heychat.ui import GlobalPanels, UIConstructor

TITLE_PROMPT = (
    "Generate a concise title (max 5 words) for the following conversation "
    "(to be used in a filename). Do not use any special characters."
)
DEFAULT_TITLE = "Untitled Conversation"


def generate_title(client: OpenAI, transcript: str, model: str = "gpt-4o-mini") -> str:
    """Asks the model for a short conversation title. Never raises."""
    try:
        completion = client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": TITLE_PROMPT},
                {"role": "user", "content": transcript},
            ],
            max_tokens=10,
        )
        title = completion.choices[0].message.content or ""
    except (OpenAIError, IndexError) as e:
        log_exception(e, "Error in generate_title()")
        return DEFAULT_TITLE
    return title.strip().strip("\"'") or DEFAULT_TITLE


class Chat:
    """Houses the main application logic for Hey"""

    def __init__(self, config: Config, session: SessionManager, panel: GlobalPanels):
        self.config: Config = config
        self.session: SessionManager = session
        self.panel: GlobalPanels = panel
        self.controller: CLIController | None = None

        # API endpoint - Pulls the endpoint from the config file and the key from env/keyring
        self.client = OpenAI(base_url=self.config.endpoint, api_key=retrieve_key())

    def rebuild_client(self, api_key: str | None = None):
        """Swaps the API client, used after a key change"""
        self.client = OpenAI(
            base_url=self.config.endpoint, api_key=api_key or retrieve_key()
        )

    def say(self, text: str, style: str):
        snailprint(paint(text, style) + "\n", int(self.config.char_delay * 1_000_000))

    # <~~STREAMING~~>
    def stream_response(self, show_status: bool = True) -> bool:
        """
        Facilitates the entire streaming process:
        - The API request
        - Line-by-line rendering of the reply
        - Appending the final response to history\n
        Returns False when the turn was aborted.
        """
        CONSOLE.show_cursor(False)
        try:
            completion = self.client.chat.completions.create(
                model=self.config.model,
                messages=self.session.history,
                max_tokens=self.config.max_tokens,
                stream=True,
            )
            response = render_stream(iter_content(completion), self.config)
        except (StreamError, OpenAIError) as e:
            log_exception(e, "Error in stream_response()")
            self.session.correct_history()
            self.say(f"\nError: {e}", "red")
            return False
        finally:
            CONSOLE.show_cursor(True)

        if not response:
            self.session.correct_history()
            return False
        if not response.endswith("\n"):
            CONSOLE.print()
        self.session.append_message("assistant", response)
        if show_status:
            CONSOLE.print()
            self.panel.spawn_status_panel()
        return True

    def send(self, message: str, show_status: bool = True) -> bool:
        """Appends a user message and streams the reply"""
        self.session.append_message("user", message)
        return self.stream_response(show_status)

    def generate_title(self) -> str:
        return generate_title(
            self.client, self.session.transcript(), self.config.title_model
        )

    # <~~HISTORY~~>
    def render_history(self):
        """Replays the conversation: user turns as typed, assistant turns highlighted"""
        for msg in self.session.history:
            content = str(msg.get("content") or "")
            if msg["role"] == "user":
                CONSOLE.print(
                    Text.assemble(("> ", "magenta"), (content, "green")),
                    highlight=False,
                )
            elif msg["role"] == "assistant":
                render_text(content, self.config)
                if not content.endswith("\n"):
                    CONSOLE.print()
                CONSOLE.print()

    def check_conversations_folder(self):
        """Warns when the configured conversations folder is missing"""
        folder = self.config.conversations_path
        if not os.path.isdir(folder):
            CONSOLE.print(
                f"[yellow]Warning:[/yellow] conversations folder [cyan]{folder}[/cyan] does not exist. "
                "[dim]/save and /load will offer the current directory.[/dim]\n"
            )

    def run(self, first_message: str | None = None):
        """Helper function for running the application"""
        if self.controller is None:
            self.controller = CLIController(
                self.config, self.session, self.panel, self.panel.ui
            )
            self.controller.set_interface(self)
        if self.config.greetings:
            self.say("Hey!", "magenta")
        self.panel.spawn_intro_panel()
        self.check_conversations_folder()

        pending = first_message
        while True:
            if pending:
                user_input, pending = pending, None
                CONSOLE.print(
                    Text.assemble(("> ", "magenta"), (user_input, "green")),
                    highlight=False,
                )
            else:
                user_input = root_prompt()
            if not user_input.strip():
                continue
            # Commands are consumed by the controller, everything else goes to the model
            if self.controller.handle_input(user_input):
                continue
            self.send(user_input)


# <~~MAIN FLOW~~>
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hey",
        description="Chat with an OpenAI model from your terminal.",
    )
    parser.add_argument(
        "-p",
        "--prompt-path",
        help="read the system prompt for this session from a file",
    )
    parser.add_argument(
        "message",
        nargs="*",
        help="send a single message and print the reply",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def read_prompt_file(path: str) -> str:
    with open(os.path.expanduser(path), "r", encoding="utf-8") as f:
        return f.read().strip()


def main(argv: list[str] | None = None):
    args = build_parser().parse_args(argv)
    message = " ".join(args.message).strip()
    try:
        # Start a spinner, mostly for cold starts
        with Live(
            spinner_constructor("Launching Hey..."),
            refresh_per_second=8,
            console=CONSOLE,
            transient=True,
        ):
            init_logger()  # Initialize the log file
            setup_keyring_backend()
            config = Config()
            config.load()  # Generates a config file if one does not exist
            system_prompt = read_prompt_file(args.prompt_path) if args.prompt_path else None
            session = SessionManager(config, system_prompt)
            ui = UIConstructor(config, session)
            panel = GlobalPanels(session, config, ui)
            chat = Chat(config, session, panel)
            controller = CLIController(config, session, panel, ui)
            controller.set_interface(chat)
            chat.controller = controller

        # One-shot mode: a single reply, no REPL
        if message and not config.enter_repl:
            if not chat.send(message, show_status=False):
                sys.exit(1)
            return

        CONSOLE.clear()  # Clears the viewport
        chat.run(message or None)  # Runs the application
    except (KeyboardInterrupt, EOFError):
        CONSOLE.print("[yellow]✨ Farewell![/yellow]\n")
    except WriteError as e:
        log_exception(e, "Terminal write failed")
        sys.exit(1)
    except Exception as e:
        log_exception(e, "Critical error")  # Log any critical errors
        CONSOLE.print(UIConstructor.error_panel_constructor("CRITICAL ERROR", f"{e}"))
        sys.exit(1)


if __name__ == "__main__":
    main()
