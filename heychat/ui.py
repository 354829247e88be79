"""Builds and spawns UI objects. UIConstructor and GlobalPanels live here."""

import textwrap

from rich import box
from rich.markdown import Markdown
from rich.panel import Panel
from rich.text import Text

from heychat import __version__
from heychat.globals import CONFIG_FILE, CONSOLE, LOG_DIR


class UIConstructor:
    """Constructs and returns various UI objects"""

    def __init__(self, config, session):
        self.config = config
        self.session = session

    def status_panel_constructor(self) -> Panel:
        turns = self.session.count_turns()
        tokens = self.session.count_tokens()
        status_text = Text.assemble(
            ("Model: ", "cyan"),
            (f"{self.config.model}"),
            (" | "),
            (f"Turn: {turns}"),
            (" | "),
            (f"Tokens: {tokens}"),
        )
        return Panel(
            status_text,
            border_style="dim",
            style="dim",
            expand=False,
        )

    def intro_panel_constructor(self) -> Panel:
        intro_text = Text.assemble(
            ("Model: ", "bold sandy_brown"),
            (f"{self.config.model}"),
            ("\nTheme: ", "bold sandy_brown"),
            (f"{self.config.theme}"),
            ("\nSystem Prompt: ", "bold sandy_brown"),
            (f"{self.session.system_prompt}", "italic"),
        )
        return Panel(
            intro_text,
            title=Text(f"👋 Hey {__version__}", "bold medium_orchid"),
            title_align="left",
            border_style="medium_orchid",
            box=box.HORIZONTALS,
            padding=(0, 0),
        )

    @staticmethod
    def error_panel_constructor(error: str, exception: str) -> Panel:
        return Panel(
            exception,
            title=Text(f"❌ {error}", style="bold red"),
            title_align="left",
            border_style="red",
            expand=False,
        )

    def help_chart_constructor(self) -> Markdown:
        return Markdown(
            textwrap.dedent("""
            | **Conversation** | *Manage the current conversation* |
            | --- | ----------- |
            | `/save` or `/s` | Save the conversation. A title is generated for new files. |
            | `/load` or `/l` | Load a saved conversation and replay it. |
            | `/history` | Replay the current conversation. |
            | `/reset` or `/r` | Start over with only the system prompt. |
            | `/clear` or `/c` | Clear the terminal window. |
            | `/exit`, `/quit`, `/q` or `/x` | Exit. |

            | **Configuration** | *Persistent settings* |
            | --- | ----------- |
            | `/model [name]` or `/m` | Select the model used for replies. |
            | `/theme [name]` or `/t` | Select the highlighting theme. `ansi`, `base16` and `base16-256` use your terminal palette, every other theme is true-color. Built-in themes can be found at https://pygments.org/styles/ |
            | `/key` | Set an API key. Your API key is stored in your OS keychain. |
            | `/config` | Display your current settings. |
            | `/help`, `/h` or `/` | Show this chart. |
            | | |
            | `Ctrl + C` | Exit immediately. Does not save! |
            """)
        )

    def settings_chart_constructor(self) -> Markdown:
        wrap = self.config.wrap_width or "disabled"
        return Markdown(
            textwrap.dedent(f"""
            | **Current Settings** | *Your current persistent settings* |
            | --- | ----------- |
            | **Model**: | *{self.config.model}* |
            | **Endpoint**: | *{self.config.endpoint or "OpenAI"}* |
            | **Max Tokens**: | *{self.config.max_tokens}* |
            | **System Prompt**: | *{self.config.system_prompt}* |
            | **Theme**: | *{self.config.theme}* |
            | **Syntax Highlighting**: | *{self.config.syntax_highlighting}* |
            | **Wrap Width**: | *{wrap}* |
            | **Animations**: | *{self.config.animations}* ({self.config.char_delay_us}µs) |
            - Your configuration file is located at: `{CONFIG_FILE}`
            - Your conversations are located at:     `{self.config.conversations_path}`
            - Your error logs are located at:        `{LOG_DIR}`
            """)
        )


class GlobalPanels:
    """Global panel spawner"""

    def __init__(self, session, config, ui: UIConstructor):
        self.session = session
        self.config = config
        self.ui: UIConstructor = ui

    def spawn_intro_panel(self):
        """Simple welcome panel, prints on application launch."""
        CONSOLE.print(self.ui.intro_panel_constructor())
        CONSOLE.print(Markdown("Type `/help` for a list of commands."))

    def spawn_status_panel(self):
        """Prints a status panel."""
        CONSOLE.print(self.ui.status_panel_constructor())
        CONSOLE.print()

    def spawn_error_panel(self, error: str, exception: str):
        """Error panel template, used by Chat, the CLI controller and main()"""
        CONSOLE.print(self.ui.error_panel_constructor(error, exception))
        CONSOLE.print()
