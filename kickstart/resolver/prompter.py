"""Interactive terminal I/O for asking template questions.

The resolver only depends on the small :class:`Prompter` interface; the Rich
implementation below is what the CLI uses.  Tests substitute a scripted
prompter that replays canned answers.
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt

from kickstart.utils import console as default_console
from kickstart.values import CoercionError, interpret_bool


class Prompter:
    """Interface for asking the user a question.

    ``ask`` returns the raw text typed by the user; an empty string means
    "keep the default".  ``confirm`` returns an already-interpreted boolean.
    """

    def ask(self, prompt: str, default: str, choices: list[str] | None = None) -> str:
        raise NotImplementedError

    def confirm(self, prompt: str, default: bool) -> bool:
        raise NotImplementedError

    def error(self, message: str) -> None:
        raise NotImplementedError


class RichPrompter(Prompter):
    """Asks questions on the terminal using ``rich.prompt``."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or default_console

    def ask(self, prompt: str, default: str, choices: list[str] | None = None) -> str:
        if not choices:
            return Prompt.ask(f"[bold]{escape(prompt)}[/bold]", console=self.console, default=default)

        self.console.print(f"[bold]{escape(prompt)}:[/bold]")
        default_index = 1
        for index, choice in enumerate(choices, start=1):
            self.console.print(f"  [bold]{index}.[/bold] {escape(choice)}")
            if choice == default:
                default_index = index
        return Prompt.ask(
            f"  > Choose from 1..{len(choices)}",
            console=self.console,
            default=str(default_index),
        )

    def confirm(self, prompt: str, default: bool) -> bool:
        hint = "Y/n" if default else "y/N"
        while True:
            raw = Prompt.ask(
                f"[bold]{escape(prompt)}[/bold] [magenta]{escape(f'[{hint}]')}[/magenta]",
                console=self.console,
                default="",
                show_default=False,
            )
            if not raw.strip():
                return default
            try:
                return interpret_bool(raw)
            except CoercionError as exc:
                self.error(str(exc))

    def error(self, message: str) -> None:
        self.console.print(f"[bold red]{escape(message)}[/bold red]")
