"""Interfaces to the UI layer and their console implementations."""

import logging
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol, Sequence

import click
from rich.console import Console

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    """Notification severity."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class ChoicePrompt(Protocol):
    """Modal choice: returns the selected label, or None when dismissed."""

    def choose(self, message: str, options: Sequence[str]) -> Optional[str]:
        ...


class Notifier(Protocol):
    """Fire-and-forget notification sink."""

    def notify(self, message: str, severity: Severity = Severity.INFO) -> None:
        ...


class FileDialogs(Protocol):
    """File pickers: return the chosen path, or None when cancelled."""

    def open_file(self, title: str) -> Optional[Path]:
        ...

    def save_file(self, title: str, default_name: str) -> Optional[Path]:
        ...


class InputCollector(Protocol):
    """Free text input: returns the answer, or None when cancelled."""

    def ask(self, prompt: str, default: Optional[str] = None, secret: bool = False) -> Optional[str]:
        ...


class ConsoleCollaborators:
    """All four UI collaborators backed by click prompts and rich output."""

    _STYLES = {
        Severity.INFO: ("✅", "green"),
        Severity.WARNING: ("⚠️", "yellow"),
        Severity.ERROR: ("❌", "red bold"),
    }

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def choose(self, message: str, options: Sequence[str]) -> Optional[str]:
        self.console.print(f"\n{message}", style="bold")
        for number, option in enumerate(options, start=1):
            self.console.print(f"  {number}. {option}")
        self.console.print("  0. Cancel", style="dim")

        try:
            selected = click.prompt("Choice", type=click.IntRange(0, len(options)), default=0)
        except click.Abort:
            return None
        return options[selected - 1] if selected else None

    def notify(self, message: str, severity: Severity = Severity.INFO) -> None:
        icon, style = self._STYLES[Severity(severity)]
        self.console.print(f"{icon} {message}", style=style)

    def open_file(self, title: str) -> Optional[Path]:
        answer = self.ask(title)
        return Path(answer).expanduser() if answer else None

    def save_file(self, title: str, default_name: str) -> Optional[Path]:
        answer = self.ask(title, default=default_name)
        return Path(answer).expanduser() if answer else None

    def ask(self, prompt: str, default: Optional[str] = None, secret: bool = False) -> Optional[str]:
        try:
            answer = click.prompt(
                prompt,
                default=default if default is not None else "",
                hide_input=secret,
                show_default=bool(default) and not secret,
            )
        except click.Abort:
            return None
        answer = str(answer).strip()
        return answer or None


class UnattendedCollaborators:
    """Non-interactive collaborators for background runs.

    Every question is dismissed and notifications go to the log, so an
    unattended sync never overwrites local data on its own.
    """

    def choose(self, message: str, options: Sequence[str]) -> Optional[str]:
        logger.info(f"No interactive session, dismissing choice: {message}")
        return None

    def notify(self, message: str, severity: Severity = Severity.INFO) -> None:
        level = {
            Severity.INFO: logging.INFO,
            Severity.WARNING: logging.WARNING,
            Severity.ERROR: logging.ERROR,
        }[Severity(severity)]
        logger.log(level, message)

    def open_file(self, title: str) -> Optional[Path]:
        return None

    def save_file(self, title: str, default_name: str) -> Optional[Path]:
        return None

    def ask(self, prompt: str, default: Optional[str] = None, secret: bool = False) -> Optional[str]:
        return default
