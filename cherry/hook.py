from __future__ import annotations

from abc import ABC
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape


class Hook(ABC):
    """Base Hook with no-op defaults.

    Hooks observe action and step execution and receive the progress messages
    an action emits. The action engine treats every callback as best-effort:
    an exception raised by a hook is logged and never breaks the pipeline.
    """

    def on_action_start(self, action: Any, verb: str) -> None:  # noqa: D401
        return None

    def on_action_end(self, action: Any, verb: str, error: Optional[BaseException] = None) -> None:  # noqa: D401
        return None

    def on_step_start(self, step: Any, verb: str) -> None:  # noqa: D401
        return None

    def on_step_end(self, step: Any, verb: str) -> None:  # noqa: D401
        return None

    def on_error(self, step: Any, verb: str, error: BaseException) -> None:  # noqa: D401
        return None

    def on_message(self, level: str, message: str) -> None:  # noqa: D401
        return None


class ConsoleHook(Hook):
    """Render progress messages on a rich console.

    Config:
    - console: rich Console (default: a new stderr console)
    - verbose: also print every step start/end
    """

    STYLES = {
        "info": "cyan",
        "output": "default",
        "warn": "yellow",
        "error": "bold red",
    }

    def __init__(self, console: Optional[Console] = None, verbose: bool = False) -> None:
        self.console = console or Console(stderr=True)
        self.verbose = verbose

    def on_step_start(self, step: Any, verb: str) -> None:
        if self.verbose:
            self.console.print(f"{verb} {getattr(step, 'name', step)} ...", style="dim", markup=False)

    def on_error(self, step: Any, verb: str, error: BaseException) -> None:
        self.console.print(f"[bold red]✗ {getattr(step, 'name', step)} failed:[/bold red] {escape(str(error))}", highlight=False)

    def on_message(self, level: str, message: str) -> None:
        style = self.STYLES.get(level, "default")
        self.console.print(message, style=style, markup=False, highlight=False)
