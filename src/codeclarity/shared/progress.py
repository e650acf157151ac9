"""Rich progress display and user input for the command line."""

from __future__ import annotations

import asyncio

from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.prompt import Prompt

console = Console()


class RequestProgress:
    """One spinner line per request, marked done or failed when it resolves."""

    def __init__(self, console: Console = console) -> None:
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=console,
            transient=False,
        )
        self._task_ids: dict[str, int] = {}

    def __enter__(self) -> "RequestProgress":
        self._progress.__enter__()
        return self

    def __exit__(self, *args: object) -> None:
        self._progress.__exit__(*args)

    def start(self, label: str) -> None:
        tid = self._progress.add_task(f"[cyan]{label}[/]", total=None)
        self._task_ids[label] = tid

    def finish(self, label: str) -> None:
        if label in self._task_ids:
            self._progress.update(
                self._task_ids[label], description=f"[green]✓ {label}[/]", completed=True,
            )

    def fail(self, label: str, error: str) -> None:
        if label in self._task_ids:
            self._progress.update(
                self._task_ids[label], description=f"[red]✗ {label}: {escape(error)}[/]", completed=True,
            )


async def ask_user(prompt: str = "You") -> str | None:
    """Read one line from the user without blocking the event loop.

    Returns None at end of input.
    """
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(None, lambda: Prompt.ask(f"[bold cyan]{prompt}[/]", console=console))
    except EOFError:
        return None
