from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

console = Console(highlight=False)
error_console = Console(stderr=True, highlight=False)


def status(message: str) -> None:
    console.print(message, style="dim", markup=False)


def show_answer(answer: str) -> None:
    console.print()
    console.print("Answer:", style="bold blue")
    console.print(answer, style="white", markup=False)
    console.print()


def show_error(exc: BaseException) -> None:
    error_console.print()
    error_console.print("Error processing question:", style="bold red")
    error_console.print(str(exc), style="red", markup=False)
    error_console.print()


def configure_logging(level: str = "WARNING") -> None:
    """Send diagnostics to stderr through rich, keeping stdout for answers."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = RichHandler(console=error_console, show_path=False)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    # Reduce noise from HTTP clients
    for name in ("httpx", "httpcore", "openai", "urllib3"):
        logging.getLogger(name).setLevel(logging.WARNING)
