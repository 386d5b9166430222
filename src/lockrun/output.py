"""Diagnostic output for lockrun CLI."""

from dataclasses import dataclass

from rich.console import Console
from rich.markup import escape

from .errors import LockrunError


@dataclass
class OutputContext:
    """Context for diagnostics written to stderr."""

    console: Console
    prog: str = "lockrun"

    def warn(self, message: str) -> None:
        """Print a non-fatal diagnostic."""
        self.console.print(f"[yellow]{self.prog}: {escape(message)}[/yellow]")

    def error(self, message: str) -> None:
        """Print a fatal diagnostic."""
        self.console.print(f"[red]{self.prog}: {escape(message)}[/red]")

    def report(self, exc: LockrunError) -> None:
        """Print the diagnostic for a lockrun error."""
        self.error(exc.describe())


# Global output context (set by cli.py)
_ctx: OutputContext | None = None


def get_output_context() -> OutputContext:
    """Get the current output context.

    Returns a default stderr OutputContext if not yet initialized by CLI.
    """
    if _ctx is None:
        return OutputContext(Console(stderr=True, highlight=False))
    return _ctx


def set_output_context(ctx: OutputContext) -> None:
    """Set the global output context. Called by the CLI command."""
    global _ctx
    _ctx = ctx
