"""
Logging for Browser Control.

Handles JSONL action logging, secret redaction and rich console output.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from pydantic import SecretStr
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from .config import get_runs_dir
from .types import ActionResult
from .utils import is_password_field, truncate_text

REDACTED = "[REDACTED]"

# Argument names whose values are always credentials
_SECRET_KEYS = {"password", "secret", "token", "api_key", "apikey"}


def configure_logging(debug: bool = False) -> None:
    """Route library logging through rich, verbose in debug mode."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=debug, show_path=debug)],
        force=True,
    )


def redact_args(action: str, args: dict[str, Any]) -> dict[str, Any]:
    """Remove credentials from action arguments before they are recorded.

    Args:
        action: Action name
        args: Raw action arguments

    Returns:
        Copy of the arguments with secret values replaced
    """
    sanitized: dict[str, Any] = {}
    for key, value in args.items():
        if isinstance(value, SecretStr) or key.lower() in _SECRET_KEYS:
            sanitized[key] = REDACTED
        else:
            sanitized[key] = value

    # Text typed into a password field is a credential too
    if action == "type_text" and "text" in sanitized:
        if is_password_field(str(args.get("selector", "")), str(args.get("description") or "")):
            sanitized["text"] = REDACTED

    return sanitized


class ActionLogger:
    """Records every executed action for one run."""

    def __init__(
        self,
        log_dir: Optional[Path] = None,
        enable_console: bool = True,
        max_message_chars: int = 500,
    ):
        """Initialize the action logger.

        Args:
            log_dir: Parent directory for run folders (defaults to ~/.browser_control/runs)
            enable_console: Whether to print results to the console
            max_message_chars: Console truncation for long result messages
        """
        self.console = Console(stderr=True) if enable_console else None
        self.max_message_chars = max_message_chars

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.run_dir = Path(log_dir or get_runs_dir()) / timestamp
        self.run_dir.mkdir(parents=True, exist_ok=True)

        self.actions_file = self.run_dir / "actions.jsonl"
        self.actions_file.touch()

        self.action_count = 0
        self.failure_count = 0

    @property
    def run_path(self) -> Path:
        """Get the path to the run directory."""
        return self.run_dir

    def log_action(self, action: str, args: dict[str, Any], result: ActionResult) -> None:
        """Append one action to the JSONL log and echo it to the console.

        Args:
            action: Action name
            args: Raw action arguments (redacted here)
            result: Outcome of the action
        """
        self.action_count += 1
        if not result.success:
            self.failure_count += 1

        record = {
            "step": self.action_count,
            "timestamp": datetime.now().isoformat(),
            "action": action,
            "args": redact_args(action, args),
            "success": result.success,
            "error_kind": result.error_kind.value if result.error_kind else None,
            "message": result.message,
        }

        with open(self.actions_file, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, default=str) + "\n")

        self.print_action(action, record["args"])
        self.print_result(result)

    def print_action(self, action: str, args: dict[str, Any]) -> None:
        if not self.console:
            return

        step_text = Text()
        step_text.append(f"Step {self.action_count}: ", style="bold")
        step_text.append(action, style="bold cyan")
        args_str = ", ".join(f"{k}={v!r}" for k, v in args.items())
        if args_str:
            step_text.append(f"({truncate_text(args_str, 200)})", style="dim")
        self.console.print(step_text)

    def print_result(self, result: ActionResult) -> None:
        if not self.console:
            return

        message = escape(truncate_text(result.message, self.max_message_chars))
        if result.success:
            self.console.print(f"  [green]✓[/green] {message}", highlight=False)
        else:
            kind = result.error_kind.value if result.error_kind else "error"
            self.console.print(f"  [red]✗[/red] [dim]{kind}[/dim] {message}", highlight=False)

    def print_summary(self) -> None:
        """Print the run summary to console."""
        if not self.console:
            return

        table = Table(title="Run Summary", show_header=False)
        table.add_column("Property", style="dim")
        table.add_column("Value")

        table.add_row("Actions Executed", str(self.action_count))
        table.add_row("Failures", str(self.failure_count))
        table.add_row("Actions Log", str(self.actions_file))

        self.console.print()
        self.console.print(table)
