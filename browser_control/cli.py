"""
CLI for Browser Control.

Provides the command-line interface using argparse.
"""

import argparse
import json
import logging
import sys
from typing import Any, Optional, TextIO

from rich.console import Console
from rich.table import Table

from . import __version__
from .config import DEFAULTS, ControlConfig
from .logger import ActionLogger, configure_logging
from .tool_router import OPERATIONS, ToolRouter, build_router

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="browser-control",
        description="Browser Control - resilient browser actions for an external planner.",
        epilog="""
Examples:
  # Open a page and print the result
  browser-control act navigate_to_url --args '{"url": "example.com"}'

  # Drive a session from another process over JSON lines
  echo '{"action": "navigate_to_url", "args": {"url": "example.com"}}' | browser-control serve

  # Use a Chrome binary over the remote-debugging protocol
  browser-control --backend cdp serve

  # List available actions with their parameter schemas
  browser-control tools --json
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Browser Control {__version__}",
    )

    parser.add_argument(
        "--backend",
        choices=["playwright", "cdp"],
        default="playwright",
        help="Session backend (default: playwright)",
    )

    parser.add_argument(
        "--browser",
        type=str,
        default=None,
        help=f"Browser engine: chromium, firefox or webkit (default: {DEFAULTS['browser']})",
    )

    parser.add_argument(
        "--chrome-binary",
        type=str,
        default=None,
        help="Chrome executable for the cdp backend (default: PATH lookup)",
    )

    parser.add_argument(
        "--cdp-port",
        type=int,
        default=None,
        help=f"Remote-debugging port for the cdp backend (default: {DEFAULTS['cdp_port']})",
    )

    parser.add_argument(
        "--model",
        type=str,
        default=None,
        help=f"Extraction model name (default: {DEFAULTS['model']})",
    )

    parser.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help="Directory for action logs (default: ~/.browser_control/runs)",
    )

    parser.add_argument(
        "--no-log",
        action="store_true",
        default=False,
        help="Do not write an action log",
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Deadline for each action in seconds",
    )

    parser.add_argument(
        "-d", "--debug",
        action="store_true",
        default=False,
        help="Enable debug mode: verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Act command
    act_parser = subparsers.add_parser(
        "act",
        help="Run a single action and print its result",
    )

    act_parser.add_argument(
        "operation",
        type=str,
        choices=list(OPERATIONS),
        help="Action to run",
    )

    act_parser.add_argument(
        "--args",
        type=str,
        default="{}",
        help="Action arguments as a JSON object",
    )

    # Serve command
    subparsers.add_parser(
        "serve",
        help="Read JSON-lines action requests from stdin and answer on stdout",
    )

    # Tools command
    tools_parser = subparsers.add_parser(
        "tools",
        help="List available actions",
    )

    tools_parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Print full tool definitions with JSON schemas",
    )

    return parser


def _build_config(args: argparse.Namespace) -> ControlConfig:
    return ControlConfig.from_cli_args(
        browser=args.browser,
        chrome_binary=args.chrome_binary,
        cdp_port=args.cdp_port,
        model=args.model,
        debug=args.debug,
    )


def _build_router(args: argparse.Namespace, prompt=None) -> ToolRouter:
    config = _build_config(args)
    action_logger = None
    if not args.no_log:
        action_logger = ActionLogger(log_dir=args.log_dir, enable_console=config.debug)
    return build_router(config, backend=args.backend, prompt=prompt, action_logger=action_logger)


def act_command(args: argparse.Namespace, console: Console) -> int:
    """Execute the act command.

    Args:
        args: Parsed command line arguments
        console: Rich console for output

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    try:
        action_args = json.loads(args.args)
    except json.JSONDecodeError as e:
        console.print(f"[bold red]Invalid --args JSON: {e}[/bold red]")
        return 2
    if not isinstance(action_args, dict):
        console.print("[bold red]--args must be a JSON object[/bold red]")
        return 2

    router = _build_router(args)
    try:
        result = router.execute(args.operation, action_args, args.timeout)
        print(result.render())
        return 0 if result.success else 1
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        return 130
    finally:
        router.close()


def _no_operator(question: str) -> str:
    logger.warning(f"No operator available to answer: {question}")
    return ""


def _handle_request(router: ToolRouter, line: str, timeout: Optional[float]) -> dict[str, Any]:
    try:
        request = json.loads(line)
    except json.JSONDecodeError as e:
        return {"action": None, "result": f"Invalid request: {e}"}
    if not isinstance(request, dict) or not isinstance(request.get("action"), str):
        return {"action": None, "result": 'Invalid request: expected {"action": ..., "args": {...}}'}

    action = request["action"]
    return {"action": action, "result": router.call(action, request.get("args") or {}, timeout)}


def serve_command(
    args: argparse.Namespace,
    console: Console,
    stdin: TextIO = sys.stdin,
    stdout: TextIO = sys.stdout,
) -> int:
    """Execute the serve command.

    One JSON request per input line, one JSON response per output line. The
    session stays open across requests and closes on end of input.

    Args:
        args: Parsed command line arguments
        console: Rich console for diagnostics (stderr)
        stdin: Request stream
        stdout: Response stream

    Returns:
        Exit code
    """
    # stdin carries requests, so ask_user cannot read the operator from it
    router = _build_router(args, prompt=_no_operator)
    try:
        for line in stdin:
            line = line.strip()
            if not line:
                continue
            response = _handle_request(router, line, args.timeout)
            stdout.write(json.dumps(response) + "\n")
            stdout.flush()
        return 0
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        return 130
    finally:
        router.close()


def tools_command(args: argparse.Namespace, console: Console) -> int:
    """Execute the tools command.

    Returns:
        Exit code
    """
    if args.json:
        print(json.dumps(ToolRouter.tool_definitions(), indent=2))
        return 0

    table = Table(title="Browser Control Actions")
    table.add_column("Action", style="cyan")
    table.add_column("Description")
    for op in OPERATIONS.values():
        table.add_row(op.name, op.description)
    console.print(table)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point.

    Args:
        argv: Command line arguments (uses sys.argv if None)

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    configure_logging(args.debug)
    console = Console(stderr=True)

    try:
        if args.command == "act":
            return act_command(args, console)

        if args.command == "serve":
            return serve_command(args, console)

        if args.command == "tools":
            return tools_command(args, Console())
    except Exception as e:
        console.print(f"[bold red]Fatal error: {e}[/bold red]")
        return 1

    # Unknown command
    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
