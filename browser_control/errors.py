"""
Error taxonomy for Browser Control.

Operations never raise these to the caller; they are caught at the action
boundary and rendered into failure results. Only session launchers raise.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Category of a failed action."""
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    NAVIGATION = "navigation"
    LAUNCH = "launch"
    EXTERNAL_SERVICE = "external_service"
    UNEXPECTED = "unexpected"


class BrowserControlError(Exception):
    """Base exception for all Browser Control errors."""

    kind: ErrorKind = ErrorKind.UNEXPECTED


class LaunchError(BrowserControlError):
    """Raised when a browser session cannot be constructed."""

    kind = ErrorKind.LAUNCH


class NavigationError(BrowserControlError):
    """Raised by the remote-debugging session when navigation is rejected."""

    kind = ErrorKind.NAVIGATION


class DeadlineExceeded(BrowserControlError):
    """Raised when a caller-supplied deadline runs out between steps."""

    kind = ErrorKind.TIMEOUT


class ActionValidationError(BrowserControlError):
    """Raised when action parameters fail schema validation.

    Attributes:
        action: Name of the action that was requested.
        problems: Flattened ``field: message`` strings (input values omitted).
    """

    kind = ErrorKind.VALIDATION

    def __init__(self, action: str, problems: list[str]) -> None:
        self.action = action
        self.problems = problems
        super().__init__(f"Invalid parameters for {action}: " + "; ".join(problems))
