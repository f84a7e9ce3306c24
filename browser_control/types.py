"""
Type definitions for Browser Control.

Provides the tagged result returned by every action. Callers inside the
package inspect ``success`` and ``error_kind``; the planner only ever sees
``render()``.
"""

from dataclasses import dataclass
from typing import Any, Optional

from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from .errors import BrowserControlError, ErrorKind


@dataclass
class ActionResult:
    """Result of an action execution.

    Attributes:
        success: Whether the intent of the action succeeded
        message: Natural-language observation for the planner
        error_kind: Failure category, None on success
        data: Optional structured payload (never shown to the planner)
    """
    success: bool
    message: str
    error_kind: Optional[ErrorKind] = None
    data: Optional[Any] = None

    @classmethod
    def ok(cls, message: str, data: Optional[Any] = None) -> "ActionResult":
        """Build a success result."""
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(
        cls,
        kind: ErrorKind,
        message: str,
        data: Optional[Any] = None,
    ) -> "ActionResult":
        """Build a failure result."""
        return cls(success=False, message=message, error_kind=kind, data=data)

    @classmethod
    def from_exception(cls, prefix: str, error: BaseException) -> "ActionResult":
        """Build a failure result from an exception caught at an action boundary.

        Args:
            prefix: Leading text describing what was attempted
            error: The caught exception
        """
        return cls.fail(classify_error(error), f"{prefix}: {error_message(error)}")

    def render(self) -> str:
        """Render the result as the single string the planner consumes."""
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {
            "success": self.success,
            "message": self.message,
        }
        if self.error_kind is not None:
            result["error_kind"] = self.error_kind.value
        if self.data is not None:
            result["data"] = self.data
        return result


def classify_error(error: BaseException) -> ErrorKind:
    """Map an exception to its failure category."""
    if isinstance(error, BrowserControlError):
        return error.kind
    if isinstance(error, (PlaywrightTimeoutError, TimeoutError)):
        return ErrorKind.TIMEOUT
    return ErrorKind.UNEXPECTED


def error_message(error: BaseException) -> str:
    """First line of an exception message.

    Playwright appends a multi-line call log to its errors; the planner only
    needs the headline.
    """
    text = str(error).strip()
    if not text:
        return type(error).__name__
    return text.splitlines()[0]
