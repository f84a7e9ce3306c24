"""
LangChain adapters for Browser Control.

Exposes every registered operation as a StructuredTool so LangChain and
LangGraph agents can call the router directly. Each tool returns the
rendered result string.
"""

from typing import Any, Callable, Optional

from langchain_core.tools import BaseTool, StructuredTool
from pydantic import ValidationError

from .errors import ErrorKind
from .tool_router import OPERATIONS, ToolRouter, flatten_validation_error
from .types import ActionResult


def _make_tool_func(router: ToolRouter, action: str, timeout_s: Optional[float]) -> Callable[..., str]:
    def run(**kwargs: Any) -> str:
        args = {k: v for k, v in kwargs.items() if v is not None}
        return router.call(action, args, timeout_s)

    run.__name__ = action
    return run


def _make_validation_handler(action: str) -> Callable[[ValidationError], str]:
    def handle(error: ValidationError) -> str:
        problems = "; ".join(flatten_validation_error(error))
        return ActionResult.fail(
            ErrorKind.VALIDATION, f"Invalid parameters for {action}: {problems}"
        ).render()

    return handle


def build_langchain_tools(
    router: ToolRouter,
    timeout_s: Optional[float] = None,
) -> list[BaseTool]:
    """Create one LangChain tool per registered operation.

    Args:
        router: Router that validates and executes the calls
        timeout_s: Optional per-call deadline in seconds

    Returns:
        Tools in registry order
    """
    return [
        StructuredTool.from_function(
            func=_make_tool_func(router, op.name, timeout_s),
            name=op.name,
            description=op.description,
            args_schema=op.schema,
            handle_validation_error=_make_validation_handler(op.name),
        )
        for op in OPERATIONS.values()
    ]
