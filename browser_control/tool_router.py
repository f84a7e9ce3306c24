"""
Operation registry and router for Browser Control.

Every action the planner can request is one entry in a closed registry:
a name, a description, a parameter schema and a handler. Requests are
validated against the schema before the handler runs; results are rendered
to a single string only at the planner boundary.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Literal, Optional

from pydantic import ValidationError

from .auth import AuthFlowController
from .cdp_session import RemoteDebugSession
from .config import ControlConfig
from .errors import ActionValidationError, ErrorKind
from .session import SessionBackend, SessionManager
from .smart_extract import SmartExtractor
from .tool_schemas import (
    ActionRequest,
    AskUserRequest,
    ClickRequest,
    CloseBrowserRequest,
    CloseOverlayRequest,
    ExtractDataRequest,
    LoginRequest,
    LoginWithGoogleRequest,
    NavigateRequest,
    SmartExtractRequest,
    TypeTextRequest,
)
from .tools import BrowserTools
from .types import ActionResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Operation:
    """One action in the registry."""
    name: str
    description: str
    schema: type[ActionRequest]
    handler: Callable[["ToolRouter", Any], ActionResult]


OPERATIONS: dict[str, Operation] = {
    op.name: op
    for op in [
        Operation(
            "navigate_to_url",
            "Navigates the browser to the specified URL.",
            NavigateRequest,
            lambda router, req: router.tools.navigate(req.url),
        ),
        Operation(
            "click_element",
            "Clicks an element on the current web page specified by a selector.",
            ClickRequest,
            lambda router, req: router.tools.click(req.selector, req.description),
        ),
        Operation(
            "type_text",
            "Types text into an input field specified by a selector.",
            TypeTextRequest,
            lambda router, req: router.tools.type_text(req.selector, req.text, req.description),
        ),
        Operation(
            "extract_data",
            "Extracts structured data from the current web page using a selector.",
            ExtractDataRequest,
            lambda router, req: router.tools.extract_data(req.selector, req.attribute, req.multiple),
        ),
        Operation(
            "close_overlay",
            "Attempts to close or remove an overlay, popup, or modal dialog by "
            "clicking a close button or removing the element.",
            CloseOverlayRequest,
            lambda router, req: router.tools.close_overlay(req.selector),
        ),
        Operation(
            "close_browser",
            "Closes the browser window and ends the session.",
            CloseBrowserRequest,
            lambda router, req: router.tools.close_session(),
        ),
        Operation(
            "login_to_website",
            "Logs into a website using OAuth (Google, Facebook, GitHub) or username/password.",
            LoginRequest,
            lambda router, req: router.auth.login(req),
        ),
        Operation(
            "login_with_google",
            "Logs into a website using Google authentication with provided email "
            "(and password if needed).",
            LoginWithGoogleRequest,
            lambda router, req: router.auth.login(req.to_login_request()),
        ),
        Operation(
            "smart_extract",
            "Uses an LLM to extract structured data from the current web page "
            "based on a natural language query.",
            SmartExtractRequest,
            lambda router, req: router.extractor.smart_extract(req.query, req.selector),
        ),
        Operation(
            "ask_user",
            "Asks the user a question and returns their answer. Use this when you "
            "need clarification or additional information from the user to proceed.",
            AskUserRequest,
            lambda router, req: router.tools.ask_user(req.question),
        ),
    ]
}


def flatten_validation_error(error: ValidationError) -> list[str]:
    """Turn a pydantic error into ``field: message`` lines without input values."""
    problems = []
    for item in error.errors(include_url=False, include_input=False):
        location = ".".join(str(part) for part in item["loc"]) or "request"
        message = item["msg"].removeprefix("Value error, ")
        problems.append(f"{location}: {message}")
    return problems


class ToolRouter:
    """Validates and dispatches planner action requests.

    Provides a unified interface for executing actions regardless of which
    component implements them.
    """

    def __init__(
        self,
        tools: BrowserTools,
        auth: Optional[AuthFlowController] = None,
        extractor: Optional[SmartExtractor] = None,
        action_logger: Optional[Any] = None,
    ):
        """Initialize the tool router.

        Args:
            tools: Action layer bound to a session
            auth: Login controller (built over ``tools`` when omitted)
            extractor: Smart extractor (built over ``tools`` when omitted)
            action_logger: Optional ActionLogger recording every call
        """
        self.tools = tools
        self.auth = auth or AuthFlowController(tools)
        self.extractor = extractor or SmartExtractor(tools)
        self.action_logger = action_logger

    @property
    def session(self) -> SessionBackend:
        return self.tools.session

    @staticmethod
    def available_actions() -> list[str]:
        """Names of all registered actions."""
        return list(OPERATIONS)

    @staticmethod
    def tool_definitions() -> list[dict[str, Any]]:
        """Name, description and JSON schema of every action, for planners."""
        return [
            {
                "name": op.name,
                "description": op.description,
                "parameters": op.schema.model_json_schema(),
            }
            for op in OPERATIONS.values()
        ]

    def validate(self, action: str, args: Optional[dict[str, Any]]) -> ActionRequest:
        """Validate action parameters against the action's schema.

        Args:
            action: Action name
            args: Raw action arguments

        Returns:
            Validated request model

        Raises:
            ActionValidationError: If the action is unknown or args are invalid
        """
        operation = OPERATIONS.get(action)
        if operation is None:
            raise ActionValidationError(
                action, [f"Unknown action. Available: {', '.join(OPERATIONS)}"]
            )
        if args is None:
            args = {}
        if not isinstance(args, dict):
            raise ActionValidationError(action, ["args: must be an object"])
        try:
            return operation.schema.model_validate(args)
        except ValidationError as e:
            raise ActionValidationError(action, flatten_validation_error(e)) from e

    def execute(
        self,
        action: str,
        args: Optional[dict[str, Any]] = None,
        timeout_s: Optional[float] = None,
    ) -> ActionResult:
        """Validate and execute an action.

        Never raises; every failure comes back as a failed ActionResult.

        Args:
            action: Action name
            args: Action arguments
            timeout_s: Optional deadline for the whole action in seconds

        Returns:
            ActionResult from the handling component
        """
        try:
            request = self.validate(action, args)
        except ActionValidationError as e:
            result = ActionResult.fail(ErrorKind.VALIDATION, str(e))
        else:
            operation = OPERATIONS[action]
            logger.debug(f"Executing {action}")
            try:
                with self.tools.deadline(timeout_s):
                    result = operation.handler(self, request)
            except Exception as e:
                logger.exception(f"Unhandled error in {action}")
                result = ActionResult.from_exception(f"Unexpected error in {action}", e)

        if self.action_logger is not None:
            self.action_logger.log_action(action, args or {}, result)
        return result

    def call(
        self,
        action: str,
        args: Optional[dict[str, Any]] = None,
        timeout_s: Optional[float] = None,
    ) -> str:
        """Execute an action and render the planner-facing result string."""
        return self.execute(action, args, timeout_s).render()

    def close(self) -> None:
        """Close the underlying session."""
        self.session.close()


def create_session(
    config: ControlConfig,
    backend: Literal["playwright", "cdp"] = "playwright",
) -> SessionBackend:
    """Create the session backend selected at startup."""
    if backend == "cdp":
        return RemoteDebugSession(config)
    if backend == "playwright":
        return SessionManager(config)
    raise ValueError(f"Unknown session backend: {backend}")


def build_router(
    config: Optional[ControlConfig] = None,
    backend: Literal["playwright", "cdp"] = "playwright",
    prompt: Optional[Callable[[str], str]] = None,
    action_logger: Optional[Any] = None,
) -> ToolRouter:
    """Wire a session, the action layer and the router together.

    The browser itself is not launched until the first action needs it.
    """
    config = config or ControlConfig()
    session = create_session(config, backend)
    tools = BrowserTools(session, config=config, prompt=prompt)
    return ToolRouter(tools, action_logger=action_logger)
