"""
Browser tools for Browser Control.

Provides the action layer: every operation pulls the current page from the
session, acts on it with bounded waits, and converts any failure into an
ActionResult instead of raising.
"""

import json
import logging
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from playwright.sync_api import Page
from rich.console import Console
from rich.prompt import Prompt

from .config import ControlConfig
from .errors import DeadlineExceeded, ErrorKind
from .overlays import OverlayDismisser
from .session import SessionBackend
from .types import ActionResult, classify_error, error_message

logger = logging.getLogger(__name__)


def console_prompt(question: str) -> str:
    """Ask the operator a question on the terminal."""
    console = Console()
    console.print(f"\n[bold cyan]🤖 Agent asks:[/bold cyan] {question}")
    return Prompt.ask("Your answer", default="", show_default=False, console=console)


def describe_target(selector: str, description: Optional[str] = None) -> str:
    """Human-readable name of an element for result messages."""
    if description:
        return f'"{description}" (selector: "{selector}")'
    return f'with selector: "{selector}"'


class BrowserTools:
    """Executes browser actions via Playwright.

    Bound to a session backend rather than a page, so the page is
    (re)acquired on every call and the browser launches on first use.
    """

    def __init__(
        self,
        session: SessionBackend,
        config: Optional[ControlConfig] = None,
        overlays: Optional[OverlayDismisser] = None,
        prompt: Optional[Callable[[str], str]] = None,
    ):
        """Initialize browser tools.

        Args:
            session: Session backend that owns the page
            config: Timeouts; defaults to the session's configuration
            overlays: Overlay dismisser run after navigation
            prompt: Collaborator answering ask_user questions
        """
        self.session = session
        self.config = config or getattr(session, "config", None) or ControlConfig()
        self.overlays = overlays or OverlayDismisser()
        self.prompt = prompt or console_prompt
        self._deadline: Optional[float] = None

    # ------------------------------------------------------------------
    # Deadlines
    # ------------------------------------------------------------------

    @contextmanager
    def deadline(self, seconds: Optional[float]) -> Iterator[None]:
        """Clamp every bounded wait inside the block to a caller deadline.

        Args:
            seconds: Time budget for the whole block, None for no deadline
        """
        previous = self._deadline
        self._deadline = time.monotonic() + seconds if seconds is not None else None
        try:
            yield
        finally:
            self._deadline = previous

    def bounded(self, timeout_ms: int) -> int:
        """Clamp a step timeout to the remaining deadline.

        Raises:
            DeadlineExceeded: If the deadline has already passed
        """
        if self._deadline is None:
            return timeout_ms
        remaining = int((self._deadline - time.monotonic()) * 1000)
        if remaining <= 0:
            raise DeadlineExceeded("Deadline exceeded before the next step")
        return min(timeout_ms, remaining)

    def current_page(self) -> Page:
        """Active page of the session, launching it if needed."""
        return self.session.acquire_page()

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def navigate(self, url: str) -> ActionResult:
        """Navigate to a URL and clear overlays on success.

        Args:
            url: URL to navigate to

        Returns:
            ActionResult naming the resulting URL
        """
        try:
            page = self.current_page()
            response = page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self.bounded(self.config.navigation_timeout),
            )
            if response is None:
                return ActionResult.fail(
                    ErrorKind.NAVIGATION,
                    f"Failed to navigate to {url}. No response received.",
                )
            if not response.ok:
                return ActionResult.fail(
                    ErrorKind.NAVIGATION,
                    f"Failed to navigate to {url}. Status: {response.status} {response.status_text}",
                    data={"status": response.status},
                )

            report = self.overlays.dismiss(page)

            return ActionResult.ok(
                f"Successfully navigated to {url}. Current URL is {page.url}",
                data={
                    "url": page.url,
                    "status": response.status,
                    "overlays_dismissed": report.total,
                },
            )
        except Exception as e:
            logger.warning(f"Navigation error: {error_message(e)}")
            return ActionResult.from_exception(f"Error navigating to {url}", e)

    def click(self, selector: str, description: Optional[str] = None) -> ActionResult:
        """Click an element, falling back to pressing Enter on it.

        Args:
            selector: Element selector
            description: Optional human description of the element

        Returns:
            ActionResult stating which strategy worked
        """
        target = describe_target(selector, description)
        try:
            locator = self.current_page().locator(selector).first
            try:
                locator.click(timeout=self.bounded(self.config.click_timeout))
                return ActionResult.ok(
                    f"Successfully clicked element {target}.",
                    data={"strategy": "click"},
                )
            except DeadlineExceeded:
                raise
            except Exception as click_error:
                click_reason = error_message(click_error)
                logger.info(f"Click failed on {selector}, trying Enter key: {click_reason}")

            try:
                locator.press("Enter", timeout=self.bounded(self.config.enter_fallback_timeout))
                return ActionResult.ok(
                    f"Click failed ({click_reason}), but successfully pressed Enter on element {target}.",
                    data={"strategy": "enter"},
                )
            except DeadlineExceeded:
                raise
            except Exception as enter_error:
                logger.warning(f"Click and Enter both failed on {selector}")
                return ActionResult.fail(
                    classify_error(enter_error),
                    f"Error clicking or pressing Enter on element {target}: "
                    f"click: {click_reason}; Enter: {error_message(enter_error)}. "
                    "Check if the selector is correct and the element is visible/interactable.",
                )
        except Exception as e:
            logger.warning(f"Unexpected error clicking {selector}: {error_message(e)}")
            return ActionResult.from_exception(f"Unexpected error clicking element {target}", e)

    def type_text(
        self,
        selector: str,
        text: str,
        description: Optional[str] = None,
    ) -> ActionResult:
        """Replace the content of an input field.

        The typed text is never echoed back; it may be a credential.

        Args:
            selector: Element selector
            text: Text to fill
            description: Optional human description of the field

        Returns:
            ActionResult
        """
        target = describe_target(selector, description)
        try:
            locator = self.current_page().locator(selector).first
            locator.fill(text, timeout=self.bounded(self.config.action_timeout))
            return ActionResult.ok(
                f"Successfully typed text into element {target}.",
                data={"chars_typed": len(text)},
            )
        except Exception as e:
            logger.warning(f"Typing error on {selector}: {error_message(e)}")
            return ActionResult.fail(
                classify_error(e),
                f"Error typing into element {target}: {error_message(e)}. "
                "Check if the selector is correct and the element is visible/editable.",
            )

    def extract_data(
        self,
        selector: str,
        attribute: Optional[str] = None,
        multiple: bool = False,
    ) -> ActionResult:
        """Extract text or an attribute from the page.

        Args:
            selector: Element selector
            attribute: Attribute to read; trimmed text content when omitted
            multiple: Extract every match as a JSON array instead of the first

        Returns:
            ActionResult; in multiple mode the message is a JSON array with
            one entry (string or null) per match
        """
        try:
            locator = self.current_page().locator(selector)

            if multiple:
                handles = locator.element_handles()
                if not handles:
                    return ActionResult.fail(
                        ErrorKind.NOT_FOUND,
                        f'No elements found matching selector "{selector}".',
                    )
                values = [self._read(handle, attribute) for handle in handles]
                return ActionResult.ok(json.dumps(values, indent=2), data=values)

            first = locator.first
            if first.count() == 0:
                return ActionResult.fail(
                    ErrorKind.NOT_FOUND,
                    f'No element found matching selector "{selector}".',
                )
            handle = first.element_handle(timeout=self.bounded(self.config.action_timeout))
            value = self._read(handle, attribute) if handle is not None else None
            if value is None:
                return ActionResult.ok(
                    f'No data extracted from selector "{selector}".',
                    data={"value": None},
                )
            return ActionResult.ok(value, data={"value": value})
        except Exception as e:
            logger.warning(f"Extract data error: {error_message(e)}")
            return ActionResult.from_exception("Error extracting data", e)

    @staticmethod
    def _read(handle, attribute: Optional[str]) -> Optional[str]:
        raw = handle.get_attribute(attribute) if attribute else handle.text_content()
        return raw.strip() if raw is not None else None

    def close_overlay(self, selector: Optional[str] = None) -> ActionResult:
        """Close an overlay by clicking it, or remove it from the DOM.

        Without a selector the heuristic overlay scan runs instead.

        Args:
            selector: Overlay or close-button selector

        Returns:
            ActionResult
        """
        try:
            page = self.current_page()

            if selector is None:
                report = self.overlays.dismiss(page)
                if not report.total:
                    return ActionResult.ok("No common overlays found on the page.", data={"dismissed": 0})
                return ActionResult.ok(
                    f"Dismissed {report.total} overlay(s): {report.clicked} closed, {report.removed} removed.",
                    data={"dismissed": report.total},
                )

            overlay = page.locator(selector)
            if overlay.count() == 0:
                return ActionResult.fail(
                    ErrorKind.NOT_FOUND,
                    f'No overlay found matching selector "{selector}".',
                )

            try:
                overlay.first.click(timeout=self.bounded(self.config.overlay_click_timeout))
                return ActionResult.ok(f'Clicked overlay or close button matching selector "{selector}".')
            except DeadlineExceeded:
                raise
            except Exception as click_error:
                logger.debug(f"Overlay click failed, removing instead: {error_message(click_error)}")

            if self.overlays.remove_first(page, selector):
                return ActionResult.ok(f'Removed overlay element matching selector "{selector}" from DOM.')
            return ActionResult.fail(
                ErrorKind.NOT_FOUND,
                f'Overlay matching selector "{selector}" disappeared before it could be removed.',
            )
        except Exception as e:
            logger.warning(f"Close overlay error: {error_message(e)}")
            return ActionResult.from_exception("Error closing overlay", e)

    def close_session(self) -> ActionResult:
        """Close the browser session.

        Returns:
            ActionResult
        """
        try:
            self.session.close()
            return ActionResult.ok("Browser closed successfully.")
        except Exception as e:
            logger.warning(f"Error closing browser: {error_message(e)}")
            return ActionResult.from_exception("Error closing browser", e)

    def ask_user(self, question: str) -> ActionResult:
        """Ask the operator a question and return the answer.

        Args:
            question: Question to ask

        Returns:
            ActionResult carrying the answer
        """
        try:
            answer = (self.prompt(question) or "").strip()
        except Exception as e:
            return ActionResult.from_exception("Error asking the user", e)
        if not answer:
            return ActionResult.ok("User provided no answer.", data={"answer": ""})
        return ActionResult.ok(answer, data={"answer": answer})
