"""
Login orchestration for Browser Control.

Handles plain credential forms and federated (OAuth-style) logins whose
provider opens a popup window. Login is not transactional: a failed step
leaves the main page wherever that step left it.
"""

import logging
from typing import Optional

from playwright.sync_api import Page

from .tool_schemas import LoginRequest
from .tools import BrowserTools
from .types import ActionResult, error_message

logger = logging.getLogger(__name__)


class AuthFlowController:
    """Runs one login attempt per call, terminal on first success or failure.

    Credentials stay in memory; results and logs name the method and
    identity only.
    """

    def __init__(self, tools: BrowserTools):
        """Initialize the controller.

        Args:
            tools: Action layer providing the session, timeouts and deadline
        """
        self.tools = tools

    @property
    def config(self):
        return self.tools.config

    def login(self, request: LoginRequest) -> ActionResult:
        """Log in as described by a validated request.

        Args:
            request: Login parameters (selectors already checked per method)

        Returns:
            ActionResult naming the method and identity used
        """
        method = request.login_method
        identity = request.email_or_username
        logger.info(f"Starting {method} login for {identity}")

        try:
            page = self.tools.current_page()
            page.goto(
                request.login_page_url,
                wait_until="domcontentloaded",
                timeout=self.tools.bounded(self.config.navigation_timeout),
            )

            if request.is_federated:
                self._federated_login(page, request)
                return ActionResult.ok(f"Successfully logged in with {method} account {identity}")

            self._credentials_login(page, request)
            return ActionResult.ok(f"Successfully logged in with username/password for {identity}")
        except Exception as e:
            logger.warning(f"{method} login for {identity} failed: {error_message(e)}")
            return ActionResult.from_exception(f"Error during {method} login for {identity}", e)

    def _credentials_login(self, page: Page, request: LoginRequest) -> None:
        bounded = self.tools.bounded
        action_timeout = self.config.action_timeout

        page.locator(request.username_selector).first.fill(
            request.email_or_username, timeout=bounded(action_timeout)
        )
        if request.password is not None:
            page.locator(request.password_selector).first.fill(
                request.password.get_secret_value(), timeout=bounded(action_timeout)
            )
        page.locator(request.submit_selector).first.click(timeout=bounded(action_timeout))
        page.wait_for_load_state("load", timeout=bounded(self.config.login_load_timeout))

    def _federated_login(self, page: Page, request: LoginRequest) -> None:
        bounded = self.tools.bounded

        # The popup's timing is provider-controlled: wait on the page event
        with page.context.expect_page(timeout=bounded(self.config.popup_open_timeout)) as popup_info:
            page.locator(request.oauth_button_selector).first.click(
                timeout=bounded(self.config.action_timeout)
            )
        popup = popup_info.value
        logger.debug(f"Login popup opened: {popup.url}")

        try:
            self._drive_popup(popup, request)
        finally:
            self._close_popup(popup)

    def _drive_popup(self, popup: Page, request: LoginRequest) -> None:
        bounded = self.tools.bounded
        action_timeout = self.config.action_timeout

        popup.wait_for_load_state("domcontentloaded", timeout=bounded(self.config.navigation_timeout))

        popup.locator(request.identity_selector).first.fill(
            request.email_or_username, timeout=bounded(action_timeout)
        )
        popup.locator(request.next_selector).first.click(timeout=bounded(action_timeout))

        if request.password is not None:
            popup.wait_for_selector(
                request.password_field_selector,
                timeout=bounded(self.config.password_field_timeout),
            )
            popup.locator(request.password_field_selector).first.fill(
                request.password.get_secret_value(), timeout=bounded(action_timeout)
            )
            popup.locator(request.next_selector).first.click(timeout=bounded(action_timeout))

        # Full load signals the redirect back to the site
        popup.wait_for_load_state("load", timeout=bounded(self.config.popup_load_timeout))

    @staticmethod
    def _close_popup(popup: Optional[Page]) -> None:
        if popup is None:
            return
        try:
            if not popup.is_closed():
                popup.close()
        except Exception as e:
            logger.debug(f"Popup close failed: {e}")

