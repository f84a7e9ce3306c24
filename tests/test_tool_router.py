"""
Tests for the operation registry and router.
"""

import pytest
from unittest.mock import MagicMock, patch

from browser_control.cdp_session import RemoteDebugSession
from browser_control.errors import ActionValidationError, ErrorKind
from browser_control.session import SessionManager
from browser_control.tool_router import OPERATIONS, ToolRouter, build_router, create_session
from browser_control.tool_schemas import LoginRequest
from browser_control.types import ActionResult


EXPECTED_ACTIONS = [
    "navigate_to_url",
    "click_element",
    "type_text",
    "extract_data",
    "close_overlay",
    "close_browser",
    "login_to_website",
    "login_with_google",
    "smart_extract",
    "ask_user",
]


@pytest.fixture
def mock_tools():
    tools = MagicMock()
    tools.navigate.return_value = ActionResult.ok("Successfully navigated")
    tools.click.return_value = ActionResult.ok("Clicked")
    return tools


@pytest.fixture
def router(mock_tools):
    return ToolRouter(mock_tools, auth=MagicMock(), extractor=MagicMock())


class TestRegistry:
    """Tests for the closed operation registry."""

    def test_all_actions_registered(self):
        assert list(OPERATIONS) == EXPECTED_ACTIONS
        assert ToolRouter.available_actions() == EXPECTED_ACTIONS

    def test_tool_definitions_carry_schemas(self):
        definitions = ToolRouter.tool_definitions()

        assert [d["name"] for d in definitions] == EXPECTED_ACTIONS
        navigate = definitions[0]
        assert navigate["description"]
        assert navigate["parameters"]["required"] == ["url"]


class TestValidation:
    """Tests for validation before dispatch."""

    def test_unknown_action(self, router, mock_tools):
        result = router.execute("hover", {"selector": "#x"})

        assert result.success is False
        assert result.error_kind == ErrorKind.VALIDATION
        assert "Unknown action" in result.message
        mock_tools.assert_not_called()

    def test_invalid_params_no_side_effect(self, router, mock_tools):
        result = router.execute("navigate_to_url", {"url": ""})

        assert result.success is False
        assert result.error_kind == ErrorKind.VALIDATION
        assert result.message == "Invalid parameters for navigate_to_url: url: URL cannot be empty"
        mock_tools.navigate.assert_not_called()

    def test_missing_required_param(self, router):
        with pytest.raises(ActionValidationError) as exc_info:
            router.validate("click_element", {})
        assert exc_info.value.problems == ["selector: Field required"]

    def test_non_object_args(self, router):
        result = router.execute("click_element", ["#x"])

        assert result.error_kind == ErrorKind.VALIDATION

    def test_login_error_does_not_echo_password(self, router):
        result = router.execute("login_to_website", {
            "login_page_url": "https://example.com/login",
            "login_method": "username_password",
            "email_or_username": "alice",
            "password": "hunter2",
        })

        assert result.error_kind == ErrorKind.VALIDATION
        assert "Missing selectors for username/password login" in result.message
        assert "hunter2" not in result.message
        router.auth.login.assert_not_called()


class TestExecution:
    """Tests for dispatch to the owning component."""

    def test_navigate_dispatch(self, router, mock_tools):
        result = router.execute("navigate_to_url", {"url": "example.com"})

        assert result.success is True
        mock_tools.navigate.assert_called_once_with("https://example.com")

    def test_extract_dispatch(self, router, mock_tools):
        router.execute("extract_data", {"selector": "a.price", "attribute": "href", "multiple": True})

        mock_tools.extract_data.assert_called_once_with("a.price", "href", True)

    def test_login_with_google_becomes_federated_login(self, router):
        router.execute("login_with_google", {
            "email": "user@example.com",
            "login_page_url": "https://example.com/login",
            "google_button_selector": "#google",
        })

        request = router.auth.login.call_args[0][0]
        assert isinstance(request, LoginRequest)
        assert request.login_method == "google"
        assert request.oauth_button_selector == "#google"

    def test_smart_extract_dispatch(self, router):
        router.execute("smart_extract", {"query": "all prices", "selector": "#results"})

        router.extractor.smart_extract.assert_called_once_with("all prices", "#results")

    def test_deadline_applied(self, router, mock_tools):
        router.execute("click_element", {"selector": "#go"}, timeout_s=5)

        mock_tools.deadline.assert_called_once_with(5)

    def test_handler_exception_becomes_failure(self, router, mock_tools):
        mock_tools.click.side_effect = RuntimeError("boom")

        result = router.execute("click_element", {"selector": "#go"})

        assert result.success is False
        assert result.error_kind == ErrorKind.UNEXPECTED
        assert result.message == "Unexpected error in click_element: boom"

    def test_call_renders_string(self, router):
        assert router.call("navigate_to_url", {"url": "https://example.com"}) == "Successfully navigated"

    def test_action_logger_records_every_call(self, mock_tools):
        action_logger = MagicMock()
        router = ToolRouter(mock_tools, auth=MagicMock(), extractor=MagicMock(), action_logger=action_logger)

        router.execute("navigate_to_url", {"url": "https://example.com"})
        router.execute("bogus", None)

        assert action_logger.log_action.call_count == 2
        action, args, result = action_logger.log_action.call_args[0]
        assert action == "bogus"
        assert args == {}
        assert result.error_kind == ErrorKind.VALIDATION


class TestFactory:
    """Tests for session and router construction."""

    def test_create_playwright_session(self, config):
        assert isinstance(create_session(config, "playwright"), SessionManager)

    def test_create_cdp_session(self, config):
        assert isinstance(create_session(config, "cdp"), RemoteDebugSession)

    def test_unknown_backend(self, config):
        with pytest.raises(ValueError, match="Unknown session backend"):
            create_session(config, "selenium")

    def test_build_router_does_not_launch(self, config):
        with patch("browser_control.session.sync_playwright") as mock_sync:
            router = build_router(config)

        mock_sync.assert_not_called()
        assert router.session.is_open() is False
        assert router.tools.config is config
