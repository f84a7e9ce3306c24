"""
Tests for the remote-debugging session and its protocol client.
"""

import json

import pytest
import websocket
from unittest.mock import MagicMock, call, patch

from browser_control.cdp_session import (
    CDPClient,
    CDPError,
    RemoteDebugSession,
    resolve_chrome_binary,
)
from browser_control.errors import LaunchError, NavigationError


def _ws(*messages):
    ws = MagicMock()
    ws.connected = True
    ws.recv.side_effect = [json.dumps(m) for m in messages]
    return ws


class TestCDPClient:
    """Tests for command/response matching and event buffering."""

    def test_send_matches_response_by_id(self):
        ws = _ws({"id": 1, "result": {"frameId": "F1"}})
        client = CDPClient(ws, "ws://localhost/devtools/page/T")

        result = client.send("Page.navigate", {"url": "https://example.com"})

        assert result == {"frameId": "F1"}
        sent = json.loads(ws.send.call_args[0][0])
        assert sent == {"id": 1, "method": "Page.navigate", "params": {"url": "https://example.com"}}

    def test_events_during_send_are_buffered(self):
        ws = _ws(
            {"method": "Page.loadEventFired", "params": {"timestamp": 1.5}},
            {"id": 1, "result": {}},
        )
        client = CDPClient(ws, "ws://test")

        client.send("Page.enable")
        params = client.wait_for_event("Page.loadEventFired", timeout=1)

        assert params == {"timestamp": 1.5}
        assert ws.recv.call_count == 2

    def test_clear_events_drops_stale_events(self):
        ws = _ws(
            {"method": "Page.loadEventFired", "params": {"timestamp": 1.0}},
            {"id": 1, "result": {}},
            {"method": "Page.loadEventFired", "params": {"timestamp": 2.0}},
        )
        client = CDPClient(ws, "ws://test")
        client.send("Page.enable")

        client.clear_events("Page.loadEventFired")

        assert client.wait_for_event("Page.loadEventFired", timeout=1) == {"timestamp": 2.0}

    def test_error_response_raises(self):
        ws = _ws({"id": 1, "error": {"code": -32000, "message": "No target with given id"}})
        client = CDPClient(ws, "ws://test")

        with pytest.raises(CDPError, match="No target with given id"):
            client.send("Target.closeTarget", {"targetId": "X"})

    def test_receive_timeout_raises_timeout_error(self):
        ws = MagicMock()
        ws.recv.side_effect = websocket.WebSocketTimeoutException("timed out")
        client = CDPClient(ws, "ws://test")

        with pytest.raises(TimeoutError, match="Page.loadEventFired"):
            client.wait_for_event("Page.loadEventFired", timeout=0.5)

    def test_close_is_idempotent(self):
        ws = MagicMock()
        client = CDPClient(ws, "ws://test")

        client.close()
        client.close()

        ws.close.assert_called_once()
        assert client.connected is False


class TestResolveChromeBinary:
    """Tests for executable lookup."""

    def test_configured_path(self):
        with patch("browser_control.cdp_session.os.path.isfile", return_value=True):
            assert resolve_chrome_binary("/opt/chrome/chrome") == "/opt/chrome/chrome"

    def test_path_lookup_order(self):
        found = {"chromium": "/usr/bin/chromium", "chrome": "/usr/bin/chrome"}
        with patch("browser_control.cdp_session.shutil.which", side_effect=found.get):
            assert resolve_chrome_binary() == "/usr/bin/chromium"

    def test_nothing_found(self):
        with patch("browser_control.cdp_session.shutil.which", return_value=None), \
                patch("browser_control.cdp_session.os.path.isfile", return_value=False):
            with pytest.raises(LaunchError, match="No Chrome or Chromium executable"):
                resolve_chrome_binary()

    def test_configured_missing(self):
        with patch("browser_control.cdp_session.shutil.which", return_value=None), \
                patch("browser_control.cdp_session.os.path.isfile", return_value=False):
            with pytest.raises(LaunchError, match="not found"):
                resolve_chrome_binary("no-such-chrome")


@pytest.fixture
def launch_env():
    """Patch process spawning, endpoint discovery and protocol connections."""
    browser_client = MagicMock()
    browser_client.send.return_value = {"targetId": "T1"}
    target_client = MagicMock()

    with patch("browser_control.cdp_session.resolve_chrome_binary", return_value="/usr/bin/chromium"), \
            patch("browser_control.cdp_session.subprocess.Popen") as popen, \
            patch("browser_control.cdp_session.time.sleep") as sleep, \
            patch("browser_control.cdp_session.tempfile.mkdtemp", return_value="/tmp/bc_profile"), \
            patch("browser_control.cdp_session.shutil.rmtree") as rmtree, \
            patch("browser_control.cdp_session.httpx.get") as http_get, \
            patch.object(CDPClient, "connect", side_effect=[browser_client, target_client]) as connect:
        http_get.return_value.json.return_value = {
            "webSocketDebuggerUrl": "ws://127.0.0.1:9222/devtools/browser/abc"
        }
        yield {
            "popen": popen,
            "sleep": sleep,
            "rmtree": rmtree,
            "http_get": http_get,
            "connect": connect,
            "browser_client": browser_client,
            "target_client": target_client,
        }


class TestRemoteDebugSession:
    """Tests for launching, navigating and closing."""

    def test_launch_sequence(self, config, launch_env):
        session = RemoteDebugSession(config)
        session.launch()

        argv = launch_env["popen"].call_args[0][0]
        assert argv[0] == "/usr/bin/chromium"
        assert "--remote-debugging-port=9222" in argv
        assert "--user-data-dir=/tmp/bc_profile" in argv
        assert "--no-first-run" in argv
        launch_env["sleep"].assert_called_once_with(2.0)
        launch_env["http_get"].assert_called_once_with(
            "http://127.0.0.1:9222/json/version", timeout=5.0
        )
        assert launch_env["connect"].call_args_list == [
            call("ws://127.0.0.1:9222/devtools/browser/abc"),
            call("ws://127.0.0.1:9222/devtools/page/T1"),
        ]
        launch_env["browser_client"].send.assert_called_once_with(
            "Target.createTarget", {"url": "about:blank"}
        )
        assert launch_env["target_client"].send.call_args_list == [
            call("Page.enable"),
            call("Runtime.enable"),
        ]
        assert session.target_id == "T1"
        assert session.is_open() is True
        session.close()

    def test_launch_is_idempotent(self, config, launch_env):
        session = RemoteDebugSession(config)
        session.launch()
        session.launch()

        launch_env["popen"].assert_called_once()
        session.close()

    def test_discovery_failure_raises_launch_error(self, config, launch_env):
        launch_env["http_get"].side_effect = Exception("Connection refused")
        session = RemoteDebugSession(config)

        with pytest.raises(LaunchError, match="Connection refused"):
            session.launch()

        session.close()
        launch_env["popen"].return_value.kill.assert_called_once()

    def test_failed_launch_releases_process_before_retry(self, config, launch_env):
        first, second = MagicMock(), MagicMock()
        launch_env["popen"].side_effect = [first, second]
        launch_env["http_get"].side_effect = Exception("Connection refused")
        session = RemoteDebugSession(config)

        with pytest.raises(LaunchError):
            session.launch()
        first.kill.assert_called_once()
        assert launch_env["rmtree"].call_count == 1

        with pytest.raises(LaunchError):
            session.launch()
        session.close()

        assert launch_env["popen"].call_count == 2
        second.kill.assert_called_once()
        first.kill.assert_called_once()
        assert launch_env["rmtree"].call_count == 2

    def test_spawn_failure_removes_profile(self, config, launch_env):
        launch_env["popen"].side_effect = OSError("Permission denied")
        session = RemoteDebugSession(config)

        with pytest.raises(LaunchError, match="Could not start"):
            session.launch()

        launch_env["rmtree"].assert_called_once_with("/tmp/bc_profile", ignore_errors=True)

    def test_close_order_and_idempotence(self, config, launch_env):
        session = RemoteDebugSession(config)
        session.launch()
        process = launch_env["popen"].return_value

        session.close()
        session.close()

        launch_env["target_client"].close.assert_called_once()
        launch_env["browser_client"].close.assert_called_once()
        process.kill.assert_called_once()
        launch_env["rmtree"].assert_called_once_with("/tmp/bc_profile", ignore_errors=True)
        assert session.target_id is None
        assert session.is_open() is False

    def test_close_continues_after_client_failure(self, config, launch_env):
        session = RemoteDebugSession(config)
        session.launch()
        launch_env["target_client"].close.side_effect = Exception("socket already closed")

        session.close()

        launch_env["popen"].return_value.kill.assert_called_once()


class TestRemoteDebugNavigation:
    """Tests for bounded navigation and evaluation."""

    @pytest.fixture
    def client(self):
        return MagicMock()

    @pytest.fixture
    def session(self, config, client):
        session = RemoteDebugSession(config)
        session._target_client = client
        return session

    def test_navigate_waits_for_load_event(self, session, client):
        client.send.return_value = {"frameId": "F1"}

        session.navigate("https://example.com")

        client.clear_events.assert_called_once_with("Page.loadEventFired")
        client.send.assert_called_once_with("Page.navigate", {"url": "https://example.com"})
        client.wait_for_event.assert_called_once_with("Page.loadEventFired", timeout=30.0)

    def test_navigate_error_text(self, session, client):
        client.send.return_value = {"frameId": "F1", "errorText": "net::ERR_NAME_NOT_RESOLVED"}

        with pytest.raises(NavigationError, match="ERR_NAME_NOT_RESOLVED"):
            session.navigate("https://nowhere.invalid")
        client.wait_for_event.assert_not_called()

    def test_navigate_load_timeout(self, session, client):
        client.send.return_value = {"frameId": "F1"}
        client.wait_for_event.side_effect = TimeoutError("Timed out waiting for Page.loadEventFired")

        with pytest.raises(TimeoutError):
            session.navigate("https://example.com", timeout=1.0)
        client.wait_for_event.assert_called_once_with("Page.loadEventFired", timeout=1.0)

    def test_evaluate_returns_value(self, session, client):
        client.send.return_value = {"result": {"type": "string", "value": "Example Domain"}}

        assert session.evaluate("document.title") == "Example Domain"
        params = client.send.call_args[0][1]
        assert params["expression"] == "document.title"
        assert params["returnByValue"] is True

    def test_evaluate_exception(self, session, client):
        client.send.return_value = {
            "result": {"type": "object"},
            "exceptionDetails": {"text": "Uncaught ReferenceError"},
        }

        with pytest.raises(CDPError, match="ReferenceError"):
            session.evaluate("missing()")


class TestRemoteDebugPage:
    """Tests for the Playwright page bound to the session's tab."""

    def test_acquire_page_finds_target(self, config):
        session = RemoteDebugSession(config)
        session._target_client = MagicMock()
        session._target_id = "T1"

        other, mine = MagicMock(), MagicMock()
        mine.is_closed.return_value = False
        context = MagicMock()
        context.pages = [other, mine]
        cdp_sessions = [MagicMock(), MagicMock()]
        cdp_sessions[0].send.return_value = {"targetInfo": {"targetId": "T0"}}
        cdp_sessions[1].send.return_value = {"targetInfo": {"targetId": "T1"}}
        context.new_cdp_session.side_effect = cdp_sessions

        with patch("browser_control.cdp_session.sync_playwright") as mock_sync:
            pw = mock_sync.return_value.start.return_value
            pw.chromium.connect_over_cdp.return_value.contexts = [context]

            assert session.acquire_page() is mine
            assert session.acquire_page() is mine

            pw.chromium.connect_over_cdp.assert_called_once_with("http://127.0.0.1:9222")
            for cdp in cdp_sessions:
                cdp.detach.assert_called_once()
            session.close()

    def test_target_not_visible(self, config):
        session = RemoteDebugSession(config)
        session._target_client = MagicMock()
        session._target_id = "T1"

        with patch("browser_control.cdp_session.sync_playwright") as mock_sync:
            pw = mock_sync.return_value.start.return_value
            pw.chromium.connect_over_cdp.return_value.contexts = []

            with pytest.raises(LaunchError, match="T1"):
                session.acquire_page()
            session.close()
