"""
Remote-debugging session for Browser Control.

Launches a Chrome/Chromium binary directly and talks to it over the Chrome
DevTools Protocol instead of through Playwright's launcher. Useful when an
action needs raw protocol access; for everything else the session can hand
out a Playwright page attached to the same tab, so the action layer works
unchanged.
"""

import json
import logging
import os
import shutil
import subprocess
import tempfile
import threading
import time
from collections import deque
from typing import Any, Optional

import httpx
import websocket
from playwright.sync_api import sync_playwright, Playwright, Browser, Page

from .config import ControlConfig
from .errors import BrowserControlError, LaunchError, NavigationError
from .session import SessionBackend

logger = logging.getLogger(__name__)


# Flags disabling first-run UI, background networking and notifications
LAUNCH_FLAGS = [
    "--no-first-run",
    "--no-default-browser-check",
    "--disable-popup-blocking",
    "--disable-default-apps",
    "--disable-extensions",
    "--disable-background-networking",
    "--disable-sync",
    "--disable-translate",
    "--disable-background-timer-throttling",
    "--disable-renderer-backgrounding",
    "--disable-device-discovery-notifications",
    "--disable-component-update",
    "--disable-domain-reliability",
    "--disable-client-side-phishing-detection",
    "--disable-hang-monitor",
    "--disable-prompt-on-repost",
    "--disable-notifications",
    "--disable-software-rasterizer",
    "--disable-gpu",
    "--remote-allow-origins=*",
    "--window-size=1280,800",
]

# Executable names looked up on PATH, in order
CHROME_CANDIDATES = [
    "google-chrome",
    "google-chrome-stable",
    "chromium",
    "chromium-browser",
    "chrome",
    "msedge",
]

# Well-known install locations that are usually not on PATH
CHROME_INSTALL_PATHS = [
    "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
    "/Applications/Chromium.app/Contents/MacOS/Chromium",
    r"C:\Program Files\Google\Chrome\Application\chrome.exe",
    r"C:\Program Files (x86)\Google\Chrome\Application\chrome.exe",
]


class CDPError(BrowserControlError):
    """Raised when the browser answers a command with an error."""


def resolve_chrome_binary(configured: Optional[str] = None) -> str:
    """Find the browser executable to spawn.

    Args:
        configured: Explicit path or executable name from configuration

    Returns:
        Absolute path to the executable

    Raises:
        LaunchError: If no executable can be found
    """
    if configured:
        if os.path.isfile(configured):
            return configured
        found = shutil.which(configured)
        if found:
            return found
        raise LaunchError(f"Configured browser binary not found: {configured}")

    for name in CHROME_CANDIDATES:
        found = shutil.which(name)
        if found:
            return found

    for path in CHROME_INSTALL_PATHS:
        if os.path.isfile(path):
            return path

    raise LaunchError(
        "No Chrome or Chromium executable found on PATH. "
        "Set BROWSER_CONTROL_CHROME_BINARY to its location."
    )


class CDPClient:
    """Synchronous DevTools protocol client over one websocket.

    Responses are matched to commands by id. Events that arrive while
    waiting for a response are buffered so ``wait_for_event`` can still
    see them.
    """

    def __init__(self, ws: "websocket.WebSocket", url: str):
        self._ws = ws
        self.url = url
        self._next_id = 0
        self._events: deque[dict[str, Any]] = deque()
        self._lock = threading.Lock()

    @classmethod
    def connect(cls, url: str, timeout: float = 10.0) -> "CDPClient":
        """Open a websocket to a browser or target endpoint."""
        ws = websocket.create_connection(url, timeout=timeout)
        logger.debug(f"CDP connected to {url}")
        return cls(ws, url)

    @property
    def connected(self) -> bool:
        return self._ws is not None and self._ws.connected

    def send(
        self,
        method: str,
        params: Optional[dict[str, Any]] = None,
        timeout: float = 10.0,
    ) -> dict[str, Any]:
        """Send a command and wait for its response.

        Returns:
            The ``result`` object of the response

        Raises:
            CDPError: If the browser reports an error
            TimeoutError: If no response arrives in time
        """
        with self._lock:
            self._next_id += 1
            msg_id = self._next_id
            message: dict[str, Any] = {"id": msg_id, "method": method}
            if params:
                message["params"] = params
            self._ws.send(json.dumps(message))

            deadline = time.monotonic() + timeout
            while True:
                data = self._receive(deadline, method)
                if data.get("id") == msg_id:
                    if "error" in data:
                        error = data["error"]
                        raise CDPError(f"{method} failed: {error.get('message', error)}")
                    return data.get("result", {})
                if "method" in data:
                    self._events.append(data)

    def wait_for_event(self, method: str, timeout: float) -> dict[str, Any]:
        """Block until an event with the given method arrives.

        Returns:
            The event's ``params`` object

        Raises:
            TimeoutError: If the event does not arrive in time
        """
        with self._lock:
            for event in list(self._events):
                if event.get("method") == method:
                    self._events.remove(event)
                    return event.get("params", {})

            deadline = time.monotonic() + timeout
            while True:
                data = self._receive(deadline, method)
                if data.get("method") == method:
                    return data.get("params", {})
                if "method" in data:
                    self._events.append(data)

    def clear_events(self, method: Optional[str] = None) -> None:
        """Drop buffered events, optionally only those of one method."""
        with self._lock:
            if method is None:
                self._events.clear()
            else:
                self._events = deque(e for e in self._events if e.get("method") != method)

    def _receive(self, deadline: float, waiting_for: str) -> dict[str, Any]:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise TimeoutError(f"Timed out waiting for {waiting_for}")
        self._ws.settimeout(remaining)
        try:
            raw = self._ws.recv()
        except websocket.WebSocketTimeoutException as e:
            raise TimeoutError(f"Timed out waiting for {waiting_for}") from e
        if not raw:
            return {}
        return json.loads(raw)

    def close(self) -> None:
        """Close the websocket."""
        if self._ws is not None:
            try:
                self._ws.close()
            finally:
                self._ws = None


class RemoteDebugSession(SessionBackend):
    """Browser session driven directly over the DevTools protocol.

    State is the spawned process, a browser-level protocol client, the id
    of the tab it created and a client scoped to that tab. Only one of this
    and ``SessionManager`` should be active per process.
    """

    def __init__(self, config: Optional[ControlConfig] = None):
        """Initialize the remote-debugging session.

        Args:
            config: Control configuration (binary, port, timeouts)
        """
        self.config = config or ControlConfig()
        self._process: Optional[subprocess.Popen] = None
        self._user_data_dir: Optional[str] = None
        self._browser_client: Optional[CDPClient] = None
        self._target_client: Optional[CDPClient] = None
        self._target_id: Optional[str] = None
        self._playwright: Optional[Playwright] = None
        self._pw_browser: Optional[Browser] = None
        self._page: Optional[Page] = None
        self._lock = threading.RLock()

    @property
    def target_id(self) -> Optional[str]:
        """Id of the tab this session created."""
        return self._target_id

    @property
    def client(self) -> Optional[CDPClient]:
        """Protocol client scoped to the session's tab."""
        return self._target_client

    def is_open(self) -> bool:
        return self._target_client is not None

    def launch(self) -> None:
        """Spawn the browser and attach to a fresh tab.

        No-op when already connected. A failed attempt releases the process
        and profile it started, so a retry begins clean.

        Raises:
            LaunchError: If the binary, the endpoint or the tab is unavailable
        """
        with self._lock:
            if self._target_client is not None:
                return

            binary = resolve_chrome_binary(self.config.chrome_binary)
            port = self.config.cdp_port
            self._user_data_dir = tempfile.mkdtemp(prefix="browser_control_cdp_")
            argv = [
                binary,
                f"--remote-debugging-port={port}",
                f"--user-data-dir={self._user_data_dir}",
                *LAUNCH_FLAGS,
                "about:blank",
            ]

            logger.info(f"Spawning {binary} with remote debugging on port {port}")
            try:
                self._process = subprocess.Popen(
                    argv,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                )
            except OSError as e:
                self.close()
                raise LaunchError(f"Could not start {binary}: {e}") from e

            self._track()

            # Give the process time to open its debugging port
            time.sleep(self.config.cdp_settle_seconds)

            try:
                browser_ws = self._discover_browser_endpoint()
                self._browser_client = CDPClient.connect(browser_ws)
                target = self._browser_client.send("Target.createTarget", {"url": "about:blank"})
                self._target_id = target["targetId"]

                target_ws = (
                    f"ws://{self.config.cdp_host}:{port}/devtools/page/{self._target_id}"
                )
                self._target_client = CDPClient.connect(target_ws)
                self._target_client.send("Page.enable")
                self._target_client.send("Runtime.enable")
            except Exception as e:
                self.close()
                raise LaunchError(f"Could not attach to remote-debugging session: {e}") from e

            logger.info(f"Remote-debugging session ready (target {self._target_id})")

    def _discover_browser_endpoint(self) -> str:
        """Read the browser-level websocket URL from /json/version."""
        response = httpx.get(f"{self.config.cdp_http_url}/json/version", timeout=5.0)
        response.raise_for_status()
        return response.json()["webSocketDebuggerUrl"]

    def _require_client(self) -> CDPClient:
        self.launch()
        if self._target_client is None:
            raise LaunchError("Remote-debugging session is not connected")
        return self._target_client

    def navigate(self, url: str, timeout: Optional[float] = None) -> None:
        """Navigate the session's tab and wait for its load event.

        Args:
            url: Destination URL
            timeout: Seconds to wait for the load event (config default)

        Raises:
            NavigationError: If the browser rejects the navigation
            TimeoutError: If the load event does not fire in time
        """
        client = self._require_client()
        wait = timeout if timeout is not None else self.config.cdp_load_timeout

        client.clear_events("Page.loadEventFired")
        result = client.send("Page.navigate", {"url": url})
        if result.get("errorText"):
            raise NavigationError(f"Navigation to {url} failed: {result['errorText']}")

        client.wait_for_event("Page.loadEventFired", timeout=wait)
        logger.debug(f"Loaded {url}")

    def evaluate(self, expression: str) -> Any:
        """Evaluate a JavaScript expression in the tab and return its value."""
        client = self._require_client()
        result = client.send(
            "Runtime.evaluate",
            {"expression": expression, "returnByValue": True, "awaitPromise": True},
        )
        if "exceptionDetails" in result:
            details = result["exceptionDetails"]
            raise CDPError(f"Evaluation failed: {details.get('text', 'exception')}")
        return result.get("result", {}).get("value")

    def acquire_page(self) -> Page:
        """Return a Playwright page bound to the session's tab.

        Playwright is attached over the same debugging port on first use.

        Raises:
            LaunchError: If the tab cannot be found through Playwright
        """
        with self._lock:
            if self._page is not None and not self._page.is_closed():
                return self._page

            self.launch()

            try:
                if self._pw_browser is None:
                    self._playwright = sync_playwright().start()
                    self._pw_browser = self._playwright.chromium.connect_over_cdp(
                        self.config.cdp_http_url
                    )
                self._page = self._find_target_page()
            except LaunchError:
                raise
            except Exception as e:
                raise LaunchError(f"Could not attach Playwright to target: {e}") from e

            return self._page

    def _find_target_page(self) -> Page:
        for context in self._pw_browser.contexts:
            for page in context.pages:
                cdp = context.new_cdp_session(page)
                try:
                    info = cdp.send("Target.getTargetInfo")
                finally:
                    cdp.detach()
                if info["targetInfo"]["targetId"] == self._target_id:
                    return page
        raise LaunchError(f"Target {self._target_id} not visible to Playwright")

    def close(self) -> None:
        """Tear down protocol clients, then kill the browser process.

        Every step is guarded independently; safe to call repeatedly.
        """
        with self._lock:
            self._page = None
            self._pw_browser = None
            if self._playwright is not None:
                try:
                    self._playwright.stop()
                except Exception as e:
                    logger.debug(f"Playwright stop failed: {e}")
                self._playwright = None

            if self._target_client is not None:
                try:
                    self._target_client.close()
                except Exception as e:
                    logger.debug(f"Target client close failed: {e}")
                self._target_client = None

            if self._browser_client is not None:
                try:
                    self._browser_client.close()
                except Exception as e:
                    logger.debug(f"Browser client close failed: {e}")
                self._browser_client = None

            self._target_id = None

            if self._process is not None:
                try:
                    self._process.kill()
                    self._process.wait(timeout=5)
                except Exception as e:
                    logger.debug(f"Browser process kill failed: {e}")
                self._process = None
                logger.debug("Remote-debugging browser stopped")

            if self._user_data_dir is not None:
                shutil.rmtree(self._user_data_dir, ignore_errors=True)
                self._user_data_dir = None

            self._untrack()
