"""
Session backends for Browser Control.

A session owns exactly one browser process, browsing context and page. The
browser is only launched when an action first asks for the page.
"""

import atexit
import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional

from playwright.sync_api import sync_playwright, Playwright, Browser, BrowserContext, Page

from .config import BrowserKind, ControlConfig
from .errors import LaunchError
from .stealth import CHROMIUM_STEALTH_ARGS, apply_stealth


# Get logger for this module
logger = logging.getLogger(__name__)


# Track all open sessions for cleanup on exit
_active_sessions: list["SessionBackend"] = []


def _cleanup_all_sessions():
    """Close all open sessions on process exit."""
    for session in _active_sessions[:]:  # Copy list to avoid modification during iteration
        try:
            session.close()
        except Exception as e:
            logger.debug(f"Cleanup of {type(session).__name__} failed: {e}")
    _active_sessions.clear()


# Register cleanup on exit
atexit.register(_cleanup_all_sessions)


class SessionBackend(ABC):
    """Common contract of the Playwright and remote-debugging sessions.

    The action layer only talks to this interface, so it runs unchanged
    on either backend.
    """

    @abstractmethod
    def acquire_page(self) -> Page:
        """Return the active page, launching the session if needed."""

    @abstractmethod
    def close(self) -> None:
        """Release every resource. Safe to call repeatedly."""

    @abstractmethod
    def is_open(self) -> bool:
        """Whether the session currently holds a live browser."""

    def _track(self) -> None:
        if self not in _active_sessions:
            _active_sessions.append(self)

    def _untrack(self) -> None:
        if self in _active_sessions:
            _active_sessions.remove(self)

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - ensures cleanup."""
        self.close()


class SessionManager(SessionBackend):
    """Owns the Playwright browser, context and page triple.

    The engine is selected once from configuration and never changes for
    the lifetime of the manager. ``launch()`` and ``close()`` are serialized
    so concurrent callers cannot create a second browser.

    Usage:
        session = SessionManager(ControlConfig())

        # Browser NOT opened yet

        page = session.acquire_page()  # Browser opens now

        # When done
        session.close()
    """

    def __init__(self, config: Optional[ControlConfig] = None):
        """Initialize the session manager.

        Args:
            config: Control configuration (engine, viewport, user agent)
        """
        self.config = config or ControlConfig()
        self._browser_kind: BrowserKind = self.config.browser
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._lock = threading.RLock()

    @property
    def browser_kind(self) -> BrowserKind:
        """Engine this session launches."""
        return self._browser_kind

    @property
    def context(self) -> Optional[BrowserContext]:
        """Current browsing context, if launched."""
        return self._context

    def acquire_page(self) -> Page:
        """Get the active page, creating the session if needed.

        Returns:
            Open Playwright page

        Raises:
            LaunchError: If the session cannot be created
        """
        page = self._page
        if page is not None and not page.is_closed():
            return page
        return self.launch()

    def launch(self) -> Page:
        """Launch the browser if needed and return the active page.

        Idempotent: an existing browser is reused, never relaunched.

        Raises:
            LaunchError: If the browser, context or page cannot be created
        """
        with self._lock:
            if self._browser is not None:
                if self._page is None or self._page.is_closed():
                    self._page = self._open_page()
                return self._page

            logger.info(f"Launching {self._browser_kind.value} browser")

            try:
                self._playwright = sync_playwright().start()
                launcher = getattr(self._playwright, self._browser_kind.value)
                args = []
                if self.config.apply_stealth and self._browser_kind is BrowserKind.CHROMIUM:
                    args = list(CHROMIUM_STEALTH_ARGS)
                self._browser = launcher.launch(headless=False, args=args)
            except Exception as e:
                self._stop_driver()
                raise LaunchError(f"Could not launch {self._browser_kind.value}: {e}") from e

            self._track()

            # From here on a browser process exists; a failure leaves it for close()
            try:
                self._context = self._browser.new_context(
                    viewport=self.config.viewport,
                    user_agent=self.config.user_agent,
                    locale=self.config.locale,
                )
                if self.config.apply_stealth:
                    apply_stealth(self._context)
            except Exception as e:
                raise LaunchError(f"Could not create browsing context: {e}") from e

            self._page = self._open_page()
            logger.debug("Browser session initialized")
            return self._page

    def _open_page(self) -> Page:
        if self._context is None:
            raise LaunchError("Failed to create a new page: no browsing context")
        try:
            return self._context.new_page()
        except Exception as e:
            raise LaunchError(f"Failed to create a new page: {e}") from e

    def is_open(self) -> bool:
        """Check if the browser has been launched.

        Returns:
            True if a browser process is currently held
        """
        return self._browser is not None

    def close(self) -> None:
        """Close page, context and browser, in that order.

        Each resource is released independently so one failure or an
        already-missing handle never skips the rest. Safe to call multiple
        times and before any launch.
        """
        with self._lock:
            if self._browser is not None:
                logger.debug("Closing browser session")

            if self._page is not None:
                try:
                    self._page.close()
                except Exception as e:
                    logger.debug(f"Page close failed: {e}")
                self._page = None

            if self._context is not None:
                try:
                    self._context.close()
                except Exception as e:
                    logger.debug(f"Context close failed: {e}")
                self._context = None

            if self._browser is not None:
                try:
                    self._browser.close()
                except Exception as e:
                    logger.debug(f"Browser close failed: {e}")
                self._browser = None

            self._stop_driver()
            self._untrack()

    def _stop_driver(self) -> None:
        if self._playwright is not None:
            try:
                self._playwright.stop()
            except Exception as e:
                logger.debug(f"Playwright stop failed: {e}")
            self._playwright = None
