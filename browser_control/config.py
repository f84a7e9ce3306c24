"""
Configuration management for Browser Control.

Provides the configuration dataclass, the browser engine enum and
environment variable loading.
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file if present
load_dotenv()

logger = logging.getLogger(__name__)


class BrowserKind(str, Enum):
    """Rendering engine families Playwright can drive."""
    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"

    @classmethod
    def parse(cls, value: Optional[str]) -> "BrowserKind":
        """Parse an engine name, falling back to Chromium for unknown values."""
        if not value:
            return cls.CHROMIUM
        try:
            return cls(value.strip().lower())
        except ValueError:
            logger.warning(f"Unknown browser '{value}', defaulting to chromium")
            return cls.CHROMIUM


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


def get_base_dir() -> Path:
    """Get the base directory for browser control data."""
    return Path.home() / ".browser_control"


def get_runs_dir() -> Path:
    """Get the directory for action logs."""
    return get_base_dir() / "runs"


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").lower() in ("1", "true", "yes")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={raw!r}")
        return default


@dataclass
class ControlConfig:
    """Configuration for a browser control session.

    Read once when a session is constructed. The browser always runs headed.
    """

    # Engine selection
    browser: BrowserKind = field(
        default_factory=lambda: BrowserKind.parse(os.getenv("BROWSER_CONTROL_BROWSER"))
    )

    # Context settings
    viewport_width: int = 1280
    viewport_height: int = 800
    user_agent: str = DEFAULT_USER_AGENT
    locale: str = "en-US"
    apply_stealth: bool = True

    # Action timeouts (ms)
    click_timeout: int = 5000
    enter_fallback_timeout: int = 3000
    overlay_click_timeout: int = 3000
    navigation_timeout: int = 30000
    action_timeout: int = 10000

    # Login timeouts (ms)
    login_load_timeout: int = 10000
    password_field_timeout: int = 5000
    popup_load_timeout: int = 15000
    popup_open_timeout: int = 30000

    # Remote-debugging session
    chrome_binary: Optional[str] = field(
        default_factory=lambda: os.getenv("BROWSER_CONTROL_CHROME_BINARY")
    )
    cdp_host: str = "127.0.0.1"
    cdp_port: int = field(
        default_factory=lambda: _env_int("BROWSER_CONTROL_CDP_PORT", 9222)
    )
    cdp_settle_seconds: float = 2.0
    cdp_load_timeout: float = 30.0

    # Extraction service
    model: str = field(
        default_factory=lambda: os.getenv("OPENAI_MODEL", "gpt-4o")
    )
    api_key: Optional[str] = field(
        default_factory=lambda: os.getenv("OPENAI_API_KEY")
    )
    model_endpoint: Optional[str] = field(
        default_factory=lambda: os.getenv("OPENAI_BASE_URL")
    )
    request_timeout: int = 120

    # Debug mode - enables verbose logging (off by default)
    debug: bool = field(
        default_factory=lambda: _env_flag("BROWSER_CONTROL_DEBUG")
    )

    @property
    def viewport(self) -> dict[str, int]:
        """Viewport dict in the shape Playwright expects."""
        return {"width": self.viewport_width, "height": self.viewport_height}

    @property
    def cdp_http_url(self) -> str:
        """HTTP endpoint of the remote-debugging port."""
        return f"http://{self.cdp_host}:{self.cdp_port}"

    @classmethod
    def from_cli_args(
        cls,
        browser: Optional[str] = None,
        chrome_binary: Optional[str] = None,
        cdp_port: Optional[int] = None,
        model: Optional[str] = None,
        debug: bool = False,
    ) -> "ControlConfig":
        """Create configuration from CLI arguments, keeping env defaults."""
        config = cls()
        if browser:
            config.browser = BrowserKind.parse(browser)
        if chrome_binary:
            config.chrome_binary = chrome_binary
        if cdp_port:
            config.cdp_port = cdp_port
        if model:
            config.model = model
        config.debug = config.debug or debug
        return config


# Default configuration values for documentation
DEFAULTS = {
    "browser": BrowserKind.CHROMIUM.value,
    "cdp_port": 9222,
    "model": "gpt-4o",
    "click_timeout_ms": 5000,
    "enter_fallback_timeout_ms": 3000,
    "navigation_timeout_ms": 30000,
    "action_timeout_ms": 10000,
}
