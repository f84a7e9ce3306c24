"""
Fingerprint evasion for automated browser sessions.

The init script is registered on the browsing context before the first
navigation so it runs on every new document. It defeats the most common
client-side bot heuristics; it is not a security boundary.
"""

import logging

from playwright.sync_api import BrowserContext

logger = logging.getLogger(__name__)


# Injected via context.add_init_script()
STEALTH_INIT_SCRIPT = """
(() => {
    // Automation flag always reports false
    Object.defineProperty(Navigator.prototype, 'webdriver', {
        get: () => false,
        configurable: true,
    });

    // Vendor namespace placeholder present in real Chrome
    if (!window.chrome) {
        window.chrome = {};
    }
    if (!window.chrome.runtime) {
        window.chrome.runtime = {};
    }

    // Non-empty plugin list
    Object.defineProperty(navigator, 'plugins', {
        get: () => [1, 2, 3, 4, 5],
        configurable: true,
    });

    // Non-empty language list
    Object.defineProperty(navigator, 'languages', {
        get: () => ['en-US', 'en'],
        configurable: true,
    });
})();
"""

# Chromium launch flags that hide the automation banner and blink flag
CHROMIUM_STEALTH_ARGS = [
    "--disable-blink-features=AutomationControlled",
]


def apply_stealth(context: BrowserContext) -> None:
    """Register the evasion script on every page of a browsing context.

    Args:
        context: Playwright browsing context, before any navigation
    """
    context.add_init_script(STEALTH_INIT_SCRIPT)
    logger.debug("Stealth init script registered")
