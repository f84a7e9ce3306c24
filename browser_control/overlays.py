"""
Overlay dismissal for Browser Control.

Scans the page for common obstructions (modals, cookie and newsletter
banners, lightboxes) and either clicks a nested close control or removes the
element outright. Heuristic and lossy: benign content matching a selector
can be removed too.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from playwright.sync_api import Page

logger = logging.getLogger(__name__)


# Containers that usually obstruct the page
OVERLAY_SELECTORS = [
    ".modal",
    ".popup",
    ".overlay",
    "[role=dialog]",
    '[aria-modal="true"]',
    ".backdrop",
    ".lightbox",
    ".newsletter-popup",
    ".cookie-consent",
    ".cookie-banner",
    ".subscribe-modal",
    ".interstitial",
    ".ui-dialog",
    ".fancybox-container",
    ".mfp-wrap",
    ".modal-backdrop",
    ".modal-open",
    ".modal-dialog",
    ".modal-content",
    ".modal-footer",
    ".modal-header",
    ".modal-body",
    ".close",
    ".close-button",
    ".close-btn",
    ".dismiss",
    ".exit-intent",
    ".popup-close",
    ".popup-dismiss",
    ".newsletter-close",
    ".cookie-close",
    ".cookie-dismiss",
    ".overlay-close",
    ".lightbox-close",
    ".fancybox-close",
    ".mfp-close",
]

# Close controls looked up inside a matched overlay
CLOSE_CONTROL_SELECTORS = [
    "button.close",
    ".close",
    ".close-button",
    ".close-btn",
    ".dismiss",
    ".popup-close",
    ".popup-dismiss",
    ".newsletter-close",
    ".cookie-close",
    ".cookie-dismiss",
    ".overlay-close",
    ".lightbox-close",
    ".fancybox-close",
    ".mfp-close",
]


_DISMISS_SCRIPT = """
({ selectors, closeSelectors }) => {
    const report = { clicked: 0, removed: 0, errors: [] };
    const closeQuery = closeSelectors.join(', ');
    for (const selector of selectors) {
        let matches;
        try {
            matches = document.querySelectorAll(selector);
        } catch (e) {
            report.errors.push(`${selector}: ${e.message}`);
            continue;
        }
        matches.forEach((el) => {
            try {
                if (!el.isConnected) {
                    return;
                }
                const closeBtn = el.querySelector(closeQuery);
                if (closeBtn) {
                    closeBtn.click();
                    report.clicked += 1;
                } else {
                    el.remove();
                    report.removed += 1;
                }
            } catch (e) {
                report.errors.push(`${selector}: ${e.message}`);
            }
        });
    }
    return report;
}
"""

_REMOVE_FIRST_SCRIPT = """
(selector) => {
    const el = document.querySelector(selector);
    if (el) {
        el.remove();
        return true;
    }
    return false;
}
"""


@dataclass
class DismissalReport:
    """Outcome of one overlay scan."""
    clicked: int = 0
    removed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.clicked + self.removed


class OverlayDismisser:
    """Removes obstructing overlays from the current page.

    The selector lists are instance attributes so callers can extend them.
    """

    def __init__(
        self,
        selectors: Optional[list[str]] = None,
        close_selectors: Optional[list[str]] = None,
    ):
        self.selectors = list(selectors or OVERLAY_SELECTORS)
        self.close_selectors = list(close_selectors or CLOSE_CONTROL_SELECTORS)

    def dismiss(self, page: Page) -> DismissalReport:
        """Scan the page once and dismiss every matching overlay.

        Per-element failures are collected and logged; a failure of the
        whole scan is logged and yields an empty report.

        Args:
            page: Page to clean up

        Returns:
            DismissalReport with click/remove counts
        """
        try:
            raw = page.evaluate(
                _DISMISS_SCRIPT,
                {"selectors": self.selectors, "closeSelectors": self.close_selectors},
            )
        except Exception as e:
            logger.warning(f"Overlay dismissal failed: {e}")
            return DismissalReport()

        raw = raw or {}
        report = DismissalReport(
            clicked=int(raw.get("clicked", 0)),
            removed=int(raw.get("removed", 0)),
            errors=list(raw.get("errors", [])),
        )
        for error in report.errors:
            logger.debug(f"Overlay element skipped: {error}")
        if report.total:
            logger.info(f"Dismissed overlays: {report.clicked} closed, {report.removed} removed")
        return report

    def remove_first(self, page: Page, selector: str) -> bool:
        """Remove the first element matching a selector from the DOM.

        Returns:
            True if an element was removed
        """
        return bool(page.evaluate(_REMOVE_FIRST_SCRIPT, selector))
