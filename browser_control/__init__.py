"""
Browser Control - a resilient browser action layer for automated planners.

Drives Chromium, Firefox or WebKit via Playwright (or Chrome directly over the
DevTools protocol) and exposes idempotent actions that always answer with a
human-readable result string.
"""

__version__ = "0.1.0"
__author__ = "Browser Control Contributors"
