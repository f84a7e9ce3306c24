"""
Utility functions for Browser Control.
"""

import re

_PASSWORD_HINT = re.compile(r"pass(word|wd|code)?|pwd|secret|pin\b", re.IGNORECASE)


def truncate_text(text: str, max_chars: int, suffix: str = "...") -> str:
    """Truncate text to a maximum number of characters.

    Args:
        text: Text to truncate
        max_chars: Maximum number of characters
        suffix: Suffix to add when truncated

    Returns:
        Truncated text
    """
    if len(text) <= max_chars:
        return text
    return text[:max_chars - len(suffix)] + suffix


def is_password_field(selector: str, description: str = "") -> bool:
    """Guess whether a selector or its description names a password input."""
    return bool(_PASSWORD_HINT.search(selector) or _PASSWORD_HINT.search(description))
