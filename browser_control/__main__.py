"""
Entry point for running as a module.

Usage: python -m browser_control act navigate_to_url --args '{"url": "..."}'
"""

import sys
from .cli import main

if __name__ == "__main__":
    sys.exit(main())
