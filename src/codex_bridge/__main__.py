"""codex-bridge relay entry point.

Supports: python -m codex_bridge [args...]
"""

from .relay import main

if __name__ == "__main__":
    main()
