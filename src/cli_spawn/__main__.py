"""cli-spawn entry point.

Supports: python -m cli_spawn
"""

from .app import main

if __name__ == "__main__":
    main()
