"""Allow ``python -m gitsecrets``."""

from .cli import main

if __name__ == "__main__":
    main()
