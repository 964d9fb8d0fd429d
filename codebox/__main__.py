"""Allow running codebox as a module: python -m codebox."""

import sys

from codebox.cli import main

if __name__ == "__main__":
    sys.exit(main())
