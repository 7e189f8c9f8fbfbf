from __future__ import annotations

import sys
from typing import Optional

# Absolute imports so `python -m storyomatic` and frozen builds behave the same
from storyomatic.cli import main as cli_main


def main(argv: Optional[list[str]] = None) -> None:
    argv = list(sys.argv[1:] if argv is None else argv)
    # Zero-args path: show what's in the library
    if not argv:
        argv = ["list"]
    cli_main(argv)


if __name__ == "__main__":
    main()
