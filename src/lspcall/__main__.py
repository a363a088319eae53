"""CLI entry point for lspcall."""

import sys


def main() -> int:
    """Main entry point for lspcall CLI."""
    from lspcall.cli import run_cli

    return run_cli(sys.argv[1:])


if __name__ == "__main__":
    sys.exit(main())
