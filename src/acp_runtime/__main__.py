"""CLI entry point for acp-runtime."""

import sys


def main() -> int:
    """Main entry point for acp-runtime CLI."""
    from acp_runtime.cli import run_cli

    return run_cli(sys.argv[1:])


if __name__ == "__main__":
    sys.exit(main())
