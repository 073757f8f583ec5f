"""CLI entry point for agentlab."""

import sys


def main() -> int:
    """Main entry point for agentlab CLI."""
    from agentlab.cli import run_cli

    return run_cli(sys.argv[1:])


if __name__ == "__main__":
    sys.exit(main())
