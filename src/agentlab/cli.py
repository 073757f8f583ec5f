"""Command-line interface for agentlab."""

from __future__ import annotations

import argparse
import asyncio
import os
from collections.abc import Sequence
from pathlib import Path

from agentlab import __version__


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="agentlab",
        description="Agent Lab - interactive DSL workbench for commands, transforms and processes",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "workspace",
        nargs="?",
        default="default",
        help="Laboratory workspace name (default: default)",
    )
    parser.add_argument(
        "--home",
        type=Path,
        help="Directory holding laboratories (default: lab.home from config)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Extra config file layered above the project config",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be repeated)",
    )
    return parser


def run_cli(args: Sequence[str]) -> int:
    """Run the CLI with the given arguments."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    from agentlab.config import load_config
    from agentlab.logging import get_logger, setup_logging

    config = load_config(project_root=os.getcwd(), config_file=parsed.config)
    if parsed.verbose:
        config.logging.verbose = parsed.verbose
    setup_logging(config.logging)

    from agentlab.lab import Lab
    from agentlab.repl import LabRepl

    home = parsed.home or Path(config.lab.home)
    try:
        lab = Lab.open(home, parsed.workspace, settings=config.lab)
    except OSError as e:
        get_logger("cli").error("Cannot open laboratory %s: %s", home, e)
        print(f"agentlab: cannot open laboratory in {home}: {e}")
        return 1

    asyncio.run(LabRepl(lab).run())
    return 0
