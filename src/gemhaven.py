"""gemhaven - private gem registry proxy tooling.

    Returns:
        int: Exit code
"""
import sys

from args import parse_args
from cli_deps import run_deps
from cli_preload import run_preload

COMMANDS = {
    "preload": run_preload,
    "deps": run_deps,
}


def main(argv=None):
    """Main entry point: dispatch to the selected subcommand."""
    args = parse_args(argv)
    return COMMANDS[args.COMMAND](args)


if __name__ == "__main__":
    sys.exit(main())
