"""Argument parsing functionality for gemhaven."""

import argparse
from constants import Constants


def _non_negative(value):
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"{value} is negative")
    return number


def _positive(value):
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"{value} must be at least 1")
    return number


def _add_common_arguments(parser):
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML, YML, or JSON)",
                        action="store",
                        type=str)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default='INFO')
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("--timeout",
                        dest="TIMEOUT",
                        help=f"HTTP request timeout in seconds (default: {Constants.REQUEST_TIMEOUT})",
                        action="store",
                        type=_positive)


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog="gemhaven",
        description="gemhaven - private gem registry proxy tooling",
        add_help=True,
    )
    subparsers = parser.add_subparsers(dest="COMMAND", metavar="COMMAND")
    subparsers.required = True

    preload = subparsers.add_parser(
        "preload",
        help="Warm the proxy cache by touching every gem of the registry index",
    )
    _add_common_arguments(preload)
    preload.add_argument("--server",
                         dest="SERVER",
                         help=f"Proxy base URL (default: {Constants.PROXY_URL})",
                         action="store",
                         type=str)
    preload.add_argument("--latest",
                         dest="LATEST",
                         help="Preload only the latest version of every gem",
                         action="store_true")
    preload.add_argument("--skip",
                         dest="SKIP",
                         help="Skip the first N gems of the index",
                         action="store",
                         type=_non_negative,
                         default=0)
    preload.add_argument("--limit",
                         dest="LIMIT",
                         help="Preload at most N gems",
                         action="store",
                         type=_non_negative)
    preload.add_argument("--threads",
                         dest="THREADS",
                         help=f"Number of concurrent requests (default: {Constants.PRELOAD_THREADS})",
                         action="store",
                         type=_positive)

    deps = subparsers.add_parser(
        "deps",
        help="Print the dependency records of one or more gems as JSON",
    )
    _add_common_arguments(deps)
    deps.add_argument("GEMS",
                      help="Gem names to resolve",
                      nargs="+")
    deps.add_argument("--upstream",
                      dest="UPSTREAM",
                      help=f"Upstream registry URL (default: {Constants.RUBYGEMS_URL})",
                      action="store",
                      type=str)

    return parser.parse_args(argv)
