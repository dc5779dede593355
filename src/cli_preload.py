"""CLI entry point for the preload command.

Downloads the registry index through the proxy and touches every gem so the
proxy stores it before real client traffic arrives.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

from common.errors import ConfigError, SpecsDecodeError, TransportError
from common.http_client import HTTPClient
from common.logging_utils import configure_logging, safe_url
from cli_config import apply_config_overrides, load_config
from constants import Constants, ExitCodes
from preload import GemPreloader, PreloadWindow

logger = logging.getLogger(__name__)


def _setup_logging(args: Any) -> None:
    """Configure logging based on CLI arguments.

    Args:
        args: Parsed CLI arguments.
    """
    if getattr(args, "LOG_LEVEL", None):
        os.environ[Constants.LOG_LEVEL_ENV] = str(args.LOG_LEVEL).upper()

    configure_logging()

    log_file = getattr(args, "LOG_FILE", None)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s"
        )
        file_handler.setFormatter(formatter)
        logging.getLogger().addHandler(file_handler)
        logger.info("Logging to file: %s", log_file)


def _load_settings(args: Any) -> dict:
    """Load the config file and apply overrides; exits on invalid configuration."""
    try:
        config = load_config(getattr(args, "CONFIG", None))
        apply_config_overrides(config, args)
    except ConfigError as exc:
        logger.error("%s", exc)
        sys.exit(ExitCodes.FILE_ERROR.value)
    return config


def run_preload(args: Any, out=None) -> int:
    """Entry point for the preload command.

    Args:
        args: Parsed CLI arguments namespace.
        out: Progress sink; defaults to stdout.

    Returns:
        Process exit code.
    """
    _setup_logging(args)
    _load_settings(args)
    out = out if out is not None else sys.stdout

    window = PreloadWindow(skip=getattr(args, "SKIP", 0) or 0, limit=getattr(args, "LIMIT", None))
    logger.info("Preloading gems through %s", safe_url(Constants.PROXY_URL))

    with HTTPClient(
        Constants.PROXY_URL,
        timeout=Constants.REQUEST_TIMEOUT,
        pool_size=Constants.PRELOAD_THREADS,
    ) as http_client:
        preloader = GemPreloader(
            http_client,
            window,
            threads=Constants.PRELOAD_THREADS,
            out=out,
            latest=getattr(args, "LATEST", False),
        )
        try:
            result = preloader.preload()
        except TransportError as exc:
            logger.error("Could not download the gem index: %s", exc)
            return ExitCodes.CONNECTION_ERROR.value
        except SpecsDecodeError as exc:
            logger.error("Could not decode the gem index: %s", exc)
            return ExitCodes.DECODE_ERROR.value

    if result.attempted:
        out.write("\n")
    if result.failed:
        logger.warning("%d of %d gems could not be preloaded", len(result.failed), result.attempted)
    logger.info("Preloaded %d gems", result.succeeded)
    return ExitCodes.SUCCESS.value
