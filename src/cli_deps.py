"""CLI entry point for the deps command."""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

from cli_preload import _load_settings, _setup_logging
from common.errors import ConfigError, DependencyFetchError
from common.http_client import HTTPClient
from constants import Constants, ExitCodes
from registry import MemoryRepository, RegistryClient
from resolver import DependencyResolver

logger = logging.getLogger(__name__)


def run_deps(args: Any, out=None) -> int:
    """Resolve ``args.GEMS`` and print their dependency records as JSON.

    Gems listed under ``private_gems`` in the configuration file are served
    from the local catalog; everything else is asked upstream.

    Returns:
        Process exit code.
    """
    _setup_logging(args)
    config = _load_settings(args)
    out = out if out is not None else sys.stdout

    try:
        local_repository = MemoryRepository.from_mapping(config.get("private_gems"))
    except ConfigError as exc:
        logger.error("%s", exc)
        return ExitCodes.FILE_ERROR.value

    with HTTPClient(Constants.RUBYGEMS_URL, timeout=Constants.REQUEST_TIMEOUT) as http_client:
        resolver = DependencyResolver(RegistryClient(http_client), local_repository)
        try:
            records = resolver.fetch(args.GEMS)
        except DependencyFetchError as exc:
            logger.error("%s", exc)
            return ExitCodes.CONNECTION_ERROR.value

    records = sorted(records, key=lambda r: (r.name, r.version, r.platform))
    json.dump([record.to_dict() for record in records], out, indent=2)
    out.write("\n")
    logger.debug("Resolver cache: %s", resolver.cache_stats())
    return ExitCodes.SUCCESS.value
