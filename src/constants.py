"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    DECODE_ERROR = 4


class SpecsIndex(Enum):
    """Index snapshots published by the registry.

    Args:
        Enum (string): Resource name prefix of the snapshot.
    """

    FULL = "specs"
    LATEST = "latest_specs"
    PRERELEASE = "prerelease_specs"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    RUBYGEMS_URL = "https://rubygems.org"
    PROXY_URL = "http://localhost:9292"
    SPECS_API_VERSION = "4.8"
    DEPENDENCIES_PATH = "/api/v1/dependencies"
    DEFAULT_PLATFORM = "ruby"
    USER_AGENT = "gemhaven/0.1.0"
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    LOG_LEVEL_ENV = "GEMHAVEN_LOG_LEVEL"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    PRELOAD_THREADS = 10
