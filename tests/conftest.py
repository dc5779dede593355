"""Shared fixtures and HTTP doubles for the test suite."""

import gzip
import threading

import pytest

from codec.ruby_marshal import Symbol, dumps
from common.errors import TransportError
from constants import Constants


class StubHTTPClient:
    """In-memory stand-in for HTTPClient with per-path canned answers.

    ``get`` stubs map a path to bytes, an exception instance, or a callable
    taking the path. ``head`` stubs map a path to a bool or an exception.
    Unstubbed paths behave like a 404.
    """

    def __init__(self):
        self.get_stubs = {}
        self.head_stubs = {}
        self.calls = []
        self._lock = threading.Lock()

    def stub_get(self, path, answer):
        self.get_stubs[path] = answer

    def stub_head(self, path, answer=True):
        self.head_stubs[path] = answer

    def get(self, path):
        with self._lock:
            self.calls.append(("GET", path))
        answer = self.get_stubs.get(path)
        if answer is None:
            raise TransportError(f"GET {path} returned 404", url=path, status_code=404)
        if isinstance(answer, Exception):
            raise answer
        if callable(answer):
            return answer(path)
        return answer

    def head_exists(self, path):
        with self._lock:
            self.calls.append(("HEAD", path))
        answer = self.head_stubs.get(path, False)
        if isinstance(answer, Exception):
            raise answer
        return answer

    def heads(self):
        return [path for method, path in self.calls if method == "HEAD"]

    def verify_stubbed_calls(self):
        requested = set(self.heads())
        missing = [path for path in self.head_stubs if path not in requested]
        assert not missing, f"stubbed HEAD requests never made: {missing}"

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def to_marshaled_gzipped_bytes(obj):
    return gzip.compress(dumps(obj))


def wire_record(name, number, platform="ruby", dependencies=()):
    """A dependency record as the registry's API encodes it."""
    return {
        Symbol("name"): name,
        Symbol("number"): number,
        Symbol("platform"): platform,
        Symbol("dependencies"): [list(dep) for dep in dependencies],
    }


@pytest.fixture(autouse=True)
def _restore_constants():
    """CLI code applies overrides onto Constants; undo them after each test."""
    saved = {key: value for key, value in vars(Constants).items() if key.isupper()}
    yield
    for key, value in saved.items():
        setattr(Constants, key, value)


@pytest.fixture
def http_client():
    return StubHTTPClient()


@pytest.fixture
def full_specs():
    return to_marshaled_gzipped_bytes([["latest_gem", "1.0.0", "ruby"], ["other", "0.1.0", "ruby"]])


@pytest.fixture
def latest_specs():
    return to_marshaled_gzipped_bytes([["latest_gem", "1.0.0", "ruby"]])
