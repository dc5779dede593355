"""Tests for the shared HTTP client."""

from unittest.mock import MagicMock

import pytest
import requests

from common.errors import TransportError
from common.http_client import HTTPClient
from constants import Constants


def make_response(status_code=200, content=b"", url="https://rubygems.org/specs.4.8.gz"):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.content = content
    response.url = url
    return response


@pytest.fixture
def session():
    session = MagicMock()
    session.headers = {}
    return session


class TestUrlBuilding:
    """Paths are resolved against the base URL."""

    def test_relative_path(self, session):
        client = HTTPClient("https://rubygems.org/", session=session)
        assert client.url_for("specs.4.8.gz") == "https://rubygems.org/specs.4.8.gz"
        assert client.url_for("/api/v1/dependencies?gems=foo") == (
            "https://rubygems.org/api/v1/dependencies?gems=foo"
        )

    def test_path_prefix_is_kept(self, session):
        client = HTTPClient("http://localhost:9292/private", session=session)
        assert client.url_for("gems/foo-1.0.gem") == "http://localhost:9292/private/gems/foo-1.0.gem"

    def test_absolute_url_passes_through(self, session):
        client = HTTPClient("https://rubygems.org", session=session)
        assert client.url_for("https://index.rubygems.org/info/rack") == "https://index.rubygems.org/info/rack"

    def test_pool_size_mounts_adapter(self):
        session = requests.Session()
        HTTPClient("http://localhost:9292", session=session, pool_size=32)

        for url in ("http://localhost:9292/gems/a.gem", "https://rubygems.org/specs.4.8.gz"):
            adapter = session.get_adapter(url)
            assert adapter.poolmanager.connection_pool_kw["maxsize"] == 32

    def test_default_pool_is_left_alone(self, session):
        HTTPClient("http://localhost:9292", session=session)
        session.mount.assert_not_called()

    def test_user_agent(self, session):
        HTTPClient("https://rubygems.org", session=session, headers={"X-Trace": "1"})
        assert session.headers["User-Agent"] == Constants.USER_AGENT
        assert session.headers["X-Trace"] == "1"


class TestGet:
    """GET returns bodies or raises TransportError."""

    def test_returns_body(self, session):
        session.request.return_value = make_response(content=b"payload")
        client = HTTPClient("https://rubygems.org", session=session, timeout=5)

        assert client.get("specs.4.8.gz") == b"payload"
        session.request.assert_called_once_with(
            "GET", "https://rubygems.org/specs.4.8.gz", timeout=5, allow_redirects=True
        )

    def test_default_timeout(self, session, monkeypatch):
        monkeypatch.setattr(Constants, "REQUEST_TIMEOUT", 7)
        session.request.return_value = make_response()
        HTTPClient("https://rubygems.org", session=session).get("x")
        assert session.request.call_args.kwargs["timeout"] == 7

    def test_error_status(self, session):
        session.request.return_value = make_response(status_code=503)
        client = HTTPClient("https://rubygems.org", session=session)

        with pytest.raises(TransportError) as excinfo:
            client.get("specs.4.8.gz")
        assert excinfo.value.status_code == 503

    def test_timeout(self, session):
        session.request.side_effect = requests.Timeout("slow")
        client = HTTPClient("https://rubygems.org", session=session)

        with pytest.raises(TransportError, match="timed out") as excinfo:
            client.get("specs.4.8.gz")
        assert isinstance(excinfo.value.__cause__, requests.Timeout)

    def test_connection_error(self, session):
        session.request.side_effect = requests.ConnectionError("refused")
        client = HTTPClient("https://rubygems.org", session=session)

        with pytest.raises(TransportError, match="refused"):
            client.get("specs.4.8.gz")


class TestHeadExists:
    """HEAD reports success as a bool."""

    def test_success(self, session):
        session.request.return_value = make_response(status_code=200)
        client = HTTPClient("http://localhost:9292", session=session)

        assert client.head_exists("gems/foo-1.0.gem") is True
        assert session.request.call_args[0] == ("HEAD", "http://localhost:9292/gems/foo-1.0.gem")

    def test_not_found(self, session):
        session.request.return_value = make_response(status_code=404)
        client = HTTPClient("http://localhost:9292", session=session)

        assert client.head_exists("gems/foo-1.0.gem") is False

    def test_connection_error_raises(self, session):
        session.request.side_effect = requests.ConnectionError("refused")
        client = HTTPClient("http://localhost:9292", session=session)

        with pytest.raises(TransportError):
            client.head_exists("gems/foo-1.0.gem")

    def test_context_manager_closes_session(self, session):
        with HTTPClient("http://localhost:9292", session=session):
            pass
        session.close.assert_called_once()
