"""Tests for the gem preloader worker pool and progress reporting."""

import io
import re
import threading
import time

import pytest

from common.errors import TransportError
from preload.preloader import GemPreloader, PreloadWindow, ProgressCounter
from registry.models import IndexEntry

from conftest import to_marshaled_gzipped_bytes


@pytest.fixture
def stubs(http_client, full_specs):
    http_client.stub_get("specs.4.8.gz", full_specs)
    http_client.stub_head("gems/latest_gem-1.0.0.gem")
    http_client.stub_head("gems/other-0.1.0.gem")
    return http_client


@pytest.fixture
def out():
    return io.StringIO()


def progress_counts(text):
    return [int(done) for done, _ in re.findall(r"\r(\d+)/(\d+)", text)]


class TestGemPreloader:
    """Windowing and output of a preload run."""

    def test_preloads_all_the_gems_included_in_the_specs_file(self, stubs, out):
        GemPreloader(stubs, out=out).preload()
        stubs.verify_stubbed_calls()

    def test_skips_gems_as_requested(self, stubs, out):
        GemPreloader(stubs, PreloadWindow(skip=1), out=out).preload()
        assert out.getvalue() == "\r2/2"
        assert stubs.heads() == ["gems/other-0.1.0.gem"]

    def test_loads_as_many_gems_as_requested(self, stubs, out):
        GemPreloader(stubs, PreloadWindow(limit=1), out=out).preload()
        assert out.getvalue() == "\r1/2"
        assert stubs.heads() == ["gems/latest_gem-1.0.0.gem"]

    def test_loads_only_the_last_gem_when_requested(self, stubs, out):
        GemPreloader(stubs, PreloadWindow(skip=1, limit=1), out=out).preload()
        assert out.getvalue() == "\r2/2"

    def test_loads_no_gem_at_all_when_the_skip_is_larger_than_the_size(self, stubs, out):
        GemPreloader(stubs, PreloadWindow(skip=3), out=out).preload()
        assert out.getvalue() == ""
        assert stubs.heads() == []

    def test_loads_no_gem_at_all_when_the_limit_is_zero(self, stubs, out):
        GemPreloader(stubs, PreloadWindow(limit=0), out=out).preload()
        assert out.getvalue() == ""
        assert stubs.heads() == []

    def test_loads_in_order_when_using_only_one_thread(self, stubs, out):
        GemPreloader(stubs, threads=1, out=out).preload()
        assert out.getvalue() == "\r1/2\r2/2"
        assert stubs.heads() == ["gems/latest_gem-1.0.0.gem", "gems/other-0.1.0.gem"]

    def test_latest_index(self, http_client, latest_specs, out):
        http_client.stub_get("latest_specs.4.8.gz", latest_specs)
        http_client.stub_head("gems/latest_gem-1.0.0.gem")

        GemPreloader(http_client, latest=True, out=out).preload()

        assert out.getvalue() == "\r1/1"

    def test_platform_gems_use_suffixed_path(self, http_client, out):
        http_client.stub_get(
            "specs.4.8.gz",
            to_marshaled_gzipped_bytes([["nokogiri", "1.15.4", "x86_64-linux"]]),
        )

        GemPreloader(http_client, out=out).preload()

        assert http_client.heads() == ["gems/nokogiri-1.15.4-x86_64-linux.gem"]

    def test_custom_specs_source(self, http_client, out):
        class FixedSpecs:
            def fetch(self):
                return [IndexEntry("a", "1"), IndexEntry("b", "2")]

        GemPreloader(http_client, specs=FixedSpecs(), threads=1, out=out).preload()

        assert http_client.heads() == ["gems/a-1.gem", "gems/b-2.gem"]

    def test_index_failure_propagates(self, http_client, out):
        with pytest.raises(TransportError):
            GemPreloader(http_client, out=out).preload()
        assert out.getvalue() == ""


class TestFailureIsolation:
    """Failed touches are counted and reported, never raised."""

    def test_failures_still_count(self, http_client, full_specs, out):
        http_client.stub_get("specs.4.8.gz", full_specs)
        http_client.stub_head("gems/latest_gem-1.0.0.gem", TransportError("connection reset"))
        http_client.stub_head("gems/other-0.1.0.gem", False)

        result = GemPreloader(http_client, threads=1, out=out).preload()

        assert out.getvalue() == "\r1/2\r2/2"
        assert result.attempted == 2
        assert result.failed == ["latest_gem-1.0.0", "other-0.1.0"]
        assert result.succeeded == 0

    def test_unexpected_errors_are_isolated(self, http_client, full_specs, out):
        http_client.stub_get("specs.4.8.gz", full_specs)
        http_client.stub_head("gems/latest_gem-1.0.0.gem", RuntimeError("bug"))
        http_client.stub_head("gems/other-0.1.0.gem")

        result = GemPreloader(http_client, threads=2, out=out).preload()

        assert sorted(progress_counts(out.getvalue())) == [1, 2]
        assert result.failed == ["latest_gem-1.0.0"]
        assert result.succeeded == 1

    def test_failures_are_logged(self, http_client, full_specs, out, caplog):
        http_client.stub_get("specs.4.8.gz", full_specs)
        http_client.stub_head("gems/latest_gem-1.0.0.gem")

        with caplog.at_level("WARNING"):
            GemPreloader(http_client, threads=1, out=out).preload()

        assert "other-0.1.0" in caplog.text


class TestConcurrency:
    """Progress stays exact with many workers."""

    def test_counter_is_monotonic_with_many_threads(self, http_client, out):
        names = [[f"gem{i}", "1.0.0", "ruby"] for i in range(200)]
        http_client.stub_get("specs.4.8.gz", to_marshaled_gzipped_bytes(names))
        for name, version, _ in names:
            http_client.stub_head(f"gems/{name}-{version}.gem")

        result = GemPreloader(http_client, threads=16, out=out).preload()

        assert progress_counts(out.getvalue()) == list(range(1, 201))
        assert out.getvalue().endswith("\r200/200")
        assert sorted(http_client.heads()) == sorted(f"gems/{n}-{v}.gem" for n, v, _ in names)
        assert result.attempted == 200
        assert result.failed == []

    def test_all_tasks_finish_before_preload_returns(self, http_client, out):
        names = [[f"gem{i}", "1.0.0", "ruby"] for i in range(20)]
        http_client.stub_get("specs.4.8.gz", to_marshaled_gzipped_bytes(names))
        finished = []
        lock = threading.Lock()

        def slow_head(path):
            time.sleep(0.01)
            with lock:
                finished.append(path)
            return True

        http_client.head_exists = slow_head

        GemPreloader(http_client, threads=4, out=out).preload()

        assert len(finished) == 20


class TestPreloadWindow:
    """Skip/limit slicing."""

    entries = [IndexEntry("a", "1"), IndexEntry("b", "1"), IndexEntry("c", "1")]

    @pytest.mark.parametrize(
        "skip, limit, expected",
        [
            (0, None, ["a", "b", "c"]),
            (1, None, ["b", "c"]),
            (0, 2, ["a", "b"]),
            (1, 1, ["b"]),
            (2, 5, ["c"]),
            (5, None, []),
            (0, 0, []),
        ],
    )
    def test_apply(self, skip, limit, expected):
        selected = PreloadWindow(skip=skip, limit=limit).apply(self.entries)
        assert [entry.name for entry in selected] == expected

    def test_rejects_negative_values(self):
        with pytest.raises(ValueError):
            PreloadWindow(skip=-1)
        with pytest.raises(ValueError):
            PreloadWindow(limit=-1)

    def test_rejects_zero_threads(self, http_client):
        with pytest.raises(ValueError):
            GemPreloader(http_client, threads=0)


class TestProgressCounter:
    """The shared counter."""

    def test_writes_every_increment(self):
        out = io.StringIO()
        counter = ProgressCounter(3, out)
        counter.increment()
        counter.increment()
        assert out.getvalue() == "\r1/3\r2/3"
        assert counter.value == 2

    def test_start_offset(self):
        out = io.StringIO()
        counter = ProgressCounter(10, out, start=7)
        assert counter.increment() == 8
        assert out.getvalue() == "\r8/10"

    def test_concurrent_increments(self):
        out = io.StringIO()
        counter = ProgressCounter(800, out)

        def bump():
            for _ in range(100):
                counter.increment()

        threads = [threading.Thread(target=bump) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert counter.value == 800
        assert progress_counts(out.getvalue()) == list(range(1, 801))
