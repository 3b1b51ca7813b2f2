"""Shared fixtures: options rooted in tmp_path and a browser session double."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from telescope.config import normalize_options
from telescope.models import ConsoleMessage, RequestRecord, RequestTiming
from telescope.session import CapturedArtifacts, NavigationOutcome


@pytest.fixture
def raw_options(tmp_path: Path):
    return {
        "url": "https://example.com/",
        "results_root": str(tmp_path / "results"),
        "temp_root": str(tmp_path / "tmp"),
    }


@pytest.fixture
def options(raw_options):
    return normalize_options(raw_options)


def make_timing(**overrides) -> RequestTiming:
    values = {
        "start_time": 1000.0,
        "domain_lookup_start": 1.0,
        "domain_lookup_end": 2.0,
        "connect_start": 3.0,
        "secure_connection_start": -1,
        "connect_end": 4.0,
        "request_start": 5.0,
        "response_start": 6.0,
        "response_end": 7.0,
    }
    values.update(overrides)
    return RequestTiming(**values)


class FakePage:
    """Answers every metrics evaluate with an empty list"""

    def __init__(self):
        self.evaluated = []

    def evaluate(self, script, arg=None):
        self.evaluated.append(script)
        return []


class FakeSession:
    """
    Stands in for BrowserSession. Records the calls the runner makes, feeds
    telemetry during navigation and writes a HAR on close the way a real
    persistent context does.
    """

    outcome = NavigationOutcome.LOADED
    launch_error = None

    def __init__(self, engine_config, options, paths, telemetry):
        self.engine_config = engine_config
        self.options = options
        self.paths = paths
        self.telemetry = telemetry
        self.page = FakePage()
        self.inspection = None
        self.calls = []

    def launch(self):
        self.calls.append("launch")
        self.paths.temporary_context.mkdir(parents=True, exist_ok=True)
        if self.launch_error is not None:
            raise self.launch_error

    def open_page(self):
        self.calls.append("open_page")
        return self.page

    def navigate(self, url):
        self.calls.append("navigate")
        self.telemetry.add_console_message(ConsoleMessage(type="log", text="hello"))
        self.telemetry.add_request(RequestRecord(url=url, timing=make_timing()))
        return self.outcome

    def capture_artifacts(self):
        self.calls.append("capture_artifacts")
        return CapturedArtifacts()

    def close(self):
        self.calls.append("close")
        har = {
            "log": {
                "pages": [{"id": "page@1", "pageTimings": {}}],
                "entries": [{"request": {"url": self.options.url}}],
            }
        }
        self.paths.har.parent.mkdir(parents=True, exist_ok=True)
        self.paths.har.write_text(json.dumps(har), encoding="utf-8")
