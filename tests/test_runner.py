"""End to end runs of the orchestrator against a session double."""

import json
import logging

from telescope import runner as runner_module
from telescope.exceptions import BrowserLaunchError
from telescope.models import RunState
from telescope.runner import launch_test
from telescope.session import NavigationOutcome
from tests.conftest import FakeSession


class TimingOutSession(FakeSession):
    outcome = NavigationOutcome.TIMED_OUT

    def capture_artifacts(self):
        artifacts = super().capture_artifacts()
        self.paths.screenshot.write_bytes(b"png")
        artifacts.screenshot_path = self.paths.screenshot
        return artifacts


class FailingSession(FakeSession):
    launch_error = BrowserLaunchError("Could not launch chrome")


class TestRunnerLifecycle:
    def test_successful_run_writes_artifacts(self, options):
        runner = runner_module.TestRunner(options, session_factory=FakeSession)
        result = runner.execute()

        assert result.success
        assert runner.run.state is RunState.COMPLETE
        assert runner.session.calls == [
            "launch",
            "open_page",
            "navigate",
            "capture_artifacts",
            "close",
        ]
        results = runner.paths.results
        for name in ("config.json", "console.json", "metrics.json", "resources.json", "pageload.har"):
            assert (results / name).exists(), name
        assert not runner.paths.temporary_context.exists()

        har = json.loads((results / "pageload.har").read_text())
        assert har["log"]["entries"][0]["_request_start"] == 5.0
        console = json.loads((results / "console.json").read_text())
        assert console[0]["text"] == "hello"

    def test_navigation_timeout_still_produces_results(self, options):
        runner = runner_module.TestRunner(options, session_factory=TimingOutSession)
        result = runner.execute()

        assert result.success
        assert runner.run.state is RunState.COMPLETE
        assert runner.paths.screenshot.exists()
        metrics = json.loads((runner.paths.results / "metrics.json").read_text())
        assert "navigationTiming" in metrics
        assert (runner.paths.results / "pageload.har").exists()

    def test_html_report_and_list(self, raw_options, tmp_path):
        result = launch_test(
            {**raw_options, "html": True, "list_results": True}, session_factory=FakeSession
        )

        assert result.success
        report = (tmp_path / "results" / result.test_id / "index.html").read_text()
        assert "https://example.com/" in report
        listing = (tmp_path / "results" / "index.html").read_text()
        assert f'href="{result.test_id}/index.html"' in listing


class TestLaunchTest:
    def test_dry_run_writes_config_only(self, raw_options, tmp_path):
        result = launch_test({**raw_options, "dry": True}, session_factory=FakeSession)

        assert result.success
        assert result.dry
        results = tmp_path / "results" / result.test_id
        assert [p.name for p in results.iterdir()] == ["config.json"]

    def test_invalid_options_reported(self, raw_options):
        result = launch_test({**raw_options, "headers": "{oops"})
        assert not result.success
        assert "headers" in result.error
        assert result.test_id is None

    def test_launch_failure_cleans_up(self, raw_options, tmp_path):
        result = launch_test(raw_options, session_factory=FailingSession)

        assert not result.success
        assert "Could not launch chrome" in result.error
        assert list((tmp_path / "tmp").iterdir()) == []

    def test_debug_option_enables_debug_logging(self, raw_options):
        package_logger = logging.getLogger("telescope")
        previous = package_logger.level
        try:
            package_logger.setLevel(logging.WARNING)
            result = launch_test({**raw_options, "debug": True}, session_factory=FakeSession)
            assert result.success
            assert package_logger.isEnabledFor(logging.DEBUG)
        finally:
            package_logger.setLevel(previous)

    def test_debug_off_leaves_logging_alone(self, raw_options):
        package_logger = logging.getLogger("telescope")
        previous = package_logger.level
        try:
            package_logger.setLevel(logging.WARNING)
            launch_test({**raw_options, "dry": True}, session_factory=FakeSession)
            assert not package_logger.isEnabledFor(logging.DEBUG)
        finally:
            package_logger.setLevel(previous)
