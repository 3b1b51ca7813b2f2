"""
Test orchestration.

``TestRunner`` owns one ``TestRun`` from creation to the written results:

    setup_test      launch the browser, open the page, attach listeners
    do_navigation   navigate, capture, collect metrics, close the session
    post_process    merge the HAR, extract the filmstrip, write artifacts

Event handlers only append to ``RunTelemetry`` while the session is open.
The telemetry is sealed right after the session closes, and only then does
post-processing read it.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

from telescope import connectivity, report
from telescope.browsers import BrowserConfig
from telescope.config import TestOptions, normalize_options
from telescope.exceptions import TelescopeError, UploadError
from telescope.filmstrip import create_filmstrip
from telescope.har import fill_out_har, load_har
from telescope.metrics import MetricsCollector
from telescope.models import (
    FilmstripFrame,
    MetricsDocument,
    RunPaths,
    RunState,
    TestRun,
    generate_test_id,
)
from telescope.priorities import PriorityCorrelator
from telescope.results import ResultWriter
from telescope.session import (
    BrowserSession,
    CapturedArtifacts,
    NavigationOutcome,
    supports_inspection,
)
from telescope.telemetry import RunTelemetry
from telescope.upload import upload_results, zip_results

logger = logging.getLogger(__name__)


@dataclass
class TestResult:
    success: bool
    test_id: Optional[str] = None
    results_path: Optional[str] = None
    error: Optional[str] = None
    dry: bool = False
    uploaded_test_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


class TestRunner:
    def __init__(
        self,
        options: TestOptions,
        session_factory=BrowserSession,
        browser_config: Optional[BrowserConfig] = None,
    ):
        if options.debug:
            logging.getLogger("telescope").setLevel(logging.DEBUG)

        test_id = generate_test_id()
        paths = RunPaths.for_test(test_id, options.results_root, options.temp_root)
        paths.results.mkdir(parents=True, exist_ok=True)

        self.run = TestRun(test_id=test_id, url=options.url, options=options, paths=paths)
        self.telemetry = RunTelemetry()
        self.engine_config = (browser_config or BrowserConfig()).get_browser_config(
            options.browser, options, paths.temporary_context
        )
        self.engine_config.record_to(paths.har, paths.results)
        self.writer = ResultWriter(paths)

        self.session = None
        self.metrics = MetricsDocument()
        self.artifacts = CapturedArtifacts()
        self.filmstrip: List[FilmstripFrame] = []
        self._session_factory = session_factory
        self._throttled = False

    @property
    def test_id(self) -> str:
        return self.run.test_id

    @property
    def paths(self) -> RunPaths:
        return self.run.paths

    def save_config(self) -> None:
        self.writer.write_config(self.run, self.engine_config)

    # Stage 1
    def setup_test(self) -> None:
        options = self.run.options
        self.session = self._session_factory(
            self.engine_config, options, self.paths, self.telemetry
        )
        self.session.launch()
        self.run.transition(RunState.LAUNCHED)
        self.session.open_page()
        self.run.transition(RunState.PAGE_OPEN)

        if supports_inspection(self.session):
            PriorityCorrelator(self.telemetry).attach(self.session.inspection)
            if options.cpu_throttle:
                self.session.inspection.set_cpu_throttle(options.cpu_throttle)
        elif options.cpu_throttle:
            logger.warning("CPU throttling is only available on Chromium browsers")

        self._throttled = connectivity.start_throttle(options.connection_type)

    # Stage 2
    def do_navigation(self) -> NavigationOutcome:
        self.run.transition(RunState.NAVIGATING)
        outcome = self.session.navigate(self.run.url)
        if outcome is NavigationOutcome.TIMED_OUT:
            self.run.transition(RunState.OFFLINE)
        else:
            self.run.transition(RunState.NAVIGATED)

        self.artifacts = self.session.capture_artifacts()
        self.metrics = MetricsCollector(self.session.page).collect()
        self.run.transition(RunState.COLLECTED)

        self.session.close()
        self.telemetry.seal()
        self.run.transition(RunState.CLOSED)
        return outcome

    # Stage 3
    def post_process(self) -> None:
        self._stop_throttle()
        self.merge_har()

        self.writer.write_console(self.telemetry.console_messages())
        self.writer.write_metrics(self.metrics)
        self.writer.write_resources(self.metrics.resource_timings)

        self.filmstrip = create_filmstrip(
            self.artifacts.video_path, self.paths, self.run.options.frame_rate
        )
        self.save_config()

        if self.run.options.html:
            self.write_html_report()
        if self.run.options.list_results:
            self.write_list_page()
        self.run.transition(RunState.COMPLETE)

    def merge_har(self) -> None:
        start = time.perf_counter()
        try:
            har = load_har(self.paths.har)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Error reading har file %s: %s", self.paths.har, e)
            return
        fill_out_har(
            har,
            self.metrics,
            self.telemetry.requests(),
            self.telemetry.priority_queues(),
            self.telemetry.revisions(),
        )
        self.writer.write_har(har)
        logger.debug("Har Edit: %.0fms", (time.perf_counter() - start) * 1000)

    def write_html_report(self) -> None:
        video_file = None
        if self.artifacts.video_path is not None:
            video_file = os.path.relpath(self.artifacts.video_path, self.paths.results)
        html = report.render_test_report(self.run, self.metrics, self.filmstrip, video_file)
        if self.writer.write_report(html) and self.run.options.open_html:
            report.open_in_browser((self.paths.results / "index.html").resolve())

    def write_list_page(self) -> None:
        try:
            tests = report.collect_tests(self.paths.results_root)
        except OSError as e:
            logger.error("Error listing results: %s", e)
            return
        self.writer.write_list_page(report.render_list_page(tests))

    def _stop_throttle(self) -> None:
        if self._throttled:
            connectivity.stop_throttle()
            self._throttled = False

    def cleanup(self) -> None:
        logger.debug("Cleanup started")
        shutil.rmtree(self.paths.temporary_context, ignore_errors=True)
        logger.debug("Cleanup ended")

    def abort(self) -> None:
        """Release whatever the failed run still holds"""
        self.run.transition(RunState.FAILED)
        if self.session is not None:
            try:
                self.session.close()
            except Exception as e:  # the original error matters more
                logger.error("Error closing browser session: %s", e)
        self._stop_throttle()
        self.cleanup()

    def execute(self) -> TestResult:
        """Run every stage; errors propagate after the run is cleaned up"""
        self.save_config()
        if self.run.options.dry:
            self.run.transition(RunState.COMPLETE)
            self.cleanup()
            return TestResult(
                success=True, dry=True, test_id=self.test_id, results_path=str(self.paths.results)
            )
        try:
            self.setup_test()
            self.do_navigation()
            self.post_process()
        except BaseException:
            self.abort()
            raise
        self.cleanup()

        result = TestResult(
            success=True, test_id=self.test_id, results_path=str(self.paths.results)
        )
        if self.run.options.zip or self.run.options.upload_url:
            result.uploaded_test_id = self.package_results()
        return result

    def package_results(self) -> Optional[str]:
        try:
            archive = zip_results(self.paths.results)
        except OSError as e:
            logger.error("Error zipping results: %s", e)
            return None
        if not self.run.options.upload_url:
            return None
        try:
            payload = upload_results(archive, self.run.options.upload_url, name=self.run.url)
        except UploadError as e:
            logger.error("Upload failed: %s", e)
            return e.test_id
        return payload.get("testId")


def launch_test(options: Union[Mapping[str, Any], TestOptions], **kwargs) -> TestResult:
    """
    Run a browser performance test.

    Never raises: failures come back as ``TestResult(success=False)``.

    Example:
        result = launch_test({"url": "https://example.com", "browser": "chrome"})
        if result.success:
            print(result.test_id)
    """
    try:
        if not isinstance(options, TestOptions):
            options = normalize_options(options)
    except TelescopeError as e:
        logger.error("Invalid options: %s", e)
        return TestResult(success=False, error=str(e))

    logger.debug("Options: %s", options)
    try:
        runner = TestRunner(options, **kwargs)
        return runner.execute()
    except Exception as e:
        logger.exception("Test failed")
        return TestResult(success=False, error=str(e))
