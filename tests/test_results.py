"""Tests for artifact persistence and the HTML reports."""

import json

from telescope import models, report
from telescope.config import normalize_options
from telescope.models import (
    ConsoleMessage,
    FilmstripFrame,
    LCPEvent,
    MetricsDocument,
    NavigationTiming,
    RunPaths,
)
from telescope.results import ResultWriter


def make_run(tmp_path, test_id="abc"):
    options = normalize_options(
        {"url": "https://example.com/", "auth": {"username": "u", "password": "secret"}}
    )
    return models.TestRun(test_id, options.url, options, RunPaths.for_test(test_id, tmp_path / "results"))


class TestResultWriter:
    def test_writes_each_artifact(self, tmp_path):
        run = make_run(tmp_path)
        writer = ResultWriter(run.paths)

        assert writer.write_console([ConsoleMessage(type="log", text="hi")])
        assert writer.write_metrics(MetricsDocument())
        assert writer.write_resources([{"name": "a"}])
        assert writer.write_har({"log": {"entries": []}})
        assert writer.write_config(run)

        results = run.paths.results
        assert json.loads((results / "console.json").read_text()) == [
            {"type": "log", "text": "hi", "location": {}}
        ]
        assert json.loads((results / "metrics.json").read_text())["navigationTiming"] == {}
        assert json.loads((results / "pageload.har").read_text()) == {"log": {"entries": []}}
        config = json.loads((results / "config.json").read_text())
        assert config["url"] == "https://example.com/"
        assert config["date"].endswith("GMT")
        assert config["options"]["auth"]["password"] == "********"
        assert writer.failures == []

    def test_one_failure_does_not_stop_the_rest(self, tmp_path):
        run = make_run(tmp_path)
        writer = ResultWriter(run.paths)

        assert not writer.write_json("resources.json", [object()], "resources")
        assert writer.write_console([])
        assert writer.failures == ["resources"]
        assert (run.paths.results / "console.json").exists()


class TestReports:
    def test_test_report(self, tmp_path):
        run = make_run(tmp_path)
        metrics = MetricsDocument(
            navigation_timing=NavigationTiming(start_time=0, response_start=80, load_event_end=900),
            largest_contentful_paint=[LCPEvent(start_time=650)],
        )
        frames = [FilmstripFrame(num=1, filename="filmstrip/frame_1.jpg", ms=1000)]

        html = report.render_test_report(run, metrics, frames, "video.webm")

        assert "https://example.com/" in html
        assert "80 ms" in html
        assert "650 ms" in html
        assert 'src="filmstrip/frame_1.jpg"' in html
        assert 'src="video.webm"' in html

    def test_collect_tests_newest_first(self, tmp_path):
        for folder, date in (
            ("old", "Mon, 01 Jan 2024 10:00:00 GMT"),
            ("new", "Tue, 02 Jan 2024 10:00:00 GMT"),
        ):
            (tmp_path / folder).mkdir()
            (tmp_path / folder / "config.json").write_text(
                json.dumps({"url": f"https://{folder}/", "date": date})
            )
        (tmp_path / "broken").mkdir()
        (tmp_path / "broken" / "config.json").write_text("{")
        (tmp_path / "empty").mkdir()

        tests = report.collect_tests(tmp_path)

        assert [t["folder"] for t in tests] == ["new", "old"]
        html = report.render_list_page(tests)
        assert 'href="new/index.html"' in html
        assert html.index("https://new/") < html.index("https://old/")
