"""Tests for in-page metric collection against a scripted page."""

from telescope.metrics import _ENTRIES_BY_TYPE, _READ_OBSERVED, MetricsCollector


class ScriptedPage:
    """Answers the collector's evaluate calls from canned entries"""

    def __init__(self, observed=None, by_type=None):
        self.observed = observed or {}
        self.by_type = by_type or {}
        self.installed = []

    def evaluate(self, script, arg=None):
        if script == _READ_OBSERVED:
            return self.observed.get(arg, [])
        if script == _ENTRIES_BY_TYPE:
            return [e for t in arg for e in self.by_type.get(t, [])]
        self.installed.append(script)
        return None


class TestMetricsCollector:
    def test_collect_builds_document(self):
        page = ScriptedPage(
            observed={
                "navigation": [{"startTime": 0, "responseStart": 75, "type": "navigate"}],
                "largest-contentful-paint": [
                    {"startTime": 200, "url": ""},
                    {"startTime": 650, "url": "https://x/hero.jpg"},
                ],
                "layout-shift": [{"value": 0.02, "hadRecentInput": False}],
            },
            by_type={
                "paint": [{"name": "first-contentful-paint", "startTime": 180}],
                "mark": [{"name": "app-ready", "entryType": "mark", "startTime": 300}],
                "measure": [{"name": "boot", "entryType": "measure", "duration": 120}],
                "resource": [{"name": "https://x/hero.jpg", "transferSize": 1024}],
            },
        )

        metrics = MetricsCollector(page).collect()

        assert metrics.navigation_timing.time_to_first_byte() == 75
        assert metrics.paint_timing[0].name == "first-contentful-paint"
        assert [u.entry_type for u in metrics.user_timing] == ["mark", "measure"]
        assert metrics.final_lcp().url == "https://x/hero.jpg"
        assert metrics.cumulative_layout_shift() == 0.02
        assert metrics.resource_timings == [{"name": "https://x/hero.jpg", "transferSize": 1024}]

    def test_observers_installed_per_type(self):
        page = ScriptedPage()
        MetricsCollector(page).collect()
        assert len(page.installed) == 3
        assert "'navigation'" in page.installed[0]
        assert "'largest-contentful-paint'" in page.installed[1]
        assert "'layout-shift'" in page.installed[2]
        assert all("takeRecords" in script for script in page.installed)

    def test_missing_navigation_entry(self):
        metrics = MetricsCollector(ScriptedPage()).collect()
        assert metrics.navigation_timing.is_empty()
        assert metrics.to_dict()["navigationTiming"] == {}
        assert metrics.resource_timings == []
        assert "resourceTimings" not in metrics.to_dict()
