"""Static HTML pages for a single run and for the results directory."""

from __future__ import annotations

import json
import logging
import subprocess
import sys
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from html import escape
from pathlib import Path
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

_STYLE = (
    "<style>"
    "body{font-family:sans-serif;margin:2em;color:#222}"
    "table{border-collapse:collapse}"
    "td,th{border:1px solid #ccc;padding:4px 8px;text-align:left}"
    ".filmstrip{display:flex;flex-wrap:wrap;gap:8px}"
    ".filmstrip figure{margin:0;width:160px}"
    ".filmstrip img{width:160px}"
    "</style>"
)


def _ms(value) -> str:
    return "n/a" if value is None else f"{value:.0f} ms"


def _rows(rows) -> str:
    return "".join(
        f"<tr><th>{escape(label)}</th><td>{escape(str(value))}</td></tr>"
        for label, value in rows
    )


def render_test_report(run, metrics, filmstrip, video_file=None) -> str:
    """Render the per-run index.html"""
    nav = metrics.navigation_timing
    fcp = next(
        (p.start_time for p in metrics.paint_timing if p.name == "first-contentful-paint"),
        None,
    )
    lcp = metrics.final_lcp()
    summary = [
        ("URL", run.url),
        ("Test ID", run.test_id),
        ("Browser", run.options.browser),
        ("Viewport", f"{run.options.width}x{run.options.height}"),
        ("Time to first byte", _ms(nav.time_to_first_byte() if nav else None)),
        ("First contentful paint", _ms(fcp)),
        ("Largest contentful paint", _ms(lcp.start_time if lcp else None)),
        ("Cumulative layout shift", f"{metrics.cumulative_layout_shift():.4f}"),
        ("Load event end", _ms(nav.load_event_end if nav else None)),
    ]
    frames = "".join(
        f'<figure><img src="{escape(frame.filename)}" alt="frame {frame.num}">'
        f"<figcaption>{frame.ms / 1000:.1f}s</figcaption></figure>"
        for frame in filmstrip
    )
    video = (
        f'<h2>Video</h2><video controls src="{escape(video_file)}"></video>'
        if video_file
        else ""
    )
    return (
        "<!DOCTYPE html><html><head><meta charset='utf-8'>"
        f"<title>Telescope: {escape(run.url)}</title>{_STYLE}</head><body>"
        f"<h1>{escape(run.url)}</h1>"
        f"<table>{_rows(summary)}</table>"
        '<h2>Screenshot</h2><img src="screenshot.png" alt="screenshot" width="480">'
        f'<h2>Filmstrip</h2><div class="filmstrip">{frames}</div>'
        f"{video}"
        '<h2>Artifacts</h2><ul>'
        '<li><a href="pageload.har">pageload.har</a></li>'
        '<li><a href="metrics.json">metrics.json</a></li>'
        '<li><a href="resources.json">resources.json</a></li>'
        '<li><a href="console.json">console.json</a></li>'
        '<li><a href="config.json">config.json</a></li>'
        "</ul></body></html>"
    )


def _config_date(test: Dict[str, Any]) -> datetime:
    try:
        date = parsedate_to_datetime(test["config"]["date"])
    except (KeyError, TypeError, ValueError):
        return datetime.min.replace(tzinfo=timezone.utc)
    if date.tzinfo is None:
        date = date.replace(tzinfo=timezone.utc)
    return date


def collect_tests(results_root: Path) -> List[Dict[str, Any]]:
    """Every readable run under results_root, newest first"""
    tests = []
    for folder in sorted(p for p in Path(results_root).iterdir() if p.is_dir()):
        try:
            with open(folder / "config.json", encoding="utf-8") as f:
                config = json.load(f)
        except (OSError, json.JSONDecodeError):
            continue
        tests.append({"folder": folder.name, "config": config})
    return sorted(tests, key=_config_date, reverse=True)


def render_list_page(tests: List[Dict[str, Any]]) -> str:
    rows = "".join(
        "<tr>"
        f'<td><a href="{escape(t["folder"])}/index.html">{escape(t["folder"])}</a></td>'
        f'<td>{escape(str(t["config"].get("url", "")))}</td>'
        f'<td>{escape(str(t["config"].get("options", {}).get("browser", "")))}</td>'
        f'<td>{escape(str(t["config"].get("date", "")))}</td>'
        "</tr>"
        for t in tests
    )
    return (
        "<!DOCTYPE html><html><head><meta charset='utf-8'>"
        f"<title>Telescope results</title>{_STYLE}</head><body>"
        "<h1>Telescope results</h1><table>"
        "<tr><th>Test</th><th>URL</th><th>Browser</th><th>Date</th></tr>"
        f"{rows}</table></body></html>"
    )


def open_in_browser(path: Path) -> None:
    """Open a file with the platform's default handler"""
    if sys.platform == "darwin":
        cmd = ["open", str(path)]
    elif sys.platform == "win32":
        cmd = ["cmd", "/c", "start", "", str(path)]
    else:
        cmd = ["xdg-open", str(path)]
    try:
        subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
    except OSError as e:
        logger.error("Error opening HTML report: %s", e)
