"""
Persistence of a run's artifacts.

Every artifact is written on its own: a failure is logged and recorded in
``failures`` and the remaining artifacts are still written. A failed write
never fails the run.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from email.utils import format_datetime
from pathlib import Path
from typing import Any, List

from telescope.har import save_har

logger = logging.getLogger(__name__)


class ResultWriter:
    def __init__(self, paths):
        self.paths = paths
        self.failures: List[str] = []

    def _write(self, path: Path, label: str, write) -> bool:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            write(path)
        except (OSError, TypeError, ValueError) as e:
            logger.error("Error writing %s file: %s", label, e)
            self.failures.append(label)
            return False
        logger.debug("Wrote %s", path)
        return True

    def write_json(self, name: str, payload: Any, label: str) -> bool:
        def dump(path):
            with open(path, "w", encoding="utf-8") as f:
                json.dump(payload, f)

        return self._write(self.paths.results / name, label, dump)

    def write_text(self, path: Path, text: str, label: str) -> bool:
        return self._write(path, label, lambda p: p.write_text(text, encoding="utf-8"))

    def write_console(self, messages) -> bool:
        return self.write_json("console.json", [m.to_dict() for m in messages], "console")

    def write_metrics(self, metrics) -> bool:
        return self.write_json("metrics.json", metrics.to_dict(), "metrics")

    def write_resources(self, resources) -> bool:
        return self.write_json("resources.json", resources, "resources")

    def write_har(self, har) -> bool:
        return self._write(self.paths.har, "har", lambda p: save_har(p, har))

    def write_config(self, run, engine_config=None) -> bool:
        payload = {
            "url": run.url,
            "date": format_datetime(datetime.now(timezone.utc), usegmt=True),
            "options": run.options.to_dict(),
            "browserConfig": engine_config.to_dict() if engine_config else None,
        }
        return self.write_json("config.json", payload, "config.json")

    def write_report(self, html: str) -> bool:
        return self.write_text(self.paths.results / "index.html", html, "html")

    def write_list_page(self, html: str) -> bool:
        return self.write_text(self.paths.results_root / "index.html", html, "list html")
