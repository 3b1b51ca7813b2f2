"""Launch configuration for each supported browser."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from telescope.exceptions import ConfigError

logger = logging.getLogger(__name__)

# browser name -> Playwright engine and release channel
ENGINES: Dict[str, Dict[str, Optional[str]]] = {
    "chrome": {"engine": "chromium", "channel": "chrome"},
    "chrome-beta": {"engine": "chromium", "channel": "chrome-beta"},
    "canary": {"engine": "chromium", "channel": "chrome-canary"},
    "edge": {"engine": "chromium", "channel": "msedge"},
    "safari": {"engine": "webkit", "channel": None},
    "firefox": {"engine": "firefox", "channel": None},
}


@dataclass
class EngineConfig:
    name: str
    engine: str
    channel: Optional[str] = None
    launch_options: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_chromium(self) -> bool:
        return self.engine == "chromium"

    def record_to(self, har_path: Path, video_dir: Path) -> None:
        self.launch_options["record_har_path"] = str(har_path)
        self.launch_options["record_video_dir"] = str(video_dir)

    def to_dict(self) -> Dict[str, Any]:
        launch_options = dict(self.launch_options)
        if launch_options.get("http_credentials"):
            launch_options["http_credentials"] = {
                **launch_options["http_credentials"],
                "password": "********",
            }
        return {
            "name": self.name,
            "engine": self.engine,
            "channel": self.channel,
            "launchOptions": launch_options,
        }


class BrowserConfig:
    @staticmethod
    def get_browsers() -> List[str]:
        return list(ENGINES)

    def get_browser_config(self, name: str, options, profile_dir) -> EngineConfig:
        """
        Build launch settings for the named browser.

        Args:
            name: one of get_browsers()
            options: normalised TestOptions
            profile_dir: temporary profile directory for this run

        Raises:
            ConfigError: when the browser is unknown
        """
        if name not in ENGINES:
            raise ConfigError(f"Unsupported browser {name!r}")
        engine = ENGINES[name]["engine"]
        viewport = {"width": options.width, "height": options.height}
        launch_options: Dict[str, Any] = {
            "viewport": viewport,
            "record_video_size": viewport,
            "headless": not options.virtual_display,
        }
        if ENGINES[name]["channel"]:
            launch_options["channel"] = ENGINES[name]["channel"]
        if options.disable_js:
            launch_options["java_script_enabled"] = False
        if options.auth:
            launch_options["http_credentials"] = dict(options.auth)

        args = list(options.args)
        if engine == "chromium" and options.override_host:
            rules = ",".join(
                f"MAP {source} {target}" for source, target in options.override_host.items()
            )
            args.append(f"--host-resolver-rules={rules}")
        elif options.override_host:
            logger.warning("Host overrides are only supported on Chromium browsers")
        if args:
            launch_options["args"] = args

        if engine == "firefox" and options.firefox_prefs:
            self.write_firefox_prefs(Path(profile_dir), options.firefox_prefs)

        return EngineConfig(
            name=name,
            engine=engine,
            channel=ENGINES[name]["channel"],
            launch_options=launch_options,
        )

    @staticmethod
    def write_firefox_prefs(profile_dir: Path, prefs: Dict[str, Any]) -> Path:
        """Write prefs as a user.js file, which Firefox reads from its profile."""
        profile_dir.mkdir(parents=True, exist_ok=True)
        user_js = profile_dir / "user.js"
        lines = [
            f"user_pref({json.dumps(key)}, {json.dumps(value)});"
            for key, value in prefs.items()
        ]
        user_js.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return user_js
