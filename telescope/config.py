"""
Option normalisation.

Options arrive either as strings from the command line or as Python
objects from ``launch_test``. ``normalize_options`` turns both into a frozen
``TestOptions`` and rejects malformed values before any browser resource is
allocated.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from telescope.browsers import BrowserConfig
from telescope.connectivity import NETWORK_PROFILES
from telescope.exceptions import ConfigError

DEFAULT_OPTIONS: Dict[str, Any] = {
    "browser": "chrome",
    "width": 1366,
    "height": 768,
    "frame_rate": 1,
    "timeout": 30000,
    "block_domains": [],
    "block": [],
    "disable_js": False,
    "debug": False,
    "html": False,
    "open_html": False,
    "list_results": False,
    "connection_type": None,
    "auth": None,
    "zip": False,
    "dry": False,
    "virtual_display": False,
    "results_root": "results",
    "temp_root": "tmp",
}


@dataclass(frozen=True)
class TestOptions:
    url: str
    browser: str = DEFAULT_OPTIONS["browser"]
    width: int = DEFAULT_OPTIONS["width"]
    height: int = DEFAULT_OPTIONS["height"]
    frame_rate: int = DEFAULT_OPTIONS["frame_rate"]
    timeout: int = DEFAULT_OPTIONS["timeout"]
    block_domains: Tuple[str, ...] = ()
    block: Tuple[str, ...] = ()
    disable_js: bool = False
    headers: Optional[Dict[str, str]] = None
    cookies: Optional[List[Dict[str, Any]]] = None
    auth: Optional[Dict[str, str]] = None
    args: Tuple[str, ...] = ()
    firefox_prefs: Optional[Dict[str, Any]] = None
    override_host: Optional[Dict[str, str]] = None
    cpu_throttle: Optional[float] = None
    connection_type: Optional[str] = None
    debug: bool = False
    html: bool = False
    open_html: bool = False
    list_results: bool = False
    zip: bool = False
    dry: bool = False
    virtual_display: bool = False
    upload_url: Optional[str] = None
    results_root: str = DEFAULT_OPTIONS["results_root"]
    temp_root: str = DEFAULT_OPTIONS["temp_root"]
    command: Tuple[str, ...] = field(default=())

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot for config.json; credentials are masked."""
        snapshot = asdict(self)
        if snapshot.get("auth"):
            snapshot["auth"] = {**snapshot["auth"], "password": "********"}
        for key in ("block_domains", "block", "args", "command"):
            snapshot[key] = list(snapshot[key])
        return snapshot


def _parse_int(value: Any, name: str, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f'Option "{name}" must be an integer, got {value!r}')
    if parsed == 0:
        return default
    if parsed < 0:
        raise ConfigError(f'Option "{name}" must not be negative, got {parsed}')
    return parsed


def _parse_json(value: Any, name: str, expected) -> Any:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise ConfigError(f'Problem parsing "{name}" option as JSON - {e}')
    if not isinstance(value, expected):
        if isinstance(expected, tuple):
            wanted = " or ".join(t.__name__ for t in expected)
        else:
            wanted = expected.__name__
        raise ConfigError(
            f'Option "{name}" must be a JSON {wanted}, got {type(value).__name__}'
        )
    return value


def parse_list_option(choices: Any, name: str) -> Tuple[str, ...]:
    """Accept JSON arrays or comma separated strings, or a list mixing both."""
    if not choices:
        return ()
    if isinstance(choices, str):
        choices = [choices]
    chosen: List[str] = []
    for group in choices:
        if not isinstance(group, str):
            raise ConfigError(f'Problem parsing "{name}" options - {group!r}')
        if "[" in group:
            try:
                parsed = json.loads(group)
            except json.JSONDecodeError as e:
                raise ConfigError(f'Problem parsing "{name}" options - {e}')
            if not isinstance(parsed, list):
                raise ConfigError(f'Problem parsing "{name}" options - not an array')
            chosen.extend(str(item) for item in parsed)
        else:
            chosen.extend(opt for opt in group.split(",") if opt)
    return tuple(chosen)


def _parse_cookies(value: Any) -> Optional[List[Dict[str, Any]]]:
    cookies = _parse_json(value, "cookies", (dict, list))
    if cookies is None:
        return None
    if isinstance(cookies, dict):
        # a single cookie is allowed
        cookies = [cookies]
    for cookie in cookies:
        if not isinstance(cookie, dict) or "name" not in cookie:
            raise ConfigError(f"Invalid cookie {cookie!r}: expected an object with a name")
    return cookies


def _parse_auth(value: Any) -> Optional[Dict[str, str]]:
    auth = _parse_json(value, "auth", dict)
    if auth is None:
        return None
    if "username" not in auth or "password" not in auth:
        raise ConfigError('Option "auth" expects {"username": "", "password": ""}')
    return {"username": str(auth["username"]), "password": str(auth["password"])}


def _parse_flags(value: Any) -> Tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return tuple(flag.strip() for flag in value.split(",") if flag.strip())
    return tuple(str(flag) for flag in value)


def _parse_cpu_throttle(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        rate = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f'Option "cpu_throttle" must be a number, got {value!r}')
    if rate < 1:
        raise ConfigError(f'Option "cpu_throttle" must be at least 1, got {rate}')
    return rate


def normalize_options(options: Mapping[str, Any]) -> TestOptions:
    """
    Normalise raw options into a TestOptions.

    Raises:
        ConfigError: on a missing url, an unknown browser or connection
            type, a negative number or malformed structured data.
    """
    url = options.get("url")
    if not url:
        raise ConfigError('Option "url" is required')

    browser = options.get("browser") or DEFAULT_OPTIONS["browser"]
    if browser not in BrowserConfig.get_browsers():
        raise ConfigError(
            f"Unsupported browser {browser!r}, "
            f"choose one of: {', '.join(BrowserConfig.get_browsers())}"
        )

    connection_type = options.get("connection_type") or None
    if connection_type and connection_type not in NETWORK_PROFILES:
        raise ConfigError(
            f"Unknown connection type {connection_type!r}, "
            f"choose one of: {', '.join(NETWORK_PROFILES)}"
        )

    headers = _parse_json(options.get("headers"), "headers", dict)
    if headers is not None:
        headers = {str(k): str(v) for k, v in headers.items()}

    def flag(name):
        return bool(options.get(name, DEFAULT_OPTIONS.get(name, False)))

    return TestOptions(
        url=url,
        browser=browser,
        width=_parse_int(options.get("width"), "width", DEFAULT_OPTIONS["width"]),
        height=_parse_int(options.get("height"), "height", DEFAULT_OPTIONS["height"]),
        frame_rate=_parse_int(
            options.get("frame_rate"), "frame_rate", DEFAULT_OPTIONS["frame_rate"]
        ),
        timeout=_parse_int(
            options.get("timeout"), "timeout", DEFAULT_OPTIONS["timeout"]
        ),
        block_domains=parse_list_option(options.get("block_domains"), "block_domains"),
        block=parse_list_option(options.get("block"), "block"),
        disable_js=flag("disable_js"),
        headers=headers,
        cookies=_parse_cookies(options.get("cookies")),
        auth=_parse_auth(options.get("auth")),
        args=_parse_flags(options.get("flags") or options.get("args")),
        firefox_prefs=_parse_json(options.get("firefox_prefs"), "firefox_prefs", dict),
        override_host=_parse_json(options.get("override_host"), "override_host", dict),
        cpu_throttle=_parse_cpu_throttle(options.get("cpu_throttle")),
        connection_type=connection_type,
        debug=flag("debug"),
        html=flag("html"),
        open_html=flag("open_html"),
        list_results=flag("list_results"),
        zip=flag("zip"),
        dry=flag("dry"),
        virtual_display=flag("virtual_display"),
        upload_url=options.get("upload_url") or None,
        results_root=options.get("results_root") or DEFAULT_OPTIONS["results_root"],
        temp_root=options.get("temp_root") or DEFAULT_OPTIONS["temp_root"],
        command=tuple(options.get("command") or ()),
    )
