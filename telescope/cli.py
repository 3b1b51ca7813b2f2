"""Command line front end: ``telescope -u https://example.com -b firefox``"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from telescope.browsers import BrowserConfig
from telescope.config import DEFAULT_OPTIONS, normalize_options
from telescope.connectivity import NETWORK_PROFILES
from telescope.exceptions import ConfigError
from telescope.runner import launch_test

logger = logging.getLogger(__name__)


def configure_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="telescope", description="Cross-browser synthetic testing agent"
    )
    parser.add_argument("-u", "--url", required=True, help="URL to run tests against")
    parser.add_argument(
        "-b",
        "--browser",
        choices=BrowserConfig.get_browsers(),
        default=DEFAULT_OPTIONS["browser"],
        help="Browser to run tests with",
    )
    parser.add_argument("-H", "--headers", help="Any custom headers to apply to requests, as JSON")
    parser.add_argument("-c", "--cookies", help="Any custom cookies to apply, as JSON")
    parser.add_argument(
        "-f", "--flags", help="A comma separated list of Chromium flags to launch Chrome with"
    )
    parser.add_argument(
        "--blockDomains",
        dest="block_domains",
        nargs="+",
        default=[],
        help="Domains to block, comma separated or a JSON array",
    )
    parser.add_argument(
        "--block",
        nargs="+",
        default=[],
        help="URL substrings to block, comma separated or a JSON array",
    )
    parser.add_argument(
        "--firefoxPrefs",
        dest="firefox_prefs",
        help='Firefox user preferences to apply (Firefox only). Example: \'{"network.trr.mode": 2}\'',
    )
    parser.add_argument("--cpuThrottle", dest="cpu_throttle", help="CPU throttling factor")
    parser.add_argument(
        "--connectionType",
        dest="connection_type",
        choices=list(NETWORK_PROFILES),
        help="Network connection type. By default, no throttling is applied.",
    )
    parser.add_argument("--width", default=str(DEFAULT_OPTIONS["width"]), help="Viewport width, in pixels")
    parser.add_argument("--height", default=str(DEFAULT_OPTIONS["height"]), help="Viewport height, in pixels")
    parser.add_argument(
        "--frameRate",
        dest="frame_rate",
        default=str(DEFAULT_OPTIONS["frame_rate"]),
        help="Filmstrip frame rate, in frames per second",
    )
    parser.add_argument("--disableJS", dest="disable_js", action="store_true", help="Disable JavaScript")
    parser.add_argument("--debug", action="store_true", help="Output debug lines")
    parser.add_argument(
        "--auth", help='Basic HTTP authentication (Expects: {"username": "", "password": ""})'
    )
    parser.add_argument(
        "--timeout",
        default=str(DEFAULT_OPTIONS["timeout"]),
        help="Maximum time (in milliseconds) to wait for the page to load",
    )
    parser.add_argument("--html", action="store_true", help="Generate HTML report")
    parser.add_argument(
        "--openHtml", dest="open_html", action="store_true", help="Open HTML report in browser (requires --html)"
    )
    parser.add_argument("--list", dest="list_results", action="store_true", help="Generate list of results in HTML")
    parser.add_argument(
        "--overrideHost",
        dest="override_host",
        help='Override the hostname of a URI with another host (Expects: {"example.com": "example.org"})',
    )
    parser.add_argument("--zip", action="store_true", help="Zip the results of the test into the results directory")
    parser.add_argument("--upload-url", dest="upload_url", help="Upload the zipped results to this URL")
    parser.add_argument(
        "--dry", action="store_true", help="Dry run (do not run test, just save config and cleanup)"
    )
    parser.add_argument(
        "--virtual-display",
        dest="virtual_display",
        action="store_true",
        help="Run a headed browser inside an Xvfb virtual display",
    )
    parser.add_argument(
        "--results-dir", dest="results_root", default=DEFAULT_OPTIONS["results_root"], help="Where results are written"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    args = build_parser().parse_args(argv)
    configure_logging(args.debug)

    raw = vars(args)
    # kept for repeatability
    raw["command"] = list(argv)
    try:
        options = normalize_options(raw)
    except ConfigError as e:
        print(f"Invalid options: {e}", file=sys.stderr)
        return 1

    result = launch_test(options)
    if not result.success:
        print(f"Test failed: {result.error}", file=sys.stderr)
        return 1
    print(f"Test ID:{result.test_id}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
