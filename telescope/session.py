"""
Browser session adapter.

One ``BrowserSession`` drives one persistent Playwright context for any
engine. Chromium sessions additionally carry a DevTools inspection channel
(``session.inspection``); on other engines it is ``None``, which callers
treat as an absent capability rather than an error.
"""

from __future__ import annotations

import enum
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from PIL import Image
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright
from pyvirtualdisplay import Display

from telescope.exceptions import BrowserLaunchError, InspectionChannelError
from telescope.models import ConsoleMessage, RequestRecord, RequestTiming

logger = logging.getLogger(__name__)


class NavigationOutcome(enum.Enum):
    LOADED = "loaded"
    TIMED_OUT = "timed_out"


@dataclass
class CapturedArtifacts:
    screenshot_path: Optional[Path] = None
    video_path: Optional[Path] = None


class CDPInspectionChannel:
    """DevTools protocol session attached to the page under test."""

    def __init__(self, cdp_session):
        self._cdp = cdp_session

    @classmethod
    def open(cls, context, page) -> "CDPInspectionChannel":
        try:
            cdp_session = context.new_cdp_session(page)
            cdp_session.send("Network.enable")
        except PlaywrightError as e:
            raise InspectionChannelError(f"Could not open DevTools session: {e}") from e
        return cls(cdp_session)

    def subscribe(self, event: str, handler: Callable[[Dict[str, Any]], None]) -> None:
        self._cdp.on(event, handler)

    def set_cpu_throttle(self, rate: float) -> None:
        logger.info("CPU throttle %sx", rate)
        self._cdp.send("Emulation.setCPUThrottlingRate", {"rate": rate})


class BrowserSession:
    def __init__(
        self,
        engine_config,
        options,
        paths,
        telemetry,
        playwright_factory=sync_playwright,
        display_factory=Display,
    ):
        self.engine_config = engine_config
        self.options = options
        self.paths = paths
        self.telemetry = telemetry
        self._playwright_factory = playwright_factory
        self._display_factory = display_factory
        self._playwright = None
        self._display = None
        self.context = None
        self.page = None
        self.inspection: Optional[CDPInspectionChannel] = None
        self.offline = False

    # Lifecycle
    def launch(self):
        """Start Playwright and open a persistent context in the run's profile dir"""
        try:
            if self.options.virtual_display:
                size = (self.options.width, self.options.height)
                self._display = self._display_factory(visible=0, size=size)
                self._display.start()
            self._playwright = self._playwright_factory().start()
            browser_type = getattr(self._playwright, self.engine_config.engine)
            self.context = browser_type.launch_persistent_context(
                str(self.paths.temporary_context), **self.engine_config.launch_options
            )
        except (PlaywrightError, OSError) as e:
            raise BrowserLaunchError(
                f"Could not launch {self.engine_config.name}: {e}"
            ) from e
        self._prepare_context()
        logger.debug("Launched %s", self.engine_config.name)
        return self.context

    def open_page(self):
        """Grab the context's first page and attach page level listeners"""
        try:
            pages = self.context.pages
            self.page = pages[0] if pages else self.context.new_page()
        except PlaywrightError as e:
            raise BrowserLaunchError(f"Could not open a page: {e}") from e

        if self.engine_config.is_chromium:
            self.inspection = CDPInspectionChannel.open(self.context, self.page)
        self.page.set_default_navigation_timeout(self.options.timeout)
        self._prepare_page(self.page)
        return self.page

    def navigate(self, url: str) -> NavigationOutcome:
        """
        Load url and wait for the network to go idle.

        A navigation timeout puts the context offline so nothing else loads
        while results are captured; the run carries on. Other navigation
        errors propagate.
        """
        try:
            self.page.goto(url, wait_until="networkidle")
        except PlaywrightTimeoutError as e:
            logger.warning("Navigation timed out, setting the page offline: %s", e)
            self.context.set_offline(True)
            self.offline = True
            return NavigationOutcome.TIMED_OUT
        return NavigationOutcome.LOADED

    def capture_artifacts(self) -> CapturedArtifacts:
        artifacts = CapturedArtifacts()
        try:
            png = self.page.screenshot()
            artifacts.screenshot_path = self._save_screenshot(png, self.paths.screenshot)
        except (PlaywrightError, OSError) as e:
            logger.error("Screenshot error: %s", e)

        try:
            video = self.page.video
            if video is not None:
                artifacts.video_path = Path(video.path())
        except PlaywrightError as e:
            logger.error("Video path error: %s", e)
        return artifacts

    def close(self) -> None:
        """Close the context, which also flushes the HAR and the video"""
        try:
            if self.context is not None:
                self.context.close()
        finally:
            self.context = None
            if self._playwright is not None:
                self._playwright.stop()
                self._playwright = None
            if self._display is not None:
                self._display.stop()
                self._display = None

    # Setup helpers
    def _prepare_context(self):
        if self.options.headers:
            self.context.set_extra_http_headers(self.options.headers)
        if self.options.cookies:
            cookies = []
            for cookie in self.options.cookies:
                cookie = dict(cookie)
                if not cookie.get("url") and not (cookie.get("domain") and cookie.get("path")):
                    cookie["url"] = self.options.url
                cookies.append(cookie)
            logger.debug("Adding cookies: %s", cookies)
            self.context.add_cookies(cookies)

    def _prepare_page(self, page):
        page.on("console", self._on_console)
        page.on("requestfinished", self._on_request_finished)
        if self.options.block_domains or self.options.block:
            page.route("**/*", self._route)

    def _on_console(self, message):
        self.telemetry.add_console_message(
            ConsoleMessage(type=message.type, text=message.text, location=message.location)
        )

    def _on_request_finished(self, request):
        self.telemetry.add_request(
            RequestRecord(url=request.url, timing=RequestTiming.from_entry(request.timing))
        )

    def _route(self, route):
        url = route.request.url
        if any(url.startswith(domain) for domain in self.options.block_domains):
            route.abort()
        elif any(substring in url for substring in self.options.block):
            route.abort()
        else:
            route.continue_()

    @staticmethod
    def _save_screenshot(png: bytes, path: Path) -> Path:
        img = Image.open(io.BytesIO(png))
        path.parent.mkdir(parents=True, exist_ok=True)
        img.save(path, format="PNG")
        return path


def supports_inspection(session: BrowserSession) -> bool:
    return session.inspection is not None
