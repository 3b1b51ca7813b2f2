"""
Per-run storage for everything the browser reports through callbacks.

Console messages, finished requests and priority events arrive on
Playwright event handlers while the run is navigating. They are only ever
appended. Once the session is closed no handler can fire again, the run
calls ``seal()`` and from then on the collections can be read. Reading
before sealing, or writing after, is an error: the ordering is what makes
locking unnecessary, so it is enforced rather than assumed.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Dict, List

from telescope.exceptions import TelemetryNotSealed, TelemetrySealed
from telescope.models import ConsoleMessage, PriorityRecord, RequestRecord

logger = logging.getLogger(__name__)


class RunTelemetry:
    def __init__(self):
        self._sealed = False
        self._console: List[ConsoleMessage] = []
        self._requests: List[RequestRecord] = []
        self._priorities: Dict[str, Deque[PriorityRecord]] = {}
        self._revisions: Dict[str, str] = {}

    @property
    def sealed(self) -> bool:
        return self._sealed

    def seal(self) -> None:
        self._sealed = True
        logger.debug(
            "Telemetry sealed: %d requests, %d prioritised urls, %d revisions",
            len(self._requests),
            len(self._priorities),
            len(self._revisions),
        )

    def _check_open(self):
        if self._sealed:
            raise TelemetrySealed("Telemetry is sealed; the session is closed")

    def _check_sealed(self):
        if not self._sealed:
            raise TelemetryNotSealed(
                "Telemetry can only be read after the browser session is closed"
            )

    # writers, called from event handlers
    def add_console_message(self, message: ConsoleMessage) -> None:
        self._check_open()
        self._console.append(message)

    def add_request(self, record: RequestRecord) -> None:
        self._check_open()
        self._requests.append(record)

    def add_priority(self, url: str, record: PriorityRecord) -> None:
        self._check_open()
        self._priorities.setdefault(url, deque()).append(record)

    def revise_priority(self, request_id: str, priority: str) -> None:
        self._check_open()
        self._revisions[request_id] = priority

    # readers, valid once sealed
    def console_messages(self) -> List[ConsoleMessage]:
        self._check_sealed()
        return list(self._console)

    def requests(self) -> List[RequestRecord]:
        self._check_sealed()
        return list(self._requests)

    def priority_queues(self) -> Dict[str, Deque[PriorityRecord]]:
        """Copies of the per-URL queues, so draining them leaves the originals intact."""
        self._check_sealed()
        return {url: deque(queue) for url, queue in self._priorities.items()}

    def revisions(self) -> Dict[str, str]:
        self._check_sealed()
        return dict(self._revisions)
