"""
Request priority correlation.

HAR entries carry no request id, only a URL, so priorities are kept as a
FIFO of ``PriorityRecord`` per URL in the order the browser sent them. The
merge step pops them in the same order it walks matching HAR entries.
Revisions arrive on a separate event and are keyed by request id.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from telescope.models import PriorityRecord

logger = logging.getLogger(__name__)

REQUEST_WILL_BE_SENT = "Network.requestWillBeSent"
PRIORITY_CHANGED = "Network.resourceChangedPriority"


class PriorityCorrelator:
    def __init__(self, telemetry):
        self.telemetry = telemetry

    def attach(self, channel) -> None:
        """Subscribe to both priority streams of an inspection channel"""
        channel.subscribe(REQUEST_WILL_BE_SENT, self.on_request_will_be_sent)
        channel.subscribe(PRIORITY_CHANGED, self.on_priority_changed)

    def on_request_will_be_sent(self, params: Dict[str, Any]) -> None:
        request = params.get("request", {})
        full_url = request.get("url", "") + (request.get("urlFragment") or "")
        self.telemetry.add_priority(
            full_url,
            PriorityRecord(
                request_id=params["requestId"],
                initial_priority=request.get("initialPriority"),
            ),
        )

    def on_priority_changed(self, params: Dict[str, Any]) -> None:
        logger.debug(
            "Priority of %s changed to %s", params["requestId"], params["newPriority"]
        )
        self.telemetry.revise_priority(params["requestId"], params["newPriority"])
