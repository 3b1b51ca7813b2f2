"""
HAR augmentation.

Playwright records the HAR itself, but without connection-level timings or
request priorities. This module merges what the run collected into the
recorded archive. Neither source shares an id with the HAR, so matching is
by URL, first-come first-served on both sides.
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional

from telescope.models import MetricsDocument, PriorityRecord, RequestRecord

logger = logging.getLogger(__name__)

# set on an entry whose timings came from elsewhere and must not be replaced
RAW_TIMINGS_FLAG = "_raw_timings"


def load_har(path: Path) -> Dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def save_har(path: Path, har: Dict[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(har, f)


def timing_fields(record: RequestRecord) -> Dict[str, Any]:
    """HAR extension fields derived from one request's Playwright timings"""
    timing = record.timing
    secure = timing.secure_connection_start
    return {
        "_dns_start": timing.domain_lookup_start,
        "_dns_end": timing.domain_lookup_end,
        "_connect_start": timing.connect_start,
        # TLS time is reported separately, so plain connect ends where TLS starts
        "_connect_end": secure if secure > 0 else timing.connect_end,
        "_secure_start": secure if secure > 0 else -1,
        "_secure_end": timing.connect_end if secure > 0 else -1,
        "_request_start": timing.request_start,
        "_request_end": timing.response_start,
        "_response_start": timing.response_start,
        "_response_end": timing.response_end,
    }


def _find_unmatched(entries, url: str, matched: set) -> Optional[int]:
    for index, entry in enumerate(entries):
        if index in matched or entry.get(RAW_TIMINGS_FLAG):
            continue
        if entry.get("request", {}).get("url") == url:
            return index
    return None


def merge_entries(
    entries: List[Dict[str, Any]],
    requests: List[RequestRecord],
    priorities: Dict[str, Deque[PriorityRecord]],
    revisions: Dict[str, str],
    lcp_url: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Annotate HAR entries in place with request timings and priorities.

    Requests are walked in the order they finished. Each one takes the
    first entry with the same URL that no earlier request took, and the
    oldest priority record queued for that URL. Requests or entries left
    over on either side stay unmerged.
    """
    matched: set = set()
    unmerged: Counter = Counter()
    for record in requests:
        if record.raw_timings:
            continue
        index = _find_unmatched(entries, record.url, matched)
        if index is None:
            unmerged[record.url] += 1
            continue
        matched.add(index)

        entry = entries[index]
        entry.update(timing_fields(record))
        if lcp_url is not None and record.url == lcp_url:
            entry["_is_lcp"] = True

        queue = priorities.get(record.url)
        if queue:
            priority = queue.popleft()
            entry["_initial_priority"] = priority.initial_priority
            entry["_priority"] = revisions.get(
                priority.request_id, priority.initial_priority
            )

    for url, count in unmerged.items():
        logger.warning("%d finished request(s) for %s had no HAR entry to merge into", count, url)
    return entries


def fill_out_har(
    har: Dict[str, Any],
    metrics: MetricsDocument,
    requests: List[RequestRecord],
    priorities: Dict[str, Deque[PriorityRecord]],
    revisions: Dict[str, str],
) -> Dict[str, Any]:
    """Add page level TTFB and LCP, then merge per-request data into the entries"""
    log = har.setdefault("log", {})
    pages = log.get("pages") or []
    page_timings = pages[0].setdefault("pageTimings", {}) if pages else None
    if page_timings is None:
        logger.warning("HAR has no page; skipping page level timings")

    nav = metrics.navigation_timing
    ttfb = nav.time_to_first_byte() if nav is not None else None
    if page_timings is not None and ttfb is not None:
        page_timings["_TTFB"] = ttfb

    lcp_url = None
    lcp = metrics.final_lcp()
    if lcp is not None:
        if page_timings is not None:
            page_timings["_LCP"] = lcp.start_time
        lcp_url = lcp.url or None

    log["entries"] = merge_entries(
        log.get("entries", []), requests, priorities, revisions, lcp_url
    )
    return har
