"""
In-page performance metrics.

Each observed entry type gets a buffered PerformanceObserver, installed by
one ``page.evaluate`` call and read back by a second one. The install step
also drains ``takeRecords()`` so entries buffered before the observer
existed are stored immediately instead of on the observer's next callback.
Everything here has to run after navigation settles and before the
session closes.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from telescope.models import (
    LayoutShiftEvent,
    LCPEvent,
    MetricsDocument,
    NavigationTiming,
    PaintTiming,
    UserTiming,
)

logger = logging.getLogger(__name__)

_OBSERVER_TEMPLATE = """
() => {
    window.__telescope = window.__telescope || {};
    const store = (window.__telescope['%(type)s'] = []);
    const serialize = %(serializer)s;
    const record = entries => {
        for (const entry of entries) {
            try {
                store.push(serialize(entry));
            } catch (err) {}
        }
    };
    const observer = new PerformanceObserver(list => record(list.getEntries()));
    try {
        observer.observe({ type: '%(type)s', buffered: true });
        record(observer.takeRecords());
    } catch (err) {}
}
"""

_SERIALIZE_ENTRY = "entry => entry.toJSON()"

_SERIALIZE_LCP = """entry => {
        const event = {
            name: entry.name,
            entryType: entry.entryType,
            startTime: entry.startTime,
            size: entry.size,
            url: entry.url,
            id: entry.id,
            loadTime: entry.loadTime,
            renderTime: entry.renderTime,
        };
        const element = entry.element;
        if (element) {
            event.element = {
                nodeName: element.nodeName,
                boundingRect: element.getBoundingClientRect().toJSON(),
                outerHTML: element.outerHTML,
            };
            if (element.src) {
                event.element.src = element.src;
            }
            if (element.currentSrc) {
                event.element.currentSrc = element.currentSrc;
            }
            try {
                const style = window.getComputedStyle(element);
                if (style.backgroundImage && style.backgroundImage !== 'none') {
                    event.element['background-image'] = style.backgroundImage;
                }
                if (style.content && style.content !== 'none') {
                    event.element.content = style.content;
                }
            } catch (err) {}
        }
        return event;
    }"""

_SERIALIZE_LAYOUT_SHIFT = """entry => {
        const event = {
            name: entry.name,
            entryType: entry.entryType,
            startTime: entry.startTime,
            value: entry.value,
            hadRecentInput: entry.hadRecentInput,
            lastInputTime: entry.lastInputTime,
        };
        if (entry.sources) {
            event.sources = entry.sources.map(source => ({
                previousRect: source.previousRect.toJSON(),
                currentRect: source.currentRect.toJSON(),
            }));
        }
        return event;
    }"""

_READ_OBSERVED = "type => (window.__telescope && window.__telescope[type]) || []"

_ENTRIES_BY_TYPE = "types => types.flatMap(t => performance.getEntriesByType(t).map(e => e.toJSON()))"


class MetricsCollector:
    def __init__(self, page):
        self.page = page

    def _observe(self, entry_type: str, serializer: str) -> List[Dict[str, Any]]:
        script = _OBSERVER_TEMPLATE % {"type": entry_type, "serializer": serializer}
        self.page.evaluate(script)
        return self.page.evaluate(_READ_OBSERVED, entry_type) or []

    def _entries_by_type(self, *entry_types: str) -> List[Dict[str, Any]]:
        return self.page.evaluate(_ENTRIES_BY_TYPE, list(entry_types)) or []

    def collect_navigation_timing(self) -> NavigationTiming:
        entries = self._observe("navigation", _SERIALIZE_ENTRY)
        if not entries:
            logger.warning("No navigation timing entry was reported")
            return NavigationTiming()
        return NavigationTiming.from_entry(entries[0])

    def collect_paint_timing(self) -> List[PaintTiming]:
        return [PaintTiming.from_entry(e) for e in self._entries_by_type("paint")]

    def collect_user_timing(self) -> List[UserTiming]:
        return [UserTiming.from_entry(e) for e in self._entries_by_type("mark", "measure")]

    def collect_resource_timing(self) -> List[Dict[str, Any]]:
        return self._entries_by_type("resource")

    def collect_lcp(self) -> List[LCPEvent]:
        entries = self._observe("largest-contentful-paint", _SERIALIZE_LCP)
        return [LCPEvent.from_entry(e) for e in entries]

    def collect_layout_shifts(self) -> List[LayoutShiftEvent]:
        entries = self._observe("layout-shift", _SERIALIZE_LAYOUT_SHIFT)
        return [LayoutShiftEvent.from_entry(e) for e in entries]

    def collect(self) -> MetricsDocument:
        metrics = MetricsDocument(
            navigation_timing=self.collect_navigation_timing(),
            paint_timing=self.collect_paint_timing(),
            user_timing=self.collect_user_timing(),
            largest_contentful_paint=self.collect_lcp(),
            layout_shifts=self.collect_layout_shifts(),
            resource_timings=self.collect_resource_timing(),
        )
        logger.debug(
            "Collected %d paint, %d LCP, %d layout shift and %d resource entries",
            len(metrics.paint_timing),
            len(metrics.largest_contentful_paint),
            len(metrics.layout_shifts),
            len(metrics.resource_timings),
        )
        return metrics
