"""
Data types shared by the agent.

Metric records mirror the browser Performance API. Each one is built from
the JSON-serialised entry with ``from_entry`` and written back with
``to_dict``, which uses the same camelCase key names and drops unset fields.
"""

from __future__ import annotations

import dataclasses
import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _key(f: dataclasses.Field) -> str:
    return f.metadata.get("key") or _camel(f.name)


def _dump(value: Any) -> Any:
    if isinstance(value, _PerformanceRecord):
        return value.to_dict()
    if isinstance(value, list):
        return [_dump(item) for item in value]
    return value


class _PerformanceRecord:
    @classmethod
    def from_entry(cls, entry: Optional[Dict[str, Any]]):
        entry = entry or {}
        values = {}
        known = set()
        keeps_extra = False
        for f in dataclasses.fields(cls):
            if f.name == "extra":
                keeps_extra = True
                continue
            key = _key(f)
            known.add(key)
            if key in entry:
                values[f.name] = entry[key]
        if keeps_extra:
            # entry keys with no declared field, written back unchanged
            values["extra"] = {k: v for k, v in entry.items() if k not in known}
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        out = {}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if value is None or f.name == "extra":
                continue
            out[_key(f)] = _dump(value)
        extra = getattr(self, "extra", None)
        if extra:
            out = {**extra, **out}
        return out


@dataclass
class Rect(_PerformanceRecord):
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    top: Optional[float] = None
    right: Optional[float] = None
    bottom: Optional[float] = None
    left: Optional[float] = None


@dataclass
class NavigationTiming(_PerformanceRecord):
    name: Optional[str] = None
    entry_type: Optional[str] = None
    start_time: Optional[float] = None
    duration: Optional[float] = None
    initiator_type: Optional[str] = None
    next_hop_protocol: Optional[str] = None
    worker_start: Optional[float] = None
    redirect_start: Optional[float] = None
    redirect_end: Optional[float] = None
    fetch_start: Optional[float] = None
    domain_lookup_start: Optional[float] = None
    domain_lookup_end: Optional[float] = None
    connect_start: Optional[float] = None
    secure_connection_start: Optional[float] = None
    connect_end: Optional[float] = None
    request_start: Optional[float] = None
    response_start: Optional[float] = None
    response_end: Optional[float] = None
    transfer_size: Optional[int] = None
    encoded_body_size: Optional[int] = None
    decoded_body_size: Optional[int] = None
    response_status: Optional[int] = None
    unload_event_start: Optional[float] = None
    unload_event_end: Optional[float] = None
    dom_interactive: Optional[float] = None
    dom_content_loaded_event_start: Optional[float] = None
    dom_content_loaded_event_end: Optional[float] = None
    dom_complete: Optional[float] = None
    load_event_start: Optional[float] = None
    load_event_end: Optional[float] = None
    navigation_type: Optional[str] = field(default=None, metadata={"key": "type"})
    redirect_count: Optional[int] = None
    # Navigation Timing Level 1 only
    navigation_start: Optional[float] = None
    # serverTiming, activationStart, renderBlockingStatus and the like
    extra: Dict[str, Any] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.to_dict()

    def time_to_first_byte(self) -> Optional[float]:
        if self.response_start is None:
            return None
        if self.navigation_start is not None:
            origin = self.navigation_start
        else:
            origin = self.start_time or 0
        return self.response_start - origin


@dataclass
class PaintTiming(_PerformanceRecord):
    name: Optional[str] = None
    entry_type: Optional[str] = None
    start_time: Optional[float] = None
    duration: Optional[float] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class UserTiming(_PerformanceRecord):
    name: Optional[str] = None
    entry_type: Optional[str] = None
    start_time: Optional[float] = None
    duration: Optional[float] = None
    detail: Any = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class LCPElement(_PerformanceRecord):
    node_name: Optional[str] = None
    bounding_rect: Optional[Rect] = None
    outer_html: Optional[str] = field(default=None, metadata={"key": "outerHTML"})
    src: Optional[str] = None
    current_src: Optional[str] = None
    background_image: Optional[str] = field(
        default=None, metadata={"key": "background-image"}
    )
    content: Optional[str] = None

    @classmethod
    def from_entry(cls, entry):
        element = super().from_entry(entry)
        if isinstance(element.bounding_rect, dict):
            element.bounding_rect = Rect.from_entry(element.bounding_rect)
        return element


@dataclass
class LCPEvent(_PerformanceRecord):
    name: Optional[str] = None
    entry_type: Optional[str] = None
    start_time: Optional[float] = None
    size: Optional[int] = None
    url: Optional[str] = None
    element_id: Optional[str] = field(default=None, metadata={"key": "id"})
    load_time: Optional[float] = None
    render_time: Optional[float] = None
    element: Optional[LCPElement] = None

    @classmethod
    def from_entry(cls, entry):
        event = super().from_entry(entry)
        if isinstance(event.element, dict):
            event.element = LCPElement.from_entry(event.element)
        return event


@dataclass
class LayoutShiftSource(_PerformanceRecord):
    previous_rect: Optional[Rect] = None
    current_rect: Optional[Rect] = None

    @classmethod
    def from_entry(cls, entry):
        source = super().from_entry(entry)
        if isinstance(source.previous_rect, dict):
            source.previous_rect = Rect.from_entry(source.previous_rect)
        if isinstance(source.current_rect, dict):
            source.current_rect = Rect.from_entry(source.current_rect)
        return source


@dataclass
class LayoutShiftEvent(_PerformanceRecord):
    name: Optional[str] = None
    entry_type: Optional[str] = None
    start_time: Optional[float] = None
    value: Optional[float] = None
    had_recent_input: Optional[bool] = None
    last_input_time: Optional[float] = None
    sources: Optional[List[LayoutShiftSource]] = None

    @classmethod
    def from_entry(cls, entry):
        event = super().from_entry(entry)
        if event.sources is not None:
            event.sources = [LayoutShiftSource.from_entry(s) for s in event.sources]
        return event


@dataclass
class MetricsDocument:
    navigation_timing: Optional[NavigationTiming] = None
    paint_timing: List[PaintTiming] = field(default_factory=list)
    user_timing: List[UserTiming] = field(default_factory=list)
    largest_contentful_paint: List[LCPEvent] = field(default_factory=list)
    layout_shifts: List[LayoutShiftEvent] = field(default_factory=list)
    # written to resources.json, not metrics.json
    resource_timings: List[Dict[str, Any]] = field(default_factory=list)

    def final_lcp(self) -> Optional[LCPEvent]:
        """The last reported LCP candidate, which supersedes earlier ones."""
        if not self.largest_contentful_paint:
            return None
        return self.largest_contentful_paint[-1]

    def cumulative_layout_shift(self) -> float:
        return sum(
            shift.value or 0
            for shift in self.layout_shifts
            if not shift.had_recent_input
        )

    def to_dict(self) -> Dict[str, Any]:
        nav = self.navigation_timing
        return {
            "navigationTiming": nav.to_dict() if nav is not None else {},
            "paintTiming": _dump(self.paint_timing),
            "userTiming": _dump(self.user_timing),
            "largestContentfulPaint": _dump(self.largest_contentful_paint),
            "layoutShifts": _dump(self.layout_shifts),
        }


@dataclass
class RequestTiming(_PerformanceRecord):
    """Per-phase timings reported by Playwright; -1 marks an unavailable phase."""

    start_time: float = -1
    domain_lookup_start: float = -1
    domain_lookup_end: float = -1
    connect_start: float = -1
    secure_connection_start: float = -1
    connect_end: float = -1
    request_start: float = -1
    response_start: float = -1
    response_end: float = -1


@dataclass
class RequestRecord:
    url: str
    timing: RequestTiming
    raw_timings: bool = False


@dataclass
class PriorityRecord:
    request_id: str
    initial_priority: str


@dataclass
class ConsoleMessage:
    type: str
    text: str
    location: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "text": self.text, "location": self.location}


@dataclass
class FilmstripFrame:
    num: int
    filename: str
    ms: int

    def to_dict(self) -> Dict[str, Any]:
        return {"num": self.num, "filename": self.filename, "ms": self.ms}


class RunState(enum.Enum):
    CREATED = "created"
    LAUNCHED = "launched"
    PAGE_OPEN = "page_open"
    NAVIGATING = "navigating"
    NAVIGATED = "navigated"
    OFFLINE = "offline"
    COLLECTED = "collected"
    CLOSED = "closed"
    COMPLETE = "complete"
    FAILED = "failed"


_TRANSITIONS = {
    RunState.CREATED: {RunState.LAUNCHED, RunState.COMPLETE},
    RunState.LAUNCHED: {RunState.PAGE_OPEN},
    RunState.PAGE_OPEN: {RunState.NAVIGATING},
    RunState.NAVIGATING: {RunState.NAVIGATED, RunState.OFFLINE},
    RunState.NAVIGATED: {RunState.COLLECTED},
    RunState.OFFLINE: {RunState.COLLECTED},
    RunState.COLLECTED: {RunState.CLOSED},
    RunState.CLOSED: {RunState.COMPLETE},
    RunState.COMPLETE: set(),
    RunState.FAILED: set(),
}


def generate_test_id() -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y_%m_%d_%H_%M_%S")
    return f"{stamp}_{uuid.uuid4()}"


@dataclass(frozen=True)
class RunPaths:
    results_root: Path
    results: Path
    filmstrip: Path
    temporary_context: Path

    @classmethod
    def for_test(cls, test_id: str, results_root="results", temp_root="tmp"):
        results_root = Path(results_root)
        results = results_root / test_id
        return cls(
            results_root=results_root,
            results=results,
            filmstrip=results / "filmstrip",
            temporary_context=Path(temp_root) / test_id,
        )

    @property
    def har(self) -> Path:
        return self.results / "pageload.har"

    @property
    def screenshot(self) -> Path:
        return self.results / "screenshot.png"


@dataclass
class TestRun:
    """One navigation of one URL; the state moves forward only."""

    test_id: str
    url: str
    options: Any
    paths: RunPaths
    state: RunState = RunState.CREATED

    def transition(self, new_state: RunState) -> None:
        if new_state is RunState.FAILED:
            self.state = new_state
            return
        if new_state not in _TRANSITIONS[self.state]:
            raise ValueError(
                f"Illegal run state transition {self.state.value} -> {new_state.value}"
            )
        self.state = new_state
