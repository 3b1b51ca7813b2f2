"""Tests for the seal discipline of RunTelemetry and the priority correlator."""

import pytest

from telescope.exceptions import TelemetryNotSealed, TelemetrySealed
from telescope.models import ConsoleMessage, PriorityRecord
from telescope.priorities import PRIORITY_CHANGED, REQUEST_WILL_BE_SENT, PriorityCorrelator
from telescope.telemetry import RunTelemetry


class TestRunTelemetry:
    def test_reads_before_seal_raise(self):
        telemetry = RunTelemetry()
        telemetry.add_console_message(ConsoleMessage(type="log", text="hi"))
        for read in (
            telemetry.console_messages,
            telemetry.requests,
            telemetry.priority_queues,
            telemetry.revisions,
        ):
            with pytest.raises(TelemetryNotSealed):
                read()

    def test_writes_after_seal_raise(self):
        telemetry = RunTelemetry()
        telemetry.seal()
        assert telemetry.sealed
        with pytest.raises(TelemetrySealed):
            telemetry.add_console_message(ConsoleMessage(type="log", text="late"))
        with pytest.raises(TelemetrySealed):
            telemetry.revise_priority("1", "High")

    def test_priority_queues_keep_order_and_are_copies(self):
        telemetry = RunTelemetry()
        telemetry.add_priority("https://x/a.js", PriorityRecord("1", "Low"))
        telemetry.add_priority("https://x/a.js", PriorityRecord("2", "High"))
        telemetry.seal()

        queues = telemetry.priority_queues()
        assert [r.request_id for r in queues["https://x/a.js"]] == ["1", "2"]
        queues["https://x/a.js"].popleft()
        assert len(telemetry.priority_queues()["https://x/a.js"]) == 2


class FakeChannel:
    def __init__(self):
        self.handlers = {}

    def subscribe(self, event, handler):
        self.handlers[event] = handler


class TestPriorityCorrelator:
    def test_attach_subscribes_both_events(self):
        channel = FakeChannel()
        PriorityCorrelator(RunTelemetry()).attach(channel)
        assert set(channel.handlers) == {REQUEST_WILL_BE_SENT, PRIORITY_CHANGED}

    def test_events_feed_telemetry(self):
        telemetry = RunTelemetry()
        channel = FakeChannel()
        PriorityCorrelator(telemetry).attach(channel)

        channel.handlers[REQUEST_WILL_BE_SENT](
            {
                "requestId": "7",
                "request": {
                    "url": "https://x/page",
                    "urlFragment": "#top",
                    "initialPriority": "VeryHigh",
                },
            }
        )
        channel.handlers[REQUEST_WILL_BE_SENT](
            {"requestId": "8", "request": {"url": "https://x/a.png", "initialPriority": "Low"}}
        )
        channel.handlers[PRIORITY_CHANGED]({"requestId": "8", "newPriority": "High"})
        telemetry.seal()

        queues = telemetry.priority_queues()
        assert queues["https://x/page#top"][0] == PriorityRecord("7", "VeryHigh")
        assert queues["https://x/a.png"][0] == PriorityRecord("8", "Low")
        assert telemetry.revisions() == {"8": "High"}
