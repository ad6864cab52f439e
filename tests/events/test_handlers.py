"""Tests for shipment.events.handlers — built-in chain entries."""

import json

from shipment.events import (
    Channel,
    EventInfo,
    EventParser,
    RecordingHandler,
    consume_begin,
    forward_handler,
    log_handler,
)
from shipment.events.record import freeze


class FakeLogger:
    def __init__(self):
        self.calls = []

    def debug(self, event, **kwargs):
        self.calls.append((event, kwargs))


class TestConsumeBegin:
    def test_consumes_begin_only(self):
        assert consume_begin(freeze({"begin": {"scope": {}}}), None, {}) is None

    def test_keeps_begin_with_event(self):
        data = freeze({"begin": {}, "type": "progress"})

        assert consume_begin(data, None, {}) is data

    def test_keeps_non_mappings(self):
        assert consume_begin("text", None, {}) == "text"


class TestLogHandler:
    def test_logs_and_passes_on(self):
        log = FakeLogger()
        parser = EventParser()
        parser.use(log_handler(log))
        probe = RecordingHandler()
        parser.use(probe)

        parser.receive({"context": "c1", "timestamp": 3, "type": "log", "tags": ["a"]})

        event, fields = log.calls[0]
        assert event == "event_parser.record"
        assert fields == {"context": "c1", "timestamp": 3, "data": {"type": "log", "tags": ["a"]}}
        assert probe.payloads() == [{"type": "log", "tags": ["a"]}]

    def test_default_logger(self):
        handler = log_handler()
        data = freeze({"type": "log"})

        assert handler(data, EventInfo(context="c1", timestamp=0), {}) is data


class TestForwardHandler:
    def test_writes_raw_record_and_consumes(self):
        lines = []
        parser = EventParser()
        parser.use_final(forward_handler(lines.append))
        uncaught = []
        parser.on(Channel.UNCAUGHT, lambda data, info: uncaught.append(data))

        parser.receive({"context": "c1", "timestamp": 3, "type": "log"})

        assert len(lines) == 1
        assert lines[0].endswith("\n")
        assert json.loads(lines[0]) == {"context": "c1", "timestamp": 3, "type": "log"}
        assert uncaught == []

    def test_non_consuming(self):
        lines = []
        handler = forward_handler(lines.append, consume=False)
        data = freeze({"type": "log"})

        assert handler(data, None, {"context": "c1"}) is data
        assert lines == ['{"context":"c1"}\n']


class TestRecordingHandler:
    def test_records_and_filters(self):
        probe = RecordingHandler()

        probe(freeze({"type": "progress", "percent": 1}), None, {})
        probe(freeze({"type": "log"}), None, {})

        assert len(probe.calls) == 2
        assert probe.of_type("progress") == [{"type": "progress", "percent": 1}]

        probe.clear()
        assert probe.calls == []

    def test_consume_flag(self):
        data = freeze({"type": "log"})

        assert RecordingHandler()(data, None, {}) is data
        assert RecordingHandler(consume=True)(data, None, {}) is None
