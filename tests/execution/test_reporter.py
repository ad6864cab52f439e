"""Tests for shipment.execution.reporter and sinks — record shape and announce ordering."""

import io
import json
import time

from shipment.events import EventParser, ParsedContext, RecordingHandler, consume_begin
from shipment.execution import CallbackSink, ExecutionContext, MemorySink, RecordSink, StreamSink
from shipment.execution.reporter import now_ms


class TestReporter:
    def test_timestamp_is_epoch_millis(self, sink):
        context = ExecutionContext(sink=sink)
        before = time.time() * 1000

        record = context.report("log")

        assert before <= record["timestamp"] <= time.time() * 1000

    def test_explicit_timestamp_kept(self, sink):
        context = ExecutionContext(sink=sink)

        record = context.report("log", {"timestamp": 123})

        assert record["timestamp"] == 123

    def test_begin_in_data_is_ignored(self, sink):
        context = ExecutionContext(sink=sink)

        context.report("log", {"begin": {"parent": "spoofed"}})
        context.report("log", {"begin": {"parent": "spoofed"}})

        assert sink.records[0]["begin"] == {"scope": {}}
        assert "begin" not in sink.records[1]

    def test_type_in_data_is_ignored(self, sink):
        context = ExecutionContext(sink=sink)

        record = context.report("progress", {"type": "other", "percent": 5})

        assert record["type"] == "progress"
        assert sink.records[0]["type"] == "progress"
        assert sink.records[0]["percent"] == 5

    def test_record_field_order(self, sink):
        context = ExecutionContext(sink=sink)

        record = context.report("progress", {"percent": 1})

        assert list(record) == ["context", "timestamp", "begin", "type", "percent"]

    def test_parent_announced_before_child(self, sink):
        root = ExecutionContext(scope={"action": "land"}, sink=sink)
        build = root.create_sub_context({"step": "build"})
        upload = build.create_sub_context({"step": "upload"})

        upload.report("log", {"message": "uploading"})

        assert [record["context"] for record in sink.records] == [root.id, build.id, upload.id]
        root_record, build_record, upload_record = sink.records
        assert root_record == {
            "context": root.id,
            "timestamp": root.created_at * 1000,
            "begin": {"scope": {"action": "land"}},
        }
        assert build_record["begin"] == {"scope": {"step": "build"}, "parent": root.id}
        assert "type" not in build_record
        assert upload_record["begin"]["parent"] == build.id
        assert upload_record["type"] == "log"

    def test_each_context_announced_once(self, sink):
        root = ExecutionContext(sink=sink)
        first = root.create_sub_context({"n": 1})
        second = root.create_sub_context({"n": 2})

        first.report("log")
        second.report("log")
        root.report("log")

        begins = [record["context"] for record in sink.records if "begin" in record]
        assert begins == [root.id, first.id, second.id]

    def test_announce_is_idempotent(self, sink):
        context = ExecutionContext(sink=sink)

        context.reporter.announce()
        context.reporter.announce()
        context.report("log")

        assert len(sink) == 2
        assert "begin" not in sink.records[1]

    def test_now_ms(self):
        assert abs(now_ms() - time.time() * 1000) < 1000


class TestRoundTrip:
    def test_parser_rebuilds_producer_tree(self):
        """Records from nested contexts rebuild the same tree on the driver side."""
        parser = EventParser(strict=True)
        probe = RecordingHandler(consume=True)
        parser.use(consume_begin)
        parser.use(probe)
        root = ExecutionContext(scope={"action": "land"}, sink=CallbackSink(parser.receive))
        build = root.create_sub_context({"step": "build"})
        upload = build.create_sub_context({"step": "upload"})

        build.report("progress", {"percent": 50})
        upload.report("progress", {"percent": 100})

        parsed_upload = parser.get_context(upload.id)
        assert isinstance(parsed_upload, ParsedContext)
        assert [ctx.id for ctx in parsed_upload.ancestors()] == [build.id, root.id]
        assert parsed_upload.lookup("action") == "land"

        (_, build_info, _), (_, upload_info, _) = probe.calls
        assert build_info.context is parser.get_context(build.id)
        assert upload_info.context is parsed_upload
        assert [payload["percent"] for payload in probe.of_type("progress")] == [50, 100]


class TestSinks:
    def test_sinks_satisfy_protocol(self):
        assert isinstance(MemorySink(), RecordSink)
        assert isinstance(StreamSink(io.StringIO()), RecordSink)
        assert isinstance(CallbackSink(print), RecordSink)

    def test_stream_sink_writes_json_lines(self):
        stream = io.StringIO()
        sink = StreamSink(stream)

        sink.emit({"context": "c1", "timestamp": 1})
        sink.emit({"context": "c2", "timestamp": 2})

        lines = stream.getvalue().splitlines()
        assert [json.loads(line)["context"] for line in lines] == ["c1", "c2"]

    def test_stream_sink_defaults_to_current_stdout(self, capsys):
        StreamSink().emit({"context": "c1", "timestamp": 1})

        assert json.loads(capsys.readouterr().out) == {"context": "c1", "timestamp": 1}

    def test_memory_sink(self):
        sink = MemorySink()
        record = {"context": "c1", "type": "log"}

        sink.emit(record)
        record["type"] = "changed"

        assert sink.of_type("log") == [{"context": "c1", "type": "log"}]
        sink.clear()
        assert len(sink) == 0

    def test_callback_sink(self):
        seen = []

        CallbackSink(seen.append).emit({"context": "c1"})

        assert seen == [{"context": "c1"}]
