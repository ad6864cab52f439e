"""Tests for shipment.events.record — freezing, validation, JSON-lines codec."""

from types import MappingProxyType

import pytest

from shipment.core.errors import MalformedRecordError
from shipment.events.record import (
    decode_record,
    encode_record,
    event_payload,
    freeze,
    thaw,
    validate_record,
)


class TestFreeze:
    def test_nested_structures(self):
        frozen = freeze({"a": [1, {"b": 2}], "c": {"d"}})

        assert isinstance(frozen, MappingProxyType)
        assert frozen["a"][0] == 1
        assert dict(frozen["a"][1]) == {"b": 2}
        assert isinstance(frozen["a"][1], MappingProxyType)
        assert frozen["c"] == frozenset({"d"})

    def test_scalars_unchanged(self):
        assert freeze(3) == 3
        assert freeze("text") == "text"
        assert freeze(None) is None

    def test_copy_is_detached(self):
        source = {"items": [1]}
        frozen = freeze(source)

        source["items"].append(2)

        assert frozen["items"] == (1,)

    def test_thaw_restores_plain_types(self):
        value = {"a": [1, {"b": 2}]}

        thawed = thaw(freeze(value))

        assert thawed == value
        assert type(thawed) is dict
        assert type(thawed["a"]) is list


class TestEventPayload:
    def test_strips_addressing_fields(self):
        payload = event_payload({"context": "c1", "timestamp": 1, "type": "log", "begin": {}})

        assert thaw(payload) == {"type": "log", "begin": {}}


class TestValidateRecord:
    def test_valid_record_returned(self):
        record = {"context": "c1", "timestamp": 1.5, "begin": {"scope": {}}}

        assert validate_record(record) is record

    def test_integer_timestamp_accepted(self):
        validate_record({"context": "c1", "timestamp": 100})

    def test_error_carries_field(self):
        with pytest.raises(MalformedRecordError) as exc_info:
            validate_record({"context": "c1", "timestamp": None})

        error = exc_info.value
        assert error.field == "timestamp"
        assert error.context.context_id == "c1"
        assert error.to_dict()["category"] == "VALIDATION"


class TestCodec:
    def test_encode_is_one_compact_line(self):
        line = encode_record({"context": "c1", "timestamp": 1, "data": freeze({"x": [1, 2]})})

        assert "\n" not in line
        assert line == '{"context":"c1","timestamp":1,"data":{"x":[1,2]}}'

    def test_encode_falls_back_to_str(self):
        class Thing:
            def __str__(self):
                return "thing"

        assert encode_record({"value": Thing()}) == '{"value":"thing"}'

    def test_decode(self):
        assert decode_record('{"context": "c1", "timestamp": 1}') == {"context": "c1", "timestamp": 1}

    def test_decode_bytes(self):
        assert decode_record(b'{"context": "c1"}') == {"context": "c1"}

    @pytest.mark.parametrize("line", ["not json", "[1, 2]", '"text"'])
    def test_decode_rejects_non_objects(self, line):
        with pytest.raises(MalformedRecordError):
            decode_record(line)
