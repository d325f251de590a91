import json
from datetime import date, datetime, timezone

import pytest

from firesheet.codec import FieldCodec, ValueKind, kind_of
from firesheet.errors import UnsupportedValueError

codec = FieldCodec(display_tz=timezone.utc, timestamp_format="%Y-%m-%d %H:%M:%S")


@pytest.mark.parametrize(
    "wire, expected",
    [
        ({"stringValue": "hard"}, "hard"),
        ({"integerValue": "42"}, 42),
        ({"doubleValue": 2.5}, 2.5),
        ({"booleanValue": True}, True),
        ({"nullValue": None}, ""),
        ({"referenceValue": "projects/p/databases/(default)/documents/a/b"}, "projects/p/databases/(default)/documents/a/b"),
        ({"geoPointValue": {"latitude": 1.5, "longitude": -2}}, "1.5, -2"),
    ],
)
def test_decode_scalars(wire, expected):
    assert codec.decode(wire) == expected


def test_decode_absent_is_empty_string():
    assert codec.decode(None) == ""


def test_decode_timestamp_is_display_text():
    assert codec.decode({"timestampValue": "2024-03-05T10:20:30.123456789Z"}) == "2024-03-05 10:20:30"


def test_decode_array_joins_display_values():
    wire = {
        "arrayValue": {
            "values": [
                {"stringValue": "a"},
                {"integerValue": "2"},
                {"booleanValue": False},
            ]
        }
    }
    assert codec.decode(wire) == "a, 2, false"
    assert codec.decode({"arrayValue": {}}) == ""


def test_decode_map_dumps_raw_fields():
    fields = {"level": {"integerValue": "3"}}
    text = codec.decode({"mapValue": {"fields": fields}})
    assert json.loads(text) == fields


def test_kind_of_rejects_ambiguous_values():
    assert kind_of({"doubleValue": 1.0}) is ValueKind.DOUBLE
    with pytest.raises(UnsupportedValueError):
        kind_of({"stringValue": "a", "integerValue": "1"})
    with pytest.raises(UnsupportedValueError):
        kind_of({"unknownValue": 1})


def test_encode_empty_is_omitted():
    assert codec.encode("", "difficulty") is None
    assert codec.encode(None, "difficulty") is None


def test_encode_numbers():
    assert codec.encode(5, "difficulty") == {"integerValue": 5}
    assert codec.encode(5.0, "difficulty") == {"integerValue": 5}
    assert codec.encode(5.25, "difficulty") == {"doubleValue": 5.25}


def test_encode_boolean_before_number():
    assert codec.encode(True, "active") == {"booleanValue": True}


def test_encode_dates():
    moment = datetime(2024, 3, 5, 10, 20, 30, 456000, tzinfo=timezone.utc)
    assert codec.encode(moment, "due") == {"timestampValue": "2024-03-05T10:20:30.456Z"}
    assert codec.encode(date(2024, 3, 5), "due") == {"timestampValue": "2024-03-05T00:00:00.000Z"}


def test_encode_array_elements_become_strings():
    assert codec.encode("[1,2,3]", "tags") == {
        "arrayValue": {
            "values": [
                {"stringValue": "1"},
                {"stringValue": "2"},
                {"stringValue": "3"},
            ]
        }
    }


def test_encode_object_wraps_map():
    assert codec.encode('{"a": {"stringValue": "x"}}', "meta") == {
        "mapValue": {"fields": {"a": {"stringValue": "x"}}}
    }


@pytest.mark.parametrize("text", ["[1,2", "{not json}", "plain"])
def test_encode_unparseable_text_falls_back_to_string(text):
    assert codec.encode(text, "notes") == {"stringValue": text}
