"""Firestore REST value encoding."""

from datetime import UTC, datetime

import pytest

from donorflow.domain.enums import TaskStatus
from donorflow.infrastructure.firebase._rest_encoding import (
    decode_document,
    decode_value,
    encode_document,
    encode_value,
)


def test_scalar_encoding() -> None:
    assert encode_value(None) == {"nullValue": None}
    assert encode_value(True) == {"booleanValue": True}
    assert encode_value(3) == {"integerValue": "3"}
    assert encode_value(1.5) == {"doubleValue": 1.5}
    assert encode_value("x") == {"stringValue": "x"}
    assert encode_value(TaskStatus.BLOCKED) == {"stringValue": "blocked"}


def test_timestamp_is_utc_with_z() -> None:
    value = datetime(2024, 3, 1, 10, 0, 0, 123456, tzinfo=UTC)
    assert encode_value(value) == {"timestampValue": "2024-03-01T10:00:00.123456Z"}


def test_nested_document() -> None:
    data = {"metadata": {"ids": ["a", "b"], "n": 2}, "deps": ("x",)}
    encoded = encode_document(data)
    assert encoded["fields"]["deps"] == {"arrayValue": {"values": [{"stringValue": "x"}]}}
    assert decode_document(encoded) == {"metadata": {"ids": ["a", "b"], "n": 2}, "deps": ["x"]}


def test_nanosecond_timestamps_are_truncated() -> None:
    decoded = decode_value({"timestampValue": "2024-03-01T10:00:00.123456789Z"})
    assert decoded == datetime(2024, 3, 1, 10, 0, 0, 123456, tzinfo=UTC)


def test_empty_collections_decode() -> None:
    assert decode_value({"arrayValue": {}}) == []
    assert decode_value({"mapValue": {}}) == {}
    assert decode_document(None) == {}


def test_unsupported_type_raises() -> None:
    with pytest.raises(TypeError):
        encode_value(object())
