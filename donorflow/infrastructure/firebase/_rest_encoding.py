"""Encode/decode Python values to/from Firestore REST API 'fields' format."""

import base64
from datetime import datetime
from enum import Enum
from typing import Any

from donorflow.shared.utils.datetime import ensure_utc


def encode_value(v: Any) -> dict:
    if v is None:
        return {"nullValue": None}
    if isinstance(v, bool):
        return {"booleanValue": v}
    if isinstance(v, Enum):
        return encode_value(v.value)
    if isinstance(v, int):
        return {"integerValue": str(v)}
    if isinstance(v, float):
        return {"doubleValue": v}
    if isinstance(v, datetime):
        return {"timestampValue": ensure_utc(v).strftime("%Y-%m-%dT%H:%M:%S.%fZ")}
    if isinstance(v, str):
        return {"stringValue": v}
    if isinstance(v, bytes):
        return {"bytesValue": base64.standard_b64encode(v).decode("ascii")}
    if isinstance(v, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(x) for x in v]}}
    if isinstance(v, dict):
        return {"mapValue": {"fields": {k: encode_value(x) for k, x in v.items()}}}
    raise TypeError(f"Unsupported Firestore value type: {type(v)}")


def encode_document(data: dict[str, Any]) -> dict:
    """Convert a Python dict to a Firestore REST Document body."""
    return {"fields": {k: encode_value(v) for k, v in data.items()}}


def _parse_timestamp(raw: str) -> datetime:
    # Firestore returns nanosecond precision; datetime handles microseconds.
    value = raw.replace("Z", "+00:00")
    if "." in value:
        head, rest = value.split(".", 1)
        frac, _, offset = rest.partition("+")
        value = f"{head}.{frac[:6]}+{offset}" if offset else f"{head}.{frac[:6]}"
    return datetime.fromisoformat(value)


def decode_value(obj: dict) -> Any:
    if "nullValue" in obj:
        return None
    if "booleanValue" in obj:
        return obj["booleanValue"]
    if "integerValue" in obj:
        return int(obj["integerValue"])
    if "doubleValue" in obj:
        return float(obj["doubleValue"])
    if "timestampValue" in obj:
        return _parse_timestamp(obj["timestampValue"])
    if "stringValue" in obj:
        return obj["stringValue"]
    if "bytesValue" in obj:
        return base64.standard_b64decode(obj["bytesValue"])
    if "arrayValue" in obj:
        vals = obj.get("arrayValue", {}).get("values") or []
        return [decode_value(x) for x in vals]
    if "mapValue" in obj:
        fields = obj["mapValue"].get("fields") or {}
        return {k: decode_value(x) for k, x in fields.items()}
    if "referenceValue" in obj:
        return obj["referenceValue"]
    return None


def decode_document(document: dict | None) -> dict:
    """Convert a Firestore REST Document (with its 'fields' map) to a Python dict."""
    if not document:
        return {}
    return {k: decode_value(v) for k, v in (document.get("fields") or {}).items()}
