"""Conversion between Firestore wire values and spreadsheet cells.

Reads flatten every value into something a cell can hold: scalars pass
through, timestamps become display text, arrays become a ``", "`` joined
string and maps become compact JSON text of their raw ``fields``.

Writes go the other way for writable columns only. Bracketed strings are
parsed as JSON on a best-effort basis: ``[...]`` becomes an array whose
elements are all ``stringValue`` and ``{...}`` becomes a map wrapping the
parsed object as-is. A string that fails to parse is sent as a plain string.
Array and map columns therefore do not round-trip exactly.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import date, datetime, timezone, tzinfo
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

from .errors import UnsupportedValueError

logger = logging.getLogger(__name__)

CellValue = Union[str, int, float, bool, datetime, date, None]
WireValue = Dict[str, Any]


class ValueKind(str, Enum):
    STRING = "stringValue"
    INTEGER = "integerValue"
    DOUBLE = "doubleValue"
    BOOLEAN = "booleanValue"
    TIMESTAMP = "timestampValue"
    ARRAY = "arrayValue"
    MAP = "mapValue"
    NULL = "nullValue"
    REFERENCE = "referenceValue"
    GEO_POINT = "geoPointValue"
    BYTES = "bytesValue"


_TAGS = {kind.value: kind for kind in ValueKind}
_FRACTION = re.compile(r"\.(\d+)")


def kind_of(value: WireValue) -> ValueKind:
    """Return the single variant tag populated on a wire value."""

    if not isinstance(value, dict):
        raise UnsupportedValueError(f"wire value must be an object, got {type(value).__name__}")
    tags = [key for key in value if key in _TAGS]
    if len(tags) != 1 or len(value) != 1:
        raise UnsupportedValueError(f"wire value must carry exactly one type tag: {value!r}")
    return _TAGS[tags[0]]


def parse_timestamp(text: str) -> datetime:
    """Parse an RFC 3339 instant, truncating sub-microsecond digits."""

    cleaned = text.strip()
    if cleaned.endswith(("Z", "z")):
        cleaned = cleaned[:-1] + "+00:00"
    cleaned = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), cleaned, count=1)
    parsed = datetime.fromisoformat(cleaned)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def display_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


class FieldCodec:
    def __init__(self, display_tz: Optional[tzinfo] = None, timestamp_format: str = "%x %X"):
        self.display_tz = display_tz
        self.timestamp_format = timestamp_format
        self._decoders: Dict[ValueKind, Callable[[Any], CellValue]] = {
            ValueKind.STRING: str,
            ValueKind.INTEGER: int,
            ValueKind.DOUBLE: float,
            ValueKind.BOOLEAN: bool,
            ValueKind.TIMESTAMP: self._decode_timestamp,
            ValueKind.ARRAY: self._decode_array,
            ValueKind.MAP: self._decode_map,
            ValueKind.NULL: lambda _: "",
            ValueKind.REFERENCE: str,
            ValueKind.GEO_POINT: self._decode_geo_point,
            ValueKind.BYTES: str,
        }
        assert set(self._decoders) == set(ValueKind)

    # -- read path -----------------------------------------------------

    def decode(self, value: Optional[WireValue]) -> CellValue:
        if value is None:
            return ""
        kind = kind_of(value)
        cell = self._decoders[kind](value[kind.value])
        logger.debug("decode %s -> %r", value, cell)
        return cell

    def _decode_timestamp(self, raw: str) -> str:
        instant = parse_timestamp(raw)
        return instant.astimezone(self.display_tz).strftime(self.timestamp_format)

    def _decode_array(self, raw: Optional[dict]) -> str:
        values = (raw or {}).get("values") or []
        return ", ".join(display_text(self.decode(item)) for item in values)

    def _decode_map(self, raw: Optional[dict]) -> str:
        fields = (raw or {}).get("fields") or {}
        return json.dumps(fields, separators=(",", ":"))

    def _decode_geo_point(self, raw: Optional[dict]) -> str:
        raw = raw or {}
        return f"{raw.get('latitude', 0)}, {raw.get('longitude', 0)}"

    # -- write path ----------------------------------------------------

    def encode(self, cell: CellValue, column: str) -> Optional[WireValue]:
        """Return the wire value for ``cell`` or ``None`` to omit the field."""

        if cell is None or cell == "":
            return None
        if isinstance(cell, bool):
            encoded: WireValue = {ValueKind.BOOLEAN.value: cell}
        elif isinstance(cell, int):
            encoded = {ValueKind.INTEGER.value: cell}
        elif isinstance(cell, float):
            if cell.is_integer():
                encoded = {ValueKind.INTEGER.value: int(cell)}
            else:
                encoded = {ValueKind.DOUBLE.value: cell}
        elif isinstance(cell, (datetime, date)):
            encoded = {ValueKind.TIMESTAMP.value: _iso_instant(cell)}
        elif isinstance(cell, str):
            encoded = self._encode_text(cell, column)
        else:
            encoded = {ValueKind.STRING.value: str(cell)}
        logger.debug("encode %s=%r -> %s", column, cell, encoded)
        return encoded

    def _encode_text(self, text: str, column: str) -> WireValue:
        if text.startswith("[") and text.endswith("]"):
            try:
                items = json.loads(text)
            except json.JSONDecodeError:
                logger.debug("column %s: %r is not a JSON array, sending as string", column, text)
            else:
                if isinstance(items, list):
                    return {
                        ValueKind.ARRAY.value: {
                            "values": [{ValueKind.STRING.value: display_text(item)} for item in items]
                        }
                    }
        elif text.startswith("{") and text.endswith("}"):
            try:
                fields = json.loads(text)
            except json.JSONDecodeError:
                logger.debug("column %s: %r is not a JSON object, sending as string", column, text)
            else:
                if isinstance(fields, dict):
                    return {ValueKind.MAP.value: {"fields": fields}}
        return {ValueKind.STRING.value: text}


def _iso_instant(value: date) -> str:
    if isinstance(value, datetime):
        instant = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    else:
        instant = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    instant = instant.astimezone(timezone.utc)
    return instant.strftime("%Y-%m-%dT%H:%M:%S.") + f"{instant.microsecond // 1000:03d}Z"
