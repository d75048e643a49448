"""Decoder for converting upstream feed messages to the normalized event shape.

JetStream delivers JSON text frames; the repo firehose delivers binary frames
holding concatenated CBOR items (header, then body). Both are normalized into
a NormalizedEvent. Decoding never raises: anything that cannot be parsed is
kept as a raw, truncated representation for diagnostics.
"""

import base64
import io
import json
from datetime import date, datetime, timezone
from typing import Any, Optional, Tuple, Union

import cbor2

from firehose_relay.models.data_models import NormalizedEvent, SourceFormat, SourceMode


HEX_PREVIEW_CHARS = 100
TRUNCATION_MARKER = "..."
EMPTY_MARKER = "<empty>"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_bytes(raw: Union[bytes, bytearray, memoryview, str]) -> bytes:
    """Text WebSocket frames arrive as str; everything is decoded from bytes."""
    if isinstance(raw, str):
        return raw.encode("utf-8")
    return bytes(raw)


def to_jsonable(value: Any) -> Any:
    """
    Convert a decoded CBOR value into something json.dumps accepts.

    Handles:
    - Byte strings: {"$bytes": "<base64>"}
    - Tags (CIDs are tag 42): {"$tag": 42, "value": ...}
    - Non-string mapping keys: stringified
    - Sets and tuples: lists
    - Dates and datetimes: ISO-8601 strings

    Args:
        value: Value produced by cbor2

    Returns:
        JSON-safe equivalent
    """
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return {"$bytes": base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, cbor2.CBORTag):
        return {"$tag": value.tag, "value": to_jsonable(value.value)}
    if isinstance(value, dict):
        return {
            (key if isinstance(key, str) else str(to_jsonable(key))): to_jsonable(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(item) for item in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if value is cbor2.undefined:
        return None
    return str(value)


def _parse_json(data: bytes) -> Tuple[bool, Any]:
    """
    Parse UTF-8 JSON.

    Returns:
        (True, document) on success, (False, error message) on failure
    """
    try:
        return True, json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, ValueError, RecursionError) as e:
        # RecursionError: nesting deeper than the interpreter stack allows
        return False, str(e)


def _parse_cbor_first(data: bytes) -> Tuple[bool, Any]:
    """
    Decode the first complete CBOR item; trailing items are ignored.

    Returns:
        (True, JSON-safe value) on success, (False, error message) on failure
    """
    try:
        decoded = cbor2.load(io.BytesIO(data))
        return True, to_jsonable(decoded)
    except Exception as e:  # cbor2 raises several unrelated types on garbage input
        return False, str(e) or type(e).__name__


def _text_repr(data: bytes) -> str:
    text = data.decode("utf-8", errors="replace")
    return text if text else EMPTY_MARKER


def _hex_preview(data: bytes) -> str:
    return data.hex()[:HEX_PREVIEW_CHARS] + TRUNCATION_MARKER


def decode(
    raw: Union[bytes, bytearray, memoryview, str],
    source_mode: SourceMode,
    received_at: Optional[str] = None,
    logger=None,
) -> NormalizedEvent:
    """
    Decode one upstream message.

    Args:
        raw: Message body as received from the socket
        source_mode: Declared format of the endpoint that produced the message
        received_at: ISO-8601 receipt time (defaults to now)
        logger: Optional structured logger for decode failures

    Returns:
        NormalizedEvent; either `payload` is set or `raw_bytes` is non-empty
    """
    timestamp = received_at or _now_iso()
    data = _as_bytes(raw)

    if source_mode == SourceMode.JSON_PRIMARY:
        ok, result = _parse_json(data)
        if ok:
            return NormalizedEvent(
                timestamp=timestamp,
                source_format=SourceFormat.JETSTREAM_JSON,
                payload=result,
                raw_bytes=_text_repr(data),
            )
        if logger:
            logger.decode_failure(source_mode=source_mode.value, error=result, size=len(data))
        return NormalizedEvent(
            timestamp=timestamp,
            source_format=SourceFormat.RAW_UNPARSED,
            payload=None,
            raw_bytes=_text_repr(data),
        )

    raw_base64 = base64.b64encode(data).decode("ascii")

    ok, result = _parse_cbor_first(data)
    if ok:
        return NormalizedEvent(
            timestamp=timestamp,
            source_format=SourceFormat.FIREHOSE_CBOR,
            payload=result,
            raw_bytes=raw_base64 or EMPTY_MARKER,
            raw_base64=raw_base64,
        )
    cbor_error = result

    ok, result = _parse_json(data)
    if ok:
        return NormalizedEvent(
            timestamp=timestamp,
            source_format=SourceFormat.FIREHOSE_JSON_FALLBACK,
            payload=result,
            raw_bytes=raw_base64 or EMPTY_MARKER,
            raw_base64=raw_base64,
        )

    if logger:
        logger.decode_failure(
            source_mode=source_mode.value,
            error=f"cbor: {cbor_error}; json: {result}",
            size=len(data),
        )
    return NormalizedEvent(
        timestamp=timestamp,
        source_format=SourceFormat.RAW_UNPARSED,
        payload=None,
        raw_bytes=_hex_preview(data),
        raw_base64=raw_base64,
    )
