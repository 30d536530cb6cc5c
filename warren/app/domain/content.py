"""Payload encoding used by the context messaging helpers."""
from __future__ import annotations

import json
from typing import Any


def to_bytes(content: Any) -> bytes:
    """Byte-like content passes through; everything else is encoded as UTF-8 text."""
    if isinstance(content, (bytes, bytearray, memoryview)):
        return bytes(content)
    if not isinstance(content, str):
        content = str(content)
    return content.encode("utf-8")


def to_json_bytes(content: Any) -> bytes:
    """JSON-encode content (strings included) as compact UTF-8.

    NaN and infinities raise ValueError since strict JSON parsers reject them.
    """
    return json.dumps(content, separators=(",", ":"), ensure_ascii=False, allow_nan=False).encode("utf-8")
