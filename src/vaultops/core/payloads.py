"""Output shapes returned by the administrative CLI.

The tool answers either with a JSON array, a single JSON object, or plain
text lines. The shape is decided once, when the command output is decoded,
so downstream code can match on the variant instead of probing types.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class StructuredList:
    items: tuple[dict[str, Any], ...]


@dataclass(frozen=True)
class StructuredSingle:
    item: dict[str, Any]


@dataclass(frozen=True)
class TextLines:
    lines: tuple[str, ...]


Payload = Union[StructuredList, StructuredSingle, TextLines]


class PayloadDecodeError(ValueError):
    """Raised when structured output cannot be decoded."""


def decode_structured(stdout: str) -> Payload:
    """
    Decode JSON stdout into a structured payload.

    Non-object array members are dropped. Empty output decodes to an empty
    list, which keeps "succeeded with nothing" apart from a failed call.

    Raises:
        PayloadDecodeError: If stdout is not JSON or not an array/object.
    """
    text = stdout.strip()
    if not text:
        return StructuredList(items=())
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise PayloadDecodeError(f"Output is not valid JSON: {exc}") from exc

    if isinstance(data, list):
        return StructuredList(items=tuple(d for d in data if isinstance(d, dict)))
    if isinstance(data, dict):
        return StructuredSingle(item=data)
    raise PayloadDecodeError(f"Unexpected JSON value of type {type(data).__name__}")


def text_payload(stdout: str) -> TextLines:
    """Wrap raw stdout as text lines."""
    return TextLines(lines=tuple(stdout.splitlines()))
