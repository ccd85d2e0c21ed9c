"""Wire codec: `OPCODE` or `OPCODE <json>` text frames."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any

from fchat.errors import DecodeError

OPCODE_LENGTH = 3
_OPCODE_RE = re.compile(r"[A-Z]{3}")


@dataclass(frozen=True)
class Frame:
    """Decoded inbound frame."""

    opcode: str
    payload: dict[str, Any] = field(default_factory=dict)


def encode(opcode: str, payload: dict[str, Any] | None = None) -> str:
    """Build a wire string. A None or empty payload sends the bare opcode."""
    if not _OPCODE_RE.fullmatch(opcode):
        raise ValueError(f"opcode must be three uppercase letters, got {opcode!r}")
    if not payload:
        return opcode
    return f"{opcode} {json.dumps(payload, ensure_ascii=False, separators=(',', ':'))}"


def decode(raw: str) -> Frame | None:
    """Parse a wire string.

    Returns None for strings too short to carry an opcode. Raises DecodeError
    when the body after the opcode is not a JSON object.
    """
    if len(raw) < OPCODE_LENGTH:
        return None
    if len(raw) == OPCODE_LENGTH:
        return Frame(raw, {})

    opcode = raw[:OPCODE_LENGTH]
    body = raw[OPCODE_LENGTH + 1 :]
    if not body.strip():
        return Frame(opcode, {})
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, RecursionError) as exc:
        raise DecodeError(f"Unable to parse {opcode} payload", frame=raw, original_error=exc) from exc
    if not isinstance(payload, dict):
        raise DecodeError(
            f"{opcode} payload must be a JSON object, got {type(payload).__name__}",
            frame=raw,
        )
    return Frame(opcode, payload)
