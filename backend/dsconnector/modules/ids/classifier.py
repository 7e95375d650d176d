"""
Response classification for IDS multipart responses.

Classification returns a variant instead of raising: a peer answering with a
rejection or another message type is an expected outcome the caller decides
how to present.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from dsconnector.modules.ids.errors import InvalidResponseError
from dsconnector.modules.ids.models import MessageKind, ResponseEnvelope


@dataclass(frozen=True, slots=True)
class Confirmed:
    """The response is of the expected message type."""

    kind: MessageKind


@dataclass(frozen=True, slots=True)
class UnexpectedType:
    """The response is well-formed but of another message type."""

    kind: MessageKind
    type_tag: str


@dataclass(frozen=True, slots=True)
class Malformed:
    """The response header is missing or cannot be read."""

    reason: str


Classification = Confirmed | UnexpectedType | Malformed


def _header_document(envelope: ResponseEnvelope) -> dict[str, Any] | str:
    """Parse the header part; returns the reason string when it is unusable."""
    raw = envelope.header
    if raw is None or not raw.strip():
        return "response has no header part"
    try:
        document = json.loads(raw)
    except json.JSONDecodeError as exc:
        return f"header is not valid JSON: {exc.msg}"
    if not isinstance(document, dict):
        return "header is not a JSON object"
    return document


def classify_response(envelope: ResponseEnvelope, expected: MessageKind) -> Classification:
    """Determine the message type of ``envelope`` and compare it with ``expected``."""
    document = _header_document(envelope)
    if isinstance(document, str):
        return Malformed(reason=document)

    type_tag = document.get("@type")
    if not isinstance(type_tag, str) or not type_tag.strip():
        return Malformed(reason="header has no @type")

    kind = MessageKind.from_type_tag(type_tag)
    if kind is expected and kind is not MessageKind.OTHER:
        return Confirmed(kind=kind)
    return UnexpectedType(kind=kind, type_tag=type_tag)


def extract_payload(envelope: ResponseEnvelope) -> str:
    """Return the payload part of a multipart response."""
    payload = envelope.payload
    if payload is None:
        raise InvalidResponseError("Response has no payload part")
    return payload


def rejection_reason(envelope: ResponseEnvelope) -> str | None:
    """``ids:rejectionReason`` of a rejection message, if present."""
    document = _header_document(envelope)
    if isinstance(document, str):
        return None
    reason = document.get("ids:rejectionReason")
    if isinstance(reason, dict):
        value = reason.get("@id")
        return str(value) if value is not None else None
    if isinstance(reason, str):
        return reason
    return None
