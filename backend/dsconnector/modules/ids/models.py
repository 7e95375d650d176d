"""
Models for IDS Information Model messages.

Outbound message headers are pydantic models serialized to the JSON-LD
structure peer connectors expect (``ids:`` prefixed keys, ``@id`` references).
Inbound responses are kept as an immutable :class:`ResponseEnvelope` of
multipart parts until the classifier has looked at them.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

IDS_CONTEXT: dict[str, str] = {
    "ids": "https://w3id.org/idsa/core/",
    "idsc": "https://w3id.org/idsa/code/",
}
IDS_NAMESPACE = "https://w3id.org/idsa/core/"
AUTOGEN_BASE = "https://w3id.org/idsa/autogen"

HEADER_PART = "header"
PAYLOAD_PART = "payload"


class MessageKind(str, Enum):
    """IDS message types this connector sends or understands."""

    DESCRIPTION_REQUEST = "ids:DescriptionRequestMessage"
    DESCRIPTION_RESPONSE = "ids:DescriptionResponseMessage"
    ARTIFACT_REQUEST = "ids:ArtifactRequestMessage"
    ARTIFACT_RESPONSE = "ids:ArtifactResponseMessage"
    REJECTION = "ids:RejectionMessage"
    OTHER = "other"

    @classmethod
    def from_type_tag(cls, type_tag: str) -> MessageKind:
        """Map a JSON-LD ``@type`` (prefixed or full IRI) to a kind; unknown tags are OTHER."""
        tag = type_tag.strip()
        if tag.startswith(IDS_NAMESPACE):
            tag = "ids:" + tag[len(IDS_NAMESPACE) :]
        elif not tag.startswith("ids:"):
            tag = f"ids:{tag}"
        for kind in cls:
            if kind.value == tag:
                return kind
        return cls.OTHER

    @property
    def short_name(self) -> str:
        return self.value.removeprefix("ids:")


def autogen_id(kind: str) -> str:
    """Generate an ``@id`` in the IDSA autogen namespace."""
    return f"{AUTOGEN_BASE}/{kind}/{uuid4()}"


def _ref(uri: str) -> dict[str, str]:
    return {"@id": uri}


# ---------------------------------------------------------------------------
# Outbound headers
# ---------------------------------------------------------------------------


class SecurityToken(BaseModel):
    """Dynamic attribute token (DAT) attached to every outbound message."""

    token_value: str = ""
    token_format: str = "idsc:JWT"

    def to_ids_payload(self) -> dict[str, Any]:
        return {
            "@type": "ids:DynamicAttributeToken",
            "@id": autogen_id("dynamicAttributeToken"),
            "ids:tokenValue": self.token_value,
            "ids:tokenFormat": _ref(self.token_format),
        }


class MessageHeader(BaseModel):
    """Header part of an outbound IDS multipart message."""

    message_type: MessageKind
    message_id: str = Field(default_factory=lambda: autogen_id("message"))
    model_version: str
    issued: datetime = Field(default_factory=lambda: datetime.now(UTC))
    issuer_connector: str
    sender_agent: str
    recipient_connector: list[str] = Field(default_factory=list)
    security_token: SecurityToken = Field(default_factory=SecurityToken)

    # Message-specific references
    requested_element: str | None = None
    requested_artifact: str | None = None
    transfer_contract: str | None = None

    def to_ids_payload(self) -> dict[str, Any]:
        """Serialize to the JSON-LD header expected by IDS connectors."""
        payload: dict[str, Any] = {
            "@context": IDS_CONTEXT,
            "@type": self.message_type.value,
            "@id": self.message_id,
            "ids:modelVersion": self.model_version,
            "ids:issued": {
                "@value": self.issued.isoformat(),
                "@type": "http://www.w3.org/2001/XMLSchema#dateTimeStamp",
            },
            "ids:issuerConnector": _ref(self.issuer_connector),
            "ids:senderAgent": _ref(self.sender_agent),
            "ids:recipientConnector": [_ref(uri) for uri in self.recipient_connector],
            "ids:securityToken": self.security_token.to_ids_payload(),
        }
        if self.requested_element:
            payload["ids:requestedElement"] = _ref(self.requested_element)
        if self.requested_artifact:
            payload["ids:requestedArtifact"] = _ref(self.requested_artifact)
        if self.transfer_contract:
            payload["ids:transferContract"] = _ref(self.transfer_contract)
        return payload


# ---------------------------------------------------------------------------
# Inbound responses
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ResponseEnvelope:
    """Multipart response of a peer connector, keyed by part name."""

    parts: Mapping[str, str] = field(default_factory=dict)
    status_code: int = 200

    def __post_init__(self) -> None:
        object.__setattr__(self, "parts", MappingProxyType(dict(self.parts)))

    @property
    def header(self) -> str | None:
        return self.parts.get(HEADER_PART)

    @property
    def payload(self) -> str | None:
        return self.parts.get(PAYLOAD_PART)

    def to_content(self) -> dict[str, str]:
        """Plain dict copy of all parts, used when the response is passed through."""
        return dict(self.parts)
