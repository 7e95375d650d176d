"""
Message exchange service.

Sends IDS request messages through a transport and turns whatever comes back
into exactly one :data:`ExchangeOutcome`. No exception leaves this module:
transport problems, unreadable responses and unexpected errors are all
returned as failure variants for the router to translate.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol

from dsconnector.core.logging import get_logger
from dsconnector.modules.ids.classifier import (
    Malformed,
    UnexpectedType,
    classify_response,
    extract_payload,
    rejection_reason,
)
from dsconnector.modules.ids.components import DescribedComponent, parse_component
from dsconnector.modules.ids.errors import (
    InvalidComponentError,
    InvalidResponseError,
    MessageSendError,
    SendFailureReason,
    UnrecognizedComponentError,
)
from dsconnector.modules.ids.models import MessageKind, ResponseEnvelope

logger = get_logger(__name__)


class IDSMessageTransport(Protocol):
    """Transport contract used by the exchange service."""

    async def send_description_request(
        self,
        recipient: str,
        element_id: str | None = None,
    ) -> ResponseEnvelope:
        """Send a description request and return the multipart response."""

    async def send_artifact_request(
        self,
        recipient: str,
        requested_artifact: str,
        *,
        transfer_contract: str | None = None,
        payload: str | None = None,
    ) -> ResponseEnvelope:
        """Send an artifact request and return the multipart response."""


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ComponentPayload:
    """Description payload parsed into a typed component."""

    component: DescribedComponent


@dataclass(frozen=True, slots=True)
class RawPayload:
    """Payload returned verbatim.

    ``unrecognized`` is set when a typed parse was attempted and the payload
    matched no known component type.
    """

    payload: str
    unrecognized: bool = False


@dataclass(frozen=True, slots=True)
class ResponsePassthrough:
    """Peer answered with another message type; its content is handed back as-is."""

    kind: MessageKind
    type_tag: str
    content: dict[str, str] = field(default_factory=dict)
    rejection_reason: str | None = None


@dataclass(frozen=True, slots=True)
class TransportFailure:
    reason: SendFailureReason
    detail: str

    @property
    def unauthorized(self) -> bool:
        return self.reason is SendFailureReason.UNAUTHORIZED


@dataclass(frozen=True, slots=True)
class InvalidResponse:
    detail: str


@dataclass(frozen=True, slots=True)
class InternalFailure:
    detail: str


ExchangeOutcome = (
    ComponentPayload
    | RawPayload
    | ResponsePassthrough
    | TransportFailure
    | InvalidResponse
    | InternalFailure
)


class MessageExchangeService:
    """Coordinates request messages to peer connectors and classifies their answers."""

    def __init__(self, transport: IDSMessageTransport) -> None:
        self._transport = transport

    async def request_description(
        self,
        recipient: str,
        element_id: str | None = None,
    ) -> ExchangeOutcome:
        """
        Request the self-description of ``recipient`` or of one of its elements.

        With ``element_id`` the description payload is returned verbatim;
        without it the payload is parsed into a resource or connector
        component, falling back to the raw payload when it is neither or
        when its fields do not validate.
        """
        envelope = await self._send(
            "description",
            recipient,
            lambda: self._transport.send_description_request(recipient, element_id or None),
        )
        if not isinstance(envelope, ResponseEnvelope):
            return envelope

        classification = classify_response(envelope, MessageKind.DESCRIPTION_RESPONSE)
        if isinstance(classification, UnexpectedType):
            return _passthrough(envelope, classification, recipient)
        if isinstance(classification, Malformed):
            logger.warning(
                "ids_description_malformed_response",
                recipient=recipient,
                reason=classification.reason,
            )
            return InvalidResponse(detail=classification.reason)

        payload: str | None = None
        try:
            payload = extract_payload(envelope)
            if element_id:
                return RawPayload(payload=payload)
            component = parse_component(payload)
        except UnrecognizedComponentError as exc:
            logger.warning(
                "ids_description_unrecognized_component",
                recipient=recipient,
                error=str(exc),
                payload_length=len(payload or ""),
                invalid_fields=isinstance(exc, InvalidComponentError),
            )
            return RawPayload(payload=payload or "", unrecognized=True)
        except InvalidResponseError as exc:
            logger.warning(
                "ids_description_invalid_payload",
                recipient=recipient,
                error=str(exc),
            )
            return InvalidResponse(detail=str(exc))
        except Exception as exc:
            logger.exception("ids_description_processing_failed", recipient=recipient)
            return InternalFailure(detail=str(exc))

        logger.info(
            "ids_description_received",
            recipient=recipient,
            component_type=component.type,
            component_id=component.id,
        )
        return ComponentPayload(component=component)

    async def request_artifact(
        self,
        recipient: str,
        requested_artifact: str,
        *,
        transfer_contract: str | None = None,
        payload: str | None = None,
    ) -> ExchangeOutcome:
        """Request artifact data from ``recipient``; the data is returned verbatim."""
        envelope = await self._send(
            "artifact",
            recipient,
            lambda: self._transport.send_artifact_request(
                recipient,
                requested_artifact,
                transfer_contract=transfer_contract,
                payload=payload,
            ),
        )
        if not isinstance(envelope, ResponseEnvelope):
            return envelope

        classification = classify_response(envelope, MessageKind.ARTIFACT_RESPONSE)
        if isinstance(classification, UnexpectedType):
            return _passthrough(envelope, classification, recipient)
        if isinstance(classification, Malformed):
            logger.warning(
                "ids_artifact_malformed_response",
                recipient=recipient,
                reason=classification.reason,
            )
            return InvalidResponse(detail=classification.reason)

        try:
            data = extract_payload(envelope)
        except InvalidResponseError as exc:
            return InvalidResponse(detail=str(exc))

        logger.info(
            "ids_artifact_received",
            recipient=recipient,
            requested_artifact=requested_artifact,
            payload_length=len(data),
        )
        return RawPayload(payload=data)

    async def _send(
        self,
        operation: str,
        recipient: str,
        send: Callable[[], Awaitable[ResponseEnvelope]],
    ) -> ResponseEnvelope | TransportFailure | InvalidResponse | InternalFailure:
        try:
            return await send()
        except MessageSendError as exc:
            logger.warning(
                "ids_message_send_failed",
                operation=operation,
                recipient=recipient,
                reason=exc.reason.value,
                status_code=exc.status_code,
            )
            return TransportFailure(reason=exc.reason, detail=str(exc))
        except InvalidResponseError as exc:
            return InvalidResponse(detail=str(exc))
        except Exception as exc:
            logger.exception(
                "ids_message_exchange_failed", operation=operation, recipient=recipient
            )
            return InternalFailure(detail=str(exc))


def _passthrough(
    envelope: ResponseEnvelope,
    classification: UnexpectedType,
    recipient: str,
) -> ResponsePassthrough:
    reason = rejection_reason(envelope) if classification.kind is MessageKind.REJECTION else None
    logger.info(
        "ids_response_passthrough",
        recipient=recipient,
        message_type=classification.type_tag,
        rejection_reason=reason,
    )
    return ResponsePassthrough(
        kind=classification.kind,
        type_tag=classification.type_tag,
        content=envelope.to_content(),
        rejection_reason=reason,
    )
