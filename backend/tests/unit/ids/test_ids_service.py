"""Unit tests for the IDS message exchange service."""

from __future__ import annotations

import json
from collections.abc import Callable
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from dsconnector.modules.ids.components import BaseConnector, Resource
from dsconnector.modules.ids.errors import (
    MessageSendError,
    MultipartDecodeError,
    SendFailureReason,
)
from dsconnector.modules.ids.models import MessageKind, ResponseEnvelope
from dsconnector.modules.ids.service import (
    ComponentPayload,
    InternalFailure,
    InvalidResponse,
    MessageExchangeService,
    RawPayload,
    ResponsePassthrough,
    TransportFailure,
)

RECIPIENT = "https://peer.example/ids"
RESOURCE_PAYLOAD = '{"type":"Resource","id":"urn:x:1"}'


def _transport(
    *,
    description: ResponseEnvelope | Exception | None = None,
    artifact: ResponseEnvelope | Exception | None = None,
) -> SimpleNamespace:
    def _mock(result: ResponseEnvelope | Exception | None) -> AsyncMock:
        if isinstance(result, Exception):
            return AsyncMock(side_effect=result)
        return AsyncMock(return_value=result)

    return SimpleNamespace(
        send_description_request=_mock(description),
        send_artifact_request=_mock(artifact),
    )


@pytest.fixture
def description_response(ids_header: Callable[..., str]) -> Callable[[str], ResponseEnvelope]:
    def _build(payload: str) -> ResponseEnvelope:
        return ResponseEnvelope(
            parts={"header": ids_header("ids:DescriptionResponseMessage"), "payload": payload}
        )

    return _build


class TestRequestDescription:
    @pytest.mark.asyncio
    async def test_without_element_returns_typed_resource(
        self, description_response: Callable[[str], ResponseEnvelope]
    ) -> None:
        transport = _transport(description=description_response(RESOURCE_PAYLOAD))
        service = MessageExchangeService(transport)

        outcome = await service.request_description(RECIPIENT)

        assert isinstance(outcome, ComponentPayload)
        assert isinstance(outcome.component, Resource)
        assert outcome.component.id == "urn:x:1"
        transport.send_description_request.assert_awaited_once_with(RECIPIENT, None)

    @pytest.mark.asyncio
    async def test_without_element_returns_self_description(
        self, description_response: Callable[[str], ResponseEnvelope]
    ) -> None:
        payload = json.dumps(
            {"@type": "ids:BaseConnector", "@id": "https://peer.example/connector"}
        )
        service = MessageExchangeService(_transport(description=description_response(payload)))

        outcome = await service.request_description(RECIPIENT)

        assert isinstance(outcome, ComponentPayload)
        assert isinstance(outcome.component, BaseConnector)

    @pytest.mark.asyncio
    async def test_with_element_returns_raw_payload(
        self, description_response: Callable[[str], ResponseEnvelope]
    ) -> None:
        transport = _transport(description=description_response(RESOURCE_PAYLOAD))
        service = MessageExchangeService(transport)

        outcome = await service.request_description(RECIPIENT, "urn:x:1")

        assert outcome == RawPayload(payload=RESOURCE_PAYLOAD)
        transport.send_description_request.assert_awaited_once_with(RECIPIENT, "urn:x:1")

    @pytest.mark.asyncio
    async def test_with_element_skips_parsing_of_invalid_payload(
        self, description_response: Callable[[str], ResponseEnvelope]
    ) -> None:
        payload = '{"@type": "ids:Resource"}'
        service = MessageExchangeService(_transport(description=description_response(payload)))

        outcome = await service.request_description(RECIPIENT, "urn:x:1")

        assert outcome == RawPayload(payload=payload)

    @pytest.mark.asyncio
    async def test_empty_element_id_counts_as_absent(
        self, description_response: Callable[[str], ResponseEnvelope]
    ) -> None:
        transport = _transport(description=description_response(RESOURCE_PAYLOAD))
        service = MessageExchangeService(transport)

        outcome = await service.request_description(RECIPIENT, "")

        assert isinstance(outcome, ComponentPayload)
        transport.send_description_request.assert_awaited_once_with(RECIPIENT, None)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        ["plain text description", '{"@type": "ids:Catalog", "@id": "urn:c:1"}', "[]"],
    )
    async def test_unrecognized_payload_falls_back_to_raw(
        self,
        description_response: Callable[[str], ResponseEnvelope],
        payload: str,
    ) -> None:
        service = MessageExchangeService(_transport(description=description_response(payload)))

        outcome = await service.request_description(RECIPIENT)

        assert outcome == RawPayload(payload=payload, unrecognized=True)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            '{"@type": "ids:Resource", "@id": ""}',
            '{"@type": "ids:Resource", "@id": "urn:x:1", "ids:title": 5}',
            '{"@type": "ids:BaseConnector", "@id": "x", "ids:resourceCatalog": "nope"}',
        ],
    )
    async def test_known_type_with_invalid_fields_falls_back_to_raw(
        self,
        description_response: Callable[[str], ResponseEnvelope],
        payload: str,
    ) -> None:
        service = MessageExchangeService(_transport(description=description_response(payload)))

        outcome = await service.request_description(RECIPIENT)

        assert outcome == RawPayload(payload=payload, unrecognized=True)

    @pytest.mark.asyncio
    async def test_missing_payload_is_invalid_response(
        self, ids_header: Callable[..., str]
    ) -> None:
        envelope = ResponseEnvelope(parts={"header": ids_header("ids:DescriptionResponseMessage")})
        service = MessageExchangeService(_transport(description=envelope))

        outcome = await service.request_description(RECIPIENT)

        assert isinstance(outcome, InvalidResponse)

    @pytest.mark.asyncio
    async def test_rejection_is_passed_through(self, ids_header: Callable[..., str]) -> None:
        header = ids_header(
            "ids:RejectionMessage",
            **{"ids:rejectionReason": {"@id": "https://w3id.org/idsa/code/NOT_AUTHORIZED"}},
        )
        envelope = ResponseEnvelope(parts={"header": header, "payload": "Access denied"})
        service = MessageExchangeService(_transport(description=envelope))

        outcome = await service.request_description(RECIPIENT)

        assert isinstance(outcome, ResponsePassthrough)
        assert outcome.kind is MessageKind.REJECTION
        assert outcome.content == {"header": header, "payload": "Access denied"}
        assert outcome.rejection_reason == "https://w3id.org/idsa/code/NOT_AUTHORIZED"

    @pytest.mark.asyncio
    async def test_other_message_type_is_passed_through(
        self, ids_header: Callable[..., str]
    ) -> None:
        header = ids_header("ids:ArtifactResponseMessage")
        envelope = ResponseEnvelope(parts={"header": header, "payload": "bytes"})
        service = MessageExchangeService(_transport(description=envelope))

        outcome = await service.request_description(RECIPIENT, "urn:x:1")

        assert isinstance(outcome, ResponsePassthrough)
        assert outcome.kind is MessageKind.ARTIFACT_RESPONSE
        assert outcome.rejection_reason is None

    @pytest.mark.asyncio
    async def test_malformed_header_is_invalid_response(self) -> None:
        envelope = ResponseEnvelope(parts={"header": "not json", "payload": RESOURCE_PAYLOAD})
        service = MessageExchangeService(_transport(description=envelope))

        outcome = await service.request_description(RECIPIENT)

        assert isinstance(outcome, InvalidResponse)
        assert "not valid JSON" in outcome.detail

    @pytest.mark.asyncio
    async def test_connection_failure_is_transport_failure(self) -> None:
        error = MessageSendError("Could not reach peer", reason=SendFailureReason.UNREACHABLE)
        service = MessageExchangeService(_transport(description=error))

        outcome = await service.request_description(RECIPIENT)

        assert outcome == TransportFailure(
            reason=SendFailureReason.UNREACHABLE, detail="Could not reach peer"
        )
        assert not outcome.unauthorized

    @pytest.mark.asyncio
    async def test_unauthorized_transport_failure(self) -> None:
        error = MessageSendError(
            "refused", reason=SendFailureReason.UNAUTHORIZED, status_code=401
        )
        service = MessageExchangeService(_transport(description=error))

        outcome = await service.request_description(RECIPIENT)

        assert isinstance(outcome, TransportFailure)
        assert outcome.unauthorized

    @pytest.mark.asyncio
    async def test_undecodable_response_is_invalid_response(self) -> None:
        service = MessageExchangeService(
            _transport(description=MultipartDecodeError("Expected a multipart response"))
        )

        outcome = await service.request_description(RECIPIENT)

        assert outcome == InvalidResponse(detail="Expected a multipart response")

    @pytest.mark.asyncio
    async def test_unexpected_transport_error_is_internal_failure(self) -> None:
        service = MessageExchangeService(_transport(description=RuntimeError("boom")))

        outcome = await service.request_description(RECIPIENT)

        assert outcome == InternalFailure(detail="boom")

    @pytest.mark.asyncio
    async def test_unexpected_parse_error_is_internal_failure(
        self,
        description_response: Callable[[str], ResponseEnvelope],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def _explode(payload: str) -> Resource:
            raise KeyError("component registry")

        monkeypatch.setattr("dsconnector.modules.ids.service.parse_component", _explode)
        service = MessageExchangeService(
            _transport(description=description_response(RESOURCE_PAYLOAD))
        )

        outcome = await service.request_description(RECIPIENT)

        assert isinstance(outcome, InternalFailure)


class TestRequestArtifact:
    @pytest.mark.asyncio
    async def test_returns_raw_artifact_data(self, ids_header: Callable[..., str]) -> None:
        envelope = ResponseEnvelope(
            parts={"header": ids_header("ids:ArtifactResponseMessage"), "payload": RESOURCE_PAYLOAD}
        )
        transport = _transport(artifact=envelope)
        service = MessageExchangeService(transport)

        outcome = await service.request_artifact(
            RECIPIENT,
            "https://peer.example/artifacts/1",
            transfer_contract="https://peer.example/agreements/7",
        )

        assert outcome == RawPayload(payload=RESOURCE_PAYLOAD)
        transport.send_artifact_request.assert_awaited_once_with(
            RECIPIENT,
            "https://peer.example/artifacts/1",
            transfer_contract="https://peer.example/agreements/7",
            payload=None,
        )

    @pytest.mark.asyncio
    async def test_rejection_is_passed_through(self, ids_header: Callable[..., str]) -> None:
        envelope = ResponseEnvelope(parts={"header": ids_header("ids:RejectionMessage")})
        service = MessageExchangeService(_transport(artifact=envelope))

        outcome = await service.request_artifact(RECIPIENT, "https://peer.example/artifacts/1")

        assert isinstance(outcome, ResponsePassthrough)
        assert outcome.kind is MessageKind.REJECTION

    @pytest.mark.asyncio
    async def test_description_response_is_passed_through(
        self, description_response: Callable[[str], ResponseEnvelope]
    ) -> None:
        service = MessageExchangeService(_transport(artifact=description_response("{}")))

        outcome = await service.request_artifact(RECIPIENT, "https://peer.example/artifacts/1")

        assert isinstance(outcome, ResponsePassthrough)
        assert outcome.kind is MessageKind.DESCRIPTION_RESPONSE

    @pytest.mark.asyncio
    async def test_missing_payload_is_invalid_response(
        self, ids_header: Callable[..., str]
    ) -> None:
        envelope = ResponseEnvelope(parts={"header": ids_header("ids:ArtifactResponseMessage")})
        service = MessageExchangeService(_transport(artifact=envelope))

        outcome = await service.request_artifact(RECIPIENT, "https://peer.example/artifacts/1")

        assert isinstance(outcome, InvalidResponse)

    @pytest.mark.asyncio
    async def test_timeout_is_transport_failure(self) -> None:
        error = MessageSendError("Timed out", reason=SendFailureReason.TIMEOUT)
        service = MessageExchangeService(_transport(artifact=error))

        outcome = await service.request_artifact(RECIPIENT, "https://peer.example/artifacts/1")

        assert isinstance(outcome, TransportFailure)
        assert outcome.reason is SendFailureReason.TIMEOUT
