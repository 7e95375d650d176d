"""
API Router for sending IDS messages to peer connectors.
"""

import json
from typing import Annotated, Any

from fastapi import APIRouter, Body, HTTPException, Query, status
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from dsconnector.modules.ids.dependencies import IDSClient
from dsconnector.modules.ids.errors import SendFailureReason
from dsconnector.modules.ids.schemas import MESSAGE_RESPONSES
from dsconnector.modules.ids.service import (
    ComponentPayload,
    ExchangeOutcome,
    InternalFailure,
    InvalidResponse,
    MessageExchangeService,
    RawPayload,
    ResponsePassthrough,
    TransportFailure,
)

router = APIRouter()

MESSAGE_TYPE_HEADER = "X-IDS-Message-Type"


def _as_http_error(outcome: TransportFailure | InvalidResponse | InternalFailure) -> HTTPException:
    if isinstance(outcome, TransportFailure):
        if outcome.unauthorized:
            return HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Recipient refused the connector credentials",
            )
        if outcome.reason is SendFailureReason.INVALID_RECIPIENT:
            return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=outcome.detail)
        return HTTPException(
            status_code=status.HTTP_417_EXPECTATION_FAILED,
            detail=f"Failed to send IDS message: {outcome.detail}",
        )
    if isinstance(outcome, InvalidResponse):
        return HTTPException(
            status_code=status.HTTP_417_EXPECTATION_FAILED,
            detail=f"Received invalid IDS response: {outcome.detail}",
        )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Something went wrong",
    )


def _outcome_response(outcome: ExchangeOutcome) -> Response:
    if isinstance(outcome, ComponentPayload):
        return JSONResponse(
            content=outcome.component.to_payload(),
            headers={MESSAGE_TYPE_HEADER: "DescriptionResponseMessage"},
        )
    if isinstance(outcome, RawPayload):
        return PlainTextResponse(content=outcome.payload)
    if isinstance(outcome, ResponsePassthrough):
        return JSONResponse(
            content=outcome.content,
            headers={MESSAGE_TYPE_HEADER: outcome.type_tag.removeprefix("ids:")},
        )
    if isinstance(outcome, (TransportFailure, InvalidResponse, InternalFailure)):
        raise _as_http_error(outcome)
    raise TypeError(f"Unhandled exchange outcome {type(outcome).__name__}")


@router.post("/description", responses=MESSAGE_RESPONSES)
async def send_description_request(
    client: IDSClient,
    recipient: Annotated[str, Query(min_length=1)],
    element_id: Annotated[str | None, Query(alias="elementId")] = None,
) -> Response:
    """Send a description request message and return the peer's answer."""
    service = MessageExchangeService(client)
    outcome = await service.request_description(recipient, element_id)
    return _outcome_response(outcome)


@router.post("/artifact", responses=MESSAGE_RESPONSES)
async def send_artifact_request(
    client: IDSClient,
    recipient: Annotated[str, Query(min_length=1)],
    requested_artifact: Annotated[str, Query(alias="requestedArtifact", min_length=1)],
    transfer_contract: Annotated[str | None, Query(alias="transferContract")] = None,
    payload: Annotated[dict[str, Any] | None, Body()] = None,
) -> Response:
    """Send an artifact request message and return the artifact data."""
    service = MessageExchangeService(client)
    outcome = await service.request_artifact(
        recipient,
        requested_artifact,
        transfer_contract=transfer_contract,
        payload=json.dumps(payload) if payload is not None else None,
    )
    return _outcome_response(outcome)
