"""Pydantic schemas for the IDS message endpoints."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class MessageContentResponse(BaseModel):
    """Raw multipart content of a peer response that was not the expected message type."""

    header: str | None = None
    payload: str | None = None

    model_config = ConfigDict(extra="allow")


class ErrorResponse(BaseModel):
    detail: str


MESSAGE_RESPONSES: dict[int | str, dict[str, object]] = {
    200: {
        "description": (
            "Typed component (JSON), raw payload (text), or the peer's raw "
            "response content when it answered with another message type"
        ),
        "content": {
            "application/json": {"schema": MessageContentResponse.model_json_schema()},
            "text/plain": {},
        },
    },
    400: {"model": ErrorResponse, "description": "Recipient is not an http(s) URL"},
    401: {"model": ErrorResponse, "description": "Recipient refused the connector credentials"},
    417: {"model": ErrorResponse, "description": "Sending failed or the response was invalid"},
    500: {"model": ErrorResponse, "description": "Internal server error"},
}
