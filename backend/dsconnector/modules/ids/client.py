"""
IDS multipart message client.

Persistent httpx.AsyncClient, dataclass config object, structured logging
and an explicit ``close()`` lifecycle. Every transport-level problem is
raised as :class:`MessageSendError`; interpreting what the peer answered is
left to the classifier.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from urllib.parse import urlsplit

import httpx

from dsconnector.core.config import Settings
from dsconnector.core.logging import get_logger
from dsconnector.modules.ids.errors import (
    MessageSendError,
    MultipartDecodeError,
    SendFailureReason,
)
from dsconnector.modules.ids.models import (
    HEADER_PART,
    PAYLOAD_PART,
    MessageHeader,
    MessageKind,
    ResponseEnvelope,
    SecurityToken,
)
from dsconnector.modules.ids.multipart import decode_multipart

logger = get_logger(__name__)


@dataclass
class IDSConfig:
    """Identity and transport settings for outbound IDS messages."""

    connector_id: str
    sender_agent: str = ""
    model_version: str = "4.0.0"
    security_token: str = ""
    timeout: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> IDSConfig:
        return cls(
            connector_id=settings.connector_id,
            sender_agent=settings.effective_sender_agent,
            model_version=settings.ids_model_version,
            security_token=settings.ids_security_token,
            timeout=settings.ids_request_timeout,
        )


class IDSMessageClient:
    """Sends IDS multipart messages to peer connectors."""

    def __init__(self, config: IDSConfig) -> None:
        self._config = config
        self._http_client: httpx.AsyncClient | None = None

    def _validate_config(self) -> None:
        connector_id = (self._config.connector_id or "").strip()
        if not connector_id:
            raise MessageSendError(
                "IDS connector id is required",
                reason=SendFailureReason.NOT_CONFIGURED,
            )
        self._config.connector_id = connector_id

    async def _get_client(self) -> httpx.AsyncClient:
        """Return (or lazily create) the HTTP client."""
        if self._http_client is None:
            self._validate_config()
            self._http_client = httpx.AsyncClient(
                headers={"Accept": "multipart/form-data, multipart/mixed"},
                timeout=self._config.timeout,
            )
        return self._http_client

    def build_header(
        self,
        message_type: MessageKind,
        recipient: str,
        *,
        requested_element: str | None = None,
        requested_artifact: str | None = None,
        transfer_contract: str | None = None,
    ) -> MessageHeader:
        """Build the header of an outbound message addressed to ``recipient``."""
        return MessageHeader(
            message_type=message_type,
            model_version=self._config.model_version,
            issuer_connector=self._config.connector_id,
            sender_agent=self._config.sender_agent or self._config.connector_id,
            recipient_connector=[recipient],
            security_token=SecurityToken(token_value=self._config.security_token),
            requested_element=requested_element,
            requested_artifact=requested_artifact,
            transfer_contract=transfer_contract,
        )

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def send_description_request(
        self,
        recipient: str,
        element_id: str | None = None,
    ) -> ResponseEnvelope:
        """Ask ``recipient`` to describe itself, or ``element_id`` when given."""
        header = self.build_header(
            MessageKind.DESCRIPTION_REQUEST,
            recipient,
            requested_element=element_id,
        )
        return await self.send_message(recipient, header)

    async def send_artifact_request(
        self,
        recipient: str,
        requested_artifact: str,
        *,
        transfer_contract: str | None = None,
        payload: str | None = None,
    ) -> ResponseEnvelope:
        """Request the data of ``requested_artifact`` from ``recipient``."""
        header = self.build_header(
            MessageKind.ARTIFACT_REQUEST,
            recipient,
            requested_artifact=requested_artifact,
            transfer_contract=transfer_contract,
        )
        return await self.send_message(recipient, header, payload=payload)

    async def send_message(
        self,
        recipient: str,
        header: MessageHeader,
        payload: str | None = None,
    ) -> ResponseEnvelope:
        """
        Send a multipart message and decode the multipart response.

        Raises:
            MessageSendError: The connector id is missing, the recipient is
                not addressable, or the peer is unreachable or refused the
                message.
            MultipartDecodeError: The peer answered, but not with a
                multipart document.
        """
        url = _validate_recipient(recipient)
        client = await self._get_client()

        # (filename, content, content type); no filename keeps these plain form fields
        files: dict[str, tuple[None, str, str]] = {
            HEADER_PART: (None, json.dumps(header.to_ids_payload()), "application/ld+json"),
        }
        if payload is not None:
            files[PAYLOAD_PART] = (None, payload, "text/plain")

        logger.info(
            "ids_sending_message",
            message_type=header.message_type.short_name,
            message_id=header.message_id,
            recipient=url,
        )

        try:
            response = await client.post(url, files=files)
        except httpx.TimeoutException as exc:
            logger.warning("ids_message_timeout", recipient=url, error=str(exc))
            raise MessageSendError(
                f"Timed out sending message to {url}",
                reason=SendFailureReason.TIMEOUT,
            ) from exc
        except httpx.TransportError as exc:
            logger.warning("ids_message_send_failed", recipient=url, error=str(exc))
            raise MessageSendError(
                f"Could not reach {url}: {exc}",
                reason=SendFailureReason.UNREACHABLE,
            ) from exc

        return self._to_envelope(url, response)

    def _to_envelope(self, url: str, response: httpx.Response) -> ResponseEnvelope:
        status_code = response.status_code
        if status_code in (401, 403):
            logger.warning("ids_message_unauthorized", recipient=url, status_code=status_code)
            raise MessageSendError(
                f"Recipient {url} refused the connector credentials",
                reason=SendFailureReason.UNAUTHORIZED,
                status_code=status_code,
            )

        content_type = response.headers.get("content-type", "")
        is_multipart = content_type.lower().startswith("multipart/")
        if status_code >= 400 and not is_multipart:
            logger.warning("ids_message_rejected", recipient=url, status_code=status_code)
            raise MessageSendError(
                f"Recipient {url} answered with HTTP {status_code}",
                reason=SendFailureReason.REJECTED,
                status_code=status_code,
            )

        try:
            parts = decode_multipart(response.content, content_type)
        except MultipartDecodeError as exc:
            logger.warning("ids_response_not_multipart", recipient=url, error=str(exc))
            raise

        logger.info(
            "ids_response_received",
            recipient=url,
            status_code=status_code,
            parts=sorted(parts),
        )
        return ResponseEnvelope(parts=parts, status_code=status_code)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


def _validate_recipient(recipient: str) -> str:
    url = (recipient or "").strip()
    parsed = urlsplit(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise MessageSendError(
            f"Recipient {recipient!r} is not an http(s) URL",
            reason=SendFailureReason.INVALID_RECIPIENT,
        )
    return url
