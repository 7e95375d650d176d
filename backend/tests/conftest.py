"""
Pytest fixtures for connector testing.
Provides deterministic settings and helpers for building IDS multipart responses.
"""

import json
from collections.abc import Callable, Iterator
from typing import Any

import httpx
import pytest

from dsconnector.core.config import get_settings

TEST_CONNECTOR_ID = "https://connector.test/ids"
TEST_SECURITY_TOKEN = "test-dat-token"


@pytest.fixture(autouse=True)
def connector_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Pin the connector identity so settings do not depend on the host env."""
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("CONNECTOR_ID", TEST_CONNECTOR_ID)
    monkeypatch.setenv("IDS_SECURITY_TOKEN", TEST_SECURITY_TOKEN)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def _ids_header(type_tag: str, **extra: Any) -> str:
    document: dict[str, Any] = {
        "@context": {"ids": "https://w3id.org/idsa/core/"},
        "@type": type_tag,
        "@id": "https://w3id.org/idsa/autogen/message/peer-1",
        "ids:modelVersion": "4.0.0",
    }
    document.update(extra)
    return json.dumps(document)


@pytest.fixture
def ids_header() -> Callable[..., str]:
    """Factory for serialized JSON-LD headers of peer responses."""
    return _ids_header


def _encode_parts(parts: dict[str, tuple[str, str]]) -> tuple[bytes, str]:
    """Encode ``{name: (content, content_type)}`` the way httpx sends form files."""
    files = {name: (None, content, content_type) for name, (content, content_type) in parts.items()}
    request = httpx.Request("POST", "https://peer.example/ids", files=files)
    return request.read(), request.headers["Content-Type"]


@pytest.fixture
def encode_parts() -> Callable[[dict[str, tuple[str, str]]], tuple[bytes, str]]:
    """Factory for multipart bodies; returns ``(body, content_type)``."""
    return _encode_parts


@pytest.fixture
def multipart_response() -> Callable[..., httpx.Response]:
    """Factory for peer responses encoded as multipart/form-data."""

    def _build(
        header: str,
        payload: str | None = None,
        *,
        status_code: int = 200,
    ) -> httpx.Response:
        parts = {"header": (header, "application/ld+json")}
        if payload is not None:
            parts["payload"] = (payload, "text/plain")
        body, content_type = _encode_parts(parts)
        return httpx.Response(
            status_code,
            content=body,
            headers={"Content-Type": content_type},
            request=httpx.Request("POST", "https://peer.example/ids"),
        )

    return _build
