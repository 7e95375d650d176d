"""FastAPI dependencies for the IDS message endpoints."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends

from dsconnector.core.config import get_settings
from dsconnector.modules.ids.client import IDSConfig, IDSMessageClient


async def get_ids_client() -> AsyncGenerator[IDSMessageClient, None]:
    """
    Dependency that provides an IDS message client.

    The client lives for the duration of the request and is closed
    afterwards regardless of the outcome.
    """
    client = IDSMessageClient(IDSConfig.from_settings(get_settings()))
    try:
        yield client
    finally:
        await client.close()


IDSClient = Annotated[IDSMessageClient, Depends(get_ids_client)]
