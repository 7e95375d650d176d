"""
Typed components carried in description response payloads.

A description response without a requested element holds either a resource
description or the connector's self-description. Keys are accepted in the
JSON-LD form (``@id``, ``@type``, ``ids:title``) as well as plain names
(``id``, ``type``, ``title``) and serialized back in JSON-LD form.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, model_validator

from dsconnector.modules.ids.errors import InvalidComponentError, UnrecognizedComponentError
from dsconnector.modules.ids.models import IDS_NAMESPACE


def _jsonld(name: str, *, prefixed: bool = True) -> dict[str, Any]:
    key = f"ids:{name}" if prefixed else f"@{name}"
    return {
        "validation_alias": AliasChoices(key, name),
        "serialization_alias": key,
    }


class _IdsModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_payload(self) -> dict[str, Any]:
        """JSON-LD document with unset optional fields and empty lists left out."""
        payload = self.model_dump(by_alias=True, exclude_none=True, mode="json")
        extra_keys = set(self.model_extra or {})
        return {
            key: value
            for key, value in payload.items()
            if key in extra_keys or value != []
        }


class TypedLiteral(_IdsModel):
    """Language-tagged string (``{"@value": ..., "@language": ...}``)."""

    value: str = Field(**_jsonld("value", prefixed=False))
    language: str | None = Field(default=None, **_jsonld("language", prefixed=False))

    @model_validator(mode="before")
    @classmethod
    def _wrap_plain_string(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"@value": data}
        return data


class Reference(_IdsModel):
    """``{"@id": uri}`` reference to another IDS entity."""

    id: str = Field(**_jsonld("id", prefixed=False))

    @model_validator(mode="before")
    @classmethod
    def _wrap_plain_uri(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"@id": data}
        return data


class Resource(_IdsModel):
    """Description of a resource offered by a connector."""

    id: str = Field(min_length=1, **_jsonld("id", prefixed=False))
    type: str = Field(**_jsonld("type", prefixed=False))
    title: list[TypedLiteral] = Field(default_factory=list, **_jsonld("title"))
    description: list[TypedLiteral] = Field(default_factory=list, **_jsonld("description"))
    keyword: list[TypedLiteral] = Field(default_factory=list, **_jsonld("keyword"))
    version: str | None = Field(default=None, **_jsonld("version"))
    publisher: Reference | None = Field(default=None, **_jsonld("publisher"))
    sovereign: Reference | None = Field(default=None, **_jsonld("sovereign"))
    representation: list[dict[str, Any]] = Field(
        default_factory=list, **_jsonld("representation")
    )
    contract_offer: list[dict[str, Any]] = Field(
        default_factory=list,
        validation_alias=AliasChoices("ids:contractOffer", "contractOffer", "contract_offer"),
        serialization_alias="ids:contractOffer",
    )


class ResourceCatalog(_IdsModel):
    """Catalog of offered resources inside a connector self-description."""

    id: str = Field(min_length=1, **_jsonld("id", prefixed=False))
    type: str = Field(default="ids:ResourceCatalog", **_jsonld("type", prefixed=False))
    offered_resource: list[Resource] = Field(
        default_factory=list,
        validation_alias=AliasChoices("ids:offeredResource", "offeredResource", "offered_resource"),
        serialization_alias="ids:offeredResource",
    )


class BaseConnector(_IdsModel):
    """Self-description of a connector (``ids:BaseConnector`` / ``ids:TrustedConnector``)."""

    id: str = Field(min_length=1, **_jsonld("id", prefixed=False))
    type: str = Field(**_jsonld("type", prefixed=False))
    title: list[TypedLiteral] = Field(default_factory=list, **_jsonld("title"))
    description: list[TypedLiteral] = Field(default_factory=list, **_jsonld("description"))
    curator: Reference | None = Field(default=None, **_jsonld("curator"))
    maintainer: Reference | None = Field(default=None, **_jsonld("maintainer"))
    outbound_model_version: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "ids:outboundModelVersion", "outboundModelVersion", "outbound_model_version"
        ),
        serialization_alias="ids:outboundModelVersion",
    )
    inbound_model_version: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices(
            "ids:inboundModelVersion", "inboundModelVersion", "inbound_model_version"
        ),
        serialization_alias="ids:inboundModelVersion",
    )
    security_profile: Reference | None = Field(
        default=None,
        validation_alias=AliasChoices("ids:securityProfile", "securityProfile", "security_profile"),
        serialization_alias="ids:securityProfile",
    )
    resource_catalog: list[ResourceCatalog] = Field(
        default_factory=list,
        validation_alias=AliasChoices("ids:resourceCatalog", "resourceCatalog", "resource_catalog"),
        serialization_alias="ids:resourceCatalog",
    )

    def offered_resources(self) -> list[Resource]:
        return [
            resource for catalog in self.resource_catalog for resource in catalog.offered_resource
        ]


DescribedComponent = Resource | BaseConnector

_COMPONENT_MODELS: dict[str, type[Resource] | type[BaseConnector]] = {
    "Resource": Resource,
    "BaseConnector": BaseConnector,
    "TrustedConnector": BaseConnector,
}


def _short_type_name(type_tag: str) -> str:
    tag = type_tag.strip()
    if tag.startswith(IDS_NAMESPACE):
        return tag[len(IDS_NAMESPACE) :]
    return tag.removeprefix("ids:")


def parse_component(payload: str) -> DescribedComponent:
    """
    Parse a description payload into a resource or connector self-description.

    Raises:
        UnrecognizedComponentError: The payload is not a JSON object with a
            known component type.
        InvalidComponentError: The type is known but the content does not
            validate. It subclasses UnrecognizedComponentError, so callers
            treat both the same way.
    """
    try:
        document = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise UnrecognizedComponentError("Payload is not a JSON document") from exc
    if not isinstance(document, dict):
        raise UnrecognizedComponentError("Payload is not a JSON object")

    type_tag = document.get("@type", document.get("type"))
    if not isinstance(type_tag, str):
        raise UnrecognizedComponentError("Payload has no type")

    model = _COMPONENT_MODELS.get(_short_type_name(type_tag))
    if model is None:
        raise UnrecognizedComponentError(f"Unsupported component type {type_tag!r}")

    try:
        return model.model_validate(document)
    except ValidationError as exc:
        raise InvalidComponentError(
            f"Invalid {_short_type_name(type_tag)} description: {exc.error_count()} error(s)"
        ) from exc
