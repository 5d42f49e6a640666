from __future__ import annotations

from enum import Enum
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field

REQUIRED_FIELDS = ("name", "description", "image")


class MetadataProperties(BaseModel):
    model_config = ConfigDict(extra="allow")

    category: str = "social"


class MetadataDocument(BaseModel):
    """EIP-7572 style coin metadata."""

    name: str
    description: str
    symbol: str
    image: str
    properties: MetadataProperties = Field(default_factory=MetadataProperties)

    def is_deployable(self) -> bool:
        return not missing_required_fields(self.model_dump())


class MetadataOrigin(str, Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"


class PublishedMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    uri: str
    origin: MetadataOrigin


def missing_required_fields(payload: Any) -> List[str]:
    """Names of required fields that are absent or blank in a decoded metadata body."""
    if not isinstance(payload, dict):
        return list(REQUIRED_FIELDS)
    missing = []
    for key in REQUIRED_FIELDS:
        value = payload.get(key)
        if not isinstance(value, str) or not value.strip():
            missing.append(key)
    return missing
