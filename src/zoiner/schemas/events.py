from __future__ import annotations

from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

CAST_CREATED = "cast.created"


class MediaEmbed(BaseModel):
    """Uploaded media attached to a cast (image, video, ...)."""

    kind: Literal["media"] = "media"
    url: str
    media_type: Optional[str] = None
    alt_text: Optional[str] = None


class RichEmbed(BaseModel):
    """Link preview style embed; may expose a direct ``image`` field."""

    kind: Literal["rich"] = "rich"
    url: Optional[str] = None
    image: Optional[str] = None
    mimetype: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None


class LinkAttachment(BaseModel):
    kind: Literal["link"] = "link"
    url: str
    media_type: Optional[str] = None


class Unrecognized(BaseModel):
    """Any embed or attachment shape we do not understand; always ignored."""

    kind: Literal["unrecognized"] = "unrecognized"
    raw: Any = None


MediaItem = Annotated[Union[MediaEmbed, Unrecognized], Field(discriminator="kind")]
EmbedItem = Annotated[Union[RichEmbed, Unrecognized], Field(discriminator="kind")]
AttachmentItem = Annotated[Union[LinkAttachment, Unrecognized], Field(discriminator="kind")]


def _nonempty_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _already_tagged(raw: Any) -> bool:
    return isinstance(raw, BaseModel) or (isinstance(raw, dict) and "kind" in raw)


def classify_media(raw: Any) -> Any:
    if _already_tagged(raw):
        return raw
    if isinstance(raw, dict) and _nonempty_str(raw.get("url")):
        return {
            "kind": "media",
            "url": _nonempty_str(raw.get("url")),
            "media_type": _nonempty_str(raw.get("type")) or _nonempty_str(raw.get("media_type")),
            "alt_text": _nonempty_str(raw.get("alt_text")) or _nonempty_str(raw.get("altText")),
        }
    return {"kind": "unrecognized", "raw": raw}


def classify_embed(raw: Any) -> Any:
    if _already_tagged(raw):
        return raw
    if isinstance(raw, dict) and (_nonempty_str(raw.get("url")) or _nonempty_str(raw.get("image"))):
        return {
            "kind": "rich",
            "url": _nonempty_str(raw.get("url")),
            "image": _nonempty_str(raw.get("image")),
            "mimetype": _nonempty_str(raw.get("mimetype")),
            "title": _nonempty_str(raw.get("title")),
            "description": _nonempty_str(raw.get("description")),
        }
    return {"kind": "unrecognized", "raw": raw}


def classify_attachment(raw: Any) -> Any:
    if _already_tagged(raw):
        return raw
    if _nonempty_str(raw):
        return {"kind": "link", "url": raw.strip()}
    if isinstance(raw, dict) and _nonempty_str(raw.get("url")):
        return {"kind": "link", "url": _nonempty_str(raw.get("url")), "media_type": _nonempty_str(raw.get("type"))}
    return {"kind": "unrecognized", "raw": raw}


class CastAuthor(BaseModel):
    fid: int
    username: Optional[str] = None
    display_name: Optional[str] = None


class Cast(BaseModel):
    """A single post, normalised from the social API response."""

    model_config = ConfigDict(frozen=True)

    hash: str
    author: CastAuthor
    text: str = ""
    mentions: List[int] = Field(default_factory=list)
    image_urls: List[str] = Field(default_factory=list)
    embedded_media: List[MediaItem] = Field(default_factory=list)
    embeds: List[EmbedItem] = Field(default_factory=list)
    attachments: List[AttachmentItem] = Field(default_factory=list)

    @field_validator("text", mode="before")
    def _text_never_none(cls, v):
        return v or ""

    @field_validator("image_urls", mode="before")
    def _keep_string_urls(cls, v):
        return [u for u in (_nonempty_str(x) for x in (v or [])) if u]

    @field_validator("embedded_media", mode="before")
    def _tag_media(cls, v):
        return [classify_media(x) for x in (v or [])]

    @field_validator("embeds", mode="before")
    def _tag_embeds(cls, v):
        return [classify_embed(x) for x in (v or [])]

    @field_validator("attachments", mode="before")
    def _tag_attachments(cls, v):
        return [classify_attachment(x) for x in (v or [])]


class SocialUser(BaseModel):
    fid: int
    username: Optional[str] = None
    display_name: Optional[str] = None
    verified_eth_addresses: List[str] = Field(default_factory=list)

    @property
    def primary_address(self) -> Optional[str]:
        return self.verified_eth_addresses[0] if self.verified_eth_addresses else None


class WebhookData(BaseModel):
    model_config = ConfigDict(extra="allow")

    hash: str


class WebhookEvent(BaseModel):
    type: str
    created_at: Optional[int] = None
    data: WebhookData

    @property
    def is_cast_created(self) -> bool:
        return self.type == CAST_CREATED
