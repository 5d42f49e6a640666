from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

import httpx

from zoiner.errors import NotFoundError, ZoinerError
from zoiner.schemas.events import Cast, CastAuthor, SocialUser
from zoiner.utils.logger_util import get_logger, logging
logger = get_logger(__name__, logging.DEBUG)

NEYNAR_API_URL = "https://api.neynar.com"


class SocialApiError(ZoinerError):
    pass


class SocialClient(Protocol):
    """Read/write access to the social network.

    ``fetch_cast`` and ``fetch_user`` raise NotFoundError when the object does not exist;
    ``publish_reply`` returns the new cast hash (or None) and raises SocialApiError
    when the API refuses the write.
    """

    async def fetch_cast(self, cast_hash: str) -> Cast:
        ...

    async def fetch_user(self, fid: int) -> SocialUser:
        ...

    async def publish_reply(self, text: str, parent_hash: str, parent_author_fid: int, embeds: List[Dict[str, str]]) -> Optional[str]:
        ...


class NeynarSocialClient:
    """Farcaster access through the Neynar v2 REST API."""

    def __init__(self, api_key: str, signer_uuid: str, http_client: httpx.AsyncClient, api_url: str = NEYNAR_API_URL, timeout: float = 15.0):
        self.api_key = api_key
        self.signer_uuid = signer_uuid
        self.http = http_client
        self.api_url = api_url.rstrip("/")
        self.timeout = float(timeout)

    def _headers(self) -> Dict[str, str]:
        return {"x-api-key": self.api_key, "accept": "application/json"}

    async def _get(self, path: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            resp = await self.http.get(f"{self.api_url}{path}", params=params, headers=self._headers(), timeout=self.timeout)
        except httpx.HTTPError as e:
            raise SocialApiError(f"GET {path} failed: {e}") from e
        if resp.status_code == 404:
            return None
        if resp.status_code != 200:
            raise SocialApiError(f"GET {path} returned {resp.status_code}: {resp.text[:200]}")
        return resp.json()

    async def fetch_cast(self, cast_hash: str) -> Cast:
        body = await self._get("/v2/farcaster/cast", {"identifier": cast_hash, "type": "hash"})
        raw = (body or {}).get("cast")
        if not raw:
            raise NotFoundError(f"no cast found for hash {cast_hash}")
        cast = format_cast(raw)
        logger.debug(
            "fetched cast hash=%s author=%s media=%s embeds=%s",
            cast.hash, cast.author.fid, len(cast.embedded_media), len(cast.embeds),
        )
        return cast

    async def fetch_user(self, fid: int) -> SocialUser:
        body = await self._get("/v2/farcaster/user/bulk", {"fids": str(fid)})
        users = (body or {}).get("users") or []
        if not users:
            raise NotFoundError(f"no user found for fid {fid}")
        return format_user(users[0])

    async def publish_reply(self, text: str, parent_hash: str, parent_author_fid: int, embeds: List[Dict[str, str]]) -> Optional[str]:
        payload: Dict[str, Any] = {
            "signer_uuid": self.signer_uuid,
            "text": text,
            "parent": parent_hash,
            "parent_author_fid": parent_author_fid,
        }
        if embeds:
            payload["embeds"] = embeds
        try:
            resp = await self.http.post(f"{self.api_url}/v2/farcaster/cast", json=payload, headers=self._headers(), timeout=self.timeout)
        except httpx.HTTPError as e:
            raise SocialApiError(f"publish cast failed: {e}") from e
        if resp.status_code != 200:
            raise SocialApiError(f"publish cast returned {resp.status_code}: {resp.text[:200]}")
        return ((resp.json() or {}).get("cast") or {}).get("hash")


def format_user(raw: Dict[str, Any]) -> SocialUser:
    verified = raw.get("verified_addresses") or {}
    addresses = list(verified.get("eth_addresses") or [])
    if not addresses:
        # older payloads only list verifications
        addresses = [a for a in (raw.get("verifications") or []) if isinstance(a, str) and a.startswith("0x")]
    return SocialUser(
        fid=raw["fid"],
        username=raw.get("username"),
        display_name=raw.get("display_name"),
        verified_eth_addresses=addresses,
    )


def format_cast(raw: Dict[str, Any]) -> Cast:
    """Map a Neynar v2 cast object onto the Cast model.

    Each v2 embed may carry ``metadata.content_type`` (uploaded media) and/or
    ``metadata.html`` (open graph preview). Media goes into ``embedded_media``;
    every URL embed also becomes a rich embed with its og image if any.
    """
    author = raw.get("author") or {}
    embedded_media: List[Any] = []
    embeds: List[Any] = []
    for e in raw.get("embeds") or []:
        if not isinstance(e, dict) or not e.get("url"):
            # cast quotes ({"cast_id": ...}) and unknown shapes
            embeds.append(e)
            continue
        meta = e.get("metadata") or {}
        content_type = meta.get("content_type")
        if content_type:
            embedded_media.append({"url": e["url"], "type": content_type})
        html = meta.get("html") or {}
        og_images = html.get("ogImage") or []
        og_image = og_images[0].get("url") if og_images and isinstance(og_images[0], dict) else None
        embeds.append({
            "url": e["url"],
            "image": og_image,
            "mimetype": content_type,
            "title": html.get("ogTitle"),
            "description": html.get("ogDescription"),
        })

    mentions = [p.get("fid") for p in raw.get("mentioned_profiles") or [] if isinstance(p, dict) and p.get("fid") is not None]
    return Cast(
        hash=raw["hash"],
        author=CastAuthor(fid=author.get("fid"), username=author.get("username"), display_name=author.get("display_name")),
        text=raw.get("text") or "",
        mentions=mentions,
        image_urls=raw.get("image_urls") or [],
        embedded_media=embedded_media,
        embeds=embeds,
        attachments=raw.get("attachments") or [],
    )


def create_social_client(api_key: Optional[str], signer_uuid: Optional[str], http_client: httpx.AsyncClient) -> NeynarSocialClient:
    if not api_key or not signer_uuid:
        raise ValueError("NEYNAR_API_KEY and SIGNER_UUID are required for the social client")
    return NeynarSocialClient(api_key, signer_uuid, http_client)
