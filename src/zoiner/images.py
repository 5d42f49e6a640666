from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional, Tuple
from urllib.parse import urlparse

import httpx

from zoiner.config import DEFAULT_IMAGE_URL
from zoiner.schemas.events import Cast, LinkAttachment, MediaEmbed, RichEmbed
from zoiner.utils.logger_util import get_logger, logging, stage_event
logger = get_logger(__name__, logging.DEBUG)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif")
VERIFY_TIMEOUT = 10.0


@dataclass(frozen=True)
class ResolvedImage:
    url: str
    content_type: Optional[str]
    source: str  # image_urls|embedded_media|embed_image|embed_url|attachment|default

    @property
    def is_default(self) -> bool:
        return self.source == "default"


def looks_like_image(url: Optional[str], declared_type: Optional[str] = None) -> bool:
    if not url:
        return False
    if declared_type and declared_type.lower().startswith("image/"):
        return True
    path = urlparse(url).path.lower()
    return path.endswith(IMAGE_EXTENSIONS)


def iter_candidates(cast: Cast) -> Iterator[Tuple[str, str]]:
    """Yield ``(source, url)`` candidates in priority order."""
    for url in cast.image_urls:
        yield "image_urls", url
    for media in cast.embedded_media:
        if isinstance(media, MediaEmbed) and looks_like_image(media.url, media.media_type):
            yield "embedded_media", media.url
    rich = [e for e in cast.embeds if isinstance(e, RichEmbed)]
    for embed in rich:
        if embed.image:
            yield "embed_image", embed.image
    for embed in rich:
        if looks_like_image(embed.url, embed.mimetype):
            yield "embed_url", embed.url
    for attachment in cast.attachments:
        if isinstance(attachment, LinkAttachment):
            yield "attachment", attachment.url


class ImageResolver:
    """Finds the first candidate URL in a cast that the remote host serves as an image.

    Never fails: when nothing verifies, the default image is returned.
    """

    def __init__(self, http_client: httpx.AsyncClient, default_url: str = DEFAULT_IMAGE_URL, timeout: float = VERIFY_TIMEOUT):
        self.http = http_client
        self.default_url = default_url
        self.timeout = float(timeout)

    async def verify(self, url: str) -> Optional[str]:
        """Return the image content-type served for ``url``, or None."""
        try:
            resp = await self.http.head(url, timeout=self.timeout, follow_redirects=True)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.debug("image HEAD failed for %s: %s", url, e)
            return None
        if resp.status_code >= 400:
            logger.debug("image HEAD for %s returned %s", url, resp.status_code)
            return None
        content_type = (resp.headers.get("content-type") or "").split(";")[0].strip().lower()
        if content_type.startswith("image/"):
            return content_type
        logger.debug("candidate %s is not an image (content-type=%r)", url, content_type)
        return None

    async def resolve(self, cast: Cast) -> ResolvedImage:
        seen = set()
        for source, url in iter_candidates(cast):
            if url in seen:
                continue
            seen.add(url)
            content_type = await self.verify(url)
            if content_type:
                stage_event(logger, "image_resolved", cast.hash, source=source, candidate=url, content_type=content_type)
                return ResolvedImage(url=url, content_type=content_type, source=source)
            stage_event(logger, "image_rejected", cast.hash, logging.DEBUG, source=source, candidate=url)
        stage_event(logger, "image_resolved", cast.hash, source="default", candidate=self.default_url)
        return ResolvedImage(url=self.default_url, content_type=None, source="default")
