from __future__ import annotations

import re
from typing import Dict, List, Optional

from zoiner.social.adapters import SocialClient
from zoiner.utils.logger_util import get_logger, logging
logger = get_logger(__name__, logging.DEBUG)

URL_RE = re.compile(r"https?://\S+")
# sentence punctuation right after a link is not part of it
TRAILING_PUNCTUATION = ".,;:!?)"


def extract_link_embeds(text: str) -> List[Dict[str, str]]:
    """Every distinct http(s) URL in ``text``, in order, as reply embeds."""
    seen = []
    for match in URL_RE.findall(text or ""):
        url = match.rstrip(TRAILING_PUNCTUATION)
        if url not in seen:
            seen.append(url)
    return [{"url": u} for u in seen]


class ReplyNotifier:
    """Posts replies into the originating thread; failures are logged, never raised."""

    def __init__(self, social: SocialClient):
        self.social = social

    async def reply(self, parent_author_fid: int, parent_hash: str, text: str) -> Optional[str]:
        embeds = extract_link_embeds(text)
        try:
            reply_hash = await self.social.publish_reply(text, parent_hash, parent_author_fid, embeds)
        except Exception:
            logger.exception("failed to reply to cast %s", parent_hash)
            return None
        logger.debug("replied to %s with %s (embeds=%s)", parent_hash, reply_hash, len(embeds))
        return reply_hash
