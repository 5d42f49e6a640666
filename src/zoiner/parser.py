from __future__ import annotations

import re
import time
from dataclasses import dataclass
from typing import Callable, Optional

from zoiner.schemas.events import Cast
from zoiner.utils.logger_util import get_logger, logging
logger = get_logger(__name__, logging.DEBUG)

COMMAND_PHRASE = "coin this"
NAME_RE = re.compile(r"name:\s*(\S+)", re.IGNORECASE)
TICKER_RE = re.compile(r"ticker:\s*(\S+)", re.IGNORECASE)
MAX_NAME_LEN = 30
MAX_SYMBOL_LEN = 5
FALLBACK_NAME = "Zoiner"
SYNTHETIC_SYMBOL_PREFIX = "ZOI"


@dataclass(frozen=True)
class ParsedCommand:
    is_valid: bool
    name: str = ""
    symbol: str = ""


INVALID = ParsedCommand(is_valid=False)


def is_coin_request(text: str | None) -> bool:
    return COMMAND_PHRASE in (text or "").lower()


def _first_token(pattern: re.Pattern, text: str) -> Optional[str]:
    m = pattern.search(text)
    if not m:
        return None
    token = m.group(1).strip()
    return token or None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _synthetic_symbol(clock: Callable[[], float]) -> str:
    return f"{SYNTHETIC_SYMBOL_PREFIX}{int(clock() * 1000) % 10000:04d}"


def parse_command(text: str | None, author_username: str | None, clock: Callable[[], float] = time.time) -> ParsedCommand:
    """Decide whether ``text`` asks for a coin and extract its name and symbol.

    Falls back to the author's username (then to fixed or time-derived values)
    when ``name:`` / ``ticker:`` are not given. Returns INVALID when the command
    phrase is absent.
    """
    text = text or ""
    if not is_coin_request(text):
        return INVALID

    username = _clean(author_username)

    name = _first_token(NAME_RE, text) or username or FALLBACK_NAME
    if username:
        default_symbol = username.upper()[:MAX_SYMBOL_LEN]
    else:
        default_symbol = _synthetic_symbol(clock)
    symbol = _first_token(TICKER_RE, text) or default_symbol

    parsed = ParsedCommand(is_valid=True, name=name[:MAX_NAME_LEN], symbol=symbol.upper()[:MAX_SYMBOL_LEN])
    logger.debug("parsed coin command name=%s symbol=%s (username=%s)", parsed.name, parsed.symbol, username)
    return parsed


def mentions_bot(cast: Cast, bot_fid: int | None, bot_name: str) -> bool:
    """True when the cast mentions the bot by fid list, ``@<name>`` or ``@!<fid>``."""
    if bot_fid is not None and bot_fid in cast.mentions:
        return True
    lower = cast.text.lower()
    if bot_name and f"@{bot_name.lower()}" in lower:
        return True
    if bot_fid is not None and f"@!{bot_fid}" in lower:
        return True
    return False
