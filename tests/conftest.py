import os
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

# tests/conftest.py

os.environ.setdefault("DRY_RUN", "1")

from zoiner.chain.adapters import CoinCreationResult
from zoiner.errors import NotFoundError, UpstreamUnavailableError
from zoiner.schemas.events import Cast, SocialUser
from zoiner.social.adapters import SocialApiError


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeSocial:
    """In-memory social client recording every reply."""

    def __init__(self, casts: Dict[str, Cast] | None = None, users: Dict[int, SocialUser] | None = None, fail_replies: bool = False):
        self.casts = dict(casts or {})
        self.users = dict(users or {})
        self.fail_replies = fail_replies
        self.replies: List[Dict[str, Any]] = []
        self.user_lookups: List[int] = []

    async def fetch_cast(self, cast_hash: str) -> Cast:
        if cast_hash not in self.casts:
            raise NotFoundError(f"no cast found for hash {cast_hash}")
        return self.casts[cast_hash]

    async def fetch_user(self, fid: int) -> SocialUser:
        self.user_lookups.append(fid)
        if fid not in self.users:
            raise NotFoundError(f"no user found for fid {fid}")
        return self.users[fid]

    async def publish_reply(self, text, parent_hash, parent_author_fid, embeds):
        if self.fail_replies:
            raise SocialApiError("publish cast returned 500")
        self.replies.append({"text": text, "parent": parent_hash, "parent_author_fid": parent_author_fid, "embeds": embeds})
        return f"0xreply{len(self.replies)}"


class FakePinning:
    def __init__(self, fail_auth: bool = False, fail_upload: bool = False, cid: str = "bafytestcid"):
        self.fail_auth = fail_auth
        self.fail_upload = fail_upload
        self.cid = cid
        self.pinned: List[Dict[str, Any]] = []

    async def authenticate(self) -> bool:
        if self.fail_auth:
            raise UpstreamUnavailableError("Pinata authentication failed: 401 invalid jwt")
        return True

    async def pin_json(self, document, name="metadata.json") -> str:
        if self.fail_upload:
            raise UpstreamUnavailableError("Failed to pin JSON to IPFS: 500")
        self.pinned.append({"document": document, "name": name})
        return f"ipfs://{self.cid}"

    def gateway_url(self, cid_or_uri: str) -> str:
        return f"https://gateway.test/ipfs/{cid_or_uri.replace('ipfs://', '')}"


class FakeChain:
    """Chain client replaying scripted outcomes (exceptions or results) in order."""

    def __init__(self, outcomes: List[Any] | None = None):
        self.outcomes = list(outcomes or [])
        self.calls: List[Dict[str, Any]] = []

    async def create_coin(self, name, symbol, uri, payout_recipient, initial_purchase_wei=0):
        self.calls.append({"name": name, "symbol": symbol, "uri": uri, "payout_recipient": payout_recipient, "value": initial_purchase_wei})
        outcome = self.outcomes.pop(0) if self.outcomes else default_creation()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def default_creation() -> CoinCreationResult:
    return CoinCreationResult(
        transaction_hash="0xabc123",
        contract_address="0xC0FFEE0000000000000000000000000000000001",
        deployment={"coin": "0xC0FFEE0000000000000000000000000000000001"},
    )


def make_cast(text: str = "", fid: int = 42, username: Optional[str] = "alice", **kwargs) -> Cast:
    return Cast(hash=kwargs.pop("hash", "0xcast"), author={"fid": fid, "username": username}, text=text, **kwargs)


@pytest.fixture
def cast_factory() -> Callable[..., Cast]:
    return make_cast


@pytest.fixture
def fake_social() -> FakeSocial:
    return FakeSocial()


@pytest.fixture
def fake_pinning() -> FakePinning:
    return FakePinning()


@pytest.fixture
def fake_chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def mock_http() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Return a builder for AsyncClients backed by httpx.MockTransport.

    Usage: http = mock_http(handler) where handler(request) -> httpx.Response
    """
    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return _make


@pytest.fixture
def image_hosts() -> Callable[[Dict[str, str]], Callable[[httpx.Request], httpx.Response]]:
    """Handler serving HEAD requests: url -> content-type; unknown urls return 404."""
    def _make(content_types: Dict[str, str]):
        def handler(request: httpx.Request) -> httpx.Response:
            ct = content_types.get(str(request.url))
            if ct is None:
                return httpx.Response(404)
            return httpx.Response(200, headers={"content-type": ct})
        return handler
    return _make
