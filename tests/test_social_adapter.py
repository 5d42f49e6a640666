import json

import httpx
import pytest

from zoiner.errors import NotFoundError
from zoiner.schemas.events import MediaEmbed, RichEmbed, Unrecognized
from zoiner.social import NeynarSocialClient, SocialApiError, create_social_client, format_cast, format_user

RAW_CAST = {
    "hash": "0xcast",
    "author": {"fid": 42, "username": "alice", "display_name": "Alice"},
    "text": "@zoiner coin this name: Sunset",
    "mentioned_profiles": [{"fid": 1057647, "username": "zoiner"}],
    "embeds": [
        {"url": "https://imagedelivery.example/abc/original", "metadata": {"content_type": "image/png"}},
        {"url": "https://blog.example/post", "metadata": {"content_type": "text/html", "html": {"ogImage": [{"url": "https://blog.example/og.jpg"}], "ogTitle": "Post"}}},
        {"cast_id": {"fid": 3, "hash": "0xquoted"}},
    ],
}


def test_format_cast():
    cast = format_cast(RAW_CAST)
    assert cast.hash == "0xcast"
    assert cast.author.username == "alice"
    assert cast.mentions == [1057647]
    assert len(cast.embedded_media) == 2
    assert isinstance(cast.embedded_media[0], MediaEmbed)
    assert cast.embedded_media[0].media_type == "image/png"
    assert isinstance(cast.embeds[1], RichEmbed)
    assert cast.embeds[1].image == "https://blog.example/og.jpg"
    assert isinstance(cast.embeds[2], Unrecognized)


def test_format_user_prefers_verified_addresses():
    user = format_user({"fid": 42, "username": "alice", "verified_addresses": {"eth_addresses": ["0xaaa", "0xbbb"]}})
    assert user.primary_address == "0xaaa"
    legacy = format_user({"fid": 42, "verifications": ["0xccc"]})
    assert legacy.primary_address == "0xccc"
    assert format_user({"fid": 42}).primary_address is None


def _client(handler):
    return NeynarSocialClient("key", "signer-1", httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.mark.anyio
async def test_fetch_cast_by_hash():
    def handler(request):
        assert request.url.path == "/v2/farcaster/cast"
        assert request.url.params["identifier"] == "0xcast"
        assert request.url.params["type"] == "hash"
        assert request.headers["x-api-key"] == "key"
        return httpx.Response(200, json={"cast": RAW_CAST})

    cast = await _client(handler).fetch_cast("0xcast")
    assert cast.text.startswith("@zoiner")


@pytest.mark.anyio
async def test_fetch_cast_not_found():
    with pytest.raises(NotFoundError):
        await _client(lambda r: httpx.Response(404, json={"message": "not found"})).fetch_cast("0xnope")


@pytest.mark.anyio
async def test_fetch_user():
    def handler(request):
        assert request.url.path == "/v2/farcaster/user/bulk"
        assert request.url.params["fids"] == "42"
        return httpx.Response(200, json={"users": [{"fid": 42, "verified_addresses": {"eth_addresses": ["0xaaa"]}}]})

    user = await _client(handler).fetch_user(42)
    assert user.primary_address == "0xaaa"


@pytest.mark.anyio
async def test_fetch_user_empty():
    with pytest.raises(NotFoundError):
        await _client(lambda r: httpx.Response(200, json={"users": []})).fetch_user(42)


@pytest.mark.anyio
async def test_publish_reply_payload():
    sent = {}

    def handler(request):
        sent.update(json.loads(request.content))
        return httpx.Response(200, json={"success": True, "cast": {"hash": "0xreply"}})

    h = await _client(handler).publish_reply("hi https://x.example", "0xparent", 42, [{"url": "https://x.example"}])
    assert h == "0xreply"
    assert sent == {
        "signer_uuid": "signer-1",
        "text": "hi https://x.example",
        "parent": "0xparent",
        "parent_author_fid": 42,
        "embeds": [{"url": "https://x.example"}],
    }


@pytest.mark.anyio
async def test_publish_reply_error_raises():
    with pytest.raises(SocialApiError):
        await _client(lambda r: httpx.Response(403, json={"message": "signer not approved"})).publish_reply("x", "0xp", 1, [])


def test_factory_requires_credentials():
    with pytest.raises(ValueError):
        create_social_client(None, "signer", httpx.AsyncClient())
