from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from zoiner.errors import MetadataValidationError
from zoiner.metadata import MetadataPublisher, build_metadata_document, fallback_metadata_uri, gateway_mirrors
from zoiner.schemas.metadata import MetadataOrigin
from conftest import FakePinning

GOOD_DOC = {"name": "Sunset", "description": "Sunset - Created via social bot", "image": "https://i.example/s.png", "symbol": "SUN"}


def test_build_document():
    doc = build_metadata_document("Sunset", "SUN", "https://i.example/s.png")
    assert doc.description == "Sunset - Created via social bot"
    assert doc.properties.category == "social"
    assert doc.is_deployable()


def test_fallback_uri_encodes_fields():
    doc = build_metadata_document("My Coin", "MC", "https://i.example/a b.png")
    uri = fallback_metadata_uri("https://bot.example/", doc)
    parsed = urlparse(uri)
    assert uri.startswith("https://bot.example/metadata?")
    assert parse_qs(parsed.query) == {"name": ["My Coin"], "symbol": ["MC"], "image": ["https://i.example/a b.png"]}


def test_gateway_mirrors_put_pinning_gateway_first():
    mirrors = gateway_mirrors("my.mypinata.cloud")
    assert mirrors[0] == "https://my.mypinata.cloud/ipfs/"
    assert "https://ipfs.io/ipfs/" in mirrors


@pytest.mark.anyio
async def test_primary_path_pins_document(mock_http):
    pinning = FakePinning(cid="bafyprimary")
    pub = MetadataPublisher(pinning, mock_http(lambda r: httpx.Response(500)), "http://bot.test", dry_run=True)
    published = await pub.publish("Sunset", "SUN", "https://i.example/s.png")
    assert published.uri == "ipfs://bafyprimary"
    assert published.origin is MetadataOrigin.PRIMARY
    assert pinning.pinned[0]["name"] == "Sunset-metadata.json"
    assert pinning.pinned[0]["document"]["image"] == "https://i.example/s.png"


@pytest.mark.anyio
@pytest.mark.parametrize("pinning", [FakePinning(fail_auth=True), FakePinning(fail_upload=True), None])
async def test_pinning_failure_falls_back(mock_http, pinning):
    pub = MetadataPublisher(pinning, mock_http(lambda r: httpx.Response(500)), "http://bot.test", dry_run=True)
    published = await pub.publish("Sunset", "SUN", "https://i.example/s.png")
    assert published.origin is MetadataOrigin.FALLBACK
    assert published.uri.startswith("http://bot.test/metadata?")


@pytest.mark.anyio
async def test_ipfs_validation_tries_each_mirror(mock_http):
    seen = []

    def handler(request):
        seen.append(request.url.host)
        if request.url.host == "second.example":
            return httpx.Response(200, json=GOOD_DOC)
        return httpx.Response(504)

    pub = MetadataPublisher(None, mock_http(handler), "http://bot.test",
                            gateways=["https://first.example/ipfs/", "https://second.example/ipfs/", "https://third.example/ipfs/"])
    assert await pub.validate("ipfs://bafyx") is True
    assert seen == ["first.example", "second.example"]


@pytest.mark.anyio
async def test_ipfs_not_propagated_is_not_fatal(mock_http):
    def handler(request):
        if request.url.host == "first.example":
            raise httpx.ReadTimeout("slow", request=request)
        return httpx.Response(200, json={"name": "Sunset"})

    pub = MetadataPublisher(FakePinning(), mock_http(handler), "http://bot.test",
                            gateways=["https://first.example/ipfs/", "https://second.example/ipfs/"])
    published = await pub.publish("Sunset", "SUN", "https://i.example/s.png")
    assert published.uri == "ipfs://bafytestcid"
    assert await pub.validate(published.uri) is False


@pytest.mark.anyio
async def test_http_uri_missing_fields_is_fatal(mock_http):
    pub = MetadataPublisher(None, mock_http(lambda r: httpx.Response(200, json={"name": "Sunset", "image": ""})), "http://bot.test")
    with pytest.raises(MetadataValidationError) as exc:
        await pub.publish("Sunset", "SUN", "https://i.example/s.png")
    assert "description" in str(exc.value) and "image" in str(exc.value)


@pytest.mark.anyio
async def test_http_uri_unreachable_is_fatal(mock_http):
    def handler(request):
        raise httpx.ConnectError("down", request=request)

    pub = MetadataPublisher(None, mock_http(handler), "http://bot.test")
    with pytest.raises(MetadataValidationError):
        await pub.validate("http://bot.test/metadata?name=x")


@pytest.mark.anyio
async def test_unsupported_scheme(mock_http):
    pub = MetadataPublisher(None, mock_http(lambda r: httpx.Response(200)), "http://bot.test")
    with pytest.raises(MetadataValidationError):
        await pub.validate("ar://abc")


@pytest.mark.anyio
async def test_dry_run_skips_validation(mock_http):
    def handler(request):
        raise AssertionError("no network calls expected in dry run")

    pub = MetadataPublisher(None, mock_http(handler), "http://bot.test", dry_run=True)
    published = await pub.publish("Sunset", "SUN", "https://i.example/s.png")
    assert published.origin is MetadataOrigin.FALLBACK


@pytest.mark.anyio
async def test_fallback_endpoint_serves_same_fields():
    import zoiner.main as zmain

    # validation fetches the fallback URI from the app itself
    http = httpx.AsyncClient(transport=httpx.ASGITransport(app=zmain.app))
    pub = MetadataPublisher(FakePinning(fail_auth=True), http, "http://testserver")
    published = await pub.publish("Sunset", "SUN", "https://i.example/s.png")
    assert published.origin is MetadataOrigin.FALLBACK

    r = await http.get(published.uri)
    body = r.json()
    assert r.headers["content-type"].startswith("application/json")
    assert body["name"] == "Sunset"
    assert body["symbol"] == "SUN"
    assert body["image"] == "https://i.example/s.png"
    assert body["properties"] == {"category": "social"}
    await http.aclose()
