from __future__ import annotations

from typing import List, Optional, Sequence
from urllib.parse import urlencode

import httpx

from zoiner.config import DEFAULT_GATEWAY
from zoiner.errors import MetadataValidationError, UpstreamUnavailableError
from zoiner.pinning.adapters import PinningClient, strip_ipfs_scheme
from zoiner.schemas.metadata import (
    MetadataDocument,
    MetadataOrigin,
    MetadataProperties,
    PublishedMetadata,
    missing_required_fields,
)
from zoiner.utils.logger_util import get_logger, logging, stage_event
logger = get_logger(__name__, logging.DEBUG)

ACCEPTED_SCHEMES = ("ipfs://", "http://", "https://")
PUBLIC_GATEWAYS = ("https://ipfs.io/ipfs/", "https://cloudflare-ipfs.com/ipfs/", "https://dweb.link/ipfs/")
GATEWAY_TIMEOUT = 5.0
HTTP_VALIDATION_TIMEOUT = 10.0


def build_metadata_document(name: str, symbol: str, image_url: str) -> MetadataDocument:
    return MetadataDocument(
        name=name,
        description=f"{name} - Created via social bot",
        symbol=symbol,
        image=image_url,
        properties=MetadataProperties(category="social"),
    )


def fallback_metadata_uri(api_endpoint: str, document: MetadataDocument) -> str:
    params = urlencode({"name": document.name, "symbol": document.symbol or document.name, "image": document.image})
    return f"{api_endpoint.rstrip('/')}/metadata?{params}"


def gateway_mirrors(pinning_gateway: Optional[str] = DEFAULT_GATEWAY) -> List[str]:
    """Gateways tried, in order, when checking that an ipfs:// document propagated."""
    mirrors = []
    if pinning_gateway:
        host = pinning_gateway.replace("https://", "").replace("http://", "").rstrip("/")
        mirrors.append(f"https://{host}/ipfs/")
    mirrors.extend(g for g in PUBLIC_GATEWAYS if g not in mirrors)
    return mirrors


class MetadataPublisher:
    """Builds the coin metadata document and makes it fetchable.

    Pins to the pinning service when possible and falls back to this service's
    own ``/metadata`` endpoint otherwise. The choice never raises; only a hard
    validation failure of an http(s) URI does.
    """

    def __init__(
        self,
        pinning: Optional[PinningClient],
        http_client: httpx.AsyncClient,
        api_endpoint: str,
        dry_run: bool = False,
        gateways: Sequence[str] | None = None,
        gateway_timeout: float = GATEWAY_TIMEOUT,
    ):
        self.pinning = pinning
        self.http = http_client
        self.api_endpoint = api_endpoint.rstrip("/")
        self.dry_run = dry_run
        self.gateways = list(gateways) if gateways is not None else gateway_mirrors()
        self.gateway_timeout = float(gateway_timeout)

    async def publish(self, name: str, symbol: str, image_url: str, cast_hash: str | None = None) -> PublishedMetadata:
        document = build_metadata_document(name, symbol, image_url)
        published = await self._pin_or_fallback(document, cast_hash)
        stage_event(logger, "metadata_published", cast_hash, uri=published.uri, origin=published.origin.value)
        if not self.dry_run:
            await self.validate(published.uri, cast_hash)
        return published

    async def _pin_or_fallback(self, document: MetadataDocument, cast_hash: str | None) -> PublishedMetadata:
        if self.pinning is not None:
            try:
                await self.pinning.authenticate()
                uri = await self.pinning.pin_json(document.model_dump(), f"{document.name}-metadata.json")
                return PublishedMetadata(uri=uri, origin=MetadataOrigin.PRIMARY)
            except (UpstreamUnavailableError, httpx.HTTPError) as e:
                stage_event(logger, "pinning_failed", cast_hash, logging.WARNING, error=str(e))
        uri = fallback_metadata_uri(self.api_endpoint, document)
        logger.info("metadata served from fallback endpoint: %s", uri)
        return PublishedMetadata(uri=uri, origin=MetadataOrigin.FALLBACK)

    async def validate(self, uri: str, cast_hash: str | None = None) -> bool:
        """Check the URI is usable.

        ipfs:// is best effort: returns False (and logs) when no mirror has the
        document yet. http(s):// must serve a complete document right now or
        MetadataValidationError is raised.
        """
        if not uri.startswith(ACCEPTED_SCHEMES):
            raise MetadataValidationError(f"Unsupported metadata URI scheme: {uri}")
        if uri.startswith("ipfs://"):
            return await self._validate_ipfs(uri, cast_hash)
        await self._validate_http(uri)
        return True

    async def _validate_ipfs(self, uri: str, cast_hash: str | None) -> bool:
        cid = strip_ipfs_scheme(uri)
        for gateway in self.gateways:
            url = f"{gateway.rstrip('/')}/{cid}"
            try:
                resp = await self.http.get(url, timeout=self.gateway_timeout, follow_redirects=True)
            except httpx.HTTPError as e:
                logger.debug("gateway %s unreachable for %s: %s", gateway, cid, e)
                continue
            if resp.status_code != 200:
                logger.debug("gateway %s returned %s for %s", gateway, resp.status_code, cid)
                continue
            try:
                body = resp.json()
            except ValueError:
                continue
            if not missing_required_fields(body):
                stage_event(logger, "metadata_validated", cast_hash, uri=uri, gateway=gateway)
                return True
        stage_event(logger, "metadata_not_propagated", cast_hash, logging.WARNING, uri=uri, gateways=len(self.gateways))
        return False

    async def _validate_http(self, uri: str) -> None:
        try:
            resp = await self.http.get(uri, timeout=HTTP_VALIDATION_TIMEOUT, follow_redirects=True)
        except httpx.HTTPError as e:
            raise MetadataValidationError(f"Metadata URI {uri} is not reachable: {e}") from e
        if resp.status_code != 200:
            raise MetadataValidationError(f"Metadata URI {uri} returned HTTP {resp.status_code}")
        try:
            body = resp.json()
        except ValueError as e:
            raise MetadataValidationError(f"Metadata at {uri} is not valid JSON") from e
        missing = missing_required_fields(body)
        if missing:
            raise MetadataValidationError(f"Metadata is missing required fields: {', '.join(missing)}")
