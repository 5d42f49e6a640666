from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

import httpx

from zoiner.config import DEFAULT_GATEWAY
from zoiner.errors import UpstreamUnavailableError
from zoiner.utils.logger_util import get_logger, logging
logger = get_logger(__name__, logging.DEBUG)

PINATA_API_URL = "https://api.pinata.cloud"


class PinningClient(Protocol):
    """Content-addressed storage used to publish coin metadata.

    ``authenticate`` and ``pin_json`` raise UpstreamUnavailableError on any failure.
    """

    async def authenticate(self) -> bool:
        ...

    async def pin_json(self, document: Dict[str, Any], name: str) -> str:
        ...

    def gateway_url(self, cid_or_uri: str) -> str:
        ...


class PinataClient:
    """Pinata REST client (JWT auth)."""

    def __init__(self, jwt: str | None, http_client: httpx.AsyncClient, gateway: str = DEFAULT_GATEWAY, api_url: str = PINATA_API_URL, timeout: float = 30.0):
        self.jwt = (jwt or "").strip()
        self.http = http_client
        self.gateway = gateway.replace("https://", "").replace("http://", "").rstrip("/")
        self.api_url = api_url.rstrip("/")
        self.timeout = float(timeout)
        if not self.jwt:
            logger.error("PINATA_JWT is not set; metadata will be served from the fallback endpoint")

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.jwt}"}

    async def authenticate(self) -> bool:
        if not self.jwt:
            raise UpstreamUnavailableError("PINATA_JWT is not set. Cannot authenticate with Pinata.")
        try:
            resp = await self.http.get(f"{self.api_url}/data/testAuthentication", headers=self._headers(), timeout=self.timeout)
        except httpx.HTTPError as e:
            raise UpstreamUnavailableError(f"Pinata authentication failed: {e}") from e
        if resp.status_code != 200:
            if resp.status_code == 401:
                logger.error("Pinata JWT is invalid or expired")
            raise UpstreamUnavailableError(f"Pinata authentication failed: {resp.status_code} {_error_reason(resp)}")
        logger.debug("Pinata authentication successful")
        return True

    async def pin_json(self, document: Dict[str, Any], name: str = "metadata.json") -> str:
        payload = {"pinataContent": document, "pinataMetadata": {"name": name}}
        try:
            resp = await self.http.post(
                f"{self.api_url}/pinning/pinJSONToIPFS",
                json=payload,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise UpstreamUnavailableError(f"Failed to pin JSON to IPFS: {e}") from e
        if resp.status_code != 200:
            raise UpstreamUnavailableError(f"Failed to pin JSON to IPFS: {resp.status_code} {_error_reason(resp)}")
        try:
            body = resp.json()
        except ValueError:
            body = None
        cid = body.get("IpfsHash") if isinstance(body, dict) else None
        if not cid:
            raise UpstreamUnavailableError("Failed to pin JSON to IPFS: response carried no IpfsHash")
        logger.info("JSON pinned to IPFS name=%s cid=%s gateway=%s", name, cid, self.gateway_url(cid))
        return f"ipfs://{cid}"

    def gateway_url(self, cid_or_uri: str) -> str:
        return f"https://{self.gateway}/ipfs/{strip_ipfs_scheme(cid_or_uri)}"


def strip_ipfs_scheme(cid_or_uri: str) -> str:
    return cid_or_uri[len("ipfs://"):] if cid_or_uri.startswith("ipfs://") else cid_or_uri


def _error_reason(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200]
    err = body.get("error") if isinstance(body, dict) else None
    if isinstance(err, dict):
        return str(err.get("reason") or err.get("details") or err)
    return str(err or body)


def create_pinning_client(jwt: Optional[str], http_client: httpx.AsyncClient, gateway: str = DEFAULT_GATEWAY) -> Optional[PinataClient]:
    """Return a PinataClient, or None when no credential is configured."""
    if not (jwt or "").strip():
        logger.warning("no PINATA_JWT configured; pinning disabled")
        return None
    return PinataClient(jwt, http_client, gateway=gateway)
