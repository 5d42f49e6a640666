from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

import httpx
from eth_account import Account
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.logs import DISCARD

from zoiner.errors import ChainErrorKind, ChainWriteError
from zoiner.pinning.adapters import strip_ipfs_scheme
from zoiner.schemas.metadata import missing_required_fields
from zoiner.utils.logger_util import get_logger, logging
logger = get_logger(__name__, logging.DEBUG)

# Zora coin factory (Base mainnet)
ZORA_FACTORY_ADDRESS = "0x777777751622c0d3258f214F9DF38E35BF45baF3"
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
ETH_TICK_LOWER = -199200
METADATA_GATEWAY = "https://ipfs.io/ipfs/"
RECEIPT_TIMEOUT = 180

ZORA_FACTORY_ABI = [
    {
        "type": "function",
        "name": "deploy",
        "stateMutability": "payable",
        "inputs": [
            {"name": "payoutRecipient", "type": "address"},
            {"name": "owners", "type": "address[]"},
            {"name": "uri", "type": "string"},
            {"name": "name", "type": "string"},
            {"name": "symbol", "type": "string"},
            {"name": "platformReferrer", "type": "address"},
            {"name": "currency", "type": "address"},
            {"name": "tickLower", "type": "int24"},
            {"name": "orderSize", "type": "uint256"},
        ],
        "outputs": [
            {"name": "", "type": "address"},
            {"name": "", "type": "uint256"},
        ],
    },
    {
        "type": "event",
        "name": "CoinCreated",
        "anonymous": False,
        "inputs": [
            {"name": "caller", "type": "address", "indexed": True},
            {"name": "payoutRecipient", "type": "address", "indexed": True},
            {"name": "platformReferrer", "type": "address", "indexed": True},
            {"name": "currency", "type": "address", "indexed": False},
            {"name": "uri", "type": "string", "indexed": False},
            {"name": "name", "type": "string", "indexed": False},
            {"name": "symbol", "type": "string", "indexed": False},
            {"name": "coin", "type": "address", "indexed": False},
            {"name": "pool", "type": "address", "indexed": False},
            {"name": "version", "type": "string", "indexed": False},
        ],
    },
]


@dataclass(frozen=True)
class CoinCreationResult:
    transaction_hash: str
    contract_address: str
    deployment: Dict[str, Any] = field(default_factory=dict)


class ChainClient(Protocol):
    """Submits the coin-creation transaction.

    Implementations raise ChainWriteError tagged METADATA_FETCH when the metadata
    URI could not be read yet (nothing was sent), FATAL for everything else.
    """

    async def create_coin(self, name: str, symbol: str, uri: str, payout_recipient: str, initial_purchase_wei: int = 0) -> CoinCreationResult:
        ...


def metadata_fetch_url(uri: str, gateway: str = METADATA_GATEWAY) -> str:
    if uri.startswith("ipfs://"):
        return f"{gateway.rstrip('/')}/{strip_ipfs_scheme(uri)}"
    return uri


class ZoraChainClient:
    """Deploys Zora coins through the factory contract with a local signing key."""

    def __init__(
        self,
        rpc_url: str,
        private_key: str,
        http_client: httpx.AsyncClient,
        factory_address: str = ZORA_FACTORY_ADDRESS,
        metadata_gateway: str = METADATA_GATEWAY,
        receipt_timeout: int = RECEIPT_TIMEOUT,
    ):
        self.w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self.account = Account.from_key(private_key)
        self.http = http_client
        self.factory = self.w3.eth.contract(address=AsyncWeb3.to_checksum_address(factory_address), abi=ZORA_FACTORY_ABI)
        self.metadata_gateway = metadata_gateway
        self.receipt_timeout = int(receipt_timeout)

    async def check_metadata(self, uri: str) -> None:
        """Fetch the metadata document the way the coin indexer will."""
        url = metadata_fetch_url(uri, self.metadata_gateway)
        try:
            resp = await self.http.get(url, timeout=15.0, follow_redirects=True)
        except httpx.HTTPError as e:
            raise ChainWriteError(f"Metadata fetch failed for {uri}: {e}", ChainErrorKind.METADATA_FETCH) from e
        if resp.status_code != 200:
            raise ChainWriteError(f"Metadata fetch failed for {uri}: HTTP {resp.status_code}", ChainErrorKind.METADATA_FETCH)
        try:
            body = resp.json()
        except ValueError as e:
            raise ChainWriteError(f"Metadata fetch failed for {uri}: body is not JSON", ChainErrorKind.METADATA_FETCH) from e
        missing = missing_required_fields(body)
        if missing:
            raise ChainWriteError(f"Metadata at {uri} is missing {', '.join(missing)}", ChainErrorKind.FATAL)

    async def create_coin(self, name: str, symbol: str, uri: str, payout_recipient: str, initial_purchase_wei: int = 0) -> CoinCreationResult:
        await self.check_metadata(uri)
        logger.info(
            "creating Zora coin name=%s symbol=%s uri=%s payout=%s...",
            name, symbol, uri, payout_recipient[:6],
        )
        try:
            recipient = AsyncWeb3.to_checksum_address(payout_recipient)
            call = self.factory.functions.deploy(
                recipient,
                [recipient],
                uri,
                name,
                symbol,
                ZERO_ADDRESS,
                ZERO_ADDRESS,
                ETH_TICK_LOWER,
                int(initial_purchase_wei),
            )
            tx = await call.build_transaction({
                "from": self.account.address,
                "value": int(initial_purchase_wei),
                "nonce": await self.w3.eth.get_transaction_count(self.account.address),
                "chainId": await self.w3.eth.chain_id,
            })
            signed = self.account.sign_transaction(tx)
            tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = await self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        except ChainWriteError:
            raise
        except Exception as e:
            raise ChainWriteError(f"coin deployment failed: {e}", ChainErrorKind.FATAL) from e

        tx_hex = AsyncWeb3.to_hex(tx_hash)
        if receipt.get("status") != 1:
            raise ChainWriteError(f"coin deployment transaction {tx_hex} reverted", ChainErrorKind.FATAL)
        created = self.factory.events.CoinCreated().process_receipt(receipt, errors=DISCARD)
        if not created:
            raise ChainWriteError(f"no CoinCreated event in transaction {tx_hex}", ChainErrorKind.FATAL)
        args = created[0]["args"]
        deployment = {
            "caller": args.get("caller"),
            "payoutRecipient": args.get("payoutRecipient"),
            "platformReferrer": args.get("platformReferrer"),
            "currency": args.get("currency"),
            "uri": args.get("uri"),
            "name": args.get("name"),
            "symbol": args.get("symbol"),
            "coin": args.get("coin"),
            "pool": args.get("pool"),
            "version": args.get("version"),
            "blockNumber": receipt.get("blockNumber"),
        }
        logger.info("Zora coin created tx=%s address=%s", tx_hex, args.get("coin"))
        return CoinCreationResult(transaction_hash=tx_hex, contract_address=args.get("coin"), deployment=deployment)


def create_chain_client(rpc_url: str, private_key: Optional[str], http_client: httpx.AsyncClient, dry_run: bool = False) -> Optional[ZoraChainClient]:
    """Return a chain client, or None in dry-run (no wallet needed)."""
    if dry_run:
        logger.info("DRY_RUN set; chain client disabled")
        return None
    if not private_key:
        raise ValueError("WALLET_PRIVATE_KEY is required")
    return ZoraChainClient(rpc_url, private_key, http_client)
