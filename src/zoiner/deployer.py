from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from zoiner.chain.adapters import ChainClient
from zoiner.errors import ChainWriteError, DeploymentError
from zoiner.utils.logger_util import get_logger, logging, stage_event
logger = get_logger(__name__, logging.DEBUG)

MAX_ATTEMPTS = 3
BACKOFF_BASE_SEC = 5.0
BACKOFF_FACTOR = 2.0
ZERO_TX_HASH = "0x" + "0" * 64
ZERO_ADDRESS = "0x" + "0" * 40


@dataclass(frozen=True)
class DeploymentResult:
    transaction_hash: str
    contract_address: str
    deployment_info: Dict[str, Any] = field(default_factory=dict)
    attempts: int = 1


def backoff_delay(attempt: int, base: float = BACKOFF_BASE_SEC, factor: float = BACKOFF_FACTOR) -> float:
    """Delay before attempt ``attempt + 1`` (attempt is 1-based): 5s, 10s, 20s, ..."""
    return base * (factor ** (attempt - 1))


class CoinDeployer:
    """Submits the coin creation with bounded retry on metadata-fetch failures."""

    def __init__(
        self,
        chain: Optional[ChainClient],
        dry_run: bool = False,
        max_attempts: int = MAX_ATTEMPTS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if chain is None and not dry_run:
            raise ValueError("a chain client is required outside dry-run")
        self.chain = chain
        self.dry_run = dry_run
        self.max_attempts = int(max_attempts)
        self._sleep = sleep

    async def deploy(self, name: str, symbol: str, uri: str, payout_recipient: str, cast_hash: str | None = None) -> DeploymentResult:
        if self.dry_run:
            stage_event(logger, "deploy_simulated", cast_hash, name=name, symbol=symbol, uri=uri)
            return DeploymentResult(
                transaction_hash=ZERO_TX_HASH,
                contract_address=ZERO_ADDRESS,
                deployment_info={"dry_run": True, "name": name, "symbol": symbol, "uri": uri},
                attempts=0,
            )

        last_error: Optional[ChainWriteError] = None
        for attempt in range(1, self.max_attempts + 1):
            stage_event(logger, "deploy_attempt", cast_hash, attempt=attempt, max_attempts=self.max_attempts)
            try:
                created = await self.chain.create_coin(name, symbol, uri, payout_recipient, initial_purchase_wei=0)
            except ChainWriteError as e:
                last_error = e
                if not e.transient:
                    stage_event(logger, "deploy_failed", cast_hash, logging.ERROR, attempt=attempt, kind=e.kind.value, error=str(e))
                    raise DeploymentError(str(e), attempts=attempt) from e
                if attempt < self.max_attempts:
                    delay = backoff_delay(attempt)
                    stage_event(logger, "deploy_retry", cast_hash, logging.WARNING, attempt=attempt, delay=delay, error=str(e))
                    await self._sleep(delay)
                continue
            except Exception as e:
                stage_event(logger, "deploy_failed", cast_hash, logging.ERROR, attempt=attempt, kind="unclassified", error=str(e))
                raise DeploymentError(str(e), attempts=attempt) from e

            stage_event(logger, "deployed", cast_hash, attempt=attempt, tx=created.transaction_hash, address=created.contract_address)
            return DeploymentResult(
                transaction_hash=created.transaction_hash,
                contract_address=created.contract_address,
                deployment_info=dict(created.deployment),
                attempts=attempt,
            )

        stage_event(logger, "deploy_exhausted", cast_hash, logging.ERROR, attempts=self.max_attempts, error=str(last_error))
        raise DeploymentError(str(last_error), attempts=self.max_attempts) from last_error
