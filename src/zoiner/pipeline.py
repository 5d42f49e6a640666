from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from zoiner.deployer import CoinDeployer, DeploymentResult
from zoiner.errors import NotFoundError
from zoiner.images import ImageResolver
from zoiner.metadata import MetadataPublisher
from zoiner.notifier import ReplyNotifier
from zoiner.parser import mentions_bot, parse_command
from zoiner.schemas.events import Cast, WebhookEvent
from zoiner.social.adapters import SocialClient
from zoiner.utils.logger_util import get_logger, logging, stage_event
logger = get_logger(__name__, logging.DEBUG)

EXPLORER_TX_URL = "https://basescan.org/tx/"

USAGE_TEXT = (
    "👋 Hi there! I'm Zoiner, a bot that creates Zora ERC20 coins from images.\n\n"
    "To create a coin, tag me with an image and include the text: "
    "\"coin this content: name: YourCoinName ticker: YCN\"\n\n"
    "Make sure your profile has a verified Ethereum address, as you'll be set as the payout recipient."
)
ADDRESS_MISSING_TEXT = (
    "I couldn't find your Ethereum address. Please verify an Ethereum address "
    "on your Farcaster profile before creating a coin."
)
PARSE_FAILED_TEXT = (
    "I couldn't parse your coin creation request. Please use the format: "
    "coin this content: name: [name] ticker: [ticker]"
)


def progress_text(name: str, symbol: str) -> str:
    return f"Working on creating your {name} ({symbol}) coin... This might take a minute."


def success_text(name: str, symbol: str, result: DeploymentResult) -> str:
    return (
        f"🎉 Successfully created {name} ({symbol}) coin!\n\n"
        f"Contract: {result.contract_address}\n"
        f"Transaction: {EXPLORER_TX_URL}{result.transaction_hash}\n\n"
        "Your coin is now live on Base!"
    )


def failure_text(reason: str) -> str:
    return f"Sorry, there was an error creating your coin: {reason}. Please try again later."


class OutcomeKind(str, Enum):
    IGNORED = "ignored"
    USAGE_REPLY = "usage_reply"
    ADDRESS_MISSING = "address_missing"
    PARSE_FAILED = "parse_failed"
    DEPLOYED = "deployed"
    DEPLOY_FAILED = "deploy_failed"


@dataclass(frozen=True)
class PipelineOutcome:
    kind: OutcomeKind
    reason: Optional[str] = None
    result: Optional[DeploymentResult] = None


class PipelineOrchestrator:
    """Runs one inbound cast through parse, address, image, metadata, deploy and reply.

    Each call is independent; no state is shared between events. Every failure
    ends in an outcome (and at most one terminal reply), never an exception.
    """

    def __init__(
        self,
        social: SocialClient,
        resolver: ImageResolver,
        publisher: MetadataPublisher,
        deployer: CoinDeployer,
        notifier: ReplyNotifier,
        bot_fid: Optional[int],
        bot_name: str,
    ):
        self.social = social
        self.resolver = resolver
        self.publisher = publisher
        self.deployer = deployer
        self.notifier = notifier
        self.bot_fid = bot_fid
        self.bot_name = bot_name

    async def handle_event(self, event: WebhookEvent) -> PipelineOutcome:
        if not event.is_cast_created:
            stage_event(logger, "ignored", event.data.hash, reason="event_type", event_type=event.type)
            return PipelineOutcome(OutcomeKind.IGNORED, reason=f"event type {event.type}")
        return await self.process_cast(event.data.hash)

    async def process_cast(self, cast_hash: str) -> PipelineOutcome:
        stage_event(logger, "received", cast_hash)
        try:
            cast = await self.social.fetch_cast(cast_hash)
        except NotFoundError:
            stage_event(logger, "ignored", cast_hash, logging.WARNING, reason="cast_not_found")
            return PipelineOutcome(OutcomeKind.IGNORED, reason="cast not found")
        except Exception as e:
            logger.exception("failed to fetch cast %s", cast_hash)
            return PipelineOutcome(OutcomeKind.IGNORED, reason=f"cast lookup failed: {e}")

        if not mentions_bot(cast, self.bot_fid, self.bot_name):
            stage_event(logger, "ignored", cast_hash, reason="not_mentioned")
            return PipelineOutcome(OutcomeKind.IGNORED, reason="bot not mentioned")
        stage_event(logger, "mention_checked", cast_hash)

        command = parse_command(cast.text, cast.author.username)
        if not command.is_valid:
            await self._reply(cast, USAGE_TEXT)
            return self._finish(cast, PipelineOutcome(OutcomeKind.USAGE_REPLY))
        stage_event(logger, "command_checked", cast_hash, name=command.name, symbol=command.symbol)

        try:
            user = await self.social.fetch_user(cast.author.fid)
        except NotFoundError:
            stage_event(logger, "ignored", cast_hash, logging.WARNING, reason="user_not_found", fid=cast.author.fid)
            return PipelineOutcome(OutcomeKind.IGNORED, reason="user not found")
        except Exception as e:
            logger.exception("failed to fetch user %s", cast.author.fid)
            return PipelineOutcome(OutcomeKind.IGNORED, reason=f"user lookup failed: {e}")
        payout = user.primary_address
        if not payout:
            await self._reply(cast, ADDRESS_MISSING_TEXT)
            return self._finish(cast, PipelineOutcome(OutcomeKind.ADDRESS_MISSING))
        stage_event(logger, "address_resolved", cast_hash, address=payout[:6] + "...")

        try:
            image = await self.resolver.resolve(cast)
            if not image.url:
                await self._reply(cast, PARSE_FAILED_TEXT)
                return self._finish(cast, PipelineOutcome(OutcomeKind.PARSE_FAILED))

            await self._reply(cast, progress_text(command.name, command.symbol))
            published = await self.publisher.publish(command.name, command.symbol, image.url, cast_hash=cast_hash)
            result = await self.deployer.deploy(command.name, command.symbol, published.uri, payout, cast_hash=cast_hash)
        except Exception as e:
            logger.exception("coin creation failed for cast %s", cast_hash)
            await self._reply(cast, failure_text(str(e)))
            return self._finish(cast, PipelineOutcome(OutcomeKind.DEPLOY_FAILED, reason=str(e)))

        await self._reply(cast, success_text(command.name, command.symbol, result))
        return self._finish(cast, PipelineOutcome(OutcomeKind.DEPLOYED, result=result))

    async def _reply(self, cast: Cast, text: str) -> Optional[str]:
        return await self.notifier.reply(cast.author.fid, cast.hash, text)

    def _finish(self, cast: Cast, outcome: PipelineOutcome) -> PipelineOutcome:
        stage_event(logger, "replied", cast.hash, outcome=outcome.kind.value)
        return outcome
