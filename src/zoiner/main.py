import asyncio
from contextlib import asynccontextmanager
from typing import Optional, Set

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from zoiner import __version__
from zoiner.chain import create_chain_client
from zoiner.config import Settings, load_settings
from zoiner.deployer import CoinDeployer
from zoiner.images import ImageResolver
from zoiner.metadata import MetadataPublisher, build_metadata_document, gateway_mirrors
from zoiner.notifier import ReplyNotifier
from zoiner.pinning import create_pinning_client
from zoiner.pipeline import PipelineOrchestrator, PipelineOutcome
from zoiner.schemas.events import WebhookEvent
from zoiner.social import create_social_client
from zoiner.utils.logger_util import get_logger, logging
logger = get_logger(__name__, logging.DEBUG)

BANNER = "Zoiner Bot - A Farcaster bot that creates Zora ERC20 coins from images"
DEFAULT_METADATA_NAME = "Zoiner Workshop Token"
DEFAULT_METADATA_SYMBOL = "ZOINER"

settings: Settings = load_settings()
# built once at startup; tests may install their own before the app starts
orchestrator: Optional[PipelineOrchestrator] = None
http_client: Optional[httpx.AsyncClient] = None
# detached pipeline runs, kept referenced until they finish
pipeline_tasks: Set[asyncio.Task] = set()


def build_orchestrator(cfg: Settings, http: httpx.AsyncClient) -> PipelineOrchestrator:
    cfg.require_live()
    social = create_social_client(cfg.neynar_api_key, cfg.signer_uuid, http)
    pinning = create_pinning_client(cfg.pinata_jwt, http, gateway=cfg.gateway_url)
    chain = create_chain_client(cfg.rpc_url, cfg.wallet_private_key, http, dry_run=cfg.dry_run)
    return PipelineOrchestrator(
        social=social,
        resolver=ImageResolver(http, default_url=cfg.default_image_url),
        publisher=MetadataPublisher(
            pinning,
            http,
            api_endpoint=cfg.api_endpoint,
            dry_run=cfg.dry_run,
            gateways=gateway_mirrors(cfg.gateway_url),
        ),
        deployer=CoinDeployer(chain, dry_run=cfg.dry_run),
        notifier=ReplyNotifier(social),
        bot_fid=cfg.bot_fid,
        bot_name=cfg.bot_name,
    )


@asynccontextmanager
async def lifespan(_app: FastAPI):
    global orchestrator, http_client
    logger.info("configuration: %s", settings.describe())
    if orchestrator is None:
        http_client = httpx.AsyncClient(headers={"User-Agent": f"zoiner/{__version__}"})
        orchestrator = build_orchestrator(settings, http_client)
    try:
        yield
    finally:
        if pipeline_tasks:
            logger.info("waiting for %s pipeline run(s) to finish", len(pipeline_tasks))
            await asyncio.gather(*list(pipeline_tasks), return_exceptions=True)
        if http_client is not None:
            await http_client.aclose()


app = FastAPI(title="zoiner", version=__version__, lifespan=lifespan)


async def _run_pipeline(orch: PipelineOrchestrator, event: WebhookEvent) -> Optional[PipelineOutcome]:
    try:
        outcome = await orch.handle_event(event)
    except Exception:
        logger.exception("error processing cast %s", event.data.hash)
        return None
    logger.info("cast %s finished: %s", event.data.hash, outcome.kind.value)
    return outcome


def dispatch(event: WebhookEvent) -> Optional[asyncio.Task]:
    """Detach a pipeline run for ``event``; the webhook response never waits on it."""
    orch = orchestrator
    if orch is None:
        logger.error("pipeline not configured; dropping cast %s", event.data.hash)
        return None
    task = asyncio.create_task(_run_pipeline(orch, event))
    pipeline_tasks.add(task)
    task.add_done_callback(pipeline_tasks.discard)
    return task


@app.get("/", response_class=PlainTextResponse)
async def root():
    return BANNER


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/metadata")
async def metadata(name: Optional[str] = None, symbol: Optional[str] = None, image: Optional[str] = None):
    doc = build_metadata_document(
        name or DEFAULT_METADATA_NAME,
        symbol or DEFAULT_METADATA_SYMBOL,
        image or settings.default_image_url,
    )
    return JSONResponse(doc.model_dump(), media_type="application/json")


@app.get("/webhook")
async def webhook_verify(challenge: Optional[str] = None):
    if challenge:
        return JSONResponse({"challenge": challenge})
    return PlainTextResponse("Missing challenge parameter", status_code=400)


@app.post("/webhook")
async def webhook(request: Request):
    # the sender only needs a fast ack; outcomes are reported in-thread
    try:
        event = WebhookEvent.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        logger.warning("ignoring malformed webhook body: %s", e)
        return {"status": "ok"}

    logger.info("received webhook event %s", event.type)
    if event.is_cast_created:
        logger.info("received cast.created event for cast %s", event.data.hash)
        dispatch(event)
    else:
        logger.debug("ignoring event of type %s", event.type)
    return {"status": "ok"}


if __name__ == "__main__":
    uvicorn.run("zoiner.main:app", host="0.0.0.0", port=settings.port)
