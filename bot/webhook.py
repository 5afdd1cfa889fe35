from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Callable
from zoneinfo import ZoneInfo

import structlog
from fastapi import BackgroundTasks, Depends, FastAPI, Query, Request, status
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from ledger.service import LedgerService
from ledger.storage import LedgerDatabase

from .config import get_settings, validate_all_settings
from .log import configure_logging
from .router import CommandRouter
from .transcription import GroqTranscriber
from .whatsapp import InboundMessage, WhatsAppClient, parse_inbound

settings = get_settings()
configure_logging(settings.app.log_level, settings.app.log_json)

logger = structlog.get_logger(__name__)


@lru_cache(maxsize=1)
def get_router() -> CommandRouter:
    app_settings = settings.app

    database = LedgerDatabase(app_settings.database_path)
    database.init()

    for integration, ok in validate_all_settings().items():
        if not ok:
            logger.warning("integration_not_configured", integration=integration)

    return CommandRouter(
        ledger=LedgerService(database, history_limit=app_settings.history_limit),
        messenger=WhatsAppClient(settings.whatsapp),
        transcriber=GroqTranscriber(settings.groq),
        tz=ZoneInfo(app_settings.timezone),
    )


def get_router_factory() -> Callable[[], CommandRouter]:
    """The router is built on first use inside the background task, never on the ack path."""
    return get_router


async def process_message(message: InboundMessage, build_router: Callable[[], CommandRouter]):
    try:
        router = build_router()
    except Exception:
        logger.exception("router_unavailable", sender=message.sender)
        return
    await router.handle(message)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if get_router.cache_info().currsize:
        await get_router().messenger.aclose()
        logger.info("whatsapp_client_closed")


app = FastAPI(
    title="Bot Autônomos",
    description="WhatsApp bookkeeping bot: clients, services and amounts per phone number",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/", response_class=PlainTextResponse, tags=["System"])
def home():
    return "Bot Autônomos online 🚗"


@app.get("/health", tags=["System"])
def health_check():
    return {"status": "healthy", "service": "bot-autonomos"}


@app.get("/webhook", response_class=PlainTextResponse, tags=["Webhook"])
def verify_webhook(
    mode: str = Query(default="", alias="hub.mode"),
    token: str = Query(default="", alias="hub.verify_token"),
    challenge: str = Query(default="", alias="hub.challenge"),
):
    verify_token = settings.whatsapp.verify_token

    if mode == "subscribe" and verify_token and token == verify_token:
        logger.info("webhook_verified")
        return PlainTextResponse(challenge)

    logger.warning("webhook_verification_failed", mode=mode)
    return PlainTextResponse("Forbidden", status_code=status.HTTP_403_FORBIDDEN)


@app.post("/webhook", tags=["Webhook"])
async def receive_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    build_router: Callable[[], CommandRouter] = Depends(get_router_factory),
):
    # Meta expects a fast 200 whatever it sent; the reply is sent from the background task
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("webhook_invalid_json")
        return {"status": "ok"}

    try:
        message = parse_inbound(payload) if isinstance(payload, dict) else None
    except (AttributeError, KeyError, IndexError, TypeError, ValidationError) as e:
        logger.warning("webhook_invalid_payload", error=str(e))
        return {"status": "ok"}

    if message:
        background_tasks.add_task(process_message, message, build_router)

    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.app.port)
