import json
import logging

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse
from telegram import Update

import db
from app.scheduler_app import get_scheduler, shutdown_scheduler
from app.services import updates
from app.utils import messaging
from config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
_LOGGER = logging.getLogger(__name__)

app = FastAPI()

# Create tables, start the scheduler and re-arm reminders on startup


@app.on_event("startup")
async def startup_event():
    await db.create_all()
    await messaging.startup()
    scheduler = get_scheduler()
    scheduler.start()
    runtime = updates.build_runtime(scheduler)
    updates.set_runtime(runtime)
    armed = await runtime.reminders.recover()
    _LOGGER.info("Bot ready (%s), %d reminders armed", settings.TIMEZONE, armed)


@app.on_event("shutdown")
async def shutdown_event():
    runtime = updates.set_runtime(None)
    if runtime is not None:
        runtime.shutdown()
    shutdown_scheduler()
    await messaging.shutdown()
    await db.dispose_engine()


# --------------------------------------------
# Background task: route the decoded update
# --------------------------------------------

async def process_update_background(update: Update):
    try:
        await updates.get_runtime().handle_update(update)
    except Exception:  # noqa: BLE001
        # Don't bubble up; just log
        _LOGGER.exception("Handling update %s failed", update.update_id)


# --------------------------------------------
# Endpoints
# --------------------------------------------
@app.post("/v1/telegram/webhook", response_class=PlainTextResponse)
async def telegram_webhook(request: Request, background: BackgroundTasks):
    secret = settings.TELEGRAM_WEBHOOK_SECRET
    if secret and request.headers.get("x-telegram-bot-api-secret-token") != secret:
        raise HTTPException(403, "Bad secret token")

    raw_body = await request.body()
    try:
        update = Update.de_json(json.loads(raw_body), messaging.get_bot())
    except Exception:  # noqa: BLE001
        _LOGGER.warning("[Webhook] Undecodable payload: %r", raw_body[:200])
        raise HTTPException(400, "Bad payload")
    if update is None:
        raise HTTPException(400, "Bad payload")

    _LOGGER.debug("[Webhook] Update %s received", update.update_id)
    background.add_task(process_update_background, update)
    return PlainTextResponse("OK")


@app.get("/healthz", response_class=PlainTextResponse)
async def healthz():
    return PlainTextResponse("OK")


if __name__ == "__main__":  # pragma: no cover
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000)
