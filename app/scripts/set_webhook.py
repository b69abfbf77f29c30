"""Register the webhook URL with Telegram.
Run once after deploying:
    python -m app.scripts.set_webhook
"""

from __future__ import annotations

import asyncio
import logging

from telegram import Bot, Update

from config import settings

_LOGGER = logging.getLogger(__name__)


async def main() -> bool:
    if not settings.TELEGRAM_TOKEN or not settings.TELEGRAM_WEBHOOK_URL:
        raise SystemExit("TELEGRAM_TOKEN and TELEGRAM_WEBHOOK_URL must be set")

    async with Bot(settings.TELEGRAM_TOKEN) as bot:
        ok = await bot.set_webhook(
            url=settings.TELEGRAM_WEBHOOK_URL,
            secret_token=settings.TELEGRAM_WEBHOOK_SECRET,
            allowed_updates=[Update.MESSAGE, Update.CALLBACK_QUERY],
        )
        info = await bot.get_webhook_info()
    _LOGGER.info("Webhook set=%s url=%s pending=%s", ok, info.url, info.pending_update_count)
    return ok


if __name__ == "__main__":  # pragma: no cover
    logging.basicConfig(level=settings.LOG_LEVEL.upper())
    _LOGGER.info("[SETUP] set_webhook: started")
    try:
        asyncio.run(main())
        _LOGGER.info("[SETUP] set_webhook: completed successfully")
    except Exception:  # noqa: BLE001
        _LOGGER.exception("[SETUP] set_webhook: failed")
