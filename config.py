import os
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()


class Settings:
    # --- Telegram ---
    TELEGRAM_TOKEN = os.environ.get("TELEGRAM_TOKEN")
    TELEGRAM_WEBHOOK_SECRET = os.environ.get("TELEGRAM_WEBHOOK_SECRET")
    TELEGRAM_WEBHOOK_URL = os.environ.get("TELEGRAM_WEBHOOK_URL")

    # --- Database ---
    DATABASE_URL = os.environ.get("DATABASE_URL")
    DATABASE_PUBLIC_URL = os.environ.get("DATABASE_PUBLIC_URL")
    DATABASE_FILE = os.environ.get("DATABASE_FILE", "notes.db")

    # --- Timezone & logging ---
    TIMEZONE = os.environ.get("TIMEZONE", "Asia/Makassar")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # --- Fixed conversation behaviour ---
    SESSION_TIMEOUT_SECONDS = 120
    PRESET_TAGS = ("now", "today_08", "today_13", "tomorrow_08", "custom")

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.TIMEZONE)


settings = Settings()
