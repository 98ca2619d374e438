import os
from dataclasses import dataclass
from datetime import timezone

@dataclass
class Settings:
    BOT_TOKEN: str = os.environ.get("BOT_TOKEN", "")

    DATABASE_URL: str = os.environ.get("DATABASE_URL", "sqlite+aiosqlite:///data/vocab.db")

    # max words returned by /review and the due-list endpoint
    DUE_LIMIT: int = int(os.environ.get("DUE_LIMIT", "10"))

    REMINDER_HOUR: int = int(os.environ.get("REMINDER_HOUR", "9"))
    REMINDER_MINUTE: int = int(os.environ.get("REMINDER_MINUTE", "0"))

    MINI_APP_HOST: str = os.environ.get("MINI_APP_HOST", "0.0.0.0")
    MINI_APP_PORT: int = int(os.environ.get("MINI_APP_PORT", "8080"))

    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    TZ = timezone.utc

    def __post_init__(self):
        if self.DUE_LIMIT < 1:
            raise ValueError("DUE_LIMIT must be at least 1")
        self.LOG_LEVEL = self.LOG_LEVEL.upper()

settings = Settings()
