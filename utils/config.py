#Description: Pydantic settings loader with defaults, reading .env.
import pathlib

from pydantic_settings import BaseSettings
from pydantic import Field
from dotenv import load_dotenv

env_path = pathlib.Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

class Settings(BaseSettings):
    APP_ENV: str = Field(default="development")
    LOG_LEVEL: str = Field(default="INFO")
    DATABASE_URL: str = Field(default="sqlite:///./signals.db")

    SSI_AUTH_URL: str = Field(default="https://fc-data.ssi.com.vn/api/v2/Market/AccessToken")
    SSI_PRICE_URL: str = Field(default="https://fc-data.ssi.com.vn/api/v2/Market/DailyStockPrice")
    SSI_CONSUMER_ID: str | None = None
    SSI_CONSUMER_SECRET: str | None = None
    SSI_TOKEN_TTL_SECONDS: int = Field(default=3600)
    TOKEN_SAFETY_MARGIN_SECONDS: int = Field(default=300)
    HTTP_TIMEOUT_SECONDS: float = Field(default=10.0)

    TELEGRAM_BOT_TOKEN: str | None = None
    TELEGRAM_CHAT_ID: str | None = None

    # Exchange-local wall clock bands, "HH:MM-HH:MM" comma separated
    MARKET_TIMEZONE: str = Field(default="Asia/Ho_Chi_Minh")
    MARKET_SESSIONS: str = Field(default="09:00-11:30,13:00-14:45")
    POLLING_WINDOWS: str = Field(default="08:45-11:35,12:55-15:15")

    GRACE_PERIOD_HOURS: float = Field(default=60.0)
    DEFAULT_HOLDING_DAYS: int = Field(default=10)

    PRICE_UPDATE_INTERVAL_SECONDS: int = Field(default=60)
    BATCH_SIZE: int = Field(default=20)
    BATCH_PAUSE_SECONDS: float = Field(default=0.2)

    ANNOUNCE_INTERVAL_SECONDS: int = Field(default=60)
    ANNOUNCE_BATCH_SIZE: int = Field(default=5)
    ANNOUNCE_PACING_SECONDS: float = Field(default=1.0)

    EXPIRY_SWEEP_HOUR: int = Field(default=0)
    EXPIRY_SWEEP_MINUTE: int = Field(default=5)
    DAILY_SUMMARY_HOUR: int = Field(default=15)
    DAILY_SUMMARY_MINUTE: int = Field(default=20)

    class Config:
        env_file = ".env"
        extra = "allow"

settings = Settings()
