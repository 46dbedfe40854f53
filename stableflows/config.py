from pathlib import Path
from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

# Load .env from repo root for local development and scripts.
ENV_PATH = Path(__file__).resolve().parents[1] / ".env"
load_dotenv(dotenv_path=ENV_PATH)

class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=True, populate_by_name=True)
    db_path: str = Field(default="./data/stableflows.db", alias="DB_PATH")
    defillama_base_url: str = Field(default="https://api.llama.fi", alias="DEFILLAMA_BASE_URL")
    stablecoins_base_url: str = Field(default="https://stablecoins.llama.fi", alias="STABLECOINS_BASE_URL")
    yields_url: str = Field(default="https://yields.llama.fi/pools", alias="YIELDS_URL")
    http_timeout_seconds: float = Field(default=60.0, alias="HTTP_TIMEOUT_SECONDS")
    http_retry_attempts: int = Field(default=3, alias="HTTP_RETRY_ATTEMPTS")
    http_retry_backoff_seconds: float = Field(default=1.0, alias="HTTP_RETRY_BACKOFF_SECONDS")
    snapshot_retention_days: int = Field(default=365, alias="SNAPSHOT_RETENTION_DAYS")
    analysis_keep: int = Field(default=52, alias="ANALYSIS_KEEP")
    refresh_min_age_seconds: int = Field(default=3600, alias="REFRESH_MIN_AGE_SECONDS")
    refresh_time_budget_seconds: int = Field(default=600, alias="REFRESH_TIME_BUDGET_SECONDS")
    min_snapshots_for_charts: int = Field(default=14, alias="MIN_SNAPSHOTS_FOR_CHARTS")
    cron_secret: str | None = Field(default=None, alias="CRON_SECRET")
    anthropic_api_key: str | None = Field(default=None, alias="ANTHROPIC_API_KEY")
    anthropic_model: str = Field(default="claude-sonnet-4-20250514", alias="ANTHROPIC_MODEL")
    telegram_bot_token: str | None = Field(default=None, alias="TELEGRAM_BOT_TOKEN")
    telegram_chat_id: str | None = Field(default=None, alias="TELEGRAM_CHAT_ID")
    local_tz: str = Field(default="UTC", alias="LOCAL_TZ")
    scheduler_enabled: bool = Field(default=False, alias="SCHEDULER_ENABLED")
    daily_refresh_hour: int = Field(default=6, alias="DAILY_REFRESH_HOUR")
    weekly_report_day: str = Field(default="mon", alias="WEEKLY_REPORT_DAY")
    tracking_config_path: str | None = Field(default=None, alias="TRACKING_CONFIG_PATH")

settings = Settings()
