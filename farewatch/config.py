from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    env: str = "dev"
    database_url: str = "sqlite:///./data/farewatch.db"

    scheduler_enabled: bool = True
    check_interval_minutes: int = 30

    telegram_bot_token: str = ""
    telegram_api_url: str = "https://api.telegram.org"
    quickchart_url: str = "https://quickchart.io/chart"

    # Browser
    browser_headless: bool = True
    browser_executable_path: str = ""
    browser_locale: str = "pt-BR"
    block_resources: bool = True
    page_timeout_ms: int = 30000
    attempt_timeout_seconds: float = 90.0

    screenshots_dir: str = "./data/screenshots"
    html_snapshots_dir: str = "./data/html_snapshots"

    # Extraction
    currency: str = "BRL"
    max_quotes: int = 4
    implausible_price_floor: int = 100
    implausible_price_ratio: float = 0.65
    plausibility_retry_delay_seconds: float = 5.0

    # Alerts
    alert_threshold_percent: float = 5.0
    default_language: str = "en"

    def model_post_init(self, __context):
        if self.env == "prod" and self.database_url.startswith("sqlite"):
            raise ValueError(
                "Production requires explicit DATABASE_URL (not SQLite)"
            )

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
