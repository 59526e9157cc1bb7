from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine.url import URL, make_url

DEFAULT_TEAMS_FILE = Path(__file__).parent / "data" / "teams.json"


class Settings(BaseSettings):
    app_name: str = "Wagerbook"
    database_url: str = "postgresql+asyncpg://postgres:postgres@db:5432/wagerbook"

    jsonodds_api_key: str = ""
    jsonodds_base_url: str = "https://jsonodds.com/api"
    odds_api_key: str = ""
    odds_api_base_url: str = "https://api.the-odds-api.com/v4"
    odds_api_regions: str = "us"
    odds_api_markets: str = "h2h,spreads,totals"
    espn_base_url: str = "https://site.api.espn.com/apis/site/v2/sports"
    provider_timeout_seconds: float = 15.0
    bookmaker_priority: str = "draftkings,fanduel,betmgm,caesars,pointsbet,bet365,betrivers,espnbet"

    default_credit_limit: float = 100.0
    reset_weekday: int = 2
    reset_hour: int = 0
    reset_minute: int = 1
    reset_timezone: str = "America/New_York"

    odds_poll_interval_seconds: int = 600
    score_poll_interval_minutes: int = 15
    settlement_interval_minutes: int = 60
    score_lookback_days: int = 7
    teams_file: str = str(DEFAULT_TEAMS_FILE)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @property
    def bookmaker_order(self) -> list[str]:
        return [b.strip().lower() for b in self.bookmaker_priority.split(",") if b.strip()]


settings = Settings()


def get_database_url() -> str:
    return settings.database_url


def get_database_identity() -> tuple[str, str]:
    parsed: URL = make_url(get_database_url())
    return parsed.host or "<unknown>", parsed.database or "<unknown>"
