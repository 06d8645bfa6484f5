"""Runtime configuration for the forecast pipeline.

Defaults live as module constants. ForecastSettings reads overrides from the
environment (DIVE_FORECAST_* variables) and a .env file; the API key comes
from WILLYWEATHER_API_KEY.
"""

from datetime import timedelta

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


WILLYWEATHER_BASE_URL = "https://api.willyweather.com.au/v2"
USER_AGENT = "DiveForecast/1.0 (dive-forecast)"

REQUEST_TIMEOUT = 10  # seconds per upstream call
MAX_ATTEMPTS = 3  # first try + 2 retries
RETRY_MIN_WAIT = 1.0
RETRY_MAX_WAIT = 10.0
DAILY_REQUEST_CAP = 100  # paid plan quota

FORECAST_DAYS = 7
SEARCH_RADIUS_KM = 20
CACHE_TTL = timedelta(hours=3)


class ForecastSettings(BaseSettings):
    """Resolved settings for one pipeline/cache instance.

    Every field can be overridden with DIVE_FORECAST_<FIELD>, e.g.
    DIVE_FORECAST_MAX_ATTEMPTS=5 or DIVE_FORECAST_CACHE_TTL_SECONDS=3600.
    """

    model_config = SettingsConfigDict(
        env_prefix="DIVE_FORECAST_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    # Not prefixed; also accepted as api_key= when constructed directly
    api_key: str = Field(default="", validation_alias="WILLYWEATHER_API_KEY")
    base_url: str = WILLYWEATHER_BASE_URL
    request_timeout: float = REQUEST_TIMEOUT
    max_attempts: int = Field(default=MAX_ATTEMPTS, ge=1)
    retry_min_wait: float = RETRY_MIN_WAIT
    retry_max_wait: float = RETRY_MAX_WAIT
    daily_request_cap: int = Field(default=DAILY_REQUEST_CAP, ge=0)
    forecast_days: int = Field(default=FORECAST_DAYS, ge=1)
    search_radius_km: float = SEARCH_RADIUS_KM
    cache_ttl_seconds: float = Field(default=CACHE_TTL.total_seconds(), gt=0)

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(seconds=self.cache_ttl_seconds)
