from functools import lru_cache
from pathlib import Path
from typing import Dict, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    tour_api_base_url: str = Field("http://127.0.0.1:8000/api", alias="TOUR_API_BASE_URL")
    tour_api_timeout: float = Field(20.0, alias="TOUR_API_TIMEOUT")
    frontend_origin: str = Field("http://localhost:3000", alias="FRONTEND_ORIGIN")
    otp_min_phone_digits: int = Field(10, alias="OTP_MIN_PHONE_DIGITS")
    otp_code_length: int = Field(6, alias="OTP_CODE_LENGTH")
    otp_default_expires_in: int = Field(300, alias="OTP_DEFAULT_EXPIRES_IN")
    # billed | free
    infant_policy: str = Field("billed", alias="INFANT_POLICY")
    # Per-room price for triple/twin/double; the single room uses the offer supplement.
    room_type_prices: Dict[str, float] = Field(default_factory=dict, alias="ROOM_TYPE_PRICES")
    currency: str = Field("THB", alias="CURRENCY")
    max_quantity: int = Field(99, alias="MAX_QUANTITY")
    # Seconds an untouched booking form is kept before it is discarded.
    draft_idle_ttl: float = Field(1800.0, alias="DRAFT_IDLE_TTL")
    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[3] / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
    )

    @property
    def frontend_origins(self) -> List[str]:
        return [origin.strip() for origin in self.frontend_origin.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
