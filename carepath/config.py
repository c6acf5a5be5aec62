# carepath/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

from carepath.intake.stages import PendingChoice


class Settings(BaseSettings):
    service_timeout_seconds: float = Field(10.0, validation_alias="SERVICE_TIMEOUT_SECONDS")
    simulated_latency_seconds: float = Field(0.0, validation_alias="SIMULATED_LATENCY_SECONDS")

    max_verification_retries: int = Field(3, validation_alias="MAX_VERIFICATION_RETRIES")
    pending_choice_timeout_seconds: float = Field(
        120.0, validation_alias="PENDING_CHOICE_TIMEOUT_SECONDS"
    )
    pending_default_choice: PendingChoice = Field(
        PendingChoice.PROCEED_WITHOUT_INSURANCE, validation_alias="PENDING_DEFAULT_CHOICE"
    )

    require_severity: bool = Field(False, validation_alias="REQUIRE_SEVERITY")
    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
