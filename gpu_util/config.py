from functools import lru_cache

from pydantic import BaseModel, Field


class Settings(BaseModel):
    # Only the first GPU is ever read
    device_index: int = Field(
        default=0,
        ge=0,
        description="NVML index of the device to query",
    )
    log_level: str = Field(
        default="WARNING",
        description="Minimum loguru level written to stderr",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
