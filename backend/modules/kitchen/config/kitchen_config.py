# backend/modules/kitchen/config/kitchen_config.py

from typing import Annotated, List
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class KitchenConfig(BaseSettings):
    """Kitchen pacing, sweep and push-channel configuration"""

    model_config = SettingsConfigDict(
        env_prefix="KITCHEN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Pacing
    READY_BUFFER_MINUTES: int = Field(
        default=5,
        description="Minutes after seating at which food should be ready",
    )
    DEFAULT_PREP_MINUTES: int = Field(
        default=15, description="Prep time used for items without one"
    )

    # Sweep
    SWEEP_ENABLED: bool = Field(
        default=True, description="Run the background pacing sweep"
    )
    SWEEP_INTERVAL_SECONDS: int = Field(
        default=30, description="Seconds between pacing sweeps per restaurant"
    )
    SWEEP_TIMEOUT_SECONDS: float = Field(
        default=20.0, description="Per-restaurant sweep timeout in seconds"
    )
    SWEEP_RESTAURANT_IDS: Annotated[List[str], NoDecode] = Field(
        default_factory=list,
        description="Restaurants swept from startup (comma separated)",
    )

    # Push channel
    HEARTBEAT_TIMEOUT_SECONDS: int = Field(
        default=60, description="Drop a display session after this much silence"
    )
    HEARTBEAT_CHECK_INTERVAL_SECONDS: int = Field(
        default=15, description="How often stale display sessions are expired"
    )
    SESSION_QUEUE_SIZE: int = Field(
        default=100, description="Max undelivered events buffered per session"
    )

    # Concurrency and retries
    TRANSITION_MAX_ATTEMPTS: int = Field(
        default=3, description="Optimistic-lock attempts per status transition"
    )
    STORE_RETRY_ATTEMPTS: int = Field(
        default=3, description="Retries for transient store errors during sweeps"
    )
    STORE_RETRY_INITIAL_DELAY: float = Field(
        default=0.1, description="Initial backoff delay in seconds"
    )
    STORE_RETRY_MAX_DELAY: float = Field(
        default=2.0, description="Maximum backoff delay in seconds"
    )

    @field_validator("SWEEP_RESTAURANT_IDS", mode="before")
    @classmethod
    def parse_restaurant_ids(cls, v):
        if isinstance(v, str):
            return [rid.strip() for rid in v.split(",") if rid.strip()]
        return v

    @field_validator(
        "READY_BUFFER_MINUTES",
        "DEFAULT_PREP_MINUTES",
        "SWEEP_INTERVAL_SECONDS",
        "SWEEP_TIMEOUT_SECONDS",
        "HEARTBEAT_TIMEOUT_SECONDS",
        "HEARTBEAT_CHECK_INTERVAL_SECONDS",
        "SESSION_QUEUE_SIZE",
        "TRANSITION_MAX_ATTEMPTS",
    )
    @classmethod
    def validate_positive(cls, v, info):
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive")
        return v

    @field_validator("STORE_RETRY_ATTEMPTS")
    @classmethod
    def validate_retry_attempts(cls, v):
        if v < 0:
            raise ValueError("STORE_RETRY_ATTEMPTS cannot be negative")
        return v


@lru_cache()
def get_kitchen_config() -> KitchenConfig:
    return KitchenConfig()
