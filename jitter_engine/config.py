"""Engine configuration using Pydantic Settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_format: str = "json"  # 'json' or 'text'
    log_level: str = "INFO"
    service_name: str = "jitter-engine"
    # Emit one DEBUG event per factor and per composite score
    debug_factor_events: bool = False

    # Half-life clamp. The crash-risk and focus paths historically disagreed
    # on the upper bound (15h vs 24h); 15h is the default until confirmed.
    half_life_min_hours: float = 2.0
    half_life_max_hours: float = 15.0

    # Result snapshot window for a single UI refresh
    result_validity_seconds: float = 1.0

    # Peak detection sampling
    peak_lookback_hours: int = 6
    peak_sample_interval_minutes: int = 5

    # Storage edge fetch windows
    drink_window_hours: int = 24
    meal_window_hours: int = 6


settings = Settings()


def validate_half_life_bounds(config: Settings | None = None) -> None:
    """Validate that the configured half-life clamp is usable.

    Raises:
        ValueError: If the lower bound is not positive or not below the upper bound.
    """
    config = config or settings
    if config.half_life_min_hours <= 0:
        msg = (
            f"half_life_min_hours must be > 0 "
            f"(currently {config.half_life_min_hours})"
        )
        raise ValueError(msg)
    if config.half_life_min_hours >= config.half_life_max_hours:
        msg = (
            f"half_life_min_hours ({config.half_life_min_hours}) must be less "
            f"than half_life_max_hours ({config.half_life_max_hours})"
        )
        raise ValueError(msg)
