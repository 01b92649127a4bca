"""Motion engine configuration."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="MOTIONCOACH_",
        env_file=".env",
        extra="ignore",
    )

    # Application
    app_name: str = "Motion Coach"
    debug: bool = False
    log_level: str = "INFO"

    # Custom exercise profiles (YAML), checked before the built-in catalog
    profiles_path: Optional[str] = None

    # Landmark confidence
    visibility_threshold: float = 0.5  # Below this a landmark is treated as missing

    # Measurement selection (bilateral exercises)
    smoothing_window: int = 6  # Moving-average samples per side
    rom_history_size: int = 30  # Smoothed samples kept for range-of-motion
    rom_margin_degrees: float = 5.0  # ROM lead needed before a side becomes active
    side_lock_min_samples: int = 10  # History needed before a side can be locked

    # Hold detection bands around each threshold
    angle_hold_epsilon: float = 5.0  # degrees
    elevation_hold_epsilon: float = 0.01  # normalized units

    # Elevation calibration
    calibration_window: int = 30
    calibration_stable_frames: int = 20
    velocity_tolerance: float = 0.001  # normalized units per frame
    variance_tolerance: float = 1e-4

    # Elevation hysteresis
    rest_adapt_stable_frames: int = 15
    baseline_ema_alpha: float = 0.1
    elevation_enter_frames: int = 3
    elevation_exit_stable_frames: int = 8

    # Coaching
    stable_phase_ms: float = 200.0
    hold_top_target_ms: float = 1000.0
    hold_bottom_target_ms: float = 800.0

    # Scoring
    min_controlled_rep_seconds: float = 0.9  # Faster reps lose quick_rep_penalty points
    quick_rep_penalty: int = 20


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
