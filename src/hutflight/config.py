"""Environment-driven settings and the flight tuning model."""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()


class Settings:
    """Global settings, read once from the environment (and ``.env``)."""

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_DIR = Path(os.environ["LOG_DIR"]) if os.getenv("LOG_DIR") else None

    # Ground speed of the virtual hiker before the speed multiplier
    BASE_SPEED_MPS = float(os.getenv("HUTFLIGHT_BASE_SPEED_MPS", "160"))
    FRAME_RATE = float(os.getenv("HUTFLIGHT_FRAME_RATE", "60"))

    # Optional GeoTIFF DEM used as terrain height provider by the server
    DEM_PATH = Path(os.environ["HUTFLIGHT_DEM_PATH"]) if os.getenv("HUTFLIGHT_DEM_PATH") else None

    SERVER_HOST = os.getenv("HUTFLIGHT_HOST", "0.0.0.0")
    SERVER_PORT = int(os.getenv("HUTFLIGHT_PORT", "8000"))

    @classmethod
    def validate(cls):
        if cls.BASE_SPEED_MPS <= 0:
            raise ValueError(f"HUTFLIGHT_BASE_SPEED_MPS must be positive, got {cls.BASE_SPEED_MPS}")
        if cls.FRAME_RATE <= 0:
            raise ValueError(f"HUTFLIGHT_FRAME_RATE must be positive, got {cls.FRAME_RATE}")


settings = Settings()
settings.validate()


class FlightConfig(BaseModel):
    """Tuning constants of the camera flight.

    The slope-adaptive values are empirical; only their ratios matter
    (descents pull the camera back further than climbs).
    """

    base_speed_mps: float = Field(default=settings.BASE_SPEED_MPS, gt=0)
    speed_multipliers: tuple[int, ...] = (1, 2, 5, 10)

    # Waypoints
    waypoint_proximity_m: float = 50.0
    waypoint_pause_s: float = 2.0

    # Slope estimation
    slope_lookahead_m: float = 150.0
    slope_threshold_deg: float = 5.0
    max_slope_intensity_deg: float = 15.0

    # Adaptive offsets per degree of slope intensity
    climb_height_bonus_per_deg: float = 8.0
    descent_height_bonus_per_deg: float = 12.0
    climb_setback_bonus_per_deg: float = 20.0
    descent_setback_ratio: float = 3.5
    climb_pitch_per_deg: float = 0.6
    descent_pitch_per_deg: float = -0.9
    adaptive_smoothing: float = Field(default=0.015, gt=0, le=1)

    # Heading
    bearing_lookahead_m: float = 500.0
    bearing_smoothing: float = Field(default=0.025, gt=0, le=1)

    # Camera placement
    base_setback_m: float = 600.0
    base_height_above_ground_m: float = 350.0
    minimum_height_m: float = 500.0
    base_pitch_deg: float = -25.0
    height_smoothing: float = Field(default=0.15, gt=0, le=1)
    return_duration_s: float = 2.0

    # Terrain pre-sampling and warm-up
    terrain_sample_target: int = Field(default=50, ge=2)
    terrain_batch_size: int = Field(default=10, ge=1)
    terrain_warmup_steps: int = Field(default=10, ge=0)
    terrain_warmup_delay_s: float = Field(default=0.3, ge=0)
    terrain_warmup_height_m: float = 300.0
    terrain_cell_deg: float = Field(default=0.01, gt=0)

    @field_validator("speed_multipliers")
    @classmethod
    def _non_empty(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        if not value:
            raise ValueError("speed_multipliers must not be empty")
        return value

    @property
    def descent_setback_bonus_per_deg(self) -> float:
        return self.climb_setback_bonus_per_deg * self.descent_setback_ratio

    @classmethod
    def from_settings(cls, **overrides) -> FlightConfig:
        return cls(base_speed_mps=settings.BASE_SPEED_MPS, **overrides)
