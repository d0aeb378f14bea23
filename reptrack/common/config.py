from __future__ import annotations
import logging
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "REPTRACK_"


class TrackerSettings(BaseModel):
    """Resolved settings consumed by the signal conditioner and phase machines."""
    is_smoothing_enabled: bool = Field(False, description="Apply EMA smoothing to tracked signals")
    smoothing_window: int = Field(25, ge=0, description="EMA window N, alpha = 2/(N+1)")
    use_phase_sequence: bool = Field(True, description="Four-phase sequence mode instead of threshold crossing")
    rep_debounce_ms: int = Field(200, ge=0, description="Minimum peak hold before the eccentric phase counts")
    require_all_landmarks: bool = Field(False, description="Gate counting on primary landmark visibility")
    minimum_visibility_threshold: float = Field(25, ge=0, le=80, description="Visibility threshold in percent")
    require_secondary_landmarks: bool = Field(False, description="Also gate on secondary landmarks")

    @property
    def visibility_cutoff(self) -> float:
        return self.minimum_visibility_threshold / 100.0


class TimedSessionConfig(BaseModel):
    exercise_set_duration: int = Field(30, ge=1, description="Seconds per exercise set")
    rest_period_duration: int = Field(15, ge=0, description="Seconds of rest between sets")
    total_sets: int = Field(10, ge=1, description="Sets before the session ends")
    fixed_exercise_id: Optional[str] = Field(None, description="Always use this exercise instead of random picks")


class LadderConfig(BaseModel):
    start_reps: int = Field(1, description="Reps on the first step")
    top_reps: int = Field(10, description="Peak reps of the ladder")
    end_reps: int = Field(1, description="Reps on the last step")
    increment: int = Field(1, description="Rep change between steps")
    rest_time_per_rep: int = Field(3, ge=0, description="Seconds of rest per rep just performed")
    auto_advance: bool = Field(True, description="Complete the set once the rep target is reached")

    @property
    def is_valid(self) -> bool:
        return self.increment > 0 and self.start_reps <= self.top_reps


def _env(name: str) -> Optional[str]:
    val = os.getenv(ENV_PREFIX + name.upper())
    return val if val not in (None, "") else None


def _from_env(model: type[BaseModel]) -> BaseModel:
    raw = {}
    for field in model.model_fields:
        val = _env(field)
        if val is not None:
            raw[field] = val
    try:
        return model(**raw)
    except ValidationError as e:
        logger.warning("invalid %s values in environment, using defaults: %s", model.__name__, e)
        return model()


def load_settings() -> TrackerSettings:
    # Load environment variables from .env file
    load_dotenv()
    return _from_env(TrackerSettings)


def load_timed_config() -> TimedSessionConfig:
    load_dotenv()
    return _from_env(TimedSessionConfig)


def load_ladder_config() -> LadderConfig:
    load_dotenv()
    return _from_env(LadderConfig)
