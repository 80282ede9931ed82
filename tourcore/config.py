"""
Runtime settings (Pydantic).

Defaults live on the model; a small whitelist of environment variables can
override them:
- `TOURCORE_APP_NAME`
- `TOURCORE_LOG_LEVEL`
- `TOURCORE_PROXIMITY_THRESHOLD_M`
- `TOURCORE_PREVIEW_KEY_POINTS`
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Any

from pydantic import BaseModel, Field

from .geo import PROXIMITY_THRESHOLD_M

_ENV_OVERRIDES = {
    "TOURCORE_APP_NAME": "app_name",
    "TOURCORE_LOG_LEVEL": "log_level",
    "TOURCORE_PROXIMITY_THRESHOLD_M": "proximity_threshold_m",
    "TOURCORE_PREVIEW_KEY_POINTS": "preview_key_points",
}


class Settings(BaseModel):
    app_name: str = "Tour Commerce & Execution API"
    log_level: str = "INFO"
    proximity_threshold_m: float = Field(default=PROXIMITY_THRESHOLD_M, gt=0)
    # Key points shown to users who have not purchased the tour.
    preview_key_points: int = Field(default=1, ge=0)


def _env_overrides() -> dict[str, Any]:
    data: dict[str, Any] = {}
    for env_name, field_name in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            data[field_name] = value
    return data


def load_settings() -> Settings:
    """Build settings from defaults plus environment overrides (uncached)."""
    return Settings.model_validate(_env_overrides())


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    return load_settings()
