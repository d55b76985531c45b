"""Configuration for composite weak maps."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MapConfig(BaseModel):
    """Limits and monitoring knobs for a CompositeWeakMap."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # each set() registers n * (n - 1) watches
    max_key_length: Optional[int] = Field(default=None, ge=1)
    candidate_warning_threshold: Optional[int] = Field(default=1024, ge=1)
