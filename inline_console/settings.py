"""Analyzer settings built from an untyped key/value bag."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from . import constants

logger = logging.getLogger(__name__)


class AnalyzerSettings(BaseModel):
    """Settings keyed the way an editor supplies them (camelCase).

    snake_case field names are accepted too. Unknown keys are ignored.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    timeout: int = Field(default=constants.DEFAULT_TIMEOUT_MS, gt=0)
    max_length: int = Field(
        default=constants.DEFAULT_MAX_LENGTH, alias="maxLength", gt=len(constants.ELLIPSIS)
    )
    debounce_delay: int = Field(
        default=constants.DEFAULT_DEBOUNCE_MS, alias="debounceDelay", ge=0
    )
    enable_on_startup: bool = Field(default=False, alias="enableOnStartup")
    max_response_bytes: int = Field(
        default=constants.DEFAULT_MAX_RESPONSE_BYTES, alias="maxResponseBytes", gt=0
    )
    cache_capacity: int = Field(
        default=constants.DEFAULT_CACHE_CAPACITY, alias="cacheCapacity", ge=0
    )
    cache_ttl: float = Field(
        default=constants.DEFAULT_CACHE_TTL_SECONDS, alias="cacheTtl", ge=0
    )
    fetch_enabled: bool = Field(default=True, alias="fetchEnabled")

    @property
    def timeout_seconds(self) -> float:
        return self.timeout / 1000

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_delay / 1000

    @classmethod
    def _keys_for(cls, loc_key: Any) -> set[str]:
        for name, info in cls.model_fields.items():
            if loc_key in (name, info.alias):
                return {name, info.alias} - {None}
        return {loc_key}

    @classmethod
    def from_bag(cls, bag: dict[str, Any] | None = None) -> "AnalyzerSettings":
        """Validate *bag*; invalid values fall back to their defaults."""
        values = dict(bag or {})
        try:
            return cls.model_validate(values)
        except ValidationError as e:
            rejected: set[str] = set()
            for error in e.errors():
                if error["loc"]:
                    rejected |= cls._keys_for(error["loc"][0])
            for key in sorted(k for k in rejected if k in values):
                logger.warning(
                    "Ignoring invalid setting %s=%r; using default", key, values[key]
                )
                del values[key]
        return cls.model_validate(values)
