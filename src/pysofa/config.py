"""Configuration models for the hourly SOFA pipeline.

Clinical constants (window lengths, urine-output duration bounds, weight
fuzziness), the itemids used to pick signals out of charted events and the
execution options are described by the models below and validated via
:mod:`pydantic`.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .resources import load_itemids

VASOPRESSORS = ("norepinephrine", "epinephrine", "dopamine", "dobutamine")


class ItemIdConfig(BaseModel):
    """Itemids of the charted signals consumed by the normalizers."""

    heart_rate: List[int] = Field(default_factory=list)
    mean_bp: List[int] = Field(default_factory=list)
    gcs_eyes: List[int] = Field(default_factory=list)
    gcs_verbal: List[int] = Field(default_factory=list)
    gcs_motor: List[int] = Field(default_factory=list)
    weight_admit: List[int] = Field(default_factory=list)
    weight_daily: List[int] = Field(default_factory=list)
    height_cm: List[int] = Field(default_factory=list)
    height_in: List[int] = Field(default_factory=list)
    vasopressors: Dict[str, List[int]] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("vasopressors")
    def _known_agents(cls, value: Dict[str, List[int]]) -> Dict[str, List[int]]:
        unknown = set(value) - set(VASOPRESSORS)
        if unknown:
            raise ValueError(f"Unknown vasopressor(s): {sorted(unknown)}")
        return value

    def vasopressor_itemids(self, drug: str) -> List[int]:
        try:
            return list(self.vasopressors[drug])
        except KeyError as error:
            raise KeyError(f"No itemids configured for vasopressor '{drug}'") from error


class SofaConfig(BaseModel):
    """Complete configuration of a SOFA pipeline run."""

    window_hours: int = 24
    uo_min_hours: float = 22.0
    uo_max_hours: float = 30.0
    weight_fuzz_hours: float = 2.0
    height_before_hours: float = 6.0
    height_after_hours: float = 24.0
    arterial_specimen: str = "ART."
    invasive_vent_status: str = "InvasiveVent"
    grid_lead_hours: int = 0
    use_heart_rate_times: bool = False
    max_workers: int = 1
    shard_size: int = 500
    resource_dirs: List[str] = Field(default_factory=list)
    itemids: ItemIdConfig

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    @field_validator("window_hours", "max_workers", "shard_size")
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("grid_lead_hours")
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("grid_lead_hours must not be negative")
        return value

    @model_validator(mode="before")
    def _load_itemids(cls, values: Any) -> Any:
        # itemids.json is looked up in resource_dirs before the bundled copy
        if isinstance(values, Mapping) and values.get("itemids") is None:
            values = dict(values)
            values["itemids"] = load_itemids(values.get("resource_dirs") or None)
        return values

    @model_validator(mode="after")
    def _check_uo_bounds(self) -> "SofaConfig":
        if self.uo_min_hours > self.uo_max_hours:
            raise ValueError("uo_min_hours must not exceed uo_max_hours")
        return self

    @classmethod
    def from_json(cls, file_path: str | Path) -> "SofaConfig":
        path = Path(file_path)
        with path.open("r", encoding="utf8") as handle:
            payload = json.load(handle)
        return cls(**payload)


def load_config(path: Optional[str | Path] = None, **overrides: Any) -> SofaConfig:
    """Build a validated :class:`SofaConfig`.

    Args:
        path: Optional JSON file with configuration values.
        **overrides: Values taking precedence over the file contents.

    Returns:
        The validated configuration.

    Raises:
        pydantic.ValidationError: If any value is invalid.

    Examples:
        >>> cfg = load_config(window_hours=12)
        >>> cfg.window_hours
        12
    """
    payload: Dict[str, Any] = {}
    if path is not None:
        with Path(path).open("r", encoding="utf8") as handle:
            payload.update(json.load(handle))
    payload.update(overrides)
    return SofaConfig(**payload)


# ============================================================================
# Global configuration management
# ============================================================================

class GlobalConfig:
    """Process-wide default :class:`SofaConfig`.

    Pipeline entry points fall back to this instance when no explicit
    configuration is passed.
    """

    def __init__(self) -> None:
        self._config: Optional[SofaConfig] = None

    def get(self) -> SofaConfig:
        if self._config is None:
            self._config = SofaConfig()
        return self._config

    def update(self, **kwargs: Any) -> None:
        payload = self.get().model_dump()
        payload.update(kwargs)
        self._config = SofaConfig(**payload)

    def reset(self) -> None:
        self._config = None

    def __repr__(self) -> str:
        return f"GlobalConfig({self.get()!r})"


global_config = GlobalConfig()


def get_config() -> SofaConfig:
    """Return the process-wide default configuration."""
    return global_config.get()


def set_config(**kwargs: Any) -> None:
    """Update the process-wide default configuration.

    Examples:
        >>> set_config(max_workers=4)
    """
    global_config.update(**kwargs)


def reset_config() -> None:
    """Reset the process-wide configuration to defaults."""
    global_config.reset()


def resolve_config(config: Optional[SofaConfig | Mapping[str, Any]] = None) -> SofaConfig:
    """Accept ``None``, a mapping or a :class:`SofaConfig` and return a config."""
    if config is None:
        return get_config()
    if isinstance(config, SofaConfig):
        return config
    return SofaConfig(**dict(config))


__all__ = [
    "VASOPRESSORS",
    "ItemIdConfig",
    "SofaConfig",
    "load_config",
    "get_config",
    "set_config",
    "reset_config",
    "resolve_config",
]
