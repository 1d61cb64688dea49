"""Vasopressor rate unit conversion.

Infusion rates arrive in a handful of unit spellings; SOFA thresholds assume
mcg/kg/min.
"""
from typing import Optional, Union
import logging

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

STANDARD_UNIT = "mcg/kg/min"

SUPPORTED_UNITS = (STANDARD_UNIT, "mcg/min", "mg/hour", "mg/kg/hour", "mg/kg/min")

_UNIT_ALIASES = {
    "ug/kg/min": "mcg/kg/min",
    "μg/kg/min": "mcg/kg/min",
    "mcgkgmin": "mcg/kg/min",
    "ug/min": "mcg/min",
    "μg/min": "mcg/min",
    "mg/h": "mg/hour",
    "mg/hr": "mg/hour",
    "mg/kg/h": "mg/kg/hour",
    "mg/kg/hr": "mg/kg/hour",
}


def normalize_unit(unit: Optional[str]) -> Optional[str]:
    """Canonical spelling of a rate unit, ``None`` when missing."""
    if unit is None or (isinstance(unit, float) and np.isnan(unit)):
        return None
    key = str(unit).lower().strip().replace(" ", "")
    return _UNIT_ALIASES.get(key, key)


def convert_vaso_rate(
    rate: Union[float, np.ndarray, pd.Series],
    from_unit: str,
    weight_kg: Optional[Union[float, np.ndarray, pd.Series]] = None,
) -> Union[float, np.ndarray, pd.Series]:
    """Convert vasopressor/inotrope infusion rates to mcg/kg/min.

    Supported conversions:
    - 'mcg/kg/min' (or 'ug/kg/min') -> no conversion
    - 'mcg/min' -> divide by weight_kg
    - 'mg/hour' -> (rate * 1000 mcg/mg) / (60 min/h * weight_kg)
    - 'mg/kg/hour' -> rate * 1000 / 60
    - 'mg/kg/min' -> rate * 1000

    Args:
        rate: Infusion rate value(s)
        from_unit: Source unit string (case-insensitive)
        weight_kg: Patient weight in kg (required for non-weight-adjusted units)

    Returns:
        Rate in mcg/kg/min

    Raises:
        ValueError: If weight is required but not provided, or unit is unsupported

    Examples:
        >>> convert_vaso_rate(5.0, 'ug/kg/min')
        5.0
        >>> convert_vaso_rate(300.0, 'mcg/min', weight_kg=75.0)
        4.0
        >>> convert_vaso_rate(18.0, 'mg/h', weight_kg=60.0)
        5.0
    """
    unit = normalize_unit(from_unit)

    if unit == STANDARD_UNIT:
        return rate

    if unit == "mg/kg/min":
        return rate * 1000.0

    if unit == "mg/kg/hour":
        return rate * (1000.0 / 60.0)

    if unit in ("mcg/min", "mg/hour"):
        if weight_kg is None:
            raise ValueError(f"Patient weight (kg) required to convert from '{from_unit}' to {STANDARD_UNIT}")
        if unit == "mcg/min":
            return rate / weight_kg
        return (rate * 1000.0) / (60.0 * weight_kg)

    raise ValueError(
        f"Unsupported vasopressor rate unit: '{from_unit}'. "
        f"Supported: 'mcg/kg/min', 'mcg/min', 'mg/hour', 'mg/kg/hour', 'mg/kg/min'"
    )


def vaso_rate_to_standard(
    rate: pd.Series,
    units: pd.Series,
    weight_kg: pd.Series,
    drug: str,
    weight_flag: Optional[pd.Series] = None,
) -> pd.Series:
    """Row-wise conversion of infusion rates to mcg/kg/min.

    Each recognised unit is converted with :func:`convert_vaso_rate`. Rows in
    an unknown unit keep their rate unconverted. Rows needing a weight
    without one become null.

    Norepinephrine rows charted in mg/kg/min are multiplied by 1000 only when
    ``weight_flag`` equals 1 and are otherwise left as charted.

    Args:
        rate: Charted rates
        units: Unit of each rate
        weight_kg: Weight used for non-weight-adjusted units
        drug: Agent name
        weight_flag: Per-row patient-weight value compared against 1 for the
            norepinephrine rule (defaults to ``weight_kg``)

    Returns:
        Series of rates in mcg/kg/min aligned with ``rate``
    """
    rate = pd.to_numeric(rate, errors="coerce").astype(float)
    weight = pd.to_numeric(weight_kg, errors="coerce").astype(float)
    weight = weight.where(weight > 0)
    flag = weight_flag if weight_flag is not None else weight_kg
    flag = pd.to_numeric(flag, errors="coerce")
    unit = units.map(normalize_unit)

    converted = rate.copy()
    unknown = pd.Series(False, index=rate.index)
    for name in unit.dropna().unique():
        rows = (unit == name).to_numpy()
        if name not in SUPPORTED_UNITS:
            unknown.loc[rows] = True
            continue
        if name == "mg/kg/min" and drug == "norepinephrine":
            converted.loc[rows] = np.where(flag.loc[rows] == 1, rate.loc[rows] * 1000.0, rate.loc[rows])
        else:
            scaled = convert_vaso_rate(rate.loc[rows], name, weight_kg=weight.loc[rows])
            converted.loc[rows] = np.asarray(scaled, dtype=float)

    unknown |= unit.isna()
    if unknown.any():
        logger.warning(
            "%s: %d row(s) with unrecognised rate unit(s) %s left unconverted",
            drug, int(unknown.sum()), sorted(set(map(str, unit[unknown].unique()))),
        )
    return converted


__all__ = ["STANDARD_UNIT", "SUPPORTED_UNITS", "normalize_unit", "convert_vaso_rate", "vaso_rate_to_standard"]
