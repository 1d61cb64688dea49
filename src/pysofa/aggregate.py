"""Per-signal hourly aggregation onto the SOFA grid.

Each ``hourly_*`` function reduces one signal family to at most one value per
``(stay_id, hr)``: the worst value observed within the hour (lowest
PaO2/FiO2, mean BP, GCS and platelets; highest bilirubin, creatinine,
vasopressor rate and urine output). :func:`hourly_signals` left-joins them
onto the grid.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

import numpy as np
import pandas as pd

from .config import SofaConfig, resolve_config
from .ts_utils import join_intervals, join_points

logger = logging.getLogger(__name__)

SIGNAL_COLUMNS = [
    "pao2fio2ratio_novent",
    "pao2fio2ratio_vent",
    "rate_epinephrine",
    "rate_norepinephrine",
    "rate_dopamine",
    "rate_dobutamine",
    "meanbp_min",
    "gcs_min",
    "uo_24hr",
    "bilirubin_max",
    "creatinine_max",
    "platelet_min",
]


def _ventilated_at(gases: pd.DataFrame, ventilation: pd.DataFrame, status: str) -> pd.Series:
    """Whether an invasive ventilation episode of the stay covers each gas."""
    vent = ventilation[ventilation["ventilation_status"] == status]
    if gases.empty or vent.empty:
        return pd.Series(False, index=gases.index)

    keyed = gases[["stay_id", "charttime"]].copy()
    keyed["_row"] = np.arange(len(keyed))
    merged = keyed.merge(
        vent[["stay_id", "starttime", "endtime"]], on="stay_id", how="inner"
    )
    covered = merged[
        (merged["charttime"] >= merged["starttime"]) & (merged["charttime"] <= merged["endtime"])
    ]
    flags = np.zeros(len(gases), dtype=bool)
    flags[covered["_row"].unique()] = True
    return pd.Series(flags, index=gases.index)


def hourly_pafi(
    grid: pd.DataFrame,
    bg: pd.DataFrame,
    ventilation: pd.DataFrame,
    stays: pd.DataFrame,
    config: Optional[SofaConfig] = None,
) -> pd.DataFrame:
    """Lowest PaO2/FiO2 ratio per hour, split by ventilation status.

    Only arterial specimens are used. Blood gases are keyed by subject and are
    attached to every ICU stay of that subject.

    Returns:
        DataFrame with ``stay_id, hr, pao2fio2ratio_novent, pao2fio2ratio_vent``
    """
    cfg = resolve_config(config)
    gases = bg[(bg["specimen"] == cfg.arterial_specimen) & bg["pao2fio2ratio"].notna()]
    gases = gases[["subject_id", "charttime", "pao2fio2ratio"]].merge(
        stays[["subject_id", "stay_id"]], on="subject_id", how="inner"
    )
    gases = gases.reset_index(drop=True)

    vent = _ventilated_at(gases, ventilation, cfg.invasive_vent_status)
    gases["pao2fio2ratio_vent"] = gases["pao2fio2ratio"].where(vent)
    gases["pao2fio2ratio_novent"] = gases["pao2fio2ratio"].where(~vent)
    logger.debug("Blood gases: %d arterial, %d during invasive ventilation", len(gases), int(vent.sum()))

    return join_points(
        grid,
        gases,
        {
            "pao2fio2ratio_novent": ("pao2fio2ratio_novent", "min"),
            "pao2fio2ratio_vent": ("pao2fio2ratio_vent", "min"),
        },
    )


def hourly_vitals(grid: pd.DataFrame, vitals: pd.DataFrame) -> pd.DataFrame:
    """Lowest mean arterial pressure per hour (``meanbp_min``)."""
    return join_points(grid, vitals, {"meanbp_min": ("mbp", "min")})


def hourly_gcs(grid: pd.DataFrame, gcs: pd.DataFrame) -> pd.DataFrame:
    """Lowest GCS per hour (``gcs_min``)."""
    return join_points(grid, gcs, {"gcs_min": ("gcs", "min")})


def hourly_labs(grid: pd.DataFrame, labs: pd.DataFrame, stays: pd.DataFrame) -> pd.DataFrame:
    """Worst bilirubin, creatinine and platelet count per hour.

    Labs are keyed by hospital admission and attached to every ICU stay of
    that admission.

    Returns:
        DataFrame with ``stay_id, hr, bilirubin_max, creatinine_max, platelet_min``
    """
    keyed = labs.merge(stays[["hadm_id", "stay_id"]], on="hadm_id", how="inner")
    return join_points(
        grid,
        keyed,
        {
            "bilirubin_max": ("bilirubin_total", "max"),
            "creatinine_max": ("creatinine", "max"),
            "platelet_min": ("platelet", "min"),
        },
    )


def hourly_urine_output(
    grid: pd.DataFrame,
    urine_output_rate: pd.DataFrame,
    config: Optional[SofaConfig] = None,
) -> pd.DataFrame:
    """Highest 24-hour-extrapolated urine output per hour (``uo_24hr``).

    A rolling urine output sum is only trusted when it covers between
    ``uo_min_hours`` and ``uo_max_hours`` of observation; it is then scaled
    to exactly 24 hours. Other rows contribute null.

    Examples:
        480 mL over 24h gives 480; 480 mL over 20h gives null.
    """
    cfg = resolve_config(config)
    uo = urine_output_rate.copy()
    hours = pd.to_numeric(uo["uo_tm_24hr"], errors="coerce")
    volume = pd.to_numeric(uo["urineoutput_24hr"], errors="coerce")
    trusted = (hours >= cfg.uo_min_hours) & (hours <= cfg.uo_max_hours)
    uo["uo_24hr"] = (volume / hours * 24).where(trusted)
    return join_points(grid, uo, {"uo_24hr": ("uo_24hr", "max")})


def hourly_vasopressors(grid: pd.DataFrame, vasopressors: Dict[str, pd.DataFrame]) -> pd.DataFrame:
    """Highest rate per agent for every hour an infusion is running.

    Only hours where at least one agent has a non-null rate are returned.

    Args:
        grid: Hourly grid
        vasopressors: Agent name -> interval table from
            :func:`pysofa.medication.extract_vasopressors`

    Returns:
        DataFrame with ``stay_id, hr`` and ``rate_<agent>`` columns
    """
    rate_cols = ["rate_epinephrine", "rate_norepinephrine", "rate_dopamine", "rate_dobutamine"]
    result = None
    for drug, intervals in vasopressors.items():
        col = f"rate_{drug}"
        hourly = join_intervals(grid, intervals, {col: ("vaso_rate", "max")})
        if result is None:
            result = hourly
        else:
            result = result.merge(hourly, on=["stay_id", "hr"], how="outer")

    if result is None:
        result = join_intervals(grid, pd.DataFrame(), {})
    result = result.reindex(columns=["stay_id", "hr"] + rate_cols)
    result[rate_cols] = result[rate_cols].astype("float64")
    result = result[result[rate_cols].notna().any(axis=1)]
    return result.sort_values(["stay_id", "hr"]).reset_index(drop=True)


def hourly_signals(grid: pd.DataFrame, *parts: pd.DataFrame) -> pd.DataFrame:
    """Left-join hourly signal tables onto the grid.

    Every signal column is present in the result; hours without an
    observation are null.

    Args:
        grid: Hourly grid from :func:`pysofa.ts_utils.hourly_grid`
        *parts: Tables keyed by ``stay_id, hr`` from the ``hourly_*``
            functions

    Returns:
        Grid columns followed by the signal columns
    """
    signals = grid
    for part in parts:
        if part is None:
            continue
        part = part.astype({"hr": "int64"})
        signals = signals.merge(part, on=["stay_id", "hr"], how="left")

    for col in SIGNAL_COLUMNS:
        if col not in signals.columns:
            signals[col] = np.nan
    signals[SIGNAL_COLUMNS] = signals[SIGNAL_COLUMNS].astype("float64")
    logger.info("Hourly signals: %d rows", len(signals))
    return signals[list(grid.columns) + SIGNAL_COLUMNS]


__all__ = [
    "SIGNAL_COLUMNS",
    "hourly_pafi",
    "hourly_vitals",
    "hourly_gcs",
    "hourly_labs",
    "hourly_urine_output",
    "hourly_vasopressors",
    "hourly_signals",
]
