"""Stay-level demographics derived from charted events.

Weight segments with start/stop times, first-day height and the
heart-rate-derived ICU boundary times.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
import pandas as pd

from .config import SofaConfig, resolve_config

logger = logging.getLogger(__name__)

WEIGHT_COLUMNS = ["stay_id", "starttime", "endtime", "weight", "weight_type"]


def weight_durations(
    chartevents: pd.DataFrame,
    stays: pd.DataFrame,
    config: Optional[SofaConfig] = None,
) -> pd.DataFrame:
    """Build per-stay weight segments with start/stop times.

    The first admission weight is assumed valid from ``intime`` minus the
    fuzziness window; every other weight from its charting time. A segment
    runs until the next weight of the stay, the last one until ``outtime``
    plus the fuzziness window. When the first segment starts after
    ``intime`` minus the fuzziness window the first weight is carried back to
    that point, so the stay is covered from ``intime - fuzz`` onwards.

    Args:
        chartevents: Charted events with ``stay_id, charttime, itemid, valuenum``
        stays: ICU stays with ``stay_id, intime, outtime``
        config: Pipeline configuration (itemids, fuzziness window)

    Returns:
        DataFrame with ``stay_id, starttime, endtime, weight, weight_type``
    """
    cfg = resolve_config(config)
    fuzz = pd.Timedelta(hours=cfg.weight_fuzz_hours)
    admit_ids = cfg.itemids.weight_admit
    daily_ids = cfg.itemids.weight_daily

    wt = chartevents[chartevents["itemid"].isin(admit_ids + daily_ids)]
    wt = wt[wt["valuenum"].notna() & (wt["valuenum"] > 0)]
    if wt.empty:
        return pd.DataFrame(columns=WEIGHT_COLUMNS)

    wt = wt[["stay_id", "charttime", "itemid", "valuenum"]].rename(columns={"valuenum": "weight"})
    wt["weight_type"] = np.where(wt["itemid"].isin(admit_ids), "admit", "daily")
    wt = wt.sort_values(["stay_id", "weight_type", "charttime"], kind="mergesort")
    wt["rn"] = wt.groupby(["stay_id", "weight_type"]).cumcount() + 1

    wt = wt.merge(stays[["stay_id", "intime", "outtime"]], on="stay_id", how="inner")
    first_admit = (wt["weight_type"] == "admit") & (wt["rn"] == 1)
    wt["starttime"] = wt["charttime"].where(~first_admit, wt["intime"] - fuzz)

    wt = wt.sort_values(["stay_id", "starttime"], kind="mergesort").reset_index(drop=True)
    next_start = wt.groupby("stay_id")["starttime"].shift(-1)
    wt["endtime"] = next_start.fillna(wt["outtime"] + fuzz)

    # Backfill from intime - fuzz up to the first charted weight.
    first = wt.groupby("stay_id", sort=False).head(1)
    first = first[first["intime"] - fuzz < first["starttime"]]
    fix = pd.DataFrame({
        "stay_id": first["stay_id"],
        "starttime": first["intime"] - fuzz,
        "endtime": first["starttime"],
        "weight": first["weight"],
        "weight_type": first["weight_type"],
    })

    result = pd.concat([wt[WEIGHT_COLUMNS], fix[WEIGHT_COLUMNS]], ignore_index=True)

    degenerate = result["endtime"] <= result["starttime"]
    if degenerate.any():
        logger.debug("Dropping %d zero-length weight segment(s)", int(degenerate.sum()))
        result = result[~degenerate]

    result = result.sort_values(["stay_id", "starttime"], kind="mergesort").reset_index(drop=True)
    logger.info("Weight segments: %d rows for %d stays", len(result), result["stay_id"].nunique())
    return result


def weight_at(
    events: pd.DataFrame,
    weights: pd.DataFrame,
    time_col: str = "starttime",
) -> pd.Series:
    """Look up the weight segment covering ``events[time_col]`` per stay.

    Returns:
        Series aligned with ``events`` (null where no segment applies)
    """
    if events.empty or weights.empty:
        return pd.Series(np.nan, index=events.index, dtype=float)

    keyed = events[["stay_id", time_col]].copy()
    keyed["_row"] = np.arange(len(keyed))
    merged = keyed.merge(
        weights[["stay_id", "starttime", "endtime", "weight"]].rename(
            columns={"starttime": "_wstart", "endtime": "_wend"}
        ),
        on="stay_id",
        how="inner",
    )
    covered = merged[(merged[time_col] >= merged["_wstart"]) & (merged[time_col] < merged["_wend"])]
    found = covered.drop_duplicates("_row").set_index("_row")["weight"]
    return pd.Series(found.reindex(np.arange(len(events))).to_numpy(), index=events.index, dtype=float)


def extract_height(chartevents: pd.DataFrame, config: Optional[SofaConfig] = None) -> pd.DataFrame:
    """Height observations in cm (inch itemids are converted)."""
    cfg = resolve_config(config)
    cm_ids = cfg.itemids.height_cm
    in_ids = cfg.itemids.height_in

    ht = chartevents[chartevents["itemid"].isin(cm_ids + in_ids)].copy()
    ht["height"] = np.where(ht["itemid"].isin(in_ids), ht["valuenum"] * 2.54, ht["valuenum"])
    ht = ht[ht["height"] > 0]
    return ht[["stay_id", "charttime", "height"]].reset_index(drop=True)


def first_day_height(
    heights: pd.DataFrame,
    stays: pd.DataFrame,
    config: Optional[SofaConfig] = None,
) -> pd.DataFrame:
    """Average height around ICU admission.

    Heights charted between ``intime - 6h`` and ``intime + 1 day`` (both
    inclusive) are averaged and rounded to two decimals. Height is treated
    as constant over the stay.

    Args:
        heights: ``stay_id, charttime, height`` (see :func:`extract_height`)
        stays: ICU stays with ``subject_id, stay_id, intime``

    Returns:
        DataFrame with ``subject_id, stay_id, height``; one row per stay
    """
    cfg = resolve_config(config)
    before = pd.Timedelta(hours=cfg.height_before_hours)
    after = pd.Timedelta(hours=cfg.height_after_hours)

    base = stays[["subject_id", "stay_id", "intime"]]
    joined = base.merge(heights[["stay_id", "charttime", "height"]], on="stay_id", how="inner")
    joined = joined[
        (joined["charttime"] >= joined["intime"] - before)
        & (joined["charttime"] <= joined["intime"] + after)
    ]
    avg = joined.groupby("stay_id")["height"].mean().round(2)

    result = base[["subject_id", "stay_id"]].copy()
    result["height"] = result["stay_id"].map(avg)
    return result.reset_index(drop=True)


def icustay_times(chartevents: pd.DataFrame, stays: pd.DataFrame, config: Optional[SofaConfig] = None) -> pd.DataFrame:
    """First and last heart rate charting time per stay.

    Heart rate is charted from arrival to departure, so these bounds are a
    tighter estimate of when the patient was physically in the unit.

    Returns:
        DataFrame with ``subject_id, hadm_id, stay_id, intime_hr, outtime_hr``
        for every stay (times null when no heart rate was charted)
    """
    cfg = resolve_config(config)
    hr = chartevents[chartevents["itemid"].isin(cfg.itemids.heart_rate)]
    bounds = hr.groupby("stay_id")["charttime"].agg(intime_hr="min", outtime_hr="max")

    result = stays[["subject_id", "hadm_id", "stay_id"]].merge(
        bounds, left_on="stay_id", right_index=True, how="left"
    )
    return result.reset_index(drop=True)


__all__ = [
    "weight_durations",
    "weight_at",
    "extract_height",
    "first_day_height",
    "icustay_times",
]
