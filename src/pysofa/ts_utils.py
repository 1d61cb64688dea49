"""Time series utilities for the hourly SOFA grid.

This module builds the per-stay hourly grid and provides the interval joins
(point observations and infusion intervals onto hours) and the trailing
window reduction used by the scoring pipeline.

Hour ``hr`` of a stay covers the half-open window ``(base + hr h,
base + (hr + 1) h]`` where ``base`` is the stay's reference time (ICU
admission by default).
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

ONE_HOUR = pd.Timedelta(hours=1)

GRID_COLUMNS = ["stay_id", "hr", "starttime", "endtime"]


def stay_base_times(
    stays: pd.DataFrame,
    times: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """Reference start/end time of every stay.

    Args:
        stays: ICU stays with ``stay_id, intime, outtime``
        times: Optional heart-rate boundaries (``stay_id, intime_hr,
            outtime_hr``); where present they replace intime/outtime

    Returns:
        DataFrame with ``stay_id, base, final``
    """
    result = stays[["stay_id", "intime", "outtime"]].rename(
        columns={"intime": "base", "outtime": "final"}
    )
    if times is not None and not times.empty:
        hr = times.set_index("stay_id")
        result = result.copy()
        result["base"] = result["stay_id"].map(hr["intime_hr"]).fillna(result["base"])
        result["final"] = result["stay_id"].map(hr["outtime_hr"]).fillna(result["final"])
    return result.reset_index(drop=True)


def hourly_grid(
    stays: pd.DataFrame,
    lead_hours: int = 0,
    times: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """One row per stay and completed hour of stay.

    Hours run from ``-lead_hours`` to the last hour ending at or before the
    stay's end, so a stay of 5.5 hours yields hours 0-4. Stays with missing
    times or shorter than one hour produce no rows.

    Args:
        stays: ICU stays with ``stay_id, intime, outtime``
        lead_hours: Number of hours before admission to include (negative
            ``hr``), giving the trailing window history at admission
        times: Optional heart-rate boundaries, see :func:`stay_base_times`

    Returns:
        DataFrame with ``stay_id, hr, starttime, endtime``

    Examples:
        >>> stays = pd.DataFrame({
        ...     'stay_id': [1],
        ...     'intime': pd.to_datetime(['2020-01-01 00:30']),
        ...     'outtime': pd.to_datetime(['2020-01-01 03:45']),
        ... })
        >>> hourly_grid(stays)['hr'].tolist()
        [0, 1, 2]
    """
    bounds = stay_base_times(stays, times)
    valid = bounds["base"].notna() & bounds["final"].notna()
    if (~valid).any():
        logger.warning("Skipping %d stay(s) without admission/discharge time", int((~valid).sum()))
    bounds = bounds[valid]

    n_hours = ((bounds["final"] - bounds["base"]) // ONE_HOUR).astype("int64")
    bounds = bounds[n_hours > 0]
    n_hours = n_hours[n_hours > 0]
    if bounds.empty:
        return pd.DataFrame({
            "stay_id": pd.Series(dtype=stays["stay_id"].dtype),
            "hr": pd.Series(dtype="int64"),
            "starttime": pd.Series(dtype="datetime64[ns]"),
            "endtime": pd.Series(dtype="datetime64[ns]"),
        })

    counts = (n_hours + lead_hours).to_numpy()
    stay_ids = np.repeat(bounds["stay_id"].to_numpy(), counts)
    base = np.repeat(bounds["base"].to_numpy(), counts)
    offsets = np.arange(counts.sum()) - np.repeat(np.cumsum(counts) - counts, counts)
    hr = offsets - lead_hours

    grid = pd.DataFrame({"stay_id": stay_ids, "hr": hr.astype("int64")})
    grid["starttime"] = pd.to_datetime(base) + pd.to_timedelta(hr, unit="h")
    grid["endtime"] = grid["starttime"] + ONE_HOUR
    logger.info("Hourly grid: %d rows for %d stays", len(grid), len(bounds))
    return grid[GRID_COLUMNS]


def grid_bounds(grid: pd.DataFrame) -> pd.DataFrame:
    """Per-stay base time and hour range of a grid."""
    base = grid["starttime"] - pd.to_timedelta(grid["hr"], unit="h")
    bounds = (
        grid.assign(base=base)
        .groupby("stay_id")
        .agg(base=("base", "first"), hr_min=("hr", "min"), hr_max=("hr", "max"))
        .reset_index()
    )
    return bounds


def _empty_result(grid: pd.DataFrame, value_cols) -> pd.DataFrame:
    frame = pd.DataFrame({
        "stay_id": pd.Series(dtype=grid["stay_id"].dtype),
        "hr": pd.Series(dtype="int64"),
    })
    for col in value_cols:
        frame[col] = pd.Series(dtype="float64")
    return frame


def _hour_closed_by(times: pd.Series, base: pd.Series) -> pd.Series:
    # ceil((t - base) / 1h) - 1; a time on the boundary closes the earlier hour
    return -((base - times) // ONE_HOUR) - 1


def join_points(
    grid: pd.DataFrame,
    events: pd.DataFrame,
    agg: Dict[str, Tuple[str, str]],
    time_col: str = "charttime",
) -> pd.DataFrame:
    """Aggregate point observations into the hours of a grid.

    An observation at ``t`` belongs to hour ``hr`` when
    ``starttime < t <= endtime``.

    Args:
        grid: Hourly grid from :func:`hourly_grid`
        events: Observations with ``stay_id`` and ``time_col``
        agg: Named aggregations, e.g. ``{'gcs_min': ('gcs', 'min')}``
        time_col: Observation time column

    Returns:
        DataFrame with ``stay_id, hr`` and one column per aggregation; only
        hours with at least one observation are present
    """
    out_cols = ["stay_id", "hr"] + list(agg)
    if grid.empty or events.empty:
        return _empty_result(grid, agg)

    bounds = grid_bounds(grid)
    ev = events.merge(bounds, on="stay_id", how="inner")
    ev = ev[ev[time_col].notna()].copy()
    ev["hr"] = _hour_closed_by(ev[time_col], ev["base"]).astype("int64")
    ev = ev[(ev["hr"] >= ev["hr_min"]) & (ev["hr"] <= ev["hr_max"])]
    if ev.empty:
        return _empty_result(grid, agg)

    result = ev.groupby(["stay_id", "hr"]).agg(**agg).reset_index()
    result["stay_id"] = result["stay_id"].astype(grid["stay_id"].dtype)
    return result[out_cols]


def join_intervals(
    grid: pd.DataFrame,
    intervals: pd.DataFrame,
    agg: Dict[str, Tuple[str, str]],
    start_col: str = "starttime",
    end_col: str = "endtime",
) -> pd.DataFrame:
    """Aggregate intervals into the hours whose end they cover.

    Hour ``hr`` is attributed an interval when ``start < endtime_hr <= end``,
    i.e. the interval is still running when the hour closes.

    Args:
        grid: Hourly grid from :func:`hourly_grid`
        intervals: Rows with ``stay_id``, ``start_col`` and ``end_col``
        agg: Named aggregations, e.g. ``{'rate': ('vaso_rate', 'max')}``

    Returns:
        DataFrame with ``stay_id, hr`` and one column per aggregation
    """
    out_cols = ["stay_id", "hr"] + list(agg)
    if grid.empty or intervals.empty:
        return _empty_result(grid, agg)

    bounds = grid_bounds(grid)
    iv = intervals.merge(bounds, on="stay_id", how="inner")
    iv = iv[iv[start_col].notna() & iv[end_col].notna()]

    # hour end k = hr + 1 must satisfy floor(s) < k <= floor(e)
    first = ((iv[start_col] - iv["base"]) // ONE_HOUR).astype("int64")
    last = ((iv[end_col] - iv["base"]) // ONE_HOUR).astype("int64") - 1
    first = np.maximum(first, iv["hr_min"])
    last = np.minimum(last, iv["hr_max"])
    counts = (last - first + 1).clip(lower=0).to_numpy()
    if counts.sum() == 0:
        return _empty_result(grid, agg)

    expanded = iv.loc[iv.index.repeat(counts)].copy()
    offsets = np.arange(counts.sum()) - np.repeat(np.cumsum(counts) - counts, counts)
    expanded["hr"] = np.repeat(first.to_numpy(), counts) + offsets

    result = expanded.groupby(["stay_id", "hr"]).agg(**agg).reset_index()
    result["stay_id"] = result["stay_id"].astype(grid["stay_id"].dtype)
    return result[out_cols]


def slide(
    data: pd.DataFrame,
    id_cols: Union[str, Sequence[str]],
    index_col: str,
    before: int,
    agg_func: Dict[str, str],
) -> pd.DataFrame:
    """Apply a trailing window aggregation over consecutive rows.

    For each row the window spans the row itself and the ``before`` preceding
    rows of the same id; near the start of a group the window is shorter.
    Nulls are ignored and a window of only nulls aggregates to null. On a
    contiguous hourly grid this is the window of the ``before`` preceding
    hours.

    Args:
        data: Input table
        id_cols: ID columns to group by
        index_col: Ordering column (e.g. ``hr``)
        before: Number of preceding rows to include
        agg_func: Mapping column -> rolling aggregation ('max', 'min',
            'sum', 'mean')

    Returns:
        Copy of ``data`` sorted by ``id_cols + [index_col]`` with the
        aggregated columns replaced by their windowed values (``float64``)

    Examples:
        >>> df = pd.DataFrame({'id': [1] * 4, 'hr': range(4), 'x': [1, None, 3, 0]})
        >>> slide(df, ['id'], 'hr', 1, {'x': 'max'})['x'].tolist()
        [1.0, 1.0, 3.0, 3.0]
    """
    if isinstance(id_cols, str):
        id_cols = [id_cols]
    id_cols = list(id_cols)

    out = data.sort_values(id_cols + [index_col], kind="mergesort").reset_index(drop=True)
    if out.empty or not agg_func:
        return out

    cols = list(agg_func)
    values = out[cols].astype("float64")
    grouped = values.groupby([out[c] for c in id_cols], sort=False)
    for col, func in agg_func.items():
        rolled = getattr(grouped[col].rolling(before + 1, min_periods=1), func)()
        out[col] = rolled.reset_index(level=list(range(len(id_cols))), drop=True).sort_index()
    return out


__all__ = [
    "ONE_HOUR",
    "GRID_COLUMNS",
    "stay_base_times",
    "hourly_grid",
    "grid_bounds",
    "join_points",
    "join_intervals",
    "slide",
]
