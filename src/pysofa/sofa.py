"""Hourly SOFA score with a trailing worst-value window.

:func:`compute_sofa` runs the full pipeline on a :class:`~pysofa.table.SofaInputs`
container:

1. normalise weights, vasopressor infusions, mean BP and GCS;
2. build the hourly grid of every stay;
3. reduce every signal to its worst value per hour;
4. score the six organ systems per hour;
5. take the worst subscore over the trailing window and sum the total.

Stays are independent, so large inputs can be split into shards of stays
scored in parallel.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, List, Mapping, Optional, Union

import pandas as pd

from .aggregate import (
    hourly_gcs,
    hourly_labs,
    hourly_pafi,
    hourly_signals,
    hourly_urine_output,
    hourly_vasopressors,
    hourly_vitals,
)
from .assertions import assert_has_cols, assert_that
from .callbacks import SUBSCORE_COLUMNS, sofa_components
from .charted import extract_gcs, extract_vitalsign
from .config import SofaConfig, resolve_config
from .demographics import icustay_times, weight_durations
from .medication import extract_vasopressors
from .table import SofaInputs
from .ts_utils import hourly_grid, slide

logger = logging.getLogger(__name__)

WINDOW_COLUMNS = [f"{col}_24hours" for col in SUBSCORE_COLUMNS]

OUTPUT_COLUMNS = (
    ["stay_id", "hr", "starttime", "endtime"]
    + SUBSCORE_COLUMNS
    + WINDOW_COLUMNS
    + ["total_score"]
)


def sofa_window(components: pd.DataFrame, window_hours: int = 24) -> pd.DataFrame:
    """Worst subscore over the trailing window and the total score.

    For every hour the windowed subscore is the maximum of the hourly
    subscores of that hour and the ``window_hours - 1`` preceding hours of the
    same stay, ignoring nulls. A window with no non-null subscore counts as 0.
    ``total_score`` is the sum of the six windowed subscores. Hours before
    admission (``hr < 0``) only feed the window and are dropped.

    Args:
        components: Hourly subscores from
            :func:`pysofa.callbacks.sofa_components`
        window_hours: Window length in hours (including the current hour)

    Returns:
        DataFrame with the output columns, sorted by ``stay_id, hr``
    """
    assert_has_cols(components, ["stay_id", "hr", "starttime", "endtime"] + SUBSCORE_COLUMNS)
    assert_that(window_hours > 0, "window_hours must be positive")

    comp = components.sort_values(["stay_id", "hr"], kind="mergesort").reset_index(drop=True)
    steps = comp.groupby("stay_id")["hr"].diff().dropna()
    assert_that(bool((steps == 1).all()), "hours of a stay must be contiguous")

    rolled = slide(
        comp[["stay_id", "hr"] + SUBSCORE_COLUMNS],
        "stay_id",
        "hr",
        before=window_hours - 1,
        agg_func={col: "max" for col in SUBSCORE_COLUMNS},
    )
    for col, out in zip(SUBSCORE_COLUMNS, WINDOW_COLUMNS):
        comp[out] = rolled[col].fillna(0).astype("int64")
    comp["total_score"] = comp[WINDOW_COLUMNS].sum(axis=1).astype("int64")

    comp = comp[comp["hr"] >= 0]
    return comp[OUTPUT_COLUMNS].reset_index(drop=True)


def _score_stays(inputs: SofaInputs, cfg: SofaConfig) -> pd.DataFrame:
    stays = inputs.icustays
    chartevents = inputs.chartevents

    weights = weight_durations(chartevents, stays, cfg)
    vasopressors = extract_vasopressors(inputs, weights=weights, config=cfg)
    vitals = extract_vitalsign(chartevents, cfg)
    gcs = extract_gcs(chartevents, cfg)

    times = icustay_times(chartevents, stays, cfg) if cfg.use_heart_rate_times else None
    grid = hourly_grid(stays, lead_hours=cfg.grid_lead_hours, times=times)

    signals = hourly_signals(
        grid,
        hourly_pafi(grid, inputs.bg, inputs.ventilation, stays, cfg),
        hourly_vitals(grid, vitals),
        hourly_gcs(grid, gcs),
        hourly_labs(grid, inputs.labs, stays),
        hourly_urine_output(grid, inputs.urine_output_rate, cfg),
        hourly_vasopressors(grid, vasopressors),
    )
    return sofa_window(sofa_components(signals), cfg.window_hours)


def _shards(stay_ids: List[Any], size: int) -> List[List[Any]]:
    return [stay_ids[i:i + size] for i in range(0, len(stay_ids), size)]


def compute_sofa(
    inputs: SofaInputs,
    config: Optional[Union[SofaConfig, Mapping[str, Any]]] = None,
) -> pd.DataFrame:
    """Compute the hourly SOFA score of every ICU stay.

    Args:
        inputs: Source tables
        config: Pipeline configuration; defaults to the process-wide config

    Returns:
        One row per stay and hour (``hr >= 0``) with the hourly subscores,
        the windowed subscores and ``total_score``, sorted by
        ``stay_id, hr``. The result does not depend on ``max_workers``.

    Examples:
        >>> scores = compute_sofa(inputs, {'max_workers': 4})
        >>> scores.groupby('stay_id')['total_score'].max()
    """
    cfg = resolve_config(config)
    stay_ids = inputs.stay_ids
    logger.info("Scoring %d stay(s)", len(stay_ids))

    if cfg.max_workers <= 1 or len(stay_ids) <= cfg.shard_size:
        result = _score_stays(inputs, cfg)
    else:
        shards = _shards(stay_ids, cfg.shard_size)
        logger.info("Scoring %d shard(s) with %d worker(s)", len(shards), cfg.max_workers)
        parts = []
        with ThreadPoolExecutor(max_workers=cfg.max_workers) as executor:
            futures = {
                executor.submit(_score_stays, inputs.select_stays(ids), cfg): i
                for i, ids in enumerate(shards)
            }
            for future in as_completed(futures):
                parts.append(future.result())
        result = pd.concat(parts, ignore_index=True)

    result = result.sort_values(["stay_id", "hr"], kind="mergesort").reset_index(drop=True)
    logger.info("SOFA scores: %d rows", len(result))
    return result


__all__ = ["WINDOW_COLUMNS", "OUTPUT_COLUMNS", "sofa_window", "compute_sofa"]
