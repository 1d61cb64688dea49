"""Vasopressor dose durations.

Infusions are charted by two generations of the bedside charting system: the
newer one records explicit start/end times, the legacy one only a charting
time per rate change. Both are reconciled into one interval table per agent,
with rates in mcg/kg/min.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

import pandas as pd

from .config import VASOPRESSORS, SofaConfig, resolve_config
from .demographics import weight_at
from .table import SofaInputs
from .unit_conversion import vaso_rate_to_standard

logger = logging.getLogger(__name__)

DURATION_COLUMNS = ["stay_id", "linkorderid", "vaso_rate", "vaso_amount", "starttime", "endtime"]

# Fields taken from the newer system when both systems charted a row.
_COALESCED = ["linkorderid", "rate", "rateuom", "amount", "patientweight"]


def merge_input_sources(
    primary: pd.DataFrame,
    legacy: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """Reconcile infusion rows from the two charting systems.

    Rows are matched on ``(stay_id, itemid, starttime)``, the legacy charting
    time standing in for its start time. Rate, unit, amount, order link and
    weight are taken from the newer system when present and from the legacy
    one otherwise. Start/end times of the newer system win; a legacy-only row
    ends at the next legacy charting time of the same stay and item, and is
    dropped when there is none.

    Args:
        primary: Newer-system rows (``inputevents`` schema)
        legacy: Legacy rows (``inputevents_legacy`` schema), optional

    Returns:
        DataFrame with ``stay_id, itemid, linkorderid, rate, rateuom, amount,
        patientweight, starttime, endtime``
    """
    columns = ["stay_id", "itemid"] + _COALESCED + ["starttime", "endtime"]
    primary = primary.reindex(columns=columns)
    if legacy is None or legacy.empty:
        return primary.reset_index(drop=True)

    legacy = legacy.rename(columns={"charttime": "starttime"}).reindex(
        columns=["stay_id", "itemid", "starttime"] + _COALESCED
    )
    legacy = legacy.sort_values(["stay_id", "itemid", "starttime"], kind="mergesort")
    legacy["_next"] = legacy.groupby(["stay_id", "itemid"])["starttime"].shift(-1)

    merged = primary.merge(
        legacy,
        on=["stay_id", "itemid", "starttime"],
        how="outer",
        suffixes=("", "_legacy"),
        indicator=True,
    )
    for col in _COALESCED:
        merged[col] = merged[col].combine_first(merged[f"{col}_legacy"])
    merged["endtime"] = merged["endtime"].combine_first(merged["_next"])

    # Newer-system rows without an end are left to the duration check downstream.
    unterminated = (merged["_merge"] == "right_only") & merged["endtime"].isna()
    if unterminated.any():
        logger.debug(
            "Dropping %d legacy infusion row(s) without a following charting time",
            int(unterminated.sum()),
        )
    merged = merged[~unterminated]

    return merged[columns].sort_values(["stay_id", "itemid", "starttime"], kind="mergesort").reset_index(drop=True)


def normalize_rate(
    events: pd.DataFrame,
    drug: str,
    weights: Optional[pd.DataFrame] = None,
) -> pd.Series:
    """Convert the rates of one agent to mcg/kg/min.

    Non-weight-adjusted rates are divided by ``patientweight`` or, where that
    is missing, by the weight segment covering the infusion start.
    """
    weight = pd.to_numeric(events["patientweight"], errors="coerce").astype(float)
    if weights is not None and not weights.empty and weight.isna().any():
        weight = weight.fillna(weight_at(events, weights, "starttime"))
    return vaso_rate_to_standard(
        events["rate"],
        events["rateuom"],
        weight,
        drug,
        weight_flag=events["patientweight"],
    )


def vasopressor_durations(
    inputs: SofaInputs,
    drug: str,
    weights: Optional[pd.DataFrame] = None,
    config: Optional[SofaConfig] = None,
) -> pd.DataFrame:
    """Dose and duration of every administration of ``drug``.

    Args:
        inputs: Source tables (``inputevents`` and ``inputevents_legacy`` used)
        drug: One of norepinephrine, epinephrine, dopamine, dobutamine
        weights: Optional weight segments from
            :func:`pysofa.demographics.weight_durations`
        config: Pipeline configuration (itemids)

    Returns:
        DataFrame with ``stay_id, linkorderid, vaso_rate, vaso_amount,
        starttime, endtime``
    """
    cfg = resolve_config(config)
    itemids = cfg.itemids.vasopressor_itemids(drug)

    primary = inputs.inputevents[inputs.inputevents["itemid"].isin(itemids)]
    legacy = inputs.inputevents_legacy[inputs.inputevents_legacy["itemid"].isin(itemids)]
    events = merge_input_sources(primary, legacy)
    if events.empty:
        return pd.DataFrame(columns=DURATION_COLUMNS)

    result = pd.DataFrame({
        "stay_id": events["stay_id"],
        "linkorderid": events["linkorderid"],
        "vaso_rate": normalize_rate(events, drug, weights),
        "vaso_amount": pd.to_numeric(events["amount"], errors="coerce"),
        "starttime": events["starttime"],
        "endtime": events["endtime"],
    })

    degenerate = ~(result["starttime"] < result["endtime"])
    if degenerate.any():
        logger.debug("%s: dropping %d infusion(s) without an end after their start", drug, int(degenerate.sum()))
        result = result[~degenerate]

    logger.info("%s: %d infusion interval(s)", drug, len(result))
    return result.reset_index(drop=True)


def extract_vasopressors(
    inputs: SofaInputs,
    weights: Optional[pd.DataFrame] = None,
    config: Optional[SofaConfig] = None,
) -> Dict[str, pd.DataFrame]:
    """Interval tables for all four agents, keyed by agent name."""
    cfg = resolve_config(config)
    return {
        drug: vasopressor_durations(inputs, drug, weights=weights, config=cfg)
        for drug in VASOPRESSORS
        if drug in cfg.itemids.vasopressors
    }


__all__ = [
    "DURATION_COLUMNS",
    "merge_input_sources",
    "normalize_rate",
    "vasopressor_durations",
    "extract_vasopressors",
]
