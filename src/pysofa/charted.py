"""Point observations extracted from charted events (mean BP, GCS)."""

from __future__ import annotations

import logging
from typing import Optional

import pandas as pd

from .config import SofaConfig, resolve_config

logger = logging.getLogger(__name__)


def extract_vitalsign(chartevents: pd.DataFrame, config: Optional[SofaConfig] = None) -> pd.DataFrame:
    """Mean arterial blood pressure observations.

    Invasive and non-invasive mean BP itemids are pooled; values outside
    ``(0, 300)`` mmHg are charting errors and are discarded.

    Returns:
        DataFrame with ``stay_id, charttime, mbp``
    """
    cfg = resolve_config(config)
    vs = chartevents[chartevents["itemid"].isin(cfg.itemids.mean_bp)]
    vs = vs[(vs["valuenum"] > 0) & (vs["valuenum"] < 300)]
    vs = vs[["stay_id", "charttime", "valuenum"]].rename(columns={"valuenum": "mbp"})
    return vs.reset_index(drop=True)


def extract_gcs(chartevents: pd.DataFrame, config: Optional[SofaConfig] = None) -> pd.DataFrame:
    """Glasgow Coma Scale totals.

    The total is the sum of the eye, verbal and motor components charted at
    the same time; rows missing any component are dropped.

    Returns:
        DataFrame with ``stay_id, charttime, gcs``
    """
    cfg = resolve_config(config)
    components = {
        "gcs_eyes": cfg.itemids.gcs_eyes,
        "gcs_verbal": cfg.itemids.gcs_verbal,
        "gcs_motor": cfg.itemids.gcs_motor,
    }
    lookup = {itemid: name for name, ids in components.items() for itemid in ids}

    ev = chartevents[chartevents["itemid"].isin(list(lookup))].copy()
    if ev.empty:
        return pd.DataFrame(columns=["stay_id", "charttime", "gcs"])

    ev["component"] = ev["itemid"].map(lookup)
    wide = ev.pivot_table(
        index=["stay_id", "charttime"],
        columns="component",
        values="valuenum",
        aggfunc="min",
    )
    wide = wide.reindex(columns=list(components))
    complete = wide.dropna()
    if len(complete) < len(wide):
        logger.debug("GCS: %d charting time(s) with incomplete components", len(wide) - len(complete))

    result = complete.sum(axis=1).rename("gcs").reset_index()
    return result[["stay_id", "charttime", "gcs"]]


__all__ = ["extract_vitalsign", "extract_gcs"]
