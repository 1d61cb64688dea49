"""SOFA organ system subscores.

Every organ system is scored by an ordered ladder of ``(condition, score)``
rungs evaluated top to bottom; the first rung that holds gives the score.
Comparisons against a null value never hold. When no rung holds the score is
0, unless every input of the row is null, in which case the score is null
(the hour carries no information about that organ).

Vasopressor rates must be in mcg/kg/min, see :mod:`pysofa.unit_conversion`.
"""

from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

SUBSCORE_COLUMNS = ["respiration", "coagulation", "liver", "cardiovascular", "cns", "renal"]

Ladder = List[Tuple[pd.Series, int]]


def _is_true(mask: pd.Series) -> np.ndarray:
    return mask.fillna(False).to_numpy(dtype=bool)


def score_ladder(ladder: Ladder, inputs: Sequence[pd.Series]) -> pd.Series:
    """Evaluate an ordered ``(condition, score)`` ladder, first match wins.

    Args:
        ladder: Rungs from highest priority to lowest
        inputs: Signals the ladder reads; decide between 0 and null when no
            rung holds

    Returns:
        ``Int64`` Series aligned with the inputs
    """
    index = inputs[0].index
    conditions = [_is_true(cond) for cond, _ in ladder]
    scores = np.select(conditions, [score for _, score in ladder], default=0)
    matched = np.logical_or.reduce(conditions) if conditions else np.zeros(len(index), dtype=bool)
    all_null = np.logical_and.reduce([s.isna().to_numpy() for s in inputs])

    result = pd.Series(scores, index=index).astype("Int64")
    result[~matched & all_null] = pd.NA
    return result


def sofa_resp(pafi_novent: pd.Series, pafi_vent: pd.Series) -> pd.Series:
    """Respiration subscore from the lowest PaO2/FiO2 ratios of the hour.

    Scores 3 and 4 require invasive ventilation:

    - 4: vent < 100
    - 3: vent < 200
    - 2: novent < 300 or vent < 300
    - 1: novent < 400 or vent < 400
    """
    ladder = [
        (pafi_vent < 100, 4),
        (pafi_vent < 200, 3),
        (pafi_novent < 300, 2),
        (pafi_vent < 300, 2),
        (pafi_novent < 400, 1),
        (pafi_vent < 400, 1),
    ]
    return score_ladder(ladder, [pafi_novent, pafi_vent])


def sofa_coag(plt: pd.Series) -> pd.Series:
    """Coagulation subscore from the platelet count (10^3/uL).

    Examples:
        >>> sofa_coag(pd.Series([18.0, 120.0, None])).tolist()
        [4, 1, <NA>]
    """
    ladder = [
        (plt < 20, 4),
        (plt < 50, 3),
        (plt < 100, 2),
        (plt < 150, 1),
    ]
    return score_ladder(ladder, [plt])


def sofa_liver(bili: pd.Series) -> pd.Series:
    """Liver subscore from total bilirubin (mg/dL)."""
    ladder = [
        (bili >= 12, 4),
        (bili >= 6, 3),
        (bili >= 2, 2),
        (bili >= 1.2, 1),
    ]
    return score_ladder(ladder, [bili])


def sofa_cardio(
    map: pd.Series,
    dopa: pd.Series,
    epi: pd.Series,
    norepi: pd.Series,
    dobu: pd.Series,
) -> pd.Series:
    """Cardiovascular subscore.

    - 4: dopa > 15 or epi > 0.1 or norepi > 0.1
    - 3: dopa > 5 or epi <= 0.1 or norepi <= 0.1
    - 2: dopa > 0 or dobu > 0
    - 1: map < 70

    The tier 3 test on epinephrine/norepinephrine only holds for a charted
    rate; higher rates were already taken by tier 4, so rung order matters.

    Args:
        map: Lowest mean arterial pressure (mmHg)
        dopa: Dopamine rate (mcg/kg/min)
        epi: Epinephrine rate (mcg/kg/min)
        norepi: Norepinephrine rate (mcg/kg/min)
        dobu: Dobutamine rate (mcg/kg/min)

    Returns:
        Series with cardiovascular SOFA scores
    """
    ladder = [
        ((dopa > 15) | (epi > 0.1) | (norepi > 0.1), 4),
        ((dopa > 5) | (epi <= 0.1) | (norepi <= 0.1), 3),
        ((dopa > 0) | (dobu > 0), 2),
        (map < 70, 1),
    ]
    return score_ladder(ladder, [map, dopa, epi, norepi, dobu])


def sofa_cns(gcs: pd.Series) -> pd.Series:
    """CNS subscore from the Glasgow Coma Scale.

    - 0: 15
    - 1: 13-14
    - 2: 10-12
    - 3: 6-9
    - 4: < 6
    """
    ladder = [
        ((gcs >= 13) & (gcs <= 14), 1),
        ((gcs >= 10) & (gcs <= 12), 2),
        ((gcs >= 6) & (gcs <= 9), 3),
        (gcs < 6, 4),
    ]
    return score_ladder(ladder, [gcs])


def sofa_renal(creat: pd.Series, uo: pd.Series) -> pd.Series:
    """Renal subscore from creatinine (mg/dL) and 24h urine output (mL)."""
    ladder = [
        (creat >= 5, 4),
        (uo < 200, 4),
        ((creat >= 3.5) & (creat < 5), 3),
        (uo < 500, 3),
        ((creat >= 2) & (creat < 3.5), 2),
        ((creat >= 1.2) & (creat < 2), 1),
    ]
    return score_ladder(ladder, [creat, uo])


def sofa_components(signals: pd.DataFrame) -> pd.DataFrame:
    """Add the six hourly subscores to a table of hourly signals.

    Args:
        signals: Output of :func:`pysofa.aggregate.hourly_signals`

    Returns:
        Copy of ``signals`` with ``respiration, coagulation, liver,
        cardiovascular, cns, renal`` (``Int64``)
    """
    result = signals.copy()
    result["respiration"] = sofa_resp(result["pao2fio2ratio_novent"], result["pao2fio2ratio_vent"])
    result["coagulation"] = sofa_coag(result["platelet_min"])
    result["liver"] = sofa_liver(result["bilirubin_max"])
    result["cardiovascular"] = sofa_cardio(
        result["meanbp_min"],
        result["rate_dopamine"],
        result["rate_epinephrine"],
        result["rate_norepinephrine"],
        result["rate_dobutamine"],
    )
    result["cns"] = sofa_cns(result["gcs_min"])
    result["renal"] = sofa_renal(result["creatinine_max"], result["uo_24hr"])
    logger.debug("Scored %d hourly rows", len(result))
    return result


__all__ = [
    "SUBSCORE_COLUMNS",
    "score_ladder",
    "sofa_resp",
    "sofa_coag",
    "sofa_liver",
    "sofa_cardio",
    "sofa_cns",
    "sofa_renal",
    "sofa_components",
]
