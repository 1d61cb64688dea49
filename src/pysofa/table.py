"""Input table container for the SOFA pipeline.

Wraps the raw source tables consumed by the pipeline together with their
column contracts, in the same way ICU tables elsewhere carry their id/time
metadata next to the underlying :class:`pandas.DataFrame`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Dict, Iterable, Iterator, List

import pandas as pd

from .assertions import validate_data_frame

# Required columns and time columns of every source table.
TABLE_SCHEMAS: Dict[str, Dict[str, List[str]]] = {
    "icustays": {
        "columns": ["subject_id", "hadm_id", "stay_id", "intime", "outtime"],
        "time": ["intime", "outtime"],
    },
    "chartevents": {
        "columns": ["stay_id", "charttime", "itemid", "valuenum"],
        "time": ["charttime"],
    },
    "labs": {
        "columns": ["hadm_id", "charttime", "bilirubin_total", "creatinine", "platelet"],
        "time": ["charttime"],
    },
    "bg": {
        "columns": ["subject_id", "charttime", "specimen", "pao2fio2ratio"],
        "time": ["charttime"],
    },
    "ventilation": {
        "columns": ["stay_id", "starttime", "endtime", "ventilation_status"],
        "time": ["starttime", "endtime"],
    },
    "inputevents": {
        "columns": [
            "stay_id", "itemid", "linkorderid", "rate", "rateuom", "amount",
            "starttime", "endtime", "patientweight",
        ],
        "time": ["starttime", "endtime"],
    },
    "inputevents_legacy": {
        "columns": ["stay_id", "itemid", "linkorderid", "rate", "rateuom", "amount", "charttime"],
        "time": ["charttime"],
    },
    "urine_output_rate": {
        "columns": ["stay_id", "charttime", "uo_tm_24hr", "urineoutput_24hr"],
        "time": ["charttime"],
    },
}

# How each table links back to a stay when selecting a subset of stays.
_LINK_COLUMNS = {
    "icustays": "stay_id",
    "chartevents": "stay_id",
    "labs": "hadm_id",
    "bg": "subject_id",
    "ventilation": "stay_id",
    "inputevents": "stay_id",
    "inputevents_legacy": "stay_id",
    "urine_output_rate": "stay_id",
}


def empty_table(name: str) -> pd.DataFrame:
    """Return an empty DataFrame carrying the schema of table ``name``."""
    schema = TABLE_SCHEMAS[name]
    frame = pd.DataFrame({col: pd.Series(dtype="float64") for col in schema["columns"]})
    for col in schema["time"]:
        frame[col] = pd.Series(dtype="datetime64[ns]")
    return frame


def coerce_times(df: pd.DataFrame, columns: Iterable[str]) -> pd.DataFrame:
    """Convert the given columns to ``datetime64`` if they are not already."""
    for col in columns:
        if col in df.columns and not pd.api.types.is_datetime64_any_dtype(df[col]):
            df[col] = pd.to_datetime(df[col], errors="coerce")
    return df


@dataclass
class SofaInputs:
    """Source tables for one pipeline run.

    Only ``icustays`` is mandatory; missing tables default to empty frames so
    that the corresponding signals are simply null.
    """

    icustays: pd.DataFrame
    chartevents: pd.DataFrame = field(default_factory=lambda: empty_table("chartevents"))
    labs: pd.DataFrame = field(default_factory=lambda: empty_table("labs"))
    bg: pd.DataFrame = field(default_factory=lambda: empty_table("bg"))
    ventilation: pd.DataFrame = field(default_factory=lambda: empty_table("ventilation"))
    inputevents: pd.DataFrame = field(default_factory=lambda: empty_table("inputevents"))
    inputevents_legacy: pd.DataFrame = field(
        default_factory=lambda: empty_table("inputevents_legacy")
    )
    urine_output_rate: pd.DataFrame = field(
        default_factory=lambda: empty_table("urine_output_rate")
    )

    def __post_init__(self) -> None:
        for name, frame in self.tables():
            validate_data_frame(
                frame,
                TABLE_SCHEMAS[name]["columns"],
                no_na_cols=["stay_id"] if name == "icustays" else None,
                name=name,
            )
            setattr(self, name, coerce_times(frame.copy(), TABLE_SCHEMAS[name]["time"]))

    def tables(self) -> Iterator[tuple[str, pd.DataFrame]]:
        for item in fields(self):
            yield item.name, getattr(self, item.name)

    @property
    def stay_ids(self) -> List:
        return self.icustays["stay_id"].drop_duplicates().tolist()

    def select_stays(self, stay_ids: Iterable) -> "SofaInputs":
        """Restrict every table to the rows relevant for ``stay_ids``."""
        stays = self.icustays[self.icustays["stay_id"].isin(list(stay_ids))]
        keys = {
            "stay_id": set(stays["stay_id"]),
            "hadm_id": set(stays["hadm_id"]),
            "subject_id": set(stays["subject_id"]),
        }
        selected = {}
        for name, frame in self.tables():
            link = _LINK_COLUMNS[name]
            selected[name] = frame[frame[link].isin(keys[link])]
        return SofaInputs(**selected)

    def __repr__(self) -> str:
        sizes = ", ".join(f"{name}={len(frame):,}" for name, frame in self.tables())
        return f"SofaInputs({sizes})"


__all__ = ["TABLE_SCHEMAS", "SofaInputs", "empty_table", "coerce_times"]
