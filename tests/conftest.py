"""Shared fixtures: small synthetic ICU stays."""

import pandas as pd
import pytest

from pysofa.config import SofaConfig, reset_config
from pysofa.table import SofaInputs, TABLE_SCHEMAS

T0 = pd.Timestamp("2020-01-01 00:00")


def at(hours: float) -> pd.Timestamp:
    """Timestamp ``hours`` after the reference admission time."""
    return T0 + pd.Timedelta(hours=hours)


@pytest.fixture(autouse=True)
def _fresh_global_config():
    reset_config()
    yield
    reset_config()


@pytest.fixture
def cfg():
    return SofaConfig()


@pytest.fixture
def stays():
    """Two stays of one subject plus a second subject; 48h, 30h and 10.5h long."""
    return pd.DataFrame({
        "subject_id": [10, 10, 20],
        "hadm_id": [100, 101, 200],
        "stay_id": [1000, 1001, 2000],
        "intime": [at(0), at(100), at(0)],
        "outtime": [at(48), at(130), at(10.5)],
    })


@pytest.fixture
def make_table():
    """Build a source table from row dicts, filling unspecified columns with nulls."""

    def _make(name, rows=()):
        columns = TABLE_SCHEMAS[name]["columns"]
        frame = pd.DataFrame(list(rows), columns=columns)
        for col in TABLE_SCHEMAS[name]["time"]:
            frame[col] = pd.to_datetime(frame[col])
        return frame

    return _make


@pytest.fixture
def make_inputs(stays, make_table):
    """Build :class:`SofaInputs` for the ``stays`` fixture from row lists."""

    def _make(**tables):
        frames = {name: make_table(name, rows) for name, rows in tables.items()}
        return SofaInputs(icustays=stays, **frames)

    return _make
