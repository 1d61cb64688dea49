import numpy as np
import pandas as pd
import pytest

from pysofa.medication import (
    DURATION_COLUMNS,
    extract_vasopressors,
    merge_input_sources,
    vasopressor_durations,
)

from conftest import at

NOREPI = 221906
DOPAMINE = 221662


def test_merge_prefers_primary_and_closes_legacy_rows(make_table):
    primary = make_table("inputevents", [
        {"stay_id": 1000, "itemid": NOREPI, "linkorderid": 1, "rate": 0.1, "rateuom": "mcg/kg/min",
         "amount": 1.0, "starttime": at(1), "endtime": at(2), "patientweight": 80.0},
    ])
    legacy = make_table("inputevents_legacy", [
        {"stay_id": 1000, "itemid": NOREPI, "linkorderid": 9, "rate": 0.5, "rateuom": "mcg/kg/min",
         "amount": 2.0, "charttime": at(1)},
        {"stay_id": 1000, "itemid": NOREPI, "linkorderid": 9, "rate": 0.2, "rateuom": "mcg/kg/min",
         "amount": 2.0, "charttime": at(3)},
        {"stay_id": 1000, "itemid": NOREPI, "linkorderid": 9, "rate": 0.3, "rateuom": "mcg/kg/min",
         "amount": 2.0, "charttime": at(4)},
    ])

    merged = merge_input_sources(primary, legacy)

    # the last legacy row has no successor and is dropped
    assert len(merged) == 2
    first, second = merged.iloc[0], merged.iloc[1]
    assert first["rate"] == 0.1
    assert first["linkorderid"] == 1
    assert first["endtime"] == at(2)
    assert second["rate"] == 0.2
    assert second["starttime"] == at(3)
    assert second["endtime"] == at(4)


def test_merge_without_legacy_returns_primary(make_table):
    primary = make_table("inputevents", [
        {"stay_id": 1000, "itemid": NOREPI, "rate": 0.1, "rateuom": "mcg/kg/min",
         "starttime": at(1), "endtime": at(2)},
    ])
    assert len(merge_input_sources(primary)) == 1


def test_durations_normalise_and_drop_degenerate(make_inputs, cfg):
    inputs = make_inputs(inputevents=[
        {"stay_id": 1000, "itemid": DOPAMINE, "linkorderid": 1, "rate": 480.0, "rateuom": "mcg/min",
         "amount": 5.0, "starttime": at(1), "endtime": at(3), "patientweight": 80.0},
        {"stay_id": 1000, "itemid": DOPAMINE, "linkorderid": 2, "rate": 5.0, "rateuom": "mcg/kg/min",
         "amount": 5.0, "starttime": at(4), "endtime": at(4), "patientweight": 80.0},
        {"stay_id": 1000, "itemid": NOREPI, "linkorderid": 3, "rate": 0.2, "rateuom": "mcg/kg/min",
         "amount": 5.0, "starttime": at(4), "endtime": at(6), "patientweight": 80.0},
    ])

    dopa = vasopressor_durations(inputs, "dopamine", config=cfg)

    assert list(dopa.columns) == DURATION_COLUMNS
    assert len(dopa) == 1
    assert dopa["vaso_rate"].iloc[0] == pytest.approx(6.0)


def test_missing_patientweight_uses_weight_segments(make_inputs, cfg):
    inputs = make_inputs(inputevents=[
        {"stay_id": 1000, "itemid": DOPAMINE, "linkorderid": 1, "rate": 400.0, "rateuom": "mcg/min",
         "amount": 5.0, "starttime": at(1), "endtime": at(3), "patientweight": np.nan},
    ])
    weights = pd.DataFrame({
        "stay_id": [1000],
        "starttime": [at(-2)],
        "endtime": [at(50)],
        "weight": [80.0],
        "weight_type": ["admit"],
    })

    dopa = vasopressor_durations(inputs, "dopamine", weights=weights, config=cfg)

    assert dopa["vaso_rate"].iloc[0] == pytest.approx(5.0)


def test_norepinephrine_mg_kg_min_rule(make_inputs, cfg):
    inputs = make_inputs(inputevents=[
        {"stay_id": 1000, "itemid": NOREPI, "linkorderid": 1, "rate": 0.0002, "rateuom": "mg/kg/min",
         "amount": 1.0, "starttime": at(1), "endtime": at(3), "patientweight": 1.0},
        {"stay_id": 1000, "itemid": NOREPI, "linkorderid": 2, "rate": 0.0002, "rateuom": "mg/kg/min",
         "amount": 1.0, "starttime": at(5), "endtime": at(7), "patientweight": 80.0},
    ])

    norepi = vasopressor_durations(inputs, "norepinephrine", config=cfg)

    assert norepi["vaso_rate"].tolist() == pytest.approx([0.2, 0.0002])


def test_extract_vasopressors_all_agents(make_inputs, cfg):
    inputs = make_inputs(inputevents=[
        {"stay_id": 1000, "itemid": NOREPI, "linkorderid": 1, "rate": 0.2, "rateuom": "mcg/kg/min",
         "amount": 1.0, "starttime": at(1), "endtime": at(3), "patientweight": 80.0},
    ])

    result = extract_vasopressors(inputs, config=cfg)

    assert set(result) == {"norepinephrine", "epinephrine", "dopamine", "dobutamine"}
    assert len(result["norepinephrine"]) == 1
    assert result["dopamine"].empty


def test_primary_row_without_end_dropped_as_degenerate(make_inputs, cfg):
    inputs = make_inputs(
        inputevents=[
            {"stay_id": 1000, "itemid": NOREPI, "linkorderid": 1, "rate": 0.2, "rateuom": "mcg/kg/min",
             "amount": 1.0, "starttime": at(1), "endtime": pd.NaT, "patientweight": 80.0},
            {"stay_id": 1000, "itemid": NOREPI, "linkorderid": 2, "rate": 0.3, "rateuom": "mcg/kg/min",
             "amount": 1.0, "starttime": at(5), "endtime": at(6), "patientweight": 80.0},
        ],
        inputevents_legacy=[
            {"stay_id": 1000, "itemid": NOREPI, "linkorderid": 9, "rate": 0.1, "rateuom": "mcg/kg/min",
             "amount": 1.0, "charttime": at(8)},
        ],
    )

    merged = merge_input_sources(inputs.inputevents, inputs.inputevents_legacy)
    # the unterminated newer-system row survives the merge, the legacy one does not
    assert merged["starttime"].tolist() == [at(1), at(5)]

    norepi = vasopressor_durations(inputs, "norepinephrine", config=cfg)
    assert norepi["linkorderid"].tolist() == [2]
