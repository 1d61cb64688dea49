import pandas as pd
import pytest

from pysofa.data_load import load_inputs, read_table, write_scores
from pysofa.sofa import compute_sofa

from conftest import at


def test_load_inputs_mixed_formats(tmp_path, stays, make_table):
    stays.to_csv(tmp_path / "icustays.csv", index=False)
    labs = make_table("labs", [
        {"hadm_id": 100, "charttime": at(5.5), "bilirubin_total": 1.0, "creatinine": 1.0, "platelet": 18.0},
    ])
    labs.to_parquet(tmp_path / "labs.parquet", index=False)

    inputs = load_inputs(tmp_path)

    assert inputs.stay_ids == [1000, 1001, 2000]
    assert pd.api.types.is_datetime64_any_dtype(inputs.icustays["intime"])
    assert inputs.labs["platelet"].tolist() == [18.0]
    assert inputs.bg.empty

    scores = compute_sofa(inputs)
    hour5 = scores[(scores["stay_id"] == 1000) & (scores["hr"] == 5)]
    assert hour5["coagulation"].iloc[0] == 4


def test_load_inputs_requires_icustays(tmp_path):
    with pytest.raises(FileNotFoundError, match="icustays"):
        load_inputs(tmp_path)


def test_load_inputs_unknown_table(tmp_path, stays):
    stays.to_csv(tmp_path / "icustays.csv", index=False)
    with pytest.raises(ValueError, match="Unknown table"):
        load_inputs(tmp_path, tables=["icustays", "prescriptions"])


def test_read_table_rejects_unsupported_suffix(tmp_path):
    path = tmp_path / "icustays.xlsx"
    path.write_text("")
    with pytest.raises(ValueError, match="Unsupported"):
        read_table(path)


def test_read_table_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_table(tmp_path / "labs.csv", "labs")


@pytest.mark.parametrize("name", ["scores.parquet", "scores.csv"])
def test_write_scores_replaces_file(tmp_path, make_inputs, name):
    scores = compute_sofa(make_inputs())
    target = tmp_path / "out" / name

    write_scores(scores.head(3), target)
    write_scores(scores, target)

    written = read_table(target)
    assert len(written) == len(scores)
    assert written["total_score"].tolist() == scores["total_score"].tolist()
    assert sorted(p.name for p in target.parent.iterdir()) == [name]


def test_write_scores_unsupported_suffix(tmp_path):
    with pytest.raises(ValueError):
        write_scores(pd.DataFrame({"a": [1]}), tmp_path / "scores.json")
