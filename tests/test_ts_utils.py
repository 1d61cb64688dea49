import numpy as np
import pandas as pd

from pysofa.ts_utils import hourly_grid, join_intervals, join_points, slide

from conftest import at


def _one_stay(intime, outtime):
    return pd.DataFrame({"stay_id": [1], "intime": [intime], "outtime": [outtime]})


def test_grid_counts_completed_hours(stays):
    grid = hourly_grid(stays)

    counts = grid.groupby("stay_id").size()
    assert counts.to_dict() == {1000: 48, 1001: 30, 2000: 10}
    first = grid[grid["stay_id"] == 1001].iloc[0]
    assert first["hr"] == 0
    assert first["starttime"] == at(100)
    assert first["endtime"] == at(101)
    assert (grid.groupby("stay_id")["hr"].diff().dropna() == 1).all()


def test_grid_partial_hour():
    grid = hourly_grid(_one_stay(at(0.5), at(3.75)))
    assert grid["hr"].tolist() == [0, 1, 2]
    assert grid["endtime"].iloc[-1] == at(3.5)


def test_grid_skips_short_and_missing_stays():
    assert hourly_grid(_one_stay(at(0), at(0.9))).empty
    assert hourly_grid(_one_stay(at(0), pd.NaT)).empty


def test_grid_lead_hours():
    grid = hourly_grid(_one_stay(at(0), at(3)), lead_hours=2)
    assert grid["hr"].tolist() == [-2, -1, 0, 1, 2]
    assert grid["starttime"].iloc[0] == at(-2)


def test_grid_heart_rate_times():
    times = pd.DataFrame({"stay_id": [1], "intime_hr": [at(1)], "outtime_hr": [at(4)]})
    grid = hourly_grid(_one_stay(at(0), at(10)), times=times)
    assert len(grid) == 3
    assert grid["starttime"].iloc[0] == at(1)


def test_point_on_boundary_belongs_to_hour_it_closes():
    grid = hourly_grid(_one_stay(at(0), at(5)))
    events = pd.DataFrame({
        "stay_id": [1, 1, 1, 1],
        "charttime": [at(0), at(1), at(1) + pd.Timedelta(seconds=1), at(5.5)],
        "value": [1.0, 2.0, 3.0, 4.0],
    })

    result = join_points(grid, events, {"value_max": ("value", "max")})

    # at(0) closes hour -1 and at(5.5) lies past the grid
    assert result["hr"].tolist() == [0, 1]
    assert result["value_max"].tolist() == [2.0, 3.0]


def test_point_join_reduces_within_hour():
    grid = hourly_grid(_one_stay(at(0), at(5)))
    events = pd.DataFrame({
        "stay_id": [1, 1, 1],
        "charttime": [at(2.1), at(2.5), at(3)],
        "value": [70.0, 60.0, np.nan],
    })

    result = join_points(grid, events, {"value_min": ("value", "min")})

    # at(3) closes hour 2 as well; the null is ignored
    assert result["hr"].tolist() == [2]
    assert result["value_min"].tolist() == [60.0]


def test_interval_attributed_by_hour_end():
    grid = hourly_grid(_one_stay(at(0), at(24)))
    intervals = pd.DataFrame({
        "stay_id": [1, 1, 1],
        "starttime": [at(9.5), at(10), at(20)],
        "endtime": [at(10.5), at(10.75), at(30)],
        "rate": [1.0, 2.0, 3.0],
    })

    result = join_intervals(grid, intervals, {"rate": ("rate", "max")})

    # (9:30, 10:30] covers only the end of hour 9; (10:00, 10:45] covers no hour end
    assert result["hr"].tolist() == [9, 20, 21, 22, 23]
    assert result["rate"].tolist() == [1.0, 3.0, 3.0, 3.0, 3.0]


def test_interval_end_boundary_inclusive():
    grid = hourly_grid(_one_stay(at(0), at(6)))
    intervals = pd.DataFrame({
        "stay_id": [1], "starttime": [at(1)], "endtime": [at(3)], "rate": [5.0],
    })

    result = join_intervals(grid, intervals, {"rate": ("rate", "max")})

    assert result["hr"].tolist() == [1, 2]


def test_empty_joins_keep_columns():
    grid = hourly_grid(_one_stay(at(0), at(3)))
    empty = pd.DataFrame({"stay_id": [], "charttime": pd.to_datetime([]), "value": []})
    result = join_points(grid, empty, {"v": ("value", "max")})
    assert list(result.columns) == ["stay_id", "hr", "v"]
    assert result.empty


def test_slide_trailing_max():
    df = pd.DataFrame({"id": [1] * 4 + [2] * 2, "hr": [0, 1, 2, 3, 0, 1], "x": [1, None, 3, 0, None, 2]})

    result = slide(df, "id", "hr", 1, {"x": "max"})

    assert result["x"].iloc[:4].tolist() == [1.0, 1.0, 3.0, 3.0]
    assert np.isnan(result["x"].iloc[4])
    assert result["x"].iloc[5] == 2.0


def test_slide_sorts_rows():
    df = pd.DataFrame({"id": [1, 1, 1], "hr": [2, 0, 1], "x": [0.0, 4.0, 1.0]})
    result = slide(df, "id", "hr", 5, {"x": "max"})
    assert result["hr"].tolist() == [0, 1, 2]
    assert result["x"].tolist() == [4.0, 4.0, 4.0]
