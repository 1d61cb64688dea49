from pysofa.charted import extract_gcs, extract_vitalsign

from conftest import at


def test_vitalsign_filters_implausible_values(make_table, cfg):
    ce = make_table("chartevents", [
        {"stay_id": 1000, "charttime": at(1), "itemid": 220052, "valuenum": 65.0},
        {"stay_id": 1000, "charttime": at(2), "itemid": 220181, "valuenum": 0.0},
        {"stay_id": 1000, "charttime": at(3), "itemid": 225312, "valuenum": 350.0},
        {"stay_id": 1000, "charttime": at(4), "itemid": 220045, "valuenum": 90.0},
    ])

    vs = extract_vitalsign(ce, cfg)

    assert list(vs.columns) == ["stay_id", "charttime", "mbp"]
    assert vs["mbp"].tolist() == [65.0]


def test_gcs_sums_complete_components(make_table, cfg):
    ce = make_table("chartevents", [
        {"stay_id": 1000, "charttime": at(1), "itemid": 220739, "valuenum": 3.0},
        {"stay_id": 1000, "charttime": at(1), "itemid": 223900, "valuenum": 4.0},
        {"stay_id": 1000, "charttime": at(1), "itemid": 223901, "valuenum": 5.0},
        # motor missing at hour 2
        {"stay_id": 1000, "charttime": at(2), "itemid": 220739, "valuenum": 4.0},
        {"stay_id": 1000, "charttime": at(2), "itemid": 223900, "valuenum": 5.0},
    ])

    gcs = extract_gcs(ce, cfg)

    assert len(gcs) == 1
    assert gcs["charttime"].iloc[0] == at(1)
    assert gcs["gcs"].iloc[0] == 12.0


def test_gcs_without_components(make_table, cfg):
    ce = make_table("chartevents", [
        {"stay_id": 1000, "charttime": at(1), "itemid": 220045, "valuenum": 80.0},
    ])
    assert extract_gcs(ce, cfg).empty
