import math

import pandas as pd
import pytest

from gcxgc_align.identification import id_columns, identify_peaks
from gcxgc_align.peaks import Peak, load_standard_library
from gcxgc_align.retention import MissingStandardsError, PenaltyModel
from gcxgc_align.scoring import NetScorer
from gcxgc_align.spectra import parse_spectrum


def _scorer(rt1_standards=()):
    return NetScorer(PenaltyModel("rt1", 1.0, standards=rt1_standards), PenaltyModel("rt2", 10.0))


def _query():
    return Peak(name="unknown", rt1=100.0, rt2=1.0, area=5.0, quant_mass="50", spectrum=parse_spectrum("50:100"))


def _library(n=4):
    lib = pd.DataFrame(
        {
            "Name": ["Exact", "Partial", "Disjoint", "Shifted"],
            "RT1": [100.0, 100.0, 100.0, 101.0],
            "RT2": [1.0, 1.0, 1.0, 1.0],
            "Spectra": ["50:100", "50:3 51:4", "70:100", "50:100"],
        }
    )
    return load_standard_library(lib.head(n))


def test_top_three_by_net_score():
    ids = identify_peaks([_query()], _library(), _scorer())
    assert list(ids.columns) == id_columns()
    row = ids.iloc[0]
    assert [row["ID_1"], row["ID_2"], row["ID_3"]] == ["Exact", "Shifted", "Partial"]
    assert [row["ID_1_Score"], row["ID_2_Score"], row["ID_3_Score"]] == [100.0, 99.0, 60.0]


def test_short_library_leaves_empty_ranks():
    ids = identify_peaks([_query()], _library(2), _scorer())
    row = ids.iloc[0]
    assert row["ID_2"] == "Partial"
    assert row["ID_3"] is None
    assert math.isnan(row["ID_3_Score"])


def test_relative_mode_requires_library_indices():
    with pytest.raises(MissingStandardsError) as err:
        identify_peaks([_query()], _library(), _scorer(rt1_standards=("FAME_8",)))
    assert err.value.missing == {"standard_library": ["FAME_8_RT1"]}
