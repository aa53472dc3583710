import math

import numpy as np
import pytest

from gcxgc_align.tuning import dissimilarity_for, stringency_curve, tune_similarity_cutoff


def test_stringency_curve_values():
    m = np.array([[95.0, 10.0], [5.0, 92.0]])
    curve = stringency_curve(m)
    assert curve[0] == pytest.approx(1.0)  # t=1: 4 entries, 2 rows
    assert curve[4] == pytest.approx(2 / math.sqrt(3))  # t=5
    assert curve[9] == pytest.approx(2 / math.sqrt(2))  # t=10
    assert curve[91] == pytest.approx(1.0)  # t=92
    assert np.all(np.isnan(curve[94:]))  # t>=95


def test_nan_entries_never_exceed_threshold():
    curve = stringency_curve(np.array([[np.nan, 50.0]]))
    assert curve[0] == pytest.approx(1.0)
    assert np.isnan(curve[50])


def test_tune_picks_first_maximum():
    m = np.array([[95.0, 10.0], [5.0, 92.0]])
    assert tune_similarity_cutoff([m], fallback=90.0) == 10.0


def test_tune_sums_over_files():
    a = np.array([[95.0, 10.0], [5.0, 92.0]])
    b = np.array([[99.0]])
    # b is undefined from t=99 on; the maximum of a still wins
    assert tune_similarity_cutoff([a, b], fallback=90.0) == 10.0


def test_tune_falls_back_when_nothing_exceeds():
    assert tune_similarity_cutoff([np.array([[0.5]])], fallback=90.0) == 90.0
    assert tune_similarity_cutoff([], fallback=80.0) == 80.0


def test_dissimilarity_default_tracks_similarity():
    assert dissimilarity_for(90.0) == 0.0
    assert dissimilarity_for(35.0) == -55.0
    assert dissimilarity_for(90.0, 12.0) == 12.0
