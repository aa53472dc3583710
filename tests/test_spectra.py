import math

import numpy as np
import pytest

from gcxgc_align.spectra import SpectrumMatrix, cosine_similarity, make_spectrum, parse_spectrum


def test_parse_spectrum_sorts_merges_and_drops_common_ions():
    s = parse_spectrum("73:100 45:10 73:5 147:20 207:3", common_ions=[207])
    assert s.mz.tolist() == [45, 73, 147]
    assert s.intensity.tolist() == [10.0, 105.0, 20.0]
    assert s.intensity_at(147) == 20.0
    assert s.intensity_at(50) == 0.0


def test_parse_spectrum_rejects_malformed_tokens():
    with pytest.raises(ValueError):
        parse_spectrum("73-100 45:10")
    with pytest.raises(ValueError):
        parse_spectrum("73:abc")
    with pytest.raises(ValueError):
        parse_spectrum("   ")


def test_self_similarity_is_100():
    s = parse_spectrum("41:12 43:100 57:37 71:8 85:3")
    assert cosine_similarity(s, s) == pytest.approx(100.0)


def test_disjoint_spectra_have_zero_similarity():
    a = parse_spectrum("41:12 43:100")
    b = parse_spectrum("57:37 71:8")
    assert cosine_similarity(a, b) == 0.0


def test_similarity_uses_union_of_masses():
    a = parse_spectrum("50:1 51:1")
    b = parse_spectrum("51:1 52:1")
    assert cosine_similarity(a, b) == pytest.approx(50.0)


def test_zero_magnitude_spectrum_similarity_is_undefined():
    a = make_spectrum([50, 51], [0.0, 0.0])
    b = parse_spectrum("50:1 51:1")
    assert math.isnan(cosine_similarity(a, b))
    assert math.isnan(cosine_similarity(b, a))


def test_spectrum_matrix_matches_pairwise_similarity():
    pool = [
        parse_spectrum("50:100 51:20 60:5"),
        parse_spectrum("300:10 301:40"),
        make_spectrum([70], [0.0]),
        parse_spectrum("50:3 51:4"),
    ]
    query = parse_spectrum("50:80 51:30 99:2")
    got = SpectrumMatrix(pool).similarity(query)
    expected = np.array([cosine_similarity(s, query) for s in pool])
    assert np.isnan(got[2])
    mask = ~np.isnan(expected)
    assert np.allclose(got[mask], expected[mask])


def test_spectrum_matrix_handles_query_masses_beyond_pool_range():
    pool = [parse_spectrum("50:1")]
    got = SpectrumMatrix(pool).similarity(parse_spectrum("50:1 500:1"))
    assert got[0] == pytest.approx(100.0 / math.sqrt(2.0))
