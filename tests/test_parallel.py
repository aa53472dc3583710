import math

import numpy as np

from gcxgc_align.parallel import parallel_map
from gcxgc_align.peaks import Peak
from gcxgc_align.retention import PenaltyModel
from gcxgc_align.scoring import NetScorer
from gcxgc_align.spectra import parse_spectrum


def test_parallel_map_keeps_input_order():
    items = [1.0, 4.0, 9.0, 16.0, 25.0]
    assert parallel_map(math.sqrt, items, 1) == [1.0, 2.0, 3.0, 4.0, 5.0]
    assert parallel_map(math.sqrt, items, 2) == [1.0, 2.0, 3.0, 4.0, 5.0]


def _peaks(specs):
    return [
        Peak(name=f"p{i}", rt1=100.0 + i, rt2=1.0, area=1.0, quant_mass="50", spectrum=parse_spectrum(s), index=i)
        for i, s in enumerate(specs)
    ]


def test_worker_count_does_not_change_scores():
    reference = _peaks(["50:3 51:4", "70:100", "90:6 91:8 92:1"])
    candidates = _peaks(["50:3 51:4", "91:8", "70:50 71:50", "50:1"])
    rt1, rt2 = PenaltyModel("rt1", 1.0), PenaltyModel("rt2", 10.0)
    serial = NetScorer(rt1, rt2, n_workers=1).score(reference, candidates)
    pooled = NetScorer(rt1, rt2, n_workers=3).score(reference, candidates)
    assert serial.shape == (3, 4)
    assert np.allclose(serial, pooled)
    assert serial[0, 0] == 100.0
