import numpy as np
import pandas as pd
import pytest

from gcxgc_align.alignment import SeedRun
from gcxgc_align.consensus import overlap_counts, overlap_threshold, reconcile_seeds
from gcxgc_align.quant import unmatched_frame

NAN = np.nan
LABELS = ["f1", "f2", "f3", "f4"]


def _run(seed, rows, ids):
    table = pd.DataFrame(rows, columns=LABELS, index=pd.Index(ids, name="peak_id"))
    return SeedRun(
        seed=seed,
        seed_file=LABELS[seed],
        table=table,
        info=pd.DataFrame(index=table.index),
        unmatched=unmatched_frame([]),
        peaks=(),
        similarity_cutoff=90.0,
        dissimilarity_cutoff=0.0,
        recovery_cutoff=76.5,
        n_rows_first_pass=len(rows),
        n_pruned=0,
        n_recovered=0,
    )


def _runs():
    other = _run(
        0,
        [[1.0, 2.0, 3.0, 5.0], [10.0, 20.0, 30.0, 40.0], [7.0, 9.0, NAN, NAN]],
        [5, 6, 7],
    )
    final = _run(
        1,
        [[1.0, 2.0, 3.0, 4.0], [10.0, 20.0, 30.0, NAN], [7.0, 8.0, NAN, NAN]],
        [0, 1, 2],
    )
    return [other, final]


def test_overlap_counts_ignore_absent_cells():
    a = np.array([[1.0, NAN, 3.0]])
    b = np.array([[1.0, NAN, 3.0], [2.0, NAN, NAN]])
    assert overlap_counts(a, b).tolist() == [[2, 0]]


def test_overlap_threshold():
    assert overlap_threshold(4) == 2
    assert overlap_threshold(5) == 2
    assert overlap_threshold(5, 4) == 4


def test_rows_need_majority_agreement():
    res = reconcile_seeds(_runs())
    assert res.table.index.tolist() == [0, 1]
    assert res.table.loc[0].tolist() == [1.0, 2.0, 3.0, 4.5]
    assert res.table.loc[1].tolist() == [10.0, 20.0, 30.0, 40.0]
    assert res.equivalents["seed_0"].tolist() == [5, 6]
    assert res.equivalents["seed_1"].tolist() == [0, 1]


def test_min_overlap_override():
    res = reconcile_seeds(_runs(), min_overlap=3)
    assert res.table.empty
    res = reconcile_seeds(_runs(), min_overlap=0)
    assert res.table.index.tolist() == [0, 1, 2]
    assert res.table.loc[2].tolist()[:2] == [7.0, 8.5]
    assert np.isnan(res.table.loc[2, "f3"])


def test_single_run_is_rejected():
    with pytest.raises(ValueError):
        reconcile_seeds(_runs()[:1])
