"""Consensus across independent seed runs.

Rows of the last seed's table are kept when every other seed has an
equivalent row, i.e. one that records identical values for more than the
threshold number of files. Cells of kept rows are the median of the
non-absent values of all equivalent rows.
"""
from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from .alignment import SeedRun

logger = logging.getLogger(__name__)


@dataclass
class ConsensusResult:
    table: pd.DataFrame  # index: final seed peak_id
    equivalents: pd.DataFrame  # index: final seed peak_id; one column per seed with its peak_id


def overlap_counts(final: np.ndarray, other: np.ndarray) -> np.ndarray:
    """Per row pair, the number of file columns with identical non-absent values."""
    counts = np.zeros((final.shape[0], other.shape[0]), dtype=np.int64)
    for c in range(final.shape[1]):
        # NaN never compares equal
        counts += final[:, c][:, None] == other[:, c][None, :]
    return counts


def overlap_threshold(n_files: int, min_overlap: Optional[int] = None) -> int:
    """Counts strictly above this make two rows equivalent."""
    return int(min_overlap) if min_overlap is not None else int(n_files) // 2


def reconcile_seeds(runs: Sequence[SeedRun], min_overlap: Optional[int] = None) -> ConsensusResult:
    if len(runs) < 2:
        raise ValueError("Consensus needs at least two seed runs.")
    final = runs[-1]
    labels = list(final.table.columns)
    threshold = overlap_threshold(len(labels), min_overlap)

    final_values = final.table.to_numpy(dtype=float)
    n_rows = final_values.shape[0]
    keep = np.ones(n_rows, dtype=bool)
    partners = []
    for run in runs[:-1]:
        other_values = run.table.loc[:, labels].to_numpy(dtype=float)
        if other_values.shape[0] == 0:
            keep[:] = False
            partners.append((run, np.full(n_rows, -1, dtype=np.int64)))
            continue
        counts = overlap_counts(final_values, other_values)
        best = np.argmax(counts, axis=1)  # ties -> lowest row
        keep &= counts[np.arange(n_rows), best] > threshold
        partners.append((run, best))

    kept = np.flatnonzero(keep)
    stacked = [final_values[kept]]
    equivalents = {f"seed_{final.seed}": final.table.index.to_numpy()[kept]}
    for run, best in partners:
        rows = best[kept]
        stacked.append(run.table.loc[:, labels].to_numpy(dtype=float)[rows] if kept.size else np.zeros((0, len(labels))))
        equivalents[f"seed_{run.seed}"] = run.table.index.to_numpy()[rows] if kept.size else np.zeros(0, dtype=np.int64)

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", category=RuntimeWarning)  # all-absent cells
        merged = np.nanmedian(np.stack(stacked, axis=0), axis=0) if kept.size else np.zeros((0, len(labels)))

    index = pd.Index(final.table.index.to_numpy()[kept], name="peak_id")
    logger.info("%d of %d peaks are shared by all %d seeds", kept.size, n_rows, len(runs))
    return ConsensusResult(
        table=pd.DataFrame(merged, columns=labels, index=index),
        equivalents=pd.DataFrame(equivalents, index=index),
    )
