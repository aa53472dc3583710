"""Greedy one-to-one resolution of candidate peaks onto seed-pool rows."""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass
class MatchResult:
    """Best seed row per candidate column after duplicate resolution.

    `mates[j]` is the seed row claimed by column j (-1 when unmatched) and
    `scores[j]` its net score (NaN when the column lost its claim or never had
    a finite score; -inf when there were no rows to compare against). No row
    appears twice in `mates`.
    """

    scores: np.ndarray
    mates: np.ndarray

    def matched(self, cutoff: float) -> np.ndarray:
        """Column indices with score >= `cutoff`, in column order."""
        with np.errstate(invalid="ignore"):
            return np.flatnonzero(self.scores >= cutoff)

    def novel(self, cutoff: float) -> np.ndarray:
        """Column indices scoring strictly below `cutoff`; NaN never qualifies."""
        with np.errstate(invalid="ignore"):
            return np.flatnonzero(self.scores < cutoff)


def resolve_matches(score_matrix: np.ndarray) -> MatchResult:
    """Resolve a (rows x columns) net score matrix to one row per column.

    Each column takes its highest-scoring row. Columns are then visited by
    descending score (stable, so equal scores keep column order) and a column
    whose row was already taken by an earlier column loses its match.
    """
    m = np.asarray(score_matrix, dtype=float)
    n_rows, n_cols = m.shape
    scores = np.full(n_cols, np.nan, dtype=float)
    mates = np.full(n_cols, -1, dtype=np.int64)
    if n_cols == 0:
        return MatchResult(scores=scores, mates=mates)
    if n_rows == 0:
        # no seed rows: every candidate is maximally dissimilar
        scores[:] = -np.inf
        return MatchResult(scores=scores, mates=mates)

    finite_cols = np.flatnonzero(np.any(np.isfinite(m), axis=0))
    if finite_cols.size:
        sub = np.where(np.isfinite(m[:, finite_cols]), m[:, finite_cols], -np.inf)
        mates[finite_cols] = np.argmax(sub, axis=0)
        scores[finite_cols] = sub[mates[finite_cols], np.arange(finite_cols.size)]

    # NaN scores sort last
    order = np.argsort(-scores, kind="stable")
    claimed = set()
    for j in order:
        row = int(mates[j])
        if row < 0:
            continue
        if row in claimed:
            scores[j] = np.nan
            mates[j] = -1
            continue
        claimed.add(row)
    return MatchResult(scores=scores, mates=mates)
