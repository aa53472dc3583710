"""Automatic selection of the similarity cutoff."""
from __future__ import annotations

import logging
from typing import Iterable, Optional

import numpy as np

logger = logging.getLogger(__name__)

THRESHOLDS = np.arange(1, 101)


def stringency_curve(score_matrix: np.ndarray, thresholds: np.ndarray = THRESHOLDS) -> np.ndarray:
    """Coverage/promiscuity curve for one file's net score matrix.

    For each threshold t: rows with any score > t, divided by the square root
    of the number of entries > t. NaN where no entry exceeds t.
    """
    m = np.asarray(score_matrix, dtype=float)
    finite = np.where(np.isfinite(m), m, -np.inf)
    curve = np.full(thresholds.size, np.nan, dtype=float)
    for k, t in enumerate(thresholds):
        above = finite > t
        n_entries = int(above.sum())
        if n_entries == 0:
            continue
        n_rows = int(np.any(above, axis=1).sum())
        curve[k] = n_rows / np.sqrt(n_entries)
    return curve


def tune_similarity_cutoff(matrices: Iterable[np.ndarray], fallback: float) -> float:
    """Threshold in 1..100 maximizing the summed curve across files.

    Thresholds where any file's curve is undefined are excluded; when nothing
    remains `fallback` is returned.
    """
    curves = [stringency_curve(m) for m in matrices]
    if not curves:
        logger.warning("No candidate files to tune on; keeping similarity cutoff %s", fallback)
        return float(fallback)
    total = np.sum(np.vstack(curves), axis=0)  # NaN propagates
    if not np.any(np.isfinite(total)):
        logger.warning("Similarity threshold could not be tuned; keeping %s", fallback)
        return float(fallback)
    best = float(THRESHOLDS[int(np.nanargmax(total))])
    logger.info("Selected similarity cutoff %s", best)
    return best


def dissimilarity_for(similarity_cutoff: float, override: Optional[float] = None) -> float:
    return float(override) if override is not None else float(similarity_cutoff) - 90.0
