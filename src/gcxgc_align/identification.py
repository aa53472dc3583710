"""Annotation of aligned peaks against a reference spectral library."""
from __future__ import annotations

import logging
from typing import Dict, List, Sequence

import numpy as np
import pandas as pd

from .peaks import Peak
from .retention import MissingStandardsError
from .scoring import NetScorer

logger = logging.getLogger(__name__)

TOP_N = 3


def id_columns(top_n: int = TOP_N) -> List[str]:
    cols = []
    for k in range(1, top_n + 1):
        cols += [f"ID_{k}", f"ID_{k}_Score"]
    return cols


def check_library_standards(library: Sequence[Peak], scorer: NetScorer) -> None:
    """Library entries need an index for every standard in relative mode."""
    missing: List[str] = []
    for model in (scorer.rt1, scorer.rt2):
        for std in model.standards:
            if any(std not in e.standard_index.for_dimension(model.dimension) for e in library):
                missing.append(f"{std}_{model.dimension.upper()}")
    if missing:
        raise MissingStandardsError({"standard_library": missing})


def identify_peaks(
    peaks: Sequence[Peak],
    library: Sequence[Peak],
    scorer: NetScorer,
    *,
    top_n: int = TOP_N,
) -> pd.DataFrame:
    """Top library matches per peak by net score (similarity minus RT penalties).

    Returns one row per peak with ``ID_k`` names and ``ID_k_Score`` scores
    rounded to two decimals; ranks without a finite score stay empty.
    """
    columns = id_columns(top_n)
    if not peaks:
        return pd.DataFrame(columns=columns)
    check_library_standards(library, scorer)
    logger.info("Matching peaks to standard library")

    scores = scorer.score(library, peaks)  # rows: library, columns: peaks
    records: List[Dict[str, object]] = []
    for j in range(len(peaks)):
        col = scores[:, j] if len(library) else np.zeros(0)
        order = np.argsort(-col, kind="stable")
        order = [int(i) for i in order if np.isfinite(col[i])][:top_n]
        rec: Dict[str, object] = {}
        for k in range(top_n):
            if k < len(order):
                rec[f"ID_{k + 1}"] = library[order[k]].name
                rec[f"ID_{k + 1}_Score"] = round(float(col[order[k]]), 2)
            else:
                rec[f"ID_{k + 1}"] = None
                rec[f"ID_{k + 1}_Score"] = np.nan
        records.append(rec)
    return pd.DataFrame.from_records(records, columns=columns)
