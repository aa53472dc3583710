"""Net pairwise score: spectral similarity minus RT1 and RT2 penalties."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial
from typing import Sequence

import numpy as np

from .parallel import parallel_map
from .peaks import Peak
from .retention import PenaltyModel
from .spectra import Spectrum, SpectrumMatrix

logger = logging.getLogger(__name__)


def _similarity_column(snapshot: SpectrumMatrix, spectrum: Spectrum) -> np.ndarray:
    return snapshot.similarity(spectrum)


@dataclass(frozen=True)
class NetScorer:
    rt1: PenaltyModel
    rt2: PenaltyModel
    n_workers: int = 1

    def similarity(self, reference: Sequence[Peak], candidates: Sequence[Peak]) -> np.ndarray:
        """Similarity matrix, rows = `reference`, columns = `candidates`.

        One task per candidate; every task reads the same immutable snapshot
        of the reference spectra.
        """
        if not candidates:
            return np.zeros((len(reference), 0), dtype=float)
        snapshot = SpectrumMatrix([p.spectrum for p in reference])
        columns = parallel_map(
            partial(_similarity_column, snapshot),
            [p.spectrum for p in candidates],
            self.n_workers,
        )
        return np.column_stack(columns) if reference else np.zeros((0, len(candidates)), dtype=float)

    def score(self, reference: Sequence[Peak], candidates: Sequence[Peak]) -> np.ndarray:
        sim = self.similarity(reference, candidates)
        n_degenerate = sum(1 for p in candidates if p.spectrum.norm == 0.0)
        if n_degenerate:
            logger.warning("%d candidate peaks have zero-magnitude spectra and cannot match", n_degenerate)
        return sim - self.rt1.matrix(reference, candidates) - self.rt2.matrix(reference, candidates)
