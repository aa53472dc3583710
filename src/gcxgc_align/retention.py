"""Retention indexing against standards and retention-time penalties.

With standards configured for a dimension, each peak's retention time is
re-expressed relative to every standard as
``(rt - rt_standard) / (max rt_standard - min rt_standard)``, computed inside
the peak's own file. Penalties then compare these relative positions instead
of raw times, which absorbs run-to-run drift of the column.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .peaks import Peak, PeakFile, StandardIndex

logger = logging.getLogger(__name__)

DIMENSIONS = ("rt1", "rt2")


class MissingStandardsError(ValueError):
    """Raised when input files lack configured retention standards."""

    def __init__(self, missing: Dict[str, List[str]]):
        self.missing = {str(k): list(v) for k, v in missing.items()}
        detail = "; ".join(f"{label}: {', '.join(names)}" for label, names in self.missing.items())
        super().__init__(f"Missing retention standards ({detail})")


def _retention(peak: Peak, dimension: str) -> float:
    return peak.rt1 if dimension == "rt1" else peak.rt2


@dataclass(frozen=True)
class RetentionIndexer:
    rt1_standards: Tuple[str, ...] = ()
    rt2_standards: Tuple[str, ...] = ()

    def standards(self, dimension: str) -> Tuple[str, ...]:
        if dimension not in DIMENSIONS:
            raise ValueError(f"Unknown retention dimension {dimension!r}")
        return self.rt1_standards if dimension == "rt1" else self.rt2_standards

    @property
    def enabled(self) -> bool:
        return bool(self.rt1_standards or self.rt2_standards)

    def missing(self, peak_file: PeakFile) -> List[str]:
        """Configured standard names (both dimensions) absent from `peak_file`."""
        present = set(peak_file.names())
        wanted: List[str] = []
        for name in list(self.rt1_standards) + list(self.rt2_standards):
            if name not in wanted:
                wanted.append(name)
        return [name for name in wanted if name not in present]

    def check(self, files: Iterable[PeakFile]) -> None:
        """Raise MissingStandardsError listing every file that lacks a standard."""
        missing: Dict[str, List[str]] = {}
        for pf in files:
            names = self.missing(pf)
            if names:
                missing[pf.label] = names
        if missing:
            raise MissingStandardsError(missing)

    def standard_times(self, peak_file: PeakFile, dimension: str) -> Dict[str, float]:
        # first occurrence of a name defines the standard
        times: Dict[str, float] = {}
        wanted = set(self.standards(dimension))
        for peak in peak_file.peaks:
            if peak.name in wanted and peak.name not in times:
                times[peak.name] = _retention(peak, dimension)
        return times

    def span(self, peak_file: PeakFile, dimension: str) -> Optional[float]:
        """Elution window covered by the standards; None without standards."""
        if not self.standards(dimension):
            return None
        times = self.standard_times(peak_file, dimension)
        if len(times) != len(self.standards(dimension)):
            raise MissingStandardsError({peak_file.label: self.missing(peak_file)})
        values = np.fromiter(times.values(), dtype=float)
        span = float(values.max() - values.min())
        # a single standard (or coeluting ones) gives a zero span; fall back to raw offsets
        return span if span > 0 else 1.0

    def index_file(self, peak_file: PeakFile) -> PeakFile:
        """Return a copy of `peak_file` whose peaks carry their StandardIndex."""
        if not self.enabled:
            return peak_file
        per_dim: Dict[str, Tuple[Dict[str, float], float]] = {}
        for dim in DIMENSIONS:
            if self.standards(dim):
                per_dim[dim] = (self.standard_times(peak_file, dim), self.span(peak_file, dim) or 1.0)

        indexed = []
        for peak in peak_file.peaks:
            rel: Dict[str, Dict[str, float]] = {"rt1": {}, "rt2": {}}
            for dim, (times, span) in per_dim.items():
                rt = _retention(peak, dim)
                rel[dim] = {std: (rt - t) / span for std, t in times.items()}
            indexed.append(replace(peak, standard_index=StandardIndex(rt1=rel["rt1"], rt2=rel["rt2"])))
        return peak_file.with_peaks(indexed)


@dataclass(frozen=True)
class PenaltyModel:
    """Retention mismatch penalty for one dimension.

    Absolute mode: ``|rt_a - rt_b| * weight``. Standard-relative mode sums,
    over the standards, ``|index_a - index_b| * weight / n_standards * span``
    where `span` is the reference file's standard window.
    """

    dimension: str
    weight: float
    standards: Tuple[str, ...] = ()
    span: float = 1.0

    @property
    def relative(self) -> bool:
        return bool(self.standards)

    def _index_vector(self, peaks: Sequence[Peak], standard: str) -> np.ndarray:
        return np.array(
            [p.standard_index.for_dimension(self.dimension).get(standard, np.nan) for p in peaks],
            dtype=float,
        )

    def matrix(self, reference: Sequence[Peak], candidates: Sequence[Peak]) -> np.ndarray:
        """Penalty matrix with rows = `reference`, columns = `candidates`."""
        shape = (len(reference), len(candidates))
        if not reference or not candidates:
            return np.zeros(shape, dtype=float)
        if not self.relative:
            a = np.array([_retention(p, self.dimension) for p in reference], dtype=float)
            b = np.array([_retention(p, self.dimension) for p in candidates], dtype=float)
            return np.abs(a[:, None] - b[None, :]) * self.weight

        per_standard = self.weight / len(self.standards)
        total = np.zeros(shape, dtype=float)
        for std in self.standards:
            a = self._index_vector(reference, std)
            b = self._index_vector(candidates, std)
            total += np.abs(a[:, None] - b[None, :]) * per_standard * self.span
        return total

    def pair(self, a: Peak, b: Peak) -> float:
        return float(self.matrix([a], [b])[0, 0])


def penalty_models(
    indexer: RetentionIndexer,
    reference: PeakFile,
    *,
    rt1_weight: float,
    rt2_weight: float,
) -> Tuple[PenaltyModel, PenaltyModel]:
    """RT1/RT2 penalty models anchored on `reference` (the seed file)."""
    models = []
    for dim, weight in (("rt1", rt1_weight), ("rt2", rt2_weight)):
        stds = indexer.standards(dim)
        span = indexer.span(reference, dim) if stds else None
        models.append(PenaltyModel(dimension=dim, weight=float(weight), standards=stds, span=span or 1.0))
    return models[0], models[1]
