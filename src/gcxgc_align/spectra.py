"""Mass spectra and spectral similarity.

A spectrum is a discretized EI mass spectrum: unique integer ion masses in
ascending order with non-negative intensities. Similarity between two spectra
is the cosine of their intensity vectors over the union of masses, scaled to
[0, 100]. Zero-magnitude spectra have no defined similarity (NaN).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

import numpy as np
from scipy import sparse


@dataclass(frozen=True)
class Spectrum:
    mz: np.ndarray  # int64, strictly increasing
    intensity: np.ndarray  # float64, same length as mz

    def __post_init__(self) -> None:
        if self.mz.shape != self.intensity.shape or self.mz.ndim != 1:
            raise ValueError("mz and intensity must be aligned 1D arrays.")
        if self.mz.size > 1 and np.any(np.diff(self.mz) <= 0):
            raise ValueError("Spectrum masses must be unique and sorted ascending.")

    def __len__(self) -> int:
        return int(self.mz.size)

    @property
    def norm(self) -> float:
        return float(np.sqrt(np.dot(self.intensity, self.intensity)))

    def intensity_at(self, mass: int) -> float:
        """Intensity recorded at `mass`, 0.0 when the ion is absent."""
        pos = int(np.searchsorted(self.mz, mass))
        if pos < self.mz.size and int(self.mz[pos]) == int(mass):
            return float(self.intensity[pos])
        return 0.0

    def without(self, ions: Iterable[int]) -> "Spectrum":
        drop = np.isin(self.mz, np.asarray(list(ions), dtype=np.int64))
        if not drop.any():
            return self
        return Spectrum(mz=self.mz[~drop], intensity=self.intensity[~drop])

    def to_string(self) -> str:
        return " ".join(f"{int(m)}:{_format_intensity(v)}" for m, v in zip(self.mz, self.intensity))


def _format_intensity(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else repr(float(value))


def make_spectrum(
    masses: Iterable[float],
    intensities: Iterable[float],
    *,
    common_ions: Optional[Iterable[int]] = None,
) -> Spectrum:
    """Build a Spectrum, merging repeated masses and dropping `common_ions`."""
    mz = np.asarray(list(masses), dtype=float)
    inten = np.asarray(list(intensities), dtype=float)
    if mz.shape != inten.shape:
        raise ValueError("masses and intensities must have the same length.")
    if np.any(~np.isfinite(mz)) or np.any(~np.isfinite(inten)):
        raise ValueError("Spectrum contains non-finite values.")
    if np.any(inten < 0):
        raise ValueError("Spectrum intensities must be non-negative.")

    mz_int = np.rint(mz).astype(np.int64)
    if common_ions:
        keep = ~np.isin(mz_int, np.asarray(list(common_ions), dtype=np.int64))
        mz_int, inten = mz_int[keep], inten[keep]

    uniq, inverse = np.unique(mz_int, return_inverse=True)
    merged = np.zeros(uniq.size, dtype=float)
    np.add.at(merged, inverse, inten)
    return Spectrum(mz=uniq, intensity=merged)


def parse_spectrum(text: str, *, common_ions: Optional[Iterable[int]] = None) -> Spectrum:
    """Parse space-separated ``mass:intensity`` tokens.

    Raises ValueError on malformed tokens or an empty string.
    """
    tokens = str(text).split()
    if not tokens:
        raise ValueError("Empty spectrum string.")
    masses = []
    intensities = []
    for tok in tokens:
        parts = tok.split(":")
        if len(parts) != 2:
            raise ValueError(f"Malformed spectrum token {tok!r}; expected 'mass:intensity'.")
        try:
            masses.append(float(parts[0]))
            intensities.append(float(parts[1]))
        except ValueError as exc:
            raise ValueError(f"Malformed spectrum token {tok!r}.") from exc
    return make_spectrum(masses, intensities, common_ions=common_ions)


def cosine_similarity(a: Spectrum, b: Spectrum) -> float:
    """Cosine similarity x100 of two spectra; NaN when either has zero magnitude."""
    denom = a.norm * b.norm
    if denom == 0.0:
        return float("nan")
    _, ia, ib = np.intersect1d(a.mz, b.mz, assume_unique=True, return_indices=True)
    dot = float(np.dot(a.intensity[ia], b.intensity[ib]))
    return dot / denom * 100.0


class SpectrumMatrix:
    """Read-only sparse stack of spectra (rows) over the integer mass axis.

    Used as the shared snapshot of a seed pool while candidate spectra are
    scored against it, one candidate per task.
    """

    def __init__(self, spectra: Sequence[Spectrum]):
        n = len(spectra)
        width = 1 + max((int(s.mz[-1]) for s in spectra if len(s)), default=0)
        indptr = np.zeros(n + 1, dtype=np.int64)
        for i, s in enumerate(spectra):
            indptr[i + 1] = indptr[i] + len(s)
        indices = np.concatenate([s.mz for s in spectra]) if n else np.zeros(0, dtype=np.int64)
        data = np.concatenate([s.intensity for s in spectra]) if n else np.zeros(0, dtype=float)
        self.matrix = sparse.csr_matrix((data, indices, indptr), shape=(n, width))
        self.norms = np.sqrt(np.asarray(self.matrix.multiply(self.matrix).sum(axis=1)).ravel())

    @property
    def n_rows(self) -> int:
        return int(self.matrix.shape[0])

    def similarity(self, spectrum: Spectrum) -> np.ndarray:
        """Similarity of `spectrum` to every row; NaN where undefined."""
        n = self.n_rows
        if n == 0:
            return np.zeros(0, dtype=float)
        in_range = spectrum.mz < self.matrix.shape[1]
        cols = spectrum.mz[in_range]
        if cols.size:
            dots = np.asarray(self.matrix[:, cols] @ spectrum.intensity[in_range]).ravel()
        else:
            dots = np.zeros(n, dtype=float)
        denom = self.norms * spectrum.norm
        out = np.full(n, np.nan, dtype=float)
        ok = denom > 0
        out[ok] = dots[ok] / denom[ok] * 100.0
        return out
