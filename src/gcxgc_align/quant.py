"""Quantification policies for matched peak pairs.

- ``T``: total ion / summed apexing masses; the candidate's area is kept.
- ``A``: apexing masses; pairs sharing fewer than half of their masses are
  reported as diagnostics, the area is still kept.
- ``U``: unique mass; pairs quantified on different masses are reported and
  the area is converted through the candidate's spectrum.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

import pandas as pd

from .peaks import Peak

QUANT_METHODS = ("U", "A", "T")
APEX_OVERLAP_MIN = 0.5

UNMATCHED_QUANT_COLUMNS = [
    "seed",
    "pass",
    "file",
    "file_row",
    "file_quant_mass",
    "seed_file",
    "seed_row",
    "seed_quant_mass",
]


@dataclass(frozen=True)
class UnmatchedQuantMass:
    seed: int
    pass_name: str  # "align" | "recover"
    file: str
    file_row: int
    file_quant_mass: str
    seed_file: str
    seed_row: int
    seed_quant_mass: str

    def as_record(self) -> dict:
        return {
            "seed": self.seed,
            "pass": self.pass_name,
            "file": self.file,
            "file_row": self.file_row,
            "file_quant_mass": self.file_quant_mass,
            "seed_file": self.seed_file,
            "seed_row": self.seed_row,
            "seed_quant_mass": self.seed_quant_mass,
        }


def unmatched_frame(rows: List[UnmatchedQuantMass]) -> pd.DataFrame:
    return pd.DataFrame.from_records([r.as_record() for r in rows], columns=UNMATCHED_QUANT_COLUMNS)


def apex_overlap(seed_masses: Tuple[int, ...], candidate_masses: Tuple[int, ...]) -> float:
    """|intersection| / min(|seed|, |candidate|); 0.0 when either side is empty."""
    a, b = set(seed_masses), set(candidate_masses)
    if not a or not b:
        return 0.0
    return len(a & b) / min(len(a), len(b))


def convert_unique_mass_area(seed: Peak, candidate: Peak) -> float:
    """Candidate area re-expressed for the seed's quant mass.

    Both intensities come from the candidate spectrum; NaN when the candidate
    has no signal at the seed's quant mass.
    """
    cand_masses = candidate.quant_masses
    seed_masses = seed.quant_masses
    if not cand_masses or not seed_masses:
        return float("nan")
    numerator = candidate.spectrum.intensity_at(cand_masses[0])
    denominator = candidate.spectrum.intensity_at(seed_masses[0])
    if denominator == 0.0:
        return float("nan")
    return candidate.area * (numerator / denominator)


@dataclass(frozen=True)
class QuantReconciler:
    method: str = "T"

    def __post_init__(self) -> None:
        if self.method not in QUANT_METHODS:
            raise ValueError(f"Unsupported quant method {self.method!r}; expected one of {QUANT_METHODS}")

    def reconcile(self, seed: Peak, candidate: Peak) -> Tuple[float, bool]:
        """Return (value to record, whether the pair is a quant-mass mismatch)."""
        if self.method == "T":
            return candidate.area, False
        if self.method == "A":
            flagged = apex_overlap(seed.quant_masses, candidate.quant_masses) < APEX_OVERLAP_MIN
            return candidate.area, flagged
        if seed.quant_masses == candidate.quant_masses:
            return candidate.area, False
        return convert_unique_mass_area(seed, candidate), True

    def diagnostic(
        self,
        seed: Peak,
        candidate: Peak,
        *,
        seed_index: int,
        seed_file: str,
        seed_row: int,
        pass_name: str,
    ) -> UnmatchedQuantMass:
        return UnmatchedQuantMass(
            seed=seed_index,
            pass_name=pass_name,
            file=candidate.file,
            file_row=candidate.index,
            file_quant_mass=candidate.quant_mass,
            seed_file=seed_file,
            seed_row=seed_row,
            seed_quant_mass=seed.quant_mass,
        )
