"""End-to-end consensus alignment.

For each seed: build the seed pool, stream the other files through matching,
quant reconciliation and new-peak insertion, prune by missing values and run
the relaxed recovery pass. With several seeds the per-seed tables are merged
by consensus; a reference library optionally annotates the result.
"""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import pandas as pd

from .alignment import SeedRun, align_seed, build_scorer
from .config import AlignConfig
from .consensus import ConsensusResult, reconcile_seeds
from .identification import identify_peaks
from .peaks import Peak, PeakFile, load_standard_library, read_peak_files
from .quant import UNMATCHED_QUANT_COLUMNS
from .retention import RetentionIndexer

logger = logging.getLogger(__name__)

LibraryLike = Union[str, Path, pd.DataFrame, Sequence[Peak]]


@dataclass
class AlignmentResult:
    alignment_matrix: pd.DataFrame  # index peak_id, one column per input file; NaN = absent
    metabolite_info: pd.DataFrame  # index peak_id
    unmatched_quant_masses: pd.DataFrame
    seed_runs: List[SeedRun]
    config: AlignConfig
    consensus: Optional[ConsensusResult] = None
    meta: Dict[str, object] = field(default_factory=dict)

    def named_matrix(self) -> pd.DataFrame:
        out = self.alignment_matrix.copy()
        out.insert(0, "Name", self.metabolite_info.loc[out.index, "Name"].to_numpy())
        return out

    def write(self, out_dir: Union[str, Path], *, command: str = "align") -> Dict[str, Path]:
        """Write the three output tables plus a run manifest as TSV/JSON."""
        from . import __version__

        out_dir = Path(out_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        paths = {
            "alignment_matrix": out_dir / "alignment_matrix.tsv",
            "metabolite_info": out_dir / "metabolite_info.tsv",
            "unmatched_quant_masses": out_dir / "unmatched_quant_masses.tsv",
            "run_manifest": out_dir / "run_manifest.json",
        }
        self.named_matrix().to_csv(paths["alignment_matrix"], sep="\t", na_rep="NA")
        self.metabolite_info.to_csv(paths["metabolite_info"], sep="\t", na_rep="NA")
        self.unmatched_quant_masses.to_csv(paths["unmatched_quant_masses"], sep="\t", index=False)

        manifest = {
            "command": command,
            "gcxgc_align_version": __version__,
            "config": self.config.to_dict(),
            "input_files": list(self.alignment_matrix.columns),
            "n_files": int(self.alignment_matrix.shape[1]),
            "n_peaks": int(self.alignment_matrix.shape[0]),
            "n_unmatched_quant_masses": int(len(self.unmatched_quant_masses)),
            "seeds": [run.summary() for run in self.seed_runs],
            **self.meta,
        }
        paths["run_manifest"].write_text(json.dumps(manifest, indent=2, default=str), encoding="utf-8")
        return paths


def prepare_files(files: Sequence[PeakFile], cfg: AlignConfig) -> List[PeakFile]:
    """Drop common ions and attach standard indices; fails fast on missing standards."""
    labels = [pf.label for pf in files]
    if len(set(labels)) != len(labels):
        raise ValueError(f"Input file labels must be unique, got {labels}")
    prepared = []
    for pf in files:
        if cfg.common_ions:
            pf = pf.with_peaks(replace(p, spectrum=p.spectrum.without(cfg.common_ions)) for p in pf.peaks)
        prepared.append(pf)
    indexer = RetentionIndexer(cfg.rt1_standards, cfg.rt2_standards)
    indexer.check(prepared)
    return [indexer.index_file(pf) for pf in prepared]


def _resolve_library(library: Optional[LibraryLike], cfg: AlignConfig) -> Optional[Sequence[Peak]]:
    if library is None and cfg.standard_library:
        library = cfg.standard_library
    if library is None:
        return None
    if isinstance(library, (str, Path, pd.DataFrame)):
        return load_standard_library(library, common_ions=cfg.common_ions)
    return [replace(p, spectrum=p.spectrum.without(cfg.common_ions)) if cfg.common_ions else p for p in library]


def consensus_align(
    files: Sequence[PeakFile],
    config: Optional[AlignConfig] = None,
    *,
    library: Optional[LibraryLike] = None,
) -> AlignmentResult:
    """Align peak files into one table.

    Raises MissingStandardsError before any alignment when a configured
    retention standard is absent from an input file.
    """
    cfg = (config or AlignConfig()).validate()
    if len(files) < 2:
        raise ValueError("Need at least two input files to align.")
    for seed in cfg.seed_files:
        if not 0 <= seed < len(files):
            raise ValueError(f"Seed index {seed} out of range for {len(files)} files.")

    start = time.time()
    prepared = prepare_files(files, cfg)
    ref_library = _resolve_library(library, cfg)

    runs: List[SeedRun] = []
    for seed in cfg.seed_files:
        logger.info("%s seed", prepared[seed].label)
        runs.append(align_seed(prepared, seed, cfg))

    final = runs[-1]
    consensus = None
    if len(runs) > 1:
        consensus = reconcile_seeds(runs, cfg.consensus_min_overlap)
        matrix = consensus.table
    else:
        matrix = final.table
    info = final.info.loc[matrix.index].copy()

    if ref_library is not None:
        peaks_by_id = dict(zip(final.table.index, final.peaks))
        scorer = build_scorer(prepared, final.seed, cfg)
        ids = identify_peaks([peaks_by_id[i] for i in matrix.index], ref_library, scorer)
        ids.index = matrix.index
        info = pd.concat([info, ids], axis=1)

    unmatched = pd.concat([run.unmatched for run in runs], ignore_index=True) if runs else pd.DataFrame(
        columns=UNMATCHED_QUANT_COLUMNS
    )
    return AlignmentResult(
        alignment_matrix=matrix,
        metabolite_info=info,
        unmatched_quant_masses=unmatched,
        seed_runs=runs,
        config=cfg,
        consensus=consensus,
        meta={"execution_time_s": round(time.time() - start, 3)},
    )


def align_paths(
    paths: Sequence[Union[str, Path]],
    config: Optional[AlignConfig] = None,
    *,
    library: Optional[LibraryLike] = None,
) -> AlignmentResult:
    """Load tab-delimited peak tables and align them."""
    cfg = config or AlignConfig()
    files = read_peak_files(paths, common_ions=cfg.common_ions)
    return consensus_align(files, cfg, library=library)
