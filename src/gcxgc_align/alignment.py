"""Single-seed alignment: first pass, missing-value filter and recovery pass.

The seed file initializes a pool of reference peaks. Every other file is
then matched against the pool in input order; matched peaks fill their row,
sufficiently dissimilar peaks become new rows and so are visible to the files
that follow. After pruning rows with too many missing cells, a second pass
with a relaxed cutoff looks for the missing cells only.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import AlignConfig
from .matching import MatchResult, resolve_matches
from .peaks import Peak, PeakFile, peaks_to_frame
from .quant import QuantReconciler, UnmatchedQuantMass, unmatched_frame
from .retention import RetentionIndexer, penalty_models
from .scoring import NetScorer
from .tuning import dissimilarity_for, tune_similarity_cutoff

logger = logging.getLogger(__name__)


class SeedPool:
    """Growing set of reference peaks and their alignment-table rows.

    Owned by a single seed run. Row `peak_id`s are assigned in creation order
    and survive pruning.
    """

    def __init__(self, file_labels: Sequence[str]):
        self.file_labels = list(file_labels)
        self._column = {label: i for i, label in enumerate(self.file_labels)}
        self.peaks: List[Peak] = []
        self.peak_ids: List[int] = []
        self._rows: List[np.ndarray] = []
        self._next_id = 0

    def __len__(self) -> int:
        return len(self.peaks)

    def column(self, label: str) -> int:
        return self._column[label]

    def add(self, peak: Peak) -> int:
        """Append `peak` as a new row; its own file's cell holds its area."""
        row = np.full(len(self.file_labels), np.nan, dtype=float)
        row[self.column(peak.file)] = peak.area
        self.peaks.append(peak)
        self.peak_ids.append(self._next_id)
        self._rows.append(row)
        self._next_id += 1
        return len(self.peaks) - 1

    def record(self, position: int, label: str, value: float) -> None:
        self._rows[position][self.column(label)] = value

    def values(self) -> np.ndarray:
        if not self._rows:
            return np.zeros((0, len(self.file_labels)), dtype=float)
        return np.vstack(self._rows)

    def missing_rows(self, label: str) -> np.ndarray:
        col = self.column(label)
        return np.array([i for i, row in enumerate(self._rows) if np.isnan(row[col])], dtype=np.int64)

    def missing_counts(self) -> np.ndarray:
        return np.isnan(self.values()).sum(axis=1)

    def prune(self, keep: np.ndarray) -> None:
        keep = np.asarray(keep, dtype=bool)
        self.peaks = [p for p, k in zip(self.peaks, keep) if k]
        self.peak_ids = [i for i, k in zip(self.peak_ids, keep) if k]
        self._rows = [r for r, k in zip(self._rows, keep) if k]

    def table(self) -> pd.DataFrame:
        out = pd.DataFrame(self.values(), columns=self.file_labels, index=pd.Index(self.peak_ids, name="peak_id"))
        return out


def insert_novel_peaks(pool: SeedPool, candidates: Sequence[Peak], result: MatchResult, cutoff: float) -> List[int]:
    """Add every candidate scoring strictly below `cutoff` as a new pool row."""
    added = []
    for j in result.novel(cutoff):
        added.append(pool.add(candidates[int(j)]))
    return added


def max_missing_allowed(n_files: int, missing_value_limit: float) -> int:
    # round() is half-to-even
    return int(round(n_files * (1.0 - float(missing_value_limit))))


def filter_missing_values(pool: SeedPool, missing_value_limit: float) -> int:
    """Prune rows absent in too many files; returns the number removed."""
    if not len(pool):
        return 0
    limit = max_missing_allowed(len(pool.file_labels), missing_value_limit)
    keep = pool.missing_counts() <= limit
    pool.prune(keep)
    return int((~keep).sum())


@dataclass
class _RunContext:
    seed: int
    seed_file: str
    reconciler: QuantReconciler


def apply_matches(
    pool: SeedPool,
    positions: np.ndarray,
    candidates: Sequence[Peak],
    result: MatchResult,
    cutoff: float,
    ctx: _RunContext,
    pass_name: str,
) -> Tuple[int, List[UnmatchedQuantMass]]:
    """Record every column scoring >= `cutoff` into its mate's row.

    `positions` maps score-matrix rows to pool positions.
    """
    diagnostics: List[UnmatchedQuantMass] = []
    matched = result.matched(cutoff)
    for j in matched:
        candidate = candidates[int(j)]
        pos = int(positions[int(result.mates[j])])
        seed_peak = pool.peaks[pos]
        value, flagged = ctx.reconciler.reconcile(seed_peak, candidate)
        pool.record(pos, candidate.file, value)
        if flagged:
            diagnostics.append(
                ctx.reconciler.diagnostic(
                    seed_peak,
                    candidate,
                    seed_index=ctx.seed,
                    seed_file=ctx.seed_file,
                    seed_row=pool.peak_ids[pos],
                    pass_name=pass_name,
                )
            )
    return int(matched.size), diagnostics


def recover_missing_peaks(
    pool: SeedPool,
    files: Sequence[PeakFile],
    scorer: NetScorer,
    cutoff: float,
    ctx: _RunContext,
) -> Tuple[int, List[UnmatchedQuantMass]]:
    """Relaxed pass that only fills cells currently absent."""
    n_recovered = 0
    diagnostics: List[UnmatchedQuantMass] = []
    for pf in files:
        positions = pool.missing_rows(pf.label)
        if positions.size == 0 or not pf.peaks:
            continue
        reference = [pool.peaks[int(p)] for p in positions]
        result = resolve_matches(scorer.score(reference, pf.peaks))
        n, diags = apply_matches(pool, positions, pf.peaks, result, cutoff, ctx, "recover")
        logger.debug("%s: recovered %d of %d missing rows", pf.label, n, positions.size)
        n_recovered += n
        diagnostics.extend(diags)
    return n_recovered, diagnostics


@dataclass
class SeedRun:
    """Alignment produced from one seed file."""

    seed: int
    seed_file: str
    table: pd.DataFrame  # index peak_id, one column per input file
    info: pd.DataFrame  # index peak_id, defining peak per row
    unmatched: pd.DataFrame
    peaks: Tuple[Peak, ...]
    similarity_cutoff: float
    dissimilarity_cutoff: float
    recovery_cutoff: float
    n_rows_first_pass: int
    n_pruned: int
    n_recovered: int

    def summary(self) -> Dict[str, object]:
        return {
            "seed": self.seed,
            "seed_file": self.seed_file,
            "similarity_cutoff": self.similarity_cutoff,
            "dissimilarity_cutoff": self.dissimilarity_cutoff,
            "recovery_cutoff": self.recovery_cutoff,
            "n_rows_first_pass": self.n_rows_first_pass,
            "n_pruned": self.n_pruned,
            "n_rows": int(len(self.table)),
            "n_recovered": self.n_recovered,
        }


def build_scorer(files: Sequence[PeakFile], seed: int, cfg: AlignConfig) -> NetScorer:
    indexer = RetentionIndexer(cfg.rt1_standards, cfg.rt2_standards)
    rt1, rt2 = penalty_models(indexer, files[seed], rt1_weight=cfg.rt1_penalty, rt2_weight=cfg.rt2_penalty)
    return NetScorer(rt1=rt1, rt2=rt2, n_workers=int(cfg.num_workers))


def align_seed(files: Sequence[PeakFile], seed: int, cfg: AlignConfig, scorer: Optional[NetScorer] = None) -> SeedRun:
    """Run the full single-seed alignment.

    `files` must already carry their standard indices when standards are
    configured (see RetentionIndexer.index_file).
    """
    if not 0 <= seed < len(files):
        raise ValueError(f"Seed index {seed} out of range for {len(files)} files.")
    labels = [pf.label for pf in files]
    seed_file = files[seed]
    scorer = scorer or build_scorer(files, seed, cfg)
    ctx = _RunContext(seed=seed, seed_file=seed_file.label, reconciler=QuantReconciler(cfg.quant_method))

    pool = SeedPool(labels)
    for peak in seed_file.peaks:
        pool.add(peak)
    others = [pf for i, pf in enumerate(files) if i != seed]

    logger.info("Computing pairwise alignments")
    cache: Dict[str, np.ndarray] = {}
    similarity_cutoff = float(cfg.similarity_cutoff)
    if cfg.auto_tune_match_stringency:
        for pf in others:
            cache[pf.label] = scorer.score(pool.peaks, pf.peaks)
        logger.info("Computing peak similarity threshold")
        similarity_cutoff = tune_similarity_cutoff(cache.values(), fallback=similarity_cutoff)
    dissimilarity_cutoff = dissimilarity_for(similarity_cutoff, cfg.dissimilarity_cutoff)
    if dissimilarity_cutoff > similarity_cutoff:
        logger.warning(
            "Dissimilarity cutoff %s exceeds similarity cutoff %s; using %s for both",
            dissimilarity_cutoff,
            similarity_cutoff,
            similarity_cutoff,
        )
        dissimilarity_cutoff = similarity_cutoff

    diagnostics: List[UnmatchedQuantMass] = []
    for pf in others:
        scores = cache.pop(pf.label, None)
        if scores is None:
            scores = np.zeros((0, len(pf.peaks)), dtype=float)
        n_scored = scores.shape[0]
        if n_scored < len(pool):
            scores = np.vstack([scores, scorer.score(pool.peaks[n_scored:], pf.peaks)])
        result = resolve_matches(scores)
        positions = np.arange(len(pool), dtype=np.int64)
        n_matched, diags = apply_matches(pool, positions, pf.peaks, result, similarity_cutoff, ctx, "align")
        diagnostics.extend(diags)
        added = insert_novel_peaks(pool, pf.peaks, result, dissimilarity_cutoff)
        logger.debug("%s: %d matched, %d new peaks", pf.label, n_matched, len(added))

    n_first_pass = len(pool)
    n_pruned = filter_missing_values(pool, cfg.missing_value_limit)
    logger.debug("pruned %d of %d rows by missing-value limit", n_pruned, n_first_pass)

    recovery_cutoff = similarity_cutoff * float(cfg.missing_peak_finder_laxness)
    logger.info("Searching for missing peaks")
    n_recovered, diags = recover_missing_peaks(pool, files, scorer, recovery_cutoff, ctx)
    diagnostics.extend(diags)

    info = peaks_to_frame(pool.peaks, rt1_standards=cfg.rt1_standards, rt2_standards=cfg.rt2_standards)
    info.index = pd.Index(pool.peak_ids, name="peak_id")
    return SeedRun(
        seed=seed,
        seed_file=seed_file.label,
        table=pool.table(),
        info=info,
        unmatched=unmatched_frame(diagnostics),
        peaks=tuple(pool.peaks),
        similarity_cutoff=similarity_cutoff,
        dissimilarity_cutoff=dissimilarity_cutoff,
        recovery_cutoff=recovery_cutoff,
        n_rows_first_pass=n_first_pass,
        n_pruned=n_pruned,
        n_recovered=n_recovered,
    )
