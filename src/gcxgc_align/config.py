"""Alignment configuration."""
from __future__ import annotations

import json
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import yaml

from .quant import QUANT_METHODS

# Fatty acid methyl ester ladder commonly spiked as RT1 markers.
FAME_STANDARDS: Tuple[str, ...] = tuple(f"FAME_{n}" for n in range(8, 25, 2))


@dataclass
class AlignConfig:
    """Configuration for consensus alignment of GCxGC-MS peak tables."""

    # Retention standards per dimension; empty disables standard-relative penalties.
    rt1_standards: Tuple[str, ...] = ()
    rt2_standards: Tuple[str, ...] = ()
    # 0-based positions in the input list used as seeds; more than one
    # triggers consensus reconciliation across seeds.
    seed_files: Tuple[int, ...] = (0,)

    rt1_penalty: float = 1.0
    rt2_penalty: float = 10.0

    auto_tune_match_stringency: bool = True
    similarity_cutoff: float = 90.0
    # None -> similarity_cutoff - 90 (re-derived after auto-tuning)
    dissimilarity_cutoff: Optional[float] = None

    num_workers: int = 1
    common_ions: Tuple[int, ...] = ()

    # Rows missing in more than round(n_files * (1 - limit)) files are pruned.
    missing_value_limit: float = 0.75
    missing_peak_finder_laxness: float = 0.85

    quant_method: str = "T"  # "U" | "A" | "T"

    # Files that must agree for two seed rows to be equivalent; None -> majority.
    consensus_min_overlap: Optional[int] = None

    standard_library: Optional[str] = None

    def __post_init__(self) -> None:
        self.rt1_standards = tuple(str(s) for s in self.rt1_standards)
        self.rt2_standards = tuple(str(s) for s in self.rt2_standards)
        self.seed_files = tuple(int(s) for s in self.seed_files)
        self.common_ions = tuple(int(i) for i in self.common_ions)
        self.quant_method = str(self.quant_method).upper()

    def validate(self) -> "AlignConfig":
        if self.quant_method not in QUANT_METHODS:
            raise ValueError(f"quant_method must be one of {QUANT_METHODS}, got {self.quant_method!r}")
        if not self.seed_files:
            raise ValueError("At least one seed file is required.")
        if len(set(self.seed_files)) != len(self.seed_files):
            raise ValueError(f"Seed files must be distinct, got {list(self.seed_files)}")
        if not 0.0 <= float(self.missing_value_limit) <= 1.0:
            raise ValueError("missing_value_limit must be within [0, 1].")
        if not 0.0 < float(self.missing_peak_finder_laxness) <= 1.0:
            raise ValueError("missing_peak_finder_laxness must be within (0, 1].")
        if int(self.num_workers) < 1:
            raise ValueError("num_workers must be >= 1.")
        if self.consensus_min_overlap is not None and int(self.consensus_min_overlap) < 0:
            raise ValueError("consensus_min_overlap must be >= 0.")
        if self.dissimilarity_cutoff is not None and not self.auto_tune_match_stringency:
            if float(self.dissimilarity_cutoff) > float(self.similarity_cutoff):
                raise ValueError("dissimilarity_cutoff must not exceed similarity_cutoff.")
        return self

    def to_dict(self) -> Dict[str, Any]:
        out = {}
        for f in fields(self):
            value = getattr(self, f.name)
            out[f.name] = list(value) if isinstance(value, tuple) else value
        return out


# camelCase option names -> field names. `seedFile` is 0-based here.
OPTION_ALIASES = {
    "RT1_Standards": "rt1_standards",
    "RT2_Standards": "rt2_standards",
    "seedFile": "seed_files",
    "RT1Penalty": "rt1_penalty",
    "RT2Penalty": "rt2_penalty",
    "autoTuneMatchStringency": "auto_tune_match_stringency",
    "similarityCutoff": "similarity_cutoff",
    "disimilarityCutoff": "dissimilarity_cutoff",
    "numWorkers": "num_workers",
    "numCores": "num_workers",
    "commonIons": "common_ions",
    "missingValueLimit": "missing_value_limit",
    "missingPeakFinderLaxness": "missing_peak_finder_laxness",
    "missingPeakFinderSimilarityLax": "missing_peak_finder_laxness",
    "quantMethod": "quant_method",
    "standardLibrary": "standard_library",
    "consensusMinOverlap": "consensus_min_overlap",
}

_SEQUENCE_FIELDS = {"rt1_standards", "rt2_standards", "seed_files", "common_ions"}


def config_from_mapping(obj: Dict[str, Any], *, base: Optional[AlignConfig] = None) -> AlignConfig:
    """Build an AlignConfig from camelCase option names or field names."""
    if not isinstance(obj, dict):
        raise ValueError("Configuration must be a mapping.")
    known = {f.name for f in fields(AlignConfig)}
    updates: Dict[str, Any] = {}
    for key, value in obj.items():
        name = OPTION_ALIASES.get(str(key), str(key))
        if name not in known:
            raise ValueError(f"Unknown configuration option {key!r}")
        if name in _SEQUENCE_FIELDS:
            if value is None:
                value = ()
            elif isinstance(value, (str, int)):
                value = (value,)
            value = tuple(value)
        updates[name] = value
    cfg = replace(base, **updates) if base is not None else AlignConfig(**updates)
    return cfg.validate()


def load_config(path: Union[str, Path]) -> AlignConfig:
    """Load configuration from YAML or JSON.

    `seedFile` / `seed_files` hold 0-based positions in the input list: a
    configuration carried over from the R package, where they count from 1,
    must subtract one from every seed.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)

    suffix = path.suffix.lower().strip()
    if suffix in {".yaml", ".yml"}:
        with open(path, "r", encoding="utf-8") as handle:
            obj = yaml.safe_load(handle)
    elif suffix == ".json":
        obj = json.loads(path.read_text(encoding="utf-8"))
    else:
        raise ValueError(f"Unsupported config type {suffix!r}; expected .yaml/.yml or .json")
    return config_from_mapping(obj or {})
