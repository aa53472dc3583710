"""Peak records and loaders for GCxGC-MS peak tables.

Input files are tab-delimited exports with a header row and five positional
columns: compound name, a quoted ``"RT1 , RT2"`` pair, peak area, spectrum
(``mass:intensity`` tokens) and the quant/apex mass descriptor.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .spectra import Spectrum, parse_spectrum

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StandardIndex:
    """Standard-relative retention positions of one peak, keyed by standard name."""

    rt1: Dict[str, float] = field(default_factory=dict)
    rt2: Dict[str, float] = field(default_factory=dict)

    def for_dimension(self, dimension: str) -> Dict[str, float]:
        if dimension == "rt1":
            return self.rt1
        if dimension == "rt2":
            return self.rt2
        raise ValueError(f"Unknown retention dimension {dimension!r}")


@dataclass(frozen=True)
class Peak:
    name: str
    rt1: float
    rt2: float
    area: float
    quant_mass: str
    spectrum: Spectrum
    file: str = ""
    index: int = -1  # position within its file
    standard_index: StandardIndex = field(default_factory=StandardIndex)

    @property
    def quant_masses(self) -> Tuple[int, ...]:
        return parse_quant_masses(self.quant_mass)


@dataclass(frozen=True)
class PeakFile:
    label: str
    peaks: Tuple[Peak, ...]
    path: Optional[Path] = None

    def __len__(self) -> int:
        return len(self.peaks)

    def names(self) -> List[str]:
        return [p.name for p in self.peaks]

    def with_peaks(self, peaks: Iterable[Peak]) -> "PeakFile":
        return replace(self, peaks=tuple(peaks))


def parse_quant_masses(descriptor: object) -> Tuple[int, ...]:
    """Split a ``+``-joined quant/apex mass descriptor into integer masses."""
    out: List[int] = []
    for tok in str(descriptor).split("+"):
        tok = tok.strip()
        if not tok:
            continue
        out.append(int(round(float(tok))))
    return tuple(out)


def _to_float(value: object) -> float:
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return float("nan")


def parse_retention_pair(text: object) -> Tuple[float, float]:
    """Parse ``"RT1 , RT2"`` (quotes optional)."""
    raw = str(text).replace('"', "").strip()
    parts = [p.strip() for p in raw.split(",")]
    if len(parts) != 2:
        raise ValueError(f"Expected 'RT1 , RT2' retention pair, got {text!r}")
    return float(parts[0]), float(parts[1])


def peaks_from_frame(
    df: pd.DataFrame,
    *,
    label: str,
    common_ions: Optional[Iterable[int]] = None,
) -> Tuple[Peak, ...]:
    """Convert a raw five-column peak table into Peak records.

    Rows with missing area, an empty spectrum or a malformed RT pair or
    spectrum are dropped with a warning.
    """
    if df.shape[1] < 5:
        raise ValueError(f"{label}: expected at least 5 columns, found {df.shape[1]}.")
    ions = tuple(common_ions or ())

    peaks: List[Peak] = []
    n_dropped = 0
    for row in df.itertuples(index=False):
        name, rt_raw, area_raw, spec_raw, qm_raw = row[0], row[1], row[2], row[3], row[4]
        area = _to_float(area_raw)
        spec_text = "" if pd.isna(spec_raw) else str(spec_raw).strip()
        if not np.isfinite(area) or not spec_text:
            n_dropped += 1
            continue
        try:
            rt1, rt2 = parse_retention_pair(rt_raw)
            spectrum = parse_spectrum(spec_text, common_ions=ions)
            quant_mass = "" if pd.isna(qm_raw) else str(qm_raw).strip()
            parse_quant_masses(quant_mass)
        except ValueError as exc:
            logger.warning("%s: dropping peak %r (%s)", label, name, exc)
            n_dropped += 1
            continue
        peaks.append(
            Peak(
                name=str(name).strip(),
                rt1=rt1,
                rt2=rt2,
                area=float(area),
                quant_mass=quant_mass,
                spectrum=spectrum,
                file=label,
                index=len(peaks),
            )
        )
    if n_dropped:
        logger.debug("%s: dropped %d of %d rows", label, n_dropped, len(df))
    return tuple(peaks)


def read_peak_file(
    path: Union[str, Path],
    *,
    label: Optional[str] = None,
    common_ions: Optional[Iterable[int]] = None,
) -> PeakFile:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)
    df = pd.read_csv(
        path,
        sep="\t",
        header=0,
        quoting=3,  # csv.QUOTE_NONE: the RT pair keeps its literal quotes
        dtype=str,
        keep_default_na=True,
        skipinitialspace=True,
    )
    label = label or path.stem
    return PeakFile(label=label, peaks=peaks_from_frame(df, label=label, common_ions=common_ions), path=path)


def _unique_labels(paths: Sequence[Path]) -> List[str]:
    stems = [p.stem for p in paths]
    if len(set(stems)) == len(stems):
        return stems
    return [str(p) for p in paths]


def read_peak_files(
    paths: Sequence[Union[str, Path]],
    *,
    common_ions: Optional[Iterable[int]] = None,
) -> List[PeakFile]:
    """Load several input files; labels are file stems unless they collide."""
    resolved = [Path(p) for p in paths]
    labels = _unique_labels(resolved)
    files = []
    for path, label in zip(resolved, labels):
        pf = read_peak_file(path, label=label, common_ions=common_ions)
        logger.debug("loaded %s: %d peaks", label, len(pf))
        files.append(pf)
    return files


# Reference library: one row per known compound.
LIBRARY_COLUMNS = ("Name", "RT1", "RT2", "Spectra")


def load_standard_library(
    source: Union[str, Path, pd.DataFrame],
    *,
    common_ions: Optional[Iterable[int]] = None,
) -> Tuple[Peak, ...]:
    """Load a reference library as Peak records.

    Columns ``Name``, ``RT1``, ``RT2`` and ``Spectra`` are required; optional
    ``<standard>_RT1`` / ``<standard>_RT2`` columns hold precomputed
    standard-relative indices.
    """
    if isinstance(source, pd.DataFrame):
        df = source.copy()
    else:
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(path)
        sep = "," if path.suffix.lower() == ".csv" else "\t"
        df = pd.read_csv(path, sep=sep)

    missing = [c for c in LIBRARY_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Standard library missing columns: {missing}")

    rt1_cols = {c[: -len("_RT1")]: c for c in df.columns if str(c).endswith("_RT1")}
    rt2_cols = {c[: -len("_RT2")]: c for c in df.columns if str(c).endswith("_RT2")}
    ions = tuple(common_ions or ())

    entries: List[Peak] = []
    for i, row in enumerate(df.to_dict(orient="records")):
        spectrum = parse_spectrum(str(row["Spectra"]), common_ions=ions)
        index = StandardIndex(
            rt1={std: float(row[col]) for std, col in rt1_cols.items()},
            rt2={std: float(row[col]) for std, col in rt2_cols.items()},
        )
        entries.append(
            Peak(
                name=str(row["Name"]),
                rt1=float(row["RT1"]),
                rt2=float(row["RT2"]),
                area=float("nan"),
                quant_mass="",
                spectrum=spectrum,
                file="standard_library",
                index=i,
                standard_index=index,
            )
        )
    return tuple(entries)


def peaks_to_frame(peaks: Sequence[Peak], *, rt1_standards: Sequence[str] = (), rt2_standards: Sequence[str] = ()) -> pd.DataFrame:
    """Tabular view of peaks (used for MetaboliteInfo)."""
    records = []
    for p in peaks:
        rec: Dict[str, object] = {
            "Name": p.name,
            "RT1": p.rt1,
            "RT2": p.rt2,
            "Area": p.area,
            "QuantMass": p.quant_mass,
            "Spectra": p.spectrum.to_string(),
            "File": p.file,
            "FileRow": p.index,
        }
        for std in rt1_standards:
            rec[f"{std}_RT1"] = p.standard_index.rt1.get(std, np.nan)
        for std in rt2_standards:
            rec[f"{std}_RT2"] = p.standard_index.rt2.get(std, np.nan)
        records.append(rec)
    columns = ["Name", "RT1", "RT2", "Area", "QuantMass", "Spectra", "File", "FileRow"]
    columns += [f"{s}_RT1" for s in rt1_standards] + [f"{s}_RT2" for s in rt2_standards]
    return pd.DataFrame.from_records(records, columns=columns)
