"""
gcxgc_align: consensus alignment of GCxGC-MS peak tables across samples.
"""

from .config import AlignConfig, FAME_STANDARDS, load_config
from .peaks import Peak, PeakFile, load_standard_library, read_peak_file, read_peak_files
from .pipeline import AlignmentResult, align_paths, consensus_align
from .retention import MissingStandardsError
from .spectra import Spectrum, cosine_similarity, parse_spectrum

__version__ = "0.1.0"

__all__ = [
    "AlignConfig",
    "AlignmentResult",
    "FAME_STANDARDS",
    "MissingStandardsError",
    "Peak",
    "PeakFile",
    "Spectrum",
    "align_paths",
    "consensus_align",
    "cosine_similarity",
    "load_config",
    "load_standard_library",
    "parse_spectrum",
    "read_peak_file",
    "read_peak_files",
    "__version__",
]
