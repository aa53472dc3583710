import argparse
import json
import logging
import sys
from pathlib import Path

from .config import AlignConfig, config_from_mapping, load_config
from .pipeline import align_paths
from .retention import MissingStandardsError


def _add_align_parser(sub):
    p = sub.add_parser("align", help="Align GCxGC-MS peak tables into one consensus table")
    p.add_argument("files", nargs="+", help="Tab-delimited peak tables, in alignment order")
    p.add_argument("--out-dir", dest="out_dir", type=str, required=True, help="Directory for output tables")
    p.add_argument("--config", type=str, default=None, help="YAML or JSON configuration file")
    # per-option overrides
    p.add_argument("--seed", dest="seeds", type=int, action="append", default=None, help="0-based seed file index (repeatable)")
    p.add_argument("--rt1-standard", dest="rt1_standards", action="append", default=None)
    p.add_argument("--rt2-standard", dest="rt2_standards", action="append", default=None)
    p.add_argument("--rt1-penalty", dest="rt1_penalty", type=float, default=None)
    p.add_argument("--rt2-penalty", dest="rt2_penalty", type=float, default=None)
    p.add_argument("--similarity-cutoff", dest="similarity_cutoff", type=float, default=None)
    p.add_argument("--dissimilarity-cutoff", dest="dissimilarity_cutoff", type=float, default=None)
    p.add_argument("--no-auto-tune", dest="no_auto_tune", action="store_true", help="Use --similarity-cutoff as given")
    p.add_argument("--workers", dest="num_workers", type=int, default=None)
    p.add_argument("--common-ion", dest="common_ions", type=int, action="append", default=None)
    p.add_argument("--missing-value-limit", dest="missing_value_limit", type=float, default=None)
    p.add_argument("--laxness", dest="missing_peak_finder_laxness", type=float, default=None)
    p.add_argument("--quant-method", dest="quant_method", choices=["U", "A", "T"], default=None)
    p.add_argument("--library", dest="standard_library", type=str, default=None, help="Reference library table")
    p.add_argument("--consensus-min-overlap", dest="consensus_min_overlap", type=int, default=None)
    return p


def _overrides(args) -> dict:
    keys = [
        "rt1_standards",
        "rt2_standards",
        "rt1_penalty",
        "rt2_penalty",
        "similarity_cutoff",
        "dissimilarity_cutoff",
        "num_workers",
        "common_ions",
        "missing_value_limit",
        "missing_peak_finder_laxness",
        "quant_method",
        "standard_library",
        "consensus_min_overlap",
    ]
    out = {k: getattr(args, k) for k in keys if getattr(args, k) is not None}
    if args.seeds is not None:
        out["seed_files"] = args.seeds
    if args.no_auto_tune:
        out["auto_tune_match_stringency"] = False
    return out


def main(argv=None):
    argv = argv if argv is not None else sys.argv[1:]
    ap = argparse.ArgumentParser(prog="gcxgc-align", description="Consensus alignment of GCxGC-MS peak tables")
    ap.add_argument("-v", "--verbose", action="store_true")
    ap.add_argument("-q", "--quiet", action="store_true")
    sub = ap.add_subparsers(dest="cmd", required=True)
    _add_align_parser(sub)
    args = ap.parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.WARNING if args.quiet else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if args.cmd == "align":
        try:
            base = load_config(args.config) if args.config else AlignConfig()
            cfg = config_from_mapping(_overrides(args), base=base)
        except (ValueError, FileNotFoundError) as exc:
            print(f"invalid configuration: {exc}", file=sys.stderr)
            return 2

        out_dir = Path(args.out_dir)
        try:
            res = align_paths(args.files, cfg)
        except MissingStandardsError as exc:
            out_dir.mkdir(parents=True, exist_ok=True)
            target = out_dir / "missing_standards.json"
            target.write_text(json.dumps(exc.missing, indent=2), encoding="utf-8")
            print("Error: missing retention standards detected:", file=sys.stderr)
            for label, names in exc.missing.items():
                print(f"  {label}: {', '.join(names)}", file=sys.stderr)
            print(f"wrote {target}", file=sys.stderr)
            return 2

        paths = res.write(out_dir, command="align")
        print(f"wrote {paths['alignment_matrix']} with {len(res.alignment_matrix)} peaks x {res.alignment_matrix.shape[1]} files")
        print(f"wrote {paths['metabolite_info']}")
        print(f"wrote {paths['unmatched_quant_masses']} with {len(res.unmatched_quant_masses)} rows")
        print(f"wrote {paths['run_manifest']}")
        return 0

    return 1


if __name__ == "__main__":
    raise SystemExit(main())
