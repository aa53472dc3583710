import pandas as pd
import pytest

from gcxgc_align.peaks import (
    load_standard_library,
    parse_quant_masses,
    parse_retention_pair,
    read_peak_file,
    read_peak_files,
)


def _write_peak_table(path, rows):
    header = "Name\tR.T. (s)\tArea\tSpectra\tQuant Masses"
    path.write_text("\n".join([header] + ["\t".join(r) for r in rows]) + "\n", encoding="utf-8")


def test_read_peak_file_parses_rows_and_drops_unusable_ones(tmp_path):
    path = tmp_path / "sample_a.txt"
    _write_peak_table(
        path,
        [
            ("Alanine", '"600 , 1.5"', "1000", "73:100 116:50", "116"),
            ("NoArea", '"610 , 1.6"', "", "73:100", "73"),
            ("NoSpectrum", '"620 , 1.7"', "500", "", "73"),
            ("Broken", '"630 , 1.8"', "500", "73-100", "73"),
            ("BadQuant", '"640 , 1.9"', "500", "73:100", "abc"),
            ("Glycine", '"700 , 2.25"', "250.5", "102:40 147:100", "102+147"),
        ],
    )
    pf = read_peak_file(path)
    assert pf.label == "sample_a"
    assert [p.name for p in pf.peaks] == ["Alanine", "Glycine"]
    ala, gly = pf.peaks
    assert (ala.rt1, ala.rt2, ala.area) == (600.0, 1.5, 1000.0)
    assert ala.spectrum.mz.tolist() == [73, 116]
    assert ala.file == "sample_a" and ala.index == 0
    assert gly.index == 1
    assert gly.quant_masses == (102, 147)


def test_read_peak_files_falls_back_to_full_paths_on_label_collision(tmp_path):
    rows = [("A", '"1 , 1"', "1", "50:1", "50")]
    (tmp_path / "x").mkdir()
    (tmp_path / "y").mkdir()
    _write_peak_table(tmp_path / "x" / "run.txt", rows)
    _write_peak_table(tmp_path / "y" / "run.txt", rows)
    files = read_peak_files([tmp_path / "x" / "run.txt", tmp_path / "y" / "run.txt"])
    assert len({f.label for f in files}) == 2


def test_read_peak_file_missing_path_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_peak_file(tmp_path / "nope.txt")


def test_parse_helpers():
    assert parse_retention_pair('"1200 , 2.5"') == (1200.0, 2.5)
    assert parse_quant_masses("73+147 + 205") == (73, 147, 205)
    with pytest.raises(ValueError):
        parse_retention_pair("1200")


def test_load_standard_library_reads_indices():
    lib = pd.DataFrame(
        {
            "Name": ["Alanine", "Glycine"],
            "RT1": [600.0, 700.0],
            "RT2": [1.5, 2.2],
            "Spectra": ["73:100 116:50", "102:40 147:100"],
            "FAME_8_RT1": [0.1, 0.2],
        }
    )
    entries = load_standard_library(lib)
    assert [e.name for e in entries] == ["Alanine", "Glycine"]
    assert entries[1].standard_index.rt1 == {"FAME_8": 0.2}
    assert entries[0].standard_index.rt2 == {}


def test_load_standard_library_requires_columns():
    with pytest.raises(ValueError):
        load_standard_library(pd.DataFrame({"Name": ["x"], "RT1": [1.0]}))


def test_malformed_quant_mass_is_dropped_before_alignment(tmp_path, caplog):
    path = tmp_path / "qm.txt"
    _write_peak_table(
        path,
        [
            ("Alanine", '"600 , 1.5"', "1000", "73:100 116:50", "116"),
            ("Odd", '"610 , 1.6"', "800", "73:100", "73+x"),
        ],
    )
    with caplog.at_level("WARNING", logger="gcxgc_align.peaks"):
        pf = read_peak_file(path)
    assert pf.names() == ["Alanine"]
    assert "Odd" in caplog.text
