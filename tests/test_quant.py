import math

import pytest

from gcxgc_align.peaks import Peak
from gcxgc_align.quant import QuantReconciler, apex_overlap, unmatched_frame
from gcxgc_align.spectra import parse_spectrum


def _peak(quant, area=1000.0, spectrum="50:100 51:50", file="B", index=3):
    return Peak(
        name="x",
        rt1=100.0,
        rt2=1.0,
        area=area,
        quant_mass=quant,
        spectrum=parse_spectrum(spectrum),
        file=file,
        index=index,
    )


def test_total_keeps_candidate_area():
    value, flagged = QuantReconciler("T").reconcile(_peak("50"), _peak("51", area=42.0))
    assert value == 42.0
    assert flagged is False


def test_apex_overlap():
    assert apex_overlap((50, 51, 52), (60, 61)) == 0.0
    assert apex_overlap((50, 51), (50, 60, 61)) == 0.5
    assert apex_overlap((), (50,)) == 0.0


def test_apexing_flags_low_overlap_but_keeps_area():
    rec = QuantReconciler("A")
    value, flagged = rec.reconcile(_peak("50+51+52"), _peak("60+61", area=7.0))
    assert (value, flagged) == (7.0, True)
    value, flagged = rec.reconcile(_peak("50+51"), _peak("50+60+61", area=7.0))
    assert (value, flagged) == (7.0, False)


def test_unique_mass_same_mass_keeps_area():
    value, flagged = QuantReconciler("U").reconcile(_peak("50"), _peak("50", area=9.0))
    assert (value, flagged) == (9.0, False)


def test_unique_mass_converts_through_candidate_spectrum():
    value, flagged = QuantReconciler("U").reconcile(_peak("51"), _peak("50", area=1000.0))
    assert flagged is True
    assert value == pytest.approx(2000.0)


def test_unique_mass_without_signal_is_absent():
    value, flagged = QuantReconciler("U").reconcile(_peak("52"), _peak("50"))
    assert flagged is True
    assert math.isnan(value)


def test_unknown_method_rejected():
    with pytest.raises(ValueError):
        QuantReconciler("X")


def test_diagnostic_record():
    rec = QuantReconciler("U")
    diag = rec.diagnostic(_peak("52", file="A", index=0), _peak("50"), seed_index=0, seed_file="A", seed_row=5, pass_name="align")
    df = unmatched_frame([diag])
    assert df.to_dict(orient="records") == [
        {
            "seed": 0,
            "pass": "align",
            "file": "B",
            "file_row": 3,
            "file_quant_mass": "50",
            "seed_file": "A",
            "seed_row": 5,
            "seed_quant_mass": "52",
        }
    ]
    assert list(unmatched_frame([]).columns) == list(df.columns)
