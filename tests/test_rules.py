"""
Unit Tests for the Rule-Based Screening Layer.

Tests robust statistics, input records, the baseline screener, the
phenotype cascade and questionnaire selection with synthetic daily series.

Test Strategy:
    - Construct windows with a known baseline and a known recent shift
    - Verify which signals fire and which phenotype hint follows
    - Use exact threshold values to pin the strict inequalities
"""

import pytest

from heartwaves.config import TEXT
from heartwaves.data.records import DailyMetric, ImportedWindow, OrthostaticInput
from heartwaves.rules import (
    Confidence,
    PhenotypeHint,
    ScreeningInputError,
    Status,
    classify_phenotype,
    questionnaire_for,
    screen_daily_series,
)
from heartwaves.rules.questionnaire import IST_QUESTIONS, NORMAL_QUESTIONS, POTS_QUESTIONS
from heartwaves.utils.stats import parse_optional_float, robust_stats, safe_mean


def _ids(questions):
    return [q.id for q in questions]


# =============================================================================
# Robust Statistics
# =============================================================================

class TestRobustStats:
    """Tests for order-statistic summaries."""

    def test_fewer_than_five_values_returns_none(self):
        assert robust_stats([60, 61, 62, 63]) is None

    def test_non_finite_values_do_not_count(self):
        values = [60, 61, None, float('nan'), float('inf'), 62, 63]
        assert robust_stats(values) is None

    def test_quartiles_use_linear_interpolation(self):
        stats = robust_stats([5, 1, 4, 2, 3])

        assert stats.n == 5
        assert stats.median == 3.0
        assert stats.q1 == 2.0
        assert stats.q3 == 4.0
        assert stats.iqr == 2.0

    def test_fractional_rank_interpolates(self):
        stats = robust_stats([10, 20, 30, 40, 50, 60])

        # rank for q1 = 0.25 * 5 = 1.25 -> 20 + 0.25 * 10
        assert stats.q1 == pytest.approx(22.5)
        assert stats.median == pytest.approx(35.0)
        assert stats.q3 == pytest.approx(47.5)

    def test_safe_mean_ignores_missing(self):
        assert safe_mean([100, None, 120]) == 110.0
        assert safe_mean([None, None]) is None

    @pytest.mark.parametrize("raw,expected", [
        (" 72.5 ", 72.5),
        ("", None),
        ("n/a", None),
        (float('nan'), None),
        (None, None),
        (80, 80.0),
    ])
    def test_parse_optional_float(self, raw, expected):
        assert parse_optional_float(raw) == expected


# =============================================================================
# Input Records
# =============================================================================

class TestRecords:
    """Tests for typed window records."""

    def test_daily_metric_reads_bp_aliases(self):
        row = DailyMetric.from_dict({
            "date": "2024-02-01",
            "resting_hr_mean": "64",
            "bp_systolic_mean": 118,
            "bp_diastolic_mean": 76,
        })

        assert row.resting_hr_mean == 64.0
        assert row.systolic_bp_mean == 118.0
        assert row.diastolic_bp_mean == 76.0
        assert row.has_bp

    def test_unparsable_metric_is_none_not_zero(self):
        row = DailyMetric.from_dict({"date": "2024-02-01", "hrv_sdnn_mean": "bad"})

        assert row.hrv_sdnn_mean is None
        assert not row.has_bp

    def test_orthostatic_aliases_and_derived_deltas(self):
        ortho = OrthostaticInput.from_dict({
            "rest_hr": 70, "stand_hr_mean": 104, "rest_sbp": 120, "stand_sbp_mean": 112,
        })

        assert ortho.sit_hr_mean == 70.0
        assert ortho.delta_hr == 34.0
        assert ortho.delta_sbp == -8.0

    def test_supplied_delta_takes_precedence(self):
        ortho = OrthostaticInput(sit_hr_mean=70, stand_hr_mean=80, delta_hr_stand_minus_sit=35)
        assert ortho.delta_hr == 35

    def test_window_sorts_daily_rows_and_drops_empty_orthostatic(self):
        window = ImportedWindow.from_dict({
            "daily": [{"date": "2024-01-03"}, {"date": "2024-01-01"}, {"date": "2024-01-02"}],
            "age": "41",
            "orthostatic_input": {"sit_hr_mean": ""},
        })

        assert [d.date for d in window.daily] == ["2024-01-01", "2024-01-02", "2024-01-03"]
        assert window.age == 41.0
        assert window.orthostatic_input is None


# =============================================================================
# Baseline Screener
# =============================================================================

class TestBaselineScreener:
    """Tests for signal evaluation over daily series."""

    def test_empty_series_raises(self):
        with pytest.raises(ScreeningInputError):
            screen_daily_series([])

    def test_steady_series_is_normal(self, daily_builder):
        result = screen_daily_series(daily_builder(rhr=[60.0] * 30, hrv=[50.0] * 30))

        assert result.status is Status.NORMAL
        assert result.phenotype_hint is PhenotypeHint.NORMAL
        assert result.phenotype_confidence is Confidence.HIGH
        assert result.phenotype_reason == TEXT.REASON_NORMAL
        assert result.signals == []
        assert _ids(result.questionnaire) == _ids(NORMAL_QUESTIONS)
        assert result.safety_notes == list(TEXT.SAFETY_NOTES)

    def test_elevated_hr_without_stand_shift_is_pots_like(self, elevated_hr_daily):
        result = screen_daily_series(elevated_hr_daily)

        assert result.status is Status.NEEDS_FOLLOWUP
        assert [s.key for s in result.signals] == ["elevated_resting_hr"]
        assert result.signals[0].severity.value == "moderate"
        assert result.phenotype_hint is PhenotypeHint.POTS_LIKE
        assert result.phenotype_confidence is Confidence.HIGH
        assert _ids(result.questionnaire) == _ids(POTS_QUESTIONS)
        assert "Not enough HRV data to assess trend." in result.data_notes
        assert result.stats["hrv_sdnn"] is None

    def test_elevated_hr_with_reduced_standing_is_ist_like(self, daily_builder):
        rhr = [60.0] * 23 + [None, 80.0, None, 80.0, None, 80.0, None]
        stand = [100.0] * 23 + [80.0] * 7

        result = screen_daily_series(daily_builder(rhr=rhr, stand=stand))

        assert result.phenotype_hint is PhenotypeHint.IST_LIKE
        assert result.phenotype_confidence is Confidence.HIGH
        assert _ids(result.questionnaire) == _ids(IST_QUESTIONS)

    def test_recent_mean_exactly_at_threshold_does_not_fire(self, daily_builder):
        # median 60, IQR 0 -> threshold 65; recent mean 65 is not strictly above
        rhr = [60.0] * 23 + [65.0] * 7
        result = screen_daily_series(daily_builder(rhr=rhr, hrv=[50.0] * 30))

        assert result.status is Status.NORMAL
        assert not result.has_signal("elevated_resting_hr")

    def test_too_few_recent_values_adds_note(self, daily_builder):
        rhr = [60.0] * 23 + [None, None, 90.0, None, None, 90.0, None]
        result = screen_daily_series(daily_builder(rhr=rhr, hrv=[50.0] * 30))

        assert result.status is Status.NORMAL
        assert "Not enough resting HR data to assess trend." in result.data_notes

    def test_suppressed_hrv_without_bp_is_low_confidence_oh_like(self, daily_builder):
        hrv = [50.0] * 23 + [30.0] * 7
        result = screen_daily_series(daily_builder(rhr=[60.0] * 30, hrv=hrv, stand=[100.0] * 30))

        assert [s.key for s in result.signals] == ["suppressed_hrv"]
        assert result.phenotype_hint is PhenotypeHint.OH_LIKE
        assert result.phenotype_confidence is Confidence.LOW
        assert result.bp_data_present is False
        assert result.questionnaire[-1].id == "bp_not_measured"
        assert any("Blood pressure data not present" in note for note in result.data_notes)

    def test_suppressed_hrv_with_more_standing_is_vvs_like(self, daily_builder):
        hrv = [50.0] * 23 + [30.0] * 7
        stand = [100.0] * 23 + [110.0] * 7
        systolic = [118.0] * 30

        result = screen_daily_series(
            daily_builder(rhr=[60.0] * 30, hrv=hrv, stand=stand, systolic=systolic)
        )

        assert result.phenotype_hint is PhenotypeHint.VVS_LIKE
        assert result.bp_data_present is True
        assert result.questionnaire[-1].id == "bp_during_event"
        assert not any("Blood pressure data not present" in note for note in result.data_notes)

    def test_to_dict_shape(self, elevated_hr_daily):
        out = screen_daily_series(elevated_hr_daily).to_dict()

        assert out["status"] == "needs_followup"
        assert out["phenotype_hint"] == "pots_like"
        assert set(out["stats"]) == {"resting_hr", "hrv_sdnn", "stand_minutes", "active_minutes"}
        assert out["stats"]["hrv_sdnn"] is None
        assert out["signals"][0]["key"] == "elevated_resting_hr"
        assert "clustering_model" not in out

    def test_notes_are_deduplicated(self, elevated_hr_daily):
        result = screen_daily_series(elevated_hr_daily)
        before = list(result.data_notes)

        result.add_note(before[0])
        result.add_note("   ")

        assert result.data_notes == before


# =============================================================================
# Phenotype Cascade and Questionnaires
# =============================================================================

class TestPhenotypeCascade:
    """Tests for the rule-based phenotype fallback and questionnaire lookup."""

    def test_followup_without_known_signal_is_unspecified(self):
        assessment = classify_phenotype(
            status=Status.NEEDS_FOLLOWUP,
            signal_keys=[],
            stand_stats=None,
            recent_stand=[],
            recent_active=[50.0, 60.0],
            bp_data_present=False,
        )

        assert assessment.hint is PhenotypeHint.UNSPECIFIED_AUTONOMIC
        assert assessment.confidence is Confidence.LOW
        assert "Blood pressure data not present; subtype confidence is limited." in assessment.notes
        assert any("Higher recent activity" in note for note in assessment.notes)

    def test_oh_questionnaire_depends_on_bp(self):
        with_bp = questionnaire_for(Status.NEEDS_FOLLOWUP, PhenotypeHint.OH_LIKE, True)
        without_bp = questionnaire_for(Status.NEEDS_FOLLOWUP, PhenotypeHint.OH_LIKE, False)

        assert with_bp[-1].id == "bp_drop"
        assert without_bp[-1].id == "bp_not_measured"
        assert _ids(with_bp)[:-1] == _ids(without_bp)[:-1]

    def test_normal_status_ignores_hint(self):
        questions = questionnaire_for(Status.NORMAL, PhenotypeHint.POTS_LIKE, True)
        assert _ids(questions) == ["fatigue", "dizziness", "palpitations"]

    def test_unknown_hint_falls_back_to_unspecified(self):
        questions = questionnaire_for(Status.NEEDS_FOLLOWUP, None, False)
        assert "illness" in _ids(questions)

    def test_questionnaire_is_a_fresh_list(self):
        first = questionnaire_for(Status.NEEDS_FOLLOWUP, PhenotypeHint.POTS_LIKE, False)
        first.clear()
        assert len(questionnaire_for(Status.NEEDS_FOLLOWUP, PhenotypeHint.POTS_LIKE, False)) == 5

    def test_confidence_steps(self):
        assert Confidence.LOW.promote() is Confidence.MEDIUM
        assert Confidence.HIGH.promote() is Confidence.HIGH
        assert Confidence.HIGH.demote() is Confidence.MEDIUM
        assert Confidence.LOW.demote() is Confidence.LOW
        assert PhenotypeHint.parse("bogus") is None
        assert PhenotypeHint.POTS_LIKE.label == "pots-like"
