"""
Tests for the Pattern Classifier.

Covers:
1. Frequency bands and their tolerances
2. Stability from coefficient of variation
3. Confidence precedence chain
4. Full detection (monthly, quarterly, sparse histories)
5. Pattern change history across runs
6. Batch analysis with per-source error isolation
"""
import pytest
from datetime import date
from unittest.mock import patch

from upload_reminders.models import (
    DocumentType,
    IntervalStatistics,
    PatternChange,
    PatternConfidence,
    PatternFrequency,
    PatternStability,
    UploadEvent,
)
from upload_reminders.services.patterns import (
    PatternClassifier,
    analyze_upload_patterns,
    format_expected_date,
    generate_pattern_id,
    group_uploads_by_source,
)
from upload_reminders.services.patterns.pattern_classifier import round_half_up


def uploads_on(dates, source="ANZ", document_type=DocumentType.BANK_STATEMENT):
    return [UploadEvent(document_type=document_type, source=source, upload_date=d) for d in dates]


@pytest.fixture
def classifier(settings):
    return PatternClassifier(settings)


# =============================================================================
# TEST: FREQUENCY
# =============================================================================

class TestFrequencyClassification:

    @pytest.mark.parametrize("interval,expected", [
        (30, PatternFrequency.MONTHLY),
        (20, PatternFrequency.MONTHLY),
        (40, PatternFrequency.MONTHLY),
        (41, PatternFrequency.IRREGULAR),
        (76, PatternFrequency.QUARTERLY),
        (91, PatternFrequency.QUARTERLY),
        (106, PatternFrequency.QUARTERLY),
        (60, PatternFrequency.IRREGULAR),
        (182, PatternFrequency.HALF_YEARLY),
        (200, PatternFrequency.HALF_YEARLY),
        (365, PatternFrequency.YEARLY),
        (350, PatternFrequency.YEARLY),
        (500, PatternFrequency.IRREGULAR),
        (None, PatternFrequency.UNKNOWN),
    ])
    def test_categorize_interval(self, classifier, interval, expected):
        assert classifier.categorize_interval(interval) == expected

    def test_fewer_than_two_uploads_is_unknown(self, classifier):
        assert classifier.classify_frequency(IntervalStatistics(count=1)) == PatternFrequency.UNKNOWN

    def test_custom_bands_from_settings(self, settings):
        settings.frequency_bands = {"monthly": (28, 2)}
        classifier = PatternClassifier(settings)

        assert classifier.categorize_interval(29) == PatternFrequency.MONTHLY
        assert classifier.categorize_interval(31) == PatternFrequency.IRREGULAR
        assert classifier.categorize_interval(91) == PatternFrequency.IRREGULAR


# =============================================================================
# TEST: STABILITY & CONFIDENCE
# =============================================================================

class TestStabilityClassification:

    @pytest.mark.parametrize("cv,expected", [
        (0.0, PatternStability.STABLE),
        (0.149, PatternStability.STABLE),
        (0.15, PatternStability.CHANGING),
        (0.39, PatternStability.CHANGING),
        (0.40, PatternStability.VOLATILE),
        (1.2, PatternStability.VOLATILE),
        (None, PatternStability.VOLATILE),
    ])
    def test_cv_thresholds(self, classifier, cv, expected):
        stats = IntervalStatistics(count=5, average_interval_days=30, coefficient_of_variation=cv)
        assert classifier.classify_stability(stats) == expected


class TestConfidenceClassification:

    @pytest.mark.parametrize("uploads,stability,expected", [
        (4, PatternStability.STABLE, PatternConfidence.HIGH),
        (12, PatternStability.STABLE, PatternConfidence.HIGH),
        (3, PatternStability.STABLE, PatternConfidence.MEDIUM),
        (10, PatternStability.CHANGING, PatternConfidence.MEDIUM),
        (10, PatternStability.VOLATILE, PatternConfidence.LOW),
        (2, PatternStability.STABLE, PatternConfidence.LOW),
        (1, PatternStability.STABLE, PatternConfidence.UNCERTAIN),
        (0, PatternStability.VOLATILE, PatternConfidence.UNCERTAIN),
    ])
    def test_precedence_chain(self, classifier, uploads, stability, expected):
        assert classifier.classify_confidence(uploads, stability) == expected

    def test_high_implies_at_least_four_stable_uploads(self, classifier):
        for uploads in range(0, 10):
            for stability in PatternStability:
                if classifier.classify_confidence(uploads, stability) == PatternConfidence.HIGH:
                    assert uploads >= 4
                    assert stability == PatternStability.STABLE


class TestRoundHalfUp:

    def test_half_rounds_up(self):
        assert round_half_up(30.5) == 31
        assert round_half_up(91.5) == 92

    def test_below_half_rounds_down(self):
        assert round_half_up(30.2) == 30
        assert round_half_up(30.49) == 30


# =============================================================================
# TEST: FULL DETECTION
# =============================================================================

class TestDetectPattern:

    def test_monthly_bank_statements(self, classifier, monthly_uploads):
        """Six uploads on the 15th -> monthly, stable, high, next 15 Jul."""
        pattern = classifier.detect_pattern(DocumentType.BANK_STATEMENT, "ANZ", monthly_uploads)

        assert pattern.id == "pattern-bank_statement-anz"
        assert pattern.frequency == PatternFrequency.MONTHLY
        assert pattern.pattern_stability == PatternStability.STABLE
        assert pattern.confidence == PatternConfidence.HIGH
        assert pattern.next_expected_date == date(2026, 7, 15)
        assert pattern.uploads_analyzed == 6
        assert pattern.grace_period_days == 5
        assert pattern.expected_day_of_month == 15
        assert pattern.expected_months == []
        assert pattern.date_range_start == date(2026, 1, 15)
        assert pattern.last_upload_date == date(2026, 6, 15)

    def test_input_order_does_not_matter(self, classifier, monthly_uploads):
        forward = classifier.detect_pattern(DocumentType.BANK_STATEMENT, "ANZ", monthly_uploads)
        reverse = classifier.detect_pattern(
            DocumentType.BANK_STATEMENT, "ANZ", list(reversed(monthly_uploads))
        )
        assert forward.next_expected_date == reverse.next_expected_date
        assert forward.statistics == reverse.statistics

    def test_quarterly_dividends_record_months(self, classifier):
        dates = [
            date(2025, 3, 31), date(2025, 6, 30), date(2025, 9, 30),
            date(2025, 12, 31), date(2026, 3, 31),
        ]
        pattern = classifier.detect_pattern(
            DocumentType.DIVIDEND_STATEMENT,
            "BHP Group",
            uploads_on(dates, "BHP Group", DocumentType.DIVIDEND_STATEMENT),
        )

        assert pattern.id == "pattern-dividend_statement-bhp-group"
        assert pattern.frequency == PatternFrequency.QUARTERLY
        assert pattern.pattern_stability == PatternStability.STABLE
        assert pattern.expected_months == [3, 6, 9, 12]
        assert pattern.expected_day_of_month == 31
        assert pattern.next_expected_date == date(2026, 6, 30)
        assert pattern.grace_period_days == 10

    def test_single_upload_is_unknown(self, classifier):
        pattern = classifier.detect_pattern(
            DocumentType.PAYG_SUMMARY, "Acme Pty Ltd", uploads_on([date(2025, 7, 14)], "Acme Pty Ltd")
        )

        assert pattern.frequency == PatternFrequency.UNKNOWN
        assert pattern.confidence == PatternConfidence.UNCERTAIN
        assert pattern.next_expected_date is None

    def test_uploads_without_date_are_dropped(self, classifier, monthly_uploads):
        undated = UploadEvent(DocumentType.BANK_STATEMENT, "ANZ", None)
        pattern = classifier.detect_pattern(
            DocumentType.BANK_STATEMENT, "ANZ", monthly_uploads + [undated]
        )
        assert pattern.uploads_analyzed == 6

    def test_all_undated_history(self, classifier):
        undated = [UploadEvent(DocumentType.OTHER, "Council", None)] * 3
        pattern = classifier.detect_pattern(DocumentType.OTHER, "Council", undated)

        assert pattern.uploads_analyzed == 0
        assert pattern.frequency == PatternFrequency.UNKNOWN
        assert pattern.confidence == PatternConfidence.UNCERTAIN
        assert pattern.date_range_start is None
        assert pattern.next_expected_date is None

    def test_next_date_only_for_known_frequency(self, classifier):
        # Irregular still predicts; unknown never does
        dates = [date(2026, 1, 1), date(2026, 3, 2), date(2026, 5, 1)]
        pattern = classifier.detect_pattern(DocumentType.OTHER, "Council", uploads_on(dates, "Council"))

        assert pattern.frequency == PatternFrequency.IRREGULAR
        assert pattern.next_expected_date == date(2026, 6, 30)


# =============================================================================
# TEST: PATTERN CHANGES
# =============================================================================

class TestPatternChanges:

    def test_interval_shift_recorded(self, classifier):
        dates = [
            date(2026, 1, 1), date(2026, 2, 1), date(2026, 3, 1), date(2026, 4, 1),
            date(2026, 7, 1), date(2026, 10, 1), date(2027, 1, 1),
        ]
        pattern = classifier.detect_pattern(DocumentType.BANK_STATEMENT, "ANZ", uploads_on(dates))

        assert len(pattern.pattern_changes) == 1
        change = pattern.pattern_changes[0]
        assert change.from_frequency == PatternFrequency.MONTHLY
        assert change.to_frequency == PatternFrequency.QUARTERLY
        assert change.change_date == date(2026, 4, 1)

    def test_short_history_has_no_shift(self, classifier):
        dates = [date(2026, 1, 1), date(2026, 2, 1), date(2026, 5, 1)]
        assert classifier.detect_interval_shift("pattern-x", dates) is None

    def test_stability_change_against_previous(self, classifier, monthly_uploads):
        previous = classifier.detect_pattern(DocumentType.BANK_STATEMENT, "ANZ", monthly_uploads)
        late = UploadEvent(DocumentType.BANK_STATEMENT, "ANZ", date(2026, 8, 30))

        current = classifier.detect_pattern(
            DocumentType.BANK_STATEMENT, "ANZ", monthly_uploads + [late], previous=previous
        )

        assert current.pattern_stability != PatternStability.STABLE
        change = current.pattern_changes[-1]
        assert change.from_stability == PatternStability.STABLE
        assert change.to_stability == current.pattern_stability
        assert change.change_date == date(2026, 8, 30)

    def test_history_carried_forward_without_duplicates(self, classifier, monthly_uploads):
        earlier = PatternChange(
            id="change-old",
            change_date=date(2025, 6, 1),
            from_frequency=PatternFrequency.QUARTERLY,
            to_frequency=PatternFrequency.MONTHLY,
        )
        previous = classifier.detect_pattern(DocumentType.BANK_STATEMENT, "ANZ", monthly_uploads)
        previous.pattern_changes = [earlier]

        first = classifier.detect_pattern(
            DocumentType.BANK_STATEMENT, "ANZ", monthly_uploads, previous=previous
        )
        second = classifier.detect_pattern(
            DocumentType.BANK_STATEMENT, "ANZ", monthly_uploads, previous=first
        )

        assert [c.id for c in first.pattern_changes] == ["change-old"]
        assert [c.id for c in second.pattern_changes] == ["change-old"]

    def test_frequency_change_reason_uses_labels(self, classifier, monthly_uploads):
        previous = classifier.detect_pattern(DocumentType.BANK_STATEMENT, "ANZ", monthly_uploads)

        change = classifier.compare_with_previous(
            previous, PatternFrequency.QUARTERLY, previous.pattern_stability, date(2026, 9, 15)
        )

        assert change.reason == "Frequency changed from Monthly to Quarterly"
        assert change.from_stability == change.to_stability == PatternStability.STABLE

    def test_unchanged_pattern_adds_nothing(self, classifier, monthly_uploads):
        previous = classifier.detect_pattern(DocumentType.BANK_STATEMENT, "ANZ", monthly_uploads)
        change = classifier.compare_with_previous(
            previous, previous.frequency, previous.pattern_stability, date(2026, 6, 15)
        )
        assert change is None


# =============================================================================
# TEST: BATCH ANALYSIS
# =============================================================================

class TestBatchAnalysis:

    def test_group_by_type_and_source(self, monthly_uploads):
        other = uploads_on([date(2026, 3, 31)], "BHP", DocumentType.DIVIDEND_STATEMENT)
        grouped = group_uploads_by_source(monthly_uploads + other)

        assert set(grouped) == {"bank_statement:ANZ", "dividend_statement:BHP"}
        assert len(grouped["bank_statement:ANZ"]) == 6

    def test_one_bad_source_does_not_abort_batch(self, classifier, monthly_uploads):
        broken = uploads_on([date(2026, 1, 1), date(2026, 2, 1)], "Broken Bank")
        grouped = group_uploads_by_source(monthly_uploads + broken)
        original = classifier.detect_pattern

        def detect(document_type, source, uploads, previous=None):
            if source == "Broken Bank":
                raise RuntimeError("corrupt history")
            return original(document_type, source, uploads, previous=previous)

        with patch.object(classifier, "detect_pattern", side_effect=detect):
            result = analyze_upload_patterns(grouped, classifier=classifier)

        assert result.total_sources == 2
        assert result.patterns_detected == 1
        assert result.patterns[0].source == "ANZ"
        assert result.errors == ["Error analyzing bank_statement:Broken Bank: corrupt history"]

    def test_previous_patterns_looked_up_by_id(self, classifier, monthly_uploads):
        previous = classifier.detect_pattern(DocumentType.BANK_STATEMENT, "ANZ", monthly_uploads)
        previous.pattern_changes = [PatternChange(
            id="change-kept",
            change_date=date(2025, 1, 1),
            from_frequency=PatternFrequency.YEARLY,
            to_frequency=PatternFrequency.MONTHLY,
        )]

        result = analyze_upload_patterns(
            group_uploads_by_source(monthly_uploads),
            previous_patterns={previous.id: previous},
            classifier=classifier,
        )

        assert [c.id for c in result.patterns[0].pattern_changes] == ["change-kept"]

    def test_pattern_id_sanitizes_source(self):
        assert generate_pattern_id(DocumentType.OTHER, "St. George Bank") == "pattern-other-st--george-bank"


class TestFormatExpectedDate:

    @pytest.mark.parametrize("value,expected", [
        (date(2026, 7, 15), "Today"),
        (date(2026, 7, 16), "Tomorrow"),
        (date(2026, 7, 12), "3 days ago"),
        (date(2026, 7, 20), "In 5 days"),
        (date(2026, 8, 4), "4 Aug"),
    ])
    def test_relative_labels(self, value, expected):
        assert format_expected_date(value, today=date(2026, 7, 15)) == expected
