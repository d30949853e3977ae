"""
Pattern Classifier

Maps interval statistics for one upload history to a DocumentPattern:
frequency, stability, confidence and the predicted next arrival date.

Classification rules:
- Frequency: nearest canonical band (monthly/quarterly/half_yearly/yearly)
  whose tolerance contains the mean interval; otherwise irregular.
  Fewer than 2 uploads is always unknown.
- Stability: coefficient of variation against two thresholds.
- Confidence: strict precedence chain, first match wins.
- Next expected date: last upload + mean interval, rounded half-up.

Patterns are recomputed wholesale on every run. The previous pattern is only
consulted to extend the pattern_changes history.
"""
import logging
import math
import re
from collections import Counter, defaultdict
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from ...config import EngineSettings, resolve_settings
from ...models.domain import (
    DocumentPattern, DocumentType, IntervalStatistics, PatternAnalysisResult,
    PatternChange, PatternConfidence, PatternFrequency, PatternStability,
    UploadEvent, as_date, get_frequency_label,
)
from .interval_statistics import calculate_intervals, compute_interval_statistics


logger = logging.getLogger(__name__)


# Frequencies with a canonical period, in band order
BANDED_FREQUENCIES = (
    PatternFrequency.MONTHLY,
    PatternFrequency.QUARTERLY,
    PatternFrequency.HALF_YEARLY,
    PatternFrequency.YEARLY,
)

# Minimum intervals before the history is split to look for a shift
MIN_INTERVALS_FOR_SHIFT = 4


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def generate_pattern_id(document_type: DocumentType, source: str) -> str:
    """Deterministic pattern id, one per (document_type, source)."""
    sanitized = re.sub(r"[^a-z0-9]", "-", source.lower())
    return f"pattern-{DocumentType(document_type).value}-{sanitized}"


# =============================================================================
# PATTERN CLASSIFIER
# =============================================================================

class PatternClassifier:
    """
    Classifies upload histories into DocumentPatterns.

    All thresholds come from EngineSettings so they can be tuned per
    deployment without code changes.
    """

    def __init__(self, settings: Optional[EngineSettings] = None):
        self.settings = resolve_settings(settings)

    # -------------------------------------------------------------------------
    # Individual classification rules
    # -------------------------------------------------------------------------

    def categorize_interval(self, interval_days: Optional[float]) -> PatternFrequency:
        """Nearest frequency band containing the interval, or IRREGULAR."""
        if interval_days is None:
            return PatternFrequency.UNKNOWN

        best = None
        best_distance = None
        for frequency in BANDED_FREQUENCIES:
            band = self.settings.frequency_bands.get(frequency.value)
            if not band:
                continue
            target, tolerance = band
            distance = abs(interval_days - target)
            if distance <= tolerance and (best_distance is None or distance < best_distance):
                best, best_distance = frequency, distance

        return best or PatternFrequency.IRREGULAR

    def classify_frequency(self, statistics: IntervalStatistics) -> PatternFrequency:
        if statistics.count < 2:
            return PatternFrequency.UNKNOWN
        return self.categorize_interval(statistics.average_interval_days)

    def classify_stability(self, statistics: IntervalStatistics) -> PatternStability:
        cv = statistics.coefficient_of_variation
        if cv is None:
            return PatternStability.VOLATILE
        if cv < self.settings.stable_cv_threshold:
            return PatternStability.STABLE
        if cv < self.settings.volatile_cv_threshold:
            return PatternStability.CHANGING
        return PatternStability.VOLATILE

    def classify_confidence(
        self,
        uploads_analyzed: int,
        stability: PatternStability,
    ) -> PatternConfidence:
        # Evaluated top-down; the first satisfied rule wins.
        if uploads_analyzed >= 4 and stability == PatternStability.STABLE:
            return PatternConfidence.HIGH
        if uploads_analyzed >= 3 and stability != PatternStability.VOLATILE:
            return PatternConfidence.MEDIUM
        if uploads_analyzed >= 2:
            return PatternConfidence.LOW
        return PatternConfidence.UNCERTAIN

    def predict_next_date(
        self,
        last_upload: Optional[date],
        statistics: IntervalStatistics,
        frequency: PatternFrequency,
    ) -> Optional[date]:
        if (
            frequency == PatternFrequency.UNKNOWN
            or last_upload is None
            or statistics.average_interval_days is None
        ):
            return None
        return last_upload + timedelta(days=round_half_up(statistics.average_interval_days))

    # -------------------------------------------------------------------------
    # Timing hints and change detection
    # -------------------------------------------------------------------------

    def detect_timing(
        self,
        dates: Sequence[date],
        frequency: PatternFrequency,
    ) -> Dict[str, object]:
        """Most common day of month, and the months seen for non-monthly patterns."""
        if not dates:
            return {"day_of_month": None, "months": []}

        day_of_month = Counter(d.day for d in dates).most_common(1)[0][0]

        months: List[int] = []
        if frequency in (
            PatternFrequency.QUARTERLY,
            PatternFrequency.HALF_YEARLY,
            PatternFrequency.YEARLY,
        ):
            months = sorted({d.month for d in dates})

        return {"day_of_month": day_of_month, "months": months}

    def detect_interval_shift(
        self,
        pattern_id: str,
        dates: Sequence[date],
    ) -> Optional[PatternChange]:
        """
        Compare the first and second half of the interval history.

        Records a change when the mean moved by more than pattern_shift_ratio
        and the two halves fall in different frequency bands.
        """
        intervals = calculate_intervals(dates)
        if len(intervals) < MIN_INTERVALS_FOR_SHIFT:
            return None

        midpoint = len(intervals) // 2
        first_half, second_half = intervals[:midpoint], intervals[midpoint:]
        first_avg = sum(first_half) / len(first_half)
        second_avg = sum(second_half) / len(second_half)

        if first_avg <= 0 or abs(second_avg - first_avg) / first_avg <= self.settings.pattern_shift_ratio:
            return None

        from_frequency = self.categorize_interval(first_avg)
        to_frequency = self.categorize_interval(second_avg)
        if from_frequency == to_frequency:
            return None

        change_date = dates[len(dates) // 2]
        return PatternChange(
            id=f"change-{pattern_id}-{change_date.isoformat()}-{from_frequency.value}-{to_frequency.value}",
            change_date=change_date,
            from_frequency=from_frequency,
            to_frequency=to_frequency,
            reason=f"Interval changed from {round(first_avg)} to {round(second_avg)} days",
        )

    def compare_with_previous(
        self,
        previous: Optional[DocumentPattern],
        frequency: PatternFrequency,
        stability: PatternStability,
        change_date: date,
    ) -> Optional[PatternChange]:
        """Change record when stability or frequency differs from the stored pattern."""
        if previous is None:
            return None
        if previous.pattern_stability == stability and previous.frequency == frequency:
            return None

        if previous.pattern_stability != stability:
            reason = (
                f"Stability changed from {previous.pattern_stability.value} to {stability.value}"
            )
        else:
            reason = (
                f"Frequency changed from {get_frequency_label(previous.frequency)} "
                f"to {get_frequency_label(frequency)}"
            )

        return PatternChange(
            id=(
                f"change-{previous.id}-{change_date.isoformat()}-"
                f"{previous.frequency.value}-{frequency.value}-"
                f"{previous.pattern_stability.value}-{stability.value}"
            ),
            change_date=change_date,
            from_frequency=previous.frequency,
            to_frequency=frequency,
            from_stability=previous.pattern_stability,
            to_stability=stability,
            reason=reason,
        )

    # -------------------------------------------------------------------------
    # Full detection
    # -------------------------------------------------------------------------

    def detect_pattern(
        self,
        document_type: DocumentType,
        source: str,
        uploads: Iterable[UploadEvent],
        previous: Optional[DocumentPattern] = None,
        today: Optional[date] = None,
    ) -> DocumentPattern:
        """
        Build the DocumentPattern for one (document_type, source) history.

        Uploads without a date are ignored. A history that ends up empty or
        with a single upload is classified unknown/uncertain with no
        prediction rather than raising.
        """
        document_type = DocumentType(document_type)
        dates = sorted(
            as_date(u.upload_date) for u in uploads if u.upload_date is not None
        )
        pattern_id = generate_pattern_id(document_type, source)

        statistics = compute_interval_statistics(dates)
        frequency = self.classify_frequency(statistics)
        stability = self.classify_stability(statistics)
        confidence = self.classify_confidence(statistics.count, stability)
        last_upload = dates[-1] if dates else None
        next_expected = self.predict_next_date(last_upload, statistics, frequency)
        timing = self.detect_timing(dates, frequency)

        changes: List[PatternChange] = list(previous.pattern_changes) if previous else []
        known_ids = {c.id for c in changes}
        for change in (
            self.detect_interval_shift(pattern_id, dates),
            self.compare_with_previous(
                previous, frequency, stability, last_upload or today or date.today()
            ),
        ):
            if change is not None and change.id not in known_ids:
                changes.append(change)
                known_ids.add(change.id)

        return DocumentPattern(
            id=pattern_id,
            document_type=document_type,
            source=source,
            frequency=frequency,
            pattern_stability=stability,
            confidence=confidence,
            statistics=statistics,
            uploads_analyzed=statistics.count,
            next_expected_date=next_expected,
            grace_period_days=self.settings.grace_period_for(document_type.value),
            pattern_changes=changes,
            expected_day_of_month=timing["day_of_month"],
            expected_months=timing["months"],
            date_range_start=dates[0] if dates else None,
            date_range_end=last_upload,
        )


# =============================================================================
# BATCH HELPERS
# =============================================================================

def group_uploads_by_source(uploads: Iterable[UploadEvent]) -> Dict[str, List[UploadEvent]]:
    """Group uploads by "document_type:source" key."""
    groups: Dict[str, List[UploadEvent]] = defaultdict(list)
    for upload in uploads:
        groups[upload.key].append(upload)
    return dict(groups)


def analyze_upload_patterns(
    grouped_uploads: Dict[str, List[UploadEvent]],
    previous_patterns: Optional[Dict[str, DocumentPattern]] = None,
    classifier: Optional[PatternClassifier] = None,
) -> PatternAnalysisResult:
    """
    Analyse every group independently.

    A failure in one source is recorded in errors and never aborts the batch.
    """
    classifier = classifier or PatternClassifier()
    previous_patterns = previous_patterns or {}
    patterns: List[DocumentPattern] = []
    errors: List[str] = []

    for key, uploads in grouped_uploads.items():
        try:
            document_type, source = key.split(":", 1)
            pattern_id = generate_pattern_id(DocumentType(document_type), source)
            pattern = classifier.detect_pattern(
                DocumentType(document_type),
                source,
                uploads,
                previous=previous_patterns.get(pattern_id),
            )
            patterns.append(pattern)
        except Exception as e:
            logger.error(f"Error analyzing {key}: {e}")
            errors.append(f"Error analyzing {key}: {e}")

    logger.info(f"Analyzed {len(grouped_uploads)} sources, {len(patterns)} patterns detected")

    return PatternAnalysisResult(
        patterns=patterns,
        total_sources=len(grouped_uploads),
        patterns_detected=len(patterns),
        errors=errors,
    )


def format_expected_date(value: date, today: Optional[date] = None) -> str:
    """Human label for an expected date relative to today."""
    today = today or date.today()
    days = (as_date(value) - today).days

    if days == 0:
        return "Today"
    if days == 1:
        return "Tomorrow"
    if days < 0:
        return f"{abs(days)} days ago"
    if days <= 7:
        return f"In {days} days"
    return f"{value.day} {value.strftime('%b')}"
