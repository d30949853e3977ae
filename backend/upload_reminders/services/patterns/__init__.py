"""
Pattern Services

Upload history -> interval statistics -> DocumentPattern -> MissingDocument.
"""

from .interval_statistics import compute_interval_statistics, calculate_intervals
from .pattern_classifier import (
    PatternClassifier,
    analyze_upload_patterns,
    group_uploads_by_source,
    generate_pattern_id,
    format_expected_date,
)
from .missing_detector import MissingDocumentDetector, generate_missing_id

__all__ = [
    'compute_interval_statistics',
    'calculate_intervals',
    'PatternClassifier',
    'analyze_upload_patterns',
    'group_uploads_by_source',
    'generate_pattern_id',
    'format_expected_date',
    'MissingDocumentDetector',
    'generate_missing_id',
]
