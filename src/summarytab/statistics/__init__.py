"""Statistics module for summarytab.

Column classification, statistic evaluation and cross-stratum comparison.
These functions operate on pandas Series and are independent of table layout.
"""

from summarytab.statistics.classifier import ColumnMetadata, Variant, category_levels, classify
from summarytab.statistics.evaluator import (
    StatisticRegistry,
    evaluate,
    format_statistics,
    parse_expression,
    resolve_expression,
    validate_expression,
)
from summarytab.statistics.comparator import (
    BUILTIN_TESTS,
    ComparisonRegistry,
    ComparisonResult,
    compare,
    default_test,
)

__all__ = [
    "ColumnMetadata",
    "Variant",
    "classify",
    "category_levels",
    "StatisticRegistry",
    "evaluate",
    "format_statistics",
    "parse_expression",
    "resolve_expression",
    "validate_expression",
    "BUILTIN_TESTS",
    "ComparisonRegistry",
    "ComparisonResult",
    "compare",
    "default_test",
]
