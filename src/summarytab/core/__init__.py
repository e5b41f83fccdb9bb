"""Core utilities for summarytab.

This module provides shared infrastructure used across all analysis modules:
- engine: Dispatcher for detecting and handling Pandas vs Spark DataFrames
- validation: Dataset and argument checks
- config: Immutable build configuration
- exceptions: SpecError, TestError and the ClassificationAmbiguity advisory
"""

from summarytab.core.engine import get_backend, to_pandas
from summarytab.core.validation import (
    validate_column_mapping,
    validate_dataset,
    validate_survival_schema,
)
from summarytab.core.config import DEFAULT_CONFIG, SummaryConfig
from summarytab.core.exceptions import (
    ClassificationAmbiguity,
    SpecError,
    SummaryTabError,
    TestError,
)

__all__ = [
    # Engine
    "get_backend",
    "to_pandas",
    # Validation
    "validate_dataset",
    "validate_column_mapping",
    "validate_survival_schema",
    # Config
    "SummaryConfig",
    "DEFAULT_CONFIG",
    # Errors
    "SummaryTabError",
    "SpecError",
    "TestError",
    "ClassificationAmbiguity",
]
