"""summarytab - Descriptive summary tables.

summarytab builds baseline-characteristics tables from pandas (or PySpark)
DataFrames: per-column statistics, optionally stratified by a grouping
column, with cross-stratum tests, laid out as a renderer-agnostic table model.

Example:
    >>> import summarytab
    >>> from summarytab import SummaryTable, SummaryConfig
    >>> import pandas as pd
    >>> 
    >>> df = pd.DataFrame({
    ...     'mpg': [21.0, 22.8, 21.4, 18.7, 18.1, 14.3, 24.4, 22.8],
    ...     'cyl': [6, 4, 6, 8, 6, 8, 4, 4],
    ...     'am': ['manual', 'manual', 'automatic', 'automatic',
    ...            'automatic', 'automatic', 'automatic', 'automatic'],
    ... })
    >>> table = SummaryTable(SummaryConfig(add_p=True)).fit(
    ...     df, by='am', label={'mpg': 'Miles per gallon'}
    ... )
    >>> print(table.to_frame())
    >>> 
    >>> # Custom statistics
    >>> table = SummaryTable().fit(df, statistic={'all_continuous': '{mean} ({sd})'})
"""

__version__ = "0.1.0"

# Unified API exports
from summarytab.core import (
    ClassificationAmbiguity,
    SpecError,
    SummaryConfig,
    SummaryTabError,
    TestError,
)
from summarytab.statistics import (
    ColumnMetadata,
    ComparisonRegistry,
    ComparisonResult,
    StatisticRegistry,
    Variant,
)
from summarytab.summary import SummaryTable, TableModel, summarize
from summarytab.survival import SurvivalTable

__all__ = [
    "SummaryTable",            # Descriptive summary tables (recommended)
    "summarize",               # One-call convenience
    "SurvivalTable",           # Kaplan-Meier summary tables
    "TableModel",              # Table handed to renderers
    "SummaryConfig",           # Immutable build configuration
    "ColumnMetadata",
    "Variant",
    "StatisticRegistry",       # User statistic functions
    "ComparisonRegistry",      # User comparison tests
    "ComparisonResult",
    "SummaryTabError",
    "SpecError",
    "TestError",
    "ClassificationAmbiguity",
]
