"""Survival summary module for summarytab.

Kaplan-Meier estimation is delegated to lifelines; this module lays the
estimates out as summary tables.

Example:
    >>> from summarytab.survival import SurvivalTable
    >>> import pandas as pd
    >>> df = pd.DataFrame({
    ...     'tenure': [5, 6, 7, 8, 10, 12, 15, 16],
    ...     'churned': [1, 0, 1, 0, 1, 1, 1, 0],
    ...     'variant': ['A', 'A', 'A', 'A', 'B', 'B', 'B', 'B']
    ... })
    >>> table = SurvivalTable().fit(df, 'tenure', 'churned', by='variant', probs=[0.5])
    >>> print(table.to_frame())
"""

from summarytab.survival.local_impl import KaplanMeierFitter
from summarytab.survival.tables import SurvivalTable, logrank_comparison

__all__ = [
    "SurvivalTable",       # Survival summary tables
    "KaplanMeierFitter",   # Per-stratum Kaplan-Meier (lifelines)
    "logrank_comparison",  # Log-rank p-value across strata
]
