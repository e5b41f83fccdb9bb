"""Summary table module for summarytab.

This module stratifies datasets, builds per-column summary cells and
assembles them into a renderer-agnostic ``TableModel``.

Example:
    >>> from summarytab.summary import SummaryTable
    >>> import pandas as pd
    >>> df = pd.DataFrame({
    ...     'mpg': [21.0, 22.8, 21.4, 18.7, 18.1, 14.3],
    ...     'am': ['manual', 'manual', 'automatic', 'automatic', 'automatic', 'manual'],
    ... })
    >>> table = SummaryTable().fit(df, by='am').table
    >>> print(table.strata)
"""

from summarytab.summary.stratifier import OVERALL, Stratum, stratify
from summarytab.summary.table import SummaryCell, TableModel, TableRow, format_pvalue
from summarytab.summary.assembler import assemble
from summarytab.summary.estimator import SummaryTable, summarize

__all__ = [
    "SummaryTable",  # Estimator interface (recommended)
    "summarize",     # One-call convenience
    "TableModel",    # Table handed to renderers
    "TableRow",
    "SummaryCell",
    "Stratum",
    "OVERALL",
    "stratify",
    "assemble",
    "format_pvalue",
]
