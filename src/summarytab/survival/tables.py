"""
Survival summary tables.

Kaplan-Meier estimates per stratum are laid out in the same ``TableModel``
as descriptive summaries: one label row for the survival outcome, one row
per requested time (survival probability) or probability (survival time),
and an optional log-rank p-value on the label row.
"""

from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd
from loguru import logger
from pyspark.sql import DataFrame as SparkDataFrame

from summarytab.core.config import DEFAULT_CONFIG, SummaryConfig
from summarytab.core.engine import to_pandas
from summarytab.core.exceptions import TestError
from summarytab.core.validation import validate_survival_schema
from summarytab.statistics.comparator import ComparisonResult
from summarytab.statistics.evaluator import format_number
from summarytab.summary.stratifier import Stratum, stratify
from summarytab.summary.table import ROW_LABEL, ROW_LEVEL, TableModel, TableRow
from summarytab.survival.local_impl import KaplanMeierFitter


def _format_survival(values: Dict[str, Optional[float]], as_percent: bool, config: SummaryConfig) -> str:
    if values.get("estimate") is None:
        return config.missing_placeholder

    def fmt(value: Optional[float]) -> str:
        if value is None:
            return config.missing_placeholder
        if as_percent:
            return format_number(value * 100, config.percent_digits, config.missing_placeholder) + "%"
        return format_number(value, config.digits, config.missing_placeholder)

    return f"{fmt(values['estimate'])} ({fmt(values['ci_lower'])}, {fmt(values['ci_upper'])})"


def logrank_comparison(
    strata: Sequence[Stratum], duration_col: str, event_col: str
) -> ComparisonResult:
    """Log-rank test across strata.

    Raises:
        TestError: If fewer than 2 strata have observations.
    """
    from lifelines.statistics import multivariate_logrank_test

    non_empty = [s for s in strata if not s.is_overall and s.n > 0]
    if len(non_empty) < 2:
        raise TestError(f"Log-rank test needs at least 2 non-empty strata, found {len(non_empty)}")

    durations = pd.concat([s.values(duration_col) for s in non_empty])
    events = pd.concat([s.values(event_col) for s in non_empty])
    groups = pd.concat(
        [pd.Series(s.name, index=s.values(duration_col).index) for s in non_empty]
    )
    result = multivariate_logrank_test(durations, groups, events)
    return ComparisonResult("logrank", float(result.test_statistic), float(result.p_value))


class SurvivalTable:
    """Kaplan-Meier summary table estimator.

    Examples:
        >>> df = pd.DataFrame({
        ...     'tenure': [5, 6, 7, 8, 10, 12, 15, 16],
        ...     'churned': [1, 0, 1, 0, 1, 1, 1, 0],
        ...     'variant': ['A', 'A', 'A', 'A', 'B', 'B', 'B', 'B'],
        ... })
        >>> table = SurvivalTable().fit(df, 'tenure', 'churned', by='variant', times=[6, 12])
        >>> print(table.to_frame())
    """

    def __init__(self, config: Optional[SummaryConfig] = None, alpha: float = 0.05) -> None:
        """Initialize the SurvivalTable.

        Args:
            config: Formatting and layout options (digits, add_p, add_overall).
            alpha: 1 - confidence level of the reported intervals.
        """
        self.config: SummaryConfig = config or DEFAULT_CONFIG
        self.alpha = alpha
        self._table: Optional[TableModel] = None
        self._is_fitted: bool = False
        self._fitters: Dict[str, KaplanMeierFitter] = {}
        self._warnings: List[str] = []

    def fit(
        self,
        df: Union[pd.DataFrame, SparkDataFrame],
        duration_col: str,
        event_col: str,
        by: Optional[str] = None,
        times: Optional[Sequence[float]] = None,
        probs: Optional[Sequence[float]] = None,
        label: Optional[str] = None,
        by_label: Optional[str] = None,
    ) -> "SurvivalTable":
        """Fit one Kaplan-Meier curve per stratum and build the table.

        Exactly one of ``times`` and ``probs`` must be given.

        Args:
            df: Input DataFrame (pandas or PySpark).
            duration_col: Name of the duration/time column.
            event_col: Name of the event indicator column (0=censored, 1=event).
            by: Optional grouping column.
            times: Report survival probability at these times.
            probs: Report survival time at these survival probabilities.
            label: Label of the outcome row. Defaults to a description of
                the reported quantity.
            by_label: Display label of the grouping column.

        Returns:
            Self for method chaining.
        """
        if (times is None) == (probs is None):
            raise ValueError("Specify exactly one of 'times' or 'probs'")

        if probs is not None and not all(0 < p < 1 for p in probs):
            raise ValueError(f"probs must lie in (0, 1), got {list(probs)}")

        pdf = to_pandas(df)
        validate_survival_schema(pdf, duration_col, event_col)
        if by is not None and by not in pdf.columns:
            raise ValueError(f"Grouping column '{by}' not found in DataFrame")

        complete = pdf[[duration_col, event_col]].notna().all(axis=1)
        if not complete.all():
            logger.debug("Dropping {} rows with missing duration or event", int((~complete).sum()))
            pdf = pdf[complete]

        strata = stratify(pdf, by, include_overall=self.config.add_overall and by is not None)

        fitters: Dict[str, KaplanMeierFitter] = {}
        for stratum in strata:
            if stratum.n == 0:
                continue
            fitters[stratum.name] = KaplanMeierFitter(alpha=self.alpha).fit(
                stratum.values(duration_col), stratum.values(event_col), label=stratum.name
            )

        as_percent = times is not None
        points = list(times if times is not None else probs)
        rows_label = label or ("Survival probability" if as_percent else "Survival time")

        comparison = None
        warnings: List[str] = []
        if self.config.add_p and by is not None:
            try:
                comparison = logrank_comparison(strata, duration_col, event_col)
            except TestError as exc:
                if self.config.on_test_error == "raise":
                    raise
                logger.warning("Log-rank test skipped: {}", exc)
                warnings.append(str(exc))

        rows = [TableRow(
            variable=duration_col,
            label=rows_label,
            row_type=ROW_LABEL,
            cells={},
            n=len(pdf),
            p_value=comparison.p_value if comparison else None,
            test_name=comparison.test_name if comparison else None,
        )]
        for point in points:
            cells = {}
            for stratum in strata:
                fitter = fitters.get(stratum.name)
                if fitter is None:
                    cells[stratum.name] = self.config.missing_placeholder
                    continue
                values = fitter.survival_at(point) if as_percent else fitter.survival_time(point)
                cells[stratum.name] = _format_survival(values, as_percent, self.config)
            point_label = f"Time {point:g}" if as_percent else f"{point * 100:g}% survival"
            rows.append(TableRow(
                variable=duration_col, label=point_label, row_type=ROW_LEVEL, level=point, cells=cells,
            ))

        group_strata = [s for s in strata if not s.is_overall] if by is not None else strata
        self._table = TableModel(
            rows=rows,
            strata=[s.name for s in group_strata],
            stratum_sizes={s.name: s.n for s in strata},
            by=by,
            by_label=(by_label or by) if by is not None else None,
            has_overall=by is not None and any(s.is_overall for s in strata),
            has_n=self.config.add_n,
            has_p_value=self.config.add_p and by is not None,
            has_header_n=self.config.add_header_n,
            pvalue_digits=self.config.pvalue_digits,
            missing_placeholder=self.config.missing_placeholder,
        )
        self._fitters = fitters
        self._warnings = warnings
        self._is_fitted = True
        return self

    @property
    def table(self) -> TableModel:
        """The assembled table model."""
        if not self._is_fitted:
            raise ValueError("Table has not been built. Call fit() first.")
        return self._table

    def to_frame(self) -> pd.DataFrame:
        """Display grid as a pandas DataFrame."""
        return self.table.to_frame()

    def fitter(self, stratum: str) -> KaplanMeierFitter:
        """The Kaplan-Meier fit of one stratum."""
        if not self._is_fitted:
            raise ValueError("Table has not been built. Call fit() first.")
        return self._fitters[stratum]

    def summary(self) -> Dict[str, Any]:
        """Per-stratum fit summaries."""
        if not self._is_fitted:
            raise ValueError("Table has not been built. Call fit() first.")
        return {name: fitter.summary() for name, fitter in self._fitters.items()}

    @property
    def warnings(self) -> List[str]:
        """Degraded comparisons from the last build."""
        return list(self._warnings)

    @property
    def is_fitted(self) -> bool:
        """Whether a table has been built."""
        return self._is_fitted
