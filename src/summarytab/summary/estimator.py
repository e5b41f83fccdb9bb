"""
Summary table builder.

This module provides the ``SummaryTable`` estimator: it classifies every
column, stratifies rows by an optional grouping column, evaluates the
statistic expressions per column and stratum, optionally compares strata,
and assembles a ``TableModel`` for a renderer.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union
import warnings

import pandas as pd
from loguru import logger
from pyspark.sql import DataFrame as SparkDataFrame

from summarytab.core.config import DEFAULT_CONFIG, SummaryConfig
from summarytab.core.engine import to_pandas
from summarytab.core.exceptions import ClassificationAmbiguity, SpecError, TestError
from summarytab.core.validation import validate_column_mapping, validate_dataset
from summarytab.statistics.classifier import ColumnMetadata, Variant, category_levels, classify
from summarytab.statistics.comparator import (
    BUILTIN_TESTS,
    ComparisonFunction,
    ComparisonRegistry,
    ComparisonResult,
    compare,
)
from summarytab.statistics.evaluator import (
    WILDCARDS,
    StatisticFunction,
    StatisticRegistry,
    evaluate,
    format_statistics,
    resolve_expression,
    validate_expression,
)
from summarytab.summary.assembler import assemble
from summarytab.summary.stratifier import Stratum, stratify
from summarytab.summary.table import SummaryCell, TableModel


TestOverride = Union[str, ComparisonFunction]


@dataclass
class _ColumnSummary:
    cells: List[SummaryCell]
    comparison: Optional[ComparisonResult]
    n_nonmissing: int
    warning: Optional[str] = None


class SummaryTable:
    """Descriptive summary table (baseline characteristics) estimator.

    Attributes:
        config: Immutable build configuration.

    Examples:
        >>> import pandas as pd
        >>> from summarytab import SummaryTable, SummaryConfig
        >>> df = pd.DataFrame({
        ...     'mpg': [21.0, 22.8, 21.4, 18.7, 18.1, 14.3, 24.4, 22.8, 19.2, 17.8],
        ...     'am': ['manual', 'manual', 'automatic', 'automatic', 'automatic',
        ...            'automatic', 'automatic', 'automatic', 'automatic', 'automatic'],
        ... })
        >>> table = SummaryTable(SummaryConfig(add_p=True)).fit(
        ...     df, by='am', label={'mpg': 'Miles per gallon'}
        ... )
        >>> print(table.to_frame())
    """

    def __init__(
        self,
        config: Optional[SummaryConfig] = None,
        statistics: Optional[Union[StatisticRegistry, Mapping[str, StatisticFunction]]] = None,
        tests: Optional[Union[ComparisonRegistry, Mapping[str, ComparisonFunction]]] = None,
    ) -> None:
        """Initialize the SummaryTable.

        Args:
            config: Build configuration. Defaults to ``SummaryConfig()``.
            statistics: User statistic functions usable as expression tokens.
            tests: User comparison tests usable as per-column overrides.
        """
        self.config: SummaryConfig = config or DEFAULT_CONFIG
        self._statistics = (
            statistics if isinstance(statistics, StatisticRegistry) else StatisticRegistry(statistics)
        )
        self._tests = tests if isinstance(tests, ComparisonRegistry) else ComparisonRegistry(tests)
        self._table: Optional[TableModel] = None
        self._is_fitted: bool = False
        self._warnings: List[str] = []
        self._stats: Dict[str, Any] = {}

    def register_statistic(self, name: str, func: StatisticFunction) -> "SummaryTable":
        """Register a statistic function usable as ``{name}`` in expressions."""
        self._statistics.register(name, func)
        return self

    def register_test(self, name: str, func: ComparisonFunction) -> "SummaryTable":
        """Register a comparison test usable by name in ``test`` overrides."""
        self._tests.register(name, func)
        return self

    def fit(
        self,
        df: Union[pd.DataFrame, SparkDataFrame],
        by: Optional[str] = None,
        include: Optional[Sequence[str]] = None,
        label: Optional[Mapping[str, str]] = None,
        statistic: Optional[Mapping[str, str]] = None,
        kind: Optional[Mapping[str, Union[str, Variant]]] = None,
        levels: Optional[Mapping[str, Sequence[Any]]] = None,
        test: Optional[Mapping[str, TestOverride]] = None,
    ) -> "SummaryTable":
        """Build the summary table.

        Args:
            df: Input DataFrame (pandas or PySpark).
            by: Optional grouping column.
            include: Columns to summarize, in output order. Defaults to every
                column except ``by``.
            label: Display labels per column (``by`` included).
            statistic: Statistic expressions per column, or for the wildcards
                ``all_categorical`` / ``all_continuous``.
            kind: Declared variant per column ("categorical" or "continuous").
            levels: Declared category levels per column (``by`` included).
            test: Comparison test override per column: a built-in id, a
                registered name, or a callable.

        Returns:
            Self for method chaining.

        Raises:
            SpecError: If an expression, statistic function, kind or test
                cannot be resolved. No table is stored in that case.
            TestError: If a comparison fails and ``on_test_error="raise"``.
            ValueError: If columns are missing from the dataset.
        """
        pdf = to_pandas(df)
        columns = list(include) if include is not None else [c for c in pdf.columns if c != by]
        validate_dataset(pdf, columns, by)

        label = dict(label or {})
        statistic = dict(statistic or {})
        kind = dict(kind or {})
        levels = dict(levels or {})
        test = dict(test or {})
        validate_column_mapping(label, "label", pdf.columns)
        validate_column_mapping(levels, "levels", pdf.columns)
        validate_column_mapping(kind, "kind", columns)
        validate_column_mapping(test, "test", columns)
        validate_column_mapping(
            {k: v for k, v in statistic.items() if k not in WILDCARDS.values()}, "statistic", columns
        )

        metadata = [
            ColumnMetadata(
                name=c, label=label.get(c), kind=self._declared_kind(c, kind.get(c)), levels=levels.get(c)
            )
            for c in columns
        ]
        variants, advisories = self._classify(pdf, metadata)

        # Resolve every expression and test before computing anything
        expressions = {}
        for meta in metadata:
            expression = resolve_expression(meta.name, variants[meta.name], statistic)
            validate_expression(expression, variants[meta.name], self._statistics)
            expressions[meta.name] = expression
        for name, override in test.items():
            self._check_test(name, override)

        strata = stratify(
            pdf,
            by,
            include_overall=self.config.add_overall and by is not None,
            levels=levels.get(by) if by is not None else None,
        )
        logger.debug(
            "Summarizing {} columns across {} strata", len(metadata), len(strata)
        )

        summaries = self._summarize_all(pdf, metadata, variants, expressions, strata, by, test)

        table = assemble(
            metadata,
            variants,
            {name: s.cells for name, s in summaries.items()},
            {name: s.comparison for name, s in summaries.items()},
            strata,
            config=self.config,
            n_nonmissing={name: s.n_nonmissing for name, s in summaries.items()},
            by=by,
            by_label=(label.get(by) or by) if by is not None else None,
        )

        test_warnings = [s.warning for s in summaries.values() if s.warning]
        self._table = table
        self._warnings = advisories + test_warnings
        self._stats = {
            "n_samples": len(pdf),
            "n_variables": len(metadata),
            "n_rows": len(table.rows),
            "by": by,
            "strata": list(table.strata),
            "stratum_sizes": dict(table.stratum_sizes),
            "variants": {name: v.value for name, v in variants.items()},
            "n_warnings": len(self._warnings),
        }
        self._is_fitted = True
        return self

    @staticmethod
    def _declared_kind(column: str, value: Union[str, Variant, None]) -> Variant:
        if value is None:
            return Variant.AUTO
        try:
            return Variant(value)
        except ValueError:
            raise SpecError(
                f"Unknown kind {value!r} for column '{column}'; "
                "use 'categorical', 'continuous' or 'auto'"
            ) from None

    def _check_test(self, column: str, override: TestOverride) -> None:
        if callable(override):
            return
        if isinstance(override, str) and (override in BUILTIN_TESTS or override in self._tests):
            return
        raise SpecError(f"Unknown comparison test {override!r} for column '{column}'")

    def _classify(
        self, pdf: pd.DataFrame, metadata: Sequence[ColumnMetadata]
    ) -> Tuple[Dict[str, Variant], List[str]]:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", ClassificationAmbiguity)
            variants = {
                meta.name: classify(pdf[meta.name], meta, self.config.categorical_threshold)
                for meta in metadata
            }

        advisories = []
        for record in caught:
            if issubclass(record.category, ClassificationAmbiguity):
                advisories.append(str(record.message))
                logger.info("{}", record.message)
            # Hand every captured warning back to the caller
            warnings.warn(record.message, stacklevel=3)
        return variants, advisories

    def _summarize_all(
        self,
        pdf: pd.DataFrame,
        metadata: Sequence[ColumnMetadata],
        variants: Mapping[str, Variant],
        expressions: Mapping[str, str],
        strata: Sequence[Stratum],
        by: Optional[str],
        test: Mapping[str, TestOverride],
    ) -> Dict[str, _ColumnSummary]:
        def run(meta: ColumnMetadata) -> _ColumnSummary:
            return self._summarize_column(
                pdf, meta, variants[meta.name], expressions[meta.name], strata, by, test.get(meta.name)
            )

        if self.config.max_workers > 1 and len(metadata) > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
                futures = {meta.name: executor.submit(run, meta) for meta in metadata}
                results = {name: future.result() for name, future in futures.items()}
        else:
            results = {meta.name: run(meta) for meta in metadata}

        # Canonical row order is the input column order
        return {meta.name: results[meta.name] for meta in metadata}

    def _summarize_column(
        self,
        pdf: pd.DataFrame,
        meta: ColumnMetadata,
        variant: Variant,
        expression: str,
        strata: Sequence[Stratum],
        by: Optional[str],
        test: Optional[TestOverride],
    ) -> _ColumnSummary:
        config = self.config
        column = pdf[meta.name]
        cells: List[SummaryCell] = []

        if variant == Variant.CONTINUOUS:
            for stratum in strata:
                computed = evaluate(
                    stratum.values(meta.name), variant, expression,
                    config=config, functions=self._statistics,
                )
                cells.append(SummaryCell(
                    meta.name, stratum.name, format_statistics(expression, computed, config), computed
                ))
        else:
            for level in category_levels(column, meta):
                for stratum in strata:
                    computed = evaluate(
                        stratum.values(meta.name), variant, expression, level=level,
                        config=config, functions=self._statistics,
                    )
                    cells.append(SummaryCell(
                        meta.name, stratum.name, format_statistics(expression, computed, config),
                        computed, level=level,
                    ))

        n_missing = int(column.isna().sum())
        if config.missing == "always" or (config.missing == "ifany" and n_missing > 0):
            for stratum in strata:
                stratum_missing = int(stratum.values(meta.name).isna().sum())
                cells.append(SummaryCell(
                    meta.name, stratum.name, str(stratum_missing),
                    {"N_miss": stratum_missing}, missing_row=True,
                ))

        comparison = None
        warning = None
        if config.add_p and by is not None:
            groups = {s.name: s.values(meta.name) for s in strata if not s.is_overall}
            try:
                comparison = compare(
                    groups, variant, test, column=meta.name, by=by, config=config, tests=self._tests
                )
            except TestError as exc:
                if config.on_test_error == "raise":
                    raise
                logger.warning("Comparison skipped for column '{}': {}", meta.name, exc)
                warning = f"{meta.name}: {exc}"

        return _ColumnSummary(
            cells=cells,
            comparison=comparison,
            n_nonmissing=len(column) - n_missing,
            warning=warning,
        )

    @property
    def table(self) -> TableModel:
        """The assembled table model."""
        if not self._is_fitted:
            raise ValueError("Table has not been built. Call fit() first.")
        return self._table

    def to_frame(self) -> pd.DataFrame:
        """Display grid as a pandas DataFrame."""
        return self.table.to_frame()

    def summary(self) -> Dict[str, Any]:
        """Get a summary of the last build.

        Returns:
            Dictionary with sample size, strata, variants and warning count.
        """
        if not self._is_fitted:
            raise ValueError("Table has not been built. Call fit() first.")
        return {**self._stats, "is_fitted": self._is_fitted}

    @property
    def warnings(self) -> List[str]:
        """Advisories and degraded comparisons from the last build."""
        return list(self._warnings)

    @property
    def is_fitted(self) -> bool:
        """Whether a table has been built."""
        return self._is_fitted


def summarize(
    df: Union[pd.DataFrame, SparkDataFrame],
    config: Optional[SummaryConfig] = None,
    statistics: Optional[Mapping[str, StatisticFunction]] = None,
    tests: Optional[Mapping[str, ComparisonFunction]] = None,
    **kwargs: Any,
) -> TableModel:
    """Build a summary table in one call.

    Keyword arguments are passed to ``SummaryTable.fit``.

    Examples:
        >>> table = summarize(df, by="am", label={"mpg": "Miles per gallon"})
        >>> table.row("mpg").cells
    """
    return SummaryTable(config, statistics=statistics, tests=tests).fit(df, **kwargs).table
