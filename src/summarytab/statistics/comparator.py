"""Cross-stratum comparison tests for summary table columns.

Default test selection:
    - continuous, 2 strata: Wilcoxon rank-sum (Mann-Whitney U, two-sided)
    - continuous, >2 strata: Kruskal-Wallis
    - categorical: Pearson chi-square without continuity correction. When any
      expected cell count is below ``config.exact_threshold`` (default 5) a
      2x2 table falls back to Fisher's exact test and larger tables to a
      Monte-Carlo permutation chi-square.

The Monte-Carlo test draws ``config.n_permutations`` tables with fixed
margins from a generator seeded with ``config.seed``. Without a seed its
p-value is not reproducible between runs.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple, Union
import math

import numpy as np
import pandas as pd
from scipy import stats

from summarytab.core.config import DEFAULT_CONFIG, SummaryConfig
from summarytab.core.exceptions import SpecError, TestError
from summarytab.statistics.classifier import Variant


# (strata, column, grouping column) -> (statistic, p_value)
ComparisonFunction = Callable[[Dict[str, pd.Series], Optional[str], Optional[str]], Tuple[Any, Any]]


@dataclass
class ComparisonResult:
    """Result of a cross-stratum comparison for one column.

    Attributes:
        test_name: Identifier of the test that produced the result.
        statistic: Test statistic (None when the test has none, e.g. Fisher).
        p_value: Two-sided p-value.
    """
    test_name: str
    statistic: Optional[float]
    p_value: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary."""
        return {
            "test_name": self.test_name,
            "statistic": self.statistic,
            "p_value": self.p_value,
        }


class ComparisonRegistry:
    """User-supplied comparison tests, referenced by name in per-column overrides."""

    def __init__(self, tests: Optional[Mapping[str, ComparisonFunction]] = None) -> None:
        self._tests: Dict[str, ComparisonFunction] = {}
        for name, func in (tests or {}).items():
            self.register(name, func)

    def register(self, name: str, func: ComparisonFunction) -> None:
        """Register ``func`` under ``name``; built-in test names cannot be shadowed."""
        if not isinstance(name, str) or not name.strip():
            raise SpecError(f"Test name must be a non-empty string, got {name!r}")
        if name in BUILTIN_TESTS:
            raise SpecError(f"Test name '{name}' shadows a built-in test")
        if not callable(func):
            raise SpecError(f"Test '{name}' must be callable, got {type(func).__name__}")
        self._tests[name] = func

    def get(self, name: str) -> ComparisonFunction:
        try:
            return self._tests[name]
        except KeyError:
            raise SpecError(f"Unknown comparison test '{name}'") from None

    def __contains__(self, name: object) -> bool:
        return name in self._tests

    def __iter__(self) -> Iterator[str]:
        return iter(self._tests)


# ---------------------------------------------------------
# Continuous tests
# ---------------------------------------------------------

def _numeric_groups(groups: Mapping[str, pd.Series]) -> List[np.ndarray]:
    return [
        pd.to_numeric(values, errors="coerce").dropna().to_numpy(dtype=np.float64)
        for values in groups.values()
    ]


def _require_two(arrays: List[np.ndarray], test_name: str) -> None:
    if len(arrays) != 2:
        raise TestError(f"{test_name} compares exactly 2 strata, found {len(arrays)}")


def _wilcox(groups: Mapping[str, pd.Series], config: SummaryConfig) -> Tuple[Optional[float], float]:
    arrays = _numeric_groups(groups)
    _require_two(arrays, "Wilcoxon rank-sum test")
    a, b = arrays
    if a.size == 0 or b.size == 0:
        raise TestError("Wilcoxon rank-sum test needs numeric values in both strata")
    if np.concatenate([a, b]).min() == np.concatenate([a, b]).max():
        raise TestError("Wilcoxon rank-sum test is undefined when all values are identical")
    result = stats.mannwhitneyu(a, b, alternative="two-sided")
    return float(result.statistic), float(result.pvalue)


def _t_test(groups: Mapping[str, pd.Series], config: SummaryConfig) -> Tuple[Optional[float], float]:
    arrays = _numeric_groups(groups)
    _require_two(arrays, "Welch t-test")
    a, b = arrays
    if a.size < 2 or b.size < 2:
        raise TestError("Welch t-test needs at least 2 observations per stratum")
    if np.var(a, ddof=1) == 0 and np.var(b, ddof=1) == 0:
        raise TestError("Welch t-test is undefined when both strata have zero variance")
    result = stats.ttest_ind(a, b, equal_var=False)
    return float(result.statistic), float(result.pvalue)


def _kruskal(groups: Mapping[str, pd.Series], config: SummaryConfig) -> Tuple[Optional[float], float]:
    arrays = _numeric_groups(groups)
    try:
        result = stats.kruskal(*arrays)
    except ValueError as exc:
        raise TestError(f"Kruskal-Wallis test failed: {exc}") from exc
    return float(result.statistic), float(result.pvalue)


def _anova(groups: Mapping[str, pd.Series], config: SummaryConfig) -> Tuple[Optional[float], float]:
    arrays = _numeric_groups(groups)
    if sum(a.size for a in arrays) <= len(arrays):
        raise TestError("One-way ANOVA needs more observations than strata")
    if all(a.size < 2 or np.var(a, ddof=1) == 0 for a in arrays):
        raise TestError("One-way ANOVA is undefined when all strata have zero variance")
    result = stats.f_oneway(*arrays)
    return float(result.statistic), float(result.pvalue)


# ---------------------------------------------------------
# Categorical tests
# ---------------------------------------------------------

def contingency_table(groups: Mapping[str, pd.Series]) -> np.ndarray:
    """Levels x strata count table; empty rows and columns are dropped."""
    levels: List[Any] = []
    for values in groups.values():
        for level in pd.unique(values.dropna()):
            if level not in levels:
                levels.append(level)

    table = np.array(
        [[int((values.dropna() == level).sum()) for values in groups.values()] for level in levels],
        dtype=np.int64,
    ).reshape(len(levels), len(groups))
    table = table[table.sum(axis=1) > 0]
    table = table[:, table.sum(axis=0) > 0]
    if table.shape[0] < 2 or table.shape[1] < 2:
        raise TestError(
            f"Association tests need at least a 2x2 table, found {table.shape[0]}x{table.shape[1]}"
        )
    return table


def _chisq_statistic(table: np.ndarray) -> Tuple[float, float, np.ndarray]:
    statistic, p_value, _, expected = stats.chi2_contingency(table, correction=False)
    return float(statistic), float(p_value), expected


def _chisq(groups: Mapping[str, pd.Series], config: SummaryConfig) -> Tuple[Optional[float], float]:
    statistic, p_value, _ = _chisq_statistic(contingency_table(groups))
    return statistic, p_value


def _fisher(groups: Mapping[str, pd.Series], config: SummaryConfig) -> Tuple[Optional[float], float]:
    table = contingency_table(groups)
    if table.shape != (2, 2):
        raise TestError(f"Fisher's exact test needs a 2x2 table, found {table.shape[0]}x{table.shape[1]}")
    _, p_value = stats.fisher_exact(table)
    return None, float(p_value)


def _chisq_monte_carlo(groups: Mapping[str, pd.Series], config: SummaryConfig) -> Tuple[Optional[float], float]:
    table = contingency_table(groups)
    observed, _, expected = _chisq_statistic(table)
    n_rows, n_cols = table.shape

    # Expand the table to one (row, column) pair per observation
    row_labels = np.repeat(np.arange(n_rows), table.sum(axis=1))
    col_labels = np.concatenate(
        [np.repeat(np.arange(n_cols), table[i]) for i in range(n_rows)]
    )

    rng = np.random.default_rng(config.seed)
    exceed = 0
    tolerance = 1e-7 * max(observed, 1.0)
    for _ in range(config.n_permutations):
        permuted = rng.permutation(col_labels)
        simulated = np.bincount(
            row_labels * n_cols + permuted, minlength=n_rows * n_cols
        ).reshape(n_rows, n_cols)
        statistic = float(((simulated - expected) ** 2 / expected).sum())
        if statistic >= observed - tolerance:
            exceed += 1

    p_value = (exceed + 1) / (config.n_permutations + 1)
    return observed, p_value


BUILTIN_TESTS: Dict[str, Callable[[Mapping[str, pd.Series], SummaryConfig], Tuple[Optional[float], float]]] = {
    "wilcox": _wilcox,
    "t_test": _t_test,
    "kruskal": _kruskal,
    "anova": _anova,
    "chisq": _chisq,
    "fisher": _fisher,
    "chisq_mc": _chisq_monte_carlo,
}


def default_test(variant: Variant, n_strata: int) -> str:
    """Built-in test used when no override is given."""
    if variant == Variant.CONTINUOUS:
        return "wilcox" if n_strata == 2 else "kruskal"
    return "chisq"


def _categorical_default(groups: Mapping[str, pd.Series], config: SummaryConfig) -> ComparisonResult:
    table = contingency_table(groups)
    statistic, p_value, expected = _chisq_statistic(table)
    if expected.min() >= config.exact_threshold:
        return ComparisonResult("chisq", statistic, p_value)

    # Small expected counts
    name = "fisher" if table.shape == (2, 2) else "chisq_mc"
    statistic, p_value = BUILTIN_TESTS[name](groups, config)
    return ComparisonResult(name, statistic, p_value)


def _checked(result: ComparisonResult) -> ComparisonResult:
    if result.p_value is None or math.isnan(result.p_value):
        raise TestError(f"{result.test_name} produced no p-value")
    if not 0.0 <= result.p_value <= 1.0:
        raise TestError(f"{result.test_name} produced an invalid p-value {result.p_value}")
    return result


def _run_user_test(
    name: str,
    func: ComparisonFunction,
    groups: Dict[str, pd.Series],
    column: Optional[str],
    by: Optional[str],
) -> ComparisonResult:
    try:
        output = func(groups, column, by)
    except (SpecError, TestError):
        raise
    except Exception as exc:
        raise TestError(f"Comparison test '{name}' failed on column '{column}': {exc}") from exc

    try:
        statistic, p_value = output
        statistic = None if statistic is None else float(statistic)
        p_value = None if p_value is None else float(p_value)
    except (TypeError, ValueError) as exc:
        raise TestError(
            f"Comparison test '{name}' must return numeric (statistic, p_value), got {output!r}"
        ) from exc
    return _checked(ComparisonResult(name, statistic, p_value))


def compare(
    groups: Mapping[str, pd.Series],
    variant: Variant,
    test: Union[str, ComparisonFunction, None] = None,
    column: Optional[str] = None,
    by: Optional[str] = None,
    config: SummaryConfig = DEFAULT_CONFIG,
    tests: Optional[ComparisonRegistry] = None,
) -> ComparisonResult:
    """Compare a column across strata.

    Args:
        groups: Stratum name -> column values in that stratum (Overall excluded).
        variant: How the column is summarized; drives the default test.
        test: Built-in test id, a name registered in ``tests``, a callable
            ``(groups, column, by) -> (statistic, p_value)``, or None for the
            default.
        column: Column name, passed to user tests and used in messages.
        by: Grouping column name, passed to user tests.
        config: Exact-test threshold, permutations and seed.
        tests: Registry of user tests.

    Returns:
        ComparisonResult with the test actually used.

    Raises:
        SpecError: If ``test`` names no known test.
        TestError: If the test cannot be computed for this column.
    """
    if test is not None and not isinstance(test, str) and not callable(test):
        raise SpecError(f"Comparison test must be a name or a callable, got {type(test).__name__}")

    non_empty = {name: values for name, values in groups.items() if values.notna().any()}

    if isinstance(test, str) and test not in BUILTIN_TESTS and (tests is None or test not in tests):
        raise SpecError(f"Unknown comparison test '{test}'")

    if len(non_empty) < 2:
        raise TestError(
            f"Column '{column}' has {len(non_empty)} non-empty strata; at least 2 are needed"
        )

    if callable(test):
        name = getattr(test, "__name__", "custom")
        return _run_user_test(name, test, dict(non_empty), column, by)

    if isinstance(test, str) and test not in BUILTIN_TESTS:
        return _run_user_test(test, tests.get(test), dict(non_empty), column, by)

    if test is None:
        if variant == Variant.CATEGORICAL:
            return _checked(_categorical_default(non_empty, config))
        test = default_test(variant, len(non_empty))

    statistic, p_value = BUILTIN_TESTS[test](non_empty, config)
    return _checked(ComparisonResult(test, statistic, p_value))
