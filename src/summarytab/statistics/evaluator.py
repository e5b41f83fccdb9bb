"""Statistic evaluation for summary table cells.

A statistic expression is a template such as ``"{median} ({p25}, {p75})"``.
Tokens are resolved against a closed set of built-in statistics plus any
functions registered in a ``StatisticRegistry``; the computed values are
then substituted back into the template, left to right.

Percentiles use linear interpolation between order statistics
(``numpy.percentile(method="linear")``, Hyndman & Fan type 7). For the values
1..10 this gives median 5.5, p25 3.25 and p75 7.75.
"""

from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional
import math
import re

import numpy as np
import pandas as pd
from loguru import logger

from summarytab.core.config import DEFAULT_CONFIG, SummaryConfig
from summarytab.core.exceptions import SpecError
from summarytab.statistics.classifier import Variant


CATEGORICAL_TOKENS = frozenset({"n", "N", "p"})
CONTINUOUS_TOKENS = frozenset({"median", "mean", "sd", "var", "min", "max"})
MISSING_TOKENS = frozenset({"N_obs", "N_miss", "N_nonmiss", "p_miss", "p_nonmiss"})

COUNT_TOKENS = frozenset({"n", "N", "N_obs", "N_miss", "N_nonmiss"})
PERCENT_TOKENS = frozenset({"p", "p_miss", "p_nonmiss"})

DEFAULT_EXPRESSIONS = {
    Variant.CONTINUOUS: "{median} ({p25}, {p75})",
    Variant.CATEGORICAL: "{n} ({p}%)",
}

# Wildcard keys accepted in statistic mappings
WILDCARDS = {
    Variant.CATEGORICAL: "all_categorical",
    Variant.CONTINUOUS: "all_continuous",
}

_TOKEN_PATTERN = re.compile(r"\{([^{}]*)\}")
_PERCENTILE_PATTERN = re.compile(r"^p(\d{1,3})$")
_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


StatisticFunction = Callable[[pd.Series], Any]


class StatisticRegistry:
    """Named functions usable as statistic tokens.

    Each function receives the non-missing values of a column (within one
    stratum) and returns a scalar.

    Examples:
        >>> registry = StatisticRegistry()
        >>> registry.register("cv", lambda x: x.std() / x.mean())
        >>> evaluate(df["mpg"], Variant.CONTINUOUS, "{cv}", functions=registry)
    """

    def __init__(self, functions: Optional[Mapping[str, StatisticFunction]] = None) -> None:
        self._functions: Dict[str, StatisticFunction] = {}
        for name, func in (functions or {}).items():
            self.register(name, func)

    def register(self, name: str, func: StatisticFunction) -> None:
        """Register ``func`` under ``name``.

        Raises:
            SpecError: If the name is not an identifier, shadows a built-in
                token, or func is not callable.
        """
        if not isinstance(name, str) or not _NAME_PATTERN.match(name):
            raise SpecError(f"Statistic name must be an identifier, got {name!r}")
        if is_builtin_token(name):
            raise SpecError(f"Statistic name '{name}' shadows a built-in statistic")
        if not callable(func):
            raise SpecError(f"Statistic '{name}' must be callable, got {type(func).__name__}")
        self._functions[name] = func

    def get(self, name: str) -> StatisticFunction:
        try:
            return self._functions[name]
        except KeyError:
            raise SpecError(f"Unknown statistic function '{name}'") from None

    def __contains__(self, name: object) -> bool:
        return name in self._functions

    def __iter__(self) -> Iterator[str]:
        return iter(self._functions)

    def __len__(self) -> int:
        return len(self._functions)


def is_builtin_token(token: str) -> bool:
    """Whether ``token`` names a built-in statistic of any variant."""
    return (
        token in CATEGORICAL_TOKENS
        or token in CONTINUOUS_TOKENS
        or token in MISSING_TOKENS
        or _PERCENTILE_PATTERN.match(token) is not None
    )


def parse_expression(expression: str) -> List[str]:
    """Extract the tokens of a statistic expression, left to right.

    Args:
        expression: Template string, e.g. ``"{mean} ({sd})"``.

    Returns:
        Token names in order of appearance (duplicates preserved).

    Raises:
        SpecError: If the expression is not a string, has an empty token or
            unbalanced braces, or contains no token at all.
    """
    if not isinstance(expression, str):
        raise SpecError(f"Statistic expression must be a string, got {type(expression).__name__}")

    tokens = _TOKEN_PATTERN.findall(expression)
    leftover = _TOKEN_PATTERN.sub("", expression)
    if "{" in leftover or "}" in leftover:
        raise SpecError(f"Unbalanced braces in statistic expression {expression!r}")
    if not tokens:
        raise SpecError(f"Statistic expression {expression!r} contains no statistic")

    for token in tokens:
        if not token.strip():
            raise SpecError(f"Empty statistic token in expression {expression!r}")
    return [token.strip() for token in tokens]


def validate_expression(
    expression: str,
    variant: Variant,
    functions: Optional[StatisticRegistry] = None,
) -> List[str]:
    """Parse an expression and check every token is valid for ``variant``.

    Raises:
        SpecError: On unknown tokens, tokens of the other variant, or
            percentiles outside [0, 100].
    """
    tokens = parse_expression(expression)
    for token in tokens:
        if token in MISSING_TOKENS:
            continue
        if functions is not None and token in functions:
            continue
        if variant == Variant.CATEGORICAL:
            if token in CATEGORICAL_TOKENS:
                continue
        else:
            if token in CONTINUOUS_TOKENS:
                continue
            match = _PERCENTILE_PATTERN.match(token)
            if match:
                if int(match.group(1)) > 100:
                    raise SpecError(f"Percentile '{token}' is outside [0, 100]")
                continue
        if is_builtin_token(token):
            raise SpecError(
                f"Statistic '{token}' is not available for {variant.value} columns "
                f"(expression {expression!r})"
            )
        raise SpecError(f"Unknown statistic '{token}' in expression {expression!r}")
    return tokens


def resolve_expression(
    column: str,
    variant: Variant,
    statistic: Optional[Mapping[str, str]] = None,
) -> str:
    """Pick the expression for a column: explicit key, then wildcard, then default."""
    statistic = statistic or {}
    if column in statistic:
        return statistic[column]
    wildcard = WILDCARDS.get(variant)
    if wildcard in statistic:
        return statistic[wildcard]
    return DEFAULT_EXPRESSIONS[variant]


def _missing_counts(values: pd.Series) -> Dict[str, Any]:
    n_obs = int(len(values))
    n_miss = int(values.isna().sum())
    n_nonmiss = n_obs - n_miss
    return {
        "N_obs": n_obs,
        "N_miss": n_miss,
        "N_nonmiss": n_nonmiss,
        "p_miss": n_miss / n_obs * 100 if n_obs else None,
        "p_nonmiss": n_nonmiss / n_obs * 100 if n_obs else None,
    }


def _continuous_statistic(token: str, array: np.ndarray) -> Optional[float]:
    if array.size == 0:
        return None
    if token == "median":
        return float(np.median(array))
    if token == "mean":
        return float(np.mean(array))
    if token == "sd":
        return float(np.std(array, ddof=1)) if array.size > 1 else None
    if token == "var":
        return float(np.var(array, ddof=1)) if array.size > 1 else None
    if token == "min":
        return float(np.min(array))
    if token == "max":
        return float(np.max(array))

    # Validated upstream: p<NN>
    q = int(_PERCENTILE_PATTERN.match(token).group(1))
    return float(np.percentile(array, q, method="linear"))


def _apply_function(name: str, func: StatisticFunction, non_missing: pd.Series) -> Any:
    try:
        return func(non_missing)
    except Exception as exc:
        # A failing user function degrades this cell only
        logger.warning(
            "Statistic function '{}' failed on column '{}': {}", name, non_missing.name, exc
        )
        return None


def evaluate(
    values: pd.Series,
    variant: Variant,
    expression: str,
    level: Any = None,
    config: SummaryConfig = DEFAULT_CONFIG,
    functions: Optional[StatisticRegistry] = None,
) -> Dict[str, Any]:
    """Compute the statistics named in ``expression`` for one column subset.

    Missing values are excluded from every statistic and counted by the
    missingness tokens, which are always included in the result.

    Args:
        values: Column values within one stratum (may contain missing).
        variant: How the column is summarized.
        expression: Statistic expression template.
        level: Category level counted by ``n`` and ``p`` (categorical only).
        config: Formatting and rounding options.
        functions: Registry of user statistic functions.

    Returns:
        Mapping of token name to raw value. Statistics that cannot be
        computed (e.g. no non-missing values) map to None.

    Raises:
        SpecError: If the expression is invalid for the variant.
    """
    tokens = validate_expression(expression, variant, functions)
    result = _missing_counts(values)
    non_missing = values.dropna()

    if variant == Variant.CATEGORICAL:
        n_total = int(non_missing.size)
        result["N"] = n_total
        if level is None:
            # Nothing to count, e.g. a column without observed levels
            result["n"] = None
            result["p"] = None
        else:
            n_level = int((non_missing == level).sum())
            result["n"] = n_level
            result["p"] = round(n_level / n_total * 100, config.percent_digits) if n_total else None
        array = None
    else:
        array = pd.to_numeric(non_missing, errors="coerce").dropna().to_numpy(dtype=np.float64)

    for token in tokens:
        if token in result:
            continue
        if functions is not None and token in functions:
            result[token] = (
                _apply_function(token, functions.get(token), non_missing)
                if not non_missing.empty else None
            )
        elif array is not None:
            result[token] = _continuous_statistic(token, array)
    return result


def format_number(value: Any, digits: int, placeholder: str = "") -> str:
    """Format a scalar with fixed decimals; missing values become ``placeholder``."""
    if value is None:
        return placeholder
    if isinstance(value, (bool, np.bool_)):
        return str(bool(value))
    if isinstance(value, (int, np.integer)):
        return str(int(value))
    if isinstance(value, (float, np.floating)):
        if math.isnan(value):
            return placeholder
        return f"{float(value):.{digits}f}"
    return str(value)


def format_value(token: str, value: Any, config: SummaryConfig = DEFAULT_CONFIG) -> str:
    """Format one computed statistic according to its kind."""
    if token in COUNT_TOKENS and value is not None:
        return str(int(value))
    if token in PERCENT_TOKENS:
        return format_number(value, config.percent_digits, config.missing_placeholder)
    return format_number(value, config.digits, config.missing_placeholder)


def format_statistics(
    expression: str,
    values: Mapping[str, Any],
    config: SummaryConfig = DEFAULT_CONFIG,
) -> str:
    """Substitute computed values into the expression template.

    When no token of the expression could be computed, or a level count
    has no observed values to be a share of (``N == 0``), the cell is
    rendered as ``config.missing_placeholder`` rather than a partial template.
    """
    parse_expression(expression)
    tokens = [t.strip() for t in _TOKEN_PATTERN.findall(expression)]
    if all(values.get(t) is None for t in tokens):
        return config.missing_placeholder
    if values.get("N") == 0 and any(t in ("n", "p") for t in tokens):
        return config.missing_placeholder

    def substitute(match: "re.Match[str]") -> str:
        token = match.group(1).strip()
        return format_value(token, values.get(token), config)

    return _TOKEN_PATTERN.sub(substitute, expression)
