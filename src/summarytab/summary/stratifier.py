"""Row partitioning by a grouping column."""

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

import pandas as pd
from loguru import logger

from summarytab.core.exceptions import SpecError


OVERALL = "Overall"


@dataclass
class Stratum:
    """Rows of the dataset belonging to one grouping level (or all rows).

    The stratum keeps a boolean mask over the source frame instead of a
    filtered copy; column values are selected on demand.

    Attributes:
        name: Display name of the stratum.
        source: The full dataset.
        mask: Boolean Series aligned with ``source`` selecting the rows.
        level: Grouping level (None for the Overall stratum).
        is_overall: Whether this is the pooled, unfiltered stratum.
    """
    name: str
    source: pd.DataFrame
    mask: pd.Series
    level: Any = None
    is_overall: bool = False

    @property
    def n(self) -> int:
        """Number of rows in the stratum."""
        return int(self.mask.sum())

    def values(self, column: str) -> pd.Series:
        """Values of ``column`` restricted to this stratum."""
        return self.source[column][self.mask]


def _all_rows(df: pd.DataFrame) -> pd.Series:
    return pd.Series(True, index=df.index)


def grouping_levels(group: pd.Series, levels: Optional[Sequence[Any]] = None) -> List[Any]:
    """Ordered levels of a grouping column.

    Declared levels win, then pandas categorical order, then first occurrence.
    """
    if levels is not None:
        return list(levels)
    if isinstance(group.dtype, pd.CategoricalDtype):
        return list(group.cat.categories)
    return list(pd.unique(group.dropna()))


def stratify(
    df: pd.DataFrame,
    by: Optional[str] = None,
    include_overall: bool = False,
    levels: Optional[Sequence[Any]] = None,
) -> List[Stratum]:
    """Partition rows by the levels of a grouping column.

    Args:
        df: Input pandas DataFrame.
        by: Grouping column. Without it a single stratum holds all rows.
        include_overall: Append an Overall stratum covering the full dataset,
            including rows whose grouping value is missing.
        levels: Declared level order of the grouping column. Declared levels
            absent from the data produce empty strata.

    Returns:
        Strata in level order, followed by Overall when requested.

    Raises:
        SpecError: If two levels share a display name, or a level is named
            Overall while the Overall stratum is requested.
    """
    if by is None:
        return [Stratum(name=OVERALL, source=df, mask=_all_rows(df), is_overall=True)]

    group = df[by]
    n_missing = int(group.isna().sum())
    if n_missing:
        logger.debug("Dropping {} rows with missing '{}' from stratified columns", n_missing, by)

    strata = [
        Stratum(name=str(level), source=df, mask=(group == level).fillna(False).astype(bool), level=level)
        for level in grouping_levels(group, levels)
    ]

    names = [s.name for s in strata]
    duplicated = sorted({name for name in names if names.count(name) > 1})
    if duplicated:
        raise SpecError(f"Levels of '{by}' share the display names {duplicated}; recode them first")
    if include_overall and OVERALL in names:
        raise SpecError(
            f"'{by}' has a level named '{OVERALL}', which clashes with the Overall column"
        )

    if include_overall:
        strata.append(Stratum(name=OVERALL, source=df, mask=_all_rows(df), is_overall=True))
    return strata
