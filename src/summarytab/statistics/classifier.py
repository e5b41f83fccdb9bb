"""Column classification: decide how each column is summarized."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Sequence
import warnings

import pandas as pd

from summarytab.core.exceptions import ClassificationAmbiguity


# Continuous columns with fewer than threshold + margin distinct values trigger an advisory.
AMBIGUITY_MARGIN = 2


class Variant(str, Enum):
    """Summary mode of a column."""
    CATEGORICAL = "categorical"
    CONTINUOUS = "continuous"
    AUTO = "auto"


@dataclass
class ColumnMetadata:
    """Declared information about a dataset column.
    
    Attributes:
        name: Column identifier in the dataset.
        label: Optional display label.
        kind: Declared variant; AUTO lets the classifier decide.
        levels: Optional declared category levels, in display order.
    """
    name: str
    label: Optional[str] = None
    kind: Variant = Variant.AUTO
    levels: Optional[Sequence[Any]] = None
    
    @property
    def display_label(self) -> str:
        """Label shown in the table; falls back to the column name."""
        if self.label is not None and str(self.label).strip():
            return str(self.label)
        return str(self.name)


def _is_categorical_dtype(values: pd.Series) -> bool:
    dtype = values.dtype
    return (
        isinstance(dtype, pd.CategoricalDtype)
        or pd.api.types.is_bool_dtype(dtype)
        or pd.api.types.is_object_dtype(dtype)
        or pd.api.types.is_string_dtype(dtype)
        or not pd.api.types.is_numeric_dtype(dtype)
    )


def classify(
    values: pd.Series,
    metadata: Optional[ColumnMetadata] = None,
    threshold: int = 10,
) -> Variant:
    """Decide whether a column is summarized as categorical or continuous.
    
    Args:
        values: Column values.
        metadata: Declared metadata; an explicit kind always wins.
        threshold: Numeric columns with fewer distinct non-missing values
            than this are categorical. A column with exactly ``threshold``
            distinct values is continuous.
            
    Returns:
        Variant.CATEGORICAL or Variant.CONTINUOUS.
    """
    if metadata is not None and metadata.kind != Variant.AUTO:
        return Variant(metadata.kind)
    
    non_missing = values.dropna()
    if non_missing.empty:
        # Only missingness counts can be reported
        return Variant.CATEGORICAL
    
    if _is_categorical_dtype(values):
        return Variant.CATEGORICAL
    
    n_distinct = non_missing.nunique()
    if n_distinct < threshold:
        return Variant.CATEGORICAL
    
    if n_distinct < threshold + AMBIGUITY_MARGIN:
        name = metadata.name if metadata is not None else values.name
        warnings.warn(
            f"Column '{name}' has {n_distinct} distinct values, close to the "
            f"categorical threshold of {threshold}; summarizing as continuous.",
            ClassificationAmbiguity,
            stacklevel=2,
        )
    return Variant.CONTINUOUS


def category_levels(values: pd.Series, metadata: Optional[ColumnMetadata] = None) -> List[Any]:
    """Ordered category levels of a column.
    
    Declared levels win, then pandas categorical order. Otherwise numeric and
    boolean levels are sorted and other levels keep first-seen order.
    """
    if metadata is not None and metadata.levels is not None:
        return list(metadata.levels)
    
    if isinstance(values.dtype, pd.CategoricalDtype):
        return list(values.cat.categories)
    
    observed = list(pd.unique(values.dropna()))
    if pd.api.types.is_numeric_dtype(values.dtype) or pd.api.types.is_bool_dtype(values.dtype):
        try:
            return sorted(observed)
        except TypeError:
            return observed
    return observed
