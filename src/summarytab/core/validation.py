"""Validation utilities for summarytab."""

from typing import Iterable, Mapping, Optional

import pandas as pd


def validate_dataset(
    df: pd.DataFrame,
    columns: Optional[Iterable[str]] = None,
    by: Optional[str] = None,
) -> None:
    """Validate that the dataset can be summarized.

    Args:
        df: Input pandas DataFrame.
        columns: Columns that will be summarized.
        by: Optional grouping column.

    Raises:
        TypeError: If df is not a pandas DataFrame.
        ValueError: If a requested column is missing, duplicated, or the
            grouping column is also summarized.
    """
    if not isinstance(df, pd.DataFrame):
        raise TypeError("df must be a pandas DataFrame")

    if df.columns.duplicated().any():
        duplicated = df.columns[df.columns.duplicated()].tolist()
        raise ValueError(f"Column names must be unique, found duplicates: {duplicated}")

    if by is not None and by not in df.columns:
        raise ValueError(f"Grouping column '{by}' not found in DataFrame")

    if columns is not None:
        missing = [c for c in columns if c not in df.columns]
        if missing:
            raise ValueError(f"Columns not found in DataFrame: {missing}")
        if by is not None and by in columns:
            raise ValueError(f"Grouping column '{by}' cannot also be summarized")


def validate_column_mapping(mapping: Optional[Mapping[str, object]], name: str, columns: Iterable[str]) -> None:
    """Check that a per-column option mapping only names known columns.

    Args:
        mapping: Option mapping keyed by column name (e.g. labels).
        name: Name of the option, used in the error message.
        columns: Valid column names.

    Raises:
        ValueError: If the mapping names an unknown column.
    """
    if not mapping:
        return
    known = set(columns)
    unknown = [key for key in mapping if key not in known]
    if unknown:
        raise ValueError(f"'{name}' refers to unknown columns: {unknown}")


def validate_survival_schema(df: pd.DataFrame, duration_col: str, event_col: str) -> None:
    """Validate duration and event columns for Kaplan-Meier summaries.

    Args:
        df: Input pandas DataFrame.
        duration_col: Name of the duration column.
        event_col: Name of the event column.

    Raises:
        ValueError: If required columns are missing or have invalid values.
    """
    if duration_col not in df.columns:
        raise ValueError(f"Duration column '{duration_col}' not found in DataFrame")

    if event_col not in df.columns:
        raise ValueError(f"Event column '{event_col}' not found in DataFrame")

    if not pd.api.types.is_numeric_dtype(df[duration_col]):
        raise ValueError(
            f"Duration column '{duration_col}' must be numeric, found {df[duration_col].dtype}"
        )

    # Validate no negative durations
    min_duration = df[duration_col].min()
    if pd.notna(min_duration) and min_duration < 0:
        raise ValueError(f"Duration values must be non-negative, found min={min_duration}")

    events = df[event_col].dropna()
    if not events.isin([0, 1]).all():
        raise ValueError(f"Event column '{event_col}' must contain only 0 and 1")
