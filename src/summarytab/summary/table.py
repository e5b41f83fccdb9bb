"""Table model handed to renderers."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd

from summarytab.summary.stratifier import OVERALL


ROW_LABEL = "label"
ROW_LEVEL = "level"
ROW_MISSING = "missing"

N_COLUMN = "N"
P_VALUE_COLUMN = "p-value"
LABEL_COLUMN = "Characteristic"


@dataclass(frozen=True)
class SummaryCell:
    """Formatted statistic for one (column, stratum, level).

    Attributes:
        column: Summarized column.
        stratum: Stratum name.
        text: Formatted statistic.
        values: Raw values used to format ``text``.
        level: Category level, None for continuous and missing cells.
        missing_row: Whether the cell counts missing values.
    """
    column: str
    stratum: str
    text: str
    values: Mapping[str, Any] = field(default_factory=dict)
    level: Any = None
    missing_row: bool = False


@dataclass(frozen=True)
class TableRow:
    """One row of the summary table."""
    variable: str
    label: str
    row_type: str
    cells: Mapping[str, str]
    level: Any = None
    n: Optional[int] = None
    p_value: Optional[float] = None
    test_name: Optional[str] = None


def format_pvalue(p_value: Optional[float], digits: int = 3, placeholder: str = "") -> str:
    """Format a p-value, collapsing values below the display precision."""
    if p_value is None:
        return placeholder
    floor = 10 ** -digits
    if p_value < floor:
        return f"<{floor:.{digits}f}"
    return f"{p_value:.{digits}f}"


@dataclass
class TableModel:
    """Row/column grid of a summary table.

    Columns are always ordered: label, strata (in stratifier order), Overall,
    N, p-value. The optional columns only appear when enabled.

    Attributes:
        rows: Table rows in variable order.
        strata: Names of the stratum columns, excluding Overall.
        stratum_sizes: Rows per stratum (Overall included when present).
        by: Grouping column, if any.
        by_label: Display label of the grouping column.
        has_overall: Whether an Overall column is present.
        has_n: Whether an N column is present.
        has_p_value: Whether a p-value column is present.
        has_header_n: Whether headers show the stratum size.
        pvalue_digits: Decimals used when formatting p-values.
        missing_placeholder: Text for blank cells.
    """
    rows: List[TableRow]
    strata: List[str]
    stratum_sizes: Dict[str, int]
    by: Optional[str] = None
    by_label: Optional[str] = None
    has_overall: bool = False
    has_n: bool = False
    has_p_value: bool = False
    has_header_n: bool = True
    pvalue_digits: int = 3
    missing_placeholder: str = ""

    @property
    def value_columns(self) -> List[str]:
        """Stratum columns followed by Overall when present."""
        columns = list(self.strata)
        if self.has_overall:
            columns.append(OVERALL)
        return columns

    @property
    def columns(self) -> List[str]:
        """All column keys in display order."""
        columns = [LABEL_COLUMN, *self.value_columns]
        if self.has_n:
            columns.append(N_COLUMN)
        if self.has_p_value:
            columns.append(P_VALUE_COLUMN)
        return columns

    @property
    def variables(self) -> List[str]:
        """Summarized variables in row order."""
        seen: List[str] = []
        for row in self.rows:
            if row.variable not in seen:
                seen.append(row.variable)
        return seen

    def header_row(self) -> Dict[str, str]:
        """Column headers, with ``N = <size>`` per stratum when enabled."""
        header = {LABEL_COLUMN: LABEL_COLUMN}
        for name in self.value_columns:
            if self.has_header_n:
                header[name] = f"{name}, N = {self.stratum_sizes[name]}"
            else:
                header[name] = name
        if self.has_n:
            header[N_COLUMN] = N_COLUMN
        if self.has_p_value:
            header[P_VALUE_COLUMN] = P_VALUE_COLUMN
        return header

    def rows_for(self, variable: str) -> List[TableRow]:
        """All rows of one variable."""
        return [row for row in self.rows if row.variable == variable]

    def row(self, variable: str, level: Any = None) -> TableRow:
        """The label row of a variable, or its row for ``level``.

        Raises:
            KeyError: If no such row exists.
        """
        for row in self.rows_for(variable):
            if level is None and row.row_type == ROW_LABEL:
                return row
            if level is not None and row.row_type != ROW_LABEL and row.level == level:
                return row
        raise KeyError(f"No row for variable '{variable}' and level {level!r}")

    def to_records(self) -> List[Dict[str, str]]:
        """Rows as dictionaries of display strings keyed by column."""
        records = []
        for row in self.rows:
            record = {LABEL_COLUMN: row.label}
            for name in self.value_columns:
                record[name] = row.cells.get(name, self.missing_placeholder)
            if self.has_n:
                record[N_COLUMN] = "" if row.n is None else str(row.n)
            if self.has_p_value:
                record[P_VALUE_COLUMN] = format_pvalue(
                    row.p_value, self.pvalue_digits, self.missing_placeholder
                )
            records.append(record)
        return records

    def to_frame(self) -> pd.DataFrame:
        """Display grid as a pandas DataFrame with header labels as columns."""
        header = self.header_row()
        frame = pd.DataFrame(self.to_records(), columns=self.columns)
        return frame.rename(columns=header)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the table model to a dictionary."""
        return {
            "by": self.by,
            "by_label": self.by_label,
            "columns": self.columns,
            "header": self.header_row(),
            "strata": list(self.strata),
            "stratum_sizes": dict(self.stratum_sizes),
            "rows": [
                {
                    "variable": row.variable,
                    "label": row.label,
                    "row_type": row.row_type,
                    "level": row.level,
                    "cells": dict(row.cells),
                    "n": row.n,
                    "p_value": row.p_value,
                    "test_name": row.test_name,
                }
                for row in self.rows
            ],
        }
