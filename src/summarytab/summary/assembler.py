"""Table assembly: merge per-column summaries into a TableModel."""

from typing import Dict, List, Mapping, Optional, Sequence

from summarytab.core.config import DEFAULT_CONFIG, SummaryConfig
from summarytab.statistics.classifier import ColumnMetadata, Variant
from summarytab.statistics.comparator import ComparisonResult
from summarytab.summary.stratifier import Stratum
from summarytab.summary.table import (
    ROW_LABEL,
    ROW_LEVEL,
    ROW_MISSING,
    SummaryCell,
    TableModel,
    TableRow,
)


def _cells_by_stratum(cells: Sequence[SummaryCell]) -> Dict[str, str]:
    return {cell.stratum: cell.text for cell in cells}


def _level_label(level: object) -> str:
    text = str(level)
    return text if text.strip() else repr(level)


def _level_order(cells: Sequence[SummaryCell]) -> List[object]:
    levels: List[object] = []
    for cell in cells:
        if not cell.missing_row and cell.level is not None and cell.level not in levels:
            levels.append(cell.level)
    return levels


def _variable_rows(
    meta: ColumnMetadata,
    variant: Variant,
    cells: Sequence[SummaryCell],
    comparison: Optional[ComparisonResult],
    n_nonmissing: Optional[int],
    config: SummaryConfig,
) -> List[TableRow]:
    label = meta.display_label
    p_value = comparison.p_value if comparison is not None else None
    test_name = comparison.test_name if comparison is not None else None

    value_cells = [c for c in cells if not c.missing_row]
    missing_cells = [c for c in cells if c.missing_row]
    rows: List[TableRow] = []

    if variant == Variant.CONTINUOUS:
        rows.append(TableRow(
            variable=meta.name, label=label, row_type=ROW_LABEL,
            cells=_cells_by_stratum(value_cells),
            n=n_nonmissing, p_value=p_value, test_name=test_name,
        ))
    elif config.categorical_inline:
        inline: Dict[str, List[str]] = {}
        for level in _level_order(value_cells):
            for cell in value_cells:
                if cell.level == level:
                    inline.setdefault(cell.stratum, []).append(f"{level}: {cell.text}")
        rows.append(TableRow(
            variable=meta.name, label=label, row_type=ROW_LABEL,
            cells={stratum: "; ".join(parts) for stratum, parts in inline.items()},
            n=n_nonmissing, p_value=p_value, test_name=test_name,
        ))
    else:
        rows.append(TableRow(
            variable=meta.name, label=label, row_type=ROW_LABEL, cells={},
            n=n_nonmissing, p_value=p_value, test_name=test_name,
        ))
        for level in _level_order(value_cells):
            rows.append(TableRow(
                variable=meta.name, label=_level_label(level), row_type=ROW_LEVEL, level=level,
                cells=_cells_by_stratum([c for c in value_cells if c.level == level]),
            ))

    if missing_cells:
        rows.append(TableRow(
            variable=meta.name, label=config.missing_text, row_type=ROW_MISSING,
            cells=_cells_by_stratum(missing_cells),
        ))
    return rows


def assemble(
    metadata: Sequence[ColumnMetadata],
    variants: Mapping[str, Variant],
    cells: Mapping[str, Sequence[SummaryCell]],
    comparisons: Mapping[str, Optional[ComparisonResult]],
    strata: Sequence[Stratum],
    config: SummaryConfig = DEFAULT_CONFIG,
    n_nonmissing: Optional[Mapping[str, int]] = None,
    by: Optional[str] = None,
    by_label: Optional[str] = None,
) -> TableModel:
    """Build the table model.

    Rows follow the order of ``metadata``. Continuous columns produce one
    row; categorical columns a label row plus one row per level, or a single
    row with an inline level list when ``config.categorical_inline``. A
    missing-value row is added whenever missing cells were computed.

    Args:
        metadata: Column metadata in output order.
        variants: Variant per column.
        cells: Summary cells per column.
        comparisons: Comparison result per column (None for blank p-values).
        strata: Strata used to compute the cells.
        config: Layout options.
        n_nonmissing: Non-missing count per column for the N column.
        by: Grouping column.
        by_label: Display label of the grouping column.

    Returns:
        The assembled TableModel.
    """
    n_nonmissing = n_nonmissing or {}
    rows: List[TableRow] = []
    for meta in metadata:
        rows.extend(_variable_rows(
            meta,
            variants[meta.name],
            cells.get(meta.name, []),
            comparisons.get(meta.name),
            n_nonmissing.get(meta.name),
            config,
        ))

    group_strata = [s for s in strata if not s.is_overall] if by is not None else list(strata)
    has_overall = by is not None and any(s.is_overall for s in strata)
    return TableModel(
        rows=rows,
        strata=[s.name for s in group_strata],
        stratum_sizes={s.name: s.n for s in strata},
        by=by,
        by_label=by_label,
        has_overall=has_overall,
        has_n=config.add_n,
        has_p_value=config.add_p and by is not None,
        has_header_n=config.add_header_n,
        pvalue_digits=config.pvalue_digits,
        missing_placeholder=config.missing_placeholder,
    )
