"""End-to-end tests for SummaryTable."""

import numpy as np
import pandas as pd
import pytest
from loguru import logger

from summarytab import (
    ClassificationAmbiguity,
    SpecError,
    SummaryConfig,
    SummaryTable,
    summarize,
)
from summarytab.core.exceptions import TestError
from summarytab.summary import OVERALL
from summarytab.summary.table import ROW_LABEL, ROW_LEVEL, ROW_MISSING


def _fmt(values):
    return (
        f"{np.median(values):.1f} "
        f"({np.percentile(values, 25):.1f}, {np.percentile(values, 75):.1f})"
    )


class TestMtcarsScenario:
    """Tests for the mtcars table grouped by transmission."""
    
    def test_grouped_table(self, mtcars):
        """Test strata order, labels and median (IQR) cells."""
        table = SummaryTable().fit(
            mtcars, by="am", label={"mpg": "Miles per gallon", "am": "Automatic/manual"}
        ).table
        
        assert table.strata == ["automatic", "manual"]
        assert table.stratum_sizes == {"automatic": 19, "manual": 13}
        assert table.by_label == "Automatic/manual"
        
        mpg_rows = table.rows_for("mpg")
        assert len(mpg_rows) == 1
        assert mpg_rows[0].label == "Miles per gallon"
        
        automatic = mtcars.loc[mtcars["am"] == "automatic", "mpg"]
        manual = mtcars.loc[mtcars["am"] == "manual", "mpg"]
        assert mpg_rows[0].cells["automatic"] == _fmt(automatic)
        assert mpg_rows[0].cells["manual"] == _fmt(manual)
        assert mpg_rows[0].cells["automatic"].startswith("17.3 (")
        assert mpg_rows[0].cells["manual"].startswith("22.8 (")
    
    def test_categorical_rows(self, mtcars):
        """Test that low-cardinality numeric columns get one row per level."""
        table = SummaryTable().fit(mtcars, by="am").table
        
        assert [r.row_type for r in table.rows_for("cyl")] == [ROW_LABEL, ROW_LEVEL, ROW_LEVEL, ROW_LEVEL]
        assert table.row("cyl", 4).cells == {"automatic": "3 (15.8%)", "manual": "8 (61.5%)"}
        assert table.row("cyl", 8).cells == {"automatic": "12 (63.2%)", "manual": "2 (15.4%)"}
    
    def test_add_p_overall_and_n(self, mtcars):
        """Test p-values, the Overall column and the N column."""
        config = SummaryConfig(add_p=True, add_overall=True, add_n=True, seed=11)
        
        table = SummaryTable(config).fit(mtcars, by="am").table
        
        assert table.columns == ["Characteristic", "automatic", "manual", OVERALL, "N", "p-value"]
        assert table.stratum_sizes[OVERALL] == 32
        assert table.row("mpg").test_name == "wilcox"
        assert 0 < table.row("mpg").p_value < 0.01
        assert table.row("cyl").test_name == "chisq_mc"
        assert table.row("mpg").n == 32
        assert table.row("mpg").cells[OVERALL] == _fmt(mtcars["mpg"])
    
    def test_ungrouped_table(self, mtcars):
        """Test that without a grouping column every column is summarized once."""
        table = summarize(mtcars)
        
        assert table.strata == [OVERALL]
        assert table.has_overall is False
        assert table.variables == ["mpg", "cyl", "am"]
        assert table.row("am", "automatic").cells == {OVERALL: "19 (59.4%)"}


class TestMissingValues:
    """Tests for missing-value handling."""
    
    def test_missing_rows_and_overall(self, trial_data):
        """Test missing rows and that Overall keeps rows with missing groups."""
        config = SummaryConfig(add_overall=True)
        
        table = SummaryTable(config).fit(trial_data, by="trt").table
        
        assert table.strata == ["Drug A", "Drug B"]
        assert table.stratum_sizes == {"Drug A": 6, "Drug B": 5, OVERALL: 12}
        assert [r.label for r in table.rows_for("grade")] == ["grade", "I", "II", "III", "Unknown"]
        missing_age = [r for r in table.rows_for("age") if r.row_type == ROW_MISSING][0]
        assert missing_age.cells == {"Drug A": "0", "Drug B": "1", OVERALL: "1"}
    
    def test_missing_policy_no(self, trial_data):
        """Test that missing rows can be turned off."""
        table = SummaryTable(SummaryConfig(missing="no")).fit(trial_data, by="trt").table
        
        assert all(r.row_type != ROW_MISSING for r in table.rows)
    
    def test_missing_policy_always(self, mtcars):
        """Test that missing rows can be forced for complete columns."""
        table = SummaryTable(SummaryConfig(missing="always", missing_text="Missing")).fit(mtcars, by="am").table
        
        missing_rows = [r for r in table.rows if r.row_type == ROW_MISSING]
        assert [r.variable for r in missing_rows] == ["mpg", "cyl"]
        assert missing_rows[0].label == "Missing"
        assert missing_rows[0].cells == {"automatic": "0", "manual": "0"}
    
    def test_fully_missing_column(self):
        """Test that a column without values reports only missingness."""
        df = pd.DataFrame({"empty": [None] * 4, "g": ["a", "b", "a", "b"]})
        
        table = SummaryTable().fit(df, by="g").table
        
        rows = table.rows_for("empty")
        assert [r.row_type for r in rows] == [ROW_LABEL, ROW_MISSING]
        assert rows[1].cells == {"a": "2", "b": "2"}


class TestComparisonDegrade:
    """Tests for the blank-cell policy of failed comparisons."""
    
    def test_empty_stratum_gives_blank_p_value(self):
        """Test that a comparison with an empty stratum blanks the p-value and continues."""
        df = pd.DataFrame({"x": [1.0, 2.0, 3.0, 4.0], "y": [2.0, 1.0, 5.0, 3.0], "g": ["a"] * 4})
        messages = []
        sink_id = logger.add(lambda msg: messages.append(str(msg)), level="WARNING", format="{message}")
        try:
            estimator = SummaryTable(SummaryConfig(add_p=True)).fit(df, by="g", levels={"g": ["a", "b"]})
        finally:
            logger.remove(sink_id)
        
        table = estimator.table
        assert table.strata == ["a", "b"]
        assert table.row("x").p_value is None
        assert table.row("y").p_value is None
        assert table.to_records()[0]["p-value"] == ""
        assert len(estimator.warnings) == 2
        assert any("Comparison skipped for column 'x'" in m for m in messages)
    
    def test_raise_policy(self):
        """Test that TestError propagates when configured."""
        df = pd.DataFrame({"x": [1.0, 2.0, 3.0], "g": ["a"] * 3})
        config = SummaryConfig(add_p=True, on_test_error="raise")
        
        with pytest.raises(TestError):
            SummaryTable(config).fit(df, by="g", levels={"g": ["a", "b"]})
    
    def test_failing_user_test_is_isolated(self, mtcars):
        """Test that one failing column does not affect the others."""
        def broken(strata, column, by):
            raise RuntimeError("no convergence")
        
        table = SummaryTable(SummaryConfig(add_p=True, seed=1)).fit(
            mtcars, by="am", test={"cyl": broken}
        ).table
        
        assert table.row("cyl").p_value is None
        assert table.row("mpg").p_value is not None
    
    def test_non_numeric_user_test_output_is_isolated(self, mtcars):
        """Test that a user test returning text blanks only its own p-value."""
        estimator = SummaryTable(SummaryConfig(add_p=True, seed=1)).fit(
            mtcars, by="am", test={"cyl": lambda strata, column, by: ("not-a-number", 0.5)}
        )
        
        table = estimator.table
        assert table.row("cyl").p_value is None
        assert table.row("mpg").test_name == "wilcox"
        assert 0 < table.row("mpg").p_value < 0.01
        assert any("must return numeric" in w for w in estimator.warnings)
    
    def test_empty_declared_level_cells_are_blank(self):
        """Test that categorical cells of an empty stratum show the placeholder."""
        df = pd.DataFrame({"x": ["u", "v", "u"], "g": ["a"] * 3})
        
        table = SummaryTable(SummaryConfig(missing_placeholder="-")).fit(
            df, by="g", levels={"g": ["a", "b"]}
        ).table
        
        assert table.row("x", "u").cells == {"a": "2 (66.7%)", "b": "-"}


class TestSpecErrors:
    """Tests for configuration errors."""
    
    def test_unknown_token_aborts_and_keeps_previous_table(self, mtcars):
        """Test that a SpecError leaves the previous table untouched."""
        estimator = SummaryTable().fit(mtcars, by="am")
        previous = estimator.table
        
        with pytest.raises(SpecError, match="meen"):
            estimator.fit(mtcars, by="am", statistic={"mpg": "{meen} ({sd})"})
        
        assert estimator.table is previous
    
    def test_unknown_test_name(self, mtcars):
        """Test that unknown test overrides are rejected up front."""
        with pytest.raises(SpecError, match="Unknown comparison test"):
            SummaryTable().fit(mtcars, by="am", test={"mpg": "wilcoxon"})
    
    def test_unknown_kind(self, mtcars):
        """Test that unknown declared kinds are rejected."""
        with pytest.raises(SpecError, match="ordinal"):
            SummaryTable().fit(mtcars, kind={"cyl": "ordinal"})
    
    def test_group_named_overall_is_rejected(self):
        """Test that a group level cannot take the Overall column's name."""
        df = pd.DataFrame({"g": [OVERALL] * 6 + ["Other"] * 6, "x": [float(i) for i in range(1, 13)]})
        estimator = SummaryTable(SummaryConfig(add_overall=True))
        
        with pytest.raises(SpecError, match="clashes with the Overall column"):
            estimator.fit(df, by="g")
        
        assert estimator.is_fitted is False
        table = SummaryTable().fit(df, by="g").table
        assert table.columns == ["Characteristic", OVERALL, "Other"]
        assert table.row("x").cells[OVERALL] == "3.5 (2.2, 4.8)"
    
    def test_unknown_columns(self, mtcars):
        """Test that options naming unknown columns raise ValueError."""
        with pytest.raises(ValueError, match="unknown columns"):
            SummaryTable().fit(mtcars, label={"hp": "Horsepower"})
        with pytest.raises(ValueError, match="not found"):
            SummaryTable().fit(mtcars, include=["hp"])
    
    def test_not_fitted_raises(self):
        """Test that accessing the table before fit raises error."""
        with pytest.raises(ValueError, match="Call fit\\(\\) first"):
            SummaryTable().table


class TestOptions:
    """Tests for statistic, kind and layout options."""
    
    def test_wildcard_and_explicit_statistics(self, trial_data):
        """Test that explicit statistics override wildcard statistics."""
        table = SummaryTable(SummaryConfig(missing="no")).fit(
            trial_data,
            by="trt",
            statistic={"all_continuous": "{mean} ({sd})", "all_categorical": "{n}/{N}", "age": "{min} - {max}"},
        ).table
        
        assert table.row("age").cells == {"Drug A": "23.0 - 55.0", "Drug B": "34.0 - 61.0"}
        assert table.row("grade", "I").cells == {"Drug A": "3/5", "Drug B": "1/5"}
    
    def test_registered_statistic(self, mtcars):
        """Test a user statistic function in an expression."""
        estimator = SummaryTable().register_statistic("n_unique", lambda x: x.nunique())
        
        table = estimator.fit(mtcars, include=["mpg"], statistic={"mpg": "{median} [{n_unique} values]"}).table
        
        assert table.row("mpg").cells[OVERALL] == "19.2 [25 values]"
    
    def test_kind_override_and_include_order(self, mtcars):
        """Test declared kinds and include ordering."""
        table = SummaryTable().fit(mtcars, include=["cyl", "mpg"], kind={"cyl": "continuous"}).table
        
        assert table.variables == ["cyl", "mpg"]
        assert len(table.rows_for("cyl")) == 1
        assert table.row("cyl").cells[OVERALL] == "6.0 (4.0, 8.0)"
    
    def test_inline_categorical(self, mtcars):
        """Test single-row categorical layout."""
        table = SummaryTable(SummaryConfig(categorical_inline=True)).fit(mtcars, include=["cyl"]).table
        
        assert len(table.rows) == 1
        assert table.rows[0].cells[OVERALL] == "4: 11 (34.4%); 6: 7 (21.9%); 8: 14 (43.8%)"
    
    def test_classification_advisory(self):
        """Test that near-threshold columns are reported as advisories."""
        df = pd.DataFrame({"score": [float(i) for i in range(10)] * 2})
        
        with pytest.warns(ClassificationAmbiguity):
            estimator = SummaryTable().fit(df)
        
        assert estimator.summary()["variants"] == {"score": "continuous"}
        assert any("close to the categorical threshold" in w for w in estimator.warnings)
    
    def test_parallel_matches_sequential(self, trial_data):
        """Test that concurrent evaluation keeps the canonical row order."""
        sequential = SummaryTable().fit(trial_data, by="trt").table
        parallel = SummaryTable(SummaryConfig(max_workers=4)).fit(trial_data, by="trt").table
        
        assert parallel.to_dict() == sequential.to_dict()
    
    def test_summary(self, mtcars):
        """Test the build summary."""
        estimator = SummaryTable().fit(mtcars, by="am")
        
        summary = estimator.summary()
        
        assert summary["n_samples"] == 32
        assert summary["n_variables"] == 2
        assert summary["strata"] == ["automatic", "manual"]
        assert summary["is_fitted"] is True
