"""Tests for row stratification."""

import pandas as pd
import pytest

from summarytab.core.exceptions import SpecError
from summarytab.summary import OVERALL, stratify


class TestStratify:
    """Tests for stratify()."""
    
    def test_no_grouping_column_gives_single_stratum(self):
        """Test that all rows form one implicit stratum without a grouping column."""
        df = pd.DataFrame({"x": [1, 2, 3]})
        
        strata = stratify(df)
        
        assert [s.name for s in strata] == [OVERALL]
        assert strata[0].n == 3
        assert strata[0].is_overall is True
    
    def test_first_occurrence_order(self):
        """Test that undeclared levels keep first-occurrence order."""
        df = pd.DataFrame({"am": ["automatic", "manual", "automatic", "manual"], "x": [1, 2, 3, 4]})
        
        strata = stratify(df, "am")
        
        assert [s.name for s in strata] == ["automatic", "manual"]
        assert [s.n for s in strata] == [2, 2]
    
    def test_categorical_level_order(self):
        """Test that declared factor levels win over data order."""
        am = pd.Categorical(["manual", "automatic", "manual"], categories=["automatic", "manual"])
        df = pd.DataFrame({"am": am, "x": [1, 2, 3]})
        
        strata = stratify(df, "am")
        
        assert [s.name for s in strata] == ["automatic", "manual"]
        assert strata[1].values("x").tolist() == [1, 3]
    
    def test_declared_levels_include_empty_strata(self):
        """Test that declared levels absent from the data give empty strata."""
        df = pd.DataFrame({"g": ["a", "a"], "x": [1.0, 2.0]})
        
        strata = stratify(df, "g", levels=["a", "b"])
        
        assert [s.name for s in strata] == ["a", "b"]
        assert strata[1].n == 0
        assert strata[1].values("x").empty
    
    def test_missing_group_dropped_but_overall_complete(self):
        """Test that missing grouping values only appear in the Overall stratum."""
        df = pd.DataFrame({"g": ["a", None, "b", "a", None], "x": [1, 2, 3, 4, 5]})
        
        strata = stratify(df, "g", include_overall=True)
        
        assert [s.name for s in strata] == ["a", "b", OVERALL]
        assert sum(s.n for s in strata if not s.is_overall) == 3
        assert strata[-1].n == len(df)
        assert strata[-1].values("x").tolist() == [1, 2, 3, 4, 5]
    
    def test_numeric_levels_named_as_strings(self):
        """Test that stratum names are display strings of the levels."""
        df = pd.DataFrame({"cyl": [6, 4, 6, 8], "x": [1, 2, 3, 4]})
        
        strata = stratify(df, "cyl")
        
        assert [s.name for s in strata] == ["6", "4", "8"]
        assert [s.level for s in strata] == [6, 4, 8]
    
    def test_strata_share_source_frame(self):
        """Test that strata reference the source frame instead of copies."""
        df = pd.DataFrame({"g": ["a", "b"], "x": [1, 2]})
        
        strata = stratify(df, "g", include_overall=True)
        
        assert all(s.source is df for s in strata)
    
    def test_level_named_overall_clashes_with_overall_stratum(self):
        """Test that a level named Overall is rejected when Overall is requested."""
        df = pd.DataFrame({"g": [OVERALL, "Other"], "x": [1, 2]})
        
        with pytest.raises(SpecError, match="clashes"):
            stratify(df, "g", include_overall=True)
        assert [s.name for s in stratify(df, "g")] == [OVERALL, "Other"]
    
    @pytest.mark.parametrize("values,levels", [
        ([1, "1", 2], None),
        (["a", "b"], ["a", "b", "a"]),
    ])
    def test_duplicate_display_names_are_rejected(self, values, levels):
        """Test that levels sharing a display name are rejected."""
        df = pd.DataFrame({"g": values, "x": range(len(values))})
        
        with pytest.raises(SpecError, match="share the display names"):
            stratify(df, "g", levels=levels)
