"""Configuration for summary table builds.

A single immutable ``SummaryConfig`` is threaded explicitly through the
classifier, evaluator, comparator and assembler. Nothing in the package reads
configuration from module-level state.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SummaryConfig(BaseModel):
    """Options controlling classification, formatting, comparison and layout."""

    model_config = ConfigDict(frozen=True)

    # Classification
    categorical_threshold: int = Field(
        default=10,
        ge=1,
        description="Numeric columns with fewer distinct values are summarized as categorical",
    )

    # Formatting
    digits: int = Field(default=1, ge=0, description="Decimals for continuous statistics")
    percent_digits: int = Field(default=1, ge=0, description="Decimals for percentages")
    pvalue_digits: int = Field(default=3, ge=1, description="Decimals for p-values")
    missing_placeholder: str = Field(
        default="", description="Text shown for statistics that cannot be computed"
    )

    # Missing-value rows
    missing: Literal["ifany", "always", "no"] = Field(
        default="ifany", description="When to add a row counting missing values"
    )
    missing_text: str = Field(default="Unknown", description="Label of the missing-value row")

    # Layout toggles
    add_overall: bool = Field(default=False, description="Append an Overall column")
    add_n: bool = Field(default=False, description="Append a column of non-missing counts")
    add_p: bool = Field(default=False, description="Append a p-value column")
    add_header_n: bool = Field(default=True, description="Show N per stratum in the header")
    categorical_inline: bool = Field(
        default=False, description="Show categorical levels on a single row"
    )

    # Comparison
    on_test_error: Literal["blank", "raise"] = Field(
        default="blank", description="Blank the p-value cell or propagate TestError"
    )
    exact_threshold: float = Field(
        default=5.0,
        gt=0,
        description="Chi-square falls back to an exact test below this expected count",
    )
    n_permutations: int = Field(default=2000, ge=100, description="Monte-Carlo resamples")
    seed: Optional[int] = Field(
        default=None, description="Seed for randomized tests; unseeded runs are not reproducible"
    )

    # Execution
    max_workers: int = Field(default=1, ge=1, description="Columns summarized concurrently")

    @field_validator("missing_text")
    @classmethod
    def validate_missing_text(cls, v: str) -> str:
        """The missing row must always have a visible label."""
        if not v or not v.strip():
            raise ValueError("missing_text cannot be empty")
        return v

    def with_options(self, **options: Any) -> "SummaryConfig":
        """Return a validated copy with the given options replaced."""
        return SummaryConfig(**{**self.model_dump(), **options})


DEFAULT_CONFIG = SummaryConfig()
