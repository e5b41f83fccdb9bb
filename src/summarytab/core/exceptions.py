"""Exception and warning types raised while building summary tables."""


class SummaryTabError(Exception):
    """Base class for summarytab errors."""


class SpecError(SummaryTabError, ValueError):
    """A statistic expression, statistic function, or test name cannot be resolved.

    Raised as soon as the problem is detected. A misconfigured table aborts the
    whole build rather than producing a silently wrong table.
    """


class TestError(SummaryTabError):
    """A comparison test cannot be computed for a column.

    Typical causes are fewer than two non-empty strata, zero variance, or a
    contingency table with a single row or column.
    """

    # Keep pytest from collecting this class as a test case.
    __test__ = False


class ClassificationAmbiguity(UserWarning):
    """Advisory: a numeric column was classified continuous with few distinct values."""
