"""Local Kaplan-Meier estimates using lifelines.

This module wraps ``lifelines.KaplanMeierFitter`` to expose the two
quantities a survival summary table reports: survival probability at fixed
times and survival time at fixed probabilities, each with confidence bounds.
"""

from typing import Any, Dict, Optional
import math

import pandas as pd


class KaplanMeierFitter:
    """Kaplan-Meier survival curve estimator for one stratum.

    Attributes:
        alpha: 1 - confidence level of the reported intervals.
        n_samples: Number of subjects used in the fit.
    """

    def __init__(self, alpha: float = 0.05):
        """Initialize the KaplanMeierFitter."""
        try:
            from lifelines import KaplanMeierFitter as LKMF
            self._lifelines_class = LKMF # Delayed instantiation
            self._lifelines_kmf = None
        except ImportError:
            raise ImportError(
                "lifelines is required for Kaplan-Meier estimation. "
                "Install it with: pip install lifelines"
            )
        if not 0 < alpha < 1:
            raise ValueError(f"alpha must be in (0, 1), got {alpha}")
        self.alpha = alpha
        self.n_samples: int = 0
        self._is_fitted: bool = False
        self._stats: Dict[str, Any] = {}

    def fit(
        self,
        durations: pd.Series,
        events: pd.Series,
        label: str = "survival_probability",
    ) -> "KaplanMeierFitter":
        """Fit the Kaplan-Meier estimator to survival data.

        Args:
            durations: Time to event or censoring.
            events: Event indicator (1 = event, 0 = censored).
            label: Curve label, usually the stratum name.

        Returns:
            Self for method chaining.

        Raises:
            ValueError: If there are no observations.
        """
        if len(durations) == 0:
            raise ValueError("Cannot fit a Kaplan-Meier curve without observations")

        # Instantiate fresh for every fit to clear state
        self._lifelines_kmf = self._lifelines_class()
        self._lifelines_kmf.fit(durations, events, label=label, alpha=self.alpha)

        self.n_samples = int(len(durations))
        total_events = int(events.sum())
        self._stats = {
            "n_samples": self.n_samples,
            "total_events": total_events,
            "event_rate": total_events / self.n_samples,
            "max_duration": float(durations.max()),
        }
        self._is_fitted = True
        return self

    def _check_fitted(self) -> None:
        if not self._is_fitted:
            raise ValueError("Model has not been fitted. Call fit() first.")

    def survival_at(self, time: float) -> Dict[str, Optional[float]]:
        """Survival probability at ``time`` with confidence bounds.

        The Kaplan-Meier curve is a right-continuous step function, so the
        bounds are read from the last curve point at or before ``time``.
        """
        self._check_fitted()
        estimate = float(self._lifelines_kmf.survival_function_at_times(time).iloc[0])

        ci = self._lifelines_kmf.confidence_interval_survival_function_
        prior = ci[ci.index <= time]
        if prior.empty:
            ci_lower, ci_upper = 1.0, 1.0
        else:
            # Lifelines CI columns are ordered lower, upper
            ci_lower = float(prior.iloc[-1, 0])
            ci_upper = float(prior.iloc[-1, 1])

        return {"estimate": estimate, "ci_lower": ci_lower, "ci_upper": ci_upper}

    def survival_time(self, prob: float) -> Dict[str, Optional[float]]:
        """Time at which survival first drops to ``prob``, with confidence bounds.

        Values the curve never reaches are reported as None.
        """
        self._check_fitted()
        if not 0 < prob < 1:
            raise ValueError(f"prob must be in (0, 1), got {prob}")

        from lifelines.utils import qth_survival_time

        ci = self._lifelines_kmf.confidence_interval_survival_function_
        values = {
            "estimate": qth_survival_time(prob, self._lifelines_kmf.survival_function_),
            # The lower survival bound crosses first, giving the lower time
            "ci_lower": qth_survival_time(prob, ci.iloc[:, 0]),
            "ci_upper": qth_survival_time(prob, ci.iloc[:, 1]),
        }
        return {key: _finite_or_none(value) for key, value in values.items()}

    def median_survival(self) -> Optional[float]:
        """Calculate the median survival time."""
        return self.survival_time(0.5)["estimate"]

    def summary(self) -> Dict[str, Any]:
        """Get a summary of the fitted model."""
        self._check_fitted()
        return {
            **self._stats,
            "median_survival": self.median_survival(),
            "is_fitted": self._is_fitted,
        }

    @property
    def is_fitted(self) -> bool:
        """Whether the model has been fitted."""
        return self._is_fitted


def _finite_or_none(value: Any) -> Optional[float]:
    value = float(value)
    if math.isinf(value) or math.isnan(value):
        return None
    return value
