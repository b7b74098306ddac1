from __future__ import annotations

from functools import cached_property, wraps
from typing import Any, Callable, TypeVar
from warnings import warn

import numpy as np
from numpy.typing import NDArray
from scipy.linalg import LinAlgError, cho_factor, cho_solve, eigvalsh, pinvh
from typing_extensions import Concatenate, ParamSpec

from ._exceptions import IllConditionedWarning, NumericInstability

Params = ParamSpec("Params")
ReturnType = TypeVar("ReturnType")


def _invalidate_cached_properties(
    func: Callable[Concatenate["ArmState", Params], ReturnType],
) -> Callable[Concatenate["ArmState", Params], ReturnType]:
    @wraps(func)
    def wrapper(
        self: "ArmState", *args: Params.args, **kwargs: Params.kwargs
    ) -> ReturnType:
        try:
            del self.cov_inv_
        except AttributeError:
            pass
        try:
            del self.coef_
        except AttributeError:
            pass
        return func(self, *args, **kwargs)

    return wrapper


class ArmState:
    """
    Sufficient statistics of one arm of a disjoint linear bandit.

    The state is a ridge regression with unit penalty: `covariance` starts as
    the identity matrix and accumulates the outer products of the contexts the
    arm was updated with, `weighted_reward` accumulates the reward-weighted
    contexts.

    Parameters
    ----------
    n_features : int
        Length of the context vectors.

    Attributes
    ----------
    covariance : NDArray[np.float64] of shape (n_features, n_features)
        Regularized design matrix. Symmetric positive-definite.
    weighted_reward : NDArray[np.float64] of shape (n_features,)
        Sum of `reward * context` over all updates.
    n_updates : int
        Number of updates applied to the arm.

    Examples
    --------
    >>> import numpy as np
    >>> state = ArmState(2)
    >>> state.coef_
    array([0., 0.])
    >>> state.update(np.array([1.0, 0.0]), 1.0)
    >>> np.round(state.coef_, 6)
    array([0.5, 0. ])
    >>> round(state.variance(np.array([1.0, 0.0])), 6)
    0.5
    """

    def __init__(self, n_features: int) -> None:
        self.n_features = n_features
        self.covariance: NDArray[np.float64] = np.eye(n_features)
        self.weighted_reward: NDArray[np.float64] = np.zeros(n_features)
        self.n_updates = 0

    def __repr__(self) -> str:
        return f"ArmState(n_features={self.n_features}, n_updates={self.n_updates})"

    @_invalidate_cached_properties
    def __getstate__(self) -> Any:
        # Cached solves are recomputed on demand after unpickling
        return self.__dict__.copy()

    @cached_property
    def cov_inv_(self) -> NDArray[np.float64]:
        """
        Inverse of the covariance matrix.

        Computed from a Cholesky factorization. If the factorization fails,
        falls back to the symmetric pseudo-inverse and warns with
        `IllConditionedWarning`.

        Raises
        ------
        NumericInstability
            If the inverse contains non-finite values.
        """
        identity = np.eye(self.n_features)
        try:
            factor = cho_factor(self.covariance, lower=True, check_finite=False)
            cov_inv = cho_solve(factor, identity, check_finite=False)
        except LinAlgError:
            warn(
                IllConditionedWarning(
                    f"Cholesky factorization failed after {self.n_updates} updates. "
                    "Using the pseudo-inverse instead."
                ),
                stacklevel=3,
            )
            cov_inv = pinvh(self.covariance, check_finite=False)

        if not np.all(np.isfinite(cov_inv)):
            raise NumericInstability(
                "The inverse of the covariance matrix has non-finite entries."
            )
        # cho_solve is only symmetric up to round-off
        cov_inv = (cov_inv + cov_inv.T) / 2.0
        cov_inv.flags.writeable = False
        return cov_inv

    @cached_property
    def coef_(self) -> NDArray[np.float64]:
        """
        Ridge regression coefficients, `cov_inv_ @ weighted_reward`.

        The cached array is read-only.
        """
        coef = self.cov_inv_ @ self.weighted_reward
        coef.flags.writeable = False
        return coef

    def predict(self, context: NDArray[np.float64]) -> float:
        """Predicted payoff of the arm for `context`."""
        return float(context @ self.coef_)

    def variance(self, context: NDArray[np.float64]) -> float:
        """
        Width of the confidence ellipsoid along `context`.

        The quadratic form `context @ cov_inv_ @ context` is non-negative in
        exact arithmetic; round-off below zero is clipped.
        """
        return max(float(context @ self.cov_inv_ @ context), 0.0)

    def condition_number(self) -> float:
        """Ratio of the largest to the smallest eigenvalue of the covariance."""
        eigenvalues = eigvalsh(self.covariance, check_finite=False)
        if eigenvalues[0] <= 0.0:
            return float("inf")
        return float(eigenvalues[-1] / eigenvalues[0])

    @_invalidate_cached_properties
    def update(self, context: NDArray[np.float64], reward: float) -> None:
        """
        Add one observation to the state.

        Both statistics are computed before either is assigned, so a failed
        update leaves the state as it was.

        Raises
        ------
        NumericInstability
            If the updated statistics overflow.
        """
        with np.errstate(over="ignore", invalid="ignore"):
            covariance = self.covariance + np.outer(context, context)
            weighted_reward = self.weighted_reward + reward * context

        if not np.all(np.isfinite(covariance)) or not np.all(
            np.isfinite(weighted_reward)
        ):
            raise NumericInstability("Update would produce non-finite arm statistics.")

        self.covariance = covariance
        self.weighted_reward = weighted_reward
        self.n_updates += 1
