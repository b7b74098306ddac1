from __future__ import annotations

import os
from numbers import Integral, Real
from typing import (
    Any,
    Dict,
    Final,
    Generic,
    Hashable,
    Iterable,
    List,
    NamedTuple,
    Optional,
    Tuple,
    TypeVar,
    Union,
)
from warnings import warn

import numpy as np
from numpy.typing import ArrayLike, NDArray
from sklearn.base import BaseEstimator  # type: ignore
from sklearn.utils.validation import check_array  # type: ignore

from ._arm_state import ArmState
from ._exceptions import IllConditionedWarning, InvalidInput, UnknownArm

TokenType = TypeVar("TokenType", bound=Hashable)

# Condition number of an arm's covariance above which `update` warns. Zero
# disables the check.
CONDITION_WARNING_THRESHOLD: Final[float] = float(
    os.environ.get("LB_CONDITION_WARNING", "1e12")
)


class ArmScore(NamedTuple):
    """Upper confidence bound of one arm for one context."""

    mean: float  # Predicted payoff
    variance: float  # Quadratic form of the context with the inverse covariance
    score: float  # mean + alpha * sqrt(variance)


class Selection(NamedTuple):
    """Arm chosen by `DisjointLinUCB.score_and_select`."""

    arm: Any
    score: float


class DisjointLinUCB(BaseEstimator, Generic[TokenType]):
    """
    Online LinUCB estimator with one independent linear model per arm.

    Each arm keeps a ridge regression with unit penalty. For a context `x`,
    arm `a` is scored as

        score_a = x @ theta_a + alpha * sqrt(x @ inv(A_a) @ x)

    where `A_a` is the arm's regularized design matrix and
    `theta_a = inv(A_a) @ b_a` its coefficient estimate. Selection and update
    are separate operations, so a caller can choose which rounds to learn
    from (see `linearbandits.replay`).

    Parameters
    ----------
    feature_dimension : int
        Length `d` of every context vector.
    exploration_coefficient : float, default=1.0
        Weight `alpha` of the confidence width in the score. Must be
        non-negative.
    arm_set : iterable of hashable, default=None
        Arms known in advance. Their states are created immediately.
    lazy_registration : bool, default=None
        Whether arms seen for the first time in `score_and_select` or
        `update` are registered with a fresh state. If None, arms are
        registered lazily only when `arm_set` is None.
    random_state : int, np.random.Generator, default=None
        Seed or generator used to break ties between equal scores.

    Attributes
    ----------
    arm_states_ : Dict[TokenType, ArmState]
        Per-arm sufficient statistics, in registration order.
    rng_ : np.random.Generator
        Generator used for tie-breaking.

    Notes
    -----
    This is the disjoint model of Algorithm 1 in ref [1]_. Ties between
    exactly equal scores are broken uniformly at random.

    References
    ----------
    .. [1] Li, Lihong, et al. "A contextual-bandit approach to personalized
       news article recommendation." Proceedings of the 19th international
       conference on World wide web (2010): 661-670.

    Examples
    --------
    >>> import numpy as np
    >>> bandit = DisjointLinUCB(2, exploration_coefficient=1.0, arm_set=["a", "b"])
    >>> x = np.array([1.0, 0.0])
    >>> bandit.update("a", x, 1.0)
    >>> np.round(bandit.coef("a"), 6)
    array([0.5, 0. ])

    The arm that was rewarded now has the larger upper confidence bound.

    >>> bandit.score_and_select(x, ["a", "b"]).arm
    'a'

    Arms outside `arm_set` are rejected unless lazy registration is enabled.

    >>> bandit.update("c", x, 1.0)  # doctest: +IGNORE_EXCEPTION_DETAIL
    Traceback (most recent call last):
        ...
    linearbandits._exceptions.UnknownArm: "Arm 'c' is not registered."
    """

    def __init__(
        self,
        feature_dimension: int,
        exploration_coefficient: float = 1.0,
        *,
        arm_set: Optional[Iterable[TokenType]] = None,
        lazy_registration: Optional[bool] = None,
        random_state: Union[int, np.random.Generator, None] = None,
    ) -> None:
        self.feature_dimension = feature_dimension
        self.exploration_coefficient = exploration_coefficient
        self.arm_set = arm_set
        self.lazy_registration = lazy_registration
        self.random_state = random_state

        self.reset()

    def reset(self) -> None:
        """
        Validate the parameters and discard everything learned so far.

        Called on construction; call it again after `set_params`.
        """
        if (
            not isinstance(self.feature_dimension, Integral)
            or isinstance(self.feature_dimension, bool)
            or self.feature_dimension <= 0
        ):
            raise InvalidInput(
                "feature_dimension must be a positive integer, "
                f"got {self.feature_dimension!r}."
            )
        if (
            not isinstance(self.exploration_coefficient, Real)
            or not np.isfinite(self.exploration_coefficient)
            or self.exploration_coefficient < 0
        ):
            raise InvalidInput(
                "exploration_coefficient must be a finite non-negative number, "
                f"got {self.exploration_coefficient!r}."
            )

        self.rng_: np.random.Generator = np.random.default_rng(self.random_state)
        self.arm_states_: Dict[TokenType, ArmState] = {}

        if self.arm_set is not None:
            arms = list(dict.fromkeys(self.arm_set))
            if not arms and not self._lazy:
                raise InvalidInput(
                    "arm_set is empty and lazy registration is disabled."
                )
            for arm in arms:
                self.arm_states_[arm] = ArmState(self.feature_dimension)

    @property
    def _lazy(self) -> bool:
        if self.lazy_registration is None:
            return self.arm_set is None
        return bool(self.lazy_registration)

    @property
    def arms(self) -> Tuple[TokenType, ...]:
        """Registered arms, in registration order."""
        return tuple(self.arm_states_)

    def add_arm(self, arm: TokenType) -> None:
        """Register `arm` with the ridge prior.

        Raises
        ------
        InvalidInput
            If the arm is already registered.
        """
        if arm in self.arm_states_:
            raise InvalidInput(f"Arm {arm!r} is already registered.")
        self.arm_states_[arm] = ArmState(self.feature_dimension)

    def arm_state(self, arm: TokenType) -> ArmState:
        """Get the state of a registered arm.

        Raises
        ------
        UnknownArm
            If the arm is not registered.
        """
        try:
            return self.arm_states_[arm]
        except KeyError:
            raise UnknownArm(f"Arm {arm!r} is not registered.") from None

    def coef(self, arm: TokenType) -> NDArray[np.float64]:
        """Ridge regression coefficients of one arm."""
        return self.arm_state(arm).coef_.copy()

    @property
    def coef_(self) -> Dict[TokenType, NDArray[np.float64]]:
        """Ridge regression coefficients of every registered arm."""
        return {arm: state.coef_.copy() for arm, state in self.arm_states_.items()}

    def _check_context(self, context: ArrayLike) -> NDArray[np.float64]:
        try:
            x = check_array(
                context,
                ensure_2d=False,
                dtype=np.float64,
                copy=True,
                input_name="context",
            )
        except (TypeError, ValueError) as e:
            raise InvalidInput(str(e)) from e

        if x.ndim != 1 or x.shape[0] != self.feature_dimension:
            raise InvalidInput(
                f"context must be a vector of length {self.feature_dimension}, "
                f"got an array of shape {x.shape}."
            )
        return x

    def _check_candidates(self, candidate_arms: Iterable[TokenType]) -> List[TokenType]:
        candidates = list(dict.fromkeys(candidate_arms))
        if not candidates:
            raise InvalidInput("candidate_arms must not be empty.")

        if not self._lazy:
            for arm in candidates:
                if arm not in self.arm_states_:
                    raise UnknownArm(f"Arm {arm!r} is not registered.")
        return candidates

    def _state_for_update(self, arm: TokenType) -> ArmState:
        # new arms are not registered here; the caller stores them on success
        if arm in self.arm_states_:
            return self.arm_states_[arm]
        if not self._lazy:
            raise UnknownArm(f"Arm {arm!r} is not registered.")
        return ArmState(self.feature_dimension)

    def score(
        self, context: ArrayLike, candidate_arms: Iterable[TokenType]
    ) -> Dict[TokenType, ArmScore]:
        """
        Compute the upper confidence bound of each candidate arm.

        Candidates that were never seen are registered with the ridge prior
        when lazy registration is enabled, once every candidate was scored.

        Parameters
        ----------
        context : array-like of shape (feature_dimension,)
            Context of the decision.
        candidate_arms : iterable of hashable
            Arms to score. Duplicates are ignored.

        Returns
        -------
        Dict[TokenType, ArmScore]
            Scores of the candidates, in the order given.

        Raises
        ------
        InvalidInput
            If `candidate_arms` is empty or `context` is malformed.
        UnknownArm
            If a candidate is not registered and lazy registration is off.
        """
        x = self._check_context(context)
        candidates = self._check_candidates(candidate_arms)

        new_states = {
            arm: ArmState(self.feature_dimension)
            for arm in candidates
            if arm not in self.arm_states_
        }

        alpha = float(self.exploration_coefficient)
        scores: Dict[TokenType, ArmScore] = {}
        for arm in candidates:
            state = self.arm_states_.get(arm, new_states.get(arm))
            mean = state.predict(x)
            variance = state.variance(x)
            width = alpha * float(np.sqrt(variance))
            scores[arm] = ArmScore(mean, variance, mean + width)

        self.arm_states_.update(new_states)
        return scores

    def score_and_select(
        self, context: ArrayLike, candidate_arms: Iterable[TokenType]
    ) -> Selection:
        """
        Choose the candidate arm with the largest upper confidence bound.

        Exact ties are broken uniformly at random. Selection never changes
        the statistics of any arm; call `update` with the observed reward.

        Parameters
        ----------
        context : array-like of shape (feature_dimension,)
            Context of the decision.
        candidate_arms : iterable of hashable
            Arms to choose from.

        Returns
        -------
        Selection
            The chosen arm and its score.
        """
        scores = self.score(context, candidate_arms)
        arms = list(scores)
        values = np.array([s.score for s in scores.values()])

        best = np.flatnonzero(values == values.max())
        if len(best) > 1:
            idx = int(best[self.rng_.integers(len(best))])
        else:
            idx = int(best[0])

        return Selection(arms[idx], float(values[idx]))

    def update(self, arm: TokenType, context: ArrayLike, reward: float) -> None:
        """
        Update one arm with an observed reward.

        Parameters
        ----------
        arm : hashable
            Arm that was played.
        context : array-like of shape (feature_dimension,)
            Context the arm was played in.
        reward : float
            Observed reward.

        Raises
        ------
        InvalidInput
            If `context` is malformed or `reward` is not a finite number.
        UnknownArm
            If the arm is not registered and lazy registration is off.
        NumericInstability
            If the updated statistics overflow.
        """
        x = self._check_context(context)
        try:
            r = float(reward)
        except (TypeError, ValueError) as e:
            raise InvalidInput(f"reward must be a real number, got {reward!r}.") from e
        if not np.isfinite(r):
            raise InvalidInput(f"reward must be finite, got {r}.")

        state = self._state_for_update(arm)
        state.update(x, r)
        self.arm_states_.setdefault(arm, state)

        if CONDITION_WARNING_THRESHOLD > 0:
            condition = state.condition_number()
            if condition > CONDITION_WARNING_THRESHOLD:
                warn(
                    IllConditionedWarning(
                        f"Covariance of arm {arm!r} has condition number "
                        f"{condition:.3g}."
                    ),
                    stacklevel=2,
                )
