"""
Off-policy replay of logged rounds through a `DisjointLinUCB` estimator.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Hashable, Iterable, List, NamedTuple, Optional, Sequence
from warnings import warn

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ._estimator import DisjointLinUCB
from ._exceptions import ReplayWarning


class LoggedRound(NamedTuple):
    """One historical round collected under a logging policy."""

    context: ArrayLike
    candidate_arms: Sequence[Hashable]
    logged_arm: Hashable
    reward: float
    segment: Optional[str] = None  # Label used to group diagnostics


@dataclass
class ReplayResult:
    """
    Per-round record of a replay.

    Attributes
    ----------
    selected : NDArray[np.object_]
        Arm chosen by the estimator in each round.
    logged : NDArray[np.object_]
        Arm chosen by the logging policy in each round.
    reward : NDArray[np.float64]
        Logged reward of each round.
    matched : NDArray[np.bool_]
        Whether the estimator agreed with the logging policy, i.e. whether
        the round was used to update the estimator.
    segment : NDArray[np.object_]
        Segment label of each round, None where the round had none.
    """

    selected: NDArray[np.object_]
    logged: NDArray[np.object_]
    reward: NDArray[np.float64]
    matched: NDArray[np.bool_]
    segment: NDArray[np.object_]

    def __len__(self) -> int:
        return len(self.matched)

    @property
    def n_matched(self) -> int:
        return int(self.matched.sum())

    @property
    def matched_rewards(self) -> NDArray[np.float64]:
        return self.reward[self.matched]

    @property
    def average_reward(self) -> float:
        """Mean reward over matched rounds, NaN if no round matched."""
        if self.n_matched == 0:
            return float("nan")
        return float(self.matched_rewards.mean())

    @property
    def cumulative_average_reward(self) -> NDArray[np.float64]:
        """Running mean of the reward over the matched rounds."""
        rewards = self.matched_rewards
        return np.cumsum(rewards) / np.arange(1, len(rewards) + 1)


def _object_array(values: List[Any]) -> NDArray[np.object_]:
    # np.array would turn tuple arm identifiers into extra dimensions
    out = np.empty(len(values), dtype=object)
    out[:] = values
    return out


def replay(
    estimator: DisjointLinUCB[Any], rounds: Iterable[LoggedRound]
) -> ReplayResult:
    """
    Evaluate and train `estimator` on logged data by rejection sampling.

    Rounds are processed in order. In each round the estimator selects an
    arm among the logged candidates. If it picks the logged arm, it is
    updated with the logged reward; otherwise the round is skipped and no
    state changes.

    Parameters
    ----------
    estimator : DisjointLinUCB
        Estimator to replay. Updated in place.
    rounds : iterable of LoggedRound
        Historical rounds, in chronological order.

    Returns
    -------
    ReplayResult
        Per-round selections and match flags.

    Notes
    -----
    The average reward over matched rounds is an unbiased estimate of the
    estimator's online reward only if the logging policy chose arms
    uniformly at random, as described in ref [1]_. Most rounds are discarded
    when there are many arms. No correction is attempted for other logging
    policies.

    References
    ----------
    .. [1] Li, Lihong, et al. "Unbiased offline evaluation of
       contextual-bandit-based news article recommendation algorithms."
       Proceedings of the fourth ACM international conference on Web search
       and data mining (2011): 297-306.

    Examples
    --------
    >>> import numpy as np
    >>> from linearbandits import DisjointLinUCB
    >>> rounds = [
    ...     LoggedRound(np.array([1.0, 0.0]), ["a", "b"], "a", 1.0),
    ...     LoggedRound(np.array([1.0, 0.0]), ["a", "b"], "b", 0.0),
    ... ]
    >>> bandit = DisjointLinUCB(2, arm_set=["a", "b"], random_state=0)
    >>> result = replay(bandit, rounds)
    >>> len(result) == 2
    True
    """
    selected: List[Any] = []
    logged: List[Any] = []
    rewards: List[float] = []
    matched: List[bool] = []
    segments: List[Optional[str]] = []

    for round_ in rounds:
        choice = estimator.score_and_select(round_.context, round_.candidate_arms)
        is_match = choice.arm == round_.logged_arm
        if is_match:
            estimator.update(round_.logged_arm, round_.context, round_.reward)

        selected.append(choice.arm)
        logged.append(round_.logged_arm)
        rewards.append(float(round_.reward))
        matched.append(bool(is_match))
        segments.append(round_.segment)

    result = ReplayResult(
        selected=_object_array(selected),
        logged=_object_array(logged),
        reward=np.asarray(rewards, dtype=np.float64),
        matched=np.asarray(matched, dtype=bool),
        segment=_object_array(segments),
    )

    if len(result) > 0 and result.n_matched == 0:
        warn(
            ReplayWarning(
                f"None of the {len(result)} replayed rounds matched the logged arm."
            ),
            stacklevel=2,
        )

    return result
