"""
========================================================
Synthetic click logs (:mod:`linearbandits.simulation`)
========================================================

.. currentmodule:: linearbandits.simulation

Generators for logged bandit data with a known ground truth.

The logs mimic a randomized experiment: every round a binary context is
drawn, a logging policy picks one arm uniformly at random, and a click is
sampled from that arm's linear click-probability model. Because the logging
policy is uniform, the logs can be replayed with `linearbandits.replay`.

.. autosummary::
    :toctree: _autosummary

    make_click_logs
    ClickLogs
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Hashable, Iterator, List, Mapping, Union

import numpy as np
import pandas as pd
from numpy.typing import ArrayLike, NDArray

from ._exceptions import InvalidInput
from ._replay import LoggedRound


def segment_label(context: NDArray[Any]) -> str:
    """Render a binary context as a string, e.g. ``[1, 0] -> "10"``."""
    return "".join(str(int(v)) for v in context)


@dataclass
class ClickLogs:
    """
    Logged rounds of a uniformly randomized experiment.

    Attributes
    ----------
    contexts : NDArray[np.float64] of shape (n_rounds, n_features)
        Binary contexts.
    arms : NDArray[np.object_] of shape (n_rounds,)
        Arm chosen by the logging policy.
    rewards : NDArray[np.float64] of shape (n_rounds,)
        Observed clicks, 0 or 1.
    arm_coefficients : Dict[Hashable, NDArray[np.float64]]
        Coefficients of the click-probability model of each arm.
    """

    contexts: NDArray[np.float64]
    arms: NDArray[np.object_]
    rewards: NDArray[np.float64]
    arm_coefficients: Dict[Hashable, NDArray[np.float64]]

    def __len__(self) -> int:
        return self.contexts.shape[0]

    @property
    def arm_set(self) -> List[Hashable]:
        return list(self.arm_coefficients)

    @property
    def n_features(self) -> int:
        return self.contexts.shape[1]

    def rounds(self) -> Iterator[LoggedRound]:
        """Yield the logs as `LoggedRound`s offering every arm."""
        candidates = self.arm_set
        for context, arm, reward in zip(self.contexts, self.arms, self.rewards):
            yield LoggedRound(
                context=context,
                candidate_arms=candidates,
                logged_arm=arm,
                reward=float(reward),
                segment=segment_label(context),
            )

    def to_frame(self) -> pd.DataFrame:
        """One row per round with columns ``x0..x{d-1}, arm, reward, segment``."""
        frame = pd.DataFrame(
            self.contexts, columns=[f"x{i}" for i in range(self.n_features)]
        )
        frame["arm"] = self.arms
        frame["reward"] = self.rewards
        frame["segment"] = [segment_label(x) for x in self.contexts]
        return frame


def make_click_logs(
    arm_coefficients: Mapping[Hashable, ArrayLike],
    n_rounds: int,
    *,
    feature_probability: float = 0.5,
    random_state: Union[int, np.random.Generator, None] = None,
) -> ClickLogs:
    """
    Simulate clicks logged under a uniformly random policy.

    Parameters
    ----------
    arm_coefficients : Mapping[Hashable, array-like]
        Click-probability coefficients of each arm. All must have the same
        length, which is the number of features.
    n_rounds : int
        Number of rounds to simulate.
    feature_probability : float, default=0.5
        Probability that each binary feature is 1.
    random_state : int, np.random.Generator, default=None
        Seed or generator. Equal seeds produce equal logs.

    Returns
    -------
    ClickLogs
        The simulated logs.

    Notes
    -----
    The click probability of arm `a` in context `x` is `x @ theta_a`,
    clipped to [0, 1].

    Examples
    --------
    >>> logs = make_click_logs({1: [0.5, 0.1], 2: [0.1, 0.4]}, 5, random_state=0)
    >>> len(logs), logs.n_features
    (5, 2)
    >>> set(logs.rewards.tolist()) <= {0.0, 1.0}
    True
    """
    if len(arm_coefficients) == 0:
        raise InvalidInput("arm_coefficients must contain at least one arm.")
    if (
        not isinstance(n_rounds, (int, np.integer))
        or isinstance(n_rounds, bool)
        or n_rounds <= 0
    ):
        raise InvalidInput(f"n_rounds must be a positive integer, got {n_rounds!r}.")
    if not 0.0 <= feature_probability <= 1.0:
        raise InvalidInput(
            f"feature_probability must be in [0, 1], got {feature_probability!r}."
        )

    coefficients = {
        arm: np.asarray(coef, dtype=np.float64).ravel()
        for arm, coef in arm_coefficients.items()
    }
    lengths = {coef.shape[0] for coef in coefficients.values()}
    if len(lengths) != 1 or 0 in lengths:
        raise InvalidInput(
            "All arms must have the same non-zero number of coefficients."
        )
    n_features = lengths.pop()

    rng = np.random.default_rng(random_state)
    arm_list = list(coefficients)
    theta = np.vstack([coefficients[arm] for arm in arm_list])

    contexts = rng.binomial(1, feature_probability, size=(n_rounds, n_features))
    contexts = contexts.astype(np.float64)
    arm_idx = rng.integers(len(arm_list), size=n_rounds)

    click_probability = np.clip(np.sum(contexts * theta[arm_idx], axis=1), 0.0, 1.0)
    rewards = (rng.random(n_rounds) < click_probability).astype(np.float64)

    arms = np.empty(n_rounds, dtype=object)
    arms[:] = [arm_list[i] for i in arm_idx]

    return ClickLogs(
        contexts=contexts,
        arms=arms,
        rewards=rewards,
        arm_coefficients=coefficients,
    )
