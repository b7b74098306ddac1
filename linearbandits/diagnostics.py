"""
==================================================
Diagnostics (:mod:`linearbandits.diagnostics`)
==================================================

.. currentmodule:: linearbandits.diagnostics

Summaries of a replayed `DisjointLinUCB` estimator.

`compare_coefficients` checks the online coefficient estimates against an
offline least-squares fit over the same logs. `cumulative_reward_frame` and
`plot_cumulative_reward` show how the reward of the matched rounds evolves
within each context segment and arm.

.. autosummary::
    :toctree: _autosummary

    fit_baseline
    compare_coefficients
    cumulative_reward_frame
    plot_cumulative_reward
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Hashable, List, Optional

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from sklearn.linear_model import LinearRegression  # type: ignore

from ._estimator import DisjointLinUCB
from ._replay import ReplayResult
from .simulation import ClickLogs

if TYPE_CHECKING:
    from matplotlib.axes import Axes


def fit_baseline(logs: ClickLogs) -> Dict[Hashable, NDArray[np.float64]]:
    """
    Fit an ordinary least-squares model per arm on all logged rounds.

    The model has no intercept, like the estimator. Arms that were never
    logged are left out.

    Examples
    --------
    >>> from linearbandits.simulation import make_click_logs
    >>> logs = make_click_logs({"a": [0.5, 0.1]}, 20000, random_state=0)
    >>> coef = fit_baseline(logs)["a"]
    >>> bool(abs(coef[0] - 0.5) < 0.05)
    True
    """
    baseline: Dict[Hashable, NDArray[np.float64]] = {}
    for arm in logs.arm_set:
        mask = np.fromiter((a == arm for a in logs.arms), dtype=bool, count=len(logs))
        if not mask.any():
            continue
        model = LinearRegression(fit_intercept=False)
        model.fit(logs.contexts[mask], logs.rewards[mask])
        baseline[arm] = np.asarray(model.coef_, dtype=np.float64)
    return baseline


def compare_coefficients(
    estimator: DisjointLinUCB[Any], logs: ClickLogs
) -> pd.DataFrame:
    """
    Compare the estimator's coefficients with the offline baseline.

    Parameters
    ----------
    estimator : DisjointLinUCB
        Estimator after a replay of `logs`.
    logs : ClickLogs
        Logs the estimator was replayed on.

    Returns
    -------
    pd.DataFrame
        One row per arm and feature, with columns ``arm``, ``feature``,
        ``linucb``, ``baseline``, ``pct_difference`` and ``n_updates``.
        ``pct_difference`` is ``100 * (linucb - baseline) / |baseline|``,
        NaN where the baseline coefficient is zero.
    """
    baseline = fit_baseline(logs)
    rows: List[Dict[str, Any]] = []
    for arm in estimator.arms:
        if arm not in baseline:
            continue
        state = estimator.arm_state(arm)
        for feature, (online, offline) in enumerate(zip(state.coef_, baseline[arm])):
            if offline != 0:
                pct = 100.0 * (online - offline) / abs(offline)
            else:
                pct = np.nan
            rows.append(
                {
                    "arm": arm,
                    "feature": feature,
                    "linucb": float(online),
                    "baseline": float(offline),
                    "pct_difference": float(pct),
                    "n_updates": state.n_updates,
                }
            )
    return pd.DataFrame(
        rows,
        columns=[
            "arm",
            "feature",
            "linucb",
            "baseline",
            "pct_difference",
            "n_updates",
        ],
    )


def cumulative_reward_frame(result: ReplayResult) -> pd.DataFrame:
    """
    Running average reward of the matched rounds per segment and arm.

    Returns
    -------
    pd.DataFrame
        One row per matched round with columns ``round``, ``segment``,
        ``arm``, ``reward`` and ``cumulative_average_reward``. The running
        average restarts for every (segment, arm) group.
    """
    rounds = np.flatnonzero(result.matched)
    frame = pd.DataFrame(
        {
            "round": rounds,
            "segment": result.segment[rounds],
            "arm": result.logged[rounds],
            "reward": result.reward[rounds],
        }
    )
    groups = frame.groupby(["segment", "arm"], sort=False, dropna=False)["reward"]
    frame["cumulative_average_reward"] = groups.cumsum() / (groups.cumcount() + 1)
    return frame


def plot_cumulative_reward(
    frame: pd.DataFrame, ax: Optional["Axes"] = None
) -> "Axes":
    """
    Plot `cumulative_reward_frame` output, one line per segment and arm.

    Requires matplotlib, installed with the ``plot`` extra.
    """
    import matplotlib.pyplot as plt

    if ax is None:
        _, ax = plt.subplots()
    assert ax is not None  # for the type checker

    for (segment, arm), group in frame.groupby(
        ["segment", "arm"], sort=False, dropna=False
    ):
        ax.plot(
            group["round"],
            group["cumulative_average_reward"],
            label=f"segment {segment}, arm {arm}",
        )
    ax.set_xlabel("Round")
    ax.set_ylabel("Cumulative average reward")
    ax.legend()
    return ax
