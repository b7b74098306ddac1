"""
====================================
linearbandits (:mod:`linearbandits`)
====================================

.. currentmodule:: linearbandits

A Python library for linear contextual bandits.

This library implements the disjoint LinUCB algorithm of Li et al. (2010):
every arm keeps its own ridge regression of the reward on the context, and
the arm with the largest upper confidence bound is chosen. Selection and
update are separate steps, which makes the estimator easy to evaluate
offline on logged data with the replay method.

Estimator
=========

.. autosummary::
    :toctree: _autosummary

    DisjointLinUCB
    ArmState
    ArmScore
    Selection

Offline Evaluation
==================

.. autosummary::
    :toctree: _autosummary

    replay
    LoggedRound
    ReplayResult

The `linearbandits.simulation` module generates synthetic click logs with
a known ground truth, and `linearbandits.diagnostics` compares a replayed
estimator against an offline regression.

Exceptions and Warnings
=======================

.. autosummary::
    :toctree: _autosummary

    LinearBanditError
    InvalidInput
    UnknownArm
    NumericInstability
    IllConditionedWarning
    ReplayWarning

"""

from ._arm_state import ArmState
from ._estimator import ArmScore, DisjointLinUCB, Selection
from ._exceptions import (
    IllConditionedWarning,
    InvalidInput,
    LinearBanditError,
    NumericInstability,
    ReplayWarning,
    UnknownArm,
)
from ._replay import LoggedRound, ReplayResult, replay

__all__ = [
    "ArmState",
    "ArmScore",
    "DisjointLinUCB",
    "Selection",
    "LoggedRound",
    "ReplayResult",
    "replay",
    "LinearBanditError",
    "InvalidInput",
    "UnknownArm",
    "NumericInstability",
    "IllConditionedWarning",
    "ReplayWarning",
]
