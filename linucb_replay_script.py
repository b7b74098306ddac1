#!/usr/bin/env python
"""
# Disjoint LinUCB on Logged Clicks

In this tutorial, we'll train the disjoint LinUCB algorithm of Li et al. (2010)
on clicks logged by a randomized experiment, and check what it learned.

## Key Concepts

- **Disjoint model**: each arm has its own ridge regression of the click on the context
- **Upper confidence bound**: arms are scored by predicted click rate plus a confidence width
- **Replay**: logged rounds are only used when the bandit agrees with the logging policy

## What You'll Learn

1. How to simulate click logs with a known ground truth
2. How to replay them through `DisjointLinUCB`
3. How close the online coefficients get to an offline regression
4. How the average reward evolves per context segment and arm
"""

import matplotlib.pyplot as plt
import numpy as np

from linearbandits import DisjointLinUCB, replay
from linearbandits.diagnostics import (
    compare_coefficients,
    cumulative_reward_frame,
    plot_cumulative_reward,
)
from linearbandits.simulation import make_click_logs

# Plotting style
plt.style.use("ggplot")
plt.rcParams["figure.dpi"] = 100
plt.rcParams["font.size"] = 10

"""
## Mathematical Framework

Each arm $a$ has an unknown coefficient vector $\\theta_a$ and the click
probability in context $x_t$ is linear:
$$\\mathbb{E}[r_t | x_t, a] = x_t^T \\theta_a$$

LinUCB keeps $A_a = I + \\sum x x^T$ and $b_a = \\sum r x$ over the rounds the
arm was played and scores
$$p_{t,a} = x_t^T A_a^{-1} b_a + \\alpha \\sqrt{x_t^T A_a^{-1} x_t}$$

The first term exploits what the arm's ridge regression predicts, the second
explores arms whose prediction is still uncertain for this context.
"""

# Two binary features, e.g. "is a returning visitor" and "is on mobile"
n_features = 2
n_rounds = 10_000
alpha = 7.0

true_coefficients = {
    "banner": np.array([0.5, 0.1]),
    "sidebar": np.array([0.1, 0.4]),
    "popup": np.array([0.2, 0.2]),
}

logs = make_click_logs(true_coefficients, n_rounds, random_state=42)
frame = logs.to_frame()

print(f"Logged {len(logs)} rounds over {len(logs.arm_set)} arms")
print(frame.groupby("arm")["reward"].agg(["count", "mean"]))

"""
## Replaying the logs

The logging policy picked arms uniformly at random, so a round where LinUCB
picks the same arm is a fair sample of what LinUCB would have observed
online. All other rounds are thrown away.
"""

bandit = DisjointLinUCB(
    n_features,
    exploration_coefficient=alpha,
    arm_set=logs.arm_set,
    random_state=42,
)
result = replay(bandit, logs.rounds())

print(f"Matched {result.n_matched} of {len(result)} rounds")
print(f"Replay click rate: {result.average_reward:.3f}")
print(f"Logging policy click rate: {logs.rewards.mean():.3f}")

"""
## What did LinUCB learn?

LinUCB only updates an arm on the matched rounds, so arms it stopped choosing
keep wide confidence ellipsoids. We compare its coefficients with an ordinary
least-squares fit over every logged round of the arm.
"""

comparison = compare_coefficients(bandit, logs)
comparison["truth"] = [
    true_coefficients[arm][feature]
    for arm, feature in zip(comparison["arm"], comparison["feature"])
]
print(comparison.round(3).to_string(index=False))

"""
## Reward per segment

Contexts are binary, so there are four segments. In each one the running
click rate of the arms LinUCB kept choosing should settle near the true
click probability.
"""

rewards = cumulative_reward_frame(result)
fig, ax = plt.subplots(1, 1, figsize=(10, 6))
plot_cumulative_reward(rewards, ax=ax)
ax.set_title("Cumulative Average Reward of Matched Rounds")
plt.tight_layout()
plt.show()

"""
## Caveats

Replay evaluation is only unbiased for a uniformly random logging policy,
and it discards roughly $(K-1)/K$ of the rounds for $K$ arms. With a large
$\\alpha$ the bandit keeps exploring, so rarely chosen arms end up with few
updates and coefficients far from the offline fit.
"""
