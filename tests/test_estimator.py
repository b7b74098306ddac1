from collections import Counter
from typing import List

import numpy as np
import pytest
from numpy.testing import assert_almost_equal, assert_array_equal

from linearbandits import (
    ArmScore,
    ArmState,
    DisjointLinUCB,
    IllConditionedWarning,
    InvalidInput,
    NumericInstability,
    Selection,
    UnknownArm,
)


@pytest.fixture
def bandit() -> DisjointLinUCB[str]:
    return DisjointLinUCB(2, exploration_coefficient=1.0, arm_set=["a", "b"])


class TestConstruction:
    def test_eager_arm_set(self, bandit: DisjointLinUCB[str]) -> None:
        assert bandit.arms == ("a", "b")
        for arm in bandit.arms:
            assert_array_equal(bandit.arm_state(arm).covariance, np.eye(2))

    def test_duplicate_arms_are_registered_once(self) -> None:
        bandit = DisjointLinUCB(2, arm_set=["a", "a", "b"])
        assert bandit.arms == ("a", "b")

    @pytest.mark.parametrize("feature_dimension", [0, -1, 2.5, True, "2"])
    def test_invalid_feature_dimension(self, feature_dimension: object) -> None:
        with pytest.raises(InvalidInput):
            DisjointLinUCB(feature_dimension)  # type: ignore

    @pytest.mark.parametrize("alpha", [-0.1, float("nan"), float("inf"), "1"])
    def test_invalid_exploration_coefficient(self, alpha: object) -> None:
        with pytest.raises(InvalidInput):
            DisjointLinUCB(2, alpha)  # type: ignore

    def test_empty_arm_set_without_lazy_registration(self) -> None:
        with pytest.raises(InvalidInput):
            DisjointLinUCB(2, arm_set=[])

    def test_get_params(self) -> None:
        bandit = DisjointLinUCB(3, 7.0, random_state=1)
        params = bandit.get_params()

        assert params["feature_dimension"] == 3
        assert params["exploration_coefficient"] == 7.0
        assert params["random_state"] == 1

    def test_set_params_and_reset(self, bandit: DisjointLinUCB[str]) -> None:
        bandit.update("a", [1.0, 0.0], 1.0)
        bandit.set_params(feature_dimension=3)
        bandit.reset()

        assert bandit.arm_state("a").n_updates == 0
        assert bandit.arm_state("a").covariance.shape == (3, 3)

    def test_instances_do_not_share_state(self) -> None:
        first = DisjointLinUCB(2, arm_set=["a"])
        second = DisjointLinUCB(2, arm_set=["a"])
        first.update("a", [1.0, 1.0], 1.0)

        assert second.arm_state("a").n_updates == 0


class TestScoreAndSelect:
    def test_returns_selection(self, bandit: DisjointLinUCB[str]) -> None:
        bandit.update("a", [1.0, 0.0], 1.0)
        choice = bandit.score_and_select([1.0, 0.0], ["a", "b"])

        assert isinstance(choice, Selection)
        assert choice.arm == "a"
        assert choice.score == pytest.approx(0.5 + np.sqrt(0.5))

    def test_score_components(self, bandit: DisjointLinUCB[str]) -> None:
        bandit.update("b", [0.0, 1.0], 2.0)
        scores = bandit.score([0.0, 1.0], ["a", "b"])

        assert list(scores) == ["a", "b"]
        assert isinstance(scores["b"], ArmScore)
        assert scores["b"].mean == pytest.approx(1.0)
        assert scores["b"].variance == pytest.approx(0.5)
        assert scores["b"].score == pytest.approx(1.0 + np.sqrt(0.5))

    def test_selection_does_not_mutate(self, bandit: DisjointLinUCB[str]) -> None:
        bandit.update("a", [1.0, 1.0], 1.0)
        covariance = bandit.arm_state("a").covariance.copy()

        for _ in range(5):
            bandit.score_and_select([1.0, 1.0], ["a", "b"])

        assert_array_equal(bandit.arm_state("a").covariance, covariance)
        assert bandit.arm_state("a").n_updates == 1

    def test_cold_start_score_is_alpha_times_norm(self) -> None:
        bandit = DisjointLinUCB(3, exploration_coefficient=2.5)
        x = np.array([1.0, -2.0, 0.5])
        scores = bandit.score(x, ["new"])

        assert scores["new"].mean == 0.0
        assert_almost_equal(bandit.coef("new"), np.zeros(3))
        assert scores["new"].score == pytest.approx(2.5 * np.linalg.norm(x))

    def test_lazy_registration(self) -> None:
        bandit = DisjointLinUCB(2)
        bandit.score_and_select([1.0, 0.0], [3, 1, 2])
        assert bandit.arms == (3, 1, 2)

    def test_unknown_candidate_without_lazy_registration(
        self, bandit: DisjointLinUCB[str]
    ) -> None:
        with pytest.raises(UnknownArm):
            bandit.score_and_select([1.0, 0.0], ["a", "z"])

        assert bandit.arms == ("a", "b")

    def test_failed_scoring_registers_nothing(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def unstable(self: ArmState, context: np.ndarray) -> float:
            raise NumericInstability("unstable")

        bandit = DisjointLinUCB(2, arm_set=["a"], lazy_registration=True)
        monkeypatch.setattr(ArmState, "variance", unstable)

        with pytest.raises(NumericInstability):
            bandit.score_and_select([1.0, 0.0], ["a", "z"])

        assert bandit.arms == ("a",)

    def test_explicit_lazy_registration_with_arm_set(self) -> None:
        bandit = DisjointLinUCB(2, arm_set=["a"], lazy_registration=True)
        bandit.score_and_select([1.0, 0.0], ["a", "z"])
        assert bandit.arms == ("a", "z")

    def test_empty_candidates(self, bandit: DisjointLinUCB[str]) -> None:
        with pytest.raises(InvalidInput):
            bandit.score_and_select([1.0, 0.0], [])

    @pytest.mark.parametrize(
        "context",
        [
            [1.0],
            [1.0, 0.0, 0.0],
            [[1.0, 0.0]],
            [1.0, float("nan")],
            [1.0, float("inf")],
            [],
            1.0,
            ["x", "y"],
        ],
    )
    def test_invalid_context(
        self, bandit: DisjointLinUCB[str], context: object
    ) -> None:
        with pytest.raises(InvalidInput):
            bandit.score_and_select(context, ["a", "b"])  # type: ignore

    def test_exploration_favors_uncertain_arm(self) -> None:
        bandit = DisjointLinUCB(1, exploration_coefficient=10.0, arm_set=["a", "b"])
        for _ in range(50):
            bandit.update("a", [1.0], 0.5)

        assert bandit.score_and_select([1.0], ["a", "b"]).arm == "b"

    def test_no_exploration_is_greedy(self) -> None:
        bandit = DisjointLinUCB(1, exploration_coefficient=0.0, arm_set=["a", "b"])
        bandit.update("a", [1.0], 0.5)

        assert bandit.score_and_select([1.0], ["a", "b"]).arm == "a"


class TestUpdate:
    def test_rank_one_update(self, bandit: DisjointLinUCB[str]) -> None:
        x = np.array([2.0, 3.0])
        bandit.update("b", x, 0.5)
        state = bandit.arm_state("b")

        assert_almost_equal(state.covariance, np.eye(2) + np.outer(x, x))
        assert_almost_equal(state.weighted_reward, 0.5 * x)
        assert bandit.arm_state("a").n_updates == 0

    def test_unknown_arm(self, bandit: DisjointLinUCB[str]) -> None:
        with pytest.raises(UnknownArm):
            bandit.update("z", [1.0, 0.0], 1.0)
        assert bandit.arms == ("a", "b")

    def test_unknown_arm_is_key_error(self, bandit: DisjointLinUCB[str]) -> None:
        with pytest.raises(KeyError):
            bandit.arm_state("z")

    def test_lazy_update_registers_arm(self) -> None:
        bandit = DisjointLinUCB(2)
        bandit.update("new", [1.0, 0.0], 1.0)

        assert bandit.arms == ("new",)
        assert bandit.arm_state("new").n_updates == 1

    def test_failed_lazy_update_registers_nothing(self) -> None:
        bandit = DisjointLinUCB(2)

        with pytest.raises(NumericInstability):
            bandit.update("new", [1e200, 1.0], 1.0)

        assert bandit.arms == ()

    @pytest.mark.parametrize("reward", [float("nan"), float("inf"), "one", None])
    def test_invalid_reward(self, bandit: DisjointLinUCB[str], reward: object) -> None:
        with pytest.raises(InvalidInput):
            bandit.update("a", [1.0, 0.0], reward)  # type: ignore
        assert bandit.arm_state("a").n_updates == 0

    def test_invalid_context_leaves_state_unchanged(
        self, bandit: DisjointLinUCB[str]
    ) -> None:
        with pytest.raises(InvalidInput):
            bandit.update("a", [1.0, 0.0, 0.0], 1.0)
        assert_array_equal(bandit.arm_state("a").covariance, np.eye(2))

    def test_overflow(self, bandit: DisjointLinUCB[str]) -> None:
        with pytest.raises(NumericInstability):
            bandit.update("a", [1e200, 1.0], 1.0)
        assert_array_equal(bandit.arm_state("a").covariance, np.eye(2))

    def test_condition_warning(
        self, bandit: DisjointLinUCB[str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(
            "linearbandits._estimator.CONDITION_WARNING_THRESHOLD", 1.5
        )
        with pytest.warns(IllConditionedWarning):
            bandit.update("a", [1.0, 0.0], 1.0)

    def test_context_is_copied(self, bandit: DisjointLinUCB[str]) -> None:
        x = np.array([1.0, 0.0])
        bandit.update("a", x, 1.0)
        x[0] = 100.0

        assert_almost_equal(bandit.arm_state("a").covariance, [[2.0, 0.0], [0.0, 1.0]])

    def test_coefficients_are_copies(self, bandit: DisjointLinUCB[str]) -> None:
        x = np.array([1.0, 0.0])
        bandit.update("a", x, 1.0)
        before = bandit.score(x, ["a"])["a"].score

        bandit.coef("a")[0] = 100.0
        bandit.coef_["a"][0] = 100.0

        assert_almost_equal(bandit.coef("a"), [0.5, 0.0])
        assert bandit.score(x, ["a"])["a"].score == pytest.approx(before)


def _run(seed: int) -> DisjointLinUCB[int]:
    rng = np.random.default_rng(seed)
    contexts = rng.normal(size=(200, 3))
    rewards = rng.normal(size=200)
    bandit = DisjointLinUCB(3, 1.0, arm_set=[0, 1, 2], random_state=0)
    for x, r in zip(contexts, rewards):
        arm = bandit.score_and_select(x, [0, 1, 2]).arm
        bandit.update(arm, x, r)
    return bandit


def test_runs_are_reproducible() -> None:
    first, second = _run(1), _run(1)

    for arm in first.arms:
        assert_array_equal(
            first.arm_state(arm).covariance, second.arm_state(arm).covariance
        )
        assert_array_equal(
            first.arm_state(arm).weighted_reward,
            second.arm_state(arm).weighted_reward,
        )


def test_covariance_stays_positive_definite() -> None:
    rng = np.random.default_rng(3)
    bandit = DisjointLinUCB(4, arm_set=["a", "b"])

    for _ in range(300):
        arm = "a" if rng.random() < 0.8 else "b"
        bandit.update(arm, rng.normal(scale=10.0, size=4), rng.normal())

        covariance = bandit.arm_state(arm).covariance
        assert_array_equal(covariance, covariance.T)
        assert np.linalg.eigvalsh(covariance).min() > 0


def test_variance_shrinks_with_repeated_context() -> None:
    bandit = DisjointLinUCB(2, arm_set=["a"])
    x = np.array([0.3, 1.2])
    variances: List[float] = [bandit.arm_state("a").variance(x)]

    for _ in range(50):
        bandit.update("a", x, 1.0)
        variances.append(bandit.arm_state("a").variance(x))

    assert np.all(np.diff(variances) <= 1e-12)
    assert variances[-1] < variances[0]


def test_ties_are_broken_uniformly() -> None:
    arms = ["a", "b", "c"]
    bandit = DisjointLinUCB(2, 1.0, arm_set=arms, random_state=0)
    n_trials = 3000

    counts = Counter(
        bandit.score_and_select([1.0, 1.0], arms).arm for _ in range(n_trials)
    )

    assert set(counts) == set(arms)
    for arm in arms:
        assert abs(counts[arm] - n_trials / 3) < 150


def test_tie_break_is_seeded() -> None:
    arms = list(range(5))
    first = DisjointLinUCB(1, arm_set=arms, random_state=7)
    second = DisjointLinUCB(1, arm_set=arms, random_state=7)

    assert [first.score_and_select([1.0], arms).arm for _ in range(20)] == [
        second.score_and_select([1.0], arms).arm for _ in range(20)
    ]
