"""
Tests for Baum-Welch training.
"""

import numpy as np
import pytest

from probinfer.config import set_config
from probinfer.exceptions import ConvergenceFailure, DomainError, NormalizationError, StructuralError
from probinfer.hmm import HiddenMarkovModel, baum_welch, reestimate, score, total_log_likelihood, train


SEQUENCES = [
    ['x', 'x', 'y', 'y', 'y', 'x', 'x', 'x', 'y', 'x'],
    ['y', 'y', 'x', 'y', 'y', 'y', 'x', 'x'],
]


@pytest.fixture
def hmm(simple_hmm_data):
    return HiddenMarkovModel.from_dict(simple_hmm_data)


@pytest.fixture
def unreachable_state_hmm():
    """State 'b' has zero initial probability and is never entered."""
    return HiddenMarkovModel(
        ['a', 'b'], ['x', 'y'],
        [[1.0, 0.0], [0.5, 0.5]],
        [[0.6, 0.4], [0.3, 0.7]],
        [1.0, 0.0]
    )


class TestReestimate:
    """Test a single EM step."""

    def test_rows_remain_stochastic(self, hmm):
        """Test that re-estimated parameters are valid."""
        updated, _ = reestimate(hmm, SEQUENCES)

        np.testing.assert_allclose(updated.A.sum(axis=1), 1.0)
        np.testing.assert_allclose(updated.B.sum(axis=1), 1.0)
        assert updated.pi.sum() == pytest.approx(1.0)
        assert updated.is_valid()

    def test_returns_likelihood_of_input_model(self, hmm):
        """Test the reported log-likelihood."""
        _, log_likelihood = reestimate(hmm, SEQUENCES)
        assert log_likelihood == pytest.approx(sum(score(hmm, seq) for seq in SEQUENCES))

    def test_does_not_decrease_likelihood(self, hmm):
        """Test the EM monotonicity property for one step."""
        updated, before = reestimate(hmm, SEQUENCES)
        assert total_log_likelihood(updated, SEQUENCES) >= before - 1e-9

    def test_input_model_unchanged(self, hmm):
        """Test that training never mutates its input."""
        A, B, pi = hmm.A.copy(), hmm.B.copy(), hmm.pi.copy()
        reestimate(hmm, SEQUENCES)

        np.testing.assert_array_equal(hmm.A, A)
        np.testing.assert_array_equal(hmm.B, B)
        np.testing.assert_array_equal(hmm.pi, pi)

    def test_unvisited_state_keeps_rows(self, unreachable_state_hmm):
        """Test that zero-occupancy rows keep their previous values."""
        updated, _ = reestimate(unreachable_state_hmm, [['x', 'y', 'x']])

        np.testing.assert_allclose(updated.A[1], [0.5, 0.5])
        np.testing.assert_allclose(updated.B[1], [0.3, 0.7])
        np.testing.assert_allclose(updated.B[0], [2 / 3, 1 / 3])
        np.testing.assert_allclose(updated.pi, [1.0, 0.0])

    def test_regularization(self, unreachable_state_hmm):
        """Test that the Dirichlet pseudo-count removes zeros."""
        updated, _ = reestimate(unreachable_state_hmm, [['x', 'y', 'x']], regularization_alpha=1.0)

        assert np.all(updated.A > 0)
        assert np.all(updated.pi > 0)
        np.testing.assert_allclose(updated.A[1], [0.5, 0.5])
        # 'a' occupies t = 0, 1 of the two transitions: (2 + 1) / (2 + 2) and 1 / 4
        np.testing.assert_allclose(updated.A[0], [0.75, 0.25])


class TestTrain:
    """Test the training loop."""

    def test_log_likelihood_non_decreasing(self, hmm):
        """Test that each iteration improves or keeps the likelihood."""
        result = train(hmm, SEQUENCES, max_iterations=30, convergence_threshold=1e-10)

        history = np.array(result.log_likelihood_history)
        assert np.all(np.diff(history) >= -1e-8)
        assert result.final_log_likelihood >= history[0]

    def test_history_layout(self, hmm):
        """Test that history[0] scores the input model."""
        result = train(hmm, SEQUENCES, max_iterations=5, convergence_threshold=1e-12)

        assert result.log_likelihood_history[0] == pytest.approx(total_log_likelihood(hmm, SEQUENCES))
        assert len(result.log_likelihood_history) == result.iterations + 1
        assert len(result.improvement_history) == result.iterations
        assert result.final_log_likelihood == pytest.approx(total_log_likelihood(result.model, SEQUENCES))

    def test_converges(self, hmm):
        """Test convergence with a loose threshold."""
        result = train(hmm, SEQUENCES, max_iterations=500, convergence_threshold=1e-4)

        assert result.converged
        assert result.iterations < 500
        assert result.improvement_history[-1] < 1e-4
        assert result.raise_for_convergence() is result

    def test_iteration_cap(self, hmm):
        """Test that hitting max_iterations reports non-convergence."""
        result = train(hmm, SEQUENCES, max_iterations=1, convergence_threshold=1e-12)

        assert not result.converged
        assert result.iterations == 1
        with pytest.raises(ConvergenceFailure) as exc_info:
            result.raise_for_convergence()
        assert exc_info.value.iterations == 1

    def test_defaults_from_config(self, hmm):
        """Test that the iteration cap falls back to the configured one."""
        set_config('hmm', 'max_iterations', 2)
        set_config('hmm', 'convergence_threshold', 1e-12)

        assert train(hmm, SEQUENCES).iterations == 2

    def test_trained_parameters_stochastic(self, hmm):
        """Test the trained model's parameters."""
        result = train(hmm, SEQUENCES, max_iterations=20)

        np.testing.assert_allclose(result.transition_matrix.sum(axis=1), 1.0)
        np.testing.assert_allclose(result.emission_matrix.sum(axis=1), 1.0)
        assert result.initial_probabilities.sum() == pytest.approx(1.0)

    def test_single_sequence_wrapper(self, hmm):
        """Test baum_welch on one sequence."""
        result = baum_welch(hmm, SEQUENCES[0], max_iterations=10)
        expected = train(hmm, [SEQUENCES[0]], max_iterations=10)

        np.testing.assert_allclose(result.transition_matrix, expected.transition_matrix)

    def test_to_dict(self, hmm):
        """Test the serialized result."""
        data = train(hmm, SEQUENCES, max_iterations=3).to_dict()

        assert set(data) == {'transition_matrix', 'emission_matrix', 'initial_probabilities',
                             'iterations', 'converged', 'final_log_likelihood',
                             'log_likelihood_history'}
        assert set(data['transition_matrix']) == {'s0', 's1'}
        assert sum(data['emission_matrix']['s0'].values()) == pytest.approx(1.0)


class TestTrainErrors:
    """Test rejected training input."""

    def test_no_sequences(self, hmm):
        """Test that at least one sequence is required."""
        with pytest.raises(StructuralError):
            train(hmm, [])

    def test_empty_sequence(self, hmm):
        """Test that empty sequences are rejected."""
        with pytest.raises(StructuralError, match="Sequence 1 is empty"):
            train(hmm, [['x'], []])

    def test_unknown_symbol(self, hmm):
        """Test that unknown symbols are rejected before training."""
        with pytest.raises(DomainError):
            train(hmm, [['x', 'z']])

    def test_invalid_model(self):
        """Test that a non-stochastic starting model is rejected."""
        model = HiddenMarkovModel(['a'], ['x'], [[0.5]], [[1.0]], [1.0])
        with pytest.raises(NormalizationError):
            train(model, [['x']])

    def test_impossible_sequence(self):
        """Test that a sequence the model cannot emit is rejected."""
        model = HiddenMarkovModel(['a'], ['x', 'y'], [[1.0]], [[1.0, 0.0]], [1.0])
        with pytest.raises(NormalizationError):
            train(model, [['x', 'y']])
