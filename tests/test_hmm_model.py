"""
Unit tests for HiddenMarkovModel implementation.

Tests cover initialization, stochastic matrix properties, parameter validation,
and edge cases for the core HMM data structures.
"""

import pytest
import numpy as np

from probinfer.exceptions import DomainError, NormalizationError, StructuralError
from probinfer.hmm import HiddenMarkovModel, Symbol


@pytest.fixture
def hmm(simple_hmm_data):
    return HiddenMarkovModel.from_dict(simple_hmm_data)


class TestHiddenMarkovModelInitialization:
    """Test HMM initialization and basic properties."""

    def test_from_dict(self, hmm):
        """Test dimensions and ids read from the document."""
        assert hmm.n_states == 2
        assert hmm.n_observations == 2
        assert hmm.state_ids == ['s0', 's1']
        assert hmm.symbol_ids == ['x', 'y']
        assert hmm.A.shape == (2, 2)
        assert hmm.B.shape == (2, 2)
        assert hmm.pi.shape == (2,)

    def test_matrix_and_mapping_forms_agree(self, hmm):
        """Test that list parameters match the mapping document."""
        other = HiddenMarkovModel(
            ['s0', 's1'], ['x', 'y'],
            [[0.7, 0.3], [0.4, 0.6]],
            np.array([[0.9, 0.1], [0.2, 0.8]]),
            [0.6, 0.4]
        )

        np.testing.assert_array_almost_equal(other.A, hmm.A)
        np.testing.assert_array_almost_equal(other.B, hmm.B)
        np.testing.assert_array_almost_equal(other.pi, hmm.pi)

    def test_labels(self, hmm):
        """Test that labels default to ids."""
        assert hmm.hidden_states[0] == Symbol('s0', 'State 0')
        assert Symbol.parse('z') == Symbol('z', 'z')

    def test_missing_mapping_entries_are_zero(self):
        """Test sparse mapping parameters."""
        hmm = HiddenMarkovModel(['a', 'b'], ['x'],
                                {'a': {'b': 1.0}, 'b': {'b': 1.0}},
                                {'a': {'x': 1.0}, 'b': {'x': 1.0}},
                                {'a': 1.0})

        np.testing.assert_array_equal(hmm.A, [[0.0, 1.0], [0.0, 1.0]])
        np.testing.assert_array_equal(hmm.pi, [1.0, 0.0])
        assert hmm.is_valid()

    def test_wrong_shape(self):
        """Test that mismatched dimensions are structural errors."""
        with pytest.raises(StructuralError, match="shape"):
            HiddenMarkovModel(['a', 'b'], ['x'], [[1.0]], [[1.0], [1.0]], [0.5, 0.5])

    def test_unknown_id_in_parameters(self):
        """Test that parameters may only refer to declared ids."""
        with pytest.raises(StructuralError, match="Unknown id 'z'"):
            HiddenMarkovModel(['a'], ['x'], {'a': {'a': 1.0}}, {'a': {'z': 1.0}}, [1.0])

    def test_duplicate_and_empty_ids(self):
        """Test id list checks."""
        with pytest.raises(StructuralError, match="Duplicate"):
            HiddenMarkovModel(['a', 'a'], ['x'], np.eye(2), [[1.0], [1.0]], [0.5, 0.5])
        with pytest.raises(StructuralError):
            HiddenMarkovModel(['a'], [], [[1.0]], np.zeros((1, 0)), [1.0])

    def test_missing_key_in_document(self, simple_hmm_data):
        """Test that incomplete documents are rejected."""
        del simple_hmm_data['emissionMatrix']
        with pytest.raises(StructuralError, match="emissionMatrix"):
            HiddenMarkovModel.from_dict(simple_hmm_data)


class TestStochasticMatrixProperties:
    """Test that all probability matrices satisfy stochastic properties."""

    def test_validate_stochastic_matrices_success(self, hmm):
        """Test validation passes for a valid model."""
        assert hmm.validate() == []
        assert hmm.validate_stochastic_matrices() is True

    def test_validate_stochastic_matrices_invalid_pi(self):
        """Test validation fails for invalid initial probabilities."""
        hmm = HiddenMarkovModel(['a', 'b'], ['x'], np.eye(2), [[1.0], [1.0]], [0.5, 0.4])

        with pytest.raises(NormalizationError, match="Initial probabilities sum to"):
            hmm.validate_stochastic_matrices()

    def test_validate_stochastic_matrices_invalid_A(self):
        """Test validation fails for invalid transition matrix."""
        hmm = HiddenMarkovModel(['a', 'b'], ['x'], [[0.5, 0.0], [0.0, 1.0]], [[1.0], [1.0]], [0.5, 0.5])

        with pytest.raises(NormalizationError, match="Transition row 'a' sums to"):
            hmm.validate_stochastic_matrices()

    def test_validate_stochastic_matrices_invalid_B(self):
        """Test validation fails for invalid emission matrix."""
        hmm = HiddenMarkovModel(['a', 'b'], ['x', 'y'], np.eye(2), [[0.5, 0.5], [0.9, 0.9]], [0.5, 0.5])

        with pytest.raises(NormalizationError, match="Emission row 'b' sums to"):
            hmm.validate_stochastic_matrices()

    def test_validate_negative_values(self):
        """Test validation fails for negative entries even when rows sum to 1."""
        hmm = HiddenMarkovModel(['a', 'b'], ['x'], [[1.2, -0.2], [0.0, 1.0]], [[1.0], [1.0]], [0.5, 0.5])

        assert not hmm.is_valid()
        assert "Transition matrix contains negative values" in hmm.validate()

    def test_tolerance(self):
        """Test that row sums within the tolerance pass."""
        pi = [0.5, 0.5004]
        assert HiddenMarkovModel(['a', 'b'], ['x'], np.eye(2), [[1.0], [1.0]], pi).is_valid()
        assert not HiddenMarkovModel(['a', 'b'], ['x'], np.eye(2), [[1.0], [1.0]], pi,
                                     tolerance=1e-6).is_valid()


class TestParameters:
    """Test parameter access and immutability."""

    def test_parameters_are_read_only(self, hmm):
        """Test that a model cannot be modified in place."""
        with pytest.raises(ValueError):
            hmm.A[0, 0] = 0.5

    def test_get_parameters_returns_copies(self, hmm):
        """Test that returned parameters are independent of the model."""
        pi, A, B = hmm.get_parameters()
        A[0, 0] = 0.0

        assert hmm.A[0, 0] == pytest.approx(0.7)
        np.testing.assert_array_equal(pi, hmm.pi)
        np.testing.assert_array_equal(B, hmm.B)

    def test_with_parameters(self, hmm):
        """Test that with_parameters builds a new model with the same ids."""
        updated = hmm.with_parameters(np.array([1.0, 0.0]), np.eye(2), np.eye(2))

        assert updated is not hmm
        assert updated.state_ids == hmm.state_ids
        np.testing.assert_array_equal(updated.A, np.eye(2))
        assert hmm.A[0, 1] == pytest.approx(0.3)


class TestEncoding:
    """Test observation encoding."""

    def test_encode(self, hmm):
        """Test mapping ids to indices."""
        np.testing.assert_array_equal(hmm.encode(['x', 'y', 'y']), [0, 1, 1])
        assert hmm.decode_states([1, 0]) == ['s1', 's0']

    def test_empty_sequence(self, hmm):
        """Test that an empty sequence is a structural error."""
        with pytest.raises(StructuralError, match="empty"):
            hmm.encode([])

    def test_unknown_symbol(self, hmm):
        """Test that unknown symbols are domain errors."""
        with pytest.raises(DomainError, match="'z' at position 1"):
            hmm.encode(['x', 'z'])


class TestSerialization:
    """Test info and round-tripping."""

    def test_info(self, hmm):
        """Test the model summary."""
        info = hmm.info()

        assert info['hidden_state_count'] == 2
        assert info['observation_count'] == 2
        assert info['hidden_states'] == ['State 0', 'State 1']
        assert info['observations'] == ['X', 'Y']
        assert info['is_valid'] is True

    def test_to_dict_round_trip(self, hmm, simple_hmm_data):
        """Test that to_dict reproduces the input document."""
        data = hmm.to_dict()

        assert data['hiddenStates'] == simple_hmm_data['hiddenStates']
        assert data['emissionMatrix']['s1'] == pytest.approx(simple_hmm_data['emissionMatrix']['s1'])

        rebuilt = HiddenMarkovModel.from_dict(data)
        np.testing.assert_array_equal(rebuilt.A, hmm.A)
        np.testing.assert_array_equal(rebuilt.B, hmm.B)
        np.testing.assert_array_equal(rebuilt.pi, hmm.pi)
