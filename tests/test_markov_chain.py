"""
Tests for the Markov chain model.
"""

import numpy as np
import pytest

from probinfer.markov import MarkovChain
from probinfer.exceptions import NormalizationError, StructuralError


@pytest.fixture
def weather_chain(weather_chain_data):
    return MarkovChain.from_dict(weather_chain_data, random_state=42)


@pytest.fixture
def cycle_chain():
    """Deterministic 3-cycle: irreducible with period 3."""
    return MarkovChain(['a', 'b', 'c'], [[0, 1, 0], [0, 0, 1], [1, 0, 0]])


class TestConstruction:
    """Test the accepted matrix encodings."""

    def test_nested_mapping_with_missing_entries(self):
        """Test that absent transitions default to 0."""
        chain = MarkovChain(['a', 'b'], {'a': {'b': 1.0}, 'b': {'a': 0.3, 'b': 0.7}})

        np.testing.assert_array_almost_equal(chain.P, [[0.0, 1.0], [0.3, 0.7]])

    def test_list_matrix(self, weather_chain):
        """Test that list and mapping forms agree."""
        chain = MarkovChain(['Sunny', 'Rainy'], [[0.9, 0.1], [0.5, 0.5]])
        np.testing.assert_array_almost_equal(chain.P, weather_chain.P)

    def test_uniform_initial_distribution(self, weather_chain):
        """Test the default initial distribution."""
        np.testing.assert_array_almost_equal(weather_chain.initial_distribution, [0.5, 0.5])

    def test_state_dicts(self):
        """Test states given as {id} objects."""
        chain = MarkovChain([{'id': 'x'}, {'id': 'y'}], [[1, 0], [0, 1]])
        assert chain.states == ['x', 'y']
        assert chain.index('y') == 1

    def test_unknown_state_in_matrix(self):
        """Test that transitions to undeclared states are rejected."""
        with pytest.raises(StructuralError, match="Unknown state"):
            MarkovChain(['a'], {'a': {'z': 1.0}})

    def test_wrong_shape(self):
        """Test that a non-square matrix is rejected."""
        with pytest.raises(StructuralError, match="shape"):
            MarkovChain(['a', 'b'], [[1.0, 0.0]])

    def test_empty_states(self):
        """Test that a chain needs at least one state."""
        with pytest.raises(StructuralError):
            MarkovChain([], [])


class TestValidation:
    """Test row-stochastic checks."""

    def test_rows_sum_to_one(self, weather_chain):
        """Test a valid chain."""
        assert weather_chain.validate() == []
        np.testing.assert_array_almost_equal(weather_chain.P.sum(axis=1), [1.0, 1.0])

    def test_bad_row(self):
        """Test that an unnormalized row is reported."""
        chain = MarkovChain(['a', 'b'], [[0.5, 0.4], [0.5, 0.5]])

        assert not chain.is_valid()
        with pytest.raises(NormalizationError, match="'a'"):
            chain.ensure_valid()

    def test_bad_initial_distribution(self):
        """Test that the initial distribution must sum to 1."""
        chain = MarkovChain(['a', 'b'], [[1, 0], [0, 1]], initial_distribution=[0.7, 0.7])
        with pytest.raises(NormalizationError, match="Initial distribution"):
            chain.ensure_valid()

    @pytest.mark.parametrize("operation", [
        lambda chain: chain.distribution_after([1.0, 0.0], 2),
        lambda chain: chain.n_step_matrix(2),
        lambda chain: chain.n_step_probability('a', 'b', 1),
        lambda chain: chain.first_passage_time('a', 'b'),
        lambda chain: chain.absorption_probability('a', 'b'),
        lambda chain: chain.simulate('a', 3),
    ])
    def test_operations_reject_invalid_chain(self, operation):
        """Test that propagation refuses a chain whose rows do not sum to 1."""
        chain = MarkovChain(['a', 'b'], [[1.0, 1.0], [0.0, 1.0]])

        with pytest.raises(NormalizationError, match="Invalid Markov chain"):
            operation(chain)


class TestSimulation:
    """Test sampling and propagation."""

    def test_simulate_length_and_start(self, weather_chain):
        """Test that a run has steps + 1 states and starts where asked."""
        sequence = weather_chain.simulate('Rainy', 20)

        assert len(sequence) == 21
        assert sequence[0] == 'Rainy'
        assert set(sequence) <= {'Sunny', 'Rainy'}

    def test_simulate_reproducible(self, weather_chain_data):
        """Test seeding."""
        first = MarkovChain.from_dict(weather_chain_data, random_state=7).simulate('Sunny', 50)
        second = MarkovChain.from_dict(weather_chain_data, random_state=7).simulate('Sunny', 50)
        assert first == second

    def test_deterministic_step(self, cycle_chain):
        """Test inverse-CDF sampling on a deterministic row."""
        assert cycle_chain.simulate('a', 4) == ['a', 'b', 'c', 'a', 'b']

    def test_step_uses_only_positive_transitions(self):
        """Test that zero-probability targets are never sampled."""
        chain = MarkovChain(['a', 'b', 'c'], [[0.0, 0.5, 0.5], [0, 1, 0], [0, 0, 1]], random_state=0)
        rng = np.random.default_rng(3)
        assert all(chain.step('a', rng) != 'a' for _ in range(200))

    def test_step_frequencies(self, weather_chain):
        """Test that empirical frequencies follow the row."""
        rng = np.random.default_rng(123)
        draws = [weather_chain.step('Sunny', rng) for _ in range(5000)]
        assert draws.count('Rainy') / len(draws) == pytest.approx(0.1, abs=0.02)

    def test_unknown_initial_state(self, weather_chain):
        """Test that simulating from an unknown state fails."""
        with pytest.raises(StructuralError):
            weather_chain.simulate('Foggy', 3)

    def test_distribution_after(self, weather_chain):
        """Test pi <- pi P propagation."""
        np.testing.assert_array_almost_equal(
            weather_chain.distribution_after([1.0, 0.0], 1), [0.9, 0.1])
        np.testing.assert_array_almost_equal(
            weather_chain.distribution_after({'Sunny': 1.0}, 2), [0.86, 0.14])
        np.testing.assert_array_almost_equal(
            weather_chain.distribution_after([0.3, 0.7], 0), [0.3, 0.7])

    def test_distribution_after_rejects_bad_input(self, weather_chain):
        """Test distribution validation."""
        with pytest.raises(NormalizationError):
            weather_chain.distribution_after([0.5, 0.6], 1)
        with pytest.raises(StructuralError):
            weather_chain.distribution_after([1.0], 1)

    def test_n_step(self, weather_chain):
        """Test matrix powers."""
        np.testing.assert_array_almost_equal(weather_chain.n_step_matrix(0), np.eye(2))
        np.testing.assert_array_almost_equal(
            weather_chain.n_step_matrix(2), [[0.86, 0.14], [0.7, 0.3]])
        assert weather_chain.n_step_probability('Rainy', 'Sunny', 2) == pytest.approx(0.7)


class TestClassification:
    """Test irreducibility, periodicity and absorption."""

    def test_weather_is_ergodic(self, weather_chain):
        """Test an irreducible chain with self-loops."""
        assert weather_chain.is_irreducible()
        assert weather_chain.is_aperiodic()
        assert weather_chain.is_ergodic()

    def test_cycle_is_periodic(self, cycle_chain):
        """Test a chain without self-loops."""
        assert cycle_chain.is_irreducible()
        assert not cycle_chain.is_aperiodic()
        assert not cycle_chain.is_ergodic()
        assert cycle_chain.period('a') == 3

    def test_self_loop_approximation_vs_period(self):
        """Test a chain with coprime cycle lengths but no self-loop."""
        # Cycles a->b->a (length 2) and a->b->c->a (length 3)
        chain = MarkovChain(['a', 'b', 'c'], [[0, 1, 0], [0.5, 0, 0.5], [1, 0, 0]])

        assert chain.period('a') == 1
        assert not chain.is_aperiodic()

    def test_reducible_chain(self, gambler_chain_data):
        """Test that absorbing states break irreducibility."""
        chain = MarkovChain.from_dict(gambler_chain_data)

        assert not chain.is_irreducible()
        assert chain.absorbing_states() == ['0', '3']
        assert chain.is_absorbing_state('0')
        assert not chain.is_absorbing_state('1')

    def test_summary(self, weather_chain):
        """Test summary flags."""
        summary = weather_chain.summary()

        assert summary['state_count'] == 2
        assert summary['is_ergodic'] is True
        assert summary['absorbing_states'] == []


class TestPassage:
    """Test first passage and absorption probabilities."""

    def test_first_passage_time(self, weather_chain):
        """Test expected time from Sunny to Rainy (geometric with p = 0.1)."""
        assert weather_chain.first_passage_time('Sunny', 'Rainy') == pytest.approx(10.0, abs=1e-3)
        assert weather_chain.first_passage_time('Rainy', 'Sunny') == pytest.approx(2.0, abs=1e-6)

    def test_first_passage_to_self(self, weather_chain):
        """Test the same-state convention."""
        assert weather_chain.first_passage_time('Sunny', 'Sunny') == 0.0

    def test_first_passage_deterministic(self, cycle_chain):
        """Test a deterministic cycle."""
        assert cycle_chain.first_passage_time('a', 'c') == pytest.approx(2.0)

    def test_partially_reachable_target(self, gambler_chain_data):
        """Test the truncated estimate when most mass is absorbed elsewhere."""
        chain = MarkovChain.from_dict(gambler_chain_data)

        # Only a third of the walks from '1' ever reach '3'; sum_k (2k+2) / 4^(k+1) = 8/9
        value = chain.first_passage_time('1', '3', max_steps=200)
        assert value == pytest.approx(8 / 9, abs=1e-6)

    def test_absorption_probability(self, gambler_chain_data):
        """Test gambler's ruin absorption probabilities."""
        chain = MarkovChain.from_dict(gambler_chain_data)

        assert chain.absorption_probability('1', '3') == pytest.approx(1 / 3, abs=1e-6)
        assert chain.absorption_probability('2', '3') == pytest.approx(2 / 3, abs=1e-6)
        assert chain.absorption_probability('1', '2') == 0.0

    def test_to_dict_round_trip(self, weather_chain):
        """Test serialization."""
        rebuilt = MarkovChain.from_dict(weather_chain.to_dict())

        assert rebuilt.states == weather_chain.states
        np.testing.assert_array_almost_equal(rebuilt.P, weather_chain.P)
