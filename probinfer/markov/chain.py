"""
Finite-state first-order Markov chain.

This module implements the chain model (states, dense transition matrix,
initial distribution) together with simulation, n-step propagation and the
structural classification of the chain.
"""

import math
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np

from ..config import resolve
from ..exceptions import NormalizationError, StructuralError
from ..logger import get_logger

logger = get_logger(__name__)

DistributionLike = Union[Sequence[float], Mapping[str, float], np.ndarray]


class MarkovChain:
    """
    Discrete-time Markov chain over a finite ordered set of states.

    ``P[i, j]`` is the probability of moving to state ``j`` from state ``i``.
    The transition matrix may be given as nested ``{from: {to: p}}``
    mappings (absent entries are 0) or as a square list of rows.
    """

    def __init__(self,
                 states: Sequence[Any],
                 transition_matrix: Union[Mapping[str, Mapping[str, float]], Sequence[Sequence[float]], np.ndarray],
                 initial_distribution: Optional[DistributionLike] = None,
                 tolerance: Optional[float] = None,
                 random_state: Optional[int] = None):
        """
        Initialize MarkovChain.

        Args:
            states: State ids, or dicts with an ``id`` key
            transition_matrix: Nested mapping or square matrix of probabilities
            initial_distribution: Start distribution (default: uniform)
            tolerance: Allowed deviation of row sums from 1 (default from config)
            random_state: Seed for the chain's random generator

        Raises:
            StructuralError: If states are empty or duplicated, or the matrix
                refers to unknown states or has the wrong shape
        """
        self.states = [str(s['id']) if isinstance(s, Mapping) else str(s) for s in states]
        if not self.states:
            raise StructuralError("A Markov chain needs at least one state")
        if len(set(self.states)) != len(self.states):
            raise StructuralError(f"Duplicate state ids in {self.states}")

        self.n_states = len(self.states)
        self.state_index = {state: i for i, state in enumerate(self.states)}
        self.tolerance = resolve(tolerance, 'markov', 'tolerance')

        self._P = self._build_matrix(transition_matrix)
        if initial_distribution is None:
            self._initial = np.ones(self.n_states) / self.n_states
        else:
            self._initial = self._as_distribution(initial_distribution, check=False)

        seed = resolve(random_state, 'markov', 'random_seed')
        self._rng = np.random.default_rng(seed)

        logger.debug(f"Initialized MarkovChain with {self.n_states} states")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], **kwargs) -> 'MarkovChain':
        """Build a chain from ``{states, transitionMatrix, initialDistribution?}``."""
        matrix = data.get('transitionMatrix', data.get('transition_matrix'))
        if matrix is None:
            raise StructuralError("Markov chain description has no transition matrix")
        initial = data.get('initialDistribution', data.get('initial_distribution'))
        return cls(data.get('states', []), matrix, initial, **kwargs)

    def _build_matrix(self, raw) -> np.ndarray:
        n = self.n_states

        if isinstance(raw, Mapping):
            P = np.zeros((n, n))
            for source, row in raw.items():
                i = self.index(str(source))
                if not isinstance(row, Mapping):
                    raise StructuralError(f"Transitions from '{source}' must be a mapping of state to probability")
                for target, probability in row.items():
                    P[i, self.index(str(target))] = float(probability)
            return P

        P = np.asarray(raw, dtype=float)
        if P.shape != (n, n):
            raise StructuralError(f"Transition matrix shape {P.shape} doesn't match ({n}, {n})")
        return P.copy()

    def _as_distribution(self, distribution: DistributionLike, check: bool = True) -> np.ndarray:
        if isinstance(distribution, Mapping):
            vector = np.zeros(self.n_states)
            for state, probability in distribution.items():
                vector[self.index(str(state))] = float(probability)
        else:
            vector = np.asarray(distribution, dtype=float).copy()
            if vector.shape != (self.n_states,):
                raise StructuralError(f"Distribution shape {vector.shape} doesn't match ({self.n_states},)")

        if check:
            if np.any(vector < 0):
                raise NormalizationError("Distribution contains negative probabilities")
            if abs(vector.sum() - 1.0) > self.tolerance:
                raise NormalizationError(f"Distribution sums to {vector.sum():.6f}, expected 1.0")
        return vector

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def P(self) -> np.ndarray:
        return self._P.copy()

    @property
    def transition_matrix(self) -> np.ndarray:
        return self._P.copy()

    @property
    def initial_distribution(self) -> np.ndarray:
        return self._initial.copy()

    def index(self, state: str) -> int:
        try:
            return self.state_index[state]
        except KeyError:
            raise StructuralError(f"Unknown state '{state}'. Known states: {self.states}")

    def state_name(self, index: int) -> str:
        return self.states[index]

    def transition_probability(self, from_state: str, to_state: str) -> float:
        return float(self._P[self.index(from_state), self.index(to_state)])

    def transitions_from(self, state: str) -> Dict[str, float]:
        row = self._P[self.index(state)]
        return {self.states[j]: float(p) for j, p in enumerate(row) if p > 0}

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> List[str]:
        """
        Check that P is row-stochastic and the initial distribution sums to 1.

        Returns:
            List of problems; empty for a valid chain
        """
        errors = []

        for i, state in enumerate(self.states):
            row = self._P[i]
            if np.any(row < 0) or np.any(row > 1):
                errors.append(f"Transitions from '{state}' contain probabilities outside [0, 1]")
            total = row.sum()
            if abs(total - 1.0) > self.tolerance:
                errors.append(f"Transitions from '{state}' sum to {total:.6f}, expected 1.0")

        if np.any(self._initial < 0):
            errors.append("Initial distribution contains negative probabilities")
        if abs(self._initial.sum() - 1.0) > self.tolerance:
            errors.append(f"Initial distribution sums to {self._initial.sum():.6f}, expected 1.0")

        return errors

    def is_valid(self) -> bool:
        return not self.validate()

    def ensure_valid(self) -> None:
        """
        Raises:
            NormalizationError: If any row or the initial distribution is not stochastic
        """
        errors = self.validate()
        if errors:
            raise NormalizationError("Invalid Markov chain: " + "; ".join(errors))

    # ------------------------------------------------------------------
    # Simulation and propagation
    # ------------------------------------------------------------------

    def step(self, state: str, rng: Optional[np.random.Generator] = None) -> str:
        """
        Draw the next state by inverse-CDF sampling of the row of ``state``.

        Args:
            state: Current state id
            rng: Random generator (default: the chain's own generator)

        Returns:
            Next state id
        """
        rng = rng if rng is not None else self._rng
        cumulative = np.cumsum(self._P[self.index(state)])
        draw = rng.random()
        j = int(np.searchsorted(cumulative, draw, side='right'))
        return self.states[min(j, self.n_states - 1)]

    def simulate(self, initial_state: str, steps: int,
                 rng: Optional[np.random.Generator] = None) -> List[str]:
        """
        Simulate ``steps`` transitions.

        Returns:
            Sequence of ``steps + 1`` states, starting with ``initial_state``
        """
        if steps < 0:
            raise ValueError(f"steps must be non-negative, got {steps}")
        self.ensure_valid()

        current = self.states[self.index(initial_state)]
        sequence = [current]
        for _ in range(steps):
            current = self.step(current, rng)
            sequence.append(current)
        return sequence

    def distribution_after(self, initial_distribution: Optional[DistributionLike] = None,
                           steps: int = 1) -> np.ndarray:
        """
        Propagate a distribution ``steps`` times with ``pi <- pi P``.

        Args:
            initial_distribution: Start distribution (default: the chain's own)
            steps: Number of transitions

        Returns:
            Distribution after ``steps`` transitions
        """
        if steps < 0:
            raise ValueError(f"steps must be non-negative, got {steps}")
        self.ensure_valid()

        if initial_distribution is None:
            distribution = self._initial.copy()
        else:
            distribution = self._as_distribution(initial_distribution)

        for _ in range(steps):
            distribution = distribution @ self._P
        return distribution

    def n_step_matrix(self, n: int) -> np.ndarray:
        """Transition probabilities in exactly ``n`` steps (``P^n``)."""
        if n < 0:
            raise ValueError(f"n must be non-negative, got {n}")
        self.ensure_valid()
        return np.linalg.matrix_power(self._P, n)

    def n_step_probability(self, from_state: str, to_state: str, n: int) -> float:
        return float(self.n_step_matrix(n)[self.index(from_state), self.index(to_state)])

    def stationary_distribution(self, tolerance: Optional[float] = None,
                                max_iterations: Optional[int] = None,
                                method: Optional[str] = None):
        """Shortcut for :func:`probinfer.markov.stationary.stationary_distribution`."""
        from .stationary import stationary_distribution
        return stationary_distribution(self, tolerance, max_iterations, method)

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def _reachable(self, start: int) -> np.ndarray:
        visited = np.zeros(self.n_states, dtype=bool)
        visited[start] = True
        stack = [start]
        while stack:
            i = stack.pop()
            for j in np.flatnonzero(self._P[i] > 0):
                if not visited[j]:
                    visited[j] = True
                    stack.append(j)
        return visited

    def is_irreducible(self) -> bool:
        """Every state reaches every other state through positive transitions."""
        return all(self._reachable(i).all() for i in range(self.n_states))

    def is_aperiodic(self) -> bool:
        """
        Approximate aperiodicity: at least one state has a self-loop.

        A self-loop makes its communicating class aperiodic; the converse does
        not hold, so chains without any self-loop are reported periodic even
        when their cycle lengths are coprime. See :meth:`period`.
        """
        return bool(np.any(np.diag(self._P) > 0))

    def period(self, state: str) -> int:
        """
        Period of ``state``: gcd of the lengths of all cycles through it.

        Returns:
            The period, or 0 if the state lies on no cycle
        """
        s = self.index(state)
        forward = self._reachable(s)
        backward = np.array([self._reachable(i)[s] for i in range(self.n_states)])
        component = forward & backward

        level = {s: 0}
        queue = [s]
        for i in queue:
            for j in np.flatnonzero(self._P[i] > 0):
                if component[j] and j not in level:
                    level[j] = level[i] + 1
                    queue.append(j)

        period = 0
        for i in level:
            for j in np.flatnonzero(self._P[i] > 0):
                if j in level:
                    period = math.gcd(period, level[i] + 1 - level[j])
        return abs(period)

    def is_ergodic(self) -> bool:
        return self.is_irreducible() and self.is_aperiodic()

    def is_absorbing_state(self, state: str) -> bool:
        tolerance = resolve(None, 'markov', 'absorbing_tolerance')
        i = self.index(state)
        return abs(self._P[i, i] - 1.0) < tolerance

    def absorbing_states(self) -> List[str]:
        return [s for s in self.states if self.is_absorbing_state(s)]

    # ------------------------------------------------------------------
    # Passage and absorption
    # ------------------------------------------------------------------

    def absorption_probability(self, start: str, absorbing: str,
                               max_steps: Optional[int] = None) -> float:
        """
        Probability of being in ``absorbing`` after ``max_steps`` steps from ``start``.

        Returns 0 when ``absorbing`` is not an absorbing state.
        """
        max_steps = resolve(max_steps, 'markov', 'first_passage_max_steps')
        self.ensure_valid()
        if not self.is_absorbing_state(absorbing):
            return 0.0

        distribution = np.zeros(self.n_states)
        distribution[self.index(start)] = 1.0
        for _ in range(max_steps):
            distribution = distribution @ self._P
        return float(distribution[self.index(absorbing)])

    def first_passage_time(self, from_state: str, to_state: str,
                           max_steps: Optional[int] = None) -> float:
        """
        Expected number of steps to first reach ``to_state`` from ``from_state``.

        The expectation ``sum_t t * f_t`` is truncated at ``max_steps``, where
        ``f_t`` is the probability of arriving at ``to_state`` for the first
        time at step ``t``. The estimate is only meaningful when the total
        arrival probability within the horizon is close to 1.

        Returns:
            Expected first passage time (0 when both states are the same)
        """
        max_steps = resolve(max_steps, 'markov', 'first_passage_max_steps')
        self.ensure_valid()
        source = self.index(from_state)
        target = self.index(to_state)
        if source == target:
            return 0.0

        # Probability mass that has not yet visited the target
        distribution = np.zeros(self.n_states)
        distribution[source] = 1.0
        expected = 0.0
        arrived = 0.0

        for t in range(1, max_steps + 1):
            distribution = distribution @ self._P
            first_arrival = distribution[target]
            expected += t * first_arrival
            arrived += first_arrival
            distribution[target] = 0.0
            if distribution.sum() < 1e-12:
                break

        if arrived < 0.99:
            logger.warning(f"Only {arrived:.4f} of the probability mass reaches '{to_state}' "
                           f"from '{from_state}' within {max_steps} steps; "
                           f"the first passage time is truncated")
        return float(expected)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def summary(self) -> Dict[str, Any]:
        irreducible = self.is_irreducible()
        aperiodic = self.is_aperiodic()
        return {
            'state_count': self.n_states,
            'is_valid': self.is_valid(),
            'is_irreducible': irreducible,
            'is_aperiodic': aperiodic,
            'is_ergodic': irreducible and aperiodic,
            'absorbing_states': self.absorbing_states(),
            'has_stationary_distribution': irreducible and aperiodic
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'states': list(self.states),
            'transitionMatrix': {
                self.states[i]: {self.states[j]: float(self._P[i, j]) for j in range(self.n_states)}
                for i in range(self.n_states)
            },
            'initialDistribution': self._initial.tolist()
        }

    def __repr__(self) -> str:
        return f"MarkovChain(n_states={self.n_states})"
