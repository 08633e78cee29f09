"""
Discrete Hidden Markov Model.

This module holds the model parameters: hidden states Q, observation symbols
O, transition matrix A (|Q| x |Q|), emission matrix B (|Q| x |O|) and initial
probabilities pi (|Q|). States and symbols are identified by string ids and
may carry a display label. Models are immutable; training produces new ones.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from ..config import resolve
from ..exceptions import DomainError, NormalizationError, StructuralError
from ..logger import get_logger

logger = get_logger(__name__)

MatrixLike = Union[Mapping[str, Mapping[str, float]], Sequence[Sequence[float]], np.ndarray]
VectorLike = Union[Mapping[str, float], Sequence[float], np.ndarray]


@dataclass(frozen=True)
class Symbol:
    """A hidden state or an observation symbol."""
    id: str
    label: str

    @classmethod
    def parse(cls, raw: Any) -> 'Symbol':
        if isinstance(raw, Mapping):
            if 'id' not in raw:
                raise StructuralError(f"Entry {dict(raw)} has no 'id'")
            return cls(str(raw['id']), str(raw.get('label', raw['id'])))
        return cls(str(raw), str(raw))

    def to_dict(self) -> Dict[str, str]:
        return {'id': self.id, 'label': self.label}


def _parse_symbols(raw: Sequence[Any], kind: str) -> Tuple[Symbol, ...]:
    symbols = tuple(Symbol.parse(item) for item in raw)
    if not symbols:
        raise StructuralError(f"An HMM needs at least one {kind}")
    ids = [s.id for s in symbols]
    if len(set(ids)) != len(ids):
        raise StructuralError(f"Duplicate {kind} ids in {ids}")
    return symbols


class HiddenMarkovModel:
    """
    Discrete HMM with named hidden states and observation symbols.

    ``A[i, j] = P(q_t+1 = j | q_t = i)``, ``B[i, k] = P(o_t = k | q_t = i)``
    and ``pi[i] = P(q_0 = i)``. Each may be given as a numpy array, a list
    of rows, or mappings keyed by ids (absent entries are 0).
    """

    def __init__(self,
                 hidden_states: Sequence[Any],
                 observations: Sequence[Any],
                 transition_matrix: MatrixLike,
                 emission_matrix: MatrixLike,
                 initial_probabilities: VectorLike,
                 tolerance: Optional[float] = None):
        """
        Initialize HiddenMarkovModel.

        Args:
            hidden_states: State ids, or dicts with ``id`` and optional ``label``
            observations: Symbol ids, or dicts with ``id`` and optional ``label``
            transition_matrix: A, |Q| x |Q|
            emission_matrix: B, |Q| x |O|
            initial_probabilities: pi, |Q|
            tolerance: Allowed deviation of row sums from 1 (default from config)

        Raises:
            StructuralError: If states or symbols are empty or duplicated, or
                parameter shapes and ids don't match them
        """
        self.hidden_states = _parse_symbols(hidden_states, 'hidden state')
        self.symbols = _parse_symbols(observations, 'observation symbol')
        self.n_states = len(self.hidden_states)
        self.n_observations = len(self.symbols)
        self.tolerance = resolve(tolerance, 'hmm', 'tolerance')

        self._state_index = {s.id: i for i, s in enumerate(self.hidden_states)}
        self._symbol_index = {s.id: k for k, s in enumerate(self.symbols)}

        self.A = self._matrix(transition_matrix, self._state_index, 'transition matrix')
        self.B = self._matrix(emission_matrix, self._symbol_index, 'emission matrix')
        self.pi = self._vector(initial_probabilities)

        for array in (self.A, self.B, self.pi):
            array.setflags(write=False)

        logger.debug(f"Initialized HiddenMarkovModel with {self.n_states} states "
                     f"and {self.n_observations} observations")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], **kwargs) -> 'HiddenMarkovModel':
        """Build a model from the ``{hiddenStates, observations, ...}`` document."""
        def pick(*keys):
            for key in keys:
                if key in data:
                    return data[key]
            raise StructuralError(f"HMM description is missing '{keys[0]}'")

        return cls(
            pick('hiddenStates', 'hidden_states'),
            pick('observations', 'symbols'),
            pick('transitionMatrix', 'transition_matrix'),
            pick('emissionMatrix', 'emission_matrix'),
            pick('initialProbabilities', 'initial_probabilities'),
            **kwargs
        )

    def _matrix(self, raw: MatrixLike, column_index: Dict[str, int], name: str) -> np.ndarray:
        shape = (self.n_states, len(column_index))

        if isinstance(raw, Mapping):
            matrix = np.zeros(shape)
            for state, row in raw.items():
                i = self._lookup(self._state_index, state, f"{name} row")
                if not isinstance(row, Mapping):
                    raise StructuralError(f"Row '{state}' of the {name} must be a mapping")
                for column, p in row.items():
                    matrix[i, self._lookup(column_index, column, f"{name} column")] = float(p)
            return matrix

        matrix = np.array(raw, dtype=float)
        if matrix.shape != shape:
            raise StructuralError(f"{name.capitalize()} shape {matrix.shape} doesn't match expected {shape}")
        return matrix

    def _vector(self, raw: VectorLike) -> np.ndarray:
        if isinstance(raw, Mapping):
            vector = np.zeros(self.n_states)
            for state, p in raw.items():
                vector[self._lookup(self._state_index, state, 'initial probabilities')] = float(p)
            return vector

        vector = np.array(raw, dtype=float)
        if vector.shape != (self.n_states,):
            raise StructuralError(f"Initial probabilities shape {vector.shape} doesn't match "
                                  f"expected ({self.n_states},)")
        return vector

    @staticmethod
    def _lookup(index: Dict[str, int], key: Any, where: str) -> int:
        try:
            return index[str(key)]
        except KeyError:
            raise StructuralError(f"Unknown id '{key}' in {where}")

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def state_ids(self) -> List[str]:
        return [s.id for s in self.hidden_states]

    @property
    def symbol_ids(self) -> List[str]:
        return [s.id for s in self.symbols]

    def state_index(self, state: str) -> int:
        return self._lookup(self._state_index, state, 'hidden states')

    def encode(self, observations: Sequence[Any]) -> np.ndarray:
        """
        Map an observation sequence of symbol ids to indices.

        Raises:
            StructuralError: If the sequence is empty
            DomainError: If a symbol is not one of the model's observations
        """
        if len(observations) == 0:
            raise StructuralError("Observation sequence is empty")

        indices = np.empty(len(observations), dtype=int)
        for t, symbol in enumerate(observations):
            try:
                indices[t] = self._symbol_index[str(symbol)]
            except KeyError:
                raise DomainError(f"Observation '{symbol}' at position {t} is not one of "
                                  f"{self.symbol_ids}")
        return indices

    def decode_states(self, indices: Sequence[int]) -> List[str]:
        return [self.hidden_states[i].id for i in indices]

    def get_parameters(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Get model parameters.

        Returns:
            Tuple of (pi, A, B) copies
        """
        return self.pi.copy(), self.A.copy(), self.B.copy()

    def with_parameters(self, pi: np.ndarray, A: np.ndarray, B: np.ndarray) -> 'HiddenMarkovModel':
        """
        New model with the same states and symbols but different parameters.

        Raises:
            StructuralError: If the parameter dimensions don't match
        """
        return HiddenMarkovModel(
            [s.to_dict() for s in self.hidden_states],
            [s.to_dict() for s in self.symbols],
            A, B, pi,
            tolerance=self.tolerance
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> List[str]:
        """
        Check the stochastic properties of pi, A and B.

        Returns:
            List of problems; empty for a valid model
        """
        errors = []

        if np.any(self.pi < 0):
            errors.append("Initial probabilities contain negative values")
        if abs(self.pi.sum() - 1.0) > self.tolerance:
            errors.append(f"Initial probabilities sum to {self.pi.sum():.6f}, expected 1.0")

        for name, matrix in (('Transition', self.A), ('Emission', self.B)):
            if np.any(matrix < 0):
                errors.append(f"{name} matrix contains negative values")
            for i, total in enumerate(matrix.sum(axis=1)):
                if abs(total - 1.0) > self.tolerance:
                    errors.append(f"{name} row '{self.hidden_states[i].id}' sums to {total:.6f}, expected 1.0")

        return errors

    def is_valid(self) -> bool:
        return not self.validate()

    def validate_stochastic_matrices(self) -> bool:
        """
        Validate that all probability matrices satisfy stochastic properties.

        Returns:
            bool: True if all matrices are valid stochastic matrices

        Raises:
            NormalizationError: If any matrix violates stochastic properties
        """
        errors = self.validate()
        if errors:
            raise NormalizationError("Invalid HMM parameters: " + "; ".join(errors))

        logger.debug("All stochastic matrix properties validated successfully")
        return True

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def info(self) -> Dict[str, Any]:
        return {
            'hidden_state_count': self.n_states,
            'observation_count': self.n_observations,
            'hidden_states': [s.label for s in self.hidden_states],
            'observations': [s.label for s in self.symbols],
            'is_valid': self.is_valid()
        }

    def matrices_to_dict(self) -> Dict[str, Any]:
        states = self.state_ids
        symbols = self.symbol_ids
        return {
            'transitionMatrix': {
                states[i]: {states[j]: float(self.A[i, j]) for j in range(self.n_states)}
                for i in range(self.n_states)
            },
            'emissionMatrix': {
                states[i]: {symbols[k]: float(self.B[i, k]) for k in range(self.n_observations)}
                for i in range(self.n_states)
            },
            'initialProbabilities': {states[i]: float(self.pi[i]) for i in range(self.n_states)}
        }

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'hiddenStates': [s.to_dict() for s in self.hidden_states],
            'observations': [s.to_dict() for s in self.symbols]
        }
        data.update(self.matrices_to_dict())
        return data

    def __repr__(self) -> str:
        return f"HiddenMarkovModel(n_states={self.n_states}, n_observations={self.n_observations})"
