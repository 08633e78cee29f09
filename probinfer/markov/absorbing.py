"""
Absorbing-chain analysis.

With the states split into transient and absorbing ones, P has the canonical
block form ``[[Q, R], [0, I]]``. The fundamental matrix ``N = (I - Q)^-1``
gives the expected number of visits to each transient state, ``B = N R`` the
probability of ending in each absorbing state and ``t = N 1`` the expected
number of steps before absorption.
"""

from dataclasses import dataclass
from typing import Any, Dict, List

import numpy as np

from .chain import MarkovChain
from ..exceptions import StructuralError
from ..logger import get_logger

logger = get_logger(__name__)


@dataclass
class AbsorbingAnalysis:
    transient_states: List[str]
    absorbing_states: List[str]
    fundamental_matrix: np.ndarray
    absorption_probabilities: np.ndarray
    expected_steps: np.ndarray

    def absorption_probability(self, start: str, absorbing: str) -> float:
        if start in self.absorbing_states:
            return 1.0 if start == absorbing else 0.0
        i = self.transient_states.index(start)
        j = self.absorbing_states.index(absorbing)
        return float(self.absorption_probabilities[i, j])

    def to_dict(self) -> Dict[str, Any]:
        return {
            'transient_states': list(self.transient_states),
            'absorbing_states': list(self.absorbing_states),
            'fundamental_matrix': self.fundamental_matrix.tolist(),
            'absorption_probabilities': {
                start: {
                    target: float(self.absorption_probabilities[i, j])
                    for j, target in enumerate(self.absorbing_states)
                }
                for i, start in enumerate(self.transient_states)
            },
            'expected_steps': {
                start: float(self.expected_steps[i])
                for i, start in enumerate(self.transient_states)
            }
        }


def analyze_absorbing(chain: MarkovChain) -> AbsorbingAnalysis:
    """
    Fundamental-matrix analysis of an absorbing chain.

    Args:
        chain: A valid chain with at least one absorbing state

    Returns:
        AbsorbingAnalysis over the chain's transient and absorbing states

    Raises:
        StructuralError: If the chain has no absorbing state, or some transient
            states can never reach one (``I - Q`` is singular)
        NormalizationError: If the chain is not row-stochastic
    """
    chain.ensure_valid()

    absorbing = chain.absorbing_states()
    if not absorbing:
        raise StructuralError("Chain has no absorbing states")

    transient = [s for s in chain.states if s not in absorbing]
    t_index = [chain.index(s) for s in transient]
    a_index = [chain.index(s) for s in absorbing]

    P = chain.P
    Q = P[np.ix_(t_index, t_index)]
    R = P[np.ix_(t_index, a_index)]

    try:
        N = np.linalg.inv(np.eye(len(transient)) - Q)
    except np.linalg.LinAlgError:
        raise StructuralError("Some transient states never reach an absorbing state; "
                              "the fundamental matrix does not exist")

    B = N @ R
    steps = N @ np.ones(len(transient))

    logger.debug(f"Absorbing analysis: {len(transient)} transient, {len(absorbing)} absorbing states")

    return AbsorbingAnalysis(
        transient_states=transient,
        absorbing_states=absorbing,
        fundamental_matrix=N,
        absorption_probabilities=B,
        expected_steps=steps
    )
