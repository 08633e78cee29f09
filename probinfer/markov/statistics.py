"""
Statistics over simulated state sequences.
"""

from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .chain import MarkovChain
from ..logger import get_logger

logger = get_logger(__name__)


def visit_counts(chain: MarkovChain, sequence: Sequence[str]) -> np.ndarray:
    counts = np.zeros(chain.n_states, dtype=int)
    for state in sequence:
        counts[chain.index(state)] += 1
    return counts


def entropy_bits(frequencies: np.ndarray) -> float:
    """Shannon entropy in bits; zero-probability entries contribute nothing."""
    p = np.asarray(frequencies, dtype=float)
    p = p[p > 0]
    return float(-np.sum(p * np.log2(p)))


def empirical_transitions(chain: MarkovChain, sequence: Sequence[str]) -> np.ndarray:
    """
    Transition matrix estimated from consecutive pairs of ``sequence``.

    Rows of states that were never left stay all zero.
    """
    counts = np.zeros((chain.n_states, chain.n_states))
    indices = [chain.index(s) for s in sequence]
    for i, j in zip(indices[:-1], indices[1:]):
        counts[i, j] += 1

    totals = counts.sum(axis=1, keepdims=True)
    return np.divide(counts, totals, out=np.zeros_like(counts), where=totals > 0)


def transition_deviations(chain: MarkovChain, sequence: Sequence[str],
                          threshold: float = 0.01) -> List[Dict[str, Any]]:
    """Entries where the empirical and theoretical transition probabilities differ by more than ``threshold``."""
    empirical = empirical_transitions(chain, sequence)
    P = chain.P
    deviations = []
    for i, j in zip(*np.nonzero(np.abs(empirical - P) > threshold)):
        deviations.append({
            'from': chain.states[i],
            'to': chain.states[j],
            'theoretical': float(P[i, j]),
            'empirical': float(empirical[i, j]),
            'difference': float(abs(empirical[i, j] - P[i, j]))
        })
    return deviations


def dwell_times(chain: MarkovChain, sequence: Sequence[str]) -> Dict[str, List[int]]:
    """Lengths of the consecutive runs spent in each state."""
    runs = {state: [] for state in chain.states}
    if not sequence:
        return runs

    current = sequence[0]
    length = 1
    for state in sequence[1:]:
        if state == current:
            length += 1
        else:
            runs[current].append(length)
            current = state
            length = 1
    runs[current].append(length)
    return runs


def sequence_statistics(chain: MarkovChain, sequence: Sequence[str],
                        threshold: float = 0.01) -> Dict[str, Any]:
    """
    Summarize a state sequence produced by :meth:`MarkovChain.simulate`.

    Args:
        chain: The chain the sequence was drawn from
        sequence: State ids
        threshold: Minimum absolute difference reported in ``transition_deviations``

    Returns:
        Dictionary with visit counts and frequencies, entropy in bits and its
        maximum ``log2(n_states)``, the empirical transition matrix, its
        deviations from P and the dwell times per state
    """
    counts = visit_counts(chain, sequence)
    length = len(sequence)
    frequencies = counts / length if length else np.zeros(chain.n_states)
    dwell = dwell_times(chain, sequence)

    return {
        'length': length,
        'visit_counts': {s: int(c) for s, c in zip(chain.states, counts)},
        'frequencies': {s: float(f) for s, f in zip(chain.states, frequencies)},
        'entropy': entropy_bits(frequencies),
        'max_entropy': float(np.log2(chain.n_states)),
        'empirical_transitions': empirical_transitions(chain, sequence).tolist(),
        'transition_deviations': transition_deviations(chain, sequence, threshold),
        'dwell_times': dwell,
        'mean_dwell_times': {s: float(np.mean(r)) if r else 0.0 for s, r in dwell.items()}
    }


def run_simulations(chain: MarkovChain, initial_state: str, steps: int,
                    n_simulations: int, random_state: Optional[int] = None) -> Dict[str, Any]:
    """
    Repeat :meth:`MarkovChain.simulate` and aggregate the visit frequencies.

    Returns:
        Dictionary with the per-run sequences, mean visit frequencies and
        their standard deviation across runs
    """
    if n_simulations < 1:
        raise ValueError(f"n_simulations must be positive, got {n_simulations}")

    rng = np.random.default_rng(random_state)
    sequences = []
    frequencies = np.zeros((n_simulations, chain.n_states))

    for k in range(n_simulations):
        sequence = chain.simulate(initial_state, steps, rng=rng)
        sequences.append(sequence)
        frequencies[k] = visit_counts(chain, sequence) / len(sequence)

    logger.debug(f"Ran {n_simulations} simulations of {steps} steps from '{initial_state}'")

    return {
        'sequences': sequences,
        'mean_frequencies': {s: float(f) for s, f in zip(chain.states, frequencies.mean(axis=0))},
        'std_frequencies': {s: float(f) for s, f in zip(chain.states, frequencies.std(axis=0))}
    }
