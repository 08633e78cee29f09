"""
Markov chain module.

Chain model with simulation, classification, stationary distributions,
absorbing-chain analysis and sequence statistics.
"""

from .chain import MarkovChain
from .stationary import StationaryResult, stationary_distribution, verify_stationary, STATIONARY_METHODS
from .absorbing import AbsorbingAnalysis, analyze_absorbing
from .statistics import (
    sequence_statistics,
    empirical_transitions,
    transition_deviations,
    dwell_times,
    entropy_bits,
    run_simulations
)

__all__ = [
    "MarkovChain",
    "StationaryResult",
    "stationary_distribution",
    "verify_stationary",
    "STATIONARY_METHODS",
    "AbsorbingAnalysis",
    "analyze_absorbing",
    "sequence_statistics",
    "empirical_transitions",
    "transition_deviations",
    "dwell_times",
    "entropy_bits",
    "run_simulations"
]
