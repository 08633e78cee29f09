"""
Hidden Markov Model module.

Discrete HMM with Forward, Backward, Viterbi, scaled forward-backward and
Baum-Welch training.
"""

from .model import HiddenMarkovModel, Symbol
from .algorithms import (
    ForwardResult,
    ViterbiResult,
    forward,
    backward,
    forward_backward_scaled,
    score,
    posterior_marginals,
    viterbi
)
from .training import BaumWelchResult, baum_welch, train, reestimate, total_log_likelihood

__all__ = [
    "HiddenMarkovModel",
    "Symbol",
    "ForwardResult",
    "ViterbiResult",
    "forward",
    "backward",
    "forward_backward_scaled",
    "score",
    "posterior_marginals",
    "viterbi",
    "BaumWelchResult",
    "baum_welch",
    "train",
    "reestimate",
    "total_log_likelihood"
]
