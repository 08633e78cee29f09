"""
probinfer: probabilistic inference engine

Exact inference on discrete Bayesian networks, analysis and simulation of
finite Markov chains, and evaluation, decoding and training of discrete
Hidden Markov Models.
"""

__version__ = "0.1.0"
__author__ = "probinfer Development Team"

from .config import get_config, set_config
from .logger import get_logger
from .exceptions import (
    ProbInferError,
    StructuralError,
    NormalizationError,
    DomainError,
    ConvergenceFailure,
    SchemaValidationError,
    InputError
)
from .bayes import BayesianNetwork, InferenceResult, infer
from .markov import MarkovChain, StationaryResult, stationary_distribution
from .hmm import HiddenMarkovModel, ForwardResult, ViterbiResult, BaumWelchResult, forward, viterbi, baum_welch

__all__ = [
    "get_config",
    "set_config",
    "get_logger",
    "ProbInferError",
    "StructuralError",
    "NormalizationError",
    "DomainError",
    "ConvergenceFailure",
    "SchemaValidationError",
    "InputError",
    "BayesianNetwork",
    "InferenceResult",
    "infer",
    "MarkovChain",
    "StationaryResult",
    "stationary_distribution",
    "HiddenMarkovModel",
    "ForwardResult",
    "ViterbiResult",
    "BaumWelchResult",
    "forward",
    "viterbi",
    "baum_welch",
    "__version__"
]
