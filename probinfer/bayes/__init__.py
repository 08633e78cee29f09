"""
Bayesian network module.

Graph model with canonical CPTs and exact inference by enumeration and
variable elimination.
"""

from .network import BayesianNetwork, Variable, BINARY_VALUES
from .enumeration import EnumerationEngine, enumerate_joint
from .elimination import Factor, eliminate_joint, elimination_order
from .inference import (
    InferenceResult,
    infer,
    enumeration_ask,
    elimination_ask,
    prior_marginal,
    prepare_evidence
)

__all__ = [
    "BayesianNetwork",
    "Variable",
    "BINARY_VALUES",
    "EnumerationEngine",
    "enumerate_joint",
    "Factor",
    "eliminate_joint",
    "elimination_order",
    "InferenceResult",
    "infer",
    "enumeration_ask",
    "elimination_ask",
    "prior_marginal",
    "prepare_evidence"
]
