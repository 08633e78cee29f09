"""
Posterior queries on Bayesian networks.

``infer`` checks the network and the query up front, runs either
enumeration or variable elimination, and normalizes the result over the
query variable's domain.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .network import BayesianNetwork
from .enumeration import enumerate_joint
from .elimination import eliminate_joint
from ..config import resolve
from ..exceptions import NormalizationError, StructuralError
from ..logger import get_logger

logger = get_logger(__name__)

METHODS = {
    'enumeration': enumerate_joint,
    'variable_elimination': eliminate_joint
}


@dataclass
class InferenceResult:
    """Posterior distribution of one query variable plus diagnostics."""
    query: str
    evidence: Dict[str, str]
    probabilities: Dict[str, float]
    valid: bool
    algorithm: str
    normalization_constant: float
    unnormalized: Dict[str, float]
    metadata: Dict[str, Any] = field(default_factory=dict)
    message: Optional[str] = None

    def __getitem__(self, value: str) -> float:
        return self.probabilities[value]

    @property
    def cache_hits(self) -> int:
        return self.metadata.get('cache_hits', 0)

    def most_likely(self) -> Optional[str]:
        if not self.valid:
            return None
        return max(self.probabilities, key=self.probabilities.get)

    def raise_if_invalid(self) -> 'InferenceResult':
        """
        Raises:
            NormalizationError: If the evidence has zero probability under the model
        """
        if not self.valid:
            raise NormalizationError(self.message or "No valid assignment for the evidence")
        return self

    def to_dict(self) -> Dict[str, Any]:
        metadata = dict(self.metadata)
        metadata.update({
            'valid': self.valid,
            'algorithm': self.algorithm,
            'normalization_constant': self.normalization_constant,
            'unnormalized': dict(self.unnormalized)
        })
        if self.message:
            metadata['message'] = self.message
        return {
            'query': self.query,
            'evidence': dict(self.evidence),
            'probabilities': dict(self.probabilities),
            'metadata': metadata
        }


def prepare_evidence(network: BayesianNetwork,
                     query: str,
                     evidence: Optional[Mapping[str, Any]] = None) -> Dict[str, str]:
    """
    Check a query against the network and canonicalize its evidence.

    Raises:
        StructuralError: Unknown query/evidence variable, query also observed,
            or a network that fails validation
        DomainError: Evidence value outside its variable's domain
        NormalizationError: CPT rows that do not sum to 1
    """
    evidence = dict(evidence or {})

    if query not in network:
        raise StructuralError(f"Query variable '{query}' does not exist in the network")

    if query in evidence:
        raise StructuralError(f"Variable '{query}' cannot be both queried and observed")

    unknown = [v for v in evidence if v not in network]
    if unknown:
        raise StructuralError(f"Evidence refers to unknown variables: {unknown}")

    network.ensure_valid()

    return {var: network.normalize_value(var, value) for var, value in evidence.items()}


def infer(network: BayesianNetwork,
          query: str,
          evidence: Optional[Mapping[str, Any]] = None,
          method: Optional[str] = None) -> InferenceResult:
    """
    Compute ``P(query | evidence)``.

    Args:
        network: Bayesian network
        query: Query variable id
        evidence: Observed values keyed by variable id
        method: ``'enumeration'`` or ``'variable_elimination'``
            (default from config ``bayesian.inference_method``)

    Returns:
        InferenceResult; ``valid`` is False when the evidence is impossible

    Raises:
        ValueError: If the method is unknown
    """
    method = resolve(method, 'bayesian', 'inference_method')
    if method not in METHODS:
        raise ValueError(f"Unknown inference method '{method}'. Expected one of {sorted(METHODS)}")

    canonical = prepare_evidence(network, query, evidence)
    joint, stats = METHODS[method](network, query, canonical)
    total = sum(joint.values())

    if total == 0:
        logger.warning(f"Evidence {canonical} has zero probability; no posterior for '{query}'")
        return InferenceResult(
            query=query,
            evidence=canonical,
            probabilities={value: 0.0 for value in joint},
            valid=False,
            algorithm=method,
            normalization_constant=0.0,
            unnormalized=joint,
            metadata=stats,
            message="The evidence is impossible under this model (no valid assignment)"
        )

    probabilities = {value: p / total for value, p in joint.items()}
    logger.debug(f"P({query} | {canonical}) = {probabilities} via {method}")

    return InferenceResult(
        query=query,
        evidence=canonical,
        probabilities=probabilities,
        valid=True,
        algorithm=method,
        normalization_constant=total,
        unnormalized=joint,
        metadata=stats
    )


def enumeration_ask(network: BayesianNetwork, query: str,
                    evidence: Optional[Mapping[str, Any]] = None) -> InferenceResult:
    """``infer`` by enumeration with memoization."""
    return infer(network, query, evidence, method='enumeration')


def elimination_ask(network: BayesianNetwork, query: str,
                    evidence: Optional[Mapping[str, Any]] = None) -> InferenceResult:
    """``infer`` by variable elimination."""
    return infer(network, query, evidence, method='variable_elimination')


def prior_marginal(network: BayesianNetwork, node: str) -> Dict[str, float]:
    """
    Marginal distribution of ``node`` with no evidence.

    Root nodes are read straight from their CPT; other nodes are inferred.
    """
    if node not in network:
        raise StructuralError(f"Node '{node}' does not exist in the network")
    if not network.has_parents(node):
        network.ensure_valid()
        return dict(network.cpt(node)[()])
    return infer(network, node).probabilities
