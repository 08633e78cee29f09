"""
Exact inference by variable elimination.

Each CPT becomes a factor (a numpy table indexed by the values of the node
and its parents), reduced by the evidence. Hidden variables are eliminated
one at a time: all factors mentioning the variable are multiplied and the
variable is summed out of the product. The factors left at the end mention
only the query variable; their product is the unnormalized posterior.
"""

import itertools
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .network import BayesianNetwork
from ..logger import get_logger

logger = get_logger(__name__)


class Factor:
    """
    Table over a set of discrete variables.

    Attributes:
        variables: Variable ids, one per axis of ``table``
        domains: Mapping of variable id to its ordered values
        table: Array of shape ``(len(domains[v]) for v in variables)``
    """

    def __init__(self, variables: Sequence[str], domains: Mapping[str, Tuple[str, ...]], table: np.ndarray):
        self.variables = tuple(variables)
        self.domains = {v: tuple(domains[v]) for v in self.variables}
        self.table = np.asarray(table, dtype=float)

        expected = tuple(len(self.domains[v]) for v in self.variables)
        if self.table.shape != expected:
            raise ValueError(f"Factor table shape {self.table.shape} doesn't match {expected}")

    @classmethod
    def from_cpt(cls, network: BayesianNetwork, node: str) -> 'Factor':
        """Factor ``f(node, parents) = P(node | parents)``."""
        parents = network.sorted_parents(node)
        variables = (node,) + parents
        domains = {v: network.values(v) for v in variables}
        table = np.zeros(tuple(len(domains[v]) for v in variables))

        for index in itertools.product(*(range(len(domains[v])) for v in variables)):
            assignment = {v: domains[v][i] for v, i in zip(variables, index)}
            table[index] = network.probability(node, assignment[node], assignment)

        return cls(variables, domains, table)

    @property
    def size(self) -> int:
        return int(self.table.size)

    def _aligned(self, variables: Sequence[str]) -> np.ndarray:
        """Table transposed to follow ``variables``, with size-1 axes for absent ones."""
        if not self.variables:
            return self.table.reshape([1] * len(variables))
        positions = [variables.index(v) for v in self.variables]
        permutation = np.argsort(positions)
        table = np.transpose(self.table, permutation)
        shape = [len(self.domains[v]) if v in self.domains else 1 for v in variables]
        return table.reshape(shape)

    def multiply(self, other: 'Factor') -> 'Factor':
        variables = list(self.variables) + [v for v in other.variables if v not in self.domains]
        domains = dict(self.domains)
        domains.update(other.domains)
        table = self._aligned(variables) * other._aligned(variables)
        return Factor(variables, domains, table)

    def sum_out(self, variable: str) -> 'Factor':
        axis = self.variables.index(variable)
        variables = [v for v in self.variables if v != variable]
        return Factor(variables, self.domains, self.table.sum(axis=axis))

    def reduce(self, evidence: Mapping[str, str]) -> 'Factor':
        """Fix evidence variables to their observed values and drop their axes."""
        table = self.table
        variables = list(self.variables)
        for variable, value in evidence.items():
            if variable not in variables:
                continue
            axis = variables.index(variable)
            table = np.take(table, self.domains[variable].index(value), axis=axis)
            variables.pop(axis)
        return Factor(variables, self.domains, table)

    def __repr__(self) -> str:
        return f"Factor(variables={self.variables}, size={self.size})"


def multiply_all(factors: Sequence[Factor]) -> Factor:
    result = Factor((), {}, np.array(1.0))
    for factor in factors:
        result = result.multiply(factor)
    return result


def elimination_order(network: BayesianNetwork, query: str, evidence: Mapping[str, str]) -> List[str]:
    """Hidden variables in topological order."""
    return [v for v in network.topological_order() if v != query and v not in evidence]


def eliminate_joint(network: BayesianNetwork,
                    query: str,
                    evidence: Mapping[str, str],
                    order: Optional[Sequence[str]] = None) -> Tuple[Dict[str, float], Dict[str, int]]:
    """
    Unnormalized ``P(query=v, evidence)`` for every value ``v`` of ``query``.

    Args:
        network: A validated network
        query: Query variable id
        evidence: Canonical evidence values, not containing ``query``
        order: Elimination order of the hidden variables (default: topological)

    Returns:
        Tuple of (value to joint probability, elimination statistics)
    """
    if order is None:
        order = elimination_order(network, query, evidence)

    factors = [Factor.from_cpt(network, node).reduce(evidence) for node in network.nodes]
    largest = max((f.size for f in factors), default=1)
    eliminated = 0

    for variable in order:
        relevant = [f for f in factors if variable in f.variables]
        if not relevant:
            continue
        factors = [f for f in factors if variable not in f.variables]
        product = multiply_all(relevant)
        largest = max(largest, product.size)
        factors.append(product.sum_out(variable))
        eliminated += 1

    final = multiply_all(factors)
    for variable in final.variables:
        if variable != query:
            final = final.sum_out(variable)

    values = network.values(query)
    joint = {value: float(final.table[i]) for i, value in enumerate(values)}

    stats = {'eliminated': eliminated, 'max_factor_size': largest}
    logger.debug(f"Variable elimination for '{query}' finished: {stats}")
    return joint, stats
