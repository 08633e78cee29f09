"""
Exact inference by enumeration with memoization.

The joint probability of an assignment is the sum, over every completion of
the free variables, of the product of each node's conditional probability.
Variables are visited in topological order so that parents are always fixed
before their children. Subproblems are memoized on the position in that
order plus the part of the assignment the remaining suffix can depend on,
so identical partial assignments are computed once.

The evaluation uses an explicit stack of frames instead of recursion.
"""

from typing import Dict, List, Mapping, Optional, Tuple

from .network import BayesianNetwork
from ..logger import get_logger

logger = get_logger(__name__)

MemoKey = Tuple[int, Tuple[Tuple[str, str], ...]]


class _Frame:
    """One pending subproblem: enumerate order[index:] under assignment."""

    __slots__ = ('index', 'assignment', 'key', 'branches', 'cursor', 'total')

    def __init__(self, index: int, assignment: Dict[str, str]):
        self.index = index
        self.assignment = assignment
        self.key: Optional[MemoKey] = None
        self.branches: Optional[List[Tuple[float, Dict[str, str]]]] = None
        self.cursor = 0
        self.total = 0.0


class EnumerationEngine:
    """
    Memoized enumeration over one network.

    An engine is created per inference call; its memo table lives only as
    long as the engine.
    """

    def __init__(self, network: BayesianNetwork):
        self.network = network
        self.order = network.topological_order()
        self.cache_hits = 0
        self._memo: Dict[MemoKey, float] = {}
        self._relevant = self._relevant_variables()

    def _relevant_variables(self) -> List[Tuple[str, ...]]:
        """
        For each suffix order[i:], the variables whose values it reads:
        the suffix variables themselves and all of their parents.
        """
        relevant = [()] * (len(self.order) + 1)
        seen = set()
        for i in range(len(self.order) - 1, -1, -1):
            node = self.order[i]
            seen.add(node)
            seen.update(self.network.parents(node))
            relevant[i] = tuple(sorted(seen))
        return relevant

    @property
    def cache_size(self) -> int:
        return len(self._memo)

    def _memo_key(self, index: int, assignment: Mapping[str, str]) -> MemoKey:
        return index, tuple((var, assignment[var])
                            for var in self._relevant[index] if var in assignment)

    def _branches(self, index: int, assignment: Dict[str, str]) -> List[Tuple[float, Dict[str, str]]]:
        node = self.order[index]

        if node in assignment:
            weight = self.network.probability(node, assignment[node], assignment)
            return [(weight, assignment)]

        branches = []
        for value in self.network.values(node):
            extended = dict(assignment)
            extended[node] = value
            branches.append((self.network.probability(node, value, extended), extended))
        return branches

    @staticmethod
    def _complete(stack: List[_Frame], value: float) -> float:
        """Pop the finished frame and fold its value into the caller."""
        stack.pop()
        if stack:
            caller = stack[-1]
            weight = caller.branches[caller.cursor][0]
            caller.total += weight * value
            caller.cursor += 1
        return value

    def joint_probability(self, assignment: Mapping[str, str]) -> float:
        """
        Probability that the network takes the given (partial) assignment.

        Args:
            assignment: Canonical values for a subset of the variables

        Returns:
            Sum over all completions of the product of conditional probabilities
        """
        n = len(self.order)
        stack = [_Frame(0, dict(assignment))]
        result = 0.0

        while stack:
            frame = stack[-1]

            if frame.branches is None:
                if frame.index == n:
                    result = self._complete(stack, 1.0)
                    continue

                frame.key = self._memo_key(frame.index, frame.assignment)
                cached = self._memo.get(frame.key)
                if cached is not None:
                    self.cache_hits += 1
                    result = self._complete(stack, cached)
                    continue

                frame.branches = self._branches(frame.index, frame.assignment)

            if frame.cursor < len(frame.branches):
                weight, child_assignment = frame.branches[frame.cursor]
                if weight == 0.0:
                    frame.cursor += 1
                    continue
                stack.append(_Frame(frame.index + 1, child_assignment))
            else:
                self._memo[frame.key] = frame.total
                result = self._complete(stack, frame.total)

        return result


def enumerate_joint(network: BayesianNetwork,
                    query: str,
                    evidence: Mapping[str, str]) -> Tuple[Dict[str, float], Dict[str, int]]:
    """
    Unnormalized ``P(query=v, evidence)`` for every value ``v`` of ``query``.

    Args:
        network: A validated network
        query: Query variable id
        evidence: Canonical evidence values, not containing ``query``

    Returns:
        Tuple of (value to joint probability, cache statistics)
    """
    engine = EnumerationEngine(network)
    joint = {}
    for value in network.values(query):
        extended = dict(evidence)
        extended[query] = value
        joint[value] = engine.joint_probability(extended)

    stats = {'cache_hits': engine.cache_hits, 'cache_size': engine.cache_size}
    logger.debug(f"Enumeration for '{query}' finished: {stats}")
    return joint, stats
