"""
Bayesian network graph model.

This module holds the structure of a discrete Bayesian network: its
variables and their finite domains, the directed edges between them, and
one conditional probability table (CPT) per node. Parent/child adjacency
and the topological order are derived once at construction.

CPTs are accepted in the two encodings used by network descriptions:

- ``"Cloudy=True,Sprinkler=False"`` (comma separated ``parent=value`` pairs)
- ``'{"Cloudy": "True", "Sprinkler": "False"}'`` (a JSON object)

Both are converted at construction into a single canonical key, the tuple of
parent values ordered by parent name. A row may hold a full distribution
``{value: p}`` or, for binary nodes, the shorthand ``P(True)``.
"""

import itertools
import json
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ..config import resolve
from ..exceptions import DomainError, NormalizationError, StructuralError
from ..logger import get_logger

logger = get_logger(__name__)

BINARY_VALUES = ('True', 'False')

CPTKey = Tuple[str, ...]
CPTRow = Dict[str, float]


def as_value(value: Any) -> str:
    """Convert a raw domain value to its canonical string form."""
    if isinstance(value, bool):
        return 'True' if value else 'False'
    return str(value)


@dataclass(frozen=True)
class Variable:
    """A discrete random variable with a finite domain."""
    id: str
    label: Optional[str] = None
    values: Tuple[str, ...] = BINARY_VALUES

    @property
    def is_binary(self) -> bool:
        return set(self.values) == set(BINARY_VALUES)

    def to_dict(self) -> Dict[str, Any]:
        result = {'id': self.id, 'values': list(self.values)}
        if self.label is not None:
            result['label'] = self.label
        return result


class BayesianNetwork:
    """
    Discrete Bayesian network over named variables.

    The instance is immutable once built. Problems found while reading the
    description (dangling edges, malformed or duplicate CPT rows, missing
    CPTs, cycles) do not abort construction; they are reported by
    ``validate()`` and raised by ``ensure_valid()`` so callers can inspect
    every defect at once.
    """

    def __init__(self,
                 nodes: Iterable[Any],
                 edges: Iterable[Any] = (),
                 cpt: Optional[Mapping[str, Any]] = None,
                 tolerance: Optional[float] = None):
        """
        Build a network from parsed node, edge and CPT descriptions.

        Args:
            nodes: Node ids, or dicts with ``id`` and optional ``label`` and
                ``values`` (``states`` is accepted as an alias)
            edges: Dicts with ``from``/``to`` keys or ``(from, to)`` pairs
            cpt: Mapping of node id to marginal or conditional table
            tolerance: Allowed deviation of CPT row sums from 1
        """
        self.tolerance = resolve(tolerance, 'bayesian', 'tolerance')
        self._raw_cpt = dict(cpt or {})
        self._issues: List[Tuple[type, str]] = []

        self._variables: Dict[str, Variable] = {}
        self._edges: List[Tuple[str, str]] = []
        self._parents: Dict[str, List[str]] = {}
        self._children: Dict[str, List[str]] = {}
        self._cpt: Dict[str, Dict[CPTKey, CPTRow]] = {}

        self._load_nodes(nodes)
        self._load_edges(edges)
        self._sorted_parents = {node: tuple(sorted(parents))
                                for node, parents in self._parents.items()}
        for node_id in self._variables:
            if node_id in self._raw_cpt:
                self._cpt[node_id] = self._parse_cpt(node_id, self._raw_cpt[node_id])

        for node_id in self._raw_cpt:
            if node_id not in self._variables:
                self._issue(StructuralError, f"CPT given for unknown node '{node_id}'")

        self._topological_order = self._compute_topological_order()
        self._cyclic = self._detect_cycle()

        logger.debug(f"Built BayesianNetwork with {len(self._variables)} nodes "
                     f"and {len(self._edges)} edges")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], tolerance: Optional[float] = None) -> 'BayesianNetwork':
        """Build a network from a ``{nodes, edges, cpt}`` description."""
        return cls(data.get('nodes', []), data.get('edges', []), data.get('cpt', {}),
                   tolerance=tolerance)

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    def _issue(self, kind: type, message: str) -> None:
        self._issues.append((kind, message))

    def _load_nodes(self, nodes: Iterable[Any]) -> None:
        for node in nodes:
            if isinstance(node, Mapping):
                if 'id' not in node:
                    raise StructuralError(f"Node entry {dict(node)!r} has no 'id'")
                node_id = str(node['id'])
                label = node.get('label')
                explicit = node.get('values', node.get('states'))
            else:
                node_id, label, explicit = str(node), None, None

            if node_id in self._variables:
                self._issue(StructuralError, f"Duplicate node '{node_id}'")
                continue

            if explicit:
                values = tuple(as_value(v) for v in explicit)
            else:
                values = self._infer_values(self._raw_cpt.get(node_id))

            if len(set(values)) != len(values):
                self._issue(StructuralError, f"Node '{node_id}' declares duplicate values")

            self._variables[node_id] = Variable(node_id, label, values)
            self._parents[node_id] = []
            self._children[node_id] = []

    @staticmethod
    def _infer_values(raw: Any) -> Tuple[str, ...]:
        """Read a node's domain from its CPT, defaulting to the binary domain."""
        if not isinstance(raw, Mapping) or not raw:
            return BINARY_VALUES

        keys = list(raw.keys())
        if not any(_looks_like_assignment(k) for k in keys):
            candidates = [as_value(k) for k in keys if k != 'root']
        else:
            rows = [row for row in raw.values() if isinstance(row, Mapping)]
            if not rows:
                return BINARY_VALUES
            candidates = [as_value(k) for k in rows[0].keys()]

        if not candidates or set(candidates) <= set(BINARY_VALUES):
            return BINARY_VALUES
        return tuple(candidates)

    def _load_edges(self, edges: Iterable[Any]) -> None:
        for edge in edges:
            if isinstance(edge, Mapping):
                if 'from' not in edge or 'to' not in edge:
                    raise StructuralError(f"Edge {dict(edge)!r} needs both 'from' and 'to'")
                source, target = str(edge['from']), str(edge['to'])
            else:
                endpoints = [str(e) for e in edge]
                if len(endpoints) != 2:
                    raise StructuralError(f"Edge {edge!r} must have exactly two endpoints")
                source, target = endpoints

            dangling = False
            for endpoint, role in ((source, 'Source'), (target, 'Target')):
                if endpoint not in self._variables:
                    self._issue(StructuralError, f"{role} node '{endpoint}' of edge "
                                                 f"{source}->{target} does not exist")
                    dangling = True
            if dangling:
                continue

            if (source, target) in self._edges:
                self._issue(StructuralError, f"Duplicate edge {source}->{target}")
                continue

            self._edges.append((source, target))
            self._parents[target].append(source)
            self._children[source].append(target)

    def _parse_cpt(self, node: str, raw: Any) -> Dict[CPTKey, CPTRow]:
        """Convert one raw CPT into the canonical ``{parent values: row}`` table."""
        variable = self._variables[node]
        parents = self._sorted_parents[node]
        table: Dict[CPTKey, CPTRow] = {}

        if not isinstance(raw, Mapping):
            self._issue(StructuralError, f"CPT of '{node}' must be a mapping")
            return table

        if not parents:
            row = self._parse_row(node, variable, raw, context='marginal')
            if row is not None:
                table[()] = row
            return table

        for raw_key, raw_row in raw.items():
            assignment = self._parse_key(node, raw_key)
            if assignment is None:
                continue

            if set(assignment) != set(parents):
                self._issue(StructuralError,
                            f"CPT row {raw_key!r} of '{node}' names {sorted(assignment)}, "
                            f"expected parents {list(parents)}")
                continue

            bad_values = [p for p in parents
                          if assignment[p] not in self._variables[p].values]
            if bad_values:
                self._issue(DomainError,
                            f"CPT row {raw_key!r} of '{node}' uses values outside the "
                            f"domain of {bad_values}")
                continue

            key = tuple(assignment[p] for p in parents)
            if key in table:
                self._issue(StructuralError,
                            f"CPT of '{node}' describes parent assignment {raw_key!r} twice")
                continue

            row = self._parse_row(node, variable, raw_row, context=repr(raw_key))
            if row is not None:
                table[key] = row

        return table

    def _parse_key(self, node: str, raw_key: Any) -> Optional[Dict[str, str]]:
        """Decode either accepted CPT key encoding into a parent assignment."""
        if isinstance(raw_key, tuple):
            parents = self._sorted_parents[node]
            if len(raw_key) != len(parents):
                self._issue(StructuralError, f"CPT key {raw_key!r} of '{node}' has the wrong arity")
                return None
            return {p: as_value(v) for p, v in zip(parents, raw_key)}

        text = str(raw_key).strip()
        if text.startswith('{'):
            try:
                decoded = json.loads(text)
            except json.JSONDecodeError:
                self._issue(StructuralError, f"CPT key {text!r} of '{node}' is not valid JSON")
                return None
            if not isinstance(decoded, dict):
                self._issue(StructuralError, f"CPT key {text!r} of '{node}' is not an object")
                return None
            return {str(k): as_value(v) for k, v in decoded.items()}

        assignment = {}
        for part in text.split(','):
            name, sep, value = part.partition('=')
            if not sep:
                self._issue(StructuralError, f"CPT key {text!r} of '{node}' is not 'parent=value' pairs")
                return None
            name = name.strip()
            if name in assignment:
                self._issue(StructuralError, f"CPT key {text!r} of '{node}' repeats parent '{name}'")
                return None
            assignment[name] = value.strip()
        return assignment

    def _parse_row(self, node: str, variable: Variable, raw_row: Any, context: str) -> Optional[CPTRow]:
        """Expand a CPT row into a full ``{value: probability}`` distribution."""
        if isinstance(raw_row, Mapping) and 'root' in raw_row and len(raw_row) == 1:
            raw_row = raw_row['root']

        if not isinstance(raw_row, Mapping):
            if not variable.is_binary:
                self._issue(StructuralError,
                            f"CPT row {context} of '{node}' gives a single probability "
                            f"but the node is not binary")
                return None
            try:
                p_true = float(raw_row)
            except (TypeError, ValueError):
                self._issue(StructuralError, f"CPT row {context} of '{node}' is not a number")
                return None
            return {'True': p_true, 'False': 1.0 - p_true}

        row = {}
        for value, probability in raw_row.items():
            value = as_value(value)
            if value not in variable.values:
                self._issue(DomainError,
                            f"CPT row {context} of '{node}' assigns probability to "
                            f"unknown value '{value}'")
                return None
            try:
                row[value] = float(probability)
            except (TypeError, ValueError):
                self._issue(StructuralError,
                            f"CPT row {context} of '{node}' has a non-numeric entry for '{value}'")
                return None

        missing = [v for v in variable.values if v not in row]
        if missing:
            if variable.is_binary and list(row) == ['True']:
                row['False'] = 1.0 - row['True']
            else:
                self._issue(StructuralError,
                            f"CPT row {context} of '{node}' is missing values {missing}")
                return None

        return {v: row[v] for v in variable.values}

    def _compute_topological_order(self) -> List[str]:
        """Reverse post-order of a DFS over the child relation."""
        visited = set()
        postorder = []

        for root in self._variables:
            if root in visited:
                continue
            visited.add(root)
            stack = [(root, iter(self._children[root]))]
            while stack:
                node, children = stack[-1]
                for child in children:
                    if child not in visited:
                        visited.add(child)
                        stack.append((child, iter(self._children[child])))
                        break
                else:
                    stack.pop()
                    postorder.append(node)

        postorder.reverse()
        return postorder

    def _detect_cycle(self) -> bool:
        """DFS with an on-stack marker; a back edge to a marked node is a cycle."""
        unvisited, on_stack, done = 0, 1, 2
        state = {node: unvisited for node in self._variables}

        for root in self._variables:
            if state[root] != unvisited:
                continue
            state[root] = on_stack
            stack = [(root, iter(self._children[root]))]
            while stack:
                node, children = stack[-1]
                for child in children:
                    if state[child] == on_stack:
                        return True
                    if state[child] == unvisited:
                        state[child] = on_stack
                        stack.append((child, iter(self._children[child])))
                        break
                else:
                    state[node] = done
                    stack.pop()

        return False

    # ------------------------------------------------------------------
    # Structural queries
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> List[str]:
        return list(self._variables)

    @property
    def edges(self) -> List[Tuple[str, str]]:
        return list(self._edges)

    def __contains__(self, node: str) -> bool:
        return node in self._variables

    def __len__(self) -> int:
        return len(self._variables)

    def _require(self, node: str) -> None:
        if node not in self._variables:
            raise StructuralError(f"Node '{node}' does not exist in the network")

    def variable(self, node: str) -> Variable:
        self._require(node)
        return self._variables[node]

    def parents(self, node: str) -> List[str]:
        """Parents of ``node`` in edge declaration order."""
        self._require(node)
        return list(self._parents[node])

    def children(self, node: str) -> List[str]:
        """Children of ``node`` in edge declaration order."""
        self._require(node)
        return list(self._children[node])

    def sorted_parents(self, node: str) -> Tuple[str, ...]:
        """Parents ordered by name, the order of the canonical CPT key."""
        self._require(node)
        return self._sorted_parents[node]

    def values(self, node: str) -> Tuple[str, ...]:
        """Domain of ``node``; binary ``('True', 'False')`` unless declared."""
        self._require(node)
        return self._variables[node].values

    def cpt(self, node: str) -> Dict[CPTKey, CPTRow]:
        """Canonical CPT of ``node``: parent-value tuple to value distribution."""
        self._require(node)
        if node not in self._cpt:
            raise StructuralError(f"Missing CPT for node '{node}'")
        return {key: dict(row) for key, row in self._cpt[node].items()}

    def has_parents(self, node: str) -> bool:
        return bool(self.parents(node))

    def topological_order(self) -> List[str]:
        """All nodes, each appearing after its parents."""
        return list(self._topological_order)

    def has_cycles(self) -> bool:
        return self._cyclic

    def normalize_value(self, node: str, value: Any) -> str:
        """
        Map a caller-supplied value onto the declared domain of ``node``.

        Booleans and case-insensitive spellings (``true``, ``FALSE``) are
        accepted for any matching domain value.

        Raises:
            DomainError: If the value does not belong to the domain
        """
        domain = self.values(node)
        text = as_value(value)
        if text in domain:
            return text
        lowered = {v.lower(): v for v in domain}
        if text.lower() in lowered:
            return lowered[text.lower()]
        raise DomainError(f"Value '{value}' is not in the domain of '{node}': {list(domain)}")

    def probability(self, node: str, value: str, assignment: Mapping[str, str]) -> float:
        """
        Conditional probability ``P(node=value | parents)``.

        Args:
            node: Node id
            value: Canonical value of ``node``
            assignment: Values for (at least) every parent of ``node``

        Raises:
            StructuralError: If the CPT or the row for this parent assignment is missing
            DomainError: If ``value`` is not in the node's domain
        """
        table = self._cpt.get(node)
        if table is None:
            raise StructuralError(f"Missing CPT for node '{node}'")

        try:
            key = tuple(assignment[p] for p in self._sorted_parents[node])
        except KeyError as e:
            raise StructuralError(f"Parent {e} of '{node}' has no assigned value")

        row = table.get(key)
        if row is None:
            described = dict(zip(self._sorted_parents[node], key))
            raise StructuralError(f"CPT of '{node}' has no row for parent assignment {described}")

        if value not in row:
            raise DomainError(f"Value '{value}' is not in the domain of '{node}'")
        return row[value]

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _collect_issues(self) -> List[Tuple[type, str]]:
        issues = list(self._issues)

        if not self._variables:
            issues.append((StructuralError, "The network has no nodes"))

        for node, variable in self._variables.items():
            if node not in self._raw_cpt:
                issues.append((StructuralError, f"Missing CPT for node '{node}'"))
                continue

            table = self._cpt.get(node, {})
            parents = self._sorted_parents[node]
            domains = [self._variables[p].values for p in parents]
            for key in itertools.product(*domains):
                if key not in table:
                    described = dict(zip(parents, key))
                    issues.append((StructuralError,
                                   f"CPT of '{node}' has no row for parent assignment {described}"))

            for key, row in table.items():
                described = dict(zip(parents, key)) if parents else 'marginal'
                if any(p < 0 for p in row.values()):
                    issues.append((NormalizationError,
                                   f"CPT row {described} of '{node}' has negative probabilities"))
                total = sum(row.values())
                if abs(total - 1.0) > self.tolerance:
                    issues.append((NormalizationError,
                                   f"CPT row {described} of '{node}' sums to {total:.6f}, expected 1.0"))

        if self._cyclic:
            issues.append((StructuralError,
                           "The network contains a cycle (it must be a directed acyclic graph)"))

        return issues

    def validate(self) -> List[str]:
        """
        Check structure and CPTs.

        Returns:
            List of human readable problems; empty when the network is usable
        """
        return [message for _, message in self._collect_issues()]

    def is_valid(self) -> bool:
        return not self._collect_issues()

    def ensure_valid(self) -> None:
        """
        Raise if the network cannot be used for inference.

        Raises:
            StructuralError: For cycles, dangling edges, missing CPTs or rows
            DomainError: For CPT rows mentioning values outside a domain
            NormalizationError: For rows that are negative or do not sum to 1
        """
        issues = self._collect_issues()
        if not issues:
            return

        message = "Invalid network: " + "; ".join(m for _, m in issues)
        kinds = {kind for kind, _ in issues}
        for kind in (StructuralError, DomainError, NormalizationError):
            if kind in kinds:
                raise kind(message)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def summary(self) -> Dict[str, Any]:
        return {
            'node_count': len(self._variables),
            'edge_count': len(self._edges),
            'is_valid': self.is_valid(),
            'has_cycles': self._cyclic,
            'topological_order': self.topological_order()
        }

    def to_dict(self) -> Dict[str, Any]:
        """Serialize back into the ``{nodes, edges, cpt}`` description."""
        cpt = {}
        for node, table in self._cpt.items():
            parents = self._sorted_parents[node]
            if not parents:
                cpt[node] = dict(table.get((), {}))
                continue
            cpt[node] = {
                json.dumps(dict(zip(parents, key))): dict(row)
                for key, row in table.items()
            }

        return {
            'nodes': [v.to_dict() for v in self._variables.values()],
            'edges': [{'from': s, 'to': t} for s, t in self._edges],
            'cpt': cpt
        }

    def __repr__(self) -> str:
        return f"BayesianNetwork(nodes={len(self._variables)}, edges={len(self._edges)})"


def _looks_like_assignment(key: Any) -> bool:
    if isinstance(key, tuple):
        return True
    key = str(key).strip()
    return key.startswith('{') or '=' in key
