"""
Data-flow diagram (DFD) graph model.

Nodes, edges and subgraphs produced by the DFD builder:
- Node kinds: "input", "output", "process", "store", "subgraph-marker"
- Edges carry an optional label plus cleanup/emphasis flags
- Subgraphs group nodes (and nested subgraphs) under a label:
  "render-region" (root of the rendered output), "conditional-region"
  (conditional, iterated or pending output), "exposed-handlers"

Node metadata is a closed set of fact records, one per entity kind.
Builder passes match on the record type instead of probing an open map;
serialization flattens the record into plain key/value pairs.

Ids are issued by an IdAllocator created per build, so two builds never
share numbering state.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Iterator, Union

from .component_ir import ConditionExpression, SourcePosition

# Labels that take ": name, ..." qualifiers; any other colon is part of the label (on:click)
QUALIFIED_LABELS = frozenset({"reads", "display", "binds", "controls visibility", "iterates over"})


# =============================================================================
# Id issuance
# =============================================================================


class IdAllocator:
    """Sequential ids for one build: prop_0, state_1, element_2, ..."""

    def __init__(self):
        self._counter = 0

    def next(self, prefix: str) -> str:
        node_id = f"{prefix}_{self._counter}"
        self._counter += 1
        return node_id


# =============================================================================
# Node metadata (closed union)
# =============================================================================


@dataclass(slots=True)
class PropFacts:
    name: str
    declared_type: str | None = None
    is_callable: bool = False

    def to_dict(self) -> dict:
        d = {"category": "prop", "name": self.name, "isFunction": self.is_callable}
        if self.declared_type:
            d["type"] = self.declared_type
        return d


@dataclass(slots=True)
class StoreFacts:
    """A collapsed state entry: plain state, read-write pair or reducer."""

    state_kind: str  # IR kind tag: "state", "reducer", "derived", ...
    hook_name: str = ""
    read_variable: str | None = None
    write_variable: str | None = None
    is_read_write_pair: bool = False
    is_reducer: bool = False
    reducer_name: str | None = None
    state_properties: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        d = {
            "category": "state",
            "stateKind": self.state_kind,
            "hookName": self.hook_name,
            "readVariable": self.read_variable,
        }
        if self.write_variable:
            d["writeVariable"] = self.write_variable
        if self.is_read_write_pair:
            d["isReadWritePair"] = True
        if self.is_reducer:
            d["isReducer"] = True
            d["reducerName"] = self.reducer_name
            d["stateProperties"] = list(self.state_properties)
        return d


@dataclass(slots=True)
class ValueFacts:
    """One identifier split out of a context/composable/helper entry."""

    variable: str
    state_kind: str
    hook_name: str = ""
    is_callable: bool = False

    def to_dict(self) -> dict:
        return {
            "category": f"{self.state_kind}-{'function' if self.is_callable else 'data'}",
            "variableName": self.variable,
            "hookName": self.hook_name,
        }


@dataclass(slots=True)
class ProcessFacts:
    process_kind: str  # IR kind tag, or "cleanup"
    references: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    owner_process_id: str | None = None  # set on cleanup nodes

    def to_dict(self) -> dict:
        d = {
            "category": "process",
            "processType": self.process_kind,
            "references": list(self.references),
        }
        if self.dependencies:
            d["dependencies"] = list(self.dependencies)
        if self.owner_process_id:
            d["parentProcessId"] = self.owner_process_id
        return d


@dataclass(slots=True)
class ExternalCallFacts:
    callee: str
    arguments: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"category": "external-call", "functionName": self.callee, "arguments": list(self.arguments)}


@dataclass(slots=True)
class HandlerFacts:
    """
    A method reachable through an exposed handle.

    Used both for methods a component exposes (parameters/flags known) and
    for the aggregated targets of handle calls made on a child (only the
    handle and method names known).
    """

    method_name: str
    handle_name: str | None = None
    owner_process_id: str | None = None
    parameters: list[str] = field(default_factory=list)
    returns_value: bool = False
    is_async: bool = False

    def to_dict(self) -> dict:
        d = {
            "category": "exposed-handler",
            "processType": "exposed-handler",
            "methodName": self.method_name,
            "parameters": list(self.parameters),
            "returnsValue": self.returns_value,
            "isAsync": self.is_async,
        }
        if self.handle_name:
            d["handleName"] = self.handle_name
        if self.owner_process_id:
            d["parentProcessId"] = self.owner_process_id
        return d


@dataclass(slots=True)
class ElementFacts:
    tag_name: str
    display_dependencies: list[str] = field(default_factory=list)
    attribute_references: list[tuple[str, str, str | None]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "category": "element",
            "tagName": self.tag_name,
            "displayDependencies": list(self.display_dependencies),
            "attributeReferences": [
                {"attributeName": a, "referencedVariable": v, **({"propertyName": p} if p else {})}
                for a, v, p in self.attribute_references
            ],
        }


@dataclass(slots=True)
class RegionFacts:
    branch_kind: str  # "conditional", "iteration", "pending"
    condition: ConditionExpression | None = None

    def to_dict(self) -> dict:
        d = {"category": "region", "branchKind": self.branch_kind}
        if self.condition is not None:
            d["condition"] = {
                "expression": self.condition.expression,
                "variables": list(self.condition.variables),
            }
        return d


NodeFacts = Union[
    PropFacts,
    StoreFacts,
    ValueFacts,
    ProcessFacts,
    ExternalCallFacts,
    HandlerFacts,
    ElementFacts,
    RegionFacts,
]


# =============================================================================
# Graph Data Structures
# =============================================================================


@dataclass(slots=True)
class DFDNode:
    id: str
    label: str
    kind: str  # "input", "output", "process", "store", "subgraph-marker"
    metadata: NodeFacts
    position: SourcePosition | None = None

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "label": self.label,
            "kind": self.kind,
            "metadata": self.metadata.to_dict(),
        }
        if self.position is not None:
            d["sourcePosition"] = self.position.to_dict()
        return d


@dataclass(slots=True)
class DFDEdge:
    source: str
    target: str
    label: str | None = None
    is_cleanup: bool = False
    emphasize: bool = False

    @property
    def key(self) -> tuple[str, str, str | None]:
        return (self.source, self.target, self.label)

    @property
    def base_label(self) -> str:
        """'display: count' -> 'display'; 'on:click' stays 'on:click'."""
        label = self.label or ""
        base, sep, _ = label.partition(":")
        if sep and base.strip() in QUALIFIED_LABELS:
            return base.strip()
        return label

    @property
    def qualifiers(self) -> list[str]:
        if self.base_label == (self.label or ""):
            return []
        names = self.label.partition(":")[2].split(",")
        return [name.strip() for name in names if name.strip()]

    def to_dict(self) -> dict:
        d = {"from": self.source, "to": self.target}
        if self.label:
            d["label"] = self.label
        if self.is_cleanup:
            d["isCleanup"] = True
        if self.emphasize:
            d["emphasize"] = True
        return d


@dataclass(slots=True)
class DFDSubgraph:
    id: str
    label: str
    kind: str  # "render-region", "conditional-region", "exposed-handlers"
    elements: list[DFDNode | DFDSubgraph] = field(default_factory=list)
    condition: ConditionExpression | None = None
    branch_kind: str | None = None  # conditional-region only
    owner_process_id: str | None = None  # exposed-handlers only
    handle_name: str | None = None  # exposed-handlers only

    def iter_nodes(self) -> Iterator[DFDNode]:
        """All nodes in depth-first document order."""
        for element in self.elements:
            if isinstance(element, DFDSubgraph):
                yield from element.iter_nodes()
            else:
                yield element

    def iter_subgraphs(self) -> Iterator[DFDSubgraph]:
        """Nested subgraphs (excluding self) in depth-first document order."""
        for element in self.elements:
            if isinstance(element, DFDSubgraph):
                yield element
                yield from element.iter_subgraphs()

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "label": self.label,
            "kind": self.kind,
            "elements": [e.to_dict() for e in self.elements],
        }
        if self.condition is not None:
            d["governingCondition"] = {
                "expression": self.condition.expression,
                "variables": list(self.condition.variables),
            }
        if self.branch_kind:
            d["branchKind"] = self.branch_kind
        if self.owner_process_id:
            d["ownerProcessId"] = self.owner_process_id
        if self.handle_name:
            d["handleName"] = self.handle_name
        return d


@dataclass
class DFDInfo:
    """
    Data-flow diagram for one component.

    Provides:
    - Flat node/edge view (every element node and region marker included)
    - The render-region tree and the exposed-handler groups
    - Lookups and upstream/downstream traversal
    """

    component_name: str
    nodes: list[DFDNode] = field(default_factory=list)
    edges: list[DFDEdge] = field(default_factory=list)
    root_subgraph: DFDSubgraph | None = None
    subgraphs: list[DFDSubgraph] = field(default_factory=list)

    # Internal cache for O(1) node lookups (built lazily, excluded from repr/eq)
    _node_by_id_cache: dict[str, DFDNode] | None = field(
        default=None, repr=False, compare=False
    )

    @property
    def _node_by_id(self) -> dict[str, DFDNode]:
        if self._node_by_id_cache is None:
            self._node_by_id_cache = {n.id: n for n in self.nodes}
        return self._node_by_id_cache

    def get_node(self, node_id: str) -> DFDNode | None:
        return self._node_by_id.get(node_id)

    def find_nodes(self, label: str, kind: str | None = None) -> list[DFDNode]:
        return [n for n in self.nodes if n.label == label and (kind is None or n.kind == kind)]

    def edges_from(self, node_id: str) -> list[DFDEdge]:
        return [e for e in self.edges if e.source == node_id]

    def edges_to(self, node_id: str) -> list[DFDEdge]:
        return [e for e in self.edges if e.target == node_id]

    def all_subgraphs(self) -> list[DFDSubgraph]:
        """Root, its nested regions, then the exposed-handler groups."""
        result: list[DFDSubgraph] = []
        if self.root_subgraph is not None:
            result.append(self.root_subgraph)
            result.extend(self.root_subgraph.iter_subgraphs())
        result.extend(self.subgraphs)
        return result

    def to_dict(self) -> dict:
        d = {
            "component": self.component_name,
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }
        if self.root_subgraph is not None:
            d["rootSubgraph"] = self.root_subgraph.to_dict()
        if self.subgraphs:
            d["subgraphs"] = [s.to_dict() for s in self.subgraphs]
        return d

    def stats(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for node in self.nodes:
            counts[node.kind] = counts.get(node.kind, 0) + 1
        counts["edges"] = len(self.edges)
        counts["subgraphs"] = len(self.all_subgraphs())
        return counts

    def to_compact_dict(self) -> dict:
        """Export compact summary (for agent context)."""
        return {
            "component": self.component_name,
            "inputs": [n.label for n in self.nodes if n.kind == "input"],
            "stores": [n.label for n in self.nodes if n.kind == "store"],
            "processes": [n.label for n in self.nodes if n.kind == "process"],
            "outputs": [
                n.label
                for n in self.nodes
                if n.kind == "output" and not isinstance(n.metadata, ElementFacts)
            ],
            "stats": self.stats(),
        }

    # =========================================================================
    # Traversal
    # =========================================================================

    def upstream(self, node_id: str, label: str | None = None) -> set[str]:
        """
        Everything that can flow into the given node.

        Args:
            node_id: Node or subgraph id to start from
            label: Optional base edge label to follow exclusively (e.g. "reads")

        Returns:
            Set of ids reachable backwards, excluding the start
        """
        incoming: dict[str, list[DFDEdge]] = {}
        for edge in self.edges:
            incoming.setdefault(edge.target, []).append(edge)
        return self._walk(node_id, incoming, lambda e: e.source, label)

    def downstream(self, node_id: str, label: str | None = None) -> set[str]:
        """Everything the given node can flow into (see upstream)."""
        outgoing: dict[str, list[DFDEdge]] = {}
        for edge in self.edges:
            outgoing.setdefault(edge.source, []).append(edge)
        return self._walk(node_id, outgoing, lambda e: e.target, label)

    @staticmethod
    def _walk(start: str, adjacency: dict[str, list[DFDEdge]], step, label: str | None) -> set[str]:
        visited: set[str] = set()
        worklist: deque[str] = deque([start])
        while worklist:
            current = worklist.popleft()
            if current in visited:
                continue
            visited.add(current)
            for edge in adjacency.get(current, []):
                if label and edge.base_label != label:
                    continue
                worklist.append(step(edge))
        visited.discard(start)
        return visited
