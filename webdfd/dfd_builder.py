"""
Data-flow diagram synthesis from a Component IR.

DFDBuilder turns one component's IR into a DFDInfo graph. The build is a
fixed sequence of single-pass stages; each stage only looks at what the
earlier stages produced:

 1. props             -> input nodes (output nodes for callable props)
 2. state entries     -> store / value nodes (pairs and reducers collapse)
 3. processes         -> process nodes, cleanup nodes, exposed-handler groups
 4. external calls    -> one output node per callee, "calls" edges
 5. handle calls      -> one node per (handle, method), grouped per handle
 6. render structure  -> element nodes and region subgraphs
 7. structural edges  -> "controls visibility" / "iterates over" / "display"
 8. attribute edges   -> element invokes callable, or data "binds" element
 9. process edges     -> "reads", "writes" / "dispatch", "calls"
10. export edges      -> element passing a ref -> that handle's group

Identifier lookup goes through a symbol table filled by stages 1-4, and
every callable-vs-data decision goes through type_classifier.

All per-build state lives in a _BuildState created inside build(), so a
single DFDBuilder can be shared freely.
"""

import logging
from dataclasses import dataclass, field

from .component_ir import ComponentIR, ExternalCall, ProcessInfo, StateEntry
from .dfd_model import (
    DFDEdge,
    DFDInfo,
    DFDNode,
    DFDSubgraph,
    ElementFacts,
    ExternalCallFacts,
    IdAllocator,
    ProcessFacts,
    PropFacts,
    RegionFacts,
    StoreFacts,
    ValueFacts,
)
from .subgraph_builder import SubgraphBuilder
from .type_classifier import FUNCTION, classify, is_callable

logger = logging.getLogger(__name__)

# Lookup precedence when several nodes claim the same identifier (lower wins)
EXACT_LABEL = 0
PAIR_WRITE = 1
STATE_PROPERTY = 2
REDUCER_STATE = 3

# Roles an identifier can play for the node it resolves to
ROLE_READ = "read"  # data value
ROLE_WRITE = "write"  # setter / dispatch of a store
ROLE_CALL = "call"  # callable prop, value, process or external call
ROLE_PROPERTY = "property"  # reducer state property

# Entries whose data comes from outside the component
EXTERNAL_SOURCE_KINDS = frozenset({"context", "routing", "fetch"})
# Entries whose data identifiers stay stores when split
STORE_KINDS = frozenset({"state", "derived"})

_LITERALS = frozenset({"undefined", "null", "true", "false"})

DEFAULT_INLINE_ATTRIBUTE = "onClick"


@dataclass(slots=True)
class Binding:
    node: DFDNode
    role: str


class _SymbolTable:
    """Identifier -> node binding, keeping the highest-precedence claim."""

    def __init__(self):
        self._entries: dict[str, tuple[int, Binding]] = {}

    def add(self, name: str | None, node: DFDNode, priority: int, role: str):
        if not name:
            return
        current = self._entries.get(name)
        if current is None or priority < current[0]:
            self._entries[name] = (priority, Binding(node, role))

    def resolve(self, name: str) -> Binding | None:
        entry = self._entries.get(name)
        return entry[1] if entry else None


@dataclass
class _BuildState:
    ir: ComponentIR
    ids: IdAllocator = field(default_factory=IdAllocator)
    symbols: _SymbolTable = field(default_factory=_SymbolTable)

    nodes: list[DFDNode] = field(default_factory=list)
    edges: list[DFDEdge] = field(default_factory=list)
    edge_keys: set = field(default_factory=set)

    # (process, node id) for every materialized process, cleanups included
    process_ids: list[tuple[ProcessInfo, str]] = field(default_factory=list)
    # (exposed method, node id)
    handler_ids: list = field(default_factory=list)
    exposed_groups: list[DFDSubgraph] = field(default_factory=list)
    # id(process) -> id that its calls are drawn from (node or exposed group)
    owners: dict[int, str] = field(default_factory=dict)

    call_ids: dict[str, str] = field(default_factory=dict)  # callee -> node id
    handle_groups: dict[str, DFDSubgraph] = field(default_factory=dict)
    handle_method_ids: dict[tuple[str, str], str] = field(default_factory=dict)

    root: DFDSubgraph | None = None
    elements: list[DFDNode] = field(default_factory=list)
    regions: list[DFDSubgraph] = field(default_factory=list)

    def add_node(self, node: DFDNode):
        self.nodes.append(node)

    def add_edge(
        self,
        source: str,
        target: str,
        label: str | None = None,
        is_cleanup: bool = False,
        emphasize: bool = False,
    ) -> bool:
        key = (source, target, label)
        if key in self.edge_keys or source == target:
            return False
        self.edge_keys.add(key)
        self.edges.append(DFDEdge(source, target, label, is_cleanup, emphasize))
        return True


class DFDBuilder:
    """
    Build a data-flow diagram from a Component IR.

    Usage:
        info = DFDBuilder().build(ir)
        info.to_dict()
    """

    def build(self, ir: ComponentIR) -> DFDInfo:
        state = _BuildState(ir)
        subgraphs = SubgraphBuilder(state.ids)

        self._create_prop_nodes(state)
        self._create_state_nodes(state)
        self._create_process_nodes(state, subgraphs)
        self._create_external_call_nodes(state)
        self._aggregate_handle_calls(state, subgraphs)
        self._build_render_tree(state, subgraphs)
        self._add_structural_edges(state)
        self._add_attribute_edges(state)
        self._add_process_edges(state)
        self._add_export_edges(state)

        edges = merge_qualified_edges(state.edges)
        logger.debug(
            f"Built DFD for {ir.name}: {len(state.nodes)} nodes, {len(edges)} edges, "
            f"{len(state.regions)} regions"
        )
        return DFDInfo(
            component_name=ir.name,
            nodes=state.nodes,
            edges=edges,
            root_subgraph=state.root,
            subgraphs=state.exposed_groups + list(state.handle_groups.values()),
        )

    # =========================================================================
    # Stage 1: props
    # =========================================================================

    def _create_prop_nodes(self, state: _BuildState):
        seen: set[str] = set()
        for prop in state.ir.props:
            # Synthetic props injected by front ends (__source, __self, ...)
            if prop.name.startswith("__") or prop.name in seen:
                logger.debug(f"Skipping prop {prop.name}")
                continue
            seen.add(prop.name)

            callable_prop = is_callable(prop.name, prop.is_function, prop.type_string or prop.type)
            node = DFDNode(
                id=state.ids.next("prop"),
                label=prop.name,
                kind="output" if callable_prop else "input",
                metadata=PropFacts(prop.name, prop.type_string or prop.type, callable_prop),
                position=prop.position,
            )
            state.add_node(node)
            state.symbols.add(prop.name, node, EXACT_LABEL, ROLE_CALL if callable_prop else ROLE_READ)

    # =========================================================================
    # Stage 2: state entries
    # =========================================================================

    def _create_state_nodes(self, state: _BuildState):
        for entry in state.ir.state_entries:
            if entry.kind == "ref" or not entry.variables:
                continue

            if entry.kind == "reducer":
                created = [self._add_reducer_node(state, entry)]
            elif self._is_read_write_pair(entry):
                created = [self._add_pair_node(state, entry)]
            else:
                created = self._add_value_nodes(state, entry)

            self._add_seed_edges(state, entry, created)

    @staticmethod
    def _classify_variable(entry: StateEntry, name: str) -> str:
        resolved = None
        if entry.variable_types and name in entry.variable_types:
            resolved = entry.variable_types[name] == FUNCTION
        return classify(name, resolved)

    def _is_read_write_pair(self, entry: StateEntry) -> bool:
        if entry.is_read_write_pair:
            return len(entry.variables) >= 2
        return (
            entry.kind == "state"
            and len(entry.variables) == 2
            and self._classify_variable(entry, entry.variables[0]) != FUNCTION
            and self._classify_variable(entry, entry.variables[1]) == FUNCTION
        )

    def _add_reducer_node(self, state: _BuildState, entry: StateEntry) -> DFDNode:
        read_var, write_var = entry.read_variable, entry.write_variable
        node = DFDNode(
            id=state.ids.next("state"),
            label=entry.reducer_name or read_var,
            kind="store",
            metadata=StoreFacts(
                state_kind="reducer",
                hook_name=entry.hook_name,
                read_variable=read_var,
                write_variable=write_var,
                is_read_write_pair=write_var is not None,
                is_reducer=True,
                reducer_name=entry.reducer_name,
                state_properties=list(entry.state_properties),
            ),
            position=entry.position,
        )
        state.add_node(node)
        state.symbols.add(node.label, node, EXACT_LABEL, ROLE_READ)
        state.symbols.add(write_var, node, PAIR_WRITE, ROLE_WRITE)
        for prop_name in entry.state_properties:
            state.symbols.add(prop_name, node, STATE_PROPERTY, ROLE_PROPERTY)
        state.symbols.add(read_var, node, REDUCER_STATE, ROLE_READ)
        return node

    def _add_pair_node(self, state: _BuildState, entry: StateEntry) -> DFDNode:
        read_var, write_var = entry.read_variable, entry.write_variable
        node = DFDNode(
            id=state.ids.next("state"),
            label=read_var,
            kind="store",
            metadata=StoreFacts(
                state_kind=entry.kind,
                hook_name=entry.hook_name,
                read_variable=read_var,
                write_variable=write_var,
                is_read_write_pair=True,
            ),
            position=entry.position,
        )
        state.add_node(node)
        state.symbols.add(read_var, node, EXACT_LABEL, ROLE_READ)
        state.symbols.add(write_var, node, PAIR_WRITE, ROLE_WRITE)
        return node

    def _add_value_nodes(self, state: _BuildState, entry: StateEntry) -> list[DFDNode]:
        """One node per data identifier, one output node per callable identifier."""
        created = []
        for name in entry.variables:
            if self._classify_variable(entry, name) == FUNCTION:
                node = DFDNode(
                    id=state.ids.next("value"),
                    label=name,
                    kind="output",
                    metadata=ValueFacts(name, entry.kind, entry.hook_name, is_callable=True),
                    position=entry.position,
                )
                role = ROLE_CALL
            elif entry.kind in STORE_KINDS:
                node = DFDNode(
                    id=state.ids.next("state"),
                    label=name,
                    kind="store",
                    metadata=StoreFacts(entry.kind, entry.hook_name, read_variable=name),
                    position=entry.position,
                )
                role = ROLE_READ
            else:
                node = DFDNode(
                    id=state.ids.next("value"),
                    label=name,
                    kind="input" if entry.kind in EXTERNAL_SOURCE_KINDS else "store",
                    metadata=ValueFacts(name, entry.kind, entry.hook_name),
                    position=entry.position,
                )
                role = ROLE_READ
            state.add_node(node)
            state.symbols.add(name, node, EXACT_LABEL, role)
            created.append(node)
        return created

    def _add_seed_edges(self, state: _BuildState, entry: StateEntry, created: list[DFDNode]):
        """Initial values and hook arguments flowing into the entry's data nodes."""
        targets = [n for n in created if n.kind != "output"] or created[:1]
        if not targets:
            return

        if entry.initial_value:
            binding = state.symbols.resolve(entry.initial_value)
            if binding and binding.role == ROLE_READ:
                state.add_edge(binding.node.id, targets[0].id, "initializes")

        for arg in entry.argument_identifiers:
            binding = state.symbols.resolve(arg)
            if binding is None or binding.role not in (ROLE_READ, ROLE_PROPERTY):
                continue
            for target in targets:
                state.add_edge(binding.node.id, target.id, "reads")

    # =========================================================================
    # Stage 3: processes
    # =========================================================================

    def _create_process_nodes(self, state: _BuildState, subgraphs: SubgraphBuilder):
        for process in state.ir.processes:
            if process.is_inline:
                continue

            if process.exposed_methods:
                owner_id = state.ids.next("process")
                group = subgraphs.build_exposed_handlers(process, owner_id)
                state.exposed_groups.append(group)
                for method, handler_node in zip(process.exposed_methods, group.elements):
                    state.add_node(handler_node)
                    state.handler_ids.append((method, handler_node.id))
                # No node of its own: the group stands in for the process
                state.owners[id(process)] = group.id
                source_id = group.id
            else:
                owner_id = source_id = self._process_node(state, process, process.kind).id
                state.process_ids.append((process, owner_id))
                state.owners[id(process)] = owner_id

            if process.cleanup is not None:
                cleanup_node = self._process_node(state, process.cleanup, "cleanup", owner_id=owner_id)
                state.process_ids.append((process.cleanup, cleanup_node.id))
                state.owners[id(process.cleanup)] = cleanup_node.id
                state.add_edge(source_id, cleanup_node.id, "cleanup", is_cleanup=True)

        logger.debug(f"Stage 3: {len(state.process_ids)} process nodes, {len(state.exposed_groups)} exposed groups")

    @staticmethod
    def _process_node(state: _BuildState, process: ProcessInfo, kind: str, owner_id: str | None = None) -> DFDNode:
        node = DFDNode(
            id=state.ids.next("process"),
            label=process.name,
            kind="process",
            metadata=ProcessFacts(kind, list(process.references), list(process.dependencies), owner_id),
            position=process.position,
        )
        state.add_node(node)
        state.symbols.add(process.name, node, EXACT_LABEL, ROLE_CALL)
        return node

    # =========================================================================
    # Stage 4: external calls
    # =========================================================================

    def _create_external_call_nodes(self, state: _BuildState):
        for process in self._all_processes(state.ir):
            owner_id = state.owners.get(id(process))
            # Inline handlers draw their calls from the anchor element in stage 8
            if owner_id is None and not process.is_inline:
                logger.debug(f"Skipping calls of unowned process {process.name}")
                continue
            for call in process.external_calls:
                if call.is_handle_call:
                    continue
                call_id = self._call_node(state, call)
                if owner_id is not None:
                    state.add_edge(owner_id, call_id, "calls")
                    self._add_callback_write_edges(state, call, call_id)

        for method, handler_id in state.handler_ids:
            for call in method.external_calls:
                if call.is_handle_call:
                    continue
                call_id = self._call_node(state, call)
                state.add_edge(handler_id, call_id, "calls")
                for arg in call.arguments:
                    binding = state.symbols.resolve(arg)
                    if binding and binding.role in (ROLE_READ, ROLE_PROPERTY):
                        state.add_edge(binding.node.id, call_id, "passes")
                self._add_callback_write_edges(state, call, call_id)

    @staticmethod
    def _call_node(state: _BuildState, call: ExternalCall) -> str:
        call_id = state.call_ids.get(call.callee)
        if call_id is None:
            node = DFDNode(
                id=state.ids.next("call"),
                label=call.callee,
                kind="output",
                metadata=ExternalCallFacts(call.callee, list(call.arguments)),
            )
            state.add_node(node)
            state.symbols.add(call.callee, node, EXACT_LABEL, ROLE_CALL)
            state.call_ids[call.callee] = node.id
            call_id = node.id
        return call_id

    @staticmethod
    def _add_callback_write_edges(state: _BuildState, call: ExternalCall, call_id: str):
        """fetch(url).then(data => setUsers(data)): the call's result lands in a store."""
        for ref in call.callback_references:
            binding = state.symbols.resolve(ref)
            if binding and binding.role == ROLE_WRITE:
                state.add_edge(call_id, binding.node.id, "callback writes")

    @staticmethod
    def _all_processes(ir: ComponentIR):
        for process in ir.processes:
            yield process
            if process.cleanup is not None:
                yield process.cleanup

    # =========================================================================
    # Stage 5: exposed-handle aggregation
    # =========================================================================

    @staticmethod
    def _handle_target(call: ExternalCall) -> tuple[str, str] | None:
        """(handle, method) of childRef.current.focus(); falls back to splitting the callee."""
        parts = call.callee.split(".")
        handle = call.handle_name or parts[0]
        method = call.method_name or (parts[-1] if len(parts) > 1 else None)
        if not handle or not method:
            return None
        return handle, method

    def _handle_callers(self, state: _BuildState):
        """(handle calls, caller id) for every process and exposed method, in IR order."""
        for process in self._all_processes(state.ir):
            yield process.external_calls, state.owners.get(id(process))
        for method, handler_id in state.handler_ids:
            yield method.external_calls, handler_id

    def _aggregate_handle_calls(self, state: _BuildState, subgraphs: SubgraphBuilder):
        # handle -> method -> caller ids, in first-seen order
        grouped: dict[str, dict[str, list[str]]] = {}

        for calls, caller_id in self._handle_callers(state):
            for call in calls:
                if not call.is_handle_call:
                    continue
                target = self._handle_target(call)
                if target is None:
                    continue
                handle, method = target
                callers = grouped.setdefault(handle, {}).setdefault(method, [])
                if caller_id is not None and caller_id not in callers:
                    callers.append(caller_id)

        for handle, methods in grouped.items():
            group = subgraphs.build_handle_group(handle, list(methods))
            state.handle_groups[handle] = group
            for method_node in group.elements:
                state.add_node(method_node)
                state.handle_method_ids[(handle, method_node.label)] = method_node.id
                for caller_id in methods[method_node.label]:
                    state.add_edge(caller_id, method_node.id, "calls")

        if grouped:
            logger.debug(f"Stage 5: handle groups {sorted(grouped)}")

    # =========================================================================
    # Stage 6: render tree
    # =========================================================================

    def _build_render_tree(self, state: _BuildState, subgraphs: SubgraphBuilder):
        if state.ir.render_structure is None:
            return

        anchors = {
            (p.anchor.line, p.anchor.column)
            for p in state.ir.processes
            if p.is_inline and p.anchor is not None and p.anchor.line is not None
        }
        root = subgraphs.build_render_tree(state.ir.render_structure, anchors=anchors)
        state.root = root

        for node in root.iter_nodes():
            state.add_node(node)
            state.elements.append(node)

        for region in root.iter_subgraphs():
            state.regions.append(region)
            state.add_node(
                DFDNode(
                    id=region.id,
                    label=region.label,
                    kind="subgraph-marker",
                    metadata=RegionFacts(region.branch_kind or "conditional", region.condition),
                )
            )

    def _element_at(self, state: _BuildState, line: int | None, column: int | None) -> DFDNode | None:
        if line is None:
            return None
        same_line = [e for e in state.elements if e.position is not None and e.position.line == line]
        for element in same_line:
            if column is None or element.position.column == column:
                return element
        # Front ends disagree on column origin; a single element on the line is unambiguous
        return same_line[0] if len(same_line) == 1 else None

    # =========================================================================
    # Stage 7: structural edges
    # =========================================================================

    @staticmethod
    def _qualify(label: str, binding: Binding, name: str) -> str:
        if binding.role == ROLE_PROPERTY:
            return f"{label}: {name}"
        return label

    def _add_structural_edges(self, state: _BuildState):
        for region in state.regions:
            if region.condition is None:
                continue
            label = "iterates over" if region.branch_kind == "iteration" else "controls visibility"
            for name in region.condition.variables:
                binding = state.symbols.resolve(name)
                if binding is None:
                    logger.debug(f"No node for condition variable {name} of {region.id}")
                    continue
                state.add_edge(binding.node.id, region.id, self._qualify(label, binding, name))

        # Elements inside regions keep their own display edges too
        for element in state.elements:
            for name in element.metadata.display_dependencies:
                binding = state.symbols.resolve(name)
                if binding is None:
                    logger.debug(f"No node for display dependency {name} of <{element.label}>")
                    continue
                state.add_edge(binding.node.id, element.id, self._qualify("display", binding, name))

    # =========================================================================
    # Stage 8: attribute edges
    # =========================================================================

    @staticmethod
    def _is_literal(name: str) -> bool:
        return (
            not name
            or name[0] in "'\"`"
            or name in _LITERALS
            or name.replace(".", "", 1).isdigit()
        )

    @staticmethod
    def _invokes(binding: Binding, property_name: str | None = None) -> bool:
        if binding.role in (ROLE_CALL, ROLE_WRITE):
            return True
        # store.increment on a data object
        return bool(property_name) and is_callable(property_name)

    def _add_attribute_edges(self, state: _BuildState):
        for element in state.elements:
            facts: ElementFacts = element.metadata
            for attribute, name, property_name in facts.attribute_references:
                if attribute == "ref" or self._is_literal(name):
                    continue
                binding = state.symbols.resolve(name)
                if binding is None:
                    logger.debug(f"No node for attribute {attribute}={name} on <{element.label}>")
                    continue
                if self._invokes(binding, property_name):
                    state.add_edge(element.id, binding.node.id, attribute)
                else:
                    state.add_edge(binding.node.id, element.id, self._qualify("binds", binding, name))

        for process in state.ir.processes:
            if process.is_inline:
                self._add_inline_handler_edges(state, process)

    def _add_inline_handler_edges(self, state: _BuildState, process: ProcessInfo):
        anchor = process.anchor
        element = self._element_at(state, anchor.line, anchor.column) if anchor else None
        if element is None:
            logger.debug(f"Inline handler {process.name} has no anchor element")
            return
        label = (anchor.attribute_name if anchor else None) or DEFAULT_INLINE_ATTRIBUTE

        for name in process.references:
            binding = state.symbols.resolve(name)
            # Data referenced inside the handler body is an argument, not a target
            if binding is not None and self._invokes(binding):
                state.add_edge(element.id, binding.node.id, label)

        for call in process.external_calls:
            if call.is_handle_call:
                target = self._handle_target(call)
                method_id = state.handle_method_ids.get(target) if target else None
                if method_id is not None:
                    state.add_edge(element.id, method_id, label)
            else:
                call_id = state.call_ids.get(call.callee)
                if call_id is not None:
                    state.add_edge(element.id, call_id, label)
                    self._add_callback_write_edges(state, call, call_id)

    # =========================================================================
    # Stage 9: process edges
    # =========================================================================

    def _add_process_edges(self, state: _BuildState):
        for process, node_id in state.process_ids:
            self._add_reference_edges(state, node_id, process.references)
        for method, node_id in state.handler_ids:
            self._add_reference_edges(state, node_id, method.references)

    def _add_reference_edges(self, state: _BuildState, node_id: str, references: list[str]):
        qualified_reads: dict[str, list[str]] = {}

        for name in dict.fromkeys(references):
            binding = state.symbols.resolve(name)
            if binding is None or binding.node.id == node_id:
                continue
            facts = binding.node.metadata
            if not isinstance(facts, (PropFacts, StoreFacts, ValueFacts)):
                continue

            if binding.role == ROLE_WRITE:
                is_reducer = isinstance(facts, StoreFacts) and facts.is_reducer
                state.add_edge(node_id, binding.node.id, "dispatch" if is_reducer else "writes")
            elif binding.role == ROLE_CALL:
                state.add_edge(node_id, binding.node.id, "calls")
            elif binding.role == ROLE_PROPERTY:
                qualified_reads.setdefault(binding.node.id, []).append(name)
            else:
                state.add_edge(binding.node.id, node_id, "reads")

        for source_id, names in qualified_reads.items():
            state.add_edge(source_id, node_id, f"reads: {', '.join(names)}")

    # =========================================================================
    # Stage 10: export edges
    # =========================================================================

    def _add_export_edges(self, state: _BuildState):
        if not state.handle_groups:
            return
        for element in state.elements:
            for attribute, name, _ in element.metadata.attribute_references:
                group = state.handle_groups.get(name) if attribute == "ref" else None
                if group is not None:
                    state.add_edge(element.id, group.id, "exports", emphasize=True)


def merge_qualified_edges(edges: list[DFDEdge]) -> list[DFDEdge]:
    """
    Collapse edges sharing (source, target, base label).

    "reads" + "reads: count" + "reads: total" -> "reads: count, total".
    Only QUALIFIED_LABELS merge this way; "on:click" and "on:submit" stay apart.
    Unqualified duplicates cannot occur (edges are deduplicated on insert).
    """
    groups: dict[tuple[str, str, str], list[DFDEdge]] = {}
    for edge in edges:
        groups.setdefault((edge.source, edge.target, edge.base_label), []).append(edge)

    merged: list[DFDEdge] = []
    for (source, target, base), group in groups.items():
        if len(group) == 1:
            merged.append(group[0])
            continue
        qualifiers: list[str] = []
        for edge in group:
            for q in edge.qualifiers:
                if q not in qualifiers:
                    qualifiers.append(q)
        first = group[0]
        merged.append(
            DFDEdge(
                source,
                target,
                f"{base}: {', '.join(qualifiers)}" if qualifiers else first.label,
                any(e.is_cleanup for e in group),
                any(e.emphasize for e in group),
            )
        )
    return merged
