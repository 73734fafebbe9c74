"""Tests for DFD synthesis from Component IR.

Covers the ten build stages end to end on small hand-written IRs:
- props/state/process node creation and kinds
- read-write pairs and reducers collapsing into one store
- direction of edges (reads vs writes vs calls)
- render regions, structural and attribute edges
- inline handlers, external calls, cleanup
- imperative handles (exposed and consumed) and export edges
"""

import pytest

from webdfd.component_ir import (
    AttributeReference,
    ComponentIR,
    ElementStructure,
    ExposedMethod,
    ExternalCall,
    ProcessInfo,
    PropInfo,
    RenderAnchor,
    SourcePosition,
    StateEntry,
)
from webdfd.dfd_builder import DFDBuilder, merge_qualified_edges
from webdfd.dfd_model import DFDEdge, HandlerFacts


def _one(info, label, kind=None):
    nodes = info.find_nodes(label, kind)
    assert len(nodes) == 1, f"expected one node labeled {label!r}, got {nodes}"
    return nodes[0]


class TestPropsAndState:
    """Stage 1-2: props and state entries."""

    def test_callable_prop_is_output(self, counter_ir):
        """Props typed as functions become outputs, data props inputs."""
        info = DFDBuilder().build(counter_ir)

        assert _one(info, "label").kind == "input"
        assert _one(info, "onChange").kind == "output"

    def test_boolean_convention_prop_is_input(self):
        """Untyped 'disabled' is data even though nothing marks it as such."""
        ir = ComponentIR(name="Button", props=[PropInfo(name="disabled"), PropInfo(name="onPress")])
        info = DFDBuilder().build(ir)

        assert _one(info, "disabled").kind == "input"
        assert _one(info, "onPress").kind == "output"

    def test_read_write_pair_is_single_store(self, counter_ir):
        """[count, setCount] collapses into one store labeled by the read identifier."""
        info = DFDBuilder().build(counter_ir)

        store = _one(info, "count")
        assert store.kind == "store"
        assert store.metadata.write_variable == "setCount"
        assert info.find_nodes("setCount") == []

    def test_pair_inferred_from_names(self):
        """Two-variable state with a setter-named second variable is a pair without the flag."""
        ir = ComponentIR(
            name="Toggle",
            state_entries=[StateEntry(kind="state", variables=["open", "setOpen"], hook_name="useState")],
        )
        info = DFDBuilder().build(ir)

        assert [n.label for n in info.nodes] == ["open"]

    def test_reducer_collapses_into_one_store(self, reducer_ir):
        """useReducer yields one store labeled with the reducer name."""
        info = DFDBuilder().build(reducer_ir)

        store = _one(info, "counterReducer", "store")
        assert store.metadata.is_reducer
        assert store.metadata.state_properties == ["count", "step"]
        assert info.find_nodes("state") == []
        assert info.find_nodes("dispatch") == []

    def test_synthetic_and_duplicate_props_skipped(self):
        """__-prefixed props and repeated names produce no extra nodes."""
        ir = ComponentIR(
            name="C",
            props=[PropInfo(name="__source"), PropInfo(name="title"), PropInfo(name="title")],
        )
        info = DFDBuilder().build(ir)

        assert [n.label for n in info.nodes] == ["title"]

    def test_ref_entries_have_no_node(self, parent_with_handle_ir):
        """Reference holders play no data-flow role."""
        info = DFDBuilder().build(parent_with_handle_ir)

        assert info.find_nodes("inputRef") == []

    def test_composable_splits_callables_and_data(self):
        """Custom hook results: data becomes a store, verbs become outputs."""
        ir = ComponentIR(
            name="Cart",
            state_entries=[
                StateEntry(kind="composable", variables=["items", "addItem"], hook_name="useCart"),
                StateEntry(kind="context", variables=["user", "logout"], hook_name="useContext"),
            ],
        )
        info = DFDBuilder().build(ir)

        assert _one(info, "items").kind == "store"
        assert _one(info, "addItem").kind == "output"
        assert _one(info, "user").kind == "input"
        assert _one(info, "logout").kind == "output"

    def test_variable_types_override_naming(self):
        """A resolved type wins over the naming convention."""
        ir = ComponentIR(
            name="C",
            state_entries=[
                StateEntry(
                    kind="composable",
                    variables=["handleData", "compute"],
                    variable_types={"handleData": "data", "compute": "function"},
                )
            ],
        )
        info = DFDBuilder().build(ir)

        assert _one(info, "handleData").kind == "store"
        assert _one(info, "compute").kind == "output"

    def test_initial_value_and_arguments_seed_edges(self, edge_labels):
        """useState(initial) draws 'initializes'; derived/composable arguments draw 'reads'."""
        ir = ComponentIR(
            name="C",
            props=[PropInfo(name="initialCount"), PropInfo(name="userId")],
            state_entries=[
                StateEntry(
                    kind="state",
                    variables=["count", "setCount"],
                    is_read_write_pair=True,
                    initial_value="initialCount",
                ),
                StateEntry(kind="derived", variables=["doubled"], hook_name="useMemo", argument_identifiers=["count"]),
                StateEntry(kind="fetch", variables=["profile"], hook_name="useQuery", argument_identifiers=["userId"]),
            ],
        )
        info = DFDBuilder().build(ir)

        assert edge_labels(info, "initialCount", "count") == {"initializes"}
        assert edge_labels(info, "count", "doubled") == {"reads"}
        assert edge_labels(info, "userId", "profile") == {"reads"}


class TestProcessEdges:
    """Stage 3 and 9: processes and their reference edges."""

    def test_reads_writes_calls_directions(self, counter_ir, edge_labels):
        """Data flows into the process; writes and calls flow out of it."""
        info = DFDBuilder().build(counter_ir)

        assert edge_labels(info, "count", "handleClick") == {"reads"}
        assert edge_labels(info, "handleClick", "count") == {"writes"}
        assert edge_labels(info, "handleClick", "onChange") == {"calls"}
        assert edge_labels(info, "onChange", "handleClick") == set()

    def test_reducer_property_reads_are_merged(self, reducer_ir, edge_labels):
        """Reads of reducer state properties collapse into one qualified edge."""
        info = DFDBuilder().build(reducer_ir)

        assert edge_labels(info, "counterReducer", "logStep") == {"reads: step, count"}

    def test_dispatch_edge_for_reducer(self, edge_labels):
        """Writing through a reducer's dispatch is labeled 'dispatch'."""
        ir = ComponentIR(
            name="C",
            state_entries=[StateEntry(kind="reducer", variables=["state", "dispatch"], reducer_name="reducer")],
            processes=[ProcessInfo(name="handleReset", kind="event-handler", references=["dispatch"])],
        )
        info = DFDBuilder().build(ir)

        assert edge_labels(info, "handleReset", "reducer") == {"dispatch"}

    def test_cleanup_process(self, effect_ir):
        """Cleanup gets its own node and a cleanup-flagged edge from its owner."""
        info = DFDBuilder().build(effect_ir)

        effect = _one(info, "useEffect", "process")
        cleanup = _one(info, "useEffect cleanup", "process")
        assert cleanup.metadata.process_kind == "cleanup"
        assert cleanup.metadata.owner_process_id == effect.id

        edges = [e for e in info.edges if e.source == effect.id and e.target == cleanup.id]
        assert len(edges) == 1
        assert edges[0].is_cleanup
        assert edges[0].label == "cleanup"

    def test_processes_do_not_link_to_each_other(self):
        """A process referencing another process draws no edge."""
        ir = ComponentIR(
            name="C",
            processes=[
                ProcessInfo(name="validate", kind="custom-function"),
                ProcessInfo(name="handleSubmit", kind="event-handler", references=["validate"]),
            ],
        )
        info = DFDBuilder().build(ir)

        assert info.edges == []


class TestExternalCalls:
    """Stage 4: external calls."""

    def test_call_node_and_callback_write(self, effect_ir, edge_labels):
        """fetch gets an output node; its callback writing state draws 'callback writes'."""
        info = DFDBuilder().build(effect_ir)

        assert _one(info, "fetch").kind == "output"
        assert edge_labels(info, "useEffect", "fetch") == {"calls"}
        assert edge_labels(info, "fetch", "user") == {"callback writes"}
        assert edge_labels(info, "useEffect cleanup", "controller.abort") == {"calls"}

    def test_calls_deduplicated_per_callee(self):
        """Two processes calling the same function share one call node."""
        ir = ComponentIR(
            name="C",
            processes=[
                ProcessInfo(name="handleA", kind="event-handler", external_calls=[ExternalCall("console.log")]),
                ProcessInfo(name="handleB", kind="event-handler", external_calls=[ExternalCall("console.log")]),
            ],
        )
        info = DFDBuilder().build(ir)

        call = _one(info, "console.log")
        assert len(info.edges_to(call.id)) == 2


class TestRenderTree:
    """Stage 6-8: render regions and element edges."""

    def test_display_and_attribute_edges(self, counter_ir, edge_labels):
        """Display dependencies flow into elements; handlers are invoked by them."""
        info = DFDBuilder().build(counter_ir)

        assert edge_labels(info, "label", "span") == {"display"}
        assert edge_labels(info, "count", "span") == {"display"}
        assert edge_labels(info, "button", "handleClick") == {"onClick"}

    def test_wrapper_elements_are_hoisted(self, counter_ir):
        """Elements without dependencies get no node."""
        info = DFDBuilder().build(counter_ir)

        assert info.find_nodes("div") == []
        assert [n.label for n in info.root_subgraph.elements] == ["span", "button"]

    def test_qualified_display_edges_merge(self, reducer_ir, edge_labels):
        """Two reducer properties displayed by one element yield one merged edge."""
        info = DFDBuilder().build(reducer_ir)

        assert edge_labels(info, "counterReducer", "p") == {"display: count, step"}

    def test_inline_handler_anchors_to_element(self, reducer_ir, edge_labels):
        """Inline handlers draw from their anchor element, labeled by attribute."""
        info = DFDBuilder().build(reducer_ir)

        assert edge_labels(info, "button", "counterReducer") == {"onClick"}
        assert info.find_nodes("onClick@9:6") == []

    def test_inline_handler_keeps_bare_element(self, edge_labels):
        """An element whose only link is an inline handler is not hoisted away."""
        ir = ComponentIR(
            name="Counter",
            state_entries=[StateEntry(kind="state", variables=["count", "setCount"], hook_name="useState")],
            processes=[
                ProcessInfo(
                    name="onClick@3:4",
                    kind="inline-handler",
                    references=["setCount", "count"],
                    anchor=RenderAnchor(3, 4, "onClick"),
                ),
            ],
            render_structure=ElementStructure(
                tag_name="div",
                position=SourcePosition(2, 2),
                children=[
                    ElementStructure(tag_name="button", position=SourcePosition(3, 4)),
                    ElementStructure(tag_name="span", display_dependencies=["count"], position=SourcePosition(4, 4)),
                ],
            ),
        )
        info = DFDBuilder().build(ir)

        assert _one(info, "button").kind == "output"
        assert edge_labels(info, "button", "count") == {"onClick"}
        assert edge_labels(info, "count", "span") == {"display"}
        assert info.find_nodes("div") == []

    def test_conditional_regions(self, conditional_ir, edge_labels):
        """A ternary yields sibling regions; both are controlled by the condition."""
        info = DFDBuilder().build(conditional_ir)

        labels = [s.label for s in info.root_subgraph.iter_subgraphs()]
        assert labels == ["{isOpen}", "{!isOpen}", "{loop}"]
        assert edge_labels(info, "isOpen", "{isOpen}") == {"controls visibility"}
        assert edge_labels(info, "isOpen", "{!isOpen}") == {"controls visibility"}
        assert edge_labels(info, "message", "p") == {"display"}

    def test_region_keeps_element_without_dependencies(self, conditional_ir):
        """A region's only content survives even without dependencies."""
        info = DFDBuilder().build(conditional_ir)

        regions = {s.label: s for s in info.root_subgraph.iter_subgraphs()}
        assert [n.label for n in regions["{!isOpen}"].iter_nodes()] == ["Spinner"]
        assert [n.label for n in regions["{loop}"].iter_nodes()] == ["li"]

    def test_iteration_edge(self, conditional_ir, edge_labels):
        """The iterated collection points at the loop region."""
        info = DFDBuilder().build(conditional_ir)

        assert edge_labels(info, "items", "{loop}") == {"iterates over"}

    def test_data_attribute_binds(self, exposing_child_ir, edge_labels):
        """Data referenced in an attribute binds into the element; ref is skipped."""
        info = DFDBuilder().build(exposing_child_ir)

        assert edge_labels(info, "value", "input") == {"binds"}
        assert edge_labels(info, "placeholder", "input") == {"binds"}

    def test_store_method_attribute_is_invoked(self, edge_labels):
        """cart.addItem in an attribute is a call even though cart is data."""
        ir = ComponentIR(
            name="C",
            state_entries=[StateEntry(kind="composable", variables=["cart"], hook_name="useCart")],
            render_structure=ElementStructure(
                tag_name="button",
                attribute_references=[AttributeReference("onClick", "cart", "addItem")],
                position=SourcePosition(3, 2),
            ),
        )
        info = DFDBuilder().build(ir)

        assert edge_labels(info, "button", "cart") == {"onClick"}

    def test_no_render_structure(self):
        """Components without output still build."""
        info = DFDBuilder().build(ComponentIR(name="Headless", props=[PropInfo(name="id")]))

        assert info.root_subgraph is None
        assert [n.label for n in info.nodes] == ["id"]


class TestImperativeHandles:
    """Stage 3, 5 and 10: exposed handlers, handle calls, export edges."""

    def test_exposed_methods_group(self, exposing_child_ir):
        """useImperativeHandle yields a group of handler nodes and no process node."""
        info = DFDBuilder().build(exposing_child_ir)

        assert info.find_nodes("useImperativeHandle") == []
        assert len(info.subgraphs) == 1
        group = info.subgraphs[0]
        assert group.kind == "exposed-handlers"
        assert group.owner_process_id is not None
        assert [n.label for n in group.elements] == ["focus", "getValue", "save"]
        assert all(isinstance(n.metadata, HandlerFacts) for n in group.elements)

    def test_handler_edges(self, exposing_child_ir, edge_labels):
        """Handlers read, write and pass data like processes."""
        info = DFDBuilder().build(exposing_child_ir)

        assert edge_labels(info, "value", "getValue") == {"reads"}
        assert edge_labels(info, "save", "value") == {"writes"}
        assert edge_labels(info, "save", "api.save") == {"calls"}
        assert edge_labels(info, "value", "api.save") == {"passes"}

    def test_handle_calls_aggregate_per_handle(self, parent_with_handle_ir, edge_labels):
        """One group per handle, one node per method, one edge per caller."""
        info = DFDBuilder().build(parent_with_handle_ir)

        assert len(info.subgraphs) == 1
        group = info.subgraphs[0]
        assert group.handle_name == "inputRef"
        assert [n.label for n in group.elements] == ["focus", "clear"]

        assert edge_labels(info, "handleFocus", "focus") == {"calls"}
        assert edge_labels(info, "handleReset", "focus") == {"calls"}
        assert edge_labels(info, "handleReset", "clear") == {"calls"}

    def test_export_edge_is_emphasized(self, parent_with_handle_ir):
        """The element receiving the ref points at the handle group."""
        info = DFDBuilder().build(parent_with_handle_ir)

        element = _one(info, "FancyInput")
        group = info.subgraphs[0]
        exports = [e for e in info.edges if e.source == element.id and e.target == group.id]
        assert len(exports) == 1
        assert exports[0].label == "exports"
        assert exports[0].emphasize

    def test_handle_call_inside_exposed_method(self):
        """An exposed method forwarding to a ref's method calls into that handle's group."""
        ir = ComponentIR(
            name="FancyInput",
            state_entries=[StateEntry(kind="ref", variables=["inputRef"], hook_name="useRef")],
            processes=[
                ProcessInfo(
                    name="useImperativeHandle",
                    kind="callback",
                    exposed_methods=[
                        ExposedMethod(
                            name="focus",
                            references=["inputRef"],
                            external_calls=[
                                ExternalCall(
                                    "inputRef.current.focus",
                                    is_handle_call=True,
                                    handle_name="inputRef",
                                    method_name="focus",
                                )
                            ],
                        )
                    ],
                ),
            ],
        )
        info = DFDBuilder().build(ir)

        exposed, handle = info.subgraphs
        assert exposed.owner_process_id is not None
        assert handle.handle_name == "inputRef"
        handler, target = exposed.elements[0], handle.elements[0]
        assert handler.label == target.label == "focus"
        assert [e.label for e in info.edges if e.source == handler.id and e.target == target.id] == ["calls"]

    def test_exposing_process_calls_and_cleanup(self):
        """Calls and cleanup of a handle-exposing process hang off its handler group."""
        ir = ComponentIR(
            name="Player",
            processes=[
                ProcessInfo(
                    name="useImperativeHandle",
                    kind="callback",
                    external_calls=[ExternalCall("console.log")],
                    exposed_methods=[ExposedMethod(name="play")],
                    cleanup=ProcessInfo(
                        name="useImperativeHandle cleanup",
                        kind="cleanup",
                        external_calls=[ExternalCall("player.destroy")],
                    ),
                ),
            ],
        )
        info = DFDBuilder().build(ir)

        group = info.subgraphs[0]
        log = _one(info, "console.log")
        cleanup = _one(info, "useImperativeHandle cleanup", "process")
        destroy = _one(info, "player.destroy")
        assert cleanup.metadata.owner_process_id == group.owner_process_id

        ids = {n.id for n in info.nodes} | {s.id for s in info.all_subgraphs()}
        assert all(e.source in ids and e.target in ids for e in info.edges)
        assert [e.label for e in info.edges_to(log.id)] == ["calls"]
        assert info.edges_to(log.id)[0].source == group.id
        cleanup_edges = info.edges_to(cleanup.id)
        assert len(cleanup_edges) == 1
        assert cleanup_edges[0].source == group.id
        assert cleanup_edges[0].is_cleanup
        assert [e.source for e in info.edges_to(destroy.id)] == [cleanup.id]

    def test_inline_handler_call_drawn_from_element(self):
        """A call made inside an inline handler hangs off the anchor element."""
        ir = ComponentIR(
            name="C",
            processes=[
                ProcessInfo(
                    name="onClick@3:4",
                    kind="inline-handler",
                    external_calls=[ExternalCall("api.save")],
                    anchor=RenderAnchor(3, 4, "onClick"),
                ),
            ],
            render_structure=ElementStructure(tag_name="button", position=SourcePosition(3, 4)),
        )
        info = DFDBuilder().build(ir)

        call = _one(info, "api.save")
        assert [(e.source, e.label) for e in info.edges_to(call.id)] == [(_one(info, "button").id, "onClick")]


class TestBuildProperties:
    """Whole-graph properties."""

    @pytest.mark.parametrize(
        "fixture_name",
        ["counter_ir", "reducer_ir", "conditional_ir", "effect_ir", "parent_with_handle_ir", "exposing_child_ir"],
    )
    def test_build_is_deterministic(self, fixture_name, request):
        """Two builds of the same IR serialize identically."""
        ir = request.getfixturevalue(fixture_name)

        first = DFDBuilder().build(ir).to_dict()
        builder = DFDBuilder()
        builder.build(ir)
        second = builder.build(ir).to_dict()
        assert first == second

    @pytest.mark.parametrize(
        "fixture_name",
        ["counter_ir", "reducer_ir", "conditional_ir", "effect_ir", "parent_with_handle_ir", "exposing_child_ir"],
    )
    def test_edges_reference_known_ids(self, fixture_name, request):
        """Every edge endpoint is a node or a subgraph; no self-loops or duplicates."""
        info = DFDBuilder().build(request.getfixturevalue(fixture_name))

        ids = {n.id for n in info.nodes} | {s.id for s in info.all_subgraphs()}
        keys = [e.key for e in info.edges]
        assert len(keys) == len(set(keys))
        for edge in info.edges:
            assert edge.source in ids
            assert edge.target in ids
            assert edge.source != edge.target

    def test_node_ids_unique(self, conditional_ir):
        info = DFDBuilder().build(conditional_ir)

        ids = [n.id for n in info.nodes]
        assert len(ids) == len(set(ids))


class TestMergeQualifiedEdges:
    def test_combines_qualifiers(self):
        edges = [
            DFDEdge("a", "b", "reads: x"),
            DFDEdge("a", "b", "reads: y"),
            DFDEdge("a", "c", "reads"),
        ]
        merged = merge_qualified_edges(edges)

        assert [(e.source, e.target, e.label) for e in merged] == [
            ("a", "b", "reads: x, y"),
            ("a", "c", "reads"),
        ]

    def test_different_base_labels_stay_apart(self):
        edges = [DFDEdge("a", "b", "display: x"), DFDEdge("a", "b", "reads: x")]

        assert len(merge_qualified_edges(edges)) == 2

    def test_colon_in_event_label_is_not_a_qualifier(self):
        """Directive-style event labels keep their colon and never merge."""
        edges = [DFDEdge("btn", "save", "on:click"), DFDEdge("btn", "save", "on:submit")]

        assert edges[0].base_label == "on:click"
        assert edges[0].qualifiers == []
        assert DFDEdge("a", "b", "v-on:click").base_label == "v-on:click"
        assert [e.label for e in merge_qualified_edges(edges)] == ["on:click", "on:submit"]

    def test_event_label_traversal_filter(self, edge_labels):
        """Filtering traversal by 'on:click' does not follow 'on:submit'."""
        ir = ComponentIR(
            name="Form",
            props=[PropInfo(name="onSave", type="() => void"), PropInfo(name="onCancel", type="() => void")],
            render_structure=ElementStructure(
                tag_name="form",
                attribute_references=[
                    AttributeReference("on:submit", "onSave"),
                    AttributeReference("on:click", "onCancel"),
                ],
                position=SourcePosition(1, 0),
            ),
        )
        info = DFDBuilder().build(ir)
        form = _one(info, "form")

        assert edge_labels(info, "form", "onSave") == {"on:submit"}
        assert edge_labels(info, "form", "onCancel") == {"on:click"}
        assert info.downstream(form.id, label="on:click") == {_one(info, "onCancel").id}


class TestDFDInfoQueries:
    """Lookups and traversal on a built graph."""

    def test_upstream_and_downstream(self, counter_ir):
        info = DFDBuilder().build(counter_ir)
        count = _one(info, "count")
        handler = _one(info, "handleClick")
        span = _one(info, "span")

        assert count.id in info.upstream(span.id)
        assert handler.id in info.upstream(count.id)
        assert span.id in info.downstream(handler.id)

    def test_traversal_with_label_filter(self, counter_ir):
        info = DFDBuilder().build(counter_ir)
        count = _one(info, "count")
        handler = _one(info, "handleClick")
        span = _one(info, "span")

        assert info.downstream(count.id, label="display") == {span.id}
        assert handler.id not in info.downstream(count.id, label="display")

    def test_compact_dict(self, counter_ir):
        compact = DFDBuilder().build(counter_ir).to_compact_dict()

        assert compact["component"] == "Counter"
        assert compact["inputs"] == ["label"]
        assert compact["stores"] == ["count"]
        assert compact["processes"] == ["handleClick"]
        assert compact["outputs"] == ["onChange"]

    def test_to_dict_shape(self, effect_ir):
        d = DFDBuilder().build(effect_ir).to_dict()

        assert d["component"] == "UserCard"
        assert {"from", "to"} <= set(d["edges"][0])
        assert any(e.get("isCleanup") for e in d["edges"])
        assert d["rootSubgraph"]["kind"] == "render-region"
