"""Pytest configuration and fixtures."""

import pytest

from webdfd.component_ir import (
    AttributeReference,
    BranchStructure,
    ComponentIR,
    ConditionExpression,
    ElementStructure,
    ExposedMethod,
    ExternalCall,
    ProcessInfo,
    PropInfo,
    RenderAnchor,
    SourcePosition,
    StateEntry,
)


def _edge_labels(info, source_label: str, target_label: str) -> set:
    sources = {n.id for n in info.nodes if n.label == source_label}
    targets = {n.id for n in info.nodes if n.label == target_label}
    return {e.label for e in info.edges if e.source in sources and e.target in targets}


@pytest.fixture
def edge_labels():
    """Labels of every edge between nodes with the given labels."""
    return _edge_labels


@pytest.fixture
def counter_ir():
    """Props, a read-write state pair, one handler, a wrapper with two children."""
    return ComponentIR(
        name="Counter",
        props=[
            PropInfo(name="label", type="string"),
            PropInfo(name="onChange", type="(value: number) => void"),
        ],
        state_entries=[
            StateEntry(kind="state", variables=["count", "setCount"], hook_name="useState", is_read_write_pair=True),
        ],
        processes=[
            ProcessInfo(name="handleClick", kind="event-handler", references=["count", "setCount", "onChange"]),
        ],
        render_structure=ElementStructure(
            tag_name="div",
            position=SourcePosition(18, 4),
            children=[
                ElementStructure(tag_name="span", display_dependencies=["label", "count"], position=SourcePosition(19, 6)),
                ElementStructure(
                    tag_name="button",
                    attribute_references=[AttributeReference("onClick", "handleClick")],
                    position=SourcePosition(20, 6),
                ),
            ],
        ),
    )


@pytest.fixture
def reducer_ir():
    """useReducer with two state properties and an inline dispatching handler."""
    return ComponentIR(
        name="Stepper",
        state_entries=[
            StateEntry(
                kind="reducer",
                variables=["state", "dispatch"],
                hook_name="useReducer",
                reducer_name="counterReducer",
                state_properties=["count", "step"],
            ),
        ],
        processes=[
            ProcessInfo(
                name="onClick@9:6",
                kind="inline-handler",
                references=["dispatch"],
                anchor=RenderAnchor(9, 6, "onClick"),
            ),
            ProcessInfo(name="logStep", kind="custom-function", references=["step", "count"]),
        ],
        render_structure=ElementStructure(
            tag_name="div",
            position=SourcePosition(7, 4),
            children=[
                ElementStructure(tag_name="p", display_dependencies=["count", "step"], position=SourcePosition(8, 6)),
                ElementStructure(tag_name="button", position=SourcePosition(9, 6)),
            ],
        ),
    )


@pytest.fixture
def conditional_ir():
    """Ternary with both branches, plus a list rendered with .map."""
    return ComponentIR(
        name="UserPanel",
        props=[PropInfo(name="message", type="string")],
        state_entries=[
            StateEntry(kind="state", variables=["isOpen", "setIsOpen"], hook_name="useState", is_read_write_pair=True),
            StateEntry(kind="state", variables=["items", "setItems"], hook_name="useState", is_read_write_pair=True),
        ],
        render_structure=ElementStructure(
            tag_name="section",
            position=SourcePosition(10, 4),
            children=[
                BranchStructure(
                    kind="conditional",
                    condition=ConditionExpression("isOpen", ["isOpen"]),
                    primary=ElementStructure(tag_name="p", display_dependencies=["message"], position=SourcePosition(11, 17)),
                    alternate=ElementStructure(tag_name="Spinner", position=SourcePosition(11, 40)),
                ),
                ElementStructure(
                    tag_name="ul",
                    position=SourcePosition(12, 6),
                    children=[
                        BranchStructure(
                            kind="iteration",
                            condition=ConditionExpression("items", ["items"]),
                            primary=ElementStructure(tag_name="li", position=SourcePosition(13, 10)),
                            loop_variable="item",
                        )
                    ],
                ),
            ],
        ),
    )


@pytest.fixture
def effect_ir():
    """Effect with a fetch whose callback writes state, and a cleanup."""
    return ComponentIR(
        name="UserCard",
        props=[PropInfo(name="userId", type="string")],
        state_entries=[
            StateEntry(kind="state", variables=["user", "setUser"], hook_name="useState", is_read_write_pair=True),
        ],
        processes=[
            ProcessInfo(
                name="useEffect",
                kind="effect",
                references=["userId", "setUser"],
                dependencies=["userId"],
                external_calls=[ExternalCall("fetch", arguments=["userId"], callback_references=["setUser"])],
                cleanup=ProcessInfo(
                    name="useEffect cleanup",
                    kind="effect",
                    external_calls=[ExternalCall("controller.abort")],
                ),
            )
        ],
        render_structure=ElementStructure(tag_name="h2", display_dependencies=["user"], position=SourcePosition(15, 9)),
    )


@pytest.fixture
def parent_with_handle_ir():
    """Parent calling methods on a child's imperative handle."""
    return ComponentIR(
        name="Form",
        state_entries=[StateEntry(kind="ref", variables=["inputRef"], hook_name="useRef")],
        processes=[
            ProcessInfo(
                name="handleFocus",
                kind="event-handler",
                references=["inputRef"],
                external_calls=[
                    ExternalCall(
                        "inputRef.current.focus",
                        is_handle_call=True,
                        handle_name="inputRef",
                        method_name="focus",
                    )
                ],
            ),
            ProcessInfo(
                name="handleReset",
                kind="event-handler",
                references=["inputRef"],
                external_calls=[
                    ExternalCall("inputRef.current.clear", is_handle_call=True, handle_name="inputRef", method_name="clear"),
                    ExternalCall("inputRef.current.focus", is_handle_call=True, handle_name="inputRef", method_name="focus"),
                ],
            ),
        ],
        render_structure=ElementStructure(
            tag_name="div",
            position=SourcePosition(12, 4),
            children=[
                ElementStructure(
                    tag_name="FancyInput",
                    attribute_references=[AttributeReference("ref", "inputRef")],
                    position=SourcePosition(13, 6),
                ),
                ElementStructure(
                    tag_name="button",
                    attribute_references=[AttributeReference("onClick", "handleFocus")],
                    position=SourcePosition(14, 6),
                ),
            ],
        ),
    )


@pytest.fixture
def exposing_child_ir():
    """Child exposing two methods through useImperativeHandle."""
    return ComponentIR(
        name="FancyInput",
        props=[PropInfo(name="placeholder", type="string")],
        state_entries=[
            StateEntry(kind="ref", variables=["inputRef"], hook_name="useRef"),
            StateEntry(kind="state", variables=["value", "setValue"], hook_name="useState", is_read_write_pair=True),
        ],
        processes=[
            ProcessInfo(
                name="useImperativeHandle",
                kind="callback",
                dependencies=["value"],
                exposed_methods=[
                    ExposedMethod(name="focus", references=["inputRef"]),
                    ExposedMethod(
                        name="getValue",
                        references=["value"],
                        returns_value=True,
                    ),
                    ExposedMethod(
                        name="save",
                        parameters=["draft"],
                        references=["value", "setValue"],
                        external_calls=[ExternalCall("api.save", arguments=["value"])],
                        is_async=True,
                    ),
                ],
            )
        ],
        render_structure=ElementStructure(
            tag_name="input",
            attribute_references=[
                AttributeReference("ref", "inputRef"),
                AttributeReference("value", "value"),
                AttributeReference("placeholder", "placeholder"),
            ],
            position=SourcePosition(20, 9),
        ),
    )
