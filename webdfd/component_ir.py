"""
Component IR: the framework-normalized description of one UI component.

A front end (see react_extractor.py) turns component source into these
dataclasses; the graph engine (dfd_builder.py) consumes them without any
framework awareness.

The IR can also be loaded from plain dicts (JSON with camelCase keys), so
front ends written elsewhere can hand their output to the engine:

    ir = ComponentIR.from_dict(json.loads(text))

Shape overview:
- props: inputs declared by the component
- state_entries: state, reducers, derived values, composables, context...
- processes: effects, callbacks, handlers (with optional cleanup)
- render_structure: tree of elements and conditional/iteration branches
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union


# =============================================================================
# Kind tags
# =============================================================================

STATE_KINDS = frozenset(
    {
        "state",  # plain state, or a read-write pair
        "reducer",
        "derived",
        "composable",  # custom hook / composable
        "context",
        "form",
        "routing",
        "fetch",
        "ref",  # reference holder, no data-flow role
    }
)

PROCESS_KINDS = frozenset(
    {
        "effect",
        "lifecycle",
        "watcher",
        "callback",
        "custom-function",
        "event-handler",
        "inline-handler",
    }
)

BRANCH_KINDS = frozenset({"conditional", "iteration", "pending"})


class IRFormatError(Exception):
    """Raised when a dict/JSON payload does not have the Component IR shape."""

    def __init__(self, where: str, message: str):
        self.where = where
        super().__init__(f"Invalid component IR at {where}: {message}")


# =============================================================================
# IR Data Structures
# =============================================================================


@dataclass(slots=True, frozen=True)
class SourcePosition:
    """1-based line, 0-based column (tree-sitter convention)."""

    line: int
    column: int = 0

    def to_dict(self) -> dict:
        return {"line": self.line, "column": self.column}


@dataclass(slots=True)
class PropInfo:
    name: str
    type: str | None = None  # textual type annotation, e.g. "boolean"
    is_destructured: bool = True
    is_function: bool | None = None  # resolved by an external type service
    type_string: str | None = None  # full resolved type, e.g. "() => void"
    position: SourcePosition | None = None


@dataclass(slots=True)
class StateEntry:
    """
    One state-like binding.

    For read-write pairs the first variable is the read identifier and the
    second is the write identifier. For reducers the first variable is the
    state identifier and the second the dispatch identifier.
    """

    kind: str
    variables: list[str] = field(default_factory=list)
    hook_name: str = ""
    variable_types: dict[str, str] | None = None  # name -> "function" | "data"
    is_read_write_pair: bool = False
    state_properties: list[str] = field(default_factory=list)  # reducers only
    reducer_name: str | None = None
    initial_value: str | None = None  # identifier seeding the state
    argument_identifiers: list[str] = field(default_factory=list)
    position: SourcePosition | None = None

    @property
    def read_variable(self) -> str | None:
        return self.variables[0] if self.variables else None

    @property
    def write_variable(self) -> str | None:
        return self.variables[1] if len(self.variables) > 1 else None


@dataclass(slots=True)
class ExternalCall:
    callee: str  # e.g. "api.sendData", "console.log"
    arguments: list[str] = field(default_factory=list)
    callback_references: list[str] = field(default_factory=list)

    # Calls routed through an exposed handle: childRef.current.focus()
    is_handle_call: bool = False
    handle_name: str | None = None
    method_name: str | None = None


@dataclass(slots=True)
class ExposedMethod:
    name: str
    parameters: list[str] = field(default_factory=list)
    references: list[str] = field(default_factory=list)
    external_calls: list[ExternalCall] = field(default_factory=list)
    returns_value: bool = False
    is_async: bool = False
    position: SourcePosition | None = None


@dataclass(slots=True)
class RenderAnchor:
    """Where an inline handler sits in the render tree."""

    line: int | None = None
    column: int | None = None
    attribute_name: str | None = None


@dataclass(slots=True)
class ProcessInfo:
    name: str
    kind: str
    references: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    external_calls: list[ExternalCall] = field(default_factory=list)
    cleanup: ProcessInfo | None = None
    anchor: RenderAnchor | None = None
    exposed_methods: list[ExposedMethod] = field(default_factory=list)
    position: SourcePosition | None = None

    @property
    def is_inline(self) -> bool:
        return self.kind == "inline-handler"


@dataclass(slots=True)
class ConditionExpression:
    expression: str
    variables: list[str] = field(default_factory=list)


@dataclass(slots=True)
class AttributeReference:
    attribute_name: str  # e.g. "onClick", "value"
    referenced_variable: str
    property_name: str | None = None  # store.increment -> "increment"


@dataclass(slots=True)
class ElementStructure:
    tag_name: str
    display_dependencies: list[str] = field(default_factory=list)
    attribute_references: list[AttributeReference] = field(default_factory=list)
    children: list[RenderNode] = field(default_factory=list)
    position: SourcePosition | None = None

    @property
    def has_dependencies(self) -> bool:
        return bool(self.display_dependencies or self.attribute_references)


@dataclass(slots=True)
class BranchStructure:
    kind: str  # "conditional", "iteration", "pending"
    condition: ConditionExpression
    primary: RenderNode | None = None
    alternate: RenderNode | None = None
    loop_variable: str | None = None
    position: SourcePosition | None = None


RenderNode = Union[ElementStructure, BranchStructure]


@dataclass
class ComponentIR:
    name: str
    props: list[PropInfo] = field(default_factory=list)
    state_entries: list[StateEntry] = field(default_factory=list)
    processes: list[ProcessInfo] = field(default_factory=list)
    render_structure: RenderNode | None = None
    framework: str = "react"

    # =========================================================================
    # Loading
    # =========================================================================

    @classmethod
    def from_dict(cls, data: dict) -> ComponentIR:
        """Build an IR from a plain dict with camelCase keys."""
        if not isinstance(data, dict):
            raise IRFormatError("<root>", f"expected an object, got {type(data).__name__}")

        render = data.get("renderStructure")
        return cls(
            name=_req_str(data, "name", "<root>"),
            framework=data.get("framework") or "react",
            props=[
                _prop_from_dict(p, f"props[{i}]")
                for i, p in enumerate(_opt_list(data, "props", "<root>"))
            ],
            state_entries=[
                _state_from_dict(s, f"stateEntries[{i}]")
                for i, s in enumerate(_opt_list(data, "stateEntries", "<root>"))
            ],
            processes=[
                _process_from_dict(p, f"processes[{i}]")
                for i, p in enumerate(_opt_list(data, "processes", "<root>"))
            ],
            render_structure=(
                _render_from_dict(render, "renderStructure") if render is not None else None
            ),
        )

    def to_dict(self) -> dict:
        """Inverse of from_dict; optional fields are omitted when empty."""
        d: dict[str, Any] = {
            "name": self.name,
            "framework": self.framework,
            "props": [_prop_to_dict(p) for p in self.props],
            "stateEntries": [_state_to_dict(s) for s in self.state_entries],
            "processes": [_process_to_dict(p) for p in self.processes],
        }
        if self.render_structure is not None:
            d["renderStructure"] = _render_to_dict(self.render_structure)
        return d


# =============================================================================
# dict -> IR helpers
# =============================================================================


def _req_str(data: dict, key: str, where: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise IRFormatError(where, f"'{key}' must be a non-empty string")
    return value


def _opt_str(data: dict, key: str, where: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise IRFormatError(where, f"'{key}' must be a string")
    return value


def _opt_list(data: dict, key: str, where: str) -> list:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise IRFormatError(where, f"'{key}' must be a list")
    return value


def _str_list(data: dict, key: str, where: str) -> list[str]:
    values = _opt_list(data, key, where)
    for v in values:
        if not isinstance(v, str):
            raise IRFormatError(where, f"'{key}' must contain only strings")
    return list(values)


def _position(data: dict) -> SourcePosition | None:
    line = data.get("line")
    if not isinstance(line, int):
        return None
    column = data.get("column")
    return SourcePosition(line, column if isinstance(column, int) else 0)


def _expect_dict(data: Any, where: str) -> dict:
    if not isinstance(data, dict):
        raise IRFormatError(where, f"expected an object, got {type(data).__name__}")
    return data


def _prop_from_dict(data: Any, where: str) -> PropInfo:
    data = _expect_dict(data, where)
    is_function = data.get("isFunction")
    return PropInfo(
        name=_req_str(data, "name", where),
        type=_opt_str(data, "type", where),
        is_destructured=bool(data.get("isDestructured", True)),
        is_function=is_function if isinstance(is_function, bool) else None,
        type_string=_opt_str(data, "typeString", where),
        position=_position(data),
    )


def _state_from_dict(data: Any, where: str) -> StateEntry:
    data = _expect_dict(data, where)
    kind = _req_str(data, "kind", where)
    if kind not in STATE_KINDS:
        raise IRFormatError(where, f"unknown state kind '{kind}'")

    variable_types = data.get("variableTypes")
    if variable_types is not None:
        if not isinstance(variable_types, dict) or any(
            v not in ("function", "data") for v in variable_types.values()
        ):
            raise IRFormatError(where, "'variableTypes' must map names to 'function' or 'data'")
        variable_types = dict(variable_types)

    return StateEntry(
        kind=kind,
        variables=_str_list(data, "variables", where),
        hook_name=data.get("hookName") or "",
        variable_types=variable_types,
        is_read_write_pair=bool(data.get("isReadWritePair", False)),
        state_properties=_str_list(data, "stateProperties", where),
        reducer_name=_opt_str(data, "reducerName", where),
        initial_value=_opt_str(data, "initialValue", where),
        argument_identifiers=_str_list(data, "argumentIdentifiers", where),
        position=_position(data),
    )


def _call_from_dict(data: Any, where: str) -> ExternalCall:
    data = _expect_dict(data, where)
    return ExternalCall(
        callee=_req_str(data, "callee", where),
        arguments=_str_list(data, "arguments", where),
        callback_references=_str_list(data, "callbackReferences", where),
        is_handle_call=bool(data.get("isHandleCall", False)),
        handle_name=_opt_str(data, "handleName", where),
        method_name=_opt_str(data, "methodName", where),
    )


def _method_from_dict(data: Any, where: str) -> ExposedMethod:
    data = _expect_dict(data, where)
    return ExposedMethod(
        name=_req_str(data, "name", where),
        parameters=_str_list(data, "parameters", where),
        references=_str_list(data, "references", where),
        external_calls=[
            _call_from_dict(c, f"{where}.externalCalls[{i}]")
            for i, c in enumerate(_opt_list(data, "externalCalls", where))
        ],
        returns_value=bool(data.get("returnsValue", False)),
        is_async=bool(data.get("isAsync", False)),
        position=_position(data),
    )


def _process_from_dict(data: Any, where: str) -> ProcessInfo:
    data = _expect_dict(data, where)
    kind = _req_str(data, "kind", where)
    if kind not in PROCESS_KINDS:
        raise IRFormatError(where, f"unknown process kind '{kind}'")

    anchor = None
    anchor_data = data.get("anchor")
    if anchor_data is not None:
        anchor_data = _expect_dict(anchor_data, f"{where}.anchor")
        anchor = RenderAnchor(
            line=anchor_data.get("line"),
            column=anchor_data.get("column"),
            attribute_name=_opt_str(anchor_data, "attributeName", f"{where}.anchor"),
        )

    cleanup = data.get("cleanup")
    return ProcessInfo(
        name=_req_str(data, "name", where),
        kind=kind,
        references=_str_list(data, "references", where),
        dependencies=_str_list(data, "dependencies", where),
        external_calls=[
            _call_from_dict(c, f"{where}.externalCalls[{i}]")
            for i, c in enumerate(_opt_list(data, "externalCalls", where))
        ],
        cleanup=_process_from_dict(cleanup, f"{where}.cleanup") if cleanup is not None else None,
        anchor=anchor,
        exposed_methods=[
            _method_from_dict(m, f"{where}.exposedMethods[{i}]")
            for i, m in enumerate(_opt_list(data, "exposedMethods", where))
        ],
        position=_position(data),
    )


def _render_from_dict(data: Any, where: str) -> RenderNode:
    data = _expect_dict(data, where)
    node_type = data.get("type")

    if node_type == "element":
        attrs = []
        for i, a in enumerate(_opt_list(data, "attributeReferences", where)):
            a = _expect_dict(a, f"{where}.attributeReferences[{i}]")
            attrs.append(
                AttributeReference(
                    attribute_name=_req_str(a, "attributeName", where),
                    referenced_variable=_req_str(a, "referencedVariable", where),
                    property_name=_opt_str(a, "propertyName", where),
                )
            )
        return ElementStructure(
            tag_name=_req_str(data, "tagName", where),
            display_dependencies=_str_list(data, "displayDependencies", where),
            attribute_references=attrs,
            children=[
                _render_from_dict(c, f"{where}.children[{i}]")
                for i, c in enumerate(_opt_list(data, "children", where))
            ],
            position=_position(data),
        )

    if node_type == "branch":
        kind = _req_str(data, "kind", where)
        if kind not in BRANCH_KINDS:
            raise IRFormatError(where, f"unknown branch kind '{kind}'")
        cond = _expect_dict(data.get("condition") or {}, f"{where}.condition")
        primary = data.get("primary")
        alternate = data.get("alternate")
        return BranchStructure(
            kind=kind,
            condition=ConditionExpression(
                expression=cond.get("expression") or "",
                variables=_str_list(cond, "variables", f"{where}.condition"),
            ),
            primary=_render_from_dict(primary, f"{where}.primary") if primary is not None else None,
            alternate=(
                _render_from_dict(alternate, f"{where}.alternate") if alternate is not None else None
            ),
            loop_variable=_opt_str(data, "loopVariable", where),
            position=_position(data),
        )

    raise IRFormatError(where, f"render node type must be 'element' or 'branch', got {node_type!r}")


# =============================================================================
# IR -> dict helpers
# =============================================================================


def _with_position(d: dict, position: SourcePosition | None) -> dict:
    if position is not None:
        d.update(position.to_dict())
    return d


def _prop_to_dict(p: PropInfo) -> dict:
    d: dict[str, Any] = {"name": p.name, "isDestructured": p.is_destructured}
    if p.type is not None:
        d["type"] = p.type
    if p.is_function is not None:
        d["isFunction"] = p.is_function
    if p.type_string is not None:
        d["typeString"] = p.type_string
    return _with_position(d, p.position)


def _state_to_dict(s: StateEntry) -> dict:
    d: dict[str, Any] = {"kind": s.kind, "hookName": s.hook_name, "variables": list(s.variables)}
    if s.variable_types is not None:
        d["variableTypes"] = dict(s.variable_types)
    if s.is_read_write_pair:
        d["isReadWritePair"] = True
    if s.state_properties:
        d["stateProperties"] = list(s.state_properties)
    if s.reducer_name:
        d["reducerName"] = s.reducer_name
    if s.initial_value:
        d["initialValue"] = s.initial_value
    if s.argument_identifiers:
        d["argumentIdentifiers"] = list(s.argument_identifiers)
    return _with_position(d, s.position)


def _call_to_dict(c: ExternalCall) -> dict:
    d: dict[str, Any] = {"callee": c.callee, "arguments": list(c.arguments)}
    if c.callback_references:
        d["callbackReferences"] = list(c.callback_references)
    if c.is_handle_call:
        d["isHandleCall"] = True
        d["handleName"] = c.handle_name
        d["methodName"] = c.method_name
    return d


def _process_to_dict(p: ProcessInfo) -> dict:
    d: dict[str, Any] = {
        "name": p.name,
        "kind": p.kind,
        "references": list(p.references),
        "externalCalls": [_call_to_dict(c) for c in p.external_calls],
    }
    if p.dependencies:
        d["dependencies"] = list(p.dependencies)
    if p.cleanup is not None:
        d["cleanup"] = _process_to_dict(p.cleanup)
    if p.anchor is not None:
        d["anchor"] = {
            "line": p.anchor.line,
            "column": p.anchor.column,
            "attributeName": p.anchor.attribute_name,
        }
    if p.exposed_methods:
        d["exposedMethods"] = [
            _with_position(
                {
                    "name": m.name,
                    "parameters": list(m.parameters),
                    "references": list(m.references),
                    "externalCalls": [_call_to_dict(c) for c in m.external_calls],
                    "returnsValue": m.returns_value,
                    "isAsync": m.is_async,
                },
                m.position,
            )
            for m in p.exposed_methods
        ]
    return _with_position(d, p.position)


def _render_to_dict(node: RenderNode) -> dict:
    if isinstance(node, ElementStructure):
        d: dict[str, Any] = {
            "type": "element",
            "tagName": node.tag_name,
            "displayDependencies": list(node.display_dependencies),
            "attributeReferences": [
                {
                    "attributeName": a.attribute_name,
                    "referencedVariable": a.referenced_variable,
                    **({"propertyName": a.property_name} if a.property_name else {}),
                }
                for a in node.attribute_references
            ],
            "children": [_render_to_dict(c) for c in node.children],
        }
        return _with_position(d, node.position)

    d = {
        "type": "branch",
        "kind": node.kind,
        "condition": {
            "expression": node.condition.expression,
            "variables": list(node.condition.variables),
        },
    }
    if node.primary is not None:
        d["primary"] = _render_to_dict(node.primary)
    if node.alternate is not None:
        d["alternate"] = _render_to_dict(node.alternate)
    if node.loop_variable:
        d["loopVariable"] = node.loop_variable
    return _with_position(d, node.position)
