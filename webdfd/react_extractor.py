"""
React function-component front end (tree-sitter TSX).

Turns a .tsx/.jsx source file into a ComponentIR for the DFD builder:
- props from the destructured first parameter, types from the props
  interface / type alias
- hooks: useState, useReducer, useRef, useContext, useMemo, custom hooks,
  useEffect / useLayoutEffect / useInsertionEffect (with cleanup),
  useCallback, useImperativeHandle (exposed methods)
- local functions as processes (event handlers, custom functions)
- the returned JSX as a render structure: elements, && / || / ternary
  conditionals, .map iterations, inline arrow handlers

Early returns inside if statements are not modeled; only the component's
final top-level return contributes to the render structure.
"""

import logging
import os
import re
from pathlib import Path

from .component_ir import (
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
    RenderNode,
    SourcePosition,
    StateEntry,
)

logger = logging.getLogger(__name__)

# File size limit - tree-sitter memory usage is ~10-200x file size
DEFAULT_MAX_FILE_SIZE = 2_000_000  # 2MB
MAX_FILE_SIZE = int(os.environ.get("WEBDFD_MAX_FILE_SIZE", DEFAULT_MAX_FILE_SIZE))

SUPPORTED_EXTENSIONS = {".tsx", ".jsx", ".ts", ".js"}

# Check tree-sitter availability
TREE_SITTER_AVAILABLE = False
try:
    from tree_sitter import Language, Parser
    import tree_sitter_typescript

    TREE_SITTER_AVAILABLE = True
except ImportError:
    pass


class FileTooLargeError(Exception):
    """Raised when a file exceeds MAX_FILE_SIZE."""

    def __init__(self, file_path: Path, size: int, limit: int):
        self.file_path = file_path
        self.size = size
        self.limit = limit
        super().__init__(
            f"File {file_path} is {size:,} bytes, exceeds limit of {limit:,} bytes. "
            f"Set WEBDFD_MAX_FILE_SIZE environment variable to increase limit."
        )


class ParseError(Exception):
    """Raised when tree-sitter parsing fails."""

    def __init__(self, file_path: Path | str, error: Exception):
        self.file_path = file_path
        self.original_error = error
        super().__init__(f"Failed to parse {file_path} as TSX: {error}")


class ComponentNotFoundError(Exception):
    """Raised when no function component (or not the requested one) is found."""

    def __init__(self, file_path: Path | str, component_name: str | None = None):
        self.file_path = file_path
        self.component_name = component_name
        target = f"component '{component_name}'" if component_name else "a function component"
        super().__init__(f"Could not find {target} in {file_path}")


# =============================================================================
# Hook vocabulary
# =============================================================================

EFFECT_HOOKS = {"useEffect", "useLayoutEffect", "useInsertionEffect"}
ROUTING_HOOKS = {"useNavigate", "useRouter", "useParams", "useSearchParams", "useLocation", "usePathname"}
FORM_HOOKS = {"useForm", "useFormContext", "useController", "useFieldArray"}
FETCH_HOOKS = {"useQuery", "useMutation", "useInfiniteQuery", "useSWR", "useSWRMutation", "useFetch"}
WRAPPER_CALLS = {"forwardRef", "memo"}

# Call roots that never count as external data flow
IGNORED_CALL_ROOTS = {
    "Math",
    "JSON",
    "Object",
    "Array",
    "Number",
    "String",
    "Boolean",
    "Date",
    "Promise",
    "parseInt",
    "parseFloat",
    "isNaN",
    "require",
}

FUNCTION_NODE_TYPES = {"arrow_function", "function_expression", "function"}
ELEMENT_NODE_TYPES = {"jsx_element", "jsx_self_closing_element"}
CHAIN_METHODS = {"then", "catch", "finally"}
ITERATION_METHODS = {"map", "flatMap"}

_HANDLER_NAME_RE = re.compile(r"^(handle|on)[A-Z]")
_WS_RE = re.compile(r"\s+")


def _get_parser():
    """Create a TSX parser."""
    if not TREE_SITTER_AVAILABLE:
        raise ImportError("tree-sitter-typescript not available")
    return Parser(Language(tree_sitter_typescript.language_tsx()))


def _position(node) -> SourcePosition:
    return SourcePosition(node.start_point[0] + 1, node.start_point[1])


def _span(node) -> tuple[int, int]:
    return (node.start_byte, node.end_byte)


class ReactComponentExtractor:
    """
    Extract a ComponentIR from one parsed TSX module.

    Two passes over the component body: the first collects every name the
    component binds (props, state, hook values, refs, local functions),
    the second builds state entries, processes and the render structure,
    resolving identifiers against that scope.
    """

    def __init__(self, source: bytes):
        self.source = source
        self.scope: set[str] = set()
        self.aliases: dict[str, str] = {}  # local name -> prop name
        self.ref_names: set[str] = set()
        self.props_object: str | None = None
        self.prop_names: set[str] = set()
        self.reducer_properties: dict[str, list[str]] = {}  # state var -> properties
        self.inline_handlers: list[ProcessInfo] = []
        self._type_members: dict[str, dict[str, str]] = {}
        self._top_level_objects: dict[str, object] = {}

    def get_node_text(self, node) -> str:
        return self.source[node.start_byte : node.end_byte].decode("utf-8")

    # =========================================================================
    # Component discovery
    # =========================================================================

    def find_components(self, root) -> list[tuple[str, object, object]]:
        """(name, function node, declarator or None) for each top-level component."""
        found = []
        for child in root.named_children:
            candidates = [child]
            if child.type == "export_statement":
                candidates = child.named_children
            for node in candidates:
                found.extend(self._components_in(node))
        return found

    def _components_in(self, node) -> list:
        if node.type == "function_declaration":
            name = node.child_by_field_name("name")
            if name is not None and self.get_node_text(name)[:1].isupper():
                return [(self.get_node_text(name), node, None)]
            return []
        if node.type in ("lexical_declaration", "variable_declaration"):
            found = []
            for decl in node.named_children:
                if decl.type != "variable_declarator":
                    continue
                name = decl.child_by_field_name("name")
                value = decl.child_by_field_name("value")
                if name is None or value is None or name.type != "identifier":
                    continue
                if not self.get_node_text(name)[:1].isupper():
                    continue
                fn = self._unwrap_component(value)
                if fn is not None:
                    found.append((self.get_node_text(name), fn, decl))
            return found
        return []

    def _unwrap_component(self, value):
        """arrow / function expression, possibly inside forwardRef(...) or memo(...)."""
        if value.type in FUNCTION_NODE_TYPES:
            return value
        if value.type == "call_expression":
            callee = value.child_by_field_name("function")
            if callee is not None and self.get_node_text(callee).split(".")[-1] in WRAPPER_CALLS:
                args = value.child_by_field_name("arguments")
                for arg in args.named_children if args is not None else []:
                    inner = self._unwrap_component(arg)
                    if inner is not None:
                        return inner
        return None

    # =========================================================================
    # Module-level declarations
    # =========================================================================

    def collect_module_declarations(self, root):
        """Props interfaces / type aliases and top-level object literals."""
        for child in root.named_children:
            nodes = child.named_children if child.type == "export_statement" else [child]
            for node in nodes:
                if node.type in ("interface_declaration", "type_alias_declaration"):
                    name = node.child_by_field_name("name")
                    body = node.child_by_field_name("body") or node.child_by_field_name("value")
                    if name is not None and body is not None:
                        self._type_members[self.get_node_text(name)] = self._type_members_of(body)
                elif node.type in ("lexical_declaration", "variable_declaration"):
                    for decl in node.named_children:
                        if decl.type != "variable_declarator":
                            continue
                        name = decl.child_by_field_name("name")
                        value = decl.child_by_field_name("value")
                        if name is not None and value is not None and value.type == "object":
                            self._top_level_objects[self.get_node_text(name)] = value

    def _type_members_of(self, body) -> dict[str, str]:
        members: dict[str, str] = {}
        for sig in body.named_children:
            if sig.type != "property_signature":
                continue
            name = sig.child_by_field_name("name")
            type_ann = sig.child_by_field_name("type")
            if name is None:
                continue
            type_text = None
            if type_ann is not None and type_ann.named_children:
                type_text = self.get_node_text(type_ann.named_children[0])
            members[self.get_node_text(name)] = type_text
        return members

    def _object_keys(self, obj) -> list[str]:
        keys = []
        for member in obj.named_children:
            if member.type == "pair":
                key = member.child_by_field_name("key")
                if key is not None:
                    keys.append(self.get_node_text(key).strip("'\""))
            elif member.type == "shorthand_property_identifier":
                keys.append(self.get_node_text(member))
        return keys

    # =========================================================================
    # Props
    # =========================================================================

    def extract_props(self, fn, declarator) -> list[PropInfo]:
        params = self._parameters(fn)
        if not params:
            return []

        first = params[0]
        pattern = first.child_by_field_name("pattern") if first.type != "identifier" else first
        type_ann = first.child_by_field_name("type") if first.type != "identifier" else None
        members = self._props_type_members(type_ann, declarator)

        if len(params) > 1:
            second = params[1]
            ref_pattern = second.child_by_field_name("pattern") if second.type != "identifier" else second
            if ref_pattern is not None and ref_pattern.type == "identifier":
                # forwardRef((props, ref) => ...)
                self.ref_names.add(self.get_node_text(ref_pattern))

        props: list[PropInfo] = []
        if pattern is None:
            return props

        if pattern.type == "identifier":
            self.props_object = self.get_node_text(pattern)
            for name, type_text in members.items():
                props.append(PropInfo(name=name, type=type_text, is_destructured=False, position=_position(first)))
            return props

        if pattern.type != "object_pattern":
            return props

        for member in pattern.named_children:
            if member.type == "shorthand_property_identifier_pattern":
                name, local = self.get_node_text(member), None
            elif member.type == "object_assignment_pattern":
                left = member.child_by_field_name("left")
                name, local = self.get_node_text(left), None
            elif member.type == "pair_pattern":
                key = member.child_by_field_name("key")
                value = member.child_by_field_name("value")
                name = self.get_node_text(key)
                if value is not None and value.type == "assignment_pattern":
                    value = value.child_by_field_name("left")
                local = self.get_node_text(value) if value is not None and value.type == "identifier" else None
            else:
                continue
            if local and local != name:
                self.aliases[local] = name
            props.append(PropInfo(name=name, type=members.get(name), position=_position(member)))
        return props

    def _parameters(self, fn) -> list:
        single = fn.child_by_field_name("parameter")
        if single is not None:
            return [single]
        params = fn.child_by_field_name("parameters")
        if params is None:
            return []
        return [p for p in params.named_children if p.type in ("required_parameter", "optional_parameter")]

    def _props_type_members(self, type_ann, declarator) -> dict[str, str]:
        type_node = type_ann.named_children[0] if type_ann is not None and type_ann.named_children else None
        if type_node is None and declarator is not None:
            # const C: React.FC<Props> = (...) => ...
            decl_type = declarator.child_by_field_name("type")
            if decl_type is not None:
                args = [n for n in self._walk(decl_type) if n.type == "type_arguments"]
                if args and args[0].named_children:
                    type_node = args[0].named_children[0]
        if type_node is None:
            return {}
        if type_node.type == "object_type":
            return self._type_members_of(type_node)
        return dict(self._type_members.get(self.get_node_text(type_node), {}))

    # =========================================================================
    # Scope and references
    # =========================================================================

    def _walk(self, node):
        yield node
        for child in node.children:
            yield from self._walk(child)

    def _pattern_names(self, pattern) -> list[str]:
        """Identifiers bound by an identifier / array / object pattern."""
        if pattern is None:
            return []
        if pattern.type == "identifier":
            return [self.get_node_text(pattern)]
        names = []
        for child in pattern.named_children:
            if child.type in ("identifier", "shorthand_property_identifier_pattern"):
                names.append(self.get_node_text(child))
            elif child.type == "pair_pattern":
                names.extend(self._pattern_names(child.child_by_field_name("value")))
            elif child.type in ("assignment_pattern", "object_assignment_pattern"):
                names.extend(self._pattern_names(child.child_by_field_name("left")))
            elif child.type in ("array_pattern", "object_pattern"):
                names.extend(self._pattern_names(child))
        return names

    def _add_reference(self, name: str, result: list[str]):
        name = self.aliases.get(name, name)
        if name in self.scope and name not in result:
            result.append(name)

    def references(self, node, skip: set | None = None) -> list[str]:
        """Component-scope identifiers read anywhere under node, in source order."""
        result: list[str] = []
        if node is None:
            return result

        def walk(n):
            if skip and _span(n) in skip:
                return
            if n.type in ("identifier", "shorthand_property_identifier"):
                self._add_reference(self.get_node_text(n), result)
                return
            if n.type == "member_expression":
                obj = n.child_by_field_name("object")
                prop = n.child_by_field_name("property")
                if obj is not None and obj.type == "identifier":
                    obj_name = self.get_node_text(obj)
                    prop_name = self.get_node_text(prop) if prop is not None else None
                    if obj_name == self.props_object and prop_name:
                        self._add_reference(prop_name, result)
                    elif prop_name and prop_name in self.reducer_properties.get(obj_name, ()):
                        self._add_reference(prop_name, result)
                    else:
                        self._add_reference(obj_name, result)
                    return
                if obj is not None:
                    walk(obj)
                return
            if n.type in ("jsx_opening_element", "jsx_closing_element", "jsx_self_closing_element"):
                tag = n.child_by_field_name("name")
                for child in n.children:
                    if tag is None or _span(child) != _span(tag):
                        walk(child)
                return
            for child in n.children:
                walk(child)

        walk(node)
        return result

    def _local_names(self, node) -> set[str]:
        """Parameters and variables declared anywhere under node."""
        names: set[str] = set()
        for n in self._walk(node):
            if n.type == "variable_declarator":
                names.update(self._pattern_names(n.child_by_field_name("name")))
            elif n.type in FUNCTION_NODE_TYPES or n.type in ("function_declaration", "method_definition"):
                for param in self._parameters(n):
                    pattern = param if param.type == "identifier" else param.child_by_field_name("pattern")
                    names.update(self._pattern_names(pattern))
        return names

    # =========================================================================
    # External calls
    # =========================================================================

    def external_calls(self, node, skip: set | None = None, enclosing=None) -> list[ExternalCall]:
        """Calls leaving the component, plus childRef.current.method() handle calls.

        enclosing is the function owning node; its parameters count as locals.
        """
        calls: list[ExternalCall] = []
        if node is None:
            return calls
        local = self._local_names(enclosing if enclosing is not None else node)

        def visit(n, chained: list[str]):
            if skip and _span(n) in skip:
                return
            if n.type != "call_expression":
                for child in n.named_children:
                    visit(child, [])
                return

            fn = n.child_by_field_name("function")
            args_node = n.child_by_field_name("arguments")
            args = args_node.named_children if args_node is not None else []

            if fn is not None and fn.type == "member_expression":
                obj = fn.child_by_field_name("object")
                prop = fn.child_by_field_name("property")
                if (
                    obj is not None
                    and obj.type == "call_expression"
                    and prop is not None
                    and self.get_node_text(prop) in CHAIN_METHODS
                ):
                    # fetch(url).then(res => ...).then(data => setX(data))
                    callbacks = list(chained)
                    for arg in args:
                        for name in self.references(arg):
                            if name not in callbacks:
                                callbacks.append(name)
                    visit(obj, callbacks)
                    for arg in args:
                        visit(arg, [])
                    return

            if fn is not None:
                call = self._record_call(fn, args, chained, local)
                if call is not None:
                    calls.append(call)
                if fn.type == "member_expression":
                    visit(fn.child_by_field_name("object"), [])
            for arg in args:
                visit(arg, [])

        visit(node, [])
        return calls

    def _record_call(self, fn, args, chained: list[str], local: set[str]) -> ExternalCall | None:
        arguments: list[str] = []
        callbacks: list[str] = list(chained)
        for arg in args:
            target = callbacks if arg.type in FUNCTION_NODE_TYPES else arguments
            for name in self.references(arg):
                if name not in target:
                    target.append(name)

        if fn.type == "member_expression":
            obj = fn.child_by_field_name("object")
            prop = fn.child_by_field_name("property")
            if obj is not None and obj.type == "member_expression":
                ref_obj = obj.child_by_field_name("object")
                ref_prop = obj.child_by_field_name("property")
                if (
                    ref_obj is not None
                    and ref_obj.type == "identifier"
                    and ref_prop is not None
                    and self.get_node_text(ref_prop) == "current"
                    and self.get_node_text(ref_obj) in self.ref_names
                ):
                    handle = self.get_node_text(ref_obj)
                    method = self.get_node_text(prop)
                    return ExternalCall(
                        callee=f"{handle}.current.{method}",
                        arguments=arguments,
                        is_handle_call=True,
                        handle_name=handle,
                        method_name=method,
                    )

        root = fn
        while root.type == "member_expression":
            root = root.child_by_field_name("object")
            if root is None:
                return None
        if root.type != "identifier":
            return None

        root_name = self.get_node_text(root)
        if (
            root_name in self.scope
            or root_name in self.aliases
            or root_name == self.props_object
            or root_name in self.ref_names
            or root_name in local
            or root_name in IGNORED_CALL_ROOTS
        ):
            return None
        if fn.type == "identifier" and root_name.startswith("use"):
            return None

        callee = _WS_RE.sub("", self.get_node_text(fn))
        return ExternalCall(callee=callee, arguments=arguments, callback_references=callbacks)

    # =========================================================================
    # Body analysis
    # =========================================================================

    def _hook_name(self, call) -> str | None:
        fn = call.child_by_field_name("function")
        if fn is None:
            return None
        name = self.get_node_text(fn).split(".")[-1]
        return name if name.startswith("use") else None

    def _call_args(self, call) -> list:
        args = call.child_by_field_name("arguments")
        return list(args.named_children) if args is not None else []

    def _identifier_list(self, array) -> list[str]:
        if array is None or array.type != "array":
            return []
        result: list[str] = []
        for item in array.named_children:
            for name in self.references(item):
                if name not in result:
                    result.append(name)
        return result

    def collect_scope(self, body, props: list[PropInfo]):
        """First pass: every name the component binds."""
        self.prop_names = {p.name for p in props}
        self.scope.update(self.prop_names)
        for stmt in body.named_children:
            if stmt.type in ("lexical_declaration", "variable_declaration"):
                for decl in stmt.named_children:
                    if decl.type != "variable_declarator":
                        continue
                    names = self._pattern_names(decl.child_by_field_name("name"))
                    value = decl.child_by_field_name("value")
                    hook = self._hook_name(value) if value is not None and value.type == "call_expression" else None
                    if hook == "useRef":
                        self.ref_names.update(names)
                    elif hook == "useReducer" and names:
                        properties = self._reducer_properties(self._call_args(value))
                        if properties:
                            self.reducer_properties[names[0]] = properties
                            self.scope.update(properties)
                    self.scope.update(names)
            elif stmt.type == "function_declaration":
                name = stmt.child_by_field_name("name")
                if name is not None:
                    self.scope.add(self.get_node_text(name))
        self.scope.update(self.ref_names)

    def analyze_body(self, body) -> tuple[list[StateEntry], list[ProcessInfo], object]:
        """Second pass: state entries, processes and the node returned as output."""
        entries: list[StateEntry] = []
        processes: list[ProcessInfo] = []
        returned = None

        for stmt in body.named_children:
            if stmt.type in ("lexical_declaration", "variable_declaration"):
                for decl in stmt.named_children:
                    if decl.type == "variable_declarator":
                        self._analyze_declarator(decl, entries, processes)
            elif stmt.type == "function_declaration":
                name = stmt.child_by_field_name("name")
                if name is not None:
                    processes.append(self._function_process(self.get_node_text(name), stmt))
            elif stmt.type == "expression_statement":
                expr = stmt.named_children[0] if stmt.named_children else None
                if expr is not None and expr.type == "call_expression":
                    process = self._hook_statement(expr)
                    if process is not None:
                        processes.append(process)
            elif stmt.type == "return_statement":
                returned = stmt.named_children[0] if stmt.named_children else None

        return entries, processes, returned

    def _analyze_declarator(self, decl, entries: list[StateEntry], processes: list[ProcessInfo]):
        name_node = decl.child_by_field_name("name")
        value = decl.child_by_field_name("value")
        if name_node is None or value is None:
            return
        names = self._pattern_names(name_node)
        position = _position(decl)

        if value.type in FUNCTION_NODE_TYPES and name_node.type == "identifier":
            processes.append(self._function_process(names[0], value))
            return

        if value.type != "call_expression" or self._hook_name(value) is None:
            refs = self.references(value)
            if refs and names:
                entries.append(
                    StateEntry(kind="derived", variables=names, argument_identifiers=refs, position=position)
                )
            return

        hook = self._hook_name(value)
        args = self._call_args(value)

        if hook == "useRef":
            entries.append(StateEntry(kind="ref", variables=names, hook_name=hook, position=position))
        elif hook == "useState":
            initial = self.references(args[0]) if args else []
            entries.append(
                StateEntry(
                    kind="state",
                    variables=names,
                    hook_name=hook,
                    is_read_write_pair=len(names) == 2,
                    initial_value=initial[0] if len(initial) == 1 else None,
                    position=position,
                )
            )
        elif hook == "useReducer":
            entries.append(self._reducer_entry(names, args, position))
        elif hook == "useCallback":
            fn = args[0] if args and args[0].type in FUNCTION_NODE_TYPES else None
            if fn is not None and names:
                process = self._function_process(names[0], fn, kind="callback")
                process.dependencies = self._identifier_list(args[1] if len(args) > 1 else None)
                processes.append(process)
        elif hook == "useMemo":
            deps = self._identifier_list(args[1] if len(args) > 1 else None)
            refs = self.references(args[0]) if args else []
            entries.append(
                StateEntry(
                    kind="derived",
                    variables=names,
                    hook_name=hook,
                    argument_identifiers=list(dict.fromkeys(deps + refs)),
                    position=position,
                )
            )
        else:
            kind = "composable"
            if hook == "useContext":
                kind = "context"
            elif hook in ROUTING_HOOKS:
                kind = "routing"
            elif hook in FORM_HOOKS:
                kind = "form"
            elif hook in FETCH_HOOKS:
                kind = "fetch"
            arg_refs: list[str] = []
            for arg in args:
                for ref in self.references(arg):
                    if ref not in arg_refs:
                        arg_refs.append(ref)
            entries.append(
                StateEntry(
                    kind=kind,
                    variables=names,
                    hook_name=hook,
                    argument_identifiers=arg_refs,
                    position=position,
                )
            )

    def _reducer_entry(self, names: list[str], args: list, position: SourcePosition) -> StateEntry:
        reducer_name = None
        if args and args[0].type == "identifier":
            reducer_name = self.get_node_text(args[0])

        properties = self.reducer_properties.get(names[0], []) if names else []
        return StateEntry(
            kind="reducer",
            variables=names,
            hook_name="useReducer",
            is_read_write_pair=len(names) == 2,
            state_properties=properties,
            reducer_name=reducer_name,
            position=position,
        )

    def _reducer_properties(self, args: list) -> list[str]:
        """Keys of useReducer's initial state (inline object or a module-level const)."""
        if len(args) < 2:
            return []
        initial = args[1]
        if initial.type == "identifier":
            initial = self._top_level_objects.get(self.get_node_text(initial))
        if initial is None or initial.type != "object":
            return []
        return self._object_keys(initial)

    def _function_process(self, name: str, fn, kind: str | None = None) -> ProcessInfo:
        if kind is None:
            kind = "event-handler" if _HANDLER_NAME_RE.match(name) else "custom-function"
        body = fn.child_by_field_name("body")
        return ProcessInfo(
            name=name,
            kind=kind,
            references=[r for r in self.references(body) if r != name],
            external_calls=self.external_calls(body, enclosing=fn),
            position=_position(fn),
        )

    def _hook_statement(self, call) -> ProcessInfo | None:
        hook = self._hook_name(call)
        args = self._call_args(call)
        if hook in EFFECT_HOOKS:
            return self._effect_process(hook, call, args)
        if hook == "useImperativeHandle":
            return self._imperative_handle_process(call, args)
        return None

    def _effect_process(self, hook: str, call, args: list) -> ProcessInfo | None:
        fn = args[0] if args and args[0].type in FUNCTION_NODE_TYPES else None
        if fn is None:
            return None
        body = fn.child_by_field_name("body")
        deps = self._identifier_list(args[1] if len(args) > 1 else None)

        cleanup = None
        skip: set = set()
        if body is not None and body.type == "statement_block":
            for stmt in body.named_children:
                if stmt.type != "return_statement" or not stmt.named_children:
                    continue
                returned = stmt.named_children[0]
                if returned.type in FUNCTION_NODE_TYPES:
                    cleanup_body = returned.child_by_field_name("body")
                    cleanup = ProcessInfo(
                        name=f"{hook} cleanup",
                        kind="effect",
                        references=self.references(cleanup_body),
                        external_calls=self.external_calls(cleanup_body, enclosing=returned),
                        position=_position(returned),
                    )
                    skip.add(_span(returned))

        return ProcessInfo(
            name=hook,
            kind="effect",
            references=self.references(body, skip),
            dependencies=deps,
            external_calls=self.external_calls(body, skip, enclosing=fn),
            cleanup=cleanup,
            position=_position(call),
        )

    def _imperative_handle_process(self, call, args: list) -> ProcessInfo | None:
        factory = args[1] if len(args) > 1 and args[1].type in FUNCTION_NODE_TYPES else None
        if factory is None:
            return None

        obj = factory.child_by_field_name("body")
        while obj is not None and obj.type == "parenthesized_expression":
            obj = obj.named_children[0] if obj.named_children else None
        if obj is not None and obj.type == "statement_block":
            returns = [s for s in obj.named_children if s.type == "return_statement" and s.named_children]
            obj = returns[-1].named_children[0] if returns else None
        if obj is None or obj.type != "object":
            return None

        methods: list[ExposedMethod] = []
        for member in obj.named_children:
            if member.type == "pair":
                key = member.child_by_field_name("key")
                value = member.child_by_field_name("value")
                if key is not None and value is not None and value.type in FUNCTION_NODE_TYPES:
                    methods.append(self._exposed_method(self.get_node_text(key), value))
            elif member.type == "method_definition":
                name = member.child_by_field_name("name")
                if name is not None:
                    methods.append(self._exposed_method(self.get_node_text(name), member))
            elif member.type == "shorthand_property_identifier":
                name = self.get_node_text(member)
                methods.append(ExposedMethod(name=name, references=[name] if name in self.scope else [], position=_position(member)))

        return ProcessInfo(
            name="useImperativeHandle",
            kind="callback",
            dependencies=self._identifier_list(args[2] if len(args) > 2 else None),
            exposed_methods=methods,
            position=_position(call),
        )

    def _exposed_method(self, name: str, fn) -> ExposedMethod:
        body = fn.child_by_field_name("body")
        params = []
        for param in self._parameters(fn):
            pattern = param if param.type == "identifier" else param.child_by_field_name("pattern")
            params.extend(self._pattern_names(pattern))

        if body is not None and body.type != "statement_block":
            returns_value = True
        else:
            returns_value = any(
                n.type == "return_statement" and n.named_children for n in self._walk(body)
            ) if body is not None else False

        return ExposedMethod(
            name=name,
            parameters=params,
            references=self.references(body),
            external_calls=self.external_calls(body, enclosing=fn),
            returns_value=returns_value,
            is_async=any(c.type == "async" for c in fn.children),
            position=_position(fn),
        )

    # =========================================================================
    # Render structure
    # =========================================================================

    def render(self, node) -> RenderNode | None:
        """Render structure for an expression, or None if it renders no markup."""
        if node is None:
            return None
        node_type = node.type

        if node_type == "parenthesized_expression":
            return self.render(node.named_children[0]) if node.named_children else None

        if node_type in ELEMENT_NODE_TYPES:
            return self._element(node)

        if node_type == "binary_expression":
            operator = node.child_by_field_name("operator")
            op = self.get_node_text(operator) if operator is not None else ""
            if op not in ("&&", "||", "??"):
                return None
            primary = self.render(node.child_by_field_name("right"))
            if primary is None:
                return None
            left = node.child_by_field_name("left")
            expression = _WS_RE.sub(" ", self.get_node_text(left))
            if op != "&&":
                expression = f"!{expression}" if left.type == "identifier" else f"!({expression})"
            return BranchStructure(
                kind="conditional",
                condition=ConditionExpression(expression, self.references(left)),
                primary=primary,
                position=_position(node),
            )

        if node_type == "ternary_expression":
            condition = node.child_by_field_name("condition")
            primary = self.render(node.child_by_field_name("consequence"))
            alternate = self.render(node.child_by_field_name("alternative"))
            if primary is None and alternate is None:
                return None
            return BranchStructure(
                kind="conditional",
                condition=ConditionExpression(
                    _WS_RE.sub(" ", self.get_node_text(condition)), self.references(condition)
                ),
                primary=primary,
                alternate=alternate,
                position=_position(node),
            )

        if node_type == "call_expression":
            return self._iteration(node)

        return None

    def _iteration(self, call) -> BranchStructure | None:
        fn = call.child_by_field_name("function")
        if fn is None or fn.type != "member_expression":
            return None
        prop = fn.child_by_field_name("property")
        if prop is None or self.get_node_text(prop) not in ITERATION_METHODS:
            return None
        args = self._call_args(call)
        callback = args[0] if args and args[0].type in FUNCTION_NODE_TYPES else None
        if callback is None:
            return None

        body = callback.child_by_field_name("body")
        if body is not None and body.type == "statement_block":
            returns = [s for s in body.named_children if s.type == "return_statement" and s.named_children]
            body = returns[-1].named_children[0] if returns else None
        content = self.render(body)
        if content is None:
            return None

        params = self._parameters(callback)
        loop_variable = None
        if params:
            pattern = params[0] if params[0].type == "identifier" else params[0].child_by_field_name("pattern")
            names = self._pattern_names(pattern)
            loop_variable = names[0] if names else None

        obj = fn.child_by_field_name("object")
        return BranchStructure(
            kind="iteration",
            condition=ConditionExpression(_WS_RE.sub(" ", self.get_node_text(obj)), self.references(obj)),
            primary=content,
            loop_variable=loop_variable,
            position=_position(call),
        )

    def _element(self, node) -> ElementStructure:
        if node.type == "jsx_element":
            opening = node.child_by_field_name("open_tag") or node.named_children[0]
        else:
            opening = node
        tag = opening.child_by_field_name("name")
        tag_name = self.get_node_text(tag) if tag is not None else "Fragment"
        position = _position(node)

        element = ElementStructure(tag_name=tag_name, position=position)
        for attr in opening.named_children:
            if attr.type == "jsx_attribute":
                self._attribute(attr, element)

        if node.type == "jsx_element":
            for child in node.named_children:
                if child.type in ("jsx_opening_element", "jsx_closing_element"):
                    continue
                if child.type in ELEMENT_NODE_TYPES:
                    element.children.append(self._element(child))
                elif child.type == "jsx_expression":
                    self._expression_child(child, element)
        return element

    def _expression_child(self, container, element: ElementStructure):
        inner = [c for c in container.named_children if c.type not in ("comment", "spread_element")]
        if not inner:
            return
        structure = self.render(inner[0])
        if structure is not None:
            element.children.append(structure)
            return
        for name in self.references(inner[0]):
            if name not in element.display_dependencies:
                element.display_dependencies.append(name)

    def _attribute(self, attr, element: ElementStructure):
        parts = attr.named_children
        if len(parts) < 2:
            return  # <input disabled />
        name = self.get_node_text(parts[0])
        value = parts[1]
        if value.type != "jsx_expression" or not value.named_children:
            return
        expr = value.named_children[0]

        if expr.type in FUNCTION_NODE_TYPES:
            self._inline_handler(name, expr, element)
            return

        if expr.type == "member_expression":
            obj = expr.child_by_field_name("object")
            prop = expr.child_by_field_name("property")
            if obj is not None and obj.type == "identifier" and prop is not None:
                obj_name = self.get_node_text(obj)
                prop_name = self.get_node_text(prop)
                if obj_name != self.props_object and obj_name not in self.reducer_properties:
                    if obj_name in self.scope:
                        element.attribute_references.append(AttributeReference(name, obj_name, prop_name))
                    return

        for ref in self.references(expr):
            element.attribute_references.append(AttributeReference(name, ref))

    def _inline_handler(self, attribute: str, fn, element: ElementStructure):
        body = fn.child_by_field_name("body")
        position = element.position
        self.inline_handlers.append(
            ProcessInfo(
                name=f"{attribute}@{position.line}:{position.column}",
                kind="inline-handler",
                references=self.references(body),
                external_calls=self.external_calls(body, enclosing=fn),
                anchor=RenderAnchor(position.line, position.column, attribute),
                position=_position(fn),
            )
        )


# =============================================================================
# Public API
# =============================================================================


def extract_component(
    source: str,
    component_name: str | None = None,
    file_path: Path | str = "<string>",
) -> ComponentIR:
    """
    Extract a ComponentIR from TSX/JSX source.

    Args:
        source: Module source text
        component_name: Component to extract (default: first one found)
        file_path: Used in error messages only

    Returns:
        ComponentIR for the component

    Raises:
        ParseError: tree-sitter failed to parse the module
        ComponentNotFoundError: no (matching) function component
    """
    parser = _get_parser()
    source_bytes = source.encode("utf-8")
    try:
        tree = parser.parse(source_bytes)
    except Exception as e:
        logger.error(f"Tree-sitter parse failed for {file_path}: {e}")
        raise ParseError(file_path, e)

    if tree.root_node.has_error:
        logger.warning(f"Syntax errors in {file_path}; extracting what parsed")

    extractor = ReactComponentExtractor(source_bytes)
    extractor.collect_module_declarations(tree.root_node)

    components = extractor.find_components(tree.root_node)
    if component_name is not None:
        components = [c for c in components if c[0] == component_name]
    if not components:
        raise ComponentNotFoundError(file_path, component_name)

    name, fn, declarator = components[0]
    logger.debug(f"Extracting component {name} from {file_path}")

    props = extractor.extract_props(fn, declarator)
    body = fn.child_by_field_name("body")

    if body is not None and body.type == "statement_block":
        extractor.collect_scope(body, props)
        entries, processes, returned = extractor.analyze_body(body)
    else:
        # const C = () => <div/>
        extractor.scope.update(p.name for p in props)
        entries, processes, returned = [], [], body

    render_structure = extractor.render(returned)
    return ComponentIR(
        name=name,
        props=props,
        state_entries=entries,
        processes=processes + extractor.inline_handlers,
        render_structure=render_structure,
        framework="react",
    )


def extract_file(file_path: str | Path, component_name: str | None = None) -> ComponentIR:
    """Read a .tsx/.jsx/.ts/.js file and extract its component."""
    file_path = Path(file_path)
    if file_path.suffix.lower() not in SUPPORTED_EXTENSIONS:
        raise ValueError(f"Unsupported file type: {file_path.suffix}")

    # File size check - prevent memory exhaustion on large files
    try:
        file_size = file_path.stat().st_size
        if file_size > MAX_FILE_SIZE:
            raise FileTooLargeError(file_path, file_size, MAX_FILE_SIZE)
    except OSError as e:
        logger.warning(f"Could not stat file {file_path}: {e}")

    source = file_path.read_text(encoding="utf-8")
    return extract_component(source, component_name, file_path)
