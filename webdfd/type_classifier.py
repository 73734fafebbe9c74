"""
Callable-vs-value classification for component identifiers.

Every edge-inference pass asks the same question ("does this identifier
name a function?") and every pass gets its answer here. The priority
chain is strict; a higher rule short-circuits all lower ones:

1. resolved-callable flag from a type-resolution service
2. explicit type string (function-type marker, or "function"/"boolean")
3. known boolean-convention names ("disabled", "checked", ...)
4. naming convention (onClick, handleSubmit, setCount, dispatch, ...)
5. default: data
"""

import re

FUNCTION = "function"
DATA = "data"

# Attribute-style booleans that look like verbs to rule 4 but never are callables.
BOOLEAN_NAMES = frozenset(
    {
        "autofocus",
        "disabled",
        "readonly",
        "required",
        "checked",
        "selected",
        "hidden",
        "multiple",
        "open",
    }
)

_VERB_PREFIX_RE = re.compile(
    r"^(on|handle|set|get|update|delete|create|fetch|load|toggle|dispatch|navigate"
    r"|increment|decrement|reset|clear|submit|remove|add|save|refetch|mutate)[A-Z]"
)

VERB_NAMES = frozenset(
    {
        "dispatch",
        "navigate",
        "login",
        "logout",
        "submit",
        "reset",
        "clear",
        "refetch",
        "mutate",
        "refresh",
        "trigger",
        "emit",
    }
)

_ARROW_RE = re.compile(r"^(<[^>]+>)?\s*\(.*\)\s*=>\s*.+$", re.DOTALL)
_FUNCTION_KEYWORD_RE = re.compile(r"^function\s*\([^)]*\)\s*:\s*.+$", re.DOTALL)
_HANDLER_TYPE_RE = re.compile(r"^(React\.)?\w*(EventHandler|Handler|Callback)(<.*>)?$", re.DOTALL)
_CALLABLE_GENERICS = ("Dispatch<", "React.Dispatch<", "EventDispatcher", "RefCallback<")
_NULLISH = frozenset({"undefined", "null", "void"})


def _split_union(type_string: str) -> list[str]:
    """Split on '|' at bracket depth 0."""
    parts: list[str] = []
    depth = 0
    start = 0
    for i, ch in enumerate(type_string):
        if ch in "(<[{":
            depth += 1
        elif ch in ")>]}":
            # "=>" is not a closing bracket
            if ch == ">" and i > 0 and type_string[i - 1] == "=":
                continue
            depth -= 1
        elif ch == "|" and depth == 0:
            parts.append(type_string[start:i].strip())
            start = i + 1
    parts.append(type_string[start:].strip())
    return [p for p in parts if p]


def _strip_parens(type_string: str) -> str:
    """Drop one pair of wrapping parentheses: '(() => void)' -> '() => void'."""
    s = type_string.strip()
    while s.startswith("(") and s.endswith(")"):
        depth = 0
        for i, ch in enumerate(s):
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
                if depth == 0 and i != len(s) - 1:
                    return s
        s = s[1:-1].strip()
    return s


def is_function_type(type_string: str | None) -> bool:
    """True if a type string denotes something callable."""
    if not type_string:
        return False
    normalized = _strip_parens(type_string)

    members = _split_union(normalized)
    if len(members) > 1:
        # Optional callbacks: ((v: string) => void) | undefined
        concrete = [m for m in members if m not in _NULLISH]
        return bool(concrete) and all(is_function_type(m) for m in concrete)

    if _ARROW_RE.match(normalized) or _FUNCTION_KEYWORD_RE.match(normalized):
        return True
    if normalized == "Function":
        return True
    if _HANDLER_TYPE_RE.match(normalized):
        return True
    return normalized.startswith(_CALLABLE_GENERICS)


def matches_naming_convention(name: str) -> bool:
    """Rule 4 on its own: verb prefix + uppercase letter, or a bare verb."""
    return bool(_VERB_PREFIX_RE.match(name)) or name in VERB_NAMES


def classify(
    name: str,
    resolved_callable: bool | None = None,
    type_string: str | None = None,
) -> str:
    """
    Classify an identifier as FUNCTION or DATA.

    Args:
        name: Identifier as written in the component
        resolved_callable: Verdict from an external type resolver, if any
        type_string: Declared or resolved type, if any

    Returns:
        "function" or "data"
    """
    if resolved_callable is not None:
        return FUNCTION if resolved_callable else DATA

    if type_string:
        lowered = type_string.strip().lower()
        if lowered == "function" or is_function_type(type_string):
            return FUNCTION
        if lowered in ("boolean", "bool"):
            return DATA

    if name.lower() in BOOLEAN_NAMES:
        return DATA

    if matches_naming_convention(name):
        return FUNCTION

    return DATA


def is_callable(name: str, resolved_callable: bool | None = None, type_string: str | None = None) -> bool:
    return classify(name, resolved_callable, type_string) == FUNCTION
