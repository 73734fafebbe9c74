"""
Mermaid flowchart export for DFDInfo graphs.

Layout:
- Input Props / Output Props groups on the edges of the chart
- processes, stores, values and external calls at top level
- the render tree as nested subgraphs (regions labeled "{expr}")
- exposed-handler groups as their own subgraphs

Shapes: process [[ ]], store [( )], prop ( ), element hexagon, other [ ].
Cleanup edges are dotted, emphasized edges are drawn longer.
"""

import re

from .dfd_model import (
    DFDInfo,
    DFDNode,
    DFDSubgraph,
    ElementFacts,
    HandlerFacts,
    PropFacts,
)

INIT_LINE = "%%{init: {'theme': 'base', 'flowchart': {'curve': 'basis', 'padding': 20}}}%%"
EMPTY_MESSAGE = "No data flow detected in this component"

CLASS_DEFS = {
    "inputProp": "fill:#E3F2FD,stroke:#2196F3,stroke-width:2px",
    "outputProp": "fill:#FFF3E0,stroke:#FF9800,stroke-width:2px",
    "process": "fill:#F3E5F5,stroke:#9C27B0,stroke-width:3px",
    "dataStore": "fill:#E8F5E9,stroke:#4CAF50,stroke-width:2px",
    "jsxElement": "fill:#FFF3E0,stroke:#FF9800,stroke-width:2px",
    "exportedHandler": "fill:#E8F5E9,stroke:#4CAF50,stroke-width:2px",
}

_ID_RE = re.compile(r"[^a-zA-Z0-9_]")


def sanitize_id(node_id: str) -> str:
    return _ID_RE.sub("_", node_id)


def sanitize_label(label: str) -> str:
    return (
        label.replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "#quot;")
        .replace("\n", "<br/>")
    )


def _shape(node: DFDNode) -> tuple[str, str]:
    if node.kind == "process":
        return "[[", "]]"
    if node.kind == "store":
        return "[(", ")]"
    if isinstance(node.metadata, PropFacts):
        return "(", ")"
    return "[", "]"


def _node_line(node: DFDNode, indent: str) -> str:
    node_id = sanitize_id(node.id)
    label = sanitize_label(node.label)
    if isinstance(node.metadata, ElementFacts):
        return f'{indent}{node_id}@{{ shape: hex, label: "&lt;{label}&gt;" }}'
    prefix, suffix = _shape(node)
    return f'{indent}{node_id}{prefix}"{label}"{suffix}'


def _render_subgraph(subgraph: DFDSubgraph, lines: list[str], indent: str):
    lines.append(f'{indent}subgraph {sanitize_id(subgraph.id)}["{sanitize_label(subgraph.label)}"]')
    lines.append(f"{indent}  direction TB")
    for element in subgraph.elements:
        if isinstance(element, DFDSubgraph):
            _render_subgraph(element, lines, indent + "  ")
        else:
            lines.append(_node_line(element, indent + "  "))
    lines.append(f"{indent}end")


def _render_group(group_id: str, title: str, nodes: list[DFDNode], lines: list[str]):
    if not nodes:
        return
    lines.append(f'  subgraph {group_id}["{title}"]')
    lines.append("    direction TB")
    for node in nodes:
        lines.append(_node_line(node, "    "))
    lines.append("  end")


def to_mermaid(info: DFDInfo) -> str:
    """Render a DFDInfo as Mermaid flowchart text."""
    if not info.nodes:
        return "\n".join(
            [
                "flowchart LR",
                f'  message["{EMPTY_MESSAGE}"]',
                "  style message fill:#f9f9f9,stroke:#999,stroke-width:2px",
            ]
        )

    # Nodes drawn inside subgraphs are not repeated at top level
    nested: set[str] = set()
    for subgraph in info.all_subgraphs():
        nested.add(subgraph.id)
        nested.update(n.id for n in subgraph.iter_nodes())

    input_props: list[DFDNode] = []
    output_props: list[DFDNode] = []
    others: list[DFDNode] = []
    for node in info.nodes:
        if node.id in nested:
            continue
        if isinstance(node.metadata, PropFacts):
            (output_props if node.kind == "output" else input_props).append(node)
        else:
            others.append(node)

    lines = [INIT_LINE, "flowchart LR"]
    _render_group("InputProps", "Input Props", input_props, lines)
    for node in others:
        lines.append(_node_line(node, "  "))
    if info.root_subgraph is not None:
        _render_subgraph(info.root_subgraph, lines, "  ")
    for subgraph in info.subgraphs:
        _render_subgraph(subgraph, lines, "  ")
    _render_group("OutputProps", "Output Props", output_props, lines)

    for index, edge in enumerate(info.edges):
        source, target = sanitize_id(edge.source), sanitize_id(edge.target)
        if edge.is_cleanup:
            arrow = "-.->"
        elif edge.emphasize:
            arrow = "---->"
        else:
            arrow = "-->"
        edge_id = f"e{index}"
        if edge.label:
            lines.append(f'  {source} {edge_id}@{arrow}|"{sanitize_label(edge.label)}"| {target}')
        else:
            lines.append(f"  {source} {edge_id}@{arrow} {target}")

    lines.append("")
    lines.append("  %% Styling")
    for name, style in CLASS_DEFS.items():
        lines.append(f"  classDef {name} {style}")

    for node in input_props:
        lines.append(f"  class {sanitize_id(node.id)} inputProp")
    for node in output_props:
        lines.append(f"  class {sanitize_id(node.id)} outputProp")
    for node in others:
        if node.kind == "process":
            lines.append(f"  class {sanitize_id(node.id)} process")
        elif node.kind == "store":
            lines.append(f"  class {sanitize_id(node.id)} dataStore")
    if info.root_subgraph is not None:
        for node in info.root_subgraph.iter_nodes():
            lines.append(f"  class {sanitize_id(node.id)} jsxElement")
    for subgraph in info.subgraphs:
        for node in subgraph.iter_nodes():
            if isinstance(node.metadata, HandlerFacts):
                lines.append(f"  class {sanitize_id(node.id)} exportedHandler")

    return "\n".join(lines)
