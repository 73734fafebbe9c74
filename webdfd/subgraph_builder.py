"""
Subgraph construction for the DFD builder.

Turns the IR render structure into a tree of regions and element nodes,
and turns exposed-handle descriptions into flat handler groups.

Render tree rules:
- An element becomes an output node only if it displays something,
  references something in an attribute, or anchors an inline handler.
  Wrapper elements are dropped and their children hoisted into the
  enclosing region.
- A branch becomes a conditional region labeled "{expr}" ("{loop}" for
  iterations). An alternate branch becomes a sibling region with the
  negated condition.
- A region whose content is all wrappers keeps its top element anyway,
  so the condition still has something to point at. Regions that stay
  empty are dropped.
- Directly nested iterations with nothing in between merge into one region.
- Everything is emitted in depth-first document order; position lookups
  by later passes depend on it.
"""

import logging
import re

from .component_ir import (
    BranchStructure,
    ConditionExpression,
    ElementStructure,
    ProcessInfo,
    RenderNode,
)
from .dfd_model import (
    DFDNode,
    DFDSubgraph,
    ElementFacts,
    HandlerFacts,
    IdAllocator,
)

logger = logging.getLogger(__name__)

RENDER_ROOT_LABEL = "Render Output"
EXPOSED_HANDLERS_LABEL = "exposed handlers"
LOOP_LABEL = "{loop}"


_OPERAND_RE = re.compile(r"^[\w$.?\[\]]+$")


def _is_wrapped(expression: str) -> bool:
    """'(a && b)' is wrapped, '(a) && (b)' is not."""
    if not (expression.startswith("(") and expression.endswith(")")):
        return False
    depth = 0
    for i, ch in enumerate(expression):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0 and i != len(expression) - 1:
                return False
    return True


def negate_expression(expression: str) -> str:
    """Label form of a negated condition: 'a' -> '!a', '!a' -> 'a', 'a > 0' -> '!(a > 0)'."""
    expression = expression.strip()
    if expression.startswith("!") and not expression.startswith("!="):
        inner = expression[1:].strip()
        if _OPERAND_RE.match(inner) or inner.startswith("!"):
            return inner
        if _is_wrapped(inner):
            return inner[1:-1].strip()
    if _OPERAND_RE.match(expression) or _is_wrapped(expression):
        return f"!{expression}"
    return f"!({expression})"


class SubgraphBuilder:
    """
    Build render-region and exposed-handler subgraphs.

    Takes the id allocator of the build it serves; an instance must not
    outlive that build.
    """

    def __init__(self, ids: IdAllocator):
        self.ids = ids
        self._anchors: set[tuple[int, int | None]] = set()

    # =========================================================================
    # Render tree
    # =========================================================================

    def build_render_tree(
        self,
        structure: RenderNode,
        label: str = RENDER_ROOT_LABEL,
        anchors: set[tuple[int, int | None]] | None = None,
    ) -> DFDSubgraph:
        """
        anchors: (line, column) of elements carrying inline handlers. Those
        elements are kept even with no dependencies; a None column matches
        any element on the line.
        """
        self._anchors = set(anchors or ())
        root = DFDSubgraph(id=self.ids.next("render"), label=label, kind="render-region")
        root.elements.extend(self._build(structure))
        logger.debug(f"Render tree {root.id}: {len(root.elements)} top-level elements")
        return root

    def _build(self, structure: RenderNode) -> list:
        if isinstance(structure, ElementStructure):
            return self._build_element(structure)
        return self._build_branch(structure)

    def _build_element(self, element: ElementStructure) -> list:
        # Node id is issued before the children's so ids follow document order
        node = self.build_element_node(element) if self._keeps(element) else None
        results: list = []
        for child in element.children:
            results.extend(self._build(child))
        if node is not None:
            results.insert(0, node)
        else:
            logger.debug(f"Hoisting children of wrapper <{element.tag_name}>")
        return results

    def _keeps(self, element: ElementStructure) -> bool:
        if element.has_dependencies:
            return True
        position = element.position
        if position is None or not self._anchors:
            return False
        line = position.line
        return (line, position.column) in self._anchors or (line, None) in self._anchors

    def build_element_node(self, element: ElementStructure) -> DFDNode:
        return DFDNode(
            id=self.ids.next("element"),
            label=element.tag_name,
            kind="output",
            metadata=ElementFacts(
                tag_name=element.tag_name,
                display_dependencies=list(element.display_dependencies),
                attribute_references=[
                    (a.attribute_name, a.referenced_variable, a.property_name)
                    for a in element.attribute_references
                ],
            ),
            position=element.position,
        )

    def _build_branch(self, branch: BranchStructure) -> list:
        if branch.kind == "iteration":
            return self._build_iteration(branch)

        results: list = []
        expression = branch.condition.expression or branch.kind

        if branch.primary is not None:
            region = self._region(f"{{{expression}}}", branch.kind, branch.condition, branch.primary)
            if region is not None:
                results.append(region)

        if branch.alternate is not None:
            negated = ConditionExpression(
                expression=f"!({branch.condition.expression})",
                variables=list(branch.condition.variables),
            )
            region = self._region(
                f"{{{negate_expression(expression)}}}", branch.kind, negated, branch.alternate
            )
            if region is not None:
                results.append(region)

        return results

    def _build_iteration(self, branch: BranchStructure) -> list:
        if branch.primary is None:
            return []
        content = self._merge_nested_loops(branch.primary)
        region = self._region(LOOP_LABEL, "iteration", branch.condition, content)
        return [region] if region is not None else []

    def _region(
        self,
        label: str,
        branch_kind: str,
        condition: ConditionExpression,
        content: RenderNode,
    ) -> DFDSubgraph | None:
        region = DFDSubgraph(
            id=self.ids.next("region"),
            label=label,
            kind="conditional-region",
            condition=condition,
            branch_kind=branch_kind,
        )
        region.elements.extend(self._build(content))

        if not region.elements and isinstance(content, ElementStructure):
            region.elements.append(self.build_element_node(content))

        if not region.elements:
            logger.debug(f"Dropping empty region {region.id} {label}")
            return None
        return region

    def _merge_nested_loops(self, structure: RenderNode) -> RenderNode:
        """Collapse loop-in-loop (directly, or through one bare wrapper) into the inner content."""
        if isinstance(structure, BranchStructure):
            if structure.kind == "iteration" and structure.primary is not None:
                return self._merge_nested_loops(structure.primary)
            return structure

        if len(structure.children) == 1 and not self._keeps(structure):
            child = structure.children[0]
            if isinstance(child, BranchStructure) and child.kind == "iteration":
                return self._merge_nested_loops(child)
        return structure

    # =========================================================================
    # Exposed handlers
    # =========================================================================

    def build_exposed_handlers(self, process: ProcessInfo, owner_id: str) -> DFDSubgraph | None:
        """One process node per method the process exposes; None if it exposes nothing."""
        if not process.exposed_methods:
            return None

        group = DFDSubgraph(
            id=self.ids.next("handlers"),
            label=EXPOSED_HANDLERS_LABEL,
            kind="exposed-handlers",
            owner_process_id=owner_id,
        )
        for method in process.exposed_methods:
            group.elements.append(
                DFDNode(
                    id=self.ids.next("handler"),
                    label=method.name,
                    kind="process",
                    metadata=HandlerFacts(
                        method_name=method.name,
                        owner_process_id=owner_id,
                        parameters=list(method.parameters),
                        returns_value=method.returns_value,
                        is_async=method.is_async,
                    ),
                    position=method.position,
                )
            )
        logger.debug(f"Exposed handlers of {process.name}: {[m.name for m in process.exposed_methods]}")
        return group

    def build_handle_group(self, handle_name: str, method_names: list[str]) -> DFDSubgraph:
        """Targets of calls made through a child's handle: one node per method."""
        group = DFDSubgraph(
            id=self.ids.next("handlers"),
            label=EXPOSED_HANDLERS_LABEL,
            kind="exposed-handlers",
            handle_name=handle_name,
        )
        for method_name in method_names:
            group.elements.append(
                DFDNode(
                    id=self.ids.next("handler"),
                    label=method_name,
                    kind="process",
                    metadata=HandlerFacts(method_name=method_name, handle_name=handle_name),
                )
            )
        return group
