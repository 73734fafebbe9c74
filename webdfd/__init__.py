"""webdfd - data-flow diagram synthesis for UI components."""

from .component_ir import ComponentIR, IRFormatError
from .dfd_builder import DFDBuilder
from .dfd_model import DFDEdge, DFDInfo, DFDNode, DFDSubgraph
from .mermaid_export import to_mermaid
from .type_classifier import classify

__all__ = [
    "ComponentIR",
    "IRFormatError",
    "DFDBuilder",
    "DFDEdge",
    "DFDInfo",
    "DFDNode",
    "DFDSubgraph",
    "to_mermaid",
    "classify",
]
