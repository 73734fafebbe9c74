"""Tests for Mermaid flowchart export."""

from webdfd.dfd_builder import DFDBuilder
from webdfd.dfd_model import DFDInfo
from webdfd.mermaid_export import EMPTY_MESSAGE, INIT_LINE, sanitize_id, sanitize_label, to_mermaid


class TestSanitize:
    def test_id(self):
        assert sanitize_id("call_3") == "call_3"
        assert sanitize_id("console.log-1") == "console_log_1"

    def test_label(self):
        assert sanitize_label('<Button label="x">') == "&lt;Button label=#quot;x#quot;&gt;"
        assert sanitize_label("a\nb") == "a<br/>b"


class TestToMermaid:
    def test_empty_graph(self):
        text = to_mermaid(DFDInfo(component_name="Empty"))

        assert text.startswith("flowchart LR")
        assert EMPTY_MESSAGE in text

    def test_header_and_prop_groups(self, counter_ir):
        text = to_mermaid(DFDBuilder().build(counter_ir))
        lines = text.splitlines()

        assert lines[0] == INIT_LINE
        assert lines[1] == "flowchart LR"
        assert '  subgraph InputProps["Input Props"]' in lines
        assert '  subgraph OutputProps["Output Props"]' in lines

    def test_node_shapes(self, counter_ir):
        info = DFDBuilder().build(counter_ir)
        text = to_mermaid(info)

        label = info.find_nodes("label")[0]
        count = info.find_nodes("count")[0]
        handler = info.find_nodes("handleClick")[0]
        span = info.find_nodes("span")[0]
        assert f'{label.id}("label")' in text
        assert f'{count.id}[("count")]' in text
        assert f'{handler.id}[["handleClick"]]' in text
        assert f'{span.id}@{{ shape: hex, label: "&lt;span&gt;" }}' in text

    def test_render_tree_is_nested(self, conditional_ir):
        info = DFDBuilder().build(conditional_ir)
        text = to_mermaid(info)

        assert f'subgraph {info.root_subgraph.id}["Render Output"]' in text
        assert '["{isOpen}"]' in text
        assert '["{!isOpen}"]' in text

    def test_region_markers_not_drawn_as_nodes(self, conditional_ir):
        info = DFDBuilder().build(conditional_ir)
        text = to_mermaid(info)

        for region in info.root_subgraph.iter_subgraphs():
            # only the subgraph header opens a bracket after the region id
            assert text.count(f"{region.id}[") == 1
            assert f"subgraph {region.id}[" in text

    def test_cleanup_edges_dotted(self, effect_ir):
        text = to_mermaid(DFDBuilder().build(effect_ir))

        assert '-.->|"cleanup"|' in text

    def test_export_edges_long(self, parent_with_handle_ir):
        text = to_mermaid(DFDBuilder().build(parent_with_handle_ir))

        assert '---->|"exports"|' in text
        assert 'subgraph handlers_' in text
        assert "exposed handlers" in text

    def test_styling(self, counter_ir):
        info = DFDBuilder().build(counter_ir)
        text = to_mermaid(info)

        assert "classDef process" in text
        assert f"class {info.find_nodes('label')[0].id} inputProp" in text
        assert f"class {info.find_nodes('onChange')[0].id} outputProp" in text
        assert f"class {info.find_nodes('span')[0].id} jsxElement" in text

    def test_every_edge_emitted(self, exposing_child_ir):
        info = DFDBuilder().build(exposing_child_ir)
        text = to_mermaid(info)

        for index in range(len(info.edges)):
            assert f" e{index}@" in text
