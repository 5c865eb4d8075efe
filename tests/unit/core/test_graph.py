"""Unit tests for core/graph.py"""

from flowbridge.core.graph import DocumentGraph
from flowbridge.core.models import Document, Node, Payload, Style


def _doc(nodes=(), styles=()):
    return Document(payload=Payload(nodes=list(nodes), styles=list(styles)))


def test_lookups_use_first_slot():
    """Indexes resolve duplicate ids to their first occurrence."""
    graph = DocumentGraph(_doc([Node(id="a", v="1"), Node(id="a", v="2")], [Style(id="s", name="card")]))
    assert graph.node("a").v == "1"
    assert graph.style("s").name == "card"
    assert graph.style_by_name("card").id == "s"
    assert graph.node("missing") is None


def test_root_slots_and_text_nodes():
    """Roots are nodes nobody lists as a child."""
    graph = DocumentGraph(_doc([
        Node(id="root", children=["t"]),
        Node(id="t", text=True, v="hi"),
        Node(id="orphan"),
    ]))
    assert graph.root_slots() == [0, 2]
    assert [n.id for n in graph.iter_text_nodes()] == ["t"]


def test_break_node_cycle():
    """The edge closing a cycle is removed from the parent's children."""
    doc = _doc([Node(id="a", children=["b"]), Node(id="b", children=["a"])])
    graph = DocumentGraph(doc)
    assert graph.break_node_cycles() == [("b", "a")]
    assert doc.payload.nodes[1].children == []
    assert graph.break_node_cycles() == []


def test_break_self_loop():
    """A node listing itself loses that edge."""
    doc = _doc([Node(id="a", children=["a", "b"]), Node(id="b")])
    assert DocumentGraph(doc).break_node_cycles() == [("a", "a")]
    assert doc.payload.nodes[0].children == ["b"]


def test_break_style_cycle():
    """Style child cycles are cut the same way."""
    doc = _doc(styles=[Style(id="x", name="x", children=["y"]), Style(id="y", name="y", children=["x"])])
    assert DocumentGraph(doc).break_style_cycles() == [("y", "x")]


def test_max_depth():
    """max_depth follows the longest path from a root."""
    graph = DocumentGraph(_doc([
        Node(id="a", children=["b", "c"]),
        Node(id="b", children=["c"]),
        Node(id="c", children=["d"]),
        Node(id="d"),
    ]))
    assert graph.max_depth() == 4


def test_max_depth_empty():
    """An empty graph has depth 0."""
    assert DocumentGraph(_doc()).max_depth() == 0


def test_reindex_after_rename():
    """reindex picks up changed ids."""
    doc = _doc([Node(id="a")])
    graph = DocumentGraph(doc)
    doc.payload.nodes[0].id = "b"
    graph.reindex()
    assert graph.node("b") is not None and graph.node("a") is None
