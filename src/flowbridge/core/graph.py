"""Arena view over a Document: slot lists for nodes/styles plus id and name indexes"""

from typing import Iterator, Optional

from flowbridge.core.models import Document, Node, Style


class DocumentGraph:
    """Nodes and styles live in slot lists; ids and names resolve to slot numbers.

    Indexes map each id to its FIRST slot, so duplicates stay visible to callers
    that walk the slot lists directly. Call `reindex()` after changing ids.
    """

    def __init__(self, document: Document):
        self.document = document
        self.nodes: list[Node] = document.payload.nodes
        self.styles: list[Style] = document.payload.styles
        self.reindex()

    def reindex(self) -> None:
        self.node_slots: dict[str, int] = {}
        self.style_slots: dict[str, int] = {}
        self.style_name_slots: dict[str, int] = {}
        for i, node in enumerate(self.nodes):
            self.node_slots.setdefault(node.id, i)
        for i, style in enumerate(self.styles):
            self.style_slots.setdefault(style.id, i)
            self.style_name_slots.setdefault(style.name, i)

    # --- lookups ---

    def node(self, node_id: str) -> Optional[Node]:
        slot = self.node_slots.get(node_id)
        return self.nodes[slot] if slot is not None else None

    def style(self, style_id: str) -> Optional[Style]:
        slot = self.style_slots.get(style_id)
        return self.styles[slot] if slot is not None else None

    def style_by_name(self, name: str) -> Optional[Style]:
        slot = self.style_name_slots.get(name)
        return self.styles[slot] if slot is not None else None

    def node_edges(self, slot: int) -> list[int]:
        return [self.node_slots[c] for c in (self.nodes[slot].children or []) if c in self.node_slots]

    def style_edges(self, slot: int) -> list[int]:
        return [self.style_slots[c] for c in self.styles[slot].children if c in self.style_slots]

    def root_slots(self) -> list[int]:
        """Node slots not referenced as anyone's child."""
        referenced = {c for n in self.nodes for c in (n.children or [])}
        return [i for i, n in enumerate(self.nodes) if n.id not in referenced]

    def iter_text_nodes(self) -> Iterator[Node]:
        return (n for n in self.nodes if n.text and n.v is not None)

    # --- structure ---

    def _break_cycles(self, count: int, edges, children_of, id_of) -> list[tuple[int, int]]:
        """Iterative DFS; every back edge is removed from its parent's child list."""
        WHITE, GREY, BLACK = 0, 1, 2
        color = [WHITE] * count
        removed: list[tuple[int, int]] = []

        for start in range(count):
            if color[start] != WHITE:
                continue
            color[start] = GREY
            stack = [(start, iter(edges(start)))]
            while stack:
                slot, it = stack[-1]
                child = next(it, None)
                if child is None:
                    color[slot] = BLACK
                    stack.pop()
                elif color[child] == GREY:
                    removed.append((slot, child))
                elif color[child] == WHITE:
                    color[child] = GREY
                    stack.append((child, iter(edges(child))))

        for parent, child in removed:
            children = children_of(parent)
            target = id_of(child)
            if target in children:
                children.remove(target)
        return removed

    def _node_children(self, slot: int) -> list[str]:
        node = self.nodes[slot]
        if node.children is None:
            node.children = []
        return node.children

    def _style_children(self, slot: int) -> list[str]:
        return self.styles[slot].children

    def break_node_cycles(self) -> list[tuple[str, str]]:
        """Cut every node-children edge that closes a cycle; returns (parent_id, child_id) pairs."""
        removed = self._break_cycles(len(self.nodes), self.node_edges, self._node_children,
                                     lambda slot: self.nodes[slot].id)
        return [(self.nodes[p].id, self.nodes[c].id) for p, c in removed]

    def break_style_cycles(self) -> list[tuple[str, str]]:
        removed = self._break_cycles(len(self.styles), self.style_edges, self._style_children,
                                     lambda slot: self.styles[slot].id)
        return [(self.styles[p].id, self.styles[c].id) for p, c in removed]

    def max_depth(self) -> int:
        """Depth of the deepest node, roots at depth 1; 0 for an empty graph."""
        deepest = 0
        best: dict[int, int] = {}
        limit = len(self.nodes) + 1
        stack = [(slot, 1) for slot in self.root_slots()]
        while stack:
            slot, depth = stack.pop()
            if best.get(slot, 0) >= depth or depth > limit:
                continue
            best[slot] = depth
            deepest = max(deepest, depth)
            stack.extend((child, depth + 1) for child in self.node_edges(slot))
        return deepest
