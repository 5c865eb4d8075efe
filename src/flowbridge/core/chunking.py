"""Syntax-aware splitting of oversized CSS and JS embeds"""

from typing import Callable, Literal, Optional

from pydantic import BaseModel


EmbedKind = Literal["css", "js", "html"]


class EmbedChunk(BaseModel):
    index:   int
    content: str
    size:    int


class ChunkedEmbed(BaseModel):
    kind:          EmbedKind
    was_chunked:   bool = False
    original_size: int = 0
    chunks:        list[EmbedChunk] = []

    def fits(self, limit: int) -> bool:
        return all(c.size <= limit for c in self.chunks)

    def instructions(self) -> list[str]:
        if not self.was_chunked:
            return []
        total = len(self.chunks)
        return [
            f"{self.kind.upper()} embed split into {total} parts ({self.original_size:,} bytes total)",
            *(f"  Part {c.index + 1}/{total}: {c.size:,} bytes" for c in self.chunks),
        ]


def byte_size(text: str) -> int:
    return len(text.encode("utf-8"))


def split_css_rules(css: str) -> list[str]:
    """Top-level rules, split where brace depth returns to zero outside strings."""
    rules, buf, depth, quote = [], [], 0, None
    prev = ""
    for ch in css:
        buf.append(ch)
        if quote:
            if ch == quote and prev != "\\":
                quote = None
        elif ch in "'\"":
            quote = ch
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0 and "".join(buf).strip():
                rules.append("".join(buf))
                buf = []
        prev = ch
    if "".join(buf).strip():
        rules.append("".join(buf))
    return rules


def split_js_statements(js: str) -> list[str]:
    """Statements split on `;` or a closing top-level `}` outside strings, comments, and parens."""
    statements, buf = [], []
    brace = paren = 0
    quote = None
    line_comment = block_comment = False
    i, n = 0, len(js)

    while i < n:
        ch = js[i]
        nxt = js[i + 1] if i + 1 < n else ""
        buf.append(ch)
        if line_comment:
            line_comment = ch != "\n"
        elif block_comment:
            if ch == "*" and nxt == "/":
                buf.append(nxt)
                i += 1
                block_comment = False
        elif quote:
            if ch == "\\":
                buf.append(nxt)
                i += 1
            elif ch == quote:
                quote = None
        elif ch == "/" and nxt == "/":
            line_comment = True
        elif ch == "/" and nxt == "*":
            block_comment = True
        elif ch in "'\"`":
            quote = ch
        elif ch == "{":
            brace += 1
        elif ch == "}":
            brace -= 1
            if brace == 0 and paren == 0:
                statements.append("".join(buf))
                buf = []
        elif ch == "(":
            paren += 1
        elif ch == ")":
            paren -= 1
        elif ch == ";" and brace == 0 and paren == 0:
            statements.append("".join(buf))
            buf = []
        i += 1

    if "".join(buf).strip():
        statements.append("".join(buf))
    return [s for s in statements if s.strip()]


def _pack(units: list[str], max_size: int) -> list[str]:
    """Greedily pack units into chunks of at most max_size bytes; oversized units stand alone."""
    chunks: list[str] = []
    current = ""
    for unit in units:
        if byte_size(unit) > max_size:
            if current.strip():
                chunks.append(current.strip())
            chunks.append(unit.strip())
            current = ""
        elif current and byte_size(current + unit) > max_size:
            chunks.append(current.strip())
            current = unit
        else:
            current += unit
    if current.strip():
        chunks.append(current.strip())
    return chunks


def chunk_css(css: str, max_size: int) -> list[str]:
    return _pack(split_css_rules(css), max_size)


def chunk_js(js: str, max_size: int) -> list[str]:
    return _pack(split_js_statements(js), max_size)


CHUNKERS: dict[str, Callable[[str, int], list[str]]] = {
    "css": chunk_css,
    "js":  chunk_js,
}


def chunker_for(kind: str) -> Optional[Callable[[str, int], list[str]]]:
    """Chunking strategy for an embed kind; raw HTML has none."""
    return CHUNKERS.get(kind)


def chunk_embed(content: str, kind: EmbedKind, max_size: int) -> ChunkedEmbed:
    """Split content when it exceeds max_size bytes; returns a single chunk otherwise."""
    size = byte_size(content)
    chunker = chunker_for(kind)
    if size <= max_size or chunker is None:
        return ChunkedEmbed(kind=kind, original_size=size,
                            chunks=[EmbedChunk(index=0, content=content, size=size)])
    parts = chunker(content, max_size)
    return ChunkedEmbed(
        kind=kind,
        was_chunked=True,
        original_size=size,
        chunks=[EmbedChunk(index=i, content=p, size=byte_size(p)) for i, p in enumerate(parts)],
    )
