# Copyright (c) 2025 ACR Maintainers
# License: MIT
"""
Graphs, symmetric graphs and property graphs as attributed instances.

Schemas
- SCHEMA_GRAPH:           V, E;  src, tgt: E -> V
- SCHEMA_SYMMETRIC_GRAPH: V, E;  src, tgt: E -> V;  inv: E -> E (involution, src∘inv = tgt)
- SCHEMA_PROPERTY_GRAPH:  Graph plus attributes vprops on V and eprops on E

Helpers follow the usual graph vocabulary (nv, ne, add_edge, neighbors, ...) and operate on
InMemoryInstance directly. Symmetric edges are stored as pairs of opposite half-edges
linked by `inv`.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional, Sequence

from acr_core.interfaces import AttrSpec, HomSpec, Index, Schema
from acr_core.instance_mem import InMemoryInstance

SCHEMA_GRAPH = Schema(
    name="Graph",
    sorts=("V", "E"),
    homs=(HomSpec("src", "E", "V"), HomSpec("tgt", "E", "V")),
)

SCHEMA_SYMMETRIC_GRAPH = Schema(
    name="SymmetricGraph",
    sorts=("V", "E"),
    homs=(HomSpec("src", "E", "V"), HomSpec("tgt", "E", "V"), HomSpec("inv", "E", "E")),
)

SCHEMA_PROPERTY_GRAPH = Schema(
    name="PropertyGraph",
    sorts=("V", "E"),
    homs=(HomSpec("src", "E", "V"), HomSpec("tgt", "E", "V")),
    attrs=(AttrSpec("vprops", "V", "Props"), AttrSpec("eprops", "E", "Props")),
)


def Graph(n_vertices: int = 0, edges: Iterable[Sequence[int]] = ()) -> InMemoryInstance:
    """Directed multigraph with `n_vertices` vertices and the given (src, tgt) edges."""
    g = InMemoryInstance(SCHEMA_GRAPH)
    add_vertices(g, n_vertices)
    pairs = [tuple(e) for e in edges]
    add_edges(g, [p[0] for p in pairs], [p[1] for p in pairs])
    return g


def SymmetricGraph(n_vertices: int = 0, edges: Iterable[Sequence[int]] = ()) -> InMemoryInstance:
    g = InMemoryInstance(SCHEMA_SYMMETRIC_GRAPH)
    add_vertices(g, n_vertices)
    pairs = [tuple(e) for e in edges]
    add_edges(g, [p[0] for p in pairs], [p[1] for p in pairs])
    return g


def PropertyGraph(
    vprops: Sequence[Mapping[str, Any]] = (),
    edges: Iterable[Sequence[int]] = (),
    eprops: Optional[Sequence[Mapping[str, Any]]] = None,
) -> InMemoryInstance:
    """Property graph; one property mapping per vertex, and optionally per edge."""
    g = InMemoryInstance(SCHEMA_PROPERTY_GRAPH)
    g.add_elements("V", len(vprops), vprops=[dict(p) for p in vprops])
    pairs = [tuple(e) for e in edges]
    add_edges(g, [p[0] for p in pairs], [p[1] for p in pairs], eprops)
    return g


# ---------- Counts and accessors ----------


def nv(g: InMemoryInstance) -> int:
    return g.element_count("V")


def ne(g: InMemoryInstance) -> int:
    return g.element_count("E")


def src(g: InMemoryInstance, e: Index) -> int:
    return g.value("src", e)


def tgt(g: InMemoryInstance, e: Index) -> int:
    return g.value("tgt", e)


def has_vertex(g: InMemoryInstance, v: int) -> bool:
    return 0 <= v < nv(g)


def has_edge(g: InMemoryInstance, s: int, t: Optional[int] = None) -> bool:
    """has_edge(g, e) tests an edge index; has_edge(g, s, t) tests for an s -> t edge."""
    if t is None:
        return 0 <= s < ne(g)
    return t in outneighbors(g, s)


def edges_between(g: InMemoryInstance, s: int, t: int) -> List[int]:
    tgts = g.column("tgt")
    return [e for e in g.incident("src", s) if int(tgts[e]) == t]


# ---------- Mutation ----------


def add_vertex(g: InMemoryInstance, **props: Any) -> int:
    if g.schema.attrs_of("V"):
        return g.add_element("V", vprops=dict(props))
    return g.add_element("V")


def add_vertices(g: InMemoryInstance, n: int) -> range:
    if g.schema.attrs_of("V"):
        return g.add_elements("V", n, vprops=[{} for _ in range(n)])
    return g.add_elements("V", n)


def add_edge(g: InMemoryInstance, s: int, t: int, **props: Any) -> int:
    """Add one edge (for symmetric graphs: a pair of half-edges; returns the first)."""
    eprops = [dict(props)] if g.schema.attrs_of("E") else None
    return add_edges(g, [s], [t], eprops)[0]


def add_edges(
    g: InMemoryInstance,
    srcs: Sequence[int],
    tgts: Sequence[int],
    eprops: Optional[Sequence[Mapping[str, Any]]] = None,
) -> range:
    if len(srcs) != len(tgts):
        raise ValueError("srcs and tgts must have equal length")
    n = len(srcs)
    extra = {}
    if g.schema.attrs_of("E"):
        props = [dict(p) for p in eprops] if eprops is not None else [{} for _ in range(n)]
        if len(props) != n:
            raise ValueError("eprops must have one entry per edge")
        extra["eprops"] = props
    if any(c.name == "inv" for c in g.schema.homs):
        base = ne(g)
        invs = [base + n + i for i in range(n)] + [base + i for i in range(n)]
        if extra:
            extra["eprops"] = extra["eprops"] * 2
        return g.add_elements("E", 2 * n, src=list(srcs) + list(tgts), tgt=list(tgts) + list(srcs), inv=invs, **extra)
    return g.add_elements("E", n, src=list(srcs), tgt=list(tgts), **extra)


# ---------- Neighborhoods ----------


def outneighbors(g: InMemoryInstance, v: int) -> List[int]:
    tgts = g.column("tgt")
    return [int(tgts[e]) for e in g.incident("src", v)]


def inneighbors(g: InMemoryInstance, v: int) -> List[int]:
    srcs = g.column("src")
    return [int(srcs[e]) for e in g.incident("tgt", v)]


def neighbors(g: InMemoryInstance, v: int) -> List[int]:
    return outneighbors(g, v)


def all_neighbors(g: InMemoryInstance, v: int) -> List[int]:
    if g.schema.is_hom("inv"):
        return neighbors(g, v)
    return inneighbors(g, v) + outneighbors(g, v)


# ---------- Properties ----------


def get_vprop(g: InMemoryInstance, v: int, key: str) -> Any:
    return g.value("vprops", v)[key]


def get_eprop(g: InMemoryInstance, e: int, key: str) -> Any:
    return g.value("eprops", e)[key]


__all__ = [
    "SCHEMA_GRAPH",
    "SCHEMA_SYMMETRIC_GRAPH",
    "SCHEMA_PROPERTY_GRAPH",
    "Graph",
    "SymmetricGraph",
    "PropertyGraph",
    "nv",
    "ne",
    "src",
    "tgt",
    "has_vertex",
    "has_edge",
    "edges_between",
    "add_vertex",
    "add_vertices",
    "add_edge",
    "add_edges",
    "outneighbors",
    "inneighbors",
    "neighbors",
    "all_neighbors",
    "get_vprop",
    "get_eprop",
]
