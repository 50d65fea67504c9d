# Copyright (c) 2025 ACR Maintainers
# License: MIT
"""
Pushout of attributed instances along a shared domain.

Given f: X -> Y and g: X -> Z, the pushout W is computed sortwise:
- take the disjoint union Y + Z (Y's elements first, then Z's, offset by |Y|)
- identify f(x) ~ g(x) for every x in X (union-find)
- number the equivalence classes by their least member in that concatenation

Foreign keys and attributes of W are read off any member of a class; naturality of f and
g guarantees every member agrees. The legs Y -> W and Z -> W are the class maps.
"""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

import numpy as np

from acr_core.interfaces import ConsistencyError, PreconditionError, PushoutPrimitive, SortName
from acr_core.instance_mem import InMemoryInstance, same_schema
from acr_core.homomorphism import InstanceHom


def _find(parent: List[int], i: int) -> int:
    root = i
    while parent[root] != root:
        root = parent[root]
    while parent[i] != root:
        parent[i], i = root, parent[i]
    return root


def _classes(n_y: int, n_z: int, fy: np.ndarray, gz: np.ndarray) -> Tuple[np.ndarray, int]:
    """Return (class index per element of Y + Z, number of classes)."""
    parent = list(range(n_y + n_z))
    for a, b in zip(fy.tolist(), gz.tolist()):
        ra, rb = _find(parent, a), _find(parent, n_y + b)
        if ra != rb:
            # smaller root wins so each class is represented by its least member
            if ra < rb:
                parent[rb] = ra
            else:
                parent[ra] = rb
    roots = [_find(parent, i) for i in range(n_y + n_z)]
    numbering: Dict[int, int] = {}
    labels = np.empty(n_y + n_z, dtype=np.int64)
    for i, r in enumerate(roots):
        if r not in numbering:
            numbering[r] = len(numbering)
        labels[i] = numbering[r]
    return labels, len(numbering)


def pushout(f: InstanceHom, g: InstanceHom) -> Tuple[InstanceHom, InstanceHom]:
    """
    Pushout of the span Y <-f- X -g-> Z.

    Returns the legs (Y -> W, Z -> W); the apex is available as either leg's codomain.
    Raises PreconditionError if f and g do not share a domain.
    """
    if f.dom is not g.dom and f.dom != g.dom:
        raise PreconditionError("shared_domain", "pushout(f, g) requires dom(f) == dom(g)")
    y, z = f.codom, g.codom
    same_schema(y, z, context="pushout")
    schema = y.schema

    labels: Dict[SortName, np.ndarray] = {}
    w = InMemoryInstance(schema)
    for s in schema.sorts:
        lab, n_classes = _classes(y.element_count(s), z.element_count(s), f[s], g[s])
        labels[s] = lab
        w.add_elements(s, n_classes)

    # one representative member per class, as (belongs to Y, index)
    reps: Dict[SortName, List[Tuple[bool, int]]] = {}
    for s in schema.sorts:
        n_y = y.element_count(s)
        rep: List[Any] = [None] * w.element_count(s)
        for i, cls in enumerate(labels[s].tolist()):
            if rep[cls] is None:
                rep[cls] = (True, i) if i < n_y else (False, i - n_y)
        reps[s] = rep

    for c in schema.homs:
        n_y_tgt = y.element_count(c.tgt)
        col_y, col_z = y.column(c.name), z.column(c.name)
        vals = np.empty(w.element_count(c.src), dtype=np.int64)
        for cls, (in_y, i) in enumerate(reps[c.src]):
            t = int(col_y[i]) if in_y else n_y_tgt + int(col_z[i])
            vals[cls] = labels[c.tgt][t]
        w.set_column(c.name, vals)

    for a in schema.attrs:
        col_y, col_z = y.column(a.name), z.column(a.name)
        w.set_column(a.name, [col_y[i] if in_y else col_z[i] for in_y, i in reps[a.src]])

    legs_y = {s: labels[s][: y.element_count(s)] for s in schema.sorts}
    legs_z = {s: labels[s][y.element_count(s):] for s in schema.sorts}
    iy = InstanceHom(y, w, legs_y)
    iz = InstanceHom(z, w, legs_z)
    if not (iy.is_natural() and iz.is_natural()):
        raise ConsistencyError("pushout legs are not natural; input homomorphisms must be natural")
    return iy, iz


class UnionFindPushout(PushoutPrimitive):
    """PushoutPrimitive adapter over the module-level pushout()."""

    def pushout(self, f: InstanceHom, g: InstanceHom) -> Tuple[InstanceHom, InstanceHom]:
        return pushout(f, g)


__all__ = ["pushout", "UnionFindPushout"]
