# Copyright (c) 2025 ACR Maintainers
# License: MIT
"""
Homomorphisms (natural transformations) between attributed instances.

An InstanceHom f: A -> B holds one integer component per sort, mapping A's elements of
that sort to B's elements of the same sort. It is natural when, for every foreign-key
column c: S -> T and attribute column a on S,

    f_T(c_A(x)) == c_B(f_S(x))      and      a_A(x) == a_B(f_S(x))

for all x in A. Components are numpy int64 arrays; composition is fancy indexing.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from acr_core.interfaces import Index, SchemaMismatchError, SortName
from acr_core.instance_mem import InMemoryInstance


class InstanceHom:
    """
    A family of per-sort index maps dom -> codom.

    Sorts omitted from `components` are accepted only when the domain has no elements
    of that sort. Lengths and target ranges are checked on construction, and both
    instances must be valid (no UNSET or out-of-range foreign keys); naturality is not
    checked (see is_natural / naturality_violations).
    """

    def __init__(
        self,
        dom: InMemoryInstance,
        codom: InMemoryInstance,
        components: Optional[Mapping[SortName, Sequence[int]]] = None,
    ) -> None:
        if dom.schema != codom.schema:
            raise SchemaMismatchError(f"homomorphism {dom.schema.name!r} -> {codom.schema.name!r}")
        dom.validate()
        codom.validate()
        self.dom = dom
        self.codom = codom
        comps = dict(components or {})
        unknown = set(comps) - set(dom.schema.sorts)
        if unknown:
            raise KeyError(f"unknown sorts in components: {sorted(unknown)}")

        self._components: Dict[SortName, np.ndarray] = {}
        for s in dom.schema.sorts:
            raw = comps.get(s, ())
            arr = np.array(raw if isinstance(raw, np.ndarray) else list(raw), dtype=np.int64)
            n_dom, n_cod = dom.element_count(s), codom.element_count(s)
            if arr.shape != (n_dom,):
                raise ValueError(f"component {s!r}: expected {n_dom} entries, got {arr.size}")
            if arr.size and (arr.min() < 0 or arr.max() >= n_cod):
                raise ValueError(f"component {s!r}: values must lie in 0..{n_cod - 1}")
            arr.setflags(write=False)
            self._components[s] = arr

    @property
    def schema(self):
        return self.dom.schema

    def __getitem__(self, sort: SortName) -> np.ndarray:
        return self._components[sort]

    def components(self) -> Dict[SortName, np.ndarray]:
        return dict(self._components)

    def __call__(self, sort: SortName, i: Index) -> int:
        return int(self._components[sort][i])

    # ---- Properties ----

    def naturality_violations(self) -> List[Tuple[str, SortName, Index]]:
        """Return (column, source sort, element) triples where a naturality square fails."""
        out: List[Tuple[str, SortName, Index]] = []
        for c in self.schema.homs:
            lhs = self._components[c.tgt][self.dom.column(c.name)]
            rhs = self.codom.column(c.name)[self._components[c.src]]
            for i in np.flatnonzero(lhs != rhs):
                out.append((c.name, c.src, int(i)))
        for a in self.schema.attrs:
            vals_dom = self.dom.column(a.name)
            vals_cod = self.codom.column(a.name)
            for i, j in enumerate(self._components[a.src]):
                if vals_dom[i] != vals_cod[int(j)]:
                    out.append((a.name, a.src, i))
        return out

    def is_natural(self) -> bool:
        return not self.naturality_violations()

    def is_monic(self) -> bool:
        """Injective in every sort."""
        return all(np.unique(f).size == f.size for f in self._components.values())

    def is_epic(self) -> bool:
        """Surjective in every sort."""
        return all(
            np.unique(f).size == self.codom.element_count(s) for s, f in self._components.items()
        )

    def is_iso(self) -> bool:
        return self.is_monic() and self.is_epic()

    def image(self, sort: SortName) -> np.ndarray:
        """Sorted, duplicate-free codomain indices hit by this component."""
        return np.unique(self._components[sort])

    # ---- Comparison ----

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InstanceHom):
            return NotImplemented
        return (
            self.dom == other.dom
            and self.codom == other.codom
            and all(np.array_equal(self._components[s], other._components[s]) for s in self._components)
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        comps = ", ".join(f"{s}={self._components[s].tolist()}" for s in self.schema.sorts)
        return f"InstanceHom({self.dom!r} -> {self.codom!r}; {comps})"


def compose(f: InstanceHom, g: InstanceHom) -> InstanceHom:
    """Diagrammatic composition: first f, then g."""
    if f.codom is not g.dom and f.codom != g.dom:
        raise ValueError("compose(f, g) requires codom(f) == dom(g)")
    return InstanceHom(f.dom, g.codom, {s: g[s][f[s]] for s in f.schema.sorts})


def identity(x: InMemoryInstance) -> InstanceHom:
    return InstanceHom(x, x, {s: np.arange(x.element_count(s), dtype=np.int64) for s in x.schema.sorts})


def is_natural(f: InstanceHom) -> bool:
    return f.is_natural()


def is_isomorphic(x: InMemoryInstance, y: InMemoryInstance) -> bool:
    """
    True when a bijective natural homomorphism x -> y exists.

    With equal element counts, any injective natural map is bijective and its inverse is
    natural as well, so a single monic search suffices.
    """
    from acr_core.matching import homomorphism  # local import avoids a module cycle

    if x.schema != y.schema:
        return False
    if any(x.element_count(s) != y.element_count(s) for s in x.schema.sorts):
        return False
    return homomorphism(x, y, monic=True) is not None


__all__ = ["InstanceHom", "compose", "identity", "is_natural", "is_isomorphic"]
