# Copyright (c) 2025 ACR Maintainers
# License: MIT
"""
Homomorphism search (match oracle) by backtracking over pattern elements.

Provides:
- BacktrackingMatcher: MatchOracle yielding every natural homomorphism pattern -> host,
  lazily and in a deterministic (lexicographic) order.
- homomorphisms / homomorphism: module-level conveniences over a default matcher.

Search strategy
- Pattern elements are visited sort by sort; sorts with more outgoing foreign keys go
  first so that, e.g., edges are placed before the vertices they force.
- Candidate sets are pruned by propagation: an element referenced by an already-placed
  source is forced to the image of that reference; a foreign key whose target is already
  placed restricts the host candidates to the matching incidence set.
- Every placement is then checked against all naturality squares touching the element.

Notes
- Recursion depth equals the number of pattern elements; patterns are assumed small.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional, Sequence, Set, Tuple

import numpy as np

from acr_core.interfaces import MatchOracle, Schema, SchemaMismatchError, SortName
from acr_core.instance_mem import InMemoryInstance
from acr_core.homomorphism import InstanceHom


def _sort_order(schema: Schema) -> List[SortName]:
    return sorted(schema.sorts, key=lambda s: -len(schema.homs_from(s)))


class _Search:
    """Mutable state of one enumeration (pattern, host, partial assignment)."""

    def __init__(self, pattern: InMemoryInstance, host: InMemoryInstance, monic: bool) -> None:
        self.pattern = pattern
        self.host = host
        self.monic = monic
        self.schema = pattern.schema
        self.p_homs = {c.name: pattern.column(c.name) for c in self.schema.homs}
        self.h_homs = {c.name: host.column(c.name) for c in self.schema.homs}
        self.p_attrs = {a.name: pattern.column(a.name) for a in self.schema.attrs}
        self.h_attrs = {a.name: host.column(a.name) for a in self.schema.attrs}

        # pattern incidence: column -> target index -> source indices
        self.p_incoming: Dict[str, Dict[int, List[int]]] = {}
        for c in self.schema.homs:
            inc: Dict[int, List[int]] = {}
            for z, t in enumerate(self.p_homs[c.name]):
                inc.setdefault(int(t), []).append(z)
            self.p_incoming[c.name] = inc

        self.assign: Dict[SortName, np.ndarray] = {
            s: np.full(pattern.element_count(s), -1, dtype=np.int64) for s in self.schema.sorts
        }
        self.used: Dict[SortName, Set[int]] = {s: set() for s in self.schema.sorts}
        self.order: List[Tuple[SortName, int]] = [
            (s, x) for s in _sort_order(self.schema) for x in range(pattern.element_count(s))
        ]

    def feasible(self) -> bool:
        for s in self.schema.sorts:
            n_p, n_h = self.pattern.element_count(s), self.host.element_count(s)
            if n_p and not n_h:
                return False
            if self.monic and n_p > n_h:
                return False
        return True

    def candidates(self, s: SortName, x: int) -> Sequence[int]:
        n_h = self.host.element_count(s)
        mask = np.ones(n_h, dtype=bool)

        forced: Optional[int] = None
        for c in self.schema.homs_into(s):
            for z in self.p_incoming[c.name].get(x, ()):
                fz = int(self.assign[c.src][z])
                if fz < 0:
                    continue
                y = int(self.h_homs[c.name][fz])
                if forced is None:
                    forced = y
                elif forced != y:
                    return ()
        if forced is not None:
            mask[:] = False
            mask[forced] = True

        for c in self.schema.homs_from(s):
            t = int(self.p_homs[c.name][x])
            ft = int(self.assign[c.tgt][t])
            if ft >= 0:
                mask &= self.h_homs[c.name] == ft

        out = []
        for y in np.flatnonzero(mask):
            y = int(y)
            if self.monic and y in self.used[s]:
                continue
            if any(self.p_attrs[a.name][x] != self.h_attrs[a.name][y] for a in self.schema.attrs_of(s)):
                continue
            out.append(y)
        return out

    def consistent(self, s: SortName, x: int, y: int) -> bool:
        for c in self.schema.homs_from(s):
            ft = int(self.assign[c.tgt][int(self.p_homs[c.name][x])])
            if ft >= 0 and int(self.h_homs[c.name][y]) != ft:
                return False
        for c in self.schema.homs_into(s):
            for z in self.p_incoming[c.name].get(x, ()):
                fz = int(self.assign[c.src][z])
                if fz >= 0 and int(self.h_homs[c.name][fz]) != y:
                    return False
        return True

    def run(self, k: int = 0) -> Iterator[InstanceHom]:
        if k == len(self.order):
            yield InstanceHom(self.pattern, self.host, {s: a.copy() for s, a in self.assign.items()})
            return
        s, x = self.order[k]
        for y in self.candidates(s, x):
            self.assign[s][x] = y
            if self.monic:
                self.used[s].add(y)
            if self.consistent(s, x, y):
                yield from self.run(k + 1)
            self.assign[s][x] = -1
            if self.monic:
                self.used[s].discard(y)


class BacktrackingMatcher(MatchOracle):
    """
    Default MatchOracle.

    homomorphisms(pattern, host, monic=False) returns a lazy iterator; consumers may stop
    early without paying for the remaining search. Each call starts a fresh enumeration.
    """

    def homomorphisms(
        self,
        pattern: InMemoryInstance,
        host: InMemoryInstance,
        monic: bool = False,
    ) -> Iterator[InstanceHom]:
        if pattern.schema != host.schema:
            raise SchemaMismatchError(f"match {pattern.schema.name!r} -> {host.schema.name!r}")
        pattern.validate()
        host.validate()
        search = _Search(pattern, host, bool(monic))
        if not search.feasible():
            return iter(())
        return search.run()


_DEFAULT = BacktrackingMatcher()


def homomorphisms(pattern: InMemoryInstance, host: InMemoryInstance, monic: bool = False) -> Iterator[InstanceHom]:
    return _DEFAULT.homomorphisms(pattern, host, monic=monic)


def homomorphism(pattern: InMemoryInstance, host: InMemoryInstance, monic: bool = False) -> Optional[InstanceHom]:
    """First homomorphism in search order, or None when there is none."""
    return next(homomorphisms(pattern, host, monic=monic), None)


__all__ = ["BacktrackingMatcher", "homomorphisms", "homomorphism"]
