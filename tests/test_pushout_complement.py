# Copyright (c) 2025 ACR Maintainers
# License: MIT
"""
Tests for the pushout-complement builder.

Covers naturality of k and g, dense renumbering of the context, the pushout law
(re-gluing L along k reproduces G), and ConsistencyError when the checker is bypassed.
"""

from __future__ import annotations

import numpy as np
import pytest

from acr_core.colimits import pushout
from acr_core.dpo import PushoutComplement, pushout_complement, valid_dpo
from acr_core.graphs import Graph, PropertyGraph
from acr_core.homomorphism import InstanceHom, compose, is_isomorphic
from acr_core.interfaces import ConsistencyError
from acr_core.matching import homomorphisms


def _delete_edge_left() -> InstanceHom:
    """l: two vertices -> edge 0 -> 1 (the edge is deleted, its endpoints kept)."""
    return InstanceHom(Graph(2), Graph(2, [(0, 1)]), {"V": [0, 1]})


def _assert_square_commutes(L: InstanceHom, m: InstanceHom, pc: PushoutComplement) -> None:
    lm = compose(L, m)
    kg = compose(pc.k, pc.g)
    for s in L.schema.sorts:
        assert np.array_equal(lm[s], kg[s]), s


def test_delete_isolated_vertex_compacts_indices():
    # isolated vertex 1 sits between vertices that survive
    G = Graph(4, [(0, 2), (2, 3)])
    L = InstanceHom(Graph(), Graph(1))
    m = InstanceHom(L.codom, G, {"V": [1]})

    k, g = pushout_complement(L, m)
    K = k.codom
    assert K == Graph(3, [(0, 1), (1, 2)])
    assert g["V"].tolist() == [0, 2, 3]
    assert g["E"].tolist() == [0, 1]
    assert k.is_natural() and g.is_natural()
    K.validate()


def test_delete_edge_keeps_parallel_edge():
    G = Graph(3, [(0, 1), (1, 2), (0, 1)])
    L = _delete_edge_left()
    m = InstanceHom(L.codom, G, {"V": [1, 2], "E": [1]})
    assert valid_dpo(L, m)

    pc = pushout_complement(L, m)
    assert isinstance(pc, PushoutComplement)
    K = pc.context
    assert K.element_count("V") == 3
    assert K.element_count("E") == 2
    assert K.column("src").tolist() == [0, 0]
    assert K.column("tgt").tolist() == [1, 1]
    assert pc.g["E"].tolist() == [0, 2]
    assert pc.k["V"].tolist() == [1, 2]
    _assert_square_commutes(L, m, pc)


def test_pushout_law_regluing_reproduces_host():
    G = Graph(3, [(0, 1), (1, 2), (0, 1)])
    L = _delete_edge_left()
    m = InstanceHom(L.codom, G, {"V": [1, 2], "E": [1]})
    k, _ = pushout_complement(L, m)

    to_w, _ = pushout(L, k)
    assert is_isomorphic(to_w.codom, G)


def test_every_valid_match_yields_natural_dense_context():
    # pattern: vertex 0 with an out-edge to a deleted vertex 1
    L = InstanceHom(Graph(1), Graph(2, [(0, 1)]), {"V": [0]})
    G = Graph(5, [(0, 1), (1, 2), (3, 4), (2, 2)])

    n_valid = 0
    for m in homomorphisms(L.codom, G):
        if not valid_dpo(L, m):
            continue
        n_valid += 1
        pc = pushout_complement(L, m)
        K = pc.context
        assert pc.k.is_natural() and pc.g.is_natural()
        # dense: K's element counts equal the survivors, and every key is in range
        for s in ("V", "E"):
            assert pc.g[s].tolist() == sorted(set(pc.g[s].tolist()))
            assert K.element_count(s) == pc.g[s].size
        K.validate()
        _assert_square_commutes(L, m, pc)
        to_w, _ = pushout(L, pc.k)
        assert is_isomorphic(to_w.codom, G)
    # only 3 -> 4: 1 and 2 carry other edges, and a self-loop would merge kept and deleted
    assert n_valid == 1


def test_attributes_are_restricted_with_their_elements():
    G = PropertyGraph(
        [{"name": "a"}, {"name": "tmp"}, {"name": "b"}],
        edges=[(0, 2)],
        eprops=[{"w": 3}],
    )
    L = InstanceHom(PropertyGraph(), PropertyGraph([{"name": "tmp"}]))
    m = InstanceHom(L.codom, G, {"V": [1]})

    K = pushout_complement(L, m).context
    assert K.column("vprops") == [{"name": "a"}, {"name": "b"}]
    assert K.column("eprops") == [{"w": 3}]
    assert K.column("src").tolist() == [0]
    assert K.column("tgt").tolist() == [1]


def test_bypassing_identification_check_raises_consistency_error():
    L = InstanceHom(Graph(1), Graph(2), {"V": [0]})
    m = InstanceHom(L.codom, Graph(1), {"V": [0, 0]})
    assert not valid_dpo(L, m)
    with pytest.raises(ConsistencyError, match="flagged as an orphan"):
        pushout_complement(L, m)


def test_bypassing_dangling_check_raises_consistency_error():
    G = Graph(3, [(0, 1), (1, 2)])
    L = InstanceHom(Graph(), Graph(1))
    m = InstanceHom(L.codom, G, {"V": [1]})
    assert not valid_dpo(L, m)
    with pytest.raises(ConsistencyError):
        pushout_complement(L, m)


def test_bypassing_dangling_check_on_last_vertex_raises_consistency_error():
    # the renumbered key would point past the end of K's vertices
    G = Graph(2, [(0, 1)])
    L = InstanceHom(Graph(), Graph(1))
    m = InstanceHom(L.codom, G, {"V": [1]})
    assert not valid_dpo(L, m)
    with pytest.raises(ConsistencyError, match="'tgt' key 1 was flagged as an orphan"):
        pushout_complement(L, m)


def test_host_is_not_mutated():
    G = Graph(4, [(0, 2), (2, 3)])
    before = G.copy()
    L = InstanceHom(Graph(), Graph(1))
    pushout_complement(L, InstanceHom(L.codom, G, {"V": [1]}))
    assert G == before
