# Copyright (c) 2025 ACR Maintainers
# License: MIT
"""
Tests for the rewrite orchestrator (rewrite_match, rewrite, rewrite_outcome) and Rule.

Deterministic, offline, quick:
- Default backtracking match oracle and union-find pushout
- Graph and property-graph schemas only
"""

from __future__ import annotations

from typing import Iterator, List

import pytest

from acr_core.colimits import pushout
from acr_core.dpo import (
    APPLIED,
    INAPPLICABLE,
    INDEX_OUT_OF_RANGE,
    Rule,
    rewrite,
    rewrite_match,
    rewrite_outcome,
)
from acr_core.graphs import Graph, PropertyGraph, ne, nv
from acr_core.homomorphism import InstanceHom, identity, is_isomorphic
from acr_core.interfaces import PreconditionError, SchemaMismatchError
from acr_core.matching import homomorphisms


# -------------------------
# Utilities (local to tests)
# -------------------------


def _delete_vertex() -> Rule:
    return Rule.from_instances(Graph(), Graph(1), Graph(), name="delete_vertex")


def _add_edge() -> Rule:
    """Two vertices kept; an edge 0 -> 1 is created between them."""
    I = Graph(2)
    return Rule.from_instances(I, Graph(2), Graph(2, [(0, 1)]), {"V": [0, 1]}, {"V": [0, 1]}, name="add_edge")


class _RecordingOracle:
    """MatchOracle wrapper that counts how many candidates were pulled."""

    def __init__(self) -> None:
        self.pulled = 0

    def homomorphisms(self, pattern, host, monic=False) -> Iterator[InstanceHom]:
        for m in homomorphisms(pattern, host, monic=monic):
            self.pulled += 1
            yield m


# -------------------------
# Concrete scenario
# -------------------------


def test_delete_vertex_scenario():
    # path 0 -> 1 -> 2 plus an isolated vertex 3
    G = Graph(4, [(0, 1), (1, 2)])
    rule = _delete_vertex()

    m_mid = InstanceHom(rule.pattern, G, {"V": [1]})
    with pytest.raises(PreconditionError) as ei:
        rewrite_match(rule.L, rule.R, m_mid)
    assert ei.value.check == "valid_dpo"

    H = rewrite(rule.L, rule.R, G)
    assert H == Graph(3, [(0, 1), (1, 2)])

    # only one valid match, so index 1 is out of range
    assert rewrite(rule.L, rule.R, G, m_index=1) is None


def test_delete_vertex_compacts_following_indices():
    G = Graph(4, [(0, 2), (2, 3)])
    rule = _delete_vertex()
    H = rule.apply(G)
    assert H == Graph(3, [(0, 1), (1, 2)])
    # input untouched
    assert G == Graph(4, [(0, 2), (2, 3)])


def test_rewrite_without_valid_match_returns_none():
    G = Graph(3, [(0, 1), (1, 2)])
    rule = _delete_vertex()
    assert rewrite(rule.L, rule.R, G) is None


# -------------------------
# Outcomes
# -------------------------


def test_outcome_distinguishes_inapplicable_and_out_of_range():
    rule = _delete_vertex()

    out = rule.outcome(Graph(3, [(0, 1), (1, 2)]))
    assert out.status == INAPPLICABLE
    assert out.result is None
    assert (out.n_candidates, out.n_valid) == (3, 0)

    out = rule.outcome(Graph(2), m_index=5)
    assert out.status == INDEX_OUT_OF_RANGE
    assert (out.n_candidates, out.n_valid) == (2, 2)

    out = rule.outcome(Graph(2), m_index=1)
    assert out.status == APPLIED and out.applied
    assert out.match is not None and out.match["V"].tolist() == [1]
    assert nv(out.result) == 1


def test_negative_index_is_out_of_range():
    rule = _delete_vertex()
    out = rewrite_outcome(rule.L, rule.R, Graph(2), m_index=-1)
    assert out.status == INDEX_OUT_OF_RANGE
    assert rewrite(rule.L, rule.R, Graph(2), m_index=-1) is None


def test_enumeration_stops_at_selected_match():
    rule = _delete_vertex()
    oracle = _RecordingOracle()
    out = rule.outcome(Graph(10), oracle=oracle)
    assert out.applied
    assert oracle.pulled == 1
    assert out.n_candidates == 1


def test_outcome_collects_rejection_reports():
    rule = _delete_vertex()
    G = Graph(4, [(0, 1), (1, 2)])
    out = rule.outcome(G, collect_rejections=True)
    assert out.applied
    # vertices 0, 1, 2 were rejected before 3 was accepted
    assert len(out.rejections) == 3
    assert all(not r.valid and r.dangling for r in out.rejections)


def test_rewrite_skips_match_that_identifies_kept_and_deleted():
    # keep vertex 0, delete vertex 1; into a single vertex both collapse onto it
    rule = Rule.from_instances(Graph(1), Graph(2), Graph(1), {"V": [0]}, {"V": [0]}, name="merge_away")
    G = Graph(1)

    out = rule.outcome(G, collect_rejections=True)
    assert out.status == INAPPLICABLE
    assert (out.n_candidates, out.n_valid) == (1, 0)
    (report,) = out.rejections
    assert not report.dangling
    assert [(v.kind, v.pattern_elements, v.host_element) for v in report.identification] == [
        ("preserved_orphan", (0, 1), 0)
    ]
    assert rewrite(rule.L, rule.R, G) is None

    monic = rule.outcome(G, monic=True)
    assert monic.status == INAPPLICABLE
    assert monic.n_candidates == 0


# -------------------------
# Creation, identity and monic matches
# -------------------------


def test_add_edge_respects_match_order():
    rule = _add_edge()
    G = Graph(2)

    H0 = rule.apply(G, monic=True, m_index=0)
    H1 = rule.apply(G, monic=True, m_index=1)
    assert ne(H0) == 1 and ne(H1) == 1
    assert rule.apply(G, monic=True, m_index=2) is None

    # in host coordinates the two results point in opposite directions
    m0, m1 = list(rule.matches(G, monic=True))
    assert m0["V"].tolist() == [0, 1]
    assert m1["V"].tolist() == [1, 0]


def test_add_edge_non_monic_includes_loops():
    rule = _add_edge()
    out = rule.outcome(Graph(2), m_index=0)
    # first match sends both pattern vertices to vertex 0
    assert out.match["V"].tolist() == [0, 0]
    H = out.result
    assert nv(H) == 2 and ne(H) == 1
    assert H.column("src").tolist() == H.column("tgt").tolist()


def test_identity_rule_leaves_instance_isomorphic():
    P = Graph(2, [(0, 1)])
    rule = Rule(identity(P), identity(P), name="identity")
    G = Graph(4, [(0, 1), (1, 2), (2, 0), (3, 3)])

    n = 0
    for m in rule.matches(G):
        H = rewrite_match(rule.L, rule.R, m)
        assert is_isomorphic(H, G)
        n += 1
    assert n == 4


def test_created_and_deleted_elements():
    rule = Rule.from_instances(
        Graph(1),
        Graph(2, [(0, 1)]),
        Graph(2, [(1, 0)]),
        {"V": [0]},
        {"V": [0]},
        name="flip",
    )
    assert rule.deleted("V").tolist() == [1]
    assert rule.deleted("E").tolist() == [0]
    assert rule.created("V").tolist() == [1]
    assert rule.created("E").tolist() == [0]


def test_rewrite_with_replacement_elements_first():
    # replace vertex labelled "tmp" by a fresh vertex labelled "new"
    G = PropertyGraph([{"label": "a"}, {"label": "tmp"}, {"label": "b"}], edges=[(0, 2)], eprops=[{"w": 1}])
    rule = Rule.from_instances(
        PropertyGraph(),
        PropertyGraph([{"label": "tmp"}]),
        PropertyGraph([{"label": "new"}]),
        name="relabel",
    )
    H = rule.apply(G)
    assert H.column("vprops") == [{"label": "new"}, {"label": "a"}, {"label": "b"}]
    assert H.column("src").tolist() == [1]
    assert H.column("tgt").tolist() == [2]
    assert H.column("eprops") == [{"w": 1}]


def test_attribute_mismatch_means_no_match():
    G = PropertyGraph([{"label": "a"}])
    rule = Rule.from_instances(PropertyGraph(), PropertyGraph([{"label": "tmp"}]), PropertyGraph())
    assert rule.apply(G) is None


def test_custom_glue_is_used():
    calls: List[int] = []

    def glue(f, g):
        calls.append(1)
        return pushout(f, g)

    rule = _delete_vertex()
    rewrite(rule.L, rule.R, Graph(1), glue=glue)
    assert calls == [1]


# -------------------------
# Preconditions
# -------------------------


def test_rewrite_match_rejects_different_interfaces():
    L = InstanceHom(Graph(1), Graph(1), {"V": [0]})
    R = InstanceHom(Graph(2), Graph(2), {"V": [0, 1]})
    m = InstanceHom(L.codom, Graph(1), {"V": [0]})
    with pytest.raises(PreconditionError) as ei:
        rewrite_match(L, R, m)
    assert ei.value.check == "shared_interface"


def test_rewrite_match_rejects_foreign_match_domain():
    rule = _delete_vertex()
    m = InstanceHom(Graph(2), Graph(2), {"V": [0, 1]})
    with pytest.raises(PreconditionError) as ei:
        rewrite_match(rule.L, rule.R, m)
    assert ei.value.check == "match_domain"


def test_rewrite_match_rejects_non_natural_match():
    rule = Rule.from_instances(Graph(2), Graph(2, [(0, 1)]), Graph(2), {"V": [0, 1]}, {"V": [0, 1]})
    G = Graph(2, [(0, 1)])
    m = InstanceHom(rule.pattern, G, {"V": [0, 0], "E": [0]})
    with pytest.raises(PreconditionError) as ei:
        rewrite_match(rule.L, rule.R, m)
    assert ei.value.check == "naturality"
    assert "match" in str(ei.value)


def test_rule_check_rejects_non_natural_leg():
    # l sends the interface edge's endpoints somewhere its image edge does not go
    I = Graph(2, [(0, 1)])
    L = InstanceHom(I, Graph(2, [(0, 1)]), {"V": [1, 0], "E": [0]})
    rule = Rule(L, identity(I))
    with pytest.raises(PreconditionError) as ei:
        rule.check()
    assert ei.value.check == "naturality"


def test_rewrite_rejects_host_of_other_schema():
    rule = _delete_vertex()
    with pytest.raises(SchemaMismatchError):
        rewrite(rule.L, rule.R, PropertyGraph([{}]))
