# Copyright (c) 2025 ACR Maintainers
# License: MIT
"""
Double-pushout (DPO) rewriting of attributed instances.

        l
    L <---- I
    |       |
   m|       |k
    v       v
    G <---- K
        g

A rule is a span L <-l- I -r-> R. Pattern elements outside the image of l are deleted;
replacement elements outside the image of r are created. Given a match m: L -> G, the
context K is G with the m-images of deleted pattern elements ("orphans") removed, and the
result H is the pushout of R <-r- I -k-> K.

Scope
- Applicability checks: identification condition, dangling condition, valid_dpo
- Pushout complement: orphan removal with dense renumbering of every sort and column
- Orchestration: rewrite_match (explicit match), rewrite / rewrite_outcome (searched match)

Design notes
- The core is side-effect free: no logging or I/O. The *_violations / explain_dpo
  functions return structured records for callers that want diagnostics.
- pushout_complement trusts its caller to have checked valid_dpo; if an interface element
  lands on an orphan, or a postcondition fails, it raises ConsistencyError.
- Match enumeration is consumed lazily; rewrite stops as soon as the requested match has
  been validated.

Indices are 0-based; m_index selects among valid matches in oracle order.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Mapping, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from acr_core.interfaces import (
    ConsistencyError,
    DanglingViolation,
    DPOReport,
    IdentificationViolation,
    MatchOracle,
    PreconditionError,
    SortName,
)
from acr_core.instance_mem import InMemoryInstance, same_schema
from acr_core.homomorphism import InstanceHom, compose
from acr_core.matching import BacktrackingMatcher
from acr_core.colimits import pushout

Glue = Callable[[InstanceHom, InstanceHom], Tuple[InstanceHom, InstanceHom]]

_DEFAULT_ORACLE = BacktrackingMatcher()

# Outcome statuses of rewrite_outcome
APPLIED = "applied"
INAPPLICABLE = "inapplicable"
INDEX_OUT_OF_RANGE = "index_out_of_range"


# -------------------------
# Helpers
# -------------------------


def _require_composable(L: InstanceHom, m: InstanceHom) -> None:
    if L.codom is not m.dom and L.codom != m.dom:
        raise PreconditionError("match_domain", "codomain of the rule's left leg must be the domain of the match")


def _deleted(L: InstanceHom, sort: SortName) -> np.ndarray:
    """Pattern elements of `sort` outside the image of L, ascending."""
    in_image = np.zeros(L.codom.element_count(sort), dtype=bool)
    in_image[L[sort]] = True
    return np.flatnonzero(~in_image)


def _orphans(L: InstanceHom, m: InstanceHom, sort: SortName) -> np.ndarray:
    """Host images of deleted pattern elements: sorted ascending, duplicate-free."""
    return np.unique(m[sort][_deleted(L, sort)])


def _orphan_mask(L: InstanceHom, m: InstanceHom, sort: SortName) -> np.ndarray:
    mask = np.zeros(m.codom.element_count(sort), dtype=bool)
    mask[_orphans(L, m, sort)] = True
    return mask


# -------------------------
# Applicability checker
# -------------------------


def id_condition(L: InstanceHom, m: InstanceHom) -> bool:
    """
    Identification condition.

    Fails when two distinct deleted pattern elements share a host image, or when a
    preserved pattern element shares its host image with a deleted one. Trivially
    satisfied by injective matches.
    """
    _require_composable(L, m)
    for s in L.schema.sorts:
        orphan_vals = m[s][_deleted(L, s)]
        if np.unique(orphan_vals).size != orphan_vals.size:
            return False
        if np.isin(m[s][L.image(s)], orphan_vals).any():
            return False
    return True


def identification_violations(L: InstanceHom, m: InstanceHom) -> List[IdentificationViolation]:
    """Every pair of pattern elements that breaks the identification condition."""
    _require_composable(L, m)
    out: List[IdentificationViolation] = []
    for s in L.schema.sorts:
        first_deleted: Dict[int, int] = {}
        for p in _deleted(L, s).tolist():
            h = int(m[s][p])
            if h in first_deleted:
                out.append(IdentificationViolation(s, "duplicate_orphan", (first_deleted[h], p), h))
            else:
                first_deleted[h] = p
        for p in L.image(s).tolist():
            h = int(m[s][p])
            if h in first_deleted:
                out.append(IdentificationViolation(s, "preserved_orphan", (p, first_deleted[h]), h))
    return out


def _dangling(L: InstanceHom, m: InstanceHom, first_only: bool) -> List[DanglingViolation]:
    G = m.codom
    orphan = {s: _orphan_mask(L, m, s) for s in L.schema.sorts}
    out: List[DanglingViolation] = []
    # every foreign key of the schema, not only those the pattern mentions
    for c in L.schema.homs:
        col = G.column(c.name)
        survivors = np.flatnonzero(~orphan[c.src])
        for x in survivors[orphan[c.tgt][col[survivors]]].tolist():
            out.append(DanglingViolation(c.name, c.src, x, c.tgt, int(col[x])))
            if first_only:
                return out
    return out


def dangling_condition(L: InstanceHom, m: InstanceHom) -> bool:
    """
    Dangling condition.

    Fails when a host element that survives deletion holds a foreign key into an orphan.
    For graphs: deleting a vertex is only allowed if every incident edge is deleted too.
    """
    _require_composable(L, m)
    return not _dangling(L, m, first_only=True)


def dangling_violations(L: InstanceHom, m: InstanceHom) -> List[DanglingViolation]:
    _require_composable(L, m)
    return _dangling(L, m, first_only=False)


def valid_dpo(L: InstanceHom, m: InstanceHom) -> bool:
    """A pushout complement of (L, m) exists iff both gluing conditions hold."""
    return id_condition(L, m) and dangling_condition(L, m)


def explain_dpo(L: InstanceHom, m: InstanceHom) -> DPOReport:
    return DPOReport(
        identification=tuple(identification_violations(L, m)),
        dangling=tuple(dangling_violations(L, m)),
    )


# -------------------------
# Pushout complement
# -------------------------


class PushoutComplement(NamedTuple):
    """k: I -> K and g: K -> G; unpacks as (k, g)."""
    k: InstanceHom
    g: InstanceHom

    @property
    def context(self) -> InMemoryInstance:
        return self.k.codom


def pushout_complement(L: InstanceHom, m: InstanceHom) -> PushoutComplement:
    """
    Build K, k: I -> K and g: K -> G such that G is the pushout of L <-l- I -k-> K.

    Precondition: valid_dpo(L, m). Not re-checked; violations surface as ConsistencyError.

    Per sort:
    - orphans: sorted host images of deleted pattern elements
    - non_orphans: remaining host elements, ascending; these become K's elements in order
    - offset[i]: number of orphans strictly below host index i, so a surviving host
      element i becomes K element i - offset[i]
    Then every column of G is restricted to non_orphans of its source sort, foreign-key
    values renumbered with the target sort's offsets.
    """
    _require_composable(L, m)
    G = m.codom
    schema = G.schema
    Lm = compose(L, m)

    K = InMemoryInstance(schema)
    orphan_masks: Dict[SortName, np.ndarray] = {}
    non_orphans: Dict[SortName, np.ndarray] = {}
    offsets: Dict[SortName, np.ndarray] = {}
    k_components: Dict[SortName, np.ndarray] = {}

    for s in schema.sorts:
        orphans = _orphans(L, m, s)
        is_orphan = np.zeros(G.element_count(s), dtype=bool)
        is_orphan[orphans] = True
        orphan_masks[s] = is_orphan

        non_orphans[s] = np.flatnonzero(~is_orphan)
        K.add_elements(s, non_orphans[s].size)

        # single ascending sweep: orphans strictly below each index
        offset = np.cumsum(is_orphan, dtype=np.int64) - is_orphan.astype(np.int64)
        offsets[s] = offset

        comp = Lm[s]
        hit = np.flatnonzero(is_orphan[comp])
        if hit.size:
            i = int(hit[0])
            raise ConsistencyError(f"Interface {s} #{i} maps to {int(comp[i])} which was flagged as an orphan")
        k_components[s] = comp - offset[comp]

    # columns may cross sorts, so every offset table must be complete first
    for c in schema.homs:
        vals = G.column(c.name)[non_orphans[c.src]]
        dangling = np.flatnonzero(orphan_masks[c.tgt][vals])
        if dangling.size:
            i = int(non_orphans[c.src][dangling[0]])
            raise ConsistencyError(
                f"pushout complement: {c.src} #{i} survives but its {c.name!r} key {int(vals[dangling[0]])} was flagged as an orphan"
            )
        K.set_column(c.name, vals - offsets[c.tgt][vals])
    for a in schema.attrs:
        col = G.column(a.name)
        K.set_column(a.name, [col[j] for j in non_orphans[a.src].tolist()])

    k = InstanceHom(L.dom, K, k_components)
    if not k.is_natural():
        raise ConsistencyError("pushout complement: k is not natural")
    g = InstanceHom(K, G, non_orphans)
    if not g.is_natural():
        raise ConsistencyError("pushout complement: g is not natural")
    return PushoutComplement(k, g)


# -------------------------
# Orchestration
# -------------------------


def _check_rule(L: InstanceHom, R: InstanceHom) -> None:
    same_schema(L.dom, L.codom, R.codom, context="rule")
    if L.dom is not R.dom and L.dom != R.dom:
        raise PreconditionError("shared_interface", "left and right legs must share the interface I")
    bad_l = L.naturality_violations()
    if bad_l:
        raise PreconditionError("naturality", f"left leg l: I -> L fails at {bad_l[0]}")
    bad_r = R.naturality_violations()
    if bad_r:
        raise PreconditionError("naturality", f"right leg r: I -> R fails at {bad_r[0]}")


def rewrite_match(L: InstanceHom, R: InstanceHom, m: InstanceHom, *, glue: Glue = pushout) -> InMemoryInstance:
    """
    Apply the rule (L, R) at the explicit match m and return the rewritten instance.

    Raises PreconditionError naming the failed check: 'schema', 'shared_interface',
    'match_domain', 'naturality' or 'valid_dpo'.
    """
    _check_rule(L, R)
    same_schema(L.codom, m.codom, context="match")
    _require_composable(L, m)
    bad_m = m.naturality_violations()
    if bad_m:
        raise PreconditionError("naturality", f"match m: L -> G fails at {bad_m[0]}")
    if not valid_dpo(L, m):
        raise PreconditionError("valid_dpo", json.dumps(explain_dpo(L, m).to_jsonable(), sort_keys=True))

    k, _ = pushout_complement(L, m)
    l1, _ = glue(R, k)
    return l1.codom


@dataclass(frozen=True)
class RewriteOutcome:
    """
    Result of a searched rewrite.

    status
    - 'applied': result holds the rewritten instance, match the match used
    - 'inapplicable': no candidate match satisfied valid_dpo
    - 'index_out_of_range': fewer than m_index + 1 valid matches exist
    """
    status: str
    result: Optional[InMemoryInstance] = None
    n_candidates: int = 0
    n_valid: int = 0
    match: Optional[InstanceHom] = None
    rejections: Tuple[DPOReport, ...] = field(default_factory=tuple)

    @property
    def applied(self) -> bool:
        return self.status == APPLIED


def rewrite_outcome(
    L: InstanceHom,
    R: InstanceHom,
    G: InMemoryInstance,
    monic: bool = False,
    m_index: int = 0,
    *,
    oracle: Optional[MatchOracle] = None,
    glue: Glue = pushout,
    collect_rejections: bool = False,
) -> RewriteOutcome:
    """
    Search for matches L.codom -> G (oracle order), keep those satisfying valid_dpo and
    apply the rule at the m_index-th one. Enumeration stops once that match is found.
    """
    _check_rule(L, R)
    same_schema(L.codom, G, context="host")
    if m_index < 0:
        return RewriteOutcome(INDEX_OUT_OF_RANGE)

    oracle = oracle if oracle is not None else _DEFAULT_ORACLE
    n_candidates = 0
    n_valid = 0
    rejections: List[DPOReport] = []
    for m in oracle.homomorphisms(L.codom, G, monic=monic):
        n_candidates += 1
        if not valid_dpo(L, m):
            if collect_rejections:
                rejections.append(explain_dpo(L, m))
            continue
        if n_valid == m_index:
            result = rewrite_match(L, R, m, glue=glue)
            return RewriteOutcome(APPLIED, result, n_candidates, n_valid + 1, m, tuple(rejections))
        n_valid += 1

    status = INAPPLICABLE if n_valid == 0 else INDEX_OUT_OF_RANGE
    return RewriteOutcome(status, None, n_candidates, n_valid, None, tuple(rejections))


def rewrite(
    L: InstanceHom,
    R: InstanceHom,
    G: InMemoryInstance,
    monic: bool = False,
    m_index: int = 0,
    *,
    oracle: Optional[MatchOracle] = None,
    glue: Glue = pushout,
) -> Optional[InMemoryInstance]:
    """Rewrite G at its m_index-th valid match; None when there is no such match."""
    return rewrite_outcome(L, R, G, monic, m_index, oracle=oracle, glue=glue).result


# -------------------------
# Rules
# -------------------------


@dataclass(frozen=True)
class Rule:
    """A DPO rule L <-l- I -r-> R, stored as its two legs."""
    L: InstanceHom
    R: InstanceHom
    name: str = "rule"

    @classmethod
    def from_instances(
        cls,
        interface: InMemoryInstance,
        pattern: InMemoryInstance,
        replacement: InMemoryInstance,
        l: Optional[Mapping[SortName, Sequence[int]]] = None,
        r: Optional[Mapping[SortName, Sequence[int]]] = None,
        name: str = "rule",
    ) -> "Rule":
        return cls(InstanceHom(interface, pattern, l), InstanceHom(interface, replacement, r), name)

    @property
    def interface(self) -> InMemoryInstance:
        return self.L.dom

    @property
    def pattern(self) -> InMemoryInstance:
        return self.L.codom

    @property
    def replacement(self) -> InMemoryInstance:
        return self.R.codom

    def deleted(self, sort: SortName) -> np.ndarray:
        return _deleted(self.L, sort)

    def created(self, sort: SortName) -> np.ndarray:
        return _deleted(self.R, sort)

    def check(self) -> None:
        _check_rule(self.L, self.R)

    def matches(self, G: InMemoryInstance, monic: bool = False, oracle: Optional[MatchOracle] = None) -> Iterator[InstanceHom]:
        """Lazily yield the matches into G that satisfy valid_dpo."""
        oracle = oracle if oracle is not None else _DEFAULT_ORACLE
        for m in oracle.homomorphisms(self.pattern, G, monic=monic):
            if valid_dpo(self.L, m):
                yield m

    def apply(self, G: InMemoryInstance, monic: bool = False, m_index: int = 0, **kwargs: Any) -> Optional[InMemoryInstance]:
        return rewrite(self.L, self.R, G, monic, m_index, **kwargs)

    def outcome(self, G: InMemoryInstance, monic: bool = False, m_index: int = 0, **kwargs: Any) -> RewriteOutcome:
        return rewrite_outcome(self.L, self.R, G, monic, m_index, **kwargs)


__all__ = [
    "id_condition",
    "identification_violations",
    "dangling_condition",
    "dangling_violations",
    "valid_dpo",
    "explain_dpo",
    "PushoutComplement",
    "pushout_complement",
    "rewrite_match",
    "RewriteOutcome",
    "rewrite_outcome",
    "rewrite",
    "Rule",
    "APPLIED",
    "INAPPLICABLE",
    "INDEX_OUT_OF_RANGE",
]
