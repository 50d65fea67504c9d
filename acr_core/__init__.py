# Copyright (c) 2025 ACR Maintainers
# License: MIT

"""
Core package for double-pushout rewriting of attributed C-sets.

Primary modules
- interfaces: schema descriptor, Protocols, error taxonomy and diagnostic records
- instance_mem: in-memory attributed instance storage
- homomorphism: natural transformations between instances (compose, identity, ...)
- matching: backtracking homomorphism search (default MatchOracle)
- colimits: union-find pushout (default PushoutPrimitive)
- graphs: Graph / SymmetricGraph / PropertyGraph schemas and helpers
- dpo: applicability checks, pushout complement and rewrite orchestration

This __init__ consolidates common exports for convenience:
    from acr_core import (
        Schema, HomSpec, AttrSpec, InMemoryInstance, InstanceHom,
        valid_dpo, pushout_complement, rewrite_match, rewrite, Rule,
    )
"""

from __future__ import annotations

__all__ = [
    # Schema and errors
    "Schema",
    "HomSpec",
    "AttrSpec",
    "RewriteError",
    "PreconditionError",
    "SchemaMismatchError",
    "ConsistencyError",
    "IdentificationViolation",
    "DanglingViolation",
    "DPOReport",
    # Protocols
    "InstanceOps",
    "MatchOracle",
    "PushoutPrimitive",
    # Default backends
    "InMemoryInstance",
    "InstanceHom",
    "BacktrackingMatcher",
    "UnionFindPushout",
    "compose",
    "identity",
    "pushout",
    "homomorphisms",
    "homomorphism",
    "is_isomorphic",
    # DPO
    "id_condition",
    "dangling_condition",
    "valid_dpo",
    "explain_dpo",
    "pushout_complement",
    "PushoutComplement",
    "rewrite_match",
    "rewrite",
    "rewrite_outcome",
    "RewriteOutcome",
    "Rule",
    # Version
    "__version__",
]

__version__ = "0.1.0"

from .interfaces import (
    Schema,
    HomSpec,
    AttrSpec,
    RewriteError,
    PreconditionError,
    SchemaMismatchError,
    ConsistencyError,
    IdentificationViolation,
    DanglingViolation,
    DPOReport,
    InstanceOps,
    MatchOracle,
    PushoutPrimitive,
)

# Default storage, search and gluing backends
from .instance_mem import InMemoryInstance
from .homomorphism import InstanceHom, compose, identity, is_isomorphic
from .matching import BacktrackingMatcher, homomorphisms, homomorphism
from .colimits import UnionFindPushout, pushout

# Rewriting
from .dpo import (
    id_condition,
    dangling_condition,
    valid_dpo,
    explain_dpo,
    pushout_complement,
    PushoutComplement,
    rewrite_match,
    rewrite,
    rewrite_outcome,
    RewriteOutcome,
    Rule,
)
