# Copyright (c) 2025 ACR Maintainers
# License: MIT
"""
Attributed C-set Rewriting (ACR): core typed interfaces and data models.

This module defines:
- Type aliases for sorts, columns and element indices
- Schema descriptor: HomSpec (foreign-key column), AttrSpec (attribute column), Schema
- Protocols (interfaces) for the collaborators of the rewriting core:
    * InstanceOps (attributed instance storage)
    * MatchOracle (homomorphism enumeration)
    * PushoutPrimitive (gluing along a shared sub-instance)
- Error taxonomy: RewriteError, PreconditionError, SchemaMismatchError, ConsistencyError
- Diagnostic records for the DPO applicability checks:
    * IdentificationViolation, DanglingViolation, DPOReport

Index convention
- Elements of each sort are dense, 0-based integers 0..n-1.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import (
    Any,
    Dict,
    Iterator,
    List,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    Union,
    runtime_checkable,
)

# ---------- Type aliases ----------

SortName = str
ColumnName = str
Index = int  # dense, 0-based element index within a sort


# ---------- Schema descriptor ----------


@dataclass(frozen=True)
class HomSpec:
    """Foreign-key column: a total function from sort `src` to sort `tgt`."""
    name: ColumnName
    src: SortName
    tgt: SortName


@dataclass(frozen=True)
class AttrSpec:
    """Attribute column: a total function from sort `src` into an opaque value domain."""
    name: ColumnName
    src: SortName
    domain: str = "Any"


ColumnSpec = Union[HomSpec, AttrSpec]


@dataclass(frozen=True)
class Schema:
    """Finite set of sorts with named foreign-key and attribute columns."""
    name: str
    sorts: Tuple[SortName, ...]
    homs: Tuple[HomSpec, ...] = ()
    attrs: Tuple[AttrSpec, ...] = ()

    def __post_init__(self) -> None:
        if len(set(self.sorts)) != len(self.sorts):
            raise ValueError(f"Schema {self.name!r}: duplicate sort names")
        names = [c.name for c in self.homs] + [a.name for a in self.attrs]
        if len(set(names)) != len(names):
            raise ValueError(f"Schema {self.name!r}: duplicate column names")
        if set(names) & set(self.sorts):
            raise ValueError(f"Schema {self.name!r}: column names must differ from sort names")
        for c in self.homs:
            if c.src not in self.sorts or c.tgt not in self.sorts:
                raise ValueError(f"Schema {self.name!r}: column {c.name!r} references an undeclared sort")
        for a in self.attrs:
            if a.src not in self.sorts:
                raise ValueError(f"Schema {self.name!r}: attribute {a.name!r} references an undeclared sort")

    def column(self, name: ColumnName) -> ColumnSpec:
        for c in self.homs:
            if c.name == name:
                return c
        for a in self.attrs:
            if a.name == name:
                return a
        raise KeyError(f"Schema {self.name!r} has no column {name!r}")

    def is_hom(self, name: ColumnName) -> bool:
        return any(c.name == name for c in self.homs)

    def homs_from(self, sort: SortName) -> Tuple[HomSpec, ...]:
        return tuple(c for c in self.homs if c.src == sort)

    def homs_into(self, sort: SortName) -> Tuple[HomSpec, ...]:
        return tuple(c for c in self.homs if c.tgt == sort)

    def attrs_of(self, sort: SortName) -> Tuple[AttrSpec, ...]:
        return tuple(a for a in self.attrs if a.src == sort)


# ---------- Errors ----------


class RewriteError(Exception):
    """Base class for all rewriting errors."""


class PreconditionError(RewriteError):
    """
    A caller-supplied input violated a documented precondition.

    Attributes
    - check: short identifier of the failed check (e.g. 'shared_interface', 'valid_dpo')
    - detail: human-readable context naming the offending homomorphism/instance
    """

    def __init__(self, check: str, detail: str = "") -> None:
        self.check = check
        self.detail = detail
        msg = f"Precondition '{check}' failed"
        super().__init__(f"{msg}: {detail}" if detail else msg)


class SchemaMismatchError(PreconditionError):
    """Instances or homomorphisms over different schemas were combined."""

    def __init__(self, detail: str = "") -> None:
        super().__init__("schema", detail)


class ConsistencyError(RewriteError):
    """Internal contract violation (e.g. the applicability checker was bypassed)."""


# ---------- Diagnostics ----------


@dataclass(frozen=True)
class IdentificationViolation:
    """
    Identification-condition failure for one sort.

    kind
    - 'duplicate_orphan': two distinct deleted pattern elements share a host image
    - 'preserved_orphan': a preserved and a deleted pattern element share a host image
    """
    sort: SortName
    kind: str
    pattern_elements: Tuple[Index, Index]
    host_element: Index

    def to_jsonable(self) -> Dict[str, Any]:
        return {
            "sort": self.sort,
            "kind": self.kind,
            "pattern_elements": list(self.pattern_elements),
            "host_element": self.host_element,
        }


@dataclass(frozen=True)
class DanglingViolation:
    """A surviving host element whose foreign key points at an element slated for deletion."""
    column: ColumnName
    src_sort: SortName
    src_element: Index
    tgt_sort: SortName
    tgt_element: Index

    def to_jsonable(self) -> Dict[str, Any]:
        return {
            "column": self.column,
            "src_sort": self.src_sort,
            "src_element": self.src_element,
            "tgt_sort": self.tgt_sort,
            "tgt_element": self.tgt_element,
        }


@dataclass(frozen=True)
class DPOReport:
    """Structured outcome of both applicability checks for one (rule, match) pair."""
    identification: Tuple[IdentificationViolation, ...] = field(default_factory=tuple)
    dangling: Tuple[DanglingViolation, ...] = field(default_factory=tuple)

    @property
    def valid(self) -> bool:
        return not self.identification and not self.dangling

    def to_jsonable(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "identification": [v.to_jsonable() for v in self.identification],
            "dangling": [v.to_jsonable() for v in self.dangling],
        }


# ---------- Protocols (interfaces) ----------


@runtime_checkable
class InstanceOps(Protocol):
    """Storage for a finite attributed instance of a Schema."""

    schema: Schema

    def element_count(self, sort: SortName) -> int:
        ...

    def column(self, name: ColumnName) -> Any:
        """Return the full column over current indices (foreign keys as an int array)."""
        ...

    def set_column(self, name: ColumnName, values: Sequence[Any]) -> None:
        ...

    def add_elements(self, sort: SortName, n: int, **columns: Sequence[Any]) -> range:
        """Append n fresh, contiguously indexed elements; return their index range."""
        ...

    def incident(self, name: ColumnName, target: Index) -> List[Index]:
        ...


@runtime_checkable
class MatchOracle(Protocol):
    """Enumerates natural homomorphisms pattern -> host, optionally injective per sort."""

    def homomorphisms(self, pattern: Any, host: Any, monic: bool = False) -> Iterator[Any]:
        ...


@runtime_checkable
class PushoutPrimitive(Protocol):
    """Glues two instances along a shared sub-instance."""

    def pushout(self, f: Any, g: Any) -> Tuple[Any, Any]:
        """Given f: X -> Y and g: X -> Z, return legs (Y -> W, Z -> W)."""
        ...


__all__ = [
    # Types
    "SortName",
    "ColumnName",
    "Index",
    # Schema
    "HomSpec",
    "AttrSpec",
    "ColumnSpec",
    "Schema",
    # Errors
    "RewriteError",
    "PreconditionError",
    "SchemaMismatchError",
    "ConsistencyError",
    # Diagnostics
    "IdentificationViolation",
    "DanglingViolation",
    "DPOReport",
    # Protocols
    "InstanceOps",
    "MatchOracle",
    "PushoutPrimitive",
]
