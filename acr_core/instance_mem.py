# Copyright (c) 2025 ACR Maintainers
# License: MIT
"""
In-memory InstanceOps backend for attributed C-sets.

Provides:
- InMemoryInstance: a basic, single-process implementation of InstanceOps suitable for
  rewriting experiments and tests.

Data layout
- _counts: sort -> number of elements (indices are dense, 0..n-1)
- _homs: foreign-key column -> numpy int64 array of target indices
- _attrs: attribute column -> list of opaque values

Notes
- Freshly added elements whose foreign keys are not supplied hold UNSET (-1) until assigned;
  validate() rejects instances that still contain unset or out-of-range keys.
- Incidence lookup is a linear scan over the column (no secondary indices are kept).

References
- Protocols and schema descriptor: acr_core.interfaces
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from acr_core.interfaces import (
    ColumnName,
    Index,
    InstanceOps,
    Schema,
    SchemaMismatchError,
    SortName,
)

UNSET = -1


class InMemoryInstance(InstanceOps):
    """
    In-memory implementation of InstanceOps.

    Instances compare equal when they share a schema, have the same element counts and
    identical column data (foreign keys and attributes).
    """

    def __init__(self, schema: Schema) -> None:
        self.schema = schema
        self._counts: Dict[SortName, int] = {s: 0 for s in schema.sorts}
        self._homs: Dict[ColumnName, np.ndarray] = {c.name: np.zeros(0, dtype=np.int64) for c in schema.homs}
        self._attrs: Dict[ColumnName, List[Any]] = {a.name: [] for a in schema.attrs}

    # ---- Elements ----

    def element_count(self, sort: SortName) -> int:
        try:
            return self._counts[sort]
        except KeyError:
            raise KeyError(f"Schema {self.schema.name!r} has no sort {sort!r}") from None

    def parts(self, sort: SortName) -> range:
        return range(self.element_count(sort))

    def add_elements(self, sort: SortName, n: int, **columns: Sequence[Any]) -> range:
        """
        Append n fresh elements of `sort`, optionally with column values for them.

        Columns not supplied are filled with UNSET (foreign keys) or None (attributes).
        """
        n = int(n)
        if n < 0:
            raise ValueError("cannot add a negative number of elements")
        start = self.element_count(sort)
        for name in columns:
            spec = self.schema.column(name)
            if spec.src != sort:
                raise ValueError(f"column {name!r} is defined on sort {spec.src!r}, not {sort!r}")

        for c in self.schema.homs_from(sort):
            vals = columns.get(c.name)
            if vals is None:
                fresh = np.full(n, UNSET, dtype=np.int64)
            else:
                fresh = np.asarray(list(vals), dtype=np.int64)
                if fresh.shape != (n,):
                    raise ValueError(f"column {c.name!r}: expected {n} values, got {fresh.size}")
            self._homs[c.name] = np.concatenate([self._homs[c.name], fresh])
        for a in self.schema.attrs_of(sort):
            vals = columns.get(a.name)
            if vals is None:
                fresh_attr: List[Any] = [None] * n
            else:
                fresh_attr = list(vals)
                if len(fresh_attr) != n:
                    raise ValueError(f"column {a.name!r}: expected {n} values, got {len(fresh_attr)}")
            self._attrs[a.name].extend(fresh_attr)

        self._counts[sort] = start + n
        return range(start, start + n)

    def add_element(self, sort: SortName, **values: Any) -> Index:
        """Append a single element; keyword arguments give its column values."""
        r = self.add_elements(sort, 1, **{k: [v] for k, v in values.items()})
        return r[0]

    # ---- Columns ----

    def column(self, name: ColumnName) -> Any:
        """Return a copy of the column: int64 array for foreign keys, list for attributes."""
        if name in self._homs:
            return self._homs[name].copy()
        if name in self._attrs:
            return list(self._attrs[name])
        raise KeyError(f"Schema {self.schema.name!r} has no column {name!r}")

    def set_column(self, name: ColumnName, values: Sequence[Any]) -> None:
        spec = self.schema.column(name)
        n = self.element_count(spec.src)
        if name in self._homs:
            arr = np.asarray(list(values) if not isinstance(values, np.ndarray) else values, dtype=np.int64)
            if arr.shape != (n,):
                raise ValueError(f"column {name!r}: expected {n} values, got {arr.size}")
            self._homs[name] = arr.copy()
        else:
            vals = list(values)
            if len(vals) != n:
                raise ValueError(f"column {name!r}: expected {n} values, got {len(vals)}")
            self._attrs[name] = vals

    def value(self, name: ColumnName, i: Index) -> Any:
        spec = self.schema.column(name)
        self._check_index(spec.src, i)
        if name in self._homs:
            return int(self._homs[name][i])
        return self._attrs[name][i]

    def set_value(self, name: ColumnName, i: Index, v: Any) -> None:
        spec = self.schema.column(name)
        self._check_index(spec.src, i)
        if name in self._homs:
            self._homs[name][i] = int(v)
        else:
            self._attrs[name][i] = v

    def incident(self, name: ColumnName, target: Any) -> List[Index]:
        """Return source indices whose value in column `name` equals `target`, ascending."""
        if name in self._homs:
            return [int(i) for i in np.flatnonzero(self._homs[name] == int(target))]
        if name in self._attrs:
            return [i for i, v in enumerate(self._attrs[name]) if v == target]
        raise KeyError(f"Schema {self.schema.name!r} has no column {name!r}")

    # ---- Integrity ----

    def _check_index(self, sort: SortName, i: Index) -> None:
        if not (0 <= int(i) < self.element_count(sort)):
            raise IndexError(f"{sort} #{i} out of range (n={self.element_count(sort)})")

    def validate(self) -> None:
        """Raise ValueError unless every foreign key references a valid target index."""
        for c in self.schema.homs:
            col = self._homs[c.name]
            n_tgt = self._counts[c.tgt]
            bad = np.flatnonzero((col < 0) | (col >= n_tgt))
            if bad.size:
                i = int(bad[0])
                raise ValueError(
                    f"column {c.name!r}: {c.src} #{i} -> {int(col[i])} is not a valid {c.tgt} index (n={n_tgt})"
                )

    def is_valid(self) -> bool:
        try:
            self.validate()
        except ValueError:
            return False
        return True

    # ---- Copy / compare ----

    def copy(self) -> "InMemoryInstance":
        out = InMemoryInstance(self.schema)
        out._counts = dict(self._counts)
        out._homs = {k: v.copy() for k, v in self._homs.items()}
        out._attrs = {k: list(v) for k, v in self._attrs.items()}
        return out

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InMemoryInstance):
            return NotImplemented
        if self is other:
            return True
        return (
            self.schema == other.schema
            and self._counts == other._counts
            and all(np.array_equal(self._homs[k], other._homs[k]) for k in self._homs)
            and self._attrs == other._attrs
        )

    __hash__ = None  # type: ignore[assignment]

    def summary(self) -> Mapping[str, int]:
        return {f"n_{s}": n for s, n in self._counts.items()}

    def __repr__(self) -> str:
        counts = ", ".join(f"{s}={n}" for s, n in self._counts.items())
        return f"InMemoryInstance({self.schema.name}: {counts})"


def same_schema(*instances: InMemoryInstance, context: str = "") -> None:
    """Raise SchemaMismatchError unless all instances share one schema."""
    schemas = {id(x.schema): x.schema for x in instances}
    first: Optional[Schema] = None
    for s in schemas.values():
        if first is None:
            first = s
        elif s != first:
            raise SchemaMismatchError(f"{context}: {first.name!r} vs {s.name!r}" if context else f"{first.name!r} vs {s.name!r}")


def from_columns(
    schema: Schema,
    counts: Mapping[SortName, int],
    columns: Optional[Mapping[ColumnName, Iterable[Any]]] = None,
) -> InMemoryInstance:
    """Build a validated instance from element counts and full column data."""
    x = InMemoryInstance(schema)
    for s in schema.sorts:
        x.add_elements(s, int(counts.get(s, 0)))
    for name, vals in (columns or {}).items():
        x.set_column(name, list(vals))
    x.validate()
    return x


__all__ = ["InMemoryInstance", "UNSET", "same_schema", "from_columns"]
