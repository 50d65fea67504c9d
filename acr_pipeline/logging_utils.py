# Copyright (c) 2025 ACR Maintainers
# License: MIT
"""
Artifact logging for rewrite runs.

The rewriting core never logs; everything observable about a run is written here as
files under a run directory.

Exports:
- CSVLogger: append-safe CSV writer with header-once semantics (one row per rewrite step).
- JSONLLogger: newline-delimited JSON writer (one trace record per rewrite step).
- ExperimentLogger: composite facade over CSV/JSONL.
- JsonIO: tiny JSON helpers.
- make_run_dir: create a timestamped run directory for artifacts.
- to_jsonable: convert numpy scalars/arrays, dataclasses and diagnostic reports for json.
"""

from __future__ import annotations

import csv
import json
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

import numpy as np


# -------------------------
# Filesystem helpers
# -------------------------


def ensure_dir(path: Path) -> None:
    """mkdir -p."""
    Path(path).mkdir(parents=True, exist_ok=True)


def timestamp_id() -> str:
    """UTC timestamp used to name run directories, e.g. 20250101T120000."""
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")


def make_run_dir(root: Path, *, prefix: Optional[str] = None) -> Path:
    """
    Create root/<prefix>_<timestamp> (or root/<timestamp>) and return it.

    Example:
        root=artifacts, prefix=None    => artifacts/20251004T201500/
        root=artifacts, prefix=rewrite => artifacts/rewrite_20251004T201500/

    Runs started within the same second get a numeric suffix (_1, _2, ...).
    """
    root = Path(root)
    ensure_dir(root)
    tid = timestamp_id()
    name = f"{prefix}_{tid}" if prefix else tid
    d = root / name
    k = 0
    while d.exists():
        k += 1
        d = root / f"{name}_{k}"
    ensure_dir(d)
    return d


# -------------------------
# JSON conversion
# -------------------------


def to_jsonable(obj: Any) -> Any:
    """Recursively convert numpy types, dataclasses and report objects into plain JSON data."""
    if hasattr(obj, "to_jsonable"):
        return obj.to_jsonable()
    if is_dataclass(obj) and not isinstance(obj, type):
        return to_jsonable(asdict(obj))
    if isinstance(obj, Mapping):
        return {str(k): to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, range)):
        return [to_jsonable(v) for v in obj]
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.generic):
        return obj.item()
    if isinstance(obj, Path):
        return str(obj)
    return obj


# -------------------------
# CSV metrics logger
# -------------------------


class CSVLogger:
    """
    CSV sink for per-step rewrite counters; reopening an existing file appends without a second header.

    Parameters
    ----------
    path : str | Path
        Target CSV file path.
    fieldnames : list[str] | None
        None means the sorted keys of the first row written.
        Column order of the file.
    write_header : bool
        Emit the header row when the file is new or empty.
    allow_extra : bool
        Unknown keys are dropped when True and raise ValueError when False.
    """

    def __init__(
        self,
        path: Union[str, Path],
        fieldnames: Optional[Sequence[str]] = None,
        write_header: bool = True,
        allow_extra: bool = False,
    ) -> None:
        self.path = Path(path)
        self._fieldnames: Optional[List[str]] = list(fieldnames) if fieldnames is not None else None
        self._write_header = bool(write_header)
        self._allow_extra = bool(allow_extra)

        ensure_dir(self.path.parent)

        # an existing non-empty file already carries its header
        self._header_written = (self.path.exists() and self.path.stat().st_size > 0) or not self._write_header

        self._f = None
        self._writer: Optional[csv.DictWriter] = None

    @property
    def fieldnames(self) -> Optional[List[str]]:
        return None if self._fieldnames is None else list(self._fieldnames)

    def _ensure_open(self) -> None:
        if self._f is None:
            self._f = self.path.open("a", newline="", encoding="utf-8")

    def _ensure_writer(self, row: Mapping[str, Any]) -> None:
        if self._writer is not None:
            return
        if self._fieldnames is None:
            self._fieldnames = sorted(row.keys())

        self._writer = csv.DictWriter(
            self._f,
            fieldnames=self._fieldnames,
            extrasaction="ignore" if self._allow_extra else "raise",
            restval="",
        )
        if not self._header_written:
            self._writer.writeheader()
            self._header_written = True
            self.flush()

    def write_row(self, row: Mapping[str, Any]) -> None:
        """Write a single row mapping; numpy scalars are written as plain numbers."""
        self._ensure_open()
        self._ensure_writer(row)
        self._writer.writerow({k: to_jsonable(v) for k, v in row.items()})

    def write_rows(self, rows: Iterable[Mapping[str, Any]]) -> None:
        for r in rows:
            self.write_row(r)

    def flush(self) -> None:
        if self._f is not None:
            self._f.flush()

    def close(self) -> None:
        try:
            if self._f is not None:
                self._f.flush()
                self._f.close()
        finally:
            self._f = None
            self._writer = None

    def __enter__(self) -> "CSVLogger":
        self._ensure_open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


# -------------------------
# JSONL (newline-delimited JSON) logger
# -------------------------


class JSONLLogger:
    """
    JSONL sink for rewrite traces, one record per line, appended.

    Parameters
    ----------
    path : str | Path
        Target .jsonl file path.
    auto_timestamp : bool
        Add an ISO8601 "ts" field to records that lack one.
    """

    def __init__(self, path: Union[str, Path], auto_timestamp: bool = False) -> None:
        self.path = Path(path)
        self.auto_timestamp = bool(auto_timestamp)
        ensure_dir(self.path.parent)
        self._f = self.path.open("a", encoding="utf-8")

    def log(self, record: Mapping[str, Any]) -> None:
        """Append one record."""
        data = to_jsonable(dict(record))
        if self.auto_timestamp and "ts" not in data:
            data["ts"] = datetime.now(timezone.utc).isoformat()
        self._f.write(json.dumps(data, ensure_ascii=False, sort_keys=True) + "\n")

    def flush(self) -> None:
        if self._f is not None:
            self._f.flush()

    def close(self) -> None:
        try:
            if self._f is not None:
                self._f.flush()
                self._f.close()
        finally:
            self._f = None

    def __enter__(self) -> "JSONLLogger":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def read_jsonl(path: Union[str, Path]) -> List[Any]:
    """Read back every record of a .jsonl file (blank lines skipped)."""
    with Path(path).open("r", encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]


# -------------------------
# Composite Experiment Logger
# -------------------------


class ExperimentLogger:
    """
    Thin facade over a CSV metrics logger and a JSONL trace logger; either may be absent.

    Parameters
    ----------
    csv_path : str | Path | None
        Destination of the per-step counter rows; no CSV sink when None.
    csv_fieldnames : list[str] | None
        Optional explicit field order for CSVLogger. Extra keys are dropped from CSV rows
        when given, since the JSONL trace keeps the full record.
    jsonl_path : str | Path | None
        Destination of the trace records; no JSONL sink when None.
    """

    def __init__(
        self,
        csv_path: Optional[Union[str, Path]] = None,
        csv_fieldnames: Optional[Sequence[str]] = None,
        jsonl_path: Optional[Union[str, Path]] = None,
    ) -> None:
        self.csv: Optional[CSVLogger] = (
            CSVLogger(csv_path, fieldnames=csv_fieldnames, allow_extra=csv_fieldnames is not None) if csv_path else None
        )
        self.jsonl: Optional[JSONLLogger] = JSONLLogger(jsonl_path) if jsonl_path else None

    def log_csv(self, row: Mapping[str, Any]) -> None:
        if self.csv is not None:
            self.csv.write_row(row)

    def log_csv_rows(self, rows: Iterable[Mapping[str, Any]]) -> None:
        if self.csv is not None:
            self.csv.write_rows(rows)

    def log_jsonl(self, record: Mapping[str, Any]) -> None:
        if self.jsonl is not None:
            self.jsonl.log(record)

    def log_step(self, row: Mapping[str, Any], trace: Optional[Mapping[str, Any]] = None) -> None:
        """One CSV counter row plus one JSONL trace record (the row itself when trace is None)."""
        self.log_csv(row)
        self.log_jsonl(row if trace is None else trace)

    def flush(self) -> None:
        if self.csv is not None:
            self.csv.flush()
        if self.jsonl is not None:
            self.jsonl.flush()

    def close(self) -> None:
        if self.csv is not None:
            self.csv.close()
        if self.jsonl is not None:
            self.jsonl.close()

    def __enter__(self) -> "ExperimentLogger":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


# -------------------------
# JSON helpers
# -------------------------


class JsonIO:
    """Read and write whole JSON documents (run configs, summaries)."""

    @staticmethod
    def write(path: Path, obj: Any, *, sort_keys: bool = True, indent: int = 2) -> None:
        path = Path(path)
        ensure_dir(path.parent)
        with path.open("w", encoding="utf-8") as f:
            json.dump(to_jsonable(obj), f, indent=indent, sort_keys=sort_keys)

    @staticmethod
    def read(path: Path) -> Any:
        with Path(path).open("r", encoding="utf-8") as f:
            return json.load(f)


__all__ = [
    "CSVLogger",
    "JSONLLogger",
    "ExperimentLogger",
    "JsonIO",
    "make_run_dir",
    "ensure_dir",
    "timestamp_id",
    "to_jsonable",
    "read_jsonl",
]
