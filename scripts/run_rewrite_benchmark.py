#!/usr/bin/env python3
# Copyright (c) 2025 ACR Maintainers
# License: MIT
"""
Rewrite benchmark runner (Hydra-style config loader, import-safe).

Features
- Loads a portable YAML config (default: configs/benchmark.yaml).
- Dotlist overrides via CLI (e.g., 'benchmark.n_edges=50 benchmark.seeds=[0,1]
  rewrite.trace_rejections=true').
- Runs benchmarks/benchmark_rewrite.run_once once per seed.
- Artifacts in a timestamped run dir: config.json, summary.csv, summary.jsonl and, with
  trace_steps enabled, per-seed step traces (steps_seed<k>.csv / .jsonl).
- Prints a one-line JSON summary to stdout.

Actionable error exits (code=2):
- Missing or malformed config file.
- Invalid benchmark parameters (negative sizes, empty seed list).

Usage:
  python -m scripts.run_rewrite_benchmark benchmark.n_vertices=50 experiment.artifacts_dir=artifacts/gc
"""

from __future__ import annotations

import json
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, MutableMapping, Optional, Sequence, Tuple

import yaml  # pyyaml (runtime dep)

from benchmarks.benchmark_rewrite import run_once
from acr_pipeline.logging_utils import ExperimentLogger, JsonIO, make_run_dir


# -------------------------
# Config
# -------------------------


@dataclass(frozen=True)
class BenchmarkConfig:
    n_vertices: int = 20
    n_edges: int = 30
    n_isolated: int = 5
    seeds: Tuple[int, ...] = (0,)
    # Write per-step pipeline artifacts for every seed
    trace_steps: bool = False
    trace_rejections: bool = False

    def __post_init__(self) -> None:
        for name in ("n_vertices", "n_edges", "n_isolated"):
            if getattr(self, name) < 0:
                raise ValueError(f"benchmark.{name} must be >= 0")
        if not self.seeds:
            raise ValueError("benchmark.seeds must not be empty")
        if self.n_edges > 0 and self.n_vertices == 0:
            raise ValueError("benchmark.n_edges > 0 requires benchmark.n_vertices > 0")


# -------------------------
# Utilities
# -------------------------


def _base_dir() -> Path:
    # project root, assuming this script resides under ./scripts/
    return Path(__file__).resolve().parent.parent


def _configs_dir() -> Path:
    return _base_dir() / "configs"


def _load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"YAML at {path} must be a mapping at top-level.")
    return data


def _nested_set(d: MutableMapping[str, Any], keys: Sequence[str], value: Any) -> None:
    cur = d
    for k in keys[:-1]:
        if k not in cur or not isinstance(cur[k], dict):
            cur[k] = {}
        cur = cur[k]
    cur[keys[-1]] = value


def _parse_dotlist(argv: Sequence[str]) -> Dict[str, Any]:
    """
    Parse key=value pairs (dotlist style) from argv.
    Values go through yaml.safe_load, so 'true', '12', '[0, 1]' become bool, int, list.
    Example: ["benchmark.n_edges=50", "benchmark.seeds=[0,1,2]"]
    """
    overrides: Dict[str, Any] = {}
    for tok in argv:
        if "=" not in tok:
            continue
        key, val = tok.split("=", 1)
        _nested_set(overrides, key.strip().split("."), yaml.safe_load(val.strip()))
    return overrides


def _deep_update(dst: Dict[str, Any], src: Mapping[str, Any]) -> Dict[str, Any]:
    out = dict(dst)
    for k, v in src.items():
        if isinstance(v, Mapping) and isinstance(out.get(k), Mapping):
            out[k] = _deep_update(out[k], v)
        else:
            out[k] = v
    return out


def _cfg_to_benchmark_config(cfg_map: Mapping[str, Any]) -> BenchmarkConfig:
    bench_map = cfg_map.get("benchmark", {}) or {}
    rewrite_map = cfg_map.get("rewrite", {}) or {}
    seeds = bench_map.get("seeds", BenchmarkConfig.seeds)
    if isinstance(seeds, int):
        seeds = [seeds]
    return BenchmarkConfig(
        n_vertices=int(bench_map.get("n_vertices", BenchmarkConfig.n_vertices)),
        n_edges=int(bench_map.get("n_edges", BenchmarkConfig.n_edges)),
        n_isolated=int(bench_map.get("n_isolated", BenchmarkConfig.n_isolated)),
        seeds=tuple(int(s) for s in seeds),
        trace_steps=bool(bench_map.get("trace_steps", BenchmarkConfig.trace_steps)),
        trace_rejections=bool(rewrite_map.get("trace_rejections", BenchmarkConfig.trace_rejections)),
    )


def _exit2(msg: str) -> "NoReturn":  # type: ignore[name-defined]
    sys.stderr.write(msg.rstrip() + "\n")
    sys.exit(2)


# -------------------------
# Main
# -------------------------


def run_main(
    config_path: Optional[str] = None,
    overrides: Sequence[str] = (),
    artifacts_dir: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Run the benchmark for every configured seed and return a summary dict.

    Args:
        config_path: YAML config; defaults to configs/benchmark.yaml.
        overrides: dotlist tokens applied on top of the YAML.
        artifacts_dir: root for the run dir; defaults to experiment.artifacts_dir from the
            config, then 'artifacts/rewrite'.

    Returns:
        {"config", "runs", "run_dir", "artifacts"} where runs holds one run_once() result
        per seed.

    Raises:
        FileNotFoundError: config file missing.
        ValueError: malformed config or invalid parameters.
    """
    path = Path(config_path) if config_path else _configs_dir() / "benchmark.yaml"
    if not path.exists():
        raise FileNotFoundError(f"Missing config at {path}.")
    merged = _deep_update(_load_yaml(path), _parse_dotlist(overrides))
    cfg = _cfg_to_benchmark_config(merged)

    if artifacts_dir is None:
        exp_map = merged.get("experiment", {}) or {}
        artifacts_dir = str(exp_map.get("artifacts_dir", "artifacts/rewrite"))
    run_dir = make_run_dir(Path(artifacts_dir), prefix="rewrite_gc")
    JsonIO.write(run_dir / "config.json", asdict(cfg))

    summary_csv = run_dir / "summary.csv"
    summary_jsonl = run_dir / "summary.jsonl"
    runs: List[Dict[str, Any]] = []
    with ExperimentLogger(csv_path=summary_csv, jsonl_path=summary_jsonl) as logger:
        for seed in cfg.seeds:
            step_csv = step_jsonl = None
            if cfg.trace_steps:
                step_csv = str(run_dir / f"steps_seed{seed}.csv")
                step_jsonl = str(run_dir / f"steps_seed{seed}.jsonl")
            res = run_once(
                cfg.n_vertices,
                cfg.n_edges,
                cfg.n_isolated,
                seed,
                csv_path=step_csv,
                jsonl_path=step_jsonl,
                trace_rejections=cfg.trace_rejections,
            )
            logger.log_step(res)
            runs.append(res)

    return {
        "config": asdict(cfg),
        "runs": runs,
        "run_dir": str(run_dir),
        "artifacts": {"summary_csv": str(summary_csv), "summary_jsonl": str(summary_jsonl)},
    }


def main() -> None:
    argv = sys.argv[1:]
    config_path = None
    rest: List[str] = []
    for tok in argv:
        if tok.startswith("--config="):
            config_path = tok.split("=", 1)[1]
        else:
            rest.append(tok)
    try:
        result = run_main(config_path=config_path, overrides=rest)
    except (FileNotFoundError, ValueError) as e:
        _exit2(f"run_rewrite_benchmark: {e}")
    # Single-line JSON on stdout
    print(json.dumps(result, sort_keys=True))


if __name__ == "__main__":
    main()


__all__ = ["run_main", "BenchmarkConfig"]
