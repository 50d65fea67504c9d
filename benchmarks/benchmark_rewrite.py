# Copyright (c) 2025 ACR Maintainers
# License: MIT
"""
Rewrite micro-benchmark: garbage-collect isolated vertices.

Constructs a random directed multigraph with:
- n_vertices: vertices touched by random edges (some may still end up isolated)
- n_edges: edges with endpoints drawn uniformly (numpy default_rng(seed))
- n_isolated: extra vertices appended with no incident edges

then runs the pipeline with a single rule, "delete one vertex", until it no longer applies.
The dangling condition rejects every vertex that still has an incident edge, so the run
removes exactly the isolated vertices and leaves every edge in place.

Uses:
- Storage / graph helpers: acr_core.graphs
- Rule and pipeline: acr_core.dpo.Rule, acr_pipeline.pipeline.RewritePipeline

Emits a single JSON line when run as a script:
{"benchmark":"rewrite_gc","n_vertices":...,"applied":A,"remaining_nv":V,"remaining_ne":E,"elapsed_ms":t,...}
"""

from __future__ import annotations

import argparse
import json
import time
from typing import Dict, Optional, Tuple

import numpy as np

from acr_core.dpo import Rule
from acr_core.graphs import Graph, add_edges, add_vertices, ne, nv
from acr_core.instance_mem import InMemoryInstance
from acr_pipeline.pipeline import PipelineConfig, RewriteConfig, RewritePipeline


def delete_vertex_rule() -> Rule:
    """I = empty, L = one vertex, R = empty: deletes a vertex only if nothing is attached."""
    empty = Graph()
    return Rule.from_instances(empty, Graph(1), Graph(), name="delete_vertex")


def _random_graph(n_vertices: int, n_edges: int, n_isolated: int, seed: int) -> Tuple[InMemoryInstance, int]:
    """Return the graph and its number of isolated vertices."""
    rng = np.random.default_rng(seed)
    g = Graph(n_vertices)
    if n_vertices > 0 and n_edges > 0:
        srcs = rng.integers(0, n_vertices, size=n_edges)
        tgts = rng.integers(0, n_vertices, size=n_edges)
        add_edges(g, srcs.tolist(), tgts.tolist())
    add_vertices(g, n_isolated)

    touched = np.zeros(nv(g), dtype=bool)
    touched[g.column("src")] = True
    touched[g.column("tgt")] = True
    return g, int((~touched).sum())


def run_once(
    n_vertices: int,
    n_edges: int,
    n_isolated: int,
    seed: int = 0,
    *,
    csv_path: Optional[str] = None,
    jsonl_path: Optional[str] = None,
    trace_rejections: bool = False,
) -> Dict[str, float | int | str]:
    """
    Execute the benchmark once and return the metrics dict.

    csv_path / jsonl_path, when given, receive the pipeline's per-step artifacts.
    """
    n_vertices = int(n_vertices)
    n_edges = int(n_edges)
    n_isolated = int(n_isolated)

    g, isolated = _random_graph(n_vertices, n_edges, n_isolated, int(seed))
    # one step per vertex at most, plus the final step that finds nothing to delete
    cfg = PipelineConfig(
        rewrite=RewriteConfig(max_steps=nv(g) + 1, trace_rejections=trace_rejections),
        csv_path=csv_path,
        jsonl_path=jsonl_path,
    )

    with RewritePipeline.from_config([delete_vertex_rule()], cfg) as pipe:
        t0 = time.perf_counter()
        final, history = pipe.run(g)
        t1 = time.perf_counter()

    applied = sum(1 for h in history if h["status"] == "applied")
    out: Dict[str, float | int | str] = {
        "benchmark": "rewrite_gc",
        "n_vertices": n_vertices,
        "n_edges": n_edges,
        "n_isolated": n_isolated,
        "seed": int(seed),
        "isolated_initial": isolated,
        "applied": int(applied),
        "candidates_examined": int(sum(h["n_candidates"] for h in history)),
        "remaining_nv": nv(final),
        "remaining_ne": ne(final),
        "elapsed_ms": float((t1 - t0) * 1000.0),
    }
    return out


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Isolated-vertex garbage collection benchmark")
    parser.add_argument("--n-vertices", type=int, default=20, help="Vertices touched by random edges (default: 20)")
    parser.add_argument("--n-edges", type=int, default=30, help="Random edges (default: 30)")
    parser.add_argument("--n-isolated", type=int, default=5, help="Extra isolated vertices (default: 5)")
    parser.add_argument("--seed", type=int, default=0, help="RNG seed (default: 0)")
    args = parser.parse_args()

    res = run_once(args.n_vertices, args.n_edges, args.n_isolated, args.seed)
    print(json.dumps(res, separators=(",", ":")))
