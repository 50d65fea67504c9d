# Copyright (c) 2025 ACR Maintainers
# License: MIT
"""
Rewrite pipeline: repeated rule application over an attributed instance.

This module provides:
- Config dataclasses for match selection and run limits
- RewritePipeline, which applies the first applicable rule per step
- Convenience constructor wiring CSV/JSONL artifact loggers from config

Typical flow in one step()
1) For each rule in order:
   - enumerate matches of its pattern into the current instance (lazily)
   - keep those satisfying the gluing conditions; pick the m_index-th
2) The first rule with a selected match is applied; later rules are not tried
3) One CSV counter row and one JSONL trace record are written (if loggers are configured)

References
- Rewriting core: acr_core/dpo.py
- Artifact loggers: acr_pipeline/logging_utils.py
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from acr_core.interfaces import MatchOracle
from acr_core.instance_mem import InMemoryInstance
from acr_core.dpo import APPLIED, INAPPLICABLE, INDEX_OUT_OF_RANGE, Rule
from acr_pipeline.logging_utils import ExperimentLogger


# -------------------------
# Config dataclasses
# -------------------------


@dataclass(frozen=True)
class RewriteConfig:
    # Restrict matches to injective ones
    monic: bool = False
    # 0-based position among valid matches, in oracle order
    m_index: int = 0
    # Upper bound on steps taken by run()
    max_steps: int = 100
    # Attach the DPOReport of every rejected candidate to the JSONL trace
    trace_rejections: bool = False

    def __post_init__(self) -> None:
        if self.m_index < 0:
            raise ValueError("m_index must be >= 0")
        if self.max_steps < 0:
            raise ValueError("max_steps must be >= 0")


@dataclass(frozen=True)
class PipelineConfig:
    rewrite: RewriteConfig = RewriteConfig()
    csv_path: Optional[str] = None
    jsonl_path: Optional[str] = None


# -------------------------
# Pipeline
# -------------------------


class RewritePipeline:
    """
    Applies a fixed, ordered list of rules to an instance one step at a time.

    Attributes
    - rules: rules tried in order each step
    - cfg: PipelineConfig
    - oracle: MatchOracle used for every rule (None selects the default backtracking search)
    - logger: optional ExperimentLogger receiving one row/record per step
    """

    def __init__(
        self,
        rules: Sequence[Rule],
        cfg: PipelineConfig = PipelineConfig(),
        oracle: Optional[MatchOracle] = None,
        logger: Optional[ExperimentLogger] = None,
    ) -> None:
        if not rules:
            raise ValueError("RewritePipeline needs at least one rule")
        for r in rules:
            r.check()
        self.rules: List[Rule] = list(rules)
        self.cfg = cfg
        self.oracle = oracle
        self.logger = logger
        self._n_steps = 0

    @property
    def n_steps(self) -> int:
        return self._n_steps

    def step(self, G: InMemoryInstance) -> Tuple[Optional[InMemoryInstance], Dict[str, Any]]:
        """
        Try each rule on G and apply the first one that has a selected match.

        Returns (rewritten instance or None, metrics). Metrics include:
        - step, rule (name or None), status
        - rules_tried, n_candidates, n_valid (summed over the rules tried)
        - n_<sort>_before / n_<sort>_after element counts
        """
        rc = self.cfg.rewrite
        metrics: Dict[str, Any] = {
            "step": self._n_steps,
            "rule": None,
            "status": INAPPLICABLE,
            "rules_tried": 0,
            "n_candidates": 0,
            "n_valid": 0,
        }
        for k, v in G.summary().items():
            metrics[f"{k}_before"] = v

        rejections: List[Dict[str, Any]] = []
        result: Optional[InMemoryInstance] = None
        for rule in self.rules:
            out = rule.outcome(
                G,
                monic=rc.monic,
                m_index=rc.m_index,
                oracle=self.oracle,
                collect_rejections=rc.trace_rejections,
            )
            metrics["rules_tried"] += 1
            metrics["n_candidates"] += out.n_candidates
            metrics["n_valid"] += out.n_valid
            rejections.extend({"rule": rule.name, **rep.to_jsonable()} for rep in out.rejections)
            if out.applied:
                metrics["rule"] = rule.name
                metrics["status"] = APPLIED
                result = out.result
                break
            if out.status == INDEX_OUT_OF_RANGE:
                metrics["status"] = INDEX_OUT_OF_RANGE

        for k, v in (result if result is not None else G).summary().items():
            metrics[f"{k}_after"] = v

        if self.logger is not None:
            trace = dict(metrics)
            if rc.trace_rejections:
                trace["rejections"] = rejections
            self.logger.log_step(metrics, trace)

        self._n_steps += 1
        return result, metrics

    def run(self, G: InMemoryInstance) -> Tuple[InMemoryInstance, List[Dict[str, Any]]]:
        """
        Step until no rule applies or max_steps steps were taken.

        Returns the final instance and per-step metrics; the last entry is the step that
        found nothing to apply, unless the step limit was hit first.
        """
        history: List[Dict[str, Any]] = []
        cur = G
        for _ in range(self.cfg.rewrite.max_steps):
            nxt, metrics = self.step(cur)
            history.append(metrics)
            if nxt is None:
                break
            cur = nxt
        if self.logger is not None:
            self.logger.flush()
        return cur, history

    def close(self) -> None:
        if self.logger is not None:
            self.logger.close()

    def __enter__(self) -> "RewritePipeline":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -------------------------
    # Convenience constructor
    # -------------------------

    @classmethod
    def from_config(
        cls,
        rules: Sequence[Rule],
        cfg: PipelineConfig = PipelineConfig(),
        *,
        oracle: Optional[MatchOracle] = None,
    ) -> "RewritePipeline":
        """Build a pipeline whose logger writes to cfg.csv_path / cfg.jsonl_path when set."""
        logger = None
        if cfg.csv_path or cfg.jsonl_path:
            logger = ExperimentLogger(csv_path=cfg.csv_path, jsonl_path=cfg.jsonl_path)
        return cls(rules, cfg, oracle=oracle, logger=logger)


__all__ = [
    "RewriteConfig",
    "PipelineConfig",
    "RewritePipeline",
]
