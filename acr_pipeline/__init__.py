# Copyright (c) 2025 ACR Maintainers
# License: MIT

"""
Pipeline package exposing orchestration utilities for rewrite runs.

Primary exports
- Configs: RewriteConfig, PipelineConfig
- RewritePipeline: applies an ordered rule list step by step, with optional
  CSV/JSONL artifact logging.

See:
- acr_pipeline/pipeline.py
- acr_pipeline/logging_utils.py
"""

from __future__ import annotations

from .pipeline import (
    RewriteConfig,
    PipelineConfig,
    RewritePipeline,
)

__all__ = [
    "RewriteConfig",
    "PipelineConfig",
    "RewritePipeline",
]
