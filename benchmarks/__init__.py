# Copyright (c) 2025 ACR Maintainers
# License: MIT
"""
ACR micro-benchmarks; each module exposes run_once() and prints one JSON line as a script.
"""

__all__: list[str] = []
