# Copyright (c) 2025 ACR Maintainers
# License: MIT
"""
ACR CLI package.

This package contains CLI entry-point modules intended to be installed with the wheel,
so console_scripts defined in pyproject.toml resolve at runtime.
"""

__all__: list[str] = []
