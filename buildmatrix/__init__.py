"""Configure a matrix of out-of-tree CMake build directories."""
from __future__ import annotations

from .cli import main

__all__ = ["main"]
