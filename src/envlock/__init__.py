"""envlock: Lockfile-based dependency resolution and environment management."""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Identity string embedded in generated lockfiles.
_PRODUCT_ID = "envlock"
