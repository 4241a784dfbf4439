"""
Toprank: Core Type Definitions

Common type aliases shared across the Toprank codebase. Kept in one
module to avoid circular imports between higher-level packages.

Thread safety: Thread-safe (no mutable global state)
"""

from __future__ import annotations

from typing import Any, Dict, TypeAlias

# Generic metadata mapping for attaching arbitrary structured data to records
MetadataDict: TypeAlias = Dict[str, Any]

# Mapping from instrument symbol to portfolio weight
WeightMap: TypeAlias = Dict[str, float]

# Mapping from instrument symbol to a simple (period) return
ReturnMap: TypeAlias = Dict[str, float]
