"""
Core module for engine configuration and utilities.

The IRT algorithms live in irt_engine.core.cat; import them from there.
"""
from .config import settings

__all__ = ["settings"]
