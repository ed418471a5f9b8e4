"""
Context Engine: canonical and flattened context built from domain tables.
"""
from loopbrain.services.engine.engine import ContextEngine, ContextOptions
from loopbrain.services.engine import builders

__all__ = ["ContextEngine", "ContextOptions", "builders"]
