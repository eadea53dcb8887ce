"""
Model registry used by bulk table operations.
"""

from .registry import ModelRegistry, ModelTable, RegisteredModel

__all__ = ["ModelRegistry", "ModelTable", "RegisteredModel"]
