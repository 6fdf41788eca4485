"""Core numerical primitives for chainnet."""

from . import activations, errors, layer, strategies, types

__all__ = ["activations", "errors", "layer", "strategies", "types"]
