"""Network orchestration, losses and config-driven runs."""

from .losses import REGISTRY, Loss, LossRegistry
from .network import Network

__all__ = ["Network", "Loss", "LossRegistry", "REGISTRY"]
