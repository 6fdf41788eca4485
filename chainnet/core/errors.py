"""Typed errors raised by chainnet.

Every error is raised synchronously at the call that broke a contract. Each
concrete class also derives from the builtin exception a caller would expect,
so ``except KeyError`` still catches an unknown loss name.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    SHAPE_MISMATCH = "shape_mismatch"
    CARDINALITY_MISMATCH = "cardinality_mismatch"
    UNKNOWN_LOSS_NAME = "unknown_loss_name"
    ORDERING_VIOLATION = "ordering_violation"
    UNKNOWN_ACTIVATION = "unknown_activation"
    UNKNOWN_UPDATE_RULE = "unknown_update_rule"


class ChainNetError(Exception):
    """Base class for all chainnet errors."""

    kind: ErrorKind

    def __str__(self) -> str:
        # KeyError quotes its argument; keep messages readable for every kind.
        return str(self.args[0]) if self.args else type(self).__name__


class ShapeMismatch(ChainNetError, ValueError):
    kind = ErrorKind.SHAPE_MISMATCH


class CardinalityMismatch(ChainNetError, ValueError):
    kind = ErrorKind.CARDINALITY_MISMATCH


class UnknownLossName(ChainNetError, KeyError):
    kind = ErrorKind.UNKNOWN_LOSS_NAME


class OrderingViolation(ChainNetError, RuntimeError):
    kind = ErrorKind.ORDERING_VIOLATION


class UnknownActivationName(ChainNetError, KeyError):
    kind = ErrorKind.UNKNOWN_ACTIVATION


class UnknownUpdateRule(ChainNetError, KeyError):
    kind = ErrorKind.UNKNOWN_UPDATE_RULE


class ConvergenceWarning(UserWarning):
    """Training stopped at its iteration cap before reaching the tolerance."""


def check_cardinality(items, expected: int, what: str) -> None:
    if len(items) != expected:
        raise CardinalityMismatch(
            f"must provide exactly one {what} for each layer "
            f"(got {len(items)}, network has {expected})"
        )


__all__ = [
    "ErrorKind",
    "ChainNetError",
    "ShapeMismatch",
    "CardinalityMismatch",
    "UnknownLossName",
    "OrderingViolation",
    "UnknownActivationName",
    "UnknownUpdateRule",
    "ConvergenceWarning",
    "check_cardinality",
]
