"""
Error and diagnostic types raised by the reaction-diffusion kernel.

Setup errors (shapes, hierarchy, reactions) are ``ValueError`` subclasses and
abort the run. Per-step geometric problems are warnings: the kernel recovers
locally and the driver counts them.
"""

from __future__ import annotations


class UnsupportedShapeCombination(ValueError):
    """A geometry operation was asked about a shape (pair) it does not implement."""

    def __init__(self, operation: str, *shapes) -> None:
        names = " and ".join(getattr(s, "label", str(s)) for s in shapes)
        super().__init__(f"Cannot determine {operation} for {names}")
        self.operation = operation
        self.shapes = shapes


class InvalidRegionHierarchy(ValueError):
    """Cyclic parent links, bad parent handles or surface kinds that do not fit the region kind."""


class InconsistentReactionDefinition(ValueError):
    """Reaction order, surface type or exclusivity rules are violated."""


class GeometricDegeneracy(UserWarning):
    """A boundary has inverted or zero extent and is treated as zero measure."""


class RecursionLimitExceeded(RuntimeWarning):
    """A molecule path could not be resolved within the allowed number of crossings."""


__all__ = [
    "UnsupportedShapeCombination",
    "InvalidRegionHierarchy",
    "InconsistentReactionDefinition",
    "GeometricDegeneracy",
    "RecursionLimitExceeded",
]
