"""
Per-region, per-species molecule storage.
"""

from __future__ import annotations

import numpy as np


class MoleculeList:
    """
    Positions of the molecules of one species in one region.

    ``pending`` marks molecules created during the current step; they are not
    moved until the next one.
    """

    def __init__(self, positions=None, pending: bool = False) -> None:
        if positions is None:
            positions = np.empty((0, 3))
        self.positions = np.asarray(positions, dtype=np.float64).reshape(-1, 3).copy()
        self.pending = np.full(len(self.positions), pending, dtype=bool)

    def __len__(self) -> int:
        return len(self.positions)

    def add(self, points, pending: bool = False) -> None:
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        if len(points) == 0:
            return
        self.positions = np.concatenate([self.positions, points])
        self.pending = np.concatenate([self.pending, np.full(len(points), pending)])

    def keep(self, mask: np.ndarray) -> None:
        """Drop every molecule where ``mask`` is False."""
        mask = np.asarray(mask, dtype=bool)
        self.positions = self.positions[mask]
        self.pending = self.pending[mask]

    def clear_pending(self) -> None:
        self.pending[:] = False


__all__ = ["MoleculeList"]
