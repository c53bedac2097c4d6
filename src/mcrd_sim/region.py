"""
Region hierarchy stored as an arena of regions with integer handles.

Parents and children are handles into ``RegionTree.regions``. Surface regions
are walls attached to their parent; a volume enclosed by a surface is a normal
child of that surface (usually with the same boundary).
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from .boundary import RECTANGULAR, Boundary, Direction, Shape
from .errors import GeometricDegeneracy, InvalidRegionHierarchy
from .geometry import (
    boundary_adjacent,
    boundary_surface_area,
    boundary_surrounds,
    boundary_volume,
    point_in_boundary,
    record_face,
)


class RegionKind(IntEnum):
    NORMAL = 0
    SURFACE_3D = 1
    SURFACE_2D = 2


class SurfaceKind(IntEnum):
    MEMBRANE = 0
    INNER = 1
    OUTER = 2


VOLUME_SHAPES = (Shape.BOX, Shape.SPHERE, Shape.CYLINDER)


@dataclass
class Region:
    """One node of the region hierarchy."""

    label: str
    boundary: Boundary
    kind: RegionKind = RegionKind.NORMAL
    surface_kind: Optional[SurfaceKind] = None
    parent: Optional[int] = None
    diffusion: Optional[np.ndarray] = None  # per species; None inherits from the parent
    micro: bool = True
    subvolume_size: float = 1.0
    children: List[int] = field(default_factory=list)
    handle: int = -1

    @property
    def is_surface(self) -> bool:
        return self.kind != RegionKind.NORMAL

    @property
    def is_volume(self) -> bool:
        return self.boundary.shape in VOLUME_SHAPES


class RegionTree:
    """
    Arena of regions. Handles are list indices and never change once issued.
    """

    def __init__(self, num_species: int) -> None:
        self.num_species = int(num_species)
        self.regions: List[Region] = []
        self._by_label: Dict[str, int] = {}

    # ------------------------------------------------------------------ build
    def add(self, region: Region) -> int:
        if region.label in self._by_label:
            raise InvalidRegionHierarchy(f"Duplicate region label {region.label!r}")
        if region.parent is not None and not 0 <= region.parent < len(self.regions):
            raise InvalidRegionHierarchy(
                f"Region {region.label!r} has invalid parent handle {region.parent}"
            )
        if region.diffusion is not None:
            region.diffusion = np.asarray(region.diffusion, dtype=np.float64)
            if region.diffusion.shape != (self.num_species,):
                raise ValueError(
                    f"Region {region.label!r} needs {self.num_species} diffusion "
                    f"coefficients, got {region.diffusion.size}"
                )
        handle = len(self.regions)
        region.handle = handle
        self.regions.append(region)
        self._by_label[region.label] = handle
        if region.parent is not None:
            self.regions[region.parent].children.append(handle)
        return handle

    def add_region(
        self,
        label: str,
        boundary: Boundary,
        parent: Optional[int | str] = None,
        **kwargs,
    ) -> int:
        if isinstance(parent, str):
            parent = self.handle(parent)
        return self.add(Region(label=label, boundary=boundary, parent=parent, **kwargs))

    # ------------------------------------------------------------------ access
    def __len__(self) -> int:
        return len(self.regions)

    def __iter__(self) -> Iterator[Region]:
        return iter(self.regions)

    def __getitem__(self, handle: int) -> Region:
        return self.regions[handle]

    def handle(self, label: str) -> int:
        try:
            return self._by_label[label]
        except KeyError:
            raise InvalidRegionHierarchy(f"No region labelled {label!r}") from None

    @property
    def root(self) -> int:
        roots = [r.handle for r in self.regions if r.parent is None]
        if len(roots) != 1:
            raise InvalidRegionHierarchy(
                f"Expected exactly one root region, found {len(roots)}"
            )
        return roots[0]

    def diffusion(self, handle: int, species: int) -> float:
        """Diffusion coefficient of a species in a region, inherited up the tree."""
        region = self.regions[handle]
        while region.diffusion is None:
            if region.parent is None:
                return 0.0
            region = self.regions[region.parent]
        return float(region.diffusion[species])

    def ancestors(self, handle: int) -> List[int]:
        out = []
        parent = self.regions[handle].parent
        while parent is not None:
            out.append(parent)
            parent = self.regions[parent].parent
        return out

    # --------------------------------------------------------------- validate
    def validate(self, clearance: float = 0.0) -> None:
        """
        Check the hierarchy and raise ``InvalidRegionHierarchy`` on the first problem.

        Degenerate boundaries only warn.
        """
        n = len(self.regions)
        for region in self.regions:
            seen = {region.handle}
            parent = region.parent
            while parent is not None:
                if not 0 <= parent < n:
                    raise InvalidRegionHierarchy(
                        f"Region {region.label!r} has invalid parent handle {parent}"
                    )
                if parent in seen:
                    raise InvalidRegionHierarchy(
                        f"Region {region.label!r} is part of a parent cycle"
                    )
                seen.add(parent)
                parent = self.regions[parent].parent
        _ = self.root

        for region in self.regions:
            if region.kind == RegionKind.NORMAL and region.surface_kind is not None:
                raise InvalidRegionHierarchy(
                    f"Normal region {region.label!r} cannot have a surface type"
                )
            if region.is_surface and region.surface_kind is None:
                raise InvalidRegionHierarchy(
                    f"Surface region {region.label!r} needs a surface type"
                )
            if region.is_surface and region.parent is None:
                raise InvalidRegionHierarchy(
                    f"Surface region {region.label!r} cannot be the root"
                )
            if region.kind == RegionKind.SURFACE_2D and region.is_volume:
                raise InvalidRegionHierarchy(
                    f"2D surface region {region.label!r} needs a 2D boundary, "
                    f"got a {region.boundary.shape.label}"
                )
            if region.boundary.is_degenerate:
                warnings.warn(
                    f"Region {region.label!r} has a degenerate boundary {region.boundary!r}",
                    GeometricDegeneracy,
                    stacklevel=2,
                )
            if region.parent is not None:
                parent = self.regions[region.parent]
                if not self._fits_in_parent(region, parent, clearance):
                    raise InvalidRegionHierarchy(
                        f"Region {region.label!r} is not inside its parent {parent.label!r}"
                    )

    def _fits_in_parent(self, child: Region, parent: Region, clearance: float) -> bool:
        if child.is_surface or parent.is_surface:
            # walls may coincide with the boundary they are attached to
            if child.boundary == parent.boundary:
                return True
            if child.boundary.shape in RECTANGULAR and parent.boundary.shape in RECTANGULAR:
                for face in range(6):
                    if boundary_surrounds(child.boundary, record_face(parent.boundary, face), 0.0):
                        return True
            return boundary_surrounds(child.boundary, parent.boundary, 0.0)
        return boundary_surrounds(child.boundary, parent.boundary, clearance)

    # ----------------------------------------------------------------- queries
    def locate(self, point, start: Optional[int] = None) -> Optional[int]:
        """
        Deepest region containing ``point``, searching down from ``start``.

        Returns None if the point is outside ``start``. Surface regions have no
        interior of their own, so the search passes through them to their
        children and otherwise stays in the surface's parent.
        """
        current = self.root if start is None else start
        if not point_in_boundary(point, self.regions[current].boundary):
            return None
        while True:
            nxt = self.child_containing(point, current)
            if nxt is None:
                return current
            current = nxt

    def child_containing(self, point, handle: int) -> Optional[int]:
        for child in self.regions[handle].children:
            region = self.regions[child]
            if region.is_surface:
                if region.is_volume and point_in_boundary(point, region.boundary):
                    found = self.child_containing(point, child)
                    if found is not None:
                        return found
                continue
            if region.is_volume and point_in_boundary(point, region.boundary):
                return child
        return None

    def dimension(self, handle: int) -> int:
        region = self.regions[handle]
        if region.kind == RegionKind.NORMAL:
            return 3 if region.is_volume else 2
        if region.kind == RegionKind.SURFACE_3D:
            return 2
        return 1

    def measure(self, handle: int) -> float:
        """
        Volume (3D), area (2D) or length (1D) available to molecules in a region.

        Children that enclose space are carved out of a normal region.
        """
        region = self.regions[handle]
        if region.kind == RegionKind.SURFACE_3D:
            if region.is_volume:
                return boundary_surface_area(region.boundary)
            return boundary_volume(region.boundary)
        if region.kind == RegionKind.SURFACE_2D:
            return boundary_surface_area(region.boundary)
        total = boundary_volume(region.boundary)
        for child in region.children:
            child_boundary = self.regions[child].boundary
            if child_boundary.shape == Shape.RECTANGLE and region.is_volume:
                continue
            total -= boundary_volume(child_boundary)
        return max(total, 0.0)

    def neighbours(self, handle: int, dist_error: float) -> List[Tuple[int, Direction]]:
        """Sibling regions sharing a face with ``handle``, with the face direction."""
        region = self.regions[handle]
        if region.parent is None:
            return []
        out = []
        for sibling in self.regions[region.parent].children:
            if sibling == handle:
                continue
            other = self.regions[sibling]
            if not _adjacency_defined(region.boundary, other.boundary):
                continue
            adjacent, direction = boundary_adjacent(region.boundary, other.boundary, dist_error)
            if adjacent:
                out.append((sibling, direction))
        return out


def _adjacency_defined(b1: Boundary, b2: Boundary) -> bool:
    if b1.shape in RECTANGULAR and b2.shape in RECTANGULAR:
        return True
    return b1.shape == b2.shape == Shape.CYLINDER and b1.plane == b2.plane


def region_tree_from_specs(num_species: int, specs: Sequence[dict]) -> RegionTree:
    """
    Build a tree from region mappings in definition order.

    Each mapping has ``label``, ``shape``, ``params`` and optionally ``parent``
    (a label), ``kind``, ``surface_kind``, ``diffusion``, ``micro`` and
    ``subvolume_size``. Parents must be defined before their children.
    """
    tree = RegionTree(num_species)
    for spec in specs:
        spec = dict(spec)
        kind = RegionKind[str(spec.pop("kind", "normal")).upper()]
        surface_kind = spec.pop("surface_kind", None)
        if surface_kind is not None:
            surface_kind = SurfaceKind[str(surface_kind).upper()]
        parent = spec.pop("parent", None)
        if parent is not None and parent not in tree._by_label:
            raise InvalidRegionHierarchy(
                f"Region {spec.get('label')!r} names unknown parent {parent!r}"
            )
        tree.add_region(
            spec.pop("label"),
            Boundary.from_config(spec.pop("shape"), spec.pop("params")),
            parent=parent,
            kind=kind,
            surface_kind=surface_kind,
            **spec,
        )
    return tree


__all__ = [
    "RegionKind",
    "SurfaceKind",
    "Region",
    "RegionTree",
    "region_tree_from_specs",
    "VOLUME_SHAPES",
]
