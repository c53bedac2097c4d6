"""
Diffusion validator.

Resolves one molecule's proposed displacement through the region hierarchy.
The path is walked crossing by crossing: each segment is tested against the
current region's boundary and its children, and the nearest crossing decides
whether the molecule reflects, moves into another region, or is absorbed by a
surface. The loop is bounded by ``max_depth`` crossings.
"""

from __future__ import annotations

import math
import warnings
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np

from .boundary import Shape
from .context import SimulationContext
from .errors import RecursionLimitExceeded
from .rays import LineHit, define_line, line_hit_boundary, push_point, reflect_point
from .reactions import SurfaceReactionKind
from .region import Region, SurfaceKind

###############################################################################
# Constants
###############################################################################

DEFAULT_MAX_DEPTH = 64
DEFAULT_DIST_ERROR = 1e-10


class DiffusionState(Enum):
    DIFFUSING = "diffusing"
    COMMITTED = "committed"
    REFLECT = "reflect"
    TRANSMIT = "transmit"
    ABSORBED = "absorbed"
    FAILED = "failed"


@dataclass
class Crossing:
    """One boundary event along a path."""

    kind: DiffusionState
    point: np.ndarray
    face: int
    boundary_region: int  # region whose boundary was hit
    from_region: int
    to_region: int


@dataclass
class DiffusionResult:
    state: DiffusionState
    position: np.ndarray
    region: int
    reaction: Optional[int] = None  # local reaction index in ``region``'s table
    crossings: List[Crossing] = field(default_factory=list)


###############################################################################
# Displacement
###############################################################################


def diffuse_displacement(sigma: float, rng: np.random.Generator) -> np.ndarray:
    """Gaussian 3D displacement with standard deviation ``sigma`` per axis."""
    return rng.normal(0.0, sigma, size=3)


###############################################################################
# Crossing search
###############################################################################


@dataclass
class _Candidate:
    hit: LineHit
    region: int  # region whose boundary is hit
    exit: bool  # hitting the current region's own boundary


def _nearest_crossing(
    context: SimulationContext,
    handle: int,
    origin: np.ndarray,
    direction: np.ndarray,
    length: float,
    min_distance: float,
) -> Optional[_Candidate]:
    tree = context.tree
    region = tree[handle]
    best: Optional[_Candidate] = None
    if region.is_volume:
        hit = line_hit_boundary(
            origin, direction, length, region.boundary,
            inside=True, min_distance=min_distance,
        )
        if hit.hit:
            best = _Candidate(hit, handle, True)
    for child in region.children:
        boundary = tree[child].boundary
        if boundary.shape in (Shape.CIRCLE, Shape.LINE):
            continue
        if not (tree[child].is_volume or tree[child].is_surface):
            continue  # flat normal regions are not entered from a volume
        hit = line_hit_boundary(
            origin, direction, length, boundary,
            inside=False, min_distance=min_distance,
        )
        if hit.hit and (best is None or hit.distance < best.hit.distance):
            best = _Candidate(hit, child, False)
    return best


###############################################################################
# Surface and region rules
###############################################################################


def _surface_outcome(
    context: SimulationContext,
    surface: Region,
    species: int,
    from_inside: bool,
    rng: np.random.Generator,
) -> Tuple[DiffusionState, Optional[int]]:
    """
    What a surface does to a molecule that reaches it.

    Outer surfaces act on molecules from outside, Inner ones on molecules from
    inside, Membranes (and flat walls) on both sides.
    """
    kind = surface.surface_kind
    flat = not surface.is_volume
    if not flat and (
        (kind == SurfaceKind.OUTER and from_inside)
        or (kind == SurfaceKind.INNER and not from_inside)
    ):
        return DiffusionState.REFLECT, None

    table = context.table(surface.handle)
    j = table.exclusive_reaction(species)
    if j is None:
        return DiffusionState.REFLECT, None
    _, cum = table.first_order(species)
    if rng.random() >= min(1.0, float(cum[0])):
        return DiffusionState.REFLECT, None
    if table.surface_kinds[j] == SurfaceReactionKind.MEMBRANE:
        return DiffusionState.TRANSMIT, j
    return DiffusionState.ABSORBED, j


def _entry_state(context: SimulationContext, handle: int, species: int) -> DiffusionState:
    """Can a molecule of ``species`` move into ``handle``?"""
    region = context.tree[handle]
    if context.tree.diffusion(handle, species) <= 0.0:
        return DiffusionState.REFLECT
    if not region.micro:
        return DiffusionState.TRANSMIT
    return DiffusionState.DIFFUSING


def _region_outside(
    context: SimulationContext, handle: int, point: np.ndarray
) -> Optional[int]:
    """Region a molecule reaches by leaving ``handle`` at ``point`` (None if it is a wall)."""
    tree = context.tree
    ancestors = tree.ancestors(handle)
    for ancestor in ancestors:
        found = tree.locate(point, start=ancestor)
        if found is None:
            continue
        if found == handle:
            return None
        # Do not pass silently through a surface on the way down
        walk = found
        while walk != ancestor:
            if tree[walk].is_surface:
                return None
            walk = tree[walk].parent
        return found
    return None


###############################################################################
# Path resolution
###############################################################################


def follow_molecule(
    context: SimulationContext,
    start,
    end,
    region: int,
    species: int,
    rng: np.random.Generator,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
    dist_error: float = DEFAULT_DIST_ERROR,
) -> DiffusionResult:
    """
    Move a molecule from ``start`` towards ``end``, starting in ``region``.

    Returns the terminal state with the final position and region. Absorption
    reports the local reaction index in the absorbing surface's table; the
    caller removes the molecule. Entering a mesoscopic region stops the path
    just inside it. If ``max_depth`` crossings do not resolve the path the
    molecule is clamped to the last intersection and the state is FAILED.
    """
    tree = context.tree
    origin = np.array(start, dtype=np.float64)
    target = np.array(end, dtype=np.float64)
    current = region
    crossings: List[Crossing] = []
    min_distance = 0.0

    for _ in range(max_depth):
        direction, length = define_line(origin, target)
        if length == 0.0:
            break
        candidate = _nearest_crossing(context, current, origin, direction, length, min_distance)
        if candidate is None:
            break

        hit = candidate.hit
        hit_region = tree[candidate.region]
        outside = push_point(hit.point, dist_error, direction)
        next_region: Optional[int] = None
        state = DiffusionState.REFLECT
        reaction = None

        if candidate.exit:
            parent = tree[current].parent
            if parent is not None and tree[parent].is_surface:
                # leaving through the wall that encloses this region
                wall = tree[parent]
                state, reaction = _surface_outcome(context, wall, species, True, rng)
                if state == DiffusionState.ABSORBED:
                    crossings.append(Crossing(state, hit.point, hit.face, wall.handle, current, wall.handle))
                    return DiffusionResult(state, hit.point, wall.handle, reaction, crossings)
                if state == DiffusionState.TRANSMIT:
                    next_region = _region_outside(context, current, outside)
            elif parent is not None:
                state = DiffusionState.TRANSMIT
                next_region = _region_outside(context, current, outside)
        elif hit_region.is_surface:
            state, reaction = _surface_outcome(context, hit_region, species, False, rng)
            if state == DiffusionState.ABSORBED:
                crossings.append(Crossing(state, hit.point, hit.face, hit_region.handle, current, hit_region.handle))
                return DiffusionResult(state, hit.point, hit_region.handle, reaction, crossings)
            if state == DiffusionState.TRANSMIT:
                if hit_region.is_volume:
                    next_region = tree.child_containing(outside, hit_region.handle)
                else:
                    next_region = current  # through a flat membrane
        else:
            state = DiffusionState.TRANSMIT
            next_region = candidate.region

        if state == DiffusionState.TRANSMIT and next_region is not None:
            entry = _entry_state(context, next_region, species) if next_region != current else DiffusionState.DIFFUSING
            if entry == DiffusionState.TRANSMIT:
                crossings.append(Crossing(entry, hit.point, hit.face, candidate.region, current, next_region))
                return DiffusionResult(entry, outside, next_region, reaction, crossings)
            if entry == DiffusionState.DIFFUSING:
                crossings.append(Crossing(DiffusionState.TRANSMIT, hit.point, hit.face, candidate.region, current, next_region))
                origin = hit.point
                current = next_region
                min_distance = dist_error
                continue

        # Reflect off whatever was hit
        reflection = reflect_point(
            origin, direction, length, target, hit_region.boundary,
            reflect_inward=candidate.exit, face=hit.face, min_distance=min_distance,
        )
        crossings.append(Crossing(DiffusionState.REFLECT, hit.point, hit.face, candidate.region, current, current))
        origin = hit.point
        target = reflection.new_point
        min_distance = dist_error
    else:
        warnings.warn(
            f"Molecule path in region {tree[current].label!r} not resolved after "
            f"{max_depth} crossings; clamped to {origin}",
            RecursionLimitExceeded,
            stacklevel=2,
        )
        return DiffusionResult(DiffusionState.FAILED, origin, current, None, crossings)

    if current != region:
        state = DiffusionState.TRANSMIT
    elif any(c.kind == DiffusionState.REFLECT for c in crossings):
        state = DiffusionState.REFLECT
    else:
        state = DiffusionState.COMMITTED
    return DiffusionResult(state, target, current, None, crossings)


def validate_molecule(
    context: SimulationContext,
    position,
    region: int,
    species: int,
    rng: np.random.Generator,
    *,
    displacement=None,
    max_depth: int = DEFAULT_MAX_DEPTH,
    dist_error: float = DEFAULT_DIST_ERROR,
) -> DiffusionResult:
    """
    Diffuse one molecule for one time step and resolve the move.

    The displacement is drawn with ``sigma = sqrt(2 D dt)`` from the
    species' diffusion coefficient in ``region`` unless one is given.
    """
    start = np.asarray(position, dtype=np.float64)
    if displacement is None:
        diff = context.tree.diffusion(region, species)
        sigma = math.sqrt(2.0 * diff * context.dt)
        displacement = diffuse_displacement(sigma, rng)
    end = start + np.asarray(displacement, dtype=np.float64)
    return follow_molecule(
        context, start, end, region, species, rng,
        max_depth=max_depth, dist_error=dist_error,
    )


__all__ = [
    "DiffusionState",
    "Crossing",
    "DiffusionResult",
    "diffuse_displacement",
    "follow_molecule",
    "validate_molecule",
    "DEFAULT_MAX_DEPTH",
    "DEFAULT_DIST_ERROR",
]
