"""
Line segments against boundaries: hit testing and reflection.

A molecule's displacement in one step is a directed segment
``(origin, unit direction, length)``. ``line_hit_boundary`` finds the first
face of a boundary the segment crosses; ``reflect_point`` mirrors the end of
the segment back across that face.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from numba import njit

from .boundary import FACE_MANTLE, FACE_SPHERE, RECTANGULAR, Boundary, Shape, face_axis
from .errors import UnsupportedShapeCombination

DEFAULT_EDGE_ERROR = 1e-12

###############################################################################
# Kernels
###############################################################################


@njit(cache=True)
def line_sphere_distance(
    ox: float, oy: float, oz: float,
    lx: float, ly: float, lz: float,
    cx: float, cy: float, cz: float,
    radius: float,
    inside: bool,
) -> Tuple[float, bool]:
    """
    Distance along a line to a sphere surface.

    Solves ``|o + d*l - c|^2 = r^2``. From inside the far root is the exit; from
    outside the near root is the entry. ``l`` need not be unit length, which
    lets the cylinder mantle reuse this with the axis component zeroed.
    """
    rx = ox - cx
    ry = oy - cy
    rz = oz - cz
    A = lx * lx + ly * ly + lz * lz
    if A == 0.0:
        return 0.0, False
    B = 2.0 * (lx * rx + ly * ry + lz * rz)
    C = rx * rx + ry * ry + rz * rz - radius * radius
    discriminant = B * B - 4.0 * A * C
    if discriminant < 0.0:
        return 0.0, False
    sqrt_disc = math.sqrt(discriminant)
    if inside:
        return (-B + sqrt_disc) / (2.0 * A), True
    return (-B - sqrt_disc) / (2.0 * A), True


@njit(cache=True)
def reflect_about_normal(
    px: float, py: float, pz: float,
    ix: float, iy: float, iz: float,
    nx: float, ny: float, nz: float,
) -> Tuple[float, float, float]:
    """Mirror ``p`` across the plane through ``i`` with normal ``n``."""
    n_sq = nx * nx + ny * ny + nz * nz
    if n_sq == 0.0:
        return px, py, pz
    scale = 2.0 * ((px - ix) * nx + (py - iy) * ny + (pz - iz) * nz) / n_sq
    return px - scale * nx, py - scale * ny, pz - scale * nz


###############################################################################
# Line helpers
###############################################################################


def define_line(p1, p2) -> Tuple[np.ndarray, float]:
    """Unit direction and length of the segment from ``p1`` to ``p2``."""
    delta = np.asarray(p2, dtype=np.float64) - np.asarray(p1, dtype=np.float64)
    length = float(np.linalg.norm(delta))
    if length == 0.0:
        return np.zeros(3), 0.0
    return delta / length, length


def push_point(point, distance: float, direction) -> np.ndarray:
    """Move a point ``distance`` along ``direction``."""
    return np.asarray(point, dtype=np.float64) + distance * np.asarray(direction, dtype=np.float64)


def point_between(p1, p2, point) -> bool:
    """Does ``point`` lie inside the axis-aligned box spanned by ``p1`` and ``p2``?"""
    a = np.asarray(p1, dtype=np.float64)
    b = np.asarray(p2, dtype=np.float64)
    p = np.asarray(point, dtype=np.float64)
    return bool(np.all(p >= np.minimum(a, b)) and np.all(p <= np.maximum(a, b)))


def _face_coordinate(boundary: Boundary, face: int) -> float:
    b = boundary.params
    if boundary.shape in RECTANGULAR:
        return float(b[face])
    if boundary.shape == Shape.CYLINDER:
        along = boundary.axes[0]
        if face == 2 * along:
            return float(b[along])
        if face == 2 * along + 1:
            return float(b[along] + b[5])
        raise ValueError(f"Face {face} is not a cap of {boundary!r}")
    raise UnsupportedShapeCombination("a planar face", boundary.shape)


def line_hit_infinite_plane(
    origin, direction, length: float, boundary: Boundary, face: int, inside: bool
) -> Tuple[bool, float]:
    """
    Does the segment cross the infinite plane containing a planar face?

    For a box (or cylinder cap) the segment must also travel the right way:
    outward when starting inside, inward when starting outside. A rectangle
    has no sides.
    """
    axis = face_axis(face)
    step = float(direction[axis])
    if step == 0.0:
        return False, math.inf
    if boundary.shape != Shape.RECTANGLE:
        upper = face % 2 == 1
        outward = step > 0.0 if upper else step < 0.0
        if outward != inside:
            return False, math.inf
    distance = (_face_coordinate(boundary, face) - float(origin[axis])) / step
    return 0.0 <= distance <= length, distance


def point_on_face(point, boundary: Boundary, face: int, error: float = 0.0) -> bool:
    """Is a point already on a face's plane also within the face's extent (widened by ``error``)?"""
    p = np.asarray(point, dtype=np.float64)
    b = boundary.params
    if boundary.shape in RECTANGULAR:
        axis = face_axis(face)
        return all(
            b[2 * a] - error <= p[a] <= b[2 * a + 1] + error for a in range(3) if a != axis
        )
    if boundary.shape == Shape.CYLINDER:
        along, a1, a2 = boundary.axes
        if face == FACE_MANTLE:
            return bool(b[along] - error <= p[along] <= b[along] + b[5] + error)
        return bool(math.hypot(p[a1] - b[a1], p[a2] - b[a2]) <= b[3] + error)
    if boundary.shape == Shape.SPHERE:
        return True
    raise UnsupportedShapeCombination("a face", boundary.shape)


###############################################################################
# Hit testing
###############################################################################


@dataclass
class LineHit:
    hit: bool
    distance: float = math.inf
    point: Optional[np.ndarray] = None
    face: int = -1


def _candidate_faces(boundary: Boundary):
    if boundary.shape in RECTANGULAR:
        return range(6)
    if boundary.shape == Shape.SPHERE:
        return (FACE_SPHERE,)
    if boundary.shape == Shape.CYLINDER:
        along = boundary.axes[0]
        return (2 * along, 2 * along + 1, FACE_MANTLE)
    raise UnsupportedShapeCombination("a line intersection", boundary.shape)


def _face_distance(
    origin: np.ndarray, direction: np.ndarray, length: float,
    boundary: Boundary, face: int, inside: bool, edge_error: float,
) -> Optional[float]:
    b = boundary.params
    if boundary.shape == Shape.SPHERE:
        d, found = line_sphere_distance(
            origin[0], origin[1], origin[2],
            direction[0], direction[1], direction[2],
            b[0], b[1], b[2], b[3], inside,
        )
        return d if found else None
    if boundary.shape == Shape.CYLINDER and face == FACE_MANTLE:
        along = boundary.axes[0]
        l = direction.copy()
        l[along] = 0.0
        o = origin.copy()
        o[along] = 0.0
        c = b[:3].copy()
        c[along] = 0.0
        d, found = line_sphere_distance(
            o[0], o[1], o[2], l[0], l[1], l[2], c[0], c[1], c[2], b[3], inside
        )
        if not found:
            return None
    else:
        crosses, d = line_hit_infinite_plane(origin, direction, length, boundary, face, inside)
        if not crosses:
            return None
    if not point_on_face(push_point(origin, d, direction), boundary, face, edge_error):
        return None
    return d


def line_hit_boundary(
    origin,
    direction,
    length: float,
    boundary: Boundary,
    *,
    inside: bool,
    face: Optional[int] = None,
    min_distance: float = 0.0,
    edge_error: float = DEFAULT_EDGE_ERROR,
) -> LineHit:
    """
    Nearest crossing of a segment with a boundary's surface.

    ``inside`` says which side the segment starts on. All candidate faces are
    tried (six for a box, two caps and the mantle for a cylinder, the surface
    of a sphere) unless ``face`` restricts the search to one. A hit needs
    ``min_distance < d <= length``; the first candidate at the smallest ``d``
    wins. Faces are widened by ``edge_error`` so a path through an edge or
    corner is not lost to rounding. Hits on planar faces are snapped onto the
    face plane.
    """
    o = np.asarray(origin, dtype=np.float64)
    l = np.asarray(direction, dtype=np.float64)
    faces = _candidate_faces(boundary) if face is None else (face,)

    best = LineHit(hit=False)
    for candidate in faces:
        d = _face_distance(o, l, length, boundary, candidate, inside, edge_error)
        if d is None or not (min_distance < d <= length):
            continue
        if d < best.distance:
            point = push_point(o, d, l)
            if candidate != FACE_MANTLE and boundary.shape != Shape.SPHERE:
                point[face_axis(candidate)] = _face_coordinate(boundary, candidate)
            best = LineHit(hit=True, distance=d, point=point, face=candidate)
    return best


###############################################################################
# Reflection
###############################################################################


def mirror_across_face(point, boundary: Boundary, face: int) -> np.ndarray:
    """Reflect a point across the plane of a box face or cylinder cap."""
    p = np.array(point, dtype=np.float64)
    axis = face_axis(face)
    p[axis] = 2.0 * _face_coordinate(boundary, face) - p[axis]
    return p


@dataclass
class ReflectResult:
    reflected: bool
    new_point: np.ndarray
    intersect_point: Optional[np.ndarray] = None
    face: int = -1
    distance: float = math.inf


def reflect_point(
    old_point,
    direction,
    length: float,
    cur_point,
    boundary: Boundary,
    reflect_inward: bool,
    face: Optional[int] = None,
    min_distance: float = 0.0,
    edge_error: float = DEFAULT_EDGE_ERROR,
) -> ReflectResult:
    """
    Reflect the end of a segment off the first face of ``boundary`` it crosses.

    ``reflect_inward`` is True when the segment starts inside the boundary and
    must stay inside. If the segment never reaches the surface, the infinite
    line is tried instead and the point is placed at that intersection with
    ``reflected=False``; with no intersection at all the point is unchanged.
    """
    hit = line_hit_boundary(
        old_point, direction, length, boundary,
        inside=reflect_inward, face=face, min_distance=min_distance, edge_error=edge_error,
    )
    if not hit.hit:
        far = line_hit_boundary(
            old_point, direction, math.inf, boundary,
            inside=reflect_inward, face=face, min_distance=min_distance, edge_error=edge_error,
        )
        if far.hit:
            return ReflectResult(False, far.point.copy(), far.point, far.face, far.distance)
        return ReflectResult(False, np.array(cur_point, dtype=np.float64))

    cur = np.asarray(cur_point, dtype=np.float64)
    if hit.face == FACE_MANTLE or boundary.shape == Shape.SPHERE:
        b = boundary.params
        normal = hit.point - b[:3]
        if hit.face == FACE_MANTLE:
            normal[boundary.axes[0]] = 0.0
        new_point = np.array(reflect_about_normal(
            cur[0], cur[1], cur[2],
            hit.point[0], hit.point[1], hit.point[2],
            normal[0], normal[1], normal[2],
        ))
    else:
        new_point = mirror_across_face(cur, boundary, hit.face)
    return ReflectResult(True, new_point, hit.point, hit.face, hit.distance)


__all__ = [
    "LineHit",
    "ReflectResult",
    "define_line",
    "push_point",
    "point_between",
    "line_hit_infinite_plane",
    "point_on_face",
    "line_hit_boundary",
    "mirror_across_face",
    "reflect_point",
    "line_sphere_distance",
    "reflect_about_normal",
]
