"""
Boundary geometry: relations and measures over shape-tagged boundaries.

Every operation here is pure. Tolerances (``clearance``, ``dist_error``,
``error``) are required arguments. Shape combinations that are not
implemented raise ``UnsupportedShapeCombination`` instead of returning False.
"""

from __future__ import annotations

import itertools
import math
from typing import Optional, Tuple

import numpy as np
from numba import njit

from .boundary import (
    FACE_MANTLE,
    NUM_BOX_FACES,
    RECTANGULAR,
    Boundary,
    Direction,
    Plane,
    Shape,
    face_axis,
)
from .errors import UnsupportedShapeCombination

###############################################################################
# Scalar kernels
###############################################################################


@njit(cache=True)
def _distance3(x1: float, y1: float, z1: float, x2: float, y2: float, z2: float) -> float:
    dx = x2 - x1
    dy = y2 - y1
    dz = z2 - z1
    return math.sqrt(dx * dx + dy * dy + dz * dz)


@njit(cache=True)
def _axis_excess(v: float, lo: float, hi: float) -> float:
    if v < lo:
        return lo - v
    if v > hi:
        return v - hi
    return 0.0


@njit(cache=True)
def _box_sq_distance(
    px: float, py: float, pz: float,
    xmin: float, xmax: float,
    ymin: float, ymax: float,
    zmin: float, zmax: float,
) -> float:
    """Squared distance from a point to the nearest point of a box (0 inside)."""
    dx = _axis_excess(px, xmin, xmax)
    dy = _axis_excess(py, ymin, ymax)
    dz = _axis_excess(pz, zmin, zmax)
    return dx * dx + dy * dy + dz * dz


@njit(cache=True)
def _rect_sq_distance(
    p1: float, p2: float, lo1: float, hi1: float, lo2: float, hi2: float
) -> float:
    """2D version of ``_box_sq_distance`` for a cylinder cross-section."""
    d1 = _axis_excess(p1, lo1, hi1)
    d2 = _axis_excess(p2, lo2, hi2)
    return d1 * d1 + d2 * d2


###############################################################################
# Helpers
###############################################################################


def _as_point(point) -> np.ndarray:
    return np.asarray(point, dtype=np.float64).reshape(3)


def point_distance(p1, p2) -> float:
    """Euclidean distance between two 3D points."""
    a = _as_point(p1)
    b = _as_point(p2)
    return _distance3(a[0], a[1], a[2], b[0], b[1], b[2])


def _box_point_sq_distance(point: np.ndarray, box: np.ndarray) -> float:
    return _box_sq_distance(
        point[0], point[1], point[2], box[0], box[1], box[2], box[3], box[4], box[5]
    )


def _radial_distance(point: np.ndarray, cylinder: Boundary) -> float:
    _, a1, a2 = cylinder.axes
    c = cylinder.params
    return math.hypot(point[a1] - c[a1], point[a2] - c[a2])


def _box_corners(box: np.ndarray):
    for x, y, z in itertools.product(box[0:2], box[2:4], box[4:6]):
        yield np.array([x, y, z])


def _cross_section_corners(box: np.ndarray, a1: int, a2: int):
    for u, v in itertools.product(box[2 * a1 : 2 * a1 + 2], box[2 * a2 : 2 * a2 + 2]):
        yield u, v


###############################################################################
# Containment and overlap
###############################################################################


def point_in_boundary(point, boundary: Boundary) -> bool:
    """Is the point inside (or on) the boundary?"""
    p = _as_point(point)
    b = boundary.params
    shape = boundary.shape
    if shape in RECTANGULAR:
        return bool(
            b[0] <= p[0] <= b[1] and b[2] <= p[1] <= b[3] and b[4] <= p[2] <= b[5]
        )
    if shape == Shape.SPHERE:
        return bool(_distance3(p[0], p[1], p[2], b[0], b[1], b[2]) <= b[3])
    if shape == Shape.CYLINDER:
        along, _, _ = boundary.axes
        return bool(
            b[along] <= p[along] <= b[along] + b[5]
            and _radial_distance(p, boundary) <= b[3]
        )
    raise UnsupportedShapeCombination("point containment", shape)


def _boxes_overlap(b1: np.ndarray, b2: np.ndarray, clearance: float) -> bool:
    for axis in range(3):
        lo1, hi1 = b1[2 * axis], b1[2 * axis + 1]
        lo2, hi2 = b2[2 * axis], b2[2 * axis + 1]
        if lo1 == hi1 or lo2 == hi2:
            # a rectangle's flat axis has no interior, so touching counts
            if not (lo1 <= hi2 + clearance and hi1 >= lo2 - clearance):
                return False
        elif not (lo1 < hi2 + clearance and hi1 > lo2 - clearance):
            return False
    return True


def _box_sphere_overlap(box: np.ndarray, sphere: np.ndarray, clearance: float) -> bool:
    d = _box_point_sq_distance(sphere[:3], box)
    return bool(d < (sphere[3] + clearance) ** 2)


def _cylinder_box_overlap(cylinder: Boundary, box: np.ndarray, clearance: float) -> bool:
    along, a1, a2 = cylinder.axes
    c = cylinder.params
    length_check = (
        box[2 * along] < c[along] + c[5] + clearance
        and box[2 * along + 1] > c[along] - clearance
    )
    if not length_check:
        return False
    d = _rect_sq_distance(
        c[a1], c[a2], box[2 * a1], box[2 * a1 + 1], box[2 * a2], box[2 * a2 + 1]
    )
    return bool(d < (c[3] + clearance) ** 2)


def boundary_intersect(b1: Boundary, b2: Boundary, clearance: float) -> bool:
    """
    Do two boundaries overlap, or come within ``clearance`` of each other?

    Nested boundaries count as overlapping. Volumes whose faces only touch do
    not, but a rectangle lying on a face does.
    """
    s1, s2 = b1.shape, b2.shape
    p1, p2 = b1.params, b2.params

    if s1 in RECTANGULAR and s2 in RECTANGULAR:
        return _boxes_overlap(p1, p2, clearance)
    if s1 in RECTANGULAR and s2 == Shape.SPHERE:
        return _box_sphere_overlap(p1, p2, clearance)
    if s1 == Shape.SPHERE and s2 in RECTANGULAR:
        return _box_sphere_overlap(p2, p1, clearance)
    if s1 == Shape.SPHERE and s2 == Shape.SPHERE:
        d = _distance3(p1[0], p1[1], p1[2], p2[0], p2[1], p2[2])
        return bool(d < p1[3] + p2[3] + clearance)
    if s1 == Shape.CYLINDER and s2 in RECTANGULAR:
        return _cylinder_box_overlap(b1, p2, clearance)
    if s1 in RECTANGULAR and s2 == Shape.CYLINDER:
        return _cylinder_box_overlap(b2, p1, clearance)
    if s1 == Shape.CYLINDER and s2 == Shape.CYLINDER and b1.plane == b2.plane:
        along, a1, a2 = b1.axes
        length_check = (
            p1[along] < p2[along] + p2[5] + clearance
            and p1[along] + p1[5] > p2[along] - clearance
        )
        d = math.hypot(p1[a1] - p2[a1], p1[a2] - p2[a2])
        return bool(length_check and d < p1[3] + p2[3] + clearance)
    raise UnsupportedShapeCombination("the intersection", s1, s2)


###############################################################################
# Adjacency
###############################################################################


def _faces_touch(lower: float, upper: float, dist_error: float) -> bool:
    return abs(lower - upper) < dist_error


def _overlap(b1: np.ndarray, b2: np.ndarray, axis: int, dist_error: float) -> bool:
    return (
        b1[2 * axis + 1] > b2[2 * axis] + dist_error
        and b2[2 * axis + 1] > b1[2 * axis] + dist_error
    )


def _adjacent_along(
    b1: np.ndarray, b2: np.ndarray, axis: int, dist_error: float
) -> Optional[Direction]:
    if _faces_touch(b1[2 * axis], b2[2 * axis + 1], dist_error):
        return Direction(2 * axis)
    if _faces_touch(b2[2 * axis], b1[2 * axis + 1], dist_error):
        return Direction(2 * axis + 1)
    return None


def _boxes_adjacent(b1: np.ndarray, b2: np.ndarray, dist_error: float) -> Optional[Direction]:
    # A shared face needs overlap along the two axes spanning it
    for axis, (u, v) in ((2, (0, 1)), (0, (1, 2)), (1, (0, 2))):
        if _overlap(b1, b2, u, dist_error) and _overlap(b1, b2, v, dist_error):
            return _adjacent_along(b1, b2, axis, dist_error)
    return None


def _rectangles_adjacent(
    r1: Boundary, r2: Boundary, dist_error: float
) -> Optional[Direction]:
    b1, b2 = r1.params, r2.params
    flat = {Plane.YZ: 0, Plane.XZ: 1, Plane.XY: 2}[r1.plane]
    if not (
        _faces_touch(b1[2 * flat], b2[2 * flat], dist_error)
        and _faces_touch(b1[2 * flat], b2[2 * flat + 1], dist_error)
    ):
        return None  # not coplanar
    u, v = (axis for axis in range(3) if axis != flat)
    if _overlap(b1, b2, u, dist_error):
        return _adjacent_along(b1, b2, v, dist_error)
    if _overlap(b1, b2, v, dist_error):
        return _adjacent_along(b1, b2, u, dist_error)
    return None


def _cylinders_adjacent(
    c1: Boundary, c2: Boundary, dist_error: float
) -> Optional[Direction]:
    along, a1, a2 = c1.axes
    p1, p2 = c1.params, c2.params
    if math.hypot(p1[a1] - p2[a1], p1[a2] - p2[a2]) >= p1[3] + p2[3] + dist_error:
        return None  # no radial overlap
    if _faces_touch(p1[along], p2[along] + p2[5], dist_error):
        return Direction(2 * along)
    if _faces_touch(p2[along], p1[along] + p1[5], dist_error):
        return Direction(2 * along + 1)
    return None


def boundary_adjacent(
    b1: Boundary, b2: Boundary, dist_error: float
) -> Tuple[bool, Optional[Direction]]:
    """
    Do two boundaries share a face? Overlapping boundaries are not adjacent.

    Returns ``(adjacent, direction)`` where ``direction`` names the face of
    ``b1`` that ``b2`` sits against.
    """
    s1, s2 = b1.shape, b2.shape
    if s1 == Shape.RECTANGLE and s2 == Shape.RECTANGLE:
        direction = _rectangles_adjacent(b1, b2, dist_error)
    elif s1 in RECTANGULAR and s2 in RECTANGULAR:
        direction = _boxes_adjacent(b1.params, b2.params, dist_error)
    elif s1 == Shape.CYLINDER and s2 == Shape.CYLINDER:
        if b1.plane != b2.plane:
            raise UnsupportedShapeCombination(
                "adjacency (different orientations)", s1, s2
            )
        direction = _cylinders_adjacent(b1, b2, dist_error)
    else:
        raise UnsupportedShapeCombination("adjacency", s1, s2)
    return direction is not None, direction


###############################################################################
# Surrounds
###############################################################################


def _box_in_cylinder(box: np.ndarray, cylinder: Boundary, clearance: float) -> bool:
    along, a1, a2 = cylinder.axes
    c = cylinder.params
    length_check = (
        box[2 * along] >= c[along] + clearance
        and box[2 * along + 1] <= c[along] + c[5] - clearance
    )
    area_check = all(
        math.hypot(u - c[a1], v - c[a2]) <= c[3] - clearance
        for u, v in _cross_section_corners(box, a1, a2)
    )
    return bool(length_check and area_check)


def _cylinder_in_box(cylinder: Boundary, box: np.ndarray, clearance: float) -> bool:
    along, a1, a2 = cylinder.axes
    c = cylinder.params
    r = c[3]
    length_check = (
        box[2 * along] <= c[along] - clearance
        and box[2 * along + 1] >= c[along] + c[5] + clearance
    )
    area_check = (
        box[2 * a1] <= c[a1] - r - clearance
        and box[2 * a1 + 1] >= c[a1] + r + clearance
        and box[2 * a2] <= c[a2] - r - clearance
        and box[2 * a2 + 1] >= c[a2] + r + clearance
    )
    return bool(length_check and area_check)


def boundary_surrounds(inner: Boundary, outer: Boundary, clearance: float) -> bool:
    """Is ``inner`` entirely inside ``outer``, kept ``clearance`` away from its surface?"""
    s1, s2 = inner.shape, outer.shape
    b1, b2 = inner.params, outer.params

    if s1 in RECTANGULAR:
        if s2 in RECTANGULAR:
            return bool(
                b1[0] >= b2[0] + clearance and b1[1] <= b2[1] - clearance
                and b1[2] >= b2[2] + clearance and b1[3] <= b2[3] - clearance
                and b1[4] >= b2[4] + clearance and b1[5] <= b2[5] - clearance
            )
        if s2 == Shape.SPHERE:
            return all(
                point_distance(corner, b2[:3]) + clearance <= b2[3]
                for corner in _box_corners(b1)
            )
        if s2 == Shape.CYLINDER:
            return _box_in_cylinder(b1, outer, clearance)
    elif s1 == Shape.SPHERE:
        if s2 == Shape.RECTANGLE:
            return False  # a 3D shape cannot sit inside a 2D one
        if s2 == Shape.BOX:
            r = b1[3]
            return bool(
                r <= b1[0] - b2[0] - clearance and r <= b2[1] - b1[0] - clearance
                and r <= b1[1] - b2[2] - clearance and r <= b2[3] - b1[1] - clearance
                and r <= b1[2] - b2[4] - clearance and r <= b2[5] - b1[2] - clearance
            )
        if s2 == Shape.SPHERE:
            return bool(b2[3] >= b1[3] + point_distance(b1[:3], b2[:3]) + clearance)
    elif s1 == Shape.CYLINDER:
        if s2 == Shape.BOX:
            return _cylinder_in_box(inner, b2, clearance)
        if s2 == Shape.CYLINDER:
            if inner.plane != outer.plane:
                raise UnsupportedShapeCombination(
                    "containment (different orientations)", s1, s2
                )
            along, a1, a2 = inner.axes
            length_check = (
                b1[along] >= b2[along] + clearance
                and b1[along] + b1[5] <= b2[along] + b2[5] - clearance
            )
            area_check = (
                math.hypot(b1[a1] - b2[a1], b1[a2] - b2[a2])
                <= b2[3] - b1[3] - clearance
            )
            return bool(length_check and area_check)
    raise UnsupportedShapeCombination("containment", s1, s2)


###############################################################################
# Faces
###############################################################################


def record_face(boundary: Boundary, face: int) -> Boundary:
    """The given face of a box or rectangle as a Rectangle; a sphere is its own face."""
    if boundary.shape in RECTANGULAR:
        if not 0 <= face < NUM_BOX_FACES:
            raise ValueError(f"Face ID {face} invalid for a {boundary.shape.label}")
        p = boundary.params.copy()
        axis = face_axis(face)
        p[2 * axis] = p[2 * axis + 1] = boundary.params[face]
        return Boundary(Shape.RECTANGLE, p)
    if boundary.shape == Shape.SPHERE:
        return boundary
    raise UnsupportedShapeCombination("the face boundary", boundary.shape)


def shared_surface(
    b1: Boundary, b2: Boundary, face: int, error: float
) -> Optional[Boundary]:
    """
    Do two boundaries share the same face (e.g. both their lower x faces)?

    Returns the shared part of the face, or None. Two rectangles share an edge
    segment, returned as a Line.
    """
    s1, s2 = b1.shape, b2.shape
    p1, p2 = b1.params, b2.params

    if s1 == Shape.RECTANGLE and s2 == Shape.RECTANGLE:
        flat = {Plane.YZ: 0, Plane.XZ: 1, Plane.XY: 2}[b1.plane]
        axis = face_axis(face)
        if axis == flat or p2[2 * flat] != p2[2 * flat + 1]:
            return None
        if abs(p1[face] - p2[face]) > error:
            return None
        (span,) = (a for a in range(3) if a not in (flat, axis))
        if p1[2 * span] >= p2[2 * span + 1] or p1[2 * span + 1] <= p2[2 * span]:
            return None
        shared = p1.copy()
        shared[2 * axis] = shared[2 * axis + 1] = p1[face]
        shared[2 * span] = max(p1[2 * span], p2[2 * span])
        shared[2 * span + 1] = min(p1[2 * span + 1], p2[2 * span + 1])
        return Boundary(Shape.LINE, shared)

    if s1 == Shape.BOX and s2 == Shape.BOX:
        if not 0 <= face < NUM_BOX_FACES:
            raise ValueError(f"Face ID {face} invalid for two Rectangular Boxes")
        if abs(p1[face] - p2[face]) > error:
            return None
        axis = face_axis(face)
        spans = [a for a in range(3) if a != axis]
        for a in spans:
            if p1[2 * a] >= p2[2 * a + 1] or p1[2 * a + 1] <= p2[2 * a]:
                return None
        shared = p1.copy()
        shared[2 * axis] = shared[2 * axis + 1] = p1[face]
        for a in spans:
            shared[2 * a] = max(p1[2 * a], p2[2 * a])
            shared[2 * a + 1] = min(p1[2 * a + 1], p2[2 * a + 1])
        return Boundary(Shape.RECTANGLE, shared)

    if s1 == Shape.SPHERE and s2 == Shape.SPHERE:
        same_centre = point_distance(p1[:3], p2[:3]) <= error
        if same_centre and abs(p1[3] - p2[3]) <= error:
            return b1
        return None

    raise UnsupportedShapeCombination("a shared surface", s1, s2)


###############################################################################
# Distance and intersection
###############################################################################


def distance_to_boundary(point, boundary: Boundary) -> float:
    """Distance from a point to the nearest point on the boundary surface."""
    p = _as_point(point)
    b = boundary.params
    if boundary.shape in RECTANGULAR:
        if point_in_boundary(p, boundary):
            return float(min(
                p[0] - b[0], b[1] - p[0],
                p[1] - b[2], b[3] - p[1],
                p[2] - b[4], b[5] - p[2],
            ))
        return math.sqrt(_box_point_sq_distance(p, b))
    if boundary.shape == Shape.SPHERE:
        return abs(_distance3(p[0], p[1], p[2], b[0], b[1], b[2]) - b[3])
    if boundary.shape == Shape.CYLINDER:
        along = boundary.axes[0]
        radial = _radial_distance(p, boundary)
        lo, hi = b[along], b[along] + b[5]
        if point_in_boundary(p, boundary):
            return float(min(b[3] - radial, p[along] - lo, hi - p[along]))
        return math.hypot(max(radial - b[3], 0.0), _axis_excess(p[along], lo, hi))
    raise UnsupportedShapeCombination("the distance to", boundary.shape)


def _empty_box() -> Boundary:
    return Boundary(Shape.BOX, np.zeros(6))


def _cylinder_params(centre_src: np.ndarray, along: int, start: float,
                     radius: float, plane: Plane, length: float) -> np.ndarray:
    p = np.array([centre_src[0], centre_src[1], centre_src[2], radius, int(plane), length])
    p[along] = start
    return p


def intersect_boundary(b1: Boundary, b2: Boundary) -> Boundary:
    """
    Boundary of the overlap of two boundaries.

    Boxes and rectangles give their componentwise overlap (inverted, i.e.
    zero measure, when disjoint), a Rectangle when a rectangle is involved and
    the overlap is flat on one axis. With a sphere, one shape must contain the
    other. Cylinders need a common orientation, or a cross-section that sits
    completely inside the other shape's.
    """
    s1, s2 = b1.shape, b2.shape
    p1, p2 = b1.params, b2.params

    if s1 in RECTANGULAR and s2 in RECTANGULAR:
        out = np.empty(6)
        out[0::2] = np.maximum(p1[0::2], p2[0::2])
        out[1::2] = np.minimum(p1[1::2], p2[1::2])
        shape = Shape.BOX
        flat = np.count_nonzero(out[0::2] == out[1::2])
        inverted = np.any(out[0::2] > out[1::2])
        if Shape.RECTANGLE in (s1, s2) and flat == 1 and not inverted:
            shape = Shape.RECTANGLE
        return Boundary(shape, out)

    if s1 == Shape.SPHERE or s2 == Shape.SPHERE:
        if boundary_surrounds(b1, b2, 0.0):
            return b1
        if boundary_surrounds(b2, b1, 0.0):
            return b2
        if not boundary_intersect(b2, b1, 0.0):
            return _empty_box()
        raise UnsupportedShapeCombination(
            "the intersection (a sphere partially overlaps)", s1, s2
        )

    if s1 == Shape.CYLINDER and s2 == Shape.CYLINDER:
        if b1.plane != b2.plane:
            raise UnsupportedShapeCombination(
                "the intersection (different orientations)", s1, s2
            )
        along, a1, a2 = b1.axes
        centre_distance = math.hypot(p1[a1] - p2[a1], p1[a2] - p2[a2])
        if centre_distance >= p1[3] + p2[3]:
            return _empty_box()
        start = max(p1[along], p2[along])
        end = min(p1[along] + p1[5], p2[along] + p2[5])
        if centre_distance <= p1[3] - p2[3]:
            return Boundary(Shape.CYLINDER, _cylinder_params(
                p2, along, start, p2[3], b2.plane, end - start))
        if centre_distance <= p2[3] - p1[3]:
            return Boundary(Shape.CYLINDER, _cylinder_params(
                p1, along, start, p1[3], b1.plane, end - start))
        raise UnsupportedShapeCombination(
            "the intersection (overlap is not a cylinder)", s1, s2
        )

    if {s1, s2} == {Shape.CYLINDER, Shape.BOX}:
        cylinder, box = (b1, p2) if s1 == Shape.CYLINDER else (b2, p1)
        c = cylinder.params
        along, a1, a2 = cylinder.axes
        r = c[3]
        box_in_circle = all(
            math.hypot(u - c[a1], v - c[a2]) <= r
            for u, v in _cross_section_corners(box, a1, a2)
        )
        if box_in_circle:
            out = box.copy()
            out[2 * along] = max(box[2 * along], c[along])
            out[2 * along + 1] = min(box[2 * along + 1], c[along] + c[5])
            return Boundary(Shape.BOX, out)
        circle_in_rect = (
            box[2 * a1] <= c[a1] - r and box[2 * a1 + 1] >= c[a1] + r
            and box[2 * a2] <= c[a2] - r and box[2 * a2 + 1] >= c[a2] + r
        )
        if circle_in_rect:
            start = max(c[along], box[2 * along])
            end = min(c[along] + c[5], box[2 * along + 1])
            return Boundary(Shape.CYLINDER, _cylinder_params(
                c, along, start, r, cylinder.plane, end - start))
        raise UnsupportedShapeCombination(
            "the intersection (neither cross-section contains the other)", s1, s2
        )

    raise UnsupportedShapeCombination("the intersection", s1, s2)


###############################################################################
# Measures
###############################################################################


def boundary_volume(boundary: Boundary) -> float:
    """Volume of a 3D shape, area of a 2D shape, length of a line."""
    b = boundary.params
    shape = boundary.shape
    if shape in RECTANGULAR:
        extent = b[1::2] - b[0::2]
        if np.any(extent < 0.0):
            return 0.0
        if shape == Shape.RECTANGLE:
            flat = {Plane.YZ: 0, Plane.XZ: 1, Plane.XY: 2}[boundary.plane]
            return float(np.prod(np.delete(extent, flat)))
        return float(np.prod(extent))
    if shape == Shape.CIRCLE:
        return math.pi * b[3] ** 2
    if shape == Shape.SPHERE:
        return 4.0 / 3.0 * math.pi * b[3] ** 3
    if shape == Shape.CYLINDER:
        return math.pi * b[3] ** 2 * max(b[5], 0.0)
    if shape == Shape.LINE:
        return float(np.linalg.norm(b[1::2] - b[0::2]))
    raise UnsupportedShapeCombination("the volume", shape)


def boundary_surface_area(boundary: Boundary) -> float:
    """Surface area of a 3D shape, perimeter of a 2D shape."""
    b = boundary.params
    shape = boundary.shape
    if shape in RECTANGULAR:
        extent = b[1::2] - b[0::2]
        if np.any(extent < 0.0):
            return 0.0
        if shape == Shape.RECTANGLE:
            return float(2.0 * extent.sum())
        dx, dy, dz = extent
        return float(2.0 * (dx * dy + dx * dz + dy * dz))
    if shape == Shape.CIRCLE:
        return 2.0 * math.pi * b[3]
    if shape == Shape.SPHERE:
        return 4.0 * math.pi * b[3] ** 2
    if shape == Shape.CYLINDER:
        return 2.0 * math.pi * b[3] ** 2 + 2.0 * math.pi * b[3] * max(b[5], 0.0)
    raise UnsupportedShapeCombination("the surface area", shape)


###############################################################################
# Uniform sampling
###############################################################################


def _choose(rng: np.random.Generator, weights) -> int:
    weights = np.asarray(weights, dtype=np.float64)
    total = weights.sum()
    if total <= 0.0:
        return int(rng.integers(weights.size))
    return int(rng.choice(weights.size, p=weights / total))


def _unit_disk(rng: np.random.Generator) -> Tuple[float, float]:
    while True:
        u, v = rng.uniform(-1.0, 1.0, size=2)
        if u * u + v * v < 1.0:
            return u, v


def uniform_point_volume(
    boundary: Boundary, rng: np.random.Generator, surface: bool = False
) -> np.ndarray:
    """
    Uniformly distributed point inside the boundary, or on its surface.

    Spheres and cylinder cross-sections use rejection sampling. Box faces and
    rectangle edges are chosen with probability proportional to their area
    (length), then sampled directly.
    """
    b = boundary.params
    shape = boundary.shape
    if shape in RECTANGULAR:
        point = rng.uniform(b[0::2], b[1::2])
        if not surface:
            return point
        extent = b[1::2] - b[0::2]
        if shape == Shape.BOX:
            areas = [extent[1] * extent[2], extent[0] * extent[2], extent[0] * extent[1]]
            face = _choose(rng, np.repeat(areas, 2))
        else:
            flat = {Plane.YZ: 0, Plane.XZ: 1, Plane.XY: 2}[boundary.plane]
            # an edge normal to axis u runs along axis v
            (u, v) = (a for a in range(3) if a != flat)
            lengths = np.zeros(6)
            lengths[2 * u : 2 * u + 2] = extent[v]
            lengths[2 * v : 2 * v + 2] = extent[u]
            face = _choose(rng, lengths)
        point[face_axis(face)] = b[face]
        return point

    if shape == Shape.SPHERE:
        while True:
            v = rng.uniform(-1.0, 1.0, size=3)
            r_sq = float(v @ v)
            if 0.0 < r_sq < 1.0:
                if surface:
                    v /= math.sqrt(r_sq)
                return b[:3] + v * b[3]

    if shape == Shape.CYLINDER:
        along, a1, a2 = boundary.axes
        r, length = b[3], b[5]
        point = b[:3].copy()
        if surface:
            cap = math.pi * r * r
            part = _choose(rng, [cap, cap, 2.0 * math.pi * r * length])
            if part == 2:
                theta = rng.uniform(0.0, 2.0 * math.pi)
                point[a1] += r * math.cos(theta)
                point[a2] += r * math.sin(theta)
                point[along] += rng.uniform(0.0, length)
                return point
            u, v = _unit_disk(rng)
            point[a1] += u * r
            point[a2] += v * r
            point[along] += length if part == 1 else 0.0
            return point
        u, v = _unit_disk(rng)
        point[a1] += u * r
        point[a2] += v * r
        point[along] += rng.uniform(0.0, length)
        return point

    if shape == Shape.LINE and not surface:
        return b[0::2] + rng.random() * (b[1::2] - b[0::2])

    raise UnsupportedShapeCombination("a uniform random point", shape)


__all__ = [
    "point_distance",
    "point_in_boundary",
    "boundary_intersect",
    "boundary_adjacent",
    "boundary_surrounds",
    "record_face",
    "shared_surface",
    "distance_to_boundary",
    "intersect_boundary",
    "boundary_volume",
    "boundary_surface_area",
    "uniform_point_volume",
    "FACE_MANTLE",
]
