"""
Unit tests for boundary geometry relations and measures.
"""

import math

import numpy as np
import pytest

from mcrd_sim import Boundary, Direction, Plane, Shape
from mcrd_sim.errors import UnsupportedShapeCombination
from mcrd_sim.geometry import (
    boundary_adjacent,
    boundary_intersect,
    boundary_surface_area,
    boundary_surrounds,
    boundary_volume,
    distance_to_boundary,
    intersect_boundary,
    point_in_boundary,
    record_face,
    shared_surface,
    uniform_point_volume,
)
from mcrd_sim.utils import make_rng

UNIT_BOX = Boundary.box(0, 1, 0, 1, 0, 1)


@pytest.mark.parametrize(
    "other",
    [
        Boundary.box(0.5, 1.5, 0.5, 1.5, 0.5, 1.5),
        Boundary.box(1.0, 2.0, 0, 1, 0, 1),
        Boundary.box(2.0, 3.0, 0, 1, 0, 1),
        Boundary.box(0.2, 0.8, 0.2, 0.8, 0.2, 0.8),
        Boundary.rectangle(0.5, 0.5, -1, 2, -1, 2),
    ],
)
def test_box_intersect_is_symmetric(other):
    assert boundary_intersect(UNIT_BOX, other, 0.0) == boundary_intersect(other, UNIT_BOX, 0.0)


def test_sphere_above_box_needs_clearance():
    sphere = Boundary.sphere(0.5, 0.5, 1.5, 0.5)
    assert boundary_intersect(UNIT_BOX, sphere, 0.0) is False
    assert boundary_intersect(UNIT_BOX, sphere, 1.0) is True
    assert boundary_intersect(sphere, UNIT_BOX, 1.0) is True


def test_touching_boxes_do_not_intersect():
    assert not boundary_intersect(UNIT_BOX, Boundary.box(1, 2, 0, 1, 0, 1), 0.0)
    assert boundary_intersect(UNIT_BOX, Boundary.box(1, 2, 0, 1, 0, 1), 0.1)


@pytest.mark.parametrize(
    "boundary, point",
    [
        (UNIT_BOX, (1.5, 0.5, 0.5)),
        (UNIT_BOX, (0.5, -0.1, 0.5)),
        (Boundary.sphere(0, 0, 0, 1), (0.8, 0.8, 0.0)),
        (Boundary.cylinder((0, 0, 0), 1.0, Plane.XY, 2.0), (0.0, 0.0, 2.5)),
        (Boundary.cylinder((0, 0, 0), 1.0, Plane.XY, 2.0), (0.9, 0.9, 1.0)),
        (Boundary.cylinder((0, 0, 0), 1.0, Plane.YZ, 2.0), (-0.5, 0.0, 0.0)),
    ],
)
def test_points_outside_are_not_inside(boundary, point):
    assert point_in_boundary(point, boundary) is False


def test_points_inside():
    assert point_in_boundary((0.5, 0.5, 0.5), UNIT_BOX)
    assert point_in_boundary((1.0, 0.5, 0.5), UNIT_BOX)
    assert point_in_boundary((0.5, 0, 0), Boundary.sphere(0, 0, 0, 1))
    cylinder = Boundary.cylinder((0, 0, 0), 1.0, Plane.YZ, 2.0)
    assert point_in_boundary((1.5, 0.5, 0.5), cylinder)


def test_point_in_circle_is_unsupported():
    with pytest.raises(UnsupportedShapeCombination):
        point_in_boundary((0, 0, 0), Boundary.circle(0, 0, 0, 1))


@pytest.mark.parametrize(
    "inner, outer, clearance",
    [
        (Boundary.box(0.2, 0.8, 0.2, 0.8, 0.2, 0.8), UNIT_BOX, 0.1),
        (Boundary.sphere(0.5, 0.5, 0.5, 0.2), UNIT_BOX, 0.1),
        (Boundary.box(0.4, 0.6, 0.4, 0.6, 0.4, 0.6), Boundary.sphere(0.5, 0.5, 0.5, 0.5), 0.0),
        (Boundary.sphere(0.1, 0, 0, 0.5), Boundary.sphere(0, 0, 0, 1), 0.2),
        (Boundary.cylinder((0.5, 0.5, 0.1), 0.2, Plane.XY, 0.8), UNIT_BOX, 0.05),
        (
            Boundary.cylinder((0, 0, 0.5), 0.5, Plane.XY, 1.0),
            Boundary.cylinder((0, 0, 0), 1.0, Plane.XY, 2.0),
            0.1,
        ),
        (Boundary.box(-0.2, 0.2, -0.2, 0.2, 0.5, 1.5), Boundary.cylinder((0, 0, 0), 1.0, Plane.XY, 2.0), 0.0),
        (Boundary.rectangle(0.2, 0.5, 0.2, 0.5, 0, 0), Boundary.rectangle(0, 1, 0, 1, 0, 0), 0.0),
        (Boundary.rectangle(0, 1, 0, 1, 0, 0), UNIT_BOX, 0.0),
        (Boundary.rectangle(0.2, 0.8, 0.5, 0.5, 0.2, 0.8), UNIT_BOX, 0.0),
    ],
)
def test_surrounds_implies_intersect(inner, outer, clearance):
    assert boundary_surrounds(inner, outer, clearance)
    assert boundary_intersect(inner, outer, 0.0)


def test_surrounds_respects_clearance():
    inner = Boundary.box(0.05, 0.95, 0.05, 0.95, 0.05, 0.95)
    assert boundary_surrounds(inner, UNIT_BOX, 0.0)
    assert not boundary_surrounds(inner, UNIT_BOX, 0.1)
    assert not boundary_surrounds(UNIT_BOX, inner, 0.0)


def test_sphere_cannot_sit_in_rectangle():
    rect = Boundary.rectangle(0, 1, 0, 1, 0, 0)
    assert boundary_surrounds(Boundary.sphere(0.5, 0.5, 0, 0.1), rect, 0.0) is False


def test_cylinders_of_different_orientation_are_unsupported():
    a = Boundary.cylinder((0, 0, 0), 1.0, Plane.XY, 1.0)
    b = Boundary.cylinder((0, 0, 0), 1.0, Plane.XZ, 1.0)
    with pytest.raises(UnsupportedShapeCombination):
        boundary_intersect(a, b, 0.0)
    with pytest.raises(UnsupportedShapeCombination):
        boundary_surrounds(a, b, 0.0)
    with pytest.raises(UnsupportedShapeCombination):
        boundary_adjacent(a, b, 1e-9)


def test_sphere_cylinder_intersect_is_unsupported():
    with pytest.raises(UnsupportedShapeCombination, match="Sphere and Cylinder"):
        boundary_intersect(
            Boundary.sphere(0, 0, 0, 1), Boundary.cylinder((0, 0, 0), 1.0, Plane.XY, 1.0), 0.0
        )


def test_cylinder_box_intersect_uses_cross_section():
    cylinder = Boundary.cylinder((0, 0, 0), 1.0, Plane.XY, 1.0)
    # corner of the box is outside the circle but its edge comes within reach
    assert boundary_intersect(cylinder, Boundary.box(0.5, 2, -0.5, 0.5, 0, 1), 0.0)
    assert not boundary_intersect(cylinder, Boundary.box(0.8, 2, 0.8, 2, 0, 1), 0.0)
    assert not boundary_intersect(cylinder, Boundary.box(-0.5, 0.5, -0.5, 0.5, 2, 3), 0.0)


def test_adjacent_boxes_report_direction():
    right = Boundary.box(1, 2, 0, 1, 0, 1)
    assert boundary_adjacent(UNIT_BOX, right, 1e-9) == (True, Direction.RIGHT)
    assert boundary_adjacent(right, UNIT_BOX, 1e-9) == (True, Direction.LEFT)
    above = Boundary.box(0, 1, 0, 1, 1, 2)
    assert boundary_adjacent(UNIT_BOX, above, 1e-9) == (True, Direction.OUT)


def test_overlapping_boxes_are_not_adjacent():
    assert boundary_adjacent(UNIT_BOX, Boundary.box(0.5, 1.5, 0, 1, 0, 1), 1e-9) == (False, None)


def test_adjacency_tolerates_rounding():
    right = Boundary.box(1 + 1e-12, 2, 0, 1, 0, 1)
    assert boundary_adjacent(UNIT_BOX, right, 1e-9) == (True, Direction.RIGHT)
    assert boundary_adjacent(UNIT_BOX, right, 1e-14) == (False, None)


def test_adjacent_rectangles_and_cylinders():
    r1 = Boundary.rectangle(0, 1, 0, 1, 0, 0)
    r2 = Boundary.rectangle(0, 1, 1, 2, 0, 0)
    assert boundary_adjacent(r1, r2, 1e-9) == (True, Direction.UP)
    c1 = Boundary.cylinder((0, 0, 0), 1.0, Plane.XY, 1.0)
    c2 = Boundary.cylinder((0, 0, 1), 1.0, Plane.XY, 1.0)
    assert boundary_adjacent(c1, c2, 1e-9) == (True, Direction.OUT)
    assert boundary_adjacent(c2, c1, 1e-9) == (True, Direction.IN)


def test_sphere_adjacency_is_unsupported():
    with pytest.raises(UnsupportedShapeCombination):
        boundary_adjacent(Boundary.sphere(0, 0, 0, 1), UNIT_BOX, 1e-9)


def test_volumes_and_areas():
    assert boundary_volume(Boundary.box(0, 2, 0, 3, 0, 4)) == pytest.approx(24.0)
    assert boundary_volume(Boundary.sphere(0, 0, 0, 1)) == pytest.approx(4.0 / 3.0 * math.pi)
    assert boundary_volume(Boundary.cylinder((0, 0, 0), 1.0, Plane.XZ, 2.0)) == pytest.approx(2 * math.pi)
    assert boundary_volume(Boundary.rectangle(0, 2, 0, 3, 1, 1)) == pytest.approx(6.0)
    assert boundary_volume(Boundary.circle(0, 0, 0, 2)) == pytest.approx(4 * math.pi)
    assert boundary_volume(Boundary.line((0, 0, 0), (3, 4, 0))) == pytest.approx(5.0)
    assert boundary_surface_area(UNIT_BOX) == pytest.approx(6.0)
    assert boundary_surface_area(Boundary.sphere(0, 0, 0, 1)) == pytest.approx(4 * math.pi)
    assert boundary_surface_area(
        Boundary.cylinder((0, 0, 0), 1.0, Plane.XY, 2.0)
    ) == pytest.approx(6 * math.pi)
    assert boundary_surface_area(Boundary.rectangle(0, 2, 0, 3, 1, 1)) == pytest.approx(10.0)


def test_inverted_box_has_zero_measure():
    inverted = Boundary.box(1, 0, 0, 1, 0, 1)
    assert inverted.is_degenerate
    assert boundary_volume(inverted) == 0.0
    assert boundary_surface_area(inverted) == 0.0


def test_intersect_boundary():
    overlap = intersect_boundary(Boundary.box(0, 2, 0, 2, 0, 2), Boundary.box(1, 3, 1, 3, 1, 3))
    assert overlap.shape == Shape.BOX
    assert np.allclose(overlap.params, [1, 2, 1, 2, 1, 2])

    disjoint = intersect_boundary(UNIT_BOX, Boundary.box(2, 3, 2, 3, 2, 3))
    assert boundary_volume(disjoint) == 0.0

    sphere = Boundary.sphere(0.5, 0.5, 0.5, 0.25)
    assert intersect_boundary(sphere, UNIT_BOX) == sphere
    assert intersect_boundary(UNIT_BOX, sphere) == sphere

    with pytest.raises(UnsupportedShapeCombination):
        intersect_boundary(UNIT_BOX, Boundary.sphere(1, 1, 1, 0.5))

def test_rectangle_against_box_faces():
    on_face = Boundary.rectangle(0, 1, 0, 1, 1, 1)
    assert boundary_intersect(on_face, UNIT_BOX, 0.0) is True
    assert boundary_intersect(UNIT_BOX, on_face, 0.0) is True
    above = Boundary.rectangle(0, 1, 0, 1, 2, 2)
    assert boundary_intersect(above, UNIT_BOX, 0.0) is False
    assert boundary_intersect(above, UNIT_BOX, 1.0) is True
    # sharing only an edge with the box is not an overlap
    beside = Boundary.rectangle(1, 2, 0, 1, 0, 0)
    assert boundary_intersect(beside, UNIT_BOX, 0.0) is False


def test_intersect_rectangle_with_box_is_a_rectangle():
    overlap = intersect_boundary(
        Boundary.rectangle(0, 1, 0, 1, 0.5, 0.5), Boundary.box(0, 2, 0, 2, 0, 2)
    )
    assert overlap.shape == Shape.RECTANGLE
    assert not overlap.is_degenerate
    assert boundary_volume(overlap) == pytest.approx(1.0)

    clipped = intersect_boundary(
        Boundary.box(0.5, 2, 0, 2, 0, 2), Boundary.rectangle(0, 1, 0, 1, 0.5, 0.5)
    )
    assert clipped.shape == Shape.RECTANGLE
    assert np.allclose(clipped.params, [0.5, 1, 0, 1, 0.5, 0.5])
    assert boundary_volume(clipped) == pytest.approx(0.5)

    missed = intersect_boundary(
        Boundary.rectangle(0, 1, 0, 1, 3, 3), Boundary.box(0, 2, 0, 2, 0, 2)
    )
    assert missed.shape == Shape.BOX
    assert boundary_volume(missed) == 0.0



def test_intersect_cylinder_with_box():
    cylinder = Boundary.cylinder((0, 0, 0), 1.0, Plane.XY, 4.0)
    clipped = intersect_boundary(cylinder, Boundary.box(-2, 2, -2, 2, 1, 2))
    assert clipped.shape == Shape.CYLINDER
    assert clipped.params[2] == pytest.approx(1.0)
    assert clipped.length == pytest.approx(1.0)

    inner = intersect_boundary(Boundary.box(-0.5, 0.5, -0.5, 0.5, -1, 1), cylinder)
    assert inner.shape == Shape.BOX
    assert np.allclose(inner.params, [-0.5, 0.5, -0.5, 0.5, 0, 1])


def test_distance_to_boundary():
    assert distance_to_boundary((0.5, 0.5, 0.2), UNIT_BOX) == pytest.approx(0.2)
    assert distance_to_boundary((2.0, 0.5, 0.5), UNIT_BOX) == pytest.approx(1.0)
    assert distance_to_boundary((3, 0, 0), Boundary.sphere(0, 0, 0, 1)) == pytest.approx(2.0)
    cylinder = Boundary.cylinder((0, 0, 0), 1.0, Plane.XY, 2.0)
    assert distance_to_boundary((0, 0, 1.0), cylinder) == pytest.approx(1.0)
    assert distance_to_boundary((0, 0, 3.0), cylinder) == pytest.approx(1.0)


def test_record_face():
    face = record_face(UNIT_BOX, Direction.RIGHT)
    assert face.shape == Shape.RECTANGLE
    assert np.allclose(face.params, [1, 1, 0, 1, 0, 1])
    sphere = Boundary.sphere(0, 0, 0, 1)
    assert record_face(sphere, 0) is sphere


def test_shared_surface():
    other = Boundary.box(0, 1, 0.5, 2, 0, 1)
    shared = shared_surface(UNIT_BOX, other, Direction.LEFT, 1e-9)
    assert shared is not None
    assert np.allclose(shared.params, [0, 0, 0.5, 1, 0, 1])
    assert shared_surface(UNIT_BOX, other, Direction.UP, 1e-9) is None

    sphere = Boundary.sphere(0, 0, 0, 1)
    assert shared_surface(sphere, Boundary.sphere(0, 0, 0, 1), 0, 1e-9) == sphere
    assert shared_surface(sphere, Boundary.sphere(0, 0, 0, 2), 0, 1e-9) is None


def test_uniform_points_in_and_on_sphere():
    rng = make_rng(0)
    sphere = Boundary.sphere(1, 2, 3, 0.5)
    inside = np.array([uniform_point_volume(sphere, rng) for _ in range(200)])
    radii = np.linalg.norm(inside - [1, 2, 3], axis=1)
    assert np.all(radii <= 0.5)
    on = np.array([uniform_point_volume(sphere, rng, surface=True) for _ in range(200)])
    assert np.allclose(np.linalg.norm(on - [1, 2, 3], axis=1), 0.5)


def test_uniform_points_on_box_faces():
    rng = make_rng(1)
    box = Boundary.box(0, 1, 0, 2, 0, 3)
    for _ in range(100):
        p = uniform_point_volume(box, rng, surface=True)
        assert point_in_boundary(p, box)
        on_face = np.isclose(p, [0, 0, 0]) | np.isclose(p, [1, 2, 3])
        assert on_face.any()


def test_uniform_points_in_cylinder():
    rng = make_rng(2)
    cylinder = Boundary.cylinder((0, 0, 0), 1.0, Plane.XZ, 2.0)
    for _ in range(100):
        assert point_in_boundary(uniform_point_volume(cylinder, rng), cylinder)
        assert distance_to_boundary(uniform_point_volume(cylinder, rng, surface=True), cylinder) < 1e-9


def test_uniform_point_on_circle_is_unsupported():
    with pytest.raises(UnsupportedShapeCombination):
        uniform_point_volume(Boundary.circle(0, 0, 0, 1), make_rng(0))


def test_boundary_validates_parameters():
    with pytest.raises(ValueError):
        Boundary(Shape.SPHERE, [0, 0, 0])
    with pytest.raises(ValueError):
        Boundary.rectangle(0, 1, 0, 1, 0, 1)
    with pytest.raises(ValueError):
        Boundary(Shape.CYLINDER, [0, 0, 0, 1, 7, 1])
    assert Boundary.from_config("Rectangular Box", [0, 1, 0, 1, 0, 1]) == UNIT_BOX
