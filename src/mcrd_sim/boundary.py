"""
Shape-tagged boundary value type.

A ``Boundary`` is a shape tag plus a fixed-length float64 parameter vector:

- Rectangle / Box: ``[xmin, xmax, ymin, ymax, zmin, zmax]`` (a rectangle has
  one flat axis)
- Sphere / Circle: ``[cx, cy, cz, r]``
- Cylinder: ``[x, y, z, r, plane, length]`` where ``(x, y, z)`` is the centre
  of the base cap, ``plane`` is the cross-section plane and the axis runs in
  the positive direction normal to that plane
- Line: ``[x0, x1, y0, y1, z0, z1]``
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Sequence, Tuple

import numpy as np


class Shape(IntEnum):
    RECTANGLE = 0
    BOX = 1
    SPHERE = 2
    CYLINDER = 3
    CIRCLE = 4
    LINE = 5

    @property
    def label(self) -> str:
        return _SHAPE_LABELS[self]

    @classmethod
    def from_name(cls, name: str) -> "Shape":
        key = name.strip().lower().replace("_", " ")
        if key not in _SHAPE_NAMES:
            raise ValueError(f"Unknown shape name: {name!r}")
        return _SHAPE_NAMES[key]


_SHAPE_LABELS = {
    Shape.RECTANGLE: "Rectangle",
    Shape.BOX: "Rectangular Box",
    Shape.SPHERE: "Sphere",
    Shape.CYLINDER: "Cylinder",
    Shape.CIRCLE: "Circle",
    Shape.LINE: "Line",
}

_SHAPE_NAMES = {
    "rectangle": Shape.RECTANGLE,
    "box": Shape.BOX,
    "rectangular box": Shape.BOX,
    "sphere": Shape.SPHERE,
    "cylinder": Shape.CYLINDER,
    "circle": Shape.CIRCLE,
    "line": Shape.LINE,
}

PARAM_LENGTH = {
    Shape.RECTANGLE: 6,
    Shape.BOX: 6,
    Shape.SPHERE: 4,
    Shape.CYLINDER: 6,
    Shape.CIRCLE: 4,
    Shape.LINE: 6,
}

RECTANGULAR = (Shape.RECTANGLE, Shape.BOX)


class Plane(IntEnum):
    XY = 0
    XZ = 1
    YZ = 2
    THREE_D = 3


# (along, across1, across2) coordinate indices for each cross-section plane
PLANE_AXES = {
    Plane.XY: (2, 0, 1),
    Plane.XZ: (1, 0, 2),
    Plane.YZ: (0, 1, 2),
}


class Direction(IntEnum):
    """Face of the first boundary that the second boundary sits against."""

    LEFT = 0  # lower x
    RIGHT = 1  # upper x
    DOWN = 2  # lower y
    UP = 3  # upper y
    IN = 4  # lower z
    OUT = 5  # upper z


# Box faces use the Direction values: face = 2 * axis + (0 lower | 1 upper).
FACE_SPHERE = 0
FACE_MANTLE = 6
NUM_BOX_FACES = 6


def face_axis(face: int) -> int:
    return face // 2


@dataclass(frozen=True, eq=False)
class Boundary:
    shape: Shape
    params: np.ndarray

    def __post_init__(self) -> None:
        shape = Shape(self.shape)
        params = np.array(self.params, dtype=np.float64).reshape(-1)
        expected = PARAM_LENGTH[shape]
        if params.size != expected:
            raise ValueError(
                f"A {shape.label} needs {expected} parameters, got {params.size}"
            )
        if not np.all(np.isfinite(params)):
            raise ValueError(f"{shape.label} parameters must be finite: {params}")
        if shape == Shape.CYLINDER and int(params[4]) not in PLANE_AXES:
            raise ValueError(f"Cylinder plane tag must be 0, 1 or 2, got {params[4]}")
        if shape in (Shape.SPHERE, Shape.CIRCLE, Shape.CYLINDER) and params[3] < 0.0:
            raise ValueError(f"{shape.label} radius must be non-negative, got {params[3]}")
        if shape == Shape.RECTANGLE and not np.any(params[0::2] == params[1::2]):
            raise ValueError("A Rectangle needs one flat axis (min == max)")
        params.setflags(write=False)
        object.__setattr__(self, "shape", shape)
        object.__setattr__(self, "params", params)

    # ------------------------------------------------------------ constructors
    @classmethod
    def box(cls, xmin, xmax, ymin, ymax, zmin, zmax) -> "Boundary":
        return cls(Shape.BOX, [xmin, xmax, ymin, ymax, zmin, zmax])

    @classmethod
    def rectangle(cls, xmin, xmax, ymin, ymax, zmin, zmax) -> "Boundary":
        return cls(Shape.RECTANGLE, [xmin, xmax, ymin, ymax, zmin, zmax])

    @classmethod
    def sphere(cls, cx, cy, cz, r) -> "Boundary":
        return cls(Shape.SPHERE, [cx, cy, cz, r])

    @classmethod
    def circle(cls, cx, cy, cz, r) -> "Boundary":
        return cls(Shape.CIRCLE, [cx, cy, cz, r])

    @classmethod
    def cylinder(cls, base: Sequence[float], radius: float, plane: Plane, length: float) -> "Boundary":
        x, y, z = base
        return cls(Shape.CYLINDER, [x, y, z, radius, int(plane), length])

    @classmethod
    def line(cls, start: Sequence[float], end: Sequence[float]) -> "Boundary":
        return cls(Shape.LINE, [start[0], end[0], start[1], end[1], start[2], end[2]])

    @classmethod
    def from_config(cls, shape: str | Shape, params: Sequence[float]) -> "Boundary":
        if isinstance(shape, str):
            shape = Shape.from_name(shape)
        return cls(shape, params)

    # -------------------------------------------------------------- accessors
    @property
    def radius(self) -> float:
        return float(self.params[3])

    @property
    def centre(self) -> np.ndarray:
        return self.params[:3]

    @property
    def plane(self) -> Plane:
        """Cross-section plane of a cylinder, plane of a rectangle, else THREE_D."""
        if self.shape == Shape.CYLINDER:
            return Plane(int(self.params[4]))
        if self.shape == Shape.RECTANGLE:
            p = self.params
            if p[0] == p[1]:
                return Plane.YZ
            if p[2] == p[3]:
                return Plane.XZ
            return Plane.XY
        return Plane.THREE_D

    @property
    def axes(self) -> Tuple[int, int, int]:
        """(along, across1, across2) for a cylinder."""
        return PLANE_AXES[self.plane]

    @property
    def length(self) -> float:
        return float(self.params[5])

    @property
    def is_degenerate(self) -> bool:
        p = self.params
        if self.shape == Shape.BOX:
            return bool(np.any(p[1::2] <= p[0::2]))
        if self.shape == Shape.RECTANGLE:
            flat = p[1::2] == p[0::2]
            return bool(np.any(p[1::2] < p[0::2]) or np.count_nonzero(flat) > 1)
        if self.shape in (Shape.SPHERE, Shape.CIRCLE):
            return p[3] <= 0.0
        if self.shape == Shape.CYLINDER:
            return p[3] <= 0.0 or p[5] <= 0.0
        return bool(np.all(p[1::2] == p[0::2]))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Boundary):
            return NotImplemented
        return self.shape == other.shape and np.array_equal(self.params, other.params)

    def __hash__(self) -> int:
        return hash((int(self.shape), self.params.tobytes()))

    def __repr__(self) -> str:
        values = ", ".join(f"{v:g}" for v in self.params)
        return f"Boundary({self.shape.label}: [{values}])"


__all__ = [
    "Shape",
    "Plane",
    "Direction",
    "Boundary",
    "PARAM_LENGTH",
    "PLANE_AXES",
    "RECTANGULAR",
    "FACE_SPHERE",
    "FACE_MANTLE",
    "NUM_BOX_FACES",
    "face_axis",
]
