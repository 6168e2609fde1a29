"""
The ``ShapeType`` data model and the motion model that animates it.

Shapes bounce around a fixed drawing area.  :func:`move_shape` is pure
and deterministic so that every implementation of the interoperability
test draws the same trajectory from the same starting state.
"""

from dataclasses import dataclass, replace

import numpy as np

TYPE_NAME = "ShapeType"

# Drawing area, in pixels.
DA_WIDTH: int = 240
DA_HEIGHT: int = 270

DEFAULT_SHAPESIZE: int = 21


@dataclass(frozen=True)
class Shape:
    """One shape instance.  ``color`` is the instance key."""

    color: str
    x: int
    y: int
    shapesize: int

    @property
    def key(self) -> str:
        return self.color


@dataclass(frozen=True)
class Value:
    """A sample carrying a full shape."""

    shape: Shape


@dataclass(frozen=True)
class Withdrawn:
    """A sample announcing that the instance *key* has been disposed."""

    key: str


Sample = Value | Withdrawn


def _reflect(pos: int, vel: int, half: int, limit: int) -> tuple[int, int]:
    low, high = half, limit - half
    if low > high:
        # Shape does not fit in the area at all: park it in the middle.
        return limit // 2, -vel
    if pos < low:
        pos, vel = low, -vel
    if pos > high:
        pos, vel = high, -vel
    return pos, vel


def move_shape(shape: Shape, xv: int, yv: int) -> tuple[Shape, int, int]:
    """Advance *shape* by one step of velocity ``(xv, yv)``.

    The shape bounces off the edges of the drawing area: a coordinate
    that would leave ``[half, LIMIT - half]`` is pinned to the edge and
    that axis's velocity is negated.  Both axes are checked every time,
    so a corner hit reflects both.

    Example::

        >>> move_shape(Shape("RED", 1, 1, 20), -3, -3)
        (Shape(color='RED', x=11, y=11, shapesize=20), 3, 3)

    Raises:
        ValueError: If ``shape.shapesize`` is negative.
    """
    if shape.shapesize < 0:
        raise ValueError(f"shapesize must be >= 0, got {shape.shapesize}")

    half = shape.shapesize // 2 + 1
    x, xv = _reflect(shape.x + xv, xv, half, DA_WIDTH)
    y, yv = _reflect(shape.y + yv, yv, half, DA_HEIGHT)
    return replace(shape, x=x, y=y), xv, yv


def random_component(rng: np.random.Generator) -> int:
    """Draw one non-zero velocity component.

    Positive draws lie in ``[1, 4]``, negative draws in ``[-5, -2]``.
    """
    while True:
        if rng.random() < 0.5:
            v = int(rng.integers(1, 5))
        else:
            v = int(rng.integers(-5, -1))
        if v != 0:
            return v


def random_velocity(rng: np.random.Generator | None = None) -> tuple[int, int]:
    """Return a fresh ``(xv, yv)`` pair with neither component zero."""
    if rng is None:
        rng = np.random.default_rng()
    return random_component(rng), random_component(rng)
