"""
Tests for shapes_interop.shape — the motion model.
"""

import numpy as np
import pytest

from shapes_interop.shape import (
    DA_HEIGHT,
    DA_WIDTH,
    Shape,
    move_shape,
    random_component,
    random_velocity,
)


def _random_states(n=500, seed=1234):
    rng = np.random.default_rng(seed)
    for _ in range(n):
        size = int(rng.integers(0, 100))
        x = int(rng.integers(-50, DA_WIDTH + 50))
        y = int(rng.integers(-50, DA_HEIGHT + 50))
        xv = int(rng.choice([-5, -4, -3, -2, 1, 2, 3, 4]))
        yv = int(rng.choice([-5, -4, -3, -2, 1, 2, 3, 4]))
        yield Shape("BLUE", x, y, size), xv, yv


# ── Worked examples ───────────────────────────────────────────────────────────

def test_corner_hit_reflects_both_axes():
    shape, xv, yv = move_shape(Shape("RED", 1, 1, 20), -3, -3)
    assert (shape.x, shape.y) == (11, 11)
    assert (xv, yv) == (3, 3)


def test_free_move_keeps_velocity():
    shape, xv, yv = move_shape(Shape("RED", 120, 120, 20), 3, 3)
    assert (shape.x, shape.y) == (123, 123)
    assert (xv, yv) == (3, 3)


def test_upper_edges():
    # half = 11; x limit 229, y limit 259
    shape, xv, yv = move_shape(Shape("RED", 228, 258, 20), 4, 4)
    assert (shape.x, shape.y) == (DA_WIDTH - 11, DA_HEIGHT - 11)
    assert (xv, yv) == (-4, -4)


def test_landing_exactly_on_bound_does_not_reflect():
    shape, xv, yv = move_shape(Shape("RED", 14, 100, 20), -3, 1)
    assert shape.x == 11
    assert xv == -3


def test_key_and_size_unchanged():
    start = Shape("YELLOW", 0, 0, 21)
    shape, _, _ = move_shape(start, 2, 2)
    assert shape.color == "YELLOW"
    assert shape.key == "YELLOW"
    assert shape.shapesize == 21
    assert start == Shape("YELLOW", 0, 0, 21)


def test_negative_size_rejected():
    with pytest.raises(ValueError):
        move_shape(Shape("RED", 10, 10, -1), 1, 1)


def test_oversized_shape_parks_in_middle():
    shape, xv, yv = move_shape(Shape("RED", 10, 10, 300), 2, -3)
    assert (shape.x, shape.y) == (DA_WIDTH // 2, DA_HEIGHT // 2)
    assert (xv, yv) == (-2, 3)


# ── Properties ────────────────────────────────────────────────────────────────

def test_result_always_inside_area():
    for shape, xv, yv in _random_states():
        half = shape.shapesize // 2 + 1
        moved, _, _ = move_shape(shape, xv, yv)
        assert half <= moved.x <= DA_WIDTH - half
        assert half <= moved.y <= DA_HEIGHT - half


def test_velocity_flips_only_on_the_axis_that_hit():
    for shape, xv, yv in _random_states():
        half = shape.shapesize // 2 + 1
        _, new_xv, new_yv = move_shape(shape, xv, yv)
        x_out = not half <= shape.x + xv <= DA_WIDTH - half
        y_out = not half <= shape.y + yv <= DA_HEIGHT - half
        assert new_xv == (-xv if x_out else xv)
        assert new_yv == (-yv if y_out else yv)


def test_deterministic():
    for shape, xv, yv in _random_states(n=50):
        assert move_shape(shape, xv, yv) == move_shape(shape, xv, yv)


def test_long_run_stays_inside():
    shape, xv, yv = Shape("BLUE", 0, 0, 21), 4, -5
    for _ in range(2000):
        shape, xv, yv = move_shape(shape, xv, yv)
        assert 11 <= shape.x <= DA_WIDTH - 11
        assert 11 <= shape.y <= DA_HEIGHT - 11
        assert xv != 0 and yv != 0


# ── Velocity lottery ──────────────────────────────────────────────────────────

def test_random_components_in_range():
    rng = np.random.default_rng(7)
    draws = {random_component(rng) for _ in range(1000)}
    assert 0 not in draws
    assert draws <= {1, 2, 3, 4, -5, -4, -3, -2}
    assert any(v > 0 for v in draws) and any(v < 0 for v in draws)


def test_random_velocity_is_seedable():
    a = random_velocity(np.random.default_rng(42))
    b = random_velocity(np.random.default_rng(42))
    assert a == b
    assert 0 not in a
