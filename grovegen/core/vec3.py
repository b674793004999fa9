from __future__ import annotations

from math import cos, sin

Vec3 = tuple[float, float, float]

ZERO: Vec3 = (0.0, 0.0, 0.0)
UNIT_X: Vec3 = (1.0, 0.0, 0.0)
UNIT_Y: Vec3 = (0.0, 1.0, 0.0)
UNIT_Z: Vec3 = (0.0, 0.0, 1.0)
DOWN: Vec3 = (0.0, -1.0, 0.0)


def sub(a: Vec3, b: Vec3) -> Vec3:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def madd(a: Vec3, b: Vec3, k: float) -> Vec3:
    """Return ``a + b * k``."""
    return (a[0] + b[0] * k, a[1] + b[1] * k, a[2] + b[2] * k)


def dot(a: Vec3, b: Vec3) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def cross(a: Vec3, b: Vec3) -> Vec3:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def norm(v: Vec3) -> float:
    return (v[0] * v[0] + v[1] * v[1] + v[2] * v[2]) ** 0.5


def normalize(v: Vec3, fallback: Vec3 = UNIT_Y) -> Vec3:
    n = norm(v)
    if n < 1e-12:
        return fallback
    return (v[0] / n, v[1] / n, v[2] / n)


def lerp(a: Vec3, b: Vec3, t: float) -> Vec3:
    return (
        a[0] + (b[0] - a[0]) * t,
        a[1] + (b[1] - a[1]) * t,
        a[2] + (b[2] - a[2]) * t,
    )


def rotate(v: Vec3, axis: Vec3, angle: float) -> Vec3:
    # Rodrigues' rotation; axis must be unit length.
    c = cos(angle)
    s = sin(angle)
    k = cross(axis, v)
    d = dot(axis, v) * (1.0 - c)
    return (
        v[0] * c + k[0] * s + axis[0] * d,
        v[1] * c + k[1] * s + axis[1] * d,
        v[2] * c + k[2] * s + axis[2] * d,
    )
