from __future__ import annotations

from dataclasses import dataclass
from math import floor

from grovegen.core.prng import Mulberry32, clamp_u32

# Eight unit-ish gradient directions indexed by the low hash bits.
_GRADS = (
    (1.0, 1.0),
    (-1.0, 1.0),
    (1.0, -1.0),
    (-1.0, -1.0),
    (1.0, 0.0),
    (-1.0, 0.0),
    (0.0, 1.0),
    (0.0, -1.0),
)


def _fade(t: float) -> float:
    return t * t * t * (t * (t * 6.0 - 15.0) + 10.0)


@dataclass(frozen=True)
class FbmOptions:
    octaves: int = 4
    lacunarity: float = 2.0
    persistence: float = 0.5


class Perlin2D:
    """Seeded 2D gradient noise returning values in roughly [-1, 1]."""

    def __init__(self, seed: int):
        rng = Mulberry32(clamp_u32(seed))
        perm = list(range(256))
        for i in range(255, 0, -1):
            j = int(rng.random() * (i + 1))
            perm[i], perm[j] = perm[j], perm[i]
        self._perm = perm + perm

    def _corner(self, xi: int, yi: int, dx: float, dy: float) -> float:
        gx, gy = _GRADS[self._perm[xi + self._perm[yi]] & 7]
        return gx * dx + gy * dy

    def noise(self, x: float, y: float) -> float:
        # floor, not int, so negative world coordinates tile correctly.
        fx = floor(x)
        fy = floor(y)
        xi = int(fx) & 255
        yi = int(fy) & 255
        dx = x - fx
        dy = y - fy
        u = _fade(dx)
        v = _fade(dy)

        n00 = self._corner(xi, yi, dx, dy)
        n10 = self._corner(xi + 1, yi, dx - 1.0, dy)
        n01 = self._corner(xi, yi + 1, dx, dy - 1.0)
        n11 = self._corner(xi + 1, yi + 1, dx - 1.0, dy - 1.0)

        nx0 = n00 + u * (n10 - n00)
        nx1 = n01 + u * (n11 - n01)
        return (nx0 + v * (nx1 - nx0)) * 0.7071067811865475

    def fbm(self, x: float, y: float, opts: FbmOptions) -> float:
        freq = 1.0
        amp = 1.0
        total = 0.0
        amp_sum = 0.0
        for _ in range(max(1, int(opts.octaves))):
            total += self.noise(x * freq, y * freq) * amp
            amp_sum += amp
            freq *= opts.lacunarity
            amp *= opts.persistence
        return total / amp_sum if amp_sum else 0.0

    def fbm01(self, x: float, y: float, opts: FbmOptions) -> float:
        v = (self.fbm(x, y, opts) + 1.0) * 0.5
        if v < 0.0:
            return 0.0
        if v > 1.0:
            return 1.0
        return v
