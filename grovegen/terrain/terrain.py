from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol

from grovegen.noise.perlin2d import FbmOptions, Perlin2D


class HeightSource(Protocol):
    def height_at(self, x: float, z: float) -> float: ...


class FunctionTerrain:
    """Adapts a plain ``(x, z) -> height`` callable to ``HeightSource``."""

    def __init__(self, fn: Callable[[float, float], float]):
        self._fn = fn

    def height_at(self, x: float, z: float) -> float:
        return float(self._fn(x, z))


@dataclass(frozen=True)
class TerrainParams:
    seed: int
    biome_scale: float = 0.002
    detail_scale: float = 0.05
    # Positive x runs out to sea; the shore moves about 1000 units per unit of t.
    sea_gradient: float = 0.001
    sea_t: float = 0.45
    beach_t: float = 0.55
    scrub_t: float = 0.75
    ocean_depth: tuple[float, float] = (-5.0, -0.5)
    beach_height: tuple[float, float] = (0.0, 2.0)
    scrub_height: tuple[float, float] = (2.0, 6.0)
    forest_height: tuple[float, float] = (6.0, 15.0)


def _lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def _clamp01(v: float) -> float:
    if v < 0.0:
        return 0.0
    if v > 1.0:
        return 1.0
    return v


class CoastalTerrain:
    """Continuous coastline height field: ocean to the east, forest inland.

    Heights are world units with sea level at 0. Any (x, z) can be sampled,
    so neighbouring chunks agree along their shared edges.
    """

    def __init__(self, params: TerrainParams):
        self.params = params
        self._biome = Perlin2D(params.seed + 100)
        self._detail = Perlin2D(params.seed)
        self._biome_opts = FbmOptions(octaves=3, lacunarity=2.0, persistence=0.5)
        self._detail_opts = FbmOptions(octaves=4, lacunarity=2.0, persistence=0.5)

    def land_t(self, x: float, z: float) -> float:
        p = self.params
        b = self._biome.fbm01(x * p.biome_scale, z * p.biome_scale, self._biome_opts)
        return _clamp01(b * 0.3 - x * p.sea_gradient + 0.5)

    def height_at(self, x: float, z: float) -> float:
        p = self.params
        t = self.land_t(x, z)
        detail = self._detail.fbm(x * p.detail_scale, z * p.detail_scale, self._detail_opts)

        if t < p.sea_t:
            sandbar = 0.5 if detail > 0.5 else 0.0
            base = _lerp(p.ocean_depth[0], p.ocean_depth[1], t / p.sea_t) + sandbar
            roughness = 0.1
        elif t < p.beach_t:
            blend = (t - p.sea_t) / (p.beach_t - p.sea_t)
            base = _lerp(p.beach_height[0], p.beach_height[1], blend)
            roughness = 0.2
        elif t < p.scrub_t:
            blend = (t - p.beach_t) / (p.scrub_t - p.beach_t)
            base = _lerp(p.scrub_height[0], p.scrub_height[1], blend)
            roughness = 1.0
        else:
            blend = (t - p.scrub_t) / (1.0 - p.scrub_t)
            base = _lerp(p.forest_height[0], p.forest_height[1], blend)
            roughness = 2.0

        return base + detail * roughness
