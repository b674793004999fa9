from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from grovegen.biome.classifier import BiomeCategory, BiomeClassifier
from grovegen.core.errors import ConfigError
from grovegen.core.prng import GRASS_LAYER, Mulberry32, seed_for_layer
from grovegen.mesh.builder import (
    LEAF_V_RANGE,
    VERTEX_FLOATS,
    MeshBuffers,
    MeshEstimate,
    empty_mesh,
)
from grovegen.noise.perlin2d import Perlin2D
from grovegen.placement.sampler import cell_range
from grovegen.terrain.terrain import HeightSource


@dataclass(frozen=True)
class GrassParams:
    enabled: bool = True
    # At most one blade per cell.
    cell_size: float = 1.0
    jitter: float = 1.0
    blade_segments: int = 5
    # Wet sand below min_height stays bare; blades reach full density and
    # size at full_height.
    min_height: float = 0.8
    full_height: float = 12.8
    min_density: float = 0.1
    width_tip: float = 0.01
    # Low-frequency patches vary blade height by +/- patch_variation.
    patch_scale: float = 0.1
    patch_variation: float = 0.3

    def __post_init__(self) -> None:
        if self.cell_size <= 0.0:
            raise ConfigError("grass cell_size must be > 0")
        if not 0.0 <= self.jitter <= 1.0:
            raise ConfigError("grass jitter must be in [0, 1]")
        if self.blade_segments < 1:
            raise ConfigError("grass blade_segments must be >= 1")
        if self.full_height <= self.min_height:
            raise ConfigError("grass full_height must be above min_height")
        if not 0.0 <= self.min_density <= 1.0:
            raise ConfigError("grass min_density must be in [0, 1]")
        if not 0.0 <= self.patch_variation < 1.0:
            raise ConfigError("grass patch_variation must be in [0, 1)")


def blade_cost(params: GrassParams) -> MeshEstimate:
    """Vertices and indices of one blade ribbon."""
    segs = params.blade_segments
    return MeshEstimate(vertices=(segs + 1) * 2, indices=segs * 6)


@dataclass(frozen=True, eq=False)
class GrassPatch:
    """Blade roots for one chunk, in row-major cell order."""

    positions: np.ndarray  # (n, 3)
    factors: np.ndarray  # (n,) 0 at min_height, 1 at full_height
    angles: np.ndarray  # (n,) lean direction, radians about +Y
    heights: np.ndarray  # (n,)

    def __len__(self) -> int:
        return int(self.positions.shape[0])

    def head(self, n: int) -> GrassPatch:
        return GrassPatch(
            self.positions[:n], self.factors[:n], self.angles[:n], self.heights[:n]
        )


class GrassScatter:
    def __init__(
        self,
        terrain: HeightSource,
        classifier: BiomeClassifier,
        params: GrassParams,
        seed: int,
    ):
        self.terrain = terrain
        self.classifier = classifier
        self.params = params
        self.seed = seed
        self._patches = Perlin2D(seed_for_layer(seed, 0, 0, GRASS_LAYER))

    def factor(self, height: float) -> float:
        p = self.params
        t = (height - p.min_height) / (p.full_height - p.min_height)
        return min(1.0, max(0.0, t))

    def scatter(self, chunk_origin: tuple[float, float], chunk_size: float) -> GrassPatch:
        p = self.params
        cs = p.cell_size
        xs, zs = cell_range(chunk_origin, chunk_size, cs)
        rows: list[tuple[float, float, float, float, float, float]] = []

        for gz in zs:
            for gx in xs:
                # Draw order per cell: jitter x, jitter z, accept, lean, height.
                rng = Mulberry32(seed_for_layer(self.seed, gx, gz, GRASS_LAYER))
                x = (gx + 0.5 + rng.uniform(-0.5, 0.5) * p.jitter) * cs
                z = (gz + 0.5 + rng.uniform(-0.5, 0.5) * p.jitter) * cs
                roll = rng.random()
                angle = rng.uniform(-np.pi, np.pi)
                height_u = rng.random()

                y = self.terrain.height_at(x, z)
                if y < p.min_height:
                    continue
                if self.classifier.classify(y).category == BiomeCategory.WATER:
                    continue
                f = self.factor(y)
                if roll >= p.min_density + (1.0 - p.min_density) * f:
                    continue

                patch = self._patches.noise(x * p.patch_scale, z * p.patch_scale)
                size_mod = 1.0 + patch * p.patch_variation
                low = (0.4 + 0.8 * f) * size_mod
                high = (0.8 + 1.6 * f) * size_mod
                rows.append((x, y, z, f, angle, low + (high - low) * height_u))

        if not rows:
            return GrassPatch(
                np.zeros((0, 3)), np.zeros((0,)), np.zeros((0,)), np.zeros((0,))
            )
        data = np.array(rows, dtype=np.float64)
        return GrassPatch(data[:, 0:3], data[:, 3], data[:, 4], data[:, 5])


def build_grass_mesh(patch: GrassPatch, params: GrassParams) -> MeshBuffers:
    """Tessellate every blade in ``patch`` as a tapered, leaning ribbon.

    Blades use the leaf v range so shaders treat them as foliage.
    """

    n = len(patch)
    if n == 0:
        return empty_mesh()
    segs = params.blade_segments
    f = patch.factors

    t = np.arange(segs + 1, dtype=np.float64) / segs  # (S+1,)
    lean_x = np.cos(patch.angles)
    lean_z = np.sin(patch.angles)
    curve = (0.4 + 0.3 * f)[:, None] * (t * t)[None, :]  # (n, S+1)
    width_base = 0.06 + 0.04 * f
    width = width_base[:, None] + (params.width_tip - width_base)[:, None] * t[None, :]
    half = 0.5 * width

    cx = patch.positions[:, 0:1] + lean_x[:, None] * curve
    cy = patch.positions[:, 1:2] + patch.heights[:, None] * t[None, :]
    cz = patch.positions[:, 2:3] + lean_z[:, None] * curve
    # Width runs across the lean direction.
    px = -lean_z[:, None] * half
    pz = lean_x[:, None] * half

    positions = np.empty((n, segs + 1, 2, 3), dtype=np.float64)
    positions[:, :, 0, 0] = cx + px
    positions[:, :, 0, 2] = cz + pz
    positions[:, :, 1, 0] = cx - px
    positions[:, :, 1, 2] = cz - pz
    positions[:, :, :, 1] = cy[:, :, None]

    normal = np.stack([-lean_x, np.zeros(n), -lean_z], axis=1)
    normals = np.broadcast_to(normal[:, None, None, :], positions.shape)

    v_lo, v_hi = LEAF_V_RANGE
    uv = np.empty((segs + 1, 2, 2), dtype=np.float64)
    uv[:, 0, 0] = 0.0
    uv[:, 1, 0] = 1.0
    uv[:, :, 1] = (v_lo + (v_hi - v_lo) * t)[:, None]
    uvs = np.broadcast_to(uv[None], (n, segs + 1, 2, 2))

    verts = np.concatenate([positions, normals, uvs], axis=-1).reshape(-1, VERTEX_FLOATS)

    template: list[int] = []
    for i in range(segs):
        b = i * 2
        template.extend((b, b + 2, b + 1, b + 1, b + 2, b + 3))
    per_blade = (segs + 1) * 2
    offsets = np.arange(n, dtype=np.int64)[:, None] * per_blade
    idx = (np.array(template, dtype=np.int64)[None, :] + offsets).reshape(-1)

    vertices = verts.astype(np.float32)
    indices = idx.astype(np.uint32)
    vertices.setflags(write=False)
    indices.setflags(write=False)
    return MeshBuffers(vertices=vertices, indices=indices, leaf_count=n)
