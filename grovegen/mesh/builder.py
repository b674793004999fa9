from __future__ import annotations

from dataclasses import dataclass
from math import cos, sin

import numpy as np

from grovegen.core.diagnostics import (
    DEFAULT_SINK,
    INSTANCE_TRUNCATED,
    Diagnostic,
    DiagnosticsSink,
)
from grovegen.core.errors import CapacityExceeded
from grovegen.grammar.lsystem import DRAW_SYMBOLS, LEAF, GrammarString
from grovegen.species.recipe import SpeciesRecipe
from grovegen.turtle.interpreter import Skeleton, terminal_draws

# Vertex layout: px py pz nx ny nz u v, float32.
VERTEX_FLOATS = 8
VERTEX_STRIDE = VERTEX_FLOATS * 4
INDEX_SIZE = 4

# Published to the shaders: v below the gap is bark, above it is leaf.
BARK_V_RANGE = (0.0, 0.45)
LEAF_V_RANGE = (0.55, 1.0)

LEAF_VERTICES = 4
LEAF_INDICES = 6


def is_leaf_v(v: float) -> bool:
    return v >= LEAF_V_RANGE[0]


@dataclass(frozen=True)
class MeshLimits:
    max_vertices: int = 60_000
    max_indices: int = 240_000


@dataclass(frozen=True)
class MeshEstimate:
    vertices: int
    indices: int

    @property
    def nbytes(self) -> int:
        return self.vertices * VERTEX_STRIDE + self.indices * INDEX_SIZE


@dataclass(frozen=True, eq=False)
class MeshBuffers:
    vertices: np.ndarray  # (N, 8) float32
    indices: np.ndarray  # (M,) uint32
    truncated: bool = False
    branch_count: int = 0
    leaf_count: int = 0

    @property
    def vertex_count(self) -> int:
        return int(self.vertices.shape[0])

    @property
    def index_count(self) -> int:
        return int(self.indices.shape[0])

    @property
    def nbytes(self) -> int:
        return int(self.vertices.nbytes + self.indices.nbytes)


def _frozen(arr: np.ndarray) -> np.ndarray:
    arr.setflags(write=False)
    return arr


def empty_mesh(truncated: bool = False) -> MeshBuffers:
    return MeshBuffers(
        vertices=_frozen(np.zeros((0, VERTEX_FLOATS), dtype=np.float32)),
        indices=_frozen(np.zeros((0,), dtype=np.uint32)),
        truncated=truncated,
    )


def branch_cost(recipe: SpeciesRecipe) -> tuple[int, int]:
    rings = recipe.branch_segments + 1
    return (
        rings * recipe.radial_segments,
        6 * recipe.radial_segments * recipe.branch_segments,
    )


def estimate_mesh_size(grammar: GrammarString, recipe: SpeciesRecipe) -> MeshEstimate:
    """Uncapped upper bound for one instance, from symbol counts alone."""

    draws = grammar.count(DRAW_SYMBOLS)
    leaves = grammar.count(LEAF) + sum(terminal_draws(grammar.symbols))
    bv, bi = branch_cost(recipe)
    return MeshEstimate(
        vertices=draws * bv + leaves * LEAF_VERTICES,
        indices=draws * bi + leaves * LEAF_INDICES,
    )


def _fit(count: int, per_v: int, per_i: int, room_v: int, room_i: int) -> int:
    return max(0, min(count, room_v // per_v, room_i // per_i))


def _branch_geometry(
    skeleton: Skeleton, recipe: SpeciesRecipe, n: int
) -> tuple[np.ndarray, np.ndarray]:
    radial = recipe.radial_segments
    segs = recipe.branch_segments
    branches = skeleton.branches[:n]

    starts = np.array([b.start for b in branches], dtype=np.float64)
    ends = np.array([b.end for b in branches], dtype=np.float64)
    t0 = np.array([b.start_thickness for b in branches], dtype=np.float64)
    t1 = np.array([b.end_thickness for b in branches], dtype=np.float64)

    delta = ends - starts
    lengths = np.linalg.norm(delta, axis=1)
    tangent = np.empty_like(delta)
    ok = lengths > 1e-9
    tangent[ok] = delta[ok] / lengths[ok, None]
    tangent[~ok] = (0.0, 1.0, 0.0)

    # Swap the reference axis when it is nearly parallel to the tangent.
    ref = np.where(
        (np.abs(tangent[:, 1]) > 0.9)[:, None],
        np.array([1.0, 0.0, 0.0]),
        np.array([0.0, 1.0, 0.0]),
    )
    side = np.cross(tangent, ref)
    side /= np.linalg.norm(side, axis=1)[:, None]
    bitangent = np.cross(tangent, side)

    theta = np.arange(radial, dtype=np.float64) * (2.0 * np.pi / radial)
    ring_normals = (
        np.cos(theta)[None, :, None] * side[:, None, :]
        + np.sin(theta)[None, :, None] * bitangent[:, None, :]
    )  # (n, R, 3)

    ts = np.arange(segs + 1, dtype=np.float64) / segs
    centers = starts[:, None, :] + delta[:, None, :] * ts[None, :, None]
    radii = 0.5 * (t0[:, None] + (t1 - t0)[:, None] * ts[None, :])

    positions = centers[:, :, None, :] + ring_normals[:, None, :, :] * radii[:, :, None, None]
    normals = np.broadcast_to(ring_normals[:, None, :, :], positions.shape)

    u = np.broadcast_to(
        (np.arange(radial, dtype=np.float64) / radial)[None, None, :],
        positions.shape[:3],
    )
    v_lo, v_hi = BARK_V_RANGE
    v = np.broadcast_to((v_lo + (v_hi - v_lo) * ts)[None, :, None], positions.shape[:3])

    verts = np.concatenate(
        [positions, normals, u[..., None], v[..., None]], axis=-1
    ).reshape(-1, VERTEX_FLOATS)

    template: list[int] = []
    for k in range(segs):
        for i in range(radial):
            nxt = (i + 1) % radial
            i0 = k * radial + i
            i1 = k * radial + nxt
            i2 = (k + 1) * radial + i
            i3 = (k + 1) * radial + nxt
            template.extend((i0, i2, i1, i1, i2, i3))
    per_branch = (segs + 1) * radial
    offsets = np.arange(n, dtype=np.int64)[:, None] * per_branch
    idx = (np.array(template, dtype=np.int64)[None, :] + offsets).reshape(-1)
    return verts.astype(np.float32), idx


def _leaf_geometry(skeleton: Skeleton, n: int) -> tuple[np.ndarray, np.ndarray]:
    leaves = skeleton.leaves[:n]
    pos = np.array([lf.position for lf in leaves], dtype=np.float64)
    fwd = np.array([lf.forward for lf in leaves], dtype=np.float64)
    right = np.array([lf.right for lf in leaves], dtype=np.float64)
    size = np.array([lf.size for lf in leaves], dtype=np.float64)[:, None]

    half = right * (size * 0.5)
    tip = fwd * size
    corners = np.stack([pos - half, pos + half, pos + half + tip, pos - half + tip], axis=1)

    normal = np.cross(right, fwd)
    nl = np.linalg.norm(normal, axis=1)
    nl[nl < 1e-12] = 1.0
    normal = normal / nl[:, None]
    normals = np.broadcast_to(normal[:, None, :], corners.shape)

    v_lo, v_hi = LEAF_V_RANGE
    uv = np.array([[0.0, v_lo], [1.0, v_lo], [1.0, v_hi], [0.0, v_hi]])
    uvs = np.broadcast_to(uv[None, :, :], (n, 4, 2))

    verts = np.concatenate([corners, normals, uvs], axis=-1).reshape(-1, VERTEX_FLOATS)
    template = np.array([0, 1, 2, 0, 2, 3], dtype=np.int64)
    idx = (template[None, :] + np.arange(n, dtype=np.int64)[:, None] * LEAF_VERTICES).reshape(-1)
    return verts.astype(np.float32), idx


def build_mesh(
    skeleton: Skeleton,
    recipe: SpeciesRecipe,
    limits: MeshLimits | None = None,
    sink: DiagnosticsSink | None = None,
    chunk_id: tuple[int, int] | None = None,
    instance_id: int | None = None,
) -> MeshBuffers:
    """Tessellate ``skeleton`` into bark cylinders and leaf quads.

    Branches are emitted before leaves. Emission stops at the first element
    that would cross either ceiling in ``limits``; only whole elements are
    written, so the index buffer never references a missing vertex.
    """

    limits = limits or MeshLimits()
    bv, bi = branch_cost(recipe)
    n_branches = len(skeleton.branches)
    n_leaves = len(skeleton.leaves)

    fit_b = _fit(n_branches, bv, bi, limits.max_vertices, limits.max_indices)
    if fit_b < n_branches:
        fit_l = 0
    else:
        fit_l = _fit(
            n_leaves,
            LEAF_VERTICES,
            LEAF_INDICES,
            limits.max_vertices - fit_b * bv,
            limits.max_indices - fit_b * bi,
        )
    truncated = fit_b < n_branches or fit_l < n_leaves

    if truncated:
        want_v = n_branches * bv + n_leaves * LEAF_VERTICES
        want_i = n_branches * bi + n_leaves * LEAF_INDICES
        if want_v > limits.max_vertices:
            over = CapacityExceeded("instance", "vertices", want_v, limits.max_vertices)
        else:
            over = CapacityExceeded("instance", "indices", want_i, limits.max_indices)
        (sink or DEFAULT_SINK).emit(
            Diagnostic(
                kind=INSTANCE_TRUNCATED,
                reason=f"{recipe.name}: {over.describe()}",
                chunk_id=chunk_id,
                instance_id=instance_id,
                requested=over.requested,
                allowed=over.allowed,
            )
        )

    if fit_b == 0 and fit_l == 0:
        return empty_mesh(truncated)

    parts_v: list[np.ndarray] = []
    parts_i: list[np.ndarray] = []
    if fit_b:
        v, i = _branch_geometry(skeleton, recipe, fit_b)
        parts_v.append(v)
        parts_i.append(i)
    if fit_l:
        v, i = _leaf_geometry(skeleton, fit_l)
        parts_v.append(v)
        parts_i.append(i + fit_b * bv)

    return MeshBuffers(
        vertices=_frozen(np.concatenate(parts_v)),
        indices=_frozen(np.concatenate(parts_i).astype(np.uint32)),
        truncated=truncated,
        branch_count=fit_b,
        leaf_count=fit_l,
    )


def place_mesh(
    mesh: MeshBuffers,
    origin: tuple[float, float, float],
    yaw: float = 0.0,
) -> MeshBuffers:
    """Rotate ``mesh`` about +Y by ``yaw`` and move it to ``origin``."""

    if mesh.vertex_count == 0:
        return mesh
    c = cos(yaw)
    s = sin(yaw)
    rot = np.array([[c, 0.0, -s], [0.0, 1.0, 0.0], [s, 0.0, c]], dtype=np.float64)

    src = mesh.vertices.astype(np.float64)
    out = np.empty_like(src)
    out[:, 0:3] = src[:, 0:3] @ rot + np.asarray(origin, dtype=np.float64)
    out[:, 3:6] = src[:, 3:6] @ rot
    out[:, 6:8] = src[:, 6:8]
    return MeshBuffers(
        vertices=_frozen(out.astype(np.float32)),
        indices=mesh.indices,
        truncated=mesh.truncated,
        branch_count=mesh.branch_count,
        leaf_count=mesh.leaf_count,
    )
