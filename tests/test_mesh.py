from __future__ import annotations

import numpy as np

from grovegen.core.diagnostics import INSTANCE_TRUNCATED, CollectingSink
from grovegen.grammar.lsystem import GrammarLimits, expand
from grovegen.mesh.builder import (
    BARK_V_RANGE,
    LEAF_V_RANGE,
    MeshLimits,
    branch_cost,
    build_mesh,
    estimate_mesh_size,
    is_leaf_v,
    place_mesh,
)
from grovegen.species.recipe import OAK, PALM
from grovegen.turtle.interpreter import interpret


def _oak(leaf_probability: float = 1.0):
    recipe = OAK.with_changes(leaf_probability=leaf_probability)
    g = expand(recipe)
    return recipe, g, interpret(g, recipe, seed=2024)


def test_mesh_counts_and_layout() -> None:
    recipe, _, sk = _oak()
    mesh = build_mesh(sk, recipe, sink=CollectingSink())

    bv, bi = branch_cost(recipe)
    assert mesh.vertex_count == len(sk.branches) * bv + len(sk.leaves) * 4
    assert mesh.index_count == len(sk.branches) * bi + len(sk.leaves) * 6
    assert mesh.vertices.dtype == np.float32
    assert mesh.vertices.shape[1] == 8
    assert mesh.indices.dtype == np.uint32
    assert mesh.index_count % 3 == 0
    assert int(mesh.indices.max()) < mesh.vertex_count
    assert not mesh.truncated
    assert not mesh.vertices.flags.writeable


def test_bark_and_leaf_v_ranges() -> None:
    recipe, _, sk = _oak()
    mesh = build_mesh(sk, recipe, sink=CollectingSink())
    bark_end = len(sk.branches) * branch_cost(recipe)[0]

    v = mesh.vertices[:, 7]
    assert np.all(v[:bark_end] >= BARK_V_RANGE[0])
    assert np.all(v[:bark_end] <= BARK_V_RANGE[1] + 1e-6)
    assert np.all(v[bark_end:] >= LEAF_V_RANGE[0] - 1e-6)
    assert np.all(v[bark_end:] <= LEAF_V_RANGE[1] + 1e-6)
    assert not any(is_leaf_v(float(x)) for x in v[:bark_end])
    assert all(is_leaf_v(float(x)) for x in v[bark_end:])


def test_rings_sit_at_half_thickness_with_unit_normals() -> None:
    recipe, _, sk = _oak(leaf_probability=0.0)
    mesh = build_mesh(sk, recipe, sink=CollectingSink())
    radial = recipe.radial_segments

    first = sk.branches[0]
    ring = mesh.vertices[:radial, 0:3].astype(np.float64)
    dist = np.linalg.norm(ring - np.array(first.start), axis=1)
    assert np.allclose(dist, first.start_thickness * 0.5, atol=1e-5)

    normals = mesh.vertices[:, 3:6].astype(np.float64)
    assert np.allclose(np.linalg.norm(normals, axis=1), 1.0, atol=1e-5)


def test_vertical_branches_use_the_secondary_reference_axis() -> None:
    # The trunk points straight up, parallel to the primary reference axis.
    recipe = OAK.with_changes(axiom="F", rules={}, leaf_probability=0.0)
    sk = interpret(expand(recipe), recipe, seed=1)
    mesh = build_mesh(sk, recipe, sink=CollectingSink())
    assert np.all(np.isfinite(mesh.vertices))


def test_estimate_is_exact_when_every_leaf_spawns() -> None:
    for recipe in (OAK.with_changes(leaf_probability=1.0), PALM):
        g = expand(recipe)
        mesh = build_mesh(interpret(g, recipe, seed=9), recipe, sink=CollectingSink())
        est = estimate_mesh_size(g, recipe)
        assert est.vertices == mesh.vertex_count
        assert est.indices == mesh.index_count


def test_per_instance_ceiling_truncates_without_dangling_indices() -> None:
    # 2**15 branches x 96 vertices is a little over three million vertices.
    recipe = OAK.with_changes(
        axiom="F",
        rules={"F": "FF"},
        iterations=15,
        length_decay=1.0,
        thickness_decay=1.0,
        leaf_probability=0.0,
        radial_segments=48,
    )
    g = expand(recipe, limits=GrammarLimits(max_symbols=100_000))
    assert estimate_mesh_size(g, recipe).vertices > 3_000_000

    sink = CollectingSink()
    sk = interpret(g, recipe, seed=4)
    mesh = build_mesh(
        sk,
        recipe,
        MeshLimits(max_vertices=1_000_000, max_indices=10_000_000),
        sink=sink,
        instance_id=17,
    )

    assert mesh.truncated
    assert mesh.vertex_count <= 1_000_000
    assert mesh.vertex_count == mesh.branch_count * 96
    assert mesh.index_count % 3 == 0
    assert int(mesh.indices.max()) < mesh.vertex_count

    diags = sink.items
    assert len(diags) == 1
    assert diags[0].kind == INSTANCE_TRUNCATED
    assert diags[0].instance_id == 17
    assert diags[0].requested == len(sk.branches) * 96
    assert diags[0].allowed == 1_000_000


def test_leaves_are_dropped_before_branches() -> None:
    recipe, _, sk = _oak()
    bv, bi = branch_cost(recipe)
    room = len(sk.branches) * bv + 4  # every branch and a single leaf
    sink = CollectingSink()
    mesh = build_mesh(sk, recipe, MeshLimits(max_vertices=room, max_indices=10**9), sink=sink)

    assert len(sk.leaves) > 1
    assert mesh.truncated
    assert mesh.branch_count == len(sk.branches)
    assert mesh.leaf_count == 1
    assert len(sink.of_kind(INSTANCE_TRUNCATED)) == 1


def test_zero_ceiling_yields_empty_mesh() -> None:
    recipe, _, sk = _oak()
    mesh = build_mesh(sk, recipe, MeshLimits(max_vertices=0, max_indices=0), sink=CollectingSink())
    assert mesh.truncated
    assert mesh.vertex_count == 0
    assert mesh.index_count == 0


def test_place_mesh_translates_and_rotates() -> None:
    recipe, _, sk = _oak(leaf_probability=0.0)
    local = build_mesh(sk, recipe, sink=CollectingSink())

    moved = place_mesh(local, (10.0, 2.0, -4.0))
    delta = moved.vertices[:, 0:3].astype(np.float64) - local.vertices[:, 0:3]
    assert np.allclose(delta, [10.0, 2.0, -4.0], atol=1e-4)
    assert np.array_equal(moved.indices, local.indices)

    turned = place_mesh(local, (0.0, 0.0, 0.0), yaw=1.1)
    # Yaw about +Y keeps heights and horizontal distances.
    assert np.allclose(turned.vertices[:, 1], local.vertices[:, 1], atol=1e-5)
    r_local = np.hypot(local.vertices[:, 0], local.vertices[:, 2])
    r_turned = np.hypot(turned.vertices[:, 0], turned.vertices[:, 2])
    assert np.allclose(r_local, r_turned, atol=1e-4)
