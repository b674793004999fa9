from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import numpy as np
from helpers import flat, full_density_biome

from grovegen.budget.guard import RegionLimits
from grovegen.core.diagnostics import (
    CHUNK_TRUNCATED,
    INSTANCE_SKIPPED,
    INSTANCE_TRUNCATED,
    CollectingSink,
)
from grovegen.generation.chunk import (
    ChunkCoord,
    ChunkGenerator,
    GeneratorConfig,
    generate_chunk,
)
from grovegen.grass.blades import GrassParams, blade_cost
from grovegen.mesh.builder import MeshLimits
from grovegen.species.catalog import load_catalog
from grovegen.species.recipe import OAK, PINE, SpeciesId
from grovegen.terrain.terrain import CoastalTerrain, TerrainParams


def _config(**changes) -> GeneratorConfig:
    base = dict(seed=99, chunk_size=32.0, biome=full_density_biome())
    base.update(changes)
    return GeneratorConfig(**base)


def test_chunk_coord_from_world_pos() -> None:
    assert ChunkCoord.from_world_pos(10.0, 70.0, 64.0) == ChunkCoord(0, 1)
    assert ChunkCoord.from_world_pos(-0.5, -64.0, 64.0) == ChunkCoord(-1, -1)
    assert ChunkCoord(2, -3).world_offset(32.0) == (64.0, -96.0)


def test_generation_is_byte_identical_across_runs() -> None:
    terrain = flat(8.0)
    a = generate_chunk(terrain, ChunkCoord(1, -2), _config(), sink=CollectingSink())
    b = generate_chunk(terrain, ChunkCoord(1, -2), _config(), sink=CollectingSink())

    assert a.instances
    assert a.vertices.tobytes() == b.vertices.tobytes()
    assert a.indices.tobytes() == b.indices.tobytes()
    assert [i.seed for i in a.instances] == [i.seed for i in b.instances]


def test_generation_does_not_depend_on_thread_scheduling() -> None:
    terrain = CoastalTerrain(TerrainParams(seed=5))
    gen = ChunkGenerator(terrain, GeneratorConfig(seed=5, chunk_size=32.0), sink=CollectingSink())
    coords = [ChunkCoord(x, z) for x in (-8, -7, -6) for z in (0, 1)]

    sequential = [gen.generate(c) for c in coords]
    with ThreadPoolExecutor(max_workers=2) as pool:
        parallel = list(pool.map(gen.generate, reversed(coords)))
    parallel.reverse()

    for s, p in zip(sequential, parallel):
        assert s.coord == p.coord
        assert s.vertices.tobytes() == p.vertices.tobytes()
        assert s.indices.tobytes() == p.indices.tobytes()


def test_water_chunk_is_empty() -> None:
    chunk = generate_chunk(flat(-1.0), ChunkCoord(0, 0), _config(), sink=CollectingSink())
    assert chunk.instances == ()
    assert chunk.vertex_count == 0
    assert chunk.index_count == 0
    assert not chunk.truncated


def test_merged_buffers_match_instance_totals() -> None:
    chunk = generate_chunk(flat(8.0), ChunkCoord(0, 0), _config(), sink=CollectingSink())
    blade = blade_cost(GrassParams())
    assert len(chunk.instances) == 8 * 8
    assert chunk.grass_blades > 0
    assert chunk.vertex_count == sum(
        i.mesh.vertex_count for i in chunk.instances
    ) + chunk.grass_blades * blade.vertices
    assert chunk.index_count == sum(
        i.mesh.index_count for i in chunk.instances
    ) + chunk.grass_blades * blade.indices
    assert int(chunk.indices.max()) < chunk.vertex_count
    assert not chunk.vertices.flags.writeable

    # The second instance's indices are rebased past the first one's vertices.
    first, second = chunk.instances[0].mesh, chunk.instances[1].mesh
    start = first.index_count
    block = chunk.indices[start : start + second.index_count]
    assert np.array_equal(block, second.indices + first.vertex_count)


def test_chunk_ceiling_truncates_with_one_diagnostic() -> None:
    sink = CollectingSink()
    no_grass = _config(grass=GrassParams(enabled=False))
    full = generate_chunk(flat(8.0), ChunkCoord(0, 0), no_grass, sink=CollectingSink())
    ceiling = full.vertex_count // 3

    chunk = generate_chunk(
        flat(8.0),
        ChunkCoord(0, 0),
        _config(region=RegionLimits(max_vertices=ceiling), grass=GrassParams(enabled=False)),
        sink=sink,
    )

    assert chunk.truncated
    assert 0 < chunk.vertex_count <= ceiling
    assert chunk.skipped == len(full.instances) - len(chunk.instances)
    assert len(sink.of_kind(CHUNK_TRUNCATED)) == 1
    assert sink.of_kind(CHUNK_TRUNCATED)[0].chunk_id == (0, 0)


def test_instance_ceiling_applies_inside_a_chunk() -> None:
    sink = CollectingSink()
    chunk = generate_chunk(
        flat(8.0),
        ChunkCoord(0, 0),
        _config(mesh=MeshLimits(max_vertices=64, max_indices=10_000)),
        sink=sink,
    )
    assert chunk.instances
    for inst in chunk.instances:
        assert inst.truncated
        assert inst.mesh.vertex_count <= 64
    assert len(sink.of_kind(INSTANCE_TRUNCATED)) == len(chunk.instances)
    assert not chunk.truncated


def test_malformed_species_is_skipped_without_losing_the_chunk() -> None:
    sink = CollectingSink()
    broken_pine = PINE.with_changes(axiom="F]F", rules={})
    catalog = load_catalog([OAK, broken_pine], sink=sink)
    config = _config(biome=full_density_biome({SpeciesId.OAK: 0.5, SpeciesId.PINE: 0.5}))

    chunk = ChunkGenerator(flat(5.0), config, catalog, sink).generate(ChunkCoord(0, 0))

    assert chunk.malformed > 0
    assert len(sink.of_kind(INSTANCE_SKIPPED)) == chunk.malformed
    assert chunk.instances
    assert all(i.species == SpeciesId.OAK for i in chunk.instances)
    assert len(chunk.instances) + chunk.malformed == 8 * 8


def test_species_missing_from_catalog_is_reported() -> None:
    sink = CollectingSink()
    catalog = load_catalog([OAK], sink=sink)
    config = _config(biome=full_density_biome({SpeciesId.OAK: 0.5, SpeciesId.PINE: 0.5}))

    chunk = ChunkGenerator(flat(5.0), config, catalog, sink).generate(ChunkCoord(0, 0))

    skipped = sink.of_kind(INSTANCE_SKIPPED)
    assert skipped
    assert all("PINE" in d.reason for d in skipped)
    assert len(chunk.instances) + len(skipped) == 8 * 8
