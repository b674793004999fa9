from __future__ import annotations

from dataclasses import dataclass, field
from math import floor

import numpy as np

from grovegen.biome.classifier import BiomeClassifier, BiomeParams
from grovegen.budget.guard import RegionBudgetGuard, RegionLimits
from grovegen.core.diagnostics import (
    DEFAULT_SINK,
    INSTANCE_SKIPPED,
    Diagnostic,
    DiagnosticsSink,
    get_logger,
)
from grovegen.core.env import _env_int
from grovegen.core.errors import MalformedGrammarError
from grovegen.core.prng import Mulberry32
from grovegen.grammar.lsystem import GrammarLimits
from grovegen.grass.blades import GrassParams, GrassScatter, blade_cost, build_grass_mesh
from grovegen.mesh.builder import (
    VERTEX_FLOATS,
    MeshBuffers,
    MeshLimits,
    build_mesh,
    place_mesh,
)
from grovegen.placement.sampler import InstanceRequest, PlacementParams, PlacementSampler
from grovegen.species.catalog import SpeciesCatalog, load_catalog
from grovegen.species.recipe import SpeciesId
from grovegen.terrain.terrain import HeightSource
from grovegen.turtle.interpreter import Skeleton, TurtleLimits, interpret

logger = get_logger(__name__)


@dataclass(frozen=True)
class GeneratorConfig:
    seed: int = 1587
    chunk_size: float = 64.0
    grammar: GrammarLimits = field(default_factory=GrammarLimits)
    turtle: TurtleLimits = field(default_factory=TurtleLimits)
    mesh: MeshLimits = field(default_factory=MeshLimits)
    region: RegionLimits = field(default_factory=RegionLimits)
    biome: BiomeParams = field(default_factory=BiomeParams)
    placement: PlacementParams = field(default_factory=PlacementParams)
    grass: GrassParams = field(default_factory=GrassParams)

    @classmethod
    def from_env(cls, seed: int = 1587, chunk_size: float = 64.0) -> GeneratorConfig:
        g = GrammarLimits()
        m = MeshLimits()
        r = RegionLimits()
        return cls(
            seed=seed,
            chunk_size=chunk_size,
            grammar=GrammarLimits(
                max_symbols=_env_int("GROVEGEN_MAX_SYMBOLS", default=g.max_symbols, minimum=1),
                max_iterations=g.max_iterations,
            ),
            mesh=MeshLimits(
                max_vertices=_env_int(
                    "GROVEGEN_MAX_INSTANCE_VERTICES", default=m.max_vertices, minimum=0
                ),
                max_indices=_env_int(
                    "GROVEGEN_MAX_INSTANCE_INDICES", default=m.max_indices, minimum=0
                ),
            ),
            region=RegionLimits(
                max_vertices=_env_int(
                    "GROVEGEN_MAX_CHUNK_VERTICES", default=r.max_vertices, minimum=0
                ),
                max_indices=_env_int(
                    "GROVEGEN_MAX_CHUNK_INDICES", default=r.max_indices, minimum=0
                ),
                max_bytes=_env_int("GROVEGEN_MAX_CHUNK_BYTES", default=r.max_bytes, minimum=0),
            ),
            grass=GrassParams(enabled=bool(_env_int("GROVEGEN_GRASS", default=1, minimum=0))),
        )


@dataclass(frozen=True, order=True)
class ChunkCoord:
    x: int
    z: int

    @classmethod
    def from_world_pos(cls, x: float, z: float, chunk_size: float) -> ChunkCoord:
        return cls(int(floor(x / chunk_size)), int(floor(z / chunk_size)))

    def world_offset(self, chunk_size: float) -> tuple[float, float]:
        return (self.x * chunk_size, self.z * chunk_size)

    def as_tuple(self) -> tuple[int, int]:
        return (self.x, self.z)


@dataclass(frozen=True, eq=False)
class Instance:
    instance_id: int
    request: InstanceRequest
    skeleton: Skeleton
    mesh: MeshBuffers
    scale: float

    @property
    def position(self) -> tuple[float, float, float]:
        return self.request.position

    @property
    def species(self) -> SpeciesId:
        return self.request.species

    @property
    def seed(self) -> int:
        return self.request.seed

    @property
    def truncated(self) -> bool:
        return self.mesh.truncated


@dataclass(frozen=True, eq=False)
class Chunk:
    coord: ChunkCoord
    origin: tuple[float, float]
    size: float
    instances: tuple[Instance, ...]
    vertices: np.ndarray
    indices: np.ndarray
    truncated: bool
    skipped: int = 0
    malformed: int = 0
    grass_blades: int = 0
    grass_dropped: int = 0

    @property
    def vertex_count(self) -> int:
        return int(self.vertices.shape[0])

    @property
    def index_count(self) -> int:
        return int(self.indices.shape[0])

    @property
    def nbytes(self) -> int:
        return int(self.vertices.nbytes + self.indices.nbytes)


def merge_meshes(meshes: list[MeshBuffers]) -> tuple[np.ndarray, np.ndarray]:
    """Concatenate instance buffers, rebasing each index block onto its vertices."""

    if not meshes:
        verts = np.zeros((0, VERTEX_FLOATS), dtype=np.float32)
        idx = np.zeros((0,), dtype=np.uint32)
    else:
        offsets = np.cumsum([0] + [m.vertex_count for m in meshes[:-1]])
        verts = np.concatenate([m.vertices for m in meshes])
        idx = np.concatenate(
            [m.indices.astype(np.int64) + int(off) for m, off in zip(meshes, offsets)]
        ).astype(np.uint32)
    verts.setflags(write=False)
    idx.setflags(write=False)
    return verts, idx


class ChunkGenerator:
    def __init__(
        self,
        terrain: HeightSource,
        config: GeneratorConfig | None = None,
        catalog: SpeciesCatalog | None = None,
        sink: DiagnosticsSink | None = None,
    ):
        self.config = config or GeneratorConfig()
        self.sink = sink or DEFAULT_SINK
        self.catalog = catalog or load_catalog(
            grammar_limits=self.config.grammar, sink=self.sink
        )
        classifier = BiomeClassifier(self.config.biome)
        self.sampler = PlacementSampler(terrain, classifier, self.config.placement)
        self.grass = GrassScatter(terrain, classifier, self.config.grass, self.config.seed)

    def _skip(self, chunk_id: tuple[int, int], instance_id: int, reason: str) -> None:
        self.sink.emit(
            Diagnostic(
                kind=INSTANCE_SKIPPED,
                reason=reason,
                chunk_id=chunk_id,
                instance_id=instance_id,
            )
        )

    def generate(self, coord: ChunkCoord) -> Chunk:
        cfg = self.config
        chunk_id = coord.as_tuple()
        origin = coord.world_offset(cfg.chunk_size)
        requests = self.sampler.place(origin, cfg.chunk_size, cfg.seed)
        guard = RegionBudgetGuard(cfg.region, self.sink, chunk_id)

        instances: list[Instance] = []
        meshes: list[MeshBuffers] = []
        malformed = 0

        for instance_id, req in enumerate(requests):
            entry = self.catalog.get(req.species)
            if entry is None:
                self._skip(chunk_id, instance_id, f"species {req.species.name} not loaded")
                continue
            if not guard.admit(entry.estimate, instance_id):
                continue

            recipe = entry.recipe
            jitter = Mulberry32(req.seed).random()
            scale = 1.0 + (jitter * 2.0 - 1.0) * recipe.size_jitter
            try:
                skeleton = interpret(entry.grammar, recipe, req.seed, cfg.turtle, scale)
            except MalformedGrammarError as exc:
                malformed += 1
                self._skip(chunk_id, instance_id, f"{recipe.name}: {exc}")
                continue

            local = build_mesh(
                skeleton,
                recipe,
                cfg.mesh,
                sink=self.sink,
                chunk_id=chunk_id,
                instance_id=instance_id,
            )
            mesh = place_mesh(local, req.position, req.yaw)
            guard.record(mesh)
            meshes.append(mesh)
            instances.append(Instance(instance_id, req, skeleton, mesh, scale))

        # Grass is admitted after every tree.
        blades = dropped = 0
        if cfg.grass.enabled:
            patch = self.grass.scatter(origin, cfg.chunk_size)
            blades = guard.admit_many(blade_cost(cfg.grass), len(patch))
            dropped = len(patch) - blades
            if blades:
                grass = build_grass_mesh(patch.head(blades), cfg.grass)
                guard.record(grass)
                meshes.append(grass)

        vertices, indices = merge_meshes(meshes)
        logger.debug(
            "chunk %s: %d/%d instances, %d blades, %d vertices, %d indices%s",
            chunk_id,
            len(instances),
            len(requests),
            blades,
            vertices.shape[0],
            indices.shape[0],
            " (truncated)" if guard.truncated else "",
        )
        return Chunk(
            coord=coord,
            origin=origin,
            size=cfg.chunk_size,
            instances=tuple(instances),
            vertices=vertices,
            indices=indices,
            truncated=guard.truncated,
            skipped=guard.skipped,
            malformed=malformed,
            grass_blades=blades,
            grass_dropped=dropped,
        )


def generate_chunk(
    terrain: HeightSource,
    coord: ChunkCoord,
    config: GeneratorConfig | None = None,
    catalog: SpeciesCatalog | None = None,
    sink: DiagnosticsSink | None = None,
) -> Chunk:
    """One-shot generation; builds a throwaway generator around ``terrain``."""
    return ChunkGenerator(terrain, config, catalog, sink).generate(coord)
