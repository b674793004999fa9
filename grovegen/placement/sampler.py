from __future__ import annotations

from dataclasses import dataclass
from math import ceil, pi

from grovegen.biome.classifier import BiomeCategory, BiomeClassifier
from grovegen.core.errors import ConfigError
from grovegen.core.prng import (
    INSTANCE_LAYER,
    PLACEMENT_LAYER,
    Mulberry32,
    seed_for_layer,
)
from grovegen.species.recipe import SpeciesId
from grovegen.terrain.terrain import HeightSource


@dataclass(frozen=True)
class PlacementParams:
    # One candidate per cell caps the density at 1 / cell_size**2.
    cell_size: float = 4.0
    # Fraction of the cell the candidate may wander from its centre.
    jitter: float = 0.9

    def __post_init__(self) -> None:
        if self.cell_size <= 0.0:
            raise ConfigError("cell_size must be > 0")
        if not 0.0 <= self.jitter <= 1.0:
            raise ConfigError("jitter must be in [0, 1]")


@dataclass(frozen=True)
class InstanceRequest:
    position: tuple[float, float, float]
    species: SpeciesId
    seed: int
    cell: tuple[int, int]
    category: BiomeCategory
    yaw: float
    roll: float  # acceptance roll, kept for diagnostics and tests
    density: float


def cell_range(
    chunk_origin: tuple[float, float], chunk_size: float, cell_size: float
) -> tuple[range, range]:
    # A cell belongs to the chunk whose half-open rectangle holds its centre.
    ox, oz = chunk_origin
    gx0 = ceil(ox / cell_size - 0.5)
    gx1 = ceil((ox + chunk_size) / cell_size - 0.5)
    gz0 = ceil(oz / cell_size - 0.5)
    gz1 = ceil((oz + chunk_size) / cell_size - 0.5)
    return range(gx0, gx1), range(gz0, gz1)


class PlacementSampler:
    def __init__(
        self,
        terrain: HeightSource,
        classifier: BiomeClassifier | None = None,
        params: PlacementParams | None = None,
    ):
        self.terrain = terrain
        self.classifier = classifier or BiomeClassifier()
        self.params = params or PlacementParams()

    def cells_for(
        self, chunk_origin: tuple[float, float], chunk_size: float
    ) -> tuple[range, range]:
        return cell_range(chunk_origin, chunk_size, self.params.cell_size)

    def place(
        self, chunk_origin: tuple[float, float], chunk_size: float, seed: int
    ) -> list[InstanceRequest]:
        p = self.params
        cs = p.cell_size
        xs, zs = self.cells_for(chunk_origin, chunk_size)
        out: list[InstanceRequest] = []

        for gz in zs:
            for gx in xs:
                # Fixed draw order per cell: jitter x, jitter z, accept, species, yaw.
                rng = Mulberry32(seed_for_layer(seed, gx, gz, PLACEMENT_LAYER))
                x = (gx + 0.5 + rng.uniform(-0.5, 0.5) * p.jitter) * cs
                z = (gz + 0.5 + rng.uniform(-0.5, 0.5) * p.jitter) * cs
                roll = rng.random()
                species_u = rng.random()
                yaw = rng.random() * 2.0 * pi

                y = self.terrain.height_at(x, z)
                sample = self.classifier.classify(y)
                if sample.category == BiomeCategory.WATER:
                    continue
                if roll >= sample.density:
                    continue
                species = sample.pick_species(species_u)
                if species is None:
                    continue

                out.append(
                    InstanceRequest(
                        position=(x, y, z),
                        species=species,
                        seed=seed_for_layer(seed, gx, gz, INSTANCE_LAYER),
                        cell=(gx, gz),
                        category=sample.category,
                        yaw=yaw,
                        roll=roll,
                        density=sample.density,
                    )
                )
        return out

