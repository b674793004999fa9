from __future__ import annotations

from grovegen.biome.classifier import BiomeBand, BiomeCategory, BiomeParams
from grovegen.species.recipe import SpeciesId
from grovegen.terrain.terrain import FunctionTerrain


def full_density_biome(weights: dict[SpeciesId, float] | None = None) -> BiomeParams:
    """Anything at height >= 1 accepts every candidate."""
    w = weights or {SpeciesId.OAK: 1.0}
    return BiomeParams(
        bands=(
            BiomeBand(BiomeCategory.WATER, float("-inf"), 0.0, 0.0),
            BiomeBand(BiomeCategory.BEACH, 0.0, 0.0, 1.0, w),
            BiomeBand(BiomeCategory.DEEP_FOREST, 1.0, 1.0, 1.0, w),
        )
    )


def flat(height: float) -> FunctionTerrain:
    return FunctionTerrain(lambda x, z: height)
