from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from types import MappingProxyType
from typing import Mapping

from grovegen.core.errors import ConfigError
from grovegen.species.recipe import SpeciesId


class BiomeCategory(IntEnum):
    WATER = 0
    BEACH = 1
    SCRUB = 2
    FOREST_EDGE = 3
    DEEP_FOREST = 4


@dataclass(frozen=True)
class BiomeBand:
    category: BiomeCategory
    floor: float  # lowest height (inclusive) of the band
    density_floor: float
    density_ceiling: float
    weights: Mapping[SpeciesId, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "weights", MappingProxyType(dict(self.weights)))


@dataclass(frozen=True)
class BiomeSample:
    category: BiomeCategory
    density: float
    weights: Mapping[SpeciesId, float]

    def pick_species(self, u: float) -> SpeciesId | None:
        """Map ``u`` in [0, 1) onto the cumulative weights, in species order."""
        acc = 0.0
        last: SpeciesId | None = None
        for species in sorted(self.weights):
            w = self.weights[species]
            if w <= 0.0:
                continue
            acc += w
            last = species
            if u < acc:
                return species
        # Float round-off at the top end.
        return last


def default_bands() -> tuple[BiomeBand, ...]:
    s = SpeciesId
    return (
        BiomeBand(BiomeCategory.WATER, float("-inf"), 0.0, 0.0),
        BiomeBand(BiomeCategory.BEACH, 0.0, 0.0, 0.04, {s.PALM: 1.0}),
        BiomeBand(
            BiomeCategory.SCRUB,
            2.0,
            0.04,
            0.18,
            {s.PALM: 0.2, s.BIRCH: 0.45, s.PINE: 0.35},
        ),
        BiomeBand(
            BiomeCategory.FOREST_EDGE,
            6.0,
            0.18,
            0.55,
            {s.OAK: 0.3, s.MAPLE: 0.3, s.BIRCH: 0.2, s.WILLOW: 0.1, s.PINE: 0.1},
        ),
        BiomeBand(
            BiomeCategory.DEEP_FOREST,
            12.0,
            0.55,
            0.55,
            {s.SPRUCE: 0.4, s.PINE: 0.3, s.OAK: 0.2, s.MAPLE: 0.1},
        ),
    )


@dataclass(frozen=True)
class BiomeParams:
    bands: tuple[BiomeBand, ...] = field(default_factory=default_bands)
    weight_tolerance: float = 1e-6


class BiomeClassifier:
    def __init__(self, params: BiomeParams | None = None):
        self.params = params or BiomeParams()
        self._bands = self.params.bands
        self._validate()
        self._water = BiomeSample(BiomeCategory.WATER, 0.0, MappingProxyType({}))

    def _validate(self) -> None:
        bands = self._bands
        if not bands:
            raise ConfigError("at least one biome band is required")
        if bands[0].category != BiomeCategory.WATER:
            raise ConfigError("the lowest biome band must be WATER")
        tol = self.params.weight_tolerance

        for i, band in enumerate(bands):
            if not (0.0 <= band.density_floor <= band.density_ceiling <= 1.0):
                raise ConfigError(
                    f"{band.category.name}: density must be non-decreasing within [0, 1]"
                )
            if band.category == BiomeCategory.WATER:
                if band.density_ceiling != 0.0 or band.weights:
                    raise ConfigError("WATER must have zero density and no species")
            else:
                total = sum(band.weights.values())
                if any(w < 0.0 for w in band.weights.values()) or abs(total - 1.0) > tol:
                    raise ConfigError(
                        f"{band.category.name}: species weights must sum to 1 (got {total})"
                    )
            if i == len(bands) - 1 and band.density_floor != band.density_ceiling:
                raise ConfigError("the terminal biome band must have constant density")
            if i == 0:
                continue
            prev = bands[i - 1]
            if band.floor <= prev.floor:
                raise ConfigError("biome bands must be ordered by increasing floor")
            if abs(band.density_floor - prev.density_ceiling) > tol:
                raise ConfigError(
                    f"density jumps between {prev.category.name} and {band.category.name}"
                )

    @property
    def bands(self) -> tuple[BiomeBand, ...]:
        return self._bands

    def band_index(self, height: float) -> int:
        bands = self._bands
        idx = 0
        for i in range(1, len(bands)):
            if height >= bands[i].floor:
                idx = i
            else:
                break
        return idx

    def classify(self, height: float) -> BiomeSample:
        bands = self._bands
        i = self.band_index(height)
        band = bands[i]
        if band.category == BiomeCategory.WATER:
            return self._water

        if i + 1 < len(bands):
            top = bands[i + 1].floor
            t = (height - band.floor) / (top - band.floor)
            if t < 0.0:
                t = 0.0
            elif t > 1.0:
                t = 1.0
            density = band.density_floor + (band.density_ceiling - band.density_floor) * t
        else:
            # Terminal band: no upper edge to ramp toward.
            density = band.density_ceiling

        return BiomeSample(band.category, density, band.weights)
