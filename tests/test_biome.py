from __future__ import annotations

import pytest

from grovegen.biome.classifier import (
    BiomeBand,
    BiomeCategory,
    BiomeClassifier,
    BiomeParams,
    BiomeSample,
)
from grovegen.core.errors import ConfigError
from grovegen.species.recipe import SpeciesId


def test_water_has_no_density_or_species() -> None:
    c = BiomeClassifier()
    for h in (-50.0, -3.0, -1e-6):
        s = c.classify(h)
        assert s.category == BiomeCategory.WATER
        assert s.density == 0.0
        assert dict(s.weights) == {}


def test_categories_follow_height() -> None:
    c = BiomeClassifier()
    assert c.classify(0.5).category == BiomeCategory.BEACH
    assert c.classify(3.0).category == BiomeCategory.SCRUB
    assert c.classify(8.0).category == BiomeCategory.FOREST_EDGE
    assert c.classify(40.0).category == BiomeCategory.DEEP_FOREST


def test_density_is_monotonic_within_bands() -> None:
    c = BiomeClassifier()
    prev: BiomeSample | None = None
    for i in range(-200, 600):
        s = c.classify(i * 0.05)
        assert 0.0 <= s.density <= 1.0
        if prev is not None and prev.category == s.category:
            assert prev.density <= s.density
        prev = s


def test_density_is_continuous_at_band_boundaries() -> None:
    c = BiomeClassifier()
    for band in c.bands[1:]:
        below = c.classify(band.floor - 1e-9).density
        at = c.classify(band.floor).density
        assert abs(at - below) < 1e-6, band.category


def test_species_weights_sum_to_one() -> None:
    c = BiomeClassifier()
    for h in (0.5, 3.0, 8.0, 20.0):
        s = c.classify(h)
        assert abs(sum(s.weights.values()) - 1.0) < 1e-9


def test_pick_species_uses_cumulative_weights() -> None:
    s = BiomeSample(
        BiomeCategory.SCRUB, 0.5, {SpeciesId.PINE: 0.5, SpeciesId.OAK: 0.5}
    )
    assert s.pick_species(0.2) == SpeciesId.OAK
    assert s.pick_species(0.7) == SpeciesId.PINE
    assert s.pick_species(0.9999999) == SpeciesId.PINE


def _bands(*extra: BiomeBand) -> BiomeParams:
    water = BiomeBand(BiomeCategory.WATER, float("-inf"), 0.0, 0.0)
    return BiomeParams(bands=(water, *extra))


def test_density_jump_between_bands_is_rejected() -> None:
    oak = {SpeciesId.OAK: 1.0}
    with pytest.raises(ConfigError):
        BiomeClassifier(
            _bands(
                BiomeBand(BiomeCategory.BEACH, 0.0, 0.0, 0.2, oak),
                BiomeBand(BiomeCategory.SCRUB, 2.0, 0.5, 0.5, oak),
            )
        )


def test_land_must_start_from_zero_density() -> None:
    with pytest.raises(ConfigError):
        BiomeClassifier(
            _bands(BiomeBand(BiomeCategory.DEEP_FOREST, 0.0, 0.8, 0.8, {SpeciesId.OAK: 1.0}))
        )


def test_weights_must_sum_to_one() -> None:
    with pytest.raises(ConfigError):
        BiomeClassifier(
            _bands(BiomeBand(BiomeCategory.BEACH, 0.0, 0.0, 0.0, {SpeciesId.PALM: 0.6}))
        )


def test_lowest_band_must_be_water() -> None:
    with pytest.raises(ConfigError):
        BiomeClassifier(
            BiomeParams(
                bands=(BiomeBand(BiomeCategory.BEACH, 0.0, 0.0, 0.0, {SpeciesId.PALM: 1.0}),)
            )
        )


def test_decreasing_density_is_rejected() -> None:
    oak = {SpeciesId.OAK: 1.0}
    with pytest.raises(ConfigError):
        BiomeClassifier(
            _bands(
                BiomeBand(BiomeCategory.BEACH, 0.0, 0.0, 0.4, oak),
                BiomeBand(BiomeCategory.SCRUB, 2.0, 0.4, 0.1, oak),
                BiomeBand(BiomeCategory.DEEP_FOREST, 4.0, 0.1, 0.1, oak),
            )
        )
