from __future__ import annotations

import pytest

from grovegen.core.env import _env_int, _env_seed
from grovegen.core.errors import ConfigError
from grovegen.core.prng import seed_from_string
from grovegen.generation.chunk import GeneratorConfig
from grovegen.generation.streaming import StreamingParams


def test_from_env_uses_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in (
        "GROVEGEN_MAX_SYMBOLS",
        "GROVEGEN_MAX_INSTANCE_VERTICES",
        "GROVEGEN_MAX_INSTANCE_INDICES",
        "GROVEGEN_MAX_CHUNK_VERTICES",
        "GROVEGEN_MAX_CHUNK_INDICES",
        "GROVEGEN_MAX_CHUNK_BYTES",
        "GROVEGEN_WORKERS",
        "GROVEGEN_GRASS",
    ):
        monkeypatch.delenv(var, raising=False)
    assert GeneratorConfig.from_env(seed=4) == GeneratorConfig(seed=4)
    assert StreamingParams.from_env() == StreamingParams()


def test_from_env_reads_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GROVEGEN_MAX_SYMBOLS", "1234")
    monkeypatch.setenv("GROVEGEN_MAX_CHUNK_VERTICES", "500000")
    monkeypatch.setenv("GROVEGEN_WORKERS", "3")
    monkeypatch.setenv("GROVEGEN_GRASS", "0")

    cfg = GeneratorConfig.from_env()
    assert cfg.grammar.max_symbols == 1234
    assert cfg.region.max_vertices == 500_000
    assert not cfg.grass.enabled
    assert StreamingParams.from_env().workers == 3


def test_bad_values_raise_config_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GROVEGEN_WORKERS", "0")
    with pytest.raises(ConfigError):
        StreamingParams.from_env()

    monkeypatch.setenv("GROVEGEN_TEST_INT", "many")
    with pytest.raises(ConfigError):
        _env_int("GROVEGEN_TEST_INT", default=1)


def test_seed_accepts_numbers_and_text(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GROVEGEN_SEED", raising=False)
    assert _env_seed("GROVEGEN_SEED") is None

    monkeypatch.setenv("GROVEGEN_SEED", "1587")
    assert _env_seed("GROVEGEN_SEED") == 1587

    monkeypatch.setenv("GROVEGEN_SEED", "mossy-coast")
    assert _env_seed("GROVEGEN_SEED") == seed_from_string("mossy-coast")
