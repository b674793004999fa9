from grovegen.noise.perlin2d import FbmOptions, Perlin2D
from grovegen.terrain.terrain import CoastalTerrain, TerrainParams


def test_perlin_is_deterministic_for_seed() -> None:
    a = Perlin2D(12345)
    b = Perlin2D(12345)
    pts = [(0.0, 0.0), (0.1, 0.2), (2.345, -1.75), (-310.01, 10.02)]
    opts = FbmOptions(octaves=5, lacunarity=2.0, persistence=0.5)
    for x, y in pts:
        assert a.noise(x, y) == b.noise(x, y)
        assert a.fbm(x, y, opts) == b.fbm(x, y, opts)


def test_perlin_stays_in_sane_range() -> None:
    p = Perlin2D(7)
    opts = FbmOptions(octaves=6, lacunarity=2.1, persistence=0.52)
    for i in range(-100, 200):
        x = i * 0.173
        y = i * 0.091
        assert -1.01 <= p.noise(x, y) <= 1.01
        assert -1.01 <= p.fbm(x, y, opts) <= 1.01
        assert 0.0 <= p.fbm01(x, y, opts) <= 1.0


def test_noise_vanishes_on_lattice_points() -> None:
    p = Perlin2D(99)
    for x, y in [(0.0, 0.0), (3.0, -4.0), (-17.0, 250.0)]:
        assert p.noise(x, y) == 0.0


def test_coast_falls_toward_the_sea() -> None:
    terrain = CoastalTerrain(TerrainParams(seed=42))
    for z in (-200.0, 0.0, 350.0):
        inland = terrain.height_at(-600.0, z)
        offshore = terrain.height_at(600.0, z)
        assert inland > 6.0
        assert offshore < 0.0
