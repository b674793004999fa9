from __future__ import annotations

# Layer ids keep streams derived from the same cell independent.
PLACEMENT_LAYER = 0x504C4143
INSTANCE_LAYER = 0x494E5354
LEAF_LAYER = 0x4C454146
GRASS_LAYER = 0x47525353


class Mulberry32:
    def __init__(self, seed: int):
        self._a = seed & 0xFFFFFFFF

    def random_u32(self) -> int:
        self._a = (self._a + 0x6D2B79F5) & 0xFFFFFFFF
        t = (self._a ^ (self._a >> 15)) & 0xFFFFFFFF
        t = (t * ((1 | self._a) & 0xFFFFFFFF)) & 0xFFFFFFFF
        t2 = (t ^ (t >> 7)) & 0xFFFFFFFF
        t2 = (t2 * ((61 | t) & 0xFFFFFFFF)) & 0xFFFFFFFF
        out = (t ^ t2) & 0xFFFFFFFF
        out = (out ^ (out >> 14)) & 0xFFFFFFFF
        return out

    def random(self) -> float:
        return self.random_u32() / 4294967296.0

    def uniform(self, lo: float, hi: float) -> float:
        return lo + (hi - lo) * self.random()


def clamp_u32(x: int) -> int:
    return x & 0xFFFFFFFF


def hash_combine(seed: int, value: int) -> int:
    # Boost-style combine; negative coordinates wrap like u32 casts.
    s = clamp_u32(seed)
    v = clamp_u32(value)
    return clamp_u32(s ^ (v + 0x9E3779B9 + ((s << 6) & 0xFFFFFFFF) + (s >> 2)))


def combine_many(seed: int, *values: int) -> int:
    out = clamp_u32(seed)
    for v in values:
        out = hash_combine(out, v)
    return out


def seed_for_layer(seed: int, x: int, z: int, layer: int) -> int:
    return combine_many(seed, x, z, layer)


def hash01(seed: int, index: int) -> float:
    """Uniform value in [0, 1) that depends only on ``(seed, index)``."""
    return Mulberry32(hash_combine(seed, index)).random()


def seed_from_string(s: str) -> int:
    # FNV-1a 32-bit
    h = 0x811C9DC5
    for ch in s:
        h ^= ord(ch)
        h = (h * 0x01000193) & 0xFFFFFFFF
    return h
