from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from math import radians
from types import MappingProxyType
from typing import Mapping


class SpeciesId(IntEnum):
    OAK = 1
    PINE = 2
    WILLOW = 3
    BIRCH = 4
    PALM = 5
    MAPLE = 6
    SPRUCE = 7


@dataclass(frozen=True)
class SpeciesRecipe:
    species: SpeciesId
    axiom: str
    rules: Mapping[str, str]
    iterations: int
    angle: float  # radians
    length_decay: float
    thickness_decay: float
    initial_length: float
    initial_thickness: float
    leaf_probability: float
    gravity_bias: float = 0.0
    leaf_size: float = 0.5
    radial_segments: int = 4
    branch_segments: int = 1
    # Scale jitter applied per instance, as a +/- fraction.
    size_jitter: float = 0.15
    name: str = field(default="")

    def __post_init__(self) -> None:
        object.__setattr__(self, "rules", MappingProxyType(dict(self.rules)))
        if not self.name:
            object.__setattr__(self, "name", self.species.name.lower())

    def with_changes(self, **changes: object) -> SpeciesRecipe:
        values = {
            "species": self.species,
            "axiom": self.axiom,
            "rules": dict(self.rules),
            "iterations": self.iterations,
            "angle": self.angle,
            "length_decay": self.length_decay,
            "thickness_decay": self.thickness_decay,
            "initial_length": self.initial_length,
            "initial_thickness": self.initial_thickness,
            "leaf_probability": self.leaf_probability,
            "gravity_bias": self.gravity_bias,
            "leaf_size": self.leaf_size,
            "radial_segments": self.radial_segments,
            "branch_segments": self.branch_segments,
            "size_jitter": self.size_jitter,
            "name": self.name,
        }
        values.update(changes)
        return SpeciesRecipe(**values)  # type: ignore[arg-type]


OAK = SpeciesRecipe(
    species=SpeciesId.OAK,
    axiom="F",
    rules={"F": "FF-[-F+F+F]+[+F-F-F]"},
    iterations=2,
    angle=radians(22.5),
    length_decay=0.7,
    thickness_decay=0.6,
    initial_length=2.0,
    initial_thickness=0.3,
    leaf_probability=0.3,
    leaf_size=0.6,
    radial_segments=4,
)

PINE = SpeciesRecipe(
    species=SpeciesId.PINE,
    axiom="F",
    rules={"F": "FF[-F][+F]F"},
    iterations=3,
    angle=radians(15.0),
    length_decay=0.75,
    thickness_decay=0.65,
    initial_length=2.5,
    initial_thickness=0.25,
    leaf_probability=0.4,
    leaf_size=0.4,
    radial_segments=4,
)

WILLOW = SpeciesRecipe(
    species=SpeciesId.WILLOW,
    axiom="F",
    rules={"F": "F[--F][++F]F"},
    iterations=4,
    angle=radians(25.0),
    length_decay=0.8,
    thickness_decay=0.55,
    initial_length=1.8,
    initial_thickness=0.28,
    leaf_probability=0.5,
    gravity_bias=0.18,
    leaf_size=0.5,
    radial_segments=4,
)

BIRCH = SpeciesRecipe(
    species=SpeciesId.BIRCH,
    axiom="F",
    rules={"F": "FF[-F+F][+F-F]"},
    iterations=3,
    angle=radians(20.0),
    length_decay=0.65,
    thickness_decay=0.7,
    initial_length=2.2,
    initial_thickness=0.2,
    leaf_probability=0.35,
    leaf_size=0.45,
    radial_segments=5,
)

PALM = SpeciesRecipe(
    species=SpeciesId.PALM,
    axiom="FFFFFFL",
    rules={"F": "FF", "L": "[++++L][----L][++L][--L]"},
    iterations=2,
    angle=radians(35.0),
    length_decay=1.0,
    thickness_decay=0.9,
    initial_length=1.2,
    initial_thickness=0.35,
    leaf_probability=1.0,
    leaf_size=1.4,
    radial_segments=5,
)

MAPLE = SpeciesRecipe(
    species=SpeciesId.MAPLE,
    axiom="F",
    rules={"F": "F[-F+F][+F-F]F"},
    iterations=3,
    angle=radians(28.0),
    length_decay=0.68,
    thickness_decay=0.58,
    initial_length=2.0,
    initial_thickness=0.32,
    leaf_probability=0.4,
    leaf_size=0.6,
    radial_segments=4,
)

SPRUCE = SpeciesRecipe(
    species=SpeciesId.SPRUCE,
    axiom="F",
    rules={"F": "FF[--F][+F][++F]"},
    iterations=3,
    angle=radians(18.0),
    length_decay=0.73,
    thickness_decay=0.68,
    initial_length=2.8,
    initial_thickness=0.22,
    leaf_probability=0.5,
    leaf_size=0.35,
    radial_segments=4,
)

DEFAULT_RECIPES: tuple[SpeciesRecipe, ...] = (
    OAK,
    PINE,
    WILLOW,
    BIRCH,
    PALM,
    MAPLE,
    SPRUCE,
)
