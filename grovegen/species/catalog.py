from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping

from grovegen.core.diagnostics import DiagnosticsSink, get_logger
from grovegen.core.errors import ConfigError
from grovegen.grammar.lsystem import GrammarLimits, GrammarString, expand, validate_recipe
from grovegen.mesh.builder import MeshEstimate, estimate_mesh_size
from grovegen.species.recipe import DEFAULT_RECIPES, SpeciesId, SpeciesRecipe

logger = get_logger(__name__)


@dataclass(frozen=True)
class CatalogEntry:
    recipe: SpeciesRecipe
    grammar: GrammarString
    estimate: MeshEstimate


@dataclass(frozen=True)
class SpeciesCatalog:
    entries: Mapping[SpeciesId, CatalogEntry]
    rejected: Mapping[SpeciesId, ConfigError] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "entries", MappingProxyType(dict(self.entries)))
        object.__setattr__(self, "rejected", MappingProxyType(dict(self.rejected)))

    def __contains__(self, species: object) -> bool:
        return species in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, species: SpeciesId) -> CatalogEntry | None:
        return self.entries.get(species)


def load_catalog(
    recipes: Iterable[SpeciesRecipe] = DEFAULT_RECIPES,
    grammar_limits: GrammarLimits | None = None,
    sink: DiagnosticsSink | None = None,
    strict: bool = False,
) -> SpeciesCatalog:
    """Validate and pre-expand every recipe once.

    A recipe that fails validation is left out of the catalog (or re-raised
    when ``strict``); the others still load.
    """

    limits = grammar_limits or GrammarLimits()
    entries: dict[SpeciesId, CatalogEntry] = {}
    rejected: dict[SpeciesId, ConfigError] = {}

    for recipe in recipes:
        if recipe.species in entries or recipe.species in rejected:
            raise ConfigError(f"duplicate recipe for {recipe.species.name}")
        try:
            validate_recipe(recipe)
            grammar = expand(recipe, limits=limits, sink=sink)
        except ConfigError as exc:
            if strict:
                raise
            logger.error("rejected recipe %s: %s", recipe.name, exc)
            rejected[recipe.species] = exc
            continue
        entries[recipe.species] = CatalogEntry(
            recipe=recipe,
            grammar=grammar,
            estimate=estimate_mesh_size(grammar, recipe),
        )
        logger.debug(
            "loaded %s: %d symbols after %d iterations",
            recipe.name,
            len(grammar),
            grammar.iterations,
        )

    return SpeciesCatalog(entries=entries, rejected=rejected)
