from __future__ import annotations

from dataclasses import dataclass

from grovegen.core.diagnostics import (
    DEFAULT_SINK,
    GRAMMAR_CLAMPED,
    Diagnostic,
    DiagnosticsSink,
)
from grovegen.core.errors import ConfigError
from grovegen.species.recipe import SpeciesRecipe

DRAW_SYMBOLS = frozenset("FG")
MOVE = "f"
YAW_LEFT = "+"
YAW_RIGHT = "-"
PITCH_DOWN = "&"
PITCH_UP = "^"
ROLL_LEFT = "\\"
ROLL_RIGHT = "/"
TURN_AROUND = "|"
PUSH = "["
POP = "]"
LEAF = "L"

COMMAND_SYMBOLS = frozenset(
    DRAW_SYMBOLS
    | {
        MOVE,
        YAW_LEFT,
        YAW_RIGHT,
        PITCH_DOWN,
        PITCH_UP,
        ROLL_LEFT,
        ROLL_RIGHT,
        TURN_AROUND,
        PUSH,
        POP,
        LEAF,
    }
)


@dataclass(frozen=True)
class GrammarLimits:
    max_symbols: int = 50_000
    max_iterations: int = 32


@dataclass(frozen=True)
class GrammarString:
    symbols: str
    requested_iterations: int
    iterations: int
    projected_length: int

    @property
    def clamped(self) -> bool:
        return self.iterations < self.requested_iterations

    def __len__(self) -> int:
        return len(self.symbols)

    def count(self, symbols: frozenset[str] | str) -> int:
        return sum(1 for ch in self.symbols if ch in symbols)


def validate_recipe(recipe: SpeciesRecipe) -> None:
    """Reject recipes that reference symbols no production or command defines."""

    if not recipe.axiom:
        raise ConfigError(f"{recipe.name}: axiom must not be empty")
    if recipe.iterations < 0:
        raise ConfigError(f"{recipe.name}: iterations must be >= 0")
    for key in recipe.rules:
        if len(key) != 1:
            raise ConfigError(
                f"{recipe.name}: rule key {key!r} must be a single symbol"
            )

    known = COMMAND_SYMBOLS | set(recipe.rules)
    for where, text in [("axiom", recipe.axiom), *recipe.rules.items()]:
        for ch in text:
            if ch not in known:
                raise ConfigError(
                    f"{recipe.name}: symbol {ch!r} in {where!r} has no production"
                )

    if not 0.0 <= recipe.leaf_probability <= 1.0:
        raise ConfigError(f"{recipe.name}: leaf_probability must be in [0, 1]")
    if not 0.0 <= recipe.gravity_bias <= 1.0:
        raise ConfigError(f"{recipe.name}: gravity_bias must be in [0, 1]")
    if not (0.0 < recipe.length_decay <= 1.0 and 0.0 < recipe.thickness_decay <= 1.0):
        raise ConfigError(f"{recipe.name}: decay factors must be in (0, 1]")
    if recipe.initial_length <= 0.0 or recipe.initial_thickness <= 0.0:
        raise ConfigError(f"{recipe.name}: initial length/thickness must be > 0")
    if recipe.radial_segments < 3 or recipe.branch_segments < 1:
        raise ConfigError(f"{recipe.name}: tessellation too coarse")


def _max_replacement(recipe: SpeciesRecipe) -> int:
    longest = 1
    for repl in recipe.rules.values():
        if len(repl) > longest:
            longest = len(repl)
    return longest


def projected_length(
    recipe: SpeciesRecipe, iterations: int, ceiling: int | None = None
) -> int:
    """Worst-case symbol count after ``iterations`` rewrites.

    With ``ceiling`` the projection stops growing at the first value above it,
    so arbitrarily large iteration counts stay cheap and the result stays small.
    """

    growth = _max_replacement(recipe)
    length = len(recipe.axiom)
    if growth == 1:
        return length
    for _ in range(max(0, iterations)):
        if ceiling is not None and length > ceiling:
            break
        length *= growth
    return length


def exact_length(recipe: SpeciesRecipe, iterations: int) -> int:
    # Per-symbol counts evolve linearly, so no string is ever built.
    counts: dict[str, int] = {}
    for ch in recipe.axiom:
        counts[ch] = counts.get(ch, 0) + 1
    for _ in range(max(0, iterations)):
        nxt: dict[str, int] = {}
        for ch, n in counts.items():
            repl = recipe.rules.get(ch)
            if repl is None:
                nxt[ch] = nxt.get(ch, 0) + n
                continue
            for rc in repl:
                nxt[rc] = nxt.get(rc, 0) + n
        counts = nxt
    return sum(counts.values())


def clamp_iterations(
    recipe: SpeciesRecipe, iterations: int, limits: GrammarLimits
) -> int:
    """Largest iteration count <= ``iterations`` whose projection fits the ceiling."""

    if len(recipe.axiom) > limits.max_symbols:
        raise ConfigError(
            f"{recipe.name}: axiom length {len(recipe.axiom)} exceeds "
            f"symbol ceiling {limits.max_symbols}"
        )
    cap = max(0, min(iterations, limits.max_iterations))
    effective = 0
    while (
        effective < cap
        and projected_length(recipe, effective + 1, limits.max_symbols) <= limits.max_symbols
    ):
        effective += 1
    return effective


def expand(
    recipe: SpeciesRecipe,
    iterations: int | None = None,
    limits: GrammarLimits | None = None,
    sink: DiagnosticsSink | None = None,
) -> GrammarString:
    limits = limits or GrammarLimits()
    requested = recipe.iterations if iterations is None else iterations
    effective = clamp_iterations(recipe, requested, limits)
    projected = projected_length(recipe, requested, limits.max_symbols)

    if effective < requested:
        (sink or DEFAULT_SINK).emit(
            Diagnostic(
                kind=GRAMMAR_CLAMPED,
                reason=(
                    f"{recipe.name}: iterations clamped from {requested} "
                    f"to {effective}"
                ),
                requested=projected,
                allowed=limits.max_symbols,
            )
        )

    rules = recipe.rules
    current = recipe.axiom
    for _ in range(effective):
        current = "".join([rules.get(ch, ch) for ch in current])

    # Guaranteed by the projection; kept as a hard stop.
    if len(current) > limits.max_symbols:
        raise ConfigError(
            f"{recipe.name}: expansion of {len(current)} symbols exceeds ceiling"
        )

    return GrammarString(
        symbols=current,
        requested_iterations=requested,
        iterations=effective,
        projected_length=projected,
    )
