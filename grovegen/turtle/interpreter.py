from __future__ import annotations

from dataclasses import dataclass, replace
from math import pi

from grovegen.core import vec3
from grovegen.core.errors import MalformedGrammarError
from grovegen.core.prng import LEAF_LAYER, hash01, hash_combine
from grovegen.core.vec3 import Vec3
from grovegen.grammar.lsystem import (
    DRAW_SYMBOLS,
    LEAF,
    MOVE,
    PITCH_DOWN,
    PITCH_UP,
    POP,
    PUSH,
    ROLL_LEFT,
    ROLL_RIGHT,
    TURN_AROUND,
    YAW_LEFT,
    YAW_RIGHT,
    GrammarString,
)
from grovegen.species.recipe import SpeciesRecipe

_LEAF_SIZE_SALT = 0x51A3E


@dataclass(frozen=True)
class TurtleLimits:
    max_stack_depth: int = 256


@dataclass(frozen=True)
class TurtlePose:
    position: Vec3
    forward: Vec3
    up: Vec3
    right: Vec3
    length: float
    thickness: float
    parent: int = -1
    depth: int = 0


@dataclass(frozen=True)
class Branch:
    start: Vec3
    end: Vec3
    start_thickness: float
    end_thickness: float
    length: float
    parent: int
    depth: int


@dataclass(frozen=True)
class Leaf:
    position: Vec3
    forward: Vec3
    right: Vec3
    size: float


@dataclass(frozen=True)
class Skeleton:
    branches: tuple[Branch, ...]
    leaves: tuple[Leaf, ...]

    def root_branches(self) -> tuple[Branch, ...]:
        return tuple(b for b in self.branches if b.depth == 0)

def initial_pose(recipe: SpeciesRecipe, size_scale: float = 1.0) -> TurtlePose:
    return TurtlePose(
        position=vec3.ZERO,
        forward=vec3.UNIT_Y,
        up=vec3.UNIT_Z,
        right=vec3.UNIT_X,
        length=recipe.initial_length * size_scale,
        thickness=recipe.initial_thickness * size_scale,
    )


def _yaw(p: TurtlePose, angle: float) -> TurtlePose:
    return replace(
        p,
        forward=vec3.rotate(p.forward, p.up, angle),
        right=vec3.rotate(p.right, p.up, angle),
    )


def _pitch(p: TurtlePose, angle: float) -> TurtlePose:
    return replace(
        p,
        forward=vec3.rotate(p.forward, p.right, angle),
        up=vec3.rotate(p.up, p.right, angle),
    )


def _roll(p: TurtlePose, angle: float) -> TurtlePose:
    return replace(
        p,
        up=vec3.rotate(p.up, p.forward, angle),
        right=vec3.rotate(p.right, p.forward, angle),
    )


def _droop(p: TurtlePose, gravity_bias: float) -> TurtlePose:
    if gravity_bias <= 0.0:
        return p
    forward = vec3.normalize(vec3.lerp(p.forward, vec3.DOWN, gravity_bias), p.forward)
    # Re-orthogonalise the frame around the new heading.
    right = vec3.normalize(vec3.cross(forward, p.up), p.right)
    up = vec3.cross(right, forward)
    return replace(p, forward=forward, up=up, right=right)


def terminal_draws(symbols: str) -> list[bool]:
    """Flag draw symbols that have no further drawing before the branch closes."""

    flags = [False] * len(symbols)
    closed = True
    for i in range(len(symbols) - 1, -1, -1):
        ch = symbols[i]
        if ch in DRAW_SYMBOLS:
            flags[i] = closed
            closed = False
        elif ch == POP:
            closed = True
        elif ch == PUSH or ch == MOVE or ch == LEAF:
            closed = False
    return flags


def interpret(
    grammar: GrammarString,
    recipe: SpeciesRecipe,
    seed: int,
    limits: TurtleLimits | None = None,
    size_scale: float = 1.0,
) -> Skeleton:
    """Walk ``grammar`` with a 3D turtle and return the branch/leaf skeleton.

    Raises ``MalformedGrammarError`` when a pop finds the stack empty or a
    push would exceed ``limits.max_stack_depth``.
    """

    limits = limits or TurtleLimits()
    symbols = grammar.symbols
    angle = recipe.angle
    leaf_seed = hash_combine(seed, LEAF_LAYER)
    size_seed = hash_combine(leaf_seed, _LEAF_SIZE_SALT)
    terminal = terminal_draws(symbols)

    pose = initial_pose(recipe, size_scale)
    stack: list[TurtlePose] = []
    branches: list[Branch] = []
    leaves: list[Leaf] = []

    def maybe_leaf(at: TurtlePose, index: int) -> None:
        if hash01(leaf_seed, index) >= recipe.leaf_probability:
            return
        size = recipe.leaf_size * size_scale * (0.75 + 0.5 * hash01(size_seed, index))
        leaves.append(Leaf(at.position, at.forward, at.right, size))

    for i, ch in enumerate(symbols):
        if ch in DRAW_SYMBOLS:
            end = vec3.madd(pose.position, pose.forward, pose.length)
            end_thickness = pose.thickness * recipe.thickness_decay
            branches.append(
                Branch(
                    start=pose.position,
                    end=end,
                    start_thickness=pose.thickness,
                    end_thickness=end_thickness,
                    length=pose.length,
                    parent=pose.parent,
                    depth=pose.depth,
                )
            )
            pose = replace(
                pose,
                position=end,
                length=pose.length * recipe.length_decay,
                thickness=end_thickness,
                parent=len(branches) - 1,
            )
            pose = _droop(pose, recipe.gravity_bias)
            if terminal[i]:
                maybe_leaf(pose, i)
        elif ch == MOVE:
            pose = replace(
                pose, position=vec3.madd(pose.position, pose.forward, pose.length)
            )
        elif ch == YAW_LEFT:
            pose = _yaw(pose, angle)
        elif ch == YAW_RIGHT:
            pose = _yaw(pose, -angle)
        elif ch == PITCH_UP:
            pose = _pitch(pose, angle)
        elif ch == PITCH_DOWN:
            pose = _pitch(pose, -angle)
        elif ch == ROLL_RIGHT:
            pose = _roll(pose, angle)
        elif ch == ROLL_LEFT:
            pose = _roll(pose, -angle)
        elif ch == TURN_AROUND:
            pose = _yaw(pose, pi)
        elif ch == PUSH:
            if len(stack) >= limits.max_stack_depth:
                raise MalformedGrammarError(
                    f"stack depth {limits.max_stack_depth} exceeded at symbol {i}",
                    i,
                )
            stack.append(pose)
            pose = replace(pose, depth=pose.depth + 1)
        elif ch == POP:
            if not stack:
                raise MalformedGrammarError(f"pop on empty stack at symbol {i}", i)
            pose = stack.pop()
        elif ch == LEAF:
            maybe_leaf(pose, i)

    return Skeleton(branches=tuple(branches), leaves=tuple(leaves))
