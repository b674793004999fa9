from __future__ import annotations

from dataclasses import dataclass


class GrovegenError(Exception):
    pass


class ConfigError(GrovegenError, ValueError):
    """A recipe, biome table or limit set that cannot be used."""


class MalformedGrammarError(GrovegenError):
    """The turtle stack under- or overflowed while interpreting one instance."""

    def __init__(self, message: str, symbol_index: int):
        super().__init__(message)
        self.symbol_index = symbol_index


@dataclass(frozen=True)
class CapacityExceeded:
    """A designed degradation, reported through diagnostics rather than raised."""

    scope: str  # "instance" or "chunk"
    resource: str
    requested: int
    allowed: int

    def describe(self) -> str:
        return (
            f"{self.scope} {self.resource} ceiling reached: "
            f"requested {self.requested}, allowed {self.allowed}"
        )
