from __future__ import annotations

import os

from grovegen.core.errors import ConfigError
from grovegen.core.prng import seed_from_string


def _env_int(env_var: str, *, default: int, minimum: int | None = None) -> int:
    """Return the integer value of ``env_var`` with optional bounds checking."""

    value = os.environ.get(env_var)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError as exc:
        raise ConfigError(f"{env_var} must be an integer") from exc
    if minimum is not None and parsed < minimum:
        raise ConfigError(f"{env_var} must be at least {minimum}")
    return parsed


def _env_seed(env_var: str) -> int | None:
    """Numeric seeds are used as-is; any other text is hashed to 32 bits."""

    value = os.environ.get(env_var)
    if not value:
        return None
    try:
        return int(value) & 0xFFFFFFFF
    except ValueError:
        return seed_from_string(value)
