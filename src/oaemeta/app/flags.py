"""Import behaviour switches read from ``OAE_FEATURES``.

``OAE_FEATURES=match-experiments-by-name,!strict_dataset_names`` turns the
first switch on and the second off.  ``name=off`` works too; a token with a
value that is not a recognisable boolean is ignored.
"""

from __future__ import annotations

import os
from functools import lru_cache

__all__ = ["ENV_VAR", "KNOWN_FLAGS", "all_enabled", "is_enabled", "reload", "unknown_flags"]

ENV_VAR = "OAE_FEATURES"

KNOWN_FLAGS = frozenset({"match_experiments_by_name", "strict_dataset_names"})

_BOOLEANS = {
    "1": True,
    "true": True,
    "on": True,
    "yes": True,
    "0": False,
    "false": False,
    "off": False,
    "no": False,
}


def _flag_name(raw: str) -> str:
    return raw.strip().lower().replace("-", "_")


def _read_token(token: str) -> tuple[str, bool] | None:
    if token[0] in "!-":
        return _flag_name(token[1:]), False
    name, sep, value = token.partition("=")
    if not sep:
        return _flag_name(name), True
    state = _BOOLEANS.get(value.strip().lower())
    return None if state is None else (_flag_name(name), state)


@lru_cache(maxsize=1)
def _flags() -> dict[str, bool]:
    parsed: dict[str, bool] = {}
    for token in os.environ.get(ENV_VAR, "").split(","):
        token = token.strip()
        entry = _read_token(token) if token else None
        if entry is not None:
            parsed[entry[0]] = entry[1]
    return parsed


def reload() -> None:
    """Re-read ``OAE_FEATURES`` on the next lookup."""

    _flags.cache_clear()


def all_enabled() -> dict[str, bool]:
    return dict(_flags())


def is_enabled(flag: str, *, default: bool = False) -> bool:
    if not flag:
        raise ValueError("Flag name must be a non-empty string")
    return _flags().get(_flag_name(flag), default)


def unknown_flags() -> list[str]:
    """Names set in ``OAE_FEATURES`` that no import switch reads."""

    return sorted(set(_flags()) - KNOWN_FLAGS)
