"""Application services for higher-level orchestration."""

from importlib import import_module
from typing import Any

__all__ = [
    "ImportSession",
    "ImportOutcome",
    "preview_import",
    "experiments_frame",
    "datasets_frame",
]

_EXPORTS = {
    "ImportSession": "oaemeta.services.import_service",
    "ImportOutcome": "oaemeta.services.import_service",
    "preview_import": "oaemeta.services.import_service",
    "experiments_frame": "oaemeta.services.overview",
    "datasets_frame": "oaemeta.services.overview",
}


def __getattr__(name: str) -> Any:
    if name in _EXPORTS:
        module = import_module(_EXPORTS[name])
        value = getattr(module, name)
        globals()[name] = value
        return value
    raise AttributeError(f"module 'oaemeta.services' has no attribute {name!r}")
