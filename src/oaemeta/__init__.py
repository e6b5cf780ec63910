# OAE Metadata Builder
# Copyright © 2025 OAE Metadata Builder contributors
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""Public package interface for the OAE Metadata Builder core."""

from importlib import import_module

from oaemeta.core.entities import Dataset, DatasetLinking, Experiment, ExperimentLinking, Project
from oaemeta.core.store import EntityStore
from oaemeta.io.bundle import BundleParseError, load_bundle, parse_bundle, write_bundle

_SERVICE_EXPORTS = {
    "ImportSession": ("oaemeta.services.import_service", "ImportSession"),
    "preview_import": ("oaemeta.services.import_service", "preview_import"),
    "experiments_frame": ("oaemeta.services.overview", "experiments_frame"),
    "datasets_frame": ("oaemeta.services.overview", "datasets_frame"),
}


def __getattr__(name: str):
    if name in _SERVICE_EXPORTS:
        module_name, attr = _SERVICE_EXPORTS[name]
        module = import_module(module_name)
        value = getattr(module, attr)
        globals()[name] = value
        return value
    raise AttributeError(f"module 'oaemeta' has no attribute {name!r}")


__all__ = [
    "EntityStore",
    "Project",
    "Experiment",
    "Dataset",
    "ExperimentLinking",
    "DatasetLinking",
    "BundleParseError",
    "parse_bundle",
    "load_bundle",
    "write_bundle",
    "ImportSession",
    "preview_import",
    "experiments_frame",
    "datasets_frame",
]
