"""Application constants and flag-derived settings."""

from __future__ import annotations

from dataclasses import dataclass

from oaemeta.app.flags import is_enabled

__all__ = [
    "APP_NAME",
    "APP_VERSION",
    "BUNDLE_VERSION",
    "PROTOCOL_GIT_HASH",
    "ImportSettings",
]

APP_NAME = "OAE Metadata Builder"
APP_VERSION = "0.4.0"

# Version and git hash of the metadata protocol the bundles are written against.
BUNDLE_VERSION = "0.3.0"
PROTOCOL_GIT_HASH = ""


@dataclass(frozen=True)
class ImportSettings:
    match_experiments_by_name: bool = False
    strict_dataset_names: bool = False

    @classmethod
    def from_flags(cls) -> ImportSettings:
        return cls(
            match_experiments_by_name=is_enabled("match_experiments_by_name"),
            strict_dataset_names=is_enabled("strict_dataset_names"),
        )
