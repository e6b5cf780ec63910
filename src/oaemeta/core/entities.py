# OAE Metadata Builder
# Copyright © 2025 OAE Metadata Builder contributors
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""Records held by the entity store.

Form data stays schema-driven: the store only types the envelope (internal id,
display name, timestamps, linking side-records) and keeps the metadata fields
in a plain ``dict``.  The linking side-records are frozen dataclasses whose
mode is an enum, so a dataset can never be "linked" and "custom" at once.
"""

from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

__all__ = [
    "FormData",
    "ProjectIdMode",
    "ExperimentIdMode",
    "ExperimentLinking",
    "DatasetLinking",
    "InvalidLinkingError",
    "Project",
    "Experiment",
    "Dataset",
    "clean_str",
]

FormData = dict[str, Any]


class InvalidLinkingError(ValueError):
    """Raised when linking metadata is built in an illegal combination."""


class ProjectIdMode(str, Enum):
    """How an experiment's ``project_id`` is obtained."""

    LINKED = "linked"
    CUSTOM = "custom"


class ExperimentIdMode(str, Enum):
    """How a dataset's ``experiment_id`` is obtained.

    ``UNSET`` means the mode was never chosen explicitly (data created before
    any experiment existed, or imported without a matching experiment).  It
    behaves like the dropdown until the lock-in rule promotes it to custom.
    """

    UNSET = "unset"
    DROPDOWN = "dropdown"
    CUSTOM = "custom"


def _now_ms() -> int:
    return int(time.time() * 1000)


def clean_str(value: Any) -> str | None:
    """Return ``value`` stripped, or ``None`` when it is not a non-blank string."""

    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


@dataclass(frozen=True)
class ExperimentLinking:
    project_mode: ProjectIdMode = ProjectIdMode.LINKED

    @property
    def uses_linked_project_id(self) -> bool:
        return self.project_mode is ProjectIdMode.LINKED


@dataclass(frozen=True)
class DatasetLinking:
    mode: ExperimentIdMode = ExperimentIdMode.UNSET
    linked_experiment_id: int | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.mode, ExperimentIdMode):
            object.__setattr__(self, "mode", ExperimentIdMode(self.mode))
        if self.mode is ExperimentIdMode.CUSTOM and self.linked_experiment_id is not None:
            raise InvalidLinkingError(
                "A dataset in custom experiment_id mode cannot also be linked "
                f"to experiment #{self.linked_experiment_id}"
            )

    @property
    def uses_custom_experiment_id(self) -> bool | None:
        """Tri-state view: ``None`` when the mode was never chosen."""

        if self.mode is ExperimentIdMode.UNSET:
            return None
        return self.mode is ExperimentIdMode.CUSTOM

    @classmethod
    def dropdown(cls, experiment_id: int | None = None) -> DatasetLinking:
        return cls(mode=ExperimentIdMode.DROPDOWN, linked_experiment_id=experiment_id)

    @classmethod
    def custom(cls) -> DatasetLinking:
        return cls(mode=ExperimentIdMode.CUSTOM)


@dataclass
class Project:
    """The singleton project record."""

    form_data: FormData = field(default_factory=dict)

    @property
    def project_id(self) -> str | None:
        return clean_str(self.form_data.get("project_id"))

    def copy(self) -> Project:
        return Project(form_data=copy.deepcopy(self.form_data))


@dataclass
class Experiment:
    internal_id: int
    name: str
    form_data: FormData = field(default_factory=dict)
    linking: ExperimentLinking = field(default_factory=ExperimentLinking)
    created_at: int = field(default_factory=_now_ms)
    updated_at: int = field(default_factory=_now_ms)

    @property
    def experiment_id(self) -> str | None:
        return clean_str(self.form_data.get("experiment_id"))

    @property
    def experiment_type(self) -> str | None:
        return clean_str(self.form_data.get("experiment_type"))

    def touch(self) -> None:
        self.updated_at = _now_ms()

    def copy(self) -> Experiment:
        return Experiment(
            internal_id=self.internal_id,
            name=self.name,
            form_data=copy.deepcopy(self.form_data),
            linking=self.linking,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


@dataclass
class Dataset:
    internal_id: int
    name: str
    form_data: FormData = field(default_factory=dict)
    linking: DatasetLinking = field(default_factory=DatasetLinking)
    created_at: int = field(default_factory=_now_ms)
    updated_at: int = field(default_factory=_now_ms)

    @property
    def stored_experiment_id(self) -> str | None:
        """The raw ``experiment_id`` kept in the form data, unresolved."""

        return clean_str(self.form_data.get("experiment_id"))

    def touch(self) -> None:
        self.updated_at = _now_ms()

    def copy(self) -> Dataset:
        return Dataset(
            internal_id=self.internal_id,
            name=self.name,
            form_data=copy.deepcopy(self.form_data),
            linking=self.linking,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
