# OAE Metadata Builder
# Copyright © 2025 OAE Metadata Builder contributors
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""In-memory entity store.

The store is an explicit application-state object: callers create one and
pass it to the resolver, the import reconciler and the exporters.  Entities
are kept in insertion order, keyed by an internal id that is allocated from a
per-kind counter and never reused, even after deletes or a reset.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import Any

from oaemeta.core.entities import (
    Dataset,
    DatasetLinking,
    Experiment,
    ExperimentIdMode,
    ExperimentLinking,
    FormData,
    Project,
    clean_str,
)
from oaemeta.core.experiment_types import clean_form_data_for_type

__all__ = ["EntityStore", "UnknownEntityError"]

log = logging.getLogger(__name__)


class UnknownEntityError(KeyError):
    """Raised when a mutation targets an internal id the store does not hold."""

    def __init__(self, kind: str, internal_id: int):
        self.kind = kind
        self.internal_id = internal_id
        super().__init__(f"No {kind} with internal id {internal_id}")


class EntityStore:
    """Project singleton plus ordered experiment and dataset arenas."""

    def __init__(self, project_data: Mapping[str, Any] | None = None):
        self.project = Project(form_data=dict(project_data or {}))
        self._experiments: dict[int, Experiment] = {}
        self._datasets: dict[int, Dataset] = {}
        self.next_experiment_id = 1
        self.next_dataset_id = 1
        self.active_experiment_id: int | None = None
        self.active_dataset_id: int | None = None

    # --------------------------------------------------
    @property
    def experiments(self) -> list[Experiment]:
        return list(self._experiments.values())

    # --------------------------------------------------
    @property
    def datasets(self) -> list[Dataset]:
        return list(self._datasets.values())

    # --------------------------------------------------
    def get_experiment(self, internal_id: int | None) -> Experiment | None:
        if internal_id is None:
            return None
        return self._experiments.get(internal_id)

    # --------------------------------------------------
    def get_dataset(self, internal_id: int | None) -> Dataset | None:
        if internal_id is None:
            return None
        return self._datasets.get(internal_id)

    # --------------------------------------------------
    def require_experiment(self, internal_id: int) -> Experiment:
        exp = self._experiments.get(internal_id)
        if exp is None:
            raise UnknownEntityError("experiment", internal_id)
        return exp

    # --------------------------------------------------
    def require_dataset(self, internal_id: int) -> Dataset:
        ds = self._datasets.get(internal_id)
        if ds is None:
            raise UnknownEntityError("dataset", internal_id)
        return ds

    # --------------------------------------------------
    def find_experiments_by_domain_id(self, experiment_id: str | None) -> list[Experiment]:
        wanted = clean_str(experiment_id)
        if wanted is None:
            return []
        return [exp for exp in self._experiments.values() if exp.experiment_id == wanted]

    # --------------------------------------------------
    def find_experiments_by_name(self, name: str | None) -> list[Experiment]:
        wanted = clean_str(name)
        if wanted is None:
            return []
        return [exp for exp in self._experiments.values() if exp.name == wanted]

    # --------------------------------------------------
    def find_datasets_by_name(self, name: str | None) -> list[Dataset]:
        wanted = clean_str(name)
        if wanted is None:
            return []
        return [ds for ds in self._datasets.values() if ds.name == wanted]

    # --------------------------------------------------
    def update_project(self, form_data: Mapping[str, Any]) -> None:
        """Replace the project metadata and refresh linked experiment mirrors."""

        self.project.form_data = dict(form_data)
        self._sync_linked_project_ids()

    # --------------------------------------------------
    def add_experiment(
        self,
        name: str | None = None,
        form_data: Mapping[str, Any] | None = None,
        linking: ExperimentLinking | None = None,
    ) -> Experiment:
        internal_id = self._allocate_experiment_id()
        data: FormData = copy.deepcopy(dict(form_data or {}))
        exp = Experiment(
            internal_id=internal_id,
            name=clean_str(name) or clean_str(data.get("name")) or f"Experiment {internal_id}",
            form_data=data,
            linking=linking or ExperimentLinking(),
        )
        if exp.linking.uses_linked_project_id:
            _set_or_clear(exp.form_data, "project_id", self.project.project_id)
        self._experiments[internal_id] = exp
        self.active_experiment_id = internal_id
        log.debug("Added experiment #%d name=%r", internal_id, exp.name)
        return exp

    # --------------------------------------------------
    def update_experiment(
        self,
        internal_id: int,
        form_data: Mapping[str, Any],
        *,
        name: str | None = None,
    ) -> Experiment:
        """Replace an experiment's form data.

        A change of ``experiment_type`` drops the fields of the previous type.
        While the project id is linked, the stored ``project_id`` keeps
        mirroring the project regardless of what the form sent.  Datasets
        linked to this experiment pick up its new ``experiment_id``.
        """

        exp = self.require_experiment(internal_id)
        data: FormData = copy.deepcopy(dict(form_data))
        new_type = clean_str(data.get("experiment_type"))
        if new_type != exp.experiment_type and exp.experiment_type is not None:
            data = clean_form_data_for_type(data, new_type)
        if exp.linking.uses_linked_project_id:
            _set_or_clear(data, "project_id", self.project.project_id)
        exp.form_data = data
        exp.name = clean_str(name) or clean_str(data.get("name")) or exp.name
        exp.touch()
        self._sync_linked_experiment_ids(exp)
        return exp

    # --------------------------------------------------
    def delete_experiment(self, internal_id: int) -> None:
        """Delete an experiment and drop every dataset link pointing at it."""

        self.require_experiment(internal_id)
        del self._experiments[internal_id]
        for ds in self._datasets.values():
            if ds.linking.linked_experiment_id == internal_id:
                ds.linking = DatasetLinking(mode=ds.linking.mode)
                ds.touch()
                log.debug("Dataset #%d lost its link to deleted experiment #%d", ds.internal_id, internal_id)
        if self.active_experiment_id == internal_id:
            self.active_experiment_id = None

    # --------------------------------------------------
    def add_dataset(
        self,
        name: str | None = None,
        form_data: Mapping[str, Any] | None = None,
        linking: DatasetLinking | None = None,
    ) -> Dataset:
        internal_id = self._allocate_dataset_id()
        data: FormData = copy.deepcopy(dict(form_data or {}))
        ds = Dataset(
            internal_id=internal_id,
            name=clean_str(name) or clean_str(data.get("name")) or f"Dataset {internal_id}",
            form_data=data,
            linking=linking or DatasetLinking(),
        )
        self._datasets[internal_id] = ds
        self.active_dataset_id = internal_id
        log.debug("Added dataset #%d name=%r", internal_id, ds.name)
        return ds

    # --------------------------------------------------
    def update_dataset(
        self,
        internal_id: int,
        form_data: Mapping[str, Any],
        *,
        name: str | None = None,
    ) -> Dataset:
        """Replace a dataset's form data; a linked ``experiment_id`` keeps following its experiment."""

        ds = self.require_dataset(internal_id)
        ds.form_data = copy.deepcopy(dict(form_data))
        linked = self._linked_experiment(ds)
        if linked is not None:
            _set_or_clear(ds.form_data, "experiment_id", linked.experiment_id)
        ds.name = clean_str(name) or clean_str(ds.form_data.get("name")) or ds.name
        ds.touch()
        return ds

    # --------------------------------------------------
    def delete_dataset(self, internal_id: int) -> None:
        self.require_dataset(internal_id)
        del self._datasets[internal_id]
        if self.active_dataset_id == internal_id:
            self.active_dataset_id = None

    # --------------------------------------------------
    def apply_experiment_linking(
        self, internal_id: int, linking: ExperimentLinking, project_id: str | None
    ) -> Experiment:
        """Store new linking metadata together with the matching ``project_id`` value."""

        exp = self.require_experiment(internal_id)
        exp.linking = linking
        _set_or_clear(exp.form_data, "project_id", project_id)
        exp.touch()
        return exp

    # --------------------------------------------------
    def apply_dataset_linking(
        self, internal_id: int, linking: DatasetLinking, experiment_id: str | None
    ) -> Dataset:
        """Store new linking metadata together with the matching ``experiment_id`` value."""

        ds = self.require_dataset(internal_id)
        ds.linking = linking
        _set_or_clear(ds.form_data, "experiment_id", experiment_id)
        ds.touch()
        return ds

    # --------------------------------------------------
    def reset(self) -> None:
        """Drop every entity.  Id counters keep running so ids are never reused."""

        log.info(
            "Resetting store (experiments=%d datasets=%d)",
            len(self._experiments),
            len(self._datasets),
        )
        self.project = Project()
        self._experiments.clear()
        self._datasets.clear()
        self.active_experiment_id = None
        self.active_dataset_id = None

    # --------------------------------------------------
    def _allocate_experiment_id(self) -> int:
        internal_id = self.next_experiment_id
        self.next_experiment_id += 1
        return internal_id

    # --------------------------------------------------
    def _allocate_dataset_id(self) -> int:
        internal_id = self.next_dataset_id
        self.next_dataset_id += 1
        return internal_id

    # --------------------------------------------------
    def _sync_linked_project_ids(self) -> None:
        project_id = self.project.project_id
        for exp in self._experiments.values():
            if exp.linking.uses_linked_project_id:
                _set_or_clear(exp.form_data, "project_id", project_id)

    # --------------------------------------------------
    def _linked_experiment(self, ds: Dataset) -> Experiment | None:
        if ds.linking.mode is ExperimentIdMode.CUSTOM:
            return None
        return self.get_experiment(ds.linking.linked_experiment_id)

    # --------------------------------------------------
    def _sync_linked_experiment_ids(self, exp: Experiment) -> None:
        for ds in self._datasets.values():
            if self._linked_experiment(ds) is exp:
                _set_or_clear(ds.form_data, "experiment_id", exp.experiment_id)

    # --------------------------------------------------
    def __repr__(self) -> str:
        return (
            f"EntityStore(project_id={self.project.project_id!r}, "
            f"experiments={len(self._experiments)}, datasets={len(self._datasets)})"
        )


def _set_or_clear(form_data: FormData, key: str, value: str | None) -> None:
    if value:
        form_data[key] = value
    else:
        form_data.pop(key, None)
