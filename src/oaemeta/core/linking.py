# OAE Metadata Builder
# Copyright © 2025 OAE Metadata Builder contributors
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""Resolution and mode transitions for linked identifier fields.

Two fields are linkable:

* an experiment's ``project_id``, either mirrored from the project or typed
  by the user;
* a dataset's ``experiment_id``, either picked from the experiments in the
  store (dropdown) or typed by the user (custom).

Resolution functions never raise.  A missing link target yields ``None`` and,
where the UI should say something, a warning string on the returned
:class:`ExperimentIdResolution`.  Transition functions write both the linking
metadata and the form-data value through the store so the two never drift.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any

from oaemeta.core.entities import (
    Dataset,
    DatasetLinking,
    Experiment,
    ExperimentIdMode,
    ExperimentLinking,
    ProjectIdMode,
    clean_str,
)
from oaemeta.core.store import EntityStore

__all__ = [
    "ExperimentIdResolution",
    "ExperimentOption",
    "resolve_project_id",
    "toggle_project_link",
    "resolve_experiment_id",
    "describe_experiment_id",
    "switch_dataset_to_dropdown",
    "switch_dataset_to_custom",
    "set_custom_experiment_id",
    "select_experiment_for_dataset",
    "on_mount",
    "experiment_options",
    "effective_form_data",
    "refresh_linked_values",
]

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExperimentIdResolution:
    """What the dataset's ``experiment_id`` field shows right now."""

    value: str | None
    mode: ExperimentIdMode
    explicit: bool
    linked_experiment: Experiment | None = None
    warning: str | None = None

    @property
    def linked_experiment_missing_id(self) -> bool:
        return self.linked_experiment is not None and self.linked_experiment.experiment_id is None


@dataclass(frozen=True)
class ExperimentOption:
    internal_id: int
    label: str
    experiment_id: str | None


# --------------------------------------------------------------------------
# project_id


def resolve_project_id(store: EntityStore, entity: Experiment | Dataset) -> str | None:
    """Return the effective ``project_id`` of ``entity``.

    Only experiments carry project linking; datasets always report their own
    stored value.
    """

    if isinstance(entity, Experiment) and entity.linking.uses_linked_project_id:
        return store.project.project_id
    return clean_str(entity.form_data.get("project_id"))


def toggle_project_link(store: EntityStore, experiment: Experiment) -> Experiment:
    """Flip an experiment between a linked and a custom ``project_id``.

    Linking takes a snapshot of the project's id immediately; unlinking keeps
    whatever value was showing so the user can edit it from there.
    """

    current = resolve_project_id(store, experiment)
    if experiment.linking.uses_linked_project_id:
        linking = ExperimentLinking(project_mode=ProjectIdMode.CUSTOM)
        value = current
    else:
        linking = ExperimentLinking(project_mode=ProjectIdMode.LINKED)
        value = store.project.project_id
    log.debug(
        "Experiment #%d project_id link -> %s (value=%r)",
        experiment.internal_id,
        linking.project_mode.value,
        value,
    )
    return store.apply_experiment_linking(experiment.internal_id, linking, value)


# --------------------------------------------------------------------------
# experiment_id


def _missing_id_warning(experiment: Experiment) -> str:
    return (
        f'Linked experiment "{experiment.name}" has no Experiment ID. '
        "Please set one on the Experiment page."
    )


def _resolve_link(
    store: EntityStore, linking: DatasetLinking, *, explicit: bool
) -> ExperimentIdResolution:
    target = store.get_experiment(linking.linked_experiment_id)
    if target is None:
        warning = None
        if linking.linked_experiment_id is not None:
            warning = f"Linked experiment #{linking.linked_experiment_id} no longer exists."
            log.debug("Dangling experiment link #%d", linking.linked_experiment_id)
        return ExperimentIdResolution(
            value=None, mode=ExperimentIdMode.DROPDOWN, explicit=explicit, warning=warning
        )
    if target.experiment_id is None:
        log.debug("Linked experiment #%d has no experiment_id", target.internal_id)
        return ExperimentIdResolution(
            value=None,
            mode=ExperimentIdMode.DROPDOWN,
            explicit=explicit,
            linked_experiment=target,
            warning=_missing_id_warning(target),
        )
    return ExperimentIdResolution(
        value=target.experiment_id,
        mode=ExperimentIdMode.DROPDOWN,
        explicit=explicit,
        linked_experiment=target,
    )


def describe_experiment_id(store: EntityStore, dataset: Dataset) -> ExperimentIdResolution:
    """Resolve a dataset's ``experiment_id`` together with its effective mode."""

    linking = dataset.linking
    if linking.mode is ExperimentIdMode.CUSTOM:
        return ExperimentIdResolution(
            value=dataset.stored_experiment_id, mode=ExperimentIdMode.CUSTOM, explicit=True
        )
    if linking.mode is ExperimentIdMode.DROPDOWN:
        return _resolve_link(store, linking, explicit=True)

    # Never chosen: a link wins, otherwise a typed value is kept as implicit custom.
    if linking.linked_experiment_id is not None:
        return _resolve_link(store, linking, explicit=False)
    stored = dataset.stored_experiment_id
    if stored is not None:
        return ExperimentIdResolution(value=stored, mode=ExperimentIdMode.CUSTOM, explicit=False)
    return ExperimentIdResolution(value=None, mode=ExperimentIdMode.DROPDOWN, explicit=False)


def resolve_experiment_id(store: EntityStore, dataset: Dataset) -> str | None:
    return describe_experiment_id(store, dataset).value


def switch_dataset_to_dropdown(store: EntityStore, dataset: Dataset) -> Dataset:
    """Enter dropdown mode with nothing selected; the user must pick again."""

    log.debug("Dataset #%d -> dropdown", dataset.internal_id)
    return store.apply_dataset_linking(dataset.internal_id, DatasetLinking.dropdown(), None)


def switch_dataset_to_custom(store: EntityStore, dataset: Dataset) -> Dataset:
    """Enter custom mode with an empty value and no experiment link."""

    log.debug("Dataset #%d -> custom", dataset.internal_id)
    return store.apply_dataset_linking(dataset.internal_id, DatasetLinking.custom(), None)


def set_custom_experiment_id(store: EntityStore, dataset: Dataset, value: str | None) -> Dataset:
    """Store freetext typed into the custom ``experiment_id`` input."""

    return store.apply_dataset_linking(
        dataset.internal_id, DatasetLinking.custom(), clean_str(value)
    )


def select_experiment_for_dataset(
    store: EntityStore, dataset: Dataset, experiment_internal_id: int | None
) -> Dataset:
    """Link ``dataset`` to an experiment picked in the dropdown.

    ``None`` is the explicit "None" choice: dropdown mode without a link.
    """

    if experiment_internal_id is None:
        return switch_dataset_to_dropdown(store, dataset)
    experiment = store.require_experiment(experiment_internal_id)
    log.debug(
        "Dataset #%d linked to experiment #%d (%r)",
        dataset.internal_id,
        experiment.internal_id,
        experiment.experiment_id,
    )
    return store.apply_dataset_linking(
        dataset.internal_id,
        DatasetLinking.dropdown(experiment.internal_id),
        experiment.experiment_id,
    )


def _any_experiment_with_id(store: EntityStore) -> bool:
    return any(exp.experiment_id is not None for exp in store.experiments)


def on_mount(store: EntityStore, dataset: Dataset) -> ExperimentIdResolution:
    """Apply the lazy mode rules when the ``experiment_id`` field is shown.

    * A custom dataset whose value is empty falls back to dropdown mode, so a
      visit that typed nothing does not leave the field stuck in custom.
    * A dataset that never chose a mode but holds a value is locked into
      custom once some experiment with an id exists, keeping the value.
    """

    resolution = describe_experiment_id(store, dataset)
    mode = dataset.linking.mode
    if mode is ExperimentIdMode.CUSTOM and resolution.value is None:
        switch_dataset_to_dropdown(store, dataset)
    elif (
        mode is ExperimentIdMode.UNSET
        and dataset.linking.linked_experiment_id is None
        and resolution.value is not None
        and _any_experiment_with_id(store)
    ):
        log.debug("Dataset #%d locked into custom experiment_id", dataset.internal_id)
        store.apply_dataset_linking(dataset.internal_id, DatasetLinking.custom(), resolution.value)
    else:
        return resolution
    return describe_experiment_id(store, dataset)


def experiment_options(store: EntityStore) -> list[ExperimentOption]:
    """Dropdown entries for the dataset ``experiment_id`` picker, in store order."""

    options = []
    for exp in store.experiments:
        label = exp.name or clean_str(exp.form_data.get("name")) or "Experiment"
        options.append(
            ExperimentOption(internal_id=exp.internal_id, label=label, experiment_id=exp.experiment_id)
        )
    return options


# --------------------------------------------------------------------------
# export helpers


def effective_form_data(store: EntityStore, entity: Experiment | Dataset) -> dict[str, Any]:
    """Return a copy of ``entity.form_data`` with linked fields resolved."""

    data = copy.deepcopy(entity.form_data)
    if isinstance(entity, Experiment):
        _put(data, "project_id", resolve_project_id(store, entity))
    else:
        _put(data, "experiment_id", resolve_experiment_id(store, entity))
    return data


def refresh_linked_values(store: EntityStore) -> None:
    """Write every linked field's resolved value back into its form data."""

    for exp in store.experiments:
        if exp.linking.uses_linked_project_id:
            _put(exp.form_data, "project_id", store.project.project_id)
    for ds in store.datasets:
        if ds.linking.mode is not ExperimentIdMode.CUSTOM and ds.linking.linked_experiment_id is not None:
            _put(ds.form_data, "experiment_id", resolve_experiment_id(store, ds))


def _put(data: dict[str, Any], key: str, value: str | None) -> None:
    if value:
        data[key] = value
    else:
        data.pop(key, None)
