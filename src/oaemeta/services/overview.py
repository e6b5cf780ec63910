# OAE Metadata Builder
# Copyright © 2025 OAE Metadata Builder contributors
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""Tabular overview of the store for the overview page and the CLI."""

from __future__ import annotations

import pandas as pd

from oaemeta.core.completion import dataset_completion, experiment_completion, project_completion
from oaemeta.core.linking import describe_experiment_id, effective_form_data, resolve_project_id
from oaemeta.core.store import EntityStore

__all__ = ["EXPERIMENT_COLUMNS", "DATASET_COLUMNS", "experiments_frame", "datasets_frame", "project_summary"]

EXPERIMENT_COLUMNS = [
    "internal_id",
    "name",
    "experiment_id",
    "experiment_type",
    "project_id",
    "project_link",
    "completion",
    "updated_at",
]

DATASET_COLUMNS = [
    "internal_id",
    "name",
    "experiment_id",
    "experiment_mode",
    "linked_experiment",
    "completion",
    "warning",
    "updated_at",
]


def project_summary(store: EntityStore) -> dict[str, object]:
    return {
        "project_id": store.project.project_id,
        "completion": project_completion(store.project.form_data),
        "experiments": len(store.experiments),
        "datasets": len(store.datasets),
    }


def experiments_frame(store: EntityStore) -> pd.DataFrame:
    rows = []
    for exp in store.experiments:
        rows.append(
            {
                "internal_id": exp.internal_id,
                "name": exp.name,
                "experiment_id": exp.experiment_id,
                "experiment_type": exp.experiment_type,
                "project_id": resolve_project_id(store, exp),
                "project_link": exp.linking.project_mode.value,
                "completion": experiment_completion(exp, effective_form_data(store, exp)),
                "updated_at": pd.to_datetime(exp.updated_at, unit="ms"),
            }
        )
    return pd.DataFrame(rows, columns=EXPERIMENT_COLUMNS)


def datasets_frame(store: EntityStore) -> pd.DataFrame:
    """One row per dataset with its resolved ``experiment_id`` and any link warning."""

    rows = []
    for ds in store.datasets:
        resolution = describe_experiment_id(store, ds)
        linked = resolution.linked_experiment
        rows.append(
            {
                "internal_id": ds.internal_id,
                "name": ds.name,
                "experiment_id": resolution.value,
                "experiment_mode": resolution.mode.value,
                "linked_experiment": linked.name if linked is not None else None,
                "completion": dataset_completion(ds, effective_form_data(store, ds)),
                "warning": resolution.warning,
                "updated_at": pd.to_datetime(ds.updated_at, unit="ms"),
            }
        )
    return pd.DataFrame(rows, columns=DATASET_COLUMNS)
