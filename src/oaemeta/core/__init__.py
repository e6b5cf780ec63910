"""Entity store, linking resolver and per-entity helpers."""

from oaemeta.core.entities import (
    Dataset,
    DatasetLinking,
    Experiment,
    ExperimentIdMode,
    ExperimentLinking,
    InvalidLinkingError,
    Project,
    ProjectIdMode,
)
from oaemeta.core.linking import (
    describe_experiment_id,
    on_mount,
    resolve_experiment_id,
    resolve_project_id,
    select_experiment_for_dataset,
    switch_dataset_to_custom,
    switch_dataset_to_dropdown,
    toggle_project_link,
)
from oaemeta.core.store import EntityStore, UnknownEntityError

__all__ = [
    "Project",
    "Experiment",
    "Dataset",
    "ProjectIdMode",
    "ExperimentIdMode",
    "ExperimentLinking",
    "DatasetLinking",
    "InvalidLinkingError",
    "EntityStore",
    "UnknownEntityError",
    "resolve_project_id",
    "toggle_project_link",
    "resolve_experiment_id",
    "describe_experiment_id",
    "switch_dataset_to_dropdown",
    "switch_dataset_to_custom",
    "select_experiment_for_dataset",
    "on_mount",
]
