"""Completion percentages for the overview cards."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from oaemeta.core.entities import Dataset, Experiment

__all__ = [
    "PROJECT_REQUIRED_FIELDS",
    "EXPERIMENT_REQUIRED_FIELDS",
    "INTERVENTION_REQUIRED_FIELDS",
    "TRACER_REQUIRED_FIELDS",
    "DATASET_REQUIRED_FIELDS",
    "required_fields_for_experiment_type",
    "is_filled",
    "missing_fields",
    "completion_percentage",
    "project_completion",
    "experiment_completion",
    "dataset_completion",
]

PROJECT_REQUIRED_FIELDS = (
    "project_id",
    "project_description",
    "mcdr_pathway",
    "sea_names",
    "spatial_coverage",
    "temporal_coverage",
)

EXPERIMENT_REQUIRED_FIELDS = (
    "experiment_id",
    "experiment_type",
    "description",
    "spatial_coverage",
    "vertical_coverage",
    "principal_investigators",
    "start_datetime",
    "end_datetime",
)

INTERVENTION_REQUIRED_FIELDS = (
    "alkalinity_feedstock_processing",
    "alkalinity_feedstock_form",
    "alkalinity_feedstock",
    "alkalinity_feedstock_description",
    "equilibration",
    "dosing_location",
    "dosing_dispersal_hydrologic_location",
    "dosing_delivery_type",
    "alkalinity_dosing_effluent_density",
    "dosing_depth",
    "dosing_description",
    "dosing_regimen",
)

TRACER_REQUIRED_FIELDS = (
    "tracer_concentration",
    "tracer_details",
    "tracer_form",
    "dosing_delivery_type",
    "dosing_depth",
    "dosing_description",
    "dosing_dispersal_hydrologic_location",
    "dosing_location",
    "dosing_regimen",
)

# Combined type keeps the first occurrence of the shared dosing fields.
_TYPE_REQUIRED_FIELDS: dict[str, tuple[str, ...]] = {
    "intervention": INTERVENTION_REQUIRED_FIELDS,
    "tracer_study": TRACER_REQUIRED_FIELDS,
    "intervention_with_tracer": tuple(
        dict.fromkeys(INTERVENTION_REQUIRED_FIELDS + TRACER_REQUIRED_FIELDS)
    ),
}

DATASET_REQUIRED_FIELDS = (
    "name",
    "experiment_id",
    "description",
    "temporal_coverage",
    "dataset_type",
    "data_product_type",
)


def required_fields_for_experiment_type(experiment_type: str | None) -> tuple[str, ...]:
    extra = _TYPE_REQUIRED_FIELDS.get((experiment_type or "").strip().lower(), ())
    return EXPERIMENT_REQUIRED_FIELDS + extra


def is_filled(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (int, float)):
        return True
    if isinstance(value, (list, tuple, dict)):
        return len(value) > 0
    return True


def missing_fields(form_data: Mapping[str, Any], required: Sequence[str]) -> list[str]:
    return [name for name in required if not is_filled(form_data.get(name))]


def completion_percentage(form_data: Mapping[str, Any] | None, required: Sequence[str]) -> int:
    if not form_data or not required:
        return 0
    filled = len(required) - len(missing_fields(form_data, required))
    return round(filled / len(required) * 100)


def project_completion(form_data: Mapping[str, Any] | None) -> int:
    return completion_percentage(form_data, PROJECT_REQUIRED_FIELDS)


def experiment_completion(experiment: Experiment, form_data: Mapping[str, Any] | None = None) -> int:
    # Pass resolved form data to count linked values that are not stored yet.
    data = experiment.form_data if form_data is None else form_data
    return completion_percentage(data, required_fields_for_experiment_type(experiment.experiment_type))


def dataset_completion(dataset: Dataset, form_data: Mapping[str, Any] | None = None) -> int:
    data = dataset.form_data if form_data is None else form_data
    return completion_percentage(data, DATASET_REQUIRED_FIELDS)
