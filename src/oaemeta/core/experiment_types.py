"""Field membership per experiment type.

Used to drop fields that no longer apply when an experiment switches type, so
an intervention turned baseline does not keep exporting dosing metadata.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

__all__ = [
    "EXPERIMENT_TYPES",
    "COMMON_FIELDS",
    "INTERVENTION_FIELDS",
    "TRACER_FIELDS",
    "valid_fields_for_type",
    "clean_form_data_for_type",
]

log = logging.getLogger(__name__)

EXPERIMENT_TYPES = (
    "baseline",
    "control",
    "intervention",
    "tracer_study",
    "intervention_with_tracer",
    "model",
    "other",
)

COMMON_FIELDS = frozenset(
    {
        "experiment_id",
        "experiment_type",
        "name",
        "description",
        "project_id",
        "start_datetime",
        "end_datetime",
        "spatial_coverage",
        "vertical_coverage",
        "principal_investigators",
        "meteorological_and_tidal_data",
        "data_conflicts_and_unreported_data",
        "additional_details",
    }
)

INTERVENTION_FIELDS = frozenset(
    {
        "alkalinity_dosing_effluent_density",
        "alkalinity_feedstock",
        "alkalinity_feedstock_co2_removal_potential",
        "alkalinity_feedstock_description",
        "alkalinity_feedstock_form",
        "alkalinity_feedstock_processing",
        "equilibration",
        "dosing_delivery_type",
        "dosing_depth",
        "dosing_description",
        "dosing_dispersal_hydrologic_location",
        "dosing_location",
        "dosing_regimen",
    }
)

TRACER_FIELDS = frozenset(
    {
        "tracer_concentration",
        "tracer_details",
        "tracer_form",
        "dosing_delivery_type",
        "dosing_depth",
        "dosing_description",
        "dosing_dispersal_hydrologic_location",
        "dosing_location",
        "dosing_regimen",
    }
)

_TYPE_FIELDS: dict[str, frozenset[str]] = {
    "intervention": INTERVENTION_FIELDS,
    "tracer_study": TRACER_FIELDS,
    "intervention_with_tracer": INTERVENTION_FIELDS | TRACER_FIELDS,
}


def valid_fields_for_type(experiment_type: str | None) -> frozenset[str]:
    """Return the fields an experiment of ``experiment_type`` may carry."""

    extra = _TYPE_FIELDS.get((experiment_type or "").strip().lower(), frozenset())
    return COMMON_FIELDS | extra


def clean_form_data_for_type(
    form_data: Mapping[str, Any], experiment_type: str | None
) -> dict[str, Any]:
    """Return a copy of ``form_data`` without fields foreign to ``experiment_type``.

    Only fields that belong to *some* experiment type are candidates for
    removal; anything the type tables do not know about is passed through
    untouched so schema additions are never silently lost.
    """

    valid = valid_fields_for_type(experiment_type)
    known = COMMON_FIELDS | INTERVENTION_FIELDS | TRACER_FIELDS
    cleaned: dict[str, Any] = {}
    dropped: list[str] = []
    for key, value in form_data.items():
        if key in known and key not in valid:
            dropped.append(key)
            continue
        cleaned[key] = value
    if dropped:
        log.debug(
            "Dropped %d field(s) not valid for experiment_type=%s: %s",
            len(dropped),
            experiment_type,
            sorted(dropped),
        )
    return cleaned
