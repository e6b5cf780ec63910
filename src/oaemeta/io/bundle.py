# OAE Metadata Builder
# Copyright © 2025 OAE Metadata Builder contributors
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""Metadata bundle: the JSON container exchanged through export and import.

Written layout::

    {
      "version": "...",
      "protocol_git_hash": "...",
      "metadata_builder_git_hash": "...",
      "project": {...},
      "experiments": [{...}, ...],
      "datasets": [{...}, ...]
    }

Experiment and dataset records are written as flat form data.  On read, a
record may also be an envelope ``{"name": ..., "formData": {...}}``, and the
older layout that nested ``experiments`` inside ``project`` is accepted.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from oaemeta.app.config import BUNDLE_VERSION, PROTOCOL_GIT_HASH
from oaemeta.core.entities import FormData, clean_str
from oaemeta.core.linking import effective_form_data
from oaemeta.core.store import EntityStore

__all__ = [
    "PROJECT_FIELDS",
    "BundleContainer",
    "BundleParseError",
    "BundleRecord",
    "ParsedBundle",
    "clean_project_data",
    "parse_bundle",
    "load_bundle",
    "build_bundle",
    "dump_bundle",
    "write_bundle",
    "default_export_filename",
]

log = logging.getLogger(__name__)

PROJECT_FIELDS = (
    "project_id",
    "project_description",
    "mcdr_pathway",
    "sea_names",
    "temporal_coverage",
    "spatial_coverage",
    "vertical_coverage",
    "physical_site_description",
    "social_context_site_description",
    "social_research_conducted_to_date",
    "colocated_operations",
    "previous_or_ongoing_colocated_research",
    "public_comments",
    "permits",
    "research_project",
    "funding",
    "additional_details",
)


class BundleParseError(ValueError):
    """Raised when a bundle cannot be read or does not have the container shape."""

    def __init__(self, message: str, source: str | None = None):
        self.source = source
        prefix = f"{source}: " if source else ""
        super().__init__(f"{prefix}{message}")


class BundleContainer(BaseModel):
    model_config = ConfigDict(extra="ignore", protected_namespaces=())

    version: str = ""
    protocol_git_hash: str = ""
    metadata_builder_git_hash: str = ""
    project: dict[str, Any] | None = None
    experiments: list[dict[str, Any]] = Field(default_factory=list)
    datasets: list[dict[str, Any]] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _lift_nested_experiments(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        project = data.get("project")
        if isinstance(project, dict) and "experiments" in project:
            data = dict(data)
            project = dict(project)
            nested = project.pop("experiments") or []
            data["project"] = project
            if not data.get("experiments"):
                data["experiments"] = nested
        return data


@dataclass
class BundleRecord:
    """One experiment or dataset entry as it appears in the file."""

    form_data: FormData
    name: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> BundleRecord:
        inner = payload.get("formData")
        if isinstance(inner, dict):
            form_data = dict(inner)
            name = clean_str(payload.get("name")) or clean_str(form_data.get("name"))
        else:
            form_data = dict(payload)
            name = clean_str(form_data.get("name"))
        return cls(form_data=form_data, name=name)


@dataclass
class ParsedBundle:
    project: FormData | None = None
    experiments: list[BundleRecord] = field(default_factory=list)
    datasets: list[BundleRecord] = field(default_factory=list)
    version: str = ""
    source: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.project is None and not self.experiments and not self.datasets


def clean_project_data(data: dict[str, Any]) -> FormData:
    """Keep only project-schema fields."""

    return {key: data[key] for key in PROJECT_FIELDS if data.get(key) is not None}


def parse_bundle(text: str, *, source: str | None = None) -> ParsedBundle:
    """Parse bundle ``text`` into records ready for the import preview."""

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise BundleParseError(f"Failed to parse JSON: {exc}", source) from exc
    if not isinstance(payload, dict):
        raise BundleParseError("Bundle must be a JSON object", source)
    try:
        container = BundleContainer.model_validate(payload)
    except ValidationError as exc:
        raise BundleParseError(f"Malformed bundle: {exc.errors()[0]['msg']}", source) from exc

    project = clean_project_data(container.project) if container.project else None
    parsed = ParsedBundle(
        project=project or None,
        experiments=[BundleRecord.from_payload(item) for item in container.experiments],
        datasets=[BundleRecord.from_payload(item) for item in container.datasets],
        version=container.version,
        source=source,
    )
    log.info(
        "Parsed bundle source=%s version=%s project=%s experiments=%d datasets=%d",
        source,
        parsed.version or "?",
        parsed.project is not None,
        len(parsed.experiments),
        len(parsed.datasets),
    )
    return parsed


def load_bundle(path: str | Path) -> ParsedBundle:
    path_obj = Path(path)
    try:
        text = path_obj.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise BundleParseError(f"Failed to read file: {exc}", path_obj.name) from exc
    return parse_bundle(text, source=path_obj.name)


def build_bundle(store: EntityStore) -> BundleContainer:
    """Snapshot ``store`` as a container, with linked fields resolved."""

    experiments = []
    for exp in store.experiments:
        data = effective_form_data(store, exp)
        data.setdefault("name", exp.name)
        experiments.append(data)
    datasets = []
    for ds in store.datasets:
        data = effective_form_data(store, ds)
        data.setdefault("name", ds.name)
        datasets.append(data)
    project = clean_project_data(store.project.form_data)
    return BundleContainer(
        version=BUNDLE_VERSION,
        protocol_git_hash=PROTOCOL_GIT_HASH,
        metadata_builder_git_hash="",
        project=project,
        experiments=experiments,
        datasets=datasets,
    )


def dump_bundle(container: BundleContainer) -> str:
    return json.dumps(container.model_dump(mode="json"), indent=2)


def default_export_filename(project_id: str | None, today: date | None = None) -> str:
    stamp = (today or date.today()).isoformat()
    return f"{clean_str(project_id) or 'project'}-metadata-{stamp}.json"


def write_bundle(store: EntityStore, path: str | Path) -> Path:
    """Write ``store`` to ``path``; a directory gets the default file name."""

    target = Path(path)
    if target.is_dir():
        target = target / default_export_filename(store.project.project_id)
    target.write_text(dump_bundle(build_bundle(store)), encoding="utf-8")
    log.info(
        "Exported bundle path=%s experiments=%d datasets=%d",
        target,
        len(store.experiments),
        len(store.datasets),
    )
    return target
