# OAE Metadata Builder
# Copyright © 2025 OAE Metadata Builder contributors
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""
Import reconciliation for metadata bundles.

A parsed bundle is compared against the live :class:`EntityStore` and turned
into an :class:`ImportSession`: one :class:`ImportItem` per project,
experiment and dataset entry, each classified as new or overriding an
existing record.  The operator toggles items, re-targets dataset links, and
finally commits or cancels.  Nothing touches the store before ``commit``.

Identifier collisions that cannot be settled by selection (the same
``experiment_id`` twice in the file, or one id matching several existing
experiments) put the session in a blocked state; commit is refused until a
corrected file is imported again.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

from oaemeta.app.config import ImportSettings
from oaemeta.core.entities import (
    DatasetLinking,
    ExperimentLinking,
    FormData,
    ProjectIdMode,
    clean_str,
)
from oaemeta.core.linking import refresh_linked_values
from oaemeta.core.store import EntityStore
from oaemeta.io.bundle import BundleRecord, ParsedBundle

log = logging.getLogger(__name__)

ImportItemType = Literal["project", "experiment", "dataset"]

USE_FILE_CHOICE = "use-file"
_EXISTING_PREFIX = "existing-"
_IMPORTING_PREFIX = "importing-"


class ImportConflict(str, Enum):
    NEW = "new"
    OVERRIDE = "override"


class LinkMode(str, Enum):
    USE_FILE = "use-file"
    EXPLICIT = "explicit"


class MatchType(str, Enum):
    EXISTING = "existing"
    IMPORTING = "importing"
    NONE = "none"


class ImportPhase(str, Enum):
    PREVIEWED = "previewed"
    COMMITTED = "committed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class DatasetExperimentLinking:
    """How an imported dataset picks its experiment.

    ``use-file`` keeps the reference the dataset carries in the file;
    ``explicit`` points at an existing experiment (internal id) or at an
    experiment from the same file (import key, resolved at commit time).
    """

    mode: LinkMode = LinkMode.USE_FILE
    explicit_experiment_internal_id: int | None = None
    explicit_import_key: str | None = None

    def __post_init__(self) -> None:
        targets = (self.explicit_experiment_internal_id, self.explicit_import_key)
        set_count = sum(target is not None for target in targets)
        if self.mode is LinkMode.USE_FILE and set_count:
            raise ValueError("use-file linking cannot name an explicit experiment")
        if self.mode is LinkMode.EXPLICIT and set_count != 1:
            raise ValueError("explicit linking needs exactly one target")

    @classmethod
    def use_file(cls) -> DatasetExperimentLinking:
        return cls()

    @classmethod
    def existing(cls, internal_id: int) -> DatasetExperimentLinking:
        return cls(mode=LinkMode.EXPLICIT, explicit_experiment_internal_id=internal_id)

    @classmethod
    def importing(cls, import_key: str) -> DatasetExperimentLinking:
        return cls(mode=LinkMode.EXPLICIT, explicit_import_key=import_key)

    @classmethod
    def from_choice(cls, choice: str) -> DatasetExperimentLinking:
        """Parse a picker value: ``use-file``, ``existing-{id}`` or ``importing-{key}``."""

        if choice == USE_FILE_CHOICE:
            return cls.use_file()
        if choice.startswith(_EXISTING_PREFIX):
            raw = choice[len(_EXISTING_PREFIX):]
            try:
                return cls.existing(int(raw))
            except ValueError as exc:
                raise ValueError(f"Invalid experiment id in link choice {choice!r}") from exc
        if choice.startswith(_IMPORTING_PREFIX) and len(choice) > len(_IMPORTING_PREFIX):
            return cls.importing(choice[len(_IMPORTING_PREFIX):])
        raise ValueError(f"Unknown link choice {choice!r}")

    @property
    def choice(self) -> str:
        if self.explicit_experiment_internal_id is not None:
            return f"{_EXISTING_PREFIX}{self.explicit_experiment_internal_id}"
        if self.explicit_import_key is not None:
            return f"{_IMPORTING_PREFIX}{self.explicit_import_key}"
        return USE_FILE_CHOICE


@dataclass(frozen=True)
class ResolvedMatch:
    type: MatchType
    experiment_name: str | None = None
    internal_id: int | None = None
    import_key: str | None = None


_NO_MATCH = ResolvedMatch(MatchType.NONE)


@dataclass
class ImportItem:
    key: str
    type: ImportItemType
    name: str
    id: str | None
    form_data: FormData
    conflict: ImportConflict
    conflict_reason: str
    selected: bool = True
    target_internal_id: int | None = None
    file_experiment_id: str | None = None
    experiment_linking: DatasetExperimentLinking | None = None
    resolved_match: ResolvedMatch | None = None

    @property
    def is_override(self) -> bool:
        return self.conflict is ImportConflict.OVERRIDE


@dataclass(frozen=True)
class LinkOption:
    value: str
    label: str


@dataclass
class ImportOutcome:
    committed: bool
    error: str | None = None
    project_updated: bool = False
    created_experiments: list[int] = field(default_factory=list)
    overwritten_experiments: list[int] = field(default_factory=list)
    created_datasets: list[int] = field(default_factory=list)
    overwritten_datasets: list[int] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    key_to_internal_id: dict[str, int] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    def summary(self) -> str:
        if not self.committed:
            return f"Import not committed: {self.error}"
        parts = [
            f"{len(self.created_experiments)} experiment(s) added",
            f"{len(self.overwritten_experiments)} replaced",
            f"{len(self.created_datasets)} dataset(s) added",
            f"{len(self.overwritten_datasets)} replaced",
        ]
        if self.project_updated:
            parts.insert(0, "project updated")
        if self.skipped:
            parts.append(f"{len(self.skipped)} skipped")
        return ", ".join(parts)


# --------------------------------------------------------------------------
# preview


def _experiment_items(
    store: EntityStore, records: list[BundleRecord], settings: ImportSettings
) -> tuple[list[ImportItem], list[str]]:
    items: list[ImportItem] = []
    errors: list[str] = []
    for index, record in enumerate(records):
        exp_id = clean_str(record.form_data.get("experiment_id"))
        name = record.name or exp_id or f"Experiment {index + 1}"
        matches = store.find_experiments_by_domain_id(exp_id)
        if exp_id is None and settings.match_experiments_by_name and record.name:
            matches = store.find_experiments_by_name(record.name)

        target = None
        if len(matches) > 1:
            errors.append(
                f'Experiment ID "{exp_id or record.name}" matches {len(matches)} existing '
                "experiments; it is not clear which one to replace."
            )
            conflict, reason = ImportConflict.OVERRIDE, "Ambiguous: several existing experiments match"
        elif matches:
            target = matches[0].internal_id
            conflict = ImportConflict.OVERRIDE
            reason = f'Replace existing experiment: "{matches[0].name}"'
        else:
            conflict, reason = ImportConflict.NEW, "Add as new experiment"

        items.append(
            ImportItem(
                key=f"experiment-{index}",
                type="experiment",
                name=name,
                id=exp_id,
                form_data=dict(record.form_data),
                conflict=conflict,
                conflict_reason=reason,
                target_internal_id=target,
            )
        )

    counts = Counter(item.id for item in items if item.id is not None)
    for exp_id, count in counts.items():
        if count > 1:
            errors.append(
                f'Import file contains duplicate experiment_id "{exp_id}" ({count} experiments). '
                "Fix the file and import it again."
            )
    return items, errors


def _dataset_items(
    store: EntityStore, records: list[BundleRecord], settings: ImportSettings
) -> tuple[list[ImportItem], list[str]]:
    items: list[ImportItem] = []
    errors: list[str] = []
    for index, record in enumerate(records):
        name = record.name or f"Dataset {index + 1}"
        matches = store.find_datasets_by_name(record.name)
        if matches:
            target = matches[0].internal_id
            conflict = ImportConflict.OVERRIDE
            reason = f'Replace existing dataset: "{matches[0].name}"'
            if len(matches) > 1:
                log.warning(
                    "IMPORT: dataset name %r matches %d existing datasets; the first is replaced",
                    name,
                    len(matches),
                )
        else:
            target = None
            conflict, reason = ImportConflict.NEW, "Add as new dataset"
        items.append(
            ImportItem(
                key=f"dataset-{index}",
                type="dataset",
                name=name,
                id=record.name,
                form_data=dict(record.form_data),
                conflict=conflict,
                conflict_reason=reason,
                target_internal_id=target,
                file_experiment_id=clean_str(record.form_data.get("experiment_id")),
                experiment_linking=DatasetExperimentLinking.use_file(),
            )
        )

    if settings.strict_dataset_names:
        counts = Counter(item.id for item in items if item.id is not None)
        for name, count in counts.items():
            if count > 1:
                errors.append(
                    f'Import file contains duplicate dataset name "{name}" ({count} datasets). '
                    "Fix the file and import it again."
                )
    return items, errors


def preview_import(
    store: EntityStore,
    bundle: ParsedBundle,
    *,
    filename: str | None = None,
    settings: ImportSettings | None = None,
) -> ImportSession:
    """Classify every entry of ``bundle`` against ``store``."""

    settings = settings or ImportSettings.from_flags()
    items: list[ImportItem] = []

    if bundle.project:
        project_id = clean_str(bundle.project.get("project_id"))
        has_existing = store.project.project_id is not None
        items.append(
            ImportItem(
                key="project-0",
                type="project",
                name=project_id or "Project",
                id=project_id,
                form_data=dict(bundle.project),
                conflict=ImportConflict.OVERRIDE if has_existing else ImportConflict.NEW,
                conflict_reason=(
                    "Replace existing project metadata"
                    if has_existing
                    else "Will set project metadata"
                ),
            )
        )

    experiment_items, experiment_errors = _experiment_items(store, bundle.experiments, settings)
    dataset_items, dataset_errors = _dataset_items(store, bundle.datasets, settings)
    items.extend(experiment_items)
    items.extend(dataset_items)

    errors = experiment_errors + dataset_errors
    session = ImportSession(
        store,
        items,
        filename=filename or bundle.source or "",
        blocking_error=" ".join(errors) or None,
    )

    conflict_counts = Counter(item.conflict.value for item in items)
    log.info(
        "IMPORT: preview built file=%s items=%d conflicts=%s",
        session.filename,
        len(items),
        dict(conflict_counts),
    )
    if session.blocking_error:
        log.warning("IMPORT: preview blocked file=%s: %s", session.filename, session.blocking_error)
    return session


# --------------------------------------------------------------------------
# session


class ImportSession:
    """Reviewable merge plan for one imported file."""

    def __init__(
        self,
        store: EntityStore,
        items: list[ImportItem],
        *,
        filename: str = "",
        blocking_error: str | None = None,
    ):
        self._store = store
        self.items = items
        self.filename = filename
        self.blocking_error = blocking_error
        self.phase = ImportPhase.PREVIEWED
        self._by_key = {item.key: item for item in items}
        self._refresh_matches()

    # --------------------------------------------------
    @property
    def has_blocking_error(self) -> bool:
        return self.blocking_error is not None

    # --------------------------------------------------
    @property
    def is_open(self) -> bool:
        return self.phase is ImportPhase.PREVIEWED

    # --------------------------------------------------
    @property
    def selected_items(self) -> list[ImportItem]:
        return [item for item in self.items if item.selected]

    # --------------------------------------------------
    @property
    def selected_count(self) -> int:
        return len(self.selected_items)

    # --------------------------------------------------
    @property
    def has_selected_overrides(self) -> bool:
        return any(item.is_override for item in self.selected_items)

    # --------------------------------------------------
    @property
    def can_commit(self) -> bool:
        return self.is_open and not self.has_blocking_error and self.selected_count > 0

    # --------------------------------------------------
    def get_item(self, key: str) -> ImportItem | None:
        return self._by_key.get(key)

    # --------------------------------------------------
    def items_of_type(self, item_type: ImportItemType) -> list[ImportItem]:
        return [item for item in self.items if item.type == item_type]

    # --------------------------------------------------
    def toggle_item(self, key: str) -> bool:
        item = self._by_key.get(key)
        if item is None or not self.is_open:
            log.debug("IMPORT: ignoring toggle of %r (phase=%s)", key, self.phase.value)
            return False
        return self.set_selected(key, not item.selected)

    # --------------------------------------------------
    def set_selected(self, key: str, selected: bool) -> bool:
        item = self._by_key.get(key)
        if item is None or not self.is_open:
            return False
        item.selected = selected
        self._refresh_matches()
        return True

    # --------------------------------------------------
    def select_all(self) -> None:
        self._select_every(True)

    # --------------------------------------------------
    def deselect_all(self) -> None:
        self._select_every(False)

    # --------------------------------------------------
    def _select_every(self, selected: bool) -> None:
        if not self.is_open:
            return
        for item in self.items:
            item.selected = selected
        self._refresh_matches()

    # --------------------------------------------------
    def set_dataset_experiment_linking(self, key: str, linking: DatasetExperimentLinking) -> bool:
        """Re-target a dataset item.  Invalid targets are refused, not raised."""

        item = self._by_key.get(key)
        if item is None or item.type != "dataset" or not self.is_open:
            log.warning("IMPORT: cannot set experiment linking on %r", key)
            return False
        if linking.explicit_experiment_internal_id is not None:
            if self._store.get_experiment(linking.explicit_experiment_internal_id) is None:
                log.warning(
                    "IMPORT: %s -> unknown experiment #%d",
                    key,
                    linking.explicit_experiment_internal_id,
                )
                return False
        if linking.explicit_import_key is not None:
            target = self._by_key.get(linking.explicit_import_key)
            if target is None or target.type != "experiment":
                log.warning("IMPORT: %s -> unknown import key %r", key, linking.explicit_import_key)
                return False
        item.experiment_linking = linking
        item.resolved_match = self._match_for(item)
        return True

    # --------------------------------------------------
    def set_dataset_link_choice(self, key: str, choice: str) -> bool:
        try:
            linking = DatasetExperimentLinking.from_choice(choice)
        except ValueError as exc:
            log.warning("IMPORT: %s", exc)
            return False
        return self.set_dataset_experiment_linking(key, linking)

    # --------------------------------------------------
    def experiment_link_options(self, key: str) -> list[LinkOption]:
        """Picker entries for a dataset item: file reference first, then alternatives."""

        item = self._by_key.get(key)
        if item is None or item.type != "dataset":
            return []

        file_match = self._use_file_match(item)
        if item.file_experiment_id is None:
            file_label = "(no experiment)"
        elif file_match.type is MatchType.NONE:
            file_label = item.file_experiment_id
        else:
            file_label = f"{file_match.experiment_name} ({item.file_experiment_id})"
        options = [LinkOption(USE_FILE_CHOICE, file_label)]

        for exp in self._store.experiments:
            if file_match.type is MatchType.EXISTING and exp.internal_id == file_match.internal_id:
                continue
            label = f"{exp.name} ({exp.experiment_id})" if exp.experiment_id else exp.name
            options.append(LinkOption(f"{_EXISTING_PREFIX}{exp.internal_id}", label))

        for candidate in self.items_of_type("experiment"):
            if not candidate.selected:
                continue
            if file_match.type is MatchType.IMPORTING and candidate.key == file_match.import_key:
                continue
            label = f"{candidate.name} ({candidate.id})" if candidate.id else candidate.name
            options.append(LinkOption(f"{_IMPORTING_PREFIX}{candidate.key}", label))
        return options

    # --------------------------------------------------
    def cancel(self) -> None:
        """Discard the preview; the store was never touched."""

        if self.phase is ImportPhase.PREVIEWED:
            self.phase = ImportPhase.CANCELLED
            log.info("IMPORT: preview cancelled file=%s", self.filename)

    # --------------------------------------------------
    def commit(self) -> ImportOutcome:
        """Apply the selected items: project, then experiments, then datasets."""

        if not self.is_open:
            return ImportOutcome(committed=False, error=f"Import session is {self.phase.value}")
        if self.has_blocking_error:
            log.warning("IMPORT: commit refused, session blocked: %s", self.blocking_error)
            return ImportOutcome(committed=False, error=self.blocking_error)
        if self.selected_count == 0:
            return ImportOutcome(committed=False, error="No items selected for import")

        store = self._store
        outcome = ImportOutcome(committed=True)
        outcome.skipped = [item.key for item in self.items if not item.selected]
        previous_active = (store.active_experiment_id, store.active_dataset_id)

        for item in self.items_of_type("project"):
            if item.selected:
                store.update_project(item.form_data)
                outcome.project_updated = True

        # Phase 1: every selected experiment gets its final internal id.
        for item in self.items_of_type("experiment"):
            if item.selected:
                self._commit_experiment(item, outcome)

        # Phase 2: datasets resolve forward references through the key map.
        for item in self.items_of_type("dataset"):
            if item.selected:
                self._commit_dataset(item, outcome)

        refresh_linked_values(store)
        store.active_experiment_id, store.active_dataset_id = previous_active
        self.phase = ImportPhase.COMMITTED
        log.info("IMPORT: commit finished file=%s: %s", self.filename, outcome.summary())
        return outcome

    # --------------------------------------------------
    def _commit_experiment(self, item: ImportItem, outcome: ImportOutcome) -> None:
        store = self._store
        file_project_id = clean_str(item.form_data.get("project_id"))
        if file_project_id is None or file_project_id == store.project.project_id:
            linking = ExperimentLinking(project_mode=ProjectIdMode.LINKED)
            project_id = store.project.project_id
        else:
            linking = ExperimentLinking(project_mode=ProjectIdMode.CUSTOM)
            project_id = file_project_id

        target = store.get_experiment(item.target_internal_id)
        if target is not None:
            store.update_experiment(target.internal_id, item.form_data, name=item.name)
            internal_id = target.internal_id
            outcome.overwritten_experiments.append(internal_id)
        else:
            if item.target_internal_id is not None:
                outcome.warnings.append(
                    f"Experiment #{item.target_internal_id} disappeared before commit; "
                    f'"{item.name}" was added as new.'
                )
            internal_id = store.add_experiment(item.name, item.form_data, linking=linking).internal_id
            outcome.created_experiments.append(internal_id)
        store.apply_experiment_linking(internal_id, linking, project_id)
        outcome.key_to_internal_id[item.key] = internal_id

    # --------------------------------------------------
    def _commit_dataset(self, item: ImportItem, outcome: ImportOutcome) -> None:
        store = self._store
        match = self._match_for(item)
        linked_id: int | None = None
        if match.type is MatchType.EXISTING:
            linked_id = match.internal_id
        elif match.type is MatchType.IMPORTING:
            linked_id = outcome.key_to_internal_id.get(match.import_key or "")

        linking_choice = item.experiment_linking or DatasetExperimentLinking.use_file()
        if linking_choice.mode is LinkMode.EXPLICIT and linking_choice.choice != self._choice_for(match):
            outcome.warnings.append(
                f'Dataset "{item.name}": chosen experiment is not part of this import; '
                "kept the reference from the file."
            )

        linked = store.get_experiment(linked_id)
        if linked is not None:
            linking = DatasetLinking.dropdown(linked.internal_id)
            experiment_id = linked.experiment_id
        else:
            # No target: keep the file's reference as a value that never chose a mode.
            linking = DatasetLinking()
            experiment_id = item.file_experiment_id

        target = store.get_dataset(item.target_internal_id)
        if target is not None:
            store.update_dataset(target.internal_id, item.form_data, name=item.name)
            internal_id = target.internal_id
            outcome.overwritten_datasets.append(internal_id)
        else:
            internal_id = store.add_dataset(item.name, item.form_data).internal_id
            outcome.created_datasets.append(internal_id)
        store.apply_dataset_linking(internal_id, linking, experiment_id)
        outcome.key_to_internal_id[item.key] = internal_id

    # --------------------------------------------------
    def _use_file_match(self, item: ImportItem) -> ResolvedMatch:
        file_id = item.file_experiment_id
        if file_id is None:
            return _NO_MATCH
        existing = self._store.find_experiments_by_domain_id(file_id)
        if len(existing) == 1:
            exp = existing[0]
            return ResolvedMatch(MatchType.EXISTING, exp.name, internal_id=exp.internal_id)
        for candidate in self.items_of_type("experiment"):
            if candidate.selected and candidate.id == file_id:
                return ResolvedMatch(MatchType.IMPORTING, candidate.name, import_key=candidate.key)
        return _NO_MATCH

    # --------------------------------------------------
    def _match_for(self, item: ImportItem) -> ResolvedMatch:
        """Where the dataset's experiment link will point after commit.

        An explicit target that is gone or deselected falls back to the file.
        """

        linking = item.experiment_linking
        if linking is not None and linking.explicit_experiment_internal_id is not None:
            exp = self._store.get_experiment(linking.explicit_experiment_internal_id)
            if exp is not None:
                return ResolvedMatch(MatchType.EXISTING, exp.name, internal_id=exp.internal_id)
        elif linking is not None and linking.explicit_import_key is not None:
            candidate = self._by_key.get(linking.explicit_import_key)
            if candidate is not None and candidate.selected:
                return ResolvedMatch(MatchType.IMPORTING, candidate.name, import_key=candidate.key)
        return self._use_file_match(item)

    # --------------------------------------------------
    @staticmethod
    def _choice_for(match: ResolvedMatch) -> str | None:
        if match.type is MatchType.EXISTING:
            return f"{_EXISTING_PREFIX}{match.internal_id}"
        if match.type is MatchType.IMPORTING:
            return f"{_IMPORTING_PREFIX}{match.import_key}"
        return None

    # --------------------------------------------------
    def _refresh_matches(self) -> None:
        for item in self.items:
            if item.type == "dataset":
                item.resolved_match = self._match_for(item)

    # --------------------------------------------------
    def __repr__(self) -> str:
        return (
            f"ImportSession(file={self.filename!r}, items={len(self.items)}, "
            f"selected={self.selected_count}, phase={self.phase.value}, "
            f"blocked={self.has_blocking_error})"
        )


__all__ = [
    "ImportConflict",
    "ImportItem",
    "ImportItemType",
    "ImportOutcome",
    "ImportPhase",
    "ImportSession",
    "DatasetExperimentLinking",
    "LinkMode",
    "LinkOption",
    "MatchType",
    "ResolvedMatch",
    "USE_FILE_CHOICE",
    "preview_import",
]
