import pytest

from oaemeta.core.entities import DatasetLinking, ExperimentIdMode, ExperimentLinking, ProjectIdMode
from oaemeta.core.linking import (
    describe_experiment_id,
    effective_form_data,
    experiment_options,
    on_mount,
    refresh_linked_values,
    resolve_experiment_id,
    resolve_project_id,
    select_experiment_for_dataset,
    set_custom_experiment_id,
    switch_dataset_to_custom,
    switch_dataset_to_dropdown,
    toggle_project_link,
)
from oaemeta.core.store import EntityStore, UnknownEntityError


def _make_store():
    store = EntityStore({"project_id": "P-100"})
    exp = store.add_experiment("Baseline", {"experiment_id": "EXP-001"})
    ds = store.add_dataset("CTD-cast-1")
    return store, exp, ds


def test_linked_project_id_follows_project_edits():
    store = EntityStore({"project_id": "P-100"})
    exp = store.add_experiment(
        "Own", {"project_id": "OLD"}, linking=ExperimentLinking(ProjectIdMode.CUSTOM)
    )
    assert resolve_project_id(store, exp) == "OLD"

    toggle_project_link(store, exp)
    assert exp.linking.uses_linked_project_id
    assert exp.form_data["project_id"] == "P-100"
    assert resolve_project_id(store, exp) == "P-100"

    store.update_project({"project_id": "P-200"})
    assert resolve_project_id(store, exp) == "P-200"


def test_unlinking_keeps_last_resolved_value():
    store, exp, _ = _make_store()
    toggle_project_link(store, exp)
    assert exp.linking.project_mode is ProjectIdMode.CUSTOM
    assert exp.form_data["project_id"] == "P-100"

    store.update_project({"project_id": "P-300"})
    assert resolve_project_id(store, exp) == "P-100"


def test_dataset_project_id_is_its_own_value():
    store, _, ds = _make_store()
    assert resolve_project_id(store, ds) is None
    ds.form_data["project_id"] = "P-DS"
    assert resolve_project_id(store, ds) == "P-DS"


def test_dropdown_tracks_linked_experiment_id():
    store, exp, ds = _make_store()
    select_experiment_for_dataset(store, ds, exp.internal_id)
    assert ds.linking == DatasetLinking.dropdown(exp.internal_id)
    assert ds.form_data["experiment_id"] == "EXP-001"
    assert resolve_experiment_id(store, ds) == "EXP-001"

    store.update_experiment(exp.internal_id, {"experiment_id": "EXP-002"})
    assert resolve_experiment_id(store, ds) == "EXP-002"

    refresh_linked_values(store)
    assert ds.form_data["experiment_id"] == "EXP-002"


def test_linked_experiment_without_id_is_a_warning():
    store, _, ds = _make_store()
    blank = store.add_experiment("Blank")
    select_experiment_for_dataset(store, ds, blank.internal_id)

    resolution = describe_experiment_id(store, ds)
    assert resolution.value is None
    assert resolution.linked_experiment_missing_id
    assert resolution.warning == (
        'Linked experiment "Blank" has no Experiment ID. Please set one on the Experiment page.'
    )


def test_dangling_link_resolves_to_none():
    store, _, ds = _make_store()
    store.apply_dataset_linking(ds.internal_id, DatasetLinking.dropdown(99), None)
    resolution = describe_experiment_id(store, ds)
    assert resolution.value is None
    assert "no longer exists" in resolution.warning


def test_deleted_experiment_leaves_dataset_unresolved():
    store, exp, ds = _make_store()
    select_experiment_for_dataset(store, ds, exp.internal_id)
    store.delete_experiment(exp.internal_id)
    assert resolve_experiment_id(store, ds) is None
    assert ds.linking.mode is ExperimentIdMode.DROPDOWN


def test_switch_to_dropdown_is_idempotent():
    store, _, ds = _make_store()
    set_custom_experiment_id(store, ds, "CUSTOM-7")

    switch_dataset_to_dropdown(store, ds)
    once = (ds.linking, dict(ds.form_data))
    switch_dataset_to_dropdown(store, ds)

    assert (ds.linking, dict(ds.form_data)) == once
    assert ds.linking == DatasetLinking.dropdown()
    assert "experiment_id" not in ds.form_data


def test_switch_to_custom_clears_link_and_value():
    store, exp, ds = _make_store()
    select_experiment_for_dataset(store, ds, exp.internal_id)
    switch_dataset_to_custom(store, ds)
    assert ds.linking == DatasetLinking.custom()
    assert ds.linking.linked_experiment_id is None
    assert resolve_experiment_id(store, ds) is None


def test_selecting_none_is_dropdown_without_link():
    store, exp, ds = _make_store()
    select_experiment_for_dataset(store, ds, exp.internal_id)
    select_experiment_for_dataset(store, ds, None)
    assert ds.linking == DatasetLinking.dropdown()


def test_selecting_unknown_experiment_raises():
    store, _, ds = _make_store()
    with pytest.raises(UnknownEntityError):
        select_experiment_for_dataset(store, ds, 99)


def test_custom_value_survives_remount():
    store, _, ds = _make_store()
    set_custom_experiment_id(store, ds, "CUSTOM-7")

    resolution = on_mount(store, ds)

    assert resolution.mode is ExperimentIdMode.CUSTOM
    assert resolution.value == "CUSTOM-7"
    assert ds.linking.mode is ExperimentIdMode.CUSTOM


def test_empty_custom_value_resets_on_mount():
    store, _, ds = _make_store()
    switch_dataset_to_custom(store, ds)

    resolution = on_mount(store, ds)

    assert ds.linking.mode is ExperimentIdMode.DROPDOWN
    assert resolution.mode is ExperimentIdMode.DROPDOWN
    assert resolution.value is None


def test_unset_value_locks_into_custom_once_experiments_have_ids():
    store = EntityStore()
    ds = store.add_dataset("Early", {"experiment_id": "LEGACY-1"})

    resolution = on_mount(store, ds)
    assert ds.linking.mode is ExperimentIdMode.UNSET
    assert resolution.value == "LEGACY-1"
    assert resolution.explicit is False

    store.add_experiment("No id yet")
    on_mount(store, ds)
    assert ds.linking.mode is ExperimentIdMode.UNSET

    store.add_experiment("Has id", {"experiment_id": "EXP-1"})
    resolution = on_mount(store, ds)
    assert ds.linking.mode is ExperimentIdMode.CUSTOM
    assert resolution.value == "LEGACY-1"
    assert resolution.explicit is True


def test_explicit_dropdown_ignores_stored_value():
    store, _, _ = _make_store()
    ds = store.add_dataset("Typed", {"experiment_id": "X-1"}, linking=DatasetLinking.dropdown())
    assert resolve_experiment_id(store, ds) is None
    on_mount(store, ds)
    assert ds.linking == DatasetLinking.dropdown()


def test_experiment_options_in_store_order():
    store, exp, _ = _make_store()
    store.add_experiment("Second")
    options = experiment_options(store)
    assert [(o.internal_id, o.label, o.experiment_id) for o in options] == [
        (exp.internal_id, "Baseline", "EXP-001"),
        (2, "Second", None),
    ]


def test_effective_form_data_resolves_without_mutating():
    store, exp, ds = _make_store()
    select_experiment_for_dataset(store, ds, exp.internal_id)
    exp.form_data.pop("project_id")

    data = effective_form_data(store, exp)
    assert data["project_id"] == "P-100"
    assert "project_id" not in exp.form_data
    assert effective_form_data(store, ds)["experiment_id"] == "EXP-001"
