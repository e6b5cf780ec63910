from oaemeta.core.entities import DatasetLinking
from oaemeta.core.linking import select_experiment_for_dataset, set_custom_experiment_id
from oaemeta.core.store import EntityStore
from oaemeta.services.overview import (
    DATASET_COLUMNS,
    EXPERIMENT_COLUMNS,
    datasets_frame,
    experiments_frame,
    project_summary,
)


def _make_store() -> EntityStore:
    store = EntityStore({"project_id": "P-1"})
    exp = store.add_experiment("Baseline", {"experiment_id": "EXP-001", "experiment_type": "baseline"})
    blank = store.add_experiment("Blank")
    linked = store.add_dataset("CTD")
    custom = store.add_dataset("Custom")
    missing = store.add_dataset("Missing")
    select_experiment_for_dataset(store, linked, exp.internal_id)
    set_custom_experiment_id(store, custom, "X-9")
    store.apply_dataset_linking(missing.internal_id, DatasetLinking.dropdown(blank.internal_id), None)
    return store


def test_empty_frames_keep_columns():
    store = EntityStore()
    assert list(experiments_frame(store).columns) == EXPERIMENT_COLUMNS
    assert list(datasets_frame(store).columns) == DATASET_COLUMNS
    assert datasets_frame(store).empty


def test_experiments_frame():
    frame = experiments_frame(_make_store())
    assert frame["name"].tolist() == ["Baseline", "Blank"]
    assert frame["project_id"].tolist() == ["P-1", "P-1"]
    assert frame["project_link"].tolist() == ["linked", "linked"]
    assert frame.loc[0, "experiment_type"] == "baseline"


def test_datasets_frame_reports_modes_and_warnings():
    frame = datasets_frame(_make_store()).set_index("name")

    assert frame.loc["CTD", "experiment_id"] == "EXP-001"
    assert frame.loc["CTD", "experiment_mode"] == "dropdown"
    assert frame.loc["CTD", "linked_experiment"] == "Baseline"
    assert frame.loc["Custom", "experiment_mode"] == "custom"
    assert frame.loc["Custom", "experiment_id"] == "X-9"
    assert "has no Experiment ID" in frame.loc["Missing", "warning"]


def test_project_summary():
    summary = project_summary(_make_store())
    assert summary == {"project_id": "P-1", "completion": 17, "experiments": 2, "datasets": 3}
