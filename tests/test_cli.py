import json

from oaemeta.cli import main
from oaemeta.io.bundle import load_bundle


def _write(path, payload):
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


def _files(tmp_path, incoming=None):
    current = _write(
        tmp_path / "current.json",
        {
            "project": {"project_id": "P-1"},
            "experiments": [{"experiment_id": "EXP-001", "name": "Baseline"}],
            "datasets": [{"name": "CTD", "experiment_id": "EXP-001"}],
        },
    )
    incoming = _write(
        tmp_path / "incoming.json",
        incoming
        or {
            "experiments": [{"experiment_id": "EXP-002", "name": "Dosing"}],
            "datasets": [
                {"name": "CTD", "description": "replaced"},
                {"name": "ADCP", "experiment_id": "EXP-001"},
            ],
        },
    )
    return current, incoming


def test_preview_lists_items(tmp_path, capsys):
    current, incoming = _files(tmp_path)
    assert main(["preview", current, incoming]) == 0
    out = capsys.readouterr().out
    assert "experiment-0" in out
    assert 'Replace existing dataset: "CTD"' in out
    assert "link=use-file -> Baseline" in out


def test_merge_applies_choices_and_writes_bundle(tmp_path, capsys):
    current, incoming = _files(tmp_path)
    out_path = tmp_path / "merged.json"

    status = main(
        [
            "merge",
            current,
            incoming,
            "-o",
            str(out_path),
            "--link",
            "dataset-0=importing-experiment-0",
        ]
    )

    assert status == 0
    merged = load_bundle(out_path)
    assert [record.form_data.get("experiment_id") for record in merged.experiments] == [
        "EXP-001",
        "EXP-002",
    ]
    datasets = {record.name: record.form_data for record in merged.datasets}
    assert datasets["CTD"] == {"name": "CTD", "description": "replaced", "experiment_id": "EXP-002"}
    assert datasets["ADCP"]["experiment_id"] == "EXP-001"
    assert "Wrote" in capsys.readouterr().out


def test_merge_with_deselect(tmp_path):
    current, incoming = _files(tmp_path)
    out_path = tmp_path / "merged.json"
    assert main(["merge", current, incoming, "-o", str(out_path), "--deselect", "dataset-1"]) == 0
    assert [record.name for record in load_bundle(out_path).datasets] == ["CTD"]


def test_blocked_merge_exits_2(tmp_path, capsys):
    current, incoming = _files(
        tmp_path,
        {"experiments": [{"experiment_id": "EXP-9"}, {"experiment_id": "EXP-9"}]},
    )
    out_path = tmp_path / "merged.json"
    assert main(["merge", current, incoming, "-o", str(out_path)]) == 2
    assert not out_path.exists()
    assert "EXP-9" in capsys.readouterr().err


def test_parse_failure_exits_1(tmp_path, capsys):
    current, _ = _files(tmp_path)
    broken = tmp_path / "broken.json"
    broken.write_text("{oops", encoding="utf-8")
    assert main(["preview", current, str(broken)]) == 1
    assert "broken.json" in capsys.readouterr().err


def test_overview(tmp_path, capsys):
    current, _ = _files(tmp_path)
    assert main(["overview", current]) == 0
    out = capsys.readouterr().out
    assert "Project P-1" in out
    assert "Baseline" in out
    assert "EXP-001" in out
