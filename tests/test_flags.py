import pytest

from oaemeta.app import flags
from oaemeta.app.config import ImportSettings


@pytest.fixture(autouse=True)
def _reset_flags():
    flags.reload()
    yield
    flags.reload()


def test_defaults_when_unset(monkeypatch):
    monkeypatch.delenv(flags.ENV_VAR, raising=False)
    assert flags.all_enabled() == {}
    assert not flags.is_enabled("match_experiments_by_name")
    assert flags.is_enabled("match_experiments_by_name", default=True)
    assert ImportSettings.from_flags() == ImportSettings()


def test_token_forms(monkeypatch):
    monkeypatch.setenv(
        flags.ENV_VAR, "Match-Experiments-By-Name, !strict_dataset_names, odd=maybe, extra=on"
    )
    assert flags.is_enabled("match_experiments_by_name")
    assert flags.is_enabled("strict_dataset_names", default=True) is False
    assert not flags.is_enabled("odd")
    assert flags.unknown_flags() == ["extra"]
    assert ImportSettings.from_flags() == ImportSettings(match_experiments_by_name=True)


def test_reload_rereads_environment(monkeypatch):
    monkeypatch.setenv(flags.ENV_VAR, "strict_dataset_names")
    assert flags.is_enabled("strict_dataset_names")
    monkeypatch.setenv(flags.ENV_VAR, "strict_dataset_names=off")
    assert flags.is_enabled("strict_dataset_names")
    flags.reload()
    assert not flags.is_enabled("strict_dataset_names")


def test_empty_flag_name_rejected():
    with pytest.raises(ValueError):
        flags.is_enabled("")


def test_preview_reads_settings_from_environment(monkeypatch):
    import json

    from oaemeta.core.store import EntityStore
    from oaemeta.io.bundle import parse_bundle
    from oaemeta.services.import_service import preview_import

    monkeypatch.setenv(flags.ENV_VAR, "strict_dataset_names")
    bundle = parse_bundle(json.dumps({"datasets": [{"name": "D"}, {"name": "D"}]}))
    assert preview_import(EntityStore(), bundle).has_blocking_error


def test_dash_prefix_and_explicit_values(monkeypatch):
    monkeypatch.setenv(flags.ENV_VAR, "-match_experiments_by_name,strict-dataset-names=YES,,")
    assert flags.all_enabled() == {"match_experiments_by_name": False, "strict_dataset_names": True}
    assert flags.unknown_flags() == []
