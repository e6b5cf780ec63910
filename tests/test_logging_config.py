import logging

import pytest

from oaemeta.core.logging_config import get_log_directory, setup_logging


@pytest.fixture
def _restore_logging():
    yield
    for name in ("oaemeta", "oaemeta.core.linking"):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.setLevel(logging.NOTSET)
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_oaemeta_owned", False):
            root.removeHandler(handler)
            handler.close()


def test_log_directory_override(monkeypatch, tmp_path):
    monkeypatch.setenv("OAE_LOG_DIR", str(tmp_path / "logs"))
    assert get_log_directory() == tmp_path / "logs"


def test_setup_logging_is_idempotent(monkeypatch, tmp_path, _restore_logging):
    monkeypatch.setenv("OAE_LOG_DIR", str(tmp_path))

    assert setup_logging() == tmp_path
    setup_logging()

    root_handlers = [h for h in logging.getLogger().handlers if getattr(h, "_oaemeta_owned", False)]
    assert len(root_handlers) == 1
    assert len(logging.getLogger("oaemeta").handlers) == 2

    logging.getLogger("oaemeta.services.import_service").info("IMPORT: hello")
    for handler in logging.getLogger("oaemeta").handlers:
        handler.flush()
    assert "IMPORT: hello" in (tmp_path / "oaemeta.log").read_text(encoding="utf-8")
