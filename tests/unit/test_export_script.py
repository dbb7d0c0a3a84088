"""Tests for the QR export script."""

import importlib.util
from pathlib import Path

import pytest

from saywith.config.settings import get_settings

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "export_qr_codes.py"


@pytest.fixture
def export_script():
    spec = importlib.util.spec_from_file_location("export_qr_codes", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def mock_store_env(monkeypatch):
    monkeypatch.setenv("SNOWFLAKE_MOCK_MODE", "true")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_mock_mode_is_rejected(export_script, mock_store_env, tmp_path, capsys):
    """
    Given: SNOWFLAKE_MOCK_MODE is set
    When: exporting a message
    Then: nothing is written and the run fails with a clear error
    """
    assert export_script.export_qr_codes("abc", tmp_path) is False

    assert list(tmp_path.iterdir()) == []
    assert "SNOWFLAKE_MOCK_MODE" in capsys.readouterr().out
