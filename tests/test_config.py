import importlib

import pytest

import facecrop.config as config_module
from facecrop.config import Config, _parse_aspect


@pytest.fixture
def reload_config(monkeypatch):
    """Reload facecrop.config under the patched environment; reload it clean afterwards."""
    yield lambda: importlib.reload(config_module)
    monkeypatch.undo()
    importlib.reload(config_module)


def test_parse_aspect() -> None:
    assert _parse_aspect("9:16") == (9, 16)
    assert _parse_aspect("4:5") == (4, 5)


def test_defaults_are_valid(monkeypatch) -> None:
    monkeypatch.setattr(Config, "INTERVAL", 0)
    monkeypatch.setattr(Config, "ASPECT", "9:16")
    monkeypatch.setattr(Config, "DNN_CONFIDENCE", 0.5)

    assert Config.validate() == []
    assert Config.aspect() == (9, 16)


def test_validate_reports_problems(monkeypatch) -> None:
    monkeypatch.setattr(Config, "INTERVAL", -1)
    monkeypatch.setattr(Config, "ASPECT", "wide")
    monkeypatch.setattr(Config, "DNN_CONFIDENCE", 1.5)

    problems = Config.validate()

    assert len(problems) == 3
    assert any("FACECROP_ASPECT" in p for p in problems)


def test_frame_delimiter_is_png_signature() -> None:
    assert Config.FRAME_DELIMITER == b"\x89PNG\r\n\x1a\n"


def test_environment_overrides_defaults(monkeypatch, tmp_path, reload_config) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("FACECROP_INTERVAL", "6")
    monkeypatch.setenv("FACECROP_LERP", "false")
    monkeypatch.setenv("FACECROP_HOLD_LAST", "0")
    monkeypatch.setenv("FACECROP_CLAMP_TO_FRAME", "yes")
    monkeypatch.setenv("FACECROP_ASPECT", "4:5")
    monkeypatch.setenv("FACECROP_DNN_CONFIDENCE", "0.75")

    module = reload_config()

    assert module.config.INTERVAL == 6
    assert module.config.LERP is False
    assert module.config.HOLD_LAST is False
    assert module.config.CLAMP_TO_FRAME is True
    assert module.config.aspect() == (4, 5)
    assert module.config.DNN_CONFIDENCE == 0.75
    assert module.Config.validate() == []


def test_dotenv_file_in_working_directory(monkeypatch, tmp_path, reload_config) -> None:
    (tmp_path / ".env").write_text("FACECROP_INTERVAL=9\nFACECROP_CODEC=libx264\n")
    monkeypatch.chdir(tmp_path)
    # load_dotenv writes into os.environ; register both keys so they are removed afterwards
    for name in ("FACECROP_INTERVAL", "FACECROP_CODEC"):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)

    module = reload_config()

    assert module.config.INTERVAL == 9
    assert module.config.CODEC == "libx264"
