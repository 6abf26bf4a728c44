"""Smoke tests for the familycal command-line entry point."""

import logging
from types import SimpleNamespace
from unittest.mock import patch

import pytest

import familycal
from familycal.__main__ import _create_parser, main
from familycal.config_loader import Config
from familycal.exceptions import ConfigurationError

pytestmark = pytest.mark.smoke


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """Run from an empty directory so no stray familycal.yaml or .env is read."""
    monkeypatch.chdir(tmp_path)
    root = logging.getLogger()
    level = root.level
    yield tmp_path
    root.setLevel(level)


def test_parser_accepts_port_config_and_debug():
    args = _create_parser().parse_args(["--port", "3000", "--config", "x.yaml", "--debug"])

    assert args.port == 3000
    assert args.config == "x.yaml"
    assert args.debug is True


def test_run_server_layers_file_and_cli_overrides(isolated_cwd):
    (isolated_cwd / "custom.yaml").write_text("lead_time_minutes: 15\nserver_port: 9000\n")

    with patch("familycal.api.server.start_server") as start:
        familycal.run_server(SimpleNamespace(port=3000, config="custom.yaml", debug=False))

    config = start.call_args.args[0]
    assert isinstance(config, Config)
    assert config.lead_time_minutes == 15
    assert config.server_port == 3000


def test_run_server_applies_environment(monkeypatch):
    monkeypatch.setenv("FAMILYCAL_MAX_OCCURRENCES", "42")

    with patch("familycal.api.server.start_server") as start:
        familycal.run_server(SimpleNamespace(port=None, config=None, debug=False))

    assert start.call_args.args[0].max_occurrences == 42


def test_run_server_reports_unusable_config(isolated_cwd):
    (isolated_cwd / "broken.yaml").write_text("- not\n- a mapping\n")

    with patch("familycal.api.server.start_server") as start:
        with pytest.raises(ConfigurationError, match="broken.yaml"):
            familycal.run_server(SimpleNamespace(port=None, config="broken.yaml", debug=False))

    start.assert_not_called()


def test_main_exits_cleanly(monkeypatch):
    monkeypatch.setattr("sys.argv", ["familycal", "--port", "8123"])

    with patch("familycal.api.server.start_server"):
        with pytest.raises(SystemExit) as excinfo:
            main()

    assert excinfo.value.code == 0


def test_main_exits_with_usage_error_on_bad_config(monkeypatch, isolated_cwd, capsys):
    (isolated_cwd / "broken.yaml").write_text("key: [unclosed\n")
    monkeypatch.setattr("sys.argv", ["familycal", "--config", "broken.yaml"])

    with pytest.raises(SystemExit) as excinfo:
        main()

    assert excinfo.value.code == 2
    assert "cannot load config" in capsys.readouterr().err
