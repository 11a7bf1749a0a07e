"""
Tests for main.py - the CLI loop.

Verifies:
- A bounded run over the toy world exits 0 after the requested ticks
- A config file is loaded and run against a simulated network
- Config errors exit 1 with the violations printed
"""

from pathlib import Path
from unittest.mock import patch

from replenisher.main import main

EXAMPLE = Path(__file__).resolve().parents[2] / "factory.example.yaml"


class TestMain:
    """Test the CLI entrypoint."""

    def test_toy_world_run(self, capsys, monkeypatch):
        monkeypatch.delenv("REPLENISHER_CONFIG", raising=False)

        with patch("replenisher.main.time.sleep") as mock_sleep:
            code = main(["--ticks", "3", "--interval", "0", "--seed", "4"])

        assert code == 0
        assert "ran 3 ticks" in capsys.readouterr().out
        assert mock_sleep.call_count == 2

    def test_config_file_run(self, capsys):
        code = main(["--config", str(EXAMPLE), "--ticks", "1", "--interval", "0"])

        assert code == 0
        assert "ran 1 ticks" in capsys.readouterr().out

    def test_invalid_config_exits_1(self, tmp_path, capsys):
        path = tmp_path / "bad.yaml"
        path.write_text(
            "source_container: store\n"
            "distribution:\n"
            "  machine_types:\n"
            "    brusher: {supported_materials: [ghost]}\n"
        )

        code = main(["--config", str(path), "--ticks", "1"])

        out = capsys.readouterr().out
        assert code == 1
        assert "CONFIG_INVALID" in out
        assert "ghost" in out

    def test_negative_interval(self, capsys):
        assert main(["--ticks", "1", "--interval", "-1"]) == 1
