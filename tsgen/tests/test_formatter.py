import subprocess
from pathlib import Path
from unittest import mock

from tsgen.codegen.formatter import detect_formatter, format_files, run_command


class TestDetectFormatter:
    def test_none(self, tmp_path):
        assert detect_formatter(tmp_path) is None

    def test_prettier_in_package_json(self, tmp_path):
        (tmp_path / "package.json").write_text('{"devDependencies": {"prettier": "^3.0.0"}}')
        assert detect_formatter(tmp_path) == "prettier"

    def test_prettier_rc(self, tmp_path):
        (tmp_path / ".prettierrc.json").write_text("{}")
        assert detect_formatter(tmp_path) == "prettier"

    def test_biome(self, tmp_path):
        (tmp_path / "package.json").write_text('{"name": "web"}')
        (tmp_path / "biome.json").write_text("{}")
        assert detect_formatter(tmp_path) == "biome"

    def test_prettier_wins_over_biome(self, tmp_path):
        (tmp_path / ".prettierrc").write_text("{}")
        (tmp_path / "biome.jsonc").write_text("{}")
        assert detect_formatter(tmp_path) == "prettier"


class TestFormatFiles:
    def _completed(self, returncode=0, stderr=""):
        return subprocess.CompletedProcess(args=[], returncode=returncode, stdout="", stderr=stderr)

    def test_nothing_to_format(self):
        with mock.patch("tsgen.codegen.formatter.run_command") as run:
            assert format_files([], "prettier") is True
        run.assert_not_called()

    def test_prettier_command(self, tmp_path):
        with mock.patch("tsgen.codegen.formatter.run_command", return_value=self._completed()) as run:
            assert format_files([Path("a.ts"), Path("b.ts")], "prettier", cwd=tmp_path) is True
        run.assert_called_once_with(["npx", "prettier", "--write", "a.ts", "b.ts"], tmp_path)

    def test_biome_command(self, tmp_path):
        with mock.patch("tsgen.codegen.formatter.run_command", return_value=self._completed()) as run:
            format_files([Path("a.ts")], "biome", cwd=tmp_path)
        run.assert_called_once_with(["npx", "biome", "format", "--write", "a.ts"], tmp_path)

    def test_failure_is_logged(self, caplog):
        result = self._completed(returncode=2, stderr="boom\n")
        with mock.patch("tsgen.codegen.formatter.run_command", return_value=result):
            assert format_files([Path("a.ts")], "prettier") is False
        assert "prettier exited with code 2: boom" in caplog.text

    def test_missing_executable(self, caplog):
        with mock.patch("tsgen.codegen.formatter.run_command", side_effect=FileNotFoundError("npx")):
            assert format_files([Path("a.ts")], "prettier") is False
        assert "Could not run prettier" in caplog.text

    def test_unknown_formatter(self, caplog):
        assert format_files([Path("a.ts")], "dprint") is False
        assert "Unknown formatter 'dprint'" in caplog.text


class TestRunCommand:
    def test_runs_without_check(self, tmp_path):
        with mock.patch("tsgen.codegen.formatter.subprocess.run") as run:
            run_command(["npx", "prettier"], tmp_path)
        run.assert_called_once_with(
            ["npx", "prettier"], cwd=tmp_path, check=False, capture_output=True, text=True,
        )

    def test_resolves_shim_on_windows(self, tmp_path):
        with mock.patch("tsgen.codegen.formatter.sys.platform", "win32"), \
                mock.patch("tsgen.codegen.formatter.shutil.which", return_value="C:\\node\\npx.cmd"), \
                mock.patch("tsgen.codegen.formatter.subprocess.run") as run:
            run_command(["npx", "prettier"], tmp_path)
        assert run.call_args.args[0] == ["C:\\node\\npx.cmd", "prettier"]
