from __future__ import annotations

from pathlib import Path
from typing import Mapping, Sequence
import io
import os
import sys
import tempfile
import textwrap
import unittest

from buildmatrix.command_runner import CommandResult, RecordingCommandRunner, SubprocessCommandRunner
from buildmatrix.config_loader import MatrixConfig
from buildmatrix.errors import LogWriteError, MissingBuildDescription
from buildmatrix.executor import EXIT_NOT_STARTED, MatrixExecutor
from buildmatrix.matrix import plan_matrix
from buildmatrix.report import RunReporter


FAKE_TOOL = textwrap.dedent(
    """
    import os
    import sys

    print("cwd=" + os.getcwd())
    print("args=" + " ".join(sys.argv[1:]))
    print("cc=" + os.environ.get("CC", ""))
    sys.stderr.write("warning from tool\\n")
    sys.exit(3 if "-DFAIL=1" in sys.argv else 0)
    """
)


class FailingRecordingRunner(RecordingCommandRunner):
    def __init__(self, failing: set[str]) -> None:
        super().__init__()
        self.failing = failing

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        note: str | None = None,
    ) -> CommandResult:
        super().run(command, cwd=cwd, env=env, note=note)
        if note in self.failing:
            return CommandResult(command=tuple(command), returncode=1, output=b"CMake Error: simulated\n")
        return CommandResult(command=tuple(command), returncode=0, output=b"-- Configuring done\n")


class ExecutorTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name).resolve()
        (self.root / "CMakeLists.txt").write_text("project(demo C CXX)\n")
        self.stream = io.StringIO()

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _config(self, data: dict | None = None) -> MatrixConfig:
        return MatrixConfig.from_mapping(data or {}, base_dir=self.root)

    def _reporter(self, config: MatrixConfig) -> RunReporter:
        return RunReporter(config.log_path, stream=self.stream)


class MatrixExecutorTests(ExecutorTestCase):
    def test_runs_every_cell_in_order_with_explicit_cwd(self) -> None:
        config = self._config()
        runner = RecordingCommandRunner()
        cwd_before = os.getcwd()
        result = MatrixExecutor(runner=runner, reporter=self._reporter(config)).run(config)

        cells = plan_matrix(config)
        self.assertTrue(result.succeeded)
        self.assertEqual([record.note for record in runner.iter_commands()], [cell.label for cell in cells])
        self.assertEqual([record.cwd for record in runner.iter_commands()], [str(cell.directory) for cell in cells])
        self.assertEqual([record.command for record in runner.iter_commands()], [list(cell.command) for cell in cells])
        self.assertEqual(os.getcwd(), cwd_before)

    def test_partial_failure_does_not_stop_siblings(self) -> None:
        config = self._config()
        runner = FailingRecordingRunner({"clang-debug"})
        result = MatrixExecutor(runner=runner, reporter=self._reporter(config)).run(config)

        self.assertEqual(len(result.outcomes), 6)
        self.assertEqual([outcome.cell.label for outcome in result.failures], ["clang-debug"])
        self.assertEqual(sum(1 for outcome in result.outcomes if outcome.succeeded), 5)
        self.assertFalse(result.succeeded)

        log = config.log_path.read_text()
        for cell in plan_matrix(config):
            self.assertIn(f"==== {cell.toolchain} ({cell.build_type}) ====", log)
        self.assertIn("CMake Error: simulated", log)
        self.assertIn("==== clang (debug): exit 1 ====", log)

    def test_missing_build_description_aborts_before_any_work(self) -> None:
        (self.root / "CMakeLists.txt").unlink()
        config = self._config()
        runner = RecordingCommandRunner()
        with self.assertRaises(MissingBuildDescription) as ctx:
            MatrixExecutor(runner=runner, reporter=self._reporter(config)).run(config)
        self.assertEqual(ctx.exception.exit_code, 2)
        self.assertEqual(runner.commands, [])
        self.assertFalse((self.root / "build").exists())
        self.assertEqual(self.stream.getvalue(), "")

    def test_missing_executable_is_recorded_as_failure(self) -> None:
        config = self._config({"toolchains": {"cross-mingw64": {"executable": str(self.root / "no-such-cmake")}}})
        result = MatrixExecutor(runner=SubprocessCommandRunner()).run(
            config,
            [cell for cell in plan_matrix(config) if cell.toolchain == "cross-mingw64"],
        )
        self.assertEqual([outcome.returncode for outcome in result.outcomes], [EXIT_NOT_STARTED] * 2)
        self.assertTrue(all(outcome.error for outcome in result.outcomes))

    def test_ignores_foreign_directories_under_build_root(self) -> None:
        (self.root / "build" / "old-layout").mkdir(parents=True)
        config = self._config()
        runner = RecordingCommandRunner()
        MatrixExecutor(runner=runner).run(config)
        self.assertNotIn(str(self.root / "build" / "old-layout"), [record.cwd for record in runner.iter_commands()])

    def test_unwritable_log_raises_log_write_error(self) -> None:
        config = self._config()
        config.log_path.mkdir(parents=True)
        with self.assertRaises(LogWriteError) as ctx:
            MatrixExecutor(runner=RecordingCommandRunner(), reporter=self._reporter(config)).run(config)
        self.assertEqual(ctx.exception.exit_code, 5)
        self.assertEqual(ctx.exception.path, config.log_path)


class SubprocessExecutionTests(ExecutorTestCase):
    def setUp(self) -> None:
        super().setUp()
        (self.root / "__main__.py").write_text(FAKE_TOOL)

    def _tool_config(self, extra: dict | None = None) -> MatrixConfig:
        toolchains = {name: {"executable": sys.executable} for name in ("gcc", "clang", "cross-mingw64")}
        data = {"options": ["-DX=1"], "toolchains": toolchains}
        for name, settings in (extra or {}).items():
            toolchains[name].update(settings)
        return self._config(data)

    def test_runs_real_commands_in_cell_directories(self) -> None:
        config = self._tool_config({"gcc": {"options": ["-DY=2"]}})
        result = MatrixExecutor(runner=SubprocessCommandRunner(), reporter=self._reporter(config)).run(config)

        self.assertTrue(result.succeeded)
        first = result.outcomes[0]
        output = first.output.decode()
        self.assertIn(f"cwd={first.cell.directory}", output)
        self.assertIn("-DX=1 -DCMAKE_BUILD_TYPE=release -DY=2", output)
        self.assertIn("cc=gcc", output)
        self.assertIn("warning from tool", output)
        for cell in plan_matrix(config):
            self.assertTrue(cell.directory.is_dir())

    def test_failing_toolchain_leaves_other_cells_successful(self) -> None:
        config = self._tool_config({"clang": {"options": ["-DFAIL=1"]}})
        result = MatrixExecutor(runner=SubprocessCommandRunner(), reporter=self._reporter(config)).run(config)

        self.assertEqual(len(result.outcomes), 6)
        self.assertEqual([outcome.cell.label for outcome in result.failures], ["clang-release", "clang-debug"])
        self.assertEqual({outcome.returncode for outcome in result.failures}, {3})
        self.assertEqual(config.log_path.read_text().count("==== gcc (release) ===="), 1)
        self.assertNotIn("failed:", self.stream.getvalue())
        self.assertIn("==== clang (release): exit 3 ====", config.log_path.read_text())

    def test_nul_byte_in_option_fails_only_that_toolchain(self) -> None:
        config = self._tool_config({"gcc": {"options": ["-DA=\x00"]}})
        result = MatrixExecutor(runner=SubprocessCommandRunner(), reporter=self._reporter(config)).run(config)

        self.assertEqual(len(result.outcomes), 6)
        self.assertEqual([outcome.cell.label for outcome in result.failures], ["gcc-release", "gcc-debug"])
        self.assertEqual({outcome.returncode for outcome in result.failures}, {EXIT_NOT_STARTED})
        self.assertIn("embedded null byte", result.failures[0].error)
        self.assertEqual(sum(1 for outcome in result.outcomes if outcome.succeeded), 4)
        self.assertEqual(config.log_path.read_text().count("==== "), 12)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
