"""Sequential execution of planned build cells."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Sequence
import logging

from .command_runner import CommandRunner
from .config_loader import MatrixConfig
from .errors import MissingBuildDescription
from .matrix import BuildCell, plan_matrix, provision_directories
from .report import RunReporter


logger = logging.getLogger(__name__)

BUILD_DESCRIPTION = "CMakeLists.txt"
EXIT_NOT_STARTED = 127


@dataclass(frozen=True, slots=True)
class CellOutcome:
    cell: BuildCell
    returncode: int
    output: bytes = b""
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0 and self.error is None


@dataclass(slots=True)
class MatrixResult:
    outcomes: List[CellOutcome] = field(default_factory=list)

    @property
    def failures(self) -> List[CellOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.succeeded]

    @property
    def succeeded(self) -> bool:
        return not self.failures


class MatrixExecutor:
    def __init__(
        self,
        *,
        runner: CommandRunner,
        reporter: RunReporter | None = None,
        build_description: str = BUILD_DESCRIPTION,
    ) -> None:
        self._runner = runner
        self._reporter = reporter
        self._build_description = build_description

    def check_build_description(self, project_root: Path) -> Path:
        path = project_root / self._build_description
        if not path.is_file():
            raise MissingBuildDescription(path)
        return path

    def execute_cell(self, cell: BuildCell) -> CellOutcome:
        """Run one cell; failures are returned, never raised."""

        try:
            result = self._runner.run(
                cell.command,
                cwd=cell.directory,
                env=cell.environment,
                note=cell.label,
            )
        except OSError as exc:
            logger.debug("Unable to start %s: %s", cell.command[0], exc)
            return CellOutcome(cell=cell, returncode=EXIT_NOT_STARTED, error=f"{cell.command[0]}: {exc.strerror or exc}")
        except ValueError as exc:
            # subprocess rejects arguments or environment values holding NUL bytes
            logger.debug("Unable to start %s: %s", cell.command[0], exc)
            return CellOutcome(cell=cell, returncode=EXIT_NOT_STARTED, error=f"{cell.command[0]}: {exc}")
        return CellOutcome(cell=cell, returncode=result.returncode, output=result.output)

    def run(
        self,
        config: MatrixConfig,
        cells: Sequence[BuildCell] | None = None,
        *,
        provision: bool = True,
    ) -> MatrixResult:
        """Configure every cell in order, continuing past failed cells."""

        self.check_build_description(config.project_root)
        if cells is None:
            cells = plan_matrix(config)
        if provision:
            provision_directories(cells)
        if self._reporter is not None:
            self._reporter.start()

        result = MatrixResult()
        for cell in cells:
            if self._reporter is not None:
                self._reporter.cell_started(cell)
            outcome = self.execute_cell(cell)
            if not outcome.succeeded:
                logger.info("%s failed with exit code %s", cell.label, outcome.returncode)
            result.outcomes.append(outcome)
            if self._reporter is not None:
                self._reporter.cell_finished(outcome)

        if self._reporter is not None:
            self._reporter.finish(result)
        return result


__all__ = ["BUILD_DESCRIPTION", "CellOutcome", "MatrixExecutor", "MatrixResult"]
