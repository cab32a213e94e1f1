"""Run log and terminal progress output."""
from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, TextIO
import sys

from .command_runner import format_command
from .errors import LogWriteError

if TYPE_CHECKING:
    from .executor import CellOutcome, MatrixResult
    from .matrix import BuildCell


class RunReporter:
    """Writes one delimited block per cell to the run log.

    The log is truncated by :meth:`start` and only appended to afterwards, so
    it always reflects the most recent run. Pass/fail status lives in the log;
    ``verbose`` additionally echoes failed cells to the terminal.
    """

    def __init__(self, log_path: Path, *, stream: TextIO | None = None, verbose: bool = False) -> None:
        self.log_path = Path(log_path).absolute()
        self.verbose = verbose
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        return self._stream or sys.stdout

    def _print(self, message: str) -> None:
        print(message, file=self.stream)

    def start(self) -> None:
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            self.log_path.write_bytes(b"")
        except OSError as exc:
            raise LogWriteError(self.log_path, exc.strerror or str(exc)) from exc

    def cell_started(self, cell: "BuildCell") -> None:
        self._print(f"configuring {cell.toolchain} ({cell.build_type})")

    def cell_finished(self, outcome: "CellOutcome") -> None:
        cell = outcome.cell
        try:
            with self.log_path.open("ab") as handle:
                handle.write(f"==== {cell.title} ====\n".encode("utf-8"))
                handle.write(f"$ {format_command(cell.command)}\n".encode("utf-8", errors="replace"))
                handle.write(outcome.output)
                if outcome.output and not outcome.output.endswith(b"\n"):
                    handle.write(b"\n")
                if outcome.error:
                    handle.write(f"error: {outcome.error}\n".encode("utf-8", errors="replace"))
                handle.write(f"==== {cell.title}: exit {outcome.returncode} ====\n\n".encode("utf-8"))
        except OSError as exc:
            raise LogWriteError(self.log_path, exc.strerror or str(exc)) from exc

    def finish(self, result: "MatrixResult") -> None:
        if self.verbose:
            for outcome in result.failures:
                self._print(f"failed: {outcome.cell.title} exit {outcome.returncode}")
        self._print(f"log written to {self.log_path}")


__all__ = ["RunReporter"]
