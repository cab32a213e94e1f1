"""Planning of the toolchain x build type matrix."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Sequence
import logging

from .config_loader import MatrixConfig
from .errors import ConfigParseError, DirectoryCreateError
from .toolchains import BUILD_TYPES, BUILTIN_TOOLCHAINS, ToolchainDefinition


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BuildCell:
    """One fully resolved (toolchain, build type) configuration job."""

    toolchain: str
    build_type: str
    directory: Path
    command: tuple[str, ...]
    environment: Mapping[str, str] = field(default_factory=dict)

    @property
    def label(self) -> str:
        return f"{self.toolchain}-{self.build_type}"

    @property
    def title(self) -> str:
        return f"{self.toolchain} ({self.build_type})"


def cell_directory_name(toolchain: str, build_type: str) -> str:
    return f"{toolchain}-{build_type}"


def _resolve_build_root(config: MatrixConfig) -> Path:
    project_root = config.project_root.resolve()
    build_root = (project_root / config.build_root).resolve()
    if build_root == project_root or project_root not in build_root.parents:
        raise ConfigParseError("build_root", f"'{config.build_root}' resolves outside of '{project_root}'")
    return build_root


def plan_cell(
    config: MatrixConfig,
    definition: ToolchainDefinition,
    build_type: str,
    *,
    project_root: Path,
    build_root: Path,
) -> BuildCell:
    settings = config.settings_for(definition.name)
    executable = settings.executable or definition.default_executable

    command: List[str] = [executable, str(project_root)]
    command.extend(definition.compiler_flags)
    command.extend(config.global_options)
    command.append(config.build_type_flag.format(build_type=build_type))
    command.extend(settings.options)

    environment: Dict[str, str] = dict(definition.environment)
    environment.update(settings.environment)

    return BuildCell(
        toolchain=definition.name,
        build_type=build_type,
        directory=build_root / cell_directory_name(definition.name, build_type),
        command=tuple(command),
        environment=environment,
    )


def plan_matrix(
    config: MatrixConfig,
    *,
    toolchains: Mapping[str, ToolchainDefinition] = BUILTIN_TOOLCHAINS,
    build_types: Sequence[str] = BUILD_TYPES,
) -> List[BuildCell]:
    """Return one cell per known toolchain and build type, toolchain-major."""

    project_root = config.project_root.resolve()
    build_root = _resolve_build_root(config)

    cells: List[BuildCell] = []
    for definition in toolchains.values():
        for build_type in build_types:
            cells.append(
                plan_cell(
                    config,
                    definition,
                    build_type,
                    project_root=project_root,
                    build_root=build_root,
                )
            )
    return cells


def provision_directories(cells: Iterable[BuildCell]) -> List[Path]:
    """Create every cell directory, leaving existing ones untouched."""

    created: List[Path] = []
    for cell in cells:
        try:
            cell.directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise DirectoryCreateError(cell.directory, exc.strerror or str(exc)) from exc
        logger.debug("Prepared directory %s", cell.directory)
        created.append(cell.directory)
    return created


__all__ = ["BuildCell", "cell_directory_name", "plan_cell", "plan_matrix", "provision_directories"]
