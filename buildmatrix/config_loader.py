"""Configuration loading and validation logic."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import Any, Callable, Dict, List, Mapping, Sequence
import json
import logging
import tomllib

import yaml

from .errors import ConfigNotFound, ConfigParseError
from .toolchains import BUILD_TYPES, BUILTIN_TOOLCHAINS


logger = logging.getLogger(__name__)

CONFIG_STEM = "buildmatrix"
DEFAULT_BUILD_ROOT = "build"
DEFAULT_BUILD_TYPE_FLAG = "-DCMAKE_BUILD_TYPE={build_type}"
DEFAULT_LOG_NAME = "buildmatrix.log"

ConfigLoader = Callable[[Any], Any]


FILE_LOADERS: Dict[str, ConfigLoader] = {
    ".toml": lambda stream: tomllib.load(stream),
    ".json": lambda stream: json.load(stream),
    ".yaml": lambda stream: yaml.safe_load(stream),
    ".yml": lambda stream: yaml.safe_load(stream),
}
"""Mapping of file suffixes to loader callables."""


def load_config_file(path: Path) -> Mapping[str, Any]:
    """Load and decode a configuration mapping from ``path``."""

    suffix = path.suffix.lower()
    loader = FILE_LOADERS.get(suffix)
    if loader is None:
        supported = ", ".join(sorted(FILE_LOADERS))
        raise ConfigParseError(
            str(path.name), f"unsupported configuration file extension {suffix}. Supported: {supported}"
        )

    mode = "rb" if suffix == ".toml" else "r"
    kwargs: Dict[str, Any] = {}
    if mode == "r":
        kwargs["encoding"] = "utf-8"

    try:
        with path.open(mode, **kwargs) as handle:
            data = loader(handle)
    except OSError as exc:
        raise ConfigNotFound(f"Unable to read configuration file '{path}': {exc}") from exc
    except (tomllib.TOMLDecodeError, json.JSONDecodeError, yaml.YAMLError, UnicodeDecodeError) as exc:
        raise ConfigParseError(path.name, f"invalid document: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ConfigParseError(path.name, "configuration must contain a mapping at the root")
    return data


def find_config_file(directory: Path) -> Path:
    """Return the single ``buildmatrix.*`` file inside ``directory``."""

    if not directory.is_dir():
        raise ConfigNotFound(f"Configuration directory not found: {directory}")

    try:
        candidates = sorted(
            directory / f"{CONFIG_STEM}{suffix}"
            for suffix in FILE_LOADERS
            if (directory / f"{CONFIG_STEM}{suffix}").is_file()
        )
    except OSError as exc:
        raise ConfigNotFound(f"Unable to read configuration directory '{directory}': {exc}") from exc

    if not candidates:
        expected = ", ".join(f"{CONFIG_STEM}{suffix}" for suffix in FILE_LOADERS)
        raise ConfigNotFound(f"No configuration file found in '{directory}' (expected one of: {expected})")
    if len(candidates) > 1:
        names = " and ".join(f"'{path.name}'" for path in candidates)
        raise ConfigParseError(
            CONFIG_STEM,
            f"multiple configuration files found: {names}. Only one format is allowed.",
        )
    return candidates[0]


def merge_mappings(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> Dict[str, Any]:
    """Deep merge two mapping objects."""

    result: Dict[str, Any] = dict(base)
    for key, value in overlay.items():
        existing = result.get(key)
        if isinstance(existing, Mapping) and isinstance(value, Mapping):
            result[key] = merge_mappings(existing, value)
        else:
            result[key] = value
    return result


def normalize_option_list(value: Any, *, field_name: str) -> tuple[str, ...]:
    """Coerce ``value`` into a tuple of option tokens, preserving order."""

    if value is None:
        return ()
    if isinstance(value, str):
        text = value.strip()
        return (text,) if text else ()
    if isinstance(value, Sequence):
        result: List[str] = []
        for item in value:
            if not isinstance(item, str):
                raise ConfigParseError(field_name, "entries must be strings")
            text = item.strip()
            if text:
                result.append(text)
        return tuple(result)
    raise ConfigParseError(field_name, "must be a string or a list of strings")


def _optional_string(value: Any, *, field_name: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigParseError(field_name, "must be a string")
    text = value.strip()
    return text or None


def _normalize_build_root(value: Any) -> PurePath:
    if value is None:
        return PurePath(DEFAULT_BUILD_ROOT)
    if not isinstance(value, str) or not value.strip():
        raise ConfigParseError("build_root", "must be a non-empty string")
    path = PurePath(value.strip())
    if path.is_absolute() or path.anchor:
        raise ConfigParseError("build_root", f"must be relative to the project root, got '{value}'")

    depth = 0
    for part in path.parts:
        if part == "..":
            depth -= 1
        elif part != ".":
            depth += 1
        if depth < 0:
            raise ConfigParseError("build_root", f"must stay inside the project root, got '{value}'")
    if depth == 0:
        raise ConfigParseError("build_root", "must name a directory below the project root")
    return path


@dataclass(frozen=True, slots=True)
class ToolchainSettings:
    options: tuple[str, ...] = ()
    executable: str | None = None
    environment: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, name: str, data: Any) -> "ToolchainSettings":
        prefix = f"toolchains.{name}"
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise ConfigParseError(prefix, "must be a table")

        allowed_keys = {"options", "executable", "environment"}
        unknown = {str(key) for key in data.keys() if str(key) not in allowed_keys}
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigParseError(prefix, f"unknown keys: {joined}")

        environment: Dict[str, str] = {}
        env_section = data.get("environment")
        if env_section is not None:
            if not isinstance(env_section, Mapping):
                raise ConfigParseError(f"{prefix}.environment", "must be a table of strings")
            for key, value in env_section.items():
                if value is None:
                    continue
                if isinstance(value, (Mapping, list)):
                    raise ConfigParseError(f"{prefix}.environment.{key}", "must be a scalar value")
                environment[str(key)] = str(value)

        return cls(
            options=normalize_option_list(data.get("options"), field_name=f"{prefix}.options"),
            executable=_optional_string(data.get("executable"), field_name=f"{prefix}.executable"),
            environment=environment,
        )


@dataclass(frozen=True, slots=True)
class MatrixConfig:
    """Immutable view of a build matrix configuration file."""

    project_root: Path
    build_root: PurePath = PurePath(DEFAULT_BUILD_ROOT)
    global_options: tuple[str, ...] = ()
    toolchains: Mapping[str, ToolchainSettings] = field(default_factory=dict)
    build_type_flag: str = DEFAULT_BUILD_TYPE_FLAG
    strict: bool = False
    log_name: str = DEFAULT_LOG_NAME
    config_path: Path | None = None

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        *,
        base_dir: Path,
        config_path: Path | None = None,
    ) -> "MatrixConfig":
        """Validate ``data`` and resolve defaults relative to ``base_dir``."""

        base_dir = base_dir.resolve()
        project_root_value = _optional_string(data.get("project_root"), field_name="project_root")
        if project_root_value is None:
            project_root = base_dir
        else:
            candidate = Path(project_root_value).expanduser()
            project_root = candidate if candidate.is_absolute() else base_dir / candidate
            project_root = project_root.resolve()

        build_root = _normalize_build_root(data.get("build_root"))
        global_options = normalize_option_list(data.get("options"), field_name="options")

        toolchains_section = data.get("toolchains")
        toolchains: Dict[str, ToolchainSettings] = {}
        if toolchains_section is not None:
            if not isinstance(toolchains_section, Mapping):
                raise ConfigParseError("toolchains", "must be a table keyed by toolchain name")
            for raw_name, raw_value in toolchains_section.items():
                name = str(raw_name).strip().lower()
                if name not in BUILTIN_TOOLCHAINS:
                    logger.debug("Ignoring settings for unknown toolchain '%s'", raw_name)
                    continue
                toolchains[name] = ToolchainSettings.from_mapping(name, raw_value)

        build_type_flag = data.get("build_type_flag", DEFAULT_BUILD_TYPE_FLAG)
        if not isinstance(build_type_flag, str) or "{build_type}" not in build_type_flag:
            raise ConfigParseError("build_type_flag", "must be a string containing '{build_type}'")
        try:
            build_type_flag.format(build_type=BUILD_TYPES[0])
        except (AttributeError, KeyError, IndexError, ValueError) as exc:
            raise ConfigParseError(
                "build_type_flag", f"only the '{{build_type}}' placeholder is supported: {exc!r}"
            ) from exc

        strict = data.get("strict", False)
        if not isinstance(strict, bool):
            raise ConfigParseError("strict", "must be a boolean")

        log_name = data.get("log_name", DEFAULT_LOG_NAME)
        if not isinstance(log_name, str) or not log_name.strip() or PurePath(log_name).name != log_name:
            raise ConfigParseError("log_name", "must be a plain file name")
        reserved = {f"{toolchain}-{build_type}" for toolchain in BUILTIN_TOOLCHAINS for build_type in BUILD_TYPES}
        if log_name in {".", ".."} or log_name in reserved:
            raise ConfigParseError("log_name", f"'{log_name}' is reserved for a build directory")

        return cls(
            project_root=project_root,
            build_root=build_root,
            global_options=global_options,
            toolchains=toolchains,
            build_type_flag=build_type_flag,
            strict=strict,
            log_name=log_name,
            config_path=config_path,
        )

    @property
    def build_root_path(self) -> Path:
        return self.project_root / self.build_root

    @property
    def log_path(self) -> Path:
        return self.build_root_path / self.log_name

    def settings_for(self, toolchain: str) -> ToolchainSettings:
        return self.toolchains.get(toolchain) or ToolchainSettings()


def load_config(directory: Path, *, defaults: Mapping[str, Any] | None = None) -> MatrixConfig:
    """Locate, read and validate the configuration stored in ``directory``.

    ``defaults`` supplies values for fields the file leaves unset; the file
    always wins where both define a key.
    """

    directory = Path(directory)
    path = find_config_file(directory)
    logger.debug("Loading configuration from %s", path)
    data = load_config_file(path)
    if defaults:
        data = merge_mappings(defaults, data)
    return MatrixConfig.from_mapping(data, base_dir=directory, config_path=path)


__all__ = [
    "CONFIG_STEM",
    "FILE_LOADERS",
    "MatrixConfig",
    "ToolchainSettings",
    "find_config_file",
    "load_config",
    "load_config_file",
    "merge_mappings",
    "normalize_option_list",
]
