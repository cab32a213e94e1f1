"""Default configuration documents written by ``buildmatrix config``."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict
import json

from .config_loader import CONFIG_STEM, DEFAULT_BUILD_ROOT, DEFAULT_BUILD_TYPE_FLAG, DEFAULT_LOG_NAME
from .toolchains import BUILTIN_TOOLCHAINS


_TOML_TEMPLATE = """\
# buildmatrix configuration.
# Every key is optional; the values shown are the defaults.

# Project root containing CMakeLists.txt, relative to this file.
# project_root = "."

# Build root, always relative to the project root.
build_root = "{build_root}"

# Options passed to every toolchain, before the build type flag.
options = []

# Build type token; {{build_type}} expands to "release" or "debug".
# build_type_flag = "{build_type_flag}"

# Exit with a non-zero status when any cell fails to configure.
strict = false

# Run log written under the build root.
# log_name = "{log_name}"
{toolchains}"""

_TOML_TOOLCHAIN = """
[toolchains.{name}]
# {description}
# executable = "{executable}"
options = []
# environment = {{ CC = "{cc}", CXX = "{cxx}" }}
"""

_YAML_TEMPLATE = """\
# buildmatrix configuration.
# Every key is optional; the values shown are the defaults.

# Project root containing CMakeLists.txt, relative to this file.
# project_root: .

# Build root, always relative to the project root.
build_root: {build_root}

# Options passed to every toolchain, before the build type flag.
options: []

# Build type token; {{build_type}} expands to "release" or "debug".
# build_type_flag: "{build_type_flag}"

# Exit with a non-zero status when any cell fails to configure.
strict: false

# Run log written under the build root.
# log_name: {log_name}

toolchains:
{toolchains}"""

_YAML_TOOLCHAIN = """\
  # {description}
  {name}:
    # executable: {executable}
    options: []
"""


def _format_defaults() -> Dict[str, str]:
    return {
        "build_root": DEFAULT_BUILD_ROOT,
        "build_type_flag": DEFAULT_BUILD_TYPE_FLAG,
        "log_name": DEFAULT_LOG_NAME,
    }


def render_toml() -> str:
    toolchains = "".join(
        _TOML_TOOLCHAIN.format(
            name=definition.name,
            description=definition.description,
            executable=definition.default_executable,
            cc=definition.cc,
            cxx=definition.cxx,
        )
        for definition in BUILTIN_TOOLCHAINS.values()
    )
    return _TOML_TEMPLATE.format(toolchains=toolchains, **_format_defaults())


def render_yaml() -> str:
    toolchains = "".join(
        _YAML_TOOLCHAIN.format(
            name=definition.name,
            description=definition.description,
            executable=definition.default_executable,
        )
        for definition in BUILTIN_TOOLCHAINS.values()
    )
    return _YAML_TEMPLATE.format(toolchains=toolchains, **_format_defaults())


def render_json() -> str:
    document: Dict[str, Any] = {
        "build_root": DEFAULT_BUILD_ROOT,
        "options": [],
        "build_type_flag": DEFAULT_BUILD_TYPE_FLAG,
        "strict": False,
        "toolchains": {
            name: {"executable": definition.default_executable, "options": []}
            for name, definition in BUILTIN_TOOLCHAINS.items()
        },
    }
    return json.dumps(document, indent=2) + "\n"


RENDERERS = {
    "toml": render_toml,
    "json": render_json,
    "yaml": render_yaml,
}


def write_default_config(directory: Path, *, fmt: str = "toml", force: bool = False) -> Path:
    """Write the default configuration document into ``directory``.

    Raises :class:`FileExistsError` when a file is already present and
    ``force`` is false, and lets other :class:`OSError` failures propagate.
    """

    renderer = RENDERERS.get(fmt)
    if renderer is None:
        raise ValueError(f"Unsupported configuration format: {fmt}")
    path = Path(directory) / f"{CONFIG_STEM}.{fmt}"
    if path.exists() and not force:
        raise FileExistsError(f"Configuration file already exists: {path}")
    path.write_text(renderer(), encoding="utf-8")
    return path


__all__ = ["RENDERERS", "render_json", "render_toml", "render_yaml", "write_default_config"]
