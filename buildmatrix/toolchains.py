"""Known toolchains and build types that make up the configuration matrix."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Tuple


def _to_str_dict(mapping: Mapping[str, Any]) -> Dict[str, str]:
    return {str(key): str(value) for key, value in mapping.items()}


@dataclass(frozen=True, slots=True)
class ToolchainDefinition:
    name: str
    description: str
    cc: str
    cxx: str
    default_executable: str = "cmake"
    environment: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, name: str, data: Mapping[str, Any]) -> "ToolchainDefinition":
        if not isinstance(data, Mapping):
            raise TypeError(f"Toolchain '{name}' definition must be a mapping")

        allowed_keys = {"description", "cc", "cxx", "executable", "environment"}
        unknown = {str(key) for key in data.keys() if str(key) not in allowed_keys}
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ValueError(f"Toolchain '{name}' contains unknown keys: {joined}")

        cc = data.get("cc")
        cxx = data.get("cxx")
        if not cc or not cxx:
            raise ValueError(f"Toolchain '{name}' must specify both cc and cxx")

        environment: Dict[str, str] = {"CC": str(cc), "CXX": str(cxx)}
        env_section = data.get("environment")
        if isinstance(env_section, Mapping):
            environment.update(_to_str_dict(env_section))

        executable = data.get("executable")
        return cls(
            name=name,
            description=str(data.get("description") or name),
            cc=str(cc),
            cxx=str(cxx),
            default_executable=str(executable) if executable else "cmake",
            environment=environment,
        )

    @property
    def compiler_flags(self) -> Tuple[str, ...]:
        """Flags selecting the C/C++ compiler pair for CMake."""

        return (
            f"-DCMAKE_C_COMPILER={self.cc}",
            f"-DCMAKE_CXX_COMPILER={self.cxx}",
        )


def _build_builtin_definitions() -> Dict[str, ToolchainDefinition]:
    raw: Dict[str, Mapping[str, Any]] = {
        "gcc": {
            "description": "GNU Compiler Collection",
            "cc": "gcc",
            "cxx": "g++",
            "executable": "cmake",
        },
        "clang": {
            "description": "LLVM Clang toolchain",
            "cc": "clang",
            "cxx": "clang++",
            "executable": "cmake",
        },
        "cross-mingw64": {
            "description": "MinGW-w64 cross compiler targeting 64-bit Windows",
            "cc": "x86_64-w64-mingw32-gcc",
            "cxx": "x86_64-w64-mingw32-g++",
            "executable": "mingw64-cmake",
        },
    }

    definitions: Dict[str, ToolchainDefinition] = {}
    for name, data in raw.items():
        definitions[name] = ToolchainDefinition.from_mapping(name, data)
    return definitions


BUILTIN_TOOLCHAINS: Mapping[str, ToolchainDefinition] = _build_builtin_definitions()
"""Toolchains in matrix order. Only these names ever produce build cells."""

BUILD_TYPES: Tuple[str, ...] = ("release", "debug")

__all__ = ["BUILD_TYPES", "BUILTIN_TOOLCHAINS", "ToolchainDefinition"]
