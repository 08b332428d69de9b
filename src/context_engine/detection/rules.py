"""
Tech stack detection rules.

Each rule inspects one kind of ecosystem signal (a source file's imports, a
dependency manifest, a compiler config) and records what it finds on a shared
DetectionState. Rules are independent of each other; the detector composes
them and resolves the project type by precedence.
"""

import json
import logging
import re
import tomllib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from context_engine.models.parsed import FileEntry

logger = logging.getLogger(__name__)

# Project type precedence: explicit manifest signals beat source imports,
# which beat language-only defaults.
PRECEDENCE_LANGUAGE_DEFAULT = 10
PRECEDENCE_SOURCE = 20
PRECEDENCE_MANIFEST = 30

EXTENSION_LANGUAGES = {
    "ts": "typescript",
    "tsx": "typescript",
    "js": "javascript",
    "jsx": "javascript",
    "mjs": "javascript",
    "cjs": "javascript",
    "py": "python",
    "rs": "rust",
    "go": "go",
    "java": "java",
    "kt": "kotlin",
    "rb": "ruby",
    "php": "php",
    "cs": "csharp",
    "swift": "swift",
}

BUILD_BACKENDS = {
    "poetry.core.masonry.api": "poetry",
    "hatchling.build": "hatch",
    "setuptools.build_meta": "setuptools",
    "flit_core.buildapi": "flit",
    "pdm.backend": "pdm",
}

_REQUIREMENT_NAME = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")


def normalize_path(path: str) -> str:
    """Strip a leading './' so root manifests match by exact path."""
    while path.startswith("./"):
        path = path[2:]
    return path


def requirement_name(requirement: str) -> Optional[str]:
    """
    Extract the distribution name from a requirement specifier.

    Examples:
        >>> requirement_name("fastapi>=0.110")
        'fastapi'
        >>> requirement_name("# comment")
    """
    match = _REQUIREMENT_NAME.match(requirement)
    if not match:
        return None
    return match.group(1).lower()


def _table(value: Any) -> dict:
    """A TOML table, or an empty one when the key holds something else."""
    return value if isinstance(value, dict) else {}


def _string_items(value: Any) -> list[str]:
    """String entries of a TOML array; dates, numbers and tables are dropped."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


@dataclass
class DetectionState:
    """Mutable accumulator shared by all rules during one detection pass."""

    languages: set[str] = field(default_factory=set)
    tech_stack: dict[str, Any] = field(default_factory=dict)
    build_system: Optional[str] = None
    test_framework: Optional[str] = None
    _type_signal: Optional[tuple[int, int, str]] = None
    _order: int = 0

    def suggest_project_type(self, project_type: str, precedence: int) -> None:
        """
        Record a project type signal.

        The highest precedence wins; at equal precedence the later signal
        (in input order) wins.
        """
        self._order += 1
        candidate = (precedence, self._order, project_type)
        if self._type_signal is None or candidate[:2] > self._type_signal[:2]:
            self._type_signal = candidate

    @property
    def project_type(self) -> Optional[str]:
        return self._type_signal[2] if self._type_signal else None


class DetectionRule(ABC):
    """One independent ecosystem signal."""

    name: str = "rule"

    @abstractmethod
    def matches(self, entry: FileEntry) -> bool:
        """Whether this rule wants to inspect the file."""

    @abstractmethod
    def apply(self, entry: FileEntry, state: DetectionState) -> None:
        """Record detected facts on the state."""


class ManifestRule(DetectionRule):
    """A rule bound to one root-level manifest file name."""

    filename: str = ""

    def matches(self, entry: FileEntry) -> bool:
        return normalize_path(entry.path) == self.filename


class ExtensionLanguageRule(DetectionRule):
    """Map file extensions to programming languages."""

    name = "extension-language"

    def matches(self, entry: FileEntry) -> bool:
        return entry.extension in EXTENSION_LANGUAGES

    def apply(self, entry: FileEntry, state: DetectionState) -> None:
        state.languages.add(EXTENSION_LANGUAGES[entry.extension])


class JavaScriptSourceRule(DetectionRule):
    """Framework imports in JavaScript/TypeScript sources."""

    name = "javascript-source"

    def matches(self, entry: FileEntry) -> bool:
        return entry.extension in {"ts", "tsx", "js", "jsx", "mjs", "cjs"}

    def apply(self, entry: FileEntry, state: DetectionState) -> None:
        content = entry.content

        if (
            "import React" in content
            or 'from "react"' in content
            or "from 'react'" in content
        ):
            state.tech_stack["react"] = True
            state.suggest_project_type("web-app", PRECEDENCE_SOURCE)

        if (
            "require(" in content
            or "module.exports" in content
            or "const express" in content
        ):
            state.tech_stack["nodejs"] = True

        if "import { createApp }" in content or 'from "vue"' in content:
            state.tech_stack["vue"] = True
            state.suggest_project_type("web-app", PRECEDENCE_SOURCE)

        if "@angular/core" in content or "NgModule" in content:
            state.tech_stack["angular"] = True
            state.suggest_project_type("web-app", PRECEDENCE_SOURCE)


class PythonSourceRule(DetectionRule):
    """Framework imports in Python sources."""

    name = "python-source"

    FRAMEWORKS = {
        "flask": "api-service",
        "django": "web-app",
        "fastapi": "api-service",
    }

    def matches(self, entry: FileEntry) -> bool:
        return entry.extension == "py"

    def apply(self, entry: FileEntry, state: DetectionState) -> None:
        for framework, project_type in self.FRAMEWORKS.items():
            if (
                f"import {framework}" in entry.content
                or f"from {framework}" in entry.content
            ):
                state.tech_stack[framework] = True
                state.suggest_project_type(project_type, PRECEDENCE_SOURCE)


class PackageJsonRule(ManifestRule):
    """npm manifest: packages, package manager, test runner, app flavour."""

    name = "package-json"
    filename = "package.json"

    def apply(self, entry: FileEntry, state: DetectionState) -> None:
        try:
            package = json.loads(entry.content)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse package.json: {e}")
            return
        if not isinstance(package, dict):
            logger.warning("Ignoring package.json that is not a JSON object")
            return

        dependencies = package.get("dependencies") or {}
        dev_dependencies = package.get("devDependencies") or {}
        state.tech_stack["npm_packages"] = sorted(dependencies)
        state.tech_stack["dev_packages"] = sorted(dev_dependencies)

        package_manager = str(package.get("packageManager") or "")
        if package_manager.startswith("pnpm"):
            state.build_system = "pnpm"
        elif package_manager.startswith("yarn"):
            state.build_system = "yarn"
        else:
            state.build_system = "npm"

        if "jest" in dev_dependencies or "@jest/core" in dev_dependencies:
            state.test_framework = "jest"
        elif "vitest" in dev_dependencies:
            state.test_framework = "vitest"
        elif "mocha" in dev_dependencies:
            state.test_framework = "mocha"

        if "express" in dependencies or "fastify" in dependencies:
            state.suggest_project_type("api-service", PRECEDENCE_MANIFEST)
        elif "react-native" in dependencies:
            state.suggest_project_type("mobile-app", PRECEDENCE_MANIFEST)
        elif "electron" in dependencies:
            state.suggest_project_type("desktop-app", PRECEDENCE_MANIFEST)
        elif "react" in dependencies or "@types/react" in dependencies:
            state.suggest_project_type("web-app", PRECEDENCE_MANIFEST)


class TsConfigRule(ManifestRule):
    """TypeScript compiler configuration."""

    name = "tsconfig"
    filename = "tsconfig.json"

    def apply(self, entry: FileEntry, state: DetectionState) -> None:
        try:
            tsconfig = json.loads(entry.content)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse tsconfig.json: {e}")
            return
        if not isinstance(tsconfig, dict):
            return

        state.tech_stack["tsconfig"] = tsconfig
        compiler_options = tsconfig.get("compilerOptions") or {}
        if isinstance(compiler_options, dict) and compiler_options.get("target"):
            state.tech_stack["typescript_target"] = compiler_options["target"]


def _apply_python_requirements(
    requirements: list[str], state: DetectionState
) -> bool:
    """
    Shared project-type and test-runner inference for Python manifests.

    Returns:
        True if a web framework dependency decided the project type
    """
    names = {name for name in map(requirement_name, requirements) if name}

    if "pytest" in names:
        state.test_framework = "pytest"

    if "django" in names:
        state.suggest_project_type("web-app", PRECEDENCE_MANIFEST)
        return True
    if "flask" in names or "fastapi" in names:
        state.suggest_project_type("api-service", PRECEDENCE_MANIFEST)
        return True
    return False


class RequirementsTxtRule(ManifestRule):
    """pip requirements file."""

    name = "requirements-txt"
    filename = "requirements.txt"

    def apply(self, entry: FileEntry, state: DetectionState) -> None:
        state.languages.add("python")
        requirements = [
            line.strip()
            for line in entry.content.split("\n")
            if line.strip() and not line.strip().startswith("#")
        ]
        state.tech_stack["python_packages"] = requirements
        if state.build_system is None:
            state.build_system = "pip"
        _apply_python_requirements(requirements, state)


class PyprojectRule(ManifestRule):
    """PEP 621 / Poetry project metadata."""

    name = "pyproject"
    filename = "pyproject.toml"

    def apply(self, entry: FileEntry, state: DetectionState) -> None:
        state.languages.add("python")
        try:
            pyproject = tomllib.loads(entry.content)
        except tomllib.TOMLDecodeError as e:
            logger.warning(f"Failed to parse pyproject.toml: {e}")
            return

        project = _table(pyproject.get("project"))
        tool = _table(pyproject.get("tool"))
        poetry = _table(tool.get("poetry"))

        requirements = _string_items(project.get("dependencies"))
        for extra in _table(project.get("optional-dependencies")).values():
            requirements.extend(_string_items(extra))
        requirements.extend(
            name
            for name in _table(poetry.get("dependencies"))
            if name != "python"
        )
        dev_group = _table(_table(poetry.get("group")).get("dev"))
        backend = _table(pyproject.get("build-system")).get("build-backend")
        if not isinstance(backend, str):
            backend = ""

        # Only JSON-safe values reach the state from here on
        state.tech_stack["python_packages"] = sorted(requirements)
        if poetry:
            state.build_system = "poetry"
        else:
            state.build_system = BUILD_BACKENDS.get(backend, "pip")

        has_framework = _apply_python_requirements(requirements, state)
        if "pytest" in tool or "pytest" in _table(dev_group.get("dependencies")):
            state.test_framework = "pytest"

        if project.get("scripts") and not has_framework:
            state.suggest_project_type("cli-tool", PRECEDENCE_MANIFEST)


class CargoTomlRule(ManifestRule):
    """Rust crate manifest."""

    name = "cargo-toml"
    filename = "Cargo.toml"

    def apply(self, entry: FileEntry, state: DetectionState) -> None:
        state.languages.add("rust")
        state.build_system = "cargo"
        cargo = entry.content.lower()
        if "axum" in cargo or "actix-web" in cargo:
            state.suggest_project_type("api-service", PRECEDENCE_MANIFEST)
        elif "yew" in cargo:
            state.suggest_project_type("web-app", PRECEDENCE_MANIFEST)
        else:
            state.suggest_project_type("cli-tool", PRECEDENCE_MANIFEST)


class GoModRule(ManifestRule):
    """Go module manifest."""

    name = "go-mod"
    filename = "go.mod"

    def apply(self, entry: FileEntry, state: DetectionState) -> None:
        state.languages.add("go")
        state.build_system = "go"
        if "github.com/gin-gonic" in entry.content:
            state.suggest_project_type("api-service", PRECEDENCE_MANIFEST)
        else:
            state.suggest_project_type("cli-tool", PRECEDENCE_MANIFEST)


def default_rules() -> list[DetectionRule]:
    """Rules registered by the default detector, in evaluation order."""
    return [
        ExtensionLanguageRule(),
        JavaScriptSourceRule(),
        PythonSourceRule(),
        PackageJsonRule(),
        TsConfigRule(),
        RequirementsTxtRule(),
        PyprojectRule(),
        CargoTomlRule(),
        GoModRule(),
    ]
