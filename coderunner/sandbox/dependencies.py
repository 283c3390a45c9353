"""
Static dependency analysis for JavaScript preview mode.

Walks the import graph from an entry file without executing anything and
collects the external packages it reaches into a package.json-style manifest.
"""

from __future__ import annotations

import posixpath
from typing import Mapping

import esprima
from esprima.error_handler import Error as EsprimaError
from structlog import get_logger

from coderunner.sandbox.models import DependencyManifest

logger = get_logger()

UNPINNED_VERSION = "latest"


class DependencyResolver:
    """Depth-first resolver over relative imports."""

    def __init__(self, extension: str = ".js") -> None:
        self.extension = extension

    def resolve(self, entry_file: str, files: Mapping[str, str]) -> DependencyManifest:
        manifest = DependencyManifest()
        visited: set[str] = set()
        stack = [entry_file]

        while stack:
            filename = stack.pop()
            if filename in visited or filename not in files:
                continue
            visited.add(filename)
            manifest.visited.append(filename)

            relative: list[str] = []
            for source in self.extract_imports(files[filename], filename):
                if _is_relative(source):
                    target = self._resolve_path(filename, source, files)
                    if target is not None:
                        relative.append(target)
                elif not source.startswith("node:"):
                    manifest.dependencies.setdefault(package_name(source), UNPINNED_VERSION)

            # Reversed so imports are visited in declaration order
            stack.extend(reversed(relative))

        logger.debug(
            "Dependencies resolved",
            entry=entry_file,
            files=len(manifest.visited),
            packages=len(manifest.dependencies),
        )
        return manifest

    @staticmethod
    def extract_imports(code: str, filename: str = "<source>") -> list[str]:
        """Module specifiers of every import declaration; [] when unparseable."""
        try:
            program = esprima.parseModule(code, {"tolerant": True, "jsx": True})
        except (EsprimaError, RecursionError) as exc:
            logger.warning("Dependency parsing error", file=filename, error=str(exc))
            return []

        sources: list[str] = []
        for node in program.body:
            if node.type not in ("ImportDeclaration", "ExportAllDeclaration", "ExportNamedDeclaration"):
                continue
            source = getattr(node, "source", None)
            if source is not None and isinstance(source.value, str):
                sources.append(source.value)
        return sources

    def _resolve_path(
        self, importer: str, source: str, files: Mapping[str, str]
    ) -> str | None:
        if source.startswith("/"):
            candidate = posixpath.normpath(source.lstrip("/"))
        else:
            candidate = posixpath.normpath(
                posixpath.join(posixpath.dirname(importer), source)
            )

        if candidate in files:
            return candidate
        if not posixpath.splitext(candidate)[1] and candidate + self.extension in files:
            return candidate + self.extension

        logger.debug("Unresolved relative import", importer=importer, source=source)
        return None


def package_name(specifier: str) -> str:
    """Package part of a bare specifier: ``lodash/fp`` -> ``lodash``."""
    parts = specifier.split("/")
    if specifier.startswith("@") and len(parts) > 1:
        return "/".join(parts[:2])
    return parts[0]


def _is_relative(specifier: str) -> bool:
    return specifier.startswith((".", "/"))
