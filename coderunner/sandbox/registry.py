"""
Language registry.

Maps a language tag (and its aliases) to a ``LanguageProfile`` holding
everything the pipeline needs for that language: the static checker, file
naming, the remote-service runtime and the container image and command.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Callable

from structlog import get_logger

from coderunner.errors import UnsupportedLanguage
from coderunner.sandbox import security
from coderunner.sandbox.models import ExecutionMode, ValidationResult

logger = get_logger()

Checker = Callable[[str, ExecutionMode], ValidationResult]
CommandBuilder = Callable[[str], str]


@dataclass(frozen=True)
class LanguageProfile:
    """Capabilities of one supported language."""

    name: str
    checker: Checker
    extension: str
    default_entry: str
    remote_language: str
    remote_version: str
    image: str
    command: CommandBuilder
    aliases: tuple[str, ...] = ()
    supports_preview: bool = False

    def validate(
        self, source: str, mode: ExecutionMode = ExecutionMode.EXECUTE
    ) -> ValidationResult:
        return self.checker(source, mode)

    def container_command(self, entry_file: str) -> list[str]:
        return ["sh", "-c", self.command(entry_file)]


def _run_python(entry: str) -> str:
    return f"python3 -u {shlex.quote(entry)}"


def _run_node(entry: str) -> str:
    return f"node {shlex.quote(entry)}"


def _compile_c(entry: str) -> str:
    return "gcc $(find . -name '*.c') -o /tmp/program -lm && /tmp/program"


def _compile_cpp(entry: str) -> str:
    return "g++ $(find . -name '*.cpp') -o /tmp/program && /tmp/program"


def _compile_java(entry: str) -> str:
    main_class = shlex.quote(PurePosixPath(entry).stem)
    return (
        "mkdir -p /tmp/classes && javac -d /tmp/classes $(find . -name '*.java') "
        f"&& java -cp /tmp/classes {main_class}"
    )


@dataclass
class LanguageRegistry:
    """Registry of supported languages keyed by tag and alias."""

    _profiles: dict[str, LanguageProfile] = field(default_factory=dict)

    def register(self, profile: LanguageProfile) -> None:
        for tag in (profile.name, *profile.aliases):
            self._profiles[tag] = profile
        logger.debug("Language registered", language=profile.name, aliases=profile.aliases)

    def get(self, tag: str) -> LanguageProfile:
        profile = self._profiles.get(tag)
        if profile is None:
            raise UnsupportedLanguage(tag)
        return profile


def default_registry() -> LanguageRegistry:
    """Registry with the built-in languages."""
    registry = LanguageRegistry()
    registry.register(LanguageProfile(
        name="python",
        checker=security.check_python,
        extension=".py",
        default_entry="main.py",
        remote_language="python",
        remote_version="3.10.0",
        image="python:3.10-slim",
        command=_run_python,
    ))
    registry.register(LanguageProfile(
        name="javascript",
        aliases=("node",),
        checker=security.check_javascript,
        extension=".js",
        default_entry="main.js",
        remote_language="javascript",
        remote_version="18.15.0",
        image="node:18-slim",
        command=_run_node,
        supports_preview=True,
    ))
    registry.register(LanguageProfile(
        name="c",
        checker=security.check_c_family,
        extension=".c",
        default_entry="main.c",
        remote_language="c",
        remote_version="10.2.0",
        image="gcc:12",
        command=_compile_c,
    ))
    registry.register(LanguageProfile(
        name="cpp",
        checker=security.check_c_family,
        extension=".cpp",
        default_entry="main.cpp",
        remote_language="cpp",
        remote_version="10.2.0",
        image="gcc:12",
        command=_compile_cpp,
    ))
    registry.register(LanguageProfile(
        name="java",
        checker=security.check_java,
        extension=".java",
        default_entry="Main.java",
        remote_language="java",
        remote_version="15.0.2",
        image="eclipse-temurin:17-jdk",
        command=_compile_java,
    ))
    return registry
