"""
Per-language static screening for submitted code.

Every policy here is allow-by-default, deny-by-pattern. This is a deterrent
layer for obviously hostile submissions only; the real isolation boundary is
the execution backend (container limits or the remote service).

Each checker is a pure function ``(source, mode) -> ValidationResult`` with no
shared state, so languages are added by writing one more function and
registering it in ``coderunner.sandbox.registry``.
"""

from __future__ import annotations

import re

import esprima
from esprima.error_handler import Error as EsprimaError

from coderunner.sandbox.models import ExecutionMode, ValidationResult

# JavaScript: identifiers giving access to the host process, filesystem,
# module loading or dynamic evaluation
JS_DANGEROUS_IDENTIFIERS: frozenset[str] = frozenset({
    "require",
    "process",
    "eval",
    "Function",
    "global",
    "globalThis",
    "child_process",
    "fs",
    "os",
})

# Browser globals make no sense under server-side execution; allowed in preview
JS_BROWSER_IDENTIFIERS: frozenset[str] = frozenset({
    "window",
    "document",
    "HTMLElement",
    "navigator",
})

PYTHON_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\bimport\s+(os|sys|subprocess|socket|shlex|shutil|ctypes|multiprocessing)\b"),
    re.compile(r"\bfrom\s+(os|sys|subprocess|socket|shutil|ctypes|multiprocessing)(\.\w+)*\s+import\b"),
    # Builtin calls only; method calls such as re.compile( are allowed
    re.compile(r"(?<![\w.])(eval|exec|open|input|compile|__import__)\s*\("),
)

C_DANGEROUS_INCLUDES: tuple[str, ...] = (
    "#include <unistd.h>",
    "#include <sys/types.h>",
    "#include <sys/socket.h>",
    "#include <fcntl.h>",
)

C_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\b(system|exec[lv]?p?e?|fork|popen|socket|open)\s*\("),
)

JAVA_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"import\s+java\.io\."),
    re.compile(r"import\s+java\.net\."),
    re.compile(r"import\s+java\.lang\.reflect\."),
    re.compile(r"\b(Runtime\.getRuntime\(\)|System\.exit|ProcessBuilder|new\s+FileInputStream)"),
)


def check_javascript(
    code: str, mode: ExecutionMode = ExecutionMode.EXECUTE
) -> ValidationResult:
    """Tokenize and flag deny-listed identifiers."""
    issues: list[str] = []
    browser = JS_BROWSER_IDENTIFIERS if mode == ExecutionMode.EXECUTE else frozenset()

    try:
        tokens = esprima.tokenize(code)
    except EsprimaError as exc:
        return ValidationResult.from_issues([f"Syntax error: {exc}"])
    except RecursionError:
        return ValidationResult.from_issues(["Syntax error: nesting too deep"])

    for token in tokens:
        if token.type != "Identifier":
            continue
        if token.value in JS_DANGEROUS_IDENTIFIERS:
            issues.append(f"Use of dangerous identifier: {token.value}")
        if token.value in browser:
            issues.append(f"Use of browser-specific API: {token.value}")

    return ValidationResult.from_issues(issues)


def check_python(
    code: str, mode: ExecutionMode = ExecutionMode.EXECUTE
) -> ValidationResult:
    issues = [
        f"Use of dangerous Python pattern: {match.group(0)}"
        for match in _first_matches(PYTHON_PATTERNS, code)
    ]
    return ValidationResult.from_issues(issues)


def check_c_family(
    code: str, mode: ExecutionMode = ExecutionMode.EXECUTE
) -> ValidationResult:
    """Shared by C and C++."""
    issues = [f"Dangerous include: {inc}" for inc in C_DANGEROUS_INCLUDES if inc in code]
    issues.extend(
        f"Use of dangerous function: {match.group(0)}"
        for match in _first_matches(C_PATTERNS, code)
    )
    return ValidationResult.from_issues(issues)


def check_java(
    code: str, mode: ExecutionMode = ExecutionMode.EXECUTE
) -> ValidationResult:
    issues = [
        f"Use of dangerous Java code: {match.group(0)}"
        for match in _first_matches(JAVA_PATTERNS, code)
    ]
    return ValidationResult.from_issues(issues)


def _first_matches(patterns: tuple[re.Pattern[str], ...], code: str) -> list[re.Match[str]]:
    """First match of every pattern, in table order."""
    matches = []
    for pattern in patterns:
        match = pattern.search(code)
        if match:
            matches.append(match)
    return matches
