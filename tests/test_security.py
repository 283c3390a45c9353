import esprima
import pytest

from coderunner.sandbox.models import ExecutionMode
from coderunner.sandbox.security import (
    check_c_family,
    check_java,
    check_javascript,
    check_python,
)


@pytest.mark.parametrize(
    ("checker", "clean", "dangerous", "needle"),
    [
        (check_python, "print('hi')", "import os\nprint(os.getcwd())", "import os"),
        (check_javascript, "console.log(1 + 2);", "const fs = require('fs');", "require"),
        (check_c_family, '#include <stdio.h>\nint main(){printf("x");}', 'int main(){system("ls");}', "system("),
        (check_java, 'class Main { public static void main(String[] a){ System.out.println(1); } }',
         "import java.io.File;", "import java.io."),
    ],
)
def test_clean_passes_and_dangerous_is_flagged(checker, clean, dangerous, needle) -> None:
    assert checker(clean, ExecutionMode.EXECUTE).passed is True

    result = checker(dangerous, ExecutionMode.EXECUTE)
    assert result.passed is False
    assert any(needle in issue for issue in result.issues)


def test_python_records_every_pattern_once() -> None:
    code = "import subprocess\nfrom os import path\neval('1')\neval('2')"

    result = check_python(code)

    assert result.issues == (
        "Use of dangerous Python pattern: import subprocess",
        "Use of dangerous Python pattern: from os import",
        "Use of dangerous Python pattern: eval(",
    )


def test_python_does_not_flag_similar_module_names() -> None:
    assert check_python("import osmosis\nimport system_utils").passed is True


def test_python_flags_dynamic_import() -> None:
    result = check_python("m = __import__('os')")

    assert result.passed is False
    assert "__import__(" in result.issues[0]


def test_javascript_browser_globals_only_flagged_in_execute_mode() -> None:
    code = "document.title = window.name;"

    executed = check_javascript(code, ExecutionMode.EXECUTE)
    previewed = check_javascript(code, ExecutionMode.PREVIEW)

    assert executed.passed is False
    assert "Use of browser-specific API: document" in executed.issues
    assert "Use of browser-specific API: window" in executed.issues
    assert previewed.passed is True


def test_javascript_dangerous_identifiers_flagged_in_preview_mode() -> None:
    result = check_javascript("process.exit(1);", ExecutionMode.PREVIEW)

    assert result.issues == ("Use of dangerous identifier: process",)


def test_javascript_strings_are_not_identifiers() -> None:
    assert check_javascript("console.log('require process fs');").passed is True


def test_javascript_syntax_error_is_reported_not_raised() -> None:
    result = check_javascript("let x = 'unterminated")

    assert result.passed is False
    assert len(result.issues) == 1
    assert result.issues[0].startswith("Syntax error:")


def test_python_allows_method_calls_named_like_builtins() -> None:
    code = "import re\nprint(re.compile('a').match('a'))\nwith f.open('x') as fh:\n    pass"

    assert check_python(code).passed is True


def test_javascript_tokenizer_recursion_is_a_syntax_error(monkeypatch) -> None:
    def too_deep(code):
        raise RecursionError("maximum recursion depth exceeded")

    monkeypatch.setattr(esprima, "tokenize", too_deep)

    result = check_javascript("const a = 1;")

    assert result.issues == ("Syntax error: nesting too deep",)


def test_c_includes_and_calls_are_both_reported() -> None:
    code = "#include <unistd.h>\n#include <sys/socket.h>\nint main(){ fork(); }"

    result = check_c_family(code)

    assert result.issues == (
        "Dangerous include: #include <unistd.h>",
        "Dangerous include: #include <sys/socket.h>",
        "Use of dangerous function: fork(",
    )


def test_java_runtime_and_reflection() -> None:
    code = (
        "import java.lang.reflect.Method;\n"
        "class Main { void f() throws Exception { Runtime.getRuntime().exec(\"ls\"); } }"
    )

    result = check_java(code)

    assert "Use of dangerous Java code: import java.lang.reflect." in result.issues
    assert "Use of dangerous Java code: Runtime.getRuntime()" in result.issues
