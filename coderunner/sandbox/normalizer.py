"""Result normalization for captured program output."""

from coderunner.sandbox.models import NormalizedOutput, SandboxResult

NO_OUTPUT_MESSAGE = "Program ran successfully with no output."


def normalize(result: SandboxResult) -> NormalizedOutput:
    """Trim both streams; substitute a placeholder when the program printed nothing.

    The placeholder lets callers tell a silent success apart from a crash
    that produced no message.
    """
    stdout = result.stdout.strip()
    stderr = result.stderr.strip()
    if not stdout and not stderr:
        stdout = NO_OUTPUT_MESSAGE
    return NormalizedOutput(stdout=stdout, stderr=stderr)
