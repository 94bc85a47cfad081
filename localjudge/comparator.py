import re
from typing import Optional

from .config import ComparingSettings
from .models import JudgeResult, Verdict

_WHITESPACE_RE = re.compile(r"\s+")


def _fix(text: str) -> str:
    """Trim trailing whitespace of every line and trailing blank lines."""
    return "\n".join(line.rstrip() for line in text.rstrip().split("\n"))


def _compress(text: str) -> str:
    return _WHITESPACE_RE.sub("", text)


def compare_outputs(
    stdout: str,
    answer: str,
    stderr: str,
    settings: Optional[ComparingSettings] = None,
) -> JudgeResult:
    settings = settings or ComparingSettings()
    if stderr and not settings.ignore_error:
        return JudgeResult(Verdict.RUNTIME_ERROR)

    fixed_output = _fix(stdout)
    fixed_answer = _fix(answer)
    if settings.ole_size and len(fixed_output) > len(fixed_answer) * settings.ole_size:
        return JudgeResult(Verdict.OUTPUT_LIMIT)

    if _compress(stdout) != _compress(answer):
        return JudgeResult(Verdict.WRONG_ANSWER)
    if fixed_output != fixed_answer and not settings.regard_pe_as_ac:
        return JudgeResult(Verdict.PRESENTATION_ERROR)
    return JudgeResult(Verdict.ACCEPTED)
