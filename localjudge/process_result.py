"""Turn raw process outcomes into verdicts."""
import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .cancellation import AbortReason
from .executor import ExecuteOutcome, LaunchFailure
from .models import JudgeResult, Verdict

logger = logging.getLogger(__name__)

WRAPPER_DATA_RE = re.compile(rb"-----CPH DATA STARTS-----(\{.*?\})-----", re.S)


@dataclass
class WrapperData:
    time: float  # ns
    memory: Optional[float] = None  # KB


@dataclass
class ProcessData:
    time: float  # ms
    memory: Optional[float]  # MB
    stdout_path: Optional[str]
    stderr_path: str


def extract_wrapper_data(stderr_path: str) -> Optional[WrapperData]:
    """Find the instrumentation block in a stderr file and strip it out."""
    path = Path(stderr_path)
    try:
        content = path.read_bytes()
    except OSError:
        return None
    match = WRAPPER_DATA_RE.search(content)
    if not match:
        return None

    data = None
    try:
        raw = json.loads(match.group(1).decode("utf-8"))
        data = WrapperData(time=float(raw["time"]), memory=raw.get("memory"))
    except (ValueError, KeyError, TypeError) as e:
        logger.error("Failed to parse wrapper data %r: %s", match.group(1), e)
    # stderr need not be UTF-8
    path.write_bytes(WRAPPER_DATA_RE.sub(b"", content, count=1).strip())
    return data


def parse(result: ExecuteOutcome, ignore_exit_code: bool = False) -> JudgeResult[ProcessData]:
    if isinstance(result, LaunchFailure):
        return JudgeResult(Verdict.SYSTEM_ERROR, result.message)

    wrapper_data = extract_wrapper_data(result.stderr_path)
    time_used = result.time
    memory = result.memory
    if wrapper_data is not None:
        time_used = max(wrapper_data.time, 1) / 1e6
        if wrapper_data.memory is not None:
            memory = wrapper_data.memory / 1024
    data = ProcessData(time_used, memory, result.stdout_path, result.stderr_path)

    if result.abort_reason == AbortReason.TIMEOUT:
        return JudgeResult(Verdict.TIME_LIMIT, "Killed due to timeout", data)
    if result.abort_reason == AbortReason.USER_ABORT:
        return JudgeResult(Verdict.REJECTED, "Aborted by user", data)
    # Signals always count; exit codes only when not ignored
    if isinstance(result.code_or_signal, str) or (not ignore_exit_code and result.code_or_signal != 0):
        return JudgeResult(
            Verdict.RUNTIME_ERROR,
            f"Process exited with code: {result.code_or_signal}.",
            data,
        )
    return JudgeResult.ok(data)


# testlib.h exit codes
TESTLIB_VERDICTS = {
    0: (Verdict.ACCEPTED, ""),
    1: (Verdict.WRONG_ANSWER, ""),
    2: (Verdict.PRESENTATION_ERROR, ""),
    3: (Verdict.SYSTEM_ERROR, ""),
    4: (Verdict.WRONG_ANSWER, "Unexpected EOF"),
    7: (Verdict.PARTIALLY_CORRECT, ""),
}


def get_testlib_verdict(code: int) -> JudgeResult:
    if code in TESTLIB_VERDICTS:
        verdict, message = TESTLIB_VERDICTS[code]
        return JudgeResult(verdict, message)
    logger.warning("Testlib returned unknown exit code %s", code)
    return JudgeResult(Verdict.SYSTEM_ERROR, f"Testlib returned unknown exit code: {code}")


def parse_checker(result: ExecuteOutcome) -> JudgeResult[ProcessData]:
    """Interpret a checker or interactor run; the result is always known."""
    pre_result = parse(result, ignore_exit_code=True)
    if pre_result.known:
        return pre_result
    verdict = get_testlib_verdict(result.code_or_signal)
    verdict.data = pre_result.data
    return verdict
