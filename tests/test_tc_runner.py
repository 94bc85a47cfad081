import asyncio
import time

import pytest

from localjudge.models import Verdict
from localjudge.problem import InlineIo, Problem, SourceFile, TestCase
from localjudge.tc_runner import ProblemSession, TcRunner

SOLUTION = """
import time
line = input()
if line == "slow":
    time.sleep(30)
print(int(line) * 2)
"""


@pytest.fixture
def tc_runner(compiler, judge, executor, cache, settings):
    return TcRunner(compiler, judge, executor, cache, settings)


def _session(write_source, cases, code=SOLUTION):
    problem = Problem(id="p", src=SourceFile(write_source("sol.py", code)), time_limit=20000)
    ids = [problem.add_tc(TestCase(InlineIo(stdin), InlineIo(answer))) for stdin, answer in cases]
    return ProblemSession(problem), ids


def _judging(tc) -> bool:
    return tc.result is not None and tc.result.verdict == Verdict.JUDGING


async def _wait_for(predicate, timeout=15.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        assert loop.time() < deadline, "condition not reached in time"
        await asyncio.sleep(0.01)


def test_run_tcs_judges_enabled_cases_in_order(tc_runner, write_source):
    session, ids = _session(write_source, [("1", "2"), ("2", "5"), ("3", "6"), ("4", "8")])
    session.problem.tcs[ids[3]].is_disabled = True
    asyncio.run(tc_runner.run_tcs(session))

    tcs = session.problem.tcs
    assert [tcs[i].result.verdict for i in ids[:3]] == [Verdict.ACCEPTED, Verdict.WRONG_ANSWER, Verdict.ACCEPTED]
    assert tcs[ids[3]].result is None
    # firstFailed
    assert [tcs[i].is_expand for i in ids[:3]] == [False, True, False]
    assert not session.scope.active


@pytest.mark.parametrize(
    "behavior, expected",
    [
        ("always", [True, True, True]),
        ("never", [False, False, False]),
        ("first", [True, False, False]),
        ("same", [False, True, False]),
    ],
)
def test_expand_behaviors(tc_runner, settings, write_source, behavior, expected):
    settings.problem.expand_behavior = behavior
    session, ids = _session(write_source, [("1", "2"), ("2", "5"), ("3", "6")])
    session.problem.tcs[ids[1]].is_expand = True
    asyncio.run(tc_runner.run_tcs(session))
    assert [session.problem.tcs[i].is_expand for i in ids] == expected


def test_compile_error_marks_every_case(tc_runner, write_source):
    session, ids = _session(write_source, [("1", "2"), ("2", "4")], code="def broken(:\n")
    asyncio.run(tc_runner.run_tcs(session))
    assert all(session.problem.tcs[i].result.verdict == Verdict.COMPILE_ERROR for i in ids)
    assert "SyntaxError" in session.compilation_message


def test_run_single_case(tc_runner, write_source):
    session, ids = _session(write_source, [("1", "2"), ("2", "5")])
    asyncio.run(tc_runner.run_tc(session, ids[1]))
    assert session.problem.tcs[ids[1]].result.verdict == Verdict.WRONG_ANSWER
    assert session.problem.tcs[ids[1]].is_expand
    assert session.problem.tcs[ids[0]].result is None


def test_stop_only_one_skips_exactly_the_current_case(tc_runner, write_source):
    session, ids = _session(write_source, [("1", "2"), ("slow", "0"), ("3", "6")])
    tcs = session.problem.tcs

    async def main():
        task = asyncio.ensure_future(tc_runner.run_tcs(session))
        await _wait_for(lambda: _judging(tcs[ids[1]]))
        await tc_runner.stop_tcs(session, only_one=True)
        await task

    asyncio.run(main())
    assert [tcs[i].result.verdict for i in ids] == [Verdict.ACCEPTED, Verdict.SKIPPED, Verdict.ACCEPTED]


def test_stop_all_skips_remaining_cases(tc_runner, write_source):
    session, ids = _session(write_source, [("slow", "0"), ("1", "2"), ("3", "6")])
    tcs = session.problem.tcs

    async def main():
        task = asyncio.ensure_future(tc_runner.run_tcs(session))
        await _wait_for(lambda: _judging(tcs[ids[0]]))
        await tc_runner.stop_tcs(session)
        assert not session.scope.active
        await task

    asyncio.run(main())
    assert [tcs[i].result.verdict for i in ids] == [Verdict.REJECTED, Verdict.SKIPPED, Verdict.SKIPPED]


def test_new_run_cancels_the_active_one(tc_runner, write_source):
    session, ids = _session(write_source, [("slow", "0"), ("1", "2")])
    tcs = session.problem.tcs

    async def main():
        first = asyncio.ensure_future(tc_runner.run_tcs(session))
        await _wait_for(lambda: _judging(tcs[ids[0]]))
        await tc_runner.run_tc(session, ids[1])
        await first

    asyncio.run(main())
    assert tcs[ids[1]].result.verdict == Verdict.ACCEPTED


def test_debug_launches_stopped_process(tc_runner, write_source):
    psutil = pytest.importorskip("psutil")
    session, ids = _session(write_source, [("1", "2")])
    result = asyncio.run(tc_runner.debug_tc(session, ids[0]))
    assert not result.known
    process = psutil.Process(result.data)
    try:
        for _ in range(100):
            if process.status() == psutil.STATUS_STOPPED:
                break
            time.sleep(0.01)
        assert process.status() == psutil.STATUS_STOPPED
    finally:
        process.kill()
