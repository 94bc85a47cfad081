import asyncio

from localjudge.cancellation import CancellationToken
from localjudge.models import Verdict
from localjudge.problem import InlineIo, Problem, SourceFile, TestCase

ECHO_DOUBLE = """
n = int(input())
print(n * 2)
"""


def _judge_one(compiler, judge, problem, stdin, answer, token=None):
    token = token or CancellationToken()

    async def main():
        compile_result = await compiler.compile_all(problem, None, token)
        assert not compile_result.known, compile_result.message
        tc = TestCase(InlineIo(stdin), InlineIo(answer))
        return await judge.run(problem, tc, compile_result.data, token)

    return asyncio.run(main())


def _problem(write_source, code, **kwargs):
    kwargs.setdefault("time_limit", 5000)
    return Problem(id="p", src=SourceFile(write_source("sol.py", code)), **kwargs)


def test_accepted(compiler, judge, write_source):
    result = _judge_one(compiler, judge, _problem(write_source, ECHO_DOUBLE), "4\n", "8\n")
    assert result.verdict == Verdict.ACCEPTED
    assert result.time is not None
    assert result.stdout == InlineIo("8\n")


def test_wrong_answer(compiler, judge, write_source):
    result = _judge_one(compiler, judge, _problem(write_source, ECHO_DOUBLE), "4\n", "9\n")
    assert result.verdict == Verdict.WRONG_ANSWER


def test_runtime_error(compiler, judge, write_source):
    result = _judge_one(compiler, judge, _problem(write_source, "raise SystemExit(5)\n"), "", "")
    assert result.verdict == Verdict.RUNTIME_ERROR
    assert "Process exited with code: 5." in result.msg


def test_timeout_is_time_limit_not_runtime_error(compiler, judge, settings, write_source):
    settings.runner.time_addition = 200
    problem = _problem(write_source, "import time\ntime.sleep(30)\n", time_limit=1000)
    result = _judge_one(compiler, judge, problem, "", "")
    assert result.verdict == Verdict.TIME_LIMIT


def test_slow_but_finished_run_is_time_limit(compiler, judge, settings, write_source):
    settings.runner.time_addition = 5000
    problem = _problem(write_source, "import time\ntime.sleep(0.6)\n", time_limit=100)
    result = _judge_one(compiler, judge, problem, "", "")
    assert result.verdict == Verdict.TIME_LIMIT
    assert result.time > 100


def test_memory_limit(compiler, judge, write_source):
    problem = _problem(write_source, "import time\ndata = bytearray(64 * 1024 * 1024)\ntime.sleep(0.3)\n", memory_limit=16)
    result = _judge_one(compiler, judge, problem, "", "")
    assert result.verdict == Verdict.MEMORY_LIMIT


def test_cancelled_run_is_rejected(compiler, judge, write_source):
    problem = _problem(write_source, "import time\ntime.sleep(30)\n", time_limit=20000)
    token = CancellationToken()

    async def main():
        compile_result = await compiler.compile_all(problem, None, token)
        tc = TestCase(InlineIo(""), InlineIo(""))
        task = asyncio.ensure_future(judge.run(problem, tc, compile_result.data, token))
        await asyncio.sleep(0.3)
        token.cancel()
        return await task

    result = asyncio.run(main())
    assert result.verdict == Verdict.REJECTED


def test_checker_partially_correct(compiler, judge, write_source):
    checker = write_source("checker.py", """
        import sys
        print("half of the points", file=sys.stderr)
        raise SystemExit(7)
    """)
    problem = _problem(write_source, ECHO_DOUBLE, checker=SourceFile(checker))
    result = _judge_one(compiler, judge, problem, "1\n", "2\n")
    assert result.verdict == Verdict.PARTIALLY_CORRECT
    assert "half of the points" in result.msg


def test_checker_receives_input_output_answer(compiler, judge, write_source):
    checker = write_source("checker.py", """
        import sys
        inp, out, ans = (open(p).read().split() for p in sys.argv[1:4])
        raise SystemExit(0 if int(out[0]) == int(inp[0]) * 2 == int(ans[0]) else 1)
    """)
    problem = _problem(write_source, ECHO_DOUBLE, checker=SourceFile(checker))
    assert _judge_one(compiler, judge, problem, "3\n", "6\n").verdict == Verdict.ACCEPTED
    assert _judge_one(compiler, judge, problem, "3\n", "7\n").verdict == Verdict.WRONG_ANSWER


def test_compile_error_is_reported(compiler, write_source):
    problem = _problem(write_source, "def broken(:\n")
    result = asyncio.run(compiler.compile_all(problem, None, CancellationToken()))
    assert result.verdict == Verdict.COMPILE_ERROR
    assert "SyntaxError" in result.data.compilation_message
    assert problem.src.hash is None


def test_unknown_solution_language_is_system_error(compiler, write_source):
    problem = Problem(id="p", src=SourceFile(write_source("sol.txt", "")))
    result = asyncio.run(compiler.compile_all(problem, None, CancellationToken()))
    assert result.verdict == Verdict.SYSTEM_ERROR


def test_stress_mode_without_generator_is_rejected(compiler, write_source):
    problem = _problem(write_source, ECHO_DOUBLE)
    result = asyncio.run(compiler.compile_all(problem, None, CancellationToken(), with_bf_compare=True))
    assert result.verdict == Verdict.REJECTED


INTERACTOR = """
import sys
n = int(open(sys.argv[1]).read())
print(n, flush=True)
reply = sys.stdin.readline().strip()
with open(sys.argv[2], "w") as out:
    out.write(reply + "\\n")
if reply != str(n * 2):
    print("expected %d, got %r" % (n * 2, reply), file=sys.stderr)
    raise SystemExit(1)
"""


def test_interactive_accepted(compiler, judge, write_source):
    problem = _problem(write_source, ECHO_DOUBLE, interactor=SourceFile(write_source("interactor.py", INTERACTOR)))
    result = _judge_one(compiler, judge, problem, "5\n", "")
    assert result.verdict == Verdict.ACCEPTED
    assert result.stdout == InlineIo("10\n")


def test_interactive_wrong_answer(compiler, judge, write_source):
    problem = _problem(
        write_source, "n = int(input())\nprint(n + 1)\n",
        interactor=SourceFile(write_source("interactor.py", INTERACTOR)),
    )
    result = _judge_one(compiler, judge, problem, "5\n", "")
    assert result.verdict == Verdict.WRONG_ANSWER
    assert any("expected 10" in msg for msg in result.msg)


def test_interactive_solution_failure_wins(compiler, judge, write_source):
    problem = _problem(
        write_source, "input()\nraise SystemExit(3)\n",
        interactor=SourceFile(write_source("interactor.py", INTERACTOR)),
    )
    result = _judge_one(compiler, judge, problem, "5\n", "")
    assert result.verdict == Verdict.RUNTIME_ERROR
    assert any("Interactor:" in msg and "expected 10" in msg for msg in result.msg)


def test_interactive_run_cancelled_before_launch_frees_its_files(compiler, judge, cache, write_source):
    problem = _problem(write_source, ECHO_DOUBLE, interactor=SourceFile(write_source("interactor.py", INTERACTOR)))

    async def main():
        compile_result = await compiler.compile_all(problem, None, CancellationToken())
        token = CancellationToken()
        token.cancel()
        return await judge.run(problem, TestCase(InlineIo("5\n"), InlineIo("")), compile_result.data, token)

    result = asyncio.run(main())
    assert result.verdict == Verdict.REJECTED
    assert not cache.used


def test_sources_with_the_same_file_name_keep_their_own_programs(compiler, judge, write_source):
    first = Problem(id="a", src=SourceFile(write_source("a/main.py", "print('A')\n")), time_limit=5000)
    second = Problem(id="b", src=SourceFile(write_source("b/main.py", "print('B')\n")), time_limit=5000)

    async def compile_both():
        token = CancellationToken()
        for problem in (first, second):
            compile_result = await compiler.compile_all(problem, None, token)
            assert not compile_result.known, compile_result.message

    asyncio.run(compile_both())
    # Compiles are skipped from here on, so each must still find its own artifact
    assert _judge_one(compiler, judge, first, "", "A\n").stdout == InlineIo("A\n")
    assert _judge_one(compiler, judge, second, "", "B\n").verdict == Verdict.ACCEPTED
