import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from .cache import IoCache
from .cancellation import ONLY_ONE, CancellationScope
from .compiler import Compiler
from .config import Settings, get_settings
from .executor import LaunchOptions, ProcessExecutor
from .judge import Judge
from .models import JudgeResult, Verdict, is_expand_verdict, is_running_verdict
from .problem import FileIo, Problem, TestResult

logger = logging.getLogger(__name__)


@dataclass
class ProblemSession:
    """A loaded problem together with the state of its in-flight run."""

    problem: Problem
    scope: CancellationScope = field(default_factory=CancellationScope)
    compilation_message: str = ""

    def to_dict(self) -> dict:
        data = self.problem.to_dict()
        data["running"] = self.scope.active
        data["compilation_message"] = self.compilation_message
        return data


class TcRunner:
    def __init__(
        self,
        compiler: Compiler,
        judge: Judge,
        executor: ProcessExecutor,
        cache: IoCache,
        settings: Optional[Settings] = None,
    ):
        self.compiler = compiler
        self.judge = judge
        self.executor = executor
        self.cache = cache
        self.settings = settings or get_settings()

    def _reset_result(self, session: ProblemSession, tc_id: str) -> TestResult:
        tc = session.problem.tcs[tc_id]
        if tc.result is not None:
            tc.result.dispose(self.cache)
        tc.result = TestResult(Verdict.COMPILING)
        return tc.result

    async def run_tc(self, session: ProblemSession, tc_id: str, force: Optional[bool] = None) -> None:
        problem = session.problem
        async with session.scope.run() as scope:
            tc = problem.tcs[tc_id]
            result = self._reset_result(session, tc_id)
            tc.is_expand = False

            compile_result = await self.compiler.compile_all(problem, force, scope.token)
            session.compilation_message = compile_result.data.compilation_message if compile_result.data else ""
            if compile_result.known:
                result.from_result(compile_result)
                tc.is_expand = True
                return
            result.verdict = Verdict.COMPILED

            await self.judge.run(problem, tc, compile_result.data, scope.token)
            tc.is_expand = is_expand_verdict(result.verdict)
            logger.info("Test case %s of problem %s: %s", tc_id, problem.id, result.verdict.value)

    async def run_tcs(self, session: ProblemSession, force: Optional[bool] = None) -> None:
        """Compile once and judge every enabled test case in order."""
        problem = session.problem
        async with session.scope.run() as scope:
            tc_ids = problem.enabled_tc_ids()
            expand_memo: Dict[str, bool] = {}
            for tc_id in tc_ids:
                self._reset_result(session, tc_id)
                expand_memo[tc_id] = problem.tcs[tc_id].is_expand
                problem.tcs[tc_id].is_expand = False

            compile_result = await self.compiler.compile_all(problem, force, scope.token)
            session.compilation_message = compile_result.data.compilation_message if compile_result.data else ""
            if compile_result.known:
                for tc_id in tc_ids:
                    problem.tcs[tc_id].result.from_result(compile_result)
                return
            for tc_id in tc_ids:
                problem.tcs[tc_id].result.verdict = Verdict.COMPILED

            expand_behavior = self.settings.problem.expand_behavior
            has_any_expanded = False
            for tc_id in tc_ids:
                tc = problem.tcs.get(tc_id)
                if tc is None or tc.result is None:
                    continue
                if scope.token.cancelled:
                    if scope.token.reason == ONLY_ONE:
                        scope.renew()
                    else:
                        tc.result.verdict = Verdict.SKIPPED
                        continue

                await self.judge.run(problem, tc, compile_result.data, scope.token)
                if (
                    scope.token.cancelled
                    and scope.token.reason == ONLY_ONE
                    and tc.result.verdict == Verdict.REJECTED
                ):
                    tc.result.verdict = Verdict.SKIPPED
                if expand_behavior == "always":
                    tc.is_expand = True
                elif expand_behavior == "never":
                    tc.is_expand = False
                elif expand_behavior == "first":
                    tc.is_expand = not has_any_expanded
                elif expand_behavior == "firstFailed":
                    tc.is_expand = not has_any_expanded and is_expand_verdict(tc.result.verdict)
                elif expand_behavior == "same":
                    tc.is_expand = expand_memo[tc_id]
                has_any_expanded = has_any_expanded or tc.is_expand
            logger.info(
                "Problem %s judged: %s",
                problem.id,
                " ".join(problem.tcs[tc_id].result.verdict.value for tc_id in tc_ids if tc_id in problem.tcs),
            )

    async def stop_tcs(self, session: ProblemSession, only_one: bool = False) -> None:
        """Abort the active run, or with ``only_one`` just its current case."""
        if session.scope.cancel(ONLY_ONE if only_one else None):
            if only_one:
                return
            await session.scope.wait_idle()
        for tc in session.problem.tcs.values():
            if tc.result is not None and is_running_verdict(tc.result.verdict):
                tc.result.verdict = Verdict.REJECTED

    async def debug_tc(self, session: ProblemSession, tc_id: str) -> JudgeResult[int]:
        """Compile with debug info and leave the solution stopped for a debugger.

        Returns the pid of the stopped process.
        """
        problem = session.problem
        async with session.scope.run() as scope:
            tc = problem.tcs[tc_id]
            compile_result = await self.compiler.compile_all(problem, None, scope.token, debug=True)
            session.compilation_message = compile_result.data.compilation_message if compile_result.data else ""
            if compile_result.known:
                return JudgeResult(compile_result.verdict, compile_result.message)

            src = compile_result.data.src
            # A stopped process cannot drain a stdin pipe, so hand it a file
            stdin_path = tc.stdin.to_path(self.cache)
            try:
                launch = await self.executor.launch(
                    LaunchOptions(cmd=src.run_command(problem.compilation_settings), stdin=FileIo(stdin_path)),
                    debug=True,
                )
            except OSError as e:
                return JudgeResult(Verdict.SYSTEM_ERROR, f"Failed to launch the solution: {e}")
            logger.info("Solution of problem %s stopped for debugging (pid %s)", problem.id, launch.pid)
            return JudgeResult.ok(launch.pid)
