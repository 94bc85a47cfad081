"""Per test case judging: execution, limit checks and comparison."""
import logging
import os
from pathlib import Path
from typing import Optional

from .cache import IoCache
from .cancellation import CancellationToken
from .checker import run_checker
from .comparator import compare_outputs
from .compiler import CompileBundle
from .config import Settings, get_settings
from .executor import LaunchOptions, ProcessExecutor
from .models import JudgeResult, Verdict
from .problem import FileIo, InlineIo, Problem, TestCase, TestResult, inline_small
from .process_result import ProcessData, parse, parse_checker

logger = logging.getLogger(__name__)


class Judge:
    def __init__(self, executor: ProcessExecutor, cache: IoCache, settings: Optional[Settings] = None):
        self.executor = executor
        self.cache = cache
        self.settings = settings or get_settings()

    async def do_run(
        self,
        problem: Problem,
        tc: TestCase,
        bundle: CompileBundle,
        token: CancellationToken,
    ) -> JudgeResult[ProcessData]:
        """Execute the solution once, through the interactor when there is one.

        When the outcome carries data its ``stdout_path`` is what the solution
        produced (the interactor's output file in interactive mode).
        """
        cmd = bundle.src.run_command(problem.compilation_settings)
        options = LaunchOptions(
            cmd=cmd,
            timeout=problem.time_limit + self.settings.runner.time_addition,
            token=token,
            stdin=tc.stdin,
            cwd=os.path.dirname(bundle.src.data.output_path) or None,
        )
        if bundle.interactor is None:
            return parse(await self.executor.execute(options))
        return await self._run_interactive(options, tc, bundle, token)

    async def _run_interactive(
        self,
        options: LaunchOptions,
        tc: TestCase,
        bundle: CompileBundle,
        token: CancellationToken,
    ) -> JudgeResult[ProcessData]:
        input_path = tc.stdin.to_path(self.cache)
        output_path = self.cache.create_io()
        Path(output_path).write_bytes(b"")
        try:
            sol_outcome, int_outcome = await self.executor.launch_with_pipe(
                LaunchOptions(cmd=options.cmd, timeout=options.timeout, token=token, cwd=options.cwd),
                LaunchOptions(
                    cmd=[*bundle.interactor.run_command(), input_path, output_path],
                    timeout=options.timeout,
                    token=token,
                ),
            )
        finally:
            if not tc.stdin.use_file:
                self.cache.dispose(input_path)

        sol_result = parse(sol_outcome)
        int_result = parse_checker(int_outcome)
        int_message = int_result.message
        if int_result.data is not None:
            int_stderr = Path(int_result.data.stderr_path).read_text(encoding="utf-8", errors="replace").strip()
            # Piped runs capture no stdout; runs aborted before launch do
            self.cache.dispose([p for p in (int_result.data.stdout_path, int_result.data.stderr_path) if p])
            if int_stderr:
                int_message = f"{int_message}\n{int_stderr}".strip()

        data = sol_result.data
        if data is not None:
            if data.stdout_path and data.stdout_path != output_path:
                self.cache.dispose(data.stdout_path)
            data.stdout_path = output_path
        else:
            self.cache.dispose(output_path)

        # The solution's own failure is reported first
        if sol_result.known:
            message = sol_result.message
            if int_result.verdict != Verdict.ACCEPTED and int_message:
                message = f"{message}\nInteractor: {int_message}".strip()
            return JudgeResult(sol_result.verdict, message, data)
        if int_result.verdict != Verdict.ACCEPTED:
            return JudgeResult(int_result.verdict, int_message, data)
        return JudgeResult.ok(data)

    async def run(
        self,
        problem: Problem,
        tc: TestCase,
        bundle: CompileBundle,
        token: CancellationToken,
    ) -> TestResult:
        """Judge ``tc`` against an already compiled bundle.

        ``tc.result`` is updated in place at every step so pollers see the
        progress; it is also returned.
        """
        if tc.result is None:
            tc.result = TestResult()
        result = tc.result
        try:
            result.verdict = Verdict.JUDGING
            run_result = await self.do_run(problem, tc, bundle, token)
            if run_result.data is not None:
                data = run_result.data
                result.time = data.time
                result.memory = data.memory
                result.stdout = FileIo(data.stdout_path) if data.stdout_path else InlineIo()
                result.stderr = FileIo(data.stderr_path)
            if run_result.known:
                result.from_result(run_result)
                return result

            result.verdict = Verdict.JUDGED
            if result.time and result.time > problem.time_limit:
                result.verdict = Verdict.TIME_LIMIT
            elif result.memory and result.memory > problem.memory_limit:
                result.verdict = Verdict.MEMORY_LIMIT
            else:
                result.verdict = Verdict.COMPARING
                await self._compare(tc, bundle, token)
        except Exception as e:
            logger.exception("Judging of a test case of problem %s failed", problem.id)
            result.verdict = Verdict.SYSTEM_ERROR
            result.msg.append(f"Runtime error occurred: {e}")
        finally:
            limit = self.settings.problem.max_inline_data_length
            result.stdout = inline_small(result.stdout, limit, self.cache)
            result.stderr = inline_small(result.stderr, limit, self.cache)
        logger.debug("Test case judged as %s", result.verdict.value)
        return result

    async def _compare(self, tc: TestCase, bundle: CompileBundle, token: CancellationToken) -> None:
        result = tc.result
        if bundle.interactor is not None:
            # The interactor has already judged the exchange
            result.from_result(JudgeResult(Verdict.ACCEPTED))
        elif bundle.checker is not None:
            checker_result = await run_checker(
                self.executor, self.cache, self.settings, bundle.checker.run_command(), tc, token
            )
            result.from_result(checker_result)
            if checker_result.data is not None:
                data = checker_result.data
                stderr = Path(data.stderr_path).read_text(encoding="utf-8", errors="replace").strip()
                if stderr:
                    result.msg.append(stderr)
                self.cache.dispose([p for p in (data.stdout_path, data.stderr_path) if p])
        else:
            result.from_result(compare_outputs(
                result.stdout.read(),
                tc.answer.read(),
                result.stderr.read(),
                self.settings.comparing,
            ))
