"""Stress testing against a brute force solution."""
import logging
import shutil
import uuid
from pathlib import Path
from typing import Optional

from .cache import IoCache
from .compiler import Compiler, CompiledProgram
from .config import Settings, get_settings
from .executor import LaunchOptions, ProcessExecutor
from .judge import Judge
from .models import JudgeResult, Verdict
from .problem import FileIo, InlineIo, TcIo, TestCase, TestResult, inline_small
from .process_result import ProcessData, parse
from .tc_runner import ProblemSession

logger = logging.getLogger(__name__)


class BfCompare:
    def __init__(
        self,
        compiler: Compiler,
        judge: Judge,
        executor: ProcessExecutor,
        cache: IoCache,
        settings: Optional[Settings] = None,
        store=None,
    ):
        self.compiler = compiler
        self.judge = judge
        self.executor = executor
        self.cache = cache
        self.settings = settings or get_settings()
        # Persists the test cases the loop finds; optional
        self.store = store

    async def _run_program(
        self,
        program: CompiledProgram,
        stdin: TcIo,
        time_limit: int,
        token,
    ) -> JudgeResult[ProcessData]:
        result = parse(await self.executor.execute(LaunchOptions(
            cmd=program.run_command(),
            timeout=time_limit + self.settings.runner.time_addition,
            token=token,
            stdin=stdin,
        )))
        if result.known and result.data is not None:
            self.cache.dispose([p for p in (result.data.stdout_path, result.data.stderr_path) if p])
        elif result.data is not None:
            self.cache.dispose(result.data.stderr_path)
        return result

    async def start(self, session: ProblemSession, force: Optional[bool] = None) -> None:
        """Generate, brute force and judge until the solution disagrees.

        Returns when a differing case was found and stored, a step failed, or
        the loop was stopped. Progress is visible through ``bf_compare``.
        """
        problem = session.problem
        bf = problem.bf_compare
        if bf is None or bf.generator is None or bf.brute_force is None:
            logger.warning("Brute force comparison of %s needs a generator and a brute force", problem.id)
            return
        if bf.running:
            logger.warning("Brute force comparison of %s is already running", problem.id)
            return

        limits = self.settings.bf_compare
        bf.count = 0
        bf.running = True
        bf.msg = "Compiling..."
        async with session.scope.run() as scope:
            token = scope.token
            try:
                compile_result = await self.compiler.compile_all(problem, force, token, with_bf_compare=True)
                session.compilation_message = compile_result.data.compilation_message if compile_result.data else ""
                if compile_result.known:
                    bf.msg = compile_result.message or "Solution compilation failed"
                    return
                bundle = compile_result.data

                while True:
                    if token.cancelled:
                        break
                    bf.count += 1
                    count = bf.count

                    bf.msg = f"#{count} Running generator..."
                    generator_result = await self._run_program(
                        bundle.generator, InlineIo(""), limits.generator_time_limit, token
                    )
                    if generator_result.known:
                        if generator_result.verdict != Verdict.REJECTED:
                            bf.msg = f"Generator run failed: {generator_result.message or generator_result.verdict.full_name}"
                        break
                    stdin = FileIo(generator_result.data.stdout_path)

                    bf.msg = f"#{count} Running brute force..."
                    brute_force_result = await self._run_program(
                        bundle.brute_force, stdin, limits.brute_force_time_limit, token
                    )
                    if brute_force_result.known:
                        stdin.dispose(self.cache)
                        if brute_force_result.verdict != Verdict.REJECTED:
                            bf.msg = f"Brute force run failed: {brute_force_result.message or brute_force_result.verdict.full_name}"
                        break
                    answer = FileIo(brute_force_result.data.stdout_path)

                    bf.msg = f"#{count} Running solution..."
                    tc = TestCase(stdin=stdin, answer=answer, is_expand=True, result=TestResult(Verdict.COMPILED))
                    await self.judge.run(problem, tc, bundle, token)
                    if tc.result.verdict == Verdict.ACCEPTED:
                        tc.stdin.dispose(self.cache)
                        tc.answer.dispose(self.cache)
                        tc.result.dispose(self.cache)
                        continue
                    if tc.result.verdict == Verdict.REJECTED:
                        tc.stdin.dispose(self.cache)
                        tc.answer.dispose(self.cache)
                        tc.result.dispose(self.cache)
                        break

                    await self._keep(session, tc)
                    bf.msg = f"Found a difference in #{count} run."
                    logger.info("Brute force comparison of %s found a difference in run %d", problem.id, count)
                    break
            except Exception as e:
                logger.exception("Brute force comparison of %s failed", problem.id)
                bf.msg = f"Brute force comparison failed: {e}"
            finally:
                bf.running = False
                if token.cancelled:
                    bf.msg = f"Brute Force comparison stopped by user, {bf.count} runs completed."
                logger.info("Brute force comparison of %s finished: %s", problem.id, bf.msg)

    async def _keep(self, session: ProblemSession, tc: TestCase) -> None:
        limit = self.settings.problem.max_inline_data_length
        tc_id = str(uuid.uuid4())
        tc.stdin = self._persist(inline_small(tc.stdin, limit, self.cache), f"{tc_id}.in")
        tc.answer = self._persist(inline_small(tc.answer, limit, self.cache), f"{tc_id}.ans")
        session.problem.add_tc(tc, tc_id)
        if self.store is not None:
            await self.store.add_test_case(session.problem.id, tc_id, tc, len(session.problem.tc_order) - 1)

    def _persist(self, io: TcIo, name: str) -> TcIo:
        """Move a cached file out of the pool so it outlives the cache."""
        if not io.use_file:
            return io
        target_dir = Path(self.settings.problem.testcase_dir)
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / name
        shutil.move(io.path, target)
        self.cache.release(io.path)
        return FileIo(str(target))

    async def stop(self, session: ProblemSession) -> bool:
        """Stop the loop and wait until it has finished."""
        bf = session.problem.bf_compare
        if bf is None or not bf.running:
            return False
        session.scope.cancel()
        await session.scope.wait_idle()
        logger.info("Brute force comparison of %s stopped", session.problem.id)
        return True
