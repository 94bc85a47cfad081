"""Problem and test case persistence on the async ORM."""
import logging
from typing import List, Optional

from sqlalchemy import delete, func, select

from .models import ProblemRecord, TestCaseRecord, Verdict, async_session, is_running_verdict
from .problem import (
    BfCompareState,
    CompilationOverrides,
    Problem,
    SourceFile,
    TcIo,
    TestCase,
    TestResult,
)

logger = logging.getLogger(__name__)


def _source(path: Optional[str], digest: Optional[str]) -> Optional[SourceFile]:
    return SourceFile(path, digest) if path else None


def _fill_record(record: ProblemRecord, problem: Problem) -> None:
    record.name = problem.name
    record.src_path = problem.src.path
    record.src_hash = problem.src.hash
    record.checker_path = problem.checker.path if problem.checker else None
    record.checker_hash = problem.checker.hash if problem.checker else None
    record.interactor_path = problem.interactor.path if problem.interactor else None
    record.interactor_hash = problem.interactor.hash if problem.interactor else None
    bf = problem.bf_compare
    record.generator_path = bf.generator.path if bf and bf.generator else None
    record.generator_hash = bf.generator.hash if bf and bf.generator else None
    record.brute_force_path = bf.brute_force.path if bf and bf.brute_force else None
    record.brute_force_hash = bf.brute_force.hash if bf and bf.brute_force else None
    record.time_limit = problem.time_limit
    record.memory_limit = problem.memory_limit
    overrides = problem.compilation_settings or CompilationOverrides()
    record.compiler = overrides.compiler
    record.compiler_args = overrides.compiler_args
    record.runner = overrides.runner
    record.runner_args = overrides.runner_args


def _tc_record(problem_id: str, tc_id: str, tc: TestCase, position: int) -> TestCaseRecord:
    result = tc.result
    # Live progress markers mean nothing after a restart
    verdict = result.verdict.value if result and not is_running_verdict(result.verdict) else None
    return TestCaseRecord(
        id=tc_id,
        problem_id=problem_id,
        position=position,
        stdin_use_file=tc.stdin.use_file,
        stdin_data=tc.stdin.to_dict()["data"],
        answer_use_file=tc.answer.use_file,
        answer_data=tc.answer.to_dict()["data"],
        is_disabled=tc.is_disabled,
        is_expand=tc.is_expand,
        verdict=verdict,
        time_used=result.time if verdict else None,
        memory_used=result.memory if verdict else None,
    )


def _to_problem(record: ProblemRecord, tc_records: List[TestCaseRecord]) -> Problem:
    overrides = None
    if any((record.compiler, record.compiler_args, record.runner, record.runner_args)):
        overrides = CompilationOverrides(record.compiler, record.compiler_args, record.runner, record.runner_args)
    bf = None
    if record.generator_path or record.brute_force_path:
        bf = BfCompareState(
            generator=_source(record.generator_path, record.generator_hash),
            brute_force=_source(record.brute_force_path, record.brute_force_hash),
        )
    problem = Problem(
        id=record.id,
        name=record.name or "",
        src=SourceFile(record.src_path, record.src_hash),
        time_limit=record.time_limit,
        memory_limit=record.memory_limit,
        checker=_source(record.checker_path, record.checker_hash),
        interactor=_source(record.interactor_path, record.interactor_hash),
        bf_compare=bf,
        compilation_settings=overrides,
    )
    for r in tc_records:
        result = None
        if r.verdict:
            result = TestResult(Verdict(r.verdict), r.time_used, r.memory_used)
        problem.add_tc(TestCase(
            stdin=TcIo.from_dict({"use_file": r.stdin_use_file, "data": r.stdin_data or ""}),
            answer=TcIo.from_dict({"use_file": r.answer_use_file, "data": r.answer_data or ""}),
            is_expand=bool(r.is_expand),
            is_disabled=bool(r.is_disabled),
            result=result,
        ), r.id)
    return problem


class ProblemStore:
    def __init__(self, sessionmaker=None):
        self.sessionmaker = sessionmaker or async_session

    async def save(self, problem: Problem) -> None:
        """Upsert a problem and replace its test cases."""
        async with self.sessionmaker() as session:
            record = await session.get(ProblemRecord, problem.id)
            if record is None:
                record = ProblemRecord(id=problem.id)
                session.add(record)
            _fill_record(record, problem)
            await session.execute(delete(TestCaseRecord).where(TestCaseRecord.problem_id == problem.id))
            for position, tc_id in enumerate(problem.tc_order):
                session.add(_tc_record(problem.id, tc_id, problem.tcs[tc_id], position))
            await session.commit()
        logger.debug("Saved problem %s with %d test cases", problem.id, len(problem.tc_order))

    async def load(self, problem_id: str) -> Optional[Problem]:
        async with self.sessionmaker() as session:
            record = await session.get(ProblemRecord, problem_id)
            if record is None:
                return None
            result = await session.execute(
                select(TestCaseRecord)
                .where(TestCaseRecord.problem_id == problem_id)
                .order_by(TestCaseRecord.position)
            )
            return _to_problem(record, result.scalars().all())

    async def list(self) -> List[Problem]:
        async with self.sessionmaker() as session:
            result = await session.execute(select(ProblemRecord.id).order_by(ProblemRecord.id))
            problem_ids = result.scalars().all()
        problems = []
        for problem_id in problem_ids:
            problem = await self.load(problem_id)
            if problem is not None:
                problems.append(problem)
        return problems

    async def delete(self, problem_id: str) -> bool:
        async with self.sessionmaker() as session:
            record = await session.get(ProblemRecord, problem_id)
            if record is None:
                return False
            await session.execute(delete(TestCaseRecord).where(TestCaseRecord.problem_id == problem_id))
            await session.delete(record)
            await session.commit()
        logger.info("Deleted problem %s", problem_id)
        return True

    async def add_test_case(self, problem_id: str, tc_id: str, tc: TestCase, position: Optional[int] = None) -> None:
        async with self.sessionmaker() as session:
            if position is None:
                result = await session.execute(
                    select(func.count()).select_from(TestCaseRecord).where(TestCaseRecord.problem_id == problem_id)
                )
                position = result.scalar_one()
            await session.merge(_tc_record(problem_id, tc_id, tc, position))
            await session.commit()
        logger.debug("Stored test case %s of problem %s", tc_id, problem_id)

    async def remove_test_case(self, problem_id: str, tc_id: str) -> bool:
        async with self.sessionmaker() as session:
            result = await session.execute(
                delete(TestCaseRecord)
                .where(TestCaseRecord.problem_id == problem_id)
                .where(TestCaseRecord.id == tc_id)
            )
            await session.commit()
            return result.rowcount > 0
