import logging
import os
import uuid
from asyncio import Semaphore
from pathlib import Path
from typing import Dict, Optional

from fastapi import BackgroundTasks, FastAPI, Form, HTTPException

from .bf_compare import BfCompare
from .cache import IoCache
from .compiler import Compiler
from .config import DATA_DIR, MAX_CONCURRENT_JUDGES, configure_logging, get_settings
from .executor import ProcessExecutor
from .judge import Judge
from .langs import LangRegistry
from .models import init_db
from .problem import (
    BfCompareState,
    CompilationOverrides,
    FileIo,
    InlineIo,
    Problem,
    SourceFile,
    TcIo,
    TestCase,
)
from .store import ProblemStore
from .tc_runner import ProblemSession, TcRunner

logger = logging.getLogger(__name__)

app = FastAPI(title="Local Judge")

# Semaphore for concurrent judge limit
judge_semaphore = Semaphore(MAX_CONCURRENT_JUDGES)

settings = get_settings()
cache = IoCache(settings.cache.directory)
executor = ProcessExecutor(cache, settings)
registry = LangRegistry(settings, executor, cache)
compiler = Compiler(registry)
judge = Judge(executor, cache, settings)
store = ProblemStore()
tc_runner = TcRunner(compiler, judge, executor, cache, settings)
bf_compare = BfCompare(compiler, judge, executor, cache, settings, store)

# Loaded problems with their live run state
sessions: Dict[str, ProblemSession] = {}


@app.on_event("startup")
async def startup():
    configure_logging()
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    await init_db()
    cache.ensure_dir()
    if settings.cache.clean_on_startup:
        cache.cleanup()


@app.on_event("shutdown")
async def shutdown():
    for session in sessions.values():
        session.scope.cancel()


async def get_problem_session(problem_id: str) -> ProblemSession:
    session = sessions.get(problem_id)
    if session is None:
        problem = await store.load(problem_id)
        if problem is None:
            raise HTTPException(404, "Problem not found")
        session = sessions[problem_id] = ProblemSession(problem)
    return session


def _optional_file(path: Optional[str], what: str) -> Optional[SourceFile]:
    if not path:
        return None
    if not os.path.isfile(path):
        raise HTTPException(400, f"{what} file not found: {path}")
    return SourceFile(path)


def _keep_hash(new: Optional[SourceFile], old: Optional[SourceFile]) -> Optional[SourceFile]:
    if new is not None and old is not None and new.path == old.path:
        new.hash = old.hash
    return new


def _make_io(data: str, name: str) -> TcIo:
    if len(data) <= settings.problem.max_inline_data_length:
        return InlineIo(data)
    target_dir = Path(settings.problem.testcase_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / name
    with open(target, "w", encoding="utf-8", newline="") as f:
        f.write(data)
    return FileIo(str(target))


# ===== Problem APIs =====

@app.post("/api/problems")
async def create_problem(
    problem_id: str = Form(...),
    src_path: str = Form(...),
    name: str = Form(""),
    time_limit: Optional[int] = Form(None),
    memory_limit: Optional[int] = Form(None),
    checker_path: Optional[str] = Form(None),
    interactor_path: Optional[str] = Form(None),
    generator_path: Optional[str] = Form(None),
    brute_force_path: Optional[str] = Form(None),
    compiler_path: Optional[str] = Form(None),
    compiler_args: Optional[str] = Form(None),
    runner: Optional[str] = Form(None),
    runner_args: Optional[str] = Form(None),
):
    """Create a problem, or replace one while keeping its test cases"""
    src = _optional_file(src_path, "Source")
    if registry.get_lang(src_path, ignore_error=True) is None:
        raise HTTPException(400, f"Unsupported language: {os.path.basename(src_path)}")

    problem = Problem(
        id=problem_id,
        src=src,
        name=name or Path(src_path).stem,
        time_limit=time_limit or settings.problem.default_time_limit,
        memory_limit=memory_limit or settings.problem.default_memory_limit,
        checker=_optional_file(checker_path, "Checker"),
        interactor=_optional_file(interactor_path, "Interactor"),
    )
    if generator_path or brute_force_path:
        problem.bf_compare = BfCompareState(
            generator=_optional_file(generator_path, "Generator"),
            brute_force=_optional_file(brute_force_path, "Brute force"),
        )
    if any((compiler_path, compiler_args, runner, runner_args)):
        problem.compilation_settings = CompilationOverrides(compiler_path, compiler_args, runner, runner_args)

    existing = sessions.get(problem_id)
    old = existing.problem if existing else await store.load(problem_id)
    if old is not None:
        if existing is not None and existing.scope.active:
            await tc_runner.stop_tcs(existing)
        problem.tcs = old.tcs
        problem.tc_order = old.tc_order
        problem.src = _keep_hash(problem.src, old.src)
        problem.checker = _keep_hash(problem.checker, old.checker)
        problem.interactor = _keep_hash(problem.interactor, old.interactor)

    sessions[problem_id] = ProblemSession(problem)
    await store.save(problem)
    logger.info("Problem %s saved (%s)", problem_id, src_path)
    return {
        "success": True,
        "problem_id": problem_id,
        "test_case_count": len(problem.tc_order),
    }


@app.get("/api/problems")
async def list_problems():
    """List all problems"""
    return [
        {
            "id": p.id,
            "name": p.name,
            "src": p.src.path,
            "time_limit": p.time_limit,
            "memory_limit": p.memory_limit,
            "test_case_count": len(p.tc_order),
            "has_checker": p.checker is not None,
            "has_interactor": p.interactor is not None,
        }
        for p in (sessions[r.id].problem if r.id in sessions else r for r in await store.list())
    ]


@app.get("/api/problems/{problem_id}")
async def get_problem(problem_id: str):
    """Get problem state, including live results"""
    session = await get_problem_session(problem_id)
    return session.to_dict()


@app.delete("/api/problems/{problem_id}")
async def delete_problem(problem_id: str):
    """Delete a problem"""
    session = sessions.pop(problem_id, None)
    if session is not None:
        await tc_runner.stop_tcs(session)
        for tc in session.problem.tcs.values():
            if tc.result is not None:
                tc.result.dispose(cache)
    await store.delete(problem_id)
    return {"success": True}


# ===== Test case APIs =====

@app.post("/api/problems/{problem_id}/testcases")
async def add_testcase(problem_id: str, stdin: str = Form(""), answer: str = Form("")):
    session = await get_problem_session(problem_id)
    tc_id = str(uuid.uuid4())
    tc = TestCase(stdin=_make_io(stdin, f"{tc_id}.in"), answer=_make_io(answer, f"{tc_id}.ans"))
    session.problem.add_tc(tc, tc_id)
    await store.add_test_case(problem_id, tc_id, tc, len(session.problem.tc_order) - 1)
    return {"success": True, "tc_id": tc_id}


@app.patch("/api/problems/{problem_id}/testcases/{tc_id}")
async def update_testcase(problem_id: str, tc_id: str, is_disabled: Optional[bool] = Form(None)):
    session = await get_problem_session(problem_id)
    tc = session.problem.tcs.get(tc_id)
    if tc is None:
        raise HTTPException(404, "Test case not found")
    if is_disabled is not None:
        tc.is_disabled = is_disabled
    await store.save(session.problem)
    return {"success": True, "tc_id": tc_id, "is_disabled": tc.is_disabled}


@app.delete("/api/problems/{problem_id}/testcases/{tc_id}")
async def delete_testcase(problem_id: str, tc_id: str):
    session = await get_problem_session(problem_id)
    if tc_id not in session.problem.tcs:
        raise HTTPException(404, "Test case not found")
    if session.scope.active:
        raise HTTPException(409, "Problem is running")
    tc = session.problem.remove_tc(tc_id)
    if tc.result is not None:
        tc.result.dispose(cache)
    await store.remove_test_case(problem_id, tc_id)
    return {"success": True}


# ===== Judge APIs =====

async def run_problem(session: ProblemSession, force: Optional[bool], tc_id: Optional[str] = None):
    """Background task to judge one or all test cases"""
    async with judge_semaphore:
        if tc_id is None:
            await tc_runner.run_tcs(session, force)
        else:
            await tc_runner.run_tc(session, tc_id, force)
        await store.save(session.problem)


@app.post("/api/problems/{problem_id}/run")
async def run_testcases(
    problem_id: str,
    background_tasks: BackgroundTasks,
    force: Optional[bool] = Form(None),
):
    session = await get_problem_session(problem_id)
    background_tasks.add_task(run_problem, session, force)
    return {"success": True, "status": "Running"}


@app.post("/api/problems/{problem_id}/testcases/{tc_id}/run")
async def run_testcase(
    problem_id: str,
    tc_id: str,
    background_tasks: BackgroundTasks,
    force: Optional[bool] = Form(None),
):
    session = await get_problem_session(problem_id)
    if tc_id not in session.problem.tcs:
        raise HTTPException(404, "Test case not found")
    background_tasks.add_task(run_problem, session, force, tc_id)
    return {"success": True, "status": "Running"}


@app.post("/api/problems/{problem_id}/testcases/{tc_id}/debug")
async def debug_testcase(problem_id: str, tc_id: str):
    """Start the solution stopped so a debugger can attach"""
    session = await get_problem_session(problem_id)
    if tc_id not in session.problem.tcs:
        raise HTTPException(404, "Test case not found")
    result = await tc_runner.debug_tc(session, tc_id)
    if result.known:
        return {"success": False, "verdict": result.verdict.value, "message": result.message}
    return {"success": True, "pid": result.data}


@app.post("/api/problems/{problem_id}/stop")
async def stop_testcases(problem_id: str, only_one: bool = Form(False)):
    session = await get_problem_session(problem_id)
    await tc_runner.stop_tcs(session, only_one)
    if not only_one:
        await store.save(session.problem)
    return {"success": True}


# ===== Brute force comparison APIs =====

async def run_bf_compare(session: ProblemSession, force: Optional[bool]):
    async with judge_semaphore:
        await bf_compare.start(session, force)


@app.post("/api/problems/{problem_id}/bf-compare/start")
async def start_bf_compare(
    problem_id: str,
    background_tasks: BackgroundTasks,
    generator_path: Optional[str] = Form(None),
    brute_force_path: Optional[str] = Form(None),
    force: Optional[bool] = Form(None),
):
    session = await get_problem_session(problem_id)
    problem = session.problem
    if problem.bf_compare is None:
        problem.bf_compare = BfCompareState()
    bf = problem.bf_compare
    if bf.running:
        raise HTTPException(409, "Brute force comparison is already running")
    if generator_path:
        bf.generator = _keep_hash(_optional_file(generator_path, "Generator"), bf.generator)
    if brute_force_path:
        bf.brute_force = _keep_hash(_optional_file(brute_force_path, "Brute force"), bf.brute_force)
    if bf.generator is None or bf.brute_force is None:
        raise HTTPException(400, "Please choose both generator and brute force files first")
    await store.save(problem)

    background_tasks.add_task(run_bf_compare, session, force)
    return {"success": True, "status": "Running"}


@app.post("/api/problems/{problem_id}/bf-compare/stop")
async def stop_bf_compare(problem_id: str):
    session = await get_problem_session(problem_id)
    if not await bf_compare.stop(session):
        raise HTTPException(409, "Brute force comparison is not running")
    bf = session.problem.bf_compare
    return {"success": True, "count": bf.count, "msg": bf.msg}


# ===== Config APIs =====

@app.get("/api/languages")
async def get_languages():
    """Get supported languages and their source extensions"""
    return {lang.name: {"extensions": list(lang.extensions)} for lang in registry.langs}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
