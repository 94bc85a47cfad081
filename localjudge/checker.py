import logging
from typing import List

from .cache import IoCache
from .cancellation import CancellationToken
from .config import Settings
from .executor import LaunchOptions, ProcessExecutor
from .models import JudgeResult, Verdict
from .problem import TestCase
from .process_result import ProcessData, parse_checker

logger = logging.getLogger(__name__)


async def run_checker(
    executor: ProcessExecutor,
    cache: IoCache,
    settings: Settings,
    checker_cmd: List[str],
    tc: TestCase,
    token: CancellationToken,
) -> JudgeResult[ProcessData]:
    """Run a testlib-style checker as ``checker input output answer``."""
    owned: List[str] = []
    try:
        paths = []
        for io in (tc.stdin, tc.result.stdout, tc.answer):
            path = io.to_path(cache)
            if not io.use_file:
                owned.append(path)
            paths.append(path)

        logger.info("Running checker %s with arguments %s", checker_cmd, paths)
        result = await executor.execute(LaunchOptions(
            cmd=[*checker_cmd, *paths],
            timeout=settings.runner.checker_timeout,
            token=token,
        ))
        return parse_checker(result)
    except Exception as e:
        logger.warning("Checker setup failed: %s", e)
        return JudgeResult(Verdict.SYSTEM_ERROR, f"Checker setup failed: {e}")
    finally:
        cache.dispose(owned)
