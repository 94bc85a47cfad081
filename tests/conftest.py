import os
import sys
import tempfile
import textwrap
from pathlib import Path
from typing import Callable

import pytest

# Module level paths are read on import, keep them away from the checkout
_TMP_ROOT = tempfile.mkdtemp(prefix="localjudge-tests-")
os.environ.setdefault("LOCALJUDGE_DATA_DIR", os.path.join(_TMP_ROOT, "data"))
os.environ.setdefault("LOCALJUDGE_CACHE_DIR", os.path.join(_TMP_ROOT, "cache"))

from localjudge.cache import IoCache  # noqa: E402
from localjudge.compiler import Compiler  # noqa: E402
from localjudge.config import Settings  # noqa: E402
from localjudge.executor import ProcessExecutor  # noqa: E402
from localjudge.judge import Judge  # noqa: E402
from localjudge.langs import LangRegistry  # noqa: E402


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with an isolated cache and Python pointed at this interpreter."""
    settings = Settings()
    settings.cache.directory = tmp_path / "cache"
    settings.compilation.python_compiler = sys.executable
    settings.compilation.python_runner = sys.executable
    settings.problem.testcase_dir = tmp_path / "testcases"
    return settings


@pytest.fixture
def cache(settings: Settings) -> IoCache:
    return IoCache(settings.cache.directory)


@pytest.fixture
def executor(cache: IoCache, settings: Settings) -> ProcessExecutor:
    return ProcessExecutor(cache, settings)


@pytest.fixture
def registry(settings: Settings, executor: ProcessExecutor, cache: IoCache) -> LangRegistry:
    return LangRegistry(settings, executor, cache)


@pytest.fixture
def compiler(registry: LangRegistry) -> Compiler:
    return Compiler(registry)


@pytest.fixture
def judge(executor: ProcessExecutor, cache: IoCache, settings: Settings) -> Judge:
    return Judge(executor, cache, settings)


@pytest.fixture
def write_source(tmp_path: Path) -> Callable[[str, str], str]:
    """Write a program under the test's temp dir and return its path."""
    src_dir = tmp_path / "src"
    src_dir.mkdir(exist_ok=True)

    def _write(name: str, code: str) -> str:
        path = src_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(code).lstrip(), encoding="utf-8")
        return str(path)

    return _write
