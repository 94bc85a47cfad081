import logging
import os
import platform
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

# Base paths
BASE_DIR = Path(__file__).parent.parent
PACKAGE_DIR = Path(__file__).parent
RES_DIR = PACKAGE_DIR / "res"
DATA_DIR = Path(os.environ.get("LOCALJUDGE_DATA_DIR", BASE_DIR / "data"))
TESTCASE_DIR = DATA_DIR / "testcases"
CACHE_DIR = Path(os.environ.get("LOCALJUDGE_CACHE_DIR", Path(tempfile.gettempdir()) / "localjudge"))

IS_WINDOWS = platform.system() == "Windows"
IS_LINUX = platform.system() == "Linux"

# Compiler configurations
COMPILERS = {
    "c": {"path": "gcc", "args": ["-O2", "-std=c17", "-DONLINE_JUDGE"]},
    "cpp": {"path": "g++", "args": ["-O2", "-std=c++17", "-DONLINE_JUDGE"]},
    "java": {"path": "javac", "args": [], "runner": "java", "runner_args": []},
    "python": {"path": "python3", "args": [], "runner": "python3", "runner_args": []},
    "javascript": {"runner": "node", "runner_args": []},
}
OBJCOPY = "objcopy"

# Judge settings
MAX_CONCURRENT_JUDGES = 4
DEFAULT_TIME_LIMIT = 1000  # ms
DEFAULT_MEMORY_LIMIT = 512  # MB
COMPILE_TIMEOUT = 10000  # ms
CHECKER_TIMEOUT = 10000  # ms
MAX_INLINE_DATA_LENGTH = 64 * 1024  # bytes

# Database
DATABASE_URL = os.environ.get("LOCALJUDGE_DATABASE_URL", f"sqlite+aiosqlite:///{DATA_DIR}/localjudge.db")


@dataclass
class CompilationSettings:
    c_compiler: str = COMPILERS["c"]["path"]
    c_args: str = " ".join(COMPILERS["c"]["args"])
    cpp_compiler: str = COMPILERS["cpp"]["path"]
    cpp_args: str = " ".join(COMPILERS["cpp"]["args"])
    java_compiler: str = COMPILERS["java"]["path"]
    java_args: str = " ".join(COMPILERS["java"]["args"])
    java_runner: str = COMPILERS["java"]["runner"]
    java_run_args: str = ""
    python_compiler: str = COMPILERS["python"]["path"]
    python_args: str = ""
    python_runner: str = COMPILERS["python"]["runner"]
    python_run_args: str = ""
    javascript_runner: str = COMPILERS["javascript"]["runner"]
    javascript_run_args: str = ""
    objcopy: str = OBJCOPY
    timeout: int = COMPILE_TIMEOUT
    # Link the solution against res/wrapper.cpp for precise timing
    use_wrapper: bool = False
    # Also link res/hook.cpp, which redirects file IO to stdin/stdout
    use_hook: bool = False


@dataclass
class CacheSettings:
    directory: Path = CACHE_DIR
    clean_on_startup: bool = True


@dataclass
class RunnerSettings:
    # Grace period added to the time limit before the process is killed
    time_addition: int = 1000  # ms
    checker_timeout: int = CHECKER_TIMEOUT
    unlimited_stack: bool = False
    # Interval between two psutil memory samples
    memory_poll_interval: float = 0.01  # s


@dataclass
class ComparingSettings:
    # 0 disables the Output Limit Exceeded check
    ole_size: float = 3
    regard_pe_as_ac: bool = False
    ignore_error: bool = False


@dataclass
class BfCompareSettings:
    generator_time_limit: int = 2000  # ms
    brute_force_time_limit: int = 2000  # ms


@dataclass
class ProblemSettings:
    default_time_limit: int = DEFAULT_TIME_LIMIT
    default_memory_limit: int = DEFAULT_MEMORY_LIMIT
    max_inline_data_length: int = MAX_INLINE_DATA_LENGTH
    # Where test data too large to inline is kept
    testcase_dir: Path = TESTCASE_DIR
    # always | never | first | firstFailed | same
    expand_behavior: str = "firstFailed"


@dataclass
class Settings:
    compilation: CompilationSettings = field(default_factory=CompilationSettings)
    cache: CacheSettings = field(default_factory=CacheSettings)
    runner: RunnerSettings = field(default_factory=RunnerSettings)
    comparing: ComparingSettings = field(default_factory=ComparingSettings)
    bf_compare: BfCompareSettings = field(default_factory=BfCompareSettings)
    problem: ProblemSettings = field(default_factory=ProblemSettings)


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Process-wide settings, created on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def configure_logging(level: Optional[str] = None) -> None:
    level = level or os.environ.get("LOCALJUDGE_LOG_LEVEL", "INFO")
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
