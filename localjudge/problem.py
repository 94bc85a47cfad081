import os
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

from .cache import IoCache
from .models import JudgeResult, Verdict


def _read_text(path: Union[str, Path]) -> str:
    with open(path, "r", encoding="utf-8", errors="replace", newline="") as f:
        return f.read()


def _write_text(path: Union[str, Path], data: str) -> None:
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(data)


class TcIo:
    """Test data kept either inline or in a file.

    Conversions return a new object; the owner replaces its field with it.
    """

    use_file = False

    def read(self) -> str:
        raise NotImplementedError

    def to_path(self, cache: IoCache) -> str:
        raise NotImplementedError

    def spill(self, cache: IoCache) -> "FileIo":
        raise NotImplementedError

    def inline_small(self, limit: int) -> "TcIo":
        return self

    def dispose(self, cache: IoCache) -> None:
        pass

    def to_dict(self) -> dict:
        raise NotImplementedError

    @staticmethod
    def from_dict(data: dict) -> "TcIo":
        if data.get("use_file"):
            return FileIo(data["data"])
        return InlineIo(data.get("data", ""))


@dataclass
class InlineIo(TcIo):
    data: str = ""

    def read(self) -> str:
        return self.data

    def to_path(self, cache: IoCache) -> str:
        # The caller owns the returned path and must dispose it
        path = cache.create_io()
        _write_text(path, self.data)
        return path

    def spill(self, cache: IoCache) -> "FileIo":
        path = cache.create_io()
        _write_text(path, self.data)
        return FileIo(path)

    def to_dict(self) -> dict:
        return {"use_file": False, "data": self.data}


@dataclass
class FileIo(TcIo):
    path: str = ""
    use_file = True

    def read(self) -> str:
        return _read_text(self.path)

    def to_path(self, cache: IoCache) -> str:
        return self.path

    def spill(self, cache: IoCache) -> "FileIo":
        return self

    def inline_small(self, limit: int) -> TcIo:
        try:
            if os.path.getsize(self.path) > limit:
                return self
            return InlineIo(_read_text(self.path))
        except OSError:
            return self

    def dispose(self, cache: IoCache) -> None:
        cache.dispose(self.path)

    def to_dict(self) -> dict:
        return {"use_file": True, "data": self.path}


def inline_small(io: TcIo, limit: int, cache: IoCache) -> TcIo:
    """Inline a small file-backed io and return its file to the pool."""
    new_io = io.inline_small(limit)
    if new_io is not io:
        io.dispose(cache)
    return new_io


@dataclass
class SourceFile:
    path: str
    hash: Optional[str] = None


@dataclass
class TestResult:
    __test__ = False

    verdict: Verdict = Verdict.UNKNOWN
    time: Optional[float] = None  # ms
    memory: Optional[float] = None  # MB
    stdout: TcIo = field(default_factory=InlineIo)
    stderr: TcIo = field(default_factory=InlineIo)
    msg: List[str] = field(default_factory=list)

    def from_result(self, result: JudgeResult) -> None:
        self.verdict = result.verdict
        if result.message:
            self.msg.append(result.message)

    def dispose(self, cache: IoCache) -> None:
        self.stdout.dispose(cache)
        self.stderr.dispose(cache)

    def to_dict(self) -> dict:
        return {
            "verdict": self.verdict.value,
            "verdict_name": self.verdict.full_name,
            "color": self.verdict.color,
            "time": self.time,
            "memory": self.memory,
            "stdout": self.stdout.to_dict(),
            "stderr": self.stderr.to_dict(),
            "msg": list(self.msg),
        }


@dataclass
class TestCase:
    __test__ = False

    stdin: TcIo = field(default_factory=InlineIo)
    answer: TcIo = field(default_factory=InlineIo)
    is_expand: bool = False
    is_disabled: bool = False
    result: Optional[TestResult] = None

    def to_dict(self) -> dict:
        return {
            "stdin": self.stdin.to_dict(),
            "answer": self.answer.to_dict(),
            "is_expand": self.is_expand,
            "is_disabled": self.is_disabled,
            "result": self.result.to_dict() if self.result else None,
        }


@dataclass
class BfCompareState:
    generator: Optional[SourceFile] = None
    brute_force: Optional[SourceFile] = None
    running: bool = False
    count: int = 0
    msg: str = ""


@dataclass
class CompilationOverrides:
    compiler: Optional[str] = None
    compiler_args: Optional[str] = None
    runner: Optional[str] = None
    runner_args: Optional[str] = None


@dataclass
class Problem:
    id: str
    src: SourceFile
    name: str = ""
    time_limit: int = 1000  # ms
    memory_limit: int = 512  # MB
    checker: Optional[SourceFile] = None
    interactor: Optional[SourceFile] = None
    bf_compare: Optional[BfCompareState] = None
    compilation_settings: Optional[CompilationOverrides] = None
    tcs: Dict[str, TestCase] = field(default_factory=dict)
    tc_order: List[str] = field(default_factory=list)

    def add_tc(self, tc: TestCase, tc_id: Optional[str] = None) -> str:
        tc_id = tc_id or str(uuid.uuid4())
        self.tcs[tc_id] = tc
        self.tc_order.append(tc_id)
        return tc_id

    def remove_tc(self, tc_id: str) -> Optional[TestCase]:
        tc = self.tcs.pop(tc_id, None)
        if tc_id in self.tc_order:
            self.tc_order.remove(tc_id)
        return tc

    def enabled_tc_ids(self) -> List[str]:
        return [tc_id for tc_id in self.tc_order if not self.tcs[tc_id].is_disabled]

    def to_dict(self) -> dict:
        def file_dict(f: Optional[SourceFile]):
            return {"path": f.path, "hash": f.hash} if f else None

        bf = self.bf_compare
        return {
            "id": self.id,
            "name": self.name,
            "src": file_dict(self.src),
            "checker": file_dict(self.checker),
            "interactor": file_dict(self.interactor),
            "time_limit": self.time_limit,
            "memory_limit": self.memory_limit,
            "bf_compare": {
                "generator": file_dict(bf.generator),
                "brute_force": file_dict(bf.brute_force),
                "running": bf.running,
                "count": bf.count,
                "msg": bf.msg,
            } if bf else None,
            "test_cases": [dict(id=tc_id, **self.tcs[tc_id].to_dict()) for tc_id in self.tc_order],
        }
