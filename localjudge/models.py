import enum
from datetime import datetime
from typing import Generic, Optional, TypeVar

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import DATABASE_URL

engine = create_async_engine(DATABASE_URL, echo=False)
async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
Base = declarative_base()

T = TypeVar("T")


class Verdict(str, enum.Enum):
    """Judgement or progress marker of a test case.

    The value is the short machine name; ``full_name`` and ``color`` are what
    the operator sees.
    """

    def __new__(cls, code: str, full_name: str, color: str):
        obj = str.__new__(cls, code)
        obj._value_ = code
        obj.full_name = full_name
        obj.color = color
        return obj

    UNKNOWN = ("UKE", "Unknown Error", "#0000ff")
    ACCEPTED = ("AC", "Accepted", "#49cd32")
    PARTIALLY_CORRECT = ("PC", "Partially Correct", "#ed9813")
    PRESENTATION_ERROR = ("PE", "Presentation Error", "#ff778e")
    WRONG_ANSWER = ("WA", "Wrong Answer", "#d3140d")
    TIME_LIMIT = ("TLE", "Time Limit Exceeded", "#0c0066")
    MEMORY_LIMIT = ("MLE", "Memory Limit Exceeded", "#5300a7")
    OUTPUT_LIMIT = ("OLE", "Output Limit Exceeded", "#8300a7")
    RUNTIME_ERROR = ("RE", "Runtime Error", "#1a26c8")
    COMPILE_ERROR = ("CE", "Compile Error", "#8b7400")
    SYSTEM_ERROR = ("SE", "System Error", "#000000")
    WAITING = ("WT", "Waiting", "#4100d9")
    COMPILING = ("CP", "Compiling", "#5e19ff")
    COMPILED = ("CPD", "Compiled", "#7340ff")
    JUDGING = ("JG", "Judging", "#844fff")
    JUDGED = ("JGD", "Judged", "#967fff")
    COMPARING = ("CMP", "Comparing", "#a87dff")
    SKIPPED = ("SK", "Skipped", "#4b4b4b")
    REJECTED = ("RJ", "Rejected", "#4e0000")


RUNNING_VERDICTS = frozenset({
    Verdict.WAITING, Verdict.COMPILING, Verdict.COMPILED,
    Verdict.JUDGING, Verdict.JUDGED, Verdict.COMPARING,
})


def is_running_verdict(verdict: Optional[Verdict]) -> bool:
    return verdict in RUNNING_VERDICTS


def is_expand_verdict(verdict: Optional[Verdict]) -> bool:
    """Whether a finished case deserves the operator's attention."""
    if verdict in (Verdict.ACCEPTED, Verdict.SKIPPED, Verdict.REJECTED):
        return False
    return not is_running_verdict(verdict)


class JudgeResult(Generic[T]):
    """Outcome of a fallible judging step.

    ``Verdict.UNKNOWN`` means the step succeeded and ``data`` carries its
    product; any other verdict is a known, final judgement (data may still be
    attached for diagnostics).
    """

    def __init__(self, verdict: Verdict, message: str = "", data: Optional[T] = None):
        self.verdict = verdict
        self.message = message
        self.data = data

    @classmethod
    def ok(cls, data: T) -> "JudgeResult[T]":
        return cls(Verdict.UNKNOWN, data=data)

    @property
    def known(self) -> bool:
        return self.verdict != Verdict.UNKNOWN

    def __repr__(self) -> str:
        return f"JudgeResult({self.verdict.value}, {self.message!r})"


class ProblemRecord(Base):
    __tablename__ = "problems"

    id = Column(String(64), primary_key=True)
    name = Column(String(256), default="")
    src_path = Column(Text, nullable=False)
    src_hash = Column(String(64), nullable=True)
    checker_path = Column(Text, nullable=True)
    checker_hash = Column(String(64), nullable=True)
    interactor_path = Column(Text, nullable=True)
    interactor_hash = Column(String(64), nullable=True)
    generator_path = Column(Text, nullable=True)
    generator_hash = Column(String(64), nullable=True)
    brute_force_path = Column(Text, nullable=True)
    brute_force_hash = Column(String(64), nullable=True)
    time_limit = Column(Integer, default=1000)  # ms
    memory_limit = Column(Integer, default=512)  # MB
    compiler = Column(Text, nullable=True)
    compiler_args = Column(Text, nullable=True)
    runner = Column(Text, nullable=True)
    runner_args = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class TestCaseRecord(Base):
    __tablename__ = "test_cases"
    __test__ = False

    id = Column(String(36), primary_key=True)
    problem_id = Column(String(64), ForeignKey("problems.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, default=0)
    stdin_use_file = Column(Boolean, default=False)
    stdin_data = Column(Text, default="")
    answer_use_file = Column(Boolean, default=False)
    answer_data = Column(Text, default="")
    is_disabled = Column(Boolean, default=False)
    is_expand = Column(Boolean, default=False)
    verdict = Column(String(8), nullable=True)
    time_used = Column(Float, nullable=True)  # ms
    memory_used = Column(Float, nullable=True)  # MB


async def init_db(db_engine=None):
    async with (db_engine or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
