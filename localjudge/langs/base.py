import hashlib
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from ..cache import IoCache
from ..cancellation import AbortReason, CancellationToken
from ..config import IS_WINDOWS, Settings
from ..executor import LaunchFailure, LaunchOptions, ProcessExecutor
from ..models import JudgeResult, Verdict
from ..problem import CompilationOverrides, SourceFile

logger = logging.getLogger(__name__)


@dataclass
class LangCompileData:
    output_path: str
    hash: str = ""


@dataclass
class CompileOptions:
    # Only the solution itself may be linked against the timing wrapper
    can_use_wrapper: bool = False
    debug: bool = False
    overrides: Optional[CompilationOverrides] = None
    # Compiler diagnostics are appended here, one entry per compiler run
    diagnostics: List[str] = field(default_factory=list)


def split_args(args: Optional[str]) -> List[str]:
    return (args or "").split()


def exe_name(src_path: str) -> str:
    return Path(src_path).stem + (".exe" if IS_WINDOWS else "")


def source_key(src_path: str) -> str:
    return hashlib.sha256(os.path.abspath(src_path).encode("utf-8")).hexdigest()[:16]


class Lang(ABC):
    name: str = ""
    extensions: Tuple[str, ...] = ()
    # Whether the artifact is a native executable that must carry the x bit
    native: bool = False

    def __init__(self, settings: Settings, executor: ProcessExecutor, cache: IoCache):
        self.settings = settings
        self.executor = executor
        self.cache = cache

    def artifact_path(self, src: SourceFile, name: str) -> str:
        """Where the artifact of ``src`` lives.

        Every source path gets its own directory under the bin dir, so two
        sources sharing a file name never overwrite each other's output.
        """
        directory = self.cache.bin_dir / source_key(src.path)
        directory.mkdir(parents=True, exist_ok=True)
        return str(directory / name)

    def check_hash(
        self,
        src: SourceFile,
        output_path: str,
        additional_hash: str,
        force: Optional[bool],
    ) -> Tuple[bool, str]:
        """Decide whether compilation can be skipped.

        Returns ``(skip, fingerprint)``. A stale artifact is removed when
        compilation has to run.
        """
        digest = hashlib.sha256(Path(src.path).read_bytes() + additional_hash.encode("utf-8")).hexdigest()
        artifact_ok = os.path.exists(output_path) and (not self.native or os.access(output_path, os.X_OK))
        if force is False or (force is not True and src.hash == digest and artifact_ok):
            logger.debug("Skipping compilation of %s (hash %s)", src.path, digest[:8])
            return True, digest
        try:
            os.unlink(output_path)
            logger.debug("Removed existing output file %s", output_path)
        except FileNotFoundError:
            pass
        logger.debug("Proceeding with compilation of %s", src.path)
        return False, digest

    async def compile(
        self,
        src: SourceFile,
        token: CancellationToken,
        force: Optional[bool] = None,
        options: Optional[CompileOptions] = None,
    ) -> JudgeResult[LangCompileData]:
        options = options or CompileOptions()
        try:
            return await self._compile(src, token, force, options)
        except Exception as e:
            logger.exception("Compilation of %s failed", src.path)
            if token.cancelled:
                return JudgeResult(Verdict.REJECTED, "Compilation aborted by user.")
            options.diagnostics.append(str(e))
            return JudgeResult(Verdict.SYSTEM_ERROR, str(e))

    @abstractmethod
    async def _compile(
        self,
        src: SourceFile,
        token: CancellationToken,
        force: Optional[bool],
        options: CompileOptions,
    ) -> JudgeResult[LangCompileData]:
        ...

    @abstractmethod
    def get_run_command(self, target: str, overrides: Optional[CompilationOverrides] = None) -> List[str]:
        ...

    async def _execute_compiler(
        self, cmd: List[str], token: CancellationToken, options: CompileOptions
    ) -> Optional[JudgeResult]:
        """Run one compiler command; ``None`` means it succeeded."""
        logger.info("Compile command: %s", " ".join(cmd))
        result = await self.executor.execute(LaunchOptions(
            cmd=cmd,
            timeout=self.settings.compilation.timeout,
            token=token,
            cwd=str(self.cache.bin_dir),
        ))
        if isinstance(result, LaunchFailure):
            options.diagnostics.append(result.message)
            return JudgeResult(Verdict.SYSTEM_ERROR, f"Failed to launch compiler: {result.message}")

        try:
            output = "\n".join(
                Path(p).read_text(encoding="utf-8", errors="replace").strip()
                for p in (result.stdout_path, result.stderr_path) if p
            ).strip()
        finally:
            self.cache.dispose([p for p in (result.stdout_path, result.stderr_path) if p])
        if output:
            options.diagnostics.append(output)

        if result.abort_reason == AbortReason.USER_ABORT:
            return JudgeResult(Verdict.REJECTED, "Compilation aborted by user.")
        if result.abort_reason == AbortReason.TIMEOUT:
            return JudgeResult(Verdict.COMPILE_ERROR, "Compilation failed because of timeout")
        if result.code_or_signal != 0:
            return JudgeResult(Verdict.COMPILE_ERROR, "")
        return None

    def _check_artifact(self, output_path: str, digest: str) -> JudgeResult[LangCompileData]:
        data = LangCompileData(output_path, digest)
        if not os.path.exists(output_path):
            return JudgeResult(Verdict.COMPILE_ERROR, "Compiler produced no output file", data)
        if self.native and not os.access(output_path, os.X_OK):
            return JudgeResult(Verdict.COMPILE_ERROR, "Compiled output is not executable", data)
        return JudgeResult.ok(data)
