import asyncio
import logging
import os
import signal
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

import psutil

from .cache import IoCache
from .cancellation import AbortReason, CancellationToken
from .config import Settings, get_settings
from .problem import TcIo

logger = logging.getLogger(__name__)


@dataclass
class ExecuteResult:
    # Exit code, or the signal name when the process was terminated by one
    code_or_signal: Union[int, str]
    stdout_path: Optional[str]
    stderr_path: str
    time: float  # ms
    memory: Optional[float] = None  # MB
    abort_reason: Optional[AbortReason] = None


@dataclass
class LaunchFailure:
    message: str


ExecuteOutcome = Union[ExecuteResult, LaunchFailure]


@dataclass
class LaunchOptions:
    cmd: List[str]
    timeout: Optional[int] = None  # ms
    token: Optional[CancellationToken] = None
    stdin: Optional[TcIo] = None
    cwd: Optional[str] = None


@dataclass
class LaunchHandle:
    process: asyncio.subprocess.Process
    stdout_path: Optional[str]
    stderr_path: str
    start_time: float
    peak_memory: int = 0
    io_tasks: List[asyncio.Task] = field(default_factory=list)

    @property
    def pid(self) -> int:
        return self.process.pid


def _default_cwd(cmd: List[str]) -> Optional[str]:
    parent = os.path.dirname(cmd[0]) if cmd else ""
    return parent or None


class ProcessExecutor:
    def __init__(self, cache: IoCache, settings: Optional[Settings] = None):
        self.cache = cache
        self.settings = settings or get_settings()

    async def execute(self, options: LaunchOptions) -> ExecuteOutcome:
        """Run one process to completion with its output captured to files."""
        if options.token and options.token.cancelled:
            return self._aborted_before_launch()
        try:
            launch = await self.launch(options)
        except OSError as e:
            logger.warning("Failed to launch %s: %s", options.cmd, e)
            return LaunchFailure(str(e))
        return await self.wait(launch, options.timeout, options.token)

    async def launch(self, options: LaunchOptions, debug: bool = False) -> LaunchHandle:
        """Start a process and return without waiting for it.

        With ``debug`` the process is stopped right after start so a debugger
        can attach to it.
        """
        stdin = options.stdin
        stdin_path = stdin.path if stdin is not None and stdin.use_file else None
        stdin_data = stdin.read().encode("utf-8") if stdin is not None and not stdin.use_file else None
        stdin_arg = asyncio.subprocess.DEVNULL
        if stdin_data is not None:
            stdin_arg = asyncio.subprocess.PIPE

        fin = open(stdin_path, "rb") if stdin_path else None
        try:
            launch = await self._spawn(
                options.cmd,
                options.cwd or _default_cwd(options.cmd),
                stdin=fin if fin is not None else stdin_arg,
            )
        finally:
            if fin is not None:
                fin.close()

        if stdin_data is not None:
            launch.io_tasks.append(asyncio.ensure_future(self._feed(launch.process, stdin_data)))
        if debug:
            try:
                os.kill(launch.pid, signal.SIGSTOP)
            except (OSError, AttributeError) as e:
                logger.error("Failed to stop process %s for debugging: %s", launch.pid, e)
        return launch

    async def launch_with_pipe(
        self, solution: LaunchOptions, interactor: LaunchOptions
    ) -> Tuple[ExecuteOutcome, ExecuteOutcome]:
        """Run a solution and an interactor with their stdio cross-connected."""
        token = solution.token or interactor.token
        if token and token.cancelled:
            return self._aborted_before_launch(), self._aborted_before_launch()

        # interactor stdout -> solution stdin, solution stdout -> interactor stdin
        to_sol_r, to_sol_w = os.pipe()
        to_int_r, to_int_w = os.pipe()
        sol_launch: Union[LaunchHandle, LaunchFailure]
        int_launch: Union[LaunchHandle, LaunchFailure]
        try:
            try:
                sol_launch = await self._spawn(
                    solution.cmd, solution.cwd or _default_cwd(solution.cmd),
                    stdin=to_sol_r, stdout=to_int_w,
                )
            except OSError as e:
                logger.warning("Failed to launch solution %s: %s", solution.cmd, e)
                sol_launch = LaunchFailure(str(e))
            try:
                int_launch = await self._spawn(
                    interactor.cmd, interactor.cwd or _default_cwd(interactor.cmd),
                    stdin=to_int_r, stdout=to_sol_w,
                )
            except OSError as e:
                logger.warning("Failed to launch interactor %s: %s", interactor.cmd, e)
                int_launch = LaunchFailure(str(e))
        finally:
            for fd in (to_sol_r, to_sol_w, to_int_r, to_int_w):
                os.close(fd)

        if isinstance(sol_launch, LaunchFailure) and isinstance(int_launch, LaunchFailure):
            return sol_launch, int_launch
        if isinstance(sol_launch, LaunchFailure):
            await self._discard(int_launch)
            return sol_launch, LaunchFailure("Interactor killed because the solution failed to launch")
        if isinstance(int_launch, LaunchFailure):
            await self._discard(sol_launch)
            return LaunchFailure(f"Interactor failed to launch: {int_launch.message}"), int_launch

        sol_result, int_result = await asyncio.gather(
            self.wait(sol_launch, solution.timeout, solution.token),
            self.wait(int_launch, interactor.timeout, interactor.token),
        )
        logger.debug("Interactive run finished: solution=%s interactor=%s", sol_result, int_result)
        return sol_result, int_result

    async def wait(
        self,
        launch: LaunchHandle,
        timeout: Optional[int] = None,
        token: Optional[CancellationToken] = None,
    ) -> ExecuteResult:
        process = launch.process
        wait_task = asyncio.ensure_future(process.wait())
        cancel_task = asyncio.ensure_future(token.wait()) if token else None
        waiters = [wait_task] + ([cancel_task] if cancel_task else [])
        memory_task = asyncio.ensure_future(self._watch_memory(launch))

        abort_reason = None
        try:
            done, _ = await asyncio.wait(
                waiters,
                timeout=timeout / 1000.0 if timeout else None,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if wait_task not in done:
                if cancel_task is not None and cancel_task in done:
                    abort_reason = AbortReason.USER_ABORT
                    logger.info("Process %s aborted by user", process.pid)
                else:
                    abort_reason = AbortReason.TIMEOUT
                    logger.warning("Process %s reached timeout %sms", process.pid, timeout)
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
                await wait_task
        except asyncio.CancelledError:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            raise
        finally:
            end_time = time.perf_counter()
            if cancel_task is not None:
                cancel_task.cancel()
            memory_task.cancel()
            for task in launch.io_tasks:
                try:
                    await task
                except Exception as e:
                    logger.debug("IO task of process %s failed: %s", process.pid, e)

        returncode = process.returncode
        if returncode is not None and returncode < 0:
            try:
                code_or_signal: Union[int, str] = signal.Signals(-returncode).name
            except ValueError:
                code_or_signal = returncode
        else:
            code_or_signal = returncode
        logger.debug("Process %s closed with %s", process.pid, code_or_signal)

        return ExecuteResult(
            code_or_signal=code_or_signal,
            stdout_path=launch.stdout_path,
            stderr_path=launch.stderr_path,
            time=(end_time - launch.start_time) * 1000,
            memory=launch.peak_memory / 1024 / 1024 if launch.peak_memory else None,
            abort_reason=abort_reason,
        )

    async def _spawn(self, cmd: List[str], cwd: Optional[str], stdin, stdout=None) -> LaunchHandle:
        stderr_path = self.cache.create_io()
        stdout_path = self.cache.create_io() if stdout is None else None
        fout = open(stdout_path, "wb") if stdout_path else None
        ferr = open(stderr_path, "wb")
        try:
            start_time = time.perf_counter()
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=stdin,
                stdout=fout if fout is not None else stdout,
                stderr=ferr,
                cwd=cwd,
            )
        except OSError:
            self.cache.dispose([p for p in (stdout_path, stderr_path) if p])
            raise
        finally:
            if fout is not None:
                fout.close()
            ferr.close()
        logger.info("Running %s (pid %s)", " ".join(cmd), process.pid)
        return LaunchHandle(process, stdout_path, stderr_path, start_time)

    async def _feed(self, process: asyncio.subprocess.Process, data: bytes) -> None:
        try:
            process.stdin.write(data)
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            logger.debug("Stdin of process %s closed prematurely", process.pid)
        finally:
            try:
                process.stdin.close()
            except (BrokenPipeError, ConnectionResetError):
                pass

    async def _watch_memory(self, launch: LaunchHandle) -> None:
        interval = self.settings.runner.memory_poll_interval
        try:
            proc = psutil.Process(launch.pid)
            while True:
                launch.peak_memory = max(launch.peak_memory, proc.memory_info().rss)
                await asyncio.sleep(interval)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            pass

    async def _discard(self, launch: LaunchHandle) -> None:
        try:
            launch.process.kill()
        except ProcessLookupError:
            pass
        await launch.process.wait()
        for task in launch.io_tasks:
            task.cancel()
        self.cache.dispose([p for p in (launch.stdout_path, launch.stderr_path) if p])

    def _aborted_before_launch(self) -> ExecuteResult:
        stdout_path = self.cache.create_io()
        stderr_path = self.cache.create_io()
        Path(stdout_path).write_bytes(b"")
        Path(stderr_path).write_bytes(b"")
        return ExecuteResult(
            code_or_signal=signal.SIGKILL.name if hasattr(signal, "SIGKILL") else -1,
            stdout_path=stdout_path,
            stderr_path=stderr_path,
            time=0,
            abort_reason=AbortReason.USER_ABORT,
        )
