"""
Bounded process invoker

Runs an external executable with an argument vector (never through a shell),
enforcing a wall-clock timeout and a ceiling on the combined size of captured
stdout and stderr.
"""
import asyncio
import os
import signal
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Literal, Optional, Sequence, Union

from app.core.execution_error_types import InvocationErrorKind, ProcessExitError
from app.core.logging_config import LoggingConfig

logger = LoggingConfig.get_logger(__name__)

OutputLimitPolicy = Literal["error", "truncate"]

_IS_POSIX = os.name == "posix"


@dataclass(frozen=True)
class ProcessInvocationResult:
    """Outcome of exactly one engine invocation"""
    exit_error: Optional[ProcessExitError]
    was_killed_by_timeout: bool
    stdout: str
    stderr: str
    exit_code: Optional[int] = None
    duration_ms: int = 0
    output_truncated: bool = False

    @property
    def outcome(self) -> str:
        """Short label used for metrics and logs"""
        if self.exit_error is None:
            return "success"
        return self.exit_error.kind.value


class _OutputCapture:
    """Collects both streams against one shared byte budget"""

    def __init__(self, limit: int, policy: OutputLimitPolicy):
        self.limit = limit
        self.policy = policy
        self.total = 0
        self.chunks: Dict[str, List[bytes]] = {"stdout": [], "stderr": []}
        self.overflowed_stream: Optional[str] = None
        self.truncated = False

    def feed(self, stream: str, data: bytes) -> bool:
        """
        Store a chunk, keeping at most `limit` bytes overall

        Returns:
            True the first time the ceiling is crossed
        """
        room = self.limit - self.total
        if len(data) <= room:
            self.chunks[stream].append(data)
            self.total += len(data)
            return False

        if room > 0:
            self.chunks[stream].append(data[:room])
            self.total += room
        if self.overflowed_stream is not None or self.truncated:
            return False
        if self.policy == "truncate":
            self.truncated = True
            return False
        self.overflowed_stream = stream
        return True

    def text(self, stream: str) -> str:
        return b"".join(self.chunks[stream]).decode("utf-8", errors="replace")


class BoundedProcessInvoker:
    """
    Spawns one OS process per invocation with:
    - a hard wall-clock deadline (the process group is killed when it passes)
    - a combined output ceiling with an explicit overflow policy
    - stdout/stderr returned as text regardless of exit status
    """

    READ_CHUNK_SIZE = 64 * 1024
    # How long to wait for pipes to close after a forced kill
    KILL_GRACE_SECONDS = 2.0

    def __init__(self, output_limit_policy: OutputLimitPolicy = "error"):
        if output_limit_policy not in ("error", "truncate"):
            raise ValueError(f"Unknown output limit policy: {output_limit_policy}")
        self.output_limit_policy = output_limit_policy

    async def invoke(
        self,
        executable: Union[str, Path],
        args: Sequence[str],
        timeout_ms: int,
        max_output_bytes: int,
    ) -> ProcessInvocationResult:
        """
        Run an executable to completion or to its deadline

        Args:
            executable: Path to the program
            args: Argument vector passed as discrete items
            timeout_ms: Wall-clock limit in milliseconds
            max_output_bytes: Ceiling on combined stdout and stderr size

        Returns:
            ProcessInvocationResult; launch failures are reported in it, not raised
        """
        command = [str(executable), *args]
        started = time.monotonic()

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=_IS_POSIX,
            )
        except OSError as e:
            logger.warning(
                f"Failed to start {executable}: {e}",
                extra={"executable": str(executable)}
            )
            return ProcessInvocationResult(
                exit_error=ProcessExitError(
                    kind=InvocationErrorKind.LAUNCH_FAILED,
                    message=f"Failed to start {executable}: {e.strerror or e}",
                ),
                was_killed_by_timeout=False,
                stdout="",
                stderr="",
                duration_ms=self._elapsed_ms(started),
            )

        capture = _OutputCapture(max_output_bytes, self.output_limit_policy)
        readers = asyncio.gather(
            self._drain(process, "stdout", process.stdout, capture),
            self._drain(process, "stderr", process.stderr, capture),
        )
        # The deadline covers both pipe EOF and process exit
        completion = asyncio.gather(readers, process.wait())

        timed_out = False
        try:
            await asyncio.wait_for(asyncio.shield(completion), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError:
            timed_out = True
            logger.info(
                f"Process exceeded {timeout_ms} ms, killing it",
                extra={"executable": str(executable), "pid": process.pid}
            )
            self._kill(process)
            try:
                await asyncio.wait_for(readers, timeout=self.KILL_GRACE_SECONDS)
            except asyncio.TimeoutError:
                # A detached descendant still holds the pipes open
                logger.warning(
                    "Output pipes still open after kill",
                    extra={"executable": str(executable), "pid": process.pid}
                )
                completion.cancel()
        except asyncio.CancelledError:
            self._kill(process)
            completion.cancel()
            raise

        exit_code = await self._reap(process)
        exit_error = self._exit_error(command, exit_code, timed_out, capture, timeout_ms)
        result = ProcessInvocationResult(
            exit_error=exit_error,
            was_killed_by_timeout=timed_out,
            stdout=capture.text("stdout"),
            stderr=capture.text("stderr"),
            exit_code=exit_code,
            duration_ms=self._elapsed_ms(started),
            output_truncated=capture.truncated,
        )
        logger.debug(
            "Process finished",
            extra={
                "executable": str(executable),
                "exit_code": exit_code,
                "outcome": result.outcome,
                "duration_ms": result.duration_ms,
                "captured_bytes": capture.total,
            }
        )
        return result

    async def _drain(self, process, stream_name: str, stream: asyncio.StreamReader, capture: _OutputCapture):
        """Read a pipe until EOF; the process is killed on overflow under the error policy"""
        while True:
            chunk = await stream.read(self.READ_CHUNK_SIZE)
            if not chunk:
                return
            if capture.feed(stream_name, chunk):
                logger.info(
                    f"{stream_name} exceeded {capture.limit} bytes, killing process",
                    extra={"pid": process.pid}
                )
                self._kill(process)

    async def _reap(self, process) -> Optional[int]:
        """Wait for the exit status, killing the process if it is still running"""
        for _ in range(2):
            try:
                return await asyncio.wait_for(process.wait(), timeout=self.KILL_GRACE_SECONDS)
            except asyncio.TimeoutError:
                self._kill(process)
        logger.error("Process could not be reaped after kill", extra={"pid": process.pid})
        return process.returncode

    @staticmethod
    def _kill(process):
        if process.returncode is not None:
            return
        try:
            if _IS_POSIX:
                os.killpg(process.pid, signal.SIGKILL)
            else:
                process.kill()
        except ProcessLookupError:
            pass

    @staticmethod
    def _exit_error(
        command: List[str],
        exit_code: Optional[int],
        timed_out: bool,
        capture: _OutputCapture,
        timeout_ms: int,
    ) -> Optional[ProcessExitError]:
        if timed_out:
            return ProcessExitError(
                kind=InvocationErrorKind.TIMEOUT,
                message=f"Process timed out after {timeout_ms} ms",
                exit_code=exit_code,
            )
        if capture.overflowed_stream is not None:
            return ProcessExitError(
                kind=InvocationErrorKind.OUTPUT_LIMIT,
                message=f"{capture.overflowed_stream} maxBuffer length exceeded",
                exit_code=exit_code,
            )
        if exit_code is None:
            return ProcessExitError(
                kind=InvocationErrorKind.SIGNALLED,
                message="Process killed without reporting an exit status",
            )
        if exit_code == 0:
            return None
        if exit_code < 0:
            return ProcessExitError(
                kind=InvocationErrorKind.SIGNALLED,
                message=f"Process terminated by signal {-exit_code}",
                exit_code=exit_code,
                signal=-exit_code,
            )
        return ProcessExitError(
            kind=InvocationErrorKind.NON_ZERO_EXIT,
            message=f"Command failed: {' '.join(command)}",
            exit_code=exit_code,
        )

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
