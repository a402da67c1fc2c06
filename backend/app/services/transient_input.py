"""
Transient input store

Materializes a request payload as a file the external engine can read, and
removes it afterwards. Every handle is keyed on a unique request token, so
concurrent requests never share a path.
"""
import asyncio
import os
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Optional

from app.core.logging_config import LoggingConfig
from app.core.metrics import transient_cleanup_failures_total

logger = LoggingConfig.get_logger(__name__)


@dataclass(frozen=True)
class TransientInputHandle:
    """Ownership of one transient input file"""
    request_id: str
    path: Path


class TransientInputStore:
    """
    Writes payloads to request-scoped files under a base directory.

    - acquire() writes the payload verbatim as UTF-8 text
    - release() is idempotent and never raises
    - scoped() pairs the two so every exit path releases exactly once
    """

    FILE_PREFIX = "jqlite_input_"
    FILE_SUFFIX = ".json"

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)

    def path_for(self, request_id: str) -> Path:
        return self.base_dir / f"{self.FILE_PREFIX}{request_id}{self.FILE_SUFFIX}"

    async def acquire(self, payload: str, request_id: Optional[str] = None) -> TransientInputHandle:
        """
        Write payload to a new transient file

        Args:
            payload: Text handed to the engine unchanged
            request_id: Token scoping the file; generated when omitted

        Returns:
            Handle referencing the written file
        """
        request_id = request_id or uuid.uuid4().hex
        handle = TransientInputHandle(request_id=request_id, path=self.path_for(request_id))
        try:
            await asyncio.to_thread(self._write, handle.path, payload)
        except BaseException:
            # A partially written file must not outlive the failed acquisition
            await self.release(handle)
            raise
        logger.debug(
            "Transient input written",
            extra={"transient_path": str(handle.path), "payload_chars": len(payload)}
        )
        return handle

    async def release(self, handle: Optional[TransientInputHandle]) -> bool:
        """
        Remove the file behind a handle

        Returns:
            True if nothing is left on disk, False if removal failed
        """
        if handle is None:
            return True
        try:
            await asyncio.to_thread(self._remove, handle.path)
        except OSError as e:
            transient_cleanup_failures_total.inc()
            logger.warning(
                f"Failed to delete transient input {handle.path}: {e}",
                extra={"transient_path": str(handle.path)}
            )
            return False
        return True

    @asynccontextmanager
    async def scoped(self, payload: str, request_id: Optional[str] = None) -> AsyncIterator[TransientInputHandle]:
        """Acquire a handle for the duration of the block"""
        handle = await self.acquire(payload, request_id)
        try:
            yield handle
        finally:
            await self.release(handle)

    def _write(self, path: Path, payload: str):
        path.parent.mkdir(parents=True, exist_ok=True)
        # newline="" keeps the payload byte-for-byte on every platform
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(payload)

    @staticmethod
    def _remove(path: Path):
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
