import asyncio
import enum
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

logger = logging.getLogger(__name__)

# Reason tag for "skip only the case that is running now"
ONLY_ONE = "only_one"


class AbortReason(str, enum.Enum):
    USER_ABORT = "user_abort"
    TIMEOUT = "timeout"


class CancellationToken:
    """Cooperative cancellation flag shared by every step of one run."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: Optional[str] = None) -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


class CancellationScope:
    """Owns the single active run of one problem.

    Entering ``run()`` cancels whatever run is active and waits until it has
    left its scope before handing out a fresh token.
    """

    def __init__(self):
        self.token: Optional[CancellationToken] = None
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def active(self) -> bool:
        return self.token is not None

    @asynccontextmanager
    async def run(self) -> AsyncIterator["CancellationScope"]:
        while self.token is not None:
            self.token.cancel()
            await self._idle.wait()
        self.token = CancellationToken()
        self._idle.clear()
        try:
            yield self
        finally:
            self.token = None
            self._idle.set()

    def renew(self) -> CancellationToken:
        """Replace a token cancelled with ``ONLY_ONE`` so the run can go on."""
        self.token = CancellationToken()
        return self.token

    def cancel(self, reason: Optional[str] = None) -> bool:
        if self.token is None:
            return False
        logger.debug("Cancelling active run (reason=%s)", reason)
        self.token.cancel(reason)
        return True

    async def wait_idle(self) -> None:
        await self._idle.wait()
