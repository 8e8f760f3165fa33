"""
Pause/resume rendezvous between the round loop and the user's "continue".
"""
import asyncio
from typing import Optional


class ResumeGate:
    """
    Single-slot rendezvous.

    At most one coroutine may wait at a time; a second ``wait()`` while one
    is pending is a programming error and raises RuntimeError instead of
    replacing the first waiter.
    """

    def __init__(self):
        self._waiter: Optional[asyncio.Future] = None

    @property
    def waiting(self) -> bool:
        return self._waiter is not None and not self._waiter.done()

    async def wait(self) -> None:
        if self.waiting:
            raise RuntimeError("ResumeGate already has a pending waiter")

        self._waiter = asyncio.get_running_loop().create_future()
        try:
            await self._waiter
        finally:
            self._waiter = None

    def release(self) -> bool:
        """Wake the waiter; returns False if nobody was waiting"""
        if not self.waiting:
            return False
        self._waiter.set_result(None)
        return True
