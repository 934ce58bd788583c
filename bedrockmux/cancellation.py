import asyncio
from typing import Optional


class CancellationToken:
    """
    Cooperative cancellation signal shared by one request.

    Consumers poll `is_cancellation_requested` between units of work, or
    await `wait()` to race long-running calls against cancellation.
    Cancelling is never an error.
    """

    def __init__(self):
        self._cancelled = False
        self._event: Optional[asyncio.Event] = None

    @property
    def is_cancellation_requested(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        if self._event is not None:
            self._event.set()

    async def wait(self) -> None:
        """Block until cancellation is requested."""
        if self._event is None:
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        await self._event.wait()


class CancellationTokenSource:
    """Owns a token and the right to cancel it."""

    def __init__(self):
        self.token = CancellationToken()

    def cancel(self) -> None:
        self.token.cancel()
