import asyncio
import logging
from typing import Awaitable, Callable, Generic, Iterable, List, TypeVar

from pymongo.errors import PyMongoError

from flownote.utils.exceptions import DocumentDecodeError


logger = logging.getLogger(__name__)

T = TypeVar("T")


class LiveQuery(Generic[T]):
    """A standing query that re-delivers its full result on every change.

    Use it as ``async with``: entering subscribes to the bus channels and
    delivers the first result, leaving always unsubscribes, whether the block
    ends normally, raises or is cancelled. Notifications that arrive while a
    refresh is running collapse into a single follow-up refresh.
    """

    def __init__(
        self,
        bus,
        channels: Iterable[str],
        fetch: Callable[[], Awaitable[T]],
        callback: Callable[[T], Awaitable[None]],
    ) -> None:
        self._bus = bus
        self._channels = list(channels)
        self._fetch = fetch
        self._callback = callback
        self._dirty = asyncio.Event()
        self._subs: List = []
        self._tasks: List[asyncio.Task] = []
        self.active = False
        self.deliveries = 0

    async def __aenter__(self) -> "LiveQuery[T]":
        try:
            # subscribe first so nothing written during the initial fetch is missed
            for channel in self._channels:
                sub = await self._bus.subscribe(channel, self._on_change)
                self._subs.append(sub)
                self._tasks.append(asyncio.create_task(sub.run()))
            await self._deliver()
            self._tasks.append(asyncio.create_task(self._pump()))
        except BaseException:
            await self.release()
            raise
        self.active = True
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        await self.release()
        return False

    async def _on_change(self, _message: str) -> None:
        self._dirty.set()

    async def _pump(self) -> None:
        while True:
            await self._dirty.wait()
            self._dirty.clear()
            try:
                await self._deliver()
            except (PyMongoError, DocumentDecodeError):
                # keep listening; the next change retries the query
                logger.exception("Live query refresh failed on %s", ", ".join(self._channels))

    async def _deliver(self) -> None:
        result = await self._fetch()
        self.deliveries += 1
        await self._callback(result)

    async def release(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.error("Live query task ended with an error", exc_info=result)
        subs, self._subs = self._subs, []
        for sub in subs:
            await sub.cancel()
        self.active = False
