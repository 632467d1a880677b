"""Bounded queue adapter for deployment progress events."""

import asyncio
from typing import AsyncIterator, List

from n8n_provisioner.models.deployment import DeploymentProgress

_CLOSED = object()


class ProgressChannel:
    """Hands progress events from a running deployment to an async consumer.

    Pass the channel itself as the ``on_progress`` callback. Publishing never
    blocks the pipeline: when the buffer is full the oldest event is dropped.
    The channel closes itself after a terminal event, which ends iteration.

        channel = ProgressChannel()
        engine = DeploymentEngine(config, channel, client=client)
        task = asyncio.create_task(engine.deploy())
        async for progress in channel:
            ...
    """

    def __init__(self, maxsize: int = 64):
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self._maxsize = maxsize
        # one extra slot so the close marker always fits
        self._queue: asyncio.Queue = asyncio.Queue(maxsize + 1)
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, progress: DeploymentProgress) -> None:
        if self._closed:
            return
        if self._queue.qsize() >= self._maxsize:
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(progress)
        if progress.stage.is_terminal:
            self.close()

    __call__ = publish

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    async def __aiter__(self) -> AsyncIterator[DeploymentProgress]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item

    def drain(self) -> List[DeploymentProgress]:
        """Take every buffered event without waiting."""
        events = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is _CLOSED:
                # keep the marker so a later ``async for`` still terminates
                self._queue.put_nowait(_CLOSED)
                break
            events.append(item)
        return events
