# Copyright 2014 The Kubernetes Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import asyncio
import logging

logger = logging.getLogger(__name__)


class EventType:
    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    BOOKMARK = "BOOKMARK"
    ERROR = "ERROR"


class FakeWatcher:
    """

    In-memory stand-in for ``kubernetes_asyncio.watch.Watch`` streams.

    Events are buffered without limit and yielded as dicts with ``type`` and
    ``object`` keys. Iteration ends once the watcher is stopped and drained.

    """

    def __init__(self, result=None):
        self._result = result if result is not None else asyncio.Queue()
        self._stopped = asyncio.Event()

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._stopped.is_set() and self._result.empty():
            raise StopAsyncIteration
        get_task = asyncio.ensure_future(self._result.get())
        stop_task = asyncio.ensure_future(self._stopped.wait())
        try:
            await asyncio.wait(
                [get_task, stop_task], return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            stop_task.cancel()
            if not get_task.done():
                get_task.cancel()
        if get_task.cancelled():
            raise StopAsyncIteration
        return get_task.result()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_value, traceback):
        await self.stop()

    async def stop(self):
        logger.debug("Stopping fake watcher.")
        self._stopped.set()

    def is_stopped(self):
        return self._stopped.is_set()

    async def add(self, obj):
        await self.action(EventType.ADDED, obj)

    async def modify(self, obj):
        await self.action(EventType.MODIFIED, obj)

    async def delete(self, obj):
        await self.action(EventType.DELETED, obj)

    async def error(self, obj):
        await self.action(EventType.ERROR, obj)

    async def action(self, action, obj):
        if self.is_stopped():
            logger.debug("Dropping %s event for stopped fake watcher.", action)
            return
        self._result.put_nowait({"type": action, "object": obj})


def new_fake():
    return FakeWatcher()
