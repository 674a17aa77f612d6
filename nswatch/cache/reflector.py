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
import random

from nswatch.api import meta
from nswatch.util import wait
from nswatch.watch import watch

logger = logging.getLogger(__name__)


class WatchError(Exception):
    pass


class Reflector:
    """

    Keeps a store in sync with the server for one kind.

    ``store`` receives ``replace`` after every list, ``add``/``update``/``delete``
    for watch events and ``resync`` every ``resync_period`` seconds. All of them
    are coroutines.

    """

    def __init__(self, name, lw, store, resync_period):
        self._name = name
        self._lister_watcher = lw
        self._store = store
        self._resync_period = resync_period
        self._period = 1
        self._last_sync_resource_version = ""

    async def run(self, stop_event):
        logger.debug("Starting reflector %s (%s)", self._name, self._resync_period)

        async def list_and_watch():
            try:
                await self.list_and_watch(stop_event)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Failed to list and watch %s: %r", self._name, e)

        loop_task = asyncio.ensure_future(
            wait.jitter_until(list_and_watch, self._period, 1.0, stop_event)
        )
        stop_task = asyncio.ensure_future(stop_event.wait())
        try:
            await asyncio.wait(
                [loop_task, stop_task], return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            loop_task.cancel()
            stop_task.cancel()
            await asyncio.gather(loop_task, stop_task, return_exceptions=True)
        logger.debug("Stopped reflector %s", self._name)

    async def list_and_watch(self, stop_event):
        logger.debug("Listing and watching %s", self._name)
        list_ = await self._lister_watcher.list({"resource_version": "0"})
        resource_version = meta.list_accessor(list_).resource_version or ""
        await self._store.replace(meta.extract_list(list_), resource_version)
        self._last_sync_resource_version = resource_version

        resync_task = asyncio.ensure_future(self._resync(stop_event))
        stop_task = asyncio.ensure_future(stop_event.wait())
        options = {"resource_version": resource_version}
        try:
            while not stop_event.is_set():
                options["timeout_seconds"] = int(
                    _MIN_WATCH_TIMEOUT * (random.random() + 1)
                )
                w = await self._lister_watcher.watch(dict(options))
                watch_task = asyncio.ensure_future(self._watch_handler(w, options))
                done, _ = await asyncio.wait(
                    [watch_task, resync_task, stop_task],
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if watch_task in done:
                    watch_task.result()
                    continue
                watch_task.cancel()
                await asyncio.gather(watch_task, return_exceptions=True)
                if resync_task in done:
                    # A failed resync forces a relist
                    resync_task.result()
                return
        finally:
            resync_task.cancel()
            stop_task.cancel()
            await asyncio.gather(resync_task, stop_task, return_exceptions=True)

    def last_sync_resource_version(self):
        return self._last_sync_resource_version

    async def _resync(self, stop_event):
        if not self._resync_period:
            await stop_event.wait()
            return
        while not await wait.sleep_until(self._resync_period, stop_event):
            logger.debug("Forcing resync of %s", self._name)
            await self._store.resync()

    async def _watch_handler(self, w, options):
        loop = asyncio.get_running_loop()
        start = loop.time()
        event_count = 0
        async with w:
            async for event in w:
                event_type = event["type"]
                obj = event["object"]
                if event_type == watch.EventType.ERROR:
                    raise WatchError(f"watch of {self._name} failed: {obj!r}")
                try:
                    metadata = meta.accessor(obj)
                except meta.NotObjectError:
                    logger.error("Unable to understand watch event %r", event)
                    continue
                if event_type == watch.EventType.ADDED:
                    await self._store.add(obj)
                elif event_type == watch.EventType.MODIFIED:
                    await self._store.update(obj)
                elif event_type == watch.EventType.DELETED:
                    await self._store.delete(obj)
                elif event_type != watch.EventType.BOOKMARK:
                    logger.error("Unable to understand watch event %r", event)
                    continue
                if metadata.resource_version:
                    options["resource_version"] = metadata.resource_version
                    self._last_sync_resource_version = metadata.resource_version
                event_count += 1

        if loop.time() - start < 1 and not event_count:
            raise WatchError(
                "very short watch: Unexpected watch close - "
                "watch lasted less than a second and no items received"
            )
        logger.debug(
            "Watch close - %s total %s items received", self._name, event_count
        )


_MIN_WATCH_TIMEOUT = 5 * 60
