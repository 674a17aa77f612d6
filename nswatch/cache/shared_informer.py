# Copyright 2015 The Kubernetes Authors.
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
from typing import Any, NamedTuple

from nswatch.cache import reflector, store
from nswatch.util import wait

logger = logging.getLogger(__name__)


def new_shared_informer(lw, name, resync_period):
    return SharedInformer(lister_watcher=lw, name=name, resync_period=resync_period)


async def wait_for_cache_sync(stop_event, *cache_syncs):
    def condition():
        return all(sync_func() for sync_func in cache_syncs)

    try:
        await wait.poll_immediate_until(_SYNCED_POLL_PERIOD, condition, stop_event)
    except wait.WaitTimeoutError:
        logger.info("stop requested")
        return False
    logger.debug("caches populated")
    return True


_SYNCED_POLL_PERIOD = 0.1


class SharedInformer:
    """

    Local cache of one kind, fanning out changes to any number of handlers.

    Handlers implement ``on_add(obj)``, ``on_update(old_obj, new_obj)`` and
    ``on_delete(obj)`` as coroutines. Each handler is fed from its own unbounded
    queue by its own task, so a slow handler never holds up the others or the
    reflector. Notifications reach a handler in the order they were observed.

    """

    def __init__(self, *, lister_watcher, name, resync_period):
        self._store = store.new_store()
        self._lister_watcher = lister_watcher
        self._name = name
        self._resync_period = resync_period
        self._listeners = []
        self._reflector = None
        self._synced = False
        self._started = False
        self._stopped = False

    def __repr__(self):
        return f"<SharedInformer {self._name}>"

    async def add_event_handler(self, handler):
        if self._stopped:
            logger.info(
                "Handler %r was not added to shared informer %s "
                "because it has stopped already",
                handler,
                self._name,
            )
            return
        listener = _ProcessListener(handler)
        self._listeners.append(listener)
        if self._started:
            listener.start()
        for item in self._store.list():
            listener.add(_AddNotification(new_obj=item))

    async def run(self, stop_event):
        if self._started:
            raise RuntimeError(f"informer {self._name} has already started")
        self._started = True
        for listener in self._listeners:
            listener.start()
        self._reflector = reflector.Reflector(
            self._name, self._lister_watcher, self, self._resync_period
        )
        try:
            await self._reflector.run(stop_event)
        finally:
            self._stopped = True
            await asyncio.gather(*(listener.stop() for listener in self._listeners))

    def has_synced(self):
        return self._synced

    def last_sync_resource_version(self):
        if self._reflector is None:
            return ""
        return self._reflector.last_sync_resource_version()

    def get_store(self):
        return self._store

    # The methods below are driven by the reflector.

    async def replace(self, items, resource_version):
        new_items = {}
        for item in items:
            try:
                new_items[self._store.key(item)] = item
            except store.StoreKeyError:
                logger.error(
                    "%s: dropping listed object without metadata", self._name
                )
        for key in self._store.list_keys():
            if key not in new_items:
                old = self._store.get_by_key(key)
                self._distribute(_DeleteNotification(old_obj=old))
        for key, item in new_items.items():
            old = self._store.get_by_key(key)
            if old is not None:
                self._distribute(_UpdateNotification(old_obj=old, new_obj=item))
            else:
                self._distribute(_AddNotification(new_obj=item))
        self._store.replace(new_items.values(), resource_version)
        self._synced = True

    async def add(self, obj):
        old = self._store.get(obj)
        self._store.add(obj)
        if old is not None:
            self._distribute(_UpdateNotification(old_obj=old, new_obj=obj))
        else:
            self._distribute(_AddNotification(new_obj=obj))

    async def update(self, obj):
        await self.add(obj)

    async def delete(self, obj):
        self._store.delete(obj)
        self._distribute(_DeleteNotification(old_obj=obj))

    async def resync(self):
        for item in self._store.list():
            self._distribute(_UpdateNotification(old_obj=item, new_obj=item))

    def _distribute(self, notification):
        for listener in self._listeners:
            listener.add(notification)


class _UpdateNotification(NamedTuple):
    old_obj: Any
    new_obj: Any


class _AddNotification(NamedTuple):
    new_obj: Any


class _DeleteNotification(NamedTuple):
    old_obj: Any


class _ProcessListener:
    def __init__(self, handler):
        self._handler = handler
        self._pending_notifications = asyncio.Queue()
        self._task = None

    def add(self, notification):
        self._pending_notifications.put_nowait(notification)

    def start(self):
        if self._task is None:
            self._task = asyncio.ensure_future(self._run())

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)

    async def _run(self):
        while True:
            notification = await self._pending_notifications.get()
            try:
                await self._handle(notification)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(
                    "Handler %r failed to process %r", self._handler, notification
                )

    async def _handle(self, notification):
        if isinstance(notification, _UpdateNotification):
            await self._handler.on_update(notification.old_obj, notification.new_obj)
        elif isinstance(notification, _AddNotification):
            await self._handler.on_add(notification.new_obj)
        elif isinstance(notification, _DeleteNotification):
            await self._handler.on_delete(notification.old_obj)
        else:
            logger.error("unrecognized notification: %r", notification)
