# Copyright 2018 The Kubernetes Authors.
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
import functools
import logging
import random

from nswatch import errors
from nswatch.cache import list_watch, shared_informer
from nswatch.runtime import scheme as scheme_

logger = logging.getLogger(__name__)

_DEFAULT_RESYNC_TIME = 10 * 3600


def new(
    api_client=None,
    *,
    mapper,
    scheme=None,
    resync=_DEFAULT_RESYNC_TIME,
    namespace=None,
    create_lister_watcher=None,
):
    """

    Create a watch session: informers for any number of kinds, all limited to
    ``namespace`` (or cluster wide when it is None).

    ``create_lister_watcher(mapping, namespace)`` builds the ``ListWatch`` for a
    kind. It defaults to the generated ``kubernetes_asyncio`` API for
    ``api_client``.

    """
    if create_lister_watcher is None:
        create_lister_watcher = functools.partial(
            list_watch.new_list_watch, api_client
        )
    return _InformerCache(
        mapper=mapper,
        scheme=scheme or scheme_.SCHEME,
        resync=resync,
        namespace=namespace,
        create_lister_watcher=create_lister_watcher,
    )


class _InformerCache:
    def __init__(self, *, mapper, scheme, resync, namespace, create_lister_watcher):
        self._mapper = mapper
        self._scheme = scheme
        self._resync = resync
        self._namespace = namespace
        self._create_lister_watcher = create_lister_watcher
        self._informers_by_gvk = {}
        self._mutex = asyncio.Lock()
        self._stop_event = None
        self._tasks = []

    def __repr__(self):
        return f"<InformerCache namespace={self._namespace!r}>"

    @property
    def namespace(self):
        return self._namespace

    def start(self, stop_event):
        if self._stop_event is not None:
            raise errors.SessionError(f"{self!r} has already been started")
        self._stop_event = stop_event
        for informer in self._informers_by_gvk.values():
            self._run(informer)

    def started(self):
        return self._stop_event is not None

    def stopped(self):
        return self.started() and self._stop_event.is_set()

    async def get_informer(self, obj):
        gvk = self._scheme.object_kind(obj)
        return await self.get_informer_for_kind(gvk)

    async def get_informer_for_kind(self, gvk):
        async with self._mutex:
            informer = self._informers_by_gvk.get(gvk)
            if informer is None:
                informer = await self._add_informer(gvk)

        if self.stopped():
            raise errors.SessionError(f"{self!r} has been stopped")
        if self.started() and not informer.has_synced():
            if not await shared_informer.wait_for_cache_sync(
                self._stop_event, informer.has_synced
            ):
                raise errors.SessionError(f"failed waiting for {informer!r} to sync")
        return informer

    async def wait_for_cache_sync(self):
        if not self.started():
            return False
        synced_funcs = [
            informer.has_synced for informer in self._informers_by_gvk.values()
        ]
        return await shared_informer.wait_for_cache_sync(
            self._stop_event, *synced_funcs
        )

    async def join(self):
        await asyncio.gather(*self._tasks)

    async def _add_informer(self, gvk):
        mapping = await self._mapper.rest_mapping(gvk.group_kind, gvk.version)
        lister_watcher = self._create_lister_watcher(mapping, self._namespace)
        scope = self._namespace or "cluster"
        informer = shared_informer.new_shared_informer(
            lister_watcher, f"{gvk} ({scope})", _resync_period(self._resync)
        )
        self._informers_by_gvk[gvk] = informer
        logger.debug("Created informer for %s in %s", gvk, scope)
        if self.started():
            self._run(informer)
        return informer

    def _run(self, informer):
        self._tasks.append(asyncio.ensure_future(informer.run(self._stop_event)))


# Spread resyncs of informers created together
def _resync_period(resync):
    return resync * (random.random() / 5 + 0.9)
