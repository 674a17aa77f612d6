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

"""

A cache of caches, one per namespace, delivering changes to individually watched
objects on a single event stream.

Informer caches are bound to a single namespace (or to the whole cluster), so
watching objects spread across namespaces takes one cache per namespace. This
module creates those lazily, checks that namespaced objects name their
namespace, and makes repeated watches of the same object a no-op.

Registrations are never removed. Callers are expected to be long-lived
control-plane processes watching a bounded set of objects.

"""

import asyncio
import collections
import functools
import logging
from typing import Any, Callable, NamedTuple, Optional

from kubernetes_asyncio import client

from nswatch import errors
from nswatch.api import meta, rest_mapper
from nswatch.cache import informer_cache
from nswatch.controller import _session_pool, event
from nswatch.runtime import scheme as scheme_

logger = logging.getLogger(__name__)

CLUSTER_SCOPE = _session_pool.CLUSTER_SCOPE

_DEFAULT_RESYNC_TIME = 10 * 3600


class CacheOptions(NamedTuple):
    # kubernetes_asyncio.client.Configuration or ApiClient
    config: Any = None
    mapper: Any = None
    scheme: Optional[scheme_.Scheme] = None
    # Seconds
    resync: Optional[float] = None
    # Builds the watch session for a namespace; see informer_cache.new
    new_session: Optional[Callable[..., Any]] = None


def new(options=CacheOptions()):
    if options.config is None and (
        options.mapper is None or options.new_session is None
    ):
        raise errors.InvalidArgumentError("config is required")

    api_client = None
    owns_api_client = False
    if isinstance(options.config, client.ApiClient):
        api_client = options.config
    elif options.config is not None:
        api_client = client.ApiClient(configuration=options.config)
        owns_api_client = True

    scheme = options.scheme or scheme_.SCHEME
    mapper = options.mapper or rest_mapper.DiscoveryRESTMapper(api_client)
    resync = _DEFAULT_RESYNC_TIME if options.resync is None else options.resync
    new_session = options.new_session or functools.partial(
        informer_cache.new, api_client, scheme=scheme, mapper=mapper
    )
    return _NamespacedCache(
        scheme=scheme,
        mapper=mapper,
        sessions=_session_pool.SessionPool(new_session, resync),
        api_client=api_client if owns_api_client else None,
    )


class EventStream:
    """Receive-only view of the events produced by a namespaced cache."""

    def __init__(self, queue):
        self._queue = queue

    async def get(self):
        return await self._queue.get()

    def get_nowait(self):
        return self._queue.get_nowait()

    def empty(self):
        return self._queue.empty()

    def qsize(self):
        return self._queue.qsize()

    def __aiter__(self):
        return self

    async def __anext__(self):
        return await self._queue.get()


class _NamespacedCache:
    def __init__(self, *, scheme, mapper, sessions, api_client=None):
        self._scheme = scheme
        self._mapper = mapper
        self._sessions = sessions
        self._api_client = api_client
        # A consumer has to take each event before the next can be delivered
        self._events = asyncio.Queue(maxsize=1)
        self._event_stream = EventStream(self._events)
        self._watched_resources = {}
        self._watch_locks = collections.defaultdict(asyncio.Lock)

    def event_stream(self):
        return self._event_stream

    async def watch(self, obj, stop_event=None):
        """

        Deliver changes to ``obj`` on the event stream.

        ``stop_event`` stops the session for the object's namespace if this call
        is the one to create it. Watching an object that is already watched does
        nothing.

        """
        scope = await self.ensure_namespace(obj)
        key = self.watch_key(obj)
        async with self._watch_locks[scope, key]:
            if key in self._watched_resources.get(scope, ()):
                return
            await self._watch(obj, scope, key, stop_event)

    def watched(self, scope):
        return frozenset(self._watched_resources.get(scope, ()))

    async def close(self):
        self._sessions.stop()
        await self._sessions.join()
        if self._api_client is not None:
            await self._api_client.close()

    async def _watch(self, obj, scope, key, stop_event):
        session = await self._sessions.session_for(scope, stop_event)
        try:
            informer = await session.get_informer(obj)
        except (asyncio.CancelledError, errors.NSWatchError):
            raise
        except Exception as e:
            raise errors.SessionError(
                f"unable to get informer for {key} in "
                f"{_session_pool.describe(scope)}: {e!r}"
            ) from e

        # The informer is namespace bound, so filtering by name limits the
        # events from this handler to a single object.
        await informer.add_event_handler(
            _EventToStreamHandler(_accessor(obj).name, self._events)
        )
        self._watched_resources.setdefault(scope, set()).add(key)
        logger.debug("Watching %s in %s", key, _session_pool.describe(scope))

    async def is_namespaced(self, obj):
        gvk = self._scheme.object_kind(obj)
        try:
            mapping = await self._mapper.rest_mapping(gvk.group_kind)
        except (asyncio.CancelledError, errors.DiscoveryError):
            raise
        except Exception as e:
            raise errors.DiscoveryError(
                f"unable to find the scope of {gvk.group_kind}: {e!r}"
            ) from e
        return mapping.scope == rest_mapper.RESTScopeName.NAMESPACE

    async def ensure_namespace(self, obj):
        """Return the pool scope for ``obj``, checking its namespace is set."""
        metadata = _accessor(obj)
        if not metadata.name:
            raise errors.InvalidArgumentError("watched objects must set their name")
        if not await self.is_namespaced(obj):
            return CLUSTER_SCOPE
        if not metadata.namespace:
            raise errors.InvalidArgumentError(
                "namespaced objects must set their namespace"
            )
        return metadata.namespace

    def watch_key(self, obj):
        gvk = self._scheme.object_kind(obj)
        return f"{gvk.group_kind}/{_accessor(obj).name}"


def _accessor(obj):
    try:
        return meta.accessor(obj)
    except meta.NotObjectError as e:
        raise errors.InvalidArgumentError(f"{type(obj)} has no metadata") from e


class _EventToStreamHandler:
    def __init__(self, name, events):
        self._name = name
        self._events = events

    def __repr__(self):
        return f"<EventToStreamHandler name={self._name!r}>"

    async def on_add(self, obj):
        await self._queue_event_for_object(obj)

    async def on_update(self, old_obj, new_obj):
        await self._queue_event_for_object(new_obj)

    async def on_delete(self, obj):
        await self._queue_event_for_object(obj)

    async def _queue_event_for_object(self, obj):
        if obj is None:
            return
        try:
            metadata = meta.accessor(obj)
        except meta.NotObjectError:
            logger.debug("Dropping event for %s without metadata", type(obj))
            return
        if metadata.name != self._name:
            logger.debug(
                "Skipping event for %s, watching %s", metadata.name, self._name
            )
            return
        await self._events.put(event.GenericEvent(metadata, obj))
