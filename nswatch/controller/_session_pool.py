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
import inspect
import logging

from nswatch import errors

logger = logging.getLogger(__name__)


class _ClusterScope:
    def __repr__(self):
        return "CLUSTER_SCOPE"


# Pool key for cluster-scoped kinds. Never equal to any namespace.
CLUSTER_SCOPE = _ClusterScope()


def describe(scope):
    if scope is CLUSTER_SCOPE:
        return "cluster scope"
    return f"namespace {scope!r}"


class SessionPool:
    """

    One started watch session per namespace, plus one for cluster scope.

    ``new_session(namespace=..., resync=...)`` builds a session, returning it or
    an awaitable of it. Sessions must provide ``start(stop_event)``,
    ``get_informer(obj)`` and ``join()``.

    """

    def __init__(self, new_session, resync):
        self._new_session = new_session
        self._resync = resync
        self._sessions = {}
        self._lock = asyncio.Lock()
        # Stops sessions whose creator gave no stop event of its own
        self._stop_event = asyncio.Event()
        self._owned = []

    async def session_for(self, scope, stop_event=None):
        async with self._lock:
            session = self._sessions.get(scope)
            if session is not None:
                return session

            namespace = None if scope is CLUSTER_SCOPE else scope
            try:
                session = self._new_session(namespace=namespace, resync=self._resync)
                if inspect.isawaitable(session):
                    session = await session
                owned = stop_event is None
                session.start(self._stop_event if owned else stop_event)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                raise errors.SessionError(
                    f"unable to create watch session for {describe(scope)}: {e!r}"
                ) from e

            self._sessions[scope] = session
            if owned:
                self._owned.append(session)
            logger.info("Started watch session for %s", describe(scope))
            return session

    def get(self, scope):
        return self._sessions.get(scope)

    def __len__(self):
        return len(self._sessions)

    def stop(self):
        self._stop_event.set()

    async def join(self):
        """Wait for the sessions stopped by ``stop()`` to finish."""
        await asyncio.gather(*(session.join() for session in self._owned))
