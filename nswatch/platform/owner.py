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

import abc
import logging
from typing import NamedTuple

logger = logging.getLogger(__name__)


class ObjectKey(NamedTuple):
    namespace: str
    name: str


class PlatformOwner(abc.ABC):
    """

    The object a cluster's platform type is read from.

    One implementation exists per source of platform information. At startup the
    first owner whose ``init`` succeeds is selected with ``select_owner``.

    """

    @abc.abstractmethod
    async def init(self, api_client):
        """Load the owner objects. Return False if none exist on this cluster."""

    @abc.abstractmethod
    async def get_owner(self, api_client, key):
        """Return the owner object for ``key`` and the resources it owns."""

    @abc.abstractmethod
    def object(self):
        """Return an empty object of the owner's kind."""

    @abc.abstractmethod
    def mapper(self):
        """Return a function mapping any object to the owner keys to reconcile."""


async def select_owner(owners, api_client):
    for owner in owners:
        if await owner.init(api_client):
            logger.info("Selected platform owner %s", type(owner).__name__)
            return owner
    logger.warning("No platform owner found on this cluster")
    return None


async def watch_resources(cache, resources, stop_event=None):
    """Watch every resource in ``resources`` with a namespaced cache."""
    for resource in resources:
        await cache.watch(resource, stop_event)
