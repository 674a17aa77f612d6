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
from typing import NamedTuple

from kubernetes_asyncio import client

from nswatch import errors
from nswatch.runtime import schema

logger = logging.getLogger(__name__)


class RESTScopeName:
    NAMESPACE = "namespace"
    ROOT = "root"


class RESTMapping(NamedTuple):
    resource: schema.GroupVersionResource
    group_version_kind: schema.GroupVersionKind
    scope: str


class DefaultRESTMapper:
    """Maps kinds to resources from an explicit list of registrations."""

    def __init__(self):
        self._kind_to_mapping = {}
        # Registration order doubles as version preference
        self._group_kind_to_versions = {}

    def add(self, gvk, scope, resource=None):
        if resource is None:
            resource = _guess_resource(gvk.kind)
        mapping = RESTMapping(
            resource=schema.GroupVersionResource(gvk.group, gvk.version, resource),
            group_version_kind=gvk,
            scope=scope,
        )
        self._kind_to_mapping[gvk] = mapping
        versions = self._group_kind_to_versions.setdefault(gvk.group_kind, [])
        if gvk.version not in versions:
            versions.append(gvk.version)

    async def rest_mapping(self, group_kind, *versions):
        candidates = versions or self._group_kind_to_versions.get(group_kind, [])
        for version in candidates:
            gvk = schema.GroupVersionKind(group_kind.group, version, group_kind.kind)
            mapping = self._kind_to_mapping.get(gvk)
            if mapping is not None:
                return mapping
        raise errors.NoKindMatchError(group_kind, *versions)


class DiscoveryRESTMapper:
    """

    Maps kinds to resources using the server's discovery API.

    Discovery runs lazily on the first lookup and again whenever a lookup misses,
    since new kinds may have been installed since the last discovery.

    """

    def __init__(self, api_client):
        self._api_client = api_client
        self._mapper = None
        self._lock = asyncio.Lock()

    async def rest_mapping(self, group_kind, *versions):
        mapper = await self._get_mapper()
        try:
            return await mapper.rest_mapping(group_kind, *versions)
        except errors.NoKindMatchError:
            logger.debug("%s not found in discovery cache, reloading", group_kind)
        mapper = await self._get_mapper(reload=True)
        return await mapper.rest_mapping(group_kind, *versions)

    async def _get_mapper(self, reload=False):
        async with self._lock:
            if self._mapper is None or reload:
                self._mapper = await self._discover()
            return self._mapper

    async def _discover(self):
        try:
            server_resources = await _server_resources(self._api_client)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise errors.DiscoveryError(
                f"unable to retrieve the server API resources: {e!r}"
            ) from e
        mapper = DefaultRESTMapper()
        for group_version, api_resources in server_resources:
            gv = schema.parse_group_version(group_version)
            for api_resource in api_resources:
                # Subresources such as pods/status
                if "/" in api_resource.name:
                    continue
                if api_resource.namespaced:
                    scope = RESTScopeName.NAMESPACE
                else:
                    scope = RESTScopeName.ROOT
                mapper.add(gv.with_kind(api_resource.kind), scope, api_resource.name)
        return mapper


async def _server_resources(api_client):
    result = []
    core_versions = await client.CoreApi(api_client).get_api_versions()
    for version in core_versions.versions:
        resources = await _resources_for(api_client, f"/api/{version}")
        result.append((version, resources))

    group_list = await client.ApisApi(api_client).get_api_versions()
    for group in group_list.groups:
        preferred = group.preferred_version and group.preferred_version.group_version
        versions = sorted(group.versions, key=lambda v: v.group_version != preferred)
        for version in versions:
            resources = await _resources_for(
                api_client, f"/apis/{version.group_version}"
            )
            result.append((version.group_version, resources))
    return result


async def _resources_for(api_client, path):
    resource_list = await api_client.call_api(
        path,
        "GET",
        header_params={"Accept": "application/json"},
        response_type="V1APIResourceList",
        auth_settings=["BearerToken"],
        _return_http_data_only=True,
    )
    return resource_list.resources or []


# Motivated by apimachinery/pkg/api/meta/restmapper.go UnsafeGuessKindToResource()
def _guess_resource(kind):
    resource = kind.lower()
    if resource.endswith("s"):
        return f"{resource}es"
    if resource.endswith("y"):
        return f"{resource[:-1]}ies"
    return f"{resource}s"
