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

import logging
import re

from kubernetes_asyncio import client, watch

from nswatch.api import rest_mapper

logger = logging.getLogger(__name__)


class ListWatch:
    def __init__(self, list_func, watch_func):
        self.list_func = list_func
        self.watch_func = watch_func

    async def list(self, options):
        return await self.list_func(options)

    async def watch(self, options):
        return await self.watch_func(options)


def new_list_watch(api_client, mapping, namespace=None):
    """

    Create a ``ListWatch`` for the resource described by ``mapping``.

    Built-in kinds go through the generated API class for their group version,
    e.g. ``CoreV1Api.list_namespaced_config_map``, so objects are deserialized
    into models. Anything the generated client doesn't know about goes through
    ``CustomObjectsApi`` and is returned as raw dicts.

    """
    lister, kwargs = _get_lister(api_client, mapping, namespace)
    logger.debug(
        "Using %s for %s in namespace %r",
        lister.__name__,
        mapping.group_version_kind,
        namespace,
    )

    async def list_func(options):
        return await lister(**kwargs, **options)

    async def watch_func(options):
        # Pass the bound method itself so the stream can find its return type
        return watch.Watch().stream(lister, **kwargs, **options)

    return ListWatch(list_func, watch_func)


def _get_lister(api_client, mapping, namespace):
    gvk = mapping.group_version_kind
    api_cls = getattr(client, api_class_name(gvk.group_version), None)
    if api_cls is not None:
        api = api_cls(api_client)
        kind = snake_case(gvk.kind)
        if mapping.scope != rest_mapper.RESTScopeName.NAMESPACE:
            name, kwargs = f"list_{kind}", {}
        elif namespace:
            name, kwargs = f"list_namespaced_{kind}", {"namespace": namespace}
        else:
            name, kwargs = f"list_{kind}_for_all_namespaces", {}
        lister = getattr(api, name, None)
        if lister is not None:
            return lister, kwargs

    api = client.CustomObjectsApi(api_client)
    resource = mapping.resource
    kwargs = {
        "group": resource.group,
        "version": resource.version,
        "plural": resource.resource,
    }
    if mapping.scope == rest_mapper.RESTScopeName.NAMESPACE and namespace:
        kwargs["namespace"] = namespace
        return api.list_namespaced_custom_object, kwargs
    return api.list_cluster_custom_object, kwargs


def api_class_name(group_version):
    """Return the generated client class name, e.g. ``RbacAuthorizationV1Api``."""
    if not group_version.group:
        prefix = "Core"
    else:
        group = group_version.group
        if group.endswith(".k8s.io"):
            group = group[: -len(".k8s.io")]
        prefix = "".join(part.capitalize() for part in group.split("."))
    return f"{prefix}{group_version.version.capitalize()}Api"


_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
_WORD_BOUNDARY = re.compile(r"([a-z\d])([A-Z])")


def snake_case(kind):
    kind = _ACRONYM_BOUNDARY.sub(r"\1_\2", kind)
    return _WORD_BOUNDARY.sub(r"\1_\2", kind).lower()
