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
import logging

from kubernetes_asyncio import client

from nswatch.api import meta
from nswatch.cloud import aws
from nswatch.platform import owner

logger = logging.getLogger(__name__)

GROUP = "config.openshift.io"
VERSION = "v1"
PLURAL = "infrastructures"


class PlatformType:
    AWS = "AWS"


def resources_for_platform(platform_type):
    if platform_type == PlatformType.AWS:
        return aws.get_aws_resources()
    logger.warning(
        "No recognized cloud provider platform found in infrastructure: %r",
        platform_type,
    )
    return []


class InfrastructureOwner(owner.PlatformOwner):
    """Reads the platform type from cluster-scoped Infrastructure objects."""

    def __init__(self):
        self._objects = []

    def object(self):
        return {"apiVersion": f"{GROUP}/{VERSION}", "kind": "Infrastructure"}

    async def init(self, api_client):
        api = client.CustomObjectsApi(api_client)
        try:
            infra_list = await api.list_cluster_custom_object(GROUP, VERSION, PLURAL)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Unable to retrieve list of Infrastructure objects: %r", e)
            return False
        items = meta.extract_list(infra_list)
        if not items:
            return False
        self._objects = items
        return True

    def mapper(self):
        keys = []
        for infra in self._objects:
            metadata = meta.accessor(infra)
            keys.append(owner.ObjectKey(metadata.namespace, metadata.name))

        def map_func(obj):
            return list(keys)

        return map_func

    async def get_owner(self, api_client, key):
        api = client.CustomObjectsApi(api_client)
        try:
            infra = await api.get_cluster_custom_object(
                GROUP, VERSION, PLURAL, key.name
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Unable to retrieve Infrastructure %s: %r", key.name, e)
            raise
        platform_type = (infra.get("status") or {}).get("platform", "")
        return infra, resources_for_platform(platform_type)
