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

from nswatch.cloud import aws
from nswatch.runtime import scheme as scheme_

logger = logging.getLogger(__name__)


def owned_resources_group(*platform_groups, scheme=None):
    """

    Union the resources of every platform, keeping one object per kind.

    The result lists each GroupVersionKind owned on any platform once, in the
    order first seen, so it can be used to set up one watch per kind. With no
    arguments all known platforms are used.

    """
    scheme = scheme or scheme_.SCHEME
    if not platform_groups:
        platform_groups = (aws.get_aws_resources(),)

    seen = set()
    distinct = []
    for platform_group in platform_groups:
        for resource in platform_group:
            gvk = scheme.object_kind(resource)
            logger.debug("Owned resource kind %s", gvk)
            if gvk not in seen:
                seen.add(gvk)
                distinct.append(resource)
    return distinct
