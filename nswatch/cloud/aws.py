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

from kubernetes_asyncio.client import models

NAMESPACE = "openshift-cloud-controller-manager"

_NAME = "aws-cloud-controller-manager"
_SERVICE_ACCOUNT = "cloud-controller-manager"


def get_aws_resources():
    """Return the objects making up the AWS cloud controller manager."""
    return [
        models.V1Deployment(
            metadata=models.V1ObjectMeta(name=_NAME, namespace=NAMESPACE)
        ),
        models.V1ConfigMap(
            metadata=models.V1ObjectMeta(name="cloud-conf", namespace=NAMESPACE)
        ),
        models.V1ServiceAccount(
            metadata=models.V1ObjectMeta(name=_SERVICE_ACCOUNT, namespace=NAMESPACE)
        ),
        models.V1ClusterRole(metadata=models.V1ObjectMeta(name=_SERVICE_ACCOUNT)),
        models.V1ClusterRoleBinding(
            metadata=models.V1ObjectMeta(name=_SERVICE_ACCOUNT),
            role_ref=models.V1RoleRef(
                api_group="rbac.authorization.k8s.io",
                kind="ClusterRole",
                name=_SERVICE_ACCOUNT,
            ),
        ),
    ]
