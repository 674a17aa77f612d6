"""

Registry of Python object types and the kinds they represent.

Go resolves the kind of an object through its static type. Objects returned from
the Python API are either generated model instances, which rarely carry their
``api_version`` and ``kind``, or raw dicts, which always do. A ``Scheme`` maps
model types to kinds and falls back to the type meta the object carries.

"""

import re

from kubernetes_asyncio.client import models

from nswatch import errors
from nswatch.api import meta
from nswatch.runtime import schema

_VERSION_PREFIX = re.compile(r"^V\d+(?:(?:alpha|beta)\d+)?")


class Scheme:
    def __init__(self):
        self._gvk_to_type = {}
        self._type_to_gvk = {}

    def add_known_type(self, gvk, obj_type):
        existing = self._gvk_to_type.get(gvk)
        if existing is not None and existing is not obj_type:
            raise AssertionError(
                f"double registration of different types for {gvk}: "
                f"old={existing.__name__}, new={obj_type.__name__}"
            )
        self._gvk_to_type[gvk] = obj_type
        self._type_to_gvk[obj_type] = gvk

    def add_known_types(self, group_version, *obj_types):
        for obj_type in obj_types:
            kind = _VERSION_PREFIX.sub("", obj_type.__name__)
            self.add_known_type(group_version.with_kind(kind), obj_type)

    def object_kind(self, obj):
        if isinstance(obj, dict):
            if not obj.get("apiVersion") or not obj.get("kind"):
                raise errors.NotRegisteredError(dict)
            return _declared_kind(obj)

        obj_type = obj if isinstance(obj, type) else type(obj)
        gvk = self._type_to_gvk.get(obj_type)
        if gvk is not None:
            return gvk

        api_version = getattr(obj, "api_version", None)
        kind = getattr(obj, "kind", None)
        if isinstance(api_version, str) and isinstance(kind, str) and kind:
            return _declared_kind(obj)
        raise errors.NotRegisteredError(obj_type)


def _declared_kind(obj):
    try:
        return meta.type_accessor(obj).group_version_kind
    except ValueError as e:
        raise errors.DiscoveryError(str(e)) from e


def _new_default_scheme():
    scheme = Scheme()
    scheme.add_known_types(
        schema.GroupVersion("", "v1"),
        models.V1ConfigMap,
        models.V1Endpoints,
        models.V1Namespace,
        models.V1Node,
        models.V1PersistentVolume,
        models.V1PersistentVolumeClaim,
        models.V1Pod,
        models.V1Secret,
        models.V1Service,
        models.V1ServiceAccount,
    )
    scheme.add_known_types(
        schema.GroupVersion("apps", "v1"),
        models.V1DaemonSet,
        models.V1Deployment,
        models.V1ReplicaSet,
        models.V1StatefulSet,
    )
    scheme.add_known_types(
        schema.GroupVersion("batch", "v1"), models.V1CronJob, models.V1Job
    )
    scheme.add_known_types(
        schema.GroupVersion("rbac.authorization.k8s.io", "v1"),
        models.V1ClusterRole,
        models.V1ClusterRoleBinding,
        models.V1Role,
        models.V1RoleBinding,
    )
    scheme.add_known_types(
        schema.GroupVersion("policy", "v1"), models.V1PodDisruptionBudget
    )
    scheme.add_known_types(
        schema.GroupVersion("admissionregistration.k8s.io", "v1"),
        models.V1MutatingWebhookConfiguration,
        models.V1ValidatingWebhookConfiguration,
    )
    scheme.add_known_types(
        schema.GroupVersion("apiextensions.k8s.io", "v1"),
        models.V1CustomResourceDefinition,
    )
    return scheme


SCHEME = _new_default_scheme()
