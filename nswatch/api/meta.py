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

"""

Functions for accessing object data.

Objects returned from the Python API don't satisfy a common interface. Some are
generated model instances and some are raw dicts. The functions here wrap an
object with accessors that depend on the object's type.

"""

from nswatch.runtime import schema


class NotListError(Exception):
    pass


class NotObjectError(Exception):
    pass


def list_accessor(obj):
    try:
        if isinstance(obj, dict):
            return _UnstructuredListAccessor(obj)
        return _ListAccessor(obj)
    except (AttributeError, KeyError, TypeError):
        raise NotListError(type(obj))


def accessor(obj):
    try:
        if isinstance(obj, dict):
            return _UnstructuredAccessor(obj)
        return _Accessor(obj)
    except (AttributeError, KeyError, TypeError):
        raise NotObjectError(type(obj))


def type_accessor(obj):
    if isinstance(obj, dict):
        return _UnstructuredObjectAccessor(obj)
    return _ObjectAccessor(obj)


def extract_list(obj):
    if isinstance(obj, dict):
        return obj.get("items") or []
    return obj.items or []


def set_list(list_, objects):
    if isinstance(list_, dict):
        list_["items"] = objects
    else:
        list_.items = objects


class _ListAccessor:
    def __init__(self, obj):
        self._metadata = obj.metadata

    @property
    def resource_version(self):
        return self._metadata.resource_version

    @resource_version.setter
    def resource_version(self, resource_version):
        self._metadata.resource_version = resource_version


class _UnstructuredListAccessor:
    def __init__(self, obj):
        self._metadata = obj.setdefault("metadata", {})

    @property
    def resource_version(self):
        return self._metadata.get("resourceVersion")

    @resource_version.setter
    def resource_version(self, resource_version):
        self._metadata["resourceVersion"] = resource_version


class _Accessor:
    def __init__(self, obj):
        self._metadata = obj.metadata
        if self._metadata is None:
            raise AttributeError("metadata")

    @property
    def namespace(self):
        return self._metadata.namespace or ""

    @property
    def name(self):
        return self._metadata.name or ""

    @property
    def uid(self):
        return self._metadata.uid

    @property
    def resource_version(self):
        return self._metadata.resource_version

    @resource_version.setter
    def resource_version(self, resource_version):
        self._metadata.resource_version = resource_version


class _UnstructuredAccessor:
    def __init__(self, obj):
        self._metadata = obj["metadata"]
        if not isinstance(self._metadata, dict):
            raise TypeError("metadata")

    @property
    def namespace(self):
        return self._metadata.get("namespace") or ""

    @property
    def name(self):
        return self._metadata.get("name") or ""

    @property
    def uid(self):
        return self._metadata.get("uid")

    @property
    def resource_version(self):
        return self._metadata.get("resourceVersion")

    @resource_version.setter
    def resource_version(self, resource_version):
        self._metadata["resourceVersion"] = resource_version


class _ObjectAccessor:
    def __init__(self, obj):
        self._obj = obj

    @property
    def api_version(self):
        return self._obj.api_version

    @property
    def kind(self):
        return self._obj.kind

    # Motivated by apimachinery/pkg/apis/meta/v1/meta.go GroupVersionKind()
    @property
    def group_version_kind(self):
        group_version = schema.parse_group_version(self.api_version)
        return group_version.with_kind(self.kind)


class _UnstructuredObjectAccessor(_ObjectAccessor):
    @property
    def api_version(self):
        return self._obj.get("apiVersion", "")

    @property
    def kind(self):
        return self._obj.get("kind", "")
