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

from nswatch.api import meta


class StoreKeyError(KeyError):
    def __init__(self, obj):
        super().__init__(obj)
        self.obj = obj


def meta_namespace_key_func(obj):
    metadata = meta.accessor(obj)
    if metadata.namespace:
        return f"{metadata.namespace}/{metadata.name}"
    return metadata.name


def new_store(key_func=meta_namespace_key_func):
    return _Cache(key_func)


class _Cache:
    """

    Keyed object storage.

    All access happens on the event loop, so unlike ``client-go`` no locking is
    needed between readers and the informer writing to it.

    """

    def __init__(self, key_func):
        self._key_func = key_func
        self._items = {}
        self._resource_version = ""

    def key(self, obj):
        try:
            return self._key_func(obj)
        except Exception as e:
            raise StoreKeyError(obj) from e

    def add(self, obj):
        self._items[self.key(obj)] = obj

    def delete(self, obj):
        self._items.pop(self.key(obj), None)

    def get(self, obj):
        return self.get_by_key(self.key(obj))

    def get_by_key(self, key):
        return self._items.get(key)

    def list(self):
        return list(self._items.values())

    def list_keys(self):
        return list(self._items)

    def replace(self, list_, resource_version):
        self._items = {self.key(item): item for item in list_}
        self._resource_version = resource_version

    @property
    def resource_version(self):
        return self._resource_version

    def __len__(self):
        return len(self._items)
