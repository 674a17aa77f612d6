import unittest

from kubernetes_asyncio.client.models import V1ConfigMap, V1Namespace, V1ObjectMeta

from nswatch.cache.store import StoreKeyError, meta_namespace_key_func, new_store


def config_map(name, data, namespace="ns"):
    return V1ConfigMap(
        metadata=V1ObjectMeta(name=name, namespace=namespace), data={"val": data}
    )


class TestStore(unittest.TestCase):
    def test_cache(self):
        store = new_store()

        store.add(config_map("foo", "bar"))
        self.assertEqual(store.get(config_map("foo", "")).data["val"], "bar")
        store.add(config_map("foo", "baz"))
        self.assertEqual(store.get(config_map("foo", "")).data["val"], "baz")
        store.delete(config_map("foo", ""))
        self.assertIsNone(store.get(config_map("foo", "")))

        store.add(config_map("a", "b"))
        store.add(config_map("c", "d"))
        store.add(config_map("e", "e"))
        found = {item.data["val"] for item in store.list()}
        self.assertEqual(found, {"b", "d", "e"})

        store.replace([config_map("foo", "foo"), config_map("bar", "bar")], "7")
        found = {item.data["val"] for item in store.list()}
        self.assertEqual(found, {"foo", "bar"})
        self.assertEqual(store.resource_version, "7")
        self.assertEqual(len(store), 2)

    def test_key_func(self):
        self.assertEqual(meta_namespace_key_func(config_map("a", "")), "ns/a")
        self.assertEqual(
            meta_namespace_key_func(V1Namespace(metadata=V1ObjectMeta(name="ns"))),
            "ns",
        )
        self.assertEqual(
            meta_namespace_key_func({"metadata": {"name": "cluster"}}), "cluster"
        )

    def test_key_error(self):
        store = new_store()
        with self.assertRaises(StoreKeyError):
            store.add(V1ConfigMap())
        self.assertEqual(store.get_by_key("ns/missing"), None)


if __name__ == "__main__":
    unittest.main()
