import asyncio
import unittest

from kubernetes_asyncio import client
from kubernetes_asyncio.client.models import (
    V1ConfigMap,
    V1Namespace,
    V1ObjectMeta,
    V1Secret,
)

from nswatch import errors
from nswatch.api.rest_mapper import DefaultRESTMapper, RESTScopeName
from nswatch.cache import informer_cache
from nswatch.cache.testing.fake_controller_source import FakeControllerSource
from nswatch.cache.testing.util import async_test
from nswatch.controller import namespaced_cache
from nswatch.controller.namespaced_cache import (
    CLUSTER_SCOPE,
    CacheOptions,
    _EventToStreamHandler,
)
from nswatch.runtime import schema


def config_map(name, namespace="kube-system", data=None):
    return V1ConfigMap(
        metadata=V1ObjectMeta(name=name, namespace=namespace), data=data
    )


def infrastructure(name="cluster", platform="AWS"):
    return {
        "apiVersion": "config.openshift.io/v1",
        "kind": "Infrastructure",
        "metadata": {"name": name},
        "status": {"platform": platform},
    }


class FakeCluster:
    """Fake list/watch sources for every (kind, namespace) a session asks for."""

    def __init__(self):
        self.sources = {}
        self.mapper = DefaultRESTMapper()
        self.mapper.add(
            schema.GroupVersionKind("", "v1", "ConfigMap"), RESTScopeName.NAMESPACE
        )
        self.mapper.add(
            schema.GroupVersionKind("", "v1", "Namespace"), RESTScopeName.ROOT
        )
        self.mapper.add(
            schema.GroupVersionKind("config.openshift.io", "v1", "Infrastructure"),
            RESTScopeName.ROOT,
        )
        self.sessions_created = []

    def source(self, kind, namespace):
        return self.sources.setdefault((kind, namespace), FakeControllerSource())

    def create_lister_watcher(self, mapping, namespace):
        return self.source(mapping.group_version_kind.kind, namespace)

    def new_session(self, *, namespace, resync):
        self.sessions_created.append(namespace)
        return informer_cache.new(
            mapper=self.mapper,
            resync=resync,
            namespace=namespace,
            create_lister_watcher=self.create_lister_watcher,
        )

    def new_cache(self, **kwargs):
        options = CacheOptions(
            mapper=self.mapper, new_session=self.new_session, **kwargs
        )
        return namespaced_cache.new(options)


async def next_event(cache):
    return await asyncio.wait_for(cache.event_stream().get(), 5)


class TestNamespacedCache(unittest.TestCase):
    def setUp(self):
        self.cluster = FakeCluster()

    @async_test
    async def test_watch_config_map(self):
        source = self.cluster.source("ConfigMap", "kube-system")
        await source.add(config_map("cc-config"))
        await source.add(config_map("other-config"))
        cache = self.cluster.new_cache()
        try:
            await cache.watch(config_map("cc-config"))
            self.assertEqual(self.cluster.sessions_created, ["kube-system"])
            self.assertEqual(
                cache.watched("kube-system"), frozenset(["ConfigMap/cc-config"])
            )

            # The existing object is delivered once the handler is attached
            event = await next_event(cache)
            self.assertEqual(event.meta.name, "cc-config")

            await source.modify(config_map("cc-config", data={"a": "1"}))
            event = await next_event(cache)
            self.assertEqual(event.meta.name, "cc-config")
            self.assertEqual(event.object.data, {"a": "1"})

            # Only the change to cc-config may come through
            await source.modify(config_map("other-config", data={"b": "2"}))
            await source.modify(config_map("cc-config", data={"a": "3"}))
            event = await next_event(cache)
            self.assertEqual(event.meta.name, "cc-config")
            self.assertEqual(event.object.data, {"a": "3"})
            await asyncio.sleep(0.1)
            self.assertTrue(cache.event_stream().empty())

            await source.delete(config_map("cc-config"))
            event = await next_event(cache)
            self.assertEqual(event.meta.name, "cc-config")
        finally:
            await cache.close()

    @async_test
    async def test_missing_namespace(self):
        cache = self.cluster.new_cache()
        with self.assertRaises(errors.InvalidArgumentError):
            await cache.watch(config_map("cc-config", namespace=None))
        self.assertEqual(self.cluster.sessions_created, [])
        self.assertEqual(len(cache._sessions), 0)
        self.assertTrue(cache.event_stream().empty())

    @async_test
    async def test_missing_name(self):
        cache = self.cluster.new_cache()
        with self.assertRaises(errors.InvalidArgumentError):
            await cache.watch(config_map(None))
        with self.assertRaises(errors.InvalidArgumentError):
            await cache.watch(V1ConfigMap())
        self.assertEqual(self.cluster.sessions_created, [])

    @async_test
    async def test_unknown_kind(self):
        cache = self.cluster.new_cache()
        secret = V1Secret(metadata=V1ObjectMeta(name="a", namespace="kube-system"))
        with self.assertRaises(errors.DiscoveryError):
            await cache.watch(secret)
        with self.assertRaises(errors.DiscoveryError):
            await cache.watch({"metadata": {"name": "a"}})
        self.assertEqual(self.cluster.sessions_created, [])

    @async_test
    async def test_idempotent(self):
        source = self.cluster.source("ConfigMap", "kube-system")
        cache = self.cluster.new_cache()
        try:
            for _ in range(3):
                await cache.watch(config_map("cc-config"))
            self.assertEqual(self.cluster.sessions_created, ["kube-system"])
            self.assertEqual(len(cache.watched("kube-system")), 1)
            informer = await cache._sessions.get("kube-system").get_informer(
                V1ConfigMap()
            )
            self.assertEqual(len(informer._listeners), 1)

            await source.add(config_map("cc-config", data={"a": "1"}))
            await source.modify(config_map("cc-config", data={"a": "2"}))
            self.assertEqual((await next_event(cache)).object.data, {"a": "1"})
            self.assertEqual((await next_event(cache)).object.data, {"a": "2"})
        finally:
            await cache.close()

    @async_test
    async def test_concurrent_watch(self):
        cache = self.cluster.new_cache()
        try:
            await asyncio.gather(
                *(cache.watch(config_map("cc-config")) for _ in range(10))
            )
            self.assertEqual(self.cluster.sessions_created, ["kube-system"])
            informer = await cache._sessions.get("kube-system").get_informer(
                V1ConfigMap()
            )
            self.assertEqual(len(informer._listeners), 1)
        finally:
            await cache.close()

    @async_test
    async def test_scope_isolation(self):
        cache = self.cluster.new_cache()
        try:
            await cache.watch(config_map("cc-config"))
            await cache.watch(V1Namespace(metadata=V1ObjectMeta(name="cc-config")))
            await cache.watch(infrastructure())
            # Cluster-scoped objects with a stray namespace still go to the cluster
            await cache.watch(
                V1Namespace(metadata=V1ObjectMeta(name="a", namespace="kube-system"))
            )
            self.assertEqual(self.cluster.sessions_created, ["kube-system", None])
            self.assertEqual(
                cache.watched("kube-system"), frozenset(["ConfigMap/cc-config"])
            )
            self.assertEqual(
                cache.watched(CLUSTER_SCOPE),
                frozenset(
                    [
                        "Namespace/cc-config",
                        "Namespace/a",
                        "Infrastructure.config.openshift.io/cluster",
                    ]
                ),
            )
            self.assertIsNone(cache._sessions.get(CLUSTER_SCOPE).namespace)
            session = cache._sessions.get("kube-system")
            self.assertEqual(session.namespace, "kube-system")
        finally:
            await cache.close()

    @async_test
    async def test_namespaces_are_separate(self):
        cache = self.cluster.new_cache()
        other = self.cluster.source("ConfigMap", "openshift-config")
        try:
            await cache.watch(config_map("cc-config"))
            await cache.watch(config_map("cc-config", namespace="openshift-config"))
            self.assertEqual(
                self.cluster.sessions_created, ["kube-system", "openshift-config"]
            )
            await other.add(config_map("cc-config", namespace="openshift-config"))
            event = await next_event(cache)
            self.assertEqual(event.meta.namespace, "openshift-config")
        finally:
            await cache.close()

    @async_test
    async def test_unstructured(self):
        source = self.cluster.source("Infrastructure", None)
        await source.add(infrastructure())
        cache = self.cluster.new_cache()
        try:
            await cache.watch(infrastructure(platform=""))
            event = await next_event(cache)
            self.assertEqual(event.meta.name, "cluster")
            self.assertEqual(event.object["status"]["platform"], "AWS")
        finally:
            await cache.close()

    @async_test
    async def test_session_failure_is_not_memoized(self):
        attempts = []

        def new_session(*, namespace, resync):
            attempts.append(namespace)
            if len(attempts) == 1:
                raise ConnectionError("unreachable")
            return self.cluster.new_session(namespace=namespace, resync=resync)

        cache = namespaced_cache.new(
            CacheOptions(mapper=self.cluster.mapper, new_session=new_session)
        )
        try:
            with self.assertRaises(errors.SessionError):
                await cache.watch(config_map("cc-config"))
            self.assertEqual(cache.watched("kube-system"), frozenset())
            self.assertEqual(len(cache._sessions), 0)

            await cache.watch(config_map("cc-config"))
            self.assertEqual(attempts, ["kube-system", "kube-system"])
            self.assertEqual(len(cache.watched("kube-system")), 1)
        finally:
            await cache.close()

    @async_test
    async def test_informer_failure_is_not_recorded(self):
        class BrokenSession:
            def start(self, stop_event):
                pass

            async def get_informer(self, obj):
                raise RuntimeError("no informer")

        cache = namespaced_cache.new(
            CacheOptions(
                mapper=self.cluster.mapper,
                new_session=lambda namespace, resync: BrokenSession(),
            )
        )
        with self.assertRaises(errors.SessionError):
            await cache.watch(config_map("cc-config"))
        self.assertEqual(cache.watched("kube-system"), frozenset())

    @async_test
    async def test_stop_event(self):
        cache = self.cluster.new_cache()
        stop = asyncio.Event()
        await cache.watch(config_map("cc-config"), stop)
        session = cache._sessions.get("kube-system")
        stop.set()
        await asyncio.wait_for(session.join(), 5)

        # The registration outlives the session
        await cache.watch(config_map("cc-config"))
        self.assertEqual(len(cache.watched("kube-system")), 1)
        await cache.close()

    @async_test
    async def test_close_stops_sessions(self):
        cache = self.cluster.new_cache()
        await cache.watch(config_map("cc-config"))
        session = cache._sessions.get("kube-system")
        await cache.close()
        await asyncio.wait_for(session.join(), 5)

    @async_test
    async def test_malformed_api_version(self):
        cache = self.cluster.new_cache()
        obj = {"apiVersion": "a/b/c", "kind": "X", "metadata": {"name": "n"}}
        with self.assertRaises(errors.DiscoveryError):
            await cache.watch(obj)
        self.assertEqual(self.cluster.sessions_created, [])

    @async_test
    async def test_watch_on_stopped_session(self):
        cache = self.cluster.new_cache()
        stop = asyncio.Event()
        await cache.watch(config_map("a"), stop)
        session = cache._sessions.get("kube-system")
        stop.set()
        await asyncio.wait_for(session.join(), 5)

        with self.assertRaises(errors.SessionError):
            await cache.watch(config_map("b"))
        self.assertEqual(cache.watched("kube-system"), frozenset(["ConfigMap/a"]))
        await cache.close()

    @async_test
    async def test_close_waits_for_sessions(self):
        cache = self.cluster.new_cache()
        await cache.watch(config_map("cc-config"))
        await cache.watch(infrastructure())
        sessions = [
            cache._sessions.get("kube-system"),
            cache._sessions.get(CLUSTER_SCOPE),
        ]
        await cache.close()
        for session in sessions:
            self.assertTrue(session.stopped())
            self.assertTrue(all(task.done() for task in session._tasks))

    @async_test
    async def test_backpressure(self):
        source = self.cluster.source("ConfigMap", "kube-system")
        cache = self.cluster.new_cache()
        try:
            await cache.watch(config_map("cc-config"))
            for i in range(3):
                await source.modify(config_map("cc-config", data={"i": str(i)}))
            await asyncio.sleep(0.1)
            self.assertEqual(cache.event_stream().qsize(), 1)
            received = [(await next_event(cache)).object.data["i"] for _ in range(3)]
            self.assertEqual(received, ["0", "1", "2"])
        finally:
            await cache.close()

    @async_test
    async def test_event_stream_is_stable(self):
        cache = self.cluster.new_cache()
        self.assertIs(cache.event_stream(), cache.event_stream())

    @async_test
    async def test_config_required(self):
        with self.assertRaises(errors.InvalidArgumentError):
            namespaced_cache.new(CacheOptions())
        with self.assertRaises(errors.InvalidArgumentError):
            namespaced_cache.new(CacheOptions(mapper=self.cluster.mapper))

        cache = namespaced_cache.new(CacheOptions(config=client.Configuration()))
        self.assertIsNotNone(cache._api_client)
        await cache.close()

        api_client = client.ApiClient()
        cache = namespaced_cache.new(CacheOptions(config=api_client))
        self.assertIsNone(cache._api_client)
        await cache.close()
        await api_client.close()


class TestEventToStreamHandler(unittest.TestCase):
    @async_test
    async def test_filter(self):
        events = asyncio.Queue()
        handler = _EventToStreamHandler("a", events)
        await handler.on_add(None)
        await handler.on_add("not an object")
        await handler.on_add(V1ConfigMap())
        await handler.on_add(config_map("b"))
        await handler.on_update(config_map("a"), config_map("b"))
        self.assertTrue(events.empty())

        await handler.on_add(config_map("a"))
        await handler.on_update(config_map("b"), config_map("a"))
        await handler.on_delete(config_map("a"))
        self.assertEqual(events.qsize(), 3)
        event = events.get_nowait()
        self.assertEqual(event.meta.name, "a")
        self.assertEqual(event.object.metadata.name, "a")


if __name__ == "__main__":
    unittest.main()
