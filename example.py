"""

Example watching the resources owned by a cluster's cloud platform.

Usage:
python example.py

Output:
changed ConfigMap openshift-cloud-controller-manager/cloud-conf
changed Deployment openshift-cloud-controller-manager/aws-cloud-controller-manager
changed ServiceAccount openshift-cloud-controller-manager/cloud-controller-manager
changed ClusterRole cloud-controller-manager
changed ClusterRoleBinding cloud-controller-manager
"""

import asyncio
import logging
import signal

from kubernetes_asyncio import client, config

from nswatch.controller import namespaced_cache
from nswatch.platform import infrastructure, owner
from nswatch.runtime import scheme


async def _print_events(cache):
    async for event in cache.event_stream():
        kind = scheme.SCHEME.object_kind(event.object).kind
        if event.meta.namespace:
            print("changed", kind, f"{event.meta.namespace}/{event.meta.name}")
        else:
            print("changed", kind, event.meta.name)


async def _run():
    logging.basicConfig(level=logging.INFO)
    await config.load_kube_config()
    api_client = client.ApiClient()

    platform_owner = await owner.select_owner(
        [infrastructure.InfrastructureOwner()], api_client
    )
    if platform_owner is None:
        return
    _, resources = await platform_owner.get_owner(
        api_client, owner.ObjectKey("", "cluster")
    )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signal_ in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signal_, stop.set)

    cache = namespaced_cache.new(namespaced_cache.CacheOptions(config=api_client))
    printer = asyncio.ensure_future(_print_events(cache))
    try:
        await owner.watch_resources(cache, resources, stop)
        await stop.wait()
    finally:
        printer.cancel()
        await cache.close()
        await api_client.close()


if __name__ == "__main__":
    asyncio.run(_run())
