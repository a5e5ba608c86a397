"""Variant selection: build the broker cluster matching a spec's coordination mode."""

from __future__ import annotations

from collections.abc import Sequence

from embedded_kafka.brokers.base import EmbeddedBroker, NodeRuntime
from embedded_kafka.config.models import EmbeddedKafkaSpec, LauncherConfig


def create_broker(
    spec: EmbeddedKafkaSpec,
    topics: Sequence[str],
    ports: Sequence[int],
    *,
    runtime: NodeRuntime | None = None,
    launcher: LauncherConfig | None = None,
) -> EmbeddedBroker:
    """Create an unstarted broker for *spec*.

    *topics* and *ports* are the resolved topic names and the planned port
    list. KRaft clusters ignore the ZooKeeper settings of the spec.
    """
    if spec.kraft:
        from embedded_kafka.brokers.kraft import KraftBroker

        return KraftBroker(
            spec.count,
            spec.partitions,
            topics,
            ports=ports,
            admin_timeout=spec.admin_timeout,
            runtime=runtime,
            launcher=launcher,
        )

    from embedded_kafka.brokers.zookeeper import ZookeeperBroker

    return ZookeeperBroker(
        spec.count,
        spec.controlled_shutdown,
        spec.partitions,
        topics,
        ports=ports,
        zk_port=spec.zookeeper_port,
        zk_connection_timeout=spec.zk_connection_timeout,
        zk_session_timeout=spec.zk_session_timeout,
        admin_timeout=spec.admin_timeout,
        runtime=runtime,
        launcher=launcher,
    )
