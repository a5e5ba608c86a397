"""Broker protocol and the container lifecycle shared by both variants.

``KraftBroker`` and ``ZookeeperBroker`` are unrelated classes that both
satisfy :class:`EmbeddedBroker`; callers never need to know which one they
hold. What they share is composed in from this module: node property
layering, the container cluster and the start sequence.
"""

from __future__ import annotations

import base64
import os
import uuid
from collections.abc import Mapping, Sequence
from typing import Protocol, runtime_checkable

import structlog

from embedded_kafka.brokers.admin import ensure_topics, wait_for_brokers
from embedded_kafka.brokers.docker import DockerError, NodeSpec
from embedded_kafka.config.models import LauncherConfig
from embedded_kafka.errors import ProvisioningError
from embedded_kafka.layering import (
    TRANSACTION_STATE_LOG_REPLICATION_FACTOR,
    MergeMode,
    merge_properties,
)

logger = structlog.get_logger()

DEFAULT_BROKERS_PROPERTY = "EMBEDDED_KAFKA_BROKERS"

INTERNAL_PORT = 19092
EXTERNAL_PORT = 9092


@runtime_checkable
class EmbeddedBroker(Protocol):
    """A configurable, startable test broker cluster."""

    def broker_properties(self, properties: Mapping[str, str]) -> EmbeddedBroker:
        """Set the properties applied to every broker node."""
        ...

    def bootstrap_servers_property(self, name: str) -> EmbeddedBroker:
        """Set the env var the bootstrap servers are published under."""
        ...

    def start(self) -> None:
        """Start the cluster and block until it accepts clients."""
        ...

    def stop(self) -> None:
        """Tear the cluster down."""
        ...

    @property
    def ports(self) -> tuple[int, ...]: ...

    @property
    def properties(self) -> dict[str, str]: ...

    @property
    def bootstrap_servers(self) -> str: ...

    @property
    def topics(self) -> tuple[str, ...]: ...


@runtime_checkable
class NodeRuntime(Protocol):
    """Runs broker nodes; :class:`~embedded_kafka.brokers.docker.DockerRuntime` by default."""

    def create_network(self, name: str) -> None: ...

    def remove_network(self, name: str) -> None: ...

    def run_node(self, node: NodeSpec, network: str) -> str: ...

    def remove_node(self, name: str) -> None: ...


def new_cluster_id() -> str:
    """Random KRaft cluster id (base64 of a UUID, 22 chars)."""
    return base64.urlsafe_b64encode(uuid.uuid4().bytes).rstrip(b"=").decode()


def new_network_name(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}"


def broker_defaults(count: int, partitions: int) -> dict[str, str]:
    """Settings every test broker starts from, sized to the cluster."""
    replication = str(min(3, count))
    return {
        "auto.create.topics.enable": "true",
        "delete.topic.enable": "true",
        "num.partitions": str(partitions),
        "group.initial.rebalance.delay.ms": "0",
        "offsets.topic.replication.factor": replication,
        TRANSACTION_STATE_LOG_REPLICATION_FACTOR: replication,
        "transaction.state.log.min.isr": "1",
    }


def layer_node_properties(
    defaults: Mapping[str, str],
    user: Mapping[str, str],
    structural: Mapping[str, str],
) -> dict[str, str]:
    """Defaults < user properties < structural node keys."""
    properties = merge_properties({}, structural, MergeMode.OVERWRITE)
    merge_properties(properties, user, MergeMode.FILL_GAPS)
    return merge_properties(properties, defaults, MergeMode.FILL_GAPS)


def bootstrap_servers_for(host: str, ports: Sequence[int]) -> str:
    return ",".join(f"{host}:{port}" for port in ports)


class ContainerCluster:
    """The network and containers backing one started cluster."""

    def __init__(self, runtime: NodeRuntime, network: str) -> None:
        self._runtime = runtime
        self.network = network
        self._network_created = False
        self._nodes: list[str] = []

    def create(self) -> None:
        self._runtime.create_network(self.network)
        self._network_created = True

    def run(self, node: NodeSpec) -> None:
        self._runtime.run_node(node, self.network)
        self._nodes.append(node.name)

    def teardown(self) -> list[str]:
        """Remove every node, then the network; return the failures."""
        failures: list[str] = []
        while self._nodes:
            name = self._nodes.pop()
            try:
                self._runtime.remove_node(name)
            except DockerError as exc:
                failures.append(str(exc))
        if self._network_created:
            try:
                self._runtime.remove_network(self.network)
            except DockerError as exc:
                failures.append(str(exc))
            self._network_created = False
        return failures


def start_cluster(
    runtime: NodeRuntime,
    network: str,
    nodes: Sequence[NodeSpec],
    *,
    mode: str,
    count: int,
    bootstrap_servers: str,
    topics: Sequence[str],
    partitions: int,
    launcher: LauncherConfig,
    admin_timeout: float,
) -> ContainerCluster:
    """Run *nodes*, wait for *count* brokers and create *topics*.

    Anything started is torn down again when a step fails, and the failure
    is raised as :class:`ProvisioningError`.
    """
    cluster = ContainerCluster(runtime, network)
    logger.info(
        "broker.starting",
        mode=mode,
        count=count,
        network=network,
        bootstrap_servers=bootstrap_servers,
    )
    try:
        cluster.create()
        for node in nodes:
            cluster.run(node)
        wait_for_brokers(
            bootstrap_servers,
            count,
            timeout=launcher.startup_timeout_seconds,
            poll_interval=launcher.poll_interval_seconds,
        )
        ensure_topics(
            bootstrap_servers,
            topics,
            num_partitions=partitions,
            replication_factor=count,
            timeout=admin_timeout,
        )
    except Exception as exc:
        logger.error(
            "broker.start_failed", mode=mode, network=network, error=str(exc)
        )
        for failure in cluster.teardown():
            logger.warning("broker.teardown_failed", network=network, error=failure)
        msg = f"Failed to start {mode} broker cluster ({count} node(s)): {exc}"
        raise ProvisioningError(msg) from exc
    logger.info("broker.started", mode=mode, bootstrap_servers=bootstrap_servers)
    return cluster


def stop_cluster(cluster: ContainerCluster, brokers_property: str) -> None:
    os.environ.pop(brokers_property, None)
    failures = cluster.teardown()
    if failures:
        msg = f"Failed to stop broker cluster {cluster.network}: {'; '.join(failures)}"
        raise DockerError(msg)
    logger.info("broker.stopped", network=cluster.network)
