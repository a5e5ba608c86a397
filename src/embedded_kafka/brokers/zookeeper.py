"""Classic cluster: brokers coordinated by a single ZooKeeper node."""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from datetime import timedelta

from embedded_kafka.brokers.base import (
    DEFAULT_BROKERS_PROPERTY,
    EXTERNAL_PORT,
    INTERNAL_PORT,
    ContainerCluster,
    NodeRuntime,
    bootstrap_servers_for,
    broker_defaults,
    layer_node_properties,
    new_network_name,
    start_cluster,
    stop_cluster,
)
from embedded_kafka.brokers.docker import DockerRuntime, NodeSpec, properties_env
from embedded_kafka.config.models import LauncherConfig
from embedded_kafka.ports import AUTO_ASSIGN, bind_ports, plan_ports

ZOOKEEPER_CLIENT_PORT = 2181
ZOOKEEPER_TICK_TIME_MS = 2000
DEFAULT_ZK_TIMEOUT = timedelta(seconds=6)


def _millis(value: timedelta) -> str:
    return str(int(value.total_seconds() * 1000))


class ZookeeperBroker:
    """Test cluster coordinated by ZooKeeper."""

    kraft = False

    def __init__(
        self,
        count: int,
        controlled_shutdown: bool = False,
        partitions: int = 2,
        topics: Sequence[str] = (),
        *,
        ports: Sequence[int] | None = None,
        zk_port: int = AUTO_ASSIGN,
        zk_connection_timeout: timedelta = DEFAULT_ZK_TIMEOUT,
        zk_session_timeout: timedelta = DEFAULT_ZK_TIMEOUT,
        admin_timeout: timedelta = timedelta(seconds=10),
        runtime: NodeRuntime | None = None,
        launcher: LauncherConfig | None = None,
    ) -> None:
        self.count = count
        self.controlled_shutdown = controlled_shutdown
        self.partitions = partitions
        self._topics = tuple(topics)
        self._ports = plan_ports(
            tuple(ports) if ports is not None else (AUTO_ASSIGN,), count
        )
        if len(self._ports) != count:
            msg = f"{len(self._ports)} port(s) given for {count} broker(s)"
            raise ValueError(msg)
        self._zk_port = zk_port
        self.zk_connection_timeout = zk_connection_timeout
        self.zk_session_timeout = zk_session_timeout
        self._admin_timeout = admin_timeout
        self._launcher = launcher or LauncherConfig()
        self._runtime = runtime or DockerRuntime(self._launcher.docker)
        self._network = new_network_name(self._launcher.network_prefix)
        self._properties: dict[str, str] = {}
        self._brokers_property = DEFAULT_BROKERS_PROPERTY
        self._cluster: ContainerCluster | None = None

    def broker_properties(self, properties: Mapping[str, str]) -> ZookeeperBroker:
        self._properties = dict(properties)
        return self

    def bootstrap_servers_property(self, name: str) -> ZookeeperBroker:
        self._brokers_property = name
        return self

    @property
    def ports(self) -> tuple[int, ...]:
        return self._ports

    @property
    def zk_port(self) -> int:
        return self._zk_port

    @property
    def properties(self) -> dict[str, str]:
        return dict(self._properties)

    @property
    def topics(self) -> tuple[str, ...]:
        return self._topics

    @property
    def brokers_property(self) -> str:
        return self._brokers_property

    @property
    def bootstrap_servers(self) -> str:
        if self._cluster is None:
            msg = "Broker cluster has not been started"
            raise RuntimeError(msg)
        return bootstrap_servers_for(self._launcher.host, self._ports)

    @property
    def zookeeper_connect(self) -> str:
        """Host-side ZooKeeper address of a started cluster."""
        if self._cluster is None:
            msg = "Broker cluster has not been started"
            raise RuntimeError(msg)
        return f"{self._launcher.host}:{self._zk_port}"

    @property
    def zookeeper_node_name(self) -> str:
        return f"{self._network}-zookeeper"

    def node_name(self, index: int) -> str:
        return f"{self._network}-kafka-{index}"

    def node_properties(self, index: int, host_port: int) -> dict[str, str]:
        """Full property set for broker *index* published on *host_port*."""
        structural = {
            "broker.id": str(index),
            "zookeeper.connect": f"{self.zookeeper_node_name}:{ZOOKEEPER_CLIENT_PORT}",
            "zookeeper.connection.timeout.ms": _millis(self.zk_connection_timeout),
            "zookeeper.session.timeout.ms": _millis(self.zk_session_timeout),
            "controlled.shutdown.enable": str(self.controlled_shutdown).lower(),
            "inter.broker.listener.name": "INTERNAL",
            "listeners": f"INTERNAL://:{INTERNAL_PORT},EXTERNAL://:{EXTERNAL_PORT}",
            "advertised.listeners": (
                f"INTERNAL://{self.node_name(index)}:{INTERNAL_PORT},"
                f"EXTERNAL://{self._launcher.host}:{host_port}"
            ),
            "listener.security.protocol.map": "INTERNAL:PLAINTEXT,EXTERNAL:PLAINTEXT",
        }
        return layer_node_properties(
            broker_defaults(self.count, self.partitions), self._properties, structural
        )

    def start(self) -> None:
        if self._cluster is not None:
            msg = "Broker cluster is already started"
            raise RuntimeError(msg)
        zk_port, *bound = bind_ports(
            (self._zk_port, *self._ports), self._launcher.host
        )
        ports = tuple(bound)
        zookeeper = NodeSpec(
            name=self.zookeeper_node_name,
            image=self._launcher.zookeeper_image,
            env={
                "ZOOKEEPER_CLIENT_PORT": str(ZOOKEEPER_CLIENT_PORT),
                "ZOOKEEPER_TICK_TIME": str(ZOOKEEPER_TICK_TIME_MS),
            },
            ports={zk_port: ZOOKEEPER_CLIENT_PORT},
        )
        brokers = [
            NodeSpec(
                name=self.node_name(index),
                image=self._launcher.broker_image,
                env=properties_env(self.node_properties(index, port)),
                ports={port: EXTERNAL_PORT},
            )
            for index, port in enumerate(ports)
        ]
        bootstrap_servers = bootstrap_servers_for(self._launcher.host, ports)
        self._cluster = start_cluster(
            self._runtime,
            self._network,
            [zookeeper, *brokers],
            mode="zookeeper",
            count=self.count,
            bootstrap_servers=bootstrap_servers,
            topics=self._topics,
            partitions=self.partitions,
            launcher=self._launcher,
            admin_timeout=self._admin_timeout.total_seconds(),
        )
        self._ports = ports
        self._zk_port = zk_port
        os.environ[self._brokers_property] = bootstrap_servers

    def stop(self) -> None:
        if self._cluster is None:
            return
        cluster, self._cluster = self._cluster, None
        stop_cluster(cluster, self._brokers_property)

    def __repr__(self) -> str:
        return (
            f"ZookeeperBroker(count={self.count}, partitions={self.partitions}, "
            f"topics={list(self._topics)}, ports={list(self._ports)}, "
            f"zk_port={self._zk_port})"
        )
