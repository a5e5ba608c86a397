"""KRaft-mode cluster: every node is both broker and controller."""

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
    new_cluster_id,
    new_network_name,
    start_cluster,
    stop_cluster,
)
from embedded_kafka.brokers.docker import DockerRuntime, NodeSpec, properties_env
from embedded_kafka.config.models import LauncherConfig
from embedded_kafka.ports import AUTO_ASSIGN, bind_ports, plan_ports

CONTROLLER_PORT = 9093


class KraftBroker:
    """Test cluster coordinated by a KRaft controller quorum."""

    kraft = True

    def __init__(
        self,
        count: int,
        partitions: int = 2,
        topics: Sequence[str] = (),
        *,
        ports: Sequence[int] | None = None,
        admin_timeout: timedelta = timedelta(seconds=10),
        runtime: NodeRuntime | None = None,
        launcher: LauncherConfig | None = None,
    ) -> None:
        self.count = count
        self.partitions = partitions
        self._topics = tuple(topics)
        self._ports = plan_ports(
            tuple(ports) if ports is not None else (AUTO_ASSIGN,), count
        )
        if len(self._ports) != count:
            msg = f"{len(self._ports)} port(s) given for {count} broker(s)"
            raise ValueError(msg)
        self._admin_timeout = admin_timeout
        self._launcher = launcher or LauncherConfig()
        self._runtime = runtime or DockerRuntime(self._launcher.docker)
        self._network = new_network_name(self._launcher.network_prefix)
        self._cluster_id = new_cluster_id()
        self._properties: dict[str, str] = {}
        self._brokers_property = DEFAULT_BROKERS_PROPERTY
        self._cluster: ContainerCluster | None = None

    def broker_properties(self, properties: Mapping[str, str]) -> KraftBroker:
        self._properties = dict(properties)
        return self

    def bootstrap_servers_property(self, name: str) -> KraftBroker:
        self._brokers_property = name
        return self

    @property
    def ports(self) -> tuple[int, ...]:
        return self._ports

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

    def node_name(self, index: int) -> str:
        return f"{self._network}-kafka-{index}"

    def node_properties(self, index: int, host_port: int) -> dict[str, str]:
        """Full property set for node *index* published on *host_port*."""
        voters = ",".join(
            f"{i}@{self.node_name(i)}:{CONTROLLER_PORT}" for i in range(self.count)
        )
        structural = {
            "node.id": str(index),
            "process.roles": "broker,controller",
            "controller.quorum.voters": voters,
            "controller.listener.names": "CONTROLLER",
            "inter.broker.listener.name": "INTERNAL",
            "listeners": (
                f"INTERNAL://:{INTERNAL_PORT},CONTROLLER://:{CONTROLLER_PORT},"
                f"EXTERNAL://:{EXTERNAL_PORT}"
            ),
            "advertised.listeners": (
                f"INTERNAL://{self.node_name(index)}:{INTERNAL_PORT},"
                f"EXTERNAL://{self._launcher.host}:{host_port}"
            ),
            "listener.security.protocol.map": (
                "INTERNAL:PLAINTEXT,CONTROLLER:PLAINTEXT,EXTERNAL:PLAINTEXT"
            ),
        }
        return layer_node_properties(
            broker_defaults(self.count, self.partitions), self._properties, structural
        )

    def start(self) -> None:
        if self._cluster is not None:
            msg = "Broker cluster is already started"
            raise RuntimeError(msg)
        ports = bind_ports(self._ports, self._launcher.host)
        nodes = [
            NodeSpec(
                name=self.node_name(index),
                image=self._launcher.kraft_image,
                env={
                    "CLUSTER_ID": self._cluster_id,
                    **properties_env(self.node_properties(index, port)),
                },
                ports={port: EXTERNAL_PORT},
            )
            for index, port in enumerate(ports)
        ]
        bootstrap_servers = bootstrap_servers_for(self._launcher.host, ports)
        self._cluster = start_cluster(
            self._runtime,
            self._network,
            nodes,
            mode="kraft",
            count=self.count,
            bootstrap_servers=bootstrap_servers,
            topics=self._topics,
            partitions=self.partitions,
            launcher=self._launcher,
            admin_timeout=self._admin_timeout.total_seconds(),
        )
        self._ports = ports
        os.environ[self._brokers_property] = bootstrap_servers

    def stop(self) -> None:
        if self._cluster is None:
            return
        cluster, self._cluster = self._cluster, None
        stop_cluster(cluster, self._brokers_property)

    def __repr__(self) -> str:
        return (
            f"KraftBroker(count={self.count}, partitions={self.partitions}, "
            f"topics={list(self._topics)}, ports={list(self._ports)})"
        )
