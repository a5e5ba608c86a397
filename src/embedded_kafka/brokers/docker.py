"""Thin wrapper around the ``docker`` CLI for running broker nodes."""

from __future__ import annotations

import subprocess
from collections.abc import Mapping
from dataclasses import dataclass, field

import structlog

logger = structlog.get_logger()

CLUSTER_LABEL = "embedded-kafka.cluster"


class DockerError(RuntimeError):
    """Raised when a docker CLI call fails."""


@dataclass(frozen=True)
class NodeSpec:
    """One container: image, environment and host->container port mapping."""

    name: str
    image: str
    env: dict[str, str] = field(default_factory=dict)
    ports: dict[int, int] = field(default_factory=dict)


def property_env_name(key: str) -> str:
    """Map a Kafka property to the env var the Kafka images read it from.

    ``_`` becomes ``__``, ``-`` becomes ``___`` and ``.`` becomes ``_``.
    """
    name = key.replace("_", "__").replace("-", "___").replace(".", "_")
    return f"KAFKA_{name.upper()}"


def properties_env(properties: Mapping[str, str]) -> dict[str, str]:
    return {property_env_name(k): v for k, v in properties.items()}


class DockerRuntime:
    """Creates networks and containers through the docker CLI."""

    def __init__(self, docker: str = "docker") -> None:
        self._docker_bin = docker

    def _docker(self, *args: str) -> str:
        try:
            result = subprocess.run(
                [self._docker_bin, *args],
                check=True,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as exc:
            msg = f"docker executable not found: {self._docker_bin}"
            raise DockerError(msg) from exc
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or "").strip()
            msg = f"docker {args[0]} failed (exit {exc.returncode}): {stderr}"
            raise DockerError(msg) from exc
        return result.stdout.strip()

    def create_network(self, name: str) -> None:
        self._docker("network", "create", "--label", f"{CLUSTER_LABEL}={name}", name)
        logger.debug("docker.network_created", network=name)

    def remove_network(self, name: str) -> None:
        self._docker("network", "rm", name)
        logger.debug("docker.network_removed", network=name)

    def run_node(self, node: NodeSpec, network: str) -> str:
        """Start *node* detached on *network* and return the container id."""
        args = [
            "run",
            "--detach",
            "--name",
            node.name,
            "--hostname",
            node.name,
            "--network",
            network,
            "--label",
            f"{CLUSTER_LABEL}={network}",
        ]
        for host_port, container_port in node.ports.items():
            args += ["--publish", f"{host_port}:{container_port}"]
        for key, value in node.env.items():
            args += ["--env", f"{key}={value}"]
        args.append(node.image)
        container_id = self._docker(*args)
        logger.debug("docker.node_started", node=node.name, image=node.image)
        return container_id

    def remove_node(self, name: str) -> None:
        self._docker("rm", "--force", "--volumes", name)
        logger.debug("docker.node_removed", node=name)
