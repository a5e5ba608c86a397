"""Pydantic models for the broker spec and the container launcher."""

from __future__ import annotations

from datetime import timedelta
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

Port = Annotated[int, Field(ge=0, le=65535)]


class EmbeddedKafkaSpec(BaseModel):
    """Declarative description of a test broker cluster.

    Instances are immutable and compared field by field, so two specs with the
    same values share one provisioned cluster. Sequence fields are tuples and
    keep their order: ``topics=("a", "b")`` and ``topics=("b", "a")`` are
    different specs.

    The ``zookeeper_port`` and ``zk_*`` fields only apply when ``kraft`` is
    false; KRaft clusters accept and ignore them.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    count: int = Field(default=1, ge=1)
    partitions: int = Field(default=2, ge=1)
    topics: tuple[str, ...] = ()
    kraft: bool = True
    # A single 0 means "let every broker pick a free port"
    ports: tuple[Port, ...] = (0,)
    controlled_shutdown: bool = False
    zookeeper_port: Port = 0
    zk_connection_timeout: timedelta = timedelta(seconds=6)
    zk_session_timeout: timedelta = timedelta(seconds=6)
    admin_timeout: timedelta = timedelta(seconds=10)
    # Each entry holds one or more "key=value" lines; placeholders allowed
    broker_properties: tuple[str, ...] = ()
    broker_properties_location: str = ""
    bootstrap_servers_property: str = ""

    @field_validator("zk_connection_timeout", "zk_session_timeout", "admin_timeout")
    @classmethod
    def validate_positive_duration(cls, v: timedelta) -> timedelta:
        if v <= timedelta(0):
            msg = f"timeout must be positive, got {v}"
            raise ValueError(msg)
        return v


class LauncherConfig(BaseModel):
    """Container runtime settings used to start broker nodes."""

    docker: str = "docker"
    kraft_image: str = "apache/kafka:3.8.0"
    broker_image: str = "confluentinc/cp-kafka:7.7.1"
    zookeeper_image: str = "confluentinc/cp-zookeeper:7.7.1"
    # Host name clients use to reach the published broker ports
    host: str = "localhost"
    network_prefix: str = Field(
        default="embedded-kafka", pattern=r"^[a-zA-Z0-9][a-zA-Z0-9_.-]*$"
    )
    startup_timeout_seconds: float = Field(default=120.0, gt=0)
    poll_interval_seconds: float = Field(default=1.0, gt=0)
