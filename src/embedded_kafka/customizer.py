"""Turns an :class:`EmbeddedKafkaSpec` into a started broker bound in a context."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from embedded_kafka.brokers.base import EmbeddedBroker, NodeRuntime
from embedded_kafka.brokers.factory import create_broker
from embedded_kafka.config.loader import resolve_placeholders
from embedded_kafka.config.models import EmbeddedKafkaSpec, LauncherConfig
from embedded_kafka.context import BROKER_NAME, BrokerContext
from embedded_kafka.errors import ConfigurationError
from embedded_kafka.layering import Resolver, resolve_broker_properties
from embedded_kafka.ports import plan_ports
from embedded_kafka.provisioner import provision
from embedded_kafka.resources import ResourceLoader

logger = structlog.get_logger()


@dataclass(frozen=True)
class EmbeddedKafkaCustomizer:
    """Provisions the broker described by ``spec`` into a context.

    Equality and hash come from the spec alone, so customizers built from
    equal specs are interchangeable cache keys.
    """

    spec: EmbeddedKafkaSpec

    def customize(
        self,
        context: BrokerContext,
        *,
        resolve: Resolver = resolve_placeholders,
        loader: ResourceLoader | None = None,
        runtime: NodeRuntime | None = None,
        launcher: LauncherConfig | None = None,
    ) -> EmbeddedBroker:
        spec = self.spec
        topics = [self._resolve_topic(topic, resolve) for topic in spec.topics]
        ports = plan_ports(spec.ports, spec.count)
        if len(ports) != spec.count:
            msg = f"{len(ports)} port(s) given for {spec.count} broker(s)"
            raise ConfigurationError(msg)
        broker = create_broker(
            spec, topics, ports, runtime=runtime, launcher=launcher
        )
        properties = resolve_broker_properties(
            spec, resolve, loader or ResourceLoader()
        )
        provision(broker, properties, spec.bootstrap_servers_property)
        try:
            context.register(BROKER_NAME, broker)
        except Exception:
            self._stop_rejected(broker)
            raise
        logger.info(
            "broker.registered",
            name=BROKER_NAME,
            bootstrap_servers=broker.bootstrap_servers,
        )
        return broker

    @staticmethod
    def _resolve_topic(topic: str, resolve: Resolver) -> str:
        try:
            return resolve(topic)
        except ValueError as exc:
            msg = f"Failed to resolve topic name [{topic}]"
            raise ConfigurationError(msg) from exc

    @staticmethod
    def _stop_rejected(broker: EmbeddedBroker) -> None:
        try:
            broker.stop()
        except Exception as exc:
            logger.warning("broker.stop_failed", error=str(exc))
