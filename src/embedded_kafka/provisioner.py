"""Apply resolved properties to a broker and start it."""

from __future__ import annotations

from collections.abc import Mapping

import structlog

from embedded_kafka.brokers.base import EmbeddedBroker
from embedded_kafka.errors import ProvisioningError

logger = structlog.get_logger()


def provision(
    broker: EmbeddedBroker,
    properties: Mapping[str, str],
    bootstrap_servers_property: str = "",
) -> EmbeddedBroker:
    """Configure *broker* and start it, blocking until it is ready.

    Start failures are raised as :class:`ProvisioningError`; nothing is
    retried.
    """
    broker.broker_properties(properties)
    if bootstrap_servers_property.strip():
        broker.bootstrap_servers_property(bootstrap_servers_property.strip())
    try:
        broker.start()
    except ProvisioningError:
        raise
    except Exception as exc:
        logger.error("broker.provision_failed", broker=repr(broker), error=str(exc))
        msg = f"Failed to start {broker!r}: {exc}"
        raise ProvisioningError(msg) from exc
    return broker
