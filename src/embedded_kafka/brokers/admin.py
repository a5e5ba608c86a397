"""Readiness probing and topic creation against a started cluster."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import structlog
from confluent_kafka import KafkaException
from confluent_kafka.admin import AdminClient, NewTopic  # type: ignore[attr-defined]
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_delay,
    wait_fixed,
)

logger = structlog.get_logger()


class BrokersNotReady(Exception):
    """Raised while fewer brokers than expected have joined the cluster."""


def wait_for_brokers(
    bootstrap_servers: str,
    count: int,
    *,
    timeout: float,
    poll_interval: float = 1.0,
) -> None:
    """Block until *count* brokers are visible through *bootstrap_servers*."""
    admin = AdminClient({"bootstrap.servers": bootstrap_servers})

    def _probe() -> None:
        meta = admin.list_topics(timeout=max(poll_interval, 1.0))
        if len(meta.brokers) < count:
            msg = f"{len(meta.brokers)}/{count} broker(s) registered"
            raise BrokersNotReady(msg)

    try:
        for attempt in Retrying(
            retry=retry_if_exception_type((KafkaException, BrokersNotReady)),
            stop=stop_after_delay(timeout),
            wait=wait_fixed(poll_interval),
            reraise=True,
        ):
            with attempt:
                _probe()
    except (KafkaException, BrokersNotReady) as exc:
        msg = f"Kafka at {bootstrap_servers} not ready after {timeout}s: {exc}"
        raise TimeoutError(msg) from exc
    logger.info("brokers.ready", bootstrap_servers=bootstrap_servers, count=count)


def ensure_topics(
    bootstrap_servers: str,
    topics: Sequence[str],
    *,
    num_partitions: int = 1,
    replication_factor: int = 1,
    timeout: float = 10.0,
) -> None:
    """Create topics if they don't already exist."""
    if not topics:
        return
    admin_conf: dict[str, Any] = {"bootstrap.servers": bootstrap_servers}
    admin = AdminClient(admin_conf)
    existing = set(admin.list_topics(timeout=timeout).topics.keys())
    to_create = [
        NewTopic(
            t, num_partitions=num_partitions, replication_factor=replication_factor
        )
        for t in dict.fromkeys(topics)
        if t not in existing
    ]
    if not to_create:
        logger.info("topics.all_exist", count=len(topics))
        return
    futures = admin.create_topics(to_create, request_timeout=timeout)
    failed: list[str] = []
    for topic, future in futures.items():
        try:
            future.result(timeout=timeout)
            logger.info("topic.created", topic=topic, partitions=num_partitions)
        except Exception as exc:
            logger.error("topic.create_failed", topic=topic, error=str(exc))
            failed.append(f"{topic}: {exc}")
    if failed:
        msg = f"Failed to create {len(failed)} topic(s): {'; '.join(failed)}"
        raise RuntimeError(msg)
