"""Broker property layering.

Three sources feed one ordered mapping, highest precedence first:

1. inline ``key=value`` entries from the spec (later entries win)
2. the optional properties resource (only fills keys still missing)
3. computed defaults (only fill keys still missing)
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from enum import StrEnum

import structlog

from embedded_kafka.config.models import EmbeddedKafkaSpec
from embedded_kafka.errors import ConfigurationError
from embedded_kafka.properties import load_properties, parse_properties
from embedded_kafka.resources import ResourceLoader

logger = structlog.get_logger()

TRANSACTION_STATE_LOG_REPLICATION_FACTOR = "transaction.state.log.replication.factor"
MAX_DEFAULT_REPLICATION_FACTOR = 3

Resolver = Callable[[str], str]


class MergeMode(StrEnum):
    """How a source treats keys that are already present."""

    OVERWRITE = "overwrite"
    FILL_GAPS = "fill_gaps"


def merge_properties(
    target: dict[str, str], source: Mapping[str, str], mode: MergeMode
) -> dict[str, str]:
    """Merge *source* into *target* in place and return *target*."""
    for key, value in source.items():
        if mode == MergeMode.FILL_GAPS and key in target:
            continue
        target[key] = value
    return target


def inline_properties(entries: Iterable[str], resolve: Resolver) -> dict[str, str]:
    """Resolve and parse inline entries; blank entries are skipped."""
    properties: dict[str, str] = {}
    for entry in entries:
        if not entry.strip():
            continue
        try:
            parsed = parse_properties(resolve(entry))
        except ValueError as exc:
            msg = f"Failed to load broker property from [{entry}]"
            raise ConfigurationError(msg) from exc
        merge_properties(properties, parsed, MergeMode.OVERWRITE)
    return properties


def resource_properties(
    location: str, resolve: Resolver, loader: ResourceLoader
) -> dict[str, str]:
    """Load a properties resource, resolving placeholders in its values."""
    try:
        resource = loader.get_resource(resolve(location))
    except ValueError as exc:
        msg = f"Failed to resolve broker properties location [{location}]"
        raise ConfigurationError(msg) from exc
    if not resource.exists():
        msg = f"Failed to load broker properties from [{resource}]: resource does not exist."
        raise ConfigurationError(msg)
    try:
        with resource.open() as stream:
            raw = load_properties(stream)
        properties = {key: resolve(value) for key, value in raw.items()}
    except (OSError, ValueError) as exc:
        # UnicodeDecodeError is a ValueError
        msg = f"Failed to load broker properties from [{resource}]"
        raise ConfigurationError(msg) from exc
    logger.info(
        "properties.resource_loaded", resource=str(resource), keys=len(properties)
    )
    return properties


def default_properties(count: int) -> dict[str, str]:
    """Defaults computed from the cluster size."""
    return {
        TRANSACTION_STATE_LOG_REPLICATION_FACTOR: str(
            min(MAX_DEFAULT_REPLICATION_FACTOR, count)
        )
    }


def resolve_broker_properties(
    spec: EmbeddedKafkaSpec,
    resolve: Resolver,
    loader: ResourceLoader,
) -> dict[str, str]:
    """Build the merged broker property mapping for *spec*."""
    properties = inline_properties(spec.broker_properties, resolve)
    if spec.broker_properties_location.strip():
        merge_properties(
            properties,
            resource_properties(spec.broker_properties_location, resolve, loader),
            MergeMode.FILL_GAPS,
        )
    return merge_properties(
        properties, default_properties(spec.count), MergeMode.FILL_GAPS
    )
