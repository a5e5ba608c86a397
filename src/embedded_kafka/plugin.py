"""pytest plugin: the ``embedded_kafka`` marker and fixture.

Usage::

    @pytest.mark.embedded_kafka(count=3, topics=["orders", "${PREFIX:-t}.events"])
    def test_orders(embedded_kafka):
        producer = Producer({"bootstrap.servers": embedded_kafka.bootstrap_servers})

Tests whose markers carry equal settings share one cluster for the whole
session; every cluster is stopped when pytest exits.
"""

from __future__ import annotations

from typing import Any

import pytest

from embedded_kafka.brokers.base import EmbeddedBroker, NodeRuntime
from embedded_kafka.brokers.docker import DockerRuntime
from embedded_kafka.config.loader import build_spec, load_launcher_config
from embedded_kafka.config.models import EmbeddedKafkaSpec, LauncherConfig
from embedded_kafka.context import BROKER_NAME, ContextCache
from embedded_kafka.customizer import EmbeddedKafkaCustomizer
from embedded_kafka.errors import ConfigurationError
from embedded_kafka.resources import ResourceLoader

MARKER = "embedded_kafka"
LAUNCHER_CONFIG_INI = "embedded_kafka_launcher_config"

context_cache_key = pytest.StashKey[ContextCache]()


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addini(
        LAUNCHER_CONFIG_INI,
        help="YAML file overriding the embedded Kafka container launcher defaults",
        default="",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        f"{MARKER}(**fields): provision a test Kafka cluster for the "
        "embedded_kafka fixture (count, partitions, topics, kraft, ports, ...)",
    )
    config.stash[context_cache_key] = ContextCache()


def pytest_unconfigure(config: pytest.Config) -> None:
    cache = config.stash.get(context_cache_key, None)
    if cache is not None:
        cache.close()


def spec_from_marker(marker: pytest.Mark | None) -> EmbeddedKafkaSpec:
    """Build the broker spec from an ``embedded_kafka`` marker (or defaults)."""
    if marker is None:
        return EmbeddedKafkaSpec()
    if marker.args:
        msg = f"@pytest.mark.{MARKER} accepts keyword arguments only, got {marker.args!r}"
        raise ConfigurationError(msg)
    return build_spec(dict(marker.kwargs), source=f"@pytest.mark.{MARKER}")


@pytest.fixture(scope="session")
def embedded_kafka_launcher(pytestconfig: pytest.Config) -> LauncherConfig:
    """Container launcher settings; override to customise images or timeouts."""
    path = pytestconfig.getini(LAUNCHER_CONFIG_INI)
    if not path:
        return load_launcher_config()
    return load_launcher_config(pytestconfig.rootpath / path)


@pytest.fixture(scope="session")
def embedded_kafka_runtime(embedded_kafka_launcher: LauncherConfig) -> NodeRuntime:
    return DockerRuntime(embedded_kafka_launcher.docker)


@pytest.fixture
def embedded_kafka(
    request: pytest.FixtureRequest,
    embedded_kafka_launcher: LauncherConfig,
    embedded_kafka_runtime: NodeRuntime,
) -> EmbeddedBroker:
    """The started cluster described by the closest ``embedded_kafka`` marker."""
    spec = spec_from_marker(request.node.get_closest_marker(MARKER))
    customizer = EmbeddedKafkaCustomizer(spec)
    loader = ResourceLoader(request.config.rootpath)

    def _customize(context: Any) -> EmbeddedBroker:
        return customizer.customize(
            context,
            loader=loader,
            runtime=embedded_kafka_runtime,
            launcher=embedded_kafka_launcher,
        )

    context = request.config.stash[context_cache_key].get_or_create(
        customizer, _customize
    )
    broker: EmbeddedBroker = context.get(BROKER_NAME)
    return broker
